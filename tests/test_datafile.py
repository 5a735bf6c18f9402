import struct
from io import BytesIO
import pytest

from forgeblob.block_reader import extract_model, read_datafile, read_datafile_header
from forgeblob.block_store import DatafileHeader, ModelResource
from forgeblob.block_writer import pack_datafile_header
from forgeblob.errors import MalformedContainer, Unimplemented

from helpers import create_datafile


def test_datafile_header_round_trip():
    header = DatafileHeader(7, 100, "Texture.tex")
    stream = BytesIO(pack_datafile_header(header) + b"\0" * 100)

    decoded = read_datafile_header(stream)

    assert decoded == header
    assert decoded.file_name_size == 11
    assert stream.tell() == 12 + 11


def test_negative_name_size():
    with pytest.raises(MalformedContainer):
        read_datafile_header(BytesIO(struct.pack("<3i", 1, 0, -1)))


def test_name_longer_than_stream():
    with pytest.raises(MalformedContainer):
        read_datafile_header(BytesIO(struct.pack("<3i", 1, 0, 40) + b"short"))


def test_truncated_header():
    with pytest.raises(MalformedContainer):
        read_datafile_header(BytesIO(b"\x01\x00\x00\x00"))


def test_read_datafile_uses_decoded_suffix(tmp_path):
    (tmp_path / "Crate.dec").write_bytes(create_datafile(0x24AECB7C, "Crate", b"abcd"))

    header = read_datafile(tmp_path / "Crate")

    assert header == DatafileHeader(0x24AECB7C, 4, "Crate")


def test_model_payload_is_unimplemented(tmp_path):
    (tmp_path / "Crate_LOD0.dec").write_bytes(
        create_datafile(0x415D9568, "Crate_LOD0", b"\0" * 32)
    )

    with pytest.raises(Unimplemented) as excinfo:
        extract_model(tmp_path / "Crate_LOD0")

    assert isinstance(excinfo.value.resource, ModelResource)
    assert excinfo.value.resource.header.file_name == "Crate_LOD0"


def test_name_size_counts_characters():
    header = DatafileHeader(7, 4, "Tëxture")
    packed = pack_datafile_header(header)
    stream = BytesIO(packed + b"body")

    decoded = read_datafile_header(stream)

    assert struct.unpack_from("<i", packed, 8)[0] == 7
    assert decoded.file_name == "Tëxture"
    assert decoded.file_name_size == 7
    assert stream.tell() == 12 + 8
    assert stream.read() == b"body"


def test_name_with_invalid_utf8():
    with pytest.raises(MalformedContainer):
        read_datafile_header(BytesIO(struct.pack("<3i", 1, 0, 2) + b"\xff\xfe"))


def test_name_cut_inside_a_character():
    with pytest.raises(MalformedContainer):
        read_datafile_header(BytesIO(struct.pack("<3i", 1, 0, 2) + b"T\xc3"))
