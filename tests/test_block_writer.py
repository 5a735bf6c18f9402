import os

from forgeblob.block_reader import Reader, read_bytes
from forgeblob.block_store import Compression
from forgeblob.block_writer import Writer, split_chunks
from forgeblob.codec import LZ4BlockCodec

from helpers import FakeCodec


def test_lz4_block_is_read_back():
    repetitive = b"TopMip" * 500
    noise = os.urandom(64)

    block = Writer().write_block([repetitive, noise])
    reader = Reader(block)

    assert reader.decode() == repetitive + noise
    assert not reader.indices[0].is_stored
    assert reader.indices[0].uncompressed_size == len(repetitive)
    assert reader.indices[1].is_stored


def test_uncompressed_writer_stores_every_chunk():
    codec = FakeCodec()
    block = Writer(compress=False, compression=Compression.LZO1X).write_block(
        [b"abc", b"defg"]
    )
    reader = Reader(block, codec)

    assert reader.decode() == b"abcdefg"
    assert reader.header.compression is Compression.LZO1X
    assert codec.calls == []


def test_checksum_is_crc32_of_payload():
    block = Writer(compress=False).write_block([b"abc"])
    reader = Reader(block)
    reader.decode()

    assert reader.chunks[0].checksum & 0xFFFFFFFF == 0x352441C2


def test_split_chunks():
    assert split_chunks(b"abcdefg", 3) == [b"abc", b"def", b"g"]
    assert split_chunks(b"") == [b""]


def test_write_file(tmp_path):
    data = bytes(range(256)) * 8
    (tmp_path / "Asset.dec").write_bytes(data)

    output = Writer().write_file(tmp_path / "Asset.dec", tmp_path / "Asset.raw")

    assert read_bytes((tmp_path / "Asset.raw").read_bytes()) == data
    assert output == tmp_path / "Asset.raw"


def test_lz4_codec_uses_declared_sizes():
    codec = LZ4BlockCodec()
    packed = codec.compress(b"a" * 100)

    assert codec.decompress(packed, len(packed), 100) == b"a" * 100
