from io import BytesIO
from logging import getLogger
from os import fspath, fsync
from struct import pack
from zlib import crc32
from .block_reader import DATAFILE_FORMAT, HEADER_FORMAT, INDEX_FORMAT
from .block_store import RAW_DATA_IDENTIFIER, Compression
from .codec import LZ4BlockCodec

CHUNK_SIZE = 0x40000

logger = getLogger(__name__)


def pack_datafile_header(header):
    return pack(
        DATAFILE_FORMAT, header.resource_type, header.file_size, len(header.file_name)
    ) + header.file_name.encode("utf-8")


def split_chunks(data, chunk_size=CHUNK_SIZE):
    return [data[i : i + chunk_size] for i in range(0, len(data), chunk_size)] or [b""]


class Writer:
    """Builds a raw data block from a list of chunk payloads.

    The block is preceded by ``prefix`` (a marker copy of the identifier by
    default) so the result can be read back with :class:`block_reader.Reader`.
    Chunks that do not shrink under the codec are stored as they are.
    """

    def __init__(
        self,
        codec=None,
        compression=Compression.OODLE,
        version=1,
        prefix=None,
        compress=True,
    ):
        self.codec = codec if codec is not None else LZ4BlockCodec()
        self.compression = compression
        self.version = version
        self.prefix = prefix if prefix is not None else pack("<Q", RAW_DATA_IDENTIFIER)
        self.compress = compress

    def prepare_chunk(self, data):
        if self.compress:
            packed = self.codec.compress(data)
            if len(packed) < len(data):
                return packed
        return data

    def write_block(self, chunks):
        blob = BytesIO()
        blob.write(self.prefix)
        blob.write(
            pack(
                HEADER_FORMAT,
                RAW_DATA_IDENTIFIER,
                self.version,
                self.compression,
                len(chunks),
            )
        )
        prepared = [self.prepare_chunk(chunk) for chunk in chunks]
        for chunk, packed in zip(chunks, prepared):
            blob.write(pack(INDEX_FORMAT, len(chunk), len(packed)))
        for packed in prepared:
            blob.write(pack("<I", crc32(packed)))
            blob.write(packed)
        logger.debug(
            "packed %d chunks, %d -> %d bytes",
            len(chunks),
            sum(len(c) for c in chunks),
            sum(len(p) for p in prepared),
        )
        return blob.getvalue()

    def write_file(self, file_name, output):
        with open(file_name, "rb") as f:
            data = f.read()
        blob = self.write_block(split_chunks(data))
        with open(output, "wb") as f:
            f.write(blob)
            f.flush()
            fsync(f.fileno())
        logger.info("%s: %d bytes packed to %s", fspath(file_name), len(blob), output)
        return output
