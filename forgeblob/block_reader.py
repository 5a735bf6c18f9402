from codecs import getincrementaldecoder
from io import BytesIO, SEEK_END
from logging import getLogger
from os import fspath, fsync
from struct import calcsize, iter_unpack, pack, unpack
from .block_store import (
    MIN_INDEX_ENTRY_SIZE,
    RAW_DATA_IDENTIFIER,
    BlockIndex,
    Compression,
    DataChunk,
    DatafileHeader,
    ModelResource,
    RawBlockHeader,
)
from .codec import LZ4BlockCodec
from .errors import (
    DecodeCancelled,
    DecompressionFailure,
    ForgeBlobError,
    InvalidBlockCount,
    MalformedContainer,
    TruncatedChunk,
    Unimplemented,
)

DECODED_SUFFIX = ".dec"

HEADER_FORMAT = "<QhB4xi"
HEADER_SIZE = calcsize(HEADER_FORMAT)
INDEX_FORMAT = "<ii"
DATAFILE_FORMAT = "<3i"
DATAFILE_SIZE = calcsize(DATAFILE_FORMAT)

logger = getLogger(__name__)


def remaining(stream):
    position = stream.tell()
    end = stream.seek(0, SEEK_END)
    stream.seek(position)
    return end - position


def decoded_path(file_name):
    return file_name + DECODED_SUFFIX


def locate_raw_data_identifier(data, identifier=RAW_DATA_IDENTIFIER):
    """Return every offset of the 8-byte identifier in ``data``.

    A raw entry starts with a marker copy of the identifier; the block
    itself begins at the second occurrence, so fewer than two is an error.
    """
    magic = pack("<Q", identifier)
    offsets = []
    offset = data.find(magic)
    while offset != -1:
        offsets.append(offset)
        offset = data.find(magic, offset + 1)
    if len(offsets) < 2:
        raise MalformedContainer(
            f"raw data identifier found {len(offsets)} time(s), at least 2 expected"
        )
    return offsets


class Reader:
    def __init__(self, source, codec=None, cancel=None):
        if not isinstance(source, (bytes, bytearray, memoryview)):
            source = fspath(source)
        self.source = source
        self.codec = codec if codec is not None else LZ4BlockCodec()
        self.cancel = cancel
        self.stream = None
        self.block_offset = None
        self.header = None
        self.indices = None
        self.chunks = None

    @property
    def name(self):
        if isinstance(self.source, str):
            return self.source
        return "<memory>"

    def walk(self, extract=True):
        self.get_block()
        self.get_header()
        self.get_indices()
        print(
            f"  raw data block at 0x{self.block_offset:X}, version {self.header.version},"
            f" {self.header.compression.name} compression\n"
        )
        if extract:
            output = self.write_decoded()
            print(f"  {self.header.block_count} chunks decoded to {output}")
        else:
            self.print_indices()

    def get_block(self):
        if isinstance(self.source, (bytes, bytearray, memoryview)):
            data = bytes(self.source)
        else:
            with open(self.source, "rb") as f:
                data = f.read()
        offsets = locate_raw_data_identifier(data)
        self.block_offset = offsets[1]
        logger.info(
            "%s: identifier at %s, block starts at 0x%X",
            self.name,
            ", ".join(f"0x{o:X}" for o in offsets),
            self.block_offset,
        )
        self.stream = BytesIO(data)
        self.stream.seek(self.block_offset)

    def get_header(self):
        raw = self.stream.read(HEADER_SIZE)
        if len(raw) < HEADER_SIZE:
            raise MalformedContainer(f"{self.name}: raw data block header is truncated")
        identifier, version, code, block_count = unpack(HEADER_FORMAT, raw)
        if identifier != RAW_DATA_IDENTIFIER:
            raise MalformedContainer(
                f"{self.name}: unexpected block identifier 0x{identifier:016X}"
            )
        compression = Compression.from_code(code)
        limit = remaining(self.stream) // MIN_INDEX_ENTRY_SIZE
        if block_count < 0 or block_count > limit:
            raise InvalidBlockCount(
                f"{self.name}: block count {block_count} outside 0..{limit}"
            )
        self.header = RawBlockHeader(identifier, version, compression, block_count)
        logger.info(
            "%s: version %d, %s, %d chunks",
            self.name,
            version,
            compression.name,
            block_count,
        )

    def get_indices(self):
        raw = self.stream.read(self.header.block_count * MIN_INDEX_ENTRY_SIZE)
        indices = []
        for i, (uncompressed_size, compressed_size) in enumerate(
            iter_unpack(INDEX_FORMAT, raw)
        ):
            if uncompressed_size < 0 or compressed_size < 0:
                raise InvalidBlockCount(
                    f"{self.name}: chunk {i} has negative size"
                    f" ({uncompressed_size}, {compressed_size})"
                )
            indices.append(BlockIndex(uncompressed_size, compressed_size))
        self.indices = indices

    def read_chunk(self, i, index):
        available = remaining(self.stream)
        if available < 4 + index.compressed_size:
            raise TruncatedChunk(i, index.compressed_size, max(available - 4, 0))
        checksum = unpack("<i", self.stream.read(4))[0]
        return DataChunk(checksum, self.stream.read(index.compressed_size))

    def decompress_chunk(self, i, index, chunk):
        if index.is_stored:
            return chunk.data
        try:
            data = self.codec.decompress(
                chunk.data, index.compressed_size, index.uncompressed_size
            )
        except ForgeBlobError:
            raise
        except Exception as e:
            raise DecompressionFailure(f"{self.name}: chunk {i}: {e}") from e
        if len(data) != index.uncompressed_size:
            raise DecompressionFailure(
                f"{self.name}: chunk {i} decompressed to {len(data)} bytes,"
                f" {index.uncompressed_size} expected"
            )
        return data

    def get_chunks(self):
        decoded = bytearray()
        self.chunks = []
        for i, index in enumerate(self.indices):
            if self.cancel is not None and self.cancel.is_set():
                raise DecodeCancelled(f"{self.name}: cancelled before chunk {i}")
            chunk = self.read_chunk(i, index)
            self.chunks.append(chunk)
            decoded += self.decompress_chunk(i, index, chunk)
            logger.debug(
                "%s: chunk %d checksum 0x%08X %d -> %d bytes",
                self.name,
                i,
                chunk.checksum & 0xFFFFFFFF,
                index.compressed_size,
                index.uncompressed_size,
            )
        return bytes(decoded)

    def decode(self):
        self.get_block()
        self.get_header()
        self.get_indices()
        return self.get_chunks()

    def write_decoded(self, output=None):
        if output is None:
            if not isinstance(self.source, str):
                raise ValueError("an output path is required for in-memory sources")
            output = decoded_path(self.source)
        if self.indices is None:
            data = self.decode()
        else:
            data = self.get_chunks()
        with open(output, "wb") as f:
            f.write(data)
            f.flush()
            fsync(f.fileno())
        logger.info("%s: %d bytes written to %s", self.name, len(data), output)
        return output

    def print_indices(self):
        print("{:<7}{:<14}{:<14}{}".format("Chunk", "Uncompressed", "Compressed", "Stored"))
        for i, index in enumerate(self.indices):
            print(
                "{:<7}{:<14}{:<14}{}".format(
                    i,
                    index.uncompressed_size,
                    index.compressed_size,
                    "yes" if index.is_stored else "no",
                )
            )


def read_file(file_name, codec=None, cancel=None):
    return Reader(file_name, codec, cancel).write_decoded()


def read_bytes(raw_data, codec=None, cancel=None):
    return Reader(raw_data, codec, cancel).decode()


def read_datafile_header(stream):
    raw = stream.read(DATAFILE_SIZE)
    if len(raw) < DATAFILE_SIZE:
        raise MalformedContainer("datafile header is truncated")
    resource_type, file_size, file_name_size = unpack(DATAFILE_FORMAT, raw)
    available = remaining(stream)
    if file_name_size < 0 or file_name_size > available:
        raise MalformedContainer(
            f"datafile name size {file_name_size} outside 0..{available}"
        )
    file_name = read_chars(stream, file_name_size, "datafile name")
    return DatafileHeader(resource_type, file_size, file_name)


def read_datafile(file_name):
    file_name = fspath(file_name)
    with open(decoded_path(file_name), "rb") as f:
        header = read_datafile_header(f)
    logger.info(
        "%s: datafile %r, type 0x%08X, %d bytes",
        file_name,
        header.file_name,
        header.resource_type & 0xFFFFFFFF,
        header.file_size,
    )
    return header


def extract_model(file_name):
    file_name = fspath(file_name)
    with open(decoded_path(file_name), "rb") as f:
        header = read_datafile_header(f)
    raise Unimplemented(
        f"model payload of {header.file_name!r} is not supported", ModelResource(header)
    )


def read_chars(stream, count, what):
    # count is in characters, a UTF-8 character spans one to four bytes
    decoder = getincrementaldecoder("utf-8")()
    chars = []
    length = 0
    while length < count:
        byte = stream.read(1)
        if not byte:
            raise MalformedContainer(
                f"{what}: {count} characters expected, {length} available"
            )
        try:
            text = decoder.decode(byte)
        except UnicodeDecodeError as e:
            raise MalformedContainer(f"{what}: not valid text: {e}") from e
        chars.append(text)
        length += len(text)
    return "".join(chars)


def read_exact(stream, size, what):
    data = stream.read(size)
    if len(data) < size:
        raise MalformedContainer(f"{what}: {size} bytes expected, {len(data)} available")
    return data


def unpack_exact(fmt, stream, what):
    return unpack(fmt, read_exact(stream, calcsize(fmt), what))
