import struct
from forgeblob.archive import Archive, ArchiveEntry
from forgeblob.block_store import RAW_DATA_IDENTIFIER, Compression
from forgeblob.codec import Codec
from forgeblob.texture import ImageConverter

MAGIC = struct.pack("<Q", RAW_DATA_IDENTIFIER)


def create_block(entries, compression=Compression.OODLE, block_count=None, prefix=MAGIC):
    """Create a raw data block from (uncompressed_size, payload) pairs"""
    count = len(entries) if block_count is None else block_count
    out = prefix + struct.pack("<QhB4xi", RAW_DATA_IDENTIFIER, 3, compression, count)
    for size, payload in entries:
        out += struct.pack("<ii", size, len(payload))
    for _, payload in entries:
        out += struct.pack("<I", 0x1234ABCD) + payload
    return out


def create_stored_block(*payloads):
    return create_block([(len(p), p) for p in payloads])


def create_datafile(resource_type, file_name, body):
    return (
        struct.pack("<3i", resource_type, len(body), len(file_name))
        + file_name.encode()
        + body
    )


def create_top_mip(width, height, code, mipmaps):
    return struct.pack("<ii8xi4xi", width, height, code, mipmaps)


def create_texture_stream(mip0, mip1, data, file_name="Asset"):
    body = (
        b"\x01" * 14
        + mip0
        + b"\x02" * 81
        + mip1
        + b"\x03" * 25
        + struct.pack("<i", len(data))
        + data
    )
    return create_datafile(0x13237FE9, file_name, body)


class FakeCodec(Codec):
    def __init__(self, produce=None):
        self.calls = []
        self.produce = produce

    def decompress(self, data, compressed_size, uncompressed_size):
        self.calls.append((bytes(data), compressed_size, uncompressed_size))
        if self.produce is not None:
            return self.produce(data, compressed_size, uncompressed_size)
        return (bytes(data) * (uncompressed_size // len(data) + 1))[:uncompressed_size]

    def compress(self, data):
        return data


class FakeArchive(Archive):
    def __init__(self, entries):
        self.raw = dict(entries)
        self.fetched = []

    @property
    def entries(self):
        return [ArchiveEntry(name) for name in self.raw]

    def get_raw_data(self, entry):
        self.fetched.append(entry.name)
        return self.raw[entry.name]


class FakeConverter(ImageConverter):
    def __init__(self):
        self.converted = []

    def convert(self, dds_path):
        self.converted.append(dds_path)
        return dds_path[: -len(".dds")] + ".png"
