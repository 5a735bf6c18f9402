from enum import Enum, IntEnum
from .errors import UnsupportedCompression, UnsupportedPixelFormat

RAW_DATA_IDENTIFIER = 0x1004FA9957FBAA33
MIN_INDEX_ENTRY_SIZE = 8


class Compression(IntEnum):
    LZO1X = 0x00
    LZO1X_ALT = 0x01
    LZO2A = 0x02
    XMEM = 0x03
    LZO1C = 0x05
    OODLE = 0x08

    @classmethod
    def from_code(cls, code):
        try:
            return cls(code)
        except ValueError:
            raise UnsupportedCompression(code) from None


class PixelFormat(Enum):
    BGRA8 = "BGRA8"
    DXT1 = "DXT1"
    DXT3 = "DXT3"
    DXT5 = "DXT5"
    BC4 = "BC4"
    BC5 = "BC5"
    BC6H = "BC6H"
    BC7 = "BC7"

    @classmethod
    def from_code(cls, code):
        try:
            return PIXEL_FORMAT_CODES[code]
        except KeyError:
            raise UnsupportedPixelFormat(code) from None


# several engine codes share one block layout
PIXEL_FORMAT_CODES = {
    0: PixelFormat.BGRA8,
    1: PixelFormat.DXT1,
    2: PixelFormat.DXT1,
    3: PixelFormat.DXT1,
    4: PixelFormat.DXT3,
    5: PixelFormat.DXT5,
    6: PixelFormat.DXT5,
    7: PixelFormat.DXT5,
    8: PixelFormat.BC4,
    9: PixelFormat.BC5,
    10: PixelFormat.BC6H,
    11: PixelFormat.BC7,
}


class RawBlockHeader:
    def __init__(self, identifier, version, compression, block_count):
        self.identifier = identifier
        self.version = version
        self.compression = compression
        self.block_count = block_count


class BlockIndex:
    def __init__(self, uncompressed_size, compressed_size):
        self.uncompressed_size = uncompressed_size
        self.compressed_size = compressed_size

    @property
    def is_stored(self):
        return self.compressed_size == self.uncompressed_size


class DataChunk:
    def __init__(self, checksum, data):
        self.checksum = checksum
        self.data = data


class DatafileHeader:
    def __init__(self, resource_type, file_size, file_name):
        self.resource_type = resource_type
        self.file_size = file_size
        self.file_name = file_name

    @property
    def file_name_size(self):
        return len(self.file_name)

    def __eq__(self, other):
        if not isinstance(other, DatafileHeader):
            return NotImplemented
        return (self.resource_type, self.file_size, self.file_name) == (
            other.resource_type,
            other.file_size,
            other.file_name,
        )

    def __repr__(self):
        return (
            f"DatafileHeader(resource_type={self.resource_type}, "
            f"file_size={self.file_size}, file_name={self.file_name!r})"
        )


class TopMip:
    def __init__(self, width, height, pixel_format, mipmaps):
        self.width = width
        self.height = height
        self.pixel_format = pixel_format
        self.mipmaps = mipmaps


class TextureMap(TopMip):
    def __init__(self, width, height, pixel_format, mipmaps, data):
        super().__init__(width, height, pixel_format, mipmaps)
        self.data = data

    @property
    def data_size(self):
        return len(self.data)


class ModelResource:
    def __init__(self, header):
        self.header = header
