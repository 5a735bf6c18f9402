from abc import ABC, abstractmethod
from enum import Enum
from logging import getLogger
from os import fspath, fsync, makedirs, path
from struct import calcsize, pack
from PIL import Image
from .block_reader import (
    decoded_path,
    read_datafile_header,
    read_exact,
    read_file,
    unpack_exact,
)
from .block_store import PixelFormat, TextureMap, TopMip
from .errors import MalformedContainer

TOP_MIP_FORMAT = "<ii8xi4xi"
TOP_MIP_SIZE = calcsize(TOP_MIP_FORMAT)

# gaps inside the texture descriptor block, in file order
MIP0_SKIP = 14
MIP1_SKIP = 81
MAP_DATA_SKIP = 25
TOP_MIP_DATA_SKIP = 18

TEXTURES_FOLDER = "textures"

DDS_MAGIC = b"DDS "
DDSD_CAPS = 0x1
DDSD_HEIGHT = 0x2
DDSD_WIDTH = 0x4
DDSD_PITCH = 0x8
DDSD_PIXELFORMAT = 0x1000
DDSD_MIPMAPCOUNT = 0x20000
DDSD_LINEARSIZE = 0x80000
DDPF_ALPHAPIXELS = 0x1
DDPF_FOURCC = 0x4
DDPF_RGB = 0x40
DDSCAPS_COMPLEX = 0x8
DDSCAPS_TEXTURE = 0x1000
DDSCAPS_MIPMAP = 0x400000

# fourcc, dxgi format, bytes per 4x4 block
DDS_FORMATS = {
    PixelFormat.DXT1: (b"DXT1", None, 8),
    PixelFormat.DXT3: (b"DXT3", None, 16),
    PixelFormat.DXT5: (b"DXT5", None, 16),
    PixelFormat.BC4: (b"ATI1", None, 8),
    PixelFormat.BC5: (b"ATI2", None, 16),
    PixelFormat.BC6H: (b"DX10", 95, 16),
    PixelFormat.BC7: (b"DX10", 98, 16),
}

logger = getLogger(__name__)


class TextureLayout(Enum):
    EXTERNAL_TOP_MIP = "external top mip"
    INLINE = "inline"


class TextureResult:
    def __init__(self, layout, top_mip, dds_path, png_path, texture_map=None):
        self.layout = layout
        self.top_mip = top_mip
        self.dds_path = dds_path
        self.png_path = png_path
        self.texture_map = texture_map


def linear_size(width, height, pixel_format):
    if pixel_format is PixelFormat.BGRA8:
        return width * 4
    block_size = DDS_FORMATS[pixel_format][2]
    return max(1, (width + 3) // 4) * max(1, (height + 3) // 4) * block_size


def build_dds_header(width, height, mipmaps, pixel_format):
    flags = DDSD_CAPS | DDSD_HEIGHT | DDSD_WIDTH | DDSD_PIXELFORMAT
    caps = DDSCAPS_TEXTURE
    if mipmaps > 1:
        flags |= DDSD_MIPMAPCOUNT
        caps |= DDSCAPS_COMPLEX | DDSCAPS_MIPMAP

    if pixel_format is PixelFormat.BGRA8:
        flags |= DDSD_PITCH
        pf = pack(
            "<2I4s5I",
            32,
            DDPF_RGB | DDPF_ALPHAPIXELS,
            b"\0\0\0\0",
            32,
            0x00FF0000,
            0x0000FF00,
            0x000000FF,
            0xFF000000,
        )
        dxgi_format = None
    else:
        flags |= DDSD_LINEARSIZE
        fourcc, dxgi_format, _ = DDS_FORMATS[pixel_format]
        pf = pack("<2I4s5I", 32, DDPF_FOURCC, fourcc, 0, 0, 0, 0, 0)

    header = pack(
        "<7I",
        124,
        flags,
        height,
        width,
        linear_size(width, height, pixel_format),
        0,
        max(mipmaps, 1),
    )
    header += pack("<11I", *([0] * 11))
    header += pf
    header += pack("<5I", caps, 0, 0, 0, 0)

    out = DDS_MAGIC + header
    if dxgi_format is not None:
        out += pack("<5I", dxgi_format, 3, 0, 1, 0)
    return out


def write_dds(output, top_mip, data):
    with open(output, "wb") as f:
        f.write(
            build_dds_header(
                top_mip.width, top_mip.height, top_mip.mipmaps, top_mip.pixel_format
            )
        )
        f.write(data)
        f.flush()
        fsync(f.fileno())
    logger.info(
        "%s: %dx%d %s, %d mipmaps, %d bytes",
        output,
        top_mip.width,
        top_mip.height,
        top_mip.pixel_format.name,
        top_mip.mipmaps,
        len(data),
    )
    return output


class ImageConverter(ABC):
    @abstractmethod
    def convert(self, dds_path):
        pass


class PngConverter(ImageConverter):
    def convert(self, dds_path):
        output = path.splitext(dds_path)[0] + ".png"
        with Image.open(dds_path) as image:
            image.load()
            with open(output, "wb") as f:
                image.save(f, format="PNG")
                f.flush()
                fsync(f.fileno())
        logger.info("%s converted to %s", dds_path, output)
        return output


def read_top_mip(stream):
    width, height, code, mipmaps = unpack_exact(TOP_MIP_FORMAT, stream, "top mip")
    return TopMip(width, height, PixelFormat.from_code(code), mipmaps)


def read_sized_payload(stream, size, what):
    if size < 0:
        raise MalformedContainer(f"{what}: negative size {size}")
    return read_exact(stream, size, what)


def top_mip_prefix(name):
    return name + "_TopMip"


def is_entry_file(entry, file_name):
    location = entry.location
    return (
        location is not None
        and path.exists(location)
        and path.exists(file_name)
        and path.samefile(location, file_name)
    )


def select_layout(archive, name):
    siblings = archive.find(top_mip_prefix(name))
    if len(siblings) == 2:
        return TextureLayout.EXTERNAL_TOP_MIP
    return TextureLayout.INLINE


class TextureExtractor:
    """Turns a decoded texture map into a DDS container and a PNG.

    The top mip of large textures lives in two sibling archive entries,
    ``<name>_TopMip_0`` and ``<name>_TopMip_1``; when both exist the pixels
    come from the first one, otherwise from the texture map itself.

    Outputs go to ``work_dir``, or a ``textures`` folder next to the decoded
    file; archive entries that already live there are read, never rewritten.
    """

    def __init__(self, archive, converter=None, codec=None, work_dir=None, cancel=None):
        self.archive = archive
        self.converter = converter if converter is not None else PngConverter()
        self.codec = codec
        self.work_dir = work_dir
        self.cancel = cancel

    def output_dir(self, file_name):
        if self.work_dir is not None:
            folder = fspath(self.work_dir)
        else:
            folder = path.join(path.dirname(path.abspath(file_name)), TEXTURES_FOLDER)
        makedirs(folder, exist_ok=True)
        return folder

    def extract(self, file_name, conversion_completed=None):
        file_name = fspath(file_name)
        name = path.basename(file_name)
        with open(decoded_path(file_name), "rb") as f:
            read_datafile_header(f)
            read_exact(f, MIP0_SKIP, "texture descriptor")
            mip0 = read_top_mip(f)
            read_exact(f, MIP1_SKIP, "texture descriptor")
            mip1 = read_top_mip(f)
            logger.debug(
                "%s: mip0 %dx%d %s, mip1 %dx%d %s",
                name,
                mip0.width,
                mip0.height,
                mip0.pixel_format.name,
                mip1.width,
                mip1.height,
                mip1.pixel_format.name,
            )

            layout = select_layout(self.archive, name)
            logger.info("%s: %s layout", name, layout.value)
            if layout is TextureLayout.EXTERNAL_TOP_MIP:
                result = self.extract_top_mip(file_name, name, mip0)
            else:
                result = self.extract_texture_map(f, file_name, name, mip0)

        if conversion_completed is not None:
            conversion_completed(result)
        return result

    def extract_texture_map(self, stream, file_name, name, mip0):
        read_exact(stream, MAP_DATA_SKIP, "texture map")
        data_size = unpack_exact("<i", stream, "texture map")[0]
        data = read_sized_payload(stream, data_size, "texture map data")
        texture_map = TextureMap(
            mip0.width, mip0.height, mip0.pixel_format, mip0.mipmaps, data
        )
        dds = write_dds(
            path.join(self.output_dir(file_name), name + ".dds"), mip0, data
        )
        png = self.converter.convert(dds)
        return TextureResult(TextureLayout.INLINE, mip0, dds, png, texture_map)

    def extract_top_mip(self, file_name, name, mip0):
        entry_name = top_mip_prefix(name) + "_0"
        try:
            entry = self.archive.get(entry_name)
        except KeyError:
            raise MalformedContainer(f"{name}: top mip entry {entry_name} not found") from None

        raw_data = self.archive.get_raw_data(entry)
        raw_path = path.join(self.output_dir(file_name), entry.name)
        if not is_entry_file(entry, raw_path):
            with open(raw_path, "wb") as f:
                f.write(raw_data)
        read_file(raw_path, self.codec, self.cancel)

        with open(decoded_path(raw_path), "rb") as f:
            header = read_datafile_header(f)
            read_exact(f, TOP_MIP_DATA_SKIP, "top mip")
            data = read_sized_payload(
                f, header.file_size - TOP_MIP_DATA_SKIP, "top mip data"
            )

        dds = write_dds(raw_path + ".dds", mip0, data)
        png = self.converter.convert(dds)
        return TextureResult(TextureLayout.EXTERNAL_TOP_MIP, mip0, dds, png)
