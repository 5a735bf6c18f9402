import argparse
import logging
from os import path
from .archive import FolderArchive
from .block_reader import DECODED_SUFFIX, Reader, extract_model, read_datafile
from .block_writer import Writer
from .errors import ForgeBlobError, Unimplemented
from .texture import TextureExtractor

version = "1.0"


def list(raw_file):
    Reader(raw_file).walk(False)


def unpack(raw_file):
    Reader(raw_file).walk()


def datafile(raw_file):
    Reader(raw_file).walk()
    header = read_datafile(raw_file)
    print(f"  name: {header.file_name}")
    print(f"  resource type: 0x{header.resource_type & 0xFFFFFFFF:08X}")
    print(f"  size: {header.file_size}")


def texture(raw_file, forge_dir):
    Reader(raw_file).walk()
    result = TextureExtractor(FolderArchive(forge_dir)).extract(
        raw_file, lambda result: print(f"\n  texture written to {result.png_path}")
    )
    top_mip = result.top_mip
    print(
        f"  {result.layout.value}: {top_mip.width}x{top_mip.height}"
        f" {top_mip.pixel_format.name}, {top_mip.mipmaps} mipmaps"
    )


def model(raw_file):
    Reader(raw_file).walk()
    try:
        extract_model(raw_file)
    except Unimplemented as e:
        print(f"  {e.resource.header.file_name}: model payload not supported yet")


def pack(decoded_file):
    base = (
        decoded_file[: -len(DECODED_SUFFIX)]
        if decoded_file.endswith(DECODED_SUFFIX)
        else decoded_file
    )
    output = Writer().write_file(decoded_file, base + ".raw")
    print(f"  {decoded_file} packed to {output}")


def file_path(string):
    if path.isfile(string):
        return string
    raise argparse.ArgumentTypeError(f"{string} is not a file")


def dir_path(string):
    if path.isdir(string):
        return string
    raise argparse.ArgumentTypeError(f"{string} is not a directory")


def main():
    parser = argparse.ArgumentParser(
        description="forgeblob decodes raw data blocks exported from forge archives\nand extracts their datafiles and textures",
        formatter_class=argparse.RawTextHelpFormatter,
    )
    parser.add_argument("-v", "--version", action="version", version=version)
    parser.add_argument(
        "--verbose", action="store_true", help="log every decoded chunk"
    )
    parser.add_argument(
        "--forge",
        metavar="FORGE_DIR",
        type=dir_path,
        help="folder holding the exported raw entries\nused with -t to find top mip siblings\n\t  folder of RAW_PATH by default",
    )
    command_group = parser.add_mutually_exclusive_group()
    command_group.add_argument(
        "-l",
        metavar="RAW_PATH",
        help="show raw data block header and chunk index:\nrequired: path to the raw entry",
        type=file_path,
    )
    command_group.add_argument(
        "-u",
        metavar="RAW_PATH",
        help=f"decode chunks to RAW_PATH{DECODED_SUFFIX}:\nrequired: path to the raw entry",
        type=file_path,
    )
    command_group.add_argument(
        "-d",
        metavar="RAW_PATH",
        help="decode and show the datafile header:\nrequired: path to the raw entry",
        type=file_path,
    )
    command_group.add_argument(
        "-t",
        metavar="RAW_PATH",
        help="decode and extract the texture map to dds and png:\nrequired: path to the raw entry",
        type=file_path,
    )
    command_group.add_argument(
        "-m",
        metavar="RAW_PATH",
        help="decode and read the model header:\nrequired: path to the raw entry",
        type=file_path,
    )
    command_group.add_argument(
        "-p",
        metavar="DEC_PATH",
        help="pack a decoded stream into a raw data block:\nrequired: path to the decoded file",
        type=file_path,
    )
    args = parser.parse_args()
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s: %(message)s",
    )
    try:
        (
            list(args.l)
            if args.l
            else (
                unpack(args.u)
                if args.u
                else (
                    datafile(args.d)
                    if args.d
                    else (
                        texture(args.t, args.forge or path.dirname(path.abspath(args.t)))
                        if args.t
                        else (
                            model(args.m)
                            if args.m
                            else pack(args.p) if args.p else parser.print_help()
                        )
                    )
                )
            )
        )
    except (ForgeBlobError, OSError) as e:
        parser.exit(1, f"Error: {e}\n")


if __name__ == "__main__":
    main()
