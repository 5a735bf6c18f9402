from abc import ABC, abstractmethod
from lz4.block import LZ4BlockError, compress, decompress
from .errors import DecompressionFailure


class Codec(ABC):
    """Per-chunk compression routine used by the block reader and writer.

    ``decompress`` receives the chunk payload together with both sizes from
    the block index and must return exactly ``uncompressed_size`` bytes.
    """

    @abstractmethod
    def decompress(self, data, compressed_size, uncompressed_size):
        pass

    @abstractmethod
    def compress(self, data):
        pass


class LZ4BlockCodec(Codec):
    def __init__(self, mode="high_compression", level=12):
        self.mode = mode
        self.level = level

    def decompress(self, data, compressed_size, uncompressed_size):
        try:
            return decompress(data[:compressed_size], uncompressed_size=uncompressed_size)
        except LZ4BlockError as e:
            raise DecompressionFailure(f"lz4: {e}") from e

    def compress(self, data):
        return compress(
            data, mode=self.mode, compression=self.level, store_size=False
        )
