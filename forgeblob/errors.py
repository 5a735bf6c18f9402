class ForgeBlobError(Exception):
    pass


class MalformedContainer(ForgeBlobError):
    pass


class UnsupportedCompression(ForgeBlobError):
    def __init__(self, code):
        super().__init__(f"unknown compression code 0x{code:02X}")
        self.code = code


class InvalidBlockCount(ForgeBlobError):
    pass


class TruncatedChunk(ForgeBlobError):
    def __init__(self, index, expected, available):
        super().__init__(
            f"chunk {index}: {expected} bytes declared, {available} available"
        )
        self.index = index
        self.expected = expected
        self.available = available


class DecompressionFailure(ForgeBlobError):
    pass


class UnsupportedPixelFormat(ForgeBlobError):
    def __init__(self, code):
        super().__init__(f"unknown pixel format code {code}")
        self.code = code


class Unimplemented(ForgeBlobError):
    def __init__(self, message, resource=None):
        super().__init__(message)
        self.resource = resource


class DecodeCancelled(ForgeBlobError):
    pass
