import io

from certified_file.errors import TruncatedInput
from certified_file.types import Endianness, to_enum


class BinaryReader:
    """
    Sequential reader over a file-like object.

    Every read is exact, a short read raises TruncatedInput. The number of
    bytes handed out is tracked in bytes_read.
    """

    def __init__(self, fp):
        if isinstance(fp, (bytes, bytearray, memoryview)):
            fp = io.BytesIO(bytes(fp))
        self.fp = fp
        self.bytes_read = 0

    def read_exact(self, size):
        if size < 0:
            raise ValueError(f"Cannot read {size:d} bytes")
        data = self.fp.read(size)
        if len(data) != size:
            raise TruncatedInput(size, len(data))
        self.bytes_read += size
        return bytes(data)

    def read_int(self, size, endian: Endianness):
        return int.from_bytes(self.read_exact(size), byteorder=endian.byteorder, signed=False)

    def read_u16(self, endian: Endianness):
        return self.read_int(2, endian)

    def read_u32(self, endian: Endianness):
        return self.read_int(4, endian)

    def read_u64(self, endian: Endianness):
        return self.read_int(8, endian)

    def read_enum(self, enum_cls, size, endian: Endianness):
        return to_enum(enum_cls, self.read_int(size, endian))

    def read_bounded(self, size):
        """read_exact for sizes taken from the file itself, checked against what is left first"""
        available = self.remaining()
        if size > available:
            raise TruncatedInput(size, available)
        return self.read_exact(size)

    def remaining(self):
        position = self.fp.tell()
        end = self.fp.seek(0, io.SEEK_END)
        self.fp.seek(position)
        return end - position

    def seek(self, offset, whence=io.SEEK_SET):
        return self.fp.seek(offset, whence)

    def tell(self):
        return self.fp.tell()
