import dataclasses
import functools
import struct

from dataclasses import dataclass
from enum import Enum, IntEnum
from typing import Tuple

from certified_file.errors import InvalidEnumValue


class Endianness(Enum):
    BIG = ">"
    LITTLE = "<"

    @property
    def byteorder(self):
        return "big" if self is Endianness.BIG else "little"


def to_enum(enum_cls, value):
    try:
        return enum_cls(value)
    except ValueError:
        raise InvalidEnumValue(enum_cls, value) from None


@functools.lru_cache(maxsize=None)
def _compile(fmt):
    return struct.Struct(fmt)


class Struct:
    # struct format without the byte order prefix, the prefix comes from the Endianness
    fmt = ""

    @classmethod
    def get_struct(cls, endian=Endianness.BIG):
        return _compile(endian.value + cls.fmt)

    @classmethod
    def byte_size(cls):
        return cls.get_struct().size

    def values(self):
        return dataclasses.astuple(self)

    def pack(self, endian=Endianness.BIG):
        return self.get_struct(endian).pack(*self.values())

    @classmethod
    def unpack(cls, data, endian=Endianness.BIG):
        return cls(*cls.get_struct(endian).unpack(data))

    @classmethod
    def read(cls, reader, endian=Endianness.BIG):
        return cls.unpack(reader.read_exact(cls.byte_size()), endian)


class Version(IntEnum):
    PS3 = 2
    VITA = 3


class Category(IntEnum):
    # SELF / SPRX, PS3 and Vita
    SIGNED_ELF = 1
    # Revocation list, PS3 and Vita
    SIGNED_REVOKE_LIST = 2
    # System software package, PS3 and Vita
    SIGNED_PACKAGE = 3
    # PS3 only
    SIGNED_SECURITY_POLICY_PROFILE = 4
    # Vita only
    SIGNED_DIFF = 5
    # Vita only
    SIGNED_PARAM_SFO = 6


class SigningAlgorithm(IntEnum):
    ECDSA160 = 1
    HMAC_SHA1 = 2
    SHA1 = 3
    RSA2048 = 5
    HMAC_SHA256 = 6


class SegmentType(IntEnum):
    SHDR = 1
    PHDR = 2
    SCEVERSION = 3


class EncryptionAlgorithm(IntEnum):
    NONE = 1
    AES128_CBC_CFB = 2
    AES128_CTR = 3


class CompressionAlgorithm(IntEnum):
    PLAIN = 1
    ZLIB = 2


class OptionalHeaderType(IntEnum):
    CAPABILITY = 1
    INDIVIDUAL_SEED = 2
    ATTRIBUTE = 3


class DrmType(IntEnum):
    UNKNOWN = 0
    NETWORK = 1
    LOCAL = 2
    FREE = 3
    PSP = 4
    FREE_PSP2_PSM = 0xD
    NETWORK_PSP_PSP2 = 0x100
    GAMECARD_PSP2 = 0x400
    UNKNOWN_PS3 = 0x2000


@dataclass
class SharedSecret(Struct):
    shared_secret_0: bytes = bytes(0x10)
    klicensee: bytes = bytes(0x10)
    shared_secret_2: bytes = bytes(0x10)
    shared_secret_3: Tuple[int, int, int, int] = (0, 0, 0, 0)

    fmt = "16s16s16s4I"

    def values(self):
        return (self.shared_secret_0, self.klicensee, self.shared_secret_2, *self.shared_secret_3)

    @classmethod
    def unpack(cls, data, endian=Endianness.BIG):
        values = cls.get_struct(endian).unpack(data)
        return cls(*values[:3], shared_secret_3=tuple(values[3:]))


@dataclass
class PlaintextCapability(Struct):
    ctrl_flag1: int = 0
    unknown2: int = 0
    unknown3: int = 0
    unknown4: int = 0
    unknown5: int = 0
    unknown6: int = 0
    unknown7: int = 0
    unknown8: int = 0

    fmt = "8I"


@dataclass
class EncryptedCapability(Struct):
    unknown1: int = 0
    unknown2: int = 0
    unknown3: int = 0
    unknown4: int = 0
    unknown5: int = 0
    unknown6: int = 0
    unknown7: int = 0
    unknown8: int = 0

    fmt = "8I"
