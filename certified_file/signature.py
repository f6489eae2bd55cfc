from dataclasses import dataclass
from typing import Union

from certified_file.errors import UnsupportedSignatureType
from certified_file.types import Struct, SigningAlgorithm, Version, to_enum


@dataclass
class Ecdsa160Signature(Struct):
    r: bytes = bytes(0x14)
    s: bytes = bytes(0x14)

    algorithm = SigningAlgorithm.ECDSA160
    fmt = "20s20s"


@dataclass
class Ecdsa224Signature(Struct):
    """ECDSA160 signature as laid out on Vita"""
    r: bytes = bytes(0x1C)
    s: bytes = bytes(0x1C)

    algorithm = SigningAlgorithm.ECDSA160
    fmt = "28s28s"


@dataclass
class Rsa2048Signature(Struct):
    signature: bytes = bytes(0x100)

    algorithm = SigningAlgorithm.RSA2048
    fmt = "256s"


Signature = Union[Ecdsa160Signature, Ecdsa224Signature, Rsa2048Signature]


def read_signature(reader, sign_algorithm, version=Version.PS3) -> Signature:
    sign_algorithm = to_enum(SigningAlgorithm, sign_algorithm)
    if sign_algorithm == SigningAlgorithm.ECDSA160:
        if to_enum(Version, version) == Version.VITA:
            return Ecdsa224Signature.read(reader)
        return Ecdsa160Signature.read(reader)
    elif sign_algorithm == SigningAlgorithm.RSA2048:
        return Rsa2048Signature.read(reader)
    else:
        # HMAC_SHA1, SHA1 and HMAC_SHA256 are not stored as a trailing blob
        raise UnsupportedSignatureType(sign_algorithm)
