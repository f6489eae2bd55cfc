import logging

from dataclasses import dataclass

from Crypto.Cipher import AES

from certified_file.errors import BadPadding
from certified_file.keys import SystemKey
from certified_file.types import Struct

LOGGER = logging.getLogger(__name__)

ENCRYPTION_ROOT_SIZE = 0x40

# The title layer is always decrypted with an empty iv
TITLE_IV = bytes(0x10)


@dataclass
class EncryptionRoot(Struct):
    key: bytes = bytes(0x10)
    key_pad: bytes = bytes(0x10)
    iv: bytes = bytes(0x10)
    iv_pad: bytes = bytes(0x10)

    fmt = "16s16s16s16s"

    def check_padding(self):
        return not any(self.key_pad) and not any(self.iv_pad)


def decrypt_block(block, key, iv):
    return AES.new(key, AES.MODE_CBC, iv).decrypt(block)


def _unwrap(block, layers):
    if len(block) != ENCRYPTION_ROOT_SIZE:
        raise ValueError(f"Encryption root must be {ENCRYPTION_ROOT_SIZE:d} bytes, got {len(block):d}")

    for key, iv in layers:
        block = decrypt_block(block, key, iv)

    root = EncryptionRoot.unpack(block)

    # If the padding is not NULL for the key or iv fields, the root was not properly decrypted.
    if not root.check_padding():
        raise BadPadding("Failed to decrypt encryption root, padding is not zero")
    return root


def resolve(block, system_key: SystemKey):
    """Remove the system encryption layer"""
    return _unwrap(block, [(system_key.erk, system_key.riv)])


def resolve_title_wrapped(block, title_key, system_key: SystemKey):
    """Remove the title (npdrm) layer, then the system layer"""
    if len(title_key) != 0x10:
        raise ValueError(f"Title key must be 16 bytes, got {len(title_key):d}")
    return _unwrap(block, [(title_key, TITLE_IV), (system_key.erk, system_key.riv)])


def read_encryption_root(reader, system_key: SystemKey, title_key=None):
    block = reader.read_exact(ENCRYPTION_ROOT_SIZE)
    if title_key is not None:
        LOGGER.debug("Removing title layer from encryption root")
        return resolve_title_wrapped(block, title_key, system_key)
    return resolve(block, system_key)
