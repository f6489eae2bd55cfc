import struct

from Crypto.Cipher import AES
from Crypto.Util import Counter

from certified_file.headers import OuterHeader, VitaData, MetadataHeader
from certified_file.keys import SystemKey
from certified_file.types import Endianness, Version, Category, SigningAlgorithm

SYSTEM_KEY = SystemKey(bytes(range(0x20)), bytes(range(0x40, 0x50)))
OTHER_SYSTEM_KEY = SystemKey(bytes(range(0x80, 0xA0)), bytes(range(0xC0, 0xD0)))
TITLE_KEY = bytes.fromhex("72F990788F9CFF745725F08E4C128387")

ROOT_KEY = bytes.fromhex("00112233445566778899AABBCCDDEEFF")
ROOT_IV = bytes.fromhex("0F0E0D0C0B0A09080706050403020100")


def encrypt_root(key=ROOT_KEY, iv=ROOT_IV, system_key=SYSTEM_KEY, title_key=None, key_pad=bytes(16), iv_pad=bytes(16)):
    block = key + key_pad + iv + iv_pad
    # Decryption removes the title layer first, so it is applied last here
    block = AES.new(system_key.erk, AES.MODE_CBC, system_key.riv).encrypt(block)
    if title_key is not None:
        block = AES.new(title_key, AES.MODE_CBC, bytes(16)).encrypt(block)
    return block


def optional_record(header_type, payload, more, endian=Endianness.BIG, declared_size=None):
    if declared_size is None:
        declared_size = 0x10 + len(payload)
    return struct.pack(endian.value + "IIQ", header_type, declared_size, int(more)) + payload


def build_container(version=Version.PS3, category=Category.SIGNED_ELF, key_revision=0x1C,
                    system_key=SYSTEM_KEY, title_key=None, extended_header=b"",
                    segments=(), attr_entry_num=0, optional_table=b"",
                    sign_algorithm=SigningAlgorithm.ECDSA160, signature=None, payload=b"\xAA" * 0x40,
                    sign_gap=b"", sign_offset=None):
    endian = Endianness.BIG if version == Version.PS3 else Endianness.LITTLE
    header_size = 0x20 if version == Version.PS3 else 0x30

    if signature is None:
        if sign_algorithm == SigningAlgorithm.RSA2048:
            signature = b"\x5A" * 0x100
        elif version == Version.PS3:
            signature = b"\x11" * 0x14 + b"\x22" * 0x14
        else:
            signature = b"\x11" * 0x1C + b"\x22" * 0x1C

    metadata_offset = header_size + len(extended_header) + 0x40
    tables_size = (MetadataHeader.byte_size() + 0x30 * len(segments)
                   + len(optional_table) + len(sign_gap))
    metadata_header = MetadataHeader(
        sign_offset=metadata_offset + tables_size if sign_offset is None else sign_offset,
        sign_algorithm=sign_algorithm,
        cert_entry_num=len(segments),
        attr_entry_num=attr_entry_num,
        optional_header_size=len(optional_table),
    )
    metadata = (metadata_header.pack(endian)
                + b"".join(segment.pack(endian) for segment in segments)
                + optional_table
                + sign_gap
                + signature)
    metadata += bytes(-len(metadata) % 0x10)

    if version == Version.PS3:
        aes = AES.new(ROOT_KEY, AES.MODE_CTR, counter=Counter.new(128, initial_value=int.from_bytes(ROOT_IV, "big")))
    else:
        aes = AES.new(ROOT_KEY, AES.MODE_CBC, ROOT_IV)
    encrypted_metadata = aes.encrypt(metadata)

    file_offset = metadata_offset + len(metadata)
    header = OuterHeader(
        version=version,
        key_revision=key_revision,
        category=category,
        extended_header_size=len(extended_header),
        file_offset=file_offset,
        file_size=len(payload),
    )
    if version == Version.VITA:
        header.vita_data = VitaData(certified_file_size=file_offset + len(payload))

    return (header.pack()
            + extended_header
            + encrypt_root(system_key=system_key, title_key=title_key)
            + encrypted_metadata
            + payload)


class NoReadFile:
    """File object that fails the test if anything reads from it"""

    def read(self, size=-1):
        raise AssertionError("Unexpected read")
