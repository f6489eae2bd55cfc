import logging

from dataclasses import dataclass
from typing import List, Optional

from certified_file.errors import InvalidMagic, InvalidHeaderPadding
from certified_file.types import (
    Struct,
    Endianness,
    Version,
    Category,
    SigningAlgorithm,
    SegmentType,
    EncryptionAlgorithm,
    CompressionAlgorithm,
    to_enum,
)

LOGGER = logging.getLogger(__name__)

MAGIC_BE = b"SCE\0"
MAGIC_LE = b"\0ECS"

NO_INDEX = 0xFFFFFFFF


@dataclass
class VitaData(Struct):
    certified_file_size: int = 0  # Size of the certified file itself
    padding: int = 0  # Always 0

    fmt = "QQ"


@dataclass
class OuterHeader(Struct):
    version: Version = Version.PS3
    key_revision: int = 0  # aka attribute
    category: Category = Category.SIGNED_ELF  # aka header_type
    extended_header_size: int = 0  # aka metadata_offset, 0 unless SIGNED_ELF
    file_offset: int = 0  # aka header_len
    file_size: int = 0  # aka data_len
    vita_data: Optional[VitaData] = None

    # Everything after the magic
    fmt = "IHHIQQ"

    def __post_init__(self):
        self.version = to_enum(Version, self.version)
        self.category = to_enum(Category, self.category)

    @property
    def endianness(self):
        if self.version == Version.PS3:
            return Endianness.BIG
        return Endianness.LITTLE

    @property
    def magic(self):
        return MAGIC_BE if self.endianness is Endianness.BIG else MAGIC_LE

    @property
    def byte_size(self):
        if self.version == Version.PS3:
            return 0x20
        return 0x30

    def values(self):
        return (self.version, self.key_revision, self.category,
                self.extended_header_size, self.file_offset, self.file_size)

    def pack(self, endian=None):
        endian = endian or self.endianness
        data = self.magic + self.get_struct(endian).pack(*self.values())
        if self.vita_data is not None:
            data += self.vita_data.pack(endian)
        return data

    @classmethod
    def read(cls, reader, endian=None):
        magic = reader.read_exact(4)
        if magic == MAGIC_BE:
            endian = Endianness.BIG
        elif magic == MAGIC_LE:
            endian = Endianness.LITTLE
        else:
            raise InvalidMagic(magic)

        version = reader.read_enum(Version, 4, endian)
        header = cls(
            version=version,
            key_revision=reader.read_u16(endian),
            category=reader.read_enum(Category, 2, endian),
            extended_header_size=reader.read_u32(endian),
            file_offset=reader.read_u64(endian),
            file_size=reader.read_u64(endian),
        )
        if version == Version.VITA:
            header.vita_data = VitaData.read(reader, endian)
            if header.vita_data.padding != 0:
                raise InvalidHeaderPadding(f"Vita header padding is 0x{header.vita_data.padding:X}, expected 0")

        LOGGER.debug("Certified file header: %s, %s, key revision 0x%04X",
                     header.version.name, header.category.name, header.key_revision)
        return header


@dataclass
class MetadataHeader(Struct):
    """
    aka certification header.

    Always read from plaintext, decrypting the metadata region is up to the caller.
    """
    sign_offset: int = 0
    sign_algorithm: SigningAlgorithm = SigningAlgorithm.ECDSA160
    cert_entry_num: int = 0
    attr_entry_num: int = 0
    optional_header_size: int = 0
    pad: int = 0

    fmt = "QIIIIQ"

    def __post_init__(self):
        self.sign_algorithm = to_enum(SigningAlgorithm, self.sign_algorithm)


@dataclass
class SegmentDescriptor(Struct):
    """aka segment certification header / metadata section header"""
    segment_offset: int = 0
    segment_size: int = 0
    segment_type: SegmentType = SegmentType.PHDR
    segment_id: int = 0
    signing_algorithm: SigningAlgorithm = SigningAlgorithm.ECDSA160
    signing_idx: int = 0
    encryption_algorithm: EncryptionAlgorithm = EncryptionAlgorithm.NONE
    key_idx: Optional[int] = None
    iv_idx: Optional[int] = None
    compression_algorithm: CompressionAlgorithm = CompressionAlgorithm.PLAIN

    fmt = "QQIIIIIIII"

    def __post_init__(self):
        self.segment_type = to_enum(SegmentType, self.segment_type)
        self.signing_algorithm = to_enum(SigningAlgorithm, self.signing_algorithm)
        self.encryption_algorithm = to_enum(EncryptionAlgorithm, self.encryption_algorithm)
        self.compression_algorithm = to_enum(CompressionAlgorithm, self.compression_algorithm)
        # 0xFFFFFFFF means the segment has no key / iv
        if self.key_idx == NO_INDEX:
            self.key_idx = None
        if self.iv_idx == NO_INDEX:
            self.iv_idx = None

    def values(self):
        return (self.segment_offset, self.segment_size, self.segment_type, self.segment_id,
                self.signing_algorithm, self.signing_idx, self.encryption_algorithm,
                NO_INDEX if self.key_idx is None else self.key_idx,
                NO_INDEX if self.iv_idx is None else self.iv_idx,
                self.compression_algorithm)


def read_segment_descriptors(reader, cert_entry_num, endian) -> List[SegmentDescriptor]:
    segments = [SegmentDescriptor.read(reader, endian) for _ in range(cert_entry_num)]
    LOGGER.debug("Read %d segment descriptors", len(segments))
    return segments

