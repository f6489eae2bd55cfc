import logging

from dataclasses import dataclass
from typing import List, Union

from certified_file.errors import OptionalHeaderSizeMismatch, OptionalHeaderTableSizeMismatch
from certified_file.types import EncryptedCapability, OptionalHeaderType, to_enum

LOGGER = logging.getLogger(__name__)

# type (4) + size (4) + next (8)
RECORD_HEADER_SIZE = 0x10


@dataclass
class CapabilityHeader:
    capability: EncryptedCapability

    type = OptionalHeaderType.CAPABILITY
    payload_size = EncryptedCapability.byte_size()

    @classmethod
    def read_payload(cls, reader, endian):
        return cls(EncryptedCapability.read(reader, endian))


@dataclass
class IndividualSeedHeader:
    seed: bytes

    type = OptionalHeaderType.INDIVIDUAL_SEED
    payload_size = 0x100

    @classmethod
    def read_payload(cls, reader, endian):
        return cls(reader.read_exact(cls.payload_size))


@dataclass
class AttributeHeader:
    attribute: bytes

    type = OptionalHeaderType.ATTRIBUTE
    payload_size = 0x20

    @classmethod
    def read_payload(cls, reader, endian):
        return cls(reader.read_exact(cls.payload_size))


OptionalHeader = Union[CapabilityHeader, IndividualSeedHeader, AttributeHeader]

OPTIONAL_HEADER_CLASSES = {
    OptionalHeaderType.CAPABILITY: CapabilityHeader,
    OptionalHeaderType.INDIVIDUAL_SEED: IndividualSeedHeader,
    OptionalHeaderType.ATTRIBUTE: AttributeHeader,
}


def read_optional_headers(reader, optional_header_size, endian) -> List[OptionalHeader]:
    """
    Read the chained optional header table.

    Each record declares its own size and whether another record follows. The
    bytes consumed by every record must match what it declares, and the bytes
    consumed by the whole table must match optional_header_size. Reading stops
    when a record says nothing follows or when the table size is used up.
    """
    if optional_header_size == 0:
        return []

    optional_headers = []
    total_read = 0
    to_read = optional_header_size
    while to_read > 0:
        record_start = reader.bytes_read

        # Never read a record header past the end of the table.
        if to_read < RECORD_HEADER_SIZE:
            raise OptionalHeaderTableSizeMismatch(optional_header_size, total_read + RECORD_HEADER_SIZE)

        header_type = reader.read_u32(endian)
        size = reader.read_u32(endian) - RECORD_HEADER_SIZE
        more = reader.read_u64(endian) > 0

        header_cls = OPTIONAL_HEADER_CLASSES[to_enum(OptionalHeaderType, header_type)]
        if RECORD_HEADER_SIZE + header_cls.payload_size > to_read:
            raise OptionalHeaderTableSizeMismatch(optional_header_size,
                                                  total_read + RECORD_HEADER_SIZE + header_cls.payload_size)

        payload_start = reader.bytes_read
        optional_headers.append(header_cls.read_payload(reader, endian))
        payload_read = reader.bytes_read - payload_start

        consumed = reader.bytes_read - record_start
        total_read += consumed

        if payload_read != size:
            raise OptionalHeaderSizeMismatch(size, payload_read)

        to_read -= consumed
        if not more:
            break

    if total_read != optional_header_size:
        raise OptionalHeaderTableSizeMismatch(optional_header_size, total_read)

    LOGGER.debug("Read %d optional headers", len(optional_headers))
    return optional_headers
