import io
import logging

from dataclasses import dataclass, field
from typing import List, Optional

from Crypto.Cipher import AES
from Crypto.Util import Counter

from certified_file.encryption_root import EncryptionRoot, read_encryption_root, ENCRYPTION_ROOT_SIZE
from certified_file.errors import CertifiedFileError, InvalidSignatureOffset
from certified_file.headers import OuterHeader, MetadataHeader, SegmentDescriptor, read_segment_descriptors
from certified_file.keys import KeyStore
from certified_file.optional_headers import OptionalHeader, read_optional_headers
from certified_file.signature import Signature, read_signature
from certified_file.types import Version
from certified_file.utils.reader import BinaryReader

LOGGER = logging.getLogger(__name__)


@dataclass
class CertifiedFile:
    header: OuterHeader
    encryption_root: EncryptionRoot
    metadata_header: MetadataHeader
    signature: Signature
    extended_header: bytes = b""
    segments: List[SegmentDescriptor] = field(default_factory=list)
    optional_headers: List[OptionalHeader] = field(default_factory=list)


def decrypt_metadata(encryption_root: EncryptionRoot, data, version):
    # PS3 encrypts the metadata region with AES-CTR, Vita with AES-CBC
    if version == Version.PS3:
        aes = AES.new(encryption_root.key, AES.MODE_CTR,
                      counter=Counter.new(128, initial_value=int.from_bytes(encryption_root.iv, "big")))
        return aes.decrypt(data)

    aligned = len(data) - len(data) % AES.block_size
    if aligned != len(data):
        LOGGER.warning("Metadata region is not block aligned, leaving %d trailing bytes as is", len(data) - aligned)
    aes = AES.new(encryption_root.key, AES.MODE_CBC, encryption_root.iv)
    return aes.decrypt(data[:aligned]) + data[aligned:]


class CertifiedFileDecoder:
    """
    Decodes a certified file from a seekable file object.

    The title layer of the encryption root is removed with title_key when given,
    otherwise with the key store's title key for content_id when that is given.
    """

    def __init__(self, fp, key_store: KeyStore, title_key=None, content_id=None):
        self.fp = fp
        self.reader = BinaryReader(fp)
        self.key_store = key_store
        self.title_key = title_key
        self.content_id = content_id
        self.header: Optional[OuterHeader] = None
        self.extended_header = b""

    @property
    def metadata_offset(self):
        return self.header.byte_size + self.header.extended_header_size + ENCRYPTION_ROOT_SIZE

    def get_title_key(self):
        if self.title_key is None and self.content_id is not None:
            self.title_key = self.key_store.get_title_key(self.content_id)
            LOGGER.debug("Using title key for %s", self.content_id)
        return self.title_key

    def load_header(self):
        # Read the outer header and skip over the extended header.
        self.fp.seek(0)
        self.header = OuterHeader.read(self.reader)
        self.extended_header = self.reader.read_bounded(self.header.extended_header_size)
        LOGGER.info("Found %s certified file, category %s", self.header.version.name, self.header.category.name)
        return self.header

    def load_metadata(self) -> CertifiedFile:
        if self.header is None:
            self.load_header()
        header = self.header
        endian = header.endianness

        # Find the right keyset from the key store.
        system_key = self.key_store.get_system_key(header.key_revision, header.version, header.category)
        LOGGER.debug("Using system key for key revision 0x%04X", header.key_revision)

        # Locate and read the encryption root header.
        self.fp.seek(header.byte_size + header.extended_header_size)
        encryption_root = read_encryption_root(self.reader, system_key, self.get_title_key())

        # Read and decrypt everything between the encryption root and the encapsulated data.
        metadata_size = header.file_offset - self.metadata_offset
        if metadata_size < 0:
            raise CertifiedFileError(
                f"File offset 0x{header.file_offset:X} is before the metadata at 0x{self.metadata_offset:X}")
        metadata = decrypt_metadata(encryption_root, self.reader.read_bounded(metadata_size), header.version)
        metadata_reader = BinaryReader(io.BytesIO(metadata))

        # The optional header table follows the segment descriptors directly.
        metadata_header = MetadataHeader.read(metadata_reader, endian)
        segments = read_segment_descriptors(metadata_reader, metadata_header.cert_entry_num, endian)
        optional_headers = read_optional_headers(metadata_reader, metadata_header.optional_header_size, endian)
        LOGGER.info("Read %d segments and %d optional headers", len(segments), len(optional_headers))
        if len(optional_headers) != metadata_header.attr_entry_num:
            LOGGER.debug("Metadata header counts %d optional headers, table holds %d",
                         metadata_header.attr_entry_num, len(optional_headers))

        # sign_offset is relative to the start of the file.
        signature_position = metadata_header.sign_offset - self.metadata_offset
        if signature_position < metadata_reader.tell():
            raise InvalidSignatureOffset(
                f"Signature offset 0x{metadata_header.sign_offset:X} overlaps the metadata tables")
        metadata_reader.seek(signature_position)
        signature = read_signature(metadata_reader, metadata_header.sign_algorithm, header.version)

        return CertifiedFile(
            header=header,
            encryption_root=encryption_root,
            metadata_header=metadata_header,
            signature=signature,
            extended_header=self.extended_header,
            segments=segments,
            optional_headers=optional_headers,
        )

    def decode(self) -> CertifiedFile:
        self.load_header()
        return self.load_metadata()


def decode(fp, key_store: KeyStore, title_key=None, content_id=None) -> CertifiedFile:
    return CertifiedFileDecoder(fp, key_store, title_key, content_id).decode()
