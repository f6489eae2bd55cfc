import logging
import pathlib
import sqlite3

from dataclasses import dataclass

from certified_file.errors import KeyNotFound

LOGGER = logging.getLogger(__name__)

DEFAULT_DB_FILE = pathlib.Path(__file__).parent / "keys.db"


@dataclass(frozen=True)
class SystemKey:
    erk: bytes  # encryption round key
    riv: bytes  # reset initialization vector

    def __post_init__(self):
        if len(self.erk) not in (16, 24, 32):
            raise ValueError(f"Invalid erk length {len(self.erk):d}")
        if len(self.riv) != 16:
            raise ValueError(f"Invalid riv length {len(self.riv):d}")

    @classmethod
    def from_hex(cls, erk, riv):
        return cls(bytes.fromhex(erk), bytes.fromhex(riv))


class KeyStore:
    """Source of the key material a decode needs"""

    def get_system_key(self, key_revision, version=None, category=None) -> SystemKey:
        raise NotImplementedError

    def get_title_key(self, content_id) -> bytes:
        raise NotImplementedError


class StaticKeyStore(KeyStore):
    """
    In-memory key store.

    system_keys maps a key revision to a SystemKey, title_keys maps a content id to
    a 16 byte title key.
    """

    def __init__(self, system_keys=None, title_keys=None):
        self.system_keys = dict(system_keys or {})
        self.title_keys = dict(title_keys or {})

    def get_system_key(self, key_revision, version=None, category=None):
        try:
            return self.system_keys[key_revision]
        except KeyError:
            raise KeyNotFound(f"No system key for key revision 0x{key_revision:04X}") from None

    def get_title_key(self, content_id):
        try:
            return self.title_keys[content_id]
        except KeyError:
            raise KeyNotFound(f"No title key for {content_id}") from None


class SqliteKeyStore(KeyStore):
    """Key store backed by the keys.db built by build_key_db.py"""

    def __init__(self, db_file=DEFAULT_DB_FILE):
        db_file = pathlib.Path(db_file)
        if not db_file.exists():
            raise FileNotFoundError(f"Could not find key db {db_file}")
        self.db = sqlite3.connect(db_file)

    def close(self):
        self.db.close()

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()

    def get_system_key(self, key_revision, version=None, category=None):
        version = None if version is None else int(version)
        category = None if category is None else int(category)
        c = self.db.cursor()
        # NULL version / category rows apply to every version / category, prefer the specific ones
        row = c.execute("""
            SELECT erk, riv FROM system_keys
            WHERE key_revision = ?
              AND (version IS NULL OR version = ?)
              AND (category IS NULL OR category = ?)
            ORDER BY version IS NULL, category IS NULL
            LIMIT 1""", [key_revision, version, category]).fetchone()
        if row is None:
            raise KeyNotFound(f"No system key for key revision 0x{key_revision:04X}")
        LOGGER.debug("Found system key for key revision 0x%04X", key_revision)
        return SystemKey(bytes(row[0]), bytes(row[1]))

    def get_title_key(self, content_id):
        c = self.db.cursor()
        row = c.execute("SELECT key FROM title_keys WHERE content_id = ?", [content_id]).fetchone()
        if row is None:
            raise KeyNotFound(f"No title key for {content_id}")
        return bytes(row[0])
