import pytest

from build_key_db import build_key_db
from certified_file.errors import KeyNotFound
from certified_file.keys import SystemKey, StaticKeyStore, SqliteKeyStore
from certified_file.types import Version, Category

from helpers import SYSTEM_KEY, OTHER_SYSTEM_KEY, TITLE_KEY

CONTENT_ID = "UP0001-NPUB12345_00-0000000000000001"


def test_system_key_lengths():
    SystemKey(bytes(16), bytes(16))
    with pytest.raises(ValueError):
        SystemKey(bytes(15), bytes(16))
    with pytest.raises(ValueError):
        SystemKey(bytes(32), bytes(8))


def test_static_key_store():
    key_store = StaticKeyStore({0x1C: SYSTEM_KEY}, {CONTENT_ID: TITLE_KEY})
    assert key_store.get_system_key(0x1C) == SYSTEM_KEY
    assert key_store.get_system_key(0x1C, Version.PS3, Category.SIGNED_ELF) == SYSTEM_KEY
    assert key_store.get_title_key(CONTENT_ID) == TITLE_KEY

    with pytest.raises(KeyNotFound):
        key_store.get_system_key(0x1D)
    with pytest.raises(KeyError):
        key_store.get_title_key("missing")


@pytest.fixture
def key_db(tmp_path):
    system_keys = tmp_path / "system_keys.tsv"
    system_keys.write_text(
        "# key_revision\tversion\tcategory\terk\triv\n"
        f"0x1C\t*\t*\t{SYSTEM_KEY.erk.hex()}\t{SYSTEM_KEY.riv.hex()}\n"
        f"0x1C\tvita\tsigned_package\t{OTHER_SYSTEM_KEY.erk.hex()}\t{OTHER_SYSTEM_KEY.riv.hex()}\n"
        f"2\t3\t\t{OTHER_SYSTEM_KEY.erk.hex()}\t{OTHER_SYSTEM_KEY.riv.hex()}\n"
        "bad line\n",
        encoding="utf-8",
    )
    title_keys = tmp_path / "dev_klics.txt"
    title_keys.write_text(
        "-------- header --------\n"
        f"{TITLE_KEY.hex()} {CONTENT_ID} Some Game\n"
        "tooshort UP0001 nope\n",
        encoding="utf-8",
    )
    db_file = tmp_path / "keys.db"
    build_key_db(db_file, system_keys, title_keys)
    return db_file


def test_sqlite_key_store(key_db):
    with SqliteKeyStore(key_db) as key_store:
        assert key_store.get_system_key(0x1C) == SYSTEM_KEY
        assert key_store.get_system_key(0x1C, Version.PS3, Category.SIGNED_ELF) == SYSTEM_KEY
        # Specific rows win over wildcard rows
        assert key_store.get_system_key(0x1C, Version.VITA, Category.SIGNED_PACKAGE) == OTHER_SYSTEM_KEY
        assert key_store.get_system_key(2, Version.VITA, Category.SIGNED_DIFF) == OTHER_SYSTEM_KEY
        assert key_store.get_title_key(CONTENT_ID) == TITLE_KEY

        with pytest.raises(KeyNotFound):
            key_store.get_system_key(2, Version.PS3, Category.SIGNED_ELF)
        with pytest.raises(KeyNotFound):
            key_store.get_title_key("missing")


def test_build_key_db_append(key_db, tmp_path):
    more_keys = tmp_path / "more.tsv"
    more_keys.write_text(f"5\t\t\t{SYSTEM_KEY.erk.hex()}\t{SYSTEM_KEY.riv.hex()}\n", encoding="utf-8")
    build_key_db(key_db, more_keys, append=True)
    with SqliteKeyStore(key_db) as key_store:
        assert key_store.get_system_key(5) == SYSTEM_KEY
        assert key_store.get_system_key(0x1C) == SYSTEM_KEY


def test_build_key_db_rolls_back(key_db, tmp_path):
    bad_keys = tmp_path / "bad.tsv"
    bad_keys.write_text(f"7\t\t\tnothex\t{SYSTEM_KEY.riv.hex()}\n", encoding="utf-8")
    with pytest.raises(ValueError):
        build_key_db(key_db, bad_keys, append=True)
    with SqliteKeyStore(key_db) as key_store:
        assert key_store.get_system_key(0x1C) == SYSTEM_KEY


def test_missing_db(tmp_path):
    with pytest.raises(FileNotFoundError):
        SqliteKeyStore(tmp_path / "missing.db")
