import argparse
import csv
import logging
import pathlib
import sqlite3

from certified_file.keys import DEFAULT_DB_FILE, SystemKey
from certified_file.types import Version, Category

LOGGER = logging.getLogger(__name__)


def _optional_enum(enum_cls, value):
    value = value.strip()
    if not value or value == "*":
        return None
    try:
        return int(enum_cls[value.upper()])
    except KeyError:
        return int(enum_cls(int(value, 0)))


def read_system_keys(path):
    """
    Tab separated: key_revision, version, category, erk, riv.

    version / category may be empty or * to apply to every version / category.
    """
    keys = []
    with pathlib.Path(path).open("r", encoding="utf-8") as infile:
        reader = csv.reader(infile, delimiter="\t")
        for row in reader:
            if not row or row[0].startswith("#"):
                continue
            if len(row) != 5:
                LOGGER.warning("Skipping malformed system key line: %s", row)
                continue
            key_revision, version, category, erk, riv = row
            key = SystemKey.from_hex(erk.strip(), riv.strip())
            keys.append((
                _optional_enum(Version, version),
                _optional_enum(Category, category),
                int(key_revision, 0),
                key.erk,
                key.riv,
            ))
    return keys


def read_title_keys(path):
    """One `<32 hex chars> <content id> <name>` entry per line, like dev_klics.txt"""
    klics = []
    with pathlib.Path(path).open("r", encoding="utf-8") as f:
        for line in f:
            if line.startswith("-"):
                continue
            entry = line.strip().split(' ', maxsplit=2)
            if len(entry) < 2 or len(entry[0]) != 32 or len(entry[1]) != 36:
                continue
            klics.append((
                entry[1],
                bytes.fromhex(entry[0]),
                entry[2] if len(entry) == 3 else "",
            ))
    return klics


def build_key_db(db_file, system_keys_file=None, title_keys_file=None, append=False):
    db_file = pathlib.Path(db_file)
    if not append:
        db_file.unlink(missing_ok=True)
    db = sqlite3.connect(db_file, isolation_level=None)
    c = db.cursor()
    try:
        c.execute("BEGIN")
        c.execute("""
        CREATE TABLE IF NOT EXISTS system_keys (version INTEGER, category INTEGER, key_revision INTEGER, erk BLOB, riv BLOB, UNIQUE (version, category, key_revision));
        """)
        c.execute("""
        CREATE TABLE IF NOT EXISTS title_keys (content_id TEXT, key BLOB, name TEXT, UNIQUE (content_id, key));
        """)

        if system_keys_file:
            system_keys = read_system_keys(system_keys_file)
            c.executemany("""
                INSERT OR REPLACE INTO system_keys VALUES (?, ?, ?, ?, ?)""", system_keys)
            LOGGER.info("Imported %d system keys", len(system_keys))

        if title_keys_file:
            title_keys = read_title_keys(title_keys_file)
            c.executemany("""
                INSERT OR IGNORE INTO title_keys VALUES (?, ?, ?)""", title_keys)
            LOGGER.info("Imported %d title keys", len(title_keys))

        c.execute("COMMIT")
    except Exception:
        c.execute("ROLLBACK")
        raise
    finally:
        db.close()


def main(argv=None):
    parser = argparse.ArgumentParser(formatter_class=argparse.ArgumentDefaultsHelpFormatter)
    parser.add_argument('-s',
                        '--system-keys',
                        help="Tab separated system key file (key_revision, version, category, erk, riv)",
                        type=str,
                        required=False,
                        default=argparse.SUPPRESS)

    parser.add_argument('-t',
                        '--title-keys',
                        help="dev_klics.txt style title key file",
                        type=str,
                        required=False,
                        default=argparse.SUPPRESS)

    parser.add_argument('-o',
                        '--output',
                        help="Output db file",
                        type=str,
                        default=str(DEFAULT_DB_FILE))

    parser.add_argument('-a',
                        '--append',
                        help="Append to db instead of overwriting it",
                        action='store_true',
                        default=False)

    parser.add_argument("-l", "--log", dest="logLevel", choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
                        help="Set the logging level", default="INFO")

    args = parser.parse_args(argv)

    logging.basicConfig(level=getattr(logging, args.logLevel))

    build_key_db(args.output,
                 getattr(args, "system_keys", None),
                 getattr(args, "title_keys", None),
                 args.append)


if __name__ == '__main__':
    main()
