import argparse
import csv
import logging
import os
import pathlib
import sys

import enlighten
import xxhash

from certified_file.decoder import CertifiedFileDecoder
from certified_file.errors import CertifiedFileError
from certified_file.keys import DEFAULT_DB_FILE, SqliteKeyStore

LOGGER = logging.getLogger(__name__)

CHUNK_SIZE = 0x100000

csv_headers = (
    "path",
    "xxh64",
    "version",
    "category",
    "key_revision",
    "extended_header_size",
    "file_offset",
    "file_size",
    "certified_file_size",
    "sign_algorithm",
    "sign_offset",
    "cert_entry_num",
    "attr_entry_num",
    "optional_header_size",
    "optional_header_types",
)


def hash_file(f):
    digest = xxhash.xxh64()
    f.seek(0)
    while chunk := f.read(CHUNK_SIZE):
        digest.update(chunk)
    f.seek(0)
    return digest.hexdigest()


def get_file_info(path, key_store=None, title_key=None, content_id=None):
    info = {"path": str(path)}
    with open(path, "rb") as f:
        info["xxh64"] = hash_file(f)

        decoder = CertifiedFileDecoder(f, key_store, title_key, content_id)
        header = decoder.load_header()
        info.update({
            "version": header.version.name.lower(),
            "category": header.category.name.lower(),
            "key_revision": f"0x{header.key_revision:04X}",
            "extended_header_size": header.extended_header_size,
            "file_offset": header.file_offset,
            "file_size": header.file_size,
            "certified_file_size": header.vita_data.certified_file_size if header.vita_data else None,
        })

        if key_store is None:
            return info

        certified_file = decoder.load_metadata()
        metadata_header = certified_file.metadata_header
        info.update({
            "sign_algorithm": metadata_header.sign_algorithm.name.lower(),
            "sign_offset": metadata_header.sign_offset,
            "cert_entry_num": metadata_header.cert_entry_num,
            "attr_entry_num": metadata_header.attr_entry_num,
            "optional_header_size": metadata_header.optional_header_size,
            "optional_header_types": "|".join(h.type.name.lower() for h in certified_file.optional_headers),
        })
    return info


def gather_files(input_dir):
    files = []
    for root, dirnames, filenames in os.walk(input_dir):
        dirnames.sort()
        for filename in sorted(filenames):
            files.append(os.path.join(root, filename))
    return files


def main(argv=None):
    parser = argparse.ArgumentParser()

    parser.add_argument('-o',
                        '--output',
                        help="Output file",
                        type=str,
                        default='results.csv')

    parser.add_argument("-l", "--log", dest="logLevel", choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
                        help="Set the logging level", default="INFO")

    group = parser.add_mutually_exclusive_group(required=True)

    group.add_argument("input_dir", nargs="?")

    group.add_argument('-f',
                       '--file',
                       help="Specific file to parse",
                       type=str,
                       required=False)

    parser.add_argument('-k',
                        '--keys',
                        help="Key db built with build_key_db.py",
                        type=str,
                        default=str(DEFAULT_DB_FILE))

    title_group = parser.add_mutually_exclusive_group()

    title_group.add_argument('--title-key',
                             help="Title key (hex) used to remove the title layer of the encryption root",
                             type=str,
                             required=False)

    title_group.add_argument('--content-id',
                             help="Content id whose title key is looked up in the key db",
                             type=str,
                             required=False)

    parser.add_argument('--headers-only',
                        help="Only read the outer header, no keys needed",
                        action='store_true',
                        default=False)

    args = parser.parse_args(argv)

    logging.basicConfig(level=getattr(logging, args.logLevel))

    title_key = bytes.fromhex(args.title_key) if args.title_key else None

    key_store = None
    if not args.headers_only:
        if pathlib.Path(args.keys).exists():
            key_store = SqliteKeyStore(args.keys)
        else:
            LOGGER.warning("Could not find key db %s. Only outer headers will be read!", args.keys)

    files = [args.file] if args.file else gather_files(args.input_dir)

    if args.output == '-':
        csv_file = sys.stdout
    else:
        csv_file = open(args.output, "w", newline='', encoding='utf-8')

    progress_manager = enlighten.get_manager()
    status_bar = progress_manager.counter(total=len(files), desc="Certified files", unit="files")

    errors = 0
    try:
        writer = csv.DictWriter(csv_file, fieldnames=csv_headers)
        writer.writeheader()
        for path in files:
            try:
                writer.writerow(get_file_info(path, key_store, title_key, args.content_id))
                csv_file.flush()
            except (CertifiedFileError, OSError):
                errors += 1
                LOGGER.exception("Error reading %s", path)
            status_bar.update()
    finally:
        status_bar.close()
        progress_manager.stop()
        if key_store is not None:
            key_store.close()
        if csv_file is not sys.stdout:
            csv_file.close()

    LOGGER.info("Processed %d files and encountered %d errors", len(files), errors)
    return 1 if errors else 0


if __name__ == '__main__':
    sys.exit(main())
