#!/usr/bin/env python3
"""
Backfill storage keys in the metadata files from existing URLs.

Older entries only recorded a `url`. This fills in `key` for each entry
that lacks one (YouTube entries are skipped) and, when S3_PUBLIC_URL_BASE
is set, rewrites `url` to point at that base. Nothing is uploaded.

Each file is copied to `<name>.json.<timestamp>.bak` before it is
rewritten.

Usage:
    python scripts/backfill_keys.py --root /path/to/project

Requires:
    - .env file (optional) with S3_PUBLIC_URL_BASE
"""

import argparse
import json
import logging
import os
import shutil
import time
from pathlib import Path

from dotenv import load_dotenv

from farmgirl.core.media.keys import key_from_url
from farmgirl.core.media.models import ContentType

logger = logging.getLogger("backfill_keys")


def write_with_backup(path: Path, records: list[dict]) -> None:
    """Keep a timestamped copy of the old file, then write the new one."""
    if path.exists():
        backup = path.with_name(f"{path.name}.{int(time.time() * 1000)}.bak")
        shutil.copyfile(path, backup)
        logger.info(f"Backup: {backup}")
    with open(path, "w", encoding="utf-8") as f:
        json.dump(records, f, indent=2)
    logger.info(f"Wrote: {path}")


def backfill_records(records: list[dict], public_url_base: str = "") -> int:
    """
    Fill in missing keys in place. Returns how many entries changed.
    """
    base = public_url_base.rstrip("/")
    changed = 0

    for record in records:
        if record.get("youtubeId"):
            continue

        before = dict(record)
        if not record.get("key") and record.get("url"):
            record["key"] = key_from_url(record["url"])
        if base and record.get("key"):
            record["url"] = f"{base}/{record['key']}"

        if record != before:
            changed += 1

    return changed


def backfill(data_dir: Path, public_url_base: str) -> None:
    for content_type in ContentType:
        path = data_dir / f"{content_type.value}.json"
        if not path.exists():
            logger.info(f"No entries for {content_type.value}")
            continue

        with open(path, "r", encoding="utf-8") as f:
            records = json.load(f)
        if not records:
            logger.info(f"No entries for {content_type.value}")
            continue

        changed = backfill_records(records, public_url_base)
        write_with_backup(path, records)
        logger.info(f"{content_type.value}: {changed} of {len(records)} entries updated")


def main() -> None:
    load_dotenv()
    logging.basicConfig(format="%(message)s", level=logging.INFO)

    parser = argparse.ArgumentParser(description=__doc__.splitlines()[1])
    parser.add_argument("--root", default=os.getcwd(), help="Project root containing data/")
    args = parser.parse_args()

    backfill(
        Path(args.root) / "data",
        os.environ.get("S3_PUBLIC_URL_BASE", ""),
    )
    logger.info("Backfill complete.")


if __name__ == "__main__":
    main()
