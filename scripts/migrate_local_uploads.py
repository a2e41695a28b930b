#!/usr/bin/env python3
"""
Migrate locally stored uploads from an old project into object storage.

For each of photos, videos and sponsors:
  - reads <old>/data/<type>.json
  - infers each entry's key (from `key`, a /uploads/<type>/ URL, or its name)
  - uploads <old>/uploads/<type>/<file> to the bucket under that key
  - writes the updated list to <new>/data/<type>.json (old file backed up)

Usage:
    python scripts/migrate_local_uploads.py --old /path/to/old --new /path/to/new

Requires:
    - .env file or environment with S3_BUCKET, AWS_REGION and, optionally,
      S3_ENDPOINT_URL / S3_PUBLIC_URL_BASE / credentials
"""

import argparse
import asyncio
import json
import logging
import mimetypes
import os
import re
import sys
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from farmgirl.config.settings import Settings
from farmgirl.core.media.keys import MonotonicClock, build_upload_key
from farmgirl.core.media.models import ContentType
from farmgirl.core.media.protocols import ObjectStore
from farmgirl.infrastructure.storage import StorageConfig, create_object_store

from backfill_keys import write_with_backup

logger = logging.getLogger("migrate_local_uploads")

_HTTP_RE = re.compile(r"^https?://")


def guess_content_type(path: Path) -> str:
    return mimetypes.guess_type(path.name)[0] or "application/octet-stream"


def infer_key(
    record: dict,
    content_type: ContentType,
    clock: MonotonicClock,
) -> Optional[str]:
    """Key an old entry should live under, or None if it can't be told."""
    if record.get("key"):
        return record["key"]

    marker = f"/uploads/{content_type.value}/"
    url = record.get("url") or ""
    if marker in url:
        return f"{content_type.namespace.key_prefix}/{url.split(marker)[-1]}"

    if record.get("name"):
        return build_upload_key(content_type, clock.next(), record["name"])

    return None


async def migrate_type(
    store: ObjectStore,
    content_type: ContentType,
    old_root: Path,
    new_root: Path,
    clock: MonotonicClock,
) -> None:
    uploads_dir = old_root / "uploads" / content_type.value
    old_data_file = old_root / "data" / f"{content_type.value}.json"
    new_data_file = new_root / "data" / f"{content_type.value}.json"

    if not old_data_file.exists():
        logger.info(f"No entries in {old_data_file} - skipping.")
        return
    with open(old_data_file, "r", encoding="utf-8") as f:
        records = json.load(f)
    if not records:
        logger.info(f"No entries in {old_data_file} - skipping.")
        return

    for record in records:
        if content_type is ContentType.VIDEOS and record.get("youtubeId"):
            continue

        key = infer_key(record, content_type, clock)
        if key is None:
            logger.warning(f"WARNING: cannot infer key for entry: {record}")
            continue
        record["key"] = key

        local_file = uploads_dir / key.split("/")[-1]
        if local_file.is_file():
            logger.info(f"Uploading {local_file} -> {key}")
            await store.put(key, local_file.read_bytes(), guess_content_type(local_file))
            record["url"] = store.public_url(key)
        elif _HTTP_RE.match(record.get("url") or ""):
            logger.info(f"Skipping upload (remote url) for {record.get('name') or key}")
        else:
            logger.warning(f"WARNING: Missing local file for entry: {record}")

    new_data_file.parent.mkdir(parents=True, exist_ok=True)
    write_with_backup(new_data_file, records)


async def migrate(old_root: Path, new_root: Path, settings: Settings) -> None:
    store = create_object_store(config=StorageConfig(
        bucket_name=settings.s3_bucket,
        region=settings.aws_region,
        endpoint_url=settings.s3_endpoint_url,
        access_key_id=settings.aws_access_key_id,
        secret_access_key=settings.aws_secret_access_key,
        public_url_base=settings.s3_public_url_base or None,
    ))
    clock = MonotonicClock()

    for content_type in ContentType:
        await migrate_type(store, content_type, old_root, new_root, clock)


def main() -> None:
    load_dotenv()
    logging.basicConfig(format="%(message)s", level=logging.INFO)

    parser = argparse.ArgumentParser(description="Migrate local uploads to object storage")
    parser.add_argument("--old", required=True, help="Old project root (has uploads/ and data/)")
    parser.add_argument("--new", default=os.getcwd(), help="New project root to write data/ into")
    args = parser.parse_args()

    settings = Settings()
    if not settings.s3_bucket:
        logger.error("ERROR: S3_BUCKET env var is required")
        sys.exit(1)

    logger.info(f"Migrating from: {args.old}")
    logger.info(f"Writing updated JSONs into: {Path(args.new) / 'data'}")
    asyncio.run(migrate(Path(args.old), Path(args.new), settings))
    logger.info("Migration complete.")


if __name__ == "__main__":
    main()
