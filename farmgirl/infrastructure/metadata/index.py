"""
Metadata index persistence.

One ordered list of entries per content namespace, newest first. The
JSON-file index keeps the site's existing layout: `data/photos.json`,
`data/videos.json`, `data/sponsors.json`, each a JSON array.

Every mutation is a read-modify-write of one namespace's list, done under
that namespace's lock, so concurrent readers see a list either before or
after an insert/remove, never halfway. Namespaces don't share a lock; an
upload to photos never waits on a delete in videos.
"""

import json
import logging
import os
import tempfile
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional

from ...core.media.models import ContentType, MediaEntry
from ...core.media.protocols import MetadataIndex

logger = logging.getLogger(__name__)


class _LockedIndex(ABC):
    """Shared list logic; subclasses supply storage of a namespace's list."""

    def __init__(self) -> None:
        self._locks = {ct: threading.Lock() for ct in ContentType}

    @abstractmethod
    def _read(self, content_type: ContentType) -> list[MediaEntry]:
        ...

    @abstractmethod
    def _write(self, content_type: ContentType, entries: list[MediaEntry]) -> None:
        ...

    def list(self, content_type: ContentType) -> list[MediaEntry]:
        with self._locks[content_type]:
            return self._read(content_type)

    def insert(self, content_type: ContentType, entry: MediaEntry) -> None:
        with self._locks[content_type]:
            entries = self._read(content_type)
            entries.insert(0, entry)
            self._write(content_type, entries)

    def remove(self, content_type: ContentType, entry_id: str) -> Optional[MediaEntry]:
        with self._locks[content_type]:
            entries = self._read(content_type)
            for i, entry in enumerate(entries):
                if entry.id == entry_id:
                    removed = entries.pop(i)
                    self._write(content_type, entries)
                    return removed
            return None

    def find_by_id(self, content_type: ContentType, entry_id: str) -> Optional[MediaEntry]:
        return next((e for e in self.list(content_type) if e.id == entry_id), None)

    def find_by_key(self, content_type: ContentType, storage_key: str) -> Optional[MediaEntry]:
        return next(
            (e for e in self.list(content_type) if e.storage_key == storage_key),
            None,
        )

    def attach_poster(
        self,
        content_type: ContentType,
        entry_id: str,
        poster_key: str,
        poster_url: str,
        storage_key: Optional[str] = None,
    ) -> Optional[MediaEntry]:
        with self._locks[content_type]:
            entries = self._read(content_type)
            for i, entry in enumerate(entries):
                if entry.id == entry_id or (storage_key and entry.storage_key == storage_key):
                    entries[i] = entry.with_poster(poster_key, poster_url)
                    self._write(content_type, entries)
                    return entries[i]
            return None


class InMemoryMetadataIndex(_LockedIndex):
    """Index held in process memory. For tests and mock mode."""

    def __init__(self) -> None:
        super().__init__()
        self._lists: dict[ContentType, list[MediaEntry]] = {ct: [] for ct in ContentType}
        logger.info("Initialized in-memory metadata index")

    def _read(self, content_type: ContentType) -> list[MediaEntry]:
        return list(self._lists[content_type])

    def _write(self, content_type: ContentType, entries: list[MediaEntry]) -> None:
        self._lists[content_type] = list(entries)


class JsonFileMetadataIndex(_LockedIndex):
    """
    Index stored as one JSON array per namespace in `data_dir`.

    Writes go to a temp file in the same directory and are moved into
    place with os.replace, so a crash mid-write leaves the old file intact.
    """

    def __init__(self, data_dir: str | Path) -> None:
        super().__init__()
        self._data_dir = Path(data_dir)
        self._data_dir.mkdir(parents=True, exist_ok=True)
        logger.info(
            "Initialized JSON metadata index",
            extra={"data_dir": str(self._data_dir)}
        )

    def path_for(self, content_type: ContentType) -> Path:
        return self._data_dir / f"{content_type.value}.json"

    def _read(self, content_type: ContentType) -> list[MediaEntry]:
        path = self.path_for(content_type)
        if not path.exists():
            return []
        with open(path, "r", encoding="utf-8") as f:
            records = json.load(f)
        return [MediaEntry.from_record(content_type, r) for r in records]

    def _write(self, content_type: ContentType, entries: list[MediaEntry]) -> None:
        path = self.path_for(content_type)
        fd, tmp_path = tempfile.mkstemp(dir=self._data_dir, prefix=f".{path.name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump([e.to_record() for e in entries], f, indent=2)
            os.replace(tmp_path, path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise


def create_metadata_index(
    data_dir: Optional[str | Path] = None,
    mock_mode: bool = False,
) -> MetadataIndex:
    if mock_mode:
        return InMemoryMetadataIndex()

    if data_dir is None:
        raise ValueError("data_dir is required when not in mock mode")

    return JsonFileMetadataIndex(data_dir)
