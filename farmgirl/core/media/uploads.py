"""
Upload coordination: presign, client-direct write, completion commit.

The flow:
1. Client asks for an upload slot → we pick the storage key and ask the
   object store for a short-lived PUT URL bound to that key.
2. Client PUTs the bytes straight to the object store. Large videos never
   pass through this process.
3. Client calls complete → we write the metadata entry.

The metadata index is the authority on what exists. By default the
completion call trusts the client's word that the PUT succeeded; with
`verify_uploads` enabled it checks the store first. If a client lies with
verification off, the entry dangles and reads of it fail with
SourceNotFound later, not here.

Small files can also be posted through this process (`upload_file`). They
land under the same kind of key and are recorded the same way.
"""

import asyncio
import logging
from typing import Optional

from .errors import (
    InvalidParameterError,
    MissingFieldError,
    MissingKeyError,
    SourceNotFoundError,
)
from .events import publish
from .keys import IdGenerator, MonotonicClock, build_upload_key, extract_external_video_id
from .models import (
    ContentType,
    MediaEntry,
    MediaEvent,
    MediaEventKind,
    UploadSlot,
)
from .protocols import EventSink, MetadataIndex, ObjectStore

logger = logging.getLogger(__name__)

DEFAULT_UPLOAD_URL_TTL = 900  # 15 minutes


class UploadCoordinator:
    """
    Owns key naming and metadata bookkeeping for uploads.

    Also handles the two other ways entries come and go: linking an
    external video and deleting an entry.
    """

    def __init__(
        self,
        store: ObjectStore,
        index: MetadataIndex,
        events: Optional[EventSink] = None,
        ids: Optional[IdGenerator] = None,
        upload_url_ttl: int = DEFAULT_UPLOAD_URL_TTL,
        verify_uploads: bool = False,
    ) -> None:
        self._store = store
        self._index = index
        self._events = events
        self._ids = ids or MonotonicClock()
        self._upload_url_ttl = upload_url_ttl
        self._verify_uploads = verify_uploads

    def _check_upload(
        self,
        content_type: ContentType | str,
        filename: Optional[str],
        mime_type: Optional[str],
    ) -> ContentType:
        namespace = ContentType.parse(content_type)
        if not filename or not mime_type:
            raise MissingFieldError("Missing filename/contentType")
        if not namespace.namespace.accepts(mime_type):
            raise InvalidParameterError(
                f"Content type {mime_type} is not accepted for {namespace.value}"
            )
        return namespace

    async def request_upload_slot(
        self,
        content_type: ContentType | str,
        filename: Optional[str],
        mime_type: Optional[str],
    ) -> UploadSlot:
        """
        Reserve a storage key and issue a delegated PUT URL for it.

        The tick in the key keeps repeated uploads of `cat.png` apart and
        sorts keys chronologically.
        """
        namespace = self._check_upload(content_type, filename, mime_type)

        key = build_upload_key(namespace, self._ids.next(), filename)
        upload_url = await self._store.presign_put(key, mime_type, self._upload_url_ttl)

        logger.info(
            "Issued upload slot",
            extra={
                "content_type": namespace.value,
                "storage_key": key,
                "expires_in": self._upload_url_ttl,
            }
        )

        return UploadSlot(
            upload_url=upload_url,
            storage_key=key,
            public_url=self._store.public_url(key),
            expires_in_seconds=self._upload_url_ttl,
        )

    async def complete_upload(
        self,
        content_type: ContentType | str,
        storage_key: Optional[str],
        display_name: Optional[str] = None,
        mime_type: Optional[str] = None,
    ) -> MediaEntry:
        """Record an entry for an object the client says it has written."""
        namespace = ContentType.parse(content_type)
        if not storage_key:
            raise MissingKeyError("Missing key")
        if not storage_key.startswith(f"{namespace.namespace.key_prefix}/"):
            raise InvalidParameterError(
                f"Key {storage_key} is outside the {namespace.value} namespace"
            )

        if self._verify_uploads and not await self._store.head(storage_key):
            raise SourceNotFoundError(f"Uploaded object not found: {storage_key}")

        entry = MediaEntry(
            id=self._ids.next(),
            content_type=namespace,
            display_name=display_name or storage_key.split("/")[-1],
            storage_key=storage_key,
            source_url=self._store.public_url(storage_key),
            mime_type=mime_type,
        )
        await asyncio.to_thread(self._index.insert, namespace, entry)

        logger.info(
            "Upload completed",
            extra={
                "content_type": namespace.value,
                "entry_id": entry.id,
                "storage_key": storage_key,
            }
        )

        publish(self._events, MediaEvent(
            kind=MediaEventKind.UPLOAD_COMPLETED,
            content_type=namespace,
            key=storage_key,
            entry_id=entry.id,
        ))
        return entry

    async def upload_file(
        self,
        content_type: ContentType | str,
        filename: Optional[str],
        data: Optional[bytes],
        mime_type: Optional[str],
    ) -> MediaEntry:
        """
        Server-side upload: the bytes pass through this process.

        For small files and clients that can't PUT to storage themselves.
        The object is written under a fresh key first, then recorded the
        same way as a completed direct upload.
        """
        if data is None:
            raise MissingFieldError("No file")
        namespace = self._check_upload(content_type, filename, mime_type)

        key = build_upload_key(namespace, self._ids.next(), filename)
        await self._store.put(key, data, mime_type)

        logger.info(
            "Stored server-side upload",
            extra={
                "content_type": namespace.value,
                "storage_key": key,
                "size_bytes": len(data),
            }
        )

        return await self.complete_upload(namespace, key, display_name=filename, mime_type=mime_type)

    async def link_external_video(
        self,
        url: Optional[str],
        content_type: ContentType | str = ContentType.VIDEOS,
    ) -> MediaEntry:
        """Add an embedded YouTube video. No storage key is allocated."""
        namespace = ContentType.parse(content_type)
        if not namespace.namespace.allows_external:
            raise InvalidParameterError(
                f"External links are not accepted for {namespace.value}"
            )
        video_id = extract_external_video_id(url or "")

        entry = MediaEntry(
            id=self._ids.next(),
            content_type=namespace,
            source_url=url,
            external_video_id=video_id,
        )
        await asyncio.to_thread(self._index.insert, namespace, entry)

        logger.info(
            "Linked external video",
            extra={"entry_id": entry.id, "external_video_id": video_id}
        )

        publish(self._events, MediaEvent(
            kind=MediaEventKind.VIDEO_LINKED,
            content_type=namespace,
            entry_id=entry.id,
        ))
        return entry

    async def list_entries(self, content_type: ContentType | str) -> list[MediaEntry]:
        return await asyncio.to_thread(self._index.list, ContentType.parse(content_type))

    async def delete_entry(
        self,
        content_type: ContentType | str,
        entry_id: str,
    ) -> Optional[MediaEntry]:
        """
        Remove an entry, then its blobs.

        The index removal is what makes the item disappear. Blob deletion
        afterwards is best effort: a failure is logged and the orphaned
        blob is left behind. Returns None if no such entry existed.
        """
        namespace = ContentType.parse(content_type)
        removed = await asyncio.to_thread(self._index.remove, namespace, entry_id)
        if removed is None:
            return None

        logger.info(
            "Deleted entry",
            extra={"content_type": namespace.value, "entry_id": entry_id}
        )

        for key in (removed.storage_key, removed.poster_key):
            if not key:
                continue
            try:
                await self._store.delete(key)
            except Exception as e:
                logger.warning(
                    "Blob delete failed, leaving orphan",
                    extra={"storage_key": key, "error": str(e)}
                )

        return removed
