"""
Interfaces the media services depend on.

Using Protocols here means the services don't know or care whether they
talk to S3, R2 or an in-memory dict, or whether images are decoded by
Pillow or a test double. Implementations live in `infrastructure`.
"""

from typing import Optional, Protocol

from .models import ContentType, ImageFormat, MediaEntry, MediaEvent


class ObjectStore(Protocol):
    """
    Remote blob store addressed by key.

    `get` raises ObjectNotFoundError for a missing key; any other failure
    surfaces as StorageUnavailableError.
    """

    async def put(
        self,
        key: str,
        data: bytes,
        content_type: str,
        cache_control: Optional[str] = None,
    ) -> None:
        ...

    async def get(self, key: str) -> bytes:
        ...

    async def head(self, key: str) -> bool:
        """Metadata-only existence check; transfers no object data."""
        ...

    async def delete(self, key: str) -> None:
        ...

    async def presign_put(self, key: str, content_type: str, expiry_seconds: int) -> str:
        """Issue a time-boxed URL authorizing one PUT of `content_type` to `key`."""
        ...

    def public_url(self, key: str) -> str:
        """Public locator for a key. Pure function of key and configuration."""
        ...


class MetadataIndex(Protocol):
    """Ordered per-namespace list of entries, newest first."""

    def list(self, content_type: ContentType) -> list[MediaEntry]:
        ...

    def insert(self, content_type: ContentType, entry: MediaEntry) -> None:
        ...

    def remove(self, content_type: ContentType, entry_id: str) -> Optional[MediaEntry]:
        ...

    def find_by_id(self, content_type: ContentType, entry_id: str) -> Optional[MediaEntry]:
        ...

    def find_by_key(self, content_type: ContentType, storage_key: str) -> Optional[MediaEntry]:
        ...

    def attach_poster(
        self,
        content_type: ContentType,
        entry_id: str,
        poster_key: str,
        poster_url: str,
        storage_key: Optional[str] = None,
    ) -> Optional[MediaEntry]:
        """Set poster fields on the entry matching id (or storage_key)."""
        ...


class ImageTransformer(Protocol):

    def transform(
        self,
        source: bytes,
        width: int,
        height: int,
        format: ImageFormat,
        quality: int,
    ) -> bytes:
        """Fit inside width x height without enlarging, then encode."""
        ...


class VideoProcessor(Protocol):

    async def extract_poster_frame(
        self,
        video_data: bytes,
        offset_seconds: float,
        width: int,
    ) -> bytes:
        """Return a JPEG still taken `offset_seconds` into the video."""
        ...


class EventSink(Protocol):
    """Receives completion events. Fire-and-forget."""

    def emit(self, event: MediaEvent) -> None:
        ...
