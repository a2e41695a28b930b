"""
Domain models for uploaded media and generated derivatives.

These models represent the core business concepts. They have no dependencies
on external frameworks, storage SDKs or image libraries. The JSON shape of
a MediaEntry (`to_record` / `from_record`) is the one the site's metadata
files have always used, so existing data files load unchanged.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from .errors import InvalidParameterError, InvalidTypeError, UnsupportedFormatError


class ContentType(Enum):
    """The closed set of content namespaces the site manages."""
    PHOTOS = "photos"
    VIDEOS = "videos"
    SPONSORS = "sponsors"

    @classmethod
    def parse(cls, value: Any) -> "ContentType":
        """Parse a namespace name, raising InvalidTypeError if unknown."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise InvalidTypeError(f"Invalid type: {value!r}")

    @property
    def namespace(self) -> "ContentNamespace":
        return NAMESPACES[self]


@dataclass(frozen=True)
class ContentNamespace:
    """
    Per-namespace rules.

    Looked up from NAMESPACES rather than branched on, so adding a
    namespace is a table entry, not a hunt through conditionals.
    """
    key_prefix: str
    accepted_mime_prefixes: tuple[str, ...]
    allows_external: bool = False

    def accepts(self, mime_type: str) -> bool:
        mime_type = (mime_type or "").lower()
        return any(mime_type.startswith(p) for p in self.accepted_mime_prefixes)


NAMESPACES: dict[ContentType, ContentNamespace] = {
    ContentType.PHOTOS: ContentNamespace(
        key_prefix="photos",
        accepted_mime_prefixes=("image/",),
    ),
    ContentType.VIDEOS: ContentNamespace(
        key_prefix="videos",
        accepted_mime_prefixes=("video/",),
        allows_external=True,
    ),
    ContentType.SPONSORS: ContentNamespace(
        key_prefix="sponsors",
        accepted_mime_prefixes=("image/",),
    ),
}


class ImageFormat(Enum):
    """Canonical encoder names for derivative images."""
    WEBP = "webp"
    JPEG = "jpeg"
    PNG = "png"

    @property
    def mime_type(self) -> str:
        return f"image/{self.value}"

    @classmethod
    def normalize(cls, value: Optional[str]) -> "ImageFormat":
        """
        Map a requested format name to its canonical encoder.

        Aliases collapse to one format so equivalent requests share a
        cache entry (`jpg` and `JPEG` are both `jpeg`).
        """
        if value is None or not str(value).strip():
            return DEFAULT_FORMAT
        name = str(value).strip().lower()
        name = FORMAT_ALIASES.get(name, name)
        try:
            return cls(name)
        except ValueError:
            raise UnsupportedFormatError(f"Unsupported format: {value!r}")


DEFAULT_FORMAT = ImageFormat.WEBP
DEFAULT_QUALITY = 82
FORMAT_ALIASES = {"jpg": "jpeg"}

IMMUTABLE_CACHE_CONTROL = "public, max-age=31536000, immutable"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class MediaEntry:
    """
    One uploaded or linked asset in a namespace's index.

    Entries with a storage_key point at a blob in the object store.
    Externally embedded videos carry external_video_id instead and
    have no storage_key.
    """
    id: str
    content_type: ContentType
    display_name: str = ""
    storage_key: Optional[str] = None
    source_url: str = ""
    mime_type: Optional[str] = None
    created_at: datetime = field(default_factory=_utcnow)
    poster_key: Optional[str] = None
    poster_url: Optional[str] = None
    external_video_id: Optional[str] = None

    def with_poster(self, poster_key: str, poster_url: str) -> "MediaEntry":
        """Poster fields are the only ones ever changed after creation."""
        return replace(self, poster_key=poster_key, poster_url=poster_url)

    def to_record(self) -> dict[str, Any]:
        """Serialize to the metadata file shape."""
        record: dict[str, Any] = {"id": self.id}
        if self.display_name:
            record["name"] = self.display_name
        record["url"] = self.source_url
        if self.storage_key:
            record["key"] = self.storage_key
        if self.mime_type:
            record["contentType"] = self.mime_type
        if self.external_video_id:
            record["youtubeId"] = self.external_video_id
        if self.poster_key:
            record["posterKey"] = self.poster_key
            record["posterUrl"] = self.poster_url
        record["date"] = self.created_at.isoformat().replace("+00:00", "Z")
        return record

    @classmethod
    def from_record(cls, content_type: ContentType, record: dict[str, Any]) -> "MediaEntry":
        date = record.get("date")
        if date:
            created_at = datetime.fromisoformat(str(date).replace("Z", "+00:00"))
        else:
            created_at = _utcnow()
        return cls(
            id=str(record["id"]),
            content_type=content_type,
            display_name=record.get("name", ""),
            storage_key=record.get("key"),
            source_url=record.get("url", ""),
            mime_type=record.get("contentType"),
            created_at=created_at,
            poster_key=record.get("posterKey"),
            poster_url=record.get("posterUrl"),
            external_video_id=record.get("youtubeId"),
        )


@dataclass(frozen=True)
class DerivativeDescriptor:
    """
    The parameters of a derivative image.

    Frozen because a descriptor is a value: the same parameters always
    name the same derivative object.
    """
    source_key: str
    width: int = 0
    height: int = 0
    format: ImageFormat = DEFAULT_FORMAT
    quality: int = DEFAULT_QUALITY

    def __post_init__(self) -> None:
        if not self.source_key:
            raise InvalidParameterError("Source key is required")
        if self.width < 0 or self.height < 0:
            raise InvalidParameterError("Width and height cannot be negative")
        if not 1 <= self.quality <= 100:
            raise InvalidParameterError("Quality must be between 1 and 100")

    @classmethod
    def build(
        cls,
        source_key: str,
        width: Optional[int] = 0,
        height: Optional[int] = 0,
        format: Optional[str] = None,
        quality: Optional[int] = None,
    ) -> "DerivativeDescriptor":
        """Apply defaults and format normalization."""
        return cls(
            source_key=(source_key or "").lstrip("/"),
            width=width or 0,
            height=height or 0,
            format=ImageFormat.normalize(format),
            quality=DEFAULT_QUALITY if quality is None else quality,
        )

    @property
    def key(self) -> str:
        """
        Storage key of the derivative.

        optimized/{w}x{h}/q{quality}/{source_key}.{ext}
        The full source key is embedded, and the numeric parameters sit in
        fixed positions, so two different descriptors never share a key.
        """
        return (
            f"optimized/{self.width}x{self.height}/q{self.quality}/"
            f"{self.source_key}.{self.format.value}"
        )


@dataclass(frozen=True)
class UploadSlot:
    """Everything a client needs to write one object directly to storage."""
    upload_url: str
    storage_key: str
    public_url: str
    expires_in_seconds: int


@dataclass(frozen=True)
class DerivativeLocator:
    key: str
    url: str
    cache_control: str = IMMUTABLE_CACHE_CONTROL
    generated: bool = False


@dataclass(frozen=True)
class PosterLocator:
    key: str
    url: str
    entry_updated: bool = False


class MediaEventKind(Enum):
    UPLOAD_COMPLETED = "upload.completed"
    VIDEO_LINKED = "upload.linked"
    POSTER_EXTRACTED = "poster.extracted"


@dataclass(frozen=True)
class MediaEvent:
    """A completion event handed to the analytics sink."""
    kind: MediaEventKind
    content_type: ContentType
    key: Optional[str] = None
    entry_id: Optional[str] = None
    occurred_at: datetime = field(default_factory=_utcnow)
