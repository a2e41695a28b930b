"""
Storage key and id derivation.

Upload keys are `{namespace}/{tick}-{sanitized filename}`. The tick comes
from a MonotonicClock rather than the raw wall clock: wall-clock
milliseconds collide when two uploads land in the same tick, and can go
backwards when the host clock is adjusted. The clock still reads as a
millisecond timestamp, so keys keep their chronological sort order.
"""

import re
import threading
import time
from typing import Callable, Optional, Protocol
from urllib.parse import unquote, urlsplit

from .errors import InvalidReferenceError, MissingFieldError
from .models import ContentType

_WHITESPACE_RE = re.compile(r"\s+")
_EXTERNAL_VIDEO_ID_RE = re.compile(r"(?:v=|/)([0-9A-Za-z_-]{11})")


class IdGenerator(Protocol):
    """Source of unique, increasing tokens for ids and key prefixes."""

    def next(self) -> str:
        ...


class MonotonicClock:
    """
    Millisecond clock that never repeats a value.

    If the wall clock has not advanced since the last call (or has gone
    backwards), the previous value plus one is returned instead.
    """

    def __init__(self, time_source: Optional[Callable[[], float]] = None) -> None:
        self._time_source = time_source or time.time
        self._last = 0
        self._lock = threading.Lock()

    def next(self) -> str:
        with self._lock:
            now = int(self._time_source() * 1000)
            self._last = max(now, self._last + 1)
            return str(self._last)


def sanitize_filename(filename: str) -> str:
    """
    Make a client-supplied filename safe to use as a key segment.

    Whitespace runs become underscores. Path separators are dropped so a
    name cannot climb out of its namespace prefix.
    """
    name = (filename or "").replace("\\", "/").split("/")[-1].strip()
    name = _WHITESPACE_RE.sub("_", name)
    if name in ("", ".", ".."):
        raise MissingFieldError("filename is required")
    return name


def build_upload_key(content_type: ContentType, tick: str, filename: str) -> str:
    return f"{content_type.namespace.key_prefix}/{tick}-{sanitize_filename(filename)}"


def key_basename(key: str) -> str:
    """Last path segment of a key without its extension."""
    name = key.rstrip("/").split("/")[-1]
    stem, dot, _ = name.rpartition(".")
    return stem if dot and stem else name


def build_poster_key(source_key: str) -> str:
    return f"thumbnails/{key_basename(source_key)}.jpg"


def key_from_url(url: str) -> str:
    """
    Recover a storage key from an object URL.

    Handles absolute URLs (`https://bucket.s3.amazonaws.com/photos/1-a.png`)
    and the old local form (`/uploads/photos/1-a.png`), which both map to
    `photos/1-a.png`. Leading segments before a namespace prefix (a
    bucket name in path-style URLs) are dropped.
    """
    segments = unquote(urlsplit(url or "").path).strip("/").split("/")
    prefixes = {ct.namespace.key_prefix for ct in ContentType}
    for i, segment in enumerate(segments):
        if segment in prefixes and i < len(segments) - 1:
            return "/".join(segments[i:])
    if segments and segments[0] == "uploads":
        segments = segments[1:]
    return "/".join(segments)


def extract_external_video_id(url: str) -> str:
    """
    Pull the 11-character video id out of a watch or short link.

    Accepts both `...watch?v=XXXXXXXXXXX` and `https://youtu.be/XXXXXXXXXXX`.
    """
    match = _EXTERNAL_VIDEO_ID_RE.search(url or "")
    if not match:
        raise InvalidReferenceError("Invalid YouTube URL")
    return match.group(1)
