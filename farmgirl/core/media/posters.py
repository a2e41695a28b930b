"""
Video poster extraction.

Unlike the derivative cache there is no existence check: every call
fetches the video, grabs a frame and overwrites the poster. Callers
decide when a poster needs (re)generating; a needless repeat is wasteful
but harmless because the poster key is a pure function of the source key.
"""

import asyncio
import logging
from typing import Optional

from .errors import ObjectNotFoundError, SourceNotFoundError
from .events import publish
from .keys import build_poster_key
from .models import (
    IMMUTABLE_CACHE_CONTROL,
    ContentType,
    MediaEvent,
    MediaEventKind,
    PosterLocator,
)
from .protocols import EventSink, MetadataIndex, ObjectStore, VideoProcessor
from .timeouts import TimeoutPolicy, bounded

logger = logging.getLogger(__name__)

DEFAULT_POSTER_OFFSET_SECONDS = 2.0
DEFAULT_POSTER_WIDTH = 640


class PosterExtractor:

    def __init__(
        self,
        store: ObjectStore,
        processor: VideoProcessor,
        index: MetadataIndex,
        events: Optional[EventSink] = None,
        timeouts: Optional[TimeoutPolicy] = None,
        offset_seconds: float = DEFAULT_POSTER_OFFSET_SECONDS,
        width: int = DEFAULT_POSTER_WIDTH,
    ) -> None:
        self._store = store
        self._processor = processor
        self._index = index
        self._events = events
        self._timeouts = timeouts or TimeoutPolicy()
        self._offset_seconds = offset_seconds
        self._width = width

    async def extract_poster(
        self,
        source_key: str,
        entry_id: Optional[str] = None,
    ) -> PosterLocator:
        """
        Generate `thumbnails/{basename}.jpg` from a stored video.

        If entry_id is given, the matching videos entry (by id, or by
        storage key) gets its poster fields set.
        """
        try:
            video_data = await bounded(
                self._store.get(source_key),
                self._timeouts.fetch_seconds,
                "Video fetch",
            )
        except ObjectNotFoundError:
            raise SourceNotFoundError(f"Video not found: {source_key}")

        frame = await bounded(
            self._processor.extract_poster_frame(
                video_data,
                offset_seconds=self._offset_seconds,
                width=self._width,
            ),
            self._timeouts.for_size(len(video_data)),
            "Poster extraction",
        )

        poster_key = build_poster_key(source_key)
        await self._store.put(
            poster_key,
            frame,
            "image/jpeg",
            cache_control=IMMUTABLE_CACHE_CONTROL,
        )
        poster_url = self._store.public_url(poster_key)

        entry_updated = False
        if entry_id:
            updated = await asyncio.to_thread(
                self._index.attach_poster,
                ContentType.VIDEOS,
                entry_id,
                poster_key,
                poster_url,
                storage_key=source_key,
            )
            entry_updated = updated is not None
            if not entry_updated:
                logger.warning(
                    "No video entry to attach poster to",
                    extra={"entry_id": entry_id, "source_key": source_key}
                )

        logger.info(
            "Extracted poster",
            extra={
                "source_key": source_key,
                "poster_key": poster_key,
                "video_bytes": len(video_data),
                "poster_bytes": len(frame),
            }
        )

        publish(self._events, MediaEvent(
            kind=MediaEventKind.POSTER_EXTRACTED,
            content_type=ContentType.VIDEOS,
            key=poster_key,
            entry_id=entry_id,
        ))

        return PosterLocator(key=poster_key, url=poster_url, entry_updated=entry_updated)
