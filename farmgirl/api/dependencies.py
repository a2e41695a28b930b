"""
FastAPI dependency injection.

Dependencies provide instances of services, clients, and configuration
to route handlers. Routes never build their own collaborators, so tests
can swap any of them via `app.dependency_overrides`.

The metadata index is always shared process-wide: its per-namespace locks
only serialize writers that share the same instance. In mock mode the
object store, video processor and event sink are shared too, so that
uploaded objects persist between requests.
"""

import logging
import threading
from typing import Annotated, Optional

from fastapi import Depends, HTTPException, Security, status
from fastapi.security import APIKeyHeader

from ..config.settings import Settings, get_settings
from ..core.media import DerivativeCache, PosterExtractor, UploadCoordinator
from ..core.media.keys import MonotonicClock
from ..core.media.protocols import EventSink, MetadataIndex, ObjectStore, VideoProcessor
from ..infrastructure.events import InMemoryEventSink, LoggingEventSink
from ..infrastructure.imaging import create_image_transformer
from ..infrastructure.metadata import create_metadata_index
from ..infrastructure.storage import StorageConfig, create_object_store
from ..infrastructure.video import create_video_processor

logger = logging.getLogger(__name__)

# API Key security scheme
api_key_header = APIKeyHeader(name="X-API-Key", auto_error=False)

# Process-wide instances
_shared_lock = threading.Lock()
_metadata_index: Optional[MetadataIndex] = None
_mock_object_store: Optional[ObjectStore] = None
_video_processor: Optional[VideoProcessor] = None
_event_sink: Optional[EventSink] = None
_id_clock = MonotonicClock()


def reset_shared_instances() -> None:
    """Drop cached instances. Used by tests between app instances."""
    global _metadata_index, _mock_object_store, _video_processor, _event_sink
    with _shared_lock:
        _metadata_index = None
        _mock_object_store = None
        _video_processor = None
        _event_sink = None


# ---------------------------------------------------------------------------
# Authentication
# ---------------------------------------------------------------------------

async def verify_api_key(
    settings: Annotated[Settings, Depends(get_settings)],
    api_key: str = Security(api_key_header),
) -> str:
    """
    Validate the admin API key from the request header.

    Guards every route that writes: upload slots, completions, links,
    deletes and poster generation. Reads are public.

    Raises 403 if key is invalid or missing.
    """
    if not api_key:
        logger.warning("Request missing API key")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="API key required. Provide X-API-Key header.",
        )

    if api_key not in settings.api_keys_list:
        logger.warning(
            "Invalid API key attempt",
            extra={"key_prefix": api_key[:8] if api_key else ""}
        )
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Invalid API key",
        )

    return api_key


# ---------------------------------------------------------------------------
# Client Dependencies
# ---------------------------------------------------------------------------

def get_object_store(
    settings: Annotated[Settings, Depends(get_settings)],
) -> ObjectStore:
    """
    Provide the object store.

    In mock mode, we reuse the same store across requests so that
    uploaded objects and derivatives persist during the session.
    """
    global _mock_object_store

    config = StorageConfig(
        bucket_name=settings.s3_bucket,
        region=settings.aws_region,
        endpoint_url=settings.s3_endpoint_url,
        access_key_id=settings.aws_access_key_id,
        secret_access_key=settings.aws_secret_access_key,
        public_url_base=settings.s3_public_url_base or None,
    )

    if settings.storage_mock_mode:
        with _shared_lock:
            if _mock_object_store is None:
                _mock_object_store = create_object_store(config=config, mock_mode=True)
                logger.info("Created shared mock object store")
        return _mock_object_store

    return create_object_store(config=config)


def get_metadata_index(
    settings: Annotated[Settings, Depends(get_settings)],
) -> MetadataIndex:
    global _metadata_index

    with _shared_lock:
        if _metadata_index is None:
            _metadata_index = create_metadata_index(
                data_dir=settings.data_dir,
                mock_mode=settings.index_mock_mode,
            )
        return _metadata_index


def get_video_processor(
    settings: Annotated[Settings, Depends(get_settings)],
) -> VideoProcessor:
    global _video_processor

    with _shared_lock:
        if _video_processor is None:
            _video_processor = create_video_processor(
                mock_mode=settings.video_mock_mode,
                ffmpeg_path=settings.ffmpeg_path,
                ffprobe_path=settings.ffprobe_path,
                command_timeout=settings.ffmpeg_command_timeout_seconds,
            )
        return _video_processor


def get_event_sink(
    settings: Annotated[Settings, Depends(get_settings)],
) -> EventSink:
    global _event_sink

    with _shared_lock:
        if _event_sink is None:
            _event_sink = InMemoryEventSink() if settings.storage_mock_mode else LoggingEventSink()
        return _event_sink


# ---------------------------------------------------------------------------
# Service Dependencies
# ---------------------------------------------------------------------------

def get_upload_coordinator(
    settings: Annotated[Settings, Depends(get_settings)],
    store: Annotated[ObjectStore, Depends(get_object_store)],
    index: Annotated[MetadataIndex, Depends(get_metadata_index)],
    events: Annotated[EventSink, Depends(get_event_sink)],
) -> UploadCoordinator:
    return UploadCoordinator(
        store=store,
        index=index,
        events=events,
        ids=_id_clock,
        upload_url_ttl=settings.upload_url_ttl_seconds,
        verify_uploads=settings.verify_uploads,
    )


def get_derivative_cache(
    settings: Annotated[Settings, Depends(get_settings)],
    store: Annotated[ObjectStore, Depends(get_object_store)],
) -> DerivativeCache:
    return DerivativeCache(
        store=store,
        transformer=create_image_transformer(),
        timeouts=settings.timeout_policy,
        cache_control=settings.derivative_cache_control,
    )


def get_poster_extractor(
    settings: Annotated[Settings, Depends(get_settings)],
    store: Annotated[ObjectStore, Depends(get_object_store)],
    processor: Annotated[VideoProcessor, Depends(get_video_processor)],
    index: Annotated[MetadataIndex, Depends(get_metadata_index)],
    events: Annotated[EventSink, Depends(get_event_sink)],
) -> PosterExtractor:
    return PosterExtractor(
        store=store,
        processor=processor,
        index=index,
        events=events,
        timeouts=settings.timeout_policy,
        offset_seconds=settings.poster_offset_seconds,
        width=settings.poster_width,
    )


# ---------------------------------------------------------------------------
# Convenience Type Aliases
# ---------------------------------------------------------------------------

# These type aliases make route signatures cleaner
AdminKey = Annotated[str, Depends(verify_api_key)]
SettingsDep = Annotated[Settings, Depends(get_settings)]
UploadCoordinatorDep = Annotated[UploadCoordinator, Depends(get_upload_coordinator)]
DerivativeCacheDep = Annotated[DerivativeCache, Depends(get_derivative_cache)]
PosterExtractorDep = Annotated[PosterExtractor, Depends(get_poster_extractor)]
