"""
Media upload coordination and derivative generation.

Contains the domain models, error taxonomy and the services:
- UploadCoordinator: presign / complete / link / delete
- DerivativeCache: resized and re-encoded image variants
- PosterExtractor: still frames from stored videos
"""

from .derivatives import DerivativeCache
from .errors import MediaError
from .models import (
    ContentType,
    DerivativeDescriptor,
    DerivativeLocator,
    ImageFormat,
    MediaEntry,
    MediaEvent,
    MediaEventKind,
    PosterLocator,
    UploadSlot,
)
from .posters import PosterExtractor
from .timeouts import TimeoutPolicy
from .uploads import UploadCoordinator

__all__ = [
    "ContentType",
    "DerivativeCache",
    "DerivativeDescriptor",
    "DerivativeLocator",
    "ImageFormat",
    "MediaEntry",
    "MediaError",
    "MediaEvent",
    "MediaEventKind",
    "PosterExtractor",
    "PosterLocator",
    "TimeoutPolicy",
    "UploadCoordinator",
    "UploadSlot",
]
