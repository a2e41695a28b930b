"""
Error taxonomy for media operations.

Every failure a media operation can produce is one of these classes.
Each carries a stable `kind` string (what the API layer reports to
clients) and a `retryable` flag. Validation errors are never retryable;
transient storage errors are, because every write in this package is an
idempotent overwrite of deterministic content.
"""


class MediaError(Exception):
    """Base class for all media errors."""
    kind = "MediaError"
    retryable = False


class InvalidTypeError(MediaError):
    """Content type is not one of the known namespaces."""
    kind = "InvalidType"


class MissingFieldError(MediaError):
    """A required request field was absent or empty."""
    kind = "MissingField"


class MissingKeyError(MediaError):
    """Upload completion arrived without a storage key."""
    kind = "MissingKey"


class InvalidReferenceError(MediaError):
    """External video URL did not contain a recognizable video id."""
    kind = "InvalidReference"


class InvalidParameterError(MediaError):
    """Transform parameter out of range (negative size, bad quality)."""
    kind = "InvalidParameter"


class UnsupportedFormatError(MediaError):
    kind = "UnsupportedFormat"


class SourceNotFoundError(MediaError):
    """The object a derivative is generated from does not exist."""
    kind = "SourceNotFound"


class DecodeFailureError(MediaError):
    kind = "DecodeFailure"


class FrameExtractionError(MediaError):
    kind = "FrameExtractionFailure"


class MediaTimeoutError(MediaError):
    """Fetch or transform exceeded its configured time budget."""
    kind = "Timeout"
    retryable = True


class StorageUnavailableError(MediaError):
    """Transient object store failure."""
    kind = "StorageUnavailable"
    retryable = True


class ObjectNotFoundError(MediaError):
    """
    Raised by object stores when a key has no object.

    Services translate this into SourceNotFoundError when the missing
    object is one they needed to read.
    """
    kind = "ObjectNotFound"
