from .errors import (
    ExtractorError,
    GrabberError,
    InvalidField,
    InvalidRequest,
    MetadataUnavailable,
    NotReady,
    StreamAborted,
    StreamFailure,
)

__all__ = [
    "ExtractorError",
    "GrabberError",
    "InvalidField",
    "InvalidRequest",
    "MetadataUnavailable",
    "NotReady",
    "StreamAborted",
    "StreamFailure",
]
