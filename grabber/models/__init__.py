from .extractor import RawFormatDescriptor, RawVideoInfo
from .internal import DownloadIntent
from .request import InfoRequest
from .response import (
    AudioFormat,
    ErrorResponse,
    FormatCatalog,
    HealthStatus,
    NormalizedFormat,
    VideoFormat,
    VideoPreview,
)

__all__ = [
    "AudioFormat",
    "DownloadIntent",
    "ErrorResponse",
    "FormatCatalog",
    "HealthStatus",
    "InfoRequest",
    "NormalizedFormat",
    "RawFormatDescriptor",
    "RawVideoInfo",
    "VideoFormat",
    "VideoPreview",
]
