from typing import List, Optional, Union

from pydantic import BaseModel


class NormalizedFormat(BaseModel):
    """A user-facing format choice"""
    format_id: str
    quality: str
    format: str
    size: str


class VideoFormat(NormalizedFormat):
    resolution: str = "N/A"


class AudioFormat(NormalizedFormat):
    pass


class FormatCatalog(BaseModel):
    video: List[VideoFormat] = []
    audio: List[AudioFormat] = []


class VideoPreview(BaseModel):
    """Video information response"""
    title: str
    thumbnail: Optional[str] = None
    duration: Optional[Union[int, float]] = None
    author: Optional[str] = None
    formats: FormatCatalog


class HealthStatus(BaseModel):
    status: str
    message: str
    ready: bool
    extractor_version: Optional[str] = None


class ErrorResponse(BaseModel):
    error: str
