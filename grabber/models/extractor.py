from typing import Any, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

NONE_CODEC = "none"


def _to_text(v: Any) -> Optional[str]:
    if v is None:
        return None
    return str(v)


def _to_number(v: Any) -> Optional[float]:
    if v is None or isinstance(v, bool):
        return None
    try:
        return float(v)
    except (TypeError, ValueError):
        return None


class RawFormatDescriptor(BaseModel):
    """One entry of yt-dlp's `formats` list, every field optional"""
    model_config = ConfigDict(extra="ignore")

    format_id: Optional[str] = None
    vcodec: Optional[str] = None
    acodec: Optional[str] = None
    ext: Optional[str] = None
    format_note: Optional[str] = None
    resolution: Optional[str] = None
    abr: Optional[float] = None
    filesize: Optional[float] = None
    filesize_approx: Optional[float] = None

    @field_validator("format_id", "vcodec", "acodec", "ext", "format_note", "resolution", mode="before")
    @classmethod
    def coerce_text(cls, v):
        return _to_text(v)

    @field_validator("abr", "filesize", "filesize_approx", mode="before")
    @classmethod
    def coerce_number(cls, v):
        return _to_number(v)

    @property
    def has_video(self) -> bool:
        return self.vcodec != NONE_CODEC

    @property
    def has_audio(self) -> bool:
        return self.acodec != NONE_CODEC

    @property
    def size_bytes(self) -> Optional[float]:
        return self.filesize or self.filesize_approx


class RawVideoInfo(BaseModel):
    """Subset of `yt-dlp --dump-json` output used by the service"""
    model_config = ConfigDict(extra="ignore")

    title: str = "Unknown"
    thumbnail: Optional[str] = None
    duration: Optional[Union[int, float]] = None
    uploader: Optional[str] = None
    formats: List[RawFormatDescriptor] = Field(...)

    @field_validator("title", mode="before")
    @classmethod
    def default_title(cls, v):
        return "Unknown" if v is None else str(v)

    @field_validator("thumbnail", "uploader", mode="before")
    @classmethod
    def coerce_text(cls, v):
        return _to_text(v)

    @field_validator("duration", mode="before")
    @classmethod
    def coerce_duration(cls, v):
        if isinstance(v, bool):
            return None
        return v if isinstance(v, (int, float)) else _to_number(v)

    def find_format(self, format_id: str) -> Optional[RawFormatDescriptor]:
        for f in self.formats:
            if f.format_id == format_id:
                return f
        return None
