import re
from typing import Dict, Iterable, List, Optional, Tuple, TypeVar

from grabber.config.settings import config
from grabber.models.extractor import RawFormatDescriptor
from grabber.models.response import AudioFormat, FormatCatalog, NormalizedFormat, VideoFormat

SIZE_UNITS = ("B", "KB", "MB", "GB")
NOT_AVAILABLE = "N/A"
UNKNOWN = "Unknown"

_RESOLUTION_RE = re.compile(r"^\s*\d+\s*x\s*(\d+)\s*$")
_LEADING_INT_RE = re.compile(r"^\s*(\d+)")

F = TypeVar("F", bound=NormalizedFormat)


def _number_text(value: float) -> str:
    """Render a number without a trailing '.0' (128.0 -> '128', 129.5 -> '129.5')"""
    if float(value).is_integer():
        return str(int(value))
    return str(value)


def format_file_size(size_bytes: Optional[float]) -> str:
    """Human readable size: largest unit where the value is >= 1, two decimals max"""
    if not size_bytes or size_bytes <= 0:
        return NOT_AVAILABLE

    index = 0
    while index < len(SIZE_UNITS) - 1 and size_bytes >= 1024 ** (index + 1):
        index += 1

    # Half-up rounding to two decimals
    value = int(size_bytes / 1024 ** index * 100 + 0.5) / 100
    return f"{_number_text(value)} {SIZE_UNITS[index]}"


def resolution_height(resolution: Optional[str]) -> int:
    """'1280x720' -> 720; anything unparsable -> 0"""
    if not resolution:
        return 0
    match = _RESOLUTION_RE.match(resolution)
    return int(match.group(1)) if match else 0


def label_bitrate(quality: Optional[str]) -> int:
    """'128kbps' -> 128, '129.4kbps' -> 129; anything unparsable -> 0"""
    if not quality:
        return 0
    match = _LEADING_INT_RE.match(quality)
    return int(match.group(1)) if match else 0


class FormatNormalizer:
    """Turn raw yt-dlp format descriptors into user-facing choices"""

    @staticmethod
    def is_combined(f: RawFormatDescriptor) -> bool:
        return f.has_video and f.has_audio

    @staticmethod
    def is_audio_only(f: RawFormatDescriptor) -> bool:
        return not f.has_video and f.has_audio

    @staticmethod
    def video_quality(f: RawFormatDescriptor) -> str:
        return f.format_note or f.resolution or UNKNOWN

    @staticmethod
    def audio_quality(f: RawFormatDescriptor) -> str:
        # Missing bitrate yields "Unknownkbps"; kept as the established label
        bitrate = _number_text(f.abr) if f.abr else UNKNOWN
        return f"{bitrate}kbps"

    @staticmethod
    def container(f: RawFormatDescriptor) -> str:
        return (f.ext or UNKNOWN).lower()

    @classmethod
    def normalize(cls, formats: Iterable[RawFormatDescriptor]) -> Tuple[List[VideoFormat], List[AudioFormat]]:
        """
        Split formats into combined video+audio and audio-only lists.

        Video-only streams and entries without a format_id are dropped: only
        formats that can be served as one file are exposed. Output keeps
        input order; sorting and dedup happen in FormatSelector.
        """
        video: List[VideoFormat] = []
        audio: List[AudioFormat] = []

        for f in formats:
            if not f.format_id:
                continue

            if cls.is_combined(f):
                video.append(VideoFormat(
                    format_id=f.format_id,
                    quality=cls.video_quality(f),
                    format=cls.container(f),
                    size=format_file_size(f.size_bytes),
                    resolution=f.resolution or NOT_AVAILABLE,
                ))
            elif cls.is_audio_only(f):
                audio.append(AudioFormat(
                    format_id=f.format_id,
                    quality=cls.audio_quality(f),
                    format=cls.container(f),
                    size=format_file_size(f.size_bytes),
                ))

        return video, audio


class FormatSelector:
    """Deduplicate, rank and cap normalized formats"""

    @staticmethod
    def dedupe(formats: Iterable[F]) -> List[F]:
        """Keep one entry per quality label; the last one seen wins"""
        by_quality: Dict[str, F] = {}
        for f in formats:
            by_quality[f.quality] = f
        return list(by_quality.values())

    @classmethod
    def rank_video(cls, formats: Iterable[VideoFormat], limit: int) -> List[VideoFormat]:
        ranked = sorted(cls.dedupe(formats), key=lambda f: resolution_height(f.resolution), reverse=True)
        return ranked[:limit]

    @classmethod
    def rank_audio(cls, formats: Iterable[AudioFormat], limit: int) -> List[AudioFormat]:
        ranked = sorted(cls.dedupe(formats), key=lambda f: label_bitrate(f.quality), reverse=True)
        return ranked[:limit]

    @classmethod
    def select(
        cls,
        video: Iterable[VideoFormat],
        audio: Iterable[AudioFormat],
        max_video: Optional[int] = None,
        max_audio: Optional[int] = None,
    ) -> FormatCatalog:
        return FormatCatalog(
            video=cls.rank_video(video, config.formats.max_video if max_video is None else max_video),
            audio=cls.rank_audio(audio, config.formats.max_audio if max_audio is None else max_audio),
        )


def build_catalog(formats: Iterable[RawFormatDescriptor]) -> FormatCatalog:
    """Normalize then select: the full format pipeline"""
    video, audio = FormatNormalizer.normalize(formats)
    return FormatSelector.select(video, audio)
