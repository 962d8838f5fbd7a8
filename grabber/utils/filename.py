import re
import unicodedata
from typing import Optional
from urllib.parse import quote

from grabber.utils.hash import hash_stable

_UNSAFE_TITLE_CHARS = re.compile(r"[^\w\s-]")

WINDOWS_RESERVED = {
    'CON', 'PRN', 'AUX', 'NUL',
    'COM1', 'COM2', 'COM3', 'COM4', 'COM5', 'COM6', 'COM7', 'COM8', 'COM9',
    'LPT1', 'LPT2', 'LPT3', 'LPT4', 'LPT5', 'LPT6', 'LPT7', 'LPT8', 'LPT9'
}


def sanitize_title(title: str, max_length: int = 200) -> str:
    """Keep letters, digits, underscore, hyphen and whitespace only"""
    title = unicodedata.normalize("NFKC", title)
    title = _UNSAFE_TITLE_CHARS.sub("", title)
    # Tabs and newlines are whitespace too but not welcome in a header
    title = re.sub(r"\s+", " ", title).strip()

    if title.upper() in WINDOWS_RESERVED:
        title = f"_{title}"

    return title[:max_length].strip()


def build_download_filename(title: str, ext: Optional[str], url: str, default_ext: str = "mp4") -> str:
    """'<sanitized title>.<ext>', falling back to video_<hash> for empty titles"""
    name = sanitize_title(title) or f"video_{hash_stable(url)[:8]}"
    ext = (ext or default_ext).lower()
    return f"{name}.{ext}"


def content_disposition(filename: str) -> str:
    """
    Attachment header value. ASCII names go out as-is; others get an ASCII
    fallback plus an RFC 5987 filename* parameter.
    """
    ascii_name = filename.encode("ascii", "ignore").decode("ascii")
    if ascii_name == filename:
        return f'attachment; filename="{filename}"'

    stem, _, ext = ascii_name.rpartition(".")
    if not stem.strip():
        ascii_name = f"download.{ext}" if ext else "download"
    return f"attachment; filename=\"{ascii_name}\"; filename*=UTF-8''{quote(filename)}"
