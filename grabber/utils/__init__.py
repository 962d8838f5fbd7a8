from .filename import build_download_filename, content_disposition, sanitize_title
from .hash import hash_stable

__all__ = ["build_download_filename", "content_disposition", "hash_stable", "sanitize_title"]
