"""Video grabber: preview yt-dlp formats and stream downloads over HTTP."""

__version__ = "1.0.0"
