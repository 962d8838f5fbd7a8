from typing import Any, Dict, Optional


class GrabberError(Exception):
    """
    Base class for errors surfaced to API clients.

    Each subclass maps to one HTTP status and one i18n message key; the
    message shown to clients is always the localized one, never the
    internal detail.
    """
    status_code: int = 500
    message_key: str = "error.internal"

    def __init__(self, detail: Optional[str] = None, **params: Any):
        self.detail = detail
        self.params = params
        super().__init__(detail or self.message_key)

    @property
    def headers(self) -> Optional[Dict[str, str]]:
        return None


class InvalidRequest(GrabberError):
    """Required caller input is missing"""
    status_code = 400
    message_key = "error.missing_field"

    def __init__(self, field: str, detail: Optional[str] = None):
        super().__init__(detail or f"missing field: {field}", field=field)
        self.field = field


class InvalidField(InvalidRequest):
    """Caller input is present but unusable (wrong type, unparsable body)"""
    message_key = "error.invalid_field"


class NotReady(GrabberError):
    """The extractor is still being initialized"""
    status_code = 503
    message_key = "error.not_ready"
    retry_after = 5

    @property
    def headers(self) -> Optional[Dict[str, str]]:
        return {"Retry-After": str(self.retry_after)}


class MetadataUnavailable(GrabberError):
    """yt-dlp could not produce usable metadata"""
    status_code = 500
    message_key = "error.metadata_unavailable"


class StreamFailure(GrabberError):
    """The download process failed before or while streaming"""
    status_code = 500
    message_key = "error.stream_failed"


class StreamAborted(Exception):
    """
    Raised inside a download body after headers went out. No error payload
    can follow binary output, so the connection is dropped instead.
    """

    def __init__(self, message: str, bytes_sent: int = 0):
        super().__init__(message)
        self.bytes_sent = bytes_sent


class ExtractorError(Exception):
    """Internal failure of a yt-dlp invocation (never shown to clients)"""

    def __init__(self, message: str, returncode: Optional[int] = None, stderr: str = ""):
        super().__init__(message)
        self.returncode = returncode
        self.stderr = stderr
