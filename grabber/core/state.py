from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional

from redis.asyncio import Redis

if TYPE_CHECKING:
    from grabber.services.ytdlp import YtDlpExtractor


@dataclass
class RuntimeState:
    """
    Centralized runtime state.

    The extractor handle is written once at startup and only read afterwards,
    so request handlers just check readiness without locking.
    """
    redis: Optional[Redis] = None
    extractor: Optional["YtDlpExtractor"] = None

    @property
    def ready(self) -> bool:
        return self.extractor is not None

    def mark_ready(self, extractor: "YtDlpExtractor") -> None:
        if self.extractor is not None:
            raise RuntimeError("Extractor already initialized")
        self.extractor = extractor

    def reset(self) -> None:
        """Drop the extractor handle (test and shutdown use only)"""
        self.extractor = None


state = RuntimeState()
