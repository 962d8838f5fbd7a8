import asyncio
import logging
from collections import deque
from contextlib import suppress
from enum import Enum
from typing import AsyncIterator, Deque, Dict, Optional

from fastapi.responses import StreamingResponse
from starlette.requests import ClientDisconnect
from starlette.types import Receive, Scope, Send

from grabber.config.settings import config
from grabber.core.errors import ExtractorError, InvalidRequest, StreamAborted, StreamFailure
from grabber.core.state import RuntimeState
from grabber.models.internal import DownloadIntent
from grabber.services.info import fetch_metadata, require_extractor
from grabber.services.ytdlp import YtDlpExtractor
from grabber.utils.filename import build_download_filename, content_disposition
from grabber.utils.locale import safe_url_for_log

logger = logging.getLogger(__name__)

MEDIA_TYPE = "application/octet-stream"


class DownloadState(str, Enum):
    IDLE = "idle"
    RESOLVING = "resolving"
    HEADERS_COMMITTED = "headers_committed"
    STREAMING = "streaming"
    COMPLETED = "completed"
    ABORTED = "aborted"


class DownloadSession:
    """
    One download: resolve the filename, commit headers, then pipe yt-dlp's
    stdout to the client chunk by chunk.

    Idle -> Resolving -> HeadersCommitted -> Streaming -> Completed | Aborted.
    The body is pulled by the response, so a slow client slows down reads
    from the process pipe, which in turn blocks yt-dlp on a full pipe.
    """

    def __init__(self, intent: DownloadIntent, extractor: YtDlpExtractor):
        self.intent = intent
        self.extractor = extractor
        self.state = DownloadState.IDLE
        self.filename: Optional[str] = None
        self.headers: Optional[Dict[str, str]] = None
        self.process: Optional[asyncio.subprocess.Process] = None
        self.bytes_sent = 0
        self.stderr_lines: Deque[str] = deque(maxlen=config.download.stderr_max_lines)
        self._stderr_task: Optional[asyncio.Task] = None
        self._first_chunk = b""
        self._safe_url = safe_url_for_log(intent.url)

    def _transition(self, new_state: DownloadState) -> None:
        logger.debug(f"Download {self._safe_url} [{self.intent.format_id}]: {self.state.value} -> {new_state.value}")
        self.state = new_state

    async def resolve(self) -> None:
        """Re-fetch metadata to name the file; nothing is sent yet"""
        self._transition(DownloadState.RESOLVING)
        info = await fetch_metadata(self.extractor, self.intent.url)

        fmt = info.find_format(self.intent.format_id)
        ext = fmt.ext if fmt and fmt.ext else None
        if ext is None:
            logger.info(f"Format {self.intent.format_id} not in fresh metadata, using .{config.download.default_extension}")

        self.filename = build_download_filename(
            info.title, ext, self.intent.url, config.download.default_extension
        )
        self.commit_headers()

    def commit_headers(self) -> Dict[str, str]:
        """Fix the response headers; happens exactly once, before any body byte"""
        if self.headers is not None:
            raise RuntimeError("Download headers already committed")

        self.headers = {
            "Content-Disposition": content_disposition(self.filename),
            "X-Content-Type-Options": "nosniff",
            "Cache-Control": "no-cache",
        }
        self._transition(DownloadState.HEADERS_COMMITTED)
        return self.headers

    async def _drain_stderr(self) -> None:
        """Drain stderr to prevent buffer deadlock"""
        while True:
            # Plain reads: readline() would choke on an overlong line
            data = await self.process.stderr.read(4096)
            if not data:
                break
            self.stderr_lines.extend(
                line for line in data.decode(errors="replace").splitlines() if line.strip()
            )

    async def _collect_stderr(self, timeout: float = 1.0) -> None:
        """Give the stderr reader a moment to catch up after the process exited"""
        if self._stderr_task is not None:
            with suppress(asyncio.TimeoutError):
                await asyncio.wait_for(asyncio.shield(self._stderr_task), timeout)

    def _stderr_summary(self) -> str:
        return "\n".join(self.stderr_lines)[-500:]

    async def start(self) -> None:
        """
        Spawn yt-dlp and wait for the first chunk.

        A process that dies before producing a byte is still reportable as a
        normal error response, so that case raises StreamFailure here.
        """
        if self.state != DownloadState.HEADERS_COMMITTED:
            raise RuntimeError(f"Cannot start download in state {self.state.value}")

        try:
            self.process = await self.extractor.open_stream(self.intent.url, self.intent.format_id)
        except ExtractorError as e:
            self._transition(DownloadState.ABORTED)
            logger.error(f"Download process failed to start for {self._safe_url}: {e}")
            raise StreamFailure(str(e)) from e

        self._transition(DownloadState.STREAMING)
        self._stderr_task = asyncio.create_task(self._drain_stderr())

        try:
            self._first_chunk = await self.process.stdout.read(config.download.chunk_size)
            if not self._first_chunk:
                returncode = await self.process.wait()
                await self._collect_stderr()
                logger.error(
                    f"Download produced no data for {self._safe_url} "
                    f"(returncode={returncode}): {self._stderr_summary()}"
                )
                raise StreamFailure(f"yt-dlp exited with code {returncode} before sending data")
        except BaseException:
            await self.close()
            raise

    async def iter_body(self) -> AsyncIterator[bytes]:
        """Yield process output; raises StreamAborted if yt-dlp fails midway"""
        try:
            chunk = self._first_chunk
            self._first_chunk = b""
            while chunk:
                yield chunk
                self.bytes_sent += len(chunk)
                chunk = await self.process.stdout.read(config.download.chunk_size)

            try:
                returncode = await asyncio.wait_for(
                    self.process.wait(), timeout=config.download.kill_grace_seconds
                )
            except asyncio.TimeoutError:
                logger.warning(f"yt-dlp kept running after closing stdout, killing it ({self._safe_url})")
                self.process.kill()
                await self.process.wait()
                returncode = 0

            if returncode != 0:
                self._transition(DownloadState.ABORTED)
                await self._collect_stderr()
                logger.error(
                    f"Download failed after {self.bytes_sent} bytes for {self._safe_url} "
                    f"(returncode={returncode}): {self._stderr_summary()}"
                )
                raise StreamAborted(f"yt-dlp exited with code {returncode}", bytes_sent=self.bytes_sent)

            self._transition(DownloadState.COMPLETED)
            logger.info(f"Download completed for {self._safe_url}: {self.bytes_sent} bytes")
        finally:
            await self.close()

    async def close(self) -> None:
        """Kill the process if still running and stop the stderr reader; idempotent"""
        if self.state not in (DownloadState.COMPLETED, DownloadState.ABORTED):
            self._transition(DownloadState.ABORTED)
            logger.info(f"Download aborted for {self._safe_url} after {self.bytes_sent} bytes")

        if self._stderr_task is not None:
            self._stderr_task.cancel()
            with suppress(asyncio.CancelledError):
                await self._stderr_task
            self._stderr_task = None

        if self.process is not None and self.process.returncode is None:
            with suppress(ProcessLookupError):
                self.process.kill()
            # wait() returns only once both pipes hit EOF; a stdout paused by
            # a slow client never does unless its buffer is read out
            try:
                await asyncio.wait_for(self.process.communicate(), timeout=config.download.kill_grace_seconds)
            except asyncio.TimeoutError:
                logger.warning(f"yt-dlp pipes still open after kill ({self._safe_url})")


class DownloadResponse(StreamingResponse):
    """
    StreamingResponse bound to a DownloadSession.

    Whatever ends the response (completion, client disconnect, cancellation,
    a failure midway) the session is closed so yt-dlp never outlives it.
    """

    def __init__(self, session: DownloadSession):
        self.session = session
        super().__init__(session.iter_body(), media_type=MEDIA_TYPE, headers=session.headers)

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        try:
            await super().__call__(scope, receive, send)
        except StreamAborted as e:
            # Returning without the final body message makes the server drop
            # the connection, so the client sees a truncated download.
            logger.warning(f"Stream aborted after {e.bytes_sent} bytes: {e}")
        except (ClientDisconnect, OSError) as e:
            logger.info(f"Client disconnected after {self.session.bytes_sent} bytes: {e!r}")
        finally:
            await self.session.close()


class StreamingDownloadProxy:
    """Video streaming service"""

    @staticmethod
    async def download(
        url: Optional[str],
        format_id: Optional[str],
        runtime: Optional[RuntimeState] = None,
    ) -> DownloadResponse:
        """
        Resolve, commit headers, spawn yt-dlp and return the streaming response.
        No retries: a failed download is retried by the caller from scratch.
        """
        if not url or not url.strip():
            raise InvalidRequest("url")
        if not format_id or not format_id.strip():
            raise InvalidRequest("format_id")

        extractor = require_extractor(runtime)
        session = DownloadSession(DownloadIntent(url=url.strip(), format_id=format_id.strip()), extractor)

        await session.resolve()
        await session.start()
        return DownloadResponse(session)
