import asyncio
import json
import logging
import shutil
from typing import List, NamedTuple, Optional, Sequence

from pydantic import ValidationError
from rich.console import Console

from grabber.config.settings import config
from grabber.core.errors import ExtractorError
from grabber.core.state import state
from grabber.models.extractor import RawVideoInfo

logger = logging.getLogger(__name__)
console = Console()

STDERR_PREVIEW_CHARS = 500


class CompletedProcess(NamedTuple):
    """Subprocess result"""
    returncode: int
    stdout: bytes
    stderr: bytes


class SubprocessExecutor:
    """Execute subprocess with consistent error handling"""

    @staticmethod
    async def run(
        cmd: Sequence[str],
        timeout: Optional[float] = None,
        capture_stderr: bool = True
    ) -> CompletedProcess:
        """
        Run subprocess to completion and make sure it never leaks.
        timeout=None waits as long as the process runs.
        """
        process = await asyncio.create_subprocess_exec(
            *cmd,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE if capture_stderr else asyncio.subprocess.DEVNULL,
            stdin=asyncio.subprocess.DEVNULL
        )

        try:
            stdout, stderr = await asyncio.wait_for(
                process.communicate(),
                timeout=timeout
            )

            return CompletedProcess(
                returncode=process.returncode,
                stdout=stdout,
                stderr=stderr if capture_stderr else b""
            )

        except BaseException:
            # Timeout, cancellation (client went away) or anything else
            if process.returncode is None:
                process.kill()
                # Read the pipes out, wait() blocks while a full stdout is paused
                await process.communicate()
            raise


class YTDLPCommandBuilder:
    """Build yt-dlp commands"""

    def __init__(self, executable: Sequence[str]):
        self.executable = list(executable)

    def _common_args(self) -> List[str]:
        args: List[str] = []
        if config.extractor.no_playlist:
            args.append("--no-playlist")
        if config.extractor.socket_timeout:
            args.extend(["--socket-timeout", str(config.extractor.socket_timeout)])
        args.extend(config.extractor.extra_args)
        return args

    def build_version_command(self) -> List[str]:
        return [*self.executable, "--version"]

    def build_info_command(self, url: str) -> List[str]:
        """Build command for fetching video info"""
        return [
            *self.executable,
            "--dump-json",
            *self._common_args(),
            "--",
            url,
        ]

    def build_stream_command(self, url: str, format_id: str) -> List[str]:
        """Build command writing the chosen format to stdout"""
        # Do NOT use --print here as it mixes with binary output in stdout
        return [
            *self.executable,
            "-f", format_id,
            "-o", "-",
            "--no-progress",
            "--quiet",
            *self._common_args(),
            "--",
            url,
        ]


class YtDlpExtractor:
    """
    Handle to a verified yt-dlp executable.

    Created once at startup by bootstrap_extractor() and shared read-only by
    every request.
    """

    def __init__(self, executable: Sequence[str], version: str = "unknown"):
        self.executable = list(executable)
        self.version = version
        self.commands = YTDLPCommandBuilder(self.executable)

    def __repr__(self) -> str:
        return f"YtDlpExtractor(executable={self.executable!r}, version={self.version!r})"

    async def fetch_metadata(self, url: str) -> RawVideoInfo:
        """Run `yt-dlp --dump-json` and decode the result at the boundary"""
        cmd = self.commands.build_info_command(url)

        try:
            result = await SubprocessExecutor.run(cmd, timeout=config.extractor.info_timeout)
        except asyncio.TimeoutError as e:
            raise ExtractorError("yt-dlp metadata fetch timed out") from e
        except OSError as e:
            raise ExtractorError(f"Failed to start yt-dlp: {e}") from e

        stderr = result.stderr.decode(errors="replace").strip()
        if result.returncode != 0:
            raise ExtractorError(
                f"yt-dlp exited with code {result.returncode}",
                returncode=result.returncode,
                stderr=stderr[-STDERR_PREVIEW_CHARS:],
            )

        try:
            # --dump-json prints one object per line; only the first entry matters
            first_line = result.stdout.decode(errors="replace").strip().splitlines()[0]
            return RawVideoInfo.model_validate(json.loads(first_line))
        except IndexError as e:
            raise ExtractorError("yt-dlp returned no metadata", stderr=stderr) from e
        except json.JSONDecodeError as e:
            raise ExtractorError(f"Failed to parse yt-dlp output: {e}", stderr=stderr) from e
        except ValidationError as e:
            raise ExtractorError(f"Unusable yt-dlp metadata: {e.error_count()} errors", stderr=stderr) from e

    async def open_stream(self, url: str, format_id: str) -> asyncio.subprocess.Process:
        """Spawn yt-dlp writing the chosen format to stdout"""
        cmd = self.commands.build_stream_command(url, format_id)
        try:
            return await asyncio.create_subprocess_exec(
                *cmd,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                stdin=asyncio.subprocess.DEVNULL,
                limit=config.download.chunk_size * 2,
            )
        except OSError as e:
            raise ExtractorError(f"Failed to start yt-dlp: {e}") from e


def resolve_executable(binary: Optional[str] = None) -> Optional[List[str]]:
    """Locate the yt-dlp binary on PATH (or accept an explicit path)"""
    binary = binary or config.extractor.binary
    found = shutil.which(binary)
    return [found] if found else None


async def bootstrap_extractor(executable: Optional[Sequence[str]] = None) -> bool:
    """
    Verify yt-dlp once and publish the handle in the runtime state.
    Until this succeeds every request fails with NotReady.
    """
    executable = list(executable) if executable else resolve_executable()
    if not executable:
        console.print(f"[red]✗ yt-dlp not found ({config.extractor.binary})[/red]")
        logger.error(f"yt-dlp binary not found: {config.extractor.binary}")
        return False

    try:
        result = await SubprocessExecutor.run(
            YTDLPCommandBuilder(executable).build_version_command(),
            timeout=30.0
        )
    except (OSError, asyncio.TimeoutError) as e:
        console.print(f"[red]✗ yt-dlp failed to start: {e}[/red]")
        logger.error(f"yt-dlp version check failed: {e}")
        return False

    if result.returncode != 0:
        console.print(f"[red]✗ yt-dlp --version exited with {result.returncode}[/red]")
        logger.error(f"yt-dlp version check failed: {result.stderr.decode(errors='replace')[:200]}")
        return False

    version = result.stdout.decode(errors="replace").strip() or "unknown"
    state.mark_ready(YtDlpExtractor(executable, version))
    console.print(f"[green]✓ yt-dlp {version} ready[/green]")
    return True
