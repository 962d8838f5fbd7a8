import pytest

from grabber.core.state import RuntimeState
from grabber.services.ytdlp import YtDlpExtractor


def test_two_phase_lifecycle():
    runtime = RuntimeState()
    assert runtime.ready is False

    handle = YtDlpExtractor(["yt-dlp"], "1.0")
    runtime.mark_ready(handle)

    assert runtime.ready is True
    assert runtime.extractor is handle


def test_ready_is_written_once():
    runtime = RuntimeState()
    runtime.mark_ready(YtDlpExtractor(["yt-dlp"]))

    with pytest.raises(RuntimeError):
        runtime.mark_ready(YtDlpExtractor(["other"]))
