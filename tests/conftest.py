import sys
from pathlib import Path
from typing import AsyncIterator, List

import pytest
from httpx import ASGITransport, AsyncClient

from grabber.core.state import state
from grabber.main import app
from grabber.services.ytdlp import YtDlpExtractor

FAKE_YTDLP = Path(__file__).parent / "fake_ytdlp.py"

@pytest.fixture
def fake_executable() -> List[str]:
    return [sys.executable, str(FAKE_YTDLP)]


@pytest.fixture
def extractor(fake_executable) -> YtDlpExtractor:
    return YtDlpExtractor(fake_executable, "2025.01.01-fake")


@pytest.fixture(autouse=True)
def reset_state():
    """Every test starts with the extractor not initialized"""
    state.reset()
    yield
    state.reset()


@pytest.fixture
def ready(extractor) -> YtDlpExtractor:
    state.mark_ready(extractor)
    return extractor


@pytest.fixture
async def client() -> AsyncIterator[AsyncClient]:
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
