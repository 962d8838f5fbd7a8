import logging
from typing import Optional

from grabber.core.errors import ExtractorError, InvalidRequest, MetadataUnavailable, NotReady
from grabber.core.state import RuntimeState, state
from grabber.models.extractor import RawVideoInfo
from grabber.models.response import VideoPreview
from grabber.services.format import build_catalog
from grabber.services.ytdlp import YtDlpExtractor
from grabber.utils.locale import safe_url_for_log

logger = logging.getLogger(__name__)


def require_extractor(runtime: Optional[RuntimeState] = None) -> YtDlpExtractor:
    """Return the shared extractor handle or fail with NotReady"""
    runtime = runtime or state
    if runtime.extractor is None:
        raise NotReady("extractor not initialized")
    return runtime.extractor


async def fetch_metadata(extractor: YtDlpExtractor, url: str) -> RawVideoInfo:
    """Fetch metadata, mapping every extractor failure to MetadataUnavailable"""
    try:
        return await extractor.fetch_metadata(url)
    except ExtractorError as e:
        logger.error(
            f"Metadata fetch failed for {safe_url_for_log(url)}: {e} "
            f"(returncode={e.returncode}) {e.stderr[-200:]}"
        )
        raise MetadataUnavailable(str(e)) from e


class MetadataService:
    """Video preview: one metadata fetch, normalized and ranked formats"""

    @staticmethod
    async def preview(url: Optional[str], runtime: Optional[RuntimeState] = None) -> VideoPreview:
        if not url or not url.strip():
            raise InvalidRequest("url")

        extractor = require_extractor(runtime)
        info = await fetch_metadata(extractor, url.strip())
        catalog = build_catalog(info.formats)

        return VideoPreview(
            title=info.title,
            thumbnail=info.thumbnail,
            duration=info.duration,
            author=info.uploader,
            formats=catalog,
        )
