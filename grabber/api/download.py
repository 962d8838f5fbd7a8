import functools
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request

from grabber.core.logging import log_info
from grabber.i18n import i18n
from grabber.infra.rate_limit import rate_limiter
from grabber.models.response import ErrorResponse
from grabber.services.stream import StreamingDownloadProxy
from grabber.utils.locale import get_locale, safe_url_for_log

router = APIRouter()


@router.get(
    "/download",
    responses={
        200: {"content": {"application/octet-stream": {}}},
        400: {"model": ErrorResponse},
        500: {"model": ErrorResponse},
        503: {"model": ErrorResponse},
    },
    dependencies=[Depends(rate_limiter)],
)
async def download_video(
    request: Request,
    url: Optional[str] = Query(None, description="Video page URL"),
    format_id: Optional[str] = Query(None, description="format_id from /api/video-info"),
):
    """Stream the chosen format as an attachment"""

    locale = get_locale(request.headers.get("accept-language"))
    _ = functools.partial(i18n.get, locale=locale)

    if url and format_id:
        log_info(request, _("log.starting_stream", url=safe_url_for_log(url), format_id=format_id))

    return await StreamingDownloadProxy.download(url, format_id)
