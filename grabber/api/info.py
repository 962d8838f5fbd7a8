import functools
from typing import Optional

from fastapi import APIRouter, Body, Depends, Request

from grabber.core.logging import log_info
from grabber.i18n import i18n
from grabber.infra.rate_limit import rate_limiter
from grabber.models.request import InfoRequest
from grabber.models.response import ErrorResponse, VideoPreview
from grabber.services.info import MetadataService
from grabber.utils.locale import get_locale, safe_url_for_log

router = APIRouter()


@router.post(
    "/video-info",
    response_model=VideoPreview,
    responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}, 503: {"model": ErrorResponse}},
    dependencies=[Depends(rate_limiter)],
)
async def get_video_info(request: Request, video_request: Optional[InfoRequest] = Body(None)):
    """Preview a video: title, thumbnail and the downloadable formats"""

    locale = get_locale(request.headers.get("accept-language"))
    _ = functools.partial(i18n.get, locale=locale)

    url = video_request.url if video_request else None
    if url:
        log_info(request, _("log.fetching_info", url=safe_url_for_log(url)))

    preview = await MetadataService.preview(url)
    log_info(request, _(
        "log.info_retrieved",
        title=preview.title,
        video=len(preview.formats.video),
        audio=len(preview.formats.audio),
    ))
    return preview
