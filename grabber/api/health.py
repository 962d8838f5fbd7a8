import functools

from fastapi import APIRouter, Request

from grabber.core.state import state
from grabber.i18n import i18n
from grabber.models.response import HealthStatus
from grabber.utils.locale import get_locale

router = APIRouter()


@router.get("/health", response_model=HealthStatus)
async def health_check(request: Request):
    """Lightweight health check; `ready` turns true once yt-dlp is verified"""
    _ = functools.partial(i18n.get, locale=get_locale(request.headers.get("accept-language")))

    extractor = state.extractor
    return HealthStatus(
        status=_("health.status"),
        message=_("health.ready") if extractor else _("health.starting"),
        ready=extractor is not None,
        extractor_version=extractor.version if extractor else None,
    )
