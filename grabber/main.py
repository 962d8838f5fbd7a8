import asyncio
import functools
from typing import Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from grabber.api import download, health, info
from grabber.config.settings import config
from grabber.core.errors import GrabberError, InvalidField
from grabber.core.logging import RequestIdMiddleware, log_warning, setup_logging
from grabber.core.state import state
from grabber.i18n import i18n
from grabber.infra.redis import close_redis, init_redis
from grabber.services.ytdlp import bootstrap_extractor
from grabber.utils.locale import get_locale

setup_logging()

app = FastAPI(
    title=config.api.title,
    version=config.api.version,
    docs_url="/docs" if config.api.debug else None,
    redoc_url=None
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.api.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(RequestIdMiddleware)

# Routes
app.include_router(health.router, prefix="/api", tags=["Health"])
app.include_router(info.router, prefix="/api", tags=["Info"])
app.include_router(download.router, prefix="/api", tags=["Download"])


@app.exception_handler(GrabberError)
async def grabber_error_handler(request: Request, exc: GrabberError):
    """Localized {"error": ...} body; internal detail stays in the logs"""
    _ = functools.partial(i18n.get, locale=get_locale(request.headers.get("accept-language")))
    log_warning(request, f"{type(exc).__name__}: {exc.detail or exc.message_key}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": _(exc.message_key, **exc.params)},
        headers=exc.headers,
    )


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    """Malformed input is a 400 like any other bad request, not a 422"""
    errors = exc.errors()
    loc = errors[0].get("loc", ()) if errors else ()
    fields = [part for part in loc if isinstance(part, str) and part not in ("body", "query")]
    field = fields[-1] if fields else "body"
    return await grabber_error_handler(request, InvalidField(field, detail=f"invalid input: {errors}"))


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.detail},
        headers=getattr(exc, "headers", None),
    )


_bootstrap_task: Optional[asyncio.Task] = None


@app.on_event("startup")
async def startup_event():
    global _bootstrap_task

    state.redis = await init_redis()
    # Serve health checks right away; requests get NotReady until this finishes
    _bootstrap_task = asyncio.create_task(bootstrap_extractor())


@app.on_event("shutdown")
async def shutdown_event():
    if _bootstrap_task is not None and not _bootstrap_task.done():
        _bootstrap_task.cancel()
    await close_redis()


def run() -> None:
    """Console entry point"""
    uvicorn.run("grabber.main:app", host=config.api.host, port=config.api.port)
