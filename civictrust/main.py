from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from civictrust import db
from civictrust.config import AppInfo, get_settings
from civictrust.core.logging import get_logger, setup_logging
from civictrust.core.runtime_state import set_scheduler_active
from civictrust.routers import get_api_router
from civictrust.services.cron import expire_redemptions_once, replay_pending_once
from civictrust.services.dispatcher import get_dispatcher, reset_dispatcher
from civictrust.services.remote import close_remote_client
from civictrust.utils.errors import CivicError, error_response

logger = get_logger(__name__)
scheduler: AsyncIOScheduler | None = None


def _configure_middlewares(fastapi_app: FastAPI) -> None:
    """Configure middleware using a fresh snapshot of the settings."""

    runtime_settings = get_settings()
    fastapi_app.add_middleware(
        CORSMiddleware,
        allow_origins=runtime_settings.CORS_ALLOW_ORIGINS,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type", "X-Session-Token"],
    )

    if runtime_settings.PROMETHEUS_ENABLED:
        from starlette_exporter import PrometheusMiddleware, handle_metrics

        fastapi_app.add_middleware(PrometheusMiddleware)
        fastapi_app.add_route("/metrics", handle_metrics)

    if runtime_settings.SENTRY_DSN:
        import sentry_sdk

        sentry_sdk.init(dsn=runtime_settings.SENTRY_DSN, traces_sample_rate=0.2)


def _start_scheduler(settings: Any) -> AsyncIOScheduler:
    # Run the scheduler on a single instance only; the state snapshot is not shared across replicas.
    jobs = AsyncIOScheduler()
    jobs.start()
    jobs.add_job(
        replay_pending_once,
        "interval",
        seconds=settings.REPLAY_INTERVAL_SECONDS,
        id="replay-offline-queue",
        replace_existing=True,
    )
    jobs.add_job(
        expire_redemptions_once,
        "interval",
        seconds=settings.EXPIRY_INTERVAL_SECONDS,
        id="expire-redemptions",
        replace_existing=True,
    )
    return jobs


@asynccontextmanager
async def lifespan(app: FastAPI):
    global scheduler
    settings = get_settings()
    setup_logging(settings.LOG_LEVEL, env=settings.APP_ENV)
    logger.info("Application startup", extra={"env": settings.APP_ENV})

    db.init_engine()
    db.create_all()
    dispatcher = get_dispatcher()
    logger.info(
        "Application state loaded",
        extra={"pending_actions": len(dispatcher.state.pending_actions), "bins": len(dispatcher.state.bins)},
    )
    if not settings.remote_configured:
        logger.info("Remote sync disabled; running with local verdicts only", extra={"env": settings.APP_ENV})

    set_scheduler_active(False)
    if settings.SCHEDULER_ENABLED:
        scheduler = _start_scheduler(settings)
        set_scheduler_active(True)
        if settings.APP_ENV.lower() != "dev":
            logger.warning(
                "APScheduler enabled; ensure only one runner has SCHEDULER_ENABLED=1 in production.",
                extra={"env": settings.APP_ENV},
            )
    try:
        yield
    finally:
        if scheduler:
            scheduler.shutdown(wait=False)
            scheduler = None
        set_scheduler_active(False)
        await close_remote_client()
        reset_dispatcher()
        db.close_engine()
        logger.info("Application shutdown", extra={"env": settings.APP_ENV})


app_info = AppInfo()

app = FastAPI(title=app_info.name, version=app_info.version, lifespan=lifespan)

_configure_middlewares(app)
app.include_router(get_api_router())


@app.exception_handler(CivicError)
async def civic_exception_handler(request: Request, exc: CivicError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=exc.to_payload())


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled exception", exc_info=exc)
    payload = error_response("INTERNAL_SERVER_ERROR", "An unexpected error occurred.")
    return JSONResponse(status_code=500, content=payload)


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    detail = exc.detail
    if isinstance(detail, dict) and "error" in detail:
        content: dict[str, Any] = detail
    else:
        content = error_response("HTTP_ERROR", str(detail))
    return JSONResponse(status_code=exc.status_code, content=content, headers=getattr(exc, "headers", None))


__all__ = ["app"]
