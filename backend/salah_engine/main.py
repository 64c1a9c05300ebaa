"""Salah Engine API — FastAPI application entry point.

Invariants:
    - Routes registered explicitly (no auto-discovery — ExMA anti-pattern)
    - Global error handlers map SalahError → structured JSON responses
    - CORS configured from settings (not hardcoded)
    - The schedule service (and its HTTP client) is built on startup and closed on shutdown

Design Decisions:
    - Lifespan over @app.on_event: FastAPI recommended pattern, cleaner cleanup
    - Overall remote bound = every attempt's timeout plus the worst-case backoff between them,
      so the service deadline never cuts the client's own retries short
    - The TimezoneFinder is built with the service at startup, not on the first request
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from timezonefinder import TimezoneFinder

from salah_engine import __version__
from salah_engine.api.error_handlers import register_error_handlers
from salah_engine.api.routes import countdown, health, methods, qibla, schedule
from salah_engine.config import Settings, get_settings
from salah_engine.core.calculation_methods import get_method
from salah_engine.infrastructure.aladhan_client import ResilientAladhanClient
from salah_engine.infrastructure.observability import setup_logging
from salah_engine.infrastructure.timezones import TimezoneFinderResolver
from salah_engine.services.schedule_service import PrayerScheduleService

logger = logging.getLogger(__name__)


def build_schedule_service(
    settings: Settings,
) -> tuple[PrayerScheduleService, ResilientAladhanClient | None]:
    """Wire the service from settings. Returns the client too so shutdown can close it."""
    remote = None
    if settings.remote_enabled:
        remote = ResilientAladhanClient(
            base_url=settings.remote_base_url,
            max_retries=settings.remote_max_retries,
            base_delay_ms=settings.remote_base_delay_ms,
            max_delay_ms=settings.remote_max_delay_ms,
            timeout_seconds=settings.remote_timeout_seconds,
            asr_convention=settings.default_asr_convention,
        )
    attempts = settings.remote_max_retries + 1
    overall_timeout = (
        settings.remote_timeout_seconds * attempts
        + settings.remote_max_delay_ms * 1.25 * settings.remote_max_retries / 1000
    )
    service = PrayerScheduleService(
        remote,
        default_method=get_method(settings.default_method_id),
        asr_convention=settings.default_asr_convention,
        asr_formula=settings.asr_formula,
        timezones=TimezoneFinderResolver(TimezoneFinder()),
        remote_timeout_seconds=overall_timeout,
        cache_precision=settings.cache_precision,
        cache_max_entries=settings.cache_max_entries,
    )
    return service, remote


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup/shutdown lifecycle."""
    settings = get_settings()
    setup_logging(settings.log_level, settings.log_format)
    service, remote = build_schedule_service(settings)
    app.state.schedule_service = service
    logger.info(
        f"Salah Engine API started (remote={'on' if remote else 'off'}, "
        f"default method={settings.default_method_id})",
    )
    yield
    if remote is not None:
        await remote.aclose()
    logger.info("Salah Engine API shutting down")


app = FastAPI(
    title="Salah Engine API", version=__version__, lifespan=lifespan,
)

# CORS — configured from settings, not hardcoded
settings = get_settings()
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_methods=["GET"],
    allow_headers=["*"],
)

register_error_handlers(app)

# Routes — explicit registration (ExMA: no convention-over-config)
app.include_router(health.router)
app.include_router(methods.router)
app.include_router(schedule.router)
app.include_router(qibla.router)
app.include_router(countdown.router)
