"""Countdown Stream — SSE feed of time remaining until the next prayer.

Invariants:
    - One CountdownTicker per connection, stopped when the client disconnects
    - Every event is `data: {"type": "tick", "data": {...}}`; a bounded stream ends with "done"

Design Decisions:
    - StreamingResponse for SSE: event_generator yields formatted SSE lines
    - max_ticks bounds the stream for clients that poll instead of holding a connection
"""

import asyncio
import json
import logging

from fastapi import APIRouter, Depends, Query
from fastapi.responses import StreamingResponse

from salah_engine.api.dependencies import build_location, get_schedule_service
from salah_engine.config import get_settings
from salah_engine.services.countdown import CountdownTick, CountdownTicker
from salah_engine.services.schedule_service import PrayerScheduleService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/countdown", tags=["countdown"])

# ADR: SSE headers prevent proxy/browser buffering of streamed events.
_SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "X-Accel-Buffering": "no",
    "Connection": "keep-alive",
}


def _sse_line(event: dict) -> str:
    """Format event as SSE data line."""
    return f"data: {json.dumps(event, ensure_ascii=False)}\n\n"


def _tick_event(tick: CountdownTick) -> dict:
    return {
        "type": "tick",
        "data": {
            "kind": tick.kind.value,
            "name": tick.kind.display_name,
            "remaining": tick.formatted,
            "seconds_remaining": tick.total_seconds,
            "target": tick.target.isoformat(),
        },
    }


@router.get("")
async def stream_countdown(
    lat: float,
    lng: float,
    tz: str | None = None,
    name: str | None = Query(None, max_length=200),
    method: str | None = Query(None, max_length=32),
    interval: float | None = Query(None, gt=0, le=60),
    max_ticks: int | None = Query(None, ge=1),
    service: PrayerScheduleService = Depends(get_schedule_service),
):
    location = await service.with_timezone(build_location(lat, lng, tz, name))
    ticker = CountdownTicker(
        service, location,
        interval=interval or get_settings().ticker_interval_seconds,
        method=method,
    )

    async def event_generator():
        sent = 0
        try:
            async for tick in ticker.ticks():
                yield _sse_line(_tick_event(tick))
                sent += 1
                if max_ticks is not None and sent >= max_ticks:
                    break
            yield _sse_line({"type": "done", "data": {"ticks": sent}})
        except asyncio.CancelledError:
            logger.info("Client disconnected from countdown stream")
            raise
        finally:
            await ticker.stop()

    return StreamingResponse(
        event_generator(),
        media_type="text/event-stream",
        headers=_SSE_HEADERS,
    )
