"""Resilient Aladhan Client — request shape, retry policy, and error mapping.

Invariants:
    - Query carries latitude, longitude, method, school, and timezonestring when known
    - Custom profiles send methodSettings alongside method=99
    - 5xx / connection errors retried up to max_retries, then RemoteUnavailableError
    - Timeouts and 4xx (except 429) fail on the first attempt
    - Non-JSON or non-200 envelopes map to RemoteMalformedResponseError

Design Decisions:
    - httpx.MockTransport with base_delay_ms=0: no network, no real sleeping
"""

import json
from datetime import date

import httpx
import pytest

from salah_engine.core.calculation_methods import custom_profile, get_method
from salah_engine.core.domain_types import AsrConvention
from salah_engine.core.errors import (
    ErrorCategory,
    RemoteMalformedResponseError,
    RemoteUnavailableError,
)
from salah_engine.infrastructure.aladhan_client import ResilientAladhanClient

DAY = date(2025, 6, 21)
TIMINGS = {
    "Fajr": "03:21", "Sunrise": "05:33", "Dhuhr": "13:11",
    "Asr": "17:10", "Maghrib": "20:47", "Isha": "22:32",
}


# -- Helpers -------------------------------------------------------------------

def _ok(request: httpx.Request) -> httpx.Response:
    return httpx.Response(200, json={"code": 200, "status": "OK", "data": {"timings": TIMINGS}})


def _status(code: int, **kwargs):
    """Handler answering with a fresh response on every call."""
    return lambda request: httpx.Response(code, **kwargs)


class _Recorder:
    """Transport handler replaying a scripted list of responses/exceptions."""

    def __init__(self, *steps):
        self.steps = list(steps)
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        step = self.steps.pop(0) if len(self.steps) > 1 else self.steps[0]
        if isinstance(step, Exception):
            raise step
        if callable(step):
            return step(request)
        return step


def _client(handler, **kwargs) -> ResilientAladhanClient:
    kwargs.setdefault("base_delay_ms", 0)
    kwargs.setdefault("max_delay_ms", 0)
    return ResilientAladhanClient(
        base_url="https://api.test/v1", transport=httpx.MockTransport(handler), **kwargs,
    )


async def _fetch(client, method_id="TURKEY", timezone_name="Europe/Istanbul", method=None):
    try:
        return await client.fetch_timings(
            41.0082, 28.9784, DAY, method or get_method(method_id), timezone_name,
        )
    finally:
        await client.aclose()


# ==============================================================================
# Request Shape
# ==============================================================================


async def test_success_returns_timings_and_sends_expected_query():
    recorder = _Recorder(_ok)
    timings = await _fetch(_client(recorder))

    assert timings == TIMINGS
    request = recorder.requests[0]
    assert request.url.path == "/v1/timings/21-06-2025"
    assert request.url.params["method"] == "13"
    assert request.url.params["school"] == "0"
    assert request.url.params["timezonestring"] == "Europe/Istanbul"
    assert request.url.params["latitude"] == "41.0082"
    assert "methodSettings" not in request.url.params


async def test_hanafi_sets_school_and_no_timezone_omits_param():
    recorder = _Recorder(_ok)
    await _fetch(
        _client(recorder, asr_convention=AsrConvention.HANAFI), timezone_name=None,
    )
    params = recorder.requests[0].url.params
    assert params["school"] == "1"
    assert "timezonestring" not in params


async def test_custom_profile_sends_method_settings():
    recorder = _Recorder(_ok)
    await _fetch(_client(recorder), method=custom_profile(17.5, isha_interval_minutes=90))
    params = recorder.requests[0].url.params
    assert params["method"] == "99"
    assert params["methodSettings"] == "17.5,null,90 min"


# ==============================================================================
# Retry Policy
# ==============================================================================


async def test_server_error_then_success_is_retried():
    recorder = _Recorder(_status(500), _ok)
    assert await _fetch(_client(recorder)) == TIMINGS
    assert len(recorder.requests) == 2


async def test_persistent_server_error_exhausts_retries():
    recorder = _Recorder(_status(503))
    with pytest.raises(RemoteUnavailableError) as exc:
        await _fetch(_client(recorder, max_retries=2))
    assert len(recorder.requests) == 3
    assert exc.value.reason == "connection_error"
    assert exc.value.context.attempt == 3


async def test_connection_error_is_retried():
    recorder = _Recorder(httpx.ConnectError("refused"), _ok)
    assert await _fetch(_client(recorder)) == TIMINGS
    assert len(recorder.requests) == 2


async def test_rate_limit_uses_retry_after_then_succeeds():
    recorder = _Recorder(_status(429, headers={"Retry-After": "0"}), _ok)
    assert await _fetch(_client(recorder)) == TIMINGS
    assert len(recorder.requests) == 2


async def test_rate_limit_exhausted_reports_rate_limit():
    recorder = _Recorder(_status(429))
    with pytest.raises(RemoteUnavailableError) as exc:
        await _fetch(_client(recorder, max_retries=1))
    assert exc.value.reason == "rate_limit"
    assert len(recorder.requests) == 2


async def test_client_error_fails_immediately():
    recorder = _Recorder(_status(400, json={"code": 400, "data": "bad"}))
    with pytest.raises(RemoteUnavailableError) as exc:
        await _fetch(_client(recorder))
    assert exc.value.reason == "client_error"
    assert len(recorder.requests) == 1


async def test_timeout_fails_immediately_with_timeout_category():
    recorder = _Recorder(httpx.ReadTimeout("slow"))
    with pytest.raises(RemoteUnavailableError) as exc:
        await _fetch(_client(recorder))
    assert exc.value.reason == "timeout"
    assert exc.value.category is ErrorCategory.TIMEOUT
    assert len(recorder.requests) == 1


# ==============================================================================
# Envelope Errors
# ==============================================================================


async def test_non_json_body_is_malformed():
    recorder = _Recorder(_status(200, content=b"<html>oops</html>"))
    with pytest.raises(RemoteMalformedResponseError):
        await _fetch(_client(recorder))


async def test_non_200_envelope_code_is_malformed():
    body = json.dumps({"code": 500, "status": "ERROR", "data": None}).encode()
    recorder = _Recorder(_status(200, content=body))
    with pytest.raises(RemoteMalformedResponseError) as exc:
        await _fetch(_client(recorder))
    assert exc.value.code == "REMOTE_MALFORMED_RESPONSE"


async def test_missing_timings_is_malformed():
    recorder = _Recorder(_status(200, json={"code": 200, "data": {}}))
    with pytest.raises(RemoteMalformedResponseError):
        await _fetch(_client(recorder))


def test_backoff_is_capped_with_jitter():
    client = ResilientAladhanClient(base_delay_ms=250, max_delay_ms=1000)
    for attempt in range(6):
        delay = client._backoff(attempt)
        assert 0 <= delay <= 1250
    assert 750 <= client._backoff(5) <= 1250
