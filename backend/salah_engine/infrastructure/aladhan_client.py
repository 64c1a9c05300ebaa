"""Resilient Aladhan Client — wraps httpx.AsyncClient with retry, backoff, and error mapping.

Invariants:
    - Rate limits (429): exponential backoff with jitter, respects Retry-After header
    - Transient errors (5xx, connection): max_retries retries with exponential backoff
    - Timeouts and client errors (4xx except 429): immediate failure, no retry
    - All failures mapped to RemoteUnavailableError / RemoteMalformedResponseError (core/errors.py)
    - Returns the raw "timings" object; parsing into a schedule belongs to core/remote_payload.py

Design Decisions:
    - Wrapper over raw client: isolates retry logic from the schedule service
    - ±25% jitter on backoff: prevents thundering herd after a provider outage
    - Injected transport: tests use httpx.MockTransport, no network
"""

import asyncio
import random
import logging
from datetime import date

import httpx

from salah_engine.core.calculation_methods import CalculationMethodProfile
from salah_engine.core.domain_types import AsrConvention
from salah_engine.core.errors import (
    ErrorContext,
    RemoteMalformedResponseError,
    RemoteUnavailableError,
)

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.aladhan.com/v1"


class _RetryableStatus(Exception):
    def __init__(self, response: httpx.Response):
        super().__init__(f"HTTP {response.status_code}")
        self.response = response


class ResilientAladhanClient:
    """RemoteTimingsProvider for api.aladhan.com."""

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        max_retries: int = 2,
        base_delay_ms: int = 250,
        max_delay_ms: int = 2000,
        timeout_seconds: float = 5.0,
        asr_convention: AsrConvention = AsrConvention.STANDARD,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            timeout=timeout_seconds,
            transport=transport,
        )
        self.max_retries = max_retries
        self.base_delay_ms = base_delay_ms
        self.max_delay_ms = max_delay_ms
        self.asr_convention = asr_convention

    async def aclose(self) -> None:
        await self.client.aclose()

    async def fetch_timings(
        self,
        latitude: float,
        longitude: float,
        day: date,
        method: CalculationMethodProfile,
        timezone_name: str | None,
    ) -> dict[str, str]:
        """GET /timings/{DD-MM-YYYY}; returns the provider's timings mapping."""
        path = f"/timings/{day.strftime('%d-%m-%Y')}"
        params = self._build_params(latitude, longitude, method, timezone_name)
        context = ErrorContext(method_id=method.id)

        for attempt in range(self.max_retries + 1):
            context.attempt = attempt + 1
            try:
                response = await self._call_api(path, params)
                logger.info(
                    "Aladhan API success",
                    extra={"attempt": attempt + 1, "method_id": method.id},
                )
                return self._extract_timings(response)

            except _RetryableStatus as e:
                if e.response.status_code == 429:
                    await self._handle_rate_limit(e.response, attempt, context)
                else:
                    await self._handle_transient_error(e, attempt, context)

            except httpx.TimeoutException:
                raise RemoteUnavailableError(
                    "request timed out", "timeout", context=context,
                )

            except httpx.TransportError as e:
                await self._handle_transient_error(e, attempt, context)

            except httpx.HTTPStatusError as e:
                raise RemoteUnavailableError(
                    str(e), "client_error", context=context,
                )

        # Unreachable: the last attempt either returns or raises
        raise RemoteUnavailableError("retries exhausted", "connection_error", context)

    def _build_params(
        self,
        latitude: float,
        longitude: float,
        method: CalculationMethodProfile,
        timezone_name: str | None,
    ) -> dict[str, str | int | float]:
        params: dict[str, str | int | float] = {
            "latitude": latitude,
            "longitude": longitude,
            "method": method.remote_method_id,
            "school": 1 if self.asr_convention is AsrConvention.HANAFI else 0,
        }
        settings = method.remote_settings()
        if settings is not None:
            params["methodSettings"] = settings
        if timezone_name:
            params["timezonestring"] = timezone_name
        return params

    async def _call_api(self, path: str, params: dict) -> httpx.Response:
        response = await self.client.get(path, params=params)
        if response.status_code == 429 or response.status_code >= 500:
            raise _RetryableStatus(response)
        response.raise_for_status()
        return response

    def _extract_timings(self, response: httpx.Response) -> dict[str, str]:
        try:
            body = response.json()
        except ValueError as e:
            raise RemoteMalformedResponseError(f"body is not JSON: {e}")
        if not isinstance(body, dict) or body.get("code") != 200:
            status = body.get("status") if isinstance(body, dict) else None
            raise RemoteMalformedResponseError(f"unexpected envelope (status={status!r})")
        data = body.get("data")
        timings = data.get("timings") if isinstance(data, dict) else None
        if not isinstance(timings, dict):
            raise RemoteMalformedResponseError("missing data.timings")
        return timings

    async def _handle_rate_limit(
        self, response: httpx.Response, attempt: int, context: ErrorContext,
    ) -> None:
        """Handle rate limit with retry or raise."""
        if attempt >= self.max_retries:
            raise RemoteUnavailableError(
                "rate limit exceeded after retries", "rate_limit", context=context,
            )
        delay = self._extract_retry_after(response) or self._backoff(attempt)
        logger.warning(
            f"Rate limit hit, retry after {delay}ms (attempt {attempt + 1})",
            extra={"attempt": attempt + 1, "method_id": context.method_id},
        )
        await asyncio.sleep(delay / 1000)

    async def _handle_transient_error(
        self, e: Exception, attempt: int, context: ErrorContext,
    ) -> None:
        """Handle transient errors with retry or raise."""
        if attempt >= self.max_retries:
            raise RemoteUnavailableError(
                f"transient failure after {self.max_retries} retries: {e}",
                "connection_error",
                context=context,
            )
        delay = self._backoff(attempt)
        logger.warning(
            f"Transient error, retry after {delay}ms: {e}",
            extra={"attempt": attempt + 1, "method_id": context.method_id},
        )
        await asyncio.sleep(delay / 1000)

    def _backoff(self, attempt: int) -> int:
        """Exponential backoff with ±25% jitter."""
        delay = min(self.max_delay_ms, (2 ** attempt) * self.base_delay_ms)
        return int(delay * random.uniform(0.75, 1.25))  # nosec B311

    def _extract_retry_after(self, response: httpx.Response) -> int | None:
        """Retry-After header in milliseconds, None when absent or not an integer."""
        val = response.headers.get("retry-after")
        if val and val.strip().isdigit():
            return int(val) * 1000
        return None
