"""
FishLog Backend — AccuWeather Provider
========================================

What:  Fetches hourly weather for a coordinate from the AccuWeather API.
Why:   Trips record the weather they were fished in; refresh pulls it from
       the provider instead of making the user type it in.
How:   Three calls per fetch:

           1. /locations/v1/cities/geoposition/search?q=lat,lng   → location Key
           2. /currentconditions/v1/{key}?details=true            → pressure (optional)
           3. /forecasts/v1/hourly/12hour/{key}?details=true&metric=true

       The hourly forecast carries no pressure on the free tier, so the
       current-conditions pressure fills hours that lack one. Failure of
       call 2 is tolerated; failure of 1 or 3 fails the fetch.

Resilience Strategy:
    1. Tenacity retry with exponential backoff + jitter on transport errors
       and 5xx responses
    2. Circuit breaker in front of every fetch; configuration errors (bad
       key) do not count as provider failures

Error Codes (WeatherProviderError.code):
    configuration_error   missing key, 401/403
    rate_limited          429
    bad_gateway           timeouts, network errors, 5xx, other 4xx, garbage payloads
    circuit_open          breaker is open, no request was sent
"""

import asyncio
import logging
import time
from typing import Any, Dict, List, Optional

import httpx
from pydantic import ValidationError as PydanticValidationError
from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential_jitter,
)

from fishlog.config import settings
from fishlog.schemas.weather import WeatherHourInput

logger = logging.getLogger(__name__)


class WeatherProviderError(Exception):
    def __init__(self, code: str, message: str, status_code: Optional[int] = None):
        self.code = code
        self.message = message
        self.status_code = status_code
        super().__init__(message)


class UpstreamUnavailableError(WeatherProviderError):
    """5xx from the provider. Retried."""

    def __init__(self, status_code: int):
        super().__init__("bad_gateway", f"Weather provider returned HTTP {status_code}", status_code)


class CircuitOpenError(WeatherProviderError):
    def __init__(self, retry_after: int):
        super().__init__(
            "circuit_open",
            f"Weather provider temporarily disabled, retry in {retry_after}s",
        )
        self.retry_after = retry_after


# ══════════════════════════════════════════════════════════════════════════
# Circuit Breaker
# ══════════════════════════════════════════════════════════════════════════

class CircuitBreaker:
    """
    Consecutive-failure circuit breaker.

    State Machine:
        CLOSED     normal operation; failures are counted
                   → OPEN once failure_count >= failure_threshold
        OPEN       every call raises CircuitOpenError immediately
                   → HALF_OPEN after recovery_timeout seconds
        HALF_OPEN  one call is let through
                   → CLOSED on success, back to OPEN on failure

    Not thread-safe; uvicorn async workers share one event loop per process.
    """

    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"

    def __init__(self, failure_threshold: int = 5, recovery_timeout: int = 60):
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self.failure_count = 0
        self.state = self.CLOSED
        self.last_failure_time: Optional[float] = None

    def can_execute(self) -> bool:
        """True when a call may proceed; raises CircuitOpenError otherwise."""
        if self.state != self.OPEN:
            return True

        elapsed = time.monotonic() - (self.last_failure_time or 0)
        if elapsed >= self.recovery_timeout:
            logger.info("Circuit breaker transitioning to HALF_OPEN after %.1fs", elapsed)
            self.state = self.HALF_OPEN
            return True
        raise CircuitOpenError(retry_after=int(self.recovery_timeout - elapsed))

    def record_success(self) -> None:
        if self.state == self.HALF_OPEN:
            logger.info("Circuit breaker transitioning to CLOSED (provider recovered)")
        self.failure_count = 0
        self.state = self.CLOSED
        self.last_failure_time = None

    def record_failure(self) -> None:
        self.failure_count += 1
        self.last_failure_time = time.monotonic()

        if self.state == self.HALF_OPEN:
            logger.warning("Circuit breaker returning to OPEN (test request failed)")
            self.state = self.OPEN
        elif self.failure_count >= self.failure_threshold:
            logger.warning(
                "Circuit breaker OPENING after %d consecutive failures",
                self.failure_count,
            )
            self.state = self.OPEN


# ══════════════════════════════════════════════════════════════════════════
# AccuWeather Provider
# ══════════════════════════════════════════════════════════════════════════

def _nested(item: Dict[str, Any], *keys: str) -> Any:
    value: Any = item
    for key in keys:
        if not isinstance(value, dict):
            return None
        value = value.get(key)
    return value


class AccuWeatherProvider:
    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        circuit_breaker: Optional[CircuitBreaker] = None,
    ):
        self.api_key = settings.weather_api_key if api_key is None else api_key
        self.base_url = (base_url or settings.weather_base_url).rstrip("/")
        self.timeout = timeout or settings.weather_timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None
        self.circuit_breaker = circuit_breaker or CircuitBreaker(
            failure_threshold=settings.cb_failure_threshold,
            recovery_timeout=settings.cb_recovery_timeout,
        )

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                headers={"Accept": "application/json"},
                timeout=self.timeout,
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    @retry(
        retry=retry_if_exception_type((httpx.TransportError, UpstreamUnavailableError)),
        stop=stop_after_attempt(settings.retry_max_attempts),
        wait=wait_exponential_jitter(
            initial=settings.retry_min_wait,
            max=settings.retry_max_wait,
            jitter=1,
        ),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )
    async def _send(self, endpoint: str, params: Dict[str, str]) -> httpx.Response:
        client = await self._get_client()
        response = await client.get(endpoint, params={"apikey": self.api_key, **params})
        if response.status_code >= 500:
            raise UpstreamUnavailableError(response.status_code)
        return response

    async def _get_json(self, endpoint: str, params: Dict[str, str]) -> Any:
        try:
            response = await self._send(endpoint, params)
        except httpx.TimeoutException as exc:
            raise WeatherProviderError("bad_gateway", f"Weather provider timed out: {exc}") from exc
        except httpx.RequestError as exc:
            raise WeatherProviderError("bad_gateway", f"Weather provider network error: {exc}") from exc

        status = response.status_code
        if status in (401, 403):
            raise WeatherProviderError("configuration_error", "Weather provider rejected the API key", status)
        if status == 429:
            raise WeatherProviderError("rate_limited", "Weather provider rate limit exceeded", status)
        if status >= 400:
            raise WeatherProviderError("bad_gateway", f"Weather provider error: {status}", status)

        try:
            return response.json()
        except ValueError as exc:
            raise WeatherProviderError("bad_gateway", "Weather provider returned non-JSON payload") from exc

    async def _location_key(self, lat: float, lng: float) -> str:
        body = await self._get_json(
            "/locations/v1/cities/geoposition/search",
            {"q": f"{lat},{lng}", "details": "false"},
        )
        key = body.get("Key") if isinstance(body, dict) else None
        if not key:
            raise WeatherProviderError("bad_gateway", "Weather provider returned no location key")
        return str(key)

    async def _current_pressure(self, location_key: str) -> Optional[int]:
        try:
            body = await self._get_json(f"/currentconditions/v1/{location_key}", {"details": "true"})
        except WeatherProviderError as exc:
            logger.info("Current conditions unavailable for %s: %s", location_key, exc.message)
            return None
        if not isinstance(body, list) or not body:
            return None
        value = _nested(body[0], "Pressure", "Metric", "Value")
        return round(value) if isinstance(value, (int, float)) else None

    async def _hourly(self, location_key: str) -> List[Dict[str, Any]]:
        body = await self._get_json(
            f"/forecasts/v1/hourly/12hour/{location_key}",
            {"details": "true", "metric": "true"},
        )
        if not isinstance(body, list):
            raise WeatherProviderError("bad_gateway", "Weather provider returned a non-list forecast")
        return [item for item in body if isinstance(item, dict)]

    @staticmethod
    def map_hour(item: Dict[str, Any], fallback_pressure: Optional[int] = None) -> WeatherHourInput:
        """Map one AccuWeather hourly forecast entry onto a weather hour."""
        pressure = _nested(item, "Pressure", "Value")
        icon = item.get("WeatherIcon")
        return WeatherHourInput(
            observed_at=item.get("DateTime"),
            temperature_c=_nested(item, "Temperature", "Value"),
            pressure_hpa=round(pressure) if isinstance(pressure, (int, float)) else fallback_pressure,
            wind_speed_kmh=_nested(item, "Wind", "Speed", "Value"),
            wind_direction=_nested(item, "Wind", "Direction", "Degrees"),
            humidity_percent=item.get("RelativeHumidity"),
            precipitation_mm=_nested(item, "TotalLiquid", "Value"),
            cloud_cover=item.get("CloudCover"),
            weather_icon=str(icon) if icon is not None else None,
            weather_text=item.get("IconPhrase"),
        )

    async def fetch_hourly(self, lat: float, lng: float) -> List[WeatherHourInput]:
        """
        Hourly weather around (lat, lng).

        Raises:
            WeatherProviderError: on any provider failure (see module docstring)
        """
        if not self.configured:
            raise WeatherProviderError("configuration_error", "Weather provider API key is not configured")

        self.circuit_breaker.can_execute()
        start_time = time.monotonic()
        try:
            location_key = await self._location_key(lat, lng)
            pressure, items = await asyncio.gather(
                self._current_pressure(location_key),
                self._hourly(location_key),
            )
            try:
                hours = [self.map_hour(item, pressure) for item in items]
            except PydanticValidationError as exc:
                raise WeatherProviderError("bad_gateway", f"Weather provider returned malformed hours: {exc}") from exc
        except WeatherProviderError as exc:
            if exc.code != "configuration_error":
                self.circuit_breaker.record_failure()
            logger.warning("Weather fetch for %.4f,%.4f failed: [%s] %s", lat, lng, exc.code, exc.message)
            raise

        self.circuit_breaker.record_success()
        logger.info(
            "Weather fetched for %.4f,%.4f in %.0fms (%d hours)",
            lat,
            lng,
            (time.monotonic() - start_time) * 1000,
            len(hours),
        )
        return hours
