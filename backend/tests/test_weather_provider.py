"""
FishLog Backend — AccuWeather Provider Unit Tests
===================================================

What:  Tests the provider against httpx.MockTransport; no network access.

What we test:
    ✅ Response mapping, including the current-conditions pressure fallback
    ✅ HTTP status → error code (401/403, 429, 4xx, 5xx)
    ✅ Retries on 5xx and transport errors, then bad_gateway
    ✅ Circuit breaker opens after consecutive failures and blocks requests
    ✅ Missing API key fails without sending anything
"""

from typing import Dict, List

import httpx
import pytest

from fishlog.services.weather_provider import (
    AccuWeatherProvider,
    CircuitBreaker,
    CircuitOpenError,
    WeatherProviderError,
)

HOURLY = [
    {
        "DateTime": "2025-01-15T09:00:00+01:00",
        "WeatherIcon": 7,
        "IconPhrase": "Cloudy",
        "Temperature": {"Value": 2.5, "Unit": "C"},
        "Wind": {"Speed": {"Value": 11.1, "Unit": "km/h"}, "Direction": {"Degrees": 270}},
        "RelativeHumidity": 81,
        "TotalLiquid": {"Value": 0.3, "Unit": "mm"},
        "CloudCover": 95,
    },
    {
        "DateTime": "2025-01-15T10:00:00+01:00",
        "WeatherIcon": 6,
        "IconPhrase": "Mostly cloudy",
        "Temperature": {"Value": 3.1, "Unit": "C"},
        "Pressure": {"Value": 1009.6},
    },
]
CURRENT = [{"Pressure": {"Metric": {"Value": 1013.2, "Unit": "mb"}}}]


class FakeAccuWeather:
    """Routes requests by path; records every request."""

    def __init__(self, overrides: Dict[str, object] = None):
        self.requests: List[httpx.Request] = []
        self.overrides = overrides or {}

    def paths(self, fragment: str) -> int:
        return sum(1 for request in self.requests if fragment in request.url.path)

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        for fragment, response in self.overrides.items():
            if fragment in request.url.path:
                if isinstance(response, Exception):
                    raise response
                return response
        if "geoposition" in request.url.path:
            return httpx.Response(200, json={"Key": "274663", "LocalizedName": "Warsaw"})
        if "currentconditions" in request.url.path:
            return httpx.Response(200, json=CURRENT)
        return httpx.Response(200, json=HOURLY)


def make_provider(handler: FakeAccuWeather, **kwargs) -> AccuWeatherProvider:
    kwargs.setdefault("api_key", "test-key")
    return AccuWeatherProvider(
        base_url="https://weather.test",
        transport=httpx.MockTransport(handler),
        **kwargs,
    )


class TestMapping:
    """Tests for fetch_hourly() on healthy responses."""

    @pytest.mark.asyncio
    async def test_hours_mapped(self):
        """Every AccuWeather field lands on the matching hour column."""
        handler = FakeAccuWeather()
        provider = make_provider(handler)

        hours = await provider.fetch_hourly(52.23, 21.01)
        await provider.close()

        first, second = hours
        assert first.observed_at.isoformat() == "2025-01-15T09:00:00+01:00"
        assert first.temperature_c == 2.5
        assert first.wind_speed_kmh == 11.1
        assert first.wind_direction == 270
        assert first.humidity_percent == 81
        assert first.precipitation_mm == 0.3
        assert first.cloud_cover == 95
        assert first.weather_icon == "7"
        assert first.weather_text == "Cloudy"
        # No hourly pressure: current conditions fill in
        assert first.pressure_hpa == 1013
        assert second.pressure_hpa == 1010

    @pytest.mark.asyncio
    async def test_api_key_and_coordinates_sent(self):
        """The key and "lat,lng" query are sent to the geoposition search."""
        handler = FakeAccuWeather()
        await make_provider(handler).fetch_hourly(52.23, 21.01)

        geo = next(r for r in handler.requests if "geoposition" in r.url.path)
        assert geo.url.params["apikey"] == "test-key"
        assert geo.url.params["q"] == "52.23,21.01"
        assert handler.paths("/forecasts/v1/hourly/12hour/274663") == 1

    @pytest.mark.asyncio
    async def test_current_conditions_failure_tolerated(self):
        """Hours are still returned, without the pressure fallback."""
        handler = FakeAccuWeather({"currentconditions": httpx.Response(404, json={})})

        hours = await make_provider(handler).fetch_hourly(52.23, 21.01)

        assert hours[0].pressure_hpa is None
        assert hours[1].pressure_hpa == 1010


class TestFailures:
    """Tests for error classification and retries."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "status, code",
        [(401, "configuration_error"), (403, "configuration_error"), (429, "rate_limited"), (400, "bad_gateway")],
    )
    async def test_status_codes(self, status, code):
        """4xx statuses map to provider error codes without retrying."""
        handler = FakeAccuWeather({"geoposition": httpx.Response(status, json={})})

        with pytest.raises(WeatherProviderError) as exc_info:
            await make_provider(handler).fetch_hourly(52.23, 21.01)

        assert exc_info.value.code == code
        assert exc_info.value.status_code == status
        assert handler.paths("geoposition") == 1

    @pytest.mark.asyncio
    async def test_server_error_retried(self):
        """5xx is retried up to RETRY_MAX_ATTEMPTS, then bad_gateway."""
        handler = FakeAccuWeather({"hourly": httpx.Response(503, text="busy")})

        with pytest.raises(WeatherProviderError) as exc_info:
            await make_provider(handler).fetch_hourly(52.23, 21.01)

        assert exc_info.value.code == "bad_gateway"
        assert exc_info.value.status_code == 503
        assert handler.paths("hourly") == 2

    @pytest.mark.asyncio
    async def test_timeout_retried(self):
        """Timeouts are retried and reported as bad_gateway."""
        handler = FakeAccuWeather({"geoposition": httpx.ConnectTimeout("timed out")})

        with pytest.raises(WeatherProviderError, match="timed out") as exc_info:
            await make_provider(handler).fetch_hourly(52.23, 21.01)

        assert exc_info.value.code == "bad_gateway"
        assert handler.paths("geoposition") == 2

    @pytest.mark.asyncio
    async def test_non_json_payload(self):
        """An HTML page instead of JSON is bad_gateway."""
        handler = FakeAccuWeather({"geoposition": httpx.Response(200, text="<html>maintenance</html>")})

        with pytest.raises(WeatherProviderError, match="non-JSON"):
            await make_provider(handler).fetch_hourly(52.23, 21.01)

    @pytest.mark.asyncio
    async def test_missing_location_key(self):
        """A geoposition result without Key is bad_gateway."""
        handler = FakeAccuWeather({"geoposition": httpx.Response(200, json={})})

        with pytest.raises(WeatherProviderError, match="no location key"):
            await make_provider(handler).fetch_hourly(52.23, 21.01)

    @pytest.mark.asyncio
    async def test_missing_api_key(self):
        """Without a key nothing is sent."""
        handler = FakeAccuWeather()
        provider = make_provider(handler, api_key="")

        with pytest.raises(WeatherProviderError) as exc_info:
            await provider.fetch_hourly(52.23, 21.01)

        assert exc_info.value.code == "configuration_error"
        assert handler.requests == []


class TestCircuitBreaker:
    """Tests for the circuit breaker, alone and in front of the provider."""

    def test_opens_after_threshold(self):
        """CLOSED → OPEN after failure_threshold consecutive failures."""
        breaker = CircuitBreaker(failure_threshold=3, recovery_timeout=60)
        for _ in range(3):
            breaker.record_failure()

        assert breaker.state == CircuitBreaker.OPEN
        with pytest.raises(CircuitOpenError):
            breaker.can_execute()

    def test_half_open_after_timeout(self):
        """OPEN → HALF_OPEN once recovery_timeout has passed; success closes it."""
        breaker = CircuitBreaker(failure_threshold=1, recovery_timeout=0)
        breaker.record_failure()

        assert breaker.can_execute() is True
        assert breaker.state == CircuitBreaker.HALF_OPEN
        breaker.record_success()
        assert breaker.state == CircuitBreaker.CLOSED
        assert breaker.failure_count == 0

    def test_half_open_failure_reopens(self):
        """A failed trial call sends the breaker back to OPEN."""
        breaker = CircuitBreaker(failure_threshold=5, recovery_timeout=0)
        breaker.state = CircuitBreaker.HALF_OPEN
        breaker.record_failure()
        assert breaker.state == CircuitBreaker.OPEN

    @pytest.mark.asyncio
    async def test_provider_stops_calling_when_open(self):
        """After two failed fetches the third is refused without a request."""
        handler = FakeAccuWeather({"geoposition": httpx.Response(400, json={})})
        provider = make_provider(handler, circuit_breaker=CircuitBreaker(failure_threshold=2, recovery_timeout=60))

        for _ in range(2):
            with pytest.raises(WeatherProviderError):
                await provider.fetch_hourly(52.23, 21.01)
        sent = len(handler.requests)

        with pytest.raises(CircuitOpenError) as exc_info:
            await provider.fetch_hourly(52.23, 21.01)

        assert exc_info.value.code == "circuit_open"
        assert len(handler.requests) == sent

    @pytest.mark.asyncio
    async def test_configuration_errors_do_not_trip_breaker(self):
        """A rejected key is not counted as a provider failure."""
        handler = FakeAccuWeather({"geoposition": httpx.Response(401, json={})})
        breaker = CircuitBreaker(failure_threshold=1)
        provider = make_provider(handler, circuit_breaker=breaker)

        with pytest.raises(WeatherProviderError):
            await provider.fetch_hourly(52.23, 21.01)

        assert breaker.state == CircuitBreaker.CLOSED
        assert breaker.failure_count == 0
