import httpx
import pytest

from toolbox.fetch import (
    FetchErrorKind,
    fetch_json,
    fetch_location,
    fetch_with_bearer_token,
    make_nws_request,
)


class TestFetchJson:
    @pytest.mark.asyncio
    async def test_success_returns_parsed_body(self, mock_http):
        mock_http(lambda request: httpx.Response(200, json={"answer": 42}))
        result = await fetch_json("https://api.test/thing", {})
        assert result.ok
        assert result.data == {"answer": 42}
        assert result.status_code == 200

    @pytest.mark.asyncio
    async def test_non_success_status_is_status_error(self, mock_http):
        mock_http(lambda request: httpx.Response(503, json={"detail": "down"}))
        result = await fetch_json("https://api.test/thing", {})
        assert not result.ok
        assert result.error is FetchErrorKind.STATUS
        assert result.status_code == 503
        assert result.detail == "HTTP error! status: 503"

    @pytest.mark.asyncio
    async def test_transport_failure_is_network_error(self, mock_http):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        mock_http(handler)
        result = await fetch_json("https://api.test/thing", {})
        assert result.error is FetchErrorKind.NETWORK
        assert "connection refused" in result.detail
        assert result.data is None

    @pytest.mark.asyncio
    async def test_malformed_body_is_decode_error(self, mock_http):
        mock_http(lambda request: httpx.Response(200, text="<html>not json</html>"))
        result = await fetch_json("https://api.test/thing", {})
        assert result.error is FetchErrorKind.DECODE
        assert result.status_code == 200


class TestNullSentinelHelpers:
    @pytest.mark.asyncio
    async def test_nws_request_sends_geojson_headers(self, mock_http):
        seen = mock_http(lambda request: httpx.Response(200, json={"properties": {}}))
        data = await make_nws_request("https://api.weather.gov/points/1,2")
        assert data == {"properties": {}}
        assert seen[0].headers["User-Agent"] == "weather-app/1.0"
        assert seen[0].headers["Accept"] == "application/geo+json"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [400, 404, 500])
    async def test_nws_request_returns_none_on_error_status(self, mock_http, status):
        mock_http(lambda request: httpx.Response(status))
        assert await make_nws_request("https://api.weather.gov/points/1,2") is None

    @pytest.mark.asyncio
    async def test_bearer_token_is_sent(self, mock_http):
        seen = mock_http(lambda request: httpx.Response(200, json=[1, 2, 3]))
        data = await fetch_with_bearer_token("https://courses.test/api", "s3cret")
        assert data == [1, 2, 3]
        assert seen[0].headers["Authorization"] == "Bearer s3cret"
        assert seen[0].headers["Accept"] == "application/json"

    @pytest.mark.asyncio
    async def test_empty_token_still_requests_and_rejection_is_none(self, mock_http):
        seen = mock_http(lambda request: httpx.Response(401, json={"error": "unauthorized"}))
        assert await fetch_with_bearer_token("https://courses.test/api", "") is None
        assert len(seen) == 1
        assert seen[0].headers["Authorization"].startswith("Bearer")

    @pytest.mark.asyncio
    async def test_location_lookup_uses_ipapi(self, mock_http):
        seen = mock_http(lambda request: httpx.Response(200, json={"latitude": 1.5}))
        result = await fetch_location()
        assert result.data == {"latitude": 1.5}
        assert str(seen[0].url) == "https://ipapi.co/json/"
