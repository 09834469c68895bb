"""
Unit tests for the DataForSEO ranking provider
"""

import pytest
import httpx
from unittest.mock import Mock, AsyncMock, patch
from core.exceptions import (
    AuthError,
    ConfigError,
    InvalidResponseError,
    ProviderTimeoutError,
    RateLimitedError,
)
from models.base import Device, RankingSource
from tracking.providers.base import language_for_location
from tracking.providers.dataforseo import DataForSEOClient


def make_client():
    return DataForSEOClient(
        login="user@example.com",
        password="secret",
        base_url="https://api.example.com/v3",
        timeout=5.0,
        depth=100
    )


def mock_response(status_code=200, json_data=None, headers=None, text=""):
    response = Mock()
    response.status_code = status_code
    response.headers = headers or {}
    response.text = text
    if isinstance(json_data, Exception):
        response.json.side_effect = json_data
    else:
        response.json.return_value = json_data
    return response


class TestDataForSEOClient:
    """Response parsing and error mapping"""

    @pytest.mark.asyncio
    async def test_fetch_position_success(self, serp_response):
        client = make_client()

        with patch("httpx.AsyncClient") as mock_client:
            post = AsyncMock(return_value=mock_response(json_data=serp_response))
            mock_client.return_value.__aenter__.return_value.post = post

            result = await client.fetch_position("best coffee", 2840, Device.DESKTOP, "acme.com")

        assert result.position == 4
        assert result.url == "https://www.acme.com/coffee"
        assert result.features == ["Featured Snippet", "People Also Ask", "Image Pack"]
        assert result.source == RankingSource.DATAFORSEO
        assert result.raw["keyword"] == "best coffee"

        url = post.call_args.args[0]
        task = post.call_args.kwargs["json"][0]
        assert url == "https://api.example.com/v3/serp/google/organic/live/advanced"
        assert task == {
            "keyword": "best coffee",
            "location_code": 2840,
            "language_code": "en",
            "device": "desktop",
            "depth": 100,
        }

    @pytest.mark.asyncio
    async def test_domain_not_ranking(self, serp_response):
        client = make_client()

        with patch("httpx.AsyncClient") as mock_client:
            mock_client.return_value.__aenter__.return_value.post = AsyncMock(
                return_value=mock_response(json_data=serp_response)
            )
            result = await client.fetch_position("best coffee", 2840, Device.DESKTOP, "nowhere.org")

        assert result.position is None
        assert result.url is None
        assert "Featured Snippet" in result.features

    def test_mobile_task_uses_android(self):
        task = make_client().build_task("koffie", 2528, Device.MOBILE)
        assert task["os"] == "android"
        assert task["language_code"] == "nl"
        assert task["device"] == "mobile"

    def test_parse_without_domain_has_no_position(self, serp_response):
        result = make_client().parse_result(serp_response["tasks"][0]["result"][0], None)
        assert result.position is None

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status_code", [401, 403])
    async def test_auth_failure(self, status_code):
        client = make_client()

        with patch("httpx.AsyncClient") as mock_client:
            mock_client.return_value.__aenter__.return_value.post = AsyncMock(
                return_value=mock_response(status_code=status_code)
            )
            with pytest.raises(AuthError) as exc_info:
                await client.fetch_position("best coffee", 2840, Device.DESKTOP, "acme.com")

        assert exc_info.value.context["status_code"] == status_code

    @pytest.mark.asyncio
    async def test_rate_limited_with_retry_after(self):
        client = make_client()

        with patch("httpx.AsyncClient") as mock_client:
            mock_client.return_value.__aenter__.return_value.post = AsyncMock(
                return_value=mock_response(status_code=429, headers={"Retry-After": "7"})
            )
            with pytest.raises(RateLimitedError) as exc_info:
                await client.fetch_position("best coffee", 2840, Device.DESKTOP, "acme.com")

        assert exc_info.value.retry_after == 7.0

    @pytest.mark.asyncio
    async def test_provider_rate_limit_status(self, serp_response):
        serp_response["tasks"][0]["status_code"] = 40202
        serp_response["tasks"][0]["status_message"] = "Rate limit per minute exceeded."
        client = make_client()

        with patch("httpx.AsyncClient") as mock_client:
            mock_client.return_value.__aenter__.return_value.post = AsyncMock(
                return_value=mock_response(json_data=serp_response)
            )
            with pytest.raises(RateLimitedError):
                await client.fetch_position("best coffee", 2840, Device.DESKTOP, "acme.com")

    @pytest.mark.asyncio
    async def test_timeout(self):
        client = make_client()

        with patch("httpx.AsyncClient") as mock_client:
            mock_client.return_value.__aenter__.return_value.post = AsyncMock(
                side_effect=httpx.ReadTimeout("timed out")
            )
            with pytest.raises(ProviderTimeoutError):
                await client.fetch_position("best coffee", 2840, Device.DESKTOP, "acme.com")

    @pytest.mark.asyncio
    async def test_connection_error_is_invalid_response(self):
        client = make_client()

        with patch("httpx.AsyncClient") as mock_client:
            mock_client.return_value.__aenter__.return_value.post = AsyncMock(
                side_effect=httpx.ConnectError("Connection refused")
            )
            with pytest.raises(InvalidResponseError):
                await client.fetch_position("best coffee", 2840, Device.DESKTOP, "acme.com")

    @pytest.mark.asyncio
    async def test_undecodable_body(self):
        client = make_client()

        with patch("httpx.AsyncClient") as mock_client:
            mock_client.return_value.__aenter__.return_value.post = AsyncMock(
                return_value=mock_response(json_data=ValueError("Expecting value"), text="<html>")
            )
            with pytest.raises(InvalidResponseError):
                await client.fetch_position("best coffee", 2840, Device.DESKTOP, "acme.com")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("payload", [
        {"status_code": 20000, "tasks": []},
        {"status_code": 20000, "tasks": [{"status_code": 20000, "result": None}]},
        {"status_code": 20000, "tasks": [{"status_code": 40501, "status_message": "Invalid Field"}]},
        {"status_code": 50000, "status_message": "Internal Error."},
    ])
    async def test_unsuccessful_payloads(self, payload):
        client = make_client()

        with patch("httpx.AsyncClient") as mock_client:
            mock_client.return_value.__aenter__.return_value.post = AsyncMock(
                return_value=mock_response(json_data=payload)
            )
            with pytest.raises(InvalidResponseError):
                await client.fetch_position("best coffee", 2840, Device.DESKTOP, "acme.com")

    def test_missing_credentials(self):
        with patch("tracking.providers.dataforseo.settings") as mock_settings:
            mock_settings.DATAFORSEO_LOGIN = None
            mock_settings.DATAFORSEO_PASSWORD = None
            mock_settings.DATAFORSEO_BASE_URL = "https://api.example.com/v3"
            with pytest.raises(ConfigError):
                DataForSEOClient()


class TestLanguageMap:

    @pytest.mark.parametrize("location_code,language", [
        (2840, "en"),
        (2528, "nl"),
        (2705, "sl"),
        (2276, "de"),
        (9999, "en"),
    ])
    def test_language_for_location(self, location_code, language):
        assert language_for_location(location_code) == language
