"""Unit tests for the SerpApi client (quota + KGR lookups)."""

from __future__ import annotations

from typing import Any

import httpx
import pytest

from keywordlab.config import settings
from keywordlab.core.exceptions import (
    APIKeyMissingError,
    ExternalAPIError,
    InvalidResponseFormatError,
    ProviderCallFailedError,
    RateLimitExceededError,
)
from keywordlab.integrations.serpapi import SerpApiClient, rate_kgr


class _FakeResponse:
    def __init__(self, status_code: int, payload: Any) -> None:
        self.status_code = status_code
        self._payload = payload

    def json(self) -> Any:
        return self._payload


def _install_fake_client(
    monkeypatch: pytest.MonkeyPatch,
    responses: dict[str, _FakeResponse | Exception],
) -> list[dict[str, Any]]:
    captured: list[dict[str, Any]] = []

    class FakeAsyncClient:
        def __init__(self, *args: Any, **kwargs: Any) -> None:
            captured.append({"init": kwargs})

        async def get(self, path: str, params: dict[str, Any]) -> _FakeResponse:
            captured.append({"path": path, "params": params})
            outcome = responses[path]
            if isinstance(outcome, Exception):
                raise outcome
            return outcome

        async def aclose(self) -> None:
            return None

    monkeypatch.setattr("keywordlab.integrations.serpapi.httpx.AsyncClient", FakeAsyncClient)
    return captured


def test_rate_kgr_thresholds() -> None:
    assert rate_kgr(0.1) == "great"
    assert rate_kgr(0.25) == "might_work"
    assert rate_kgr(1.0) == "might_work"
    assert rate_kgr(1.01) == "bad"
    assert rate_kgr(0.3, great_threshold=0.5) == "great"


def test_client_requires_api_key() -> None:
    original_key = settings.serpapi_api_key
    try:
        settings.serpapi_api_key = None
        with pytest.raises(APIKeyMissingError):
            SerpApiClient()
    finally:
        settings.serpapi_api_key = original_key


@pytest.mark.asyncio
async def test_get_usage_maps_account_payload(monkeypatch: pytest.MonkeyPatch) -> None:
    captured = _install_fake_client(
        monkeypatch,
        {
            "/account.json": _FakeResponse(
                200,
                {"searches_per_month": 14999, "plan_searches_left": 14000, "this_month_usage": 999},
            )
        },
    )

    async with SerpApiClient(api_key="test-key") as client:
        usage = await client.get_usage()

    assert (usage.used, usage.total, usage.remaining) == (999, 14999, 14000)
    assert captured[1]["params"]["api_key"] == "test-key"


@pytest.mark.asyncio
async def test_score_one_computes_kgr_from_allintitle(monkeypatch: pytest.MonkeyPatch) -> None:
    captured = _install_fake_client(
        monkeypatch,
        {"/search.json": _FakeResponse(200, {"search_information": {"total_results": 20}})},
    )

    async with SerpApiClient(api_key="test-key") as client:
        signal = await client.score_one("trail running shoes", 100)

    assert captured[1]["params"]["q"] == 'allintitle:"trail running shoes"'
    assert signal.title_matches == 20
    assert signal.kgr == pytest.approx(0.2)
    assert signal.kgr_rating == "great"


@pytest.mark.asyncio
async def test_score_one_treats_missing_total_as_zero(monkeypatch: pytest.MonkeyPatch) -> None:
    _install_fake_client(
        monkeypatch,
        {"/search.json": _FakeResponse(200, {"search_information": {}})},
    )

    async with SerpApiClient(api_key="test-key") as client:
        signal = await client.score_one("obscure widget", 40)

    assert signal.kgr == 0
    assert signal.kgr_rating == "great"


@pytest.mark.asyncio
async def test_score_one_rejects_malformed_payload(monkeypatch: pytest.MonkeyPatch) -> None:
    _install_fake_client(
        monkeypatch,
        {"/search.json": _FakeResponse(200, {"organic_results": []})},
    )

    async with SerpApiClient(api_key="test-key") as client:
        with pytest.raises(InvalidResponseFormatError) as exc_info:
            await client.score_one("widget", 40)

    assert exc_info.value.error_code == "invalid_response_format"
    assert exc_info.value.keyword == "widget"


@pytest.mark.asyncio
async def test_score_one_wraps_transport_errors(monkeypatch: pytest.MonkeyPatch) -> None:
    _install_fake_client(
        monkeypatch,
        {"/search.json": httpx.ConnectError("connection refused")},
    )

    async with SerpApiClient(api_key="test-key") as client:
        with pytest.raises(ProviderCallFailedError) as exc_info:
            await client.score_one("widget", 40)

    assert exc_info.value.error_code == "provider_call_failed"


@pytest.mark.asyncio
async def test_rate_limit_and_api_errors(monkeypatch: pytest.MonkeyPatch) -> None:
    _install_fake_client(
        monkeypatch,
        {
            "/account.json": _FakeResponse(429, {}),
            "/search.json": _FakeResponse(200, {"error": "Invalid API key."}),
        },
    )

    async with SerpApiClient(api_key="test-key") as client:
        with pytest.raises(RateLimitExceededError):
            await client.get_usage()
        with pytest.raises(ExternalAPIError, match="Invalid API key"):
            await client.get_title_match_count("widget")
