"""SerpApi integration for allintitle counts (KGR) and account quota.

KGR (Keyword Golden Ratio) = allintitle result count / monthly search volume.
"""

import logging
from typing import Any

import httpx

from keywordlab.config import settings
from keywordlab.core.exceptions import (
    APIKeyMissingError,
    ExternalAPIError,
    InvalidResponseFormatError,
    ProviderCallFailedError,
    RateLimitExceededError,
)
from keywordlab.schemas.keyword import KgrRating, QuotaState
from keywordlab.services.providers import RankingSignal

logger = logging.getLogger(__name__)

API_NAME = "SerpApi"


def rate_kgr(
    kgr: float,
    *,
    great_threshold: float | None = None,
    might_work_threshold: float | None = None,
) -> KgrRating:
    """Bucket a KGR value using the configured thresholds."""
    great = settings.kgr_great_threshold if great_threshold is None else great_threshold
    might_work = (
        settings.kgr_might_work_threshold
        if might_work_threshold is None
        else might_work_threshold
    )
    if kgr < great:
        return "great"
    if kgr <= might_work:
        return "might_work"
    return "bad"


class SerpApiClient:
    """Client for SerpApi.

    Provides methods for:
    - Account usage (searches per month / left this month)
    - allintitle result counts, turned into a KGR score
    """

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        timeout: float | None = None,
    ) -> None:
        self.api_key = api_key or settings.serpapi_api_key
        self.base_url = (base_url or settings.serpapi_base_url).rstrip("/")
        self.timeout = timeout or settings.serpapi_timeout
        self._client: httpx.AsyncClient | None = None

        if not self.api_key:
            raise APIKeyMissingError(API_NAME)

    async def __aenter__(self) -> "SerpApiClient":
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.timeout,
            headers={"Accept": "application/json"},
        )
        return self

    async def __aexit__(self, *args: Any) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            raise RuntimeError("Client must be used as async context manager")
        return self._client

    async def _get(self, path: str, params: dict[str, Any]) -> dict[str, Any]:
        """GET a SerpApi endpoint and return its JSON object."""
        logger.info("SerpApi request", extra={"path": path})
        try:
            response = await self.client.get(path, params={**params, "api_key": self.api_key})
        except httpx.HTTPError as e:
            logger.warning("SerpApi HTTP error", extra={"path": path, "error": str(e)})
            raise ExternalAPIError(API_NAME, str(e)) from e

        if response.status_code == 429:
            logger.warning("SerpApi rate limit hit", extra={"path": path})
            raise RateLimitExceededError(API_NAME)
        if response.status_code >= 400:
            logger.warning(
                "SerpApi API error",
                extra={"path": path, "status": response.status_code},
            )
            raise ExternalAPIError(API_NAME, f"HTTP {response.status_code}")

        try:
            payload = response.json()
        except ValueError as e:
            raise ExternalAPIError(API_NAME, "Response is not valid JSON") from e
        if not isinstance(payload, dict):
            raise ExternalAPIError(API_NAME, "Response is not a JSON object")
        if payload.get("error"):
            raise ExternalAPIError(API_NAME, str(payload["error"]))
        return payload

    async def get_usage(self) -> QuotaState:
        """Get searches used/total/remaining for the current billing month."""
        payload = await self._get("/account.json", {})
        try:
            return QuotaState.from_counts(
                total=payload.get("searches_per_month"),
                remaining=payload.get("plan_searches_left"),
                used=payload.get("this_month_usage"),
            )
        except (TypeError, ValueError) as e:
            raise ExternalAPIError(API_NAME, f"Unexpected account payload: {e}") from e

    async def get_title_match_count(self, keyword: str) -> int:
        """Count pages with every keyword term in their title (allintitle)."""
        payload = await self._get(
            "/search.json",
            {
                "engine": "google",
                "q": f'allintitle:"{keyword}"',
                "google_domain": settings.serpapi_google_domain,
                "num": 10,
            },
        )
        info = payload.get("search_information")
        if not isinstance(info, dict):
            raise InvalidResponseFormatError(API_NAME, keyword, "Missing search_information")

        # SerpApi omits total_results when Google reports no results at all
        total_results = info.get("total_results", 0)
        if isinstance(total_results, bool) or not isinstance(total_results, int | float):
            raise InvalidResponseFormatError(API_NAME, keyword, "total_results is not a number")
        return int(total_results)

    async def score_one(self, keyword: str, volume: int) -> RankingSignal:
        """Compute the KGR score for one keyword.

        Raises:
            ProviderCallFailedError: the lookup failed.
            InvalidResponseFormatError: the lookup answered with an unusable payload.
        """
        if volume <= 0:
            raise ProviderCallFailedError(API_NAME, keyword, "Search volume must be positive")

        try:
            title_matches = await self.get_title_match_count(keyword)
        except InvalidResponseFormatError:
            raise
        except ExternalAPIError as e:
            raise ProviderCallFailedError(API_NAME, keyword, e.message) from e

        kgr = title_matches / volume
        rating = rate_kgr(kgr)
        logger.info(
            "KGR computed",
            extra={
                "keyword": keyword,
                "title_matches": title_matches,
                "volume": volume,
                "kgr": round(kgr, 4),
                "kgr_rating": rating,
            },
        )
        return RankingSignal(title_matches=title_matches, kgr=kgr, kgr_rating=rating)
