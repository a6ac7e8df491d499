"""Unit tests for Stage 1 KGR scoring."""

from __future__ import annotations

import pytest

from keywordlab.core.exceptions import (
    InvalidResponseFormatError,
    ProviderCallFailedError,
    QuotaExceededError,
)
from keywordlab.schemas.keyword import QuotaState
from keywordlab.services.providers import RankingSignal
from keywordlab.services.quota import QuotaTracker
from keywordlab.services.stages import stage_1_kgr
from keywordlab.services.stages.stage_1_kgr import Stage1KgrScorer
from keywordlab.services.stages.types import KeywordInput


class _FakeQuotaProvider:
    def __init__(self, remaining: int, total: int = 100) -> None:
        self.state = QuotaState.from_counts(total=total, remaining=remaining)
        self.calls = 0

    async def get_usage(self) -> QuotaState:
        self.calls += 1
        return self.state


class _CountingRankingProvider:
    def __init__(self, failures: dict[str, Exception] | None = None) -> None:
        self.failures = failures or {}
        self.calls: list[str] = []

    async def score_one(self, keyword: str, volume: int) -> RankingSignal:
        self.calls.append(keyword)
        if keyword in self.failures:
            raise self.failures[keyword]
        return RankingSignal(title_matches=10, kgr=10 / volume, kgr_rating="great")


@pytest.fixture
def sleeps(monkeypatch: pytest.MonkeyPatch) -> list[float]:
    recorded: list[float] = []

    async def _fake_sleep(delay: float) -> None:
        recorded.append(delay)

    monkeypatch.setattr(stage_1_kgr.asyncio, "sleep", _fake_sleep)
    return recorded


def _inputs(volumes: list[int]) -> list[KeywordInput]:
    return [KeywordInput(keyword=f"kw-{i}", volume=v) for i, v in enumerate(volumes)]


def _scorer(
    provider: _CountingRankingProvider,
    quota_provider: _FakeQuotaProvider,
) -> Stage1KgrScorer:
    return Stage1KgrScorer(provider, QuotaTracker(quota_provider), delay_seconds=1.5)


@pytest.mark.asyncio
async def test_mixed_volumes_only_call_eligible_keywords(sleeps: list[float]) -> None:
    provider = _CountingRankingProvider()
    quota_provider = _FakeQuotaProvider(remaining=10)
    keywords = _inputs([50, 300, 0, 10, 250])

    results = await _scorer(provider, quota_provider).run(keywords)

    assert list(results) == [kw.keyword for kw in keywords]
    assert provider.calls == ["kw-0", "kw-3", "kw-4"]
    for skipped in ("kw-1", "kw-2"):
        assert results[skipped].kgr is None
        assert results[skipped].kgr_rating == "not_applicable"
        assert results[skipped].error == "Volume exceeds KGR limit (250)"
        assert results[skipped].error_code == "volume_out_of_range"
    assert results["kw-0"].kgr == pytest.approx(0.2)
    assert results["kw-0"].error is None
    # Delay after every provider call except when it was the last keyword
    assert sleeps == [1.5, 1.5]


@pytest.mark.asyncio
async def test_no_eligible_keywords_skips_quota_and_calls(sleeps: list[float]) -> None:
    provider = _CountingRankingProvider()
    quota_provider = _FakeQuotaProvider(remaining=0)
    progress: list[float] = []

    results = await _scorer(provider, quota_provider).run(
        _inputs([0, 1000, 5000, 300]),
        progress.append,
    )

    assert quota_provider.calls == 0
    assert provider.calls == []
    assert list(results) == ["kw-0", "kw-1", "kw-2", "kw-3"]
    assert {r.kgr_rating for r in results.values()} == {"not_applicable"}
    assert progress == [12.5, 25.0, 37.5, 50.0]
    assert sleeps == []


@pytest.mark.asyncio
async def test_insufficient_quota_fails_before_any_call(sleeps: list[float]) -> None:
    provider = _CountingRankingProvider()
    quota_provider = _FakeQuotaProvider(remaining=2)

    with pytest.raises(QuotaExceededError) as exc_info:
        await _scorer(provider, quota_provider).run(_inputs([10, 20, 30]))

    assert exc_info.value.needed == 3
    assert exc_info.value.remaining == 2
    assert provider.calls == []


@pytest.mark.asyncio
async def test_provider_failure_is_isolated_to_its_keyword(sleeps: list[float]) -> None:
    provider = _CountingRankingProvider(
        failures={
            "kw-0": ProviderCallFailedError("SerpApi", "kw-0", "HTTP 500"),
            "kw-1": InvalidResponseFormatError("SerpApi", "kw-1", "Missing search_information"),
            "kw-2": RuntimeError("socket closed"),
        }
    )
    quota_provider = _FakeQuotaProvider(remaining=10)

    results = await _scorer(provider, quota_provider).run(_inputs([10, 20, 30, 40]))

    assert provider.calls == ["kw-0", "kw-1", "kw-2", "kw-3"]
    assert results["kw-0"].error_code == "provider_call_failed"
    assert "HTTP 500" in (results["kw-0"].error or "")
    assert results["kw-1"].error_code == "invalid_response_format"
    assert results["kw-2"].error == "socket closed"
    assert results["kw-2"].error_code == "provider_call_failed"
    for failed in ("kw-0", "kw-1", "kw-2"):
        assert results[failed].kgr is None
        assert results[failed].kgr_rating == "not_applicable"
    assert results["kw-3"].kgr_rating == "great"
    assert results["kw-3"].error is None


@pytest.mark.asyncio
async def test_progress_is_monotonic_and_capped_at_fifty(sleeps: list[float]) -> None:
    provider = _CountingRankingProvider()
    quota_provider = _FakeQuotaProvider(remaining=10)
    progress: list[float] = []

    await _scorer(provider, quota_provider).run(_inputs([50, 300, 0, 10, 250]), progress.append)

    assert len(progress) == 5
    assert progress == sorted(progress)
    assert all(0 <= value <= 50 for value in progress)
    assert progress[-1] == 50.0
