"""Collaborator interfaces consumed by the analysis pipeline."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable

from keywordlab.schemas.keyword import ContextData, KgrRating, QuotaState


@dataclass(slots=True, frozen=True)
class RankingSignal:
    """Result of one ranking-signal lookup."""

    title_matches: int
    kgr: float | None
    kgr_rating: KgrRating


@dataclass(slots=True)
class TokenUsage:
    """Running LLM usage counters."""

    requests: int = 0
    total_tokens: int = 0

    def add(self, *, requests: int, total_tokens: int | None) -> None:
        self.requests += requests
        self.total_tokens += total_tokens or 0

    def snapshot(self) -> TokenUsage:
        return TokenUsage(requests=self.requests, total_tokens=self.total_tokens)

    def since(self, earlier: TokenUsage) -> TokenUsage:
        return TokenUsage(
            requests=self.requests - earlier.requests,
            total_tokens=self.total_tokens - earlier.total_tokens,
        )


class QuotaProvider(Protocol):
    async def get_usage(self) -> QuotaState: ...


class RankingSignalProvider(Protocol):
    async def score_one(self, keyword: str, volume: int) -> RankingSignal: ...


class LanguageAnalysisProvider(Protocol):
    async def score_one(
        self,
        keyword: str,
        volume: int,
        context: ContextData,
    ) -> dict[str, Any]: ...


@runtime_checkable
class TokenUsageReporter(Protocol):
    """Analysis providers that meter LLM usage expose it here."""

    @property
    def token_usage(self) -> TokenUsage: ...
