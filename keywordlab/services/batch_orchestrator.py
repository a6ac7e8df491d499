"""Batch keyword analysis: KGR stage, LLM stage, merge."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from keywordlab.core.exceptions import ExternalAPIError, NoSelectionError
from keywordlab.schemas.keyword import ContextData, KeywordRecord, QuotaState
from keywordlab.services.providers import (
    LanguageAnalysisProvider,
    QuotaProvider,
    RankingSignalProvider,
    TokenUsage,
    TokenUsageReporter,
)
from keywordlab.services.quota import QuotaTracker
from keywordlab.services.stages.stage_1_kgr import Stage1KgrScorer, Stage1Result
from keywordlab.services.stages.stage_2_analysis import Stage2AnalysisScorer
from keywordlab.services.stages.types import KeywordInput, ProgressCallback, noop_progress

logger = logging.getLogger(__name__)

INTENT_PATH: tuple[str, ...] = ("keyword_analysis", "search_intent", "type")


@dataclass(slots=True)
class BatchAnalysisResult:
    """Outcome of one `BatchOrchestrator.analyze` call."""

    keywords: list[KeywordRecord]
    error_count: int
    analysis_failures: list[str] = field(default_factory=list)
    quota: QuotaState | None = None
    # None when the analysis provider does not meter usage
    llm_usage: TokenUsage | None = None


def extract_intent(analysis: Mapping[str, Any] | None) -> str | None:
    """Read the search intent label from an analysis payload, if present."""
    node: Any = analysis
    for key in INTENT_PATH:
        if not isinstance(node, Mapping):
            return None
        node = node.get(key)
    return node if isinstance(node, str) and node else None


def merge_keyword_results(
    records: Sequence[KeywordRecord],
    kgr_results: Mapping[str, Stage1Result],
    analysis_results: Mapping[str, dict[str, Any]],
) -> list[KeywordRecord]:
    """Overlay both stages' outputs onto copies of `records`, keeping order.

    Stage 1 owns the error fields; Stage 2 only ever sets `analysis` and
    `intent`. Records absent from both maps come back unchanged.
    """
    merged: list[KeywordRecord] = []
    for record in records:
        update: dict[str, Any] = {}

        kgr_result = kgr_results.get(record.keyword)
        if kgr_result is not None:
            update.update(
                kgr=kgr_result.kgr,
                kgr_rating=kgr_result.kgr_rating,
                error=kgr_result.error,
                error_code=kgr_result.error_code,
            )

        analysis = analysis_results.get(record.keyword)
        if analysis is not None:
            update["analysis"] = analysis
            intent = extract_intent(analysis)
            if intent is not None:
                update["intent"] = intent

        merged.append(record.model_copy(update=update, deep=True) if update else record)
    return merged


def count_errors(records: Sequence[KeywordRecord]) -> int:
    return sum(1 for record in records if record.error)


class BatchOrchestrator:
    """Drives both scoring stages over one keyword selection.

    Progress is reported on a single 0-100 scale: Stage 1 owns 0-50,
    Stage 2 owns 50-100. Only one batch runs at a time per orchestrator,
    since every batch draws on the same SERP quota.
    """

    def __init__(
        self,
        kgr_scorer: Stage1KgrScorer,
        analysis_scorer: Stage2AnalysisScorer,
        quota: QuotaTracker,
    ) -> None:
        self.kgr_scorer = kgr_scorer
        self.analysis_scorer = analysis_scorer
        self.quota = quota
        self._batch_lock = asyncio.Lock()

    @classmethod
    def from_providers(
        cls,
        *,
        quota_provider: QuotaProvider,
        ranking_provider: RankingSignalProvider,
        analysis_provider: LanguageAnalysisProvider,
    ) -> "BatchOrchestrator":
        """Wire both stages around one shared quota tracker."""
        quota = QuotaTracker(quota_provider)
        return cls(
            kgr_scorer=Stage1KgrScorer(ranking_provider, quota),
            analysis_scorer=Stage2AnalysisScorer(analysis_provider),
            quota=quota,
        )

    @property
    def is_running(self) -> bool:
        return self._batch_lock.locked()

    async def analyze(
        self,
        selected: Sequence[KeywordRecord],
        context: ContextData,
        *,
        project_id: str,
        on_progress: ProgressCallback = noop_progress,
    ) -> BatchAnalysisResult:
        """Analyze the selected keywords and return them merged, in order.

        Raises:
            NoSelectionError: if `selected` is empty.
            QuotaExceededError: if Stage 1 cannot reserve enough credits;
                Stage 2 does not run in that case.
        """
        if not selected:
            raise NoSelectionError()

        batch_info = {"project_id": project_id, "keyword_count": len(selected)}
        if self.is_running:
            logger.info("Waiting for running batch to finish", extra=batch_info)

        async with self._batch_lock:
            logger.info("Batch analysis started", extra=batch_info)
            inputs = KeywordInput.from_records(selected)

            kgr_results = await self.kgr_scorer.run(inputs, on_progress)

            analysis_failures: list[str] = []

            def _on_analysis_failure(keyword: str, _exc: BaseException) -> None:
                analysis_failures.append(keyword)

            analysis_provider = self.analysis_scorer.provider
            meter = (
                analysis_provider.token_usage
                if isinstance(analysis_provider, TokenUsageReporter)
                else None
            )
            usage_before = meter.snapshot() if meter is not None else None

            analysis_results = await self.analysis_scorer.run(
                inputs,
                context,
                on_progress=lambda percent: on_progress(50 + percent / 2),
                on_failure=_on_analysis_failure,
            )

            llm_usage = (
                meter.since(usage_before)
                if meter is not None and usage_before is not None
                else None
            )

            merged = merge_keyword_results(selected, kgr_results, analysis_results)
            error_count = count_errors(merged)
            quota_state = await self._refresh_quota(project_id)

        logger.info(
            "Batch analysis complete",
            extra={
                **batch_info,
                "error_count": error_count,
                "analysis_failures": len(analysis_failures),
                "llm_tokens": llm_usage.total_tokens if llm_usage else None,
            },
        )
        return BatchAnalysisResult(
            keywords=merged,
            error_count=error_count,
            analysis_failures=analysis_failures,
            quota=quota_state,
            llm_usage=llm_usage,
        )

    async def _refresh_quota(self, project_id: str) -> QuotaState | None:
        try:
            return await self.quota.refresh()
        except ExternalAPIError as e:
            logger.warning(
                "Quota refresh after batch failed",
                extra={"project_id": project_id, "error": str(e)},
            )
            return None
