"""Stage 2: LLM keyword analysis.

Keywords are analyzed in fixed-size groups whose calls run concurrently; the
next group starts only after the whole group settled and a fixed delay.
Failed keywords are left out of the result map and reported through the
`on_failure` callback instead.
"""

import asyncio
import logging
from collections.abc import Sequence
from typing import Any

from keywordlab.config import settings
from keywordlab.schemas.keyword import ContextData
from keywordlab.services.providers import LanguageAnalysisProvider
from keywordlab.services.stages.types import (
    FailureCallback,
    KeywordInput,
    ProgressCallback,
    noop_progress,
)

logger = logging.getLogger(__name__)


class Stage2AnalysisScorer:
    """Runs the language-analysis provider with bounded fan-out."""

    def __init__(
        self,
        provider: LanguageAnalysisProvider,
        *,
        batch_size: int | None = None,
        delay_seconds: float | None = None,
    ) -> None:
        self.provider = provider
        self.batch_size = max(1, batch_size or settings.analysis_batch_size)
        self.delay_seconds = (
            settings.analysis_batch_delay_seconds if delay_seconds is None else delay_seconds
        )

    async def run(
        self,
        keywords: Sequence[KeywordInput],
        context: ContextData,
        on_progress: ProgressCallback = noop_progress,
        on_failure: FailureCallback | None = None,
    ) -> dict[str, dict[str, Any]]:
        """Analyze every keyword; the map only holds keywords that succeeded."""
        results: dict[str, dict[str, Any]] = {}
        total = len(keywords)
        if not total:
            return results

        total_batches = (total + self.batch_size - 1) // self.batch_size
        finished = 0

        logger.info(
            "Keyword analysis stage starting",
            extra={
                "total": total,
                "batch_size": self.batch_size,
                "total_batches": total_batches,
            },
        )

        async def _analyze(item: KeywordInput) -> None:
            nonlocal finished
            try:
                results[item.keyword] = await self.provider.score_one(
                    item.keyword,
                    item.volume,
                    context,
                )
            except Exception as e:
                logger.warning(
                    "Keyword analysis failed",
                    extra={"keyword": item.keyword, "error": str(e)},
                )
                if on_failure is not None:
                    self._notify_failure(on_failure, item.keyword, e)
            finally:
                finished += 1
                on_progress(finished / total * 100)

        for batch_num in range(total_batches):
            start_idx = batch_num * self.batch_size
            batch = keywords[start_idx : start_idx + self.batch_size]

            await asyncio.gather(*[_analyze(item) for item in batch])

            if batch_num < total_batches - 1:
                await asyncio.sleep(self.delay_seconds)

        logger.info(
            "Keyword analysis stage complete",
            extra={"total": total, "succeeded": len(results), "failed": total - len(results)},
        )
        return results

    @staticmethod
    def _notify_failure(
        on_failure: FailureCallback,
        keyword: str,
        error: BaseException,
    ) -> None:
        # A raising callback must not take the other keywords in its group down.
        try:
            on_failure(keyword, error)
        except Exception:
            logger.exception(
                "Analysis failure callback raised",
                extra={"keyword": keyword},
            )
