"""Stage 1: KGR scoring.

Serial, quota-bound: one ranking-signal call per eligible keyword with a
fixed delay after every call that reached the provider.
"""

import asyncio
import logging
from collections.abc import Sequence
from dataclasses import dataclass

from keywordlab.config import settings
from keywordlab.core.exceptions import KeywordErrorCode, error_code_for
from keywordlab.schemas.keyword import KgrRating
from keywordlab.services.eligibility import is_kgr_eligible, volume_out_of_range_message
from keywordlab.services.providers import RankingSignalProvider
from keywordlab.services.quota import QuotaTracker
from keywordlab.services.stages.types import KeywordInput, ProgressCallback, noop_progress

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class Stage1Result:
    """KGR outcome for one keyword; failed and skipped keywords carry `error`."""

    kgr: float | None
    kgr_rating: KgrRating
    title_matches: int = 0
    error: str | None = None
    error_code: KeywordErrorCode | None = None


class Stage1KgrScorer:
    """Runs the ranking-signal provider over a keyword batch.

    Only the quota pre-check is fatal. Every other failure is recorded on the
    keyword's own result and the loop moves on.
    """

    PROGRESS_SHARE = 50.0

    def __init__(
        self,
        provider: RankingSignalProvider,
        quota: QuotaTracker,
        *,
        delay_seconds: float | None = None,
        volume_ceiling: int | None = None,
    ) -> None:
        self.provider = provider
        self.quota = quota
        self.delay_seconds = (
            settings.kgr_request_delay_seconds if delay_seconds is None else delay_seconds
        )
        self.volume_ceiling = (
            settings.kgr_volume_ceiling if volume_ceiling is None else volume_ceiling
        )

    def _not_applicable(self) -> Stage1Result:
        return Stage1Result(
            kgr=None,
            kgr_rating="not_applicable",
            error=volume_out_of_range_message(self.volume_ceiling),
            error_code="volume_out_of_range",
        )

    def _is_eligible(self, item: KeywordInput) -> bool:
        return is_kgr_eligible(item.volume, ceiling=self.volume_ceiling)

    async def run(
        self,
        keywords: Sequence[KeywordInput],
        on_progress: ProgressCallback = noop_progress,
    ) -> dict[str, Stage1Result]:
        """Score every keyword, in input order.

        Raises:
            QuotaExceededError: before any call, when eligible keywords
                outnumber the remaining credits.
        """
        eligible = [item for item in keywords if self._is_eligible(item)]
        logger.info(
            "KGR stage starting",
            extra={"total": len(keywords), "eligible": len(eligible)},
        )

        results: dict[str, Stage1Result] = {}
        total = len(keywords)

        if not eligible:
            logger.info("No keywords eligible for KGR analysis")
            for index, item in enumerate(keywords):
                results[item.keyword] = self._not_applicable()
                on_progress((index + 1) / total * self.PROGRESS_SHARE)
            return results

        await self.quota.reserve(len(eligible))

        failed = 0

        for index, item in enumerate(keywords):
            if self._is_eligible(item):
                results[item.keyword] = await self._score(item)
                if results[item.keyword].error:
                    failed += 1
                if index < total - 1:
                    await asyncio.sleep(self.delay_seconds)
            else:
                results[item.keyword] = self._not_applicable()

            on_progress((index + 1) / total * self.PROGRESS_SHARE)

        logger.info(
            "KGR stage complete",
            extra={
                "total": total,
                "scored": len(eligible) - failed,
                "failed": failed,
                "not_applicable": total - len(eligible),
            },
        )
        return results

    async def _score(self, item: KeywordInput) -> Stage1Result:
        try:
            signal = await self.provider.score_one(item.keyword, item.volume)
        except Exception as e:
            logger.warning(
                "KGR scoring failed",
                extra={"keyword": item.keyword, "error": str(e)},
            )
            return Stage1Result(
                kgr=None,
                kgr_rating="not_applicable",
                error=str(e) or "Analysis failed",
                error_code=error_code_for(e),
            )

        return Stage1Result(
            kgr=signal.kgr,
            kgr_rating=signal.kgr_rating,
            title_matches=signal.title_matches,
        )
