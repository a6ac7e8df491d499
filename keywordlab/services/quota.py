"""SERP quota tracking for Stage 1."""

import logging

from keywordlab.core.exceptions import QuotaExceededError
from keywordlab.schemas.keyword import QuotaState
from keywordlab.services.providers import QuotaProvider

logger = logging.getLogger(__name__)


class QuotaTracker:
    """Tracks consumed/remaining SERP credits against the provider's quota.

    Nothing is cached across batches: every `reserve` re-reads usage from the
    provider. Consumption is observed by calling `refresh` after the batch,
    there is no local per-call decrement.
    """

    def __init__(self, provider: QuotaProvider) -> None:
        self.provider = provider
        self._state: QuotaState | None = None

    @property
    def state(self) -> QuotaState | None:
        """Last snapshot fetched from the provider."""
        return self._state

    async def refresh(self) -> QuotaState:
        """Fetch current usage from the provider."""
        self._state = await self.provider.get_usage()
        logger.info(
            "Quota refreshed",
            extra={
                "used": self._state.used,
                "total": self._state.total,
                "remaining": self._state.remaining,
            },
        )
        return self._state

    def remaining(self) -> int:
        """Remaining credits from the last refresh (0 if never refreshed)."""
        return self._state.remaining if self._state else 0

    async def reserve(self, needed: int) -> QuotaState:
        """Admit a batch of `needed` calls or refuse it entirely.

        Raises:
            QuotaExceededError: when fewer than `needed` credits remain.
        """
        state = await self.refresh()
        if state.remaining < needed:
            logger.warning(
                "Quota reservation refused",
                extra={"needed": needed, "remaining": state.remaining},
            )
            raise QuotaExceededError(needed=needed, remaining=state.remaining)

        logger.info(
            "Quota reserved",
            extra={"needed": needed, "remaining": state.remaining},
        )
        return state
