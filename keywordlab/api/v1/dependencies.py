"""Reusable API dependencies shared across v1 routes."""

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status

from keywordlab.services.batch_orchestrator import BatchOrchestrator

ANALYSIS_NOT_CONFIGURED_DETAIL = "Keyword analysis is not configured (missing SerpApi key)"


def get_batch_orchestrator(request: Request) -> BatchOrchestrator:
    """Return the process-wide orchestrator built during app startup."""
    orchestrator = getattr(request.app.state, "batch_orchestrator", None)
    if orchestrator is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=ANALYSIS_NOT_CONFIGURED_DETAIL,
        )
    return orchestrator


Orchestrator = Annotated[BatchOrchestrator, Depends(get_batch_orchestrator)]
