"""Keyword analysis API endpoints."""

import logging

from fastapi import APIRouter, HTTPException, status

from keywordlab.api.v1.dependencies import Orchestrator
from keywordlab.core.exceptions import ExternalAPIError, NoSelectionError, QuotaExceededError
from keywordlab.schemas.keyword import (
    AnalyzeKeywordsRequest,
    AnalyzeKeywordsResponse,
    QuotaState,
)

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get(
    "/quota",
    response_model=QuotaState,
    summary="Get SERP quota",
    description="Return used, total and remaining SerpApi credits for the current month.",
)
async def get_quota(orchestrator: Orchestrator) -> QuotaState:
    """Fetch current SERP credit usage."""
    try:
        return await orchestrator.quota.refresh()
    except ExternalAPIError as e:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=e.message,
        ) from e


@router.post(
    "/analyze",
    response_model=AnalyzeKeywordsResponse,
    summary="Analyze keywords",
    description=(
        "Run KGR scoring and LLM keyword analysis over the given keywords and return "
        "them merged, in request order. Per-keyword failures are reported inline "
        "(`error`) or in `analysis_failures`; only missing selection and insufficient "
        "quota fail the request."
    ),
)
async def analyze_keywords(
    request: AnalyzeKeywordsRequest,
    orchestrator: Orchestrator,
) -> AnalyzeKeywordsResponse:
    """Analyze a keyword selection for one project."""
    try:
        result = await orchestrator.analyze(
            request.keywords,
            request.context,
            project_id=request.project_id,
        )
    except NoSelectionError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=e.message,
        ) from e
    except QuotaExceededError as e:
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail={"message": e.message, "needed": e.needed, "remaining": e.remaining},
        ) from e
    except ExternalAPIError as e:
        logger.warning(
            "Keyword analysis aborted by provider error",
            extra={"project_id": request.project_id, "error": e.message},
        )
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=e.message,
        ) from e

    return AnalyzeKeywordsResponse(
        project_id=request.project_id,
        keywords=result.keywords,
        error_count=result.error_count,
        analysis_failures=result.analysis_failures,
        quota=result.quota,
        llm_tokens=result.llm_usage.total_tokens if result.llm_usage else None,
    )
