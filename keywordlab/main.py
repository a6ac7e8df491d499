"""FastAPI application entry point."""

import logging
from collections.abc import AsyncGenerator
from contextlib import AsyncExitStack, asynccontextmanager
from typing import Any, cast

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from keywordlab.agents.keyword_analyst import KeywordAnalystProvider
from keywordlab.api.v1.router import api_router
from keywordlab.config import settings
from keywordlab.core.logging import setup_logging
from keywordlab.integrations.serpapi import SerpApiClient
from keywordlab.services.batch_orchestrator import BatchOrchestrator

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler."""
    setup_logging()

    logger.info(
        "Starting KeywordLab",
        extra={
            "environment": settings.environment,
            "version": settings.app_version,
            "model_standard": settings.get_model("standard"),
        },
    )

    async with AsyncExitStack() as stack:
        if getattr(app.state, "batch_orchestrator", None) is None:
            if settings.serpapi_api_key:
                serp_client = await stack.enter_async_context(SerpApiClient())
                app.state.batch_orchestrator = BatchOrchestrator.from_providers(
                    quota_provider=serp_client,
                    ranking_provider=serp_client,
                    analysis_provider=KeywordAnalystProvider(),
                )
            else:
                logger.warning("SERPAPI_API_KEY not set, keyword analysis disabled")

        yield

    logger.info("Shutting down KeywordLab")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description=(
            "E-commerce keyword analysis service: KGR scoring via SerpApi and "
            "LLM keyword analysis, merged per keyword"
        ),
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )

    app.add_middleware(
        cast(Any, CORSMiddleware),
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(api_router, prefix=settings.api_v1_prefix)

    @app.get(
        "/health",
        summary="Health check",
        description="Return service health status and backend version information.",
    )
    async def health_check() -> dict[str, str]:
        """Health check endpoint."""
        return {"status": "healthy", "version": settings.app_version}

    return app


app = create_app()
