"""Keyword analyst agent for Stage 2: e-commerce keyword analysis."""

import logging
from typing import Any, Literal

from pydantic import BaseModel, Field, ValidationError
from pydantic_ai.exceptions import UnexpectedModelBehavior

from keywordlab.agents.base_agent import BaseAgent
from keywordlab.core.exceptions import (
    ExternalAPIError,
    InvalidResponseFormatError,
    ProviderCallFailedError,
)
from keywordlab.schemas.keyword import ContextData
from keywordlab.services.providers import TokenUsage

logger = logging.getLogger(__name__)

API_NAME = "KeywordAnalyst"


class ContentType(BaseModel):
    classification: Literal["Pillar Page", "Target Page", "Support Page"]
    justification: str


class SearchIntent(BaseModel):
    type: Literal["Informational", "Commercial", "Transactional", "Navigational"]
    justification: str


class FunnelStage(BaseModel):
    stage: Literal["TOFU", "MOFU", "BOFU"]
    justification: str


class PriorityScore(BaseModel):
    score: int = Field(ge=1, le=10)
    justification: str


class KeywordAnalysisBody(BaseModel):
    keyword: str
    content_type: ContentType
    search_intent: SearchIntent
    funnel_stage: FunnelStage
    priority_score: PriorityScore


class KeywordAnalysis(BaseModel):
    """Structured analysis for one keyword."""

    keyword_analysis: KeywordAnalysisBody


class KeywordAnalystInput(BaseModel):
    """Input for keyword analyst agent."""

    keyword: str
    volume: int
    context: ContextData


class KeywordAnalystAgent(BaseAgent[KeywordAnalystInput, KeywordAnalysis]):
    """Agent scoring one keyword's e-commerce value.

    Classifies content type, search intent and funnel stage, and assigns a
    1-10 priority score against the brand's category and goals.
    """

    model_tier = "standard"
    temperature = 0.3

    @property
    def system_prompt(self) -> str:
        return """You are an expert e-commerce SEO analyst. Analyze keywords for an online store, focusing on their potential to drive sales and revenue.

1. **Content Type** (choose exactly one):
   - Pillar Page: main category/topic page with comprehensive coverage
   - Target Page: specific product/collection page with direct purchase intent
   - Support Page: informational content that supports the buying journey

2. **Search Intent** (choose exactly one):
   - Informational, Commercial, Transactional, or Navigational

3. **Funnel Stage** (choose exactly one):
   - TOFU: awareness, broad category terms
   - MOFU: consideration, specific product types
   - BOFU: purchase, buying-intent terms

4. **Priority Score** (1-10):
   - 9-10: high purchase intent, perfect category fit, no competitor brand
   - 7-8: strong commercial intent, good category fit
   - 5-6: moderate commercial potential, relevant to category
   - 3-4: weak commercial intent or indirect relevance
   - 1-2: poor fit or competitor brand focus

Give a short justification for every classification."""

    @property
    def output_type(self) -> type[KeywordAnalysis]:
        return KeywordAnalysis

    def _build_prompt(self, input_data: KeywordAnalystInput) -> str:
        ctx = input_data.context
        return f"""Analyze this keyword for {ctx.brand_name or "the store"}'s e-commerce website:

Keyword: {input_data.keyword}
Category: {ctx.category}
Brand: {ctx.brand_name}
Business Context: {ctx.business_context}
Monthly Search Volume: {input_data.volume}
Current Conversion Rate: {ctx.conversion_rate}%
Average Order Value: {ctx.average_order_value}
Sales Goal: {ctx.sales_goal}
Language: {ctx.language}

Focus on e-commerce potential and purchase intent."""


class KeywordAnalystProvider:
    """Adapts `KeywordAnalystAgent` to the pipeline's analysis interface.

    Malformed model output becomes `InvalidResponseFormatError`; anything
    else that goes wrong becomes `ProviderCallFailedError`.
    """

    def __init__(self, agent: KeywordAnalystAgent | None = None) -> None:
        self.agent = agent or KeywordAnalystAgent()

    @property
    def token_usage(self) -> TokenUsage:
        return self.agent.token_usage

    async def score_one(
        self,
        keyword: str,
        volume: int,
        context: ContextData,
    ) -> dict[str, Any]:
        agent_input = KeywordAnalystInput(keyword=keyword, volume=volume, context=context)
        try:
            output = await self.agent.run(agent_input)
        except (UnexpectedModelBehavior, ValidationError) as e:
            raise InvalidResponseFormatError(API_NAME, keyword, str(e)) from e
        except ExternalAPIError:
            raise
        except Exception as e:
            raise ProviderCallFailedError(API_NAME, keyword, str(e) or type(e).__name__) from e

        if not isinstance(output, KeywordAnalysis):
            raise InvalidResponseFormatError(
                API_NAME,
                keyword,
                "Invalid analysis response format",
            )
        return output.model_dump(mode="json")
