"""Keyword analysis schemas."""

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

from keywordlab.core.exceptions import KeywordErrorCode

KgrRating = Literal["great", "might_work", "bad", "not_applicable"]


class KeywordRecord(BaseModel):
    """One keyword of a project, enriched by the analysis stages."""

    keyword: str = Field(min_length=1)
    volume: int = Field(ge=0)
    difficulty: float = Field(default=0, ge=0, le=100)
    intent: str | None = None

    # Stage 1 (KGR)
    kgr: float | None = None
    kgr_rating: KgrRating | None = None
    error: str | None = None
    error_code: KeywordErrorCode | None = None

    # Stage 2 (LLM analysis)
    analysis: dict[str, Any] | None = None

    # Owned by the persistence layer; passed through untouched
    confirmed: bool | None = None


class ContextData(BaseModel):
    """Business context forwarded verbatim to the keyword analyst."""

    model_config = ConfigDict(frozen=True)

    category: str = ""
    brand_name: str = ""
    business_context: str = ""
    conversion_rate: float = 2.0
    average_order_value: float = 0.0
    sales_goal: float = 0.0
    language: str = "en"


class QuotaState(BaseModel):
    """SERP credit usage snapshot."""

    used: int = Field(ge=0)
    total: int = Field(ge=0)
    remaining: int = Field(ge=0)

    @classmethod
    def from_counts(
        cls,
        *,
        total: int | None,
        remaining: int | None = None,
        used: int | None = None,
    ) -> "QuotaState":
        """Build a consistent state from whatever counts the provider reported.

        `remaining` wins over `used` when both are present.
        """
        total_value = max(int(total or 0), 0)
        if remaining is not None:
            remaining_value = min(max(int(remaining), 0), total_value)
        else:
            remaining_value = max(total_value - max(int(used or 0), 0), 0)
        return cls(
            used=total_value - remaining_value,
            total=total_value,
            remaining=remaining_value,
        )

    @model_validator(mode="after")
    def _check_balance(self) -> "QuotaState":
        if self.used + self.remaining != self.total:
            raise ValueError("used + remaining must equal total")
        return self


class AnalyzeKeywordsRequest(BaseModel):
    """Request body for a batch analysis run."""

    project_id: str = Field(min_length=1)
    keywords: list[KeywordRecord]
    context: ContextData = Field(default_factory=ContextData)

    @model_validator(mode="after")
    def _check_unique_keywords(self) -> "AnalyzeKeywordsRequest":
        seen: set[str] = set()
        for record in self.keywords:
            if record.keyword in seen:
                raise ValueError(f"Duplicate keyword in batch: {record.keyword}")
            seen.add(record.keyword)
        return self


class AnalyzeKeywordsResponse(BaseModel):
    """Merged batch analysis output."""

    project_id: str
    keywords: list[KeywordRecord]
    error_count: int
    analysis_failures: list[str] = Field(default_factory=list)
    quota: QuotaState | None = None
    llm_tokens: int | None = None
