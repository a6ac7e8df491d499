"""Custom exception classes for the application."""

from typing import Any, Literal

KeywordErrorCode = Literal[
    "volume_out_of_range",
    "provider_call_failed",
    "invalid_response_format",
]


class KeywordLabError(Exception):
    """Base exception for all application errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


# Batch Errors
class BatchError(KeywordLabError):
    """Base class for errors that abort a whole analysis batch."""

    pass


class NoSelectionError(BatchError):
    """Analysis was requested without any keywords."""

    def __init__(self) -> None:
        super().__init__("No keywords selected")


class QuotaExceededError(BatchError):
    """Remaining SERP quota cannot cover every eligible keyword."""

    def __init__(self, needed: int, remaining: int) -> None:
        self.needed = needed
        self.remaining = remaining
        super().__init__(
            f"Not enough API credits. Need {needed}, but only {remaining} remaining.",
            details={"needed": needed, "remaining": remaining},
        )


# External API Errors
class ExternalAPIError(KeywordLabError):
    """Error calling external API."""

    def __init__(self, api_name: str, message: str) -> None:
        self.api_name = api_name
        super().__init__(f"{api_name} API error: {message}")


class RateLimitExceededError(ExternalAPIError):
    """Rate limit exceeded for external API."""

    def __init__(self, api_name: str) -> None:
        super().__init__(api_name, "Rate limit exceeded")


class APIKeyMissingError(ExternalAPIError):
    """API key not configured."""

    def __init__(self, api_name: str) -> None:
        super().__init__(api_name, "API key not configured")


# Per-keyword Errors
class KeywordScoringError(ExternalAPIError):
    """A scoring call failed for one keyword; never fatal to the batch."""

    error_code: KeywordErrorCode = "provider_call_failed"

    def __init__(self, api_name: str, keyword: str, reason: str) -> None:
        self.keyword = keyword
        self.reason = reason
        super().__init__(api_name, f"{reason} (keyword: {keyword!r})")


class ProviderCallFailedError(KeywordScoringError):
    """The provider call itself failed (transport, HTTP status, upstream error)."""

    error_code: KeywordErrorCode = "provider_call_failed"


class InvalidResponseFormatError(KeywordScoringError):
    """The provider answered with a payload that could not be parsed."""

    error_code: KeywordErrorCode = "invalid_response_format"


def error_code_for(exc: BaseException) -> KeywordErrorCode:
    """Map any per-keyword failure onto its tagged error code."""
    if isinstance(exc, KeywordScoringError):
        return exc.error_code
    return "provider_call_failed"
