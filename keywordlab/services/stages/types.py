"""Shared types for the analysis stages."""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass

from keywordlab.schemas.keyword import KeywordRecord

ProgressCallback = Callable[[float], None]
FailureCallback = Callable[[str, BaseException], None]


@dataclass(slots=True, frozen=True)
class KeywordInput:
    """The slice of a keyword record the scoring engines need."""

    keyword: str
    volume: int

    @classmethod
    def from_records(cls, records: Iterable[KeywordRecord]) -> list[KeywordInput]:
        return [cls(keyword=record.keyword, volume=record.volume) for record in records]


def noop_progress(_percent: float) -> None:
    return None
