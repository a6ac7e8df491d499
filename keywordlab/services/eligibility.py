"""KGR eligibility rules."""

from keywordlab.config import settings

VOLUME_OUT_OF_RANGE_ERROR = "Volume exceeds KGR limit ({ceiling})"


def is_kgr_eligible(volume: int, *, ceiling: int | None = None) -> bool:
    """Whether a keyword's search volume can be scored for KGR."""
    limit = settings.kgr_volume_ceiling if ceiling is None else ceiling
    return 0 < volume <= limit


def volume_out_of_range_message(ceiling: int | None = None) -> str:
    limit = settings.kgr_volume_ceiling if ceiling is None else ceiling
    return VOLUME_OUT_OF_RANGE_ERROR.format(ceiling=limit)
