"""
Ranked-choice tabulation: ballot normalization rules, the single-winner
instant-runoff engine and contest report generation.
"""

from .irv import (
    MAX_ROUNDS,
    InstantRunoffTabulator,
    RoundResult,
    TabulationResult,
    TabulationStatus,
)
from .normalizers import (
    NORMALIZERS,
    get_normalizer,
    maine_normalizer,
    normalize_ballots,
    simple_normalizer,
)

__all__ = [
    "InstantRunoffTabulator",
    "MAX_ROUNDS",
    "NORMALIZERS",
    "RoundResult",
    "TabulationResult",
    "TabulationStatus",
    "get_normalizer",
    "maine_normalizer",
    "normalize_ballots",
    "simple_normalizer",
]
