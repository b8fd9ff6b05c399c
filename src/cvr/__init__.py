"""
Cast vote record extraction: discovery of contests in raw exports, ballot
extraction into a normalized model, and DuckDB storage.
"""

from .errors import (
    ConfigurationError,
    HeaderRankError,
    MissingCellError,
    ParseContractError,
    PipelineError,
    SpreadsheetReadError,
    UnknownCandidateError,
)
from .model import (
    OVERVOTE,
    UNDERVOTE,
    Ballot,
    Candidate,
    CandidateType,
    Choice,
    ChoiceKind,
    Election,
    NormalizedBallot,
)

__all__ = [
    "Ballot",
    "Candidate",
    "CandidateType",
    "Choice",
    "ChoiceKind",
    "ConfigurationError",
    "Election",
    "HeaderRankError",
    "MissingCellError",
    "NormalizedBallot",
    "OVERVOTE",
    "ParseContractError",
    "PipelineError",
    "SpreadsheetReadError",
    "UNDERVOTE",
    "UnknownCandidateError",
]
