"""
Normalized ballot model shared by every CVR format and the tabulator.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Tuple

# Candidate ids are small contest-scoped integers allocated by CandidateResolver.
CandidateId = int


class CandidateType(Enum):
    REGULAR = "Regular"
    WRITE_IN = "WriteIn"
    QUALIFIED_WRITE_IN = "QualifiedWriteIn"

    @property
    def db_value(self) -> str:
        """Value stored in the candidates.candidate_type column."""
        return {
            CandidateType.REGULAR: "regular",
            CandidateType.WRITE_IN: "write_in",
            CandidateType.QUALIFIED_WRITE_IN: "qualified_write_in",
        }[self]

    @classmethod
    def from_db_value(cls, value: str) -> "CandidateType":
        for candidate_type in cls:
            if candidate_type.db_value == value:
                return candidate_type
        raise ValueError(f"Unknown candidate type: {value}")


@dataclass(frozen=True)
class Candidate:
    id: CandidateId
    name: str
    candidate_type: CandidateType = CandidateType.REGULAR
    external_id: Optional[str] = None


class ChoiceKind(Enum):
    VOTE = "candidate"
    UNDERVOTE = "undervote"
    OVERVOTE = "overvote"


@dataclass(frozen=True)
class Choice:
    """One ranked position on one ballot."""

    kind: ChoiceKind
    candidate_id: Optional[CandidateId] = None

    @classmethod
    def vote(cls, candidate_id: CandidateId) -> "Choice":
        return cls(ChoiceKind.VOTE, candidate_id)

    @property
    def is_vote(self) -> bool:
        return self.kind is ChoiceKind.VOTE

    def __repr__(self) -> str:
        if self.is_vote:
            return f"Vote({self.candidate_id})"
        return self.kind.name.capitalize()


UNDERVOTE = Choice(ChoiceKind.UNDERVOTE)
OVERVOTE = Choice(ChoiceKind.OVERVOTE)


@dataclass(frozen=True)
class Ballot:
    id: str
    choices: Tuple[Choice, ...]

    def __post_init__(self):
        object.__setattr__(self, "choices", tuple(self.choices))


@dataclass(frozen=True)
class NormalizedBallot:
    """Ballot after a jurisdiction rule: distinct candidates, first preference first."""

    id: str
    choices: Tuple[CandidateId, ...]
    overvoted: bool = False

    def __post_init__(self):
        object.__setattr__(self, "choices", tuple(self.choices))


@dataclass
class Election:
    """Extraction output for one contest."""

    candidates: List[Candidate] = field(default_factory=list)
    ballots: List[Ballot] = field(default_factory=list)

    def candidate_by_id(self, candidate_id: CandidateId) -> Candidate:
        for candidate in self.candidates:
            if candidate.id == candidate_id:
                return candidate
        raise KeyError(candidate_id)
