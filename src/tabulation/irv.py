"""
Single-winner instant-runoff tabulation over normalized ballots.

Each round every ballot counts for its highest-ranked continuing candidate.
A candidate with a majority of the continuing votes wins, as does the last
candidate standing; otherwise every candidate tied at the lowest tally is
eliminated at once.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterable, List, Optional, Sequence

from cvr.model import Candidate, CandidateId, NormalizedBallot

logger = logging.getLogger(__name__)

MAX_ROUNDS = 50


class TabulationStatus(Enum):
    DECIDED = "decided"
    ALL_ELIMINATED = "all_eliminated"
    ROUND_LIMIT = "round_limit"


@dataclass(frozen=True)
class RoundResult:
    """Tally of one round, keyed by candidate name in candidate-list order."""

    round: int
    tally: Dict[str, int]
    eliminated: List[str] = field(default_factory=list)
    exhausted: int = 0

    @property
    def total_votes(self) -> int:
        return sum(self.tally.values())

    def to_dict(self) -> Dict:
        return {
            "round": self.round,
            "tally": dict(self.tally),
            "eliminated": list(self.eliminated),
            "exhausted": self.exhausted,
        }


@dataclass
class TabulationResult:
    rounds: List[RoundResult] = field(default_factory=list)
    status: TabulationStatus = TabulationStatus.ALL_ELIMINATED
    winner: Optional[str] = None
    winner_id: Optional[CandidateId] = None

    @property
    def total_rounds(self) -> int:
        return len(self.rounds)


class InstantRunoffTabulator:
    """
    Round-based IRV engine.

    Leader ties are broken in favour of the candidate that appears first in
    the candidate list.
    """

    def __init__(self, candidates: Sequence[Candidate], max_rounds: int = MAX_ROUNDS):
        self.candidates = list(candidates)
        self.max_rounds = max_rounds
        self.names: Dict[CandidateId, str] = {c.id: c.name for c in self.candidates}

    def count_round(
        self, ballots: Iterable[NormalizedBallot], active: List[CandidateId]
    ):
        """
        Count each ballot for its first continuing choice.

        Returns:
            (votes per active candidate in list order, exhausted ballot count)
        """
        active_set = set(active)
        counts: Dict[CandidateId, int] = {candidate_id: 0 for candidate_id in active}
        exhausted = 0
        for ballot in ballots:
            for candidate_id in ballot.choices:
                if candidate_id in active_set:
                    counts[candidate_id] += 1
                    break
            else:
                exhausted += 1
        return counts, exhausted

    def tabulate(self, ballots: Sequence[NormalizedBallot]) -> TabulationResult:
        result = TabulationResult()
        active = [c.id for c in self.candidates]
        if not active:
            logger.warning("No candidates to tabulate")
            return result

        for round_number in range(1, self.max_rounds + 1):
            counts, exhausted = self.count_round(ballots, active)
            threshold = sum(counts.values()) // 2 + 1

            leader = active[0]
            for candidate_id in active:
                if counts[candidate_id] > counts[leader]:
                    leader = candidate_id

            if counts[leader] >= threshold or len(active) == 1:
                result.rounds.append(self._record(round_number, counts, [], exhausted))
                result.status = TabulationStatus.DECIDED
                result.winner_id = leader
                result.winner = self.names[leader]
                logger.info(
                    f"Round {round_number}: {result.winner} wins with "
                    f"{counts[leader]} of {sum(counts.values())} votes"
                )
                return result

            lowest = min(counts.values())
            eliminated = [c for c in active if counts[c] == lowest]
            result.rounds.append(
                self._record(round_number, counts, eliminated, exhausted)
            )
            logger.debug(
                f"Round {round_number}: eliminated "
                f"{[self.names[c] for c in eliminated]} with {lowest} votes"
            )

            active = [c for c in active if counts[c] != lowest]
            if not active:
                logger.warning(
                    f"Round {round_number}: every remaining candidate was eliminated"
                )
                result.status = TabulationStatus.ALL_ELIMINATED
                return result

        logger.warning(f"No winner after {self.max_rounds} rounds")
        result.status = TabulationStatus.ROUND_LIMIT
        return result

    def _record(
        self,
        round_number: int,
        counts: Dict[CandidateId, int],
        eliminated: List[CandidateId],
        exhausted: int,
    ) -> RoundResult:
        return RoundResult(
            round=round_number,
            tally={self.names[c]: votes for c, votes in counts.items()},
            eliminated=[self.names[c] for c in eliminated],
            exhausted=exhausted,
        )
