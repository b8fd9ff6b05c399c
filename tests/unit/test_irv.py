"""
Instant-runoff tabulation engine unit tests.
"""

import random

import pytest

from cvr.model import Candidate, NormalizedBallot
from tabulation.irv import (
    MAX_ROUNDS,
    InstantRunoffTabulator,
    RoundResult,
    TabulationStatus,
)

A, B, C, D = 0, 1, 2, 3


def candidates(*names):
    return [Candidate(id=i, name=name) for i, name in enumerate(names)]


def ballots(*rankings):
    return [NormalizedBallot(id=str(i), choices=r) for i, r in enumerate(rankings)]


@pytest.fixture
def abc():
    return candidates("A", "B", "C")


class TestInstantRunoff:
    @pytest.mark.unit
    @pytest.mark.smoke
    def test_batch_elimination_example(self, abc):
        result = InstantRunoffTabulator(abc).tabulate(
            ballots([A, B], [A, B], [B, C], [C])
        )

        assert result.status is TabulationStatus.DECIDED
        assert result.winner == "A"
        assert result.winner_id == A
        assert result.rounds == [
            RoundResult(round=1, tally={"A": 2, "B": 1, "C": 1}, eliminated=["B", "C"]),
            RoundResult(round=2, tally={"A": 2}, eliminated=[], exhausted=2),
        ]

    @pytest.mark.unit
    def test_first_round_majority(self, abc):
        result = InstantRunoffTabulator(abc).tabulate(ballots([B], [B], [B], [A], [C, B]))

        assert result.winner == "B"
        assert result.total_rounds == 1
        assert result.rounds[0].eliminated == []

    @pytest.mark.unit
    def test_tie_after_transfer_eliminates_everyone(self):
        cands = candidates("A", "B", "C", "D")
        result = InstantRunoffTabulator(cands).tabulate(
            ballots(
                [A], [A], [A],
                [B], [B], [B, A],
                [C, B], [C, B],
                [D, C],
            )
        )

        tallies = [r.tally for r in result.rounds]
        assert tallies[0] == {"A": 3, "B": 3, "C": 2, "D": 1}
        assert result.rounds[0].eliminated == ["D"]
        assert tallies[1] == {"A": 3, "B": 3, "C": 3}
        assert result.rounds[1].eliminated == ["A", "B", "C"]
        assert result.status is TabulationStatus.ALL_ELIMINATED
        assert result.winner is None

    @pytest.mark.unit
    def test_every_active_candidate_has_a_tally_entry(self, abc):
        result = InstantRunoffTabulator(abc).tabulate(ballots([A], [A], [B]))

        assert list(result.rounds[0].tally) == ["A", "B", "C"]
        assert result.rounds[0].tally["C"] == 0

    @pytest.mark.unit
    def test_zero_vote_candidates_eliminated_first(self, abc):
        result = InstantRunoffTabulator(abc).tabulate(ballots([A], [B], [B, A], [A]))

        assert result.rounds[0].eliminated == ["C"]
        assert result.rounds[1].tally == {"A": 2, "B": 2}

    @pytest.mark.unit
    def test_majority_of_one_ballot(self):
        result = InstantRunoffTabulator(candidates("A", "B")).tabulate(ballots([B]))

        assert result.winner == "B"
        assert result.rounds[0].tally == {"A": 0, "B": 1}

    @pytest.mark.unit
    def test_last_candidate_standing_wins(self):
        lone = InstantRunoffTabulator(candidates("A")).tabulate(ballots())
        assert lone.winner == "A"
        assert lone.rounds[0].tally == {"A": 0}

    @pytest.mark.unit
    def test_two_way_tie_eliminates_both(self):
        result = InstantRunoffTabulator(candidates("A", "B")).tabulate(
            ballots([A], [B])
        )

        assert result.status is TabulationStatus.ALL_ELIMINATED
        assert result.rounds[-1].eliminated == ["A", "B"]

    @pytest.mark.unit
    def test_no_ballots(self, abc):
        result = InstantRunoffTabulator(abc).tabulate([])

        assert result.status is TabulationStatus.ALL_ELIMINATED
        assert result.rounds[0].tally == {"A": 0, "B": 0, "C": 0}
        assert result.rounds[0].eliminated == ["A", "B", "C"]

    @pytest.mark.unit
    def test_no_candidates(self):
        result = InstantRunoffTabulator([]).tabulate(ballots([0]))

        assert result.rounds == []
        assert result.winner is None

    @pytest.mark.unit
    def test_round_limit(self):
        cands = candidates("A", "B", "C", "D")
        result = InstantRunoffTabulator(cands, max_rounds=1).tabulate(
            ballots([A], [A], [B], [C])
        )

        assert result.status is TabulationStatus.ROUND_LIMIT
        assert result.total_rounds == 1
        assert result.winner is None

    @pytest.mark.unit
    def test_default_round_limit(self):
        assert MAX_ROUNDS == 50

    @pytest.mark.unit
    def test_exhausted_counts(self, abc):
        result = InstantRunoffTabulator(abc).tabulate(
            ballots([A], [A], [A], [B], [B], [C, A], [C], [])
        )

        assert result.rounds[0].exhausted == 1
        assert result.rounds[0].eliminated == ["B", "C"]
        assert result.rounds[1].tally == {"A": 4}
        assert result.rounds[1].exhausted == 4
        assert result.winner == "A"

    @pytest.mark.unit
    def test_round_result_to_dict(self):
        round_result = RoundResult(round=1, tally={"A": 1}, eliminated=["B"], exhausted=3)

        assert round_result.to_dict() == {
            "round": 1,
            "tally": {"A": 1},
            "eliminated": ["B"],
            "exhausted": 3,
        }
        assert round_result.total_votes == 1


def random_election(seed):
    rng = random.Random(seed)
    cands = candidates(*[f"C{i}" for i in range(rng.randint(1, 7))])
    ids = [c.id for c in cands]
    rankings = []
    for _ in range(rng.randint(0, 60)):
        rankings.append(rng.sample(ids, rng.randint(0, len(ids))))
    return cands, ballots(*rankings)


@pytest.mark.unit
@pytest.mark.invariant
@pytest.mark.parametrize("seed", range(40))
def test_tabulation_invariants(seed):
    cands, election = random_election(seed)
    result = InstantRunoffTabulator(cands).tabulate(election)

    totals = [r.total_votes for r in result.rounds]
    assert totals == sorted(totals, reverse=True), "tallied votes must not increase"

    for previous, current in zip(result.rounds, result.rounds[1:]):
        assert set(current.tally) < set(previous.tally), "active set must shrink"
        assert set(previous.eliminated).isdisjoint(current.tally)

    for round_result in result.rounds:
        assert round_result.total_votes + round_result.exhausted == len(election)

    eliminated = [name for r in result.rounds for name in r.eliminated]
    assert len(eliminated) == len(set(eliminated))
    assert result.status in (TabulationStatus.DECIDED, TabulationStatus.ALL_ELIMINATED)
    assert (result.winner is None) == (result.status is TabulationStatus.ALL_ELIMINATED)

    # Eliminated candidates and the final round's contenders cover everyone once.
    final = set(result.rounds[-1].tally)
    assert set(eliminated) | final == {c.name for c in cands}
    if result.winner is not None:
        assert result.winner in final
        assert result.winner not in eliminated
    else:
        assert final <= set(eliminated)
