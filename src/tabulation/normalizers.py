"""
Ballot normalization rules.

A normalizer rewrites a ballot's raw choices into the ordered, distinct
candidates it supports, and records whether an overvote ended it. Which rule
applies is chosen per election by name.
"""

from typing import Callable, Dict, List, Set

from cvr.errors import ConfigurationError
from cvr.model import Ballot, ChoiceKind, NormalizedBallot

Normalizer = Callable[[Ballot], NormalizedBallot]


def maine_normalizer(ballot: Ballot) -> NormalizedBallot:
    """
    Maine rule: a ballot is exhausted by an overvote or by two sequential
    skipped rankings. Repeated candidates count once.

    >>> from cvr.model import UNDERVOTE, Choice
    >>> maine_normalizer(Ballot("b", [Choice.vote(1), UNDERVOTE, UNDERVOTE, Choice.vote(2)])).choices
    (1,)
    """
    seen: Set[int] = set()
    choices: List[int] = []
    overvoted = False
    last_was_skip = False

    for choice in ballot.choices:
        if choice.kind is ChoiceKind.VOTE:
            if choice.candidate_id not in seen:
                seen.add(choice.candidate_id)
                choices.append(choice.candidate_id)
            last_was_skip = False
        elif choice.kind is ChoiceKind.UNDERVOTE:
            if last_was_skip:
                break
            last_was_skip = True
        else:
            overvoted = True
            break

    return NormalizedBallot(id=ballot.id, choices=choices, overvoted=overvoted)


def simple_normalizer(ballot: Ballot) -> NormalizedBallot:
    """Skipped rankings are ignored; an overvote ends the ballot."""
    seen: Set[int] = set()
    choices: List[int] = []
    overvoted = False

    for choice in ballot.choices:
        if choice.kind is ChoiceKind.VOTE:
            if choice.candidate_id not in seen:
                seen.add(choice.candidate_id)
                choices.append(choice.candidate_id)
        elif choice.kind is ChoiceKind.OVERVOTE:
            overvoted = True
            break

    return NormalizedBallot(id=ballot.id, choices=choices, overvoted=overvoted)


NORMALIZERS: Dict[str, Normalizer] = {
    "maine": maine_normalizer,
    "simple": simple_normalizer,
}


def get_normalizer(name: str) -> Normalizer:
    try:
        return NORMALIZERS[name]
    except KeyError:
        raise ConfigurationError(f"Unknown normalization rule: {name}") from None


def normalize_ballots(ballots, name: str) -> List[NormalizedBallot]:
    normalizer = get_normalizer(name)
    return [normalizer(ballot) for ballot in ballots]
