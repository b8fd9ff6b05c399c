"""
Ranked-choice column header grammar.

Headers in the reference format look like::

    DEM Borough President Choice 1 of 4 New York (026918)
    <OFFICE>              Choice <RANK> of <TOTAL> <JURISDICTION> (<CODE>)

Only the last whitespace-delimited word before the parenthesis is kept as
the jurisdiction name, so the header above yields ``"York"``. Contests that
share an office name and that token are told apart by the code.
"""

import re
from dataclasses import dataclass
from typing import Optional

from .errors import HeaderRankError

MIN_RANK = 1
MAX_RANK = 5

HEADER_RX = re.compile(
    r"(?P<office>.+) Choice (?P<rank>\d+) of (?P<total>\d+) "
    r"(?P<place>.+) \((?P<code>\d+)\)"
)


@dataclass(frozen=True)
class RankedHeader:
    office: str
    rank: int
    total_ranks: int
    jurisdiction_name: str
    jurisdiction_code: str

    def is_first_choice(self) -> bool:
        return self.rank == MIN_RANK

    def same_contest(
        self,
        office: str,
        jurisdiction_name: str,
        jurisdiction_code: Optional[str] = None,
    ) -> bool:
        if self.office != office or self.jurisdiction_name != jurisdiction_name:
            return False
        return jurisdiction_code is None or self.jurisdiction_code == jurisdiction_code


def parse_header(header: Optional[str]) -> Optional[RankedHeader]:
    """
    Parse a column header into its ranked-choice parts.

    Args:
        header: Raw header text (None for an empty header cell)

    Returns:
        RankedHeader, or None if the header is not a ranked-choice column

    Raises:
        HeaderRankError: if the header matches but its rank or total is
            outside the supported range
    """
    if not header:
        return None
    match = HEADER_RX.match(header)
    if match is None:
        return None

    rank = int(match.group("rank"))
    total = int(match.group("total"))
    for label, value in (("rank", rank), ("total ranks", total)):
        if not MIN_RANK <= value <= MAX_RANK:
            raise HeaderRankError(
                f"Header {header!r} has {label} {value} outside "
                f"[{MIN_RANK}, {MAX_RANK}]"
            )

    return RankedHeader(
        office=match.group("office"),
        rank=rank,
        total_ranks=total,
        jurisdiction_name=match.group("place").split()[-1],
        jurisdiction_code=match.group("code"),
    )
