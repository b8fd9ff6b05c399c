"""
Shared pytest configuration and fixtures for the CVR pipeline tests.

Spreadsheet fixtures are written on the fly into tmp_path with pandas and
openpyxl, shaped like the New York City Board of Elections exports.
"""

import sys
from pathlib import Path
from typing import Any, List, Sequence

import pandas as pd
import pytest

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from cvr.database import BallotsDatabase  # noqa: E402
from cvr.model import OVERVOTE, UNDERVOTE, Ballot, Candidate, Choice  # noqa: E402

NYC_CANDIDATE_FILE = "2025P_CandidacyID_To_Name.xlsx"
MAYOR = "DEM Mayor"
COUNCIL = "DEM Council Member"


def write_xlsx(path: Path, header: Sequence[str], rows: Sequence[Sequence[Any]]) -> Path:
    """Write one sheet whose first row is the given header."""
    pd.DataFrame(list(rows), columns=list(header)).to_excel(
        path, index=False, engine="openpyxl"
    )
    return path


def rank_headers(office: str, place: str, code: str, total: int = 3) -> List[str]:
    return [f"{office} Choice {rank} of {total} {place} ({code})" for rank in range(1, total + 1)]


def make_ballot(ballot_id: str, *choices) -> Ballot:
    """Build a ballot from ints (votes), "u" (undervote) and "o" (overvote)."""
    converted = []
    for choice in choices:
        if choice == "u":
            converted.append(UNDERVOTE)
        elif choice == "o":
            converted.append(OVERVOTE)
        else:
            converted.append(Choice.vote(choice))
    return Ballot(id=ballot_id, choices=converted)


@pytest.fixture
def ballots_db():
    """Provide an in-memory ballots database with the schema applied."""
    db = BallotsDatabase(":memory:")
    yield db
    db.close()


@pytest.fixture
def sample_candidates():
    return [
        Candidate(id=0, name="Alice"),
        Candidate(id=1, name="Bob"),
        Candidate(id=2, name="Charlie"),
    ]


@pytest.fixture
def nyc_raw_dir(tmp_path):
    """
    A two-group NYC export.

    P1 carries the citywide mayoral contest and a council district; P2
    carries the mayoral contest only. Mayor candidates: 101 Alice,
    102 Bob, 103 Charlie. Council candidates: 201 Dana, 202 Eli.
    """
    raw = tmp_path / "raw-data" / "us" / "ny" / "nyc" / "2025" / "06"
    raw.mkdir(parents=True)

    write_xlsx(
        raw / NYC_CANDIDATE_FILE,
        ["CandidacyID", "DefaultBallotName"],
        [
            [101, "Alice"],
            [102, "Bob"],
            [103, "Charlie"],
            [201, "Dana"],
            [202, "Eli"],
        ],
    )

    mayor = rank_headers(MAYOR, "Citywide", "000001")
    council = rank_headers(COUNCIL, "District", "000008", total=2)
    write_xlsx(
        raw / "2025P1V1_ELE1.xlsx",
        ["Cast Vote Record", "Precinct"] + mayor + council,
        [
            ["1001", "AD 65", "101", "102", "undervote", "201", "202"],
            ["1002", "AD 65", "102", "101", "undervote", "202", "undervote"],
            ["1003", "AD 66", "103", "102", "101", "201", "undervote"],
            ["1004", "AD 66", "101", "undervote", "undervote", "Write-in", "undervote"],
        ],
    )
    write_xlsx(
        raw / "2025P2V1_ELE2.xlsx",
        ["Cast Vote Record", "Precinct"] + mayor,
        [
            ["2001", "AD 70", "101", "overvote", "102"],
            ["2002", "AD 70", "103", "101", "undervote"],
        ],
    )
    return raw


@pytest.fixture
def xlsx():
    """Factory writing a one-sheet workbook: xlsx(path, header, rows)."""
    return write_xlsx


@pytest.fixture
def ballot():
    """Factory building ballots: ballot("b1", 0, "u", 1, "o")."""
    return make_ballot
