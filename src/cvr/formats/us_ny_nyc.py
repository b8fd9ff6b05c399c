"""
New York City Board of Elections CVR exports.

Each primary is published as a directory of workbooks named like
``2025P1V1_ELE1.xlsx``. The number after ``P`` is a group index; every file
in a group shares the same header row. A separate
``..._CandidacyID_To_Name.xlsx`` workbook maps candidate codes to names.
"""

import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from ..candidates import CandidateResolver, read_candidate_names
from ..errors import (
    ConfigurationError,
    HeaderRankError,
    MissingCellError,
    ParseContractError,
    SpreadsheetReadError,
)
from ..headers import RankedHeader, parse_header
from ..model import OVERVOTE, UNDERVOTE, Ballot, Choice, Election
from ..spreadsheet import cell_as_string, open_workbook
from .base import BallotFormat, DiscoveredContest, generate_office_id

logger = logging.getLogger(__name__)

FILE_RX = re.compile(r"^(?P<year>\d{4})P(?P<group>\d+)V.+\.xlsx$")
CANDIDATE_FILE_MARKER = "CandidacyID_To_Name"
BALLOT_ID_HEADER = "Cast Vote Record"
UNDERVOTE_TOKEN = "undervote"
OVERVOTE_TOKEN = "overvote"


@dataclass
class ReaderOptions:
    office_name: str
    jurisdiction_name: str
    candidates_file: str
    cvr_pattern: str
    jurisdiction_code: Optional[str] = None

    @classmethod
    def from_params(cls, params: Mapping[str, str]) -> "ReaderOptions":
        missing = [
            key
            for key in ("officeName", "jurisdictionName", "candidatesFile", "cvrPattern")
            if not params.get(key)
        ]
        if missing:
            raise ConfigurationError(
                f"Loader params missing required keys: {', '.join(missing)}"
            )
        return cls(
            office_name=params["officeName"],
            jurisdiction_name=params["jurisdictionName"],
            candidates_file=params["candidatesFile"],
            cvr_pattern=params["cvrPattern"],
            jurisdiction_code=params.get("jurisdictionCode") or None,
        )


def cvr_pattern(groups: Sequence[Tuple[str, int]]) -> str:
    """
    File name pattern matching every CVR workbook of the given groups.

    >>> cvr_pattern([("2025", 1)])
    '2025P1V.+\\\\.xlsx'
    >>> cvr_pattern([("2025", 1), ("2025", 2)])
    '2025P(1|2)V.+\\\\.xlsx'
    """
    years = {year for year, _ in groups}
    if len(groups) == 1:
        year, group = groups[0]
        return f"{year}P{group}V.+\\.xlsx"
    if len(years) == 1:
        numbers = "|".join(str(group) for _, group in groups)
        return f"{groups[0][0]}P({numbers})V.+\\.xlsx"
    prefixes = "|".join(f"{year}P{group}" for year, group in groups)
    return f"({prefixes})V.+\\.xlsx"


def _cell(values: Sequence[Any], index: int) -> Any:
    return values[index] if index < len(values) else None


class NYCFormat(BallotFormat):
    name = "us_ny_nyc"
    normalization = "simple"

    # --- discovery -----------------------------------------------------

    def find_candidate_file(self, raw_path: Path) -> Optional[str]:
        for path in sorted(Path(raw_path).iterdir()):
            if CANDIDATE_FILE_MARKER in path.name and path.name.endswith(".xlsx"):
                return path.name
        return None

    def group_files(self, raw_path: Path) -> List[Tuple[str, int, List[str]]]:
        """
        Group CVR workbooks by the group index in their names.

        Returns:
            Sorted list of (year, group index, sorted file names)
        """
        groups: Dict[Tuple[str, int], List[str]] = {}
        for path in Path(raw_path).iterdir():
            match = FILE_RX.match(path.name)
            if match is None or not path.is_file():
                continue
            key = (match.group("year"), int(match.group("group")))
            groups.setdefault(key, []).append(path.name)

        return [
            (year, group, sorted(files))
            for (year, group), files in sorted(groups.items())
        ]

    def discover(self, raw_path: Path) -> List[DiscoveredContest]:
        raw_path = Path(raw_path)
        if not raw_path.is_dir():
            raise ConfigurationError(f"Raw data path does not exist: {raw_path}")

        candidate_file = self.find_candidate_file(raw_path)
        if candidate_file is None:
            raise ConfigurationError(
                f"Could not find candidate mapping file in {raw_path}"
            )
        logger.info(f"Found candidate file: {candidate_file}")

        groups = self.group_files(raw_path)
        logger.info(f"Found {len(groups)} P groups: {[g for _, g, _ in groups]}")

        contests: Dict[str, DiscoveredContest] = {}
        contest_groups: Dict[str, List[Tuple[str, int]]] = {}
        for year, group, files in groups:
            file_name = files[0]
            logger.info(f"Analyzing P{group} group: {file_name}")
            try:
                header = open_workbook(raw_path / file_name, nrows=1).first_sheet().header()
            except SpreadsheetReadError as e:
                logger.error(f"Skipping unreadable file: {e}")
                continue

            for contest in self._contests_in_header(
                header, year, group, candidate_file, file_name
            ):
                if contest.office_id in contests:
                    logger.info(f"Contest {contest.office_id} continues in P{group}")
                    contest_groups[contest.office_id].append((year, group))
                    continue
                logger.info(f"Found contest: {contest.office_name} ({contest.office_id})")
                contests[contest.office_id] = contest
                contest_groups[contest.office_id] = [(year, group)]

        # A contest spread over several groups is read from all of them.
        for office_id, contest in contests.items():
            contest.loader_params["cvrPattern"] = cvr_pattern(contest_groups[office_id])

        return list(contests.values())

    def _contests_in_header(
        self,
        header: Sequence[Optional[str]],
        year: str,
        group: int,
        candidate_file: str,
        file_name: str,
    ) -> List[DiscoveredContest]:
        contests = []
        seen = set()
        for column, text in enumerate(header):
            try:
                parsed = parse_header(text)
            except HeaderRankError as e:
                raise e.with_context(file_name=file_name, row=1, column=column + 1)
            if parsed is None or not parsed.is_first_choice():
                continue
            contest = self._contest_from_header(parsed, year, group, candidate_file)
            if contest.office_id not in seen:
                seen.add(contest.office_id)
                contests.append(contest)
        return contests

    def _contest_from_header(
        self, parsed: RankedHeader, year: str, group: int, candidate_file: str
    ) -> DiscoveredContest:
        office_id = generate_office_id(
            parsed.office, parsed.jurisdiction_name, parsed.jurisdiction_code
        )
        return DiscoveredContest(
            office_id=office_id,
            office_name=parsed.office,
            jurisdiction_name=parsed.jurisdiction_name,
            jurisdiction_code=parsed.jurisdiction_code,
            data_format=self.name,
            loader_params={
                "candidatesFile": candidate_file,
                "cvrPattern": cvr_pattern([(year, group)]),
                "jurisdictionName": parsed.jurisdiction_name,
                "jurisdictionCode": parsed.jurisdiction_code,
                "officeName": parsed.office,
            },
        )

    # --- extraction ----------------------------------------------------

    def read_ballots(
        self,
        raw_path: Path,
        loader_params: Mapping[str, str],
        office_id: Optional[str] = None,
    ) -> Election:
        raw_path = Path(raw_path)
        options = ReaderOptions.from_params(loader_params)
        resolver = self._candidate_resolver(raw_path, options)
        file_rx = re.compile(options.cvr_pattern)

        ballots: List[Ballot] = []
        rank_count: Optional[int] = None

        for path in sorted(raw_path.iterdir()):
            if not path.is_file() or not file_rx.fullmatch(path.name):
                logger.debug(f"Skipping: {path.name}")
                continue

            logger.info(f"Reading: {path.name}")
            try:
                sheet = open_workbook(path).first_sheet()
            except SpreadsheetReadError as e:
                logger.error(f"Skipping unreadable file: {e}")
                continue

            try:
                columns = self._locate_columns(sheet.header(), options)
                if columns is None:
                    logger.warning(
                        f"No columns for {options.office_name} "
                        f"({options.jurisdiction_name}) in {path.name}"
                    )
                    continue

                id_column, rank_columns = columns
                if rank_count is None:
                    rank_count = len(rank_columns)
                elif rank_count != len(rank_columns):
                    raise ParseContractError(
                        f"Expected {rank_count} rank columns, found {len(rank_columns)}"
                    )

                before = len(ballots)
                for row_number, values in sheet.rows():
                    ballots.append(
                        self._read_ballot(
                            values, id_column, rank_columns, resolver, row_number
                        )
                    )
                logger.info(f"Read {len(ballots) - before} ballots from {path.name}")
            except ParseContractError as e:
                raise e.with_context(office_id=office_id, file_name=path.name)

        logger.info(
            f"Extracted {len(ballots)} ballots and {len(resolver)} candidates "
            f"for {options.office_name} ({options.jurisdiction_name})"
        )
        return Election(candidates=resolver.candidates, ballots=ballots)

    def _candidate_resolver(
        self, raw_path: Path, options: ReaderOptions
    ) -> CandidateResolver:
        candidates_path = raw_path / options.candidates_file
        if not candidates_path.exists():
            raise ConfigurationError(f"Candidate file not found: {candidates_path}")
        try:
            names = read_candidate_names(open_workbook(candidates_path))
        except SpreadsheetReadError as e:
            raise ConfigurationError(f"Candidate file unusable: {e}") from e
        return CandidateResolver(names)

    def _locate_columns(
        self, header: Sequence[Optional[str]], options: ReaderOptions
    ) -> Optional[Tuple[int, List[Tuple[int, int]]]]:
        """
        Find the ballot id column and the rank columns for this contest.

        Returns:
            (ballot id column, [(rank, column), ...] in ascending rank), or
            None when the header has no columns for the contest
        """
        rank_to_column: Dict[int, int] = {}
        id_column: Optional[int] = None

        for column, text in enumerate(header):
            if text == BALLOT_ID_HEADER:
                id_column = column
                continue
            try:
                parsed = parse_header(text)
            except HeaderRankError as e:
                raise e.with_context(row=1, column=column + 1)
            if parsed is None or not parsed.same_contest(
                options.office_name,
                options.jurisdiction_name,
                options.jurisdiction_code,
            ):
                continue
            if parsed.rank in rank_to_column:
                raise ParseContractError(
                    f"Rank {parsed.rank} appears in more than one column",
                    row=1,
                    column=column + 1,
                )
            rank_to_column[parsed.rank] = column

        if not rank_to_column:
            return None
        if id_column is None:
            raise ParseContractError(f"No {BALLOT_ID_HEADER!r} column", row=1)
        return id_column, sorted(rank_to_column.items())

    def _read_ballot(
        self,
        values: Sequence[Any],
        id_column: int,
        rank_columns: List[Tuple[int, int]],
        resolver: CandidateResolver,
        row_number: Optional[int] = None,
    ) -> Ballot:
        ballot_id = cell_as_string(_cell(values, id_column))
        if not ballot_id:
            raise MissingCellError(
                "Missing ballot identifier", row=row_number, column=id_column + 1
            )

        choices: List[Choice] = []
        for rank, column in rank_columns:
            value = cell_as_string(_cell(values, column))
            if value is None:
                raise MissingCellError(
                    f"Missing rank {rank} choice", row=row_number, column=column + 1
                )
            if value == UNDERVOTE_TOKEN:
                choices.append(UNDERVOTE)
            elif value == OVERVOTE_TOKEN:
                choices.append(OVERVOTE)
            else:
                try:
                    choices.append(resolver.vote(value))
                except ParseContractError as e:
                    raise e.with_context(row=row_number, column=column + 1)

        return Ballot(id=ballot_id, choices=choices)
