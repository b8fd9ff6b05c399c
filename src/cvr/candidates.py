import logging
from typing import Dict, List, Mapping, Optional

from .errors import SpreadsheetReadError, UnknownCandidateError
from .model import Candidate, CandidateId, CandidateType, Choice
from .spreadsheet import Workbook, cell_as_number, cell_as_string

logger = logging.getLogger(__name__)

WRITE_IN_TOKEN = "Write-in"
WRITE_IN_CODE = 0


class CandidateResolver:
    """
    Assigns contest-scoped candidate ids from external candidate codes.

    One resolver is created per contest and passed into extraction. The first
    time a code is seen it gets the next id; later sightings reuse it. The
    write-in marker always maps to the reserved code 0.
    """

    def __init__(self, candidate_names: Mapping[int, str]):
        """
        Args:
            candidate_names: External code -> display name, read from the
                jurisdiction's candidate mapping file
        """
        self.candidate_names = dict(candidate_names)
        self._ids: Dict[int, CandidateId] = {}
        self._candidates: List[Candidate] = []

    def _add(self, code: int, name: str, candidate_type: CandidateType) -> CandidateId:
        existing = self._ids.get(code)
        if existing is not None:
            return existing
        candidate_id = len(self._candidates)
        self._candidates.append(
            Candidate(
                id=candidate_id,
                name=name,
                candidate_type=candidate_type,
                external_id=str(code),
            )
        )
        self._ids[code] = candidate_id
        logger.debug(f"Candidate {candidate_id}: {name} (code {code})")
        return candidate_id

    def resolve_write_in(self) -> CandidateId:
        return self._add(WRITE_IN_CODE, WRITE_IN_TOKEN, CandidateType.WRITE_IN)

    def resolve(self, code: int) -> CandidateId:
        """
        Return the candidate id for an external numeric code.

        Raises:
            UnknownCandidateError: if the code is absent from the mapping
                table or collides with the reserved write-in code
        """
        # Code 0 always means the write-in; a mapping row that also uses it is
        # rejected rather than merged into the write-in candidate.
        if code == WRITE_IN_CODE:
            raise UnknownCandidateError(
                f"Candidate code {code} is reserved for write-ins"
            )
        name = self.candidate_names.get(code)
        if name is None:
            raise UnknownCandidateError(f"Unknown candidate code {code}")
        return self._add(code, name, CandidateType.REGULAR)

    def resolve_token(self, value: str) -> CandidateId:
        """Resolve a raw ranked cell that names a candidate (code or write-in)."""
        if value == WRITE_IN_TOKEN:
            return self.resolve_write_in()
        code = cell_as_number(value)
        if not isinstance(code, int):
            raise UnknownCandidateError(f"Unrecognized candidate value {value!r}")
        return self.resolve(code)

    def vote(self, value: str) -> Choice:
        return Choice.vote(self.resolve_token(value))

    def candidate_id_for_code(self, code: int) -> Optional[CandidateId]:
        return self._ids.get(code)

    @property
    def candidates(self) -> List[Candidate]:
        return list(self._candidates)

    def __len__(self) -> int:
        return len(self._candidates)


def read_candidate_names(workbook: Workbook) -> Dict[int, str]:
    """
    Read a code -> name table from the first sheet of a mapping workbook.

    The first row is a header. Rows whose code is not numeric or whose name
    is blank are skipped.
    """
    sheet = workbook.first_sheet()
    names: Dict[int, str] = {}
    skipped = 0
    for _, values in sheet.rows():
        if len(values) < 2:
            skipped += 1
            continue
        code = cell_as_number(values[0])
        name = cell_as_string(values[1])
        if not isinstance(code, int) or not name:
            skipped += 1
            continue
        names[code] = name

    if not names:
        raise SpreadsheetReadError(
            workbook.path.name, "candidate mapping sheet has no usable rows"
        )
    if skipped:
        logger.debug(f"Skipped {skipped} unusable rows in {workbook.path.name}")
    logger.info(f"Read {len(names)} candidate names from {workbook.path.name}")
    return names
