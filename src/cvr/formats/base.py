from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

from ..model import Election

CITYWIDE = "Citywide"
PARTY_PREFIX = "dem "


def generate_office_id(
    office_name: str, jurisdiction_name: str, jurisdiction_code: str
) -> str:
    """
    Build the stable slug identifying a contest across runs.

    >>> generate_office_id("DEM Borough President", "York", "026918")
    'borough-president-york-026918'
    """
    office_id = office_name.lower()
    if office_id.startswith(PARTY_PREFIX):
        office_id = office_id[len(PARTY_PREFIX):]
    office_id = office_id.replace(" ", "-")

    if jurisdiction_name != CITYWIDE:
        office_id = f"{office_id}-{jurisdiction_name.lower()}"

    return f"{office_id}-{jurisdiction_code}"


@dataclass
class DiscoveredContest:
    """A contest found in raw files plus the parameters needed to re-read it."""

    office_id: str
    office_name: str
    jurisdiction_name: Optional[str]
    jurisdiction_code: Optional[str]
    data_format: str
    loader_params: Dict[str, str] = field(default_factory=dict)

    def to_metadata(self) -> Dict[str, Any]:
        return {"office": self.office_id, "loaderParams": dict(self.loader_params)}


class BallotFormat(ABC):
    """
    One jurisdiction's export layout.

    Adding a jurisdiction means implementing discovery and extraction for
    its files; nothing downstream of the Election model changes.
    """

    name: str = ""
    # Name of the normalization rule elections in this format use by default.
    normalization: str = "simple"

    @abstractmethod
    def discover(self, raw_path: Path) -> List[DiscoveredContest]:
        """Find every ranked contest in a raw data directory."""

    @abstractmethod
    def read_ballots(
        self,
        raw_path: Path,
        loader_params: Mapping[str, str],
        office_id: Optional[str] = None,
    ) -> Election:
        """Read candidates and ballots for one contest."""
