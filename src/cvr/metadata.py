"""
Contest metadata records and the jurisdiction registry.

A metadata file describes one jurisdiction: its offices and, per election,
the data format, normalization rule, contests with their loader parameters,
and a content hash for every raw file.
"""

import gzip
import hashlib
import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from .errors import ConfigurationError
from .formats.base import DiscoveredContest

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class JurisdictionInfo:
    name: str
    kind: str
    data_format: Optional[str] = None


JURISDICTIONS: Dict[str, JurisdictionInfo] = {
    "us/ny/nyc": JurisdictionInfo("New York City", "city", "us_ny_nyc"),
    "us/ca/sfo": JurisdictionInfo("San Francisco", "city"),
    "us/me": JurisdictionInfo("Maine", "state"),
}


def get_jurisdiction(path: str) -> JurisdictionInfo:
    """Look up a jurisdiction by path, falling back to an unknown placeholder."""
    return JURISDICTIONS.get(path, JurisdictionInfo("Unknown", "unknown"))


def data_format_for(path: str) -> str:
    data_format = get_jurisdiction(path).data_format
    if data_format is None:
        raise ConfigurationError(f"No data format implemented for jurisdiction: {path}")
    return data_format


@dataclass
class ContestMetadata:
    office: str
    loader_params: Dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {"office": self.office, "loaderParams": dict(self.loader_params)}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ContestMetadata":
        return cls(office=data["office"], loader_params=dict(data.get("loaderParams") or {}))


@dataclass
class ElectionMetadata:
    name: str
    date: str
    data_format: str
    normalization: str
    contests: List[ContestMetadata] = field(default_factory=list)
    files: Dict[str, str] = field(default_factory=dict)
    tabulation_options: Optional[Dict[str, Any]] = None
    website: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "name": self.name,
            "date": self.date,
            "dataFormat": self.data_format,
            "tabulationOptions": self.tabulation_options,
            "normalization": self.normalization,
            "contests": [contest.to_dict() for contest in self.contests],
            "files": dict(sorted(self.files.items())),
        }
        if self.website:
            data["website"] = self.website
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ElectionMetadata":
        return cls(
            name=data["name"],
            date=data["date"],
            data_format=data["dataFormat"],
            normalization=data.get("normalization", "simple"),
            contests=[ContestMetadata.from_dict(c) for c in data.get("contests", [])],
            files=dict(data.get("files") or {}),
            tabulation_options=data.get("tabulationOptions"),
            website=data.get("website"),
        )


@dataclass
class JurisdictionMetadata:
    name: str
    path: str
    kind: str
    offices: Dict[str, Dict[str, str]] = field(default_factory=dict)
    elections: Dict[str, ElectionMetadata] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "path": self.path,
            "kind": self.kind,
            "offices": dict(sorted(self.offices.items())),
            "elections": {
                path: election.to_dict()
                for path, election in sorted(self.elections.items())
            },
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "JurisdictionMetadata":
        return cls(
            name=data["name"],
            path=data["path"],
            kind=data["kind"],
            offices={k: dict(v) for k, v in (data.get("offices") or {}).items()},
            elections={
                path: ElectionMetadata.from_dict(election)
                for path, election in (data.get("elections") or {}).items()
            },
        )

    def contests_for(self, election_path: str) -> List[DiscoveredContest]:
        """Rebuild discovered contests for one election of this jurisdiction."""
        election = self.elections.get(election_path)
        if election is None:
            raise ConfigurationError(
                f"Election {election_path} not found in metadata for {self.path}"
            )

        contests = []
        for contest in election.contests:
            params = contest.loader_params
            office = self.offices.get(contest.office, {})
            contests.append(
                DiscoveredContest(
                    office_id=contest.office,
                    office_name=office.get("name", params.get("officeName", contest.office)),
                    jurisdiction_name=params.get("jurisdictionName"),
                    jurisdiction_code=params.get("jurisdictionCode"),
                    data_format=election.data_format,
                    loader_params=dict(params),
                )
            )
        return contests


def read_serialized(path: Union[str, Path]) -> Any:
    """Read a JSON file, gunzipping it first if the name ends in .gz."""
    path = Path(path)
    logger.info(f"Reading {path}")
    if path.suffix == ".gz":
        with gzip.open(path, "rt", encoding="utf-8") as f:
            return json.load(f)
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def write_serialized(path: Union[str, Path], value: Any) -> None:
    """
    Write a value as JSON, overwriting any existing file.

    Files ending in .gz are gzip-compressed and written compactly; others
    are pretty-printed.
    """
    path = Path(path)
    logger.info(f"Writing {path}")
    path.parent.mkdir(parents=True, exist_ok=True)
    if path.suffix == ".gz":
        with gzip.open(path, "wt", encoding="utf-8", compresslevel=9) as f:
            json.dump(value, f)
    else:
        with open(path, "w", encoding="utf-8") as f:
            json.dump(value, f, indent=2)
            f.write("\n")


def hash_file(path: Union[str, Path]) -> str:
    """Return the SHA-1 hex digest of a file's contents."""
    sha1 = hashlib.sha1()
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(1 << 20), b""):
            sha1.update(chunk)
    return sha1.hexdigest()


def metadata_file_for(meta_dir: Union[str, Path], jurisdiction: str) -> Path:
    """us/ny/nyc -> <meta_dir>/us/ny/nyc/nyc.json"""
    return Path(meta_dir) / jurisdiction / f"{Path(jurisdiction).name}.json"


def load_metadata(meta_file: Union[str, Path]) -> JurisdictionMetadata:
    return JurisdictionMetadata.from_dict(read_serialized(meta_file))


def load_contests_from_metadata(
    meta_file: Union[str, Path], election_path: str
) -> List[DiscoveredContest]:
    meta_file = Path(meta_file)
    if not meta_file.exists():
        raise ConfigurationError(f"Metadata file not found: {meta_file}")
    return load_metadata(meta_file).contests_for(election_path)
