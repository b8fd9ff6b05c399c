import logging
from pathlib import Path
from typing import Dict, List, Optional, Union

from .errors import ConfigurationError
from .formats import DiscoveredContest, get_format
from .metadata import (
    ContestMetadata,
    ElectionMetadata,
    JurisdictionMetadata,
    data_format_for,
    get_jurisdiction,
    hash_file,
    load_metadata,
    metadata_file_for,
    write_serialized,
)

logger = logging.getLogger(__name__)

DEFAULT_ELECTION_NAME = "Primary Election"


def hash_raw_files(raw_path: Path) -> Dict[str, str]:
    """SHA-1 of every spreadsheet in a raw data directory, keyed by file name."""
    return {
        path.name: hash_file(path)
        for path in sorted(Path(raw_path).iterdir())
        if path.is_file() and path.suffix == ".xlsx"
    }


def discover_contests(raw_path: Path, jurisdiction: str) -> List[DiscoveredContest]:
    """
    Find every contest in one election's raw files.

    Raises:
        ConfigurationError: if the directory is missing or the jurisdiction
            has no implemented data format
    """
    raw_path = Path(raw_path)
    if not raw_path.exists():
        raise ConfigurationError(f"Raw data path does not exist: {raw_path}")
    ballot_format = get_format(data_format_for(jurisdiction))
    return ballot_format.discover(raw_path)


def discover(
    raw_data_dir: Union[str, Path],
    meta_dir: Union[str, Path],
    jurisdiction: str,
    election: str,
    election_name: str = DEFAULT_ELECTION_NAME,
    date: Optional[str] = None,
) -> JurisdictionMetadata:
    """
    Discover contests for one election and merge them into the jurisdiction's
    metadata file.

    Args:
        raw_data_dir: Root of raw data; files are read from
            <raw_data_dir>/<jurisdiction>/<election>
        meta_dir: Root of metadata output
        jurisdiction: Jurisdiction path, e.g. "us/ny/nyc"
        election: Election path, e.g. "2025/07"
        election_name: Display name of the election
        date: Election date (YYYY-MM-DD)

    Returns:
        The metadata record that was written
    """
    logger.info(f"Discovering contests for {jurisdiction} {election}")
    raw_path = Path(raw_data_dir) / jurisdiction / election

    contests = discover_contests(raw_path, jurisdiction)
    ballot_format = get_format(data_format_for(jurisdiction))

    meta_file = metadata_file_for(meta_dir, jurisdiction)
    if meta_file.exists():
        metadata = load_metadata(meta_file)
    else:
        info = get_jurisdiction(jurisdiction)
        metadata = JurisdictionMetadata(name=info.name, path=jurisdiction, kind=info.kind)

    for contest in contests:
        metadata.offices[contest.office_id] = {"name": contest.office_name}

    if date is None:
        previous = metadata.elections.get(election)
        if previous is None:
            raise ConfigurationError(f"An election date is required for {election}")
        date = previous.date

    metadata.elections[election] = ElectionMetadata(
        name=election_name,
        date=date,
        data_format=ballot_format.name,
        normalization=ballot_format.normalization,
        contests=[ContestMetadata(c.office_id, dict(c.loader_params)) for c in contests],
        files=hash_raw_files(raw_path),
    )

    write_serialized(meta_file, metadata.to_dict())
    logger.info(f"Generated metadata with {len(contests)} contests: {meta_file}")
    return metadata
