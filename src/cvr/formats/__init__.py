"""Registry of supported CVR export formats, keyed by data format name."""

from typing import Dict

from ..errors import ConfigurationError
from .base import BallotFormat, DiscoveredContest, generate_office_id
from .us_ny_nyc import NYCFormat

FORMATS: Dict[str, BallotFormat] = {
    NYCFormat.name: NYCFormat(),
}


def get_format(data_format: str) -> BallotFormat:
    try:
        return FORMATS[data_format]
    except KeyError:
        raise ConfigurationError(f"Unsupported data format: {data_format}") from None


__all__ = [
    "BallotFormat",
    "DiscoveredContest",
    "FORMATS",
    "NYCFormat",
    "generate_office_id",
    "get_format",
]
