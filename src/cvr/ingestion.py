"""
Ingestion of discovered contests into the ballots database.

Extraction of independent contests can run on a thread pool; writes to the
database stay on the calling thread, one transaction per contest.
"""

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterator, List, Optional, Sequence, Tuple, Union

from .database import DEFAULT_BATCH_SIZE, BallotsDatabase
from .errors import ConfigurationError
from .formats import DiscoveredContest, get_format
from .metadata import data_format_for, get_jurisdiction
from .model import Election

logger = logging.getLogger(__name__)


@dataclass
class IngestionSummary:
    election_id: Optional[int] = None
    contests: int = 0
    ballots: int = 0
    duration: float = 0.0
    contest_ids: List[int] = field(default_factory=list)

    @property
    def ballots_per_second(self) -> float:
        if self.duration <= 0:
            return 0.0
        return self.ballots / self.duration


def extract_contest(raw_path: Union[str, Path], contest: DiscoveredContest) -> Election:
    """Read every ballot of one contest with its data format's extractor."""
    ballot_format = get_format(contest.data_format)
    return ballot_format.read_ballots(
        Path(raw_path), contest.loader_params, office_id=contest.office_id
    )


class BallotIngester:
    """Writes extracted contests to a BallotsDatabase."""

    def __init__(self, db: BallotsDatabase, batch_size: int = DEFAULT_BATCH_SIZE):
        self.db = db
        self.batch_size = batch_size

    def ingest_election(
        self,
        raw_path: Union[str, Path],
        jurisdiction_path: str,
        election_path: str,
        contests: Sequence[DiscoveredContest],
        election_name: str,
        date: str,
        workers: int = 1,
        normalization: Optional[str] = None,
    ) -> IngestionSummary:
        """
        Extract and store every contest of one election.

        Args:
            raw_path: Directory holding the election's raw files
            jurisdiction_path: e.g. "us/ny/nyc"
            election_path: e.g. "2025/07"
            contests: Contests to ingest, usually from discovery or metadata
            election_name: Display name of the election
            date: Election date (YYYY-MM-DD)
            workers: Number of contests extracted concurrently
            normalization: Ballot rule recorded for the election; defaults to
                the data format's rule

        Returns:
            Counts and timing for the run
        """
        raw_path = Path(raw_path)
        if not raw_path.is_dir():
            raise ConfigurationError(f"Raw data path does not exist: {raw_path}")
        if workers < 1:
            raise ConfigurationError(f"workers must be at least 1, got {workers}")

        start = time.perf_counter()
        data_format = (
            contests[0].data_format if contests else data_format_for(jurisdiction_path)
        )
        if normalization is None:
            normalization = get_format(data_format).normalization

        info = get_jurisdiction(jurisdiction_path)
        jurisdiction_id = self.db.upsert_jurisdiction(
            jurisdiction_path, info.name, info.kind
        )
        election_id = self.db.upsert_election(
            jurisdiction_id,
            election_path,
            election_name,
            date,
            data_format,
            normalization,
        )
        logger.info(
            f"Ingesting {len(contests)} contests for {jurisdiction_path} {election_path} "
            f"(election id {election_id})"
        )

        summary = IngestionSummary(election_id=election_id)
        for contest, election in self._extracted(raw_path, contests, workers):
            contest_id, count = self.db.insert_contest_with_ballots(
                election_id,
                contest.office_id,
                contest.office_name,
                election,
                jurisdiction_name=contest.jurisdiction_name,
                jurisdiction_code=contest.jurisdiction_code,
                batch_size=self.batch_size,
            )
            summary.contests += 1
            summary.ballots += count
            summary.contest_ids.append(contest_id)
            logger.info(f"Ingested {contest.office_id}: {count} ballots")

        summary.duration = time.perf_counter() - start
        logger.info(
            f"Ingested {summary.contests} contests and {summary.ballots} ballots "
            f"in {summary.duration:.2f}s ({summary.ballots_per_second:.0f} ballots/sec)"
        )
        return summary

    def _extracted(
        self,
        raw_path: Path,
        contests: Sequence[DiscoveredContest],
        workers: int,
    ) -> Iterator[Tuple[DiscoveredContest, Election]]:
        """Yield (contest, extracted election) pairs in input order."""
        if workers == 1 or len(contests) <= 1:
            for contest in contests:
                yield contest, extract_contest(raw_path, contest)
            return

        with ThreadPoolExecutor(max_workers=workers) as pool:
            futures = [
                pool.submit(extract_contest, raw_path, contest) for contest in contests
            ]
            for contest, future in zip(contests, futures):
                yield contest, future.result()
