#!/usr/bin/env python3
"""
Extract every contest of one election and store the ballots in DuckDB.

Contests come from the jurisdiction's metadata file when one exists;
otherwise they are discovered from the raw files directly.
"""

import argparse
import logging
import sys
from pathlib import Path

# Add src to path so we can import our modules
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from cvr.database import BallotsDatabase  # noqa: E402
from cvr.discovery import DEFAULT_ELECTION_NAME, discover_contests  # noqa: E402
from cvr.errors import ConfigurationError, PipelineError  # noqa: E402
from cvr.ingestion import BallotIngester  # noqa: E402
from cvr.metadata import load_metadata, metadata_file_for  # noqa: E402

logging.basicConfig(
    level=logging.INFO, format="%(asctime)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


def main():
    parser = argparse.ArgumentParser(description="Ingest an election's CVR data")
    parser.add_argument("jurisdiction", help="Jurisdiction path, e.g. us/ny/nyc")
    parser.add_argument("election", help="Election path, e.g. 2025/07")
    parser.add_argument("--db", required=True, help="Path to ballots DuckDB file")
    parser.add_argument(
        "--raw-data", default="raw-data", help="Root of raw data (default: raw-data)"
    )
    parser.add_argument(
        "--meta-dir",
        default="metadata",
        help="Root of metadata files (default: metadata)",
    )
    parser.add_argument("--name", help="Election name (overrides metadata)")
    parser.add_argument("--date", help="Election date YYYY-MM-DD (overrides metadata)")
    parser.add_argument(
        "--workers",
        type=int,
        default=1,
        help="Contests extracted concurrently (default: 1)",
    )

    args = parser.parse_args()

    raw_path = Path(args.raw_data) / args.jurisdiction / args.election
    meta_file = metadata_file_for(args.meta_dir, args.jurisdiction)

    try:
        normalization = None
        election_name = args.name
        date = args.date
        if meta_file.exists():
            metadata = load_metadata(meta_file)
            contests = metadata.contests_for(args.election)
            election_meta = metadata.elections[args.election]
            normalization = election_meta.normalization
            election_name = election_name or election_meta.name
            date = date or election_meta.date
            logger.info(f"Loaded {len(contests)} contests from {meta_file}")
        else:
            logger.info(f"No metadata at {meta_file}; discovering contests")
            contests = discover_contests(raw_path, args.jurisdiction)

        if date is None:
            raise ConfigurationError("An election date is required (--date)")

        with BallotsDatabase(args.db) as db:
            summary = BallotIngester(db).ingest_election(
                raw_path,
                args.jurisdiction,
                args.election,
                contests,
                election_name or DEFAULT_ELECTION_NAME,
                date,
                workers=args.workers,
                normalization=normalization,
            )
    except PipelineError as e:
        logger.error(f"Ingestion failed: {e}")
        sys.exit(1)

    print(f"✓ Ingested {summary.contests} contests")
    print(f"✓ Stored {summary.ballots} ballots")
    print(
        f"✓ Took {summary.duration:.2f}s ({summary.ballots_per_second:.0f} ballots/sec)"
    )


if __name__ == "__main__":
    main()
