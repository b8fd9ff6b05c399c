#!/usr/bin/env python3
"""
Discover the contests in one election's raw CVR exports and write them to
the jurisdiction's metadata file.
"""

import argparse
import logging
import sys
from pathlib import Path

# Add src to path so we can import our modules
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from cvr.discovery import DEFAULT_ELECTION_NAME, discover  # noqa: E402
from cvr.errors import PipelineError  # noqa: E402
from cvr.metadata import metadata_file_for  # noqa: E402

logging.basicConfig(
    level=logging.INFO, format="%(asctime)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


def main():
    parser = argparse.ArgumentParser(description="Discover contests in raw CVR data")
    parser.add_argument("jurisdiction", help="Jurisdiction path, e.g. us/ny/nyc")
    parser.add_argument("election", help="Election path, e.g. 2025/07")
    parser.add_argument(
        "--raw-data", default="raw-data", help="Root of raw data (default: raw-data)"
    )
    parser.add_argument(
        "--meta-dir", default="metadata", help="Root of metadata output (default: metadata)"
    )
    parser.add_argument(
        "--name",
        default=DEFAULT_ELECTION_NAME,
        help=f"Election name (default: {DEFAULT_ELECTION_NAME})",
    )
    parser.add_argument(
        "--date", help="Election date YYYY-MM-DD (required for a new election)"
    )

    args = parser.parse_args()

    try:
        metadata = discover(
            args.raw_data,
            args.meta_dir,
            args.jurisdiction,
            args.election,
            election_name=args.name,
            date=args.date,
        )
    except PipelineError as e:
        logger.error(f"Discovery failed: {e}")
        sys.exit(1)

    election = metadata.elections[args.election]
    print(f"✓ Found {len(election.contests)} contests")
    for contest in election.contests:
        print(f"  {contest.office}: {metadata.offices[contest.office]['name']}")
    print(f"✓ Hashed {len(election.files)} files")
    print(f"✓ Wrote {metadata_file_for(args.meta_dir, args.jurisdiction)}")


if __name__ == "__main__":
    main()
