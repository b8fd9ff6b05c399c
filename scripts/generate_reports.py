#!/usr/bin/env python3
"""
Tabulate every stored contest and write the results to a reports database.
"""

import argparse
import logging
import sys
from pathlib import Path

# Add src to path so we can import our modules
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from cvr.database import BallotsDatabase  # noqa: E402
from cvr.errors import PipelineError  # noqa: E402
from tabulation.reports import ReportsDatabase, generate_reports  # noqa: E402

logging.basicConfig(
    level=logging.INFO, format="%(asctime)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


def main():
    parser = argparse.ArgumentParser(description="Generate RCV contest reports")
    parser.add_argument("--ballots-db", required=True, help="Path to ballots DuckDB file")
    parser.add_argument("--reports-db", required=True, help="Path to reports DuckDB file")

    args = parser.parse_args()

    if not Path(args.ballots_db).exists():
        logger.error(
            f"Ballots database not found: {args.ballots_db}. Run ingest_election.py first."
        )
        sys.exit(1)

    try:
        with BallotsDatabase(args.ballots_db, read_only=True) as ballots_db:
            if not ballots_db.table_exists("contests"):
                logger.error("Required table 'contests' not found. Run ingest_election.py first.")
                sys.exit(1)
            with ReportsDatabase(args.reports_db) as reports_db:
                paths = generate_reports(ballots_db, reports_db)
                summaries = reports_db.query(
                    """
                    SELECT election_path, office_name, winner, num_rounds, ballot_count
                    FROM contest_summaries
                    ORDER BY election_path, office
                    """
                )
    except PipelineError as e:
        logger.error(f"Report generation failed: {e}")
        sys.exit(1)

    print(f"✓ Generated {len(paths)} contest reports")
    for _, row in summaries.iterrows():
        winner = row["winner"] if isinstance(row["winner"], str) else "no winner"
        print(
            f"  {row['office_name']:45s}: {winner} "
            f"({row['num_rounds']} rounds, {row['ballot_count']} ballots)"
        )


if __name__ == "__main__":
    main()
