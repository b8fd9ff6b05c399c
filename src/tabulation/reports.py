"""
Contest reports: read stored ballots back, normalize them with the
election's rule, run IRV and persist the results to a reports database.
"""

import json
import logging
from typing import Any, Dict, List, Mapping, Optional

import pandas as pd

from cvr.database import BallotsDatabase, CVRDatabase

from .irv import InstantRunoffTabulator
from .normalizers import normalize_ballots

logger = logging.getLogger(__name__)


def report_path(info: Mapping[str, Any]) -> str:
    """us/ny/nyc + 2025/07 + office -> us/ny/nyc/2025/07/<office>"""
    return f"{info['jurisdictionPath']}/{info['electionPath']}/{info['office']}"


def election_index_path(election: Mapping[str, Any]) -> str:
    return f"{election['jurisdiction_path']}/{election['election_path']}"


def generate_contest_report(
    ballots_db: BallotsDatabase,
    contest: Mapping[str, Any],
    election: Optional[Mapping[str, Any]] = None,
) -> Dict[str, Any]:
    """
    Tabulate one stored contest and build its report record.

    Args:
        ballots_db: Database the contest was ingested into
        contest: Row from get_contests_for_election
        election: Row from get_all_elections; looked up when omitted

    Returns:
        Report dict with info, ballotCount, candidates, results and summary
    """
    if election is None:
        election = ballots_db.get_election(int(contest["election_id"]))
        if election is None:
            raise KeyError(f"Election {contest['election_id']} not found")

    stored = ballots_db.read_election(int(contest["id"]))
    normalized = normalize_ballots(stored.ballots, election["normalization"])
    logger.info(
        f"Tabulating {len(normalized)} ballots for {contest['office_name']} "
        f"({election['normalization']} rule)"
    )
    result = InstantRunoffTabulator(stored.candidates).tabulate(normalized)

    return {
        "info": {
            "name": contest["office_name"],
            "date": election["date"],
            "dataFormat": election["data_format"],
            "jurisdictionPath": election["jurisdiction_path"],
            "electionPath": election["election_path"],
            "office": contest["office_id"],
            "officeName": contest["office_name"],
            "jurisdictionName": election["jurisdiction_name"],
            "electionName": election["name"],
        },
        "ballotCount": len(stored.ballots),
        "candidates": [
            {"name": c.name, "type": c.candidate_type.value} for c in stored.candidates
        ],
        "results": [round_result.to_dict() for round_result in result.rounds],
        "summary": {
            "winner": result.winner,
            "totalRounds": result.total_rounds,
            "totalBallots": sum(1 for ballot in normalized if ballot.choices),
            "status": result.status.value,
        },
    }


def round_rows(path: str, report: Mapping[str, Any]) -> pd.DataFrame:
    """Flatten report rounds to one row per round and candidate."""
    rows = []
    for round_result in report["results"]:
        total = sum(round_result["tally"].values())
        eliminated = set(round_result["eliminated"])
        for name, votes in round_result["tally"].items():
            rows.append(
                {
                    "contest_path": path,
                    "round_number": round_result["round"],
                    "candidate_name": name,
                    "votes": votes,
                    "percentage": round(100.0 * votes / total, 2) if total else None,
                    "eliminated": name in eliminated,
                }
            )
    return pd.DataFrame(
        rows,
        columns=[
            "contest_path",
            "round_number",
            "candidate_name",
            "votes",
            "percentage",
            "eliminated",
        ],
    )


def candidate_performance_rows(path: str, report: Mapping[str, Any]) -> pd.DataFrame:
    """First-round votes, last tallied votes and elimination round per candidate."""
    rows = []
    results = report["results"]
    for candidate in report["candidates"]:
        name = candidate["name"]
        first_choice = results[0]["tally"].get(name, 0) if results else 0
        final_votes = None
        elimination_round = None
        for round_result in results:
            if name in round_result["tally"]:
                final_votes = round_result["tally"][name]
            if name in round_result["eliminated"]:
                elimination_round = round_result["round"]
        rows.append(
            {
                "contest_path": path,
                "candidate_name": name,
                "first_choice_votes": first_choice,
                "final_votes": final_votes,
                "elimination_round": elimination_round,
            }
        )
    frame = pd.DataFrame(
        rows,
        columns=[
            "contest_path",
            "candidate_name",
            "first_choice_votes",
            "final_votes",
            "elimination_round",
        ],
    )
    frame["final_votes"] = frame["final_votes"].astype("Int64")
    frame["elimination_round"] = frame["elimination_round"].astype("Int64")
    return frame


class ReportsDatabase(CVRDatabase):
    """Pre-computed results, one report per contest path."""

    def __init__(self, db_path: Optional[str] = None, read_only: bool = False):
        super().__init__(db_path, read_only)
        if not read_only:
            self.execute_script("02_reports_schema")

    def store_election(self, election: Mapping[str, Any]):
        path = election_index_path(election)
        with self.transaction() as conn:
            conn.execute("DELETE FROM election_index WHERE path = ?", [path])
            conn.execute(
                """
                INSERT INTO election_index (path, jurisdiction_name, election_name, date)
                VALUES (?, ?, ?, ?)
                """,
                [path, election["jurisdiction_name"], election["name"], election["date"]],
            )

    def store_report(self, report: Mapping[str, Any]) -> str:
        """
        Store a report and its derived rows, replacing any earlier report
        for the same contest.

        Returns:
            The contest path the report was stored under
        """
        info = report["info"]
        election_path = f"{info['jurisdictionPath']}/{info['electionPath']}"
        path = report_path(info)
        summary = report["summary"]

        rounds_df = round_rows(path, report)
        performance_df = candidate_performance_rows(path, report)

        with self.transaction() as conn:
            for table, column in (
                ("contest_reports", "path"),
                ("contest_rounds", "contest_path"),
                ("candidate_performance", "contest_path"),
            ):
                conn.execute(f"DELETE FROM {table} WHERE {column} = ?", [path])
            conn.execute(
                "DELETE FROM contest_summaries WHERE election_path = ? AND office = ?",
                [election_path, info["office"]],
            )

            conn.execute(
                """
                INSERT INTO contest_reports (path, election_path, office, report_json, ballot_count, winner)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                [
                    path,
                    election_path,
                    info["office"],
                    json.dumps(report),
                    report["ballotCount"],
                    summary["winner"],
                ],
            )
            conn.execute(
                """
                INSERT INTO contest_summaries
                    (election_path, office, office_name, name, winner, status,
                     num_candidates, num_rounds, ballot_count)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                [
                    election_path,
                    info["office"],
                    info["officeName"],
                    info["name"],
                    summary["winner"],
                    summary["status"],
                    len(report["candidates"]),
                    summary["totalRounds"],
                    report["ballotCount"],
                ],
            )

            if not rounds_df.empty:
                conn.register("round_rows", rounds_df)
                try:
                    conn.execute(
                        """
                        INSERT INTO contest_rounds
                            (contest_path, round_number, candidate_name, votes, percentage, eliminated)
                        SELECT contest_path, round_number, candidate_name, votes, percentage, eliminated
                        FROM round_rows
                        """
                    )
                finally:
                    conn.unregister("round_rows")

            if not performance_df.empty:
                conn.register("performance_rows", performance_df)
                try:
                    conn.execute(
                        """
                        INSERT INTO candidate_performance
                            (contest_path, candidate_name, first_choice_votes, final_votes, elimination_round)
                        SELECT contest_path, candidate_name, first_choice_votes, final_votes, elimination_round
                        FROM performance_rows
                        """
                    )
                finally:
                    conn.unregister("performance_rows")

        return path

    def get_report(self, path: str) -> Optional[Dict[str, Any]]:
        row = self.conn.execute(
            "SELECT report_json FROM contest_reports WHERE path = ?", [path]
        ).fetchone()
        return json.loads(row[0]) if row else None

    def get_contest_rounds(self, path: str) -> pd.DataFrame:
        return self.query(
            """
            SELECT round_number, candidate_name, votes, percentage, eliminated
            FROM contest_rounds
            WHERE contest_path = ?
            ORDER BY round_number, votes DESC, candidate_name
            """,
            [path],
        )

    def get_elections(self) -> pd.DataFrame:
        return self.query(
            """
            SELECT path, jurisdiction_name, election_name, date
            FROM election_index
            ORDER BY date DESC, path
            """
        )

    def get_contest_summaries(self, election_path: str) -> pd.DataFrame:
        return self.query(
            """
            SELECT office, office_name, name, winner, status, num_candidates, num_rounds, ballot_count
            FROM contest_summaries
            WHERE election_path = ?
            ORDER BY office
            """,
            [election_path],
        )

    def get_candidate_performance(self, path: str) -> pd.DataFrame:
        return self.query(
            """
            SELECT candidate_name, first_choice_votes, final_votes, elimination_round
            FROM candidate_performance
            WHERE contest_path = ?
            ORDER BY first_choice_votes DESC, candidate_name
            """,
            [path],
        )


def generate_reports(ballots_db: BallotsDatabase, reports_db: ReportsDatabase) -> List[str]:
    """
    Tabulate every contest of every stored election into the reports database.

    Returns:
        Paths of the stored contest reports
    """
    stored: List[str] = []
    elections = ballots_db.get_all_elections()
    logger.info(f"Generating reports for {len(elections)} elections")

    for election in elections.to_dict("records"):
        logger.info(
            f"Processing election: {election['jurisdiction_path']} {election['election_path']}"
        )
        reports_db.store_election(election)

        contests = ballots_db.get_contests_for_election(int(election["id"]))
        for contest in contests.to_dict("records"):
            report = generate_contest_report(ballots_db, contest, election)
            path = reports_db.store_report(report)
            winner = report["summary"]["winner"] or "no winner"
            logger.info(
                f"Stored report {path}: {winner} after {report['summary']['totalRounds']} rounds"
            )
            stored.append(path)

    logger.info(f"Generated {len(stored)} contest reports")
    return stored
