import logging
import random
import threading
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Optional, Sequence, Tuple

import duckdb
import pandas as pd

from .model import (
    OVERVOTE,
    UNDERVOTE,
    Ballot,
    Candidate,
    CandidateType,
    Choice,
    ChoiceKind,
    Election,
)

logger = logging.getLogger(__name__)

IN_MEMORY = ":memory:"
DEFAULT_BATCH_SIZE = 1000


class DatabaseConnectionManager:
    """
    Opens DuckDB connections, retrying with backoff while another process
    holds the file lock.
    """

    def __init__(self):
        self.lock = threading.Lock()

    def get_connection(
        self, db_path: str, read_only: bool = True, max_retries: int = 3
    ) -> duckdb.DuckDBPyConnection:
        """
        Get a database connection with retry logic.

        Args:
            db_path: Path to DuckDB file, or ":memory:"
            read_only: Open existing files read-only (avoids locks)
            max_retries: Maximum number of connection attempts

        Returns:
            DuckDB connection
        """
        for attempt in range(max_retries):
            try:
                with self.lock:
                    if read_only and db_path != IN_MEMORY and Path(db_path).exists():
                        conn = duckdb.connect(db_path, read_only=True)
                        logger.debug(f"Opened read-only connection to {db_path}")
                    else:
                        conn = duckdb.connect(db_path)
                        logger.debug(f"Opened read-write connection to {db_path}")
                return conn

            except duckdb.IOException as e:
                if "Conflicting lock" in str(e) and attempt < max_retries - 1:
                    wait_time = (2**attempt) + random.uniform(0, 1)  # nosec B311
                    logger.warning(
                        f"Database locked, retrying in {wait_time:.2f}s (attempt {attempt + 1}/{max_retries})"
                    )
                    time.sleep(wait_time)
                    continue
                logger.error(
                    f"Failed to connect to database after {attempt + 1} attempts: {e}"
                )
                raise

        raise duckdb.IOException(
            f"Could not establish database connection after {max_retries} attempts"
        )


_connection_manager = DatabaseConnectionManager()


class CVRDatabase:
    """
    DuckDB connection wrapper that runs the packaged SQL schema scripts.
    """

    sql_dir = Path(__file__).parent / "sql"

    def __init__(self, db_path: Optional[str] = None, read_only: bool = False):
        """
        Args:
            db_path: Path to DuckDB file. If None, uses an in-memory database.
            read_only: Open an existing file read-only
        """
        self.db_path = str(db_path) if db_path is not None else IN_MEMORY
        self.read_only = read_only
        self._conn = None

    @property
    def conn(self) -> duckdb.DuckDBPyConnection:
        """Get or create a database connection on-demand."""
        if self._conn is None:
            self._conn = _connection_manager.get_connection(
                self.db_path, self.read_only
            )
        return self._conn

    def execute_script(self, script_name: str) -> None:
        """
        Execute every statement of a SQL script from the sql directory.

        Args:
            script_name: Name of SQL file (without .sql extension)
        """
        script_path = self.sql_dir / f"{script_name}.sql"
        if not script_path.exists():
            raise FileNotFoundError(f"SQL script not found: {script_path}")

        with open(script_path, "r", encoding="utf-8") as f:
            sql = f.read()

        try:
            # DuckDB runs multi-statement scripts, comments included.
            self.conn.execute(sql)
            logger.info(f"Executed script: {script_name}")
        except duckdb.Error as e:
            logger.error(f"Error executing script {script_name}: {e}")
            raise

    def query(self, sql: str, params: Optional[Sequence[Any]] = None) -> pd.DataFrame:
        """Execute a SQL query and return results as DataFrame."""
        if params is None:
            return self.conn.execute(sql).fetchdf()
        return self.conn.execute(sql, list(params)).fetchdf()

    def table_exists(self, table_name: str) -> bool:
        result = self.conn.execute(
            "SELECT COUNT(*) FROM information_schema.tables WHERE table_name = ?",
            [table_name],
        ).fetchone()
        return result[0] > 0

    def count_rows(self, table_name: str) -> int:
        return self.conn.execute(f"SELECT COUNT(*) FROM {table_name}").fetchone()[0]

    @contextmanager
    def transaction(self):
        """Run the enclosed statements in one transaction, rolling back on error."""
        self.conn.begin()
        try:
            yield self.conn
        except BaseException:
            self.conn.rollback()
            raise
        else:
            self.conn.commit()

    def close(self):
        """Close database connection."""
        if self._conn:
            try:
                self._conn.close()
                logger.debug(f"Closed database connection to {self.db_path}")
            except duckdb.Error as e:
                logger.warning(f"Error closing database connection: {e}")
            finally:
                self._conn = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


class BallotsDatabase(CVRDatabase):
    """
    Normalized storage for jurisdictions, elections, contests, candidates,
    ballots and ranked choices.
    """

    def __init__(
        self,
        db_path: Optional[str] = None,
        read_only: bool = False,
        create_schema: bool = True,
    ):
        super().__init__(db_path, read_only)
        if create_schema and not read_only:
            self.initialize_schema()

    def initialize_schema(self):
        self.execute_script("01_ballots_schema")

    # --- writes --------------------------------------------------------

    def upsert_jurisdiction(self, path: str, name: str, kind: str) -> int:
        row = self.conn.execute(
            "SELECT id FROM jurisdictions WHERE path = ?", [path]
        ).fetchone()
        if row is not None:
            self.conn.execute(
                "UPDATE jurisdictions SET name = ?, kind = ? WHERE id = ?",
                [name, kind, row[0]],
            )
            return row[0]
        return self.conn.execute(
            "INSERT INTO jurisdictions (path, name, kind) VALUES (?, ?, ?) RETURNING id",
            [path, name, kind],
        ).fetchone()[0]

    def upsert_election(
        self,
        jurisdiction_id: int,
        path: str,
        name: str,
        date: str,
        data_format: str,
        normalization: str = "simple",
    ) -> int:
        row = self.conn.execute(
            "SELECT id FROM elections WHERE jurisdiction_id = ? AND path = ?",
            [jurisdiction_id, path],
        ).fetchone()
        if row is not None:
            self.conn.execute(
                """
                UPDATE elections
                SET name = ?, date = CAST(? AS DATE), data_format = ?, normalization = ?
                WHERE id = ?
                """,
                [name, date, data_format, normalization, row[0]],
            )
            return row[0]
        return self.conn.execute(
            """
            INSERT INTO elections (jurisdiction_id, path, name, date, data_format, normalization)
            VALUES (?, ?, ?, CAST(? AS DATE), ?, ?)
            RETURNING id
            """,
            [jurisdiction_id, path, name, date, data_format, normalization],
        ).fetchone()[0]

    def insert_contest(
        self,
        election_id: int,
        office_id: str,
        office_name: str,
        jurisdiction_name: Optional[str] = None,
        jurisdiction_code: Optional[str] = None,
    ) -> int:
        """Insert a contest, or return the id of the existing one with the same office."""
        row = self.conn.execute(
            "SELECT id FROM contests WHERE election_id = ? AND office_id = ?",
            [election_id, office_id],
        ).fetchone()
        if row is not None:
            return row[0]
        return self.conn.execute(
            """
            INSERT INTO contests (election_id, office_id, office_name, jurisdiction_name, jurisdiction_code)
            VALUES (?, ?, ?, ?, ?)
            RETURNING id
            """,
            [election_id, office_id, office_name, jurisdiction_name, jurisdiction_code],
        ).fetchone()[0]

    def insert_candidates(
        self, contest_id: int, candidates: Sequence[Candidate]
    ) -> Dict[int, int]:
        """
        Insert the contest's candidates, skipping any already stored.

        Returns:
            Mapping from contest-scoped candidate id to database id
        """
        db_ids: Dict[int, int] = {}
        for candidate in candidates:
            external_id = (
                candidate.external_id
                if candidate.external_id is not None
                else str(candidate.id)
            )
            row = self.conn.execute(
                "SELECT id FROM candidates WHERE contest_id = ? AND external_id = ?",
                [contest_id, external_id],
            ).fetchone()
            if row is None:
                row = self.conn.execute(
                    """
                    INSERT INTO candidates (contest_id, candidate_number, external_id, name, candidate_type)
                    VALUES (?, ?, ?, ?, ?)
                    RETURNING id
                    """,
                    [
                        contest_id,
                        candidate.id,
                        external_id,
                        candidate.name,
                        candidate.candidate_type.db_value,
                    ],
                ).fetchone()
            db_ids[candidate.id] = row[0]
        return db_ids

    def insert_ballots(
        self,
        contest_id: int,
        ballots: Sequence[Ballot],
        candidate_db_ids: Dict[int, int],
        batch_size: int = DEFAULT_BATCH_SIZE,
    ) -> int:
        """
        Batch-insert ballots and their choices.

        Ballots already stored for the contest are left untouched; a ballot
        whose identifier repeats within the input keeps its first occurrence.

        Returns:
            Number of ballots in the input
        """
        for start in range(0, len(ballots), batch_size):
            batch = ballots[start : start + batch_size]
            self._insert_ballot_batch(contest_id, batch, candidate_db_ids)
            logger.debug(
                f"Inserted ballots {start + 1}-{start + len(batch)} for contest {contest_id}"
            )
        return len(ballots)

    def _insert_ballot_batch(
        self,
        contest_id: int,
        batch: Sequence[Ballot],
        candidate_db_ids: Dict[int, int],
    ):
        ballots_df = pd.DataFrame(
            {"contest_id": contest_id, "ballot_id": [ballot.id for ballot in batch]}
        ).drop_duplicates(subset=["ballot_id"], keep="first")

        self.conn.register("ballot_batch", ballots_df)
        try:
            self.conn.execute(
                """
                INSERT INTO ballots (contest_id, ballot_id)
                SELECT b.contest_id, b.ballot_id
                FROM ballot_batch b
                WHERE NOT EXISTS (
                    SELECT 1 FROM ballots x
                    WHERE x.contest_id = b.contest_id AND x.ballot_id = b.ballot_id
                )
                """
            )
        finally:
            self.conn.unregister("ballot_batch")

        ids_df = self.conn.execute(
            "SELECT id, ballot_id FROM ballots WHERE contest_id = ?", [contest_id]
        ).fetchdf()
        batch_ids = set(ballots_df["ballot_id"])
        db_id_by_ballot = {
            ballot_id: db_id
            for db_id, ballot_id in zip(ids_df["id"], ids_df["ballot_id"])
            if ballot_id in batch_ids
        }

        rows = []
        for ballot in batch:
            for position, choice in enumerate(ballot.choices, start=1):
                rows.append(
                    {
                        "ballot_id": db_id_by_ballot[ballot.id],
                        "rank_position": position,
                        "choice_type": choice.kind.value,
                        "candidate_id": (
                            candidate_db_ids[choice.candidate_id]
                            if choice.is_vote
                            else None
                        ),
                    }
                )
        if not rows:
            return

        choices_df = pd.DataFrame(
            rows, columns=["ballot_id", "rank_position", "choice_type", "candidate_id"]
        ).drop_duplicates(subset=["ballot_id", "rank_position"], keep="first")
        choices_df["candidate_id"] = choices_df["candidate_id"].astype("Int64")

        self.conn.register("choice_batch", choices_df)
        try:
            self.conn.execute(
                """
                INSERT INTO ballot_choices (ballot_id, rank_position, choice_type, candidate_id)
                SELECT c.ballot_id, c.rank_position, c.choice_type, c.candidate_id
                FROM choice_batch c
                WHERE NOT EXISTS (
                    SELECT 1 FROM ballot_choices x
                    WHERE x.ballot_id = c.ballot_id AND x.rank_position = c.rank_position
                )
                """
            )
        finally:
            self.conn.unregister("choice_batch")

    def insert_election_data(
        self,
        contest_id: int,
        election: Election,
        batch_size: int = DEFAULT_BATCH_SIZE,
    ) -> int:
        """
        Store one contest's candidates and ballots in a single transaction.

        Returns:
            Number of ballots stored
        """
        with self.transaction():
            return self._store_election_data(contest_id, election, batch_size)

    def insert_contest_with_ballots(
        self,
        election_id: int,
        office_id: str,
        office_name: str,
        election: Election,
        jurisdiction_name: Optional[str] = None,
        jurisdiction_code: Optional[str] = None,
        batch_size: int = DEFAULT_BATCH_SIZE,
    ) -> Tuple[int, int]:
        """
        Store a contest row together with its candidates and ballots, so a
        failed ballot insert leaves no empty contest behind.

        Returns:
            (contest id, number of ballots stored)
        """
        with self.transaction():
            contest_id = self.insert_contest(
                election_id, office_id, office_name, jurisdiction_name, jurisdiction_code
            )
            count = self._store_election_data(contest_id, election, batch_size)
        return contest_id, count

    def _store_election_data(
        self, contest_id: int, election: Election, batch_size: int
    ) -> int:
        candidate_db_ids = self.insert_candidates(contest_id, election.candidates)
        count = self.insert_ballots(
            contest_id, election.ballots, candidate_db_ids, batch_size
        )
        logger.info(
            f"Stored {count} ballots and {len(candidate_db_ids)} candidates for contest {contest_id}"
        )
        return count

    # --- reads ---------------------------------------------------------

    def get_all_elections(self) -> pd.DataFrame:
        return self.query(
            """
            SELECT
                e.id,
                e.jurisdiction_id,
                j.path AS jurisdiction_path,
                j.name AS jurisdiction_name,
                e.path AS election_path,
                e.name,
                strftime(e.date, '%Y-%m-%d') AS date,
                e.data_format,
                e.normalization
            FROM elections e
            JOIN jurisdictions j ON j.id = e.jurisdiction_id
            ORDER BY e.date DESC, j.path, e.path
            """
        )

    def get_election(self, election_id: int) -> Optional[Dict[str, Any]]:
        elections = self.get_all_elections()
        match = elections[elections["id"] == election_id]
        if match.empty:
            return None
        return match.iloc[0].to_dict()

    def get_contests_for_election(self, election_id: int) -> pd.DataFrame:
        return self.query(
            """
            SELECT id, election_id, office_id, office_name, jurisdiction_name, jurisdiction_code
            FROM contests
            WHERE election_id = ?
            ORDER BY office_id
            """,
            [election_id],
        )

    def get_candidates_for_contest(self, contest_id: int) -> pd.DataFrame:
        return self.query(
            """
            SELECT id, candidate_number, external_id, name, candidate_type
            FROM candidates
            WHERE contest_id = ?
            ORDER BY candidate_number
            """,
            [contest_id],
        )

    def get_choices_for_contest(self, contest_id: int) -> pd.DataFrame:
        """One row per stored choice; ballots without choices appear once with NULLs."""
        return self.query(
            """
            SELECT
                b.id AS ballot_key,
                b.ballot_id,
                bc.rank_position,
                bc.choice_type,
                c.candidate_number
            FROM ballots b
            LEFT JOIN ballot_choices bc ON bc.ballot_id = b.id
            LEFT JOIN candidates c ON c.id = bc.candidate_id
            WHERE b.contest_id = ?
            ORDER BY b.id, bc.rank_position
            """,
            [contest_id],
        )

    def read_election(self, contest_id: int) -> Election:
        """Rebuild the extraction output for one stored contest."""
        candidates = [
            Candidate(
                id=int(row.candidate_number),
                name=row.name,
                candidate_type=CandidateType.from_db_value(row.candidate_type),
                external_id=row.external_id,
            )
            for row in self.get_candidates_for_contest(contest_id).itertuples(
                index=False
            )
        ]

        ballots = []
        choices_df = self.get_choices_for_contest(contest_id)
        for (_, ballot_id), group in choices_df.groupby(
            ["ballot_key", "ballot_id"], sort=False
        ):
            choices = []
            for row in group.itertuples(index=False):
                if pd.isna(row.rank_position):
                    continue
                if row.choice_type == ChoiceKind.VOTE.value:
                    choices.append(Choice.vote(int(row.candidate_number)))
                elif row.choice_type == ChoiceKind.OVERVOTE.value:
                    choices.append(OVERVOTE)
                else:
                    choices.append(UNDERVOTE)
            ballots.append(Ballot(id=ballot_id, choices=choices))

        return Election(candidates=candidates, ballots=ballots)
