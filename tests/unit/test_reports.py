"""
Contest report generation and the reports database.
"""

import pytest

from cvr.model import Candidate, Election
from tabulation.reports import (
    ReportsDatabase,
    candidate_performance_rows,
    generate_contest_report,
    generate_reports,
    report_path,
    round_rows,
)


@pytest.fixture
def reports_db():
    db = ReportsDatabase(":memory:")
    yield db
    db.close()


@pytest.fixture
def stored_contest(ballots_db, ballot):
    """The three-candidate batch elimination example, stored under us/me."""
    jurisdiction_id = ballots_db.upsert_jurisdiction("us/me", "Maine", "state")
    election_id = ballots_db.upsert_election(
        jurisdiction_id, "2024/11", "General Election", "2024-11-05", "us_me", "maine"
    )
    contest_id = ballots_db.insert_contest(election_id, "governor", "Governor")
    ballots_db.insert_election_data(
        contest_id,
        Election(
            candidates=[
                Candidate(id=0, name="A", external_id="1"),
                Candidate(id=1, name="B", external_id="2"),
                Candidate(id=2, name="C", external_id="3"),
            ],
            ballots=[
                ballot("1", 0, 1),
                ballot("2", 0, 1),
                ballot("3", 1, 2),
                ballot("4", 2),
                # Exhausted by two skips under the Maine rule.
                ballot("5", "u", "u", 1),
            ],
        ),
    )
    contest = ballots_db.get_contests_for_election(election_id).to_dict("records")[0]
    return ballots_db, contest


class TestGenerateContestReport:
    @pytest.mark.unit
    def test_report_record(self, stored_contest):
        ballots_db, contest = stored_contest
        report = generate_contest_report(ballots_db, contest)

        assert report["info"] == {
            "name": "Governor",
            "date": "2024-11-05",
            "dataFormat": "us_me",
            "jurisdictionPath": "us/me",
            "electionPath": "2024/11",
            "office": "governor",
            "officeName": "Governor",
            "jurisdictionName": "Maine",
            "electionName": "General Election",
        }
        assert report["ballotCount"] == 5
        assert report["candidates"] == [
            {"name": "A", "type": "Regular"},
            {"name": "B", "type": "Regular"},
            {"name": "C", "type": "Regular"},
        ]
        assert report["results"] == [
            {"round": 1, "tally": {"A": 2, "B": 1, "C": 1}, "eliminated": ["B", "C"], "exhausted": 1},
            {"round": 2, "tally": {"A": 2}, "eliminated": [], "exhausted": 3},
        ]
        assert report["summary"] == {
            "winner": "A",
            "totalRounds": 2,
            "totalBallots": 4,
            "status": "decided",
        }

    @pytest.mark.unit
    def test_uses_election_normalization(self, stored_contest):
        ballots_db, contest = stored_contest
        ballots_db.conn.execute("UPDATE elections SET normalization = 'simple'")

        report = generate_contest_report(ballots_db, contest)

        # Under the simple rule ballot 5 counts for B.
        assert report["results"][0]["tally"] == {"A": 2, "B": 2, "C": 1}
        assert report["summary"]["totalBallots"] == 5


class TestReportsDatabase:
    @pytest.mark.unit
    def test_store_and_fetch(self, stored_contest, reports_db):
        ballots_db, contest = stored_contest
        report = generate_contest_report(ballots_db, contest)

        path = reports_db.store_report(report)

        assert path == "us/me/2024/11/governor"
        assert reports_db.get_report(path) == report
        assert reports_db.get_report("us/me/2024/11/absent") is None

        rounds = reports_db.get_contest_rounds(path)
        assert len(rounds) == 4
        first = rounds[rounds["round_number"] == 1].set_index("candidate_name")
        assert first.loc["A", "percentage"] == 50.0
        assert bool(first.loc["B", "eliminated"])
        assert not bool(first.loc["A", "eliminated"])

        summaries = reports_db.get_contest_summaries("us/me/2024/11")
        assert summaries.iloc[0]["winner"] == "A"
        assert summaries.iloc[0]["num_candidates"] == 3

    @pytest.mark.unit
    def test_store_replaces_previous_report(self, stored_contest, reports_db):
        ballots_db, contest = stored_contest
        report = generate_contest_report(ballots_db, contest)

        reports_db.store_report(report)
        reports_db.store_report(report)

        assert reports_db.count_rows("contest_reports") == 1
        assert reports_db.count_rows("contest_summaries") == 1
        assert reports_db.count_rows("contest_rounds") == 4
        assert reports_db.count_rows("candidate_performance") == 3

    @pytest.mark.unit
    def test_candidate_performance(self, stored_contest, reports_db):
        ballots_db, contest = stored_contest
        path = reports_db.store_report(generate_contest_report(ballots_db, contest))

        performance = reports_db.get_candidate_performance(path).set_index("candidate_name")

        assert performance.loc["A", "first_choice_votes"] == 2
        assert performance.loc["A", "final_votes"] == 2
        assert performance.loc["B", "elimination_round"] == 1


class TestGenerateReports:
    @pytest.mark.unit
    def test_every_contest_reported(self, stored_contest, reports_db):
        ballots_db, _ = stored_contest

        paths = generate_reports(ballots_db, reports_db)

        assert paths == ["us/me/2024/11/governor"]
        elections = reports_db.get_elections()
        assert list(elections["path"]) == ["us/me/2024/11"]
        assert elections.iloc[0]["jurisdiction_name"] == "Maine"

    @pytest.mark.unit
    def test_rerun_is_stable(self, stored_contest, reports_db):
        ballots_db, _ = stored_contest

        generate_reports(ballots_db, reports_db)
        generate_reports(ballots_db, reports_db)

        assert reports_db.count_rows("election_index") == 1
        assert reports_db.count_rows("contest_reports") == 1


class TestRowHelpers:
    @pytest.fixture
    def report(self):
        return {
            "info": {"jurisdictionPath": "us/me", "electionPath": "2024/11", "office": "mayor"},
            "candidates": [{"name": "A"}, {"name": "B"}],
            "results": [
                {"round": 1, "tally": {"A": 0, "B": 0}, "eliminated": ["A", "B"], "exhausted": 0},
            ],
        }

    @pytest.mark.unit
    def test_report_path(self, report):
        assert report_path(report["info"]) == "us/me/2024/11/mayor"

    @pytest.mark.unit
    def test_zero_vote_round_has_no_percentage(self, report):
        rows = round_rows("p", report)

        assert rows["percentage"].isna().all()
        assert rows["eliminated"].all()

    @pytest.mark.unit
    def test_performance_without_rounds(self, report):
        report["results"] = []
        rows = candidate_performance_rows("p", report)

        assert list(rows["first_choice_votes"]) == [0, 0]
        assert rows["final_votes"].isna().all()
