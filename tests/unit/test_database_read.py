"""
Ballots database read-back operations.
"""

import pytest

from cvr.model import OVERVOTE, UNDERVOTE, Candidate, CandidateType, Choice, Election


@pytest.fixture
def populated_db(ballots_db, ballot):
    nyc = ballots_db.upsert_jurisdiction("us/ny/nyc", "New York City", "city")
    maine = ballots_db.upsert_jurisdiction("us/me", "Maine", "state")
    primary = ballots_db.upsert_election(
        nyc, "2025/06", "Primary Election", "2025-06-24", "us_ny_nyc"
    )
    ballots_db.upsert_election(
        maine, "2024/11", "General Election", "2024-11-05", "us_me", "maine"
    )

    council = ballots_db.insert_contest(
        primary, "council-member-district-000008", "DEM Council Member", "District", "000008"
    )
    mayor = ballots_db.insert_contest(primary, "mayor-000001", "DEM Mayor", "Citywide", "000001")

    ballots_db.insert_election_data(
        mayor,
        Election(
            candidates=[
                Candidate(id=0, name="Bob", external_id="102"),
                Candidate(id=1, name="Alice", external_id="101"),
                Candidate(id=2, name="Write-in", candidate_type=CandidateType.WRITE_IN, external_id="0"),
            ],
            ballots=[
                ballot("1002", 0, 1, "u"),
                ballot("1001", 1, "o", 2),
                ballot("1003", 2, 0, 1),
            ],
        ),
    )
    ballots_db.insert_election_data(council, Election(candidates=[], ballots=[]))
    return ballots_db, primary, mayor, council


class TestReadBack:
    @pytest.mark.unit
    def test_elections_newest_first(self, populated_db):
        db, primary, _, _ = populated_db
        elections = db.get_all_elections()

        assert list(elections["jurisdiction_path"]) == ["us/ny/nyc", "us/me"]
        assert list(elections["date"]) == ["2025-06-24", "2024-11-05"]
        assert list(elections["normalization"]) == ["simple", "maine"]
        assert int(elections.iloc[0]["id"]) == primary

    @pytest.mark.unit
    def test_missing_election(self, populated_db):
        db, _, _, _ = populated_db
        assert db.get_election(9999) is None

    @pytest.mark.unit
    def test_contests_ordered_by_office(self, populated_db):
        db, primary, mayor, council = populated_db
        contests = db.get_contests_for_election(primary)

        assert list(contests["office_id"]) == [
            "council-member-district-000008",
            "mayor-000001",
        ]
        assert [int(i) for i in contests["id"]] == [council, mayor]
        assert contests.iloc[1]["jurisdiction_code"] == "000001"

    @pytest.mark.unit
    def test_candidates_in_allocation_order(self, populated_db):
        db, _, mayor, _ = populated_db
        candidates = db.get_candidates_for_contest(mayor)

        assert list(candidates["name"]) == ["Bob", "Alice", "Write-in"]
        assert list(candidates["candidate_type"]) == ["regular", "regular", "write_in"]

    @pytest.mark.unit
    def test_read_election_rebuilds_ballots(self, populated_db):
        db, _, mayor, _ = populated_db
        election = db.read_election(mayor)

        assert [c.name for c in election.candidates] == ["Bob", "Alice", "Write-in"]
        assert election.candidates[2].candidate_type is CandidateType.WRITE_IN
        assert election.candidates[1].external_id == "101"

        # Ballots come back in insertion order with every rank intact.
        assert [b.id for b in election.ballots] == ["1002", "1001", "1003"]
        assert election.ballots[0].choices == (Choice.vote(0), Choice.vote(1), UNDERVOTE)
        assert election.ballots[1].choices == (Choice.vote(1), OVERVOTE, Choice.vote(2))

    @pytest.mark.unit
    def test_empty_contest(self, populated_db):
        db, _, _, council = populated_db
        election = db.read_election(council)

        assert election.candidates == []
        assert election.ballots == []
