"""
Ranked-choice header grammar unit tests.
"""

import pytest

from cvr.errors import HeaderRankError, ParseContractError
from cvr.formats import generate_office_id
from cvr.headers import parse_header


@pytest.mark.unit
@pytest.mark.smoke
def test_borough_president_header():
    parsed = parse_header("DEM Borough President Choice 1 of 4 New York (026918)")

    assert parsed.office == "DEM Borough President"
    assert parsed.rank == 1
    assert parsed.total_ranks == 4
    assert parsed.jurisdiction_name == "York"
    assert parsed.jurisdiction_code == "026918"
    assert parsed.is_first_choice()


@pytest.mark.unit
def test_citywide_header():
    parsed = parse_header("DEM Mayor Choice 3 of 5 Citywide (000001)")

    assert parsed.office == "DEM Mayor"
    assert parsed.rank == 3
    assert parsed.jurisdiction_name == "Citywide"
    assert not parsed.is_first_choice()


@pytest.mark.unit
@pytest.mark.parametrize(
    "header",
    [
        None,
        "",
        "Cast Vote Record",
        "Precinct",
        "DEM Mayor choice 1 of 5 Citywide (000001)",
        "DEM Mayor Choice 1 of 5 Citywide",
        "DEM Mayor Choice one of 5 Citywide (000001)",
        "DEM Mayor Choice 1 of 5 Citywide (abc)",
    ],
)
def test_non_matching_headers_are_ignored(header):
    assert parse_header(header) is None


@pytest.mark.unit
@pytest.mark.parametrize(
    "header",
    [
        "DEM Mayor Choice 6 of 5 Citywide (000001)",
        "DEM Mayor Choice 0 of 5 Citywide (000001)",
        "DEM Mayor Choice 1 of 6 Citywide (000001)",
    ],
)
def test_rank_outside_supported_range_is_fatal(header):
    with pytest.raises(HeaderRankError) as exc_info:
        parse_header(header)
    assert isinstance(exc_info.value, ParseContractError)


@pytest.mark.unit
def test_code_taken_from_last_parenthesis():
    parsed = parse_header("DEM Member (Assembly) Choice 2 of 3 Brooklyn (001234)")

    assert parsed.office == "DEM Member (Assembly)"
    assert parsed.jurisdiction_code == "001234"


@pytest.mark.unit
def test_same_contest_uses_code_when_given():
    parsed = parse_header("DEM Council Member Choice 1 of 5 8th Council District (000008)")

    assert parsed.jurisdiction_name == "District"
    assert parsed.same_contest("DEM Council Member", "District")
    assert parsed.same_contest("DEM Council Member", "District", "000008")
    assert not parsed.same_contest("DEM Council Member", "District", "000009")
    assert not parsed.same_contest("DEM Mayor", "District")


@pytest.mark.unit
@pytest.mark.parametrize(
    "office,jurisdiction,code,expected",
    [
        ("DEM Borough President", "York", "026918", "borough-president-york-026918"),
        ("DEM Mayor", "Citywide", "000001", "mayor-000001"),
        ("DEM Council Member", "District", "000008", "council-member-district-000008"),
        ("REP Mayor", "Citywide", "000002", "rep-mayor-000002"),
    ],
)
def test_generate_office_id(office, jurisdiction, code, expected):
    assert generate_office_id(office, jurisdiction, code) == expected
