from app.services.census.parser import (
    canonical_unit,
    derive_unit_from_room,
    normalize_unit,
    parse_census_text,
    parse_resident_name,
)


def test_parse_unit_room_name_line(census_text):
    rows = parse_census_text(census_text)
    assert [row.key for row in rows] == ["row-1", "row-2", "row-3"]
    first = rows[0]
    assert first.line_no == 1
    assert first.mrn == "MRN100"
    assert first.name == "SMITH, JOHN"
    assert first.unit == "Unit 2"
    assert first.room == "201-A"
    assert first.dob_raw == "01/15/1940"
    assert first.status == "Active Current"
    assert first.payor == "Medicare"


def test_parse_skips_blank_empty_and_mrnless_lines():
    text = "\n\nUnit 2 202 EMPTY (MRN1)\nCensus report for March\nUnit 2 203 SMITH, JOHN (MRN5) 01/01/1940\n"
    rows = parse_census_text(text)
    assert len(rows) == 1
    assert rows[0].mrn == "MRN5"
    assert rows[0].key == "row-5"


def test_parse_room_first_derives_unit():
    rows = parse_census_text("301 JANE DOE (MRN9) 05/06/1950")
    assert rows[0].unit == "Unit 3"
    assert rows[0].room == "301"
    assert rows[0].name == "DOE, JANE"


def test_parse_bare_unit_designator():
    rows = parse_census_text("4 410 ROE, RICHARD (MRN3)")
    assert rows[0].unit == "Unit 4"
    assert rows[0].room == "410"
    assert rows[0].name == "ROE, RICHARD"
    assert rows[0].dob_raw == ""


def test_parse_mrn_label_without_parentheses():
    rows = parse_census_text("Unit 3 305 DOE, JANE MRN: 200 02/20/1938")
    assert rows[0].mrn == "200"
    assert rows[0].dob_raw == "02/20/1938"


def test_parse_keeps_invalid_unit_for_validation():
    rows = parse_census_text("Unit 9 901 GHOST, CASPER (MRN7) 01/01/1950")
    assert rows[0].unit == "Unit 9"


def test_parse_skips_report_headers_posing_as_residents():
    rows = parse_census_text("MEDICARE ONLY (A)\nUnit 2 201 SMITH, JOHN (MRN1) 01/01/1940")
    assert [row.mrn for row in rows] == ["MRN1"]


def test_parse_does_not_dedupe():
    text = "Unit 2 201 SMITH, JOHN (MRN1) 01/01/1940\nUnit 2 201 SMITH, JOHN (MRN1) 01/01/1940"
    rows = parse_census_text(text)
    assert [row.key for row in rows] == ["row-1", "row-2"]


def test_unit_helpers():
    assert normalize_unit(" unit   3 ") == "Unit 3"
    assert normalize_unit("2") == "Unit 2"
    assert canonical_unit("UNIT 4") == "Unit 4"
    assert canonical_unit("Unit 7") == ""
    assert derive_unit_from_room("214-B") == "Unit 2"
    assert derive_unit_from_room("B14") == ""


def test_parse_resident_name_orders_last_first():
    assert parse_resident_name("John Smith") == "Smith, John"
    assert parse_resident_name("SMITH, JOHN -") == "SMITH, JOHN"
    assert parse_resident_name("") == ""


def test_unit_prefixed_line_without_room_keeps_name_out_of_room():
    [row] = parse_census_text("Unit 2 SMITH JOHN (MRN100)")
    assert row.unit == "Unit 2"
    assert row.room == ""
    assert row.name == "JOHN, SMITH"
    assert row.dob_raw == ""
