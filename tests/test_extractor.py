"""Tests for list-mode and detail-mode participant extraction."""

import pytest
from bs4 import BeautifulSoup

from conftest import DETAIL_HTML, LIST_HTML
from crewtrack.scraping.extractor import (
    extract_detail_row,
    extract_list_rows,
    extract_participants,
    parse_distance_marker,
)


@pytest.mark.parametrize(
    "text,expected",
    [
        ("30k", 30.0),
        ("30K", 30.0),
        ("21.1 km", 21.1),
        ("Half", 21.0975),
        ("하프", 21.0975),
        ("Finish", 42.195),
        ("Full", 42.195),
        ("CP3", 3.0),
        ("4 cp", 4.0),
        ("Start", None),
        ("2:15:30", None),
        ("", None),
    ],
)
def test_parse_distance_marker(text, expected):
    assert parse_distance_marker(text) == expected


def test_km_marker_wins_over_keywords():
    assert parse_distance_marker("Half 21K") == 21.0


def test_list_mode_rows():
    rows = extract_participants(LIST_HTML)

    assert [(r.bib, r.name, r.team) for r in rows] == [
        ("101", "Kim", "TeamA"),
        ("202", "Lee", "TeamB"),
        ("303", "Park", "TeamA Seoul"),
    ]
    assert rows[0].split == "2:15:30"
    assert rows[0].distance_mark_km == 30.0
    assert rows[1].distance_mark_km == 15.0
    assert rows[2].distance_mark_km == 10.0
    assert all(r.estimated_distance_km is None for r in rows)


def test_list_mode_skips_junk_rows():
    html = """
    <table>
      <tr><td>Bib</td><td>Name</td></tr>
      <tr><td>1234567</td><td>Too long</td></tr>
      <tr><td>12a</td><td>Not numeric</td></tr>
      <tr><td>55</td><td></td></tr>
      <tr><td>77</td></tr>
      <tr><td>88</td><td>Choi</td></tr>
    </table>
    """
    rows = extract_list_rows(BeautifulSoup(html, "html.parser"))

    assert [(r.bib, r.name) for r in rows] == [("88", "Choi")]
    assert rows[0].team == ""
    assert rows[0].split == ""
    assert rows[0].distance_mark_km is None


def test_list_mode_rows_always_have_numeric_bib_and_name():
    html = LIST_HTML + "<table><tr><td>-</td><td>x</td></tr><tr><td> 9 </td><td> Jo </td></tr></table>"
    rows = extract_participants(html)

    assert rows
    for r in rows:
        assert r.bib.isdigit()
        assert r.name


def test_list_mode_aria_rows():
    html = """
    <div role="table">
      <div role="row"><span role="cell">42</span><span role="cell">Yoon</span><span role="cell">Dawn</span></div>
    </div>
    """
    rows = extract_participants(html)

    assert [(r.bib, r.name, r.team) for r in rows] == [("42", "Yoon", "Dawn")]


def test_duplicate_bibs_are_kept():
    html = "<table><tr><td>7</td><td>A</td></tr><tr><td>7</td><td>B</td></tr></table>"

    assert [r.name for r in extract_participants(html)] == ["A", "B"]


def test_detail_mode_term_pairs():
    rows = extract_participants(DETAIL_HTML)

    assert len(rows) == 1
    row = rows[0]
    assert row.bib == "5123"
    assert row.name == "홍길동"
    assert row.team == "Crew Runners"
    assert row.distance_mark_km == 21.0975
    assert row.split == "1:49:40"


def test_detail_mode_cell_pairs_and_checkpoints():
    html = """
    <table>
      <tr><th>Bib No.</th><td>#777</td></tr>
      <tr><th>Name:</th><td>Choi</td></tr>
      <tr><th>Club</th><td>Night Owls</td></tr>
    </table>
    <table>
      <tr><td>CP2</td><td>0:40:00</td></tr>
      <tr><td>CP3</td><td>1:05:00</td></tr>
    </table>
    """
    rows = extract_detail_row(BeautifulSoup(html, "html.parser"))

    assert len(rows) == 1
    assert (rows[0].bib, rows[0].name, rows[0].team) == ("777", "Choi", "Night Owls")
    assert rows[0].distance_mark_km == 3.0
    assert rows[0].split == "1:05:00"


def test_detail_mode_without_checkpoints():
    html = "<dl><dt>Bib</dt><dd>12</dd><dt>Name</dt><dd>Han</dd></dl>"
    rows = extract_participants(html)

    assert len(rows) == 1
    assert rows[0].team == ""
    assert rows[0].split == ""
    assert rows[0].distance_mark_km is None


def test_detail_mode_needs_bib_and_name():
    assert extract_participants("<dl><dt>Name</dt><dd>Han</dd></dl>") == []
    assert extract_participants("<dl><dt>Bib</dt><dd>n/a</dd><dt>Name</dt><dd>Han</dd></dl>") == []


def test_list_mode_preferred_over_detail():
    rows = extract_participants(LIST_HTML + DETAIL_HTML)

    assert "5123" not in {r.bib for r in rows}


def test_team_filter_is_case_sensitive_substring():
    rows = extract_participants(LIST_HTML, team_filter="TeamA")
    assert [r.bib for r in rows] == ["101", "303"]

    assert extract_participants(LIST_HTML, team_filter="teama") == []


def test_team_filter_keeps_rows_without_team():
    html = "<table><tr><td>5</td><td>Solo</td></tr><tr><td>6</td><td>Duo</td><td>Other</td></tr></table>"

    assert [r.bib for r in extract_participants(html, team_filter="TeamA")] == ["5"]


@pytest.mark.parametrize("markup", [None, "", "<html></html>", "plain text, no markup", "<table><tr>"])
def test_unrecognised_markup_yields_nothing(markup):
    assert extract_participants(markup) == []
