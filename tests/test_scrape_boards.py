# tests/test_scrape_boards.py
"""
Listing, profile and board page parsing plus the scrape orchestration,
with every HTTP call replaced by canned pages.
"""

from unittest.mock import Mock

import pandas as pd
import pytest
import requests

import scrape_boards
from scrape_boards import (
    BOARD_COLUMNS,
    DETAIL_COLUMNS,
    LISTING_COLUMNS,
    fetch_page,
    parse_board,
    parse_company_profile,
    parse_listing,
    run_scrape,
    scrape_company,
)

LISTING_HTML = """
<html><body>
<table><tr><th>Index</th><th>Value</th></tr><tr><td>CROBEX</td><td>2100</td></tr></table>
<table>
  <thead><tr><th>Name</th><th>Symbol</th><th>ISIN</th><th>Sector</th><th>ICB Code</th></tr></thead>
  <tbody>
    <tr><td>Alpha d.d.</td><td>ALPH</td><td>HRALPHRA0001</td><td>Banks</td><td>8355</td></tr>
    <tr><td>Beta d.d.</td><td>BETA</td><td>HRBETARA0002</td><td>Technology</td><td>9533</td></tr>
    <tr><td>Suspended</td><td></td><td></td><td></td><td></td></tr>
  </tbody>
</table>
</body></html>
"""

PROFILE_HTML = """
<html><body>
<h1>Alpha banka d.d.</h1>
<dl>
  <dt>Exchange</dt><dd>Zagreb Stock Exchange</dd>
  <dt>Sector</dt><dd>Banking Services</dd>
</dl>
</body></html>
"""

BOARD_HTML = """
<html><body>
<table>
  <tr><th>Name</th><th>Age</th><th>Since</th><th>Current Position</th></tr>
  <tr><td>Ana Horvat</td><td>54</td><td>2015</td><td>Chairman of the Supervisory Board</td></tr>
  <tr><td>Ivo Ivić</td><td>61</td><td>2010</td><td>Member of the Supervisory Board</td></tr>
</table>
</body></html>
"""


@pytest.fixture
def page_urls(monkeypatch):
    monkeypatch.setattr(scrape_boards, "PROFILE_URL", "https://example.test/{symbol}")
    monkeypatch.setattr(scrape_boards, "PEOPLE_URL", "https://example.test/{symbol}/people")


class TestParsers:

    def test_listing(self):
        listing = parse_listing(LISTING_HTML)

        assert list(listing.columns) == LISTING_COLUMNS
        assert listing.to_dict("records") == [
            {"ID": 1, "Name": "Alpha d.d.", "Symbol": "ALPH", "ISIN": "HRALPHRA0001",
             "Sector": "Banks", "ICB Code": "8355"},
            {"ID": 2, "Name": "Beta d.d.", "Symbol": "BETA", "ISIN": "HRBETARA0002",
             "Sector": "Technology", "ICB Code": "9533"},
        ]

    def test_listing_without_table(self):
        assert parse_listing("<html><p>Maintenance</p></html>").empty

    def test_profile(self):
        company = {"ID": 1, "Name": "Alpha d.d.", "Symbol": "ALPH", "Sector": "Banks"}

        detail = parse_company_profile(PROFILE_HTML, company, "https://example.test/ALPH")

        assert detail == {
            "ID": 1,
            "Company": "Alpha banka d.d.",
            "Symbol": "ALPH",
            "Exchange": "Zagreb Stock Exchange",
            "Sector": "Banking Services",
            "Url": "https://example.test/ALPH",
        }

    def test_profile_falls_back_to_listing(self):
        company = {"ID": 2, "Name": "Beta d.d.", "Symbol": "BETA", "Sector": "Technology"}

        detail = parse_company_profile("<html><body></body></html>", company, "u")

        assert detail["Company"] == "Beta d.d."
        assert detail["Sector"] == "Technology"
        assert detail["Exchange"] is None

    def test_board(self):
        rows = parse_board(BOARD_HTML, "https://example.test/ALPH")

        assert [list(r) for r in rows] == [BOARD_COLUMNS, BOARD_COLUMNS]
        assert rows[0] == {
            "Name": "Ana Horvat",
            "Age": "54",
            "Since": "2015",
            "Current Position": "Chairman of the Supervisory Board",
            "Url": "https://example.test/ALPH",
        }

    def test_board_page_without_table(self):
        assert parse_board("<html></html>", "u") == []


class TestFetchPage:

    def test_ok(self):
        session = Mock()
        session.get.return_value = Mock(status_code=200, text="<html></html>")

        assert fetch_page("https://example.test", session) == "<html></html>"

    def test_non_200(self):
        session = Mock()
        session.get.return_value = Mock(status_code=404, text="not found")

        assert fetch_page("https://example.test", session) is None

    def test_network_error(self):
        session = Mock()
        session.get.side_effect = requests.ConnectionError("connection reset")

        assert fetch_page("https://example.test", session) is None

    def test_failed_profile_yields_nothing(self, page_urls):
        session = Mock()
        session.get.return_value = Mock(status_code=500, text="")

        assert scrape_company({"ID": 1, "Symbol": "ALPH"}, session) is None


class TestRunScrape:

    def test_writes_all_three_files(self, tmp_path, monkeypatch, page_urls):
        pages = {
            "https://example.test/listing":     LISTING_HTML,
            "https://example.test/ALPH":        PROFILE_HTML,
            "https://example.test/ALPH/people": BOARD_HTML,
            # BETA's profile page is down.
        }
        monkeypatch.setattr(scrape_boards, "fetch_page", lambda url, session=None: pages.get(url))

        companies, details, board = run_scrape("https://example.test/listing", str(tmp_path), workers=2)

        assert len(companies) == 2
        assert details["Symbol"].tolist() == ["ALPH"]
        assert list(details.columns) == DETAIL_COLUMNS
        assert board["Name"].tolist() == ["Ana Horvat", "Ivo Ivić"]
        assert set(board["Url"]) == {"https://example.test/ALPH"}

        for name in ("companies.csv", "company_details.csv", "board_members.csv"):
            assert (tmp_path / name).exists()
        assert len(pd.read_csv(tmp_path / "board_members.csv")) == 2

    def test_listing_failure_is_fatal(self, tmp_path, monkeypatch):
        monkeypatch.setattr(scrape_boards, "fetch_page", lambda url, session=None: None)

        with pytest.raises(RuntimeError):
            run_scrape("https://example.test/listing", str(tmp_path))

    def test_main_without_listing_url(self):
        assert scrape_boards.main(["--listing-url", ""]) == 1
