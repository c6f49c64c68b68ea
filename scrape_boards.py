#!/usr/bin/env python
# coding: utf-8
"""
============================================================
BOARD INTERLOCKS — LISTING & BOARD SCRAPER
============================================================
Purpose: Scrape the exchange listing, every listed company's
         profile page and its board of directors into flat
         CSV files:

           companies.csv        ID, Name, Symbol, ISIN, Sector, ICB Code
           company_details.csv  ID, Company, Symbol, Exchange, Sector, Url
           board_members.csv    Name, Age, Since, Current Position, Url

         A failed page only loses that company's record and
         the rest of the batch carries on. Requests are
         spaced by a fixed delay.
============================================================
"""

import argparse
import os
import sys
import time
from concurrent.futures import ThreadPoolExecutor
from typing import List, Optional
from urllib.parse import quote

import pandas as pd
import requests
from bs4 import BeautifulSoup
from tqdm import tqdm

# Profile and people pages are addressed by exchange ticker.
PROFILE_URL = os.environ.get("PROFILE_URL", "https://www.reuters.com/companies/{symbol}")
PEOPLE_URL  = os.environ.get("PEOPLE_URL",  "https://www.reuters.com/companies/{symbol}/people")
LISTING_URL = os.environ.get("LISTING_URL", "")

HEADERS = {"User-Agent": "Mozilla/5.0 (compatible; board-interlocks/0.1)"}
REQUEST_DELAY   = float(os.environ.get("SCRAPE_DELAY", "1.0"))
REQUEST_TIMEOUT = 30

LISTING_COLUMNS = ["ID", "Name", "Symbol", "ISIN", "Sector", "ICB Code"]
DETAIL_COLUMNS  = ["ID", "Company", "Symbol", "Exchange", "Sector", "Url"]
BOARD_COLUMNS   = ["Name", "Age", "Since", "Current Position", "Url"]


def fetch_page(url: str, session=None) -> Optional[str]:
    """GET a page; None (with a warning) on network error or non-200."""
    http = session or requests
    try:
        response = http.get(url, headers=HEADERS, timeout=REQUEST_TIMEOUT)
    except requests.RequestException as e:
        tqdm.write(f"⚠️ Warning: {url} failed: {e}")
        return None
    finally:
        time.sleep(REQUEST_DELAY)

    if response.status_code != 200:
        tqdm.write(f"⚠️ Warning: {url} returned status {response.status_code}")
        return None
    return response.text


# ---------------------------------------------------------------------------
# HTML helpers
# ---------------------------------------------------------------------------

def _find_table(soup: BeautifulSoup, header: str):
    """First table with a header cell named `header` (case-insensitive)."""
    for table in soup.find_all("table"):
        headers = [th.get_text(" ", strip=True).lower() for th in table.find_all("th")]
        if header.lower() in headers:
            return table
    return None


def _table_records(table) -> List[dict]:
    """Rows of a table as dicts keyed by lower-cased header text."""
    headers = [th.get_text(" ", strip=True).lower() for th in table.find_all("th")]
    records = []
    for tr in table.find_all("tr"):
        cells = tr.find_all("td")
        if not cells:
            continue
        values = [td.get_text(" ", strip=True) for td in cells]
        records.append(dict(zip(headers, values)))
    return records


def _labelled_value(soup: BeautifulSoup, label: str) -> Optional[str]:
    """Text of the element right after a 'Sector' / 'Exchange' style label."""
    for tag in soup.find_all(["dt", "th", "td", "span", "p", "div", "h3", "h4"]):
        if tag.get_text(" ", strip=True).lower() != label.lower():
            continue
        sibling = tag.find_next_sibling()
        if sibling is not None:
            return sibling.get_text(" ", strip=True) or None
    return None


# ---------------------------------------------------------------------------
# Page parsers
# ---------------------------------------------------------------------------

def parse_listing(html: str) -> pd.DataFrame:
    soup = BeautifulSoup(html, "html.parser")
    table = _find_table(soup, "Symbol")
    if table is None:
        return pd.DataFrame(columns=LISTING_COLUMNS)

    rows = []
    for record in _table_records(table):
        if not record.get("symbol"):
            continue
        rows.append({
            "ID":       len(rows) + 1,
            "Name":     record.get("name"),
            "Symbol":   record["symbol"],
            "ISIN":     record.get("isin"),
            "Sector":   record.get("sector"),
            "ICB Code": record.get("icb code"),
        })
    return pd.DataFrame(rows, columns=LISTING_COLUMNS)


def parse_company_profile(html: str, company: dict, url: str) -> dict:
    soup = BeautifulSoup(html, "html.parser")
    title = soup.find("h1")
    return {
        "ID":       company["ID"],
        "Company":  title.get_text(" ", strip=True) if title else company.get("Name"),
        "Symbol":   company["Symbol"],
        "Exchange": _labelled_value(soup, "Exchange"),
        "Sector":   _labelled_value(soup, "Sector") or company.get("Sector"),
        "Url":      url,
    }


def parse_board(html: str, company_url: str) -> List[dict]:
    soup = BeautifulSoup(html, "html.parser")
    table = _find_table(soup, "Name")
    if table is None:
        return []
    return [
        {
            "Name":             record["name"],
            "Age":              record.get("age"),
            "Since":            record.get("since"),
            "Current Position": record.get("current position"),
            "Url":              company_url,
        }
        for record in _table_records(table)
        if record.get("name")
    ]


# ---------------------------------------------------------------------------
# Fetchers
# ---------------------------------------------------------------------------

def fetch_company_list(url: str, session=None) -> pd.DataFrame:
    html = fetch_page(url, session)
    if html is None:
        raise RuntimeError(f"Could not fetch the company listing from {url}")
    return parse_listing(html)


def scrape_company(company: dict, session=None) -> Optional[dict]:
    url = PROFILE_URL.format(symbol=quote(str(company["Symbol"])))
    html = fetch_page(url, session)
    if html is None:
        return None
    return parse_company_profile(html, company, url)


def scrape_board(detail: dict, session=None) -> List[dict]:
    url = PEOPLE_URL.format(symbol=quote(str(detail["Symbol"])))
    html = fetch_page(url, session)
    if html is None:
        return []
    return parse_board(html, detail["Url"])


# ---------------------------------------------------------------------------
# Orchestration
# ---------------------------------------------------------------------------

def run_scrape(listing_url: str, output_dir: str, workers: int = 1):
    """Listing → company details → boards; each step saved as CSV."""
    os.makedirs(output_dir, exist_ok=True)

    print("🌐 Fetching company listing …")
    companies = fetch_company_list(listing_url)
    companies.to_csv(f"{output_dir}/companies.csv", index=False)
    print(f"   {len(companies):,} listed companies")

    print("🏢 Scraping company profiles …")
    records = companies.to_dict("records")
    with ThreadPoolExecutor(max_workers=workers) as ex:
        results = list(tqdm(ex.map(scrape_company, records), total=len(records), desc="  Profiles"))
    details = pd.DataFrame([r for r in results if r is not None], columns=DETAIL_COLUMNS)
    details = details.sort_values("ID").reset_index(drop=True)
    details.to_csv(f"{output_dir}/company_details.csv", index=False)
    print(f"   {len(details):,} profiles ({len(records) - len(details):,} failed)")

    print("🧑‍💼 Scraping boards of directors …")
    detail_records = details.to_dict("records")
    with ThreadPoolExecutor(max_workers=workers) as ex:
        boards = list(tqdm(ex.map(scrape_board, detail_records), total=len(detail_records), desc="  Boards"))
    board = pd.DataFrame([row for rows in boards for row in rows], columns=BOARD_COLUMNS)
    board.to_csv(f"{output_dir}/board_members.csv", index=False)
    print(f"   {len(board):,} board seats")

    return companies, details, board


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Scrape listed companies and their boards")
    parser.add_argument("--listing-url", default=LISTING_URL, help="Page holding the listing table")
    parser.add_argument("--data-dir", default="data")
    parser.add_argument("--workers", type=int, default=1, help="Concurrent page fetches (default: 1)")
    return parser.parse_args(argv)


def main(argv=None) -> int:
    args = parse_args(argv)
    if not args.listing_url:
        print("❌ Error: no listing URL (pass --listing-url or set LISTING_URL).")
        return 1
    try:
        run_scrape(args.listing_url, args.data_dir, args.workers)
    except RuntimeError as e:
        print(f"❌ Error: {e}")
        return 1
    print(f"\n✅ Done! Scraped data saved to {args.data_dir}/")
    return 0


if __name__ == "__main__":
    sys.exit(main())
