#!/usr/bin/env python
# coding: utf-8
"""
============================================================
BOARD INTERLOCKS — PERMID RECORD MATCHING
============================================================
Purpose: Resolve scraped companies and board members to
         persistent PermIDs through the record matching
         API, so the same director sitting on two boards
         collapses into one person.

         Records are uploaded as CSV in batches of at most
         500 rows. A batch that comes back non-200 is
         reported and skipped; re-running the stage resends
         only the records not already in the output file.
============================================================
"""

import argparse
import io
import os
import re
import sys
import time
from typing import Any, Dict, List, Optional, Tuple

import pandas as pd
import requests
from pydantic import BaseModel, Field
from tqdm import tqdm

MATCH_URL      = os.environ.get("PERMID_MATCH_URL", "https://api-eit.refinitiv.com/permid/match/file")
MATCH_DELAY    = float(os.environ.get("MATCH_DELAY", "1.0"))
MATCH_TIMEOUT  = 120
MAX_BATCH_SIZE = 500

RECORD_TYPES = ("Organization", "Person")

COMPANY_COLUMNS = ["LocalID", "Standard Identifier", "Name"]
PERSON_COLUMNS  = ["LocalID", "FirstName", "MiddleName", "LastName", "OrgOpenPermID"]

HONORIFICS = {"mr", "mrs", "ms", "miss", "dr", "prof", "sir", "dame", "mag", "ing"}
SUFFIXES   = {"jr", "sr", "ii", "iii", "iv", "phd", "mba", "cpa"}


# ---------------------------------------------------------------------------
# Response schema
# ---------------------------------------------------------------------------

class MatchResponse(BaseModel):
    ignored_input_records: int = Field(
        0, alias="ignoredInputRecords",
        description="Rows the service could not read from the upload.",
    )
    output_content_response: List[Dict[str, Any]] = Field(
        default_factory=list, alias="outputContentResponse",
        description="One dict per input row: Input_* echo columns plus Match * columns.",
    )


# ---------------------------------------------------------------------------
# Upload preparation
# ---------------------------------------------------------------------------

def prepare_company_records(details: pd.DataFrame) -> pd.DataFrame:
    """company_details rows → Organization upload rows."""
    symbols = details["Symbol"].fillna("").astype(str).str.strip()
    return pd.DataFrame({
        "LocalID":             details["ID"].astype(str),
        "Standard Identifier": ("Ticker:" + symbols).where(symbols != "", ""),
        "Name":                details["Company"],
    }, columns=COMPANY_COLUMNS)


def split_person_name(name: str) -> Tuple[str, str, str]:
    """'Dr. Ana Marija Horvat, PhD' → ('Ana', 'Marija', 'Horvat')."""
    tokens = [t for t in re.split(r"[\s,]+", str(name).strip()) if t]
    tokens = [t for t in tokens if t.rstrip(".").lower() not in HONORIFICS | SUFFIXES]
    if not tokens:
        return "", "", ""
    if len(tokens) == 1:
        return "", "", tokens[0]
    return tokens[0], " ".join(tokens[1:-1]), tokens[-1]


def prepare_person_records(
    board: pd.DataFrame, details: pd.DataFrame, nodes: pd.DataFrame
) -> pd.DataFrame:
    """
    board_members rows → Person upload rows, each tagged with the PermID
    of the company whose board it was scraped from (Url → Symbol → ID).
    Seats on companies that never matched to a node are dropped.

    LocalID is the seat's row number in board_members.csv, so resumed
    runs keep pointing at the same seats when the node list grows.
    """
    url_to_symbol = dict(zip(details["Url"], details["Symbol"].astype(str)))
    symbol_to_id  = dict(zip(nodes["Symbol"].astype(str), nodes["ID"].astype(str)))

    board = board.reset_index(drop=True)
    org_ids = board["Url"].map(url_to_symbol).map(symbol_to_id)
    kept = board.assign(
        LocalID=[f"P{i + 1}" for i in range(len(board))],
        OrgOpenPermID=org_ids,
    )
    kept = kept[kept["OrgOpenPermID"].notna()].reset_index(drop=True)

    names = [split_person_name(n) for n in kept["Name"]]
    records = pd.DataFrame({
        "LocalID":       kept["LocalID"],
        "FirstName":     [n[0] for n in names],
        "MiddleName":    [n[1] for n in names],
        "LastName":      [n[2] for n in names],
        "OrgOpenPermID": kept["OrgOpenPermID"],
    }, columns=PERSON_COLUMNS)

    dropped = len(board) - len(kept)
    if dropped:
        print(f"   {dropped:,} board seats skipped (company not in node list)")
    return records


# ---------------------------------------------------------------------------
# API calls
# ---------------------------------------------------------------------------

def match_batch(
    records: pd.DataFrame, record_type: str, token: str, session=None
) -> Optional[pd.DataFrame]:
    """
    Upload one batch. Returns the matched rows, or None (with a warning)
    when the service answers with anything but 200.
    """
    if record_type not in RECORD_TYPES:
        raise ValueError(f"record_type must be one of {RECORD_TYPES}, got {record_type!r}")
    if len(records) > MAX_BATCH_SIZE:
        raise ValueError(f"Batch of {len(records)} rows exceeds {MAX_BATCH_SIZE}")

    headers = {
        "x-ag-access-token":                    token,
        "x-openmatch-numberOfMatchesPerRecord": "1",
        "x-openmatch-dataType":                 record_type,
    }
    buffer = io.StringIO()
    records.to_csv(buffer, index=False)
    files = {"file": ("records.csv", buffer.getvalue(), "text/csv")}

    http = session or requests
    response = http.post(MATCH_URL, headers=headers, files=files, timeout=MATCH_TIMEOUT)
    if response.status_code != 200:
        tqdm.write(f"⚠️ Warning: {record_type} batch failed with status {response.status_code}")
        return None

    payload = MatchResponse.model_validate(response.json())
    return pd.DataFrame(payload.output_content_response)


def _already_matched(output_csv: str) -> set:
    if not os.path.exists(output_csv):
        return set()
    try:
        done = pd.read_csv(output_csv, dtype=str, usecols=["Input_LocalID"])
    except (ValueError, pd.errors.EmptyDataError):
        print(f"⚠️ Warning: {output_csv} is unreadable. Starting fresh.")
        return set()
    return set(done["Input_LocalID"].dropna())


def match_records(
    records: pd.DataFrame,
    record_type: str,
    token: str,
    output_csv: str,
    batch_size: int = MAX_BATCH_SIZE,
    session=None,
) -> int:
    """
    Match `records` in batches, appending every successful batch to
    `output_csv`. Returns the number of batches that failed.
    """
    batch_size = min(batch_size, MAX_BATCH_SIZE)

    # ── RESUME LOGIC ──────────────────────────────────────────────────────
    done = _already_matched(output_csv)
    if done:
        print(f"🔄 {len(done):,} {record_type} records already matched in {output_csv}.")
    pending = records[~records["LocalID"].astype(str).isin(done)].reset_index(drop=True)

    if pending.empty:
        print(f"🎉 All {record_type} records have already been matched! Nothing left to do.")
        return 0

    print(f"⏳ {len(pending):,} {record_type} records to match")

    n_failed = 0
    first_write = not done
    # Appended batches must follow the column order already on disk.
    columns = None if first_write else list(pd.read_csv(output_csv, nrows=0).columns)
    starts = range(0, len(pending), batch_size)
    for i, start in enumerate(tqdm(starts, desc=f"  {record_type} batches")):
        if i:
            time.sleep(MATCH_DELAY)
        batch = pending.iloc[start:start + batch_size]
        result = match_batch(batch, record_type, token, session)
        if result is None:
            n_failed += 1
            continue
        if result.empty:
            continue

        if columns is None:
            columns = list(result.columns)
        result.reindex(columns=columns).to_csv(
            output_csv,
            index=False,
            mode="w" if first_write else "a",
            header=first_write,
        )
        first_write = False

    if n_failed:
        print(f"⚠️ Warning: {n_failed} batch(es) failed. Re-run this stage to retry them.")
    return n_failed


# ---------------------------------------------------------------------------
# Stage runners
# ---------------------------------------------------------------------------

def run_company_matching(data_dir: str, token: str, session=None) -> int:
    details = pd.read_csv(f"{data_dir}/company_details.csv", dtype=str)
    print("🔎 Matching companies …")
    return match_records(
        prepare_company_records(details), "Organization", token,
        f"{data_dir}/matched_companies.csv", session=session,
    )


def run_person_matching(data_dir: str, token: str, session=None) -> int:
    board   = pd.read_csv(f"{data_dir}/board_members.csv", dtype=str)
    details = pd.read_csv(f"{data_dir}/company_details.csv", dtype=str)
    nodes   = pd.read_csv(f"{data_dir}/nodes.csv", dtype=str)
    print("🔎 Matching board members …")
    return match_records(
        prepare_person_records(board, details, nodes), "Person", token,
        f"{data_dir}/matched_board_members.csv", session=session,
    )


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Match companies / board members to PermIDs")
    parser.add_argument("target", choices=["companies", "people"])
    parser.add_argument("--data-dir", default="data")
    parser.add_argument(
        "--token",
        default=os.environ.get("PERMID_ACCESS_TOKEN", ""),
        help="API access token (default: $PERMID_ACCESS_TOKEN)",
    )
    return parser.parse_args(argv)


def main(argv=None) -> int:
    args = parse_args(argv)
    if not args.token:
        print("❌ Error: no access token (pass --token or set PERMID_ACCESS_TOKEN).")
        return 1

    needed = ["company_details.csv"]
    if args.target == "people":
        needed += ["board_members.csv", "nodes.csv"]
    missing = [f for f in needed if not os.path.exists(f"{args.data_dir}/{f}")]
    if missing:
        print(f"❌ Error: {', '.join(missing)} not found in {args.data_dir}/")
        return 1

    if args.target == "companies":
        run_company_matching(args.data_dir, args.token)
    else:
        run_person_matching(args.data_dir, args.token)
    print("\n✅ Matching finished.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
