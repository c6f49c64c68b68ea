# tests/conftest.py

"""
Shared fixtures: a three-company example network (X and Y share two
directors, Z sits alone) and zero request delays for the HTTP stages.
"""

import pandas as pd
import pytest

import match_permid
import scrape_boards


@pytest.fixture(autouse=True)
def no_request_delays(monkeypatch):
    monkeypatch.setattr(scrape_boards, "REQUEST_DELAY", 0)
    monkeypatch.setattr(match_permid, "MATCH_DELAY", 0)


@pytest.fixture
def example_nodes():
    return pd.DataFrame({
        "ID":     ["X", "Y", "Z"],
        "Label":  ["Xylo d.d.", "Yara d.d.", "Zeta d.d."],
        "Symbol": ["XYLO", "YARA", "ZETA"],
        "Sector": ["Banks", "Banks", "Technology"],
    })


@pytest.fixture
def example_edges():
    return pd.DataFrame({"V1": ["X"], "V2": ["Y"], "Weight": [2]})


@pytest.fixture
def network_files(tmp_path, example_nodes, example_edges):
    """nodes.csv / edges.csv for the example network, as the builder writes them."""
    data_dir = tmp_path / "data"
    data_dir.mkdir()
    example_nodes.to_csv(data_dir / "nodes.csv", index=False)
    example_edges.to_csv(data_dir / "edges.csv", index=False)
    return data_dir
