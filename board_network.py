#!/usr/bin/env python
# coding: utf-8
"""
============================================================
BOARD INTERLOCK NETWORK — GRAPH BUILDER & METRICS
============================================================
Purpose: Turn PermID-matched companies and board members
         into a company node list and a weighted edge list
         (two companies are linked when they share at least
         one director), assemble the undirected graph and
         compute the structural metrics used by the report.

Stages:
  - build_node_list            one row per matched company
  - affiliations_from_matches  person -> set of company IDs
  - build_edge_list            deduplicated, weighted edges
  - BoardNetworkAnalyzer       graph assembly, metrics, export

Everything here is a pure function of the input tables: no
network calls, and the same rows in any order give the same
node list, edge list and metrics.
============================================================
"""

import argparse
import json
import os
import sys
import warnings
from itertools import combinations
from typing import Dict, Iterable, Iterator, Optional, Set, Tuple

import pandas as pd
import numpy as np
import networkx as nx
import community as community_louvain

warnings.filterwarnings("ignore")


# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

MIN_MATCH_SCORE = 0.2
LOUVAIN_SEED    = 42

NODE_COLUMNS = ["ID", "Label", "Symbol", "Sector"]
EDGE_COLUMNS = ["V1", "V2", "Weight"]

PERMID_PREFIX = "1-"


class GraphIntegrityError(ValueError):
    """The node and edge lists disagree (broken join upstream)."""


# ---------------------------------------------------------------------------
# Helper utilities
# ---------------------------------------------------------------------------

def _is_missing(value) -> bool:
    return value is None or pd.isna(value) or str(value).strip() == ""


def _clean(value) -> Optional[str]:
    return None if _is_missing(value) else str(value).strip()


def normalize_permid(value) -> Optional[str]:
    """
    Reduce a PermID to its bare numeric form so IDs from different
    match files compare equal:
      'https://permid.org/1-4295860302' -> '4295860302'
    """
    text = _clean(value)
    if text is None:
        return None
    text = text.rsplit("/", 1)[-1]
    if text.startswith(PERMID_PREFIX):
        text = text[len(PERMID_PREFIX):]
    return text or None


def parse_match_score(value) -> float:
    """Match scores arrive as 0.87, '0.87' or '87%'; NaN when unreadable."""
    text = _clean(value)
    if text is None:
        return float("nan")
    try:
        if text.endswith("%"):
            return float(text[:-1]) / 100.0
        return float(text)
    except ValueError:
        return float("nan")


# ---------------------------------------------------------------------------
# Node list
# ---------------------------------------------------------------------------

def build_node_list(details: pd.DataFrame, matched: pd.DataFrame) -> pd.DataFrame:
    """
    Join matched companies back to the scraped details on LocalID.

    details: ID, Company, Symbol, Exchange, Sector, Url
    matched: Input_LocalID, Input_Name, Match OpenPermID, ...
    Returns: ID, Label, Symbol, Sector (ID = PermID, unique).
    """
    print("🏢 Building node list …")

    details = details.assign(LocalID=details["ID"].astype(str)).drop(columns=["ID"])
    matched = matched.assign(
        LocalID=matched["Input_LocalID"].astype(str),
        PermID=matched["Match OpenPermID"].map(normalize_permid),
    )
    unmatched = int(matched["PermID"].isna().sum())
    matched = matched[matched["PermID"].notna()]

    merged = matched.merge(details, on="LocalID", how="left")
    label = merged["Company"]
    if "Input_Name" in merged.columns:
        label = label.where(label.notna(), merged["Input_Name"])

    nodes = pd.DataFrame({
        "ID":     merged["PermID"],
        "Label":  label,
        "Symbol": merged["Symbol"],
        "Sector": merged["Sector"],
    })
    n_before = len(nodes)
    nodes = (
        nodes.drop_duplicates(subset="ID", keep="first")
        .sort_values("ID")
        .reset_index(drop=True)
    )

    print(f"   {len(nodes):,} companies ({unmatched:,} unmatched, "
          f"{n_before - len(nodes):,} duplicate PermIDs dropped)")
    return nodes[NODE_COLUMNS]


# ---------------------------------------------------------------------------
# Affiliations
# ---------------------------------------------------------------------------

def affiliations_from_matches(
    matched_members: pd.DataFrame, min_score: float = MIN_MATCH_SCORE
) -> Dict[str, Set[str]]:
    """
    Collapse matched board rows into {person PermID: {company PermID, ...}}.
    Rows scoring at or below `min_score` are not reliable affiliations and
    are dropped; rows missing either ID are rejected here so the edge
    builder only ever sees clean sets.
    """
    print("🧑‍💼 Collecting board affiliations …")

    df = pd.DataFrame({
        "person":  matched_members["Match OpenPermID"].map(normalize_permid),
        "company": matched_members["Input_OrgOpenPermID"].map(normalize_permid),
        "score":   matched_members["Match Score"].map(parse_match_score),
    })
    confident = df[df["score"] > min_score]
    clean     = confident.dropna(subset=["person", "company"])

    affiliations: Dict[str, Set[str]] = {
        person: set(companies)
        for person, companies in clean.groupby("person")["company"]
    }

    print(f"   {len(df) - len(confident):,} matches at or below score {min_score} dropped")
    print(f"   {len(confident) - len(clean):,} rows without a person or company ID rejected")
    n_pairs = len(clean[["person", "company"]].drop_duplicates())
    print(f"   {len(affiliations):,} people, {n_pairs:,} affiliations")
    return affiliations


# ---------------------------------------------------------------------------
# Edge list
# ---------------------------------------------------------------------------

def person_pairs(companies: Iterable[str]) -> Iterator[Tuple[str, str]]:
    """Every unordered pair of one person's companies, as (min, max)."""
    return combinations(sorted({str(c) for c in companies}), 2)


def build_edge_list(affiliations: Dict[str, Iterable[str]]) -> pd.DataFrame:
    """
    Weighted undirected edge list: one row per company pair, V1 < V2,
    Weight = number of people sitting on both boards. Rows come out
    sorted by (V1, V2) so the table is identical across re-runs.
    """
    print("🔗 Building edge list …")

    v1_list = []
    v2_list = []
    for person, companies in affiliations.items():
        companies = list(companies)
        if any(_is_missing(c) for c in companies):
            raise ValueError(f"Person {person!r} has a missing company ID")
        for v1, v2 in person_pairs(companies):
            v1_list.append(v1)
            v2_list.append(v2)

    if not v1_list:
        print("   0 edges")
        return pd.DataFrame({
            "V1":     pd.Series([], dtype=object),
            "V2":     pd.Series([], dtype=object),
            "Weight": pd.Series([], dtype="int64"),
        })

    df_e = pd.DataFrame({"V1": v1_list, "V2": v2_list}, dtype=object)
    edges = (
        df_e.groupby(["V1", "V2"], sort=True)
        .size()
        .reset_index(name="Weight")
        .astype({"Weight": "int64"})
    )

    print(f"   {len(df_e):,} board-pair contributions → {len(edges):,} unique edges")
    return edges[EDGE_COLUMNS]


# ---------------------------------------------------------------------------
# Graph assembly
# ---------------------------------------------------------------------------

def build_graph(nodes: pd.DataFrame, edges: pd.DataFrame) -> nx.Graph:
    """
    Combine node and edge lists into an undirected graph carrying
    Label/Symbol/Sector/Degree/Degree_weighted on nodes and
    Weight/nodes_same_sector on edges.
    """
    for frame, column in [(nodes, "ID"), (edges, "V1"), (edges, "V2")]:
        n_missing = int(frame[column].map(_is_missing).sum())
        if n_missing:
            raise GraphIntegrityError(f"{n_missing} row(s) with a missing {column}")

    ids = nodes["ID"].astype(str)
    duplicated = sorted(set(ids[ids.duplicated()]))
    if duplicated:
        raise GraphIntegrityError(
            f"{len(duplicated)} duplicate node ID(s): {', '.join(duplicated[:10])}"
        )

    v1 = edges["V1"].astype(str)
    v2 = edges["V2"].astype(str)
    unknown = sorted((set(v1) | set(v2)) - set(ids))
    if unknown:
        raise GraphIntegrityError(
            f"{len(unknown)} edge endpoint(s) missing from the node list: "
            f"{', '.join(unknown[:10])}"
        )
    if (v1 >= v2).any():
        raise GraphIntegrityError("Edge list has self-loops or pairs not ordered V1 < V2")
    if pd.DataFrame({"V1": v1, "V2": v2}).duplicated().any():
        raise GraphIntegrityError("Edge list has duplicate (V1, V2) rows")

    weights = pd.to_numeric(edges["Weight"], errors="coerce")
    if weights.isna().any() or (weights < 1).any() or (weights % 1 != 0).any():
        raise GraphIntegrityError("Edge weights must be integers >= 1")

    G = nx.Graph()
    ordered = nodes.assign(ID=ids).sort_values("ID")
    for row in ordered[NODE_COLUMNS].itertuples(index=False):
        G.add_node(
            row.ID,
            Label=_clean(row.Label),
            Symbol=_clean(row.Symbol),
            Sector=_clean(row.Sector),
        )

    ordered_edges = sorted(zip(v1, v2, weights))
    for u, v, w in ordered_edges:
        su = G.nodes[u]["Sector"]
        sv = G.nodes[v]["Sector"]
        G.add_edge(u, v, Weight=int(w), nodes_same_sector=su is not None and su == sv)

    degree          = dict(G.degree())
    degree_weighted = dict(G.degree(weight="Weight"))
    for node in G.nodes():
        G.nodes[node]["Degree"]          = int(degree[node])
        G.nodes[node]["Degree_weighted"] = int(degree_weighted[node])

    return G


# ---------------------------------------------------------------------------
# Metrics
# ---------------------------------------------------------------------------

def betweenness(G: nx.Graph) -> Dict[str, float]:
    """Unweighted shortest-path betweenness, summed over unordered pairs."""
    return nx.betweenness_centrality(G, normalized=False)


def largest_component(G: nx.Graph) -> nx.Graph:
    """Largest connected component; ties go to the one holding the smallest ID."""
    if G.number_of_nodes() == 0:
        return G.copy()
    nodes = min(nx.connected_components(G), key=lambda c: (-len(c), min(c)))
    return G.subgraph(nodes).copy()


def component_summary(G: nx.Graph) -> Dict[str, int]:
    sizes = sorted((len(c) for c in nx.connected_components(G)), reverse=True)
    return {
        "n_components":           len(sizes),
        "largest_component_size": sizes[0] if sizes else 0,
        "n_isolates":             nx.number_of_isolates(G),
    }


def largest_component_diameter(G: nx.Graph) -> Optional[int]:
    # Diameter is infinite on a disconnected graph; report the LCC's instead.
    if G.number_of_nodes() == 0:
        return None
    return int(nx.diameter(largest_component(G)))


def detect_communities(G: nx.Graph) -> Dict[str, int]:
    """Louvain partition of the largest component; everything else gets -1."""
    partition = {node: -1 for node in G.nodes()}
    lcc = largest_component(G)
    if lcc.number_of_edges() == 0:
        return partition
    partition.update(
        community_louvain.best_partition(lcc, weight="Weight", random_state=LOUVAIN_SEED)
    )
    return partition


def same_sector_share(G: nx.Graph) -> Optional[float]:
    if G.number_of_edges() == 0:
        return None
    same = sum(1 for _, _, d in G.edges(data=True) if d.get("nodes_same_sector"))
    return round(same / G.number_of_edges(), 4)


def sector_assortativity(G: nx.Graph) -> Optional[float]:
    known = [n for n, d in G.nodes(data=True) if d.get("Sector")]
    H = G.subgraph(known)
    if H.number_of_edges() == 0:
        return None
    r = nx.attribute_assortativity_coefficient(H, "Sector")
    return round(float(r), 4) if np.isfinite(r) else None


def graph_summary(G: nx.Graph, partition: Optional[Dict[str, int]] = None) -> dict:
    """Whole-graph statistics for stats.json and the report."""
    n_nodes = G.number_of_nodes()
    communities = {c for c in (partition or {}).values() if c >= 0}

    summary = {
        "total_nodes":  n_nodes,
        "total_edges":  G.number_of_edges(),
        "total_weight": int(G.size(weight="Weight")),
        "density":      round(nx.density(G), 6),
    }
    summary.update(component_summary(G))
    summary.update({
        "lcc_diameter":           largest_component_diameter(G),
        "avg_clustering":         round(nx.average_clustering(G), 4) if n_nodes else 0.0,
        "same_sector_edge_share": same_sector_share(G),
        "sector_assortativity":   sector_assortativity(G),
        "n_communities":          len(communities),
    })
    return summary


# ---------------------------------------------------------------------------
# Main analyzer
# ---------------------------------------------------------------------------

class BoardNetworkAnalyzer:
    """
    Graph pipeline over the node and edge lists:
      1. load_lists       read nodes.csv / edges.csv
      2. build_graph      validate and construct the NetworkX graph
      3. compute_metrics  betweenness, clustering, communities, summary
      4. export_results   node/edge tables and JSON for the report
    """

    def __init__(self, nodes_csv: str, edges_csv: str, output_dir: str):
        self.nodes_csv  = nodes_csv
        self.edges_csv  = edges_csv
        self.output_dir = output_dir
        os.makedirs(self.output_dir, exist_ok=True)

        self.nodes = None
        self.edges = None
        self.G     = None
        self.stats = {}

    # ------------------------------------------------------------------
    # Stage 1: Load
    # ------------------------------------------------------------------

    def load_lists(self):
        print("⚙️  Loading node & edge lists …")
        self.nodes = pd.read_csv(self.nodes_csv, dtype=str)
        self.edges = pd.read_csv(
            self.edges_csv, dtype={"V1": str, "V2": str, "Weight": "int64"}
        )
        print(f"   {len(self.nodes):,} nodes, {len(self.edges):,} edges read")

    # ------------------------------------------------------------------
    # Stage 2: Graph construction
    # ------------------------------------------------------------------

    def build_graph(self):
        print("📊 Building graph …")
        self.G = build_graph(self.nodes, self.edges)
        print(f"   {self.G.number_of_nodes():,} nodes, {self.G.number_of_edges():,} edges")

    # ------------------------------------------------------------------
    # Stage 3: Metrics
    # ------------------------------------------------------------------

    def compute_metrics(self):
        print("📐 Computing centralities & communities …")

        centrality = betweenness(self.G)
        clustering = nx.clustering(self.G)
        partition  = detect_communities(self.G)

        for node in self.G.nodes():
            self.G.nodes[node].update({
                "Centrality": round(centrality.get(node, 0.0), 6),
                "Clustering": round(clustering.get(node, 0.0), 5),
                "Community":  partition.get(node, -1),
            })

        self.stats = graph_summary(self.G, partition)

    # ------------------------------------------------------------------
    # Stage 4: Export
    # ------------------------------------------------------------------

    def node_table(self) -> pd.DataFrame:
        columns = NODE_COLUMNS + [
            "Degree", "Degree_weighted", "Centrality", "Clustering", "Community",
        ]
        rows = [{"ID": n, **d} for n, d in self.G.nodes(data=True)]
        return pd.DataFrame(rows, columns=columns)

    def edge_table(self) -> pd.DataFrame:
        rows = [
            {"V1": min(u, v), "V2": max(u, v), "Weight": d["Weight"],
             "nodes_same_sector": d["nodes_same_sector"]}
            for u, v, d in self.G.edges(data=True)
        ]
        table = pd.DataFrame(rows, columns=EDGE_COLUMNS + ["nodes_same_sector"])
        return table.sort_values(["V1", "V2"]).reset_index(drop=True)

    def export_results(self):
        print("💾 Exporting …")

        sep = (",", ":")
        out = self.output_dir

        node_table = self.node_table()
        edge_table = self.edge_table()
        node_table.to_csv(f"{out}/node_metrics.csv", index=False)
        edge_table.to_csv(f"{out}/edge_attributes.csv", index=False)

        graph_data = {
            "nodes": [
                {
                    "id":              n,
                    "label":           d.get("Label") or n,
                    "symbol":          d.get("Symbol"),
                    "sector":          d.get("Sector"),
                    "degree":          d.get("Degree", 0),
                    "degree_weighted": d.get("Degree_weighted", 0),
                    "centrality":      d.get("Centrality", 0.0),
                    "community":       d.get("Community", -1),
                }
                for n, d in self.G.nodes(data=True)
            ],
            "edges": [
                {
                    "source":      u,
                    "target":      v,
                    "weight":      d["Weight"],
                    "same_sector": d["nodes_same_sector"],
                }
                for u, v, d in self.G.edges(data=True)
            ],
        }

        with open(f"{out}/graph_data.json", "w") as f:
            json.dump(graph_data, f, separators=sep)

        with open(f"{out}/stats.json", "w") as f:
            json.dump(self.stats, f, indent=2)

        print(f"\n✅  Done! Files in: {out}/")
        print()
        _col_w = max(len(k) for k in self.stats) + 2
        for k, v in self.stats.items():
            print(f"   {k:<{_col_w}} {v}")

    # ------------------------------------------------------------------
    # Orchestration
    # ------------------------------------------------------------------

    def run(self):
        """Execute the full pipeline."""
        self.load_lists()
        self.build_graph()
        self.compute_metrics()
        self.export_results()


# ---------------------------------------------------------------------------
# Stage runners
# ---------------------------------------------------------------------------

def run_node_list(details_csv: str, matched_csv: str, nodes_csv: str) -> pd.DataFrame:
    details = pd.read_csv(details_csv, dtype=str)
    matched = pd.read_csv(matched_csv, dtype=str)
    nodes = build_node_list(details, matched)
    nodes.to_csv(nodes_csv, index=False)
    print(f"✅ Node list saved to {nodes_csv}")
    return nodes


def run_edge_list(
    matched_members_csv: str, edges_csv: str, min_score: float = MIN_MATCH_SCORE
) -> pd.DataFrame:
    matched_members = pd.read_csv(matched_members_csv, dtype=str)
    edges = build_edge_list(affiliations_from_matches(matched_members, min_score))
    edges.to_csv(edges_csv, index=False)
    print(f"✅ Edge list saved to {edges_csv}")
    return edges


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Board interlock graph builder")
    parser.add_argument("--data-dir", default="data", help="Directory holding the pipeline CSVs")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("nodes", help="Build nodes.csv from the matched companies")

    edges = sub.add_parser("edges", help="Build edges.csv from the matched board members")
    edges.add_argument(
        "--min-score",
        type=float,
        default=MIN_MATCH_SCORE,
        help=f"Keep matches scoring above this (default: {MIN_MATCH_SCORE})",
    )

    graph = sub.add_parser("graph", help="Assemble the graph and compute metrics")
    graph.add_argument("--output-dir", default="network_output")
    return parser.parse_args(argv)


def main(argv=None) -> int:
    args = parse_args(argv)
    d = args.data_dir

    if args.command == "nodes":
        required = [f"{d}/company_details.csv", f"{d}/matched_companies.csv"]
    elif args.command == "edges":
        required = [f"{d}/matched_board_members.csv"]
    else:
        required = [f"{d}/nodes.csv", f"{d}/edges.csv"]

    missing = [p for p in required if not os.path.exists(p)]
    if missing:
        print(f"❌  {', '.join(missing)} not found. Run the previous stage first.")
        return 1

    if args.command == "nodes":
        run_node_list(required[0], required[1], f"{d}/nodes.csv")
    elif args.command == "edges":
        run_edge_list(required[0], f"{d}/edges.csv", args.min_score)
    else:
        BoardNetworkAnalyzer(required[0], required[1], args.output_dir).run()
    return 0


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    sys.exit(main())
