#!/usr/bin/env python
# coding: utf-8
"""
============================================================
BOARD INTERLOCK NETWORK — DESCRIPTIVE REPORT
============================================================
Reads the outputs of `board_network.py graph` and renders:

  - degree / weighted degree / betweenness summary table
  - per-sector breakdown (size, mean degree, isolated share)
  - top companies by degree, weighted degree and betweenness
  - distribution of edge weights (shared directors per pair)
  - PNG plots: degree distribution, weighted degree
    histogram, top betweenness, sector-coloured layout
  - summary.txt tying it all together
============================================================
"""

import argparse
import json
import os
import sys
from collections import Counter

import matplotlib

matplotlib.use("Agg")

import matplotlib.pyplot as plt
import networkx as nx
import numpy as np
import pandas as pd
from matplotlib.patches import Patch

TOP_N       = 15
RANDOM_SEED = 42
DPI         = 150

METRIC_COLUMNS = ["Degree", "Degree_weighted", "Centrality"]


# ---------------------------------------------------------------------------
# Loading
# ---------------------------------------------------------------------------

def load_results(input_dir: str):
    nodes = pd.read_csv(
        f"{input_dir}/node_metrics.csv",
        dtype={"ID": str, "Label": str, "Symbol": str, "Sector": str},
    )
    edges = pd.read_csv(f"{input_dir}/edge_attributes.csv", dtype={"V1": str, "V2": str})
    with open(f"{input_dir}/stats.json") as f:
        stats = json.load(f)
    return nodes, edges, stats


# ---------------------------------------------------------------------------
# Tables
# ---------------------------------------------------------------------------

def degree_statistics(nodes: pd.DataFrame) -> pd.DataFrame:
    return nodes[METRIC_COLUMNS].describe().round(3)


def sector_statistics(nodes: pd.DataFrame) -> pd.DataFrame:
    df = nodes.assign(
        Sector=nodes["Sector"].fillna("Unknown"),
        Isolated=nodes["Degree"] == 0,
    )
    table = (
        df.groupby("Sector")
        .agg(
            companies           =("ID",              "count"),
            mean_degree         =("Degree",          "mean"),
            mean_degree_weighted=("Degree_weighted", "mean"),
            isolated_share      =("Isolated",        "mean"),
        )
        .round(3)
        .reset_index()
    )
    return table.sort_values(["companies", "Sector"], ascending=[False, True]).reset_index(drop=True)


def top_companies(nodes: pd.DataFrame, column: str, n: int = TOP_N) -> pd.DataFrame:
    ranked = nodes.sort_values([column, "ID"], ascending=[False, True]).head(n)
    return ranked[["ID", "Label", "Symbol", "Sector", column]].reset_index(drop=True)


def weight_distribution(edges: pd.DataFrame) -> pd.DataFrame:
    counts = Counter(int(w) for w in edges["Weight"])
    return pd.DataFrame(
        [{"Weight": w, "edges": c} for w, c in sorted(counts.items())],
        columns=["Weight", "edges"],
    )


# ---------------------------------------------------------------------------
# Plots
# ---------------------------------------------------------------------------

def save_fig(fig: plt.Figure, path: str) -> None:
    fig.savefig(path, dpi=DPI, bbox_inches="tight", facecolor="white")
    plt.close(fig)


def plot_degree_distribution(nodes: pd.DataFrame, path: str) -> None:
    dist = Counter(int(d) for d in nodes["Degree"])
    fig, ax = plt.subplots(figsize=(8, 5))
    ax.bar(list(dist.keys()), list(dist.values()), color="#2b6cb0")
    ax.set_xlabel("Degree (companies sharing a director)")
    ax.set_ylabel("Number of companies")
    ax.set_title("Degree distribution")
    save_fig(fig, path)


def plot_weighted_degree(nodes: pd.DataFrame, path: str) -> None:
    values = nodes["Degree_weighted"].to_numpy()
    bins = np.arange(0, (values.max() if len(values) else 0) + 2) - 0.5
    fig, ax = plt.subplots(figsize=(8, 5))
    ax.hist(values, bins=bins, color="#dd6b20", edgecolor="white")
    ax.set_xlabel("Weighted degree (shared board seats)")
    ax.set_ylabel("Number of companies")
    ax.set_title("Weighted degree distribution")
    save_fig(fig, path)


def plot_top_centrality(nodes: pd.DataFrame, path: str, n: int = TOP_N) -> None:
    top = top_companies(nodes, "Centrality", n).iloc[::-1]
    labels = top["Label"].fillna(top["ID"])
    fig, ax = plt.subplots(figsize=(8, max(3, 0.4 * len(top))))
    ax.barh(labels, top["Centrality"], color="#38a169")
    ax.set_xlabel("Betweenness centrality")
    ax.set_title(f"Top {len(top)} companies by betweenness")
    save_fig(fig, path)


def plot_network(nodes: pd.DataFrame, edges: pd.DataFrame, path: str) -> None:
    G = nx.Graph()
    G.add_nodes_from(nodes["ID"])
    G.add_weighted_edges_from(zip(edges["V1"], edges["V2"], edges["Weight"]), weight="Weight")

    sectors = nodes.set_index("ID")["Sector"].fillna("Unknown")
    palette = {s: plt.get_cmap("tab20")(i % 20) for i, s in enumerate(sorted(sectors.unique()))}
    wdeg = nodes.set_index("ID")["Degree_weighted"]

    pos = nx.spring_layout(G, seed=RANDOM_SEED, weight="Weight")
    fig, ax = plt.subplots(figsize=(12, 10))
    nx.draw_networkx_edges(
        G, pos, ax=ax, alpha=0.4,
        width=[0.5 + d["Weight"] for _, _, d in G.edges(data=True)],
    )
    nx.draw_networkx_nodes(
        G, pos, ax=ax,
        node_color=[palette[sectors[n]] for n in G.nodes()],
        node_size=[40 + 30 * wdeg[n] for n in G.nodes()],
    )
    ax.legend(
        handles=[Patch(color=c, label=s) for s, c in palette.items()],
        loc="upper left", bbox_to_anchor=(1.0, 1.0), fontsize="small", title="Sector",
    )
    ax.set_title("Companies linked by shared board members")
    ax.axis("off")
    save_fig(fig, path)


# ---------------------------------------------------------------------------
# Report
# ---------------------------------------------------------------------------

def build_report(input_dir: str, report_dir: str) -> dict:
    """Write tables, plots and summary.txt; returns the tables by name."""
    print("📝 Building report …")
    os.makedirs(report_dir, exist_ok=True)

    nodes, edges, stats = load_results(input_dir)

    tables = {
        "degree_statistics":   degree_statistics(nodes),
        "sector_statistics":   sector_statistics(nodes),
        "top_degree":          top_companies(nodes, "Degree"),
        "top_degree_weighted": top_companies(nodes, "Degree_weighted"),
        "top_centrality":      top_companies(nodes, "Centrality"),
        "weight_distribution": weight_distribution(edges),
    }
    for name, table in tables.items():
        table.to_csv(f"{report_dir}/{name}.csv", index=(name == "degree_statistics"))

    print("📈 Plotting …")
    plot_degree_distribution(nodes, f"{report_dir}/degree_distribution.png")
    plot_weighted_degree(nodes, f"{report_dir}/weighted_degree.png")
    plot_top_centrality(nodes, f"{report_dir}/top_centrality.png")
    plot_network(nodes, edges, f"{report_dir}/network.png")

    _col_w = max(len(k) for k in stats) + 2
    lines = ["BOARD INTERLOCK NETWORK", "=" * 60, ""]
    lines += [f"{k:<{_col_w}} {v}" for k, v in stats.items()]
    for title, name in [
        ("Degree statistics",               "degree_statistics"),
        ("Sectors",                         "sector_statistics"),
        ("Top companies by degree",         "top_degree"),
        ("Top companies by weighted degree", "top_degree_weighted"),
        ("Top companies by betweenness",    "top_centrality"),
        ("Shared directors per edge",       "weight_distribution"),
    ]:
        table = tables[name]
        lines += ["", title, "-" * len(title),
                  table.to_string(index=(name == "degree_statistics"))]

    with open(f"{report_dir}/summary.txt", "w") as f:
        f.write("\n".join(lines) + "\n")

    print(f"\n✅  Report written to {report_dir}/")
    return tables


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Board interlock network report")
    parser.add_argument("--input-dir", default="network_output")
    parser.add_argument("--report-dir", default="report")
    return parser.parse_args(argv)


def main(argv=None) -> int:
    args = parse_args(argv)
    needed = ["node_metrics.csv", "edge_attributes.csv", "stats.json"]
    missing = [f for f in needed if not os.path.exists(f"{args.input_dir}/{f}")]
    if missing:
        print(f"❌  {', '.join(missing)} not found in {args.input_dir}/. Run `board_network.py graph` first.")
        return 1
    build_report(args.input_dir, args.report_dir)
    return 0


if __name__ == "__main__":
    sys.exit(main())
