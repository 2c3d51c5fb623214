from __future__ import annotations

import numpy as np
import pandas as pd

from diffnet.classify import UNCLASSIFIED, DiffNetResult


def category_counts(edges: pd.DataFrame) -> pd.DataFrame:
    """Edge counts per (category, pattern), largest first."""
    if edges.empty:
        return pd.DataFrame(columns=["category", "pattern", "n_edges"])
    return (
        edges.groupby(["category", "pattern"])
        .size()
        .rename("n_edges")
        .reset_index()
        .sort_values(["n_edges", "pattern"], ascending=[False, True], kind="mergesort")
        .reset_index(drop=True)
    )


def _fmt_val(val) -> str:
    """Format a metric value for display."""
    if val is None or (isinstance(val, float) and np.isnan(val)):
        return "N/A"
    if isinstance(val, float):
        if np.isinf(val):
            return "inf"
        if abs(val) < 0.01 and val != 0:
            return f"{val:.2e}"
        return f"{val:.4f}"
    if isinstance(val, (int, np.integer)):
        return f"{val:,}"
    return str(val)


def print_summary(result: DiffNetResult, top_n: int = 10) -> None:
    """Print edge categories, filter outcome and node labels."""
    edges, retained, nodes = result.edges, result.retained, result.nodes
    n_edges = len(edges)

    print("\n" + "=" * 70)
    print("DIFFERENTIAL NETWORK CLASSIFICATION SUMMARY")
    print("=" * 70)

    print(f"\n[NETWORKS] {', '.join(result.networks)}")
    print(f"  Edges compared: {n_edges:,}")
    pct = 100 * len(retained) / n_edges if n_edges else 0.0
    print(f"  Retained (ratio >= {result.params.ratio_threshold:g}): {len(retained):,} ({pct:.1f}%)")

    print(f"\n[EDGE PATTERNS] (all edges -> retained)")
    kept = category_counts(retained).set_index("pattern")["n_edges"]
    for row in category_counts(edges).itertuples(index=False):
        n_kept = int(kept.get(row.pattern, 0))
        print(f"  {row.pattern:24s} {row.category:10s} {row.n_edges:>8,} -> {n_kept:>8,}")

    if not retained.empty:
        finite = retained["ratio"][np.isfinite(retained["ratio"])]
        print(f"\n[SCORES] (retained)")
        print(f"  Mean centrality: {_fmt_val(float(retained['centrality'].mean()))}")
        print(f"  Mean internal:   {_fmt_val(float(retained['internal'].mean()))}")
        print(f"  Median ratio:    {_fmt_val(float(finite.median())) if len(finite) else 'inf'}")

    print(f"\n[NODES] cutoffs: centrality >= {result.cutoffs.min_centrality:g}, "
          f"internal <= {result.cutoffs.max_internal:g}")
    print(f"  Total nodes: {len(nodes):,}")
    for label, n in nodes["label"].value_counts().sort_index().items():
        print(f"  {label:24s} {n:>8,}")

    classified = nodes.loc[nodes["label"] != UNCLASSIFIED]
    if not classified.empty:
        top = classified.sort_values(
            ["n_votes", "vote_centrality", "node"], ascending=[False, False, True], kind="mergesort"
        ).head(top_n)
        print(f"\n  Top nodes by votes:")
        print(f"    {'Node':>16} {'Label':>24} {'Votes':>6} {'Edges':>6} {'Centrality':>10}")
        for row in top.itertuples(index=False):
            print(f"    {row.node:>16} {row.label:>24} {row.n_votes:>6} {row.n_edges:>6} "
                  f"{row.vote_centrality:>10.3f}")
