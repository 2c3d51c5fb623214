"""
Differential network classification.

Compares k >= 2 signed co-expression networks defined over (mostly) the same
node set. Every edge seen in at least one network gets a weight vector across
the k networks (missing edges count as 0), which is reduced to

    pattern      component-wise rounding to {-1, 0, +1}
    category     none | common | different | specific
    centrality   ||w|| / sqrt(k)              1 at a hypercube corner, 0 at the origin
    internal     ||w - mean_pattern|| / sqrt(k)
    ratio        centrality / internal

Edges with ratio >= threshold are retained ("well classified"); each node then
takes the dominant pattern among its retained incident edges.

Categories for two networks A and B
-----------------------------------
    common+ / common-     same sign in A and B
    different:A+B-        opposite signs (and different:A-B+)
    specific:A+           present in A only (and specific:A-, specific:B+, ...)
    none                  zero in both; never votes for a node label

Memory is O(n_edges * k); pre-filter the node set before comparing large
networks.
"""

from __future__ import annotations

import logging
import warnings
from collections.abc import Mapping
from dataclasses import dataclass

import numpy as np
import pandas as pd

from diffnet.errors import DegenerateWeightVector, InputShapeMismatch, InvalidCutoff
from diffnet.params import ClassifierParams, NodeCutoffs

logger = logging.getLogger(__name__)

EDGE_COLUMNS = ("node_a", "node_b", "weight")

CAT_NONE = "none"
CAT_COMMON = "common"
CAT_DIFFERENT = "different"
CAT_SPECIFIC = "specific"

UNCLASSIFIED = "unclassified"

SCORE_COLUMNS = ("pattern", "category", "centrality", "internal", "corner_distance", "ratio")
RESERVED_COLUMNS = {"node_a", "node_b", *SCORE_COLUMNS}

_SIGN_SYMBOL = {1: "+", -1: "-"}


# =============================================================================
# Input alignment
# =============================================================================

def _node_ids(values: pd.Series) -> pd.Series:
    """String identifiers; integer-valued floats (int columns padded with NaN) drop the '.0'."""

    def fmt(v) -> str:
        if isinstance(v, (float, np.floating)) and float(v).is_integer():
            return str(int(v))
        return str(v)

    return values.map(fmt)


def canonicalize_edges(table: pd.DataFrame, name: str = "network") -> pd.DataFrame:
    """
    Validate one edge table and order each pair so that node_a < node_b.

    Rows with a missing identifier, a self loop, or a weight that is not a
    finite number in [-1, 1] are rejected. Duplicate pairs keep the first row.
    """
    missing = [c for c in EDGE_COLUMNS if c not in table.columns]
    if missing:
        raise InputShapeMismatch(f"{name}: edge table is missing columns {missing}")

    df = table.loc[:, list(EDGE_COLUMNS)]
    n_in = len(df)

    no_id = df["node_a"].isna() | df["node_b"].isna()
    df = df.loc[~no_id]
    node_a = _node_ids(df["node_a"])
    node_b = _node_ids(df["node_b"])
    weight = pd.to_numeric(df["weight"], errors="coerce").astype(float)

    bad_weight = ~np.isfinite(weight) | (weight.abs() > 1.0)
    self_loop = node_a == node_b
    keep = ~(bad_weight | self_loop)

    n_rejected = int(no_id.sum()) + int((~keep).sum())
    if n_rejected:
        logger.warning(
            "%s: rejected %d of %d rows (missing id, self loop or weight outside [-1, 1])",
            name, n_rejected, n_in,
        )

    node_a, node_b, weight = node_a[keep], node_b[keep], weight[keep]
    swap = (node_a > node_b).to_numpy()
    out = pd.DataFrame({
        "node_a": np.where(swap, node_b, node_a),
        "node_b": np.where(swap, node_a, node_b),
        "weight": weight.to_numpy(dtype=float),
    })

    dup = out.duplicated(["node_a", "node_b"], keep="first")
    if dup.any():
        logger.warning("%s: dropped %d duplicate pair(s), keeping the first", name, int(dup.sum()))
        out = out.loc[~dup]

    return out.reset_index(drop=True)


def _node_set(edges: pd.DataFrame) -> set:
    return set(edges["node_a"]) | set(edges["node_b"])


def build_weight_matrix(tables: Mapping[str, pd.DataFrame]) -> pd.DataFrame:
    """
    Outer-join k edge tables into one row per pair, one weight column per network.

    Returns
    -------
    DataFrame with node_a, node_b and one float column per network (in the
    order of ``tables``); pairs absent from a network have weight 0.
    """
    names = [str(n) for n in tables]
    if len(names) < 2:
        raise InputShapeMismatch(f"need at least two networks to compare, got {len(names)}")
    if len(set(names)) != len(names):
        raise InputShapeMismatch(f"network names must be unique, got {names}")
    clash = RESERVED_COLUMNS.intersection(names)
    if clash:
        raise InputShapeMismatch(f"network names clash with output columns: {sorted(clash)}")

    canon = {
        name: canonicalize_edges(table, name)
        for name, table in zip(names, tables.values())
    }

    empty = [name for name in names if canon[name].empty]
    for name in empty:
        logger.warning("%s: no edges; every edge of the other networks is specific to them", name)

    # disjoint node sets only matter between networks that have edges
    filled = [name for name in names if name not in empty]
    node_sets = {name: _node_set(canon[name]) for name in filled}
    if len(filled) > 1:
        for name in filled:
            others = set().union(*(node_sets[o] for o in filled if o != name))
            if not node_sets[name] & others:
                raise InputShapeMismatch(f"{name}: shares no node with the other networks")

    merged = None
    for name in names:
        df = canon[name].rename(columns={"weight": name}).set_index(["node_a", "node_b"])
        merged = df if merged is None else merged.join(df, how="outer")

    merged = merged.fillna(0.0).sort_index().reset_index()
    logger.info("Aligned %d networks over %d pairs", len(names), len(merged))
    return merged


# =============================================================================
# Patterns and categories
# =============================================================================

def sign_patterns(weights: np.ndarray) -> np.ndarray:
    """Round each weight to {-1, 0, +1}, half away from zero."""
    w = np.asarray(weights, dtype=float)
    return (np.sign(w) * (np.abs(w) >= 0.5)).astype(np.int8)


def categorize(patterns: np.ndarray) -> np.ndarray:
    """
    Coarse category per pattern row.

    none       all components zero
    common     all non-zero, same sign
    different  all non-zero, mixed signs
    specific   at least one zero and one non-zero component
    """
    p = np.asarray(patterns)
    k = p.shape[1]
    n_nonzero = (p != 0).sum(axis=1)
    same_sign = (p > 0).all(axis=1) | (p < 0).all(axis=1)
    full = n_nonzero == k

    cat = np.full(len(p), CAT_SPECIFIC, dtype=object)
    cat[n_nonzero == 0] = CAT_NONE
    cat[full & same_sign] = CAT_COMMON
    cat[full & ~same_sign] = CAT_DIFFERENT
    return cat


def pattern_label(pattern, names) -> str:
    """Human-readable label of one sign pattern, e.g. ``different:A+B-``."""
    p = [int(v) for v in pattern]
    nonzero = [v for v in p if v != 0]
    if not nonzero:
        return CAT_NONE
    if len(nonzero) == len(p):
        if all(v > 0 for v in p):
            return "common+"
        if all(v < 0 for v in p):
            return "common-"
        return "different:" + "".join(f"{n}{_SIGN_SYMBOL[v]}" for n, v in zip(names, p))
    return "specific:" + "".join(f"{n}{_SIGN_SYMBOL[v]}" for n, v in zip(names, p) if v != 0)


def pattern_labels(patterns: np.ndarray, names) -> np.ndarray:
    cache: dict = {}
    out = np.empty(len(patterns), dtype=object)
    for i, row in enumerate(np.asarray(patterns)):
        key = tuple(row.tolist())
        if key not in cache:
            cache[key] = pattern_label(key, names)
        out[i] = cache[key]
    return out


# =============================================================================
# Scores
# =============================================================================

def centrality_scores(weights: np.ndarray) -> np.ndarray:
    """Distance from the centre of the comparison hypercube, scaled to [0, 1]."""
    w = np.asarray(weights, dtype=float)
    return np.linalg.norm(w, axis=1) / np.sqrt(w.shape[1])


def corner_distances(weights: np.ndarray, patterns: np.ndarray) -> np.ndarray:
    """Distance from each weight vector to its own categorical corner."""
    w = np.asarray(weights, dtype=float)
    return np.linalg.norm(w - np.asarray(patterns, dtype=float), axis=1) / np.sqrt(w.shape[1])


def internal_scores(weights: np.ndarray, patterns: np.ndarray) -> np.ndarray:
    """
    Distance from each weight vector to the mean vector of its pattern group.

    A weight vector and its group mean share one closed orthant of the
    [-1, 1]^k cube, so the scaled distance never exceeds 1.

    Lower is more representative. An edge alone in its pattern group scores
    0, so its ratio is inf and it passes any ratio filter.
    """
    w = np.asarray(weights, dtype=float)
    if len(w) == 0:
        return np.zeros(0, dtype=float)

    _, group = np.unique(np.asarray(patterns), axis=0, return_inverse=True)
    group = np.asarray(group).reshape(-1)
    n_groups = int(group.max()) + 1

    sums = np.zeros((n_groups, w.shape[1]), dtype=float)
    np.add.at(sums, group, w)
    counts = np.bincount(group, minlength=n_groups)
    means = sums / counts[:, None]

    return np.linalg.norm(w - means[group], axis=1) / np.sqrt(w.shape[1])


def score_ratios(centrality: np.ndarray, internal: np.ndarray) -> np.ndarray:
    """centrality / internal; inf when internal is 0, 0 when centrality is 0."""
    c = np.asarray(centrality, dtype=float)
    i = np.asarray(internal, dtype=float)
    with np.errstate(divide="ignore", invalid="ignore"):
        ratio = np.where(i > 0, c / i, np.inf)
    return np.where(c > 0, ratio, 0.0)


# =============================================================================
# Edge and node classification
# =============================================================================

def network_names(edges: pd.DataFrame) -> list[str]:
    """Weight columns of a weight matrix or classified edge table."""
    return [c for c in edges.columns if c not in RESERVED_COLUMNS]


def classify_edges(tables: Mapping[str, pd.DataFrame]) -> pd.DataFrame:
    """
    Assign every edge a pattern, a category and its confidence scores.

    Parameters
    ----------
    tables : mapping of network name -> edge table (node_a, node_b, weight)

    Returns
    -------
    DataFrame with node_a, node_b, one weight column per network, then
    pattern, category, centrality, internal, corner_distance, ratio.
    """
    matrix = build_weight_matrix(tables)
    names = network_names(matrix)
    w = matrix[names].to_numpy(dtype=float)
    p = sign_patterns(w)

    centrality = centrality_scores(w)
    internal = internal_scores(w, p)

    edges = matrix.assign(
        pattern=pattern_labels(p, names),
        category=categorize(p),
        centrality=centrality,
        internal=internal,
        corner_distance=corner_distances(w, p),
        ratio=score_ratios(centrality, internal),
    )

    n_zero = int((w == 0).all(axis=1).sum())
    if n_zero:
        warnings.warn(
            f"{n_zero} edge(s) have weight 0 in every network; categorised as '{CAT_NONE}'",
            DegenerateWeightVector,
            stacklevel=2,
        )
    return edges


def filter_edges(edges: pd.DataFrame, threshold: float = 1.0) -> pd.DataFrame:
    """Keep edges whose centrality/internal ratio is at least ``threshold``."""
    if not threshold >= 0.0:
        raise InvalidCutoff(f"ratio threshold must be >= 0, got {threshold}")
    return edges.loc[edges["ratio"] >= threshold].reset_index(drop=True)


def _incident_votes(edges: pd.DataFrame, cutoffs: NodeCutoffs) -> pd.DataFrame:
    """One row per (node, incident eligible edge)."""
    eligible = edges.loc[
        (edges["category"] != CAT_NONE)
        & (edges["centrality"] >= cutoffs.min_centrality)
        & (edges["internal"] <= cutoffs.max_internal),
        ["node_a", "node_b", "pattern", "category", "centrality"],
    ]
    cols = ["pattern", "category", "centrality"]
    return pd.concat(
        [
            eligible[["node_a", *cols]].rename(columns={"node_a": "node"}),
            eligible[["node_b", *cols]].rename(columns={"node_b": "node"}),
        ],
        ignore_index=True,
    )


def node_table(
    edges: pd.DataFrame,
    cutoffs: NodeCutoffs | None = None,
    all_nodes=None,
) -> pd.DataFrame:
    """
    Label every node with the dominant pattern of its eligible incident edges.

    An edge votes when its category is not ``none``, its centrality is at
    least ``cutoffs.min_centrality`` and its internal score is at most
    ``cutoffs.max_internal``. Ties on vote count go to the larger summed
    centrality, then to the lexicographically smallest label. Nodes without a
    vote are ``unclassified``; ``all_nodes`` extends the table with nodes
    whose edges were all filtered out.
    """
    cutoffs = cutoffs or NodeCutoffs()
    votes = _incident_votes(edges, cutoffs)

    universe = _node_set(edges)
    if all_nodes is not None:
        universe |= set(all_nodes)
    nodes = pd.Index(sorted(universe), name="node", dtype=object)
    n_edges = votes.groupby("node").size().reindex(nodes, fill_value=0)

    tally = (
        votes.groupby(["node", "pattern", "category"], sort=False)["centrality"]
        .agg(n_votes="size", vote_centrality="sum")
        .reset_index()
        .rename(columns={"pattern": "label"})
        .sort_values(
            ["node", "n_votes", "vote_centrality", "label"],
            ascending=[True, False, False, True],
            kind="mergesort",
        )
        .drop_duplicates("node", keep="first")
        .set_index("node")
        .reindex(nodes)
    )

    out = pd.DataFrame({
        "node": nodes,
        "label": tally["label"].fillna(UNCLASSIFIED).to_numpy(),
        "category": tally["category"].fillna(UNCLASSIFIED).to_numpy(),
        "n_edges": n_edges.to_numpy(dtype=int),
        "n_votes": tally["n_votes"].fillna(0).to_numpy(dtype=int),
        "vote_centrality": tally["vote_centrality"].fillna(0.0).to_numpy(dtype=float),
    })
    out["min_centrality"] = cutoffs.min_centrality
    out["max_internal"] = cutoffs.max_internal
    return out


def classify_nodes(edges: pd.DataFrame, cutoffs: NodeCutoffs | None = None) -> dict[str, str]:
    """Mapping node -> dominant pattern label (see ``node_table``)."""
    table = node_table(edges, cutoffs)
    return dict(zip(table["node"], table["label"]))


# =============================================================================
# End-to-end comparison
# =============================================================================

@dataclass(frozen=True, eq=False)
class DiffNetResult:
    networks: tuple
    edges: pd.DataFrame  # every classified edge
    retained: pd.DataFrame  # edges passing the ratio filter
    nodes: pd.DataFrame
    params: ClassifierParams
    cutoffs: NodeCutoffs

    def node_labels(self) -> dict[str, str]:
        return dict(zip(self.nodes["node"], self.nodes["label"]))

    def genes_by_label(self, include_unclassified: bool = False) -> dict[str, list[str]]:
        """Node identifiers grouped by label, in node-table order."""
        out: dict[str, list[str]] = {}
        for node, label in zip(self.nodes["node"], self.nodes["label"]):
            if label == UNCLASSIFIED and not include_unclassified:
                continue
            out.setdefault(label, []).append(node)
        return out


def compare_networks(
    tables: Mapping[str, pd.DataFrame],
    params: ClassifierParams | None = None,
    cutoffs: NodeCutoffs | None = None,
) -> DiffNetResult:
    """classify_edges -> filter_edges -> node_table."""
    params = params or ClassifierParams()
    cutoffs = cutoffs or NodeCutoffs()

    edges = classify_edges(tables)
    retained = filter_edges(edges, params.ratio_threshold)
    nodes = node_table(retained, cutoffs, all_nodes=_node_set(edges))

    logger.info(
        "Classified %d edges, %d retained (ratio >= %g), %d nodes",
        len(edges), len(retained), params.ratio_threshold, len(nodes),
    )
    return DiffNetResult(
        networks=tuple(network_names(edges)),
        edges=edges,
        retained=retained,
        nodes=nodes,
        params=params,
        cutoffs=cutoffs,
    )
