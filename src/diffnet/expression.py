"""
Count-matrix handling ahead of network construction.

Every function takes a genes x samples DataFrame and returns a new one; the
input is never modified in place.
"""

from __future__ import annotations

import logging

import numpy as np
import pandas as pd

from diffnet.errors import InputShapeMismatch

logger = logging.getLogger(__name__)


def map_gene_symbols(expr: pd.DataFrame, mapping: pd.Series) -> pd.DataFrame:
    """
    Re-index rows from identifiers to symbols.

    Identifiers missing from ``mapping`` are dropped. When several identifiers
    map to one symbol (isoforms), the row with the largest mean expression is
    kept. Row order otherwise follows ``expr``.
    """
    symbols = expr.index.map(mapping)
    mapped = ~pd.isna(symbols)
    n_unmapped = int((~mapped).sum())
    if n_unmapped:
        logger.warning("Dropped %d of %d genes without a symbol", n_unmapped, len(expr))
    if not mapped.any():
        raise InputShapeMismatch("no gene identifier could be mapped to a symbol")

    out = expr.loc[mapped].copy()
    out.index = pd.Index(symbols[mapped].astype(str), name="gene_id")

    order = np.argsort(-out.mean(axis=1).to_numpy(), kind="stable")
    first = ~out.index[order].duplicated(keep="first")
    keep = np.sort(order[first])
    if len(keep) < len(out):
        logger.warning("Collapsed %d duplicate symbol row(s) to the most expressed", len(out) - len(keep))
    return out.iloc[keep]


def filter_low_counts(expr: pd.DataFrame, min_count: float = 10, min_samples: int = 2) -> pd.DataFrame:
    """Keep genes with at least ``min_count`` reads in at least ``min_samples`` samples."""
    keep = (expr >= min_count).sum(axis=1) >= min_samples
    logger.info("Low-count filter kept %d of %d genes", int(keep.sum()), len(expr))
    return expr.loc[keep].copy()


def log_cpm(expr: pd.DataFrame, prior_count: float = 1.0) -> pd.DataFrame:
    """log2(counts per million + prior_count); empty libraries are dropped."""
    lib_size = expr.sum(axis=0)
    empty = lib_size <= 0
    if empty.any():
        logger.warning("Dropped %d sample(s) with an empty library", int(empty.sum()))
    counts = expr.loc[:, ~empty]
    cpm = counts / lib_size[~empty] * 1e6
    return np.log2(cpm + prior_count)


def split_by_condition(expr: pd.DataFrame, metadata: pd.DataFrame, column: str) -> dict[str, pd.DataFrame]:
    """
    Split samples (columns) by a metadata grouping column.

    Samples absent from the metadata, or with no value in ``column``, are
    rejected. Conditions are returned in sorted order.
    """
    if column not in metadata.columns:
        raise InputShapeMismatch(f"metadata has no column {column!r}; columns: {list(metadata.columns)}")

    shared = [s for s in expr.columns if s in metadata.index]
    if len(shared) < expr.shape[1]:
        logger.warning("Rejected %d sample(s) missing from the metadata", expr.shape[1] - len(shared))
    if not shared:
        raise InputShapeMismatch("count matrix and metadata share no sample identifier")

    groups = metadata.loc[shared, column]
    unlabelled = groups.isna()
    if unlabelled.any():
        logger.warning("Rejected %d sample(s) without a %r value", int(unlabelled.sum()), column)
        groups = groups.loc[~unlabelled]

    out = {}
    for cond in sorted(groups.astype(str).unique()):
        samples = groups.index[groups.astype(str) == cond]
        out[cond] = expr.loc[:, list(samples)].copy()
        logger.info("Condition %s: %d samples", cond, len(samples))
    return out


def subset_genes(expr: pd.DataFrame, genes) -> pd.DataFrame:
    """Restrict rows to ``genes`` (e.g. DE genes or transcription factors), keeping ``expr`` order."""
    wanted = set(str(g) for g in genes)
    keep = expr.index.isin(wanted)
    n_missing = len(wanted) - int(keep.sum())
    if n_missing:
        logger.warning("%d requested gene(s) not present in the expression matrix", n_missing)
    if not keep.any():
        raise InputShapeMismatch("none of the requested genes are in the expression matrix")
    return expr.loc[keep].copy()
