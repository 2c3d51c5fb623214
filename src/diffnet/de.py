"""
Gene-wise differential expression between two conditions.

Counts are normalised to log2 CPM over the samples of both conditions, then
each gene is tested with Welch's t-test and p-values are BH-adjusted.
Used to pre-filter the node set before building co-expression networks.
"""

from __future__ import annotations

import logging

import numpy as np
import pandas as pd
from scipy import stats
from statsmodels.stats.multitest import multipletests

from diffnet.errors import InputShapeMismatch
from diffnet.expression import log_cpm, split_by_condition

logger = logging.getLogger(__name__)

DE_COLUMNS = ["gene_id", "log2_fold_change", "pvalue", "padj"]


def differential_expression(
    counts: pd.DataFrame,
    metadata: pd.DataFrame,
    column: str,
    reference: str,
    treatment: str,
    prior_count: float = 1.0,
) -> pd.DataFrame:
    """
    Compare ``treatment`` against ``reference`` for every gene.

    Returns
    -------
    DataFrame with gene_id, log2_fold_change (treatment - reference),
    pvalue and padj, sorted by p-value. Genes whose test is undefined
    (e.g. constant in both groups) get pvalue 1.
    """
    if counts.empty:
        raise InputShapeMismatch("count matrix is empty")

    groups = split_by_condition(counts, metadata, column)
    for cond in (reference, treatment):
        if cond not in groups:
            raise InputShapeMismatch(f"condition {cond!r} not found; available: {sorted(groups)}")
        if groups[cond].shape[1] < 2:
            raise InputShapeMismatch(f"condition {cond!r} needs at least two samples")

    ref_samples = list(groups[reference].columns)
    trt_samples = list(groups[treatment].columns)
    logexpr = log_cpm(counts.loc[:, ref_samples + trt_samples], prior_count=prior_count)
    ref = logexpr.loc[:, [s for s in ref_samples if s in logexpr.columns]].to_numpy(dtype=float)
    trt = logexpr.loc[:, [s for s in trt_samples if s in logexpr.columns]].to_numpy(dtype=float)

    logger.info("Testing %d genes: %s (n=%d) vs %s (n=%d)",
                len(logexpr), treatment, trt.shape[1], reference, ref.shape[1])

    lfc = trt.mean(axis=1) - ref.mean(axis=1)
    with np.errstate(divide="ignore", invalid="ignore"):
        _, pvals = stats.ttest_ind(trt, ref, axis=1, equal_var=False)
    pvals = np.where(np.isfinite(pvals), pvals, 1.0)
    _, padj, _, _ = multipletests(pvals, method="fdr_bh")

    result = pd.DataFrame({
        "gene_id": logexpr.index.astype(str),
        "log2_fold_change": lfc,
        "pvalue": pvals,
        "padj": padj,
    })
    return result.sort_values("pvalue", kind="mergesort").reset_index(drop=True)


def select_de_genes(result: pd.DataFrame, padj: float = 0.05, min_abs_lfc: float = 1.0) -> list[str]:
    """Identifiers with padj below ``padj`` and |log2FC| of at least ``min_abs_lfc``."""
    mask = (result["padj"] < padj) & (result["log2_fold_change"].abs() >= min_abs_lfc)
    return result.loc[mask, "gene_id"].tolist()
