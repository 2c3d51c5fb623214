"""
Signed weighted-topological-overlap (wTO) co-expression networks.

One network per condition:

1. Correlate every gene pair (Spearman via rank -> z-score -> matmul, or
   Pearson via z-score -> matmul): C = Z @ Z.T / (M - 1)
2. Signed wTO on A = C with a zero diagonal:

       wTO_ij = (sum_u a_iu * a_uj + a_ij) / (min(k_i, k_j) + 1 - |a_ij|)
       k_i    = sum_u |a_iu|

3. Bootstrap the samples (with replacement) and count how often each pair's
   wTO falls on either side of zero:

       p = 2 * min(#{w* >= 0}, #{w* <= 0}) / n_bootstrap,  clipped to [1/n_bootstrap, 1]

4. BH-adjust the p-values; pairs with padj >= alpha get weight 0.

Pairs are reported in row-major upper-triangle order:
    (0,1)(0,2)...(0,N-1)(1,2)...(N-2,N-1)
Memory is O(N^2) per condition, so restrict the gene set first.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass

import numpy as np
import pandas as pd
from scipy.stats import rankdata
from statsmodels.stats.multitest import multipletests

from diffnet.errors import InputShapeMismatch
from diffnet.params import NetworkParams

logger = logging.getLogger(__name__)


@dataclass
class Progress:
    """Simple progress tracker with ETA for long loops."""

    total_steps: int
    label: str = "progress"
    report_every: int = 1

    def __post_init__(self) -> None:
        self.start_time = time.time()
        self.last_report_step = 0

    def update(self, step: int) -> None:
        if (
            step - self.last_report_step < self.report_every
            and step != self.total_steps
        ):
            return

        elapsed = time.time() - self.start_time
        frac = step / self.total_steps if self.total_steps else 1.0
        frac = min(max(frac, 0.0), 1.0)
        eta = (elapsed * (1.0 - frac) / frac) if frac > 0 else float("inf")

        logger.info(
            "[%s] %d/%d (%.1f%%) | elapsed %.1fs | ETA %.1fs",
            self.label, step, self.total_steps, frac * 100, elapsed, eta,
        )
        self.last_report_step = step


def zscore_rows(x: np.ndarray, ddof: int = 1) -> np.ndarray:
    """Z-score each row; constant rows become NaN."""
    x = np.asarray(x, dtype=np.float64)
    denom = x.std(axis=1, keepdims=True, ddof=ddof)
    denom = np.where(denom < np.finfo(np.float64).eps, np.nan, denom)
    return (x - x.mean(axis=1, keepdims=True)) / denom


def rank_zscore_rows(x: np.ndarray, ddof: int = 1) -> np.ndarray:
    """Rank each row, then z-score with the given ddof."""
    return zscore_rows(rankdata(x, axis=1, method="average"), ddof=ddof)


def correlation_matrix(expr: np.ndarray, method: str = "spearman") -> np.ndarray:
    """
    Full gene x gene correlation for a (n_genes, n_samples) matrix.

    Constant genes correlate 0 with everything; the diagonal is 1.
    """
    expr = np.asarray(expr, dtype=np.float64)
    n_samples = expr.shape[1]
    if n_samples < 3:
        raise InputShapeMismatch(f"need at least 3 samples to correlate, got {n_samples}")

    z = rank_zscore_rows(expr) if method == "spearman" else zscore_rows(expr)
    z = np.nan_to_num(z, nan=0.0)
    corr = np.clip((z @ z.T) / float(n_samples - 1), -1.0, 1.0)
    np.fill_diagonal(corr, 1.0)
    return corr


def signed_wto(corr: np.ndarray) -> np.ndarray:
    """Signed weighted topological overlap of a correlation matrix; diagonal set to 1."""
    a = np.array(corr, dtype=np.float64, copy=True)
    np.fill_diagonal(a, 0.0)
    abs_a = np.abs(a)
    k = abs_a.sum(axis=1)

    # denominator >= 1 because k_i >= |a_ij|
    wto = (a @ a + a) / (np.minimum.outer(k, k) + 1.0 - abs_a)
    np.fill_diagonal(wto, 1.0)
    return np.clip(wto, -1.0, 1.0)


def bootstrap_pvalues(expr: np.ndarray, params: NetworkParams) -> np.ndarray:
    """
    Empirical two-sided p-values of the upper-triangle wTO values.

    Resamples land on zero count against both signs, so pairs that are
    identically zero get p = 1.
    """
    expr = np.asarray(expr, dtype=np.float64)
    n_genes, n_samples = expr.shape
    rows, cols = np.triu_indices(n_genes, k=1)
    n_nonneg = np.zeros(len(rows), dtype=np.int64)
    n_nonpos = np.zeros(len(rows), dtype=np.int64)

    rng = np.random.default_rng(params.seed)
    progress = Progress(params.n_bootstrap, label="bootstrap", report_every=max(1, params.n_bootstrap // 10))
    for b in range(params.n_bootstrap):
        idx = rng.integers(0, n_samples, size=n_samples)
        w = signed_wto(correlation_matrix(expr[:, idx], params.method))[rows, cols]
        n_nonneg += w >= 0
        n_nonpos += w <= 0
        progress.update(b + 1)

    pvals = 2.0 * np.minimum(n_nonneg, n_nonpos) / params.n_bootstrap
    return np.clip(pvals, 1.0 / params.n_bootstrap, 1.0)


def wto_network(expr: pd.DataFrame, params: NetworkParams | None = None) -> pd.DataFrame:
    """
    Build one signed wTO network from a genes x samples matrix.

    Returns
    -------
    Edge table with node_a, node_b, weight, pvalue, padj. Weights of pairs
    with padj >= alpha are 0; those rows are dropped unless
    ``params.keep_zero`` is set.
    """
    params = params or NetworkParams()
    n_genes, n_samples = expr.shape
    if n_genes < 2:
        raise InputShapeMismatch(f"need at least 2 genes to build a network, got {n_genes}")

    genes = np.asarray(expr.index.astype(str))
    x = expr.to_numpy(dtype=np.float64)
    logger.info("Building %s wTO network: %d genes x %d samples", params.method, n_genes, n_samples)

    rows, cols = np.triu_indices(n_genes, k=1)
    weight = signed_wto(correlation_matrix(x, params.method))[rows, cols]
    pvals = bootstrap_pvalues(x, params)
    _, padj, _, _ = multipletests(pvals, method="fdr_bh")

    significant = padj < params.alpha
    edges = pd.DataFrame({
        "node_a": genes[rows],
        "node_b": genes[cols],
        "weight": np.where(significant, weight, 0.0),
        "pvalue": pvals,
        "padj": padj,
    })
    logger.info("Significant pairs: %d of %d (padj < %g)", int(significant.sum()), len(edges), params.alpha)

    if not params.keep_zero:
        edges = edges.loc[edges["weight"] != 0].reset_index(drop=True)
    return edges
