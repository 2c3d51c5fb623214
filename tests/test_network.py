"""
Unit Tests for wTO Network Construction
=======================================
Correlation, signed wTO and bootstrap significance.
"""

import numpy as np
import pandas as pd
import pytest

from diffnet.errors import InputShapeMismatch, InvalidCutoff
from diffnet.network import bootstrap_pvalues, correlation_matrix, signed_wto, wto_network
from diffnet.params import NetworkParams


@pytest.fixture
def expr():
    """g0/g1 tightly co-expressed, g2/g3 independent noise."""
    rng = np.random.default_rng(7)
    base = rng.normal(size=30)
    data = np.vstack([
        base,
        base + 0.1 * rng.normal(size=30),
        rng.normal(size=30),
        rng.normal(size=30),
    ])
    return pd.DataFrame(data, index=["g0", "g1", "g2", "g3"])


class TestCorrelation:
    """Tests for the correlation matrix"""

    def test_monotone_pairs(self):
        x = np.array([[1, 2, 3, 4, 5], [2, 4, 6, 8, 10], [5, 4, 3, 2, 1]], dtype=float)
        for method in ("spearman", "pearson"):
            corr = correlation_matrix(x, method)
            assert corr[0, 1] == pytest.approx(1.0)
            assert corr[0, 2] == pytest.approx(-1.0)
            np.testing.assert_allclose(np.diag(corr), 1.0)

    def test_spearman_ignores_scale(self):
        x = np.array([[1, 2, 3, 4, 5], [1, 10, 100, 1000, 10000]], dtype=float)
        assert correlation_matrix(x, "spearman")[0, 1] == pytest.approx(1.0)
        assert correlation_matrix(x, "pearson")[0, 1] < 1.0

    def test_constant_gene_correlates_zero(self):
        x = np.array([[1, 2, 3, 4], [7, 7, 7, 7]], dtype=float)
        assert correlation_matrix(x)[0, 1] == 0.0

    def test_too_few_samples(self):
        with pytest.raises(InputShapeMismatch):
            correlation_matrix(np.ones((3, 2)))


class TestSignedWto:
    """Tests for signed weighted topological overlap"""

    def test_uniform_positive(self):
        corr = np.full((3, 3), 0.5)
        np.fill_diagonal(corr, 1.0)
        wto = signed_wto(corr)
        # (0.25 + 0.5) / (1 + 1 - 0.5)
        np.testing.assert_allclose(wto[np.triu_indices(3, k=1)], 0.5)

    def test_sign_is_kept(self):
        corr = np.array([[1.0, -0.5, 0.0], [-0.5, 1.0, 0.0], [0.0, 0.0, 1.0]])
        wto = signed_wto(corr)
        assert wto[0, 1] == pytest.approx(-0.5)
        assert wto[0, 2] == 0.0

    def test_symmetric_and_bounded(self, expr):
        wto = signed_wto(correlation_matrix(expr.to_numpy()))
        np.testing.assert_allclose(wto, wto.T)
        np.testing.assert_allclose(np.diag(wto), 1.0)
        assert np.abs(wto).max() <= 1.0


class TestBootstrap:
    """Tests for bootstrap p-values and the network table"""

    def test_pvalue_range(self, expr):
        params = NetworkParams(n_bootstrap=50, seed=1)
        pvals = bootstrap_pvalues(expr.to_numpy(), params)
        assert pvals.shape == (6,)
        assert pvals.min() >= 1 / 50
        assert pvals.max() <= 1.0

    def test_constant_gene_pvalue_one(self, expr):
        x = expr.to_numpy().copy()
        x[3] = 2.0
        pvals = bootstrap_pvalues(x, NetworkParams(n_bootstrap=20))
        # upper-triangle pairs (0,3), (1,3), (2,3) are the last of each row
        _, cols = np.triu_indices(4, k=1)
        assert np.all(pvals[cols == 3] == 1.0)

    def test_network_table(self, expr):
        edges = wto_network(expr, NetworkParams(n_bootstrap=200, keep_zero=True))
        assert list(edges.columns) == ["node_a", "node_b", "weight", "pvalue", "padj"]
        assert len(edges) == 6

        top = edges.loc[(edges["node_a"] == "g0") & (edges["node_b"] == "g1")].iloc[0]
        assert top["weight"] > 0
        assert top["padj"] < 0.05
        assert (edges.loc[edges["padj"] >= 0.05, "weight"] == 0).all()

    def test_zero_rows_dropped(self, expr):
        full = wto_network(expr, NetworkParams(n_bootstrap=200, keep_zero=True))
        sparse = wto_network(expr, NetworkParams(n_bootstrap=200))
        assert len(sparse) == int((full["weight"] != 0).sum())
        assert (sparse["weight"] != 0).all()

    def test_seeded_runs_match(self, expr):
        a = wto_network(expr, NetworkParams(n_bootstrap=30, seed=3, keep_zero=True))
        b = wto_network(expr, NetworkParams(n_bootstrap=30, seed=3, keep_zero=True))
        pd.testing.assert_frame_equal(a, b)

    def test_single_gene_raises(self, expr):
        with pytest.raises(InputShapeMismatch):
            wto_network(expr.iloc[:1])

    def test_invalid_params(self):
        with pytest.raises(ValueError):
            NetworkParams(method="kendall")
        with pytest.raises(InvalidCutoff):
            NetworkParams(alpha=0.0)
        with pytest.raises(InvalidCutoff):
            NetworkParams(n_bootstrap=0)
