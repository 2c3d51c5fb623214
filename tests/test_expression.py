"""Tests for count-matrix preprocessing."""

import numpy as np
import pandas as pd
import pytest

from diffnet.errors import InputShapeMismatch
from diffnet.expression import filter_low_counts, log_cpm, map_gene_symbols, split_by_condition, subset_genes


@pytest.fixture
def counts():
    return pd.DataFrame(
        {"s1": [10, 0, 5, 200], "s2": [12, 1, 0, 180], "s3": [9, 0, 30, 220], "s4": [11, 2, 40, 210]},
        index=pd.Index(["e1", "e2", "e3", "e4"], name="gene_id"),
    )


@pytest.fixture
def metadata():
    return pd.DataFrame(
        {"condition": ["ctrl", "ctrl", "treat", "treat"]},
        index=pd.Index(["s1", "s2", "s3", "s4"], name="sample_id"),
    )


class TestSymbolMapping:
    def test_duplicate_symbols_keep_most_expressed(self):
        expr = pd.DataFrame(
            {"s1": [1.0, 5.0, 2.0, 3.0], "s2": [1.0, 5.0, 2.0, 3.0]},
            index=["e1", "e2", "e3", "e4"],
        )
        mapping = pd.Series({"e1": "A", "e2": "A", "e3": "B"})
        out = map_gene_symbols(expr, mapping)
        assert list(out.index) == ["A", "B"]
        assert out.loc["A", "s1"] == 5.0

    def test_nothing_mapped_raises(self, counts):
        with pytest.raises(InputShapeMismatch):
            map_gene_symbols(counts, pd.Series({"x": "X"}))


class TestNormalisation:
    def test_filter_low_counts(self, counts):
        out = filter_low_counts(counts, min_count=10, min_samples=2)
        assert list(out.index) == ["e1", "e3", "e4"]

    def test_log_cpm(self):
        counts = pd.DataFrame({"s1": [10, 90], "s2": [0, 100]}, index=["g1", "g2"])
        out = log_cpm(counts)
        assert out.loc["g1", "s1"] == pytest.approx(np.log2(1e5 + 1))
        assert out.loc["g1", "s2"] == pytest.approx(0.0)
        assert out.loc["g2", "s2"] == pytest.approx(np.log2(1e6 + 1))

    def test_log_cpm_drops_empty_library(self):
        counts = pd.DataFrame({"s1": [10, 90], "empty": [0, 0]}, index=["g1", "g2"])
        assert list(log_cpm(counts).columns) == ["s1"]


class TestConditionSplit:
    def test_split(self, counts, metadata):
        out = split_by_condition(counts, metadata, "condition")
        assert list(out) == ["ctrl", "treat"]
        assert list(out["ctrl"].columns) == ["s1", "s2"]
        assert list(out["treat"].columns) == ["s3", "s4"]

    def test_unknown_and_unlabelled_samples_rejected(self, counts, metadata):
        meta = metadata.drop(index="s4")
        meta.loc["s3", "condition"] = np.nan
        out = split_by_condition(counts, meta, "condition")
        assert list(out) == ["ctrl"]

    def test_missing_column(self, counts, metadata):
        with pytest.raises(InputShapeMismatch):
            split_by_condition(counts, metadata, "tissue")

    def test_no_shared_samples(self, counts):
        meta = pd.DataFrame({"condition": ["ctrl"]}, index=["other"])
        with pytest.raises(InputShapeMismatch):
            split_by_condition(counts, meta, "condition")


class TestSubset:
    def test_keeps_matrix_order(self, counts):
        out = subset_genes(counts, ["e4", "e1", "missing"])
        assert list(out.index) == ["e1", "e4"]

    def test_no_overlap_raises(self, counts):
        with pytest.raises(InputShapeMismatch):
            subset_genes(counts, ["missing"])
