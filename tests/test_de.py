"""Tests for gene-wise differential expression."""

import pandas as pd
import pytest

from diffnet.de import DE_COLUMNS, differential_expression, select_de_genes
from diffnet.errors import InputShapeMismatch


@pytest.fixture
def counts():
    return pd.DataFrame(
        {
            "c1": [1000, 10, 50, 0],
            "c2": [1000, 12, 50, 0],
            "c3": [1000, 11, 50, 0],
            "t1": [1000, 100, 50, 0],
            "t2": [1000, 110, 50, 0],
            "t3": [1000, 105, 50, 0],
        },
        index=pd.Index(["housekeeping", "up", "flat", "silent"], name="gene_id"),
    )


@pytest.fixture
def metadata():
    return pd.DataFrame(
        {"condition": ["ctrl"] * 3 + ["treat"] * 3},
        index=["c1", "c2", "c3", "t1", "t2", "t3"],
    )


class TestDifferentialExpression:
    def test_result_table(self, counts, metadata):
        result = differential_expression(counts, metadata, "condition", reference="ctrl", treatment="treat")
        assert list(result.columns) == DE_COLUMNS
        assert len(result) == 4
        assert result["pvalue"].is_monotonic_increasing

        up = result.set_index("gene_id").loc["up"]
        assert up["log2_fold_change"] > 2.0
        assert up["pvalue"] < 0.01

    def test_constant_gene_gets_pvalue_one(self, counts, metadata):
        result = differential_expression(counts, metadata, "condition", reference="ctrl", treatment="treat")
        silent = result.set_index("gene_id").loc["silent"]
        assert silent["pvalue"] == 1.0
        assert silent["log2_fold_change"] == 0.0

    def test_select_de_genes(self, counts, metadata):
        result = differential_expression(counts, metadata, "condition", reference="ctrl", treatment="treat")
        assert select_de_genes(result, padj=0.05, min_abs_lfc=1.0) == ["up"]

    def test_unknown_condition(self, counts, metadata):
        with pytest.raises(InputShapeMismatch):
            differential_expression(counts, metadata, "condition", reference="ctrl", treatment="other")

    def test_single_sample_condition(self, counts, metadata):
        meta = metadata.copy()
        meta.loc["t2", "condition"] = "solo"
        with pytest.raises(InputShapeMismatch):
            differential_expression(counts, meta, "condition", reference="ctrl", treatment="solo")
