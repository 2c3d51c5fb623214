"""
Unit Tests for File Formats
===========================
TSV readers, gene lists and the HDF5 archives.
"""

import h5py
import numpy as np
import pandas as pd
import pytest

from diffnet.classify import compare_networks
from diffnet.io import (
    label_slug,
    load_expression_h5,
    read_count_matrix,
    read_edge_table,
    read_gene_list,
    read_sample_metadata,
    read_symbol_map,
    save_diffnet_h5,
    save_expression_h5,
    write_edge_table,
    write_gene_list,
    write_node_gene_lists,
)
from diffnet.params import ClassifierParams


@pytest.fixture
def result():
    tables = {
        "A": pd.DataFrame({"node_a": ["g1", "g1", "g4"], "node_b": ["g2", "g3", "g5"], "weight": [0.9, 0.8, 0.7]}),
        "B": pd.DataFrame({"node_a": ["g1", "g1"], "node_b": ["g2", "g3"], "weight": [0.85, -0.7]}),
    }
    return compare_networks(tables, ClassifierParams(ratio_threshold=1.0))


class TestTsvReaders:
    """Tests for count, metadata and symbol-map readers"""

    def test_count_matrix_duplicates(self, tmp_path):
        path = tmp_path / "counts.tsv"
        path.write_text("gene\ts1\ts2\ng1\t1\t2\ng2\t3\t4\ng1\t5\t6\n")
        df = read_count_matrix(path)
        assert list(df.index) == ["g1", "g2"]
        assert df.index.name == "gene_id"
        assert df.loc["g1"].tolist() == [1, 2]

    def test_sample_metadata(self, tmp_path):
        path = tmp_path / "samples.tsv"
        path.write_text("sample\tcondition\ns1\tctrl\ns2\ttreat\ns1\ttreat\n")
        df = read_sample_metadata(path)
        assert list(df.index) == ["s1", "s2"]
        assert df.loc["s1", "condition"] == "ctrl"

    def test_symbol_map_drops_unmapped(self, tmp_path):
        path = tmp_path / "symbols.tsv"
        path.write_text("ensembl\tsymbol\ne1\tTP53\ne2\tNA\ne3\t\ne1\tOTHER\ne4\tMYC\n")
        mapping = read_symbol_map(path)
        assert mapping.to_dict() == {"e1": "TP53", "e4": "MYC"}

    def test_symbol_map_named_columns(self, tmp_path):
        path = tmp_path / "symbols.tsv"
        path.write_text("symbol\tid\nTP53\te1\n")
        mapping = read_symbol_map(path, id_column="id", symbol_column="symbol")
        assert mapping.to_dict() == {"e1": "TP53"}

    def test_edge_table_keeps_string_ids(self, tmp_path):
        path = tmp_path / "net" / "edges.tsv"
        write_edge_table(pd.DataFrame({"node_a": ["001"], "node_b": ["002"], "weight": [0.5]}), path)
        df = read_edge_table(path)
        assert df.loc[0, "node_a"] == "001"


class TestGeneLists:
    """Tests for gene list files and label slugs"""

    def test_round_trip(self, tmp_path):
        path = tmp_path / "genes.txt"
        write_gene_list(["TP53", "MYC", "EGFR"], path)
        assert read_gene_list(path) == ["TP53", "MYC", "EGFR"]

    def test_blank_lines_skipped(self, tmp_path):
        path = tmp_path / "genes.txt"
        path.write_text("TP53\n\n  MYC  \n\n")
        assert read_gene_list(path) == ["TP53", "MYC"]

    @pytest.mark.parametrize("label, slug", [
        ("common+", "common_pos"),
        ("common-", "common_neg"),
        ("different:A+B-", "different_A_pos_B_neg"),
        ("specific:ctrl+", "specific_ctrl_pos"),
        ("unclassified", "unclassified"),
    ])
    def test_label_slug(self, label, slug):
        assert label_slug(label) == slug

    def test_node_gene_lists(self, tmp_path, result):
        paths = write_node_gene_lists(result, tmp_path / "lists")
        assert set(paths) == {"common+", "different:A+B-", "specific:A+"}
        assert read_gene_list(paths["common+"]) == ["g1", "g2"]
        assert read_gene_list(paths["different:A+B-"]) == ["g3"]
        assert paths["specific:A+"].name == "specific_A_pos.txt"


class TestHdf5:
    """Tests for the expression and differential-network archives"""

    def test_expression_round_trip(self, tmp_path):
        genes = pd.Index(["g1", "g2", "g3"], name="gene_id")
        matrices = {
            "ctrl": pd.DataFrame(np.arange(6, dtype=float).reshape(3, 2), index=genes, columns=["s1", "s2"]),
            "treat": pd.DataFrame(np.ones((3, 3)), index=genes, columns=["s3", "s4", "s5"]),
        }
        path = tmp_path / "expression.h5"
        save_expression_h5(matrices, path)
        loaded = load_expression_h5(path)

        assert list(loaded) == ["ctrl", "treat"]
        assert list(loaded["treat"].columns) == ["s3", "s4", "s5"]
        assert list(loaded["ctrl"].index) == ["g1", "g2", "g3"]
        np.testing.assert_allclose(loaded["ctrl"].to_numpy(), matrices["ctrl"].to_numpy())

    def test_expression_requires_shared_genes(self, tmp_path):
        matrices = {
            "ctrl": pd.DataFrame(np.ones((2, 2)), index=["g1", "g2"]),
            "treat": pd.DataFrame(np.ones((2, 2)), index=["g1", "g3"]),
        }
        with pytest.raises(ValueError):
            save_expression_h5(matrices, tmp_path / "expression.h5")

    def test_diffnet_archive(self, tmp_path, result):
        path = tmp_path / "diffnet.h5"
        save_diffnet_h5(result, path)
        with h5py.File(path, "r") as h5:
            meta = h5["meta"].attrs
            names = [n.decode() if isinstance(n, bytes) else n for n in meta["networks"]]
            assert names == ["A", "B"]
            assert meta["n_edges"] == 3
            assert meta["n_nodes"] == 5
            assert h5["edges/weights"].shape == (3, 2)
            assert h5["edges/retained"][:].dtype == bool
            assert int(h5["edges/retained"][:].sum()) == meta["n_retained"]
            assert h5["nodes/n_votes"].shape == (5,)
