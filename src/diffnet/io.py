"""
File formats read and written by the pipeline.

Inputs (tab-separated)
----------------------
    counts       genes x samples, first column = gene identifier
    metadata     samples x annotations, first column = sample identifier
    symbol map   identifier -> gene symbol (first two columns by default)
    edge table   node_a, node_b, weight [, pvalue, padj]

Outputs
-------
    DE table     comma-separated: gene_id, log2_fold_change, pvalue, padj
    gene lists   plain text, one identifier per line
    expression.h5
        meta/                 attrs: conditions, n_genes
        gene_names            (n_genes,) str
        conditions/<name>/expr          (n_genes, n_samples) float32
        conditions/<name>/sample_names  (n_samples,) str
    diffnet.h5
        meta/                 attrs: networks, ratio_threshold, cutoffs, counts
        edges/                node_a, node_b, weights (n_edges, k), pattern,
                              category, centrality, internal, corner_distance,
                              ratio, retained (bool)
        nodes/                node, label, category, n_edges, n_votes,
                              vote_centrality
"""

from __future__ import annotations

import logging
import re
from pathlib import Path

import h5py
import numpy as np
import pandas as pd

from diffnet.classify import UNCLASSIFIED, DiffNetResult

logger = logging.getLogger(__name__)


# =============================================================================
# Tab-separated inputs
# =============================================================================

def read_count_matrix(path: Path) -> pd.DataFrame:
    """
    Read a genes x samples TSV. Rows without an identifier are dropped and
    duplicated identifiers keep their first row.
    """
    df = pd.read_csv(path, sep="\t", index_col=0)
    df.index = df.index.astype(object)

    no_id = df.index.isna()
    if no_id.any():
        logger.warning("%s: dropped %d row(s) without a gene identifier", path, int(no_id.sum()))
        df = df.loc[~no_id]
    df.index = df.index.astype(str)

    dup = df.index.duplicated(keep="first")
    if dup.any():
        logger.warning("%s: dropped %d duplicated gene identifier(s)", path, int(dup.sum()))
        df = df.loc[~dup]

    df.index.name = "gene_id"
    df.columns = df.columns.astype(str)
    return df


def read_sample_metadata(path: Path) -> pd.DataFrame:
    """Read a sample annotation TSV keyed by its first column."""
    df = pd.read_csv(path, sep="\t", index_col=0, dtype=str)
    df.index = df.index.astype(str)
    dup = df.index.duplicated(keep="first")
    if dup.any():
        logger.warning("%s: dropped %d duplicated sample identifier(s)", path, int(dup.sum()))
        df = df.loc[~dup]
    df.index.name = "sample_id"
    return df


def read_symbol_map(
    path: Path,
    id_column: str | None = None,
    symbol_column: str | None = None,
) -> pd.Series:
    """
    Read an identifier -> symbol table.

    Unmapped entries (empty or NA symbols) are dropped; an identifier listed
    twice keeps its first symbol.
    """
    df = pd.read_csv(path, sep="\t", dtype=str)
    id_column = id_column or df.columns[0]
    symbol_column = symbol_column or df.columns[1]

    mapping = df[[id_column, symbol_column]].dropna()
    mapping = mapping.loc[mapping[symbol_column].str.strip() != ""]
    mapping = mapping.drop_duplicates(id_column, keep="first")
    return pd.Series(
        mapping[symbol_column].to_numpy(),
        index=mapping[id_column].to_numpy(),
        name="symbol",
    )


# =============================================================================
# Edge and DE tables
# =============================================================================

def read_edge_table(path: Path) -> pd.DataFrame:
    return pd.read_csv(path, sep="\t", dtype={"node_a": str, "node_b": str})


def write_edge_table(edges: pd.DataFrame, path: Path) -> None:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    edges.to_csv(path, sep="\t", index=False)


def write_de_table(result: pd.DataFrame, path: Path) -> None:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    result.to_csv(path, index=False)


# =============================================================================
# Gene lists
# =============================================================================

def write_gene_list(genes, path: Path) -> None:
    """Write identifiers one per line, in the given order."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w") as f:
        for gene in genes:
            f.write(f"{gene}\n")


def read_gene_list(path: Path) -> list[str]:
    """Read identifiers one per line; blank lines are skipped."""
    with open(path) as f:
        return [line.strip() for line in f if line.strip()]


def label_slug(label: str) -> str:
    """File-name-safe form of a pattern label: ``different:A+B-`` -> ``different_A_pos_B_neg``."""
    s = label.replace("+", "_pos_").replace("-", "_neg_").replace(":", "_")
    s = re.sub(r"[^A-Za-z0-9_.]+", "_", s)
    return re.sub(r"_+", "_", s).strip("_")


def write_node_gene_lists(
    result: DiffNetResult,
    out_dir: Path,
    include_unclassified: bool = False,
) -> dict[str, Path]:
    """Write one ``<label>.txt`` gene list per node label; returns label -> path."""
    out_dir = Path(out_dir)
    out_dir.mkdir(parents=True, exist_ok=True)

    paths = {}
    for label, genes in result.genes_by_label(include_unclassified).items():
        path = out_dir / f"{label_slug(label)}.txt"
        write_gene_list(genes, path)
        paths[label] = path
    return paths


# =============================================================================
# HDF5
# =============================================================================

def _str_dataset(group: h5py.Group, name: str, values) -> None:
    group.create_dataset(name, data=[str(v) for v in values], dtype=h5py.string_dtype())


def _str_array(values) -> np.ndarray:
    return np.array([str(v) for v in values], dtype=h5py.string_dtype())


def _decode(arr) -> list[str]:
    return [x.decode() if isinstance(x, bytes) else str(x) for x in arr]


def save_expression_h5(matrices: dict[str, pd.DataFrame], h5_path: Path) -> None:
    """Store per-condition expression matrices sharing one gene index."""
    if not matrices:
        raise ValueError("no condition matrices to save")
    genes = next(iter(matrices.values())).index
    for cond, df in matrices.items():
        if not df.index.equals(genes):
            raise ValueError(f"condition {cond!r} does not share the gene index")

    h5_path = Path(h5_path)
    h5_path.parent.mkdir(parents=True, exist_ok=True)
    with h5py.File(h5_path, "w") as h5:
        meta = h5.create_group("meta")
        meta.attrs["conditions"] = _str_array(matrices)
        meta.attrs["n_genes"] = len(genes)
        _str_dataset(h5, "gene_names", genes)

        conds = h5.create_group("conditions")
        for cond, df in matrices.items():
            grp = conds.create_group(str(cond))
            # empty datasets cannot be chunked
            compression = {"compression": "gzip", "compression_opts": 4} if df.size else {}
            grp.create_dataset("expr", data=df.to_numpy(dtype=np.float32), **compression)
            _str_dataset(grp, "sample_names", df.columns)


def load_expression_h5(h5_path: Path) -> dict[str, pd.DataFrame]:
    with h5py.File(h5_path, "r") as h5:
        conditions = _decode(h5["meta"].attrs["conditions"])
        genes = _decode(h5["gene_names"][:])
        out = {}
        for cond in conditions:
            grp = h5["conditions"][cond]
            out[cond] = pd.DataFrame(
                grp["expr"][:],
                index=pd.Index(genes, name="gene_id"),
                columns=_decode(grp["sample_names"][:]),
            )
    return out


def save_diffnet_h5(result: DiffNetResult, h5_path: Path) -> None:
    """Archive a full comparison: all edges (with retained mask) and the node table."""
    h5_path = Path(h5_path)
    h5_path.parent.mkdir(parents=True, exist_ok=True)

    edges = result.edges
    names = list(result.networks)
    kept = set(zip(result.retained["node_a"], result.retained["node_b"]))
    retained = np.array([(a, b) in kept for a, b in zip(edges["node_a"], edges["node_b"])], dtype=bool)

    with h5py.File(h5_path, "w") as h5:
        meta = h5.create_group("meta")
        meta.attrs["networks"] = _str_array(names)
        meta.attrs["ratio_threshold"] = result.params.ratio_threshold
        meta.attrs["min_centrality"] = result.cutoffs.min_centrality
        meta.attrs["max_internal"] = result.cutoffs.max_internal
        meta.attrs["n_edges"] = len(edges)
        meta.attrs["n_retained"] = int(retained.sum())
        meta.attrs["n_nodes"] = len(result.nodes)
        meta.attrs["n_classified_nodes"] = int((result.nodes["label"] != UNCLASSIFIED).sum())

        grp = h5.create_group("edges")
        _str_dataset(grp, "node_a", edges["node_a"])
        _str_dataset(grp, "node_b", edges["node_b"])
        grp.create_dataset("weights", data=edges[names].to_numpy(dtype=np.float32).reshape(len(edges), len(names)))
        _str_dataset(grp, "pattern", edges["pattern"])
        _str_dataset(grp, "category", edges["category"])
        for key in ["centrality", "internal", "corner_distance", "ratio"]:
            grp.create_dataset(key, data=edges[key].to_numpy(dtype=np.float64))
        grp.create_dataset("retained", data=retained)

        grp = h5.create_group("nodes")
        for key in ["node", "label", "category"]:
            _str_dataset(grp, key, result.nodes[key])
        grp.create_dataset("n_edges", data=result.nodes["n_edges"].to_numpy(dtype=np.int32))
        grp.create_dataset("n_votes", data=result.nodes["n_votes"].to_numpy(dtype=np.int32))
        grp.create_dataset("vote_centrality", data=result.nodes["vote_centrality"].to_numpy(dtype=np.float64))

    logger.info("Saved differential network to %s", h5_path)
