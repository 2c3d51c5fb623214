#!/usr/bin/env python3
"""
Stage 0: Prepare per-condition expression matrices in HDF5.

Usage
-----
    python 00prepare_expression.py --counts-tsv data/counts.tsv --metadata-tsv data/samples.tsv \
        --condition-column condition --out-h5 results/expression.h5
    python 00prepare_expression.py --toy --out-h5 results/toy/expression.h5

Steps
-----
1. Read counts (genes x samples TSV, first column = gene id)
2. Optional: rename ids to symbols (--symbol-map), drop unmapped / duplicate symbols
3. Drop low-count genes, normalise to log2 CPM
4. Optional: restrict to a gene list (--genes, e.g. DE genes from stage 10)
5. Split samples by --condition-column and write one matrix per condition

Output schema
-------------
expression.h5
    meta/                          attrs: conditions, n_genes
    gene_names                     (n_genes,) str
    conditions/<name>/expr         (n_genes, n_samples) float32
    conditions/<name>/sample_names (n_samples,) str
"""

from __future__ import annotations

import argparse
import logging
import time
from pathlib import Path

import numpy as np
import pandas as pd

from diffnet.expression import filter_low_counts, log_cpm, map_gene_symbols, split_by_condition, subset_genes
from diffnet.io import (
    read_count_matrix,
    read_gene_list,
    read_sample_metadata,
    read_symbol_map,
    save_expression_h5,
)


def prepare_expression(
    counts_tsv: Path,
    metadata_tsv: Path,
    condition_column: str,
    h5_path: Path,
    symbol_map: Path | None = None,
    gene_list: Path | None = None,
    min_count: float = 10,
    min_samples: int = 2,
) -> None:
    print(f"Reading counts: {counts_tsv}")
    t0 = time.time()
    counts = read_count_matrix(counts_tsv)
    metadata = read_sample_metadata(metadata_tsv)
    print(f"  Loaded {counts.shape[0]:,} genes x {counts.shape[1]:,} samples in {time.time() - t0:.2f}s")

    if symbol_map is not None:
        counts = map_gene_symbols(counts, read_symbol_map(symbol_map))
        print(f"  Mapped to {counts.shape[0]:,} gene symbols")

    counts = filter_low_counts(counts, min_count=min_count, min_samples=min_samples)
    print(f"  Kept {counts.shape[0]:,} genes with >= {min_count:g} reads in >= {min_samples} samples")

    expr = log_cpm(counts)
    if gene_list is not None:
        expr = subset_genes(expr, read_gene_list(gene_list))
        print(f"  Restricted to {expr.shape[0]:,} genes from {gene_list}")

    matrices = split_by_condition(expr, metadata, condition_column)
    for cond, df in matrices.items():
        print(f"  {cond}: {df.shape[1]} samples")

    print(f"\nWriting HDF5: {h5_path}")
    save_expression_h5(matrices, h5_path)

    print(f"\n{'='*60}")
    print(f"SUCCESS: {h5_path}")
    print(f"{'='*60}")


def generate_toy_data(out_dir: Path, n_genes: int = 12, n_samples: int = 40, seed: int = 42) -> tuple[Path, Path]:
    """
    Generate toy counts with known differential co-expression structure.

    Design (two conditions, ctrl / treat, n_samples // 2 each):
      - Genes 0-1: correlated (r~0.9) in both                -> "common+"
      - Genes 2-3: correlated in ctrl, independent in treat  -> "specific:ctrl+"
      - Genes 4-5: positive in ctrl, negative in treat       -> "different:ctrl+treat-"
      - Remaining genes: noise
    """
    rng = np.random.default_rng(seed)
    half = n_samples // 2
    latent = rng.normal(size=(n_genes, n_samples))

    def corr_pair(n, r):
        z = rng.normal(size=n)
        return z, r * z + np.sqrt(1 - r**2) * rng.normal(size=n)

    ctrl, treat = np.arange(half), np.arange(half, n_samples)
    latent[0], latent[1] = corr_pair(n_samples, 0.9)
    latent[2, ctrl], latent[3, ctrl] = corr_pair(half, 0.9)
    latent[4, ctrl], latent[5, ctrl] = corr_pair(half, 0.85)
    latent[4, treat], latent[5, treat] = corr_pair(n_samples - half, -0.85)

    counts = np.round(np.exp(5.0 + 0.5 * latent)).astype(np.int64)
    gene_names = [f"toy_gene_{i}" for i in range(n_genes)]
    sample_names = [f"sample_{i}" for i in range(n_samples)]

    out_dir.mkdir(parents=True, exist_ok=True)
    counts_tsv = out_dir / "toy_counts.tsv"
    metadata_tsv = out_dir / "toy_samples.tsv"

    df = pd.DataFrame(counts, index=gene_names, columns=sample_names)
    df.index.name = "gene_id"
    df.to_csv(counts_tsv, sep="\t")
    meta = pd.DataFrame(
        {"condition": ["ctrl"] * half + ["treat"] * (n_samples - half)},
        index=pd.Index(sample_names, name="sample_id"),
    )
    meta.to_csv(metadata_tsv, sep="\t")

    print(f"Generated toy data: {n_genes} genes x {n_samples} samples")
    print(f"  Expected: (0,1)=common+, (2,3)=specific:ctrl+, (4,5)=different:ctrl+treat-")
    print(f"  Saved {counts_tsv} and {metadata_tsv}")
    return counts_tsv, metadata_tsv


def main():
    parser = argparse.ArgumentParser(
        description="Prepare per-condition log-CPM expression matrices in HDF5."
    )
    parser.add_argument("--counts-tsv", type=str, default=None,
                        help="Input count TSV (genes as rows, samples as columns).")
    parser.add_argument("--metadata-tsv", type=str, default=None,
                        help="Sample metadata TSV keyed by sample id.")
    parser.add_argument("--condition-column", type=str, default="condition",
                        help="Metadata column that defines the conditions (default: condition).")
    parser.add_argument("--symbol-map", type=str, default=None,
                        help="Optional TSV mapping gene ids (col 1) to symbols (col 2).")
    parser.add_argument("--genes", type=str, default=None,
                        help="Optional gene list (one id per line) to restrict the node set.")
    parser.add_argument("--min-count", type=float, default=10,
                        help="Minimum reads for a gene to count as expressed in a sample (default: 10).")
    parser.add_argument("--min-samples", type=int, default=2,
                        help="Minimum samples in which a gene must be expressed (default: 2).")
    parser.add_argument("--out-h5", type=str, required=True, help="Output HDF5 file path.")
    parser.add_argument("--toy", action="store_true",
                        help="Generate toy counts with known differential edges next to --out-h5.")
    parser.add_argument("--log-level", type=str, default="WARNING")

    args = parser.parse_args()
    logging.basicConfig(level=args.log_level.upper(), format="%(levelname)s:%(name)s:%(message)s")
    h5_path = Path(args.out_h5)

    if args.toy:
        counts_tsv, metadata_tsv = generate_toy_data(h5_path.parent)
    elif args.counts_tsv and args.metadata_tsv:
        counts_tsv, metadata_tsv = Path(args.counts_tsv), Path(args.metadata_tsv)
        for p in (counts_tsv, metadata_tsv):
            if not p.exists():
                raise FileNotFoundError(f"TSV not found: {p}")
    else:
        raise SystemExit("ERROR: provide --counts-tsv and --metadata-tsv, or use --toy.")

    prepare_expression(
        counts_tsv=counts_tsv,
        metadata_tsv=metadata_tsv,
        condition_column=args.condition_column,
        h5_path=h5_path,
        symbol_map=Path(args.symbol_map) if args.symbol_map else None,
        gene_list=Path(args.genes) if args.genes else None,
        min_count=args.min_count,
        min_samples=args.min_samples,
    )


if __name__ == "__main__":
    main()
