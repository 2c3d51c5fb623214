#!/usr/bin/env python3
"""
Stage 10: Differential expression between two conditions.

Welch t-test on log2 CPM per gene, BH-adjusted. The resulting gene list is
typically passed to stage 0 (--genes) to restrict the co-expression networks
to differentially expressed genes.

Usage
-----
    python 01run_diff_expr.py --counts-tsv data/counts.tsv --metadata-tsv data/samples.tsv \
        --reference ctrl --treatment treat --out-csv results/de.csv --out-genes results/de_genes.txt

Output
------
    de.csv          gene_id, log2_fold_change, pvalue, padj (sorted by pvalue)
    de_genes.txt    one gene id per line (padj < --padj and |log2FC| >= --min-lfc)
"""

from __future__ import annotations

import argparse
import logging
from pathlib import Path

from diffnet.de import differential_expression, select_de_genes
from diffnet.expression import filter_low_counts
from diffnet.io import read_count_matrix, read_sample_metadata, write_de_table, write_gene_list


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Stage 10: gene-wise differential expression.")
    parser.add_argument("--counts-tsv", type=str, required=True)
    parser.add_argument("--metadata-tsv", type=str, required=True)
    parser.add_argument("--condition-column", type=str, default="condition")
    parser.add_argument("--reference", type=str, required=True, help="Reference condition level.")
    parser.add_argument("--treatment", type=str, required=True, help="Condition compared to the reference.")
    parser.add_argument("--min-count", type=float, default=10)
    parser.add_argument("--min-samples", type=int, default=2)
    parser.add_argument("--padj", type=float, default=0.05, help="Adjusted p-value cutoff (default: 0.05).")
    parser.add_argument("--min-lfc", type=float, default=1.0, help="Minimum |log2FC| (default: 1.0).")
    parser.add_argument("--out-csv", type=str, default="results/differential_expression.csv")
    parser.add_argument("--out-genes", type=str, default=None,
                        help="Optional gene list of significant genes.")
    parser.add_argument("--log-level", type=str, default="WARNING")
    return parser.parse_args()


def main() -> None:
    args = parse_args()
    logging.basicConfig(level=args.log_level.upper(), format="%(levelname)s:%(name)s:%(message)s")

    counts = read_count_matrix(Path(args.counts_tsv))
    metadata = read_sample_metadata(Path(args.metadata_tsv))
    counts = filter_low_counts(counts, min_count=args.min_count, min_samples=args.min_samples)
    print(f"Testing {counts.shape[0]:,} genes: {args.treatment} vs {args.reference}")

    result = differential_expression(
        counts, metadata, args.condition_column,
        reference=args.reference, treatment=args.treatment,
    )
    write_de_table(result, Path(args.out_csv))
    print(f"  Saved DE table to {args.out_csv}")

    genes = select_de_genes(result, padj=args.padj, min_abs_lfc=args.min_lfc)
    n_up = int(((result["padj"] < args.padj) & (result["log2_fold_change"] >= args.min_lfc)).sum())
    print(f"\n[DIFFERENTIAL EXPRESSION]")
    print(f"  Significant genes: {len(genes):,} (padj < {args.padj}, |log2FC| >= {args.min_lfc})")
    print(f"  Up: {n_up:,}, Down: {len(genes) - n_up:,}")

    if args.out_genes:
        write_gene_list(genes, Path(args.out_genes))
        print(f"  Saved gene list to {args.out_genes}")


if __name__ == "__main__":
    main()
