#!/usr/bin/env python3
"""
Stage 20a: Build one signed wTO co-expression network per condition.

Pipeline position
-----------------
Stage 0   00preprocess/00prepare_expression.py   ->  expression.h5
Stage 20a THIS SCRIPT                            ->  networks/<condition>.tsv
Stage 20b 02compare_networks.py                  ->  diffnet.h5 + tables + gene lists

Output (one TSV per condition)
------------------------------
    node_a, node_b, weight, pvalue, padj
    weight is the signed wTO, set to 0 where padj >= --alpha (zero rows
    are omitted unless --keep-zero).
"""

from __future__ import annotations

import argparse
import logging
from pathlib import Path

from diffnet.errors import DiffNetError
from diffnet.io import load_expression_h5, write_edge_table
from diffnet.network import wto_network
from diffnet.params import CORR_METHODS, NetworkParams


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Stage 20a: signed wTO network per condition.")
    parser.add_argument("--expr-h5", type=str, required=True, help="expression.h5 from stage 0.")
    parser.add_argument("--out-dir", type=str, default="results/networks")
    parser.add_argument("--conditions", type=str, nargs="*", default=None,
                        help="Conditions to build (default: all in the HDF5).")
    parser.add_argument("--method", type=str, choices=CORR_METHODS, default="spearman")
    parser.add_argument("--n-bootstrap", type=int, default=100)
    parser.add_argument("--alpha", type=float, default=0.05, help="BH-adjusted p-value cutoff.")
    parser.add_argument("--seed", type=int, default=0)
    parser.add_argument("--keep-zero", action="store_true",
                        help="Keep non-significant pairs (weight 0) in the output.")
    parser.add_argument("--log-level", type=str, default="INFO")
    return parser.parse_args()


def main() -> None:
    args = parse_args()
    logging.basicConfig(level=args.log_level.upper(), format="%(levelname)s:%(name)s:%(message)s")

    params = NetworkParams(
        method=args.method,
        n_bootstrap=args.n_bootstrap,
        alpha=args.alpha,
        seed=args.seed,
        keep_zero=args.keep_zero,
    )
    matrices = load_expression_h5(Path(args.expr_h5))
    conditions = args.conditions or list(matrices)
    missing = [c for c in conditions if c not in matrices]
    if missing:
        raise SystemExit(f"ERROR: conditions not in {args.expr_h5}: {missing}")

    out_dir = Path(args.out_dir)
    print(f"\n{'='*60}")
    print(f"wTO NETWORKS ({params.method}, {params.n_bootstrap} bootstraps, alpha={params.alpha})")
    print(f"{'='*60}")
    for cond in conditions:
        expr = matrices[cond]
        try:
            edges = wto_network(expr, params)
        except DiffNetError as exc:
            raise SystemExit(f"ERROR: {cond}: {exc}")
        out_path = out_dir / f"{cond}.tsv"
        write_edge_table(edges, out_path)
        n_sig = int((edges["weight"] != 0).sum())
        print(f"  {cond}: {expr.shape[0]:,} genes x {expr.shape[1]} samples -> "
              f"{n_sig:,} significant edges -> {out_path}")


if __name__ == "__main__":
    main()
