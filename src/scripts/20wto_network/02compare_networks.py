#!/usr/bin/env python3
"""
Stage 20b: Compare co-expression networks and classify edges and nodes.

Pipeline position
-----------------
Stage 20a 01build_wto_network.py  ->  networks/<condition>.tsv
Stage 20b THIS SCRIPT             ->  diffnet.h5, edges.tsv, nodes.tsv, gene_lists/

Each edge gets a sign pattern (common+/-, different:..., specific:..., none),
a centrality score (distance from the centre of the comparison space) and an
internal score (distance to its pattern's mean). Edges with
centrality / internal >= --ratio-threshold are retained; each node is then
labelled by the dominant pattern of its retained edges.

Usage
-----
    python 02compare_networks.py --networks results/networks/ctrl.tsv results/networks/treat.tsv \
        --out-dir results/diffnet
"""

from __future__ import annotations

import argparse
import logging
from pathlib import Path

from diffnet.classify import compare_networks
from diffnet.errors import DiffNetError
from diffnet.io import read_edge_table, save_diffnet_h5, write_edge_table, write_node_gene_lists
from diffnet.params import ClassifierParams, NodeCutoffs
from diffnet.summary import print_summary


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Stage 20b: differential network classification.")
    parser.add_argument("--networks", type=str, nargs="+", required=True,
                        help="Two or more edge TSVs (node_a, node_b, weight).")
    parser.add_argument("--names", type=str, nargs="*", default=None,
                        help="Network names (default: file stems).")
    parser.add_argument("--out-dir", type=str, default="results/diffnet")
    parser.add_argument("--ratio-threshold", type=float, default=1.0,
                        help="Keep edges with centrality/internal >= threshold (default: 1.0).")
    parser.add_argument("--min-centrality", type=float, default=0.0,
                        help="Node labelling: minimum edge centrality in [0, 1] (default: 0).")
    parser.add_argument("--max-internal", type=float, default=1.0,
                        help="Node labelling: maximum edge internal distance in [0, 1] (default: 1).")
    parser.add_argument("--include-unclassified", action="store_true",
                        help="Also write a gene list for unclassified nodes.")
    parser.add_argument("--log-level", type=str, default="WARNING")
    return parser.parse_args()


def main() -> None:
    args = parse_args()
    logging.basicConfig(level=args.log_level.upper(), format="%(levelname)s:%(name)s:%(message)s")

    paths = [Path(p) for p in args.networks]
    if len(paths) < 2:
        raise SystemExit("ERROR: provide at least two --networks.")
    names = args.names or [p.stem for p in paths]
    if len(names) != len(paths):
        raise SystemExit("ERROR: --names must match --networks one to one.")

    tables = {}
    for name, path in zip(names, paths):
        if not path.exists():
            raise SystemExit(f"ERROR: network not found: {path}")
        tables[name] = read_edge_table(path)
        print(f"Loaded {name}: {len(tables[name]):,} edges from {path}")

    try:
        result = compare_networks(
            tables,
            params=ClassifierParams(ratio_threshold=args.ratio_threshold),
            cutoffs=NodeCutoffs(min_centrality=args.min_centrality, max_internal=args.max_internal),
        )
    except DiffNetError as exc:
        raise SystemExit(f"ERROR: {exc}")

    out_dir = Path(args.out_dir)
    write_edge_table(result.edges, out_dir / "edges.tsv")
    write_edge_table(result.retained, out_dir / "edges_retained.tsv")
    write_edge_table(result.nodes, out_dir / "nodes.tsv")
    gene_lists = write_node_gene_lists(result, out_dir / "gene_lists", args.include_unclassified)
    save_diffnet_h5(result, out_dir / "diffnet.h5")

    print_summary(result)

    print(f"\nSaved results to {out_dir}")
    for label, path in gene_lists.items():
        print(f"  {label:24s} -> {path.name}")


if __name__ == "__main__":
    main()
