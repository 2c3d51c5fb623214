"""
diffnet: differential co-expression network analysis
====================================================

Builds one signed wTO co-expression network per condition and compares them,
labelling each edge as common, different (opposite sign) or specific to a
subset of networks, then labelling each node by its dominant edge pattern.
"""

from .classify import (
    DiffNetResult,
    classify_edges,
    classify_nodes,
    compare_networks,
    filter_edges,
    node_table,
)
from .errors import DegenerateWeightVector, DiffNetError, InputShapeMismatch, InvalidCutoff
from .network import wto_network
from .params import ClassifierParams, NetworkParams, NodeCutoffs

__version__ = "0.1.0"

__all__ = [
    "ClassifierParams",
    "DegenerateWeightVector",
    "DiffNetError",
    "DiffNetResult",
    "InputShapeMismatch",
    "InvalidCutoff",
    "NetworkParams",
    "NodeCutoffs",
    "classify_edges",
    "classify_nodes",
    "compare_networks",
    "filter_edges",
    "node_table",
    "wto_network",
]
