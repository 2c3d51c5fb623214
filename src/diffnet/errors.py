"""Error kinds raised while building and comparing co-expression networks."""

from __future__ import annotations


class DiffNetError(Exception):
    """Base class for all diffnet errors."""


class InputShapeMismatch(DiffNetError, ValueError):
    """Inputs cannot be aligned (disjoint node/sample sets, missing columns)."""


class InvalidCutoff(DiffNetError, ValueError):
    """A threshold or cutoff lies outside its allowed range."""


class DegenerateWeightVector(UserWarning):
    """Edges whose weight is zero in every compared network.

    These are kept under the ``none`` category rather than raised.
    """
