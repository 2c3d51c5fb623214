from __future__ import annotations

from dataclasses import dataclass

from diffnet.errors import InvalidCutoff

CORR_METHODS = ("spearman", "pearson")


@dataclass(frozen=True)
class NetworkParams:
    method: str = "spearman"  # "spearman" or "pearson"
    n_bootstrap: int = 100  # sample resamples for wTO p-values
    alpha: float = 0.05  # BH-adjusted p-value cutoff
    seed: int = 0
    keep_zero: bool = False  # keep non-significant (zeroed) pairs in the edge table

    def __post_init__(self) -> None:
        if self.method not in CORR_METHODS:
            raise ValueError(f"method must be one of {CORR_METHODS}, got {self.method!r}")
        if self.n_bootstrap < 1:
            raise InvalidCutoff(f"n_bootstrap must be >= 1, got {self.n_bootstrap}")
        if not (0.0 < self.alpha <= 1.0):
            raise InvalidCutoff(f"alpha must be in (0, 1], got {self.alpha}")


@dataclass(frozen=True)
class ClassifierParams:
    """Edge-level classification settings.

    ratio_threshold is applied as ``centrality / internal >= ratio_threshold``;
    1.0 keeps edges that lie at least as close to their category mean as
    to the origin of the comparison space.
    """

    ratio_threshold: float = 1.0

    def __post_init__(self) -> None:
        if not self.ratio_threshold >= 0.0:
            raise InvalidCutoff(f"ratio_threshold must be >= 0, got {self.ratio_threshold}")


@dataclass(frozen=True)
class NodeCutoffs:
    min_centrality: float = 0.0  # edges below this centrality do not vote
    max_internal: float = 1.0  # edges above this internal distance do not vote

    def __post_init__(self) -> None:
        for name in ("min_centrality", "max_internal"):
            value = getattr(self, name)
            if not (0.0 <= value <= 1.0):
                raise InvalidCutoff(f"{name} must be in [0, 1], got {value}")
