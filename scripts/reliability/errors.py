"""Exception types raised by the reliability toolkit."""
from __future__ import annotations


class ReliabilityError(Exception):
    """Base class for errors raised while estimating reliability."""


class DegenerateVarianceError(ReliabilityError, ArithmeticError):
    """Total variance is zero or the residual component is missing."""


class InsufficientReplicatesError(DegenerateVarianceError):
    """Too few bootstrap replicates survived to form an interval."""

    def __init__(self, n_effective: int, required: int):
        super().__init__(
            f"only {n_effective} bootstrap replicates succeeded, {required} required"
        )
        self.n_effective = n_effective
        self.required = required


class NonconvergentFitError(ReliabilityError, RuntimeError):
    """The model-fitting collaborator failed to fit or refit."""


class UnknownFacetError(ReliabilityError, KeyError):
    """A queried facet matches no row of a variance component table."""

    def __str__(self) -> str:
        # KeyError quotes its argument; keep the plain message instead
        return str(self.args[0]) if self.args else ""


class InvalidMultiplierError(ReliabilityError, ValueError):
    """A repetition multiplier is not a positive integer."""


__all__ = [
    "ReliabilityError",
    "DegenerateVarianceError",
    "InsufficientReplicatesError",
    "NonconvergentFitError",
    "UnknownFacetError",
    "InvalidMultiplierError",
]
