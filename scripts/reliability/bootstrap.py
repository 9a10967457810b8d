"""Parametric bootstrap confidence intervals for generalized ICCs."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import NamedTuple, Sequence

import numpy as np

from .errors import DegenerateVarianceError, InsufficientReplicatesError, NonconvergentFitError
from .gtheory import ICCFunction
from .modeling import FittedModelHandle

logger = logging.getLogger(__name__)

SeedLike = int | np.random.SeedSequence | None


class Interval(NamedTuple):
    val: float
    lower: float
    upper: float


@dataclass(frozen=True)
class ReplicatePolicy:
    """How failed bootstrap replicates are handled.

    A replicate fails when its refit does not converge or its table has zero
    total variance.  It is retried ``max_retries`` times with fresh seeds and
    then discarded.  The estimate as a whole fails when fewer than
    ``max(min_effective, ceil(min_effective_fraction * n_boot))`` replicates
    survive, capped at ``n_boot`` so a run with every replicate intact always
    succeeds.
    """

    max_retries: int = 1
    min_effective: int = 2
    min_effective_fraction: float = 0.5

    def required(self, n_boot: int) -> int:
        floor = max(self.min_effective, int(np.ceil(self.min_effective_fraction * n_boot)))
        return min(n_boot, floor)


@dataclass(frozen=True)
class BootstrapEstimate:
    ICC2: Interval
    ICC2k: Interval
    n_boot: int
    n_effective: int
    n_failed: int
    confidence_level: float

    def coefficient(self, name: str) -> Interval:
        if name not in ("ICC2", "ICC2k"):
            raise KeyError(name)
        return getattr(self, name)


def percentile_interval(values: Sequence[float] | np.ndarray, confidence_level: float = 0.95) -> tuple[float, float]:
    """Equal-tailed percentile interval with linear interpolation."""

    if not 0 < confidence_level < 1:
        raise ValueError(f"confidence_level must lie in (0, 1), got {confidence_level}")
    arr = np.sort(np.asarray(values, dtype=float))
    if arr.size == 0:
        raise ValueError("Cannot compute a percentile interval from zero replicates")
    alpha = (1 - confidence_level) / 2
    lower, upper = np.percentile(arr, [alpha * 100, (1 - alpha) * 100], method="linear")
    return float(lower), float(upper)


def _seed_from(sequence: np.random.SeedSequence) -> int:
    return int(sequence.generate_state(1, dtype=np.uint32)[0])


def icc_boot(
    model: FittedModelHandle,
    icc_fn: ICCFunction,
    n_boot: int,
    confidence_level: float = 0.95,
    policy: ReplicatePolicy | None = None,
    random_state: SeedLike = None,
) -> BootstrapEstimate:
    """Point estimate plus percentile interval for ``ICC2`` and ``ICC2k``.

    Each replicate simulates a response from ``model``, refits it and applies
    ``icc_fn``.  Replicate seeds are spawned from one seed sequence so the
    result does not depend on evaluation order.
    """

    if n_boot <= 0:
        raise ValueError(f"n_boot must be positive, got {n_boot}")
    if not 0 < confidence_level < 1:
        raise ValueError(f"confidence_level must lie in (0, 1), got {confidence_level}")
    policy = policy or ReplicatePolicy()

    point = icc_fn(model.variance_components())

    root = random_state if isinstance(random_state, np.random.SeedSequence) else np.random.SeedSequence(random_state)
    replicates = np.empty((n_boot, 2), dtype=float)
    n_effective = 0
    n_failed = 0
    for slot, child in enumerate(root.spawn(n_boot)):
        candidates = [child] + child.spawn(policy.max_retries)
        for attempt, sequence in enumerate(candidates):
            try:
                result = icc_fn(model.simulate_and_refit(seed=_seed_from(sequence)))
            except (NonconvergentFitError, DegenerateVarianceError) as exc:
                logger.debug("Replicate %d attempt %d failed: %s", slot, attempt, exc)
                continue
            replicates[n_effective] = (result.ICC2, result.ICC2k)
            n_effective += 1
            break
        else:
            n_failed += 1
            logger.warning("Discarding bootstrap replicate %d after %d attempts", slot, len(candidates))

    required = policy.required(n_boot)
    if n_effective < required:
        raise InsufficientReplicatesError(n_effective, required)

    kept = replicates[:n_effective]
    icc2_lower, icc2_upper = percentile_interval(kept[:, 0], confidence_level)
    icc2k_lower, icc2k_upper = percentile_interval(kept[:, 1], confidence_level)
    return BootstrapEstimate(
        ICC2=Interval(point.ICC2, icc2_lower, icc2_upper),
        ICC2k=Interval(point.ICC2k, icc2k_lower, icc2k_upper),
        n_boot=n_boot,
        n_effective=n_effective,
        n_failed=n_failed,
        confidence_level=confidence_level,
    )


__all__ = ["Interval", "ReplicatePolicy", "BootstrapEstimate", "percentile_interval", "icc_boot"]
