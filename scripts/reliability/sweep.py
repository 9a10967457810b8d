"""Decision-study sweep over hypothetical repetition counts."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable, Iterator, Mapping

import numpy as np
import pandas as pd
from joblib import Parallel, delayed

from .bootstrap import BootstrapEstimate, ReplicatePolicy, SeedLike, icc_boot
from .config import BootstrapConfig, REPETITION_FACET, SweepConfig
from .errors import ReliabilityError
from .gtheory import icc_type, validate_multipliers
from .modeling import FittedModelHandle

logger = logging.getLogger(__name__)

COEFFICIENTS = ("ICC2", "ICC2k")
FRAME_COLUMNS = ["n", "coefficient", "val", "lower", "upper", "n_effective", "error"]


@dataclass(frozen=True)
class SweepOutcome:
    n: int
    estimate: BootstrapEstimate | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.estimate is not None


@dataclass
class SweepResult:
    """Bootstrap estimates keyed by repetition count, failures included."""

    target_facets: frozenset[str]
    fixed_multipliers: Mapping[str, int]
    threshold: float
    outcomes: dict[int, SweepOutcome] = field(default_factory=dict)

    def add(self, outcome: SweepOutcome) -> None:
        self.outcomes[outcome.n] = outcome

    def __getitem__(self, n: int) -> SweepOutcome:
        return self.outcomes[n]

    def __iter__(self) -> Iterator[SweepOutcome]:
        for n in sorted(self.outcomes):
            yield self.outcomes[n]

    def __len__(self) -> int:
        return len(self.outcomes)

    @property
    def failed(self) -> dict[int, str]:
        return {o.n: o.error or "" for o in self if not o.ok}

    def to_frame(self) -> pd.DataFrame:
        records: list[dict[str, object]] = []
        for outcome in self:
            for name in COEFFICIENTS:
                if outcome.estimate is None:
                    records.append(
                        {"n": outcome.n, "coefficient": name, "val": np.nan, "lower": np.nan,
                         "upper": np.nan, "n_effective": 0, "error": outcome.error}
                    )
                    continue
                interval = outcome.estimate.coefficient(name)
                records.append(
                    {
                        "n": outcome.n,
                        "coefficient": name,
                        "val": interval.val,
                        "lower": interval.lower,
                        "upper": interval.upper,
                        "n_effective": outcome.estimate.n_effective,
                        "error": None,
                    }
                )
        return pd.DataFrame(records, columns=FRAME_COLUMNS)

    def projection(self) -> pd.DataFrame:
        """ICC2k rows for n > 1, the table the decision study reads."""

        frame = self.to_frame()
        mask = frame["coefficient"].eq("ICC2k") & frame["n"].gt(1)
        return frame.loc[mask].reset_index(drop=True)

    def single_observation(self) -> pd.DataFrame:
        frame = self.to_frame()
        return frame.loc[frame["n"].eq(1)].reset_index(drop=True)

    def minimum_repetitions(self, threshold: float | None = None) -> int | None:
        """Smallest swept n whose ICC2k point estimate reaches ``threshold``.

        Scans every row rather than assuming ICC2k grows with n.
        """

        limit = self.threshold if threshold is None else threshold
        for row in self.projection().sort_values("n").itertuples(index=False):
            if pd.notna(row.val) and row.val >= limit:
                return int(row.n)
        return None

    def to_records(self) -> list[tuple[str, float, float, float]]:
        return [
            (f"{row.coefficient}[n={row.n}]", float(row.val), float(row.lower), float(row.upper))
            for row in self.to_frame().itertuples(index=False)
        ]


def _sweep_task(
    model: FittedModelHandle,
    n: int,
    target_facets: frozenset[str],
    fixed_multipliers: Mapping[str, int],
    n_boot: int,
    confidence_level: float,
    policy: ReplicatePolicy | None,
    seed: np.random.SeedSequence,
    residual_facet: str,
) -> SweepOutcome:
    try:
        icc_fn = icc_type(target_facets, {**fixed_multipliers, residual_facet: n}, residual_facet=residual_facet)
        estimate = icc_boot(model, icc_fn, n_boot, confidence_level=confidence_level, policy=policy, random_state=seed)
    except ReliabilityError as exc:
        return SweepOutcome(n=n, error=f"{type(exc).__name__}: {exc}")
    except Exception as exc:
        # Handles other than MixedModelFit may raise anything from a refit.
        logger.exception("Unexpected failure in sweep step n=%d", n)
        return SweepOutcome(n=n, error=f"{type(exc).__name__}: {exc}")
    return SweepOutcome(n=n, estimate=estimate)


def repetition_sweep(
    model: FittedModelHandle,
    target_facets: Iterable[str],
    fixed_multipliers: Mapping[str, int] | None = None,
    reps: Iterable[int] | None = None,
    bootstrap: BootstrapConfig | None = None,
    config: SweepConfig | None = None,
    policy: ReplicatePolicy | None = None,
    random_state: SeedLike = None,
    residual_facet: str = REPETITION_FACET,
    parallel: Parallel | None = None,
) -> SweepResult:
    """Bootstrap ICC2/ICC2k for every hypothetical repetition count.

    ``model`` is fitted once upstream and shared read-only by all tasks; only
    the bootstrap replicates refit on simulated data.  Tasks run on an
    explicitly sized joblib pool (``config.n_jobs``) unless ``parallel`` is
    given, and a failing n is recorded in the result instead of aborting the
    others.  This holds for any exception a handle raises, not only the
    reliability errors.
    """

    config = config or SweepConfig()
    bootstrap = bootstrap or BootstrapConfig()
    targets = frozenset(target_facets)
    fixed = validate_multipliers(fixed_multipliers)
    fixed.pop(residual_facet, None)
    counts = sorted(set(reps if reps is not None else config.reps()))
    if not counts or counts[0] < 1:
        raise ValueError(f"Repetition counts must be positive integers, got {counts}")

    root = random_state if isinstance(random_state, np.random.SeedSequence) else np.random.SeedSequence(random_state)
    seeds = dict(zip(counts, root.spawn(len(counts))))
    pool = parallel or Parallel(n_jobs=config.n_jobs, backend=config.backend, return_as="generator_unordered")
    logger.info(
        "Sweeping n=%d..%d for targets %s with %d replicates on %s workers",
        counts[0], counts[-1], sorted(targets), bootstrap.n_boot, config.n_jobs,
    )

    result = SweepResult(target_facets=targets, fixed_multipliers=fixed, threshold=config.threshold)
    tasks = (
        delayed(_sweep_task)(
            model, n, targets, fixed, bootstrap.n_boot, bootstrap.confidence_level, policy, seeds[n], residual_facet
        )
        for n in counts
    )
    for outcome in pool(tasks):
        if not outcome.ok:
            logger.warning("Sweep step n=%d failed: %s", outcome.n, outcome.error)
        result.add(outcome)
    return result


__all__ = ["SweepOutcome", "SweepResult", "repetition_sweep"]
