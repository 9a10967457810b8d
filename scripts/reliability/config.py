"""Configuration objects and defaults for the test-retest reliability toolkit."""
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Sequence

FACET_DELIMITER = ":"
RESIDUAL_KEY = "<residual>"
REPETITION_FACET = "repetition"
DEFAULT_WORKERS = 7
DEFAULT_THRESHOLD = 0.8


@dataclass(frozen=True)
class ReliabilityPaths:
    """Centralized file locations for inputs and exported artefacts."""

    measurements_csv: Path = Path("outputs/reliability/measurements_long.csv")
    variance_csv: Path = Path("outputs/reliability/variance_components.csv")
    icc_csv: Path = Path("outputs/reliability/icc_scenarios.csv")
    sweep_csv: Path = Path("outputs/reliability/repetition_sweep.csv")
    sweep_plot: Path = Path("outputs/reliability/repetition_sweep.png")
    variance_plot: Path = Path("outputs/reliability/variance_components.png")

    def ensure(self) -> None:
        """Create parent directories for all registered artefacts."""

        for path in (
            self.measurements_csv,
            self.variance_csv,
            self.icc_csv,
            self.sweep_csv,
            self.sweep_plot,
            self.variance_plot,
        ):
            parent = Path(path).expanduser().resolve().parent
            parent.mkdir(parents=True, exist_ok=True)


@dataclass(frozen=True)
class DesignColumns:
    """Column names of the long-form measurement table."""

    subject: str = "subject"
    session: str = "session"
    side: str = "side"
    repetition: str = "repetition"
    value: str = "value"

    def facet_columns(self) -> Sequence[str]:
        return (self.subject, self.session, self.side, self.repetition)

    def all_columns(self) -> Sequence[str]:
        return tuple(self.facet_columns()) + (self.value,)


@dataclass(frozen=True)
class BootstrapConfig:
    """Replicate count and interval width for parametric bootstrap runs."""

    n_boot: int = 1000
    confidence_level: float = 0.95


@dataclass(frozen=True)
class SweepConfig:
    """Worker pool and range settings for repetition sweeps."""

    n_jobs: int = DEFAULT_WORKERS
    backend: str = "loky"
    max_reps: int = 10
    threshold: float = DEFAULT_THRESHOLD

    def reps(self) -> range:
        return range(1, self.max_reps + 1)


@dataclass(frozen=True)
class DStudyScenario:
    """A decision-study configuration: which facets count as error and how
    many units are averaged along the remaining facets."""

    target_facets: frozenset[str]
    fixed_multipliers: Mapping[str, int] = field(default_factory=dict)


DEFAULT_COLUMNS = DesignColumns()


DSTUDY_SCENARIOS: Mapping[str, DStudyScenario] = {
    "test_retest": DStudyScenario(
        target_facets=frozenset({"session"}),
        fixed_multipliers={"side": 1},
    ),
    "inter_side": DStudyScenario(
        target_facets=frozenset({"side"}),
        fixed_multipliers={"session": 1},
    ),
    "session_and_side": DStudyScenario(
        target_facets=frozenset({"session", "side"}),
    ),
}


__all__ = [
    "FACET_DELIMITER",
    "RESIDUAL_KEY",
    "REPETITION_FACET",
    "DEFAULT_WORKERS",
    "DEFAULT_THRESHOLD",
    "ReliabilityPaths",
    "DesignColumns",
    "BootstrapConfig",
    "SweepConfig",
    "DStudyScenario",
    "DEFAULT_COLUMNS",
    "DSTUDY_SCENARIOS",
]
