"""Test-retest reliability toolkit based on generalizability theory."""
from .config import (
    BootstrapConfig,
    DEFAULT_COLUMNS,
    DSTUDY_SCENARIOS,
    DStudyScenario,
    DesignColumns,
    FACET_DELIMITER,
    REPETITION_FACET,
    RESIDUAL_KEY,
    ReliabilityPaths,
    SweepConfig,
)
from .errors import (
    DegenerateVarianceError,
    InsufficientReplicatesError,
    InvalidMultiplierError,
    NonconvergentFitError,
    ReliabilityError,
    UnknownFacetError,
)
from .facets import facet_tokens, join_facets, matches, matching_rows
from .components import VarianceComponentTable
from .gtheory import ICCResult, effective_multiplier, icc_table, icc_type
from .modeling import MixedModelFit, RandomEffectsSpec, fit_variance_model
from .bootstrap import BootstrapEstimate, Interval, ReplicatePolicy, icc_boot, percentile_interval
from .sweep import SweepOutcome, SweepResult, repetition_sweep
from .data import load_measurements, wide_to_long
from .report import sweep_summary, write_frame

__all__ = [
    "BootstrapConfig",
    "DEFAULT_COLUMNS",
    "DSTUDY_SCENARIOS",
    "DStudyScenario",
    "DesignColumns",
    "FACET_DELIMITER",
    "REPETITION_FACET",
    "RESIDUAL_KEY",
    "ReliabilityPaths",
    "SweepConfig",
    "DegenerateVarianceError",
    "InsufficientReplicatesError",
    "InvalidMultiplierError",
    "NonconvergentFitError",
    "ReliabilityError",
    "UnknownFacetError",
    "facet_tokens",
    "join_facets",
    "matches",
    "matching_rows",
    "VarianceComponentTable",
    "ICCResult",
    "effective_multiplier",
    "icc_table",
    "icc_type",
    "MixedModelFit",
    "RandomEffectsSpec",
    "fit_variance_model",
    "BootstrapEstimate",
    "Interval",
    "ReplicatePolicy",
    "icc_boot",
    "percentile_interval",
    "SweepOutcome",
    "SweepResult",
    "repetition_sweep",
    "load_measurements",
    "wide_to_long",
    "sweep_summary",
    "write_frame",
]
