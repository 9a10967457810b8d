"""Tabular exports of variance components and sweep results."""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict

import pandas as pd

from .components import VarianceComponentTable
from .sweep import SweepResult

logger = logging.getLogger(__name__)


def write_frame(frame: pd.DataFrame, out_path: Path | str) -> Path:
    """Write a table as Parquet or CSV depending on the file suffix."""

    out_path = Path(out_path)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    if out_path.suffix == ".parquet":
        frame.to_parquet(out_path, index=False)
    else:
        frame.to_csv(out_path, index=False)
    logger.info("Wrote %d rows to %s", len(frame), out_path)
    return out_path


def variance_frame(table: VarianceComponentTable) -> pd.DataFrame:
    return table.to_frame()


def sweep_summary(result: SweepResult) -> Dict[str, object]:
    projection = result.projection()
    single = result.single_observation()
    icc2 = single.loc[single["coefficient"].eq("ICC2"), "val"]
    return {
        "target_facets": sorted(result.target_facets),
        "fixed_multipliers": dict(result.fixed_multipliers),
        "threshold": result.threshold,
        "single_observation_icc2": float(icc2.iloc[0]) if len(icc2) else None,
        "max_icc2k": float(projection["val"].max()) if projection["val"].notna().any() else None,
        "minimum_repetitions": result.minimum_repetitions(),
        "failed_steps": result.failed,
    }


__all__ = ["write_frame", "variance_frame", "sweep_summary"]
