"""Loading and reshaping repeated-measurement files into long form."""
from __future__ import annotations

import re
from pathlib import Path

import pandas as pd

from .config import DEFAULT_COLUMNS, DesignColumns

# e.g. "s1_left_r2" -> session 1, side left, repetition 2
DEFAULT_MEASUREMENT_PATTERN = r"^s(?P<session>\w+?)_(?P<side>[A-Za-z]+)_r(?P<repetition>\d+)$"


def _coerce_long(df: pd.DataFrame, columns: DesignColumns) -> pd.DataFrame:
    missing = [col for col in columns.all_columns() if col not in df.columns]
    if missing:
        raise ValueError(f"Measurement table is missing columns: {missing}")
    df = df.copy()
    for col in columns.facet_columns():
        df[col] = df[col].astype(str).str.strip()
    df[columns.value] = pd.to_numeric(df[columns.value], errors="coerce")
    df = df.dropna(subset=[columns.value])
    return df.reset_index(drop=True)


def load_measurements(path: Path | str, columns: DesignColumns = DEFAULT_COLUMNS) -> pd.DataFrame:
    """Load a long-form CSV with one row per measurement."""

    df = pd.read_csv(Path(path), dtype=str)
    return _coerce_long(df, columns)


def wide_to_long(
    frame: pd.DataFrame,
    id_col: str | None = None,
    pattern: str = DEFAULT_MEASUREMENT_PATTERN,
    columns: DesignColumns = DEFAULT_COLUMNS,
) -> pd.DataFrame:
    """Melt a one-row-per-subject sheet into the long measurement table.

    Measurement columns are recognised by ``pattern``, whose named groups
    ``session``, ``side`` and ``repetition`` are copied into the long table.
    Columns that do not match are ignored.
    """

    id_col = id_col or columns.subject
    if id_col not in frame.columns:
        raise ValueError(f"Subject column {id_col!r} not found")
    regex = re.compile(pattern)
    value_cols = [col for col in frame.columns if col != id_col and regex.match(str(col))]
    if not value_cols:
        raise ValueError(f"No measurement columns match pattern {pattern!r}")

    long = frame.melt(id_vars=[id_col], value_vars=value_cols, var_name="_source", value_name=columns.value)
    parts = long["_source"].astype(str).str.extract(regex)
    long = long.rename(columns={id_col: columns.subject})
    long[columns.session] = parts["session"]
    long[columns.side] = parts["side"].str.lower()
    long[columns.repetition] = parts["repetition"]
    long = long.drop(columns="_source")
    long = long[list(columns.all_columns())]
    long = long.sort_values(list(columns.facet_columns()), kind="stable")
    return _coerce_long(long, columns)


def design_summary(df: pd.DataFrame, columns: DesignColumns = DEFAULT_COLUMNS) -> pd.DataFrame:
    """Count levels per facet and observations per subject."""

    per_subject = df.groupby(columns.subject).size()
    records = [{"facet": col, "levels": int(df[col].nunique())} for col in columns.facet_columns()]
    records.append({"facet": "observations", "levels": int(len(df))})
    records.append({"facet": "min_per_subject", "levels": int(per_subject.min()) if len(per_subject) else 0})
    return pd.DataFrame(records)


__all__ = ["DEFAULT_MEASUREMENT_PATTERN", "load_measurements", "wide_to_long", "design_summary"]
