"""Normalized variance component tables produced by a model fit."""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Iterator, Mapping

import pandas as pd

from .config import RESIDUAL_KEY, REPETITION_FACET
from .errors import DegenerateVarianceError, UnknownFacetError
from .facets import same_facet


@dataclass(frozen=True)
class VarianceComponentTable:
    """Variance estimate per facet label plus one designated residual row.

    Instances are immutable; build them with :meth:`from_fit` so the residual
    row is relabelled exactly once.
    """

    rows: tuple[tuple[str, float], ...]
    residual: str

    def __post_init__(self) -> None:
        labels = [label for label, _ in self.rows]
        if len(set(labels)) != len(labels):
            raise ValueError(f"Duplicate facet labels in variance table: {labels}")
        if self.residual not in labels:
            raise DegenerateVarianceError(f"Residual row {self.residual!r} missing from variance table")
        for label, value in self.rows:
            if not math.isfinite(value):
                raise ValueError(f"Variance for {label!r} is not finite: {value}")

    @classmethod
    def from_fit(
        cls,
        components: Mapping[str, float],
        residual_key: str = RESIDUAL_KEY,
        residual_facet: str = REPETITION_FACET,
    ) -> "VarianceComponentTable":
        """Relabel the fitting collaborator's residual sentinel and freeze."""

        if residual_key not in components:
            raise DegenerateVarianceError(
                f"Fitted components carry no residual entry under {residual_key!r}"
            )
        rows: list[tuple[str, float]] = []
        for label, value in components.items():
            if label == residual_key:
                continue
            if same_facet(label, residual_facet):
                raise ValueError(
                    f"Cannot relabel residual to {residual_facet!r}: a modeled row already uses it"
                )
            rows.append((str(label), float(value)))
        rows.append((residual_facet, float(components[residual_key])))
        return cls(rows=tuple(rows), residual=residual_facet)

    @property
    def labels(self) -> tuple[str, ...]:
        return tuple(label for label, _ in self.rows)

    def items(self) -> Iterator[tuple[str, float]]:
        return iter(self.rows)

    def values(self) -> list[float]:
        return [value for _, value in self.rows]

    def as_dict(self) -> dict[str, float]:
        return dict(self.rows)

    def total(self) -> float:
        return float(sum(self.values()))

    def variance(self, label: str) -> float:
        for row_label, value in self.rows:
            if same_facet(row_label, label):
                return value
        raise UnknownFacetError(f"No variance component for facet {label!r}")

    def __len__(self) -> int:
        return len(self.rows)

    def __contains__(self, label: object) -> bool:
        return isinstance(label, str) and any(same_facet(row, label) for row in self.labels)

    def to_frame(self) -> pd.DataFrame:
        total = self.total()
        records = [
            {
                "facet": label,
                "variance": value,
                "proportion": value / total if total else float("nan"),
                "is_residual": label == self.residual,
            }
            for label, value in self.rows
        ]
        return pd.DataFrame(records, columns=["facet", "variance", "proportion", "is_residual"])


__all__ = ["VarianceComponentTable"]
