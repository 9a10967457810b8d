"""Generalized intraclass correlation over arbitrary facet sets.

``icc_type`` turns a choice of error facets and a decision-study multiplier map
into a function of a :class:`VarianceComponentTable`:

* ``ICC2`` is the share of total variance not attributable to the target
  (error) facets, i.e. the dependability of a single observation;
* ``ICC2k`` divides each component by the number of units averaged along its
  constituent facets (a multi-facet Spearman-Brown step-up) and reports the
  retained share of that scaled total.

When any averaging is requested the repetition facet is excluded from the
``ICC2k`` numerator alongside the targets.  With all multipliers equal to one it
is kept, which makes ``ICC2k`` coincide with ``ICC2``.
"""
from __future__ import annotations

import logging
import numbers
from typing import Callable, Iterable, Mapping, NamedTuple

import pandas as pd

from .components import VarianceComponentTable
from .config import REPETITION_FACET, DStudyScenario
from .errors import DegenerateVarianceError, InvalidMultiplierError, UnknownFacetError
from .facets import facet_tokens, matches

logger = logging.getLogger(__name__)


class ICCResult(NamedTuple):
    ICC2: float
    ICC2k: float


ICCFunction = Callable[[VarianceComponentTable], ICCResult]


def validate_multipliers(multipliers: Mapping[str, int] | None) -> dict[str, int]:
    checked: dict[str, int] = {}
    for facet, value in (multipliers or {}).items():
        if isinstance(value, bool) or not isinstance(value, numbers.Integral) or value <= 0:
            raise InvalidMultiplierError(
                f"Multiplier for facet {facet!r} must be a positive integer, got {value!r}"
            )
        checked[str(facet)] = int(value)
    return checked


def effective_multiplier(label: str, multipliers: Mapping[str, int], residual_label: str | None = None) -> int:
    """Number of averaged units dividing the variance of row ``label``.

    A key applies to every row whose label carries all of its tokens, so a
    combined key such as ``subject:side`` divides only the rows it matches.
    """

    if residual_label is not None and label == residual_label:
        return multipliers.get(residual_label, 1)
    tokens = facet_tokens(label)
    product = 1
    for facet, value in multipliers.items():
        if facet_tokens(facet) <= tokens:
            product *= value
    return product


def _check_known(table: VarianceComponentTable, names: Iterable[str], role: str) -> None:
    for name in names:
        if not any(matches(label, [name]) for label in table.labels):
            raise UnknownFacetError(
                f"{role} facet {name!r} matches no variance component (have {list(table.labels)})"
            )


def icc_type(
    target_facets: Iterable[str],
    multipliers: Mapping[str, int] | None = None,
    residual_facet: str = REPETITION_FACET,
    strict: bool = True,
) -> ICCFunction:
    """Build the ICC function for one facet set and multiplier configuration.

    ``target_facets`` are the facets treated as error.  ``multipliers`` maps a
    facet to the number of units averaged along it in the projected design;
    absent facets count as 1.  With ``strict`` a target or multiplier facet that
    matches no table row raises :class:`UnknownFacetError` on evaluation.
    """

    targets = frozenset(target_facets)
    checked = validate_multipliers(multipliers)
    averaging = any(value != 1 for value in checked.values())
    excluded = targets | {residual_facet} if averaging else targets

    def compute(table: VarianceComponentTable) -> ICCResult:
        if strict:
            _check_known(table, targets, "Target")
            _check_known(table, checked.keys(), "Multiplier")

        total = 0.0
        non_target = 0.0
        scaled_total = 0.0
        scaled_non_target = 0.0
        for label, value in table.items():
            total += value
            scaled_total += value / effective_multiplier(label, checked, table.residual)
            if not matches(label, targets):
                non_target += value
            if not matches(label, excluded):
                scaled_non_target += value

        if total == 0 or scaled_total == 0:
            raise DegenerateVarianceError(
                f"Total variance is zero for facets {list(table.labels)}; ICC is indeterminate"
            )
        return ICCResult(ICC2=non_target / total, ICC2k=scaled_non_target / scaled_total)

    return compute


def icc_table(
    table: VarianceComponentTable,
    scenarios: Mapping[str, DStudyScenario],
    repetitions: int = 1,
    residual_facet: str = REPETITION_FACET,
) -> pd.DataFrame:
    """Evaluate several decision-study scenarios against one table."""

    records: list[dict[str, object]] = []
    for name, scenario in scenarios.items():
        multipliers = {**scenario.fixed_multipliers, residual_facet: repetitions}
        result = icc_type(scenario.target_facets, multipliers, residual_facet=residual_facet)(table)
        logger.debug("Scenario %s: ICC2=%.4f ICC2k=%.4f", name, result.ICC2, result.ICC2k)
        records.append(
            {
                "scenario": name,
                "target_facets": ",".join(sorted(scenario.target_facets)),
                "repetitions": repetitions,
                "ICC2": result.ICC2,
                "ICC2k": result.ICC2k,
            }
        )
    return pd.DataFrame(records, columns=["scenario", "target_facets", "repetitions", "ICC2", "ICC2k"])


__all__ = [
    "ICCResult",
    "ICCFunction",
    "icc_type",
    "icc_table",
    "effective_multiplier",
    "validate_multipliers",
]
