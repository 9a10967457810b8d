"""Random-effects variance models fitted with statsmodels MixedLM."""
from __future__ import annotations

import logging
import warnings
from dataclasses import dataclass
from typing import Any, Dict, Protocol, Sequence

import numpy as np
import pandas as pd
import statsmodels.formula.api as smf
from statsmodels.tools.sm_exceptions import ConvergenceWarning

from .components import VarianceComponentTable
from .config import DEFAULT_COLUMNS, REPETITION_FACET, RESIDUAL_KEY
from .errors import NonconvergentFitError
from .facets import join_facets

logger = logging.getLogger(__name__)


class FittedModelHandle(Protocol):
    """What the bootstrap and sweep need from a fitted variance model."""

    def variance_components(self) -> VarianceComponentTable:
        ...

    def simulate_and_refit(self, seed: int | None = None) -> VarianceComponentTable:
        ...


@dataclass(frozen=True)
class RandomEffectsSpec:
    """Random intercepts for the subject and for facets nested within it.

    ``nested`` lists facet combinations (tuples of column names); each becomes a
    variance component labelled ``subject:<facets>``.  The residual is the
    finest-grained variation and is labelled ``residual_facet``.
    """

    response: str = DEFAULT_COLUMNS.value
    group: str = DEFAULT_COLUMNS.subject
    nested: Sequence[tuple[str, ...]] = (
        (DEFAULT_COLUMNS.session,),
        (DEFAULT_COLUMNS.side,),
    )
    fixed: str = "1"
    residual_facet: str = REPETITION_FACET
    method: str = "lbfgs"

    def formula(self) -> str:
        return f"{self.response} ~ {self.fixed}"

    def vc_formula(self) -> Dict[str, str]:
        return {
            join_facets(self.group, *facets): "0 + " + ":".join(f"C({col})" for col in facets)
            for facets in self.nested
        }

    def required_columns(self) -> list[str]:
        cols = [self.response, self.group]
        for facets in self.nested:
            cols.extend(facets)
        return list(dict.fromkeys(cols))


def fit_mixed_effects(data: pd.DataFrame, spec: RandomEffectsSpec) -> Any:
    """Fit the MixedLM described by ``spec``; non-convergence is an error."""

    model = smf.mixedlm(
        spec.formula(),
        data,
        groups=data[spec.group],
        re_formula="1",
        vc_formula=spec.vc_formula() or None,
    )
    with warnings.catch_warnings():
        warnings.simplefilter("ignore", ConvergenceWarning)
        try:
            result = model.fit(method=spec.method, reml=True)
        except (np.linalg.LinAlgError, ValueError) as exc:
            raise NonconvergentFitError(f"MixedLM fit failed: {exc}") from exc
    if not getattr(result, "converged", True):
        raise NonconvergentFitError("MixedLM fit did not converge")
    estimates = np.concatenate([np.atleast_1d(result.vcomp), np.asarray(result.cov_re).ravel(), [result.scale]])
    if not np.all(np.isfinite(estimates)):
        raise NonconvergentFitError("MixedLM fit produced non-finite variance estimates")
    return result


def extract_components(result: Any, spec: RandomEffectsSpec) -> VarianceComponentTable:
    """Map a MixedLM result onto a variance component table."""

    components: dict[str, float] = {}
    components[spec.group] = float(result.cov_re.iloc[0, 0]) if result.cov_re.size else 0.0
    names = list(result.model.exog_vc.names) if spec.nested else []
    for name, value in zip(names, np.atleast_1d(result.vcomp)):
        components[name] = float(value)
    components[RESIDUAL_KEY] = float(result.scale)
    return VarianceComponentTable.from_fit(components, residual_facet=spec.residual_facet)


def _group_codes(data: pd.DataFrame, columns: Sequence[str]) -> np.ndarray:
    return data.groupby(list(columns), sort=False, observed=True).ngroup().to_numpy()


@dataclass(frozen=True)
class MixedModelFit:
    """Fitted model handle: immutable, picklable, safe to share across workers."""

    data: pd.DataFrame
    spec: RandomEffectsSpec
    fixed_fitted: np.ndarray
    table: VarianceComponentTable

    def variance_components(self) -> VarianceComponentTable:
        return self.table

    def simulate(self, seed: int | None = None) -> np.ndarray:
        """Draw one response vector from the fitted distribution."""

        rng = np.random.default_rng(seed)
        simulated = self.fixed_fitted.copy()
        groupings: list[tuple[str, Sequence[str]]] = [(self.spec.group, (self.spec.group,))]
        groupings.extend(
            (join_facets(self.spec.group, *facets), (self.spec.group, *facets)) for facets in self.spec.nested
        )
        for label, columns in groupings:
            sd = np.sqrt(max(self.table.variance(label), 0.0))
            codes = _group_codes(self.data, columns)
            simulated += rng.normal(0.0, sd, codes.max() + 1)[codes]
        residual_sd = np.sqrt(max(self.table.variance(self.table.residual), 0.0))
        simulated += rng.normal(0.0, residual_sd, len(simulated))
        return simulated

    def simulate_and_refit(self, seed: int | None = None) -> VarianceComponentTable:
        working = self.data.copy()
        working[self.spec.response] = self.simulate(seed)
        result = fit_mixed_effects(working, self.spec)
        return extract_components(result, self.spec)


def fit_variance_model(data: pd.DataFrame, spec: RandomEffectsSpec | None = None) -> MixedModelFit:
    """Fit the random-effects decomposition once and wrap it as a model handle."""

    spec = spec or RandomEffectsSpec()
    missing = [col for col in spec.required_columns() if col not in data.columns]
    if missing:
        raise ValueError(f"Measurement table lacks columns required by the model: {missing}")
    working = data.dropna(subset=spec.required_columns()).reset_index(drop=True)
    result = fit_mixed_effects(working, spec)
    table = extract_components(result, spec)
    fixed_fitted = np.asarray(result.model.exog @ result.fe_params.to_numpy(), dtype=float)
    logger.info(
        "Fitted variance model on %d observations: %s",
        len(working),
        ", ".join(f"{label}={value:.4g}" for label, value in table.items()),
    )
    return MixedModelFit(data=working, spec=spec, fixed_fitted=fixed_fitted, table=table)


def model_to_dict(result: Any) -> Dict[str, Any]:
    summary = {
        "params": result.params.to_dict(),
        "fe_params": result.fe_params.to_dict(),
        "scale": float(result.scale),
        "cov_re": np.asarray(result.cov_re).tolist(),
        "vcomp": np.atleast_1d(result.vcomp).tolist(),
        "llf": float(getattr(result, "llf", np.nan)),
        "nobs": float(getattr(result.model, "nobs", np.nan)),
        "converged": bool(getattr(result, "converged", False)),
    }
    return summary


__all__ = [
    "FittedModelHandle",
    "RandomEffectsSpec",
    "MixedModelFit",
    "fit_mixed_effects",
    "extract_components",
    "fit_variance_model",
    "model_to_dict",
]
