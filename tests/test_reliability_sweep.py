import numpy as np
import pandas as pd
import pytest
from joblib import Parallel

from fakes import CrashingModel, ExhaustingModel
from scripts.reliability import (
    BootstrapConfig,
    BootstrapEstimate,
    Interval,
    ReplicatePolicy,
    SweepConfig,
    SweepOutcome,
    SweepResult,
    repetition_sweep,
)
from scripts.reliability.report import sweep_summary, write_frame

SEQUENTIAL = SweepConfig(n_jobs=1, max_reps=20, threshold=0.79)


def _estimate(value):
    interval = Interval(value, value - 0.05, value + 0.05)
    return BootstrapEstimate(
        ICC2=interval, ICC2k=interval, n_boot=10, n_effective=10, n_failed=0, confidence_level=0.95
    )


def test_sweep_keys_every_repetition_count(identity_model):
    result = repetition_sweep(
        identity_model,
        {"session"},
        {"side": 1},
        bootstrap=BootstrapConfig(n_boot=20),
        config=SEQUENTIAL,
        random_state=0,
    )
    assert sorted(result.outcomes) == list(range(1, 21))
    assert result[1].estimate.ICC2k.val == pytest.approx(0.875)
    assert result[5].estimate.ICC2k.val == pytest.approx(2.3 / 3.04)
    assert all(outcome.ok for outcome in result)


def test_minimum_repetitions_crossing_threshold(identity_model):
    result = repetition_sweep(
        identity_model,
        {"session"},
        {"side": 1},
        bootstrap=BootstrapConfig(n_boot=10),
        config=SEQUENTIAL,
    )
    assert result.minimum_repetitions() == 11
    assert result.minimum_repetitions(0.7) == 3
    assert result.minimum_repetitions(0.95) is None


def test_projection_filters_to_icc2k_above_one(identity_model):
    result = repetition_sweep(
        identity_model,
        {"session"},
        reps=range(1, 6),
        bootstrap=BootstrapConfig(n_boot=10),
        config=SEQUENTIAL,
    )
    projection = result.projection()
    assert projection["coefficient"].unique().tolist() == ["ICC2k"]
    assert projection["n"].tolist() == [2, 3, 4, 5]
    single = result.single_observation()
    assert single["n"].unique().tolist() == [1]
    assert set(single["coefficient"]) == {"ICC2", "ICC2k"}


def test_failed_step_recorded_not_dropped(table):
    model = ExhaustingModel(table, budget=20)
    result = repetition_sweep(
        model,
        {"session"},
        reps=range(1, 5),
        bootstrap=BootstrapConfig(n_boot=10),
        config=SweepConfig(n_jobs=1),
        policy=ReplicatePolicy(max_retries=0),
    )
    assert len(result) == 4
    assert result[1].ok and result[2].ok
    assert set(result.failed) == {3, 4}
    assert "InsufficientReplicatesError" in result[3].error
    frame = result.to_frame()
    failed_rows = frame.loc[frame["n"].isin([3, 4])]
    assert failed_rows["val"].isna().all()
    assert failed_rows["error"].notna().all()


def test_unexpected_handle_error_recorded_per_step(table):
    model = CrashingModel(table, budget=20)
    result = repetition_sweep(
        model,
        {"session"},
        reps=range(1, 5),
        bootstrap=BootstrapConfig(n_boot=10),
        config=SweepConfig(n_jobs=1),
        policy=ReplicatePolicy(max_retries=0),
    )
    assert len(result) == 4
    assert result[1].ok and result[2].ok
    assert set(result.failed) == {3, 4}
    assert result[3].error == "RuntimeError: solver backend crashed"


def test_unknown_target_fails_each_step(identity_model):
    result = repetition_sweep(
        identity_model,
        {"rater"},
        reps=[1, 2],
        bootstrap=BootstrapConfig(n_boot=5),
        config=SweepConfig(n_jobs=1),
    )
    assert set(result.failed) == {1, 2}
    assert result.minimum_repetitions() is None


def test_explicit_parallel_pool(jitter_model):
    pool = Parallel(n_jobs=1, return_as="generator_unordered")
    first = repetition_sweep(
        jitter_model, {"session"}, reps=range(1, 4), bootstrap=BootstrapConfig(n_boot=50), random_state=3, parallel=pool
    )
    second = repetition_sweep(
        jitter_model,
        {"session"},
        reps=range(1, 4),
        bootstrap=BootstrapConfig(n_boot=50),
        random_state=3,
        config=SweepConfig(n_jobs=1),
    )
    pd.testing.assert_frame_equal(first.to_frame(), second.to_frame())


def test_threaded_pool_matches_sequential(jitter_model):
    kwargs = dict(reps=range(1, 5), bootstrap=BootstrapConfig(n_boot=30), random_state=42)
    parallel = repetition_sweep(jitter_model, {"session"}, config=SweepConfig(n_jobs=2, backend="threading"), **kwargs)
    sequential = repetition_sweep(jitter_model, {"session"}, config=SweepConfig(n_jobs=1), **kwargs)
    pd.testing.assert_frame_equal(parallel.to_frame(), sequential.to_frame())


def test_invalid_repetition_counts(identity_model):
    with pytest.raises(ValueError):
        repetition_sweep(identity_model, {"session"}, reps=[0, 1], config=SweepConfig(n_jobs=1))


def test_minimum_scan_does_not_assume_monotonic():
    result = SweepResult(target_facets=frozenset({"session"}), fixed_multipliers={}, threshold=0.8)
    for n, value in [(4, 0.79), (2, 0.70), (3, 0.85), (1, 0.9)]:
        result.add(SweepOutcome(n=n, estimate=_estimate(value)))
    result.add(SweepOutcome(n=5, error="NonconvergentFitError: boom"))
    assert result.minimum_repetitions() == 3
    assert [o.n for o in result] == [1, 2, 3, 4, 5]
    records = result.to_records()
    assert records[0] == ("ICC2[n=1]", 0.9, pytest.approx(0.85), pytest.approx(0.95))
    assert np.isnan(records[-1][1])


def test_summary_and_export(identity_model, tmp_path):
    result = repetition_sweep(
        identity_model,
        {"session"},
        {"side": 1},
        bootstrap=BootstrapConfig(n_boot=10),
        config=SEQUENTIAL,
    )
    summary = sweep_summary(result)
    assert summary["single_observation_icc2"] == pytest.approx(0.875)
    assert summary["minimum_repetitions"] == 11
    assert summary["failed_steps"] == {}
    out = write_frame(result.projection(), tmp_path / "sweep" / "projection.csv")
    written = pd.read_csv(out)
    assert written["n"].tolist() == list(range(2, 21))
