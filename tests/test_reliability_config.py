from scripts.reliability import (
    DEFAULT_COLUMNS,
    DSTUDY_SCENARIOS,
    FACET_DELIMITER,
    REPETITION_FACET,
    SweepConfig,
    facet_tokens,
)
from scripts.reliability.modeling import RandomEffectsSpec


def test_scenarios_never_target_repetition():
    for scenario in DSTUDY_SCENARIOS.values():
        assert REPETITION_FACET not in scenario.target_facets
        assert REPETITION_FACET not in scenario.fixed_multipliers


def test_scenario_facets_are_design_columns():
    columns = set(DEFAULT_COLUMNS.facet_columns())
    for scenario in DSTUDY_SCENARIOS.values():
        assert scenario.target_facets <= columns
        assert set(scenario.fixed_multipliers) <= columns


def test_default_sweep_uses_seven_workers():
    config = SweepConfig()
    assert config.n_jobs == 7
    assert list(config.reps()) == list(range(1, 11))
    assert config.threshold == 0.8


def test_default_model_labels_use_delimiter():
    spec = RandomEffectsSpec()
    for label in spec.vc_formula():
        tokens = facet_tokens(label)
        assert DEFAULT_COLUMNS.subject in tokens
        assert FACET_DELIMITER in label
