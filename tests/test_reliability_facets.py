import pandas as pd
import pytest

from scripts.reliability import (
    DegenerateVarianceError,
    RESIDUAL_KEY,
    UnknownFacetError,
    VarianceComponentTable,
    facet_tokens,
    join_facets,
    matches,
    matching_rows,
)


def test_facet_tokens_split_on_delimiter():
    assert facet_tokens("subject:session") == frozenset({"subject", "session"})
    assert facet_tokens("repetition") == frozenset({"repetition"})
    assert join_facets("subject", "side") == "subject:side"


def test_matches_uses_tokens_not_substrings():
    assert matches("subject:side", {"side"})
    assert not matches("subject:side_effect", {"side"})
    assert not matches("subject:session", {"sess"})
    assert not matches("subject", set())


def test_matches_any_name_and_combinations():
    assert matches("subject:session:side", {"side", "unrelated"})
    assert matches("subject:session:side", {"session:side"})
    assert matches("subject:session", {"session:subject"})
    assert not matches("subject:session", {"session:side"})


def test_matching_rows_preserves_order():
    labels = ["subject", "subject:session", "subject:side", "repetition"]
    assert matching_rows(labels, {"subject"}) == ["subject", "subject:session", "subject:side"]


def test_residual_relabelled_once(table):
    assert table.residual == "repetition"
    assert table.labels[-1] == "repetition"
    assert RESIDUAL_KEY not in table.as_dict()
    assert table.variance("repetition") == pytest.approx(1.2)


def test_lookup_ignores_token_order(table):
    assert table.variance("session:subject") == pytest.approx(0.5)
    assert "side:subject" in table
    with pytest.raises(UnknownFacetError):
        table.variance("rater")


def test_missing_residual_is_degenerate():
    with pytest.raises(DegenerateVarianceError):
        VarianceComponentTable.from_fit({"subject": 1.0})
    with pytest.raises(DegenerateVarianceError):
        VarianceComponentTable(rows=(("subject", 1.0),), residual="repetition")


def test_relabel_collision_rejected():
    with pytest.raises(ValueError):
        VarianceComponentTable.from_fit({"repetition": 1.0, RESIDUAL_KEY: 0.5})


def test_non_finite_variance_rejected():
    with pytest.raises(ValueError):
        VarianceComponentTable.from_fit({"subject": float("nan"), RESIDUAL_KEY: 0.5})


def test_boundary_zero_is_valid():
    table = VarianceComponentTable.from_fit({"subject": 1.0, "subject:side": 0.0, RESIDUAL_KEY: 0.5})
    assert table.variance("subject:side") == 0.0
    assert table.total() == pytest.approx(1.5)


def test_to_frame_proportions(table):
    frame = table.to_frame()
    assert list(frame.columns) == ["facet", "variance", "proportion", "is_residual"]
    assert frame["proportion"].sum() == pytest.approx(1.0)
    assert frame.loc[frame["is_residual"], "facet"].tolist() == ["repetition"]
    assert isinstance(frame, pd.DataFrame)
