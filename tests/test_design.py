"""Tests for design-matrix construction."""

import numpy as np
import pandas as pd
import pytest

from framefit.arguments import validate_for_predict
from framefit.design import build
from framefit.exceptions import FormulaError, SchemaError
from framefit.formula import ALL_COLUMNS

# ------------------------------------------------------------------ #
# Fixtures
# ------------------------------------------------------------------ #


@pytest.fixture()
def abc():
    return pd.DataFrame(
        {"a": [1.0, 2.0, 3.0, 4.0], "b": [0.5, 0.0, 1.5, 2.0], "c": [3.0, 1.0, 4.0, 1.0]}
    )


@pytest.fixture()
def with_response(abc):
    return abc.assign(y=[1.0, 0.0, 2.0, 5.0])


@pytest.fixture()
def with_factor(abc):
    return abc.assign(g=["u", "v", "u", "w"])


# ------------------------------------------------------------------ #
# Expansion
# ------------------------------------------------------------------ #


class TestExpansion:
    def test_wildcard_selects_all_columns_in_order(self, abc):
        m = build(abc, ALL_COLUMNS)
        assert m.columns == ["a", "b", "c"]
        assert m.y is None
        np.testing.assert_allclose(m.x.to_numpy(), abc.to_numpy())

    def test_response_split(self, with_response):
        m = build(with_response, "y ~ a + b")
        assert list(m.y.columns) == ["y"]
        assert m.columns == ["a", "b"]
        assert m.y["y"].tolist() == [1.0, 0.0, 2.0, 5.0]

    def test_wildcard_skips_response(self, with_response):
        assert build(with_response, "y ~ .").columns == ["a", "b", "c"]

    def test_intercept_kept_on_request(self, abc):
        m = build(abc, "~ a", intercept=True)
        assert m.columns == ["Intercept", "a"]

    def test_no_intercept_formula(self, abc):
        assert build(abc, "~ 0 + a").columns == ["a"]

    def test_interaction(self, abc):
        m = build(abc, "~ a * b")
        assert m.columns == ["a", "b", "a:b"]
        np.testing.assert_allclose(m.x["a:b"], abc["a"] * abc["b"])

    def test_exclusion(self, abc):
        assert build(abc, "~ . - b").columns == ["a", "c"]

    def test_arithmetic_term(self, abc):
        m = build(abc, "~ I(a + b)")
        np.testing.assert_allclose(m.x["I(a + b)"], abc["a"] + abc["b"])

    def test_numpy_transform(self, abc):
        m = build(abc, "~ np.log(a)")
        np.testing.assert_allclose(m.x.iloc[:, 0], np.log(abc["a"]))

    def test_pairwise_wildcard(self, abc):
        m = build(abc, "~ . * .")
        assert m.columns == ["a", "b", "c", "a:b", "a:c", "b:c"]

    def test_categorical_dummy_coding(self, with_factor):
        m = build(with_factor, "~ g")
        assert m.columns == ["g[T.v]", "g[T.w]"]
        assert m.x["g[T.v]"].tolist() == [0.0, 1.0, 0.0, 0.0]

    def test_odd_column_names(self):
        df = pd.DataFrame({"my col": [1.0, 2.0], "b": [3.0, 4.0]})
        m = build(df, ALL_COLUMNS)
        assert m.x.shape == (2, 2)


# ------------------------------------------------------------------ #
# Determinism and schema round trip
# ------------------------------------------------------------------ #


class TestDeterminism:
    def test_repeated_builds_identical(self, with_response):
        first = build(with_response, "y ~ . * a")
        second = build(with_response, "y ~ . * a")
        pd.testing.assert_frame_equal(first.x, second.x)
        pd.testing.assert_frame_equal(first.y, second.y)

    def test_schema_round_trip(self, with_response):
        formula = "y ~ a + b:c"
        x_fit = build(with_response, formula).x
        frame = validate_for_predict(with_response, formula)
        x_pred = build(frame, formula).x
        assert list(x_fit.columns) == list(x_pred.columns)

    def test_rebuild_from_design_info(self, with_response):
        fit = build(with_response, "y ~ a + b")
        new = with_response.drop(columns="y").assign(extra=1.0)
        rebuilt = build(new, "y ~ a + b", design_info=fit.design_info)
        assert rebuilt.columns == fit.columns
        assert rebuilt.y is None

    def test_rebuild_keeps_categorical_levels(self, with_factor):
        fit = build(with_factor, "~ g")
        new = with_factor.iloc[[0]]
        rebuilt = build(new, "~ g", design_info=fit.design_info)
        assert rebuilt.columns == ["g[T.v]", "g[T.w]"]

    def test_rebuild_rejects_unseen_level(self, with_factor):
        fit = build(with_factor, "~ g")
        new = with_factor.assign(g=["z"] * 4)
        with pytest.raises(SchemaError, match="does not match"):
            build(new, "~ g", design_info=fit.design_info)


# ------------------------------------------------------------------ #
# Errors and missing values
# ------------------------------------------------------------------ #


class TestErrors:
    def test_unknown_column(self, abc):
        with pytest.raises(FormulaError, match="unknown column"):
            build(abc, "~ a + nope")

    def test_unknown_response(self, abc):
        with pytest.raises(FormulaError, match="unknown column"):
            build(abc, "nope ~ a")


class TestMissingValues:
    def test_rows_dropped_by_default(self):
        df = pd.DataFrame({"a": [1.0, np.nan, 3.0], "b": [1.0, 2.0, 3.0]})
        m = build(df, ALL_COLUMNS)
        assert m.x.index.tolist() == [0, 2]

    def test_raise_action(self):
        df = pd.DataFrame({"a": [1.0, np.nan, 3.0]})
        with pytest.raises(FormulaError):
            build(df, ALL_COLUMNS, na_action="raise")
