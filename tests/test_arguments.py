"""Tests for argument normalization and prediction-input validation."""

import numpy as np
import pandas as pd
import pytest

from framefit.arguments import normalize_args, validate_for_predict
from framefit.exceptions import FormulaError, SchemaError
from framefit.formula import ALL_COLUMNS, Formula

# ------------------------------------------------------------------ #
# normalize_args
# ------------------------------------------------------------------ #


class TestNormalizeArgs:
    def test_mapping_and_string(self):
        data, formula = normalize_args({"a": [1, 2], "b": [3, 4]}, "~ a")
        assert isinstance(data, pd.DataFrame)
        assert list(data.columns) == ["a", "b"]
        assert formula == Formula(response=None, terms="a")

    def test_default_formula(self):
        _, formula = normalize_args({"a": [1]}, None, default=ALL_COLUMNS)
        assert formula is ALL_COLUMNS

    def test_missing_formula_without_default(self):
        with pytest.raises(FormulaError, match="formula is required"):
            normalize_args({"a": [1]}, None)

    def test_does_not_mutate_caller_frame(self):
        df = pd.DataFrame({0: [1.0, 2.0], 1: [3.0, 4.0]})
        data, _ = normalize_args(df, "~ .")
        assert list(data.columns) == ["0", "1"]
        assert list(df.columns) == [0, 1]
        assert data is not df

    def test_ragged_mapping(self):
        with pytest.raises(SchemaError, match="not rectangular"):
            normalize_args({"a": [1, 2], "b": [1]}, "~ a")

    def test_duplicate_columns(self):
        df = pd.DataFrame([[1, 2]], columns=["a", "a"])
        with pytest.raises(SchemaError, match="duplicate"):
            normalize_args(df, "~ a")

    def test_two_dimensional_array(self):
        data, _ = normalize_args(np.arange(6.0).reshape(3, 2), None, default=ALL_COLUMNS)
        assert list(data.columns) == ["X1", "X2"]

    def test_one_dimensional_array_rejected(self):
        with pytest.raises(SchemaError, match="2-D"):
            normalize_args(np.arange(3.0), "~ X1")

    def test_series(self):
        data, _ = normalize_args(pd.Series([1.0, 2.0], name="a"), "~ a")
        assert list(data.columns) == ["a"]

    def test_list_of_records(self):
        data, _ = normalize_args([{"a": 1.0, "b": 2.0}, {"a": 3.0, "b": 4.0}], "~ a")
        assert list(data.columns) == ["a", "b"]
        assert data["b"].tolist() == [2.0, 4.0]

    def test_unsupported_container(self):
        with pytest.raises(SchemaError, match="must be a pandas DataFrame"):
            normalize_args([1, 2, 3], "~ a")

    def test_empty_list_rejected(self):
        with pytest.raises(SchemaError, match="list of records"):
            normalize_args([], "~ a")


# ------------------------------------------------------------------ #
# validate_for_predict
# ------------------------------------------------------------------ #


class TestValidateForPredict:
    def test_response_not_required(self):
        frame = validate_for_predict({"a": [1.0], "b": [2.0]}, "y ~ a + b")
        assert list(frame.columns) == ["a", "b"]

    def test_missing_column(self):
        with pytest.raises(SchemaError, match=r"\['b'\]"):
            validate_for_predict({"a": [1.0]}, "y ~ a + np.log(b)")

    def test_recorded_columns_take_precedence(self):
        with pytest.raises(SchemaError, match="c"):
            validate_for_predict({"a": [1.0]}, ALL_COLUMNS, columns=("a", "c"))

    def test_no_formula_only_coerces(self):
        frame = validate_for_predict({"a": [1.0]}, None)
        assert frame.shape == (1, 1)

    def test_bad_container(self):
        with pytest.raises(SchemaError):
            validate_for_predict("not a table", "~ a")
