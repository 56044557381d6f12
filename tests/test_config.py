"""Tests for the missing-value configuration."""

import os

import numpy as np
import pandas as pd
import pytest

from framefit._config import get_na_action, set_na_action


@pytest.fixture(autouse=True)
def _reset():
    """Reset state before and after each test."""
    import framefit._config as _cfg

    _cfg._na_action_override = None
    os.environ.pop("FRAMEFIT_NA_ACTION", None)
    yield
    _cfg._na_action_override = None
    os.environ.pop("FRAMEFIT_NA_ACTION", None)


class TestGetNaAction:
    def test_default_is_drop(self):
        assert get_na_action() == "drop"

    def test_env_var_overrides_default(self):
        os.environ["FRAMEFIT_NA_ACTION"] = "raise"
        assert get_na_action() == "raise"

    def test_env_var_case_insensitive(self):
        os.environ["FRAMEFIT_NA_ACTION"] = "Raise"
        assert get_na_action() == "raise"

    def test_invalid_env_var_ignored(self):
        os.environ["FRAMEFIT_NA_ACTION"] = "impute"
        assert get_na_action() == "drop"

    def test_programmatic_override_wins_over_env(self):
        os.environ["FRAMEFIT_NA_ACTION"] = "raise"
        set_na_action("drop")
        assert get_na_action() == "drop"

    def test_auto_restores_default(self):
        set_na_action("raise")
        assert get_na_action() == "raise"
        set_na_action("auto")
        assert get_na_action() == "drop"


class TestSetNaAction:
    def test_accepts_valid_names(self):
        for name in ("drop", "raise", "auto"):
            set_na_action(name)  # should not raise

    def test_case_insensitive(self):
        set_na_action("RAISE")
        assert get_na_action() == "raise"

    def test_rejects_invalid_name(self):
        with pytest.raises(ValueError, match="Unknown NA action"):
            set_na_action("impute")


class TestNaActionIntegration:
    """The configured action reaches both builder and statsmodels paths."""

    @staticmethod
    def _data():
        rng = np.random.default_rng(1)
        df = pd.DataFrame({"x": rng.standard_normal(30), "z": rng.standard_normal(30)})
        df["y"] = 2.0 * df["x"] + rng.standard_normal(30) * 0.1
        df.loc[3, "x"] = np.nan
        return df

    def test_kmeans_drops_incomplete_rows(self):
        from framefit import kmeans

        fit = kmeans(self._data(), "~ x + z", centers=2, random_state=0, n_init=3)
        assert len(fit["cluster"]) == 29
        assert 3 not in fit["cluster"].index

    def test_kmeans_raise(self):
        from framefit import kmeans
        from framefit.exceptions import FormulaError

        set_na_action("raise")
        with pytest.raises(FormulaError):
            kmeans(self._data(), "~ x + z", centers=2, random_state=0, n_init=3)

    def test_lm_drops_incomplete_rows(self):
        from framefit import lm

        fit = lm(self._data(), "y ~ x")
        assert fit.nobs == 29
