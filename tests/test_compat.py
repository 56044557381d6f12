"""Tests for input coercion, optional Polars support and dependency checks."""

import importlib.util

import numpy as np
import pandas as pd
import pytest

from framefit._compat import _ensure_pandas_df, ensure_available
from framefit.exceptions import DependencyError


class TestEnsureAvailable:
    def test_installed_module(self):
        ensure_available("numpy")  # should not raise

    def test_missing_module(self):
        with pytest.raises(DependencyError, match="pip install"):
            ensure_available("framefit_surely_missing_module")

    def test_distribution_hint(self, monkeypatch):
        real_find_spec = importlib.util.find_spec

        def fake_find_spec(name, *args, **kwargs):
            if name == "sklearn":
                return None
            return real_find_spec(name, *args, **kwargs)

        monkeypatch.setattr(importlib.util, "find_spec", fake_find_spec)
        with pytest.raises(DependencyError, match="pip install scikit-learn"):
            ensure_available("sklearn")

    def test_is_import_error(self):
        with pytest.raises(ImportError):
            ensure_available("framefit_surely_missing_module")


class TestEnsurePandasDf:
    def test_pandas_copied(self):
        df = pd.DataFrame({"a": [1, 2, 3]})
        result = _ensure_pandas_df(df)
        assert result is not df
        pd.testing.assert_frame_equal(result, df)

    def test_error_includes_name(self):
        with pytest.raises(ValueError, match="'X'"):
            _ensure_pandas_df(3.14, name="X")


class TestPolars:
    """Polars inputs convert to pandas; skipped if Polars is absent."""

    @pytest.fixture(autouse=True)
    def pl(self):
        return pytest.importorskip("polars")

    def test_polars_converted(self, pl):
        result = _ensure_pandas_df(pl.DataFrame({"a": [1, 2, 3]}))
        assert isinstance(result, pd.DataFrame)
        assert result["a"].tolist() == [1, 2, 3]

    def test_lazyframe_collected(self, pl):
        result = _ensure_pandas_df(pl.DataFrame({"a": [1, 2, 3]}).lazy())
        assert result["a"].tolist() == [1, 2, 3]

    def test_kmeans_accepts_polars(self, pl):
        from framefit import kmeans, predict

        rng = np.random.default_rng(0)
        values = np.vstack([rng.normal(0, 0.1, (10, 2)), rng.normal(5, 0.1, (10, 2))])
        data = pl.DataFrame({"u": values[:, 0], "v": values[:, 1]})
        fit = kmeans(data, centers=2, random_state=0, n_init=5)
        labels = predict(fit, data)
        assert set(labels) == {1, 2}
