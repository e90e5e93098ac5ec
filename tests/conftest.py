"""Pytest configuration and shared fixtures."""

import sys
from pathlib import Path

import numpy as np
import pandas as pd
import pytest

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from training.errors import FitError  # noqa: E402


def _build_panel(n_dates=100, entities=("AAA", "BBB", "CCC"), seed=0, start="2024-01-01", first_seen=None):
    """
    Long-format feature panel with a position feature ``t`` and noise ``f1``.

    ``first_seen`` maps entity -> first position at which it has rows.
    """
    rng = np.random.RandomState(seed)
    dates = pd.bdate_range(start, periods=n_dates)
    first_seen = first_seen or {}

    rows = []
    for pos, date in enumerate(dates):
        for entity in entities:
            f1 = rng.normal()
            if pos < first_seen.get(entity, 0):
                continue
            rows.append({"date": date, "symbol": entity, "t": float(pos), "f1": f1})
    return pd.DataFrame(rows)


def _build_labels(panel, seed=1):
    """Labels linear in ``f1`` plus noise."""
    rng = np.random.RandomState(seed)
    labels = panel[["date", "symbol"]].copy()
    labels["label"] = 0.5 * panel["f1"].to_numpy() + 0.1 * rng.normal(size=len(panel))
    return labels


def _build_prices(panel, seed=2):
    """Random-walk close prices for every (date, entity) of a panel."""
    rng = np.random.RandomState(seed)
    prices = panel[["date", "symbol"]].copy()
    prices["close"] = 0.0
    for entity, idx in prices.groupby("symbol").groups.items():
        steps = 1 + 0.01 * rng.normal(size=len(idx))
        prices.loc[idx, "close"] = 100.0 * np.cumprod(steps)
    return prices


class MeanModel:
    """Predicts the mean training label for every row."""

    def fit(self, X, y):
        return float(np.mean(y))

    def predict(self, state, X):
        return np.full(len(X), state)


class FailOnWindowModel(MeanModel):
    """Raises FitError when the training rows end at ``fail_at`` (feature ``t``)."""

    def __init__(self, fail_at):
        self.fail_at = fail_at

    def fit(self, X, y):
        if X["t"].max() == self.fail_at:
            raise FitError(f"Injected failure at t={self.fail_at}", stage="fit")
        return super().fit(X, y)


class ParamModel(MeanModel):
    """Mean model that records the hyper-parameter ``shift`` it was built with."""

    def __init__(self, shift=0.0):
        self.shift = shift

    def predict(self, state, X):
        return np.full(len(X), state + self.shift)


@pytest.fixture
def make_panel():
    """Builder for deterministic synthetic feature panels."""
    return _build_panel


@pytest.fixture
def make_labels():
    """Builder for labels matching a panel."""
    return _build_labels


@pytest.fixture
def make_prices():
    """Builder for prices matching a panel."""
    return _build_prices


@pytest.fixture
def panel():
    """100 business days x 3 entities."""
    return _build_panel()


@pytest.fixture
def labels(panel):
    return _build_labels(panel)


@pytest.fixture
def prices(panel):
    return _build_prices(panel)


@pytest.fixture
def mean_model_factory():
    """Model factory producing MeanModel handles."""
    return lambda **params: MeanModel()


@pytest.fixture
def failing_model_factory():
    """``fail_at -> factory`` producing models that fail on one window."""
    def build(fail_at):
        return lambda **params: FailOnWindowModel(fail_at)
    return build


@pytest.fixture
def param_model_factory():
    """Model factory honouring a ``shift`` hyper-parameter."""
    return lambda **params: ParamModel(**params)


@pytest.fixture
def temp_data_dir(tmp_path):
    """Create a temporary directory for data files."""
    data_dir = tmp_path / "data" / "raw"
    data_dir.mkdir(parents=True)
    return data_dir
