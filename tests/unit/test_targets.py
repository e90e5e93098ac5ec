"""Unit tests for label construction."""

import numpy as np
import pandas as pd
import pytest

from data.schemas import PanelSchema
from data.time_index import TimeIndex
from training.targets import forward_return_labels


@pytest.fixture
def small_prices():
    dates = pd.bdate_range("2024-01-01", periods=3)
    return pd.DataFrame(
        {
            "date": list(dates) * 2,
            "symbol": ["AAA"] * 3 + ["BBB"] * 3,
            "close": [100.0, 110.0, 121.0, 50.0, 50.0, 25.0],
        }
    )


class TestForwardReturnLabels:
    """Test suite for forward_return_labels."""

    def test_forward_returns_per_entity(self, small_prices):
        labels = forward_return_labels(small_prices, horizon=1)
        values = labels.set_index(["symbol", "date"])["label"]

        aaa = values.loc["AAA"].to_numpy()
        bbb = values.loc["BBB"].to_numpy()
        assert aaa[:2] == pytest.approx([0.1, 0.1])
        assert bbb[:2] == pytest.approx([0.0, -0.5])
        assert np.isnan(aaa[2]) and np.isnan(bbb[2])

    def test_binary_labels(self, small_prices):
        labels = forward_return_labels(small_prices, horizon=1, kind="binary")
        values = labels.set_index(["symbol", "date"])["label"]

        assert list(values.loc["AAA"].to_numpy()[:2]) == [1.0, 1.0]
        # Exactly zero return is ambiguous
        assert np.isnan(values.loc["BBB"].to_numpy()[0])
        assert values.loc["BBB"].to_numpy()[1] == 0.0

    def test_last_horizon_rows_na(self, prices):
        labels = forward_return_labels(prices, horizon=5)

        last_dates = sorted(prices["date"].unique())[-5:]
        tail = labels[labels["date"].isin(last_dates)]
        assert tail["label"].isna().all()
        assert labels.loc[~labels["date"].isin(last_dates), "label"].notna().all()

    def test_gap_in_entity_history_not_bridged(self, small_prices):
        gapped = small_prices.drop(index=4)  # BBB missing on the second date
        labels = forward_return_labels(gapped, horizon=1)
        bbb = labels[labels["symbol"] == "BBB"]

        assert np.isnan(bbb["label"].iloc[0])

    def test_custom_schema(self, small_prices):
        renamed = small_prices.rename(columns={"date": "ts", "symbol": "ticker", "close": "px"})
        schema = PanelSchema(date_column="ts", entity_column="ticker", price_column="px", label_column="y")

        labels = forward_return_labels(renamed, horizon=1, schema=schema)

        assert list(labels.columns) == ["ts", "ticker", "y"]

    def test_invalid_horizon(self, small_prices):
        with pytest.raises(ValueError):
            forward_return_labels(small_prices, horizon=0)

    def test_unknown_kind(self, small_prices):
        with pytest.raises(ValueError):
            forward_return_labels(small_prices, horizon=1, kind="3class")

    def test_horizon_counts_time_index_positions(self):
        dates = pd.bdate_range("2024-01-01", periods=5)
        prices = pd.DataFrame({"date": dates[::2], "symbol": "AAA", "close": [100.0, 110.0, 132.0]})

        labels = forward_return_labels(prices, horizon=2, time_index=TimeIndex(dates))
        values = labels.set_index("date")["label"]

        assert values.loc[dates[0]] == pytest.approx(0.1)
        assert values.loc[dates[2]] == pytest.approx(0.2)
        assert np.isnan(values.loc[dates[4]])

    def test_prices_outside_time_index_dropped(self, small_prices):
        dates = sorted(small_prices["date"].unique())
        labels = forward_return_labels(small_prices, horizon=1, time_index=TimeIndex(dates[:2]))

        assert set(labels["date"]) == set(dates[:2])
        values = labels.set_index(["symbol", "date"])["label"]
        assert values.loc[("AAA", dates[0])] == pytest.approx(0.1)
        assert np.isnan(values.loc[("AAA", dates[1])])
