"""Downstream backtest accumulator over a stitched ScoreTable.

The accumulator turns out-of-sample scores into portfolio weights and
accumulates equity, turnover and cost series. Weights decided at date t
earn the return from t to the next date of the price panel.
"""

from dataclasses import dataclass
from functools import partial
from typing import Callable, Dict, Iterable, Optional

import pandas as pd

from config.backtest import BacktestConfig
from data.schemas import PanelSchema
from training.validation.metrics import MetricsCalculator, PerformanceMetrics
from training.validation.stitching import ScoreTable
from utils.logger import get_backtest_logger

logger = get_backtest_logger()

ScoreToWeight = Callable[[pd.Series], pd.Series]


def _valid_scores(scores: pd.Series) -> pd.Series:
    # NA scores never receive weight
    return scores.dropna()


def rank_weights(scores: pd.Series, top_n: int = 10, long_only: bool = True) -> pd.Series:
    """
    Rank-proportional weights for one decision date.

    Long-only: the ``top_n`` best scores are weighted by rank (best gets
    the most) and normalized to sum to 1. Long/short: ranks are demeaned
    across all scored entities and normalized to a gross exposure of 1.

    Args:
        scores: Entity -> score for one date
        top_n: Entities held (long-only)
        long_only: Hold only positive weights

    Returns:
        Entity -> weight, zero for NA scores
    """
    weights = pd.Series(0.0, index=scores.index)
    valid = _valid_scores(scores)
    if valid.empty:
        return weights

    ranks = valid.rank(method="first")
    if long_only:
        held = ranks[ranks > len(ranks) - top_n]
        held = held - (len(ranks) - len(held))
        weights.loc[held.index] = held / held.sum()
    else:
        centred = ranks - ranks.mean()
        gross = centred.abs().sum()
        if gross > 0:
            weights.loc[centred.index] = centred / gross
    return weights


def equal_weights(scores: pd.Series, top_n: int = 10, long_only: bool = True) -> pd.Series:
    """
    Equal weights on the ``top_n`` best scores (and, long/short, the
    ``top_n`` worst held short), gross exposure 1.
    """
    weights = pd.Series(0.0, index=scores.index)
    valid = _valid_scores(scores).sort_values(ascending=False, kind="mergesort")
    if valid.empty:
        return weights

    if long_only:
        longs = valid.index[:top_n]
        weights.loc[longs] = 1.0 / len(longs)
        return weights

    n = min(top_n, len(valid) // 2)
    if n == 0:
        return weights
    weights.loc[valid.index[:n]] = 0.5 / n
    weights.loc[valid.index[-n:]] = -0.5 / n
    return weights


def proportional_weights(scores: pd.Series, top_n: Optional[int] = None, long_only: bool = True) -> pd.Series:
    """Weights proportional to the score, normalized to gross exposure 1."""
    weights = pd.Series(0.0, index=scores.index)
    valid = _valid_scores(scores)
    if long_only:
        valid = valid.clip(lower=0.0)
    gross = valid.abs().sum()
    if gross > 0:
        weights.loc[valid.index] = valid / gross
    return weights


WEIGHTINGS: Dict[str, Callable[..., pd.Series]] = {
    "rank": rank_weights,
    "equal": equal_weights,
    "proportional": proportional_weights,
}


@dataclass
class BacktestResult:
    """
    Accumulated backtest series.

    Attributes:
        weights: Date x entity weights in force after each date's decision
        gross_returns: Portfolio return before costs, per date
        net_returns: Portfolio return after turnover costs, per date
        turnover: Sum of absolute weight changes, per date
        equity: Equity curve starting from ``initial_capital``
        metrics: Performance metrics of the net returns
    """

    weights: pd.DataFrame
    gross_returns: pd.Series
    net_returns: pd.Series
    turnover: pd.Series
    equity: pd.Series
    metrics: PerformanceMetrics

    @property
    def total_cost(self) -> float:
        return float((self.gross_returns - self.net_returns).sum())


class BacktestAccumulator:
    """
    Consumes a ScoreTable plus a price panel and accumulates equity.

    Dates without a decision inside the scored span carry the previous
    weights forward; there is no trading on them.
    """

    def __init__(self, config: Optional[BacktestConfig] = None, schema: Optional[PanelSchema] = None):
        """
        Initialize accumulator.

        Args:
            config: Backtest configuration
            schema: Column names of the price panel
        """
        self.config = config or BacktestConfig()
        self.schema = schema or PanelSchema()

        logger.info(
            "Initialized BacktestAccumulator",
            extra_data={
                "initial_capital": self.config.initial_capital,
                "cost_rate": self.config.get_cost_rate(),
                "weighting": self.config.weighting,
            },
        )

    def default_transform(self) -> ScoreToWeight:
        """Configured score-to-weight transform."""
        return partial(WEIGHTINGS[self.config.weighting], top_n=self.config.top_n, long_only=self.config.long_only)

    def run(
        self,
        scores: ScoreTable,
        prices: pd.DataFrame,
        score_to_weight: Optional[ScoreToWeight] = None,
    ) -> BacktestResult:
        """
        Run the accumulator.

        Args:
            scores: Stitched out-of-sample scores
            prices: Long-format price panel (date, entity, price column)
            score_to_weight: Entity -> score to entity -> weight transform
                for one date (default from config)

        Returns:
            BacktestResult
        """
        weights, forward_returns = self._weights_and_returns(scores, prices, score_to_weight)
        gross, turnover = self._gross_and_turnover(weights, forward_returns)
        result = self._accumulate(weights, gross, turnover, self.config.get_cost_rate())

        logger.info(
            f"Backtest over {len(weights)} dates complete",
            extra_data={
                "total_return": round(result.metrics.total_return, 6),
                "sharpe_ratio": round(result.metrics.sharpe_ratio, 4),
                "avg_turnover": round(result.metrics.avg_turnover, 6),
            },
        )
        return result

    def cost_sweep(
        self,
        scores: ScoreTable,
        prices: pd.DataFrame,
        bps_list: Optional[Iterable[float]] = None,
        score_to_weight: Optional[ScoreToWeight] = None,
    ) -> pd.DataFrame:
        """
        Re-run the cost hook at several cost levels.

        Weights and gross returns do not depend on costs and are computed
        once.

        Returns:
            DataFrame indexed by ``cost_bps`` with one column per metric
        """
        bps_list = list(bps_list if bps_list is not None else self.config.cost_sweep_bps)
        weights, forward_returns = self._weights_and_returns(scores, prices, score_to_weight)
        gross, turnover = self._gross_and_turnover(weights, forward_returns)

        rows = []
        for bps in bps_list:
            if bps < 0:
                raise ValueError(f"cost_bps must be >= 0, got {bps}")
            result = self._accumulate(weights, gross, turnover, bps / 10000.0)
            rows.append({"cost_bps": float(bps), **result.metrics.to_dict()})

        logger.info(f"Cost sweep over {len(bps_list)} levels complete")
        return pd.DataFrame(rows).set_index("cost_bps")

    def _weights_and_returns(self, scores: ScoreTable, prices: pd.DataFrame, score_to_weight):
        if len(scores) == 0:
            raise ValueError("Cannot backtest an empty ScoreTable")

        transform = score_to_weight or self.default_transform()
        schema = self.schema
        schema.validate_dataframe(prices, extra=[schema.price_column])

        price_wide = prices.pivot(index=schema.date_column, columns=schema.entity_column, values=schema.price_column)
        price_wide = price_wide.sort_index()
        # Return earned by a weight held from t to the next date
        forward_returns = price_wide.pct_change(fill_method=None).shift(-1)

        score_wide = scores.to_wide()
        decisions = pd.DataFrame(
            {date: transform(row) for date, row in score_wide.iterrows()}
        ).T.reindex(columns=score_wide.columns).fillna(0.0)

        start, end = score_wide.index.min(), score_wide.index.max()
        span = price_wide.index[(price_wide.index >= start) & (price_wide.index <= end)]
        grid = span.union(decisions.index)

        weights = decisions.reindex(grid).ffill().fillna(0.0)
        forward_returns = forward_returns.reindex(index=grid, columns=weights.columns)
        return weights, forward_returns

    @staticmethod
    def _gross_and_turnover(weights: pd.DataFrame, forward_returns: pd.DataFrame):
        gross = (weights * forward_returns.fillna(0.0)).sum(axis=1)
        turnover = weights.diff().abs().sum(axis=1)
        turnover.iloc[0] = weights.iloc[0].abs().sum()
        return gross, turnover

    def _accumulate(self, weights, gross: pd.Series, turnover: pd.Series, cost_rate: float) -> BacktestResult:
        net = gross - turnover * cost_rate
        equity = self.config.initial_capital * (1 + net).cumprod()
        metrics = MetricsCalculator.calculate_from_returns(
            net, turnover=turnover, periods_per_year=self.config.periods_per_year
        )
        return BacktestResult(
            weights=weights,
            gross_returns=gross,
            net_returns=net,
            turnover=turnover,
            equity=equity,
            metrics=metrics,
        )
