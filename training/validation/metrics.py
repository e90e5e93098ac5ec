"""Performance metrics for a backtested score series."""

from dataclasses import asdict, dataclass
from typing import Optional

import numpy as np
import pandas as pd


@dataclass
class PerformanceMetrics:
    """
    Return-series performance of a backtest.

    Ratios are annualized with the accumulator's ``periods_per_year``;
    drawdowns are fractions of the running equity peak (<= 0).
    """

    total_return: float
    annual_return: float

    sharpe_ratio: float
    sortino_ratio: float
    calmar_ratio: float

    max_drawdown: float
    max_drawdown_duration: Optional[int]  # periods

    volatility: float
    downside_volatility: float

    hit_rate: float  # share of non-flat periods with a gain
    avg_turnover: float
    n_periods: int

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return asdict(self)

    def summary(self) -> str:
        """
        Get human-readable summary.

        Returns:
            Formatted multi-line summary
        """
        sections = [
            ("Returns", [("Total Return", f"{self.total_return:>8.2%}"), ("Annual Return", f"{self.annual_return:>8.2%}")]),
            (
                "Risk-Adjusted",
                [
                    ("Sharpe Ratio", f"{self.sharpe_ratio:>8.2f}"),
                    ("Sortino Ratio", f"{self.sortino_ratio:>8.2f}"),
                    ("Calmar Ratio", f"{self.calmar_ratio:>8.2f}"),
                ],
            ),
            ("Drawdown", [("Max Drawdown", f"{self.max_drawdown:>8.2%}")]),
            (
                "Activity",
                [
                    ("Hit Rate", f"{self.hit_rate:>8.2%}"),
                    ("Avg Turnover", f"{self.avg_turnover:>8.4f}"),
                    ("Periods", f"{self.n_periods:>8}"),
                ],
            ),
        ]
        if self.max_drawdown_duration:
            sections[2][1].append(("Max DD Duration", f"{self.max_drawdown_duration:>8} periods"))

        lines = ["Performance Metrics", "=" * 19]
        for title, rows in sections:
            lines.append("")
            lines.append(f"{title}:")
            lines.extend(f"  {label + ':':<20} {value}" for label, value in rows)
        return "\n".join(lines) + "\n"


class MetricsCalculator:
    """Calculate performance metrics from a period return series."""

    @staticmethod
    def calculate_from_returns(
        returns: pd.Series,
        turnover: Optional[pd.Series] = None,
        periods_per_year: int = 252,
        risk_free_rate: float = 0.0,
    ) -> PerformanceMetrics:
        """
        Calculate metrics from a return series.

        Args:
            returns: Period returns, net of costs
            turnover: Optional per-period turnover
            periods_per_year: Annualization factor
            risk_free_rate: Annual risk-free rate (default: 0%)

        Returns:
            PerformanceMetrics

        Raises:
            ValueError: If there are no non-NA returns
        """
        returns = returns.dropna()
        if returns.empty:
            raise ValueError("Cannot calculate metrics from empty returns")

        n_periods = len(returns)
        scale = np.sqrt(periods_per_year)

        growth = (1 + returns).prod()
        total_return = float(growth - 1)
        annual_return = float(growth ** (periods_per_year / n_periods) - 1) if growth > 0 else -1.0

        std = float(returns.std()) if n_periods > 1 else 0.0
        losses = returns[returns < 0]
        downside_std = float(losses.std()) if len(losses) > 1 else 0.0

        mean_excess = float((returns - risk_free_rate / periods_per_year).mean())
        sharpe_ratio = mean_excess / std * scale if std > 0 else 0.0
        sortino_ratio = mean_excess / downside_std * scale if downside_std > 0 else 0.0

        equity = (1 + returns).cumprod()
        drawdown = equity / equity.cummax() - 1
        max_drawdown = float(drawdown.min())
        calmar_ratio = annual_return / abs(max_drawdown) if max_drawdown < 0 else 0.0

        active = returns[returns != 0]
        hit_rate = float((active > 0).mean()) if not active.empty else 0.0
        avg_turnover = float(turnover.mean()) if turnover is not None and len(turnover) > 0 else 0.0

        return PerformanceMetrics(
            total_return=total_return,
            annual_return=annual_return,
            sharpe_ratio=float(sharpe_ratio),
            sortino_ratio=float(sortino_ratio),
            calmar_ratio=float(calmar_ratio),
            max_drawdown=max_drawdown,
            max_drawdown_duration=MetricsCalculator._longest_drawdown(drawdown),
            volatility=std * scale,
            downside_volatility=downside_std * scale,
            hit_rate=hit_rate,
            avg_turnover=avg_turnover,
            n_periods=n_periods,
        )

    @staticmethod
    def _longest_drawdown(drawdown: pd.Series) -> Optional[int]:
        """Longest run of consecutive periods below the equity peak."""
        underwater = drawdown < 0
        if not underwater.any():
            return None

        run_ids = (underwater != underwater.shift()).cumsum()
        return int(underwater.groupby(run_ids).sum().max())
