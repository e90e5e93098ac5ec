"""Backtest accumulator configuration."""

from typing import List

from pydantic import Field, field_validator

from config.base import BaseConfig


class BacktestConfig(BaseConfig):
    """
    Configuration for the downstream backtest accumulator.

    Defines the score-to-weight transform and the turnover cost hook.
    """

    initial_capital: float = Field(
        default=100000.0,
        description="Initial capital",
        gt=0.0,
    )

    # Turnover cost
    cost_bps: float = Field(
        default=10.0,
        description="Cost per unit of turnover in basis points (1 bps = 0.01%)",
        ge=0.0,
        le=1000.0,
    )
    cost_sweep_bps: List[float] = Field(
        default_factory=lambda: [0.0, 5.0, 10.0, 25.0, 50.0],
        description="Cost levels evaluated by a cost sweep",
    )

    # Weighting
    weighting: str = Field(
        default="rank",
        description="Score-to-weight transform (rank, equal, proportional)",
    )
    top_n: int = Field(
        default=10,
        description="Entities held per date by the rank and equal transforms",
        ge=1,
    )
    long_only: bool = Field(
        default=True,
        description="Clip negative weights to zero",
    )

    periods_per_year: int = Field(
        default=252,
        description="Decision periods per year, for annualisation",
        gt=0,
    )

    @field_validator("weighting")
    @classmethod
    def validate_weighting(cls, v: str) -> str:
        """Validate weighting is a recognized transform."""
        allowed = ["rank", "equal", "proportional"]
        if v not in allowed:
            raise ValueError(f"weighting must be one of {allowed}")
        return v

    @field_validator("cost_sweep_bps")
    @classmethod
    def validate_cost_sweep(cls, v: List[float]) -> List[float]:
        """Costs must be non-negative."""
        if any(c < 0 for c in v):
            raise ValueError("cost_sweep_bps values must be >= 0")
        return v

    def get_cost_rate(self) -> float:
        """
        Get the cost per unit of turnover as a decimal.

        Returns:
            Cost rate (e.g. 10 bps -> 0.001)
        """
        return self.cost_bps / 10000.0
