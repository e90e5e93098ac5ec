"""Walk-forward run configuration."""

from enum import Enum
from typing import Optional

from pydantic import Field, model_validator

from config.base import BaseConfig


class FitMode(str, Enum):
    """How models are partitioned across entities within a window."""

    POOLED = "pooled"  # one model across all entities
    PER_SYMBOL = "per_symbol"  # one model per entity
    PER_GROUP = "per_group"  # one model per caller-supplied group


class HistoryPolicy(str, Enum):
    """Treatment of windows whose in-sample history is shorter than is_length."""

    STRICT = "strict"  # drop the window
    EXPANDING = "expanding"  # truncate the IS range, down to min_is_length


class UnassignedPolicy(str, Enum):
    """Treatment of entities missing from the per_group mapping."""

    PER_SYMBOL = "per_symbol"
    EXCLUDE = "exclude"


class WalkForwardConfig(BaseConfig):
    """
    Configuration for a walk-forward evaluation run.

    All lengths, steps and horizons are counts of TimeIndex positions,
    never calendar durations.
    """

    # Windowing
    is_length: int = Field(description="In-sample window length", gt=0)
    oos_length: int = Field(description="Out-of-sample window length", gt=0)
    step: int = Field(description="Distance between consecutive OOS starts", gt=0)
    min_is_length: Optional[int] = Field(
        default=None,
        description="Shortest IS range accepted under the expanding policy (defaults to is_length)",
        gt=0,
    )
    history_policy: HistoryPolicy = Field(
        default=HistoryPolicy.STRICT,
        description="strict drops short-history windows, expanding truncates them",
    )
    anchored: bool = Field(
        default=False,
        description="Keep the IS start at position 0 so the IS range grows every window",
    )
    gap: int = Field(
        default=0,
        description="Positions skipped between is_end and oos_start",
        ge=0,
    )

    # Tuning folds
    k_folds: int = Field(default=5, description="Validation folds for tuning", ge=2)
    purge_horizon: int = Field(default=0, description="Positions purged before each validation block", ge=0)
    embargo_horizon: int = Field(default=0, description="Positions embargoed after each validation block", ge=0)

    # Labels
    label_horizon: int = Field(
        default=0,
        description="Positions until a label's outcome is known",
        ge=0,
    )

    # Fitting
    fit_mode: FitMode = Field(default=FitMode.POOLED, description="pooled, per_symbol or per_group")
    unassigned_policy: UnassignedPolicy = Field(
        default=UnassignedPolicy.PER_SYMBOL,
        description="per_group only: fit ungrouped entities alone or exclude them",
    )
    fail_fast: bool = Field(
        default=False,
        description="Abort the whole run on the first per-window failure",
    )
    n_jobs: int = Field(default=1, description="Worker threads for per-window work", ge=1)
    retain_models: bool = Field(
        default=False,
        description="Keep trained model states in the run result",
    )
    random_seed: int = Field(default=42, description="Seed applied before each run")

    @model_validator(mode="after")
    def validate_min_is_length(self) -> "WalkForwardConfig":
        """Ensure min_is_length never exceeds is_length."""
        if self.min_is_length is not None and self.min_is_length > self.is_length:
            raise ValueError(
                f"min_is_length ({self.min_is_length}) must be <= is_length ({self.is_length})"
            )
        return self

    @property
    def effective_min_is_length(self) -> int:
        """Minimum IS length actually enforced by the scheduler."""
        return self.min_is_length if self.min_is_length is not None else self.is_length
