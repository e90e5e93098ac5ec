"""Run configuration combining data, windowing, model and backtest sections."""

from typing import Any, Dict, List, Optional

from pydantic import Field, field_validator, model_validator

from config.backtest import BacktestConfig
from config.base import BaseConfig
from config.data import DataConfig
from config.walk_forward import FitMode, WalkForwardConfig


class ModelSection(BaseConfig):
    """Model section of a run config."""

    type: str = Field(description="Model type (logistic_regression, random_forest, xgboost, ...)")
    params: Dict[str, Any] = Field(default_factory=dict, description="Default hyper-parameters")
    use_proba: bool = Field(
        default=False,
        description="Score with the positive-class probability instead of predict()",
    )


class TuningSection(BaseConfig):
    """Hyper-parameter tuning section of a run config."""

    candidates: List[Dict[str, Any]] = Field(description="Ordered hyper-parameter candidates")
    scorer: str = Field(default="accuracy", description="Validation scorer name")
    complexity: Optional[List[int]] = Field(
        default=None,
        description="Complexity rank per candidate (lower is simpler)",
    )

    @model_validator(mode="after")
    def validate_complexity(self) -> "TuningSection":
        """Complexity ranks must line up with candidates."""
        if not self.candidates:
            raise ValueError("tuning.candidates must not be empty")
        if self.complexity is not None and len(self.complexity) != len(self.candidates):
            raise ValueError(
                f"tuning.complexity has {len(self.complexity)} entries "
                f"for {len(self.candidates)} candidates"
            )
        return self


class RunConfig(BaseConfig):
    """
    Configuration for one walk-forward evaluation.

    A single YAML file describes where the panels live, how windows roll,
    which model is fitted and how the stitched scores are backtested.
    """

    name: str = Field(description="Run name (used for output naming)")
    data: DataConfig = Field(description="Data configuration")
    walk_forward: WalkForwardConfig = Field(description="Windowing and fitting configuration")
    model: ModelSection = Field(description="Model configuration")
    tuning: Optional[TuningSection] = Field(default=None, description="Tuning configuration")
    groups: Optional[Dict[str, List[str]]] = Field(
        default=None,
        description="Group name -> entities, required for fit_mode=per_group",
    )
    backtest: Optional[BacktestConfig] = Field(default=None, description="Backtest configuration")

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        """Normalise run names to lowercase with underscores."""
        if not v or len(v) < 3:
            raise ValueError("Run name must be at least 3 characters")
        return v.lower().replace("-", "_").replace(" ", "_")

    @model_validator(mode="after")
    def validate_groups(self) -> "RunConfig":
        """per_group runs need a group mapping."""
        if self.walk_forward.fit_mode == FitMode.PER_GROUP and not self.groups:
            raise ValueError("groups must be provided when fit_mode is per_group")
        return self
