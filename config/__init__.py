"""Configuration management using Pydantic models."""

from config.base import BaseConfig
from config.data import DataConfig, DataFormat
from config.walk_forward import FitMode, HistoryPolicy, UnassignedPolicy, WalkForwardConfig
from config.backtest import BacktestConfig
from config.run import ModelSection, RunConfig, TuningSection

__all__ = [
    "BaseConfig",
    "DataConfig",
    "DataFormat",
    "FitMode",
    "HistoryPolicy",
    "UnassignedPolicy",
    "WalkForwardConfig",
    "BacktestConfig",
    "ModelSection",
    "TuningSection",
    "RunConfig",
]
