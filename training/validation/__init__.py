"""Walk-forward windowing, fold generation, leakage checks and stitching."""

from training.validation.walk_forward import Window, WindowSchedule, WalkForwardScheduler
from training.validation.purged_kfold import Fold, PurgedEmbargoedFoldGenerator
from training.validation.leakage import LeakageReport, LeakageValidator
from training.validation.stitching import ScoreAggregator, ScoreTable
from training.validation.metrics import PerformanceMetrics, MetricsCalculator
from training.validation.backtest import BacktestAccumulator, BacktestResult

__all__ = [
    "Window",
    "WindowSchedule",
    "WalkForwardScheduler",
    "Fold",
    "PurgedEmbargoedFoldGenerator",
    "LeakageReport",
    "LeakageValidator",
    "ScoreAggregator",
    "ScoreTable",
    "PerformanceMetrics",
    "MetricsCalculator",
    "BacktestAccumulator",
    "BacktestResult",
]
