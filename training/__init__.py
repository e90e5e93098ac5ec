"""Rolling fit/predict engine and walk-forward pipeline."""

from .engine import RollingFitPredictEngine, WalkForwardResult, WindowDiagnostic
from .pipeline import WalkForwardPipeline, PipelineResult

__all__ = [
    "RollingFitPredictEngine",
    "WalkForwardResult",
    "WindowDiagnostic",
    "WalkForwardPipeline",
    "PipelineResult",
]
