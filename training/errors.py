"""Exceptions raised by the walk-forward evaluation engine."""

from typing import Any, Dict, List, Optional


class WalkForwardError(Exception):
    """Base class for walk-forward evaluation errors."""


class InsufficientHistory(WalkForwardError, ValueError):
    """The scheduler cannot produce a single valid window."""


class DegenerateFold(WalkForwardError, ValueError):
    """Purge/embargo (or the fold count) leaves a fold without train or validation rows."""


class LeakageError(WalkForwardError):
    """
    A window's slice would let future information reach a fit.

    Attributes:
        diagnostics: One dict per offending row
    """

    def __init__(self, message: str, diagnostics: Optional[List[Dict[str, Any]]] = None):
        super().__init__(message)
        self.diagnostics = list(diagnostics or [])


class LeakageDetected(LeakageError):
    """An in-sample feature timestamp is at or after the OOS start."""


class UnresolvedLabel(LeakageError):
    """The label horizon leaves no label resolved inside the in-sample window."""


class DuplicateObservation(LeakageError):
    """A window slice holds more than one row per (date, entity)."""


class FitError(WalkForwardError, RuntimeError):
    """
    The caller's model failed to fit or predict.

    Attributes:
        stage: ``"fit"`` or ``"predict"``
    """

    def __init__(self, message: str, stage: str = "fit"):
        super().__init__(message)
        self.stage = stage
