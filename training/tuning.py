"""Hyper-parameter selection across purged folds of one in-sample window."""

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

import numpy as np
import pandas as pd
from sklearn.metrics import accuracy_score, mean_squared_error

from training.validation.purged_kfold import Fold
from utils.logger import get_tuning_logger

logger = get_tuning_logger()

Scorer = Callable[[np.ndarray, np.ndarray], float]


def _accuracy(y_true, y_pred) -> float:
    return float(accuracy_score(np.asarray(y_true), np.rint(np.asarray(y_pred, dtype=np.float64))))


def _neg_mse(y_true, y_pred) -> float:
    return -float(mean_squared_error(y_true, y_pred))


def _correlation(y_true, y_pred) -> float:
    y_true = np.asarray(y_true, dtype=np.float64)
    y_pred = np.asarray(y_pred, dtype=np.float64)
    if len(y_true) < 2 or np.std(y_true) == 0 or np.std(y_pred) == 0:
        return float("nan")
    return float(np.corrcoef(y_true, y_pred)[0, 1])


SCORERS: Dict[str, Scorer] = {
    "accuracy": _accuracy,
    "neg_mse": _neg_mse,
    "correlation": _correlation,
}


@dataclass
class TuningSpec:
    """
    Hyper-parameter candidates and how to compare them.

    Attributes:
        candidates: Ordered hyper-parameter dicts passed to the model factory
        scorer: ``scorer(y_true, y_pred) -> float`` (higher is better) or
            the name of a built-in scorer
        complexity: Rank per candidate, lower is simpler (defaults to
            definition order)
        default_params: Used when tuning cannot run for a window
    """

    candidates: List[Dict[str, Any]]
    scorer: Union[Scorer, str] = "accuracy"
    complexity: Optional[List[int]] = None
    default_params: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        if not self.candidates:
            raise ValueError("TuningSpec requires at least one candidate")
        if self.complexity is not None and len(self.complexity) != len(self.candidates):
            raise ValueError("complexity must have one rank per candidate")
        if isinstance(self.scorer, str):
            if self.scorer not in SCORERS:
                raise ValueError(f"Unknown scorer '{self.scorer}'. Available: {sorted(SCORERS)}")
            self.scorer = SCORERS[self.scorer]

    @classmethod
    def from_config(cls, section, default_params: Optional[Dict[str, Any]] = None) -> "TuningSpec":
        """Build from a TuningSection of a run config."""
        return cls(
            candidates=[dict(c) for c in section.candidates],
            scorer=section.scorer,
            complexity=list(section.complexity) if section.complexity is not None else None,
            default_params=dict(default_params or {}),
        )

    def complexity_rank(self, index: int) -> int:
        return self.complexity[index] if self.complexity is not None else index


@dataclass
class TuningOutcome:
    """Selected parameters and the evidence behind the choice."""

    best_params: Dict[str, Any]
    best_index: Optional[int]
    mean_scores: List[float]
    fold_scores: List[List[float]]
    failures: List[Dict[str, Any]] = field(default_factory=list)  # one per failed (candidate, fold)

    @property
    def fallback(self) -> bool:
        """True when no candidate produced a usable score."""
        return self.best_index is None


class HyperparameterTuner:
    """
    Evaluates every candidate on every fold and picks the best.

    Selection: highest mean validation score; ties go to the lowest
    complexity rank, then to the first-defined candidate. A candidate that
    fails on any fold (or scores NaN) is never selected.
    """

    def __init__(self, spec: TuningSpec, model_factory: Callable[..., Any], n_jobs: int = 1):
        self.spec = spec
        self.model_factory = model_factory
        self.n_jobs = n_jobs

    def select(
        self,
        X: pd.DataFrame,
        y: pd.Series,
        positions: np.ndarray,
        folds: List[Fold],
    ) -> TuningOutcome:
        """
        Select hyper-parameters for one window.

        Args:
            X: In-sample feature rows (no NA)
            y: Resolved labels aligned with ``X``
            positions: TimeIndex position of each row
            folds: Purged/embargoed folds of the window's IS range

        Returns:
            TuningOutcome
        """
        tasks = [(c, f) for c in range(len(self.spec.candidates)) for f in range(len(folds))]

        def evaluate(task):
            c, f = task
            return self._score_fold(self.spec.candidates[c], X, y, positions, folds[f], c)

        if self.n_jobs > 1 and len(tasks) > 1:
            with ThreadPoolExecutor(max_workers=self.n_jobs) as pool:
                flat = list(pool.map(evaluate, tasks))
        else:
            flat = [evaluate(t) for t in tasks]

        failures = [failure for _, failure in flat if failure is not None]
        flat = [score for score, _ in flat]
        fold_scores = [flat[c * len(folds):(c + 1) * len(folds)] for c in range(len(self.spec.candidates))]
        mean_scores = [float(np.mean(s)) if s else float("nan") for s in fold_scores]

        best_index = self._pick(mean_scores)
        if best_index is None:
            logger.warning("No tuning candidate produced a valid score; using default parameters")
            return TuningOutcome(dict(self.spec.default_params), None, mean_scores, fold_scores, failures)

        logger.debug(
            f"Selected candidate {best_index}",
            extra_data={"params": self.spec.candidates[best_index], "mean_scores": mean_scores},
        )
        return TuningOutcome(dict(self.spec.candidates[best_index]), best_index, mean_scores, fold_scores, failures)

    def _pick(self, mean_scores: List[float]) -> Optional[int]:
        valid = [i for i, s in enumerate(mean_scores) if not np.isnan(s)]
        if not valid:
            return None
        best_score = max(mean_scores[i] for i in valid)
        tied = [i for i in valid if mean_scores[i] == best_score]
        return min(tied, key=lambda i: (self.spec.complexity_rank(i), i))

    def _score_fold(
        self, params, X, y, positions, fold: Fold, candidate_index: int
    ) -> Tuple[float, Optional[Dict[str, Any]]]:
        train = np.isin(positions, fold.train_indices)
        val = np.isin(positions, fold.val_indices)
        if not train.any() or not val.any():
            return float("nan"), None

        try:
            model = self.model_factory(**params)
            state = model.fit(X.loc[train], y.loc[train])
            preds = model.predict(state, X.loc[val])
        except Exception as e:
            logger.warning(
                f"Candidate {candidate_index} failed on fold {fold.fold_id}: {e}",
                extra_data={"params": params, "error_type": type(e).__name__},
            )
            failure = {
                "candidate": candidate_index,
                "fold_id": fold.fold_id,
                "params": dict(params),
                "error_type": type(e).__name__,
                "message": str(e),
            }
            return float("nan"), failure

        return float(self.spec.scorer(y.loc[val].to_numpy(), np.asarray(preds))), None
