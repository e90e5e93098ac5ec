"""Rolling fit/predict engine.

For every scheduled window the engine slices the in-sample rows, checks
them for look-ahead, optionally tunes hyper-parameters on purged folds,
fits one model per fit-mode partition and scores the out-of-sample rows.
Per-window results are stitched into a single ScoreTable.
"""

import logging
import threading
import time
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, Hashable, List, Mapping, Optional, Sequence, Set, Union

import joblib
import numpy as np
import pandas as pd

from config.walk_forward import FitMode, WalkForwardConfig
from data.panel import ensure_copy, slice_positions
from data.schemas import PanelSchema
from data.time_index import TimeIndex
from training.errors import DegenerateFold, FitError, LeakageError, WalkForwardError
from training.fit_modes import FitModeStrategy, build_fit_mode
from training.tuning import HyperparameterTuner, TuningSpec
from training.validation.leakage import LeakageValidator
from training.validation.purged_kfold import PurgedEmbargoedFoldGenerator
from training.validation.stitching import POSITION_COLUMN, SCORE_COLUMN, ScoreAggregator, ScoreTable
from training.validation.walk_forward import Window
from utils.determinism import set_random_seeds
from utils.logger import get_training_logger

logger = get_training_logger()

SEVERITY_ERROR = "error"  # window degraded to all-NA scores
SEVERITY_WARNING = "warning"  # window still scored


@dataclass
class WindowDiagnostic:
    """
    Record of something that went wrong inside one window.

    Attributes:
        window_id: Window the record belongs to
        stage: leakage, tuning, training_data, fit or predict
        error_type: Exception class name
        message: Human-readable description
        severity: ``error`` (window scored NA) or ``warning``
        details: Per-row diagnostics, when the error carries them
    """

    window_id: int
    stage: str
    error_type: str
    message: str
    severity: str = SEVERITY_ERROR
    details: List[Dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "window_id": self.window_id,
            "stage": self.stage,
            "error_type": self.error_type,
            "message": self.message,
            "severity": self.severity,
            "details": self.details,
        }


@dataclass
class WindowOutcome:
    """Completed work for one window, merged only once it is whole."""

    window: Window
    scores: pd.DataFrame
    diagnostics: List[WindowDiagnostic] = field(default_factory=list)
    params: Optional[Dict[str, Any]] = None
    models: Optional[Dict[Hashable, Any]] = None


@dataclass
class WalkForwardResult:
    """
    Output of a walk-forward run.

    Attributes:
        scores: Stitched out-of-sample ScoreTable
        diagnostics: Every per-window failure or degradation
        windows: Windows that completed (in OOS order)
        cancelled: True if the run stopped early on a cancel signal
        selected_params: Hyper-parameters used per window
        models: Trained states per window and partition (retain_models only)
    """

    scores: ScoreTable
    diagnostics: List[WindowDiagnostic]
    windows: List[Window]
    cancelled: bool = False
    selected_params: Dict[int, Dict[str, Any]] = field(default_factory=dict)
    models: Dict[int, Dict[Hashable, Any]] = field(default_factory=dict)

    @property
    def degraded_windows(self) -> List[int]:
        """Ids of windows that contributed all-NA scores."""
        return sorted({d.window_id for d in self.diagnostics if d.severity == SEVERITY_ERROR})

    def diagnostics_frame(self) -> pd.DataFrame:
        """Diagnostics as a DataFrame (one row per record, details omitted)."""
        columns = ["window_id", "stage", "error_type", "message", "severity"]
        return pd.DataFrame([{k: d.to_dict()[k] for k in columns} for d in self.diagnostics], columns=columns)

    def save_models(self, directory: Union[Path, str]) -> List[Path]:
        """
        Persist retained model states, one joblib file per window.

        Returns:
            Paths written
        """
        if not self.models:
            raise ValueError("No models retained; run with retain_models=True")

        directory = Path(directory)
        directory.mkdir(parents=True, exist_ok=True)

        paths = []
        for window_id, states in sorted(self.models.items()):
            path = directory / f"window_{window_id:04d}.joblib"
            joblib.dump(states, path)
            paths.append(path)
        return paths


class RollingFitPredictEngine:
    """
    Fits and scores every walk-forward window.

    Windows are independent: no fitted state crosses a window boundary, so
    per-window work can run on several threads. The panel and labels are
    copied once on entry and every window works on its own slices.
    """

    def __init__(
        self,
        model_factory: Callable[..., Any],
        config: WalkForwardConfig,
        tuning_spec: Optional[TuningSpec] = None,
        groups: Optional[Mapping[Hashable, Sequence[Hashable]]] = None,
        schema: Optional[PanelSchema] = None,
        feature_columns: Optional[Sequence[str]] = None,
        validator: Optional[LeakageValidator] = None,
    ):
        """
        Initialize engine.

        Args:
            model_factory: ``factory(**params) -> ModelHandle``; called once
                per partition per window
            config: Walk-forward configuration
            tuning_spec: Optional hyper-parameter candidates
            groups: Group -> entities mapping for ``per_group``
            schema: Column names of the panels
            feature_columns: Explicit feature columns (default: all non-key)
            validator: Leakage validator (default built from ``schema``)
        """
        self.model_factory = model_factory
        self.config = config
        self.tuning_spec = tuning_spec
        self.groups = groups
        self.schema = schema or PanelSchema()
        self.feature_columns = list(feature_columns) if feature_columns is not None else None
        self.validator = validator or LeakageValidator(self.schema)
        self.fold_generator = PurgedEmbargoedFoldGenerator.from_config(config)

        logger.info(
            "Initialized RollingFitPredictEngine",
            extra_data={
                "fit_mode": config.fit_mode.value,
                "tuning": tuning_spec is not None,
                "n_jobs": config.n_jobs,
                "fail_fast": config.fail_fast,
            },
        )

    def run(
        self,
        panel: pd.DataFrame,
        labels: pd.DataFrame,
        windows: Sequence[Window],
        time_index: Optional[TimeIndex] = None,
        fit_mode: Optional[Union[FitMode, str]] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> WalkForwardResult:
        """
        Run fit/predict over all windows and stitch the OOS scores.

        Args:
            panel: Long-format feature panel (date, entity, features)
            labels: Long-format labels (date, entity, label)
            windows: Windows from WalkForwardScheduler
            time_index: TimeIndex the windows refer to (default: from panel)
            fit_mode: Override of ``config.fit_mode`` for this run
            cancel_event: Set to stop dispatching new windows

        Returns:
            WalkForwardResult

        Raises:
            WalkForwardError: Any per-window error when ``fail_fast`` is set
        """
        t_start = time.perf_counter()
        set_random_seeds(self.config.random_seed)

        features = ensure_copy(panel)
        label_frame = ensure_copy(labels)
        self.schema.validate_dataframe(features)
        self.schema.validate_dataframe(label_frame, extra=[self.schema.label_column])

        feature_cols = self.schema.feature_columns(features, self.feature_columns)
        if not feature_cols:
            raise ValueError("Panel has no feature columns")

        if time_index is None:
            time_index = TimeIndex.from_panel(features, self.schema.date_column)

        feature_pos = time_index.positions(features[self.schema.date_column])
        label_frame, label_pos = self._label_positions(label_frame, time_index)

        strategy = build_fit_mode(
            fit_mode if fit_mode is not None else self.config.fit_mode,
            groups=self.groups,
            unassigned_policy=self.config.unassigned_policy,
        )

        windows = list(windows)
        logger.info(
            f"Starting walk-forward run over {len(windows)} windows",
            extra_data={"rows": len(features), "features": len(feature_cols), "fit_mode": repr(strategy)},
        )

        context = _RunContext(
            features=features,
            feature_pos=feature_pos,
            labels=label_frame,
            label_pos=label_pos,
            feature_cols=feature_cols,
            time_index=time_index,
            strategy=strategy,
        )

        outcomes, cancelled = self._dispatch(windows, context, cancel_event)

        aggregator = ScoreAggregator(self.schema.date_column, self.schema.entity_column)
        scores = aggregator.stitch(((o.window, o.scores) for o in outcomes), time_index=time_index)

        outcomes.sort(key=lambda o: (o.window.oos_start, o.window.window_id))
        result = WalkForwardResult(
            scores=scores,
            diagnostics=[d for o in outcomes for d in o.diagnostics],
            windows=[o.window for o in outcomes],
            cancelled=cancelled,
            selected_params={o.window.window_id: o.params for o in outcomes if o.params is not None},
            models={o.window.window_id: o.models for o in outcomes if o.models is not None},
        )

        logger.info(
            f"Walk-forward run complete: {len(outcomes)}/{len(windows)} windows",
            extra_data={
                "scores": len(scores),
                "na_scores": scores.na_count,
                "degraded_windows": result.degraded_windows,
                "cancelled": cancelled,
                "runtime_s": round(time.perf_counter() - t_start, 3),
            },
        )
        return result

    def _label_positions(self, labels: pd.DataFrame, time_index: TimeIndex):
        date_col = self.schema.date_column
        raw = time_index.index.get_indexer(pd.Index(labels[date_col]))
        unknown = raw < 0
        if unknown.any():
            logger.warning(
                f"Dropping {int(unknown.sum())} label rows dated outside the TimeIndex",
                extra_data={"sample": [str(d) for d in labels.loc[unknown, date_col].unique()[:5]]},
            )
        return labels.loc[~unknown].copy(), raw[~unknown].astype(np.int64)

    def _dispatch(self, windows: List[Window], context: "_RunContext", cancel_event):
        outcomes: List[WindowOutcome] = []

        def cancelled() -> bool:
            return cancel_event is not None and cancel_event.is_set()

        if self.config.n_jobs == 1:
            for window in windows:
                if cancelled():
                    logger.warning(f"Run cancelled before window {window.window_id}")
                    return outcomes, True
                outcomes.append(self._process_window(window, context))
            return outcomes, False

        pending: Set[Future] = set()
        queue = iter(windows)
        stopped = False
        with ThreadPoolExecutor(max_workers=self.config.n_jobs) as pool:
            while True:
                while not stopped and len(pending) < self.config.n_jobs:
                    if cancelled():
                        logger.warning("Run cancelled; no further windows dispatched")
                        stopped = True
                        break
                    window = next(queue, None)
                    if window is None:
                        stopped = True
                        break
                    pending.add(pool.submit(self._process_window, window, context))

                if not pending:
                    break

                done, pending = wait(pending, return_when=FIRST_COMPLETED)
                for future in done:
                    try:
                        outcomes.append(future.result())
                    except WalkForwardError:
                        # Only raised under fail_fast
                        for other in pending:
                            other.cancel()
                        raise

        return outcomes, cancelled() and len(outcomes) < len(windows)

    def _process_window(self, window: Window, ctx: "_RunContext") -> WindowOutcome:
        t_start = time.perf_counter()
        schema = self.schema
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(window.describe(ctx.time_index))

        oos_rows, oos_pos = slice_positions(ctx.features, ctx.feature_pos, window.oos_start, window.oos_end)
        included = oos_rows[schema.entity_column].map(lambda e: ctx.strategy.partition_key(e) is not None)
        included = included.to_numpy(dtype=bool)
        oos_rows, oos_pos = oos_rows.loc[included], oos_pos[included]

        diagnostics: List[WindowDiagnostic] = []
        params: Optional[Dict[str, Any]] = None
        models: Optional[Dict[Hashable, Any]] = None

        try:
            self.validator.validate_out_of_sample(oos_rows, window)

            is_rows, _ = slice_positions(ctx.features, ctx.feature_pos, window.is_start, window.is_end)
            is_labels, _ = slice_positions(ctx.labels, ctx.label_pos, window.is_start, window.is_end)

            report = self.validator.validate(
                is_rows, is_labels, window, ctx.time_index, label_horizon=self.config.label_horizon
            )
            training, y, positions = self._training_rows(is_rows, report.labels, ctx)
            if report.n_dropped:
                logger.debug(f"Window {window.window_id}: {report.n_dropped} labels unresolved at is_end")

            params, tuning_diag = self._tune(window, training[ctx.feature_cols], y, positions)
            diagnostics.extend(tuning_diag)

            trained = self._fit_partitions(training, y, params, ctx)
            if not trained:
                diagnostics.append(
                    WindowDiagnostic(
                        window_id=window.window_id,
                        stage="training_data",
                        error_type="NoTrainingRows",
                        message="No partition had complete training rows; window scored NA",
                        severity=SEVERITY_WARNING,
                    )
                )
            scores = self._predict(window, oos_rows, trained, ctx)
            if self.config.retain_models:
                models = {key: state for key, (_, state) in trained.items()}

        except LeakageError as e:
            if self.config.fail_fast:
                raise
            diagnostics.append(self._failure(window, "leakage", e, details=e.diagnostics))
            # One NA row per (date, entity), even when the OOS slice repeats keys
            unique = ~oos_rows.duplicated(subset=schema.key_columns).to_numpy()
            oos_rows, oos_pos = oos_rows.loc[unique], oos_pos[unique]
            scores = np.full(len(oos_rows), np.nan)
        except FitError as e:
            if self.config.fail_fast:
                raise
            diagnostics.append(self._failure(window, e.stage, e))
            scores = np.full(len(oos_rows), np.nan)

        frame = pd.DataFrame(
            {
                schema.date_column: oos_rows[schema.date_column].to_numpy(),
                schema.entity_column: oos_rows[schema.entity_column].to_numpy(),
                SCORE_COLUMN: np.asarray(scores, dtype=np.float64),
                POSITION_COLUMN: oos_pos,
            }
        )

        logger.info(
            f"Window {window.window_id} done",
            extra_data={
                "oos_rows": len(frame),
                "na_scores": int(frame[SCORE_COLUMN].isna().sum()),
                "failed": any(d.severity == SEVERITY_ERROR for d in diagnostics),
                "runtime_s": round(time.perf_counter() - t_start, 3),
            },
        )
        return WindowOutcome(window, frame, diagnostics, params, models)

    def _training_rows(self, is_rows: pd.DataFrame, labels: pd.DataFrame, ctx: "_RunContext"):
        keys = self.schema.key_columns
        label_col = self.schema.label_column

        training = is_rows[keys + ctx.feature_cols].merge(labels[keys + [label_col]], on=keys, how="inner")
        complete = training[ctx.feature_cols].notna().all(axis=1) & training[label_col].notna()
        training = training.loc[complete].sort_values(keys, kind="mergesort").reset_index(drop=True)

        positions = ctx.time_index.positions(training[self.schema.date_column])
        return training[keys + ctx.feature_cols], training[label_col], positions

    def _tune(self, window: Window, X: pd.DataFrame, y: pd.Series, positions: np.ndarray):
        if self.tuning_spec is None:
            return {}, []

        default = dict(self.tuning_spec.default_params)
        try:
            folds = self.fold_generator.generate_folds(window.is_range)
        except DegenerateFold as e:
            logger.warning(f"Window {window.window_id}: tuning skipped ({e}); using default parameters")
            return default, [self._failure(window, "tuning", e, severity=SEVERITY_WARNING)]

        tuner = HyperparameterTuner(self.tuning_spec, self.model_factory, n_jobs=self.config.n_jobs)
        outcome = tuner.select(X, y, positions, folds)

        diagnostics = []
        if outcome.failures:
            failed = sorted({f["candidate"] for f in outcome.failures})
            diagnostics.append(
                WindowDiagnostic(
                    window_id=window.window_id,
                    stage="tuning",
                    error_type="CandidateFailed",
                    message=f"{len(outcome.failures)} candidate fold fits failed (candidates {failed})",
                    severity=SEVERITY_WARNING,
                    details=outcome.failures,
                )
            )
        if outcome.fallback:
            diagnostics.append(
                WindowDiagnostic(
                    window_id=window.window_id,
                    stage="tuning",
                    error_type="NoValidCandidate",
                    message="No candidate produced a valid score; default parameters used",
                    severity=SEVERITY_WARNING,
                )
            )
            return default, diagnostics
        return outcome.best_params, diagnostics

    def _fit_partitions(self, training: pd.DataFrame, y: pd.Series, params: Dict[str, Any], ctx: "_RunContext"):
        entity_col = self.schema.entity_column
        trained: Dict[Hashable, Any] = {}

        for key, entities in ctx.strategy.partitions(pd.unique(training[entity_col])).items():
            mask = training[entity_col].isin(entities).to_numpy()
            try:
                model = self.model_factory(**params)
                state = model.fit(training.loc[mask, ctx.feature_cols], y.loc[mask])
            except FitError:
                raise
            except Exception as e:
                raise FitError(f"Model fit failed for partition {key!r}: {e}", stage="fit") from e
            trained[key] = (model, state)

        return trained

    def _predict(self, window: Window, oos_rows: pd.DataFrame, trained, ctx: "_RunContext") -> np.ndarray:
        entity_col = self.schema.entity_column
        scores = np.full(len(oos_rows), np.nan)
        if oos_rows.empty:
            return scores

        # Rows with any missing feature are scored NA, never passed to the model
        complete = oos_rows[ctx.feature_cols].notna().all(axis=1).to_numpy()

        for key, entities in ctx.strategy.partitions(pd.unique(oos_rows[entity_col])).items():
            if key not in trained:
                continue
            mask = oos_rows[entity_col].isin(entities).to_numpy() & complete
            if not mask.any():
                continue

            model, state = trained[key]
            try:
                preds = np.asarray(model.predict(state, oos_rows.loc[mask, ctx.feature_cols]), dtype=np.float64)
            except FitError:
                raise
            except Exception as e:
                raise FitError(f"Model predict failed for partition {key!r}: {e}", stage="predict") from e

            if preds.shape != (int(mask.sum()),):
                raise FitError(
                    f"Model returned {preds.shape} predictions for {int(mask.sum())} rows",
                    stage="predict",
                )
            scores[mask] = preds

        return scores

    @staticmethod
    def _failure(window: Window, stage: str, error: Exception, severity: str = SEVERITY_ERROR, details=None):
        if severity == SEVERITY_ERROR:
            logger.error(
                f"Window {window.window_id} {stage} failed: {error}",
                extra_data={"error_type": type(error).__name__},
            )
        return WindowDiagnostic(
            window_id=window.window_id,
            stage=stage,
            error_type=type(error).__name__,
            message=str(error),
            severity=severity,
            details=list(details or []),
        )


@dataclass
class _RunContext:
    """Read-only inputs shared by every window of one run."""

    features: pd.DataFrame
    feature_pos: np.ndarray
    labels: pd.DataFrame
    label_pos: np.ndarray
    feature_cols: List[str]
    time_index: TimeIndex
    strategy: FitModeStrategy
