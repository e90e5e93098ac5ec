"""Look-ahead checks run before every in-sample fit."""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import numpy as np
import pandas as pd

from data.schemas import PanelSchema
from data.time_index import TimeIndex
from training.errors import DuplicateObservation, LeakageDetected, UnresolvedLabel
from training.validation.walk_forward import Window
from utils.logger import get_validation_logger

logger = get_validation_logger()

# Offending rows included in a log line; the exception always carries all of them
MAX_LOGGED_ROWS = 5


@dataclass
class LeakageReport:
    """
    Outcome of a passed leakage check.

    Attributes:
        labels: In-sample labels whose outcome resolves by ``is_end``
        dropped_labels: One dict per label dropped as unresolved
    """

    labels: pd.DataFrame
    dropped_labels: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def n_dropped(self) -> int:
        return len(self.dropped_labels)


class LeakageValidator:
    """
    Verifies a window's in-sample slice before any fit executes.

    Checks:
    (a) every in-sample feature (and label decision) date is before the
        window's OOS start
    (b) every in-sample label resolves (decision position + label_horizon)
        no later than ``is_end``; unresolved labels are dropped, and a
        window left with none raises ``UnresolvedLabel``
    (c) no (date, entity) appears twice in the slice

    Violations surface one diagnostic per offending row; nothing is
    repaired silently.
    """

    def __init__(self, schema: Optional[PanelSchema] = None):
        self.schema = schema or PanelSchema()

    def validate(
        self,
        features: pd.DataFrame,
        labels: pd.DataFrame,
        window: Window,
        time_index: TimeIndex,
        label_horizon: int = 0,
    ) -> LeakageReport:
        """
        Validate one window's in-sample slices.

        Args:
            features: In-sample feature rows
            labels: In-sample label rows
            window: Window the slices were cut for
            time_index: TimeIndex the window refers to
            label_horizon: Positions until a label's outcome is known

        Returns:
            LeakageReport with the resolved labels

        Raises:
            LeakageDetected: Feature/label date at or after the OOS start
            DuplicateObservation: Repeated (date, entity) rows
            UnresolvedLabel: No label resolves inside the window
        """
        date_col = self.schema.date_column
        oos_start_date = time_index[window.oos_start]

        self._check_before_oos(features, window, oos_start_date, kind="feature")
        self._check_before_oos(labels, window, oos_start_date, kind="label")
        self._check_duplicates(features, window, kind="feature")
        self._check_duplicates(labels, window, kind="label")

        if labels.empty:
            return LeakageReport(labels=labels.copy())

        decision_pos = time_index.positions(labels[date_col])
        resolves_at = decision_pos + label_horizon
        resolved = resolves_at <= window.is_end

        dropped = [
            self._row_diagnostic(row, window, resolves_at=int(pos))
            for (_, row), pos in zip(
                labels.loc[~resolved, self.schema.key_columns].iterrows(),
                resolves_at[~resolved],
            )
        ]

        if not resolved.any():
            raise UnresolvedLabel(
                f"Window {window.window_id}: label_horizon={label_horizon} leaves no label "
                f"resolved by is_end={window.is_end}",
                diagnostics=dropped,
            )

        if dropped:
            logger.debug(
                f"Window {window.window_id}: dropped {len(dropped)} unresolved labels",
                extra_data={"label_horizon": label_horizon, "sample": dropped[:MAX_LOGGED_ROWS]},
            )

        return LeakageReport(labels=labels.loc[resolved].copy(), dropped_labels=dropped)

    def validate_out_of_sample(self, rows: pd.DataFrame, window: Window) -> None:
        """
        Check a window's out-of-sample rows hold one row per (date, entity).

        Raises:
            DuplicateObservation: Repeated (date, entity) rows
        """
        self._check_duplicates(rows, window, kind="out-of-sample feature")

    def _check_before_oos(self, frame: pd.DataFrame, window: Window, oos_start_date, kind: str) -> None:
        if frame.empty:
            return

        offending = frame.loc[frame[self.schema.date_column] >= oos_start_date, self.schema.key_columns]
        if offending.empty:
            return

        diagnostics = [self._row_diagnostic(row, window) for _, row in offending.iterrows()]
        logger.error(
            f"Window {window.window_id}: {len(diagnostics)} in-sample {kind} rows at or after OOS start",
            extra_data={"oos_start": str(oos_start_date), "sample": diagnostics[:MAX_LOGGED_ROWS]},
        )
        raise LeakageDetected(
            f"Window {window.window_id}: {len(diagnostics)} in-sample {kind} rows dated "
            f">= oos_start ({oos_start_date})",
            diagnostics=diagnostics,
        )

    def _check_duplicates(self, frame: pd.DataFrame, window: Window, kind: str) -> None:
        if frame.empty:
            return

        mask = frame.duplicated(subset=self.schema.key_columns, keep=False)
        if not mask.any():
            return

        diagnostics = [
            self._row_diagnostic(row, window)
            for _, row in frame.loc[mask, self.schema.key_columns].drop_duplicates().iterrows()
        ]
        logger.error(
            f"Window {window.window_id}: duplicate {kind} rows",
            extra_data={"sample": diagnostics[:MAX_LOGGED_ROWS]},
        )
        raise DuplicateObservation(
            f"Window {window.window_id}: {len(diagnostics)} duplicated (date, entity) {kind} keys",
            diagnostics=diagnostics,
        )

    def _row_diagnostic(self, row: pd.Series, window: Window, **details) -> Dict[str, Any]:
        diagnostic = {
            "window_id": window.window_id,
            "date": str(row[self.schema.date_column]),
            "entity": row[self.schema.entity_column],
        }
        diagnostic.update({k: (int(v) if isinstance(v, np.integer) else v) for k, v in details.items()})
        return diagnostic
