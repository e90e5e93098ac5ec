"""Stitching per-window out-of-sample scores into one record."""

from typing import Iterable, List, Optional, Tuple, Union

import numpy as np
import pandas as pd

from data.time_index import TimeIndex
from training.validation.walk_forward import Window
from utils.logger import get_validation_logger

logger = get_validation_logger()

SCORE_COLUMN = "score"
WINDOW_COLUMN = "window_id"
POSITION_COLUMN = "position"


class ScoreTable:
    """
    Date-indexed (date, entity) -> score table.

    At most one row per (date, entity). A row with a NaN score means a
    decision was due but the entity could not be scored; a missing row
    means no decision was made.
    """

    def __init__(
        self,
        frame: pd.DataFrame,
        date_column: str = "date",
        entity_column: str = "symbol",
    ):
        required = [date_column, entity_column, SCORE_COLUMN, WINDOW_COLUMN]
        missing = [c for c in required if c not in frame.columns]
        if missing:
            raise ValueError(f"ScoreTable frame missing columns: {missing}")

        frame = frame[required].copy()
        if frame.duplicated(subset=[date_column, entity_column]).any():
            raise ValueError("ScoreTable requires at most one score per (date, entity)")

        frame[SCORE_COLUMN] = frame[SCORE_COLUMN].astype(np.float64)
        frame[WINDOW_COLUMN] = frame[WINDOW_COLUMN].astype(np.int64)
        self._frame = frame.sort_values([date_column, entity_column], kind="mergesort").reset_index(drop=True)
        self.date_column = date_column
        self.entity_column = entity_column

    @classmethod
    def empty(cls, date_column: str = "date", entity_column: str = "symbol") -> "ScoreTable":
        frame = pd.DataFrame(
            {
                date_column: pd.Series(dtype="datetime64[ns]"),
                entity_column: pd.Series(dtype=object),
                SCORE_COLUMN: pd.Series(dtype=np.float64),
                WINDOW_COLUMN: pd.Series(dtype=np.int64),
            }
        )
        return cls(frame, date_column, entity_column)

    def to_frame(self) -> pd.DataFrame:
        """Long-format copy: date, entity, score, window_id."""
        return self._frame.copy()

    def to_wide(self) -> pd.DataFrame:
        """Date x entity score matrix; cells without a decision are NaN."""
        return self._frame.pivot(index=self.date_column, columns=self.entity_column, values=SCORE_COLUMN)

    def equals(self, other: "ScoreTable") -> bool:
        return isinstance(other, ScoreTable) and self._frame.equals(other._frame)

    @property
    def dates(self) -> pd.Index:
        return pd.Index(self._frame[self.date_column].unique())

    @property
    def entities(self) -> pd.Index:
        return pd.Index(self._frame[self.entity_column].unique())

    @property
    def na_count(self) -> int:
        return int(self._frame[SCORE_COLUMN].isna().sum())

    def __len__(self) -> int:
        return len(self._frame)

    def __repr__(self) -> str:
        return f"ScoreTable(rows={len(self)}, dates={len(self.dates)}, na={self.na_count})"


class ScoreAggregator:
    """
    Merges per-window OOS scores with a first-writer-wins overlap rule.

    Windows are ordered by (oos_start, window_id) before merging, whatever
    order they arrive in. When OOS ranges overlap, the earliest-scheduled
    window owns the overlapping positions: its decision was already made,
    so later windows never revise it.
    """

    def __init__(self, date_column: str = "date", entity_column: str = "symbol"):
        self.date_column = date_column
        self.entity_column = entity_column

    def stitch(
        self,
        per_window_scores: Iterable[Tuple[Window, Union[pd.DataFrame, ScoreTable]]],
        time_index: Optional[TimeIndex] = None,
    ) -> ScoreTable:
        """
        Stitch per-window score frames into one ScoreTable.

        Args:
            per_window_scores: (Window, scores) pairs; each is a frame with
                the date, entity, score and position columns, or a ScoreTable
            time_index: TimeIndex the windows refer to; used to derive
                positions for scores that carry only dates

        Returns:
            ScoreTable with at most one score per (date, entity)

        Raises:
            ValueError: Scores without positions and no ``time_index`` given
        """
        ordered = sorted(per_window_scores, key=lambda item: (item[0].oos_start, item[0].window_id))

        pieces: List[pd.DataFrame] = []
        claimed_through: Optional[int] = None
        discarded = 0

        for window, scores in ordered:
            frame = scores.to_frame() if isinstance(scores, ScoreTable) else scores
            if POSITION_COLUMN not in frame.columns:
                if time_index is None:
                    raise ValueError(
                        f"Window {window.window_id} scores lack a '{POSITION_COLUMN}' column; "
                        "pass time_index to derive positions from dates"
                    )
                frame = frame.assign(**{POSITION_COLUMN: time_index.positions(frame[self.date_column])})

            keep = frame[POSITION_COLUMN] > (claimed_through if claimed_through is not None else -1)
            discarded += int((~keep).sum())

            piece = frame.loc[keep, [self.date_column, self.entity_column, SCORE_COLUMN]].copy()
            piece[WINDOW_COLUMN] = window.window_id
            pieces.append(piece)

            if claimed_through is None or window.oos_end > claimed_through:
                claimed_through = window.oos_end

        if not pieces:
            return ScoreTable.empty(self.date_column, self.entity_column)

        stitched = ScoreTable(
            pd.concat(pieces, ignore_index=True),
            date_column=self.date_column,
            entity_column=self.entity_column,
        )

        logger.info(
            f"Stitched {len(ordered)} windows into {len(stitched)} scores",
            extra_data={"overlap_rows_discarded": discarded, "na_scores": stitched.na_count},
        )
        return stitched
