"""Ordered, deduplicated decision dates shared by all windowing logic."""

from typing import Iterable, Sequence

import numpy as np
import pandas as pd

from utils.logger import get_data_logger

logger = get_data_logger()


class TimeIndex:
    """
    Strictly increasing sequence of distinct decision dates.

    Windows and folds refer to positions in this sequence, never to raw
    dates, so duplicated or unsorted input dates cannot shift a boundary.
    """

    def __init__(self, dates: Iterable):
        index = pd.Index(dates)
        if index.hasnans:
            raise ValueError("TimeIndex dates must not contain missing values")

        index = index.unique().sort_values()
        if len(index) == 0:
            raise ValueError("TimeIndex requires at least one date")

        self._index = index

    @classmethod
    def from_dates(cls, dates: Iterable) -> "TimeIndex":
        """Build from any iterable of orderable dates."""
        return cls(dates)

    @classmethod
    def from_panel(cls, panel: pd.DataFrame, date_column: str = "date") -> "TimeIndex":
        """
        Build from the date column of a long-format panel.

        Args:
            panel: Panel with one row per (date, entity)
            date_column: Name of the date column

        Returns:
            TimeIndex over the panel's distinct dates
        """
        if date_column not in panel.columns:
            raise ValueError(f"Panel missing date column '{date_column}'")

        time_index = cls(panel[date_column])
        logger.debug(
            "Built TimeIndex from panel",
            extra_data={
                "rows": len(panel),
                "dates": len(time_index),
                "start": str(time_index[0]),
                "end": str(time_index[-1]),
            },
        )
        return time_index

    @property
    def index(self) -> pd.Index:
        """Underlying pandas Index (read-only view)."""
        return self._index

    def __len__(self) -> int:
        return len(self._index)

    def __getitem__(self, position):
        return self._index[position]

    def __iter__(self):
        return iter(self._index)

    def __eq__(self, other) -> bool:
        if not isinstance(other, TimeIndex):
            return NotImplemented
        return self._index.equals(other._index)

    def __repr__(self) -> str:
        return f"TimeIndex(n={len(self)}, start={self._index[0]}, end={self._index[-1]})"

    def position_of(self, date) -> int:
        """
        Get the position of a single date.

        Raises:
            KeyError: If the date is not part of the index
        """
        return int(self._index.get_loc(date))

    def positions(self, values: Sequence) -> np.ndarray:
        """
        Map many dates to positions in one vectorised lookup.

        Args:
            values: Dates (e.g. a panel's date column)

        Returns:
            Integer array of positions, same order as ``values``

        Raises:
            KeyError: If any value is not part of the index
        """
        positions = self._index.get_indexer(pd.Index(values))
        if (positions < 0).any():
            missing = pd.Index(values)[positions < 0].unique()
            raise KeyError(f"{len(missing)} dates not in TimeIndex, e.g. {list(missing[:3])}")
        return positions.astype(np.int64)

    def dates(self, start: int, end: int) -> pd.Index:
        """Dates at positions ``start..end`` inclusive."""
        if start < 0 or end >= len(self) or start > end:
            raise IndexError(f"Invalid position range [{start}, {end}] for {self!r}")
        return self._index[start:end + 1]
