"""Panel helpers: copy-on-read slicing and timeframe alignment.

Every function here returns a new DataFrame. Inputs are treated as
read-only so that per-window slices can never alias the caller's data.
"""

from typing import Callable, Dict, Optional, Sequence, Tuple

import numpy as np
import pandas as pd
from pandas.api.types import is_datetime64_any_dtype

from utils.logger import get_data_logger

logger = get_data_logger()

ALIGNMENT_METHODS = ("forward_fill", "nearest", "interpolate")


def ensure_copy(frame: pd.DataFrame) -> pd.DataFrame:
    """
    Return an independent deep copy of a panel.

    Args:
        frame: DataFrame (or anything pandas can turn into one)

    Returns:
        New DataFrame safe to modify
    """
    if not isinstance(frame, pd.DataFrame):
        return pd.DataFrame(frame)
    return frame.copy(deep=True)


def slice_positions(
    frame: pd.DataFrame,
    positions: np.ndarray,
    start: int,
    end: int,
) -> Tuple[pd.DataFrame, np.ndarray]:
    """
    Copy the rows whose TimeIndex position lies in ``start..end``.

    Args:
        frame: Panel rows
        positions: Position of each row, aligned with ``frame``
        start: First position (inclusive)
        end: Last position (inclusive)

    Returns:
        (independent copy of the matching rows, their positions)
    """
    mask = (positions >= start) & (positions <= end)
    return frame.loc[mask].copy(), positions[mask].copy()


def _numeric_dates(values) -> np.ndarray:
    """Dates as float64 for interpolation."""
    if is_datetime64_any_dtype(values):
        return pd.DatetimeIndex(values).as_unit("ns").asi8.astype(np.float64)
    return np.asarray(values, dtype=np.float64)


def _target_frame(
    frame: pd.DataFrame,
    target_dates: Sequence,
    date_column: str,
    entity_column: Optional[str],
) -> pd.DataFrame:
    dates = pd.Index(target_dates).unique().sort_values()
    if entity_column is None:
        return pd.DataFrame({date_column: dates})

    entities = pd.Index(frame[entity_column].unique()).sort_values()
    grid = pd.MultiIndex.from_product([dates, entities], names=[date_column, entity_column])
    return grid.to_frame(index=False)


def _align_asof(direction: str) -> Callable:
    def align(frame, target, date_column, entity_column, value_columns):
        merged = pd.merge_asof(
            target.sort_values(date_column),
            frame.sort_values(date_column)[
                [date_column] + ([entity_column] if entity_column else []) + value_columns
            ],
            on=date_column,
            by=entity_column,
            direction=direction,
        )
        return merged

    return align


def _align_interpolate(frame, target, date_column, entity_column, value_columns):
    def interpolate_one(source: pd.DataFrame, dates: pd.Series) -> pd.DataFrame:
        source = source.sort_values(date_column)
        x_new = _numeric_dates(dates)
        result = pd.DataFrame({date_column: dates.to_numpy()})
        for col in value_columns:
            valid = source[col].notna().to_numpy()
            if not valid.any():
                result[col] = np.nan
                continue
            x = _numeric_dates(source[date_column])[valid]
            y = source[col].to_numpy(dtype=np.float64)[valid]
            # np.interp holds the edge values beyond the data range
            result[col] = np.interp(x_new, x, y)
        return result

    if entity_column is None:
        return interpolate_one(frame, target[date_column])

    pieces = []
    for entity, source in frame.groupby(entity_column, sort=True):
        dates = target.loc[target[entity_column] == entity, date_column]
        piece = interpolate_one(source, dates)
        piece.insert(1, entity_column, entity)
        pieces.append(piece)
    return pd.concat(pieces, ignore_index=True)


_ALIGNERS: Dict[str, Callable] = {
    "forward_fill": _align_asof("backward"),
    "nearest": _align_asof("nearest"),
    "interpolate": _align_interpolate,
}


def align_to_timeframe(
    frame: pd.DataFrame,
    target_dates: Sequence,
    method: str = "forward_fill",
    date_column: str = "date",
    entity_column: Optional[str] = None,
) -> pd.DataFrame:
    """
    Align a higher-frequency panel to a set of decision dates.

    Typical use is bringing a daily indicator onto weekly decision dates.

    Args:
        frame: Source panel with a date column (and optionally entities)
        target_dates: Decision dates to align to
        method: ``forward_fill`` (latest value at or before each date),
            ``nearest`` (closest date either side) or ``interpolate``
            (linear in time, edge values held)
        date_column: Name of the date column
        entity_column: Entity column; alignment runs per entity when given

    Returns:
        New DataFrame with exactly the target dates (per entity)
    """
    if method not in _ALIGNERS:
        raise ValueError(f"method must be one of {list(ALIGNMENT_METHODS)}, got '{method}'")
    if date_column not in frame.columns:
        raise ValueError(f"Frame missing date column '{date_column}'")
    if entity_column is not None and entity_column not in frame.columns:
        raise ValueError(f"Frame missing entity column '{entity_column}'")

    source = ensure_copy(frame)
    keys = {date_column, entity_column}
    value_columns = [c for c in source.columns if c not in keys]
    target = _target_frame(source, target_dates, date_column, entity_column)

    aligned = _ALIGNERS[method](source, target, date_column, entity_column, value_columns)

    sort_keys = [date_column] + ([entity_column] if entity_column else [])
    aligned = aligned.sort_values(sort_keys).reset_index(drop=True)

    logger.debug(
        f"Aligned {len(source)} rows to {len(aligned)} rows",
        extra_data={"method": method, "value_columns": value_columns},
    )
    return aligned
