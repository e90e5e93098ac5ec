"""Label construction from a long-format price panel."""

from enum import Enum
from typing import Optional

import numpy as np
import pandas as pd

from data.schemas import PanelSchema
from data.time_index import TimeIndex
from utils.logger import get_data_logger

logger = get_data_logger()


class LabelKind(Enum):
    """Supported label kinds."""
    RETURN = "return"
    BINARY = "binary"


def forward_return_labels(
    prices: pd.DataFrame,
    horizon: int,
    schema: Optional[PanelSchema] = None,
    kind: str = "return",
    time_index: Optional[TimeIndex] = None,
) -> pd.DataFrame:
    """
    Create per-entity forward-return labels.

    The label at decision date t is the return from t to the date
    ``horizon`` TimeIndex positions later. Entities are never mixed: the
    later price is looked up for the same entity only, and rows whose later
    price is missing are NA (the last ``horizon`` rows of every entity).

    Args:
        prices: Long-format price panel (date, entity, price column)
        horizon: Positions ahead the outcome is measured (>= 1)
        schema: Column names (default schema when omitted)
        kind: ``return`` (simple return) or ``binary`` (1 if the return is
            positive, 0 if negative, NA if exactly zero)
        time_index: TimeIndex to count positions on (default: from prices);
            price rows dated outside it are dropped

    Returns:
        DataFrame with date, entity and label columns

    Example:
        >>> labels = forward_return_labels(prices, horizon=1)
        >>> # label at t = close[t+1] / close[t] - 1, per symbol
    """
    if horizon < 1:
        raise ValueError(f"horizon must be >= 1, got {horizon}")

    kind = LabelKind(kind.lower())
    schema = schema or PanelSchema()
    schema.validate_dataframe(prices, extra=[schema.price_column])

    date_col, entity_col = schema.date_column, schema.entity_column
    if time_index is None:
        time_index = TimeIndex.from_panel(prices, date_col)

    frame = prices[[date_col, entity_col, schema.price_column]].copy()
    raw = time_index.index.get_indexer(pd.Index(frame[date_col]))
    outside = raw < 0
    if outside.any():
        logger.warning(
            f"Dropping {int(outside.sum())} price rows dated outside the TimeIndex",
            extra_data={"sample": [str(d) for d in frame.loc[outside, date_col].unique()[:5]]},
        )
    frame = frame.loc[~outside].copy()
    frame["_pos"] = raw[~outside].astype(np.int64)

    future = frame[[entity_col, "_pos", schema.price_column]].rename(columns={schema.price_column: "_future"})
    future["_pos"] = future["_pos"] - horizon
    merged = frame.merge(future, on=[entity_col, "_pos"], how="left")

    returns = merged["_future"] / merged[schema.price_column] - 1.0

    if kind == LabelKind.BINARY:
        label = pd.Series(np.where(returns > 0, 1.0, 0.0), index=merged.index)
        # Exactly zero is ambiguous
        label[(returns == 0) | returns.isna()] = np.nan
    else:
        label = returns

    labels = pd.DataFrame(
        {
            date_col: merged[date_col].to_numpy(),
            entity_col: merged[entity_col].to_numpy(),
            schema.label_column: label.to_numpy(dtype=np.float64),
        }
    )
    labels = labels.sort_values([date_col, entity_col], kind="mergesort").reset_index(drop=True)

    logger.info(
        f"Built {kind.value} labels with horizon {horizon}",
        extra_data={"rows": len(labels), "na_labels": int(labels[schema.label_column].isna().sum())},
    )
    return labels
