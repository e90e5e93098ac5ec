"""Panel loading, time indexing and alignment."""

from data.time_index import TimeIndex
from data.schemas import PanelSchema
from data.panel import align_to_timeframe, ensure_copy
from data.loader import PanelLoader

__all__ = [
    "TimeIndex",
    "PanelSchema",
    "align_to_timeframe",
    "ensure_copy",
    "PanelLoader",
]
