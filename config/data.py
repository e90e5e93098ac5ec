"""Data configuration for panel loading and column schema."""

from enum import Enum
from pathlib import Path
from typing import List, Optional

from pydantic import Field, field_validator

from config.base import BaseConfig


class DataFormat(str, Enum):
    """Supported data formats."""

    PARQUET = "parquet"
    CSV = "csv"


class DataConfig(BaseConfig):
    """
    Configuration for loading long-format panels.

    Every panel (features, labels, prices) is an entity x date table in
    long format: one row per (date, entity) with value columns.
    """

    # Data source
    data_dir: Path = Field(
        default=Path("data/raw"),
        description="Directory containing panel files",
    )
    format: DataFormat = Field(
        default=DataFormat.PARQUET,
        description="Data format (parquet or csv)",
    )
    features_file: str = Field(description="Feature panel filename")
    labels_file: Optional[str] = Field(
        default=None,
        description="Label panel filename (labels are built from prices when omitted)",
    )
    prices_file: Optional[str] = Field(
        default=None,
        description="Price panel filename (needed for built labels and backtests)",
    )

    # Schema
    date_column: str = Field(default="date", description="Name of the decision date column")
    entity_column: str = Field(default="symbol", description="Name of the entity column")
    label_column: str = Field(default="label", description="Name of the label column")
    price_column: str = Field(default="close", description="Name of the price column")
    feature_columns: Optional[List[str]] = Field(
        default=None,
        description="Explicit feature columns (all non-key columns when omitted)",
    )

    @field_validator("data_dir", mode="before")
    @classmethod
    def validate_data_dir(cls, v) -> Path:
        """Coerce the data directory to a Path without creating it."""
        return Path(v)
