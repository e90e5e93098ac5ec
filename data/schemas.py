"""Panel schemas."""

from typing import List, Optional, Sequence

import pandas as pd
from pydantic import BaseModel, Field

from config.data import DataConfig


class PanelSchema(BaseModel):
    """
    Column names shared by feature, label and price panels.

    Validates that DataFrames carry the key columns and resolves which
    columns are features.
    """

    date_column: str = Field(default="date", description="Decision date column name")
    entity_column: str = Field(default="symbol", description="Entity column name")
    label_column: str = Field(default="label", description="Label column name")
    price_column: str = Field(default="close", description="Price column name")

    @classmethod
    def from_config(cls, config: DataConfig) -> "PanelSchema":
        """Build the schema from a DataConfig."""
        return cls(
            date_column=config.date_column,
            entity_column=config.entity_column,
            label_column=config.label_column,
            price_column=config.price_column,
        )

    @property
    def key_columns(self) -> List[str]:
        """(date, entity) key columns."""
        return [self.date_column, self.entity_column]

    def validate_dataframe(self, df: pd.DataFrame, extra: Sequence[str] = ()) -> bool:
        """
        Validate that DataFrame has the key columns (plus any extras).

        Args:
            df: DataFrame to validate
            extra: Additional required column names

        Returns:
            True if valid

        Raises:
            ValueError: If validation fails
        """
        required_cols = self.key_columns + list(extra)
        missing_cols = [col for col in required_cols if col not in df.columns]

        if missing_cols:
            raise ValueError(f"DataFrame missing required columns: {missing_cols}")

        return True

    def feature_columns(self, df: pd.DataFrame, explicit: Optional[Sequence[str]] = None) -> List[str]:
        """
        Resolve feature columns of a panel.

        Args:
            df: Feature panel
            explicit: Optional explicit list; validated against the panel

        Returns:
            Ordered list of feature column names
        """
        if explicit is not None:
            missing = [c for c in explicit if c not in df.columns]
            if missing:
                raise ValueError(f"Feature columns not in panel: {missing}")
            return list(explicit)

        reserved = set(self.key_columns) | {self.label_column}
        return [c for c in df.columns if c not in reserved]
