"""Panel loading from Parquet or CSV files."""

from pathlib import Path
from typing import Optional

import pandas as pd
import pyarrow.parquet as pq

from config.data import DataConfig, DataFormat
from data.schemas import PanelSchema
from utils.logger import get_data_logger

logger = get_data_logger()


class PanelLoader:
    """
    Loads long-format panels (features, labels, prices) from files.

    Handles schema validation, date parsing and key ordering. Duplicate
    (date, entity) rows are reported but not repaired; the leakage
    validator rejects them before any fit.
    """

    def __init__(self, config: DataConfig):
        """
        Initialize PanelLoader.

        Args:
            config: Data configuration
        """
        self.config = config
        self.schema = PanelSchema.from_config(config)

        logger.info(
            "Initialized PanelLoader",
            extra_data={"format": self.config.format.value, "data_dir": str(config.data_dir)},
        )

    def load_features(self) -> pd.DataFrame:
        """Load the feature panel."""
        df = self.load(self.config.features_file)
        if self.config.feature_columns:
            self.schema.feature_columns(df, self.config.feature_columns)
        return df

    def load_labels(self) -> Optional[pd.DataFrame]:
        """Load the label panel, or None when labels are built from prices."""
        if self.config.labels_file is None:
            return None
        return self.load(self.config.labels_file, required=[self.config.label_column])

    def load_prices(self) -> Optional[pd.DataFrame]:
        """Load the price panel, or None when not configured."""
        if self.config.prices_file is None:
            return None
        return self.load(self.config.prices_file, required=[self.config.price_column])

    def load(self, filename: str, required: Optional[list] = None) -> pd.DataFrame:
        """
        Load one panel file.

        Args:
            filename: File name inside ``data_dir``
            required: Value columns that must be present besides the keys

        Returns:
            DataFrame sorted by (date, entity)

        Raises:
            FileNotFoundError: If the file doesn't exist
            ValueError: If the panel is invalid
        """
        file_path = self.config.data_dir / filename

        if not file_path.exists():
            raise FileNotFoundError(f"Data file not found: {file_path}")

        logger.info(f"Loading panel from {file_path}")

        if self.config.format == DataFormat.PARQUET:
            df = self._load_parquet(file_path)
        elif self.config.format == DataFormat.CSV:
            df = self._load_csv(file_path)
        else:
            raise ValueError(f"Unsupported data format: {self.config.format}")

        self.schema.validate_dataframe(df, extra=required or [])
        df = self._process_dataframe(df)

        logger.info(
            f"Loaded {len(df):,} rows",
            extra_data={
                "entities": int(df[self.config.entity_column].nunique()),
                "start": str(df[self.config.date_column].min()),
                "end": str(df[self.config.date_column].max()),
            },
        )

        return df

    def count_rows(self, filename: str) -> int:
        """Row count of a Parquet panel without loading it."""
        return pq.read_metadata(self.config.data_dir / filename).num_rows

    def _load_parquet(self, file_path: Path) -> pd.DataFrame:
        try:
            return pq.read_table(file_path).to_pandas()
        except Exception as e:
            logger.error(f"Failed to load Parquet file: {e}", extra_data={"path": str(file_path)})
            raise

    def _load_csv(self, file_path: Path) -> pd.DataFrame:
        try:
            return pd.read_csv(file_path)
        except Exception as e:
            logger.error(f"Failed to load CSV file: {e}", extra_data={"path": str(file_path)})
            raise

    def _process_dataframe(self, df: pd.DataFrame) -> pd.DataFrame:
        """
        Parse dates, sort by keys and report duplicates.

        Args:
            df: Raw DataFrame

        Returns:
            Processed copy
        """
        df = df.copy()
        date_col = self.config.date_column

        if not pd.api.types.is_datetime64_any_dtype(df[date_col]):
            try:
                df[date_col] = pd.to_datetime(df[date_col])
            except (ValueError, TypeError) as e:
                raise ValueError(f"Cannot parse date column '{date_col}': {e}") from e

        df = df.sort_values(self.schema.key_columns, kind="mergesort").reset_index(drop=True)

        duplicates = int(df.duplicated(subset=self.schema.key_columns).sum())
        if duplicates:
            logger.warning(
                "Panel has duplicate (date, entity) rows",
                extra_data={"duplicates": duplicates},
            )

        return df
