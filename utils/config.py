"""Configuration loading utilities."""

from pathlib import Path
from typing import Type, TypeVar

from config.backtest import BacktestConfig
from config.run import RunConfig
from config.walk_forward import WalkForwardConfig

T = TypeVar("T")


class ConfigLoader:
    """
    Utility class for loading configurations.

    Provides convenience methods for the config types a run needs and a
    fallback to defaults when no file is present.
    """

    @staticmethod
    def load_run(path: Path | str) -> RunConfig:
        """
        Load a complete run configuration from YAML.

        Args:
            path: Path to run config YAML

        Returns:
            Validated RunConfig instance
        """
        return RunConfig.from_yaml(path)

    @staticmethod
    def load_walk_forward(path: Path | str) -> WalkForwardConfig:
        """Load a standalone walk-forward configuration from YAML."""
        return WalkForwardConfig.from_yaml(path)

    @staticmethod
    def load_backtest(path: Path | str) -> BacktestConfig:
        """Load a standalone backtest configuration from YAML."""
        return BacktestConfig.from_yaml(path)

    @staticmethod
    def get_default_config_dir() -> Path:
        """
        Get default configuration directory.

        Returns:
            Path to configs directory at the project root
        """
        return Path(__file__).resolve().parent.parent / "configs"

    @staticmethod
    def load_default_backtest() -> BacktestConfig:
        """
        Load default backtest configuration.

        Returns:
            BacktestConfig from configs/backtest_default.yaml, or defaults
        """
        default_path = ConfigLoader.get_default_config_dir() / "backtest_default.yaml"

        if default_path.exists():
            return BacktestConfig.from_yaml(default_path)
        return BacktestConfig()


def load_config(path: Path | str, config_class: Type[T]) -> T:
    """
    Generic configuration loader.

    Args:
        path: Path to config YAML file
        config_class: Configuration class to instantiate

    Returns:
        Loaded and validated configuration instance

    Example:
        >>> from config.run import RunConfig
        >>> config = load_config("configs/example_run.yaml", RunConfig)
    """
    return config_class.from_yaml(path)
