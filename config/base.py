"""Base configuration class."""

from pathlib import Path
from typing import Any, Dict

import yaml
from pydantic import BaseModel, ConfigDict


class BaseConfig(BaseModel):
    """
    Base configuration class with common functionality.

    All config classes inherit from this to get:
    - Validation and type checking
    - YAML loading/saving
    - Rejection of unknown fields (catches typos in run files)
    """

    model_config = ConfigDict(
        frozen=False,
        extra="forbid",
        validate_assignment=True,
        arbitrary_types_allowed=True,
        use_enum_values=False,
    )

    @classmethod
    def from_yaml(cls, path: Path | str) -> "BaseConfig":
        """
        Load configuration from YAML file.

        Args:
            path: Path to YAML configuration file

        Returns:
            Validated configuration instance

        Raises:
            FileNotFoundError: If config file doesn't exist
            ValueError: If config is invalid
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")

        with open(path, "r") as f:
            data = yaml.safe_load(f) or {}

        return cls.from_dict(data)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BaseConfig":
        """Build a validated configuration from a plain mapping."""
        return cls.model_validate(data)

    def to_yaml(self, path: Path | str) -> None:
        """
        Save configuration to YAML file.

        Args:
            path: Path to save YAML configuration
        """
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)

        with open(path, "w") as f:
            yaml.safe_dump(self.to_dict(), f, default_flow_style=False, sort_keys=False)

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to a JSON/YAML friendly dictionary."""
        return self.model_dump(mode="json")

    def update(self, **kwargs) -> "BaseConfig":
        """
        Create new configuration with updated values.

        Args:
            **kwargs: Fields to update

        Returns:
            New configuration instance with updates
        """
        data = self.model_dump()
        data.update(kwargs)
        return self.__class__(**data)
