"""Determinism utilities for reproducible walk-forward runs."""

import os
import random

import numpy as np


def set_random_seeds(seed: int = 42) -> None:
    """
    Set random seeds for Python and NumPy.

    Models that draw their own randomness should also receive the seed
    through their hyper-parameters (e.g. ``random_state``).

    Args:
        seed: Random seed value (default: 42)
    """
    random.seed(seed)
    np.random.seed(seed)
    os.environ["PYTHONHASHSEED"] = str(seed)


def validate_run_consistency(config) -> None:
    """
    Cross-check a run configuration beyond field-level validation.

    Args:
        config: RunConfig (or any object exposing the same sections)

    Raises:
        ValueError: If sections contradict each other
    """
    wf = getattr(config, "walk_forward", None)
    if wf is None:
        return

    # Tuning folds need purge_horizon >= label_horizon
    if getattr(config, "tuning", None) is not None and wf.purge_horizon < wf.label_horizon:
        raise ValueError(
            f"purge_horizon ({wf.purge_horizon}) must be >= label_horizon ({wf.label_horizon}) "
            "when tuning is enabled"
        )

    if wf.label_horizon >= wf.is_length:
        raise ValueError(
            f"label_horizon ({wf.label_horizon}) leaves no resolvable labels in an "
            f"is_length={wf.is_length} window"
        )
