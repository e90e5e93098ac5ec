"""Purged and embargoed K-fold splits inside one in-sample window.

Used only for hyper-parameter tuning within a window's in-sample range,
never for the final out-of-sample evaluation.

- Purge: drop the training positions immediately before a validation
  block, whose label horizons would reach into that block.
- Embargo: drop the training positions immediately after a validation
  block, which share serially correlated features with it.
"""

from dataclasses import dataclass, field
from typing import List, Sequence, Union

import numpy as np

from config.walk_forward import WalkForwardConfig
from training.errors import DegenerateFold
from utils.logger import get_validation_logger

logger = get_validation_logger()


@dataclass
class Fold:
    """
    One validation block and its purged/embargoed training complement.

    Attributes:
        fold_id: Position of the validation block within the IS range
        train_indices: Sorted TimeIndex positions used for training
        val_indices: Sorted TimeIndex positions used for validation
        purged: Positions removed before the validation block
        embargoed: Positions removed after the validation block
    """

    fold_id: int
    train_indices: np.ndarray
    val_indices: np.ndarray
    purged: np.ndarray = field(default_factory=lambda: np.empty(0, dtype=np.int64))
    embargoed: np.ndarray = field(default_factory=lambda: np.empty(0, dtype=np.int64))

    def validate(self) -> bool:
        """
        Check the fold is usable and disjoint.

        Raises:
            DegenerateFold: If either side is empty or they intersect
        """
        if len(self.val_indices) == 0:
            raise DegenerateFold(f"Fold {self.fold_id} has no validation positions")
        if len(self.train_indices) == 0:
            raise DegenerateFold(
                f"Fold {self.fold_id} has no training positions left after purge/embargo"
            )
        if np.intersect1d(self.train_indices, self.val_indices).size:
            raise DegenerateFold(f"Fold {self.fold_id} train and validation positions overlap")
        return True

    def __repr__(self) -> str:
        return (
            f"Fold({self.fold_id}: val[{self.val_indices[0]}..{self.val_indices[-1]}] "
            f"train={len(self.train_indices)} purged={len(self.purged)} "
            f"embargoed={len(self.embargoed)})"
        )


class PurgedEmbargoedFoldGenerator:
    """
    Splits an in-sample range into K contiguous validation blocks.

    Blocks keep time order (no shuffling). Together the K validation
    blocks partition the range; training sets differ per fold because of
    purge and embargo.
    """

    def __init__(self, k: int, purge_horizon: int = 0, embargo_horizon: int = 0):
        """
        Initialize fold generator.

        Args:
            k: Number of folds
            purge_horizon: Positions purged before each validation block
            embargo_horizon: Positions embargoed after each validation block
        """
        if purge_horizon < 0 or embargo_horizon < 0:
            raise ValueError("purge_horizon and embargo_horizon must be >= 0")

        self.k = k
        self.purge_horizon = purge_horizon
        self.embargo_horizon = embargo_horizon

    @classmethod
    def from_config(cls, config: WalkForwardConfig) -> "PurgedEmbargoedFoldGenerator":
        return cls(
            k=config.k_folds,
            purge_horizon=config.purge_horizon,
            embargo_horizon=config.embargo_horizon,
        )

    def generate_folds(self, is_range: Union[range, Sequence[int]]) -> List[Fold]:
        """
        Generate the K folds for an in-sample range.

        Args:
            is_range: Contiguous TimeIndex positions of the in-sample window

        Returns:
            List of K folds, in validation-block order

        Raises:
            DegenerateFold: If K is invalid for the range or any fold ends
                up with an empty train or validation set
        """
        positions = np.asarray(list(is_range), dtype=np.int64)

        if self.k < 2:
            raise DegenerateFold(f"k must be >= 2, got {self.k}")
        if len(positions) < self.k:
            raise DegenerateFold(
                f"Cannot split {len(positions)} in-sample positions into {self.k} folds"
            )
        if np.any(np.diff(positions) != 1):
            raise ValueError("is_range must be contiguous and increasing")

        folds = []
        for fold_id, block in enumerate(np.array_split(positions, self.k)):
            val_start, val_end = int(block[0]), int(block[-1])

            purge_zone = (positions >= val_start - self.purge_horizon) & (positions < val_start)
            embargo_zone = (positions > val_end) & (positions <= val_end + self.embargo_horizon)
            in_block = (positions >= val_start) & (positions <= val_end)

            fold = Fold(
                fold_id=fold_id,
                train_indices=positions[~(in_block | purge_zone | embargo_zone)],
                val_indices=block.copy(),
                purged=positions[purge_zone],
                embargoed=positions[embargo_zone],
            )
            fold.validate()
            folds.append(fold)

        logger.debug(
            f"Generated {len(folds)} purged folds",
            extra_data={
                "is_range": [int(positions[0]), int(positions[-1])],
                "purge_horizon": self.purge_horizon,
                "embargo_horizon": self.embargo_horizon,
                "train_sizes": [len(f.train_indices) for f in folds],
            },
        )
        return folds
