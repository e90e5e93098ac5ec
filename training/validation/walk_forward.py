"""Walk-forward window scheduling.

Partitions a TimeIndex into successive (in-sample, out-of-sample) window
pairs. Windows are expressed as TimeIndex positions, so the same schedule
can slice features, labels and prices consistently.
"""

from dataclasses import dataclass
from typing import Iterator, List, Optional, Union

from config.walk_forward import HistoryPolicy, WalkForwardConfig
from data.time_index import TimeIndex
from training.errors import InsufficientHistory
from utils.logger import get_validation_logger

logger = get_validation_logger()


@dataclass(frozen=True)
class Window:
    """
    One in-sample/out-of-sample pair of TimeIndex position ranges.

    Attributes:
        window_id: Order in which the scheduler produced the window
        is_start: First in-sample position
        is_end: Last in-sample position
        oos_start: First out-of-sample position
        oos_end: Last out-of-sample position
    """

    window_id: int
    is_start: int
    is_end: int
    oos_start: int
    oos_end: int

    def __post_init__(self):
        self.validate()

    def validate(self) -> bool:
        """
        Validate that the window has no temporal overlap.

        Returns:
            True if valid

        Raises:
            ValueError: If the ordering is violated
        """
        if self.is_start < 0:
            raise ValueError(f"Window {self.window_id}: is_start ({self.is_start}) < 0")
        if self.is_start > self.is_end:
            raise ValueError(f"Window {self.window_id}: is_start > is_end")
        if self.is_end >= self.oos_start:
            raise ValueError(
                f"Data leakage detected in window {self.window_id}: "
                f"is_end ({self.is_end}) >= oos_start ({self.oos_start})"
            )
        if self.oos_start > self.oos_end:
            raise ValueError(f"Window {self.window_id}: oos_start > oos_end")
        return True

    @property
    def is_range(self) -> range:
        """In-sample positions."""
        return range(self.is_start, self.is_end + 1)

    @property
    def oos_range(self) -> range:
        """Out-of-sample positions."""
        return range(self.oos_start, self.oos_end + 1)

    @property
    def is_length(self) -> int:
        return self.is_end - self.is_start + 1

    @property
    def oos_length(self) -> int:
        return self.oos_end - self.oos_start + 1

    def describe(self, time_index: TimeIndex) -> str:
        """Human-readable description with dates."""
        return (
            f"Window {self.window_id}: "
            f"IS[{time_index[self.is_start]} -> {time_index[self.is_end]}] "
            f"OOS[{time_index[self.oos_start]} -> {time_index[self.oos_end]}]"
        )

    def __repr__(self) -> str:
        return (
            f"Window({self.window_id}: IS[{self.is_start}..{self.is_end}] "
            f"OOS[{self.oos_start}..{self.oos_end}])"
        )


class WindowSchedule:
    """
    Lazy, finite and restartable sequence of windows.

    Each iteration regenerates the windows from the scheduler parameters,
    so a schedule can be consumed any number of times.
    """

    def __init__(self, scheduler: "WalkForwardScheduler", n_positions: int):
        self._scheduler = scheduler
        self._n_positions = n_positions

    def __iter__(self) -> Iterator[Window]:
        return self._scheduler._iter_windows(self._n_positions)

    def __len__(self) -> int:
        return sum(1 for _ in self)

    def to_list(self) -> List[Window]:
        return list(self)

    @property
    def n_positions(self) -> int:
        return self._n_positions


class WalkForwardScheduler:
    """
    Rolls an IS/OOS window pair forward through a TimeIndex.

    Window i+1's ``oos_start`` is window i's ``oos_start + step``. With
    ``step < oos_length`` OOS ranges overlap (the stitcher resolves that);
    with ``step == oos_length`` they partition the evaluated range. A
    trailing window whose OOS range would run past the last position is
    never emitted.
    """

    def __init__(
        self,
        is_length: int,
        oos_length: int,
        step: int,
        min_is_length: Optional[int] = None,
        policy: Union[HistoryPolicy, str] = HistoryPolicy.STRICT,
        anchored: bool = False,
        gap: int = 0,
    ):
        """
        Initialize scheduler.

        Args:
            is_length: In-sample length in positions
            oos_length: Out-of-sample length in positions
            step: Distance between consecutive OOS starts
            min_is_length: Shortest IS range accepted under ``expanding``
            policy: ``strict`` drops windows with less than ``is_length``
                history; ``expanding`` truncates them down to ``min_is_length``
            anchored: Keep ``is_start`` at 0 for every window
            gap: Positions skipped between ``is_end`` and ``oos_start``
        """
        for name, value in (("is_length", is_length), ("oos_length", oos_length), ("step", step)):
            if value <= 0:
                raise ValueError(f"{name} must be positive, got {value}")
        if gap < 0:
            raise ValueError(f"gap must be >= 0, got {gap}")

        self.is_length = is_length
        self.oos_length = oos_length
        self.step = step
        self.min_is_length = min_is_length if min_is_length is not None else is_length
        self.policy = HistoryPolicy(policy)
        self.anchored = anchored
        self.gap = gap

        if not 0 < self.min_is_length <= is_length:
            raise ValueError(
                f"min_is_length must be in [1, is_length], got {self.min_is_length}"
            )

    @classmethod
    def from_config(cls, config: WalkForwardConfig) -> "WalkForwardScheduler":
        """Build a scheduler from a run configuration."""
        return cls(
            is_length=config.is_length,
            oos_length=config.oos_length,
            step=config.step,
            min_is_length=config.min_is_length,
            policy=config.history_policy,
            anchored=config.anchored,
            gap=config.gap,
        )

    def schedule(self, time_index: Union[TimeIndex, int]) -> WindowSchedule:
        """
        Produce the windows for a TimeIndex.

        Args:
            time_index: TimeIndex (or its length)

        Returns:
            Restartable WindowSchedule

        Raises:
            InsufficientHistory: If not a single window fits
        """
        n_positions = time_index if isinstance(time_index, int) else len(time_index)
        schedule = WindowSchedule(self, n_positions)

        n_windows = len(schedule)
        if n_windows == 0:
            required = self._first_oos_start() + self.oos_length
            raise InsufficientHistory(
                f"Insufficient history: {n_positions} positions < {required} required "
                f"(is_length={self.is_length}, oos_length={self.oos_length}, gap={self.gap}, "
                f"policy={self.policy.value})"
            )

        logger.info(
            f"Scheduled {n_windows} walk-forward windows",
            extra_data={
                "positions": n_positions,
                "is_length": self.is_length,
                "oos_length": self.oos_length,
                "step": self.step,
                "policy": self.policy.value,
                "anchored": self.anchored,
            },
        )
        return schedule

    def _first_oos_start(self) -> int:
        history = self.min_is_length if self.policy == HistoryPolicy.EXPANDING else self.is_length
        return history + self.gap

    def _iter_windows(self, n_positions: int) -> Iterator[Window]:
        window_id = 0
        oos_start = self._first_oos_start()

        while True:
            oos_end = oos_start + self.oos_length - 1
            if oos_end > n_positions - 1:
                break

            is_end = oos_start - self.gap - 1
            is_start = 0 if self.anchored else max(0, is_end - self.is_length + 1)
            available = is_end - is_start + 1

            required = self.is_length if self.policy == HistoryPolicy.STRICT else self.min_is_length
            if available < required:
                logger.debug(
                    "Dropped window with short in-sample history",
                    extra_data={"oos_start": oos_start, "available": available},
                )
            else:
                yield Window(
                    window_id=window_id,
                    is_start=is_start,
                    is_end=is_end,
                    oos_start=oos_start,
                    oos_end=oos_end,
                )
                window_id += 1

            oos_start += self.step
