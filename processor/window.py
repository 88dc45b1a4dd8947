"""Sliding-window statistics over the most recent batches."""

from collections import deque

from processor.aggregate import Aggregate, merge_all
from processor.errors import ConfigurationError


class WindowTracker:
    """
    FIFO of per-batch aggregates covering the trailing window.

    Batches arrive every ``slide_interval`` seconds, so the window holds at
    most ``window_length / slide_interval`` of them. The merged aggregate is
    rebuilt from the retained batches on each admission: map counts and
    min/max cannot be safely subtracted out on eviction.
    """

    def __init__(self, window_length: int, slide_interval: int):
        if window_length <= 0 or slide_interval <= 0:
            raise ConfigurationError(
                f"window_length ({window_length}) and slide_interval "
                f"({slide_interval}) must be positive"
            )
        if window_length % slide_interval != 0:
            raise ConfigurationError(
                f"window_length ({window_length}) must be a multiple of "
                f"slide_interval ({slide_interval})"
            )
        self.window_length = window_length
        self.slide_interval = slide_interval
        self._entries: deque[tuple[float, Aggregate]] = deque()
        self._merged = Aggregate.empty()

    @property
    def max_batches(self) -> int:
        return self.window_length // self.slide_interval

    def admit(self, batch_timestamp: float, batch: Aggregate) -> Aggregate:
        """Add the newest batch, drop batches that fell out, return the window aggregate."""
        self._entries.append((batch_timestamp, batch))
        cutoff = batch_timestamp - self.window_length + self.slide_interval
        while self._entries and self._entries[0][0] < cutoff:
            self._entries.popleft()
        self._merged = merge_all(agg for _, agg in self._entries)
        return self._merged

    @property
    def aggregate(self) -> Aggregate:
        return self._merged

    @property
    def batch_count(self) -> int:
        return len(self._entries)

    @property
    def covered_duration(self) -> int:
        return len(self._entries) * self.slide_interval

    @property
    def is_partial(self) -> bool:
        return self.covered_duration < self.window_length

    @property
    def timestamps(self) -> list[float]:
        return [ts for ts, _ in self._entries]
