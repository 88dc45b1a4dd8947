"""Immutable, render-ready statistics derived from cumulative and windowed aggregates."""

from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Mapping, TypeVar

from processor.aggregate import Aggregate

K = TypeVar("K", str, int)


def rank_top(counts: Mapping[K, int], n: int) -> tuple[tuple[K, int], ...]:
    """Highest counts first; equal counts ordered by key so output is deterministic."""
    ranked = sorted(counts.items(), key=lambda kv: (-kv[1], kv[0]))
    return tuple(ranked[:n])


@dataclass(frozen=True)
class StatisticsView:
    total_count: int
    average_content_size: float | None  # None means no sized records, not zero
    min_content_size: int | None
    max_content_size: int | None
    response_code_counts: Mapping[int, int]
    top_endpoints: tuple[tuple[str, int], ...]
    top_ips: tuple[tuple[str, int], ...]
    flagged_ips: tuple[str, ...]

    @classmethod
    def from_aggregate(
        cls, agg: Aggregate, top_n: int = 10, ip_flag_threshold: int = 10
    ) -> "StatisticsView":
        average = agg.content_size_sum / agg.sized_count if agg.sized_count else None
        return cls(
            total_count=agg.count,
            average_content_size=average,
            min_content_size=agg.content_size_min,
            max_content_size=agg.content_size_max,
            response_code_counts=MappingProxyType(dict(sorted(agg.status_counts.items()))),
            top_endpoints=rank_top(agg.endpoint_counts, top_n),
            top_ips=rank_top(agg.ip_counts, top_n),
            flagged_ips=tuple(
                sorted(ip for ip, n in agg.ip_counts.items() if n > ip_flag_threshold)
            ),
        )

    def as_dict(self) -> dict[str, Any]:
        return {
            "total_count": self.total_count,
            "average_content_size": self.average_content_size,
            "min_content_size": self.min_content_size,
            "max_content_size": self.max_content_size,
            "response_code_counts": {str(k): v for k, v in self.response_code_counts.items()},
            "top_endpoints": [{"endpoint": e, "count": n} for e, n in self.top_endpoints],
            "top_ips": [{"ip": ip, "count": n} for ip, n in self.top_ips],
            "flagged_ips": list(self.flagged_ips),
        }


@dataclass(frozen=True)
class StatisticsSnapshot:
    """One cycle's output: all-time and trailing-window views side by side."""

    cycle: int
    batch_timestamp: float
    cumulative: StatisticsView
    windowed: StatisticsView
    window_covered_sec: int
    window_length_sec: int

    @property
    def window_partial(self) -> bool:
        return self.window_covered_sec < self.window_length_sec

    @classmethod
    def build(
        cls,
        cycle: int,
        batch_timestamp: float,
        cumulative: Aggregate,
        windowed: Aggregate,
        window_covered_sec: int,
        window_length_sec: int,
        top_n: int = 10,
        ip_flag_threshold: int = 10,
    ) -> "StatisticsSnapshot":
        return cls(
            cycle=cycle,
            batch_timestamp=batch_timestamp,
            cumulative=StatisticsView.from_aggregate(cumulative, top_n, ip_flag_threshold),
            windowed=StatisticsView.from_aggregate(windowed, top_n, ip_flag_threshold),
            window_covered_sec=window_covered_sec,
            window_length_sec=window_length_sec,
        )

    def as_dict(self) -> dict[str, Any]:
        return {
            "cycle": self.cycle,
            "batch_timestamp": self.batch_timestamp,
            "window_covered_sec": self.window_covered_sec,
            "window_length_sec": self.window_length_sec,
            "window_partial": self.window_partial,
            "cumulative": self.cumulative.as_dict(),
            "windowed": self.windowed.as_dict(),
        }
