"""Mergeable accumulator of counts, content-size stats and frequency maps for a set of records."""

from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Iterable

from ingestion.schemas import AccessLogRecord


def _sorted_counts(counts) -> dict:
    return {k: counts[k] for k in sorted(counts)}


def _merge_counts(left: dict, right: dict) -> dict:
    merged = Counter(left)
    merged.update(right)
    return _sorted_counts(merged)


def _pick(fn, a: int | None, b: int | None) -> int | None:
    if a is None:
        return b
    if b is None:
        return a
    return fn(a, b)


@dataclass(frozen=True)
class Aggregate:
    """
    Commutative, associative accumulator over access-log records.

    Records without a content size are counted in ``count`` but excluded from
    the size sum/min/max; ``sized_count`` tracks how many records did carry
    a size. Min/max use ``None`` as the "never saw a sized record" sentinel.
    Map fields are kept key-sorted so equal contents compare and serialize
    identically whatever order the records were folded in.
    """

    count: int = 0
    sized_count: int = 0
    content_size_sum: int = 0
    content_size_min: int | None = None
    content_size_max: int | None = None
    status_counts: dict[int, int] = field(default_factory=dict)
    endpoint_counts: dict[str, int] = field(default_factory=dict)
    ip_counts: dict[str, int] = field(default_factory=dict)

    @classmethod
    def empty(cls) -> "Aggregate":
        return cls()

    @classmethod
    def from_records(cls, records: Iterable[AccessLogRecord]) -> "Aggregate":
        """Fold records into a single aggregate in one pass."""
        statuses: Counter[int] = Counter()
        endpoints: Counter[str] = Counter()
        ips: Counter[str] = Counter()
        count = sized = total = 0
        lo: int | None = None
        hi: int | None = None

        for record in records:
            count += 1
            statuses[record.response_code] += 1
            endpoints[record.endpoint] += 1
            ips[record.ip_address] += 1

            size = record.content_size
            if size is None:
                continue
            sized += 1
            total += size
            lo = size if lo is None else min(lo, size)
            hi = size if hi is None else max(hi, size)

        return cls(
            count=count,
            sized_count=sized,
            content_size_sum=total,
            content_size_min=lo,
            content_size_max=hi,
            status_counts=_sorted_counts(statuses),
            endpoint_counts=_sorted_counts(endpoints),
            ip_counts=_sorted_counts(ips),
        )

    def merge(self, other: "Aggregate") -> "Aggregate":
        """Return a new aggregate equivalent to folding both underlying record sets."""
        return Aggregate(
            count=self.count + other.count,
            sized_count=self.sized_count + other.sized_count,
            content_size_sum=self.content_size_sum + other.content_size_sum,
            content_size_min=_pick(min, self.content_size_min, other.content_size_min),
            content_size_max=_pick(max, self.content_size_max, other.content_size_max),
            status_counts=_merge_counts(self.status_counts, other.status_counts),
            endpoint_counts=_merge_counts(self.endpoint_counts, other.endpoint_counts),
            ip_counts=_merge_counts(self.ip_counts, other.ip_counts),
        )

    __add__ = merge

    @property
    def is_empty(self) -> bool:
        return self.count == 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "count": self.count,
            "sized_count": self.sized_count,
            "content_size_sum": self.content_size_sum,
            "content_size_min": self.content_size_min,
            "content_size_max": self.content_size_max,
            "status_counts": dict(self.status_counts),
            "endpoint_counts": dict(self.endpoint_counts),
            "ip_counts": dict(self.ip_counts),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Aggregate":
        return cls(
            count=int(data["count"]),
            sized_count=int(data["sized_count"]),
            content_size_sum=int(data["content_size_sum"]),
            content_size_min=data["content_size_min"],
            content_size_max=data["content_size_max"],
            status_counts=_sorted_counts({int(k): int(v) for k, v in data["status_counts"].items()}),
            endpoint_counts=_sorted_counts({str(k): int(v) for k, v in data["endpoint_counts"].items()}),
            ip_counts=_sorted_counts({str(k): int(v) for k, v in data["ip_counts"].items()}),
        )


def merge_all(aggregates: Iterable[Aggregate]) -> Aggregate:
    """Fold any number of aggregates, starting from the identity."""
    result = Aggregate.empty()
    for agg in aggregates:
        result = result.merge(agg)
    return result
