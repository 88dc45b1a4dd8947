"""Tests for derived statistics and rankings."""

import pytest

from processor.aggregate import Aggregate
from processor.snapshot import StatisticsSnapshot, StatisticsView, rank_top


class TestRankTop:
    def test_descending_by_count(self):
        assert rank_top({"a": 1, "b": 5, "c": 3}, 10) == (("b", 5), ("c", 3), ("a", 1))

    def test_ties_broken_lexicographically(self):
        assert rank_top({"b": 2, "a": 2}, 10) == (("a", 2), ("b", 2))
        assert rank_top({"a": 2, "b": 2}, 10) == (("a", 2), ("b", 2))

    def test_truncates_to_n(self):
        counts = {f"/p{i:02d}": 100 - i for i in range(20)}
        ranked = rank_top(counts, 10)
        assert len(ranked) == 10
        assert ranked[0] == ("/p00", 100)

    def test_empty(self):
        assert rank_top({}, 10) == ()


class TestStatisticsView:
    def test_average_over_sized_records_only(self, make_record):
        agg = Aggregate.from_records([
            make_record(size=500), make_record(size=700), make_record(size=None, code=404),
        ])
        view = StatisticsView.from_aggregate(agg)
        assert view.total_count == 3
        assert view.average_content_size == 600
        assert view.min_content_size == 500
        assert view.max_content_size == 700

    def test_no_sized_records_means_no_average(self, make_record):
        view = StatisticsView.from_aggregate(Aggregate.from_records([make_record(size=None)]))
        assert view.average_content_size is None
        assert view.min_content_size is None

    def test_empty_aggregate(self):
        view = StatisticsView.from_aggregate(Aggregate.empty())
        assert view.total_count == 0
        assert view.average_content_size is None
        assert view.top_endpoints == ()
        assert dict(view.response_code_counts) == {}

    def test_response_codes_complete(self, make_record):
        codes = [200, 201, 204, 301, 302, 304, 400, 401, 403, 404, 500, 502, 503]
        agg = Aggregate.from_records([make_record(code=c) for c in codes])
        view = StatisticsView.from_aggregate(agg, top_n=2)
        assert list(view.response_code_counts) == codes

    def test_response_codes_read_only(self, make_record):
        view = StatisticsView.from_aggregate(Aggregate.from_records([make_record()]))
        with pytest.raises(TypeError):
            view.response_code_counts[500] = 1

    def test_flagged_ips_exceed_threshold(self, make_record):
        records = [make_record(ip="9.9.9.9") for _ in range(11)]
        records += [make_record(ip="1.1.1.1") for _ in range(10)]
        records += [make_record(ip="5.5.5.5") for _ in range(12)]
        view = StatisticsView.from_aggregate(Aggregate.from_records(records), ip_flag_threshold=10)
        assert view.flagged_ips == ("5.5.5.5", "9.9.9.9")

    def test_as_dict_is_json_ready(self, make_record):
        view = StatisticsView.from_aggregate(Aggregate.from_records([make_record(size=3)]))
        data = view.as_dict()
        assert data["response_code_counts"] == {"200": 1}
        assert data["top_endpoints"] == [{"endpoint": "/index", "count": 1}]


class TestStatisticsSnapshot:
    def test_partial_flag(self):
        snap = StatisticsSnapshot.build(
            cycle=2,
            batch_timestamp=20.0,
            cumulative=Aggregate.empty(),
            windowed=Aggregate.empty(),
            window_covered_sec=20,
            window_length_sec=30,
        )
        assert snap.window_partial
        assert snap.as_dict()["window_partial"] is True

    def test_views_are_independent(self, make_record):
        cumulative = Aggregate.from_records([make_record() for _ in range(5)])
        windowed = Aggregate.from_records([make_record()])
        snap = StatisticsSnapshot.build(1, 10.0, cumulative, windowed, 30, 30)
        assert snap.cumulative.total_count == 5
        assert snap.windowed.total_count == 1
        assert not snap.window_partial
