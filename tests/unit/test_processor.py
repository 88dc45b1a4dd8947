"""End-to-end cycle tests for the processor driver."""

import pytest
import redis

from processor.cumulative import CumulativeTracker
from processor.main import LogStatsProcessor, build_processor, main, parse_args
from storage.checkpoint import FileCheckpointStore, RedisCheckpointStore
from storage.redis_client import RedisClient


class RecordingRenderer:
    def __init__(self):
        self.snapshots = []

    def render(self, snapshot):
        self.snapshots.append(snapshot)


class FailingRenderer:
    def render(self, snapshot):
        raise OSError("disk full")


@pytest.fixture
def renderer():
    return RecordingRenderer()


@pytest.fixture
def processor(settings, renderer):
    tracker = CumulativeTracker(
        FileCheckpointStore(settings.checkpoint_directory),
        checkpoint_every=settings.checkpoint_every_cycles,
        background=False,
        log_level="WARNING",
    )
    return LogStatsProcessor(settings, tracker, [renderer])


class TestProcessBatch:
    def test_two_batch_scenario(self, processor, make_record):
        processor.process_batch(10.0, [
            make_record("/index", 200, 500),
            make_record("/index", 200, 700),
        ])
        snap = processor.process_batch(20.0, [make_record("/login", 404, None)])

        view = snap.cumulative
        assert view.total_count == 3
        assert dict(view.response_code_counts) == {200: 2, 404: 1}
        assert view.average_content_size == 600
        assert view.top_endpoints == (("/index", 2), ("/login", 1))

    def test_partial_window_after_two_cycles(self, processor, make_record):
        processor.process_batch(10.0, [make_record() for _ in range(2)])
        snap = processor.process_batch(20.0, [make_record() for _ in range(3)])
        assert snap.windowed.total_count == 5
        assert snap.window_covered_sec == 20
        assert snap.window_partial

    def test_window_slides_while_cumulative_grows(self, processor, make_record):
        for i in range(1, 6):
            snap = processor.process_batch(i * 10.0, [make_record() for _ in range(i)])
        assert snap.cumulative.total_count == 15
        assert snap.windowed.total_count == 3 + 4 + 5
        assert not snap.window_partial

    def test_snapshot_published_each_cycle(self, processor, renderer, make_record):
        for i in range(3):
            processor.process_batch(10.0 * (i + 1), [make_record()])
        assert [s.cycle for s in renderer.snapshots] == [1, 2, 3]
        assert processor.latest_snapshot is renderer.snapshots[-1]

    def test_earlier_snapshot_unchanged_by_later_cycles(self, processor, make_record):
        first = processor.process_batch(10.0, [make_record("/a")])
        processor.process_batch(20.0, [make_record("/b")])
        assert first.cumulative.total_count == 1
        assert first.cumulative.top_endpoints == (("/a", 1),)

    def test_renderer_failure_does_not_stop_cycle(self, settings, make_record):
        recording = RecordingRenderer()
        tracker = CumulativeTracker(
            FileCheckpointStore(settings.checkpoint_directory), background=False
        )
        proc = LogStatsProcessor(settings, tracker, [FailingRenderer(), recording])
        proc.process_batch(10.0, [make_record()])
        assert len(recording.snapshots) == 1

    def test_checkpoint_written_on_cadence(self, settings, processor, make_record):
        processor.process_batch(10.0, [make_record()])
        processor.process_batch(20.0, [make_record()])
        restored = FileCheckpointStore(settings.checkpoint_directory).load()
        assert restored.cycle == 2
        assert restored.aggregate.count == 2


class TestWiring:
    def test_parse_args_maps_flags(self):
        overrides = parse_args(["--window_length", "60", "--slide_interval", "5"])
        assert overrides == {"window_length_sec": 60, "slide_interval_sec": 5}

    def test_invalid_configuration_exits_nonzero(self):
        assert main(["--window_length", "25", "--slide_interval", "10"]) == 2

    def test_build_processor_resumes_from_checkpoint(self, settings, make_record):
        first = build_processor(settings)
        first.process_batch(10.0, [make_record()])
        first.process_batch(20.0, [make_record()])
        first.close()

        second = build_processor(settings)
        snap = second.process_batch(30.0, [make_record()])
        assert snap.cycle == 3
        assert snap.cumulative.total_count == 3
        assert snap.windowed.total_count == 1

    def test_redis_backend_checkpoints_to_redis(self, settings, fake_redis, make_record):
        redis_settings = settings.model_copy(update={"checkpoint_backend": "redis"})
        client = RedisClient(redis_settings, client=fake_redis)
        proc = build_processor(redis_settings, redis_client=client)
        proc.process_batch(10.0, [make_record()])
        proc.process_batch(20.0, [make_record()])
        proc.close()

        restored = RedisCheckpointStore(client, key=redis_settings.redis_checkpoint_key).load()
        assert restored.cycle == 2
        assert restored.aggregate.count == 2

    def test_unreachable_redis_still_starts_from_empty(self, settings, monkeypatch, make_record):
        monkeypatch.setattr("storage.redis_client.time.sleep", lambda _: None)

        class DownRedis:
            def ping(self):
                raise redis.ConnectionError("connection refused")

            def get(self, key):
                return self.ping()

        redis_settings = settings.model_copy(update={"checkpoint_backend": "redis"})
        client = RedisClient(redis_settings, client=DownRedis())
        proc = build_processor(redis_settings, redis_client=client)
        snap = proc.process_batch(10.0, [make_record()])
        assert snap.cycle == 1
        assert snap.cumulative.total_count == 1
