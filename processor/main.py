"""Log statistics processor: one cycle per slide interval to ingest, aggregate, publish and checkpoint."""

import argparse
import signal
import sys
import threading
import time
from typing import Iterable, Protocol

from config import Settings, configure_logging, load_settings
from ingestion.schemas import AccessLogRecord
from ingestion.source import DirectorySource
from output.html_renderer import HtmlRenderer
from processor.aggregate import Aggregate
from processor.cumulative import CumulativeTracker
from processor.errors import ConfigurationError
from processor.snapshot import StatisticsSnapshot
from processor.window import WindowTracker
from storage.cache import SnapshotCache
from storage.checkpoint import FileCheckpointStore, RedisCheckpointStore
from storage.redis_client import RedisClient


class Renderer(Protocol):
    def render(self, snapshot: StatisticsSnapshot) -> None: ...


class LogStatsProcessor:
    """
    Wires together: DirectorySource → batch Aggregate → cumulative + window
    trackers → StatisticsSnapshot → renderers.

    Cycles run strictly one after another on the calling thread; only the
    checkpoint write happens in the background.
    """

    def __init__(
        self,
        settings: Settings,
        tracker: CumulativeTracker,
        renderers: list[Renderer],
        source: DirectorySource | None = None,
        redis_client: RedisClient | None = None,
    ):
        self.settings = settings
        self.log = configure_logging("log-stats-processor", settings.log_level)
        self._tracker = tracker
        self._window = WindowTracker(settings.window_length_sec, settings.slide_interval_sec)
        self._renderers = renderers
        self._source = source
        self._redis = redis_client
        self._stop = threading.Event()
        self._latest: StatisticsSnapshot | None = None

    @property
    def latest_snapshot(self) -> StatisticsSnapshot | None:
        return self._latest

    def process_batch(
        self, batch_timestamp: float, records: Iterable[AccessLogRecord]
    ) -> StatisticsSnapshot:
        """Fold one batch into both views and publish the resulting snapshot."""
        batch = Aggregate.from_records(records)
        cumulative = self._tracker.advance(batch)
        windowed = self._window.admit(batch_timestamp, batch)

        snapshot = StatisticsSnapshot.build(
            cycle=self._tracker.cycle,
            batch_timestamp=batch_timestamp,
            cumulative=cumulative,
            windowed=windowed,
            window_covered_sec=self._window.covered_duration,
            window_length_sec=self._window.window_length,
            top_n=self.settings.top_n,
            ip_flag_threshold=self.settings.ip_flag_threshold,
        )
        self._latest = snapshot
        self._publish(snapshot)
        self._tracker.maybe_checkpoint()

        self.log.info(
            "cycle_processed",
            cycle=snapshot.cycle,
            batch_records=batch.count,
            cumulative_count=cumulative.count,
            window_count=windowed.count,
            window_partial=snapshot.window_partial,
        )
        return snapshot

    def _publish(self, snapshot: StatisticsSnapshot):
        for renderer in self._renderers:
            try:
                renderer.render(snapshot)
            except Exception as e:
                self.log.error(
                    "render_error",
                    renderer=type(renderer).__name__,
                    cycle=snapshot.cycle,
                    error=str(e),
                )

    def stop(self, signum=None, frame=None):
        if signum is not None:
            self.log.info("shutdown_signal", signal=signum)
        self._stop.set()

    def run(self):
        """Poll the source once per slide interval until stopped, then flush the checkpoint."""
        if self._source is None:
            raise ConfigurationError("run() requires a record source")

        interval = self.settings.slide_interval_sec
        next_batch = time.time() + interval
        self.log.info(
            "log_stats_processor_starting",
            logs_directory=self.settings.logs_directory,
            window_length_sec=self.settings.window_length_sec,
            slide_interval_sec=interval,
            resumed_cycle=self._tracker.cycle,
        )
        try:
            while not self._stop.wait(max(0.0, next_batch - time.time())):
                self.process_batch(next_batch, self._source.poll())
                next_batch += interval
        finally:
            self.close()

    def close(self):
        """Flush the pending checkpoint synchronously and release connections."""
        self._tracker.close(timeout=self.settings.checkpoint_write_timeout_sec)
        if self._redis is not None:
            self._redis.close()
        self.log.info(
            "log_stats_processor_stopped",
            cycle=self._tracker.cycle,
            committed_cycle=self._tracker.committed_cycle,
        )


def parse_args(argv: list[str] | None = None) -> dict:
    """Command-line flags override the LOGSTATS_* environment."""
    parser = argparse.ArgumentParser(description="Streaming access-log statistics")
    parser.add_argument("--logs_directory", help="The directory where logs are written")
    parser.add_argument("--output_html_file", help="Where to write output html file")
    parser.add_argument("--window_length", type=int, help="The window length in seconds")
    parser.add_argument("--slide_interval", type=int, help="The slide interval in seconds")
    parser.add_argument("--checkpoint_directory", help="The checkpoint directory")
    parser.add_argument("--checkpoint_every", type=int, help="Checkpoint cadence in cycles")
    args = parser.parse_args(argv)

    mapping = {
        "logs_directory": args.logs_directory,
        "output_html_file": args.output_html_file,
        "window_length_sec": args.window_length,
        "slide_interval_sec": args.slide_interval,
        "checkpoint_directory": args.checkpoint_directory,
        "checkpoint_every_cycles": args.checkpoint_every,
    }
    return {k: v for k, v in mapping.items() if v is not None}


def build_processor(
    settings: Settings, redis_client: RedisClient | None = None
) -> LogStatsProcessor:
    renderers: list[Renderer] = [
        HtmlRenderer(settings.output_html_file, refresh_sec=settings.slide_interval_sec)
    ]

    uses_redis = settings.checkpoint_backend == "redis" or settings.publish_snapshots
    if not uses_redis:
        redis_client = None
    elif redis_client is None:
        redis_client = RedisClient(settings)
    if redis_client is not None and not redis_client.ping():
        configure_logging("log-stats-processor", settings.log_level).warning(
            "redis_unreachable",
            url=settings.redis_url,
            checkpoint_backend=settings.checkpoint_backend,
        )
    if settings.publish_snapshots:
        renderers.append(
            SnapshotCache(
                redis_client,
                key=settings.redis_snapshot_key,
                channel=settings.redis_snapshot_channel,
            )
        )

    if settings.checkpoint_backend == "redis":
        store = RedisCheckpointStore(redis_client, key=settings.redis_checkpoint_key)
    else:
        store = FileCheckpointStore(settings.checkpoint_directory)

    tracker = CumulativeTracker.from_store(
        store,
        checkpoint_every=settings.checkpoint_every_cycles,
        log_level=settings.log_level,
    )
    source = DirectorySource(settings.logs_directory, log_level=settings.log_level)
    return LogStatsProcessor(
        settings, tracker, renderers, source=source, redis_client=redis_client
    )


def main(argv: list[str] | None = None) -> int:
    try:
        settings = load_settings(**parse_args(argv))
    except ConfigurationError as e:
        configure_logging("log-stats-processor").error("configuration_invalid", error=str(e))
        return 2

    processor = build_processor(settings)
    signal.signal(signal.SIGTERM, processor.stop)
    signal.signal(signal.SIGINT, processor.stop)
    processor.run()
    return 0


if __name__ == "__main__":
    sys.exit(main())
