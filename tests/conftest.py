"""Shared test fixtures."""

from datetime import datetime, timezone

import pytest

from config import Settings
from ingestion.schemas import AccessLogRecord


@pytest.fixture
def settings(tmp_path):
    """Test settings pointing every directory at a temp dir."""
    return Settings(
        logs_directory=str(tmp_path / "logs"),
        output_html_file=str(tmp_path / "out" / "stats.html"),
        checkpoint_directory=str(tmp_path / "checkpoints"),
        window_length_sec=30,
        slide_interval_sec=10,
        checkpoint_every_cycles=2,
        redis_url="redis://localhost:6379/1",
        log_level="WARNING",
    )


@pytest.fixture
def make_record():
    """Factory for records with sensible defaults."""

    def _make(endpoint="/index", code=200, size=None, ip="10.0.0.1"):
        return AccessLogRecord(
            ip_address=ip,
            timestamp=datetime(2024, 3, 7, 16, 5, 49, tzinfo=timezone.utc),
            method="GET",
            endpoint=endpoint,
            protocol="HTTP/1.1",
            response_code=code,
            content_size=size,
        )

    return _make


class FakePipeline:
    def __init__(self, fake):
        self._fake = fake
        self._ops = []

    def set(self, key, value):
        self._ops.append(("set", key, value))
        return self

    def publish(self, channel, message):
        self._ops.append(("publish", channel, message))
        return self

    def execute(self):
        results = []
        for op, key, value in self._ops:
            results.append(getattr(self._fake, op)(key, value))
        self._ops.clear()
        return results


class FakeRedis:
    """In-memory stand-in for the few Redis commands the storage layer uses."""

    def __init__(self):
        self.data: dict[str, bytes] = {}
        self.published: list[tuple[str, str]] = []

    @staticmethod
    def _encode(value):
        return value.encode("utf-8") if isinstance(value, str) else value

    def set(self, key, value):
        self.data[key] = self._encode(value)
        return True

    def get(self, key):
        return self.data.get(key)

    def publish(self, channel, message):
        self.published.append((channel, message))
        return 1

    def pipeline(self):
        return FakePipeline(self)

    def ping(self):
        return True


@pytest.fixture
def fake_redis():
    return FakeRedis()
