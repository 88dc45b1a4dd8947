"""Live snapshot cache: latest statistics in Redis plus a pub/sub fan-out for dashboards."""

import json

from processor.snapshot import StatisticsSnapshot
from storage.redis_client import RedisClient


class SnapshotCache:
    """
    Stores the latest snapshot as JSON under one key and publishes it on a
    channel so dashboard listeners get every cycle's update.
    """

    def __init__(
        self,
        client: RedisClient,
        key: str = "logstats:snapshot:latest",
        channel: str = "channel:logstats_updates",
    ):
        self._client = client
        self._key = key
        self._channel = channel

    def render(self, snapshot: StatisticsSnapshot):
        payload = json.dumps(snapshot.as_dict())

        def _op(r):
            pipe = r.pipeline()
            pipe.set(self._key, payload)
            pipe.publish(self._channel, payload)
            pipe.execute()

        self._client.execute_with_retry(_op)

    def get_latest(self) -> dict | None:
        raw = self._client.execute_with_retry(lambda r: r.get(self._key))
        if raw is None:
            return None
        return json.loads(raw)
