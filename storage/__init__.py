from .redis_client import RedisClient
from .checkpoint import Checkpoint, FileCheckpointStore, RedisCheckpointStore
from .cache import SnapshotCache

__all__ = [
    "RedisClient",
    "Checkpoint",
    "FileCheckpointStore",
    "RedisCheckpointStore",
    "SnapshotCache",
]
