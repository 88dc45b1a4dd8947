"""Checkpoint persistence for cumulative statistics, as msgpack frames written atomically."""

import os
import struct
import tempfile
import zlib
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

import msgpack
import redis

from processor.aggregate import Aggregate
from processor.errors import CheckpointRestoreError, CheckpointWriteError
from storage.redis_client import CircuitOpenError, RedisClient

CHECKPOINT_MAGIC = b"LSCP"
CHECKPOINT_VERSION = 1
CHECKPOINT_HEADER_SIZE = 16
CHECKPOINT_FILENAME = "cumulative.ckpt"


@dataclass(frozen=True)
class Checkpoint:
    aggregate: Aggregate
    cycle: int


def encode_checkpoint(checkpoint: Checkpoint) -> bytes:
    """Frame = magic | version | payload length | crc32 | msgpack payload."""
    payload = msgpack.packb(
        {"cycle": checkpoint.cycle, "aggregate": checkpoint.aggregate.to_dict()},
        use_bin_type=True,
    )
    crc = zlib.crc32(payload) & 0xFFFFFFFF
    header = CHECKPOINT_MAGIC + struct.pack(">III", CHECKPOINT_VERSION, len(payload), crc)
    return header + payload


def decode_checkpoint(data: bytes) -> Checkpoint:
    if len(data) < CHECKPOINT_HEADER_SIZE:
        raise CheckpointRestoreError("Checkpoint too small")

    magic = data[:4]
    if magic != CHECKPOINT_MAGIC:
        raise CheckpointRestoreError(f"Invalid checkpoint magic: {magic!r}")

    version, length, stored_crc = struct.unpack(">III", data[4:CHECKPOINT_HEADER_SIZE])
    if version != CHECKPOINT_VERSION:
        raise CheckpointRestoreError(f"Unsupported checkpoint version: {version}")

    payload = data[CHECKPOINT_HEADER_SIZE : CHECKPOINT_HEADER_SIZE + length]
    if len(payload) < length:
        raise CheckpointRestoreError("Checkpoint truncated")
    if zlib.crc32(payload) & 0xFFFFFFFF != stored_crc:
        raise CheckpointRestoreError("Checkpoint CRC mismatch")

    try:
        body = msgpack.unpackb(payload, raw=False, strict_map_key=False)
        return Checkpoint(
            aggregate=Aggregate.from_dict(body["aggregate"]),
            cycle=int(body["cycle"]),
        )
    except (ValueError, KeyError, TypeError, msgpack.UnpackException) as e:
        raise CheckpointRestoreError(f"Checkpoint payload unreadable: {e}") from e


class CheckpointStore(Protocol):
    def save(self, checkpoint: Checkpoint) -> None: ...

    def load(self) -> Checkpoint | None: ...


class FileCheckpointStore:
    """
    Keeps the latest checkpoint in a single file.

    Writes go to a temp file in the same directory, are fsynced, then renamed
    over the target, so readers only ever see a complete old or new frame.
    """

    def __init__(self, directory: str | Path, filename: str = CHECKPOINT_FILENAME):
        self._directory = Path(directory)
        self._path = self._directory / filename

    @property
    def path(self) -> Path:
        return self._path

    def save(self, checkpoint: Checkpoint) -> None:
        try:
            self._directory.mkdir(parents=True, exist_ok=True)
            self._write_atomic(encode_checkpoint(checkpoint))
        except OSError as e:
            raise CheckpointWriteError(f"Failed to write {self._path}: {e}") from e

    def _write_atomic(self, data: bytes) -> None:
        temp_fd, temp_path = tempfile.mkstemp(
            dir=self._directory, prefix=".tmp_checkpoint_", suffix=".ckpt"
        )
        try:
            with os.fdopen(temp_fd, "wb") as fh:
                fh.write(data)
                fh.flush()
                os.fsync(fh.fileno())
            os.replace(temp_path, self._path)
        except BaseException:
            try:
                os.unlink(temp_path)
            except OSError:
                pass
            raise

        # Persist the rename itself; not every platform allows opening a directory.
        if hasattr(os, "O_DIRECTORY"):
            dir_fd = os.open(self._directory, os.O_RDONLY | os.O_DIRECTORY)
            try:
                os.fsync(dir_fd)
            finally:
                os.close(dir_fd)

    def load(self) -> Checkpoint | None:
        try:
            data = self._path.read_bytes()
        except FileNotFoundError:
            return None
        except OSError as e:
            raise CheckpointRestoreError(f"Failed to read {self._path}: {e}") from e
        return decode_checkpoint(data)


class RedisCheckpointStore:
    """Stores the encoded frame under one key; a single SET is all-or-nothing."""

    def __init__(self, client: RedisClient, key: str = "logstats:checkpoint"):
        self._client = client
        self._key = key

    def save(self, checkpoint: Checkpoint) -> None:
        data = encode_checkpoint(checkpoint)
        try:
            self._client.execute_with_retry(lambda r: r.set(self._key, data))
        except (redis.RedisError, CircuitOpenError) as e:
            raise CheckpointWriteError(f"Failed to write checkpoint to Redis: {e}") from e

    def load(self) -> Checkpoint | None:
        try:
            data = self._client.execute_with_retry(lambda r: r.get(self._key))
        except (redis.RedisError, CircuitOpenError) as e:
            raise CheckpointRestoreError(f"Failed to read checkpoint from Redis: {e}") from e
        if data is None:
            return None
        return decode_checkpoint(data)
