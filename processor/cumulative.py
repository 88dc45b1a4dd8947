"""All-time statistics with periodic, crash-recoverable checkpoints."""

from concurrent.futures import Future, ThreadPoolExecutor, wait

from config import configure_logging
from processor.aggregate import Aggregate
from processor.errors import CheckpointRestoreError, CheckpointWriteError
from storage.checkpoint import Checkpoint, CheckpointStore


class CumulativeTracker:
    """
    Owns the aggregate of every record ever admitted plus the cycle counter.

    Every ``checkpoint_every`` cycles the state is handed to a single
    background writer so a slow store never stalls the next batch. At most
    one write is in flight; a boundary reached while one is still running is
    skipped and the next boundary writes the newer state instead. Write
    failures are logged and never touch the in-memory aggregate.
    """

    def __init__(
        self,
        store: CheckpointStore,
        checkpoint_every: int = 10,
        background: bool = True,
        log_level: str = "INFO",
    ):
        self.log = configure_logging("cumulative-tracker", log_level)
        self._store = store
        self._checkpoint_every = checkpoint_every
        self._aggregate = Aggregate.empty()
        self._cycle = 0
        self._committed_cycle = 0
        self._failed_writes = 0
        self._pending: Future | None = None
        self._executor = (
            ThreadPoolExecutor(max_workers=1, thread_name_prefix="checkpoint")
            if background
            else None
        )

    @classmethod
    def from_store(
        cls,
        store: CheckpointStore,
        checkpoint_every: int = 10,
        background: bool = True,
        log_level: str = "INFO",
    ) -> "CumulativeTracker":
        """Create a tracker resumed from the store's latest checkpoint, if readable."""
        tracker = cls(store, checkpoint_every, background, log_level)
        try:
            checkpoint = store.load()
        except CheckpointRestoreError as e:
            tracker.log.warning(
                "checkpoint_restore_failed",
                error=str(e),
                action="starting cumulative statistics from empty",
            )
            checkpoint = None
        tracker.restore(checkpoint)
        return tracker

    def restore(self, checkpoint: Checkpoint | None):
        if checkpoint is None:
            self._aggregate = Aggregate.empty()
            self._cycle = 0
        else:
            self._aggregate = checkpoint.aggregate
            self._cycle = checkpoint.cycle
            self.log.info(
                "checkpoint_restored", cycle=checkpoint.cycle, count=checkpoint.aggregate.count
            )
        self._committed_cycle = self._cycle

    def advance(self, batch: Aggregate) -> Aggregate:
        self._aggregate = self._aggregate.merge(batch)
        self._cycle += 1
        return self._aggregate

    @property
    def aggregate(self) -> Aggregate:
        return self._aggregate

    @property
    def cycle(self) -> int:
        return self._cycle

    @property
    def committed_cycle(self) -> int:
        return self._committed_cycle

    @property
    def failed_writes(self) -> int:
        return self._failed_writes

    def checkpoint(self) -> Checkpoint:
        return Checkpoint(aggregate=self._aggregate, cycle=self._cycle)

    def maybe_checkpoint(self) -> bool:
        """Start a checkpoint write on cadence boundaries. Returns True if one was started."""
        if self._cycle == 0 or self._cycle % self._checkpoint_every != 0:
            return False

        if self._pending is not None and not self._pending.done():
            self.log.warning(
                "checkpoint_skipped", cycle=self._cycle, reason="previous write still running"
            )
            return False

        checkpoint = self.checkpoint()
        if self._executor is None:
            self._write(checkpoint)
        else:
            self._pending = self._executor.submit(self._write, checkpoint)
        return True

    def _write(self, checkpoint: Checkpoint):
        try:
            self._store.save(checkpoint)
        except CheckpointWriteError as e:
            self._failed_writes += 1
            self.log.warning(
                "checkpoint_write_failed",
                cycle=checkpoint.cycle,
                error=str(e),
                failed_writes=self._failed_writes,
            )
            return
        except Exception as e:
            # Unexpected store errors are contained here as well.
            self._failed_writes += 1
            self.log.error(
                "checkpoint_write_error",
                cycle=checkpoint.cycle,
                error_type=type(e).__name__,
                error=str(e),
                failed_writes=self._failed_writes,
            )
            return
        self._committed_cycle = max(self._committed_cycle, checkpoint.cycle)
        self.log.info("checkpoint_written", cycle=checkpoint.cycle, count=checkpoint.aggregate.count)

    def close(self, timeout: float = 10.0):
        """Flush on graceful shutdown: finish the in-flight write, then persist the latest state."""
        if self._pending is not None:
            done, _ = wait([self._pending], timeout=timeout)
            if not done:
                # A late write of older state could land after ours; leave it to finish.
                self.log.warning("checkpoint_flush_timeout", timeout=timeout, cycle=self._cycle)
                return
        if self._executor is not None:
            self._executor.shutdown(wait=False)
        if self._cycle > self._committed_cycle:
            self._write(self.checkpoint())
