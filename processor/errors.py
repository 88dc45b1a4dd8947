"""Error taxonomy for the statistics engine."""


class LogStatsError(Exception):
    pass


class ConfigurationError(LogStatsError):
    """Invalid startup configuration. Fatal: the process does not proceed."""


class CheckpointError(LogStatsError):
    pass


class CheckpointWriteError(CheckpointError):
    """Durable-storage write failed. Deferred to the next checkpoint boundary."""


class CheckpointRestoreError(CheckpointError):
    """Stored checkpoint is unreadable or corrupt."""
