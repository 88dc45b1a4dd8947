"""Centralized configuration using pydantic-settings. All values are env-configurable."""

from typing import Literal

from pydantic import ValidationError, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from processor.errors import ConfigurationError


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="LOGSTATS_")

    # Directories
    logs_directory: str = "/tmp/logs"
    output_html_file: str = "/tmp/log_stats.html"
    checkpoint_directory: str = "/tmp/log-analyzer-streaming"

    # Windowing
    window_length_sec: int = 30
    slide_interval_sec: int = 10

    # Checkpointing
    checkpoint_every_cycles: int = 10
    checkpoint_backend: Literal["file", "redis"] = "file"
    checkpoint_write_timeout_sec: float = 10.0

    # Rankings
    top_n: int = 10
    ip_flag_threshold: int = 10  # IPs with more requests than this are flagged

    # Redis
    redis_url: str = "redis://redis:6379/0"
    redis_pool_size: int = 10
    redis_checkpoint_key: str = "logstats:checkpoint"
    redis_snapshot_key: str = "logstats:snapshot:latest"
    redis_snapshot_channel: str = "channel:logstats_updates"
    publish_snapshots: bool = False

    # Monitoring
    log_level: str = "INFO"

    @model_validator(mode="after")
    def _check_windowing(self) -> "Settings":
        if self.window_length_sec <= 0:
            raise ValueError("window_length_sec must be positive")
        if self.slide_interval_sec <= 0:
            raise ValueError("slide_interval_sec must be positive")
        if self.window_length_sec % self.slide_interval_sec != 0:
            raise ValueError(
                "window_length_sec must be a multiple of slide_interval_sec"
            )
        if self.checkpoint_every_cycles <= 0:
            raise ValueError("checkpoint_every_cycles must be positive")
        if self.top_n <= 0:
            raise ValueError("top_n must be positive")
        return self


def load_settings(**overrides) -> Settings:
    """Build validated settings, raising ConfigurationError on any invalid value."""
    try:
        return Settings(**overrides)
    except ValidationError as e:
        raise ConfigurationError(str(e)) from e
