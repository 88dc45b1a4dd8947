"""Canonical record schema for one parsed access-log line."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class AccessLogRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    ip_address: str
    client_identd: str | None = None
    user_id: str | None = None
    timestamp: datetime
    method: str
    endpoint: str
    protocol: str = "HTTP/1.1"
    response_code: int = Field(ge=100, le=599)
    content_size: int | None = Field(default=None, ge=0)  # None when logged as "-"
