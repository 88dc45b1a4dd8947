"""Common Log Format parser. Lines that do not match are dropped, never raised."""

import re
from datetime import datetime
from typing import Iterable

from pydantic import ValidationError

from ingestion.schemas import AccessLogRecord

# 64.242.88.10 - - [07/Mar/2004:16:05:49 -0800] "GET /twiki/bin/view HTTP/1.1" 401 12846
LOG_PATTERN = re.compile(
    r'^(\S+) (\S+) (\S+) \[([\w:/]+\s[+\-]\d{4})\] "(\S+) (\S+)\s*(\S*)\s*" (\d{3}) (\d+|-)'
)
TIMESTAMP_FORMAT = "%d/%b/%Y:%H:%M:%S %z"


def _optional(field: str) -> str | None:
    return None if field == "-" else field


def parse_line(line: str) -> AccessLogRecord | None:
    """Parse one log line, returning None for anything malformed."""
    match = LOG_PATTERN.match(line.strip())
    if match is None:
        return None

    ip, identd, user, ts, method, endpoint, protocol, code, size = match.groups()
    try:
        return AccessLogRecord(
            ip_address=ip,
            client_identd=_optional(identd),
            user_id=_optional(user),
            timestamp=datetime.strptime(ts, TIMESTAMP_FORMAT),
            method=method,
            endpoint=endpoint,
            protocol=protocol or "HTTP/1.0",
            response_code=int(code),
            content_size=None if size == "-" else int(size),
        )
    except (ValueError, ValidationError):
        return None


def parse_lines(lines: Iterable[str]) -> tuple[list[AccessLogRecord], int]:
    """Parse many lines. Returns (records, dropped_count); blank lines are ignored."""
    records: list[AccessLogRecord] = []
    dropped = 0
    for line in lines:
        if not line.strip():
            continue
        record = parse_line(line)
        if record is None:
            dropped += 1
        else:
            records.append(record)
    return records, dropped
