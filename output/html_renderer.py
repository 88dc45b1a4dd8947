"""Renders each cycle's statistics into a self-refreshing HTML page."""

import os
import tempfile
from datetime import datetime, timezone
from html import escape

from processor.snapshot import StatisticsSnapshot, StatisticsView

PAGE_TEMPLATE = """<!DOCTYPE html>
<html>
<head>
<meta charset="utf-8">
<meta http-equiv="refresh" content="{refresh}">
<title>Log Statistics</title>
</head>
<body>
<h1>Log Statistics</h1>
<p>Cycle {cycle} &middot; batch time {batch_time}</p>
<h2>All of time</h2>
{cumulative}
<h2>Last {window_length} seconds{partial}</h2>
{windowed}
</body>
</html>
"""


def _fmt_size(value) -> str:
    if value is None:
        return "no data"
    if isinstance(value, float):
        return f"{value:.1f}"
    return str(value)


def _table(headers: tuple[str, str], rows) -> str:
    head = "".join(f"<th>{escape(h)}</th>" for h in headers)
    body = "".join(
        f"<tr><td>{escape(str(k))}</td><td>{escape(str(v))}</td></tr>" for k, v in rows
    )
    return f"<table><tr>{head}</tr>{body}</table>"


def render_view(view: StatisticsView) -> str:
    sizes = (
        ("Requests", view.total_count),
        ("Average content size", _fmt_size(view.average_content_size)),
        ("Min content size", _fmt_size(view.min_content_size)),
        ("Max content size", _fmt_size(view.max_content_size)),
    )
    flagged = ", ".join(escape(ip) for ip in view.flagged_ips) or "none"
    return "\n".join([
        _table(("Statistic", "Value"), sizes),
        "<h3>Response codes</h3>",
        _table(("Code", "Count"), view.response_code_counts.items()),
        "<h3>Top endpoints</h3>",
        _table(("Endpoint", "Count"), view.top_endpoints),
        "<h3>Top IP addresses</h3>",
        _table(("IP address", "Count"), view.top_ips),
        f"<p>Frequent IP addresses: {flagged}</p>",
    ])


def render_page(snapshot: StatisticsSnapshot, refresh_sec: int) -> str:
    batch_time = datetime.fromtimestamp(snapshot.batch_timestamp, tz=timezone.utc)
    partial = ""
    if snapshot.window_partial:
        partial = f" (partial: {snapshot.window_covered_sec}s collected)"
    return PAGE_TEMPLATE.format(
        refresh=refresh_sec,
        cycle=snapshot.cycle,
        batch_time=batch_time.isoformat(),
        cumulative=render_view(snapshot.cumulative),
        window_length=snapshot.window_length_sec,
        partial=partial,
        windowed=render_view(snapshot.windowed),
    )


class HtmlRenderer:
    """Replaces the output file atomically so a browser never sees half a page."""

    def __init__(self, path: str, refresh_sec: int = 10):
        self._path = path
        self._refresh_sec = refresh_sec

    def render(self, snapshot: StatisticsSnapshot):
        directory = os.path.dirname(os.path.abspath(self._path))
        os.makedirs(directory, exist_ok=True)
        tmp_fd, tmp_path = tempfile.mkstemp(dir=directory, suffix=".tmp")
        try:
            with os.fdopen(tmp_fd, "w", encoding="utf-8") as fh:
                fh.write(render_page(snapshot, self._refresh_sec))
            os.replace(tmp_path, self._path)
        except Exception:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise
