"""Log directory source that ingests every log line in the directory exactly once."""

from pathlib import Path

from config import configure_logging
from ingestion.parser import parse_lines
from ingestion.schemas import AccessLogRecord


class DirectorySource:
    """
    Watches a directory for new log files and for lines appended to known ones.

    A byte offset is kept per path; each poll() reads only complete lines past
    it, so a file picked up mid-copy or appended to later never contributes a
    line twice. A file that shrank below its offset was replaced and is read
    from the start. Hidden files and in-progress temp files (leading "." or
    "_", or a ".tmp" suffix) are skipped.
    """

    def __init__(self, directory: str, log_level: str = "INFO"):
        self.log = configure_logging("directory-source", log_level)
        self._directory = Path(directory)
        self._offsets: dict[str, int] = {}
        self.dropped_total = 0

    @staticmethod
    def _is_candidate(path: Path) -> bool:
        name = path.name
        return path.is_file() and not name.startswith((".", "_")) and not name.endswith(".tmp")

    def _scan(self) -> list[Path]:
        if not self._directory.is_dir():
            self.log.warning("logs_directory_missing", directory=str(self._directory))
            self._offsets.clear()
            return []

        paths = [p for p in sorted(self._directory.iterdir()) if self._is_candidate(p)]
        present = {str(p) for p in paths}
        for gone in set(self._offsets) - present:
            del self._offsets[gone]
        return paths

    def _read_new_lines(self, path: Path) -> list[str]:
        key = str(path)
        offset = self._offsets.get(key, 0)
        with open(path, "rb") as fh:
            size = fh.seek(0, 2)
            if size < offset:
                self.log.info("log_file_replaced", path=key, previous_offset=offset, size=size)
                offset = 0
            if size == offset:
                return []
            fh.seek(offset)
            chunk = fh.read(size - offset)

        # A trailing partial line is left for the next poll.
        end = chunk.rfind(b"\n")
        if end < 0:
            return []
        self._offsets[key] = offset + end + 1
        return chunk[: end + 1].decode("utf-8", errors="replace").splitlines()

    def poll(self) -> list[AccessLogRecord]:
        """Return the records of every line that appeared since the last poll."""
        records: list[AccessLogRecord] = []
        dropped = 0
        for path in self._scan():
            try:
                lines = self._read_new_lines(path)
            except OSError as e:
                self.log.error("log_file_read_error", path=str(path), error=str(e))
                continue
            if not lines:
                continue
            parsed, bad = parse_lines(lines)
            records.extend(parsed)
            dropped += bad
            self.log.debug("log_file_ingested", path=str(path), records=len(parsed))

        if dropped:
            self.dropped_total += dropped
            self.log.warning(
                "malformed_lines_dropped", dropped=dropped, dropped_total=self.dropped_total
            )
        return records

    @property
    def tracked_files(self) -> list[str]:
        return list(self._offsets)
