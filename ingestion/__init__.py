from .schemas import AccessLogRecord
from .parser import parse_line, parse_lines
from .source import DirectorySource

__all__ = ["AccessLogRecord", "parse_line", "parse_lines", "DirectorySource"]
