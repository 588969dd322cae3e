"""
Log source package for logsync.

The source interface, the Loki HTTP client and the parsing of its
`[epoch_ns, line]` pairs into records.
"""

from logsync.source.abstract import LogSource
from logsync.source.loki import LokiSource, parse_entries, parse_entry

__all__ = [
    "LogSource",
    "LokiSource",
    "parse_entries",
    "parse_entry",
]
