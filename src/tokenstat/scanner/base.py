from dataclasses import dataclass
from datetime import datetime
from typing import Protocol


@dataclass(frozen=True, slots=True)
class ScanRequest:
    # may start with "~"
    base_path: "str"
    # glob relative to base_path, e.g. "**/*.jsonl"
    pattern: "str"
    start: "datetime"
    end: "datetime"


@dataclass(frozen=True, slots=True)
class ScannedFile:
    path: "str"
    lines: "tuple[str, ...]"


@dataclass(frozen=True, slots=True)
class ScanResult:
    """
    ScanResult is what a scanner reports for one request. A
    failed scan is reported here, not raised.
    """

    success: "bool"
    files: "tuple[ScannedFile, ...]" = ()
    # more files matched than were read
    truncated: "bool" = False
    total_matched: "int" = 0
    scanned_count: "int" = 0
    error: "str | None" = None


class ScanError(Exception):
    """
    raised when a source scan fails and the caller asked for
    failures to surface rather than be skipped.
    """

    def __init__(self, source: "str", reason: "str | None") -> "None":
        self.source = source
        self.reason = reason or "SCAN_FAILED"
        super().__init__(f"{source} scan failed: {self.reason}")


class LogScanner(Protocol):
    """
    LogScanner stands as the protocol for the collaborator that
    locates and reads raw usage logs.

    scan_log_files serves append-only JSONL logs, which are
    selected by "touched at or after start" so that earlier lines
    stay available as baselines. scan_settings_files serves one
    document per session, selected by modification time within
    [start, end).
    """

    async def scan_log_files(self, request: "ScanRequest") -> "ScanResult": ...

    async def scan_settings_files(self, request: "ScanRequest") -> "ScanResult": ...
