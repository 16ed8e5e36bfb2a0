from tokenstat.models import Source, UsageRecord
from tokenstat.parser import parse_claude_line
from tokenstat.reconciler import MessageDeduplicator
from tokenstat.scanner.base import LogScanner, ScanRequest, ScanResult
from tokenstat.window import Window

CLAUDE_PATTERN = "**/*.jsonl"


class ClaudeSource:
    """
    ClaudeSource reads per-message usage deltas from claude's
    project JSONL logs, keeping only the final state of each
    message inside the window.
    """

    def __init__(self, base_path: "str" = "~/.claude/projects") -> "None":
        self._base_path = base_path

    @property
    def name(self) -> "Source":
        return Source.CLAUDE

    def request(self, window: "Window") -> "ScanRequest":
        return ScanRequest(
            base_path=self._base_path,
            pattern=CLAUDE_PATTERN,
            start=window.start,
            end=window.end,
        )

    async def scan(self, scanner: "LogScanner", request: "ScanRequest") -> "ScanResult":
        return await scanner.scan_log_files(request)

    def records(self, result: "ScanResult", window: "Window") -> "list[UsageRecord]":
        dedup = MessageDeduplicator()
        for file in result.files:
            for index, line in enumerate(file.lines):
                record = parse_claude_line(line)
                if record is not None and window.contains(record.timestamp):
                    dedup.add(record, file.path, index)
        return dedup.records()
