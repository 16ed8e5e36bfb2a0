from tokenstat.models import Source, UsageRecord
from tokenstat.parser import parse_codex_snapshot
from tokenstat.reconciler import SessionReconciler, session_id_from_path
from tokenstat.scanner.base import LogScanner, ScanRequest, ScanResult
from tokenstat.window import Window

# sessions are laid out as YYYY/MM/DD/rollout-*.jsonl
CODEX_PATTERN = "**/*.jsonl"


class CodexSource:
    """
    CodexSource reads codex session logs, whose token_count
    events carry running session totals. Totals are reconciled
    into one delta record per active session.
    """

    def __init__(self, base_path: "str" = "~/.codex/sessions") -> "None":
        self._base_path = base_path

    @property
    def name(self) -> "Source":
        return Source.CODEX

    def request(self, window: "Window") -> "ScanRequest":
        return ScanRequest(
            base_path=self._base_path,
            pattern=CODEX_PATTERN,
            start=window.start,
            end=window.end,
        )

    async def scan(self, scanner: "LogScanner", request: "ScanRequest") -> "ScanResult":
        return await scanner.scan_log_files(request)

    def records(self, result: "ScanResult", window: "Window") -> "list[UsageRecord]":
        reconciler = SessionReconciler(window)
        for file in result.files:
            session_id = session_id_from_path(file.path)
            for line in file.lines:
                snapshot = parse_codex_snapshot(line)
                if snapshot is not None:
                    reconciler.observe(session_id, snapshot)
        return reconciler.records()
