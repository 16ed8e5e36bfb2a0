from datetime import timedelta

import pytest
from factories import (
    NOW,
    SESSION_ID,
    TODAY_START,
    FakeScanner,
    claude_line,
    codex_line,
    codex_path,
    droid_lines,
)

from tokenstat.models import Source
from tokenstat.scanner.base import ScannedFile, ScanResult
from tokenstat.source.claude import ClaudeSource
from tokenstat.source.codex import CodexSource
from tokenstat.source.droid import DroidSource
from tokenstat.window import Window

WINDOW = Window(start=TODAY_START, end=NOW)
INSIDE = TODAY_START + timedelta(hours=2)


def scanned(*files: "tuple[str, list[str]]") -> "ScanResult":
    return ScanResult(
        success=True,
        files=tuple(ScannedFile(path=path, lines=tuple(lines)) for path, lines in files),
    )


class TestClaudeSource:
    def test_request_covers_window(self) -> "None":
        request = ClaudeSource("/claude").request(WINDOW)
        assert request.base_path == "/claude"
        assert request.pattern == "**/*.jsonl"
        assert (request.start, request.end) == (WINDOW.start, WINDOW.end)

    @pytest.mark.asyncio
    async def test_scans_log_files(self, scanner: "FakeScanner") -> "None":
        source = ClaudeSource("/claude")
        await source.scan(scanner, source.request(WINDOW))
        assert scanner.calls == ["log"]

    def test_filters_window_and_deduplicates(self) -> "None":
        result = scanned(
            (
                "/claude/p/a.jsonl",
                [
                    claude_line(TODAY_START - timedelta(minutes=1), message_id="old"),
                    claude_line(INSIDE, output_tokens=10, message_id="msg_1"),
                    claude_line(INSIDE + timedelta(seconds=3), output_tokens=90, message_id="msg_1"),
                    "not json at all",
                    claude_line(NOW, message_id="late"),
                ],
            ),
            ("/claude/p/b.jsonl", [claude_line(INSIDE, model="claude-opus-4-6")]),
        )

        records = ClaudeSource().records(result, WINDOW)

        assert sorted(r.model for r in records) == ["opus", "sonnet"]
        sonnet = next(r for r in records if r.model == "sonnet")
        assert sonnet.output == 90
        assert all(r.source == Source.CLAUDE for r in records)

    def test_duplicate_ids_across_files_collapse(self) -> "None":
        result = scanned(
            ("/claude/a.jsonl", [claude_line(INSIDE, message_id="msg_1")]),
            ("/claude/b.jsonl", [claude_line(INSIDE, message_id="msg_1")]),
        )
        assert len(ClaudeSource().records(result, WINDOW)) == 1


class TestCodexSource:
    def test_reconciles_per_session(self) -> "None":
        other = "11111111-2222-3333-4444-555555555555"
        result = scanned(
            (
                codex_path(),
                [
                    codex_line(TODAY_START - timedelta(hours=1), 1000, 100, 200),
                    codex_line(INSIDE, 1500, 150, 250),
                    '{"type": "session_meta", "payload": {}}',
                ],
            ),
            (codex_path(other), [codex_line(INSIDE, 40, 10)]),
        )

        records = CodexSource().records(result, WINDOW)

        assert len(records) == 2
        by_input = sorted(records, key=lambda r: r.input)
        assert (by_input[0].input, by_input[0].output) == (40, 10)
        assert (by_input[1].input, by_input[1].output, by_input[1].cache_read) == (450, 50, 50)
        assert all(r.model == "codex" for r in records)

    def test_session_split_across_files(self) -> "None":
        # a resumed session keeps its id in a later day's directory
        result = scanned(
            (codex_path(), [codex_line(TODAY_START - timedelta(hours=2), 100, 10)]),
            (
                f"/logs/2026/03/11/rollout-2026-03-11T01-00-00-{SESSION_ID}.jsonl",
                [codex_line(INSIDE, 160, 30)],
            ),
        )

        (record,) = CodexSource().records(result, WINDOW)

        assert (record.input, record.output) == (60, 20)

    def test_idle_session_yields_nothing(self) -> "None":
        result = scanned((codex_path(), [codex_line(TODAY_START - timedelta(hours=1), 100, 10)]))
        assert CodexSource().records(result, WINDOW) == []


class TestDroidSource:
    @pytest.mark.asyncio
    async def test_scans_settings_files(self, scanner: "FakeScanner") -> "None":
        source = DroidSource("/droid")
        request = source.request(WINDOW)
        await source.scan(scanner, request)

        assert scanner.calls == ["settings"]
        assert request.pattern == "**/*.settings.json"

    def test_reads_one_record_per_document(self) -> "None":
        result = scanned(
            ("/droid/a.settings.json", droid_lines()),
            ("/droid/b.settings.json", droid_lines(model="gpt-5", input_tokens=0, output_tokens=0)),
            ("/droid/c.settings.json", ["{ broken"]),
        )

        records = DroidSource().records(result, WINDOW)

        assert len(records) == 1
        assert records[0].model == "opus"
        assert records[0].total == 400
