import itertools
from datetime import timedelta

from factories import NOW, SESSION_ID, TODAY_START

from tokenstat.models import CumulativeSnapshot, Source, UsageRecord
from tokenstat.reconciler import (
    MessageDeduplicator,
    SessionReconciler,
    pick_max_snapshot,
    session_id_from_path,
    snapshot_delta,
)
from tokenstat.window import Window

WINDOW = Window(start=TODAY_START, end=NOW)
BEFORE = TODAY_START - timedelta(hours=1)
INSIDE = TODAY_START + timedelta(hours=1)


def snapshot(
    ts: "object",
    input_total: "int",
    output_total: "int" = 0,
    cache_read_total: "int" = 0,
    total_tokens: "int | None" = None,
) -> "CumulativeSnapshot":
    return CumulativeSnapshot(
        timestamp=ts,  # type: ignore[arg-type]
        model="codex",
        input_total=input_total,
        output_total=output_total,
        cache_read_total=cache_read_total,
        total_tokens=(
            total_tokens
            if total_tokens is not None
            else input_total + output_total + cache_read_total
        ),
    )


class TestSessionIdFromPath:
    def test_extracts_trailing_uuid(self) -> "None":
        path = f"/x/2026/03/10/rollout-2026-03-10T09-00-00-{SESSION_ID.upper()}.jsonl"
        assert session_id_from_path(path) == SESSION_ID

    def test_windows_separators(self) -> "None":
        path = f"C:\\Users\\me\\.codex\\sessions\\rollout-{SESSION_ID}.jsonl"
        assert session_id_from_path(path) == SESSION_ID

    def test_falls_back_to_stem(self) -> "None":
        assert session_id_from_path("/x/My-Session.JSONL") == "my-session"

    def test_empty_path(self) -> "None":
        assert session_id_from_path("") == "unknown-codex-session"


class TestPickMaxSnapshot:
    def test_larger_total_wins(self) -> "None":
        small = snapshot(INSIDE, 10)
        large = snapshot(INSIDE - timedelta(minutes=5), 20)
        assert pick_max_snapshot(small, large) is large
        assert pick_max_snapshot(large, small) is large

    def test_tie_prefers_later_timestamp(self) -> "None":
        early = snapshot(INSIDE, 10)
        late = snapshot(INSIDE + timedelta(minutes=5), 10)
        assert pick_max_snapshot(early, late) is late
        assert pick_max_snapshot(late, early) is late


class TestSnapshotDelta:
    def test_cache_split(self) -> "None":
        before = snapshot(BEFORE, 1000, cache_read_total=200)
        current = snapshot(INSIDE, 1500, cache_read_total=250)

        record = snapshot_delta(before, current)

        assert record is not None
        assert record.cache_read == 50
        assert record.input == 450
        assert record.output == 0
        assert record.cache_create == 0
        assert record.source == Source.CODEX
        assert record.timestamp == INSIDE

    def test_zero_baseline(self) -> "None":
        record = snapshot_delta(None, snapshot(INSIDE, 100, 40, 30))
        assert record is not None
        assert (record.input, record.output, record.cache_read) == (70, 40, 30)

    def test_counter_restart_never_goes_negative(self) -> "None":
        before = snapshot(BEFORE, 5000, 800, 1000)
        current = snapshot(INSIDE, 120, 900, 10)

        record = snapshot_delta(before, current)

        assert record is not None
        assert record.input == 0
        assert record.output == 100
        assert record.cache_read == 0

    def test_no_growth_is_dropped(self) -> "None":
        same = snapshot(INSIDE, 100, 10)
        assert snapshot_delta(snapshot(BEFORE, 100, 10), same) is None


class TestSessionReconciler:
    def test_delta_between_partitions(self) -> "None":
        reconciler = SessionReconciler(WINDOW)
        reconciler.observe("s1", snapshot(BEFORE - timedelta(hours=1), 400, 40))
        reconciler.observe("s1", snapshot(BEFORE, 1000, 100))
        reconciler.observe("s1", snapshot(INSIDE, 1300, 150))
        reconciler.observe("s1", snapshot(INSIDE + timedelta(hours=1), 1800, 200))

        records = reconciler.records()

        assert len(records) == 1
        assert records[0].input == 800
        assert records[0].output == 100

    def test_snapshots_after_window_are_ignored(self) -> "None":
        reconciler = SessionReconciler(WINDOW)
        reconciler.observe("s1", snapshot(INSIDE, 100))
        reconciler.observe("s1", snapshot(NOW, 9999))
        assert reconciler.records()[0].input == 100

    def test_boundary_snapshot_counts_as_in_window(self) -> "None":
        reconciler = SessionReconciler(WINDOW)
        reconciler.observe("s1", snapshot(TODAY_START, 100))
        assert reconciler.records()[0].input == 100

    def test_sessions_without_window_activity_are_dropped(self) -> "None":
        reconciler = SessionReconciler(WINDOW)
        reconciler.observe("idle", snapshot(BEFORE, 500))
        reconciler.observe("flat", snapshot(BEFORE, 500))
        reconciler.observe("flat", snapshot(INSIDE, 500))
        assert reconciler.records() == []

    def test_snapshots_without_timestamp_are_ignored(self) -> "None":
        reconciler = SessionReconciler(WINDOW)
        reconciler.observe("s1", snapshot(None, 500))
        assert reconciler.records() == []

    def test_sessions_are_independent(self) -> "None":
        reconciler = SessionReconciler(WINDOW)
        reconciler.observe("a", snapshot(INSIDE, 100))
        reconciler.observe("b", snapshot(BEFORE, 50))
        reconciler.observe("b", snapshot(INSIDE, 80))
        assert sorted(r.input for r in reconciler.records()) == [30, 100]

    def test_any_order_yields_same_non_negative_delta(self) -> "None":
        snapshots = [
            snapshot(BEFORE - timedelta(minutes=30), 300, 30, 100),
            snapshot(BEFORE, 200, 50, 150),
            snapshot(INSIDE, 900, 60, 120),
            snapshot(INSIDE + timedelta(minutes=10), 700, 90, 400),
        ]
        outcomes = set()
        for ordering in itertools.permutations(snapshots):
            reconciler = SessionReconciler(WINDOW)
            for item in ordering:
                reconciler.observe("s1", item)
            (record,) = reconciler.records()
            assert min(record.input, record.output, record.cache_read) >= 0
            outcomes.add((record.input, record.output, record.cache_read))
        assert len(outcomes) == 1


def claude_record(ts: "object", message_id: "str | None", output: "int") -> "UsageRecord":
    return UsageRecord(
        timestamp=ts,  # type: ignore[arg-type]
        model="sonnet",
        raw_model="claude-sonnet-4",
        provider=None,
        source=Source.CLAUDE,
        output=output,
        message_id=message_id,
    )


class TestMessageDeduplicator:
    def test_keeps_latest_state_per_message(self) -> "None":
        dedup = MessageDeduplicator()
        dedup.add(claude_record(INSIDE, "msg_1", 10), "a.jsonl", 0)
        dedup.add(claude_record(INSIDE + timedelta(seconds=2), "msg_1", 80), "a.jsonl", 1)
        dedup.add(claude_record(INSIDE + timedelta(seconds=1), "msg_1", 40), "a.jsonl", 2)

        records = dedup.records()

        assert len(records) == 1
        assert records[0].output == 80

    def test_same_timestamp_prefers_later_line(self) -> "None":
        dedup = MessageDeduplicator()
        dedup.add(claude_record(INSIDE, "msg_1", 10), "a.jsonl", 0)
        dedup.add(claude_record(INSIDE, "msg_1", 20), "a.jsonl", 1)
        assert dedup.records()[0].output == 20

    def test_lines_without_id_never_collapse(self) -> "None":
        dedup = MessageDeduplicator()
        dedup.add(claude_record(INSIDE, None, 10), "a.jsonl", 0)
        dedup.add(claude_record(INSIDE, None, 10), "a.jsonl", 1)
        dedup.add(claude_record(INSIDE, None, 10), "b.jsonl", 0)
        assert len(dedup.records()) == 3
