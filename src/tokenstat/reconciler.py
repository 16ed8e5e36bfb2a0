import re
from dataclasses import dataclass

from tokenstat.models import CumulativeSnapshot, Source, UsageRecord
from tokenstat.window import Window

_SESSION_ID_RE = re.compile(
    r"([0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12})$",
    re.IGNORECASE,
)
_UNKNOWN_SESSION = "unknown-codex-session"
_ZERO_SNAPSHOT = CumulativeSnapshot(
    timestamp=None,
    model="codex",
    input_total=0,
    output_total=0,
    cache_read_total=0,
    total_tokens=0,
)


def session_id_from_path(path: "str") -> "str":
    """
    derives a codex session id from a log file path such as
    ".../rollout-2025-01-02T10-00-00-<uuid>.jsonl". Falls back
    to the file stem when no trailing UUID is present.
    """
    file_name = re.split(r"[\\/]", path or "")[-1]
    stem = re.sub(r"\.jsonl$", "", file_name, flags=re.IGNORECASE)
    matched = _SESSION_ID_RE.search(stem)
    session_id = matched.group(1) if matched else stem
    return (session_id or _UNKNOWN_SESSION).lower()


def pick_max_snapshot(
    current: "CumulativeSnapshot | None",
    incoming: "CumulativeSnapshot",
) -> "CumulativeSnapshot":
    """
    keeps the snapshot with the larger running total. On a tie
    the later timestamp wins, since log writes are not always in
    order.
    """
    if current is None:
        return incoming
    if incoming.total_tokens > current.total_tokens:
        return incoming
    if (
        incoming.total_tokens == current.total_tokens
        and incoming.timestamp is not None
        and (current.timestamp is None or incoming.timestamp > current.timestamp)
    ):
        return incoming
    return current


@dataclass(slots=True)
class _SessionState:
    before_window: "CumulativeSnapshot | None" = None
    in_window: "CumulativeSnapshot | None" = None


class SessionReconciler:
    """
    SessionReconciler turns cumulative per-session counters into
    per-window increments.

    For every session it remembers the largest snapshot seen
    before the window and the largest one inside it; the
    difference between the two is what the session consumed
    during the window. Create one per scan; it must not outlive
    the call that owns it.
    """

    def __init__(self, window: "Window") -> "None":
        self._window = window
        self._sessions: "dict[str, _SessionState]" = {}

    def observe(self, session_id: "str", snapshot: "CumulativeSnapshot") -> "None":
        if snapshot.timestamp is None:
            return

        state = self._sessions.setdefault(session_id, _SessionState())
        if self._window.is_before(snapshot.timestamp):
            state.before_window = pick_max_snapshot(state.before_window, snapshot)
        elif self._window.contains(snapshot.timestamp):
            state.in_window = pick_max_snapshot(state.in_window, snapshot)

    def records(self) -> "list[UsageRecord]":
        """
        returns one delta record per session that consumed tokens
        inside the window. Idle sessions are left out.
        """
        records: "list[UsageRecord]" = []
        for state in self._sessions.values():
            if state.in_window is None:
                continue

            record = snapshot_delta(state.before_window, state.in_window)
            if record is not None:
                records.append(record)
        return records


def snapshot_delta(
    before: "CumulativeSnapshot | None",
    current: "CumulativeSnapshot",
) -> "UsageRecord | None":
    """
    computes the increment between two cumulative snapshots of
    one session. Every category is clamped at zero so a counter
    restart never produces negative usage.

    codex reports input_tokens including cached input, so the
    cached part is moved out of input to keep input, output and
    cache_read disjoint.
    """
    before = before or _ZERO_SNAPSHOT
    delta_input_total = max(0, current.input_total - before.input_total)
    delta_output = max(0, current.output_total - before.output_total)
    delta_cache_read = max(0, current.cache_read_total - before.cache_read_total)
    non_cached_input = max(0, delta_input_total - delta_cache_read)

    if non_cached_input + delta_output + delta_cache_read <= 0:
        return None

    return UsageRecord(
        timestamp=current.timestamp,
        model=current.model,
        raw_model=current.model,
        provider=None,
        source=Source.CODEX,
        input=non_cached_input,
        output=delta_output,
        cache_read=delta_cache_read,
        cache_create=0,
    )


class MessageDeduplicator:
    """
    MessageDeduplicator keeps the final state of each claude
    message. Claude may log intermediate and final usage for one
    message id; only the latest entry counts.

    Lines without a message id are keyed by their file position
    and therefore never collapse.
    """

    def __init__(self) -> "None":
        # key -> (timestamp, stream order, record)
        self._latest: "dict[str, tuple[float, int, UsageRecord]]" = {}
        self._order = 0

    @staticmethod
    def make_key(record: "UsageRecord", path: "str", line_index: "int") -> "str":
        return record.message_id or f"{path or 'unknown-file'}:{line_index}"

    def add(self, record: "UsageRecord", path: "str", line_index: "int") -> "None":
        self._order += 1
        key = self.make_key(record, path, line_index)
        ts = record.timestamp.timestamp() if record.timestamp else 0.0
        current = self._latest.get(key)
        # same timestamp: the entry written later wins
        if current is None or (ts, self._order) > current[:2]:
            self._latest[key] = (ts, self._order, record)

    def records(self) -> "list[UsageRecord]":
        return [entry[2] for entry in self._latest.values()]
