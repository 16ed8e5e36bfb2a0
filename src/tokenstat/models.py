from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import StrEnum


class Source(StrEnum):
    """
    Source identifies which assistant backend produced a record.
    """

    CLAUDE = "claude"
    CODEX = "codex"
    DROID = "droid"


class ErrorCode(StrEnum):
    INVALID_PERIOD = "INVALID_PERIOD"
    INVALID_DATE_RANGE = "INVALID_DATE_RANGE"
    INVALID_TIMEZONE = "INVALID_TIMEZONE"
    DATE_OUT_OF_RANGE = "DATE_OUT_OF_RANGE"
    AGGREGATE_FAILED = "AGGREGATE_FAILED"


@dataclass(frozen=True, slots=True)
class UsageRecord:
    """
    UsageRecord is one normalized usage data point. Token
    counts are increments, never running totals.
    """

    timestamp: "datetime | None"
    # canonical family name, e.g. "sonnet"
    model: "str"
    # vendor identifier as written in the log
    raw_model: "str"
    provider: "str | None"
    source: "Source"
    input: "int" = 0
    output: "int" = 0
    cache_read: "int" = 0
    cache_create: "int" = 0
    message_id: "str | None" = None

    @property
    def total(self) -> "int":
        return self.input + self.output + self.cache_read + self.cache_create


@dataclass(frozen=True, slots=True)
class CumulativeSnapshot:
    """
    CumulativeSnapshot is a session's self-reported running
    total at one instant, not an increment.
    """

    timestamp: "datetime | None"
    model: "str"
    input_total: "int"
    output_total: "int"
    cache_read_total: "int"
    total_tokens: "int"


@dataclass(slots=True)
class ModelAggregate:
    """
    ModelAggregate accumulates every record of one canonical
    model inside a window.
    """

    name: "str"
    input: "int" = 0
    output: "int" = 0
    cache_read: "int" = 0
    cache_create: "int" = 0
    total: "int" = 0
    count: "int" = 0

    def add(self, record: "UsageRecord") -> "None":
        self.input += record.input
        self.output += record.output
        self.cache_read += record.cache_read
        self.cache_create += record.cache_create
        self.total += record.total
        self.count += 1


@dataclass(frozen=True, slots=True)
class ModelSummary:
    name: "str"
    input: "int"
    output: "int"
    cache_read: "int"
    cache_create: "int"
    total: "int"
    count: "int"
    color: "str"

    def to_dict(self) -> "dict[str, object]":
        return {
            "name": self.name,
            "input": self.input,
            "output": self.output,
            "cacheRead": self.cache_read,
            "cacheCreate": self.cache_create,
            "total": self.total,
            "count": self.count,
            "color": self.color,
        }


@dataclass(frozen=True, slots=True)
class DistributionEntry:
    name: "str"
    percent: "int"
    display_percent: "str"
    color: "str"
    key: "str"

    def to_dict(self) -> "dict[str, object]":
        return {
            "name": self.name,
            "percent": self.percent,
            "displayPercent": self.display_percent,
            "color": self.color,
            "key": self.key,
        }


@dataclass(frozen=True, slots=True)
class ViewData:
    """
    ViewData is the rendered outcome of one aggregation: grand
    totals, the per-model list sorted by total and the pie
    distribution whose percents sum to 100.
    """

    total: "int" = 0
    input: "int" = 0
    output: "int" = 0
    # cache_read + cache_create
    cache: "int" = 0
    models: "tuple[ModelSummary, ...]" = ()
    distribution: "tuple[DistributionEntry, ...]" = ()
    is_extreme_scenario: "bool" = False
    model_count: "int" = 0

    def to_dict(self) -> "dict[str, object]":
        return {
            "total": self.total,
            "input": self.input,
            "output": self.output,
            "cache": self.cache,
            "models": [m.to_dict() for m in self.models],
            "distribution": [d.to_dict() for d in self.distribution],
            "isExtremeScenario": self.is_extreme_scenario,
            "modelCount": self.model_count,
        }


@dataclass(frozen=True, slots=True)
class UsageReport:
    view: "ViewData"
    period: "str"
    start_time: "datetime"
    end_time: "datetime"
    record_count: "int"

    def to_dict(self) -> "dict[str, object]":
        return {
            **self.view.to_dict(),
            "period": self.period,
            "startTime": _iso(self.start_time),
            "endTime": _iso(self.end_time),
            "recordCount": self.record_count,
        }


@dataclass(frozen=True, slots=True)
class RangeMeta:
    """
    RangeMeta describes how many days of a custom range were
    served from stored daily summaries versus recomputed.
    """

    from_cache_days: "int" = 0
    recomputed_days: "int" = 0
    total_days: "int" = 0
    failed_days: "int" = 0

    def to_dict(self) -> "dict[str, int]":
        return {
            "fromCacheDays": self.from_cache_days,
            "recomputedDays": self.recomputed_days,
            "totalDays": self.total_days,
            "failedDays": self.failed_days,
        }


@dataclass(frozen=True, slots=True)
class RangeReport:
    view: "ViewData"
    start_date: "str"
    end_date: "str"
    period: "str" = "custom"

    def to_dict(self) -> "dict[str, object]":
        return {
            **self.view.to_dict(),
            "period": self.period,
            "startDate": self.start_date,
            "endDate": self.end_date,
        }


@dataclass(frozen=True, slots=True)
class Success:
    data: "UsageReport | RangeReport"
    meta: "RangeMeta | None" = None
    success: "bool" = field(default=True, init=False)

    def to_dict(self) -> "dict[str, object]":
        result: "dict[str, object]" = {"success": True, "data": self.data.to_dict()}
        if self.meta is not None:
            result["meta"] = self.meta.to_dict()
        return result


@dataclass(frozen=True, slots=True)
class Failure:
    error: "str"
    success: "bool" = field(default=False, init=False)

    def to_dict(self) -> "dict[str, object]":
        return {"success": False, "error": self.error}


Result = Success | Failure


def _iso(value: "datetime") -> "str":
    # millisecond precision with a Z suffix, as the presentation layer expects
    return value.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace(
        "+00:00", "Z"
    )

