from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Protocol

from tokenstat.models import ModelAggregate
from tokenstat.parser import to_safe_int

# bump whenever the way a day is computed changes, so stored
# summaries from an older computation are recomputed
SUMMARY_SCHEMA_VERSION = 2


@dataclass(frozen=True, slots=True)
class DailySummary:
    """
    DailySummary is the per-model usage of one civil day.
    """

    date: "str"
    generated_at: "datetime"
    models: "dict[str, ModelAggregate]" = field(default_factory=dict)
    version: "int" = SUMMARY_SCHEMA_VERSION

    @classmethod
    def from_aggregates(
        cls,
        day: "date",
        aggregated: "Mapping[str, ModelAggregate]",
        generated_at: "datetime | None" = None,
    ) -> "DailySummary":
        return cls(
            date=day.isoformat(),
            generated_at=generated_at or datetime.now(timezone.utc),
            models={name: item for name, item in aggregated.items() if item.total > 0},
        )

    @classmethod
    def from_dict(cls, raw: "object", expected_date: "str") -> "DailySummary | None":
        """
        rebuilds a stored summary. Returns None for anything that
        can't be trusted: wrong shape, other schema version or a
        different date.
        """
        if not isinstance(raw, Mapping):
            return None
        if to_safe_int(raw.get("version")) != SUMMARY_SCHEMA_VERSION:
            return None
        if raw.get("date", expected_date) != expected_date:
            return None

        try:
            generated_at = datetime.fromisoformat(raw.get("generatedAt", ""))
        except (TypeError, ValueError):
            generated_at = datetime.now(timezone.utc)

        models: "dict[str, ModelAggregate]" = {}
        raw_models = raw.get("models")
        if isinstance(raw_models, Mapping):
            for name, data in raw_models.items():
                if not isinstance(data, Mapping):
                    continue
                item = ModelAggregate(
                    name=name,
                    input=to_safe_int(data.get("input")),
                    output=to_safe_int(data.get("output")),
                    cache_read=to_safe_int(data.get("cacheRead")),
                    cache_create=to_safe_int(data.get("cacheCreate")),
                    count=to_safe_int(data.get("count")),
                )
                item.total = to_safe_int(data.get("total")) or (
                    item.input + item.output + item.cache_read + item.cache_create
                )
                models[name] = item

        return cls(date=expected_date, generated_at=generated_at, models=models)

    def to_dict(self) -> "dict[str, object]":
        models = {
            name: {
                "input": item.input,
                "output": item.output,
                "cacheRead": item.cache_read,
                "cacheCreate": item.cache_create,
                "total": item.total,
                "count": item.count,
            }
            for name, item in self.models.items()
        }
        return {
            "version": self.version,
            "date": self.date,
            "generatedAt": self.generated_at.isoformat(),
            "models": models,
            "summary": {
                "total": sum(m.total for m in self.models.values()),
                "input": sum(m.input for m in self.models.values()),
                "output": sum(m.output for m in self.models.values()),
                "cache": sum(
                    m.cache_read + m.cache_create for m in self.models.values()
                ),
            },
        }


class SummaryStore(Protocol):
    """
    SummaryStore persists daily summaries between range queries.
    read() returns None on a miss.
    """

    async def read(self, day: "date") -> "DailySummary | None": ...

    async def write(self, day: "date", summary: "DailySummary") -> "None": ...


class MemorySummaryStore:
    """
    keeps summaries in their serialized form for the lifetime of
    the process.
    """

    def __init__(self) -> "None":
        self._documents: "dict[str, dict[str, object]]" = {}

    async def read(self, day: "date") -> "DailySummary | None":
        key = day.isoformat()
        document = self._documents.get(key)
        if document is None:
            return None
        return DailySummary.from_dict(document, key)

    async def write(self, day: "date", summary: "DailySummary") -> "None":
        self._documents[day.isoformat()] = summary.to_dict()
