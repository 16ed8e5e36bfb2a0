from collections.abc import Iterable

from tokenstat.models import ModelAggregate, UsageRecord
from tokenstat.parser import UNKNOWN_MODEL


def aggregate_by_model(records: "Iterable[UsageRecord]") -> "dict[str, ModelAggregate]":
    """
    folds records into one bucket per canonical model. The fold
    is order independent.
    """
    aggregated: "dict[str, ModelAggregate]" = {}
    for record in records:
        name = record.model or UNKNOWN_MODEL
        bucket = aggregated.get(name)
        if bucket is None:
            bucket = aggregated[name] = ModelAggregate(name=name)
        bucket.add(record)
    return aggregated


def merge_aggregates(
    parts: "Iterable[dict[str, ModelAggregate]]",
) -> "dict[str, ModelAggregate]":
    """
    merges several per-model maps, e.g. one per day, into one.
    """
    merged: "dict[str, ModelAggregate]" = {}
    for part in parts:
        for name, item in part.items():
            bucket = merged.get(name)
            if bucket is None:
                bucket = merged[name] = ModelAggregate(name=name)
            bucket.input += item.input
            bucket.output += item.output
            bucket.cache_read += item.cache_read
            bucket.cache_create += item.cache_create
            bucket.total += item.total
            bucket.count += item.count
    return merged
