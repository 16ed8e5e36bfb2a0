"""
Custom date range aggregation.

A range is served day by day: days with a stored summary are
read back, missing days are recomputed from the logs and stored
for the next query. Only fully elapsed days can be queried, so a
stored day never changes afterwards.
"""

from collections.abc import Mapping, Sequence
from datetime import date, datetime

import structlog

from tokenstat.aggregator import aggregate_by_model, merge_aggregates
from tokenstat.config import Config
from tokenstat.engine import collect_records, default_sources
from tokenstat.metrics import UsageMetrics
from tokenstat.models import ErrorCode, Failure, RangeMeta, RangeReport, Result, Success
from tokenstat.scanner.base import LogScanner
from tokenstat.source.base import UsageSource
from tokenstat.store import DailySummary, MemorySummaryStore, SummaryStore
from tokenstat.view import generate_view_data
from tokenstat.window import civil_today, day_window, iter_dates, parse_date_key

logger = structlog.get_logger()


def _param(params: "Mapping[str, object]", camel: "str", snake: "str") -> "object":
    return params.get(camel, params.get(snake))


def validate_range(
    params: "Mapping[str, object] | None",
    config: "Config",
    now: "datetime | None" = None,
) -> "tuple[date, date] | ErrorCode":
    """
    checks a {startDate, endDate, timezone} request. Returns the
    parsed dates or the error code to reject it with.
    """
    params = params or {}
    start_date = parse_date_key(_param(params, "startDate", "start_date"))
    end_date = parse_date_key(_param(params, "endDate", "end_date"))
    if start_date is None or end_date is None or start_date > end_date:
        return ErrorCode.INVALID_DATE_RANGE

    tz_name = params.get("timezone")
    if tz_name and tz_name != config.timezone:
        return ErrorCode.INVALID_TIMEZONE

    # today is still being written to, so it never enters a range
    if end_date >= civil_today(config.tz, now):
        return ErrorCode.DATE_OUT_OF_RANGE

    return start_date, end_date


async def recompute_day(
    day: "date",
    scanner: "LogScanner",
    sources: "Sequence[UsageSource]",
    config: "Config",
    metrics: "UsageMetrics | None" = None,
) -> "DailySummary":
    """
    rebuilds the summary of one day from the logs. Raises
    ScanError if any source scan fails, so a partial day is never
    stored as if it were complete.
    """
    window = day_window(day, config.tz)
    records = await collect_records(sources, scanner, window, metrics, strict=True)
    return DailySummary.from_aggregates(day, aggregate_by_model(records))


async def aggregate_usage_range(
    params: "Mapping[str, object] | None",
    scanner: "LogScanner",
    *,
    store: "SummaryStore | None" = None,
    config: "Config | None" = None,
    sources: "Sequence[UsageSource] | None" = None,
    now: "datetime | None" = None,
    metrics: "UsageMetrics | None" = None,
) -> "Result":
    """
    aggregates usage over an explicit [startDate, endDate] range
    of civil days. Like aggregate_usage it never raises.
    """
    config = config or Config()
    try:
        validated = validate_range(params, config, now)
    except Exception as exc:
        logger.exception("range_validation_error")
        return Failure(error=str(exc))

    if isinstance(validated, ErrorCode):
        logger.info("range_rejected", error=validated.value)
        return Failure(error=validated)

    start_date, end_date = validated
    store = store if store is not None else MemorySummaryStore()
    sources = sources if sources is not None else default_sources(config)

    try:
        return await _aggregate_days(
            start_date, end_date, scanner, store, sources, config, metrics
        )
    except Exception as exc:
        logger.exception(
            "range_aggregation_error",
            start_date=start_date.isoformat(),
            end_date=end_date.isoformat(),
        )
        return Failure(error=str(exc))


async def _aggregate_days(
    start_date: "date",
    end_date: "date",
    scanner: "LogScanner",
    store: "SummaryStore",
    sources: "Sequence[UsageSource]",
    config: "Config",
    metrics: "UsageMetrics | None",
) -> "Result":
    days = list(iter_dates(start_date, end_date))
    from_cache = recomputed = failed = 0
    last_error: "str | None" = None
    summaries: "list[DailySummary]" = []

    for day in days:
        try:
            summary = await store.read(day)
        except Exception as exc:
            logger.warning("day_summary_read_failed", day=day.isoformat(), error=str(exc))
            summary = None

        if summary is not None:
            from_cache += 1
            summaries.append(summary)
            continue

        try:
            summary = await recompute_day(day, scanner, sources, config, metrics)
        except Exception as exc:
            logger.warning("day_recompute_failed", day=day.isoformat(), error=str(exc))
            failed += 1
            last_error = str(exc) or "RECOMPUTE_FAILED"
            continue

        recomputed += 1
        summaries.append(summary)

        # a failed write only costs a recompute next time
        try:
            await store.write(day, summary)
        except Exception as exc:
            logger.warning("day_summary_write_failed", day=day.isoformat(), error=str(exc))

    if not summaries:
        return Failure(error=last_error or ErrorCode.AGGREGATE_FAILED)

    view = generate_view_data(merge_aggregates(s.models for s in summaries))
    logger.info(
        "range_aggregation_end",
        start_date=start_date.isoformat(),
        end_date=end_date.isoformat(),
        from_cache_days=from_cache,
        recomputed_days=recomputed,
        failed_days=failed,
    )
    return Success(
        data=RangeReport(
            view=view,
            start_date=start_date.isoformat(),
            end_date=end_date.isoformat(),
        ),
        meta=RangeMeta(
            from_cache_days=from_cache,
            recomputed_days=recomputed,
            total_days=len(days),
            failed_days=failed,
        ),
    )
