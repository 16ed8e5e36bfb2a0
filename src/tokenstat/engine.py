import asyncio
import time
from collections.abc import Sequence
from datetime import datetime

import structlog

from tokenstat.aggregator import aggregate_by_model
from tokenstat.config import Config
from tokenstat.metrics import UsageMetrics
from tokenstat.models import ErrorCode, Failure, Result, Success, UsageRecord, UsageReport
from tokenstat.scanner.base import LogScanner, ScanError
from tokenstat.source.base import UsageSource
from tokenstat.source.claude import ClaudeSource
from tokenstat.source.codex import CodexSource
from tokenstat.source.droid import DroidSource
from tokenstat.view import generate_view_data
from tokenstat.window import PERIODS, Window, resolve_window

logger = structlog.get_logger()


def default_sources(config: "Config") -> "list[UsageSource]":
    return [
        ClaudeSource(config.claude_dir),
        CodexSource(config.codex_dir),
        DroidSource(config.droid_dir),
    ]


async def collect_records(
    sources: "Sequence[UsageSource]",
    scanner: "LogScanner",
    window: "Window",
    metrics: "UsageMetrics | None" = None,
    strict: "bool" = False,
) -> "list[UsageRecord]":
    """
    scans every source concurrently and merges their records.
    Sources share nothing, so a failing one only loses its own
    contribution. With strict set, a failed source scan raises
    ScanError instead, for callers that must not mistake a
    failure for a day without usage.
    """
    tasks = [
        _collect_source(source, scanner, window, metrics, strict) for source in sources
    ]
    # every scan runs to completion before the first error is raised
    results = await asyncio.gather(*tasks, return_exceptions=strict)

    records: "list[UsageRecord]" = []
    for source_records in results:
        if isinstance(source_records, BaseException):
            raise source_records
        records.extend(source_records)
    return records


async def _collect_source(
    source: "UsageSource",
    scanner: "LogScanner",
    window: "Window",
    metrics: "UsageMetrics | None",
    strict: "bool",
) -> "list[UsageRecord]":
    scan_start = time.monotonic()
    records: "list[UsageRecord]" = []

    try:
        request = source.request(window)
        result = await source.scan(scanner, request)

        if not result.success:
            logger.warning("source_scan_failed", source=source.name, error=result.error)
            if metrics is not None:
                metrics.inc_scan_error(source.name)
            if strict:
                raise ScanError(source.name, result.error)
            return records

        if result.truncated:
            # statistics may be incomplete, but what was read still counts
            logger.warning(
                "source_scan_truncated",
                source=source.name,
                total_matched=result.total_matched,
                scanned_count=result.scanned_count,
            )
            if metrics is not None:
                metrics.inc_scan_truncated(source.name)

        records = source.records(result, window)

    except ScanError:
        raise

    except Exception as exc:
        logger.exception("source_scan_error", source=source.name)
        if metrics is not None:
            metrics.inc_scan_error(source.name)
        if strict:
            raise ScanError(source.name, str(exc)) from exc
        return []

    finally:
        if metrics is not None:
            metrics.observe_scan_duration(source.name, time.monotonic() - scan_start)

    logger.debug("source_scan_done", source=source.name, record_count=len(records))
    return records


async def aggregate_usage(
    period: "str",
    scanner: "LogScanner",
    *,
    config: "Config | None" = None,
    sources: "Sequence[UsageSource] | None" = None,
    now: "datetime | None" = None,
    metrics: "UsageMetrics | None" = None,
) -> "Result":
    """
    aggregates token usage of every source over a named period
    ("today", "week" or "month").

    Never raises: an unknown period is rejected with
    INVALID_PERIOD before any scan, and anything unexpected comes
    back as a Failure carrying the exception message.
    """
    if period not in PERIODS:
        return Failure(error=ErrorCode.INVALID_PERIOD)

    try:
        config = config or Config()
        window = resolve_window(period, config.tz, now)
        logger.info(
            "aggregation_start",
            period=period,
            start=window.start.isoformat(),
            end=window.end.isoformat(),
        )

        records = await collect_records(
            sources if sources is not None else default_sources(config),
            scanner,
            window,
            metrics,
        )
        view = generate_view_data(aggregate_by_model(records))

        logger.info(
            "aggregation_end",
            period=period,
            record_count=len(records),
            total=view.total,
            model_count=view.model_count,
        )
        return Success(
            data=UsageReport(
                view=view,
                period=period,
                start_time=window.start,
                end_time=window.end,
                record_count=len(records),
            )
        )

    except Exception as exc:
        logger.exception("aggregation_error", period=period)
        return Failure(error=str(exc))
