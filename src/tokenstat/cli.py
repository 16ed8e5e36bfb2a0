import argparse
import json
from dataclasses import dataclass

from tokenstat.config import Config
from tokenstat.models import Failure, RangeReport, Result, UsageReport
from tokenstat.view import format_number
from tokenstat.window import PERIODS


@dataclass
class Query:
    period: "str" = "today"
    # both set for a custom range, YYYY-MM-DD
    start_date: "str | None" = None
    end_date: "str | None" = None
    output_format: "str" = "table"

    @property
    def is_range(self) -> "bool":
        return self.start_date is not None or self.end_date is not None


def parse_args(argv: "list[str] | None" = None) -> "tuple[Config, Query]":
    parser = argparse.ArgumentParser(
        prog="tokenstat",
        description="Token usage statistics for AI coding assistants",
    )
    parser.add_argument(
        "--period",
        choices=PERIODS,
        default="today",
        help="Named period to report (default: today)",
    )
    parser.add_argument(
        "--start-date",
        dest="start_date",
        help="First day of a custom range, YYYY-MM-DD",
    )
    parser.add_argument(
        "--end-date",
        dest="end_date",
        help="Last day of a custom range, YYYY-MM-DD",
    )
    parser.add_argument(
        "--timezone",
        help="Civil timezone windows are anchored to (default: Asia/Shanghai)",
    )
    parser.add_argument(
        "--format",
        dest="output_format",
        choices=["table", "json"],
        default="table",
        help="Report format (default: table)",
    )
    parser.add_argument(
        "--scan.max-files",
        dest="max_files",
        type=int,
        help="Maximum files read per source scan (default: 2000)",
    )
    parser.add_argument(
        "--web.listen-address",
        dest="listen_address",
        default="",
        help="Run as a Prometheus exporter on this address, e.g. :9186",
    )
    parser.add_argument(
        "--scrape.interval",
        dest="scrape_interval",
        type=int,
        default=300,
        help="Exporter refresh interval in seconds (default: 300)",
    )
    parser.add_argument(
        "--log.level",
        dest="log_level",
        default="warning",
        choices=["debug", "info", "warning", "error"],
        help="Log level (default: warning)",
    )
    parser.add_argument(
        "--log.json",
        dest="json_logs",
        action="store_true",
        help="Emit logs as JSON lines",
    )

    args = parser.parse_args(argv)
    if (args.start_date is None) != (args.end_date is None):
        parser.error("--start-date and --end-date must be given together")

    try:
        config = Config.from_env()
    except ValueError as exc:
        parser.error(str(exc))

    if args.timezone:
        config.timezone = args.timezone
    if args.max_files is not None:
        config.max_files = args.max_files
    config.listen_address = args.listen_address
    config.scrape_interval = args.scrape_interval
    config.log_level = args.log_level
    config.json_logs = args.json_logs

    query = Query(
        period=args.period,
        start_date=args.start_date,
        end_date=args.end_date,
        output_format=args.output_format,
    )
    return config, query


def render(result: "Result", output_format: "str") -> "str":
    if output_format == "json":
        return json.dumps(result.to_dict(), ensure_ascii=False, indent=2)
    return render_table(result)


def render_table(result: "Result") -> "str":
    """
    renders a result as a plain text table, one row per model
    followed by the distribution.
    """
    if isinstance(result, Failure):
        return f"error: {result.error}"

    report = result.data
    view = report.view
    if isinstance(report, UsageReport):
        heading = f"period: {report.period} ({report.record_count} records)"
    elif isinstance(report, RangeReport):
        heading = f"range: {report.start_date} .. {report.end_date}"
    else:
        heading = ""

    lines = [
        heading,
        f"total: {format_number(view.total)}  input: {format_number(view.input)}"
        f"  output: {format_number(view.output)}  cache: {format_number(view.cache)}",
    ]
    if not view.models:
        lines.append("no usage recorded")
        return "\n".join(lines)

    lines.append("")
    lines.append(f"{'model':<16}{'input':>10}{'output':>10}{'cache':>10}{'total':>10}")
    for model in view.models:
        lines.append(
            f"{model.name:<16}"
            f"{format_number(model.input):>10}"
            f"{format_number(model.output):>10}"
            f"{format_number(model.cache_read + model.cache_create):>10}"
            f"{format_number(model.total):>10}"
        )

    lines.append("")
    for entry in view.distribution:
        lines.append(f"{entry.name:<24}{entry.display_percent:>6}")

    if result.meta is not None:
        meta = result.meta
        lines.append("")
        lines.append(
            f"days: {meta.total_days} (cached {meta.from_cache_days},"
            f" recomputed {meta.recomputed_days}, failed {meta.failed_days})"
        )
    return "\n".join(lines)
