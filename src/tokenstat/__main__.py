import asyncio
import signal
import sys

import structlog
from prometheus_client import start_http_server

from tokenstat.cli import Query, parse_args, render
from tokenstat.config import Config
from tokenstat.engine import aggregate_usage
from tokenstat.exporter import Exporter
from tokenstat.logging import setup_logging
from tokenstat.metrics import UsageMetrics
from tokenstat.models import Failure, Result
from tokenstat.ranges import aggregate_usage_range
from tokenstat.scanner.local import LocalLogScanner

logger = structlog.get_logger()


def _parse_listen_address(addr: "str") -> "tuple[str, int]":
    """
    parses listen address in format ':9186' or '0.0.0.0:9186'.
    """
    if addr.startswith(":"):
        return ("0.0.0.0", int(addr[1:]))

    host, port = addr.rsplit(":", 1)
    return (host, int(port))


async def _report(config: "Config", query: "Query") -> "Result":
    scanner = LocalLogScanner(max_files=config.max_files)
    if query.is_range:
        return await aggregate_usage_range(
            {
                "startDate": query.start_date,
                "endDate": query.end_date,
                "timezone": config.timezone,
            },
            scanner,
            config=config,
        )
    return await aggregate_usage(query.period, scanner, config=config)


def _serve(config: "Config") -> "None":
    metrics = UsageMetrics()
    host, port = _parse_listen_address(config.listen_address)
    start_http_server(port, addr=host)
    logger.info("metrics_server_started", host=host, port=port)

    async def _run() -> "None":
        exporter = Exporter(LocalLogScanner(config.max_files), metrics, config)
        loop = asyncio.get_running_loop()
        # for SIGINT and SIGTERM, signal the exporter
        # to stop gracefully
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, exporter.stop)

        await exporter.run()
        logger.info("shutdown_complete")

    asyncio.run(_run())


def main() -> "None":
    config, query = parse_args()
    setup_logging(config.log_level, config.json_logs)

    if config.exporter_enabled:
        _serve(config)
        return

    result = asyncio.run(_report(config, query))
    print(render(result, query.output_format))
    if isinstance(result, Failure):
        sys.exit(1)


if __name__ == "__main__":
    main()
