import asyncio
import time

import structlog

from tokenstat.config import Config
from tokenstat.engine import aggregate_usage, default_sources
from tokenstat.metrics import UsageMetrics
from tokenstat.models import Failure
from tokenstat.scanner.base import LogScanner
from tokenstat.window import PERIODS

logger = structlog.get_logger()


class Exporter:
    """
    Exporter periodically re-aggregates every period and
    publishes the results as Prometheus gauges. A period whose
    aggregation fails keeps the gauges of its last good run.
    """

    def __init__(
        self,
        scanner: "LogScanner",
        metrics: "UsageMetrics",
        config: "Config",
    ) -> "None":
        self._scanner = scanner
        self._metrics = metrics
        self._config = config
        self._sources = default_sources(config)
        self._interval = config.scrape_interval
        self._stop_event: "asyncio.Event" = asyncio.Event()

    def stop(self) -> "None":
        """
        signals the export loop to stop after the current cycle.
        """
        self._stop_event.set()

    async def run(self) -> "None":
        """
        runs the export loop until stop() is called.
        """
        while not self._stop_event.is_set():
            logger.info("export_cycle_start")
            await self.refresh()
            logger.info("export_cycle_end")

            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=self._interval)
            except TimeoutError:
                pass

    async def refresh(self) -> "None":
        """
        aggregates all periods concurrently and updates the gauges.
        """
        tasks = [
            aggregate_usage(
                period,
                self._scanner,
                config=self._config,
                sources=self._sources,
                metrics=self._metrics,
            )
            for period in PERIODS
        ]
        results = await asyncio.gather(*tasks)

        for period, result in zip(PERIODS, results):
            if isinstance(result, Failure):
                logger.error("export_period_failed", period=period, error=result.error)
                continue

            report = result.data
            self._metrics.update_view(period, report.view, report.record_count)
            self._metrics.set_last_success(period, time.time())
