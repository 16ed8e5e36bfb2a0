from prometheus_client import REGISTRY, CollectorRegistry, Counter, Gauge, Histogram

from tokenstat.models import ViewData

TOKEN_CATEGORIES: "tuple[str, ...]" = ("input", "output", "cache_read", "cache_create")


class UsageMetrics:
    """
    records scan health per source and, in exporter mode, the
    latest aggregated token counts per period and model.
    """

    def __init__(self, registry: "CollectorRegistry" = REGISTRY) -> "None":
        self._scan_duration: "Histogram" = Histogram(
            "tokenstat_scan_duration_seconds",
            "Duration of one source scan",
            ["source"],
            registry=registry,
        )
        self._scan_errors: "Counter" = Counter(
            "tokenstat_scan_errors_total",
            "Total number of failed source scans",
            ["source"],
            registry=registry,
        )
        self._scan_truncated: "Counter" = Counter(
            "tokenstat_scan_truncated_total",
            "Total number of source scans cut short by the file cap",
            ["source"],
            registry=registry,
        )
        self._last_success: "Gauge" = Gauge(
            "tokenstat_last_aggregation_success_timestamp_seconds",
            "Unix timestamp of the last successful aggregation per period",
            ["period"],
            registry=registry,
        )
        self._tokens: "Gauge" = Gauge(
            "tokenstat_tokens",
            "Tokens consumed in the period window",
            ["period", "model", "category"],
            registry=registry,
        )
        self._records: "Gauge" = Gauge(
            "tokenstat_records",
            "Usage records folded into the period window",
            ["period"],
            registry=registry,
        )
        # period -> models currently exported, to drop stale series
        self._exported_models: "dict[str, set[str]]" = {}

    def observe_scan_duration(self, source: "str", duration_seconds: "float") -> "None":
        self._scan_duration.labels(source=source).observe(duration_seconds)

    def inc_scan_error(self, source: "str") -> "None":
        self._scan_errors.labels(source=source).inc()

    def inc_scan_truncated(self, source: "str") -> "None":
        self._scan_truncated.labels(source=source).inc()

    def set_last_success(self, period: "str", timestamp: "float") -> "None":
        self._last_success.labels(period=period).set(timestamp)

    def update_view(self, period: "str", view: "ViewData", record_count: "int") -> "None":
        """
        replaces the token gauges of a period with the given view.
        Models that no longer appear are removed.
        """
        current = {m.name for m in view.models}
        for stale in self._exported_models.get(period, set()) - current:
            for category in TOKEN_CATEGORIES:
                self._tokens.remove(period, stale, category)

        for model in view.models:
            values = {
                "input": model.input,
                "output": model.output,
                "cache_read": model.cache_read,
                "cache_create": model.cache_create,
            }
            for category, value in values.items():
                self._tokens.labels(
                    period=period, model=model.name, category=category
                ).set(value)

        self._records.labels(period=period).set(record_count)
        self._exported_models[period] = current
