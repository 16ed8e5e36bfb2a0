"""
Turns per-model aggregates into display-ready view data.

Percentages use the largest remainder method so the pie always
adds up to exactly 100, and more than five models collapse into
a Top 5 plus one "others" slice.
"""

from collections.abc import Mapping, Sequence

from tokenstat.models import DistributionEntry, ModelAggregate, ModelSummary, ViewData

# one distinct color per model family; substring matches follow
# insertion order
MODEL_COLORS: "dict[str, str]" = {
    "opus": "#f59e0b",
    "claude-opus": "#f59e0b",
    "sonnet": "#6366f1",
    "claude-sonnet": "#6366f1",
    "haiku": "#8b5cf6",
    "claude-haiku": "#8b5cf6",
    "claude": "#ec4899",
    "gpt-5": "#e67e22",
    "gpt-4o": "#f97316",
    "gpt-4": "#fbbf24",
    "gpt-3.5": "#f59e0b",
    "kimi": "#16a34a",
    "kimi-pro": "#22c55e",
    "deepseek": "#a855f7",
    "gemini": "#dc2626",
    "qwen": "#10b981",
    "yi": "#ec4899",
    "llama": "#06b6d4",
    "mistral": "#fbbf24",
    "codex": "#3b82f6",
}
DEFAULT_COLOR = "#8b919a"

TOP_N = 5
OTHERS_KEY = "others"


def model_color(name: "str") -> "str":
    normalized = (name or "").lower()
    if normalized in MODEL_COLORS:
        return MODEL_COLORS[normalized]

    for key, color in MODEL_COLORS.items():
        if key in normalized:
            return color
    return DEFAULT_COLOR


def largest_remainder_percents(totals: "Sequence[int]") -> "list[int]":
    """
    apportions 100 points over totals. Every share gets the floor
    of its exact percentage, then the leftover points go one at a
    time to the largest fractional remainders (ties: larger
    total, then earlier position).

    Integer arithmetic only: 100 * total // grand is the floor
    and the remainder numerator orders the fractions exactly.
    """
    grand_total = sum(totals)
    if grand_total <= 0:
        return [0 for _ in totals]

    floors: "list[int]" = []
    remainders: "list[int]" = []
    for total in totals:
        floor, remainder = divmod(100 * total, grand_total)
        floors.append(floor)
        remainders.append(remainder)

    shortfall = 100 - sum(floors)
    # sorted() is stable, so equal keys keep their original order
    ranked = sorted(
        range(len(totals)),
        key=lambda i: (-remainders[i], -totals[i]),
    )
    for i in ranked[:shortfall]:
        floors[i] += 1
    return floors


def format_percent_display(percent: "int", model_total: "int", grand_total: "int") -> "str":
    """
    renders a percent, showing "<1%" for a present contributor
    that rounded down to 0.
    """
    if percent == 0 and model_total > 0 and grand_total > 0:
        return "<1%"
    return format_percent(percent)


def format_percent(percent: "int") -> "str":
    return f"{percent}%"


def format_number(num: "int | float") -> "str":
    """
    abbreviates a token count: 1_500_000 -> "1.5M", 2300 -> "2.3K".
    """
    if num >= 1_000_000:
        return f"{num / 1_000_000:.1f}M"
    if num >= 1_000:
        return f"{num / 1_000:.1f}K"
    return str(num)


def _entry(summary: "ModelSummary", percent: "int", grand_total: "int") -> "DistributionEntry":
    return DistributionEntry(
        name=summary.name,
        percent=percent,
        display_percent=format_percent_display(percent, summary.total, grand_total),
        color=summary.color,
        key=summary.name,
    )


def generate_view_data(aggregated: "Mapping[str, ModelAggregate]") -> "ViewData":
    """
    builds the ViewData for a set of per-model aggregates.
     - models with a zero total are dropped
     - models are sorted by total descending, then by name, so
       Top 5 membership is stable across runs
     - up to 5 models: one distribution entry each
     - more than 5: Top 5 plus an "others" entry holding
       100 minus the Top 5 percents
    """
    ordered = sorted(
        (item for item in aggregated.values() if item.total > 0),
        key=lambda item: (-item.total, item.name),
    )
    models = tuple(
        ModelSummary(
            name=item.name,
            input=item.input,
            output=item.output,
            cache_read=item.cache_read,
            cache_create=item.cache_create,
            total=item.total,
            count=item.count,
            color=model_color(item.name),
        )
        for item in ordered
    )

    total = sum(m.total for m in models)
    percents = largest_remainder_percents([m.total for m in models])
    is_extreme = len(models) > TOP_N

    if not is_extreme:
        distribution = [_entry(m, p, total) for m, p in zip(models, percents)]
    else:
        distribution = [
            _entry(m, p, total) for m, p in zip(models[:TOP_N], percents[:TOP_N])
        ]
        others = models[TOP_N:]
        others_total = sum(m.total for m in others)
        # derived from the Top 5 rather than rounded on its own,
        # so the slices still add up to 100
        others_percent = 100 - sum(percents[:TOP_N]) if others_total > 0 else 0
        distribution.append(
            DistributionEntry(
                name=f"其他 ({len(others)}个模型)",
                percent=others_percent,
                display_percent=format_percent_display(
                    others_percent, others_total, total
                ),
                color=DEFAULT_COLOR,
                key=OTHERS_KEY,
            )
        )

    return ViewData(
        total=total,
        input=sum(m.input for m in models),
        output=sum(m.output for m in models),
        cache=sum(m.cache_read + m.cache_create for m in models),
        models=models,
        distribution=tuple(distribution),
        is_extreme_scenario=is_extreme,
        model_count=len(models),
    )
