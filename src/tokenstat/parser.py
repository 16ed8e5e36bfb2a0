"""
Record normalization for the three log sources.

Every parse function here is total: malformed, partial or
irrelevant input yields None, never an exception, so one bad
line can't abort a file scan.
"""

import json
import math
from collections.abc import Mapping
from datetime import datetime, timezone

from tokenstat.models import CumulativeSnapshot, Source, UsageRecord

# ordered (substring, family) pairs; first match wins
MODEL_FAMILIES: "tuple[tuple[str, str], ...]" = (
    ("opus", "opus"),
    ("sonnet", "sonnet"),
    ("haiku", "haiku"),
    ("claude", "claude"),
    ("gpt-5", "gpt-5"),
    ("gpt5", "gpt-5"),
    ("gpt-4o", "gpt-4o"),
    ("gpt-4", "gpt-4"),
    ("gpt-3.5", "gpt-3.5"),
    ("gpt3", "gpt-3.5"),
    ("minimax", "minimax"),
    ("glm", "glm"),
    ("gemini", "gemini"),
    ("kimi", "kimi"),
    ("deepseek", "deepseek"),
    ("qwen", "qwen"),
    ("yi", "yi"),
    ("llama", "llama"),
    ("mistral", "mistral"),
)

# droid names are matched whole, with no provider split and no "yi"
DROID_FAMILIES: "tuple[tuple[str, str], ...]" = tuple(
    (pattern, family) for pattern, family in MODEL_FAMILIES if family != "yi"
)

CUSTOM_PREFIX = "custom:"
CODEX_MODEL = "codex"
DROID_MODEL = "droid"
UNKNOWN_MODEL = "unknown"


def to_safe_int(value: "object") -> "int":
    """
    coerces a log value into a non-negative integer. Anything
    non-numeric, non-finite or negative becomes 0 and fractions
    are floored.
    """
    if isinstance(value, bool) or value is None:
        return 0

    if isinstance(value, int):
        return max(0, value)

    try:
        number = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return 0

    if not math.isfinite(number):
        return 0
    return max(0, math.floor(number))


def parse_timestamp(value: "object") -> "datetime | None":
    """
    parses an ISO-8601 timestamp. Naive values are read as UTC.
    """
    if not isinstance(value, str) or not value:
        return None

    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def split_provider(raw_model: "str") -> "tuple[str | None, str]":
    """
    splits an optional routing prefix off a raw model identifier.
     - "minimax/minimax-m2.1" -> ("minimax", "minimax-m2.1")
     - "Pro/MiniMaxAI/MiniMax-M2.5" -> ("Pro/MiniMaxAI", "MiniMax-M2.5")
     - "custom:foo/bar" -> (None, "custom:foo/bar")
    """
    if not raw_model or raw_model.startswith(CUSTOM_PREFIX):
        return None, raw_model

    slash = raw_model.rfind("/")
    if 0 < slash < len(raw_model) - 1:
        return raw_model[:slash], raw_model[slash + 1 :]

    return None, raw_model


def match_family(
    name: "str",
    families: "tuple[tuple[str, str], ...]" = MODEL_FAMILIES,
) -> "str | None":
    lowered = name.lower()
    for pattern, family in families:
        if pattern in lowered:
            return family
    return None


def canonicalize_model(raw_model: "object", fallback: "str | None" = None) -> "str":
    """
    maps a vendor model identifier onto its family name, e.g.
    "claude-sonnet-4-5-20250929" -> "sonnet". Unmatched names
    keep their first two dash-delimited tokens unless a
    fallback is given.
    """
    if not isinstance(raw_model, str) or not raw_model:
        return fallback or UNKNOWN_MODEL

    _, model_part = split_provider(raw_model)
    family = match_family(model_part)
    if family is not None:
        return family

    if fallback is not None:
        return fallback

    lowered = model_part.lower().split(":")[0]
    return "-".join(lowered.split("-")[:2])


def _load_object(line: "str") -> "dict | None":
    try:
        data = json.loads(line)
    except (TypeError, ValueError):
        return None
    return data if isinstance(data, dict) else None


def parse_claude_line(line: "str") -> "UsageRecord | None":
    """
    parses one claude JSONL line. Only lines carrying a
    message.usage object are usage events.
    """
    data = _load_object(line)
    if data is None:
        return None

    message = data.get("message")
    if not isinstance(message, Mapping):
        return None

    usage = message.get("usage")
    if not isinstance(usage, Mapping):
        return None

    raw_model = message.get("model")
    if not isinstance(raw_model, str) or not raw_model:
        raw_model = UNKNOWN_MODEL
    provider, _ = split_provider(raw_model)
    message_id = message.get("id")

    return UsageRecord(
        timestamp=parse_timestamp(data.get("timestamp") or message.get("timestamp")),
        model=canonicalize_model(raw_model),
        raw_model=raw_model,
        provider=provider,
        source=Source.CLAUDE,
        input=to_safe_int(usage.get("input_tokens")),
        output=to_safe_int(usage.get("output_tokens")),
        cache_read=to_safe_int(
            usage.get("cache_read_input_tokens") or usage.get("cache_read_tokens")
        ),
        cache_create=to_safe_int(
            usage.get("cache_creation_input_tokens")
            or usage.get("cache_creation_tokens")
        ),
        message_id=message_id if isinstance(message_id, str) else None,
    )


def parse_codex_snapshot(line: "str") -> "CumulativeSnapshot | None":
    """
    parses one codex JSONL line into a cumulative snapshot.
    Only event_msg lines whose payload is a token_count event
    with a total_token_usage block qualify.
    """
    data = _load_object(line)
    if data is None or data.get("type") != "event_msg":
        return None

    payload = data.get("payload")
    if not isinstance(payload, Mapping) or payload.get("type") != "token_count":
        return None

    info = payload.get("info")
    if not isinstance(info, Mapping):
        return None

    totals = info.get("total_token_usage")
    if not isinstance(totals, Mapping):
        return None

    input_total = to_safe_int(totals.get("input_tokens"))
    output_total = to_safe_int(totals.get("output_tokens"))
    cache_read_total = to_safe_int(totals.get("cached_input_tokens"))
    total_tokens = to_safe_int(totals.get("total_tokens")) or (
        input_total + output_total + cache_read_total
    )

    return CumulativeSnapshot(
        timestamp=parse_timestamp(data.get("timestamp")),
        model=CODEX_MODEL,
        input_total=input_total,
        output_total=output_total,
        cache_read_total=cache_read_total,
        total_tokens=total_tokens,
    )


def parse_droid_settings(document: "object") -> "UsageRecord | None":
    """
    extracts the tokenUsage block of a droid session settings
    document. Idle sessions (zero tokens) are discarded.
    """
    if not isinstance(document, Mapping):
        return None

    usage = document.get("tokenUsage")
    if not isinstance(usage, Mapping):
        return None

    record_input = to_safe_int(usage.get("inputTokens"))
    record_output = to_safe_int(usage.get("outputTokens"))
    cache_read = to_safe_int(usage.get("cacheReadTokens"))
    cache_create = to_safe_int(usage.get("cacheCreationTokens"))
    if record_input + record_output + cache_read + cache_create <= 0:
        return None

    raw_model = document.get("model")
    if not isinstance(raw_model, str) or not raw_model:
        raw_model = DROID_MODEL
    # droid names look like "custom:Opus-4.6-Kiro-[host]-0"
    stripped = raw_model
    if stripped.lower().startswith(CUSTOM_PREFIX):
        stripped = stripped[len(CUSTOM_PREFIX) :]

    return UsageRecord(
        timestamp=None,
        model=match_family(stripped, DROID_FAMILIES) or DROID_MODEL,
        raw_model=raw_model,
        provider=None,
        source=Source.DROID,
        input=record_input,
        output=record_output,
        cache_read=cache_read,
        cache_create=cache_create,
    )


def parse_droid_document(text: "str") -> "UsageRecord | None":
    data = _load_object(text)
    if data is None:
        return None
    return parse_droid_settings(data)
