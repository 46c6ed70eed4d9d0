"""Naming conventions and small helpers for Prometheus rule generation."""

from __future__ import annotations

import re
from datetime import timedelta
from typing import Any, Mapping

SLI_ERROR_METRIC_PREFIX = "slo:sli_error:ratio_rate"
SLO_NAME_LABEL = "sloth_slo"
SLO_ID_LABEL = "sloth_id"
SLO_SERVICE_LABEL = "sloth_service"
SLO_WINDOW_LABEL = "sloth_window"
SLO_SEVERITY_LABEL = "sloth_severity"
SLO_VERSION_LABEL = "sloth_version"
SLO_MODE_LABEL = "sloth_mode"
SLO_SPEC_LABEL = "sloth_spec"
METRIC_NAME_LABEL = "__name__"

_LABEL_NAME = re.compile(r"^[a-zA-Z_][a-zA-Z0-9_]*$")

_MS_DAY = 1000 * 60 * 60 * 24
_DURATION_UNITS = (
    ("y", _MS_DAY * 365, True),
    ("w", _MS_DAY * 7, True),
    ("d", _MS_DAY, False),
    ("h", 1000 * 60 * 60, False),
    ("m", 1000 * 60, False),
    ("s", 1000, False),
    ("ms", 1, False),
)


def merge_labels(*args: Mapping[str, str] | None) -> dict[str, str]:
    """Merge label maps; later maps override earlier ones."""
    result: dict[str, str] = {}
    for labels in args:
        if labels:
            result.update(labels)
    return result


def _quote(value: str) -> str:
    out = ['"']
    for ch in value:
        if ch == '"':
            out.append('\\"')
        elif ch == "\\":
            out.append("\\\\")
        elif ch == "\n":
            out.append("\\n")
        elif ch == "\t":
            out.append("\\t")
        elif ch == "\r":
            out.append("\\r")
        elif not ch.isprintable():
            out.append(f"\\x{ord(ch):02x}" if ord(ch) < 0x100 else f"\\u{ord(ch):04x}")
        else:
            out.append(ch)
    out.append('"')
    return "".join(out)


def labels_to_prom_filter(labels: Mapping[str, str]) -> str:
    """Render labels as a Prometheus selector such as ``{a="1", b="2"}``."""
    parts = (f"{key}={_quote(labels[key])}" for key in sorted(labels))
    return "{" + ", ".join(parts) + "}"


def duration_to_prom_str(window: timedelta) -> str:
    """Format a duration the way Prometheus does (``5m``, ``1h30m``, ``30d``)."""
    ms = window // timedelta(milliseconds=1)
    if ms == 0:
        return "0s"
    sign = "-" if ms < 0 else ""
    ms = abs(ms)
    parts = []
    for unit, mult, exact in _DURATION_UNITS:
        if exact and ms % mult != 0:
            continue
        value = ms // mult
        if value > 0:
            parts.append(f"{value}{unit}")
            ms -= value * mult
    return sign + "".join(parts)


def alert_group_windows(alerts: Any) -> list[timedelta]:
    """Return the distinct, sorted time windows used by a multiwindow alert group."""
    members = (alerts.page_quick, alerts.page_slow, alerts.ticket_quick, alerts.ticket_slow)
    windows = {w for a in members for w in (a.short_window, a.long_window)}
    return sorted(windows)


def is_valid_label_name(name: str) -> bool:
    """Return whether ``name`` is a valid Prometheus label name."""
    return bool(_LABEL_NAME.match(name))


def is_valid_label_value(value: str | bytes) -> bool:
    """Return whether ``value`` is valid UTF-8 text."""
    try:
        if isinstance(value, bytes):
            value.decode("utf-8")
        else:
            value.encode("utf-8")
    except (UnicodeDecodeError, UnicodeEncodeError):
        return False
    return True