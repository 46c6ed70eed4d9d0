"""Generation of SLI and metadata Prometheus recording rules."""

from __future__ import annotations

import math
from datetime import timedelta
from decimal import Decimal

from .helpers import (
    SLO_ID_LABEL,
    SLO_MODE_LABEL,
    SLO_NAME_LABEL,
    SLO_SERVICE_LABEL,
    SLO_SPEC_LABEL,
    SLO_VERSION_LABEL,
    SLO_WINDOW_LABEL,
    alert_group_windows,
    duration_to_prom_str,
    labels_to_prom_filter,
    merge_labels,
)
from .model import SLO, Info, MWMBAlertGroup, Rule
from .templating import TemplateError, render_template

TPL_KEY_WINDOW = "window"

METRIC_SLO_OBJECTIVE_RATIO = "slo:objective:ratio"
METRIC_SLO_ERROR_BUDGET_RATIO = "slo:error_budget:ratio"
METRIC_SLO_TIME_PERIOD_DAYS = "slo:time_period:days"
METRIC_SLO_CURRENT_BURN_RATE_RATIO = "slo:current_burn_rate:ratio"
METRIC_SLO_PERIOD_BURN_RATE_RATIO = "slo:period_burn_rate:ratio"
METRIC_SLO_PERIOD_ERROR_BUDGET_REMAINING_RATIO = "slo:period_error_budget_remaining:ratio"
METRIC_SLO_INFO = "sloth_slo_info"

# Averaging ratios is statistically wrong, so the ratios over the window are
# summed and divided by how many there are.
_OPTIMIZED_SLI_TPL = """sum_over_time({{.metric}}{{.filter}}[{{.window}}])
/ ignoring ({{.windowKey}})
count_over_time({{.metric}}{{.filter}}[{{.window}}])
"""

_BURN_RATE_TPL = """{{ .SLIErrorMetric }}{{ .MetricFilter }}
/ on({{ .SLOIDName }}, {{ .SLOLabelName }}, {{ .SLOServiceName }}) group_left
{{ .ErrorBudgetRatioMetric }}{{ .MetricFilter }}
"""


class RuleGenerationError(ValueError):
    """Raised when Prometheus rules cannot be generated for an SLO."""


def _format_g(value: float) -> str:
    """Format a float as the shortest ``%g`` representation."""
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "+Inf" if value > 0 else "-Inf"
    if value == 0:
        return "0"
    sign, digits, exponent = Decimal(repr(float(value))).normalize().as_tuple()
    mantissa = "".join(str(d) for d in digits)
    point_exp = len(digits) + exponent - 1
    prefix = "-" if sign else ""
    if point_exp < -4 or point_exp >= 6:
        body = mantissa[0] + ("." + mantissa[1:] if len(mantissa) > 1 else "")
        esign = "-" if point_exp < 0 else "+"
        return f"{prefix}{body}e{esign}{abs(point_exp):02d}"
    return prefix + format(Decimal(mantissa).scaleb(exponent), "f")


def _render(template: str, data: dict[str, str]) -> str:
    try:
        return render_template(template, data, strict=True)
    except TemplateError as err:
        raise RuleGenerationError(f"could not render SLI expression template: {err}") from err


def _windowed_rule(slo: SLO, window: timedelta, template: str) -> Rule:
    str_window = duration_to_prom_str(window)
    expr = _render(template, {TPL_KEY_WINDOW: str_window})
    return Rule(
        record=slo.sli_error_metric(window),
        expr=expr,
        labels=merge_labels(
            slo.id_prom_labels(), {SLO_WINDOW_LABEL: str_window}, slo.labels
        ),
    )


def _optimized_rule(slo: SLO, window: timedelta, short_window: timedelta) -> Rule:
    """Derive the SLI for ``window`` from the ``short_window`` SLI recording."""
    if window == short_window:
        raise RuleGenerationError(
            "can't optimize using the same shortwindow as the window to optimize"
        )
    str_window = duration_to_prom_str(window)
    expr = _render(
        _OPTIMIZED_SLI_TPL,
        {
            "metric": slo.sli_error_metric(short_window),
            "filter": labels_to_prom_filter(slo.id_prom_labels()),
            "window": str_window,
            "windowKey": SLO_WINDOW_LABEL,
        },
    )
    # The SLO labels come from the source SLI recording rule.
    return Rule(
        record=slo.sli_error_metric(window),
        expr=expr,
        labels={SLO_WINDOW_LABEL: str_window},
    )


def _sli_rule(slo: SLO, window: timedelta, alerts: MWMBAlertGroup) -> Rule:
    if window == slo.time_window:
        return _optimized_rule(slo, window, alerts.page_quick.short_window)
    if slo.sli.events is not None:
        events = slo.sli.events
        return _windowed_rule(
            slo, window, f"({events.error_query})\n/\n({events.total_query})\n"
        )
    if slo.sli.raw is not None:
        return _windowed_rule(slo, window, f"({slo.sli.raw.error_ratio_query})")
    raise RuleGenerationError("invalid SLI type")


def generate_sli_recording_rules(slo: SLO, alerts: MWMBAlertGroup) -> list[Rule]:
    """Build one SLI error recording rule per alert window plus the SLO period."""
    windows = [*alert_group_windows(alerts), slo.time_window]
    rules = []
    for window in windows:
        try:
            rules.append(_sli_rule(slo, window, alerts))
        except RuleGenerationError as err:
            raise RuleGenerationError(
                f"could not create {slo.id!r} SLO rule for window "
                f"{duration_to_prom_str(window)}: {err}"
            ) from err
    return rules


def _burn_rate_expr(slo: SLO, window: timedelta, metric_filter: str) -> str:
    return _render(
        _BURN_RATE_TPL,
        {
            "SLIErrorMetric": slo.sli_error_metric(window),
            "MetricFilter": metric_filter,
            "SLOIDName": SLO_ID_LABEL,
            "SLOLabelName": SLO_NAME_LABEL,
            "SLOServiceName": SLO_SERVICE_LABEL,
            "ErrorBudgetRatioMetric": METRIC_SLO_ERROR_BUDGET_RATIO,
        },
    )


def generate_metadata_recording_rules(info: Info, slo: SLO, alerts: MWMBAlertGroup) -> list[Rule]:
    """Build the informational recording rules of an SLO."""
    labels = merge_labels(slo.id_prom_labels(), slo.labels)
    objective_ratio = _format_g(slo.objective / 100)
    slo_filter = labels_to_prom_filter(slo.id_prom_labels())
    days = _format_g(slo.time_window / timedelta(hours=1) / 24)

    current_burn_rate = _burn_rate_expr(slo, alerts.page_quick.short_window, slo_filter)
    period_burn_rate = _burn_rate_expr(slo, slo.time_window, slo_filter)

    return [
        Rule(record=METRIC_SLO_OBJECTIVE_RATIO, expr=f"vector({objective_ratio})",
             labels=dict(labels)),
        Rule(record=METRIC_SLO_ERROR_BUDGET_RATIO, expr=f"vector(1-{objective_ratio})",
             labels=dict(labels)),
        Rule(record=METRIC_SLO_TIME_PERIOD_DAYS, expr=f"vector({days})", labels=dict(labels)),
        Rule(record=METRIC_SLO_CURRENT_BURN_RATE_RATIO, expr=current_burn_rate,
             labels=dict(labels)),
        Rule(record=METRIC_SLO_PERIOD_BURN_RATE_RATIO, expr=period_burn_rate,
             labels=dict(labels)),
        Rule(
            record=METRIC_SLO_PERIOD_ERROR_BUDGET_REMAINING_RATIO,
            expr=f"1 - {METRIC_SLO_PERIOD_BURN_RATE_RATIO}{slo_filter}",
            labels=dict(labels),
        ),
        Rule(
            record=METRIC_SLO_INFO,
            expr="vector(1)",
            labels=merge_labels(
                labels,
                {
                    SLO_VERSION_LABEL: info.version,
                    SLO_MODE_LABEL: str(info.mode),
                    SLO_SPEC_LABEL: info.spec,
                },
            ),
        ),
    ]