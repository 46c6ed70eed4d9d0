"""Generation of multiwindow, multi-burn-rate SLO alert rules."""

from __future__ import annotations

from .helpers import (
    SLO_NAME_LABEL,
    SLO_SERVICE_LABEL,
    SLO_SEVERITY_LABEL,
    SLO_WINDOW_LABEL,
    labels_to_prom_filter,
    merge_labels,
)
from .model import SLO, AlertMeta, MWMBAlert, MWMBAlertGroup, Rule
from .recording_rules import RuleGenerationError
from .templating import TemplateError, render_template

_MWMB_ALERT_TPL = """(
    ({{ .QuickShortMetric }}{{ .MetricFilter}} > ({{ .QuickShortBurnFactor }} * {{ .ErrorBudgetRatio }}))
    and ignoring ({{ .WindowLabel }})
    ({{ .QuickLongMetric }}{{ .MetricFilter}} > ({{ .QuickLongBurnFactor }} * {{ .ErrorBudgetRatio }}))
)
or ignoring ({{ .WindowLabel }})
(
    ({{ .SlowShortMetric }}{{ .MetricFilter }} > ({{ .SlowShortBurnFactor }} * {{ .ErrorBudgetRatio }}))
    and ignoring ({{ .WindowLabel }})
    ({{ .SlowQuickMetric }}{{ .MetricFilter }} > ({{ .SlowQuickBurnFactor }} * {{ .ErrorBudgetRatio }}))
)
"""


def _alert_rule(slo: SLO, meta: AlertMeta, quick: MWMBAlert, slow: MWMBAlert) -> Rule:
    data = {
        "MetricFilter": labels_to_prom_filter(slo.id_prom_labels()),
        # Quick and slow alerts share the same error budget and severity.
        "ErrorBudgetRatio": quick.error_budget / 100,
        "QuickShortMetric": slo.sli_error_metric(quick.short_window),
        "QuickShortBurnFactor": float(quick.burn_rate_factor),
        "QuickLongMetric": slo.sli_error_metric(quick.long_window),
        "QuickLongBurnFactor": float(quick.burn_rate_factor),
        "SlowShortMetric": slo.sli_error_metric(slow.short_window),
        "SlowShortBurnFactor": float(slow.burn_rate_factor),
        "SlowQuickMetric": slo.sli_error_metric(slow.long_window),
        "SlowQuickBurnFactor": float(slow.burn_rate_factor),
        "WindowLabel": SLO_WINDOW_LABEL,
    }
    expr = render_template(_MWMB_ALERT_TPL, data, strict=True)

    severity = str(quick.severity)
    extra_annotations = {
        "title": (
            f"({severity}) {{{{$labels.{SLO_SERVICE_LABEL}}}}} {{{{$labels.{SLO_NAME_LABEL}}}}} "
            "SLO error budget burn rate is too fast."
        ),
        "summary": (
            f"{{{{$labels.{SLO_SERVICE_LABEL}}}}} {{{{$labels.{SLO_NAME_LABEL}}}}} "
            "SLO error budget burn rate is over expected."
        ),
    }
    extra_labels = {SLO_SEVERITY_LABEL: severity}

    return Rule(
        alert=meta.name,
        expr=expr,
        labels=merge_labels(extra_labels, meta.labels),
        annotations=merge_labels(extra_annotations, meta.annotations),
    )


def generate_slo_alert_rules(slo: SLO, alerts: MWMBAlertGroup) -> list[Rule]:
    """Build the page and ticket alert rules of ``slo`` that are not disabled."""
    rules: list[Rule] = []
    if not slo.page_alert_meta.disable:
        try:
            rules.append(_alert_rule(slo, slo.page_alert_meta, alerts.page_quick, alerts.page_slow))
        except TemplateError as err:
            raise RuleGenerationError(f"could not create page alert: {err}") from err
    if not slo.ticket_alert_meta.disable:
        try:
            rules.append(
                _alert_rule(slo, slo.ticket_alert_meta, alerts.ticket_quick, alerts.ticket_slow)
            )
        except TemplateError as err:
            raise RuleGenerationError(f"could not create ticket alert: {err}") from err
    return rules