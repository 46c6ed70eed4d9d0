"""SLO domain model and its validation."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import timedelta
from enum import Enum
from typing import Callable

from .helpers import (
    METRIC_NAME_LABEL,
    SLI_ERROR_METRIC_PREFIX,
    SLO_ID_LABEL,
    SLO_NAME_LABEL,
    SLO_SERVICE_LABEL,
    duration_to_prom_str,
    is_valid_label_name,
    is_valid_label_value,
)
from .promql import is_valid_expression
from .templating import TemplateError, render_template

_NAME = re.compile(r"^[A-Za-z0-9][-A-Za-z0-9_.]*[A-Za-z0-9]$")
_TPL_WINDOW = re.compile(r"{{ *\.window *}}")
_EXPR_FAKE_DATA = {"window": "1m"}


@dataclass(frozen=True)
class FieldError:
    namespace: str
    field: str
    tag: str

    def __str__(self) -> str:
        return (
            f"Key: '{self.namespace}' Error:Field validation for "
            f"'{self.field}' failed on the '{self.tag}' tag"
        )


class ValidationError(ValueError):
    """Raised when an SLO group fails validation."""

    def __init__(self, errors: list[FieldError]):
        self.errors = list(errors)
        super().__init__("\n".join(str(e) for e in self.errors))


class AlertSeverity(str, Enum):
    PAGE = "page"
    TICKET = "ticket"

    def __str__(self) -> str:
        return self.value


@dataclass
class MWMBAlert:
    """One multiwindow, multi-burn-rate alert."""

    id: str = ""
    short_window: timedelta = timedelta(0)
    long_window: timedelta = timedelta(0)
    burn_rate_factor: float = 0.0
    error_budget: float = 0.0
    severity: AlertSeverity = AlertSeverity.PAGE


@dataclass
class MWMBAlertGroup:
    page_quick: MWMBAlert = field(default_factory=MWMBAlert)
    page_slow: MWMBAlert = field(default_factory=MWMBAlert)
    ticket_quick: MWMBAlert = field(default_factory=MWMBAlert)
    ticket_slow: MWMBAlert = field(default_factory=MWMBAlert)


@dataclass
class Info:
    version: str = "dev"
    mode: str = ""
    spec: str = ""


@dataclass
class SLIRaw:
    error_ratio_query: str = ""


@dataclass
class SLIEvents:
    error_query: str = ""
    total_query: str = ""


@dataclass
class SLI:
    raw: SLIRaw | None = None
    events: SLIEvents | None = None


@dataclass
class AlertMeta:
    disable: bool = False
    name: str = ""
    labels: dict[str, str] = field(default_factory=dict)
    annotations: dict[str, str] = field(default_factory=dict)


@dataclass
class SLO:
    id: str = ""
    name: str = ""
    service: str = ""
    sli: SLI = field(default_factory=SLI)
    description: str = ""
    time_window: timedelta = timedelta(0)
    objective: float = 0.0
    labels: dict[str, str] = field(default_factory=dict)
    page_alert_meta: AlertMeta = field(default_factory=AlertMeta)
    ticket_alert_meta: AlertMeta = field(default_factory=AlertMeta)

    def sli_error_metric(self, window: timedelta) -> str:
        """Name of the SLI error recording metric for ``window``."""
        return SLI_ERROR_METRIC_PREFIX + duration_to_prom_str(window)

    def id_prom_labels(self) -> dict[str, str]:
        """Labels that identify this SLO's metrics and alerts."""
        return {
            SLO_ID_LABEL: self.id,
            SLO_NAME_LABEL: self.name,
            SLO_SERVICE_LABEL: self.service,
        }


@dataclass
class Rule:
    """A Prometheus recording or alerting rule."""

    record: str = ""
    alert: str = ""
    expr: str = ""
    labels: dict[str, str] = field(default_factory=dict)
    annotations: dict[str, str] = field(default_factory=dict)


@dataclass
class SLORules:
    sli_error_rec_rules: list[Rule] = field(default_factory=list)
    metadata_rec_rules: list[Rule] = field(default_factory=list)
    alert_rules: list[Rule] = field(default_factory=list)


def _is_prom_expression(expr: str) -> bool:
    try:
        rendered = render_template(expr, _EXPR_FAKE_DATA, strict=False)
    except TemplateError:
        return False
    return is_valid_expression(rendered)


class _Validator:
    def __init__(self) -> None:
        self.errors: list[FieldError] = []

    def report(self, namespace: str, name: str, tag: str) -> None:
        self.errors.append(FieldError(namespace, name, tag))

    def name(self, value: str, ns: str, name: str) -> None:
        if value == "":
            self.report(f"{ns}.{name}", name, "required")
        elif not _NAME.match(value):
            self.report(f"{ns}.{name}", name, "name")

    def query(self, value: str, ns: str, name: str) -> None:
        if value == "":
            self.report(f"{ns}.{name}", name, "required")
        elif not _is_prom_expression(value):
            self.report(f"{ns}.{name}", name, "prom_expr")
        elif not _TPL_WINDOW.search(value):
            self.report(f"{ns}.{name}", name, "template_vars")

    def mapping(
        self,
        values: dict[str, str],
        ns: str,
        name: str,
        key_tag: str,
        key_check: Callable[[str], bool],
        check_value: bool,
    ) -> None:
        for key in sorted(values or {}):
            item = f"{name}[{key}]"
            if not key_check(key):
                self.report(f"{ns}.{item}", item, key_tag)
            value = values[key]
            if value == "":
                self.report(f"{ns}.{item}", item, "required")
            elif check_value and not is_valid_label_value(value):
                self.report(f"{ns}.{item}", item, "prom_label_value")

    def labels(self, values: dict[str, str], ns: str, name: str) -> None:
        self.mapping(
            values, ns, name, "prom_label_key",
            lambda k: is_valid_label_name(k) and k != METRIC_NAME_LABEL, True,
        )

    def annotations(self, values: dict[str, str], ns: str, name: str) -> None:
        self.mapping(values, ns, name, "prom_annot_key", is_valid_label_name, False)

    def sli(self, sli: SLI | None, ns: str) -> None:
        sli = sli or SLI()
        if sli.raw is not None:
            self.query(sli.raw.error_ratio_query, f"{ns}.Raw", "ErrorRatioQuery")
        if sli.events is not None:
            events_ns = f"{ns}.Events"
            self.query(sli.events.error_query, events_ns, "ErrorQuery")
            self.query(sli.events.total_query, events_ns, "TotalQuery")
            err_q, total_q = sli.events.error_query, sli.events.total_query
            if err_q and total_q and err_q == total_q:
                self.report(f"{events_ns}.", "", "sli_events_queries_different")
        set_count = sum(x is not None for x in (sli.raw, sli.events))
        if set_count > 1:
            self.report(f"{ns}.", "", "one_sli_type")
        elif set_count == 0:
            self.report(f"{ns}.", "", "sli_type_required")

    def alert_meta(self, meta: AlertMeta, ns: str) -> None:
        if not meta.disable and meta.name == "":
            self.report(f"{ns}.Name", "Name", "required_if_enabled")
        self.labels(meta.labels, ns, "Labels")
        self.annotations(meta.annotations, ns, "Annotations")

    def slo(self, slo: SLO, ns: str) -> None:
        self.name(slo.id, ns, "ID")
        self.name(slo.name, ns, "Name")
        self.name(slo.service, ns, "Service")
        self.sli(slo.sli, f"{ns}.SLI")
        if not slo.objective > 0:
            self.report(f"{ns}.Objective", "Objective", "gt")
        elif slo.objective > 100:
            self.report(f"{ns}.Objective", "Objective", "lte")
        self.labels(slo.labels, ns, "Labels")
        self.alert_meta(slo.page_alert_meta, f"{ns}.PageAlertMeta")
        self.alert_meta(slo.ticket_alert_meta, f"{ns}.TicketAlertMeta")


@dataclass
class SLOGroup:
    slos: list[SLO] = field(default_factory=list)

    def validate(self) -> None:
        """Validate the group, raising :class:`ValidationError` on failure."""
        validator = _Validator()
        ns = "SLOGroup"
        for index, slo in enumerate(self.slos):
            validator.slo(slo, f"{ns}.SLOs[{index}]")
        if not self.slos:
            validator.report(f"{ns}.", "", "slos_required")
        seen: set[str] = set()
        for slo in self.slos:
            if slo.id in seen:
                validator.report(f"{ns}.{slo.id}", slo.id, "slo_repeated")
            seen.add(slo.id)
        if validator.errors:
            raise ValidationError(validator.errors)