"""Loading of OpenSLO ``v1alpha`` specs into the SLO model."""

from __future__ import annotations

import re
from datetime import timedelta
from typing import Any

import yaml

from .model import SLI, SLO, AlertMeta, SLIRaw, SLOGroup
from .spec import SpecError

API_VERSION = "openslo/v1alpha"

_KIND = re.compile(r"""^kind: +['"]?SLO['"]? *$""", re.MULTILINE)
_API_VERSION = re.compile(r"""^apiVersion: +['"]?openslo/v1alpha['"]? *$""", re.MULTILINE)
_TIME_WINDOW = timedelta(days=30)
_SOURCES = ("prometheus", "sloth")


def _text(data: bytes | str) -> str:
    return data.decode("utf-8", errors="replace") if isinstance(data, bytes) else data


def _mapping(value: Any, where: str) -> dict:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise SpecError(f"{where} must be a mapping")
    return value


def _list(value: Any, where: str) -> list:
    if value is None:
        return []
    if not isinstance(value, list):
        raise SpecError(f"{where} must be a list")
    return value


def _string(value: Any) -> str:
    return "" if value is None else str(value)


def _error_ratio_query(good: str, total: str) -> str:
    # OpenSLO ratios use good/total events; the error ratio is one minus that.
    return (
        "\n  1 - (\n    (\n"
        f"      {good}\n"
        "    )\n    /\n    (\n"
        f"      {total}\n"
        "    )\n  )\n"
    )


class OpenSLOSpecLoader:
    """Loads OpenSLO ``v1alpha`` SLO specs as an :class:`SLOGroup`."""

    def is_spec_type(self, data: bytes | str) -> bool:
        """Return whether ``data`` looks like an OpenSLO ``v1alpha`` SLO."""
        text = _text(data)
        return bool(_KIND.search(text) and _API_VERSION.search(text))

    def load_spec(self, data: bytes | str) -> SLOGroup:
        """Parse ``data`` and map each objective to an SLO."""
        text = _text(data)
        if not text:
            raise SpecError("spec is required")
        try:
            doc = yaml.safe_load(text)
        except yaml.YAMLError as err:
            raise SpecError(f"could not unmarshall YAML spec correctly: {err}") from err
        doc = _mapping(doc, "spec")

        if doc.get("apiVersion") != API_VERSION:
            raise SpecError(f"invalid spec version, should be {API_VERSION!r}")

        spec = _mapping(doc.get("spec"), "spec")
        objectives = _list(spec.get("objectives"), "objectives")
        if not objectives:
            raise SpecError("at least one SLO is required")

        try:
            self._validate_time_window(spec)
        except SpecError as err:
            raise SpecError(f"invalid SLO time windows: {err}") from err

        try:
            return SLOGroup(slos=self._slos(doc, spec, objectives))
        except SpecError as err:
            raise SpecError(f"could not map to model: could not map SLOs correctly: {err}") from err

    @staticmethod
    def _validate_time_window(spec: dict) -> None:
        windows = _list(spec.get("timeWindows"), "timeWindows")
        if len(windows) != 1:
            raise SpecError("only 1 time window is supported")
        window = _mapping(windows[0], "timeWindow")
        if window.get("count") != 30 and _string(window.get("unit")).lower() == "day":
            raise SpecError("only 30 days time window is supported")

    @staticmethod
    def _sli(objective: dict) -> SLI:
        ratio = objective.get("ratioMetrics")
        if ratio is None:
            raise SpecError("could not map SLI: missing ratioMetrics")
        ratio = _mapping(ratio, "ratioMetrics")
        good = _mapping(ratio.get("good"), "good")
        total = _mapping(ratio.get("total"), "total")
        good_source = _string(good.get("source"))
        total_source = _string(total.get("source"))

        if good_source not in _SOURCES:
            raise SpecError("could not map SLI: prometheus or sloth query ratio 'good' source is required")
        if total_source != "prometheus" and good_source != "sloth":
            raise SpecError("could not map SLI: prometheus or sloth query ratio 'total' source is required")
        good_type = _string(good.get("queryType"))
        if good_type != "promql":
            raise SpecError(f"could not map SLI: unsupported 'good' indicator query type: {good_type}")
        total_type = _string(total.get("queryType"))
        if total_type != "promql":
            raise SpecError(f"could not map SLI: unsupported 'total' indicator query type: {total_type}")

        query = _error_ratio_query(_string(good.get("query")), _string(total.get("query")))
        return SLI(raw=SLIRaw(error_ratio_query=query))

    def _slos(self, doc: dict, spec: dict, objectives: list) -> list[SLO]:
        name = _string(_mapping(doc.get("metadata"), "metadata").get("name"))
        service = _string(spec.get("service"))
        description = _string(spec.get("description"))

        slos = []
        for idx, raw in enumerate(objectives):
            objective = _mapping(raw, "objective")
            sli = self._sli(objective)
            target = objective.get("target")
            if isinstance(target, bool) or not isinstance(target, (int, float)):
                raise SpecError("objective target must be a number")
            slos.append(SLO(
                id=f"{service}-{name}-{idx}",
                name=f"{name}-{idx}",
                service=service,
                description=description,
                time_window=_TIME_WINDOW,
                sli=sli,
                objective=target * 100,  # OpenSLO uses ratios, SLOs use percents.
                page_alert_meta=AlertMeta(disable=True),
                ticket_alert_meta=AlertMeta(disable=True),
            ))
        return slos