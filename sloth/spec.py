"""Loading of ``prometheus/v1`` SLO specs into the SLO model."""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Callable, Mapping, Protocol

import yaml

from .helpers import merge_labels
from .model import SLI, SLO, AlertMeta, SLIEvents, SLIRaw, SLOGroup

SPEC_VERSION = "prometheus/v1"

SLI_PLUGIN_META_SERVICE = "service"
SLI_PLUGIN_META_SLO = "slo"
SLI_PLUGIN_META_OBJECTIVE = "objective"

_SPEC_TYPE_V1 = re.compile(r"""^version: +['"]?prometheus/v1['"]? *$""", re.MULTILINE)
_TIME_WINDOW = timedelta(days=30)

SLIPluginFunc = Callable[[Mapping[str, str], Mapping[str, str], Mapping[str, str]], str]


class SpecError(ValueError):
    """Raised when a spec cannot be loaded or mapped to the model."""


@dataclass(frozen=True)
class SLIPlugin:
    """An SLI plugin: called with meta, labels and options, returns a raw error ratio query."""

    id: str
    func: SLIPluginFunc


class SLIPluginRepo(Protocol):
    def get_sli_plugin(self, plugin_id: str) -> SLIPlugin: ...


class MemorySLIPluginRepo:
    """SLI plugins kept in memory, keyed by their ID."""

    def __init__(self, plugins: Mapping[str, SLIPlugin] | None = None):
        self._plugins = dict(plugins or {})

    def get_sli_plugin(self, plugin_id: str) -> SLIPlugin:
        """Return the plugin with ``plugin_id``; raise :class:`KeyError` if unknown."""
        try:
            return self._plugins[plugin_id]
        except KeyError:
            raise KeyError(f"plugin {plugin_id!r} missing") from None


def _text(data: bytes | str) -> str:
    return data.decode("utf-8", errors="replace") if isinstance(data, bytes) else data


def _mapping(value: Any, where: str) -> dict:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise SpecError(f"{where} must be a mapping")
    return value


def _scalar(value: Any, where: str) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (dict, list)):
        raise SpecError(f"{where} must be a scalar")
    return str(value)


def _string_map(value: Any, where: str) -> dict[str, str]:
    return {
        _scalar(k, where): _scalar(v, f"{where}.{k}")
        for k, v in _mapping(value, where).items()
    }


def _number(value: Any, where: str) -> float:
    if value is None:
        return 0.0
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise SpecError(f"{where} must be a number")
    return float(value)


def _flag(value: Any, where: str) -> bool:
    if value is None:
        return False
    if not isinstance(value, bool):
        raise SpecError(f"{where} must be a boolean")
    return value


class YAMLSpecLoader:
    """Loads ``prometheus/v1`` YAML specs as an :class:`SLOGroup`."""

    def __init__(self, plugins_repo: SLIPluginRepo):
        self.plugins_repo = plugins_repo

    def is_spec_type(self, data: bytes | str) -> bool:
        """Return whether ``data`` looks like a ``prometheus/v1`` spec."""
        return bool(_SPEC_TYPE_V1.search(_text(data)))

    def load_spec(self, data: bytes | str) -> SLOGroup:
        """Parse ``data`` and map it to the SLO model."""
        text = _text(data)
        if not text:
            raise SpecError("spec is required")
        try:
            doc = yaml.safe_load(text)
        except yaml.YAMLError as err:
            raise SpecError(f"could not unmarshall YAML spec correctly: {err}") from err
        doc = _mapping(doc, "spec")

        if doc.get("version") != SPEC_VERSION:
            raise SpecError(f"invalid spec version, should be {SPEC_VERSION!r}")

        slos = doc.get("slos") or []
        if not isinstance(slos, list):
            raise SpecError("slos must be a list")
        if not slos:
            raise SpecError("at least one SLO is required")

        try:
            return self._map_spec(doc, slos)
        except SpecError as err:
            raise SpecError(f"could not map to model: {err}") from err

    def _map_spec(self, doc: dict, slos: list) -> SLOGroup:
        service = _scalar(doc.get("service"), "service")
        global_labels = _string_map(doc.get("labels"), "labels")
        return SLOGroup(slos=[self._map_slo(service, global_labels, s) for s in slos])

    def _map_slo(self, service: str, global_labels: dict[str, str], raw: Any) -> SLO:
        spec_slo = _mapping(raw, "slo")
        name = _scalar(spec_slo.get("name"), "name")
        objective = _number(spec_slo.get("objective"), "objective")

        slo = SLO(
            id=f"{service}-{name}",
            name=name,
            description=_scalar(spec_slo.get("description"), "description"),
            service=service,
            time_window=_TIME_WINDOW,
            objective=objective,
            labels=merge_labels(global_labels, _string_map(spec_slo.get("labels"), "labels")),
            page_alert_meta=AlertMeta(disable=True),
            ticket_alert_meta=AlertMeta(disable=True),
        )

        sli = _mapping(spec_slo.get("sli"), "sli")
        events = sli.get("events")
        if events is not None:
            events = _mapping(events, "sli.events")
            slo.sli.events = SLIEvents(
                error_query=_scalar(events.get("error_query"), "error_query"),
                total_query=_scalar(events.get("total_query"), "total_query"),
            )
        raw_sli = sli.get("raw")
        if raw_sli is not None:
            raw_sli = _mapping(raw_sli, "sli.raw")
            slo.sli.raw = SLIRaw(
                error_ratio_query=_scalar(raw_sli.get("error_ratio_query"), "error_ratio_query")
            )
        plugin_spec = sli.get("plugin")
        if plugin_spec is not None:
            slo.sli.raw = SLIRaw(
                error_ratio_query=self._run_plugin(
                    _mapping(plugin_spec, "sli.plugin"), service, name, objective, global_labels
                )
            )

        alerting = _mapping(spec_slo.get("alerting"), "alerting")
        alert_name = _scalar(alerting.get("name"), "alerting.name")
        alert_labels = _string_map(alerting.get("labels"), "alerting.labels")
        alert_annots = _string_map(alerting.get("annotations"), "alerting.annotations")
        for key, attr in (("page_alert", "page_alert_meta"), ("ticket_alert", "ticket_alert_meta")):
            section = _mapping(alerting.get(key), key)
            if _flag(section.get("disable"), f"{key}.disable"):
                continue
            setattr(slo, attr, AlertMeta(
                name=alert_name,
                labels=merge_labels(alert_labels, _string_map(section.get("labels"), key)),
                annotations=merge_labels(
                    alert_annots, _string_map(section.get("annotations"), key)
                ),
            ))
        return slo

    def _run_plugin(
        self,
        plugin_spec: dict,
        service: str,
        slo_name: str,
        objective: float,
        global_labels: dict[str, str],
    ) -> str:
        plugin_id = _scalar(plugin_spec.get("id"), "plugin.id")
        try:
            plugin = self.plugins_repo.get_sli_plugin(plugin_id)
        except LookupError as err:
            raise SpecError(f"could not get plugin: {err}") from err

        meta = {
            SLI_PLUGIN_META_SERVICE: service,
            SLI_PLUGIN_META_SLO: slo_name,
            SLI_PLUGIN_META_OBJECTIVE: f"{objective:f}",
        }
        options = _string_map(plugin_spec.get("options"), "plugin.options")
        try:
            return plugin.func(meta, dict(global_labels), options)
        except Exception as err:  # plugin code is user supplied
            raise SpecError(f"plugin {plugin_id!r} execution error: {err}") from err