"""Writing SLO rules as Prometheus rule-group YAML."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, TextIO

import yaml

from .model import SLO, Info, Rule, SLORules

logger = logging.getLogger(__name__)


class NoSLORulesError(ValueError):
    """Raised when there are no generated rules to store."""

    def __init__(self) -> None:
        super().__init__("0 SLO Prometheus rules generated")


@dataclass
class StorageSLO:
    slo: SLO = field(default_factory=SLO)
    rules: SLORules = field(default_factory=SLORules)


def _disclaimer(version: str) -> str:
    return f"\n---\n# Code generated by Sloth ({version}).\n# DO NOT EDIT.\n\n"


class _RulesDumper(yaml.SafeDumper):
    pass


def _represent_str(dumper: yaml.SafeDumper, value: str) -> Any:
    style = "|" if "\n" in value else None
    return dumper.represent_scalar("tag:yaml.org,2002:str", value, style=style)


_RulesDumper.add_representer(str, _represent_str)


def _rule_to_dict(rule: Rule) -> dict[str, Any]:
    out: dict[str, Any] = {}
    if rule.record:
        out["record"] = rule.record
    if rule.alert:
        out["alert"] = rule.alert
    out["expr"] = rule.expr
    if rule.labels:
        out["labels"] = {k: rule.labels[k] for k in sorted(rule.labels)}
    if rule.annotations:
        out["annotations"] = {k: rule.annotations[k] for k in sorted(rule.annotations)}
    return out


class GroupedRulesYAMLWriter:
    """Writes the SLO recording and alert rules, grouped, to a text stream."""

    def __init__(self, writer: TextIO):
        self.writer = writer

    def store_slos(self, slos: list[StorageSLO]) -> None:
        """Write the rule groups of ``slos``; raise if there is nothing to write."""
        if not slos:
            raise ValueError("slo rules required")

        groups = []
        for item in slos:
            for prefix, rules in (
                ("sloth-slo-sli-recordings", item.rules.sli_error_rec_rules),
                ("sloth-slo-meta-recordings", item.rules.metadata_rec_rules),
                ("sloth-slo-alerts", item.rules.alert_rules),
            ):
                if rules:
                    groups.append({
                        "name": f"{prefix}-{item.slo.id}",
                        "rules": [_rule_to_dict(r) for r in rules],
                    })

        # An empty output is most likely a misconfiguration, so it is an error.
        if not groups:
            raise NoSLORulesError()

        body = yaml.dump(
            {"groups": groups},
            Dumper=_RulesDumper,
            sort_keys=False,
            default_flow_style=False,
            allow_unicode=True,
            width=float("inf"),
        )
        self.writer.write(_disclaimer(Info().version) + body)
        logger.info("Prometheus rules written", extra={"groups": len(groups)})