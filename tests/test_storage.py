import io

import pytest
import yaml

from sloth.model import SLO, Rule, SLORules
from sloth.storage import GroupedRulesYAMLWriter, NoSLORulesError, StorageSLO

HEADER = "\n---\n# Code generated by Sloth (dev).\n# DO NOT EDIT.\n\n"


def _store(slos):
    out = io.StringIO()
    GroupedRulesYAMLWriter(out).store_slos(slos)
    return out.getvalue()


def _body(output):
    assert output.startswith(HEADER)
    return yaml.safe_load(output[len(HEADER):])


def _recording(suffix):
    return Rule(record=f"svc:rec-{suffix}", expr=f"expr-{suffix}", labels={"lbl": suffix})


def _alerting(name, suffix):
    return Rule(alert=name, expr=f"expr-{suffix}", labels={"lbl": suffix},
                annotations={"ann": suffix})


def test_no_slos_fails():
    with pytest.raises(ValueError, match="slo rules required"):
        _store([])


def test_no_rules_generated_fails():
    with pytest.raises(NoSLORulesError):
        _store([StorageSLO()])


def test_single_recording_rule_exact_text():
    slos = [StorageSLO(
        slo=SLO(id="alpha"),
        rules=SLORules(sli_error_rec_rules=[_recording("x")]),
    )]
    expected = (
        "groups:\n"
        "- name: sloth-slo-sli-recordings-alpha\n"
        "  rules:\n"
        "  - record: svc:rec-x\n"
        "    expr: expr-x\n"
        "    labels:\n"
        "      lbl: x\n"
    )
    assert _store(slos) == HEADER + expected


@pytest.mark.parametrize(
    "field, group_prefix",
    [
        ("sli_error_rec_rules", "sloth-slo-sli-recordings-"),
        ("metadata_rec_rules", "sloth-slo-meta-recordings-"),
    ],
)
def test_single_recording_rule_group_names(field, group_prefix):
    slos = [StorageSLO(slo=SLO(id="one"), rules=SLORules(**{field: [_recording("y")]}))]
    body = _body(_store(slos))
    assert body == {"groups": [{
        "name": group_prefix + "one",
        "rules": [{"record": "svc:rec-y", "expr": "expr-y", "labels": {"lbl": "y"}}],
    }]}


def test_single_alert_rule_key_order():
    slos = [StorageSLO(
        slo=SLO(id="one"),
        rules=SLORules(alert_rules=[_alerting("SomeAlert", "z")]),
    )]
    body = _body(_store(slos))
    group = body["groups"][0]
    assert group["name"] == "sloth-slo-alerts-one"
    rule = group["rules"][0]
    assert list(rule) == ["alert", "expr", "labels", "annotations"]
    assert rule == {"alert": "SomeAlert", "expr": "expr-z", "labels": {"lbl": "z"},
                    "annotations": {"ann": "z"}}


def test_multiple_slos_group_order():
    slos = [
        StorageSLO(slo=SLO(id="first"), rules=SLORules(
            sli_error_rec_rules=[_recording("f1"), _recording("f2")],
            metadata_rec_rules=[_recording("f3")],
            alert_rules=[_alerting("AlertF1", "f1"), _alerting("AlertF2", "f2")],
        )),
        StorageSLO(slo=SLO(id="second"), rules=SLORules(
            sli_error_rec_rules=[_recording("s1")],
            alert_rules=[_alerting("AlertS1", "s1")],
        )),
    ]
    body = _body(_store(slos))
    assert [g["name"] for g in body["groups"]] == [
        "sloth-slo-sli-recordings-first",
        "sloth-slo-meta-recordings-first",
        "sloth-slo-alerts-first",
        "sloth-slo-sli-recordings-second",
        "sloth-slo-alerts-second",
    ]
    assert [r["record"] for r in body["groups"][0]["rules"]] == ["svc:rec-f1", "svc:rec-f2"]
    assert [r["alert"] for r in body["groups"][2]["rules"]] == ["AlertF1", "AlertF2"]
    assert body["groups"][4]["rules"][0]["annotations"] == {"ann": "s1"}


def test_multiline_expr_round_trips():
    expr = 'sum(rate(x{a="1"}[5m]))\n/\nsum(rate(y[5m]))\n'
    slos = [StorageSLO(slo=SLO(id="t"), rules=SLORules(
        sli_error_rec_rules=[Rule(record="r", expr=expr)],
    ))]
    output = _store(slos)
    assert "expr: |" in output
    loaded = _body(output)
    assert loaded["groups"][0]["rules"][0] == {"record": "r", "expr": expr}