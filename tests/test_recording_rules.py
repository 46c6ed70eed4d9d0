from datetime import timedelta

import pytest

from sloth.model import SLI, SLO, Info, MWMBAlert, MWMBAlertGroup, Rule, SLIEvents, SLIRaw
from sloth.recording_rules import (
    RuleGenerationError,
    generate_metadata_recording_rules,
    generate_sli_recording_rules,
)

H = timedelta(hours=1)
D = timedelta(days=1)


def _alert_group():
    return MWMBAlertGroup(
        page_quick=MWMBAlert(short_window=timedelta(minutes=5), long_window=H),
        page_slow=MWMBAlert(short_window=timedelta(minutes=30), long_window=6 * H),
        ticket_quick=MWMBAlert(short_window=2 * H, long_window=D),
        ticket_slow=MWMBAlert(short_window=6 * H, long_window=3 * D),
    )


def _events_slo(error_query='rate(my_metric[{{.window}}]{error="true"})'):
    return SLO(
        id="test", name="test-name", service="test-svc", time_window=30 * D,
        sli=SLI(events=SLIEvents(error_query=error_query,
                                 total_query="rate(my_metric[{{.window}}])")),
        labels={"kind": "test"},
    )


def _labels(window):
    return {
        "kind": "test",
        "sloth_service": "test-svc",
        "sloth_slo": "test-name",
        "sloth_id": "test",
        "sloth_window": window,
    }


def _period_rule(short):
    return Rule(
        record="slo:sli_error:ratio_rate30d",
        expr=(
            f'sum_over_time(slo:sli_error:ratio_rate{short}{{sloth_id="test", sloth_service="test-svc", sloth_slo="test-name"}}[30d])\n'
            "/ ignoring (sloth_window)\n"
            f'count_over_time(slo:sli_error:ratio_rate{short}{{sloth_id="test", sloth_service="test-svc", sloth_slo="test-name"}}[30d])\n'
        ),
        labels={"sloth_window": "30d"},
    )


WINDOWS = ["5m", "30m", "1h", "2h", "6h", "1d", "3d"]


@pytest.mark.parametrize(
    "error_query",
    ['rate(my_metric[{{}.window}}]{error="true"})', 'rate(my_metric[{{.Window}}]{error="true"})'],
    ids=["invalid-expression", "wrong-variable"],
)
def test_invalid_templates_fail(error_query):
    with pytest.raises(RuleGenerationError):
        generate_sli_recording_rules(_events_slo(error_query), _alert_group())


def test_events_sli_rules():
    expected = [
        Rule(
            record=f"slo:sli_error:ratio_rate{w}",
            expr=f'(rate(my_metric[{w}]{{error="true"}}))\n/\n(rate(my_metric[{w}]))\n',
            labels=_labels(w),
        )
        for w in WINDOWS
    ] + [_period_rule("5m")]
    assert generate_sli_recording_rules(_events_slo(), _alert_group()) == expected


def test_raw_sli_rules():
    slo = SLO(
        id="test", name="test-name", service="test-svc", time_window=30 * D,
        sli=SLI(raw=SLIRaw(error_ratio_query="rate(my_metric[{{.window}}])")),
        labels={"kind": "test"},
    )
    expected = [
        Rule(record=f"slo:sli_error:ratio_rate{w}", expr=f"(rate(my_metric[{w}]))",
             labels=_labels(w))
        for w in WINDOWS
    ] + [_period_rule("5m")]
    assert generate_sli_recording_rules(slo, _alert_group()) == expected


def test_duplicated_windows_appear_once_sorted():
    alerts = MWMBAlertGroup(
        page_quick=MWMBAlert(short_window=3 * H, long_window=2 * H),
        page_slow=MWMBAlert(short_window=3 * H, long_window=1 * H),
        ticket_quick=MWMBAlert(short_window=1 * H, long_window=2 * H),
        ticket_slow=MWMBAlert(short_window=2 * H, long_window=1 * H),
    )
    expected = [
        Rule(
            record=f"slo:sli_error:ratio_rate{w}",
            expr=f'(rate(my_metric[{w}]{{error="true"}}))\n/\n(rate(my_metric[{w}]))\n',
            labels=_labels(w),
        )
        for w in ["1h", "2h", "3h"]
    ] + [_period_rule("3h")]
    assert generate_sli_recording_rules(_events_slo(), alerts) == expected


def test_missing_sli_type_fails():
    slo = SLO(id="test", name="n", service="s", time_window=30 * D)
    with pytest.raises(RuleGenerationError, match="invalid SLI type"):
        generate_sli_recording_rules(slo, _alert_group())


def test_period_equal_to_short_window_fails():
    slo = _events_slo()
    slo.time_window = timedelta(minutes=5)
    with pytest.raises(RuleGenerationError, match="same shortwindow"):
        generate_sli_recording_rules(slo, _alert_group())


def test_metadata_recording_rules():
    info = Info(version="test-ver", mode="test", spec="test/v1")
    slo = SLO(id="test", name="test-name", service="test-svc", objective=99.9,
              time_window=30 * D, labels={"kind": "test"})
    base = {"kind": "test", "sloth_service": "test-svc", "sloth_slo": "test-name",
            "sloth_id": "test"}
    expected = [
        Rule(record="slo:objective:ratio", expr="vector(0.9990000000000001)", labels=base),
        Rule(record="slo:error_budget:ratio", expr="vector(1-0.9990000000000001)", labels=base),
        Rule(record="slo:time_period:days", expr="vector(30)", labels=base),
        Rule(
            record="slo:current_burn_rate:ratio",
            expr=(
                'slo:sli_error:ratio_rate5m{sloth_id="test", sloth_service="test-svc", sloth_slo="test-name"}\n'
                "/ on(sloth_id, sloth_slo, sloth_service) group_left\n"
                'slo:error_budget:ratio{sloth_id="test", sloth_service="test-svc", sloth_slo="test-name"}\n'
            ),
            labels=base,
        ),
        Rule(
            record="slo:period_burn_rate:ratio",
            expr=(
                'slo:sli_error:ratio_rate30d{sloth_id="test", sloth_service="test-svc", sloth_slo="test-name"}\n'
                "/ on(sloth_id, sloth_slo, sloth_service) group_left\n"
                'slo:error_budget:ratio{sloth_id="test", sloth_service="test-svc", sloth_slo="test-name"}\n'
            ),
            labels=base,
        ),
        Rule(
            record="slo:period_error_budget_remaining:ratio",
            expr='1 - slo:period_burn_rate:ratio{sloth_id="test", sloth_service="test-svc", sloth_slo="test-name"}',
            labels=base,
        ),
        Rule(
            record="sloth_slo_info",
            expr="vector(1)",
            labels={**base, "sloth_version": "test-ver", "sloth_mode": "test",
                    "sloth_spec": "test/v1"},
        ),
    ]
    assert generate_metadata_recording_rules(info, slo, _alert_group()) == expected