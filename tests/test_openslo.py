from datetime import timedelta

import pytest

from sloth.model import SLI, SLO, AlertMeta, SLIRaw, SLOGroup
from sloth.openslo import OpenSLOSpecLoader
from sloth.spec import SpecError

GOOD = (
    'latency_west_c7{code="GOOD",instance="localhost:3000",'
    'job="prometheus",service="globacount"}'
)
TOTAL = (
    'latency_west_c7{code="ALL",instance="localhost:3000",'
    'job="prometheus",service="globacount"}'
)

HEADER = """
apiVersion: openslo/v1alpha
kind: SLO
metadata:
  displayName: Ratio
  name: ratio
spec:
  budgetingMethod: Timeslices
  description: A great description of a ratio based SLO
"""

GOOD_METRIC = f"""      good:
        source: prometheus
        queryType: promql
        query: {GOOD}
"""
TOTAL_METRIC = f"""      total:
        source: prometheus
        queryType: promql
        query: {TOTAL}
"""


def _objective(metrics=GOOD_METRIC + TOTAL_METRIC, target="0.98"):
    return f"""  - ratioMetrics:
{metrics}    displayName: painful
    target: {target}
    value: 1
"""


def _spec(objectives, windows="  timeWindows:\n  - count: 30\n    isRolling: true\n    unit: Day\n"):
    return HEADER + "  objectives:\n" + objectives + "  service: my-test-service\n" + windows


EXPECTED_QUERY = f"""
  1 - (
    (
      {GOOD}
    )
    /
    (
      {TOTAL}
    )
  )
"""


@pytest.mark.parametrize(
    "spec_yaml",
    [
        "",
        ":",
        "\nkind: SLO\nmetadata:\n  displayName: Ratio\n  name: ratio\nspec:\n",
        "\napiVersion: openslo/v99alpha\nkind: SLO\nmetadata:\n  name: ratio\nspec:\n",
        HEADER + "  objectives: []\n",
        _spec(_objective(), windows="  timeWindows: []\n"),
        _spec(_objective(), windows="  timeWindows:\n  - count: 28\n    isRolling: true\n    unit: Day\n"),
        _spec("  - displayName: painful\n    target: 0.98\n    value: 1\n"),
        _spec(_objective(metrics=TOTAL_METRIC)),
        _spec(_objective(metrics=GOOD_METRIC)),
    ],
)
def test_load_spec_invalid(spec_yaml):
    with pytest.raises(SpecError):
        OpenSLOSpecLoader().load_spec(spec_yaml.encode())


def test_load_spec_correct():
    spec_yaml = _spec(_objective(target="0.98") + _objective(target="0.999"))
    got = OpenSLOSpecLoader().load_spec(spec_yaml.encode())
    expected = [
        SLO(
            id=f"my-test-service-ratio-{idx}",
            name=f"ratio-{idx}",
            service="my-test-service",
            description="A great description of a ratio based SLO",
            time_window=timedelta(days=30),
            sli=SLI(raw=SLIRaw(error_ratio_query=EXPECTED_QUERY)),
            objective=objective,
            page_alert_meta=AlertMeta(disable=True),
            ticket_alert_meta=AlertMeta(disable=True),
        )
        for idx, objective in enumerate((98, 99.9))
    ]
    assert got == SLOGroup(slos=expected)


def test_unsupported_query_type():
    metrics = GOOD_METRIC.replace("promql", "sql") + TOTAL_METRIC
    with pytest.raises(SpecError, match="query type"):
        OpenSLOSpecLoader().load_spec(_spec(_objective(metrics=metrics)))


@pytest.mark.parametrize(
    "spec_yaml, expected",
    [
        ("", False),
        ("{", False),
        ("\napiVersion: openslo/v1\nkind: SLO\n", False),
        ("\napiVersion: openslo/v1alpha\nkind: service\n", False),
        ('\napiVersion: "openslo/v1alpha"\nkind: "SLO"\n', True),
        ("\napiVersion: openslo/v1alpha\nkind: SLO\n", True),
        ("\napiVersion: 'openslo/v1alpha'\nkind: 'SLO'\n", True),
        ("\napiVersion:          openslo/v1alpha     \nkind:              SLO     \n", True),
    ],
)
def test_is_spec_type(spec_yaml, expected):
    assert OpenSLOSpecLoader().is_spec_type(spec_yaml.encode()) is expected