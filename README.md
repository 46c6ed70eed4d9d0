# sloth

A library that generates Prometheus recording and alerting rules for service level
objectives (SLOs).

You describe SLOs in YAML, either in the `prometheus/v1` spec format or as an OpenSLO
`openslo/v1alpha` `SLO` document. From the loaded SLOs the package builds:

- SLI error-ratio recording rules for every distinct window of a multiwindow,
  multi-burn-rate alert group, plus a rule for the whole SLO period derived from the
  shortest page window;
- metadata recording rules: objective, error budget, period in days, current and
  period burn rate, remaining error budget and an info metric;
- page and ticket alert rules with multiwindow, multi-burn-rate expressions;
- a Prometheus rule file in YAML that groups all of them per SLO.

## Installation

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```

## Loading a `prometheus/v1` spec

```python
from sloth.spec import MemorySLIPluginRepo, YAMLSpecLoader

spec = b"""
version: "prometheus/v1"
service: "myservice"
labels:
  owner: "myteam"
slos:
  - name: "requests-availability"
    objective: 99.9
    sli:
      events:
        error_query: sum(rate(http_requests_total{code=~"5.."}[{{.window}}]))
        total_query: sum(rate(http_requests_total[{{.window}}]))
    alerting:
      name: MyServiceHighErrorRate
      page_alert:
        labels:
          severity: pageteam
      ticket_alert:
        labels:
          severity: slack
"""

loader = YAMLSpecLoader(MemorySLIPluginRepo({}))
if loader.is_spec_type(spec):
    group = loader.load_spec(spec)   # an SLOGroup
    group.validate()                 # raises sloth.model.ValidationError on problems
```

`load_spec` accepts `bytes` or `str`. Every SLO gets the ID `<service>-<name>` and a
30-day time window. Spec labels are merged with each SLO's labels; alerting labels and
annotations are merged with those of `page_alert` and `ticket_alert`. An alert with
`disable: true` is left disabled.

An SLI can be `events` (`error_query` and `total_query`), `raw` (`error_ratio_query`) or
`plugin`. Queries use `{{.window}}` where the rule window goes.

### SLI plugins

A plugin is an `SLIPlugin(id, func)` kept in a `MemorySLIPluginRepo`. `func` is called
with three string maps — metadata (`service`, `slo`, `objective`), the spec labels and
the plugin options — and returns a raw error-ratio query:

```python
from sloth.spec import MemorySLIPluginRepo, SLIPlugin, YAMLSpecLoader

def availability(meta, labels, options):
    return f'rate(errors{{service="{meta["service"]}"}}[{{{{.window}}}}])'

repo = MemorySLIPluginRepo({"availability": SLIPlugin("availability", availability)})
loader = YAMLSpecLoader(repo)
```

An unknown plugin ID or an exception raised by the plugin becomes a `SpecError`.

## Loading an OpenSLO document

`sloth.openslo.OpenSLOSpecLoader` has the same `is_spec_type` and `load_spec` methods.
Each objective becomes one SLO named `<metadata.name>-<index>` whose raw SLI is
`1 - (good / total)`. Only `ratioMetrics` objectives with `promql` queries from a
`prometheus` or `sloth` source and exactly one time window are accepted; a window in
days must be 30 days. The `target` ratio becomes a percentage objective, and alerts are
disabled.

## Generating rules

The alert windows and burn-rate factors are supplied by you as an `MWMBAlertGroup`:

```python
from datetime import timedelta as td

from sloth.alert_rules import generate_slo_alert_rules
from sloth.model import AlertSeverity, Info, MWMBAlert, MWMBAlertGroup, SLORules
from sloth.recording_rules import (
    generate_metadata_recording_rules,
    generate_sli_recording_rules,
)

budget = 100 - 99.9
alerts = MWMBAlertGroup(
    page_quick=MWMBAlert("page-quick", td(minutes=5), td(hours=1), 14.4, budget, AlertSeverity.PAGE),
    page_slow=MWMBAlert("page-slow", td(minutes=30), td(hours=6), 6, budget, AlertSeverity.PAGE),
    ticket_quick=MWMBAlert("ticket-quick", td(hours=2), td(days=1), 3, budget, AlertSeverity.TICKET),
    ticket_slow=MWMBAlert("ticket-slow", td(hours=6), td(days=3), 1, budget, AlertSeverity.TICKET),
)
info = Info(version="dev", mode="cli", spec="prometheus/v1")

slo = group.slos[0]
rules = SLORules(
    sli_error_rec_rules=generate_sli_recording_rules(slo, alerts),
    metadata_rec_rules=generate_metadata_recording_rules(info, slo, alerts),
    alert_rules=generate_slo_alert_rules(slo, alerts),
)
```

Each result is a list of `sloth.model.Rule` (`record` or `alert`, `expr`, `labels`,
`annotations`). Alert rules are only made for alerts that are not disabled.

## Writing the rule file

```python
import sys

from sloth.storage import GroupedRulesYAMLWriter, StorageSLO

GroupedRulesYAMLWriter(sys.stdout).store_slos([StorageSLO(slo=slo, rules=rules)])
```

The output starts with a "Code generated by Sloth (dev). DO NOT EDIT." header followed
by a `groups:` document with `sloth-slo-sli-recordings-<id>`,
`sloth-slo-meta-recordings-<id>` and `sloth-slo-alerts-<id>` groups. An empty list
raises `ValueError`; a list that yields no rules at all raises `NoSLORulesError`, so a
misconfigured spec does not silently produce an empty file.

## Lower-level helpers

- `sloth.promql.validate_expression` / `is_valid_expression` check PromQL syntax.
- `sloth.templating.render_template` renders `{{ .key }}` actions.
- `sloth.helpers` holds label and metric naming conventions, `merge_labels`,
  `labels_to_prom_filter`, `duration_to_prom_str` and label validity checks.

## Errors

- `sloth.spec.SpecError` — a spec cannot be parsed or mapped (also used for OpenSLO).
- `sloth.model.ValidationError` — an `SLOGroup` fails validation; its `errors`
  attribute lists every field failure.
- `sloth.recording_rules.RuleGenerationError` — rules cannot be generated.
- `sloth.storage.NoSLORulesError` — nothing to write.

## What this package does not do

It is a library only: there is no command-line tool, no Kubernetes integration and no
service that watches specs. It does not work out alert windows or burn-rate factors
from an objective; the `MWMBAlertGroup` must be given. SLI plugins are Python callables
registered in memory; they are not discovered or loaded from files.