import pytest

from sloth.templating import TemplateError, render_template


def test_renders_window_key():
    got = render_template("rate(my_metric[{{.window}}])", {"window": "5m"})
    assert got == "rate(my_metric[5m])"


def test_renders_with_spaces_in_action():
    got = render_template("x[{{ .window }}]", {"window": "1h"})
    assert got == "x[1h]"


def test_strict_missing_key_raises():
    with pytest.raises(TemplateError):
        render_template("rate(my_metric[{{.Window}}])", {"window": "5m"})


def test_non_strict_missing_key_renders_no_value():
    got = render_template("a{{.other}}b", {"window": "5m"}, strict=False)
    assert got == "a<no value>b"


def test_invalid_action_raises():
    with pytest.raises(TemplateError):
        render_template('rate(my_metric[{{}.window}}]{error="true"})', {"window": "5m"})


def test_unclosed_action_raises():
    with pytest.raises(TemplateError):
        render_template("rate(x[{{.window", {"window": "5m"})


def test_floats_render_like_source_output():
    got = render_template("({{ .f }} * {{ .r }})", {"f": 13.0, "r": 0.01})
    assert got == "(13 * 0.01)"


def test_text_without_actions_is_unchanged():
    text = 'latency{code="GOOD"}'
    assert render_template(text, {}) == text