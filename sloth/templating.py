"""Minimal text templating for expressions that use ``{{ .key }}`` actions."""

from __future__ import annotations

import math
import re
from decimal import Decimal
from typing import Any, Mapping

_FIELD = re.compile(r"^\.([A-Za-z_][A-Za-z0-9_]*)$")
_NO_VALUE = "<no value>"


class TemplateError(ValueError):
    """Raised when a template cannot be parsed or rendered."""


def _format_float(value: float) -> str:
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "+Inf" if value > 0 else "-Inf"
    if value == 0:
        return "0"
    sign, digits, exponent = Decimal(repr(value)).normalize().as_tuple()
    mantissa = "".join(str(d) for d in digits)
    point_exp = len(digits) + exponent - 1
    prefix = "-" if sign else ""
    if point_exp < -4 or point_exp >= 21:
        body = mantissa[0] + ("." + mantissa[1:] if len(mantissa) > 1 else "")
        esign = "-" if point_exp < 0 else "+"
        return f"{prefix}{body}e{esign}{abs(point_exp):02d}"
    return prefix + format(Decimal(mantissa).scaleb(exponent), "f")


def _format_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float):
        return _format_float(value)
    return str(value)


def render_template(text: str, data: Mapping[str, Any], strict: bool = True) -> str:
    """Render ``{{ .key }}`` actions in ``text`` with values from ``data``.

    With ``strict`` a missing key raises :class:`TemplateError`; otherwise it
    renders as ``<no value>``.
    """
    out: list[str] = []
    pos = 0
    while True:
        start = text.find("{{", pos)
        if start < 0:
            out.append(text[pos:])
            break
        end = text.find("}}", start + 2)
        if end < 0:
            raise TemplateError("unclosed action")
        inner = text[start + 2:end]
        left = text[pos:start]
        if len(inner) >= 2 and inner[0] == "-" and inner[1].isspace():
            left = left.rstrip()
            inner = inner[1:]
        trim_right = len(inner) >= 2 and inner[-1] == "-" and inner[-2].isspace()
        if trim_right:
            inner = inner[:-1]
        out.append(left)

        content = inner.strip()
        if content.startswith("/*") and content.endswith("*/"):
            rendered = ""
        else:
            match = _FIELD.match(content)
            if not match:
                raise TemplateError(f"unexpected action content {content!r}")
            key = match.group(1)
            if key in data:
                rendered = _format_value(data[key])
            elif strict:
                raise TemplateError(f"map has no entry for key {key!r}")
            else:
                rendered = _NO_VALUE
        out.append(rendered)

        pos = end + 2
        if trim_right:
            while pos < len(text) and text[pos].isspace():
                pos += 1
    return "".join(out)