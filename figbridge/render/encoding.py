"""Value encoding shared by every script builder.

Anything interpolated into a generated script goes through one of these
helpers, so user text can never become executable syntax.
"""

from __future__ import annotations

import json
import math
import re
from typing import Any

_HEX_RE = re.compile(r"^#?([0-9a-fA-F]{3}|[0-9a-fA-F]{6})$")


def hex_to_rgb(value: str) -> tuple[float, float, float]:
    """Convert "#RRGGBB" (or "#RGB") to an (r, g, b) triple in 0..1."""
    match = _HEX_RE.match(value.strip()) if isinstance(value, str) else None
    if not match:
        raise ValueError(f"Invalid hex color: {value!r}")
    digits = match.group(1)
    if len(digits) == 3:
        digits = "".join(ch * 2 for ch in digits)
    return (
        int(digits[0:2], 16) / 255,
        int(digits[2:4], 16) / 255,
        int(digits[4:6], 16) / 255,
    )


def js_string(value: Any) -> str:
    """Encode a value as a JS string literal."""
    return json.dumps(str(value), ensure_ascii=False)


def js_value(value: Any) -> str:
    """Encode a JSON-compatible value (lists of ids, dicts) as a JS literal."""
    return json.dumps(value, ensure_ascii=False)


def js_number(value: Any) -> str:
    """Encode a finite number as a JS numeric literal."""
    if isinstance(value, bool):
        raise ValueError(f"Not a number: {value!r}")
    if isinstance(value, str):
        value = float(value.strip())
    number = float(value)
    if not math.isfinite(number):
        raise ValueError(f"Not a finite number: {value!r}")
    if number.is_integer():
        return str(int(number))
    return repr(number)


def rgb_literal(value: str) -> str:
    """JS object literal {r,g,b} for a hex color."""
    r, g, b = hex_to_rgb(value)
    return f"{{r:{js_number(r)},g:{js_number(g)},b:{js_number(b)}}}"


def solid_paint(value: str) -> str:
    """JS paint array with a single solid fill."""
    return f"[{{type:'SOLID',color:{rgb_literal(value)}}}]"
