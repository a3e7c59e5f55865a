"""Info-panel formatting for clicked features."""
from __future__ import annotations

import math
import numbers
import re
from typing import Any, Dict, List, Sequence, Tuple

from ..catalog import DEFAULT_KEY_PROPERTIES, KEY_PROPERTIES

_ROUNDED_HINTS = ("score", "potential", "feasibility")
_DISTANCE_HINTS = ("distance", "km")


def key_properties(stage: str) -> Sequence[str]:
    return KEY_PROPERTIES.get(stage, DEFAULT_KEY_PROPERTIES)


def format_label(prop: str) -> str:
    return re.sub(r"\b\w", lambda m: m.group(0).upper(), prop.replace("_", " "))


def _grouped(value) -> str:
    # en-US toLocaleString: thousands separators, at most 3 fraction digits
    if isinstance(value, numbers.Integral):
        return f"{int(value):,}"
    text = f"{value:,.3f}".rstrip("0").rstrip(".")
    return "0" if text == "-0" else text


def format_value(prop: str, value: Any) -> Any:
    if isinstance(value, bool) or not isinstance(value, numbers.Real):
        return value
    if isinstance(value, float) and not math.isfinite(value):
        return str(value)
    if any(h in prop for h in _ROUNDED_HINTS):
        return f"{value:.3f}"
    if any(h in prop for h in _DISTANCE_HINTS):
        return f"{value:.1f} km"
    return _grouped(value)


def info_rows(stage: str, properties: Dict[str, Any]) -> List[Tuple[str, Any]]:
    """Key properties for the stage first (in order), then every other attribute."""
    keys = list(key_properties(stage))
    rows = [
        (format_label(p), format_value(p, properties[p]))
        for p in keys
        if p in properties
    ]
    for name, value in properties.items():
        if name in keys or name == "geometry":
            continue
        rows.append((format_label(name), format_value(name, value)))
    return rows
