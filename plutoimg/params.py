"""Query parameters of image requests and the cache receipt built from them."""

from __future__ import annotations

import math
import re
from dataclasses import dataclass
from typing import Any, Mapping

PARAM_KEYS = (
    "mode",
    "type",
    "quality",
    "width",
    "height",
    "ratio",
    "focusx",
    "focusy",
    "brightness",
    "contrast",
    "saturation",
)

PARAM_SHORT_CODES = {
    "mode": "m",
    "type": "t",
    "quality": "q",
    "width": "w",
    "height": "h",
    "ratio": "r",
    "focusx": "x",
    "focusy": "y",
    "brightness": "b",
    "contrast": "c",
    "saturation": "s",
}

_TYPE_CODES = {"png": "01", "webp": "02"}
_NEUTRAL_ADJUSTMENT = 1000

_INT_RE = re.compile(r"[+-]?[0-9]+")
_DEC_FLOAT_RE = re.compile(r"[+-]?([0-9]+\.?[0-9]*|\.[0-9]+)([eE][+-]?[0-9]+)?")
_HEX_FLOAT_RE = re.compile(r"[+-]?0[xX]([0-9a-fA-F]+\.?[0-9a-fA-F]*|\.[0-9a-fA-F]+)([pP][+-]?[0-9]+)?")
_SPECIAL_FLOATS = {"inf", "+inf", "-inf", "infinity", "+infinity", "-infinity", "nan", "+nan", "-nan"}
_INT64_MIN = -(2**63)
_INT64_MAX = 2**63 - 1


def _parse_int(text: str) -> int:
    """Parse a strict decimal 64-bit integer: optional sign and digits only."""
    if not _INT_RE.fullmatch(text):
        raise ValueError(f"invalid integer: {text!r}")
    value = int(text)
    if not _INT64_MIN <= value <= _INT64_MAX:
        raise ValueError(f"integer out of range: {text!r}")
    return value


def _parse_float(text: str) -> float:
    """Parse a strict floating point literal without surrounding whitespace."""
    if text.lower() in _SPECIAL_FLOATS:
        return float(text)
    if _DEC_FLOAT_RE.fullmatch(text):
        value = float(text)
    elif _HEX_FLOAT_RE.fullmatch(text):
        value = float.fromhex(text)
    else:
        raise ValueError(f"invalid number: {text!r}")
    if math.isinf(value):
        raise ValueError(f"number out of range: {text!r}")
    return value


@dataclass(frozen=True)
class Param:
    """A query parameter: whether it was given and its first value."""

    exist: bool = False
    value: str = ""


@dataclass
class ImageMetadata:
    """Descriptive data submitted along with an uploaded image."""

    user_id: str = ""
    license: str = ""
    created_by: str = ""
    copyright: str = ""
    alt_text: str = ""
    focus_x: float = 0.0
    focus_y: float = 0.0


def _values_for(query: Any, key: str) -> list[str]:
    getlist = getattr(query, "getlist", None)
    if callable(getlist):
        return list(getlist(key))
    value = query.get(key)
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    return list(value)


def collect_params(query: Mapping[str, Any]) -> dict[str, Param]:
    """Pick the known image parameters out of a query, in fixed order.

    The query maps names to a string or a list of strings; multi-dicts
    with a ``getlist`` method are supported as well.
    """
    collected = {}
    for key in PARAM_KEYS:
        values = _values_for(query, key)
        collected[key] = Param(True, values[0]) if values else Param()
    return collected


def get_or_default(param: Param, default: str) -> str:
    """Return the parameter's value, or the default if it was not given."""
    return param.value if param.exist else default


def atoi_or_default(param: Param, default: int) -> int:
    """Return the parameter as an integer, or the default if absent or invalid."""
    if param.exist:
        try:
            return _parse_int(param.value)
        except ValueError:
            pass
    return default


def atoi_or_default_clamped(param: Param, default: int, lo: int, hi: int) -> int:
    """Like atoi_or_default, but a parsed value is clamped to [lo, hi]."""
    if param.exist:
        try:
            value = _parse_int(param.value)
        except ValueError:
            return default
        return min(max(value, lo), hi)
    return default


def atof_or_default(param: Param, default: float) -> float:
    """Return the parameter as a float, or the default if absent or invalid."""
    if param.exist:
        try:
            return _parse_float(param.value)
        except ValueError:
            pass
    return default


def _ratio_code(ratio: str) -> str:
    parts = ratio.split("by")
    if len(parts) != 2:
        return ""
    try:
        first, second = _parse_int(parts[0]), _parse_int(parts[1])
    except ValueError:
        return ""
    return f"{first:04x}{second:04x}"


def image_receipt(
    image_id: int,
    params: Mapping[str, Param],
    mode: str,
    type_str: str,
    quality: int,
    width: int,
    height: int,
    ratio: str,
    focus_x: int,
    focus_y: int,
) -> str:
    """Build the cache key of a rendered image.

    The key is the hexadecimal image id, the short codes of the parameters
    that were given, and their encoded values, joined by underscores.
    """
    neutral = f"{_NEUTRAL_ADJUSTMENT:03x}"
    encoded = {
        "mode": "01" if mode == "cover" else "00",
        "type": _TYPE_CODES.get(type_str, "00"),
        "quality": f"{quality:02x}",
        "width": f"{width:04x}",
        "height": f"{height:04x}",
        "ratio": _ratio_code(ratio),
        "focusx": f"{focus_x:04x}",
        "focusy": f"{focus_y:04x}",
        "brightness": neutral,
        "contrast": neutral,
        "saturation": neutral,
    }
    present = [key for key in PARAM_KEYS if params.get(key, Param()).exist]
    code = "".join(PARAM_SHORT_CODES[key] for key in present)
    values = "".join(encoded[key] for key in present)
    return f"{image_id:x}_{code}_{values}"