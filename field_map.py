"""Field specifications: where each named value is drawn on the template."""

from __future__ import annotations

import json
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any

from fill_errors import FieldConfigError

ALIGNMENTS = ("left", "center", "right")
DIRECTIONS = ("ltr", "rtl", "auto")

# Config files written by the coordinate mapper use camelCase keys.
_CAMEL_KEYS = {
    "pageIndex": "page_index",
    "fontSize": "font_size",
    "lineHeight": "line_height",
    "maxFontSize": "max_font_size",
    "minFontSize": "min_font_size",
    "clearBackground": "clear_background",
}
_SNAKE_TO_CAMEL = {snake: camel for camel, snake in _CAMEL_KEYS.items()}


@dataclass(frozen=True)
class FieldSpec:
    """One placeholder on the template, in PDF points (origin bottom-left)."""

    page_index: int
    x: float
    y: float
    width: float | None = None
    height: float | None = None
    font_size: float | None = None
    line_height: float | None = None
    align: str | None = None
    max_font_size: float | None = None
    min_font_size: float | None = None
    clear_background: bool = False
    direction: str | None = None

    def __post_init__(self) -> None:
        if self.page_index < 0:
            raise FieldConfigError(f"page_index must be >= 0, got {self.page_index}.")
        for name in ("width", "height"):
            value = getattr(self, name)
            if value is not None and value < 0:
                raise FieldConfigError(f"{name} must be non-negative, got {value}.")
        for name in ("font_size", "line_height", "max_font_size", "min_font_size"):
            value = getattr(self, name)
            if value is not None and value <= 0:
                raise FieldConfigError(f"{name} must be positive, got {value}.")
        if (
            self.min_font_size is not None
            and self.max_font_size is not None
            and self.min_font_size > self.max_font_size
        ):
            raise FieldConfigError(
                f"min_font_size ({self.min_font_size}) is larger than max_font_size ({self.max_font_size})."
            )
        if self.align is not None and self.align not in ALIGNMENTS:
            raise FieldConfigError(f"align must be one of {ALIGNMENTS}, got {self.align!r}.")
        if self.direction is not None and self.direction not in DIRECTIONS:
            raise FieldConfigError(f"direction must be one of {DIRECTIONS}, got {self.direction!r}.")


FieldMap = dict[str, FieldSpec]

_FLOAT_KEYS = {"x", "y", "width", "height", "font_size", "line_height", "max_font_size", "min_font_size"}
_KNOWN_KEYS = {f.name for f in fields(FieldSpec)}


def parse_field_spec(name: str, raw: dict[str, Any]) -> FieldSpec:
    if not isinstance(raw, dict):
        raise FieldConfigError(f"Field '{name}' must be an object, got {type(raw).__name__}.")

    kwargs: dict[str, Any] = {}
    for key, value in raw.items():
        attr = _CAMEL_KEYS.get(key, key)
        if attr not in _KNOWN_KEYS or value is None:
            # Mapper output carries extra keys (labels, ids); ignore them.
            continue
        kwargs[attr] = value

    for required in ("page_index", "x", "y"):
        if required not in kwargs:
            raise FieldConfigError(f"Field '{name}' is missing '{required}'.")

    try:
        kwargs["page_index"] = int(kwargs["page_index"])
        for key in _FLOAT_KEYS & kwargs.keys():
            kwargs[key] = float(kwargs[key])
    except (TypeError, ValueError) as exc:
        raise FieldConfigError(f"Field '{name}' has a non-numeric value: {exc}") from exc

    if "align" in kwargs:
        kwargs["align"] = str(kwargs["align"]).lower()
    if "direction" in kwargs:
        kwargs["direction"] = str(kwargs["direction"]).lower()
    if "clear_background" in kwargs:
        kwargs["clear_background"] = bool(kwargs["clear_background"])

    try:
        return FieldSpec(**kwargs)
    except FieldConfigError as exc:
        raise FieldConfigError(f"Field '{name}': {exc}") from exc


def parse_field_map(data: dict[str, Any]) -> FieldMap:
    """Build a FieldMap from decoded JSON.

    Accepts either ``{"name": {...}}`` or ``{"fields": {"name": {...}}}``.
    """
    if not isinstance(data, dict):
        raise FieldConfigError("Field map must be a JSON object.")
    if isinstance(data.get("fields"), dict):
        data = data["fields"]
    return {str(name): parse_field_spec(str(name), raw) for name, raw in data.items()}


def load_field_map(path: Path) -> FieldMap:
    with path.open("r", encoding="utf-8") as f:
        try:
            data = json.load(f)
        except json.JSONDecodeError as exc:
            raise FieldConfigError(f"Invalid JSON in {path.name}: {exc}") from exc
    return parse_field_map(data)


def dump_field_map(field_map: FieldMap) -> dict[str, dict[str, Any]]:
    out: dict[str, dict[str, Any]] = {}
    for name, spec in field_map.items():
        entry: dict[str, Any] = {}
        for f in fields(FieldSpec):
            value = getattr(spec, f.name)
            if value is None or (f.name == "clear_background" and not value):
                continue
            entry[_SNAKE_TO_CAMEL.get(f.name, f.name)] = value
        out[name] = entry
    return out
