"""Font fitting and line placement for a single field.

Nothing here draws. Text width comes from a ``measure(text, size)``
callable, so the layout can be computed against any font backend.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Callable

from field_map import FieldSpec

MeasureFn = Callable[[str, float], float]

DEFAULT_MIN_FONT_SIZE = 6.0
FONT_SIZE_STEP = 0.5
LINE_HEIGHT_FACTOR = 1.2
BLOCK_HEIGHT_FACTOR = 1.35
BASELINE_TWEAK_FACTOR = 0.2

_NEWLINE_RE = re.compile(r"\r?\n")


@dataclass(frozen=True)
class ResolvedLine:
    text: str
    x: float
    y: float
    font_size: float


@dataclass(frozen=True)
class ClearRect:
    x: float
    y: float
    width: float
    height: float


@dataclass
class FieldLayout:
    font_size: float
    align: str
    lines: list[ResolvedLine] = field(default_factory=list)
    clear_rect: ClearRect | None = None
    overflow: bool = False


def split_lines(text: str) -> list[str]:
    return _NEWLINE_RE.split(text)


def max_line_width(measure: MeasureFn, lines: list[str], font_size: float) -> float:
    return max((measure(line, font_size) for line in lines), default=0.0)


def fit_font_size(
    measure: MeasureFn,
    lines: list[str],
    width: float | None,
    fallback: float,
    min_size: float | None = None,
    max_size: float | None = None,
) -> float:
    """Largest size, in 0.5pt steps, at which the widest line fits *width*.

    Without a width no fitting happens and *fallback* is returned as is.
    If nothing fits above the floor, the floor itself is returned.
    """
    if not width:
        return fallback

    size = max_size if max_size is not None else fallback
    floor = min_size if min_size is not None else DEFAULT_MIN_FONT_SIZE
    while size > floor:
        if max_line_width(measure, lines, size) <= width:
            return size
        size -= FONT_SIZE_STEP
    return floor


def compute_aligned_x(x: float, width: float | None, align: str, text_width: float) -> float:
    if not width or align == "left":
        return x
    if align == "center":
        return x + (width - text_width) / 2
    return x + (width - text_width)


def estimate_block_height(line_count: int, font_size: float, line_height: float | None = None) -> float:
    lh = line_height if line_height is not None else font_size * LINE_HEIGHT_FACTOR
    return max(font_size * BLOCK_HEIGHT_FACTOR, (line_count - 1) * lh + font_size * BLOCK_HEIGHT_FACTOR)


def layout_field(
    measure: MeasureFn,
    text: str,
    spec: FieldSpec,
    font_size: float,
    align: str,
) -> FieldLayout:
    lines = split_lines(text)
    line_height = spec.line_height if spec.line_height is not None else font_size * LINE_HEIGHT_FACTOR

    resolved: list[ResolvedLine] = []
    for i, line in enumerate(lines):
        line_width = measure(line, font_size)
        resolved.append(
            ResolvedLine(
                text=line,
                x=compute_aligned_x(spec.x, spec.width, align, line_width),
                y=spec.y - i * line_height,
                font_size=font_size,
            )
        )

    clear_rect = None
    if spec.clear_background and (spec.width or spec.height):
        bg_width = spec.width or max_line_width(measure, lines, font_size)
        bg_height = spec.height or estimate_block_height(len(lines), font_size, spec.line_height)
        clear_rect = ClearRect(
            x=spec.x,
            y=spec.y - bg_height + font_size * BASELINE_TWEAK_FACTOR,
            width=bg_width,
            height=bg_height,
        )

    overflow = bool(spec.width) and max_line_width(measure, lines, font_size) > spec.width
    return FieldLayout(
        font_size=font_size,
        align=align,
        lines=resolved,
        clear_rect=clear_rect,
        overflow=overflow,
    )
