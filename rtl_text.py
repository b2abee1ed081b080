"""Hebrew-aware text ordering for a left-to-right-only drawing layer.

reportlab draws code points strictly left to right, with no bidi support.
The helpers here classify characters, split text into script runs and
produce a "visual order" string that reads correctly when drawn naively.
This is not a Unicode BiDi implementation. It handles the mixed
Hebrew / Latin / digits text found in form fields.
"""

from __future__ import annotations

import itertools
import re

import regex

RTL_SCRIPT = "rtl_script"
LATIN_OR_DIGIT = "latin_or_digit"
OTHER = "other"

LTR = "ltr"
RTL = "rtl"

_HEBREW_FIRST = 0x0590
_HEBREW_LAST = 0x05FF

# Hebrew plus whitespace and common form punctuation. Digits are left out so
# that numbers inside Hebrew text go through run splitting and stay readable.
_PURE_RTL_RE = re.compile(r"[\u0590-\u05FF\s.,\-–—\"'()\[\]/\\:;!?]+")

_GRAPHEME_RE = regex.compile(r"\X")


def classify_char(ch: str) -> str:
    code = ord(ch)
    if _HEBREW_FIRST <= code <= _HEBREW_LAST:
        return RTL_SCRIPT
    if ch.isascii() and ch.isalnum():
        return LATIN_OR_DIGIT
    return OTHER


def contains_rtl(text: str) -> bool:
    return any(classify_char(ch) == RTL_SCRIPT for ch in text)


def split_graphemes(text: str) -> list[str]:
    """Split *text* into extended grapheme clusters.

    Niqqud and cantillation marks stay on their letter, and ``\\r\\n`` is a
    single cluster.
    """
    return _GRAPHEME_RE.findall(text)


def reverse_graphemes(text: str) -> str:
    return "".join(reversed(split_graphemes(text)))


def split_script_runs(text: str) -> list[tuple[str, str]]:
    """Return ``(script, run)`` pairs of maximal same-script runs."""
    return [(script, "".join(chars)) for script, chars in itertools.groupby(text, key=classify_char)]


def rtl_visualize(text: str) -> str:
    """Reorder logical-order text into visual order for LTR drawing.

    - Reverse the order of the script runs.
    - Reverse the graphemes inside Hebrew runs (niqqud stays on its letter).
    - Keep Latin words and digit runs as they are, so 2025 and ABC stay
      readable.
    """
    if not text or not contains_rtl(text):
        return text

    if _PURE_RTL_RE.fullmatch(text):
        return reverse_graphemes(text)

    runs = split_script_runs(text)
    processed = [reverse_graphemes(run) if script == RTL_SCRIPT else run for script, run in runs]
    return "".join(reversed(processed))


def resolve_direction(spec_direction: str | None, value: str, auto_detect: bool = True) -> str:
    if spec_direction in (LTR, RTL):
        return spec_direction
    if auto_detect and contains_rtl(value):
        return RTL
    return LTR


def resolve_alignment(
    spec_align: str | None,
    direction: str,
    width: float | None,
    default_rtl_align_right: bool = True,
) -> str:
    if spec_align:
        return spec_align
    if direction == RTL and default_rtl_align_right and width:
        return "right"
    return "left"


def select_render_text(value: str, direction: str) -> str:
    """Pick the string that is actually handed to the drawing layer.

    Resolved-RTL values are drawn in logical order. LTR values that carry
    Hebrew are pre-reordered, because the canvas cannot reorder them itself.
    """
    if direction == RTL:
        return value
    if contains_rtl(value):
        return rtl_visualize(value)
    return value
