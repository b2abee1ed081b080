import argparse
import json
import os
import re
import tempfile
from dataclasses import dataclass
from pathlib import Path

from reportlab.lib import colors

from field_layout import FieldLayout, fit_font_size, layout_field, split_lines
from field_map import FieldMap, FieldSpec, load_field_map
from fill_errors import FieldConfigError, UnknownFieldError
from pdf_document import RGB, FillDocument, PdfTemplateDocument
from rtl_text import resolve_alignment, resolve_direction, select_render_text

WHITE: RGB = (1.0, 1.0, 1.0)
BLACK: RGB = (0.0, 0.0, 0.0)

_HEX_COLOR_RE = re.compile(r"#[0-9a-f]{6}")


@dataclass
class FillOptions:
    font_path: Path | None = None
    default_font_size: float = 12.0
    text_color: RGB = BLACK
    auto_detect_rtl: bool = True
    default_rtl_align_right: bool = True


def normalize_color(color: list | tuple | None, fallback: RGB) -> RGB:
    """Clamp a three-item RGB sequence into [0, 1]; anything else gives *fallback*."""
    if not isinstance(color, (list, tuple)) or len(color) != 3:
        return fallback
    try:
        r, g, b = (max(0.0, min(1.0, float(channel))) for channel in color)
    except (TypeError, ValueError):
        return fallback
    return (r, g, b)


def parse_css_color(value: str, fallback: RGB) -> RGB:
    """Parse a CSS color name or ``#rrggbb`` into RGB floats."""
    if not isinstance(value, str):
        return fallback
    s = value.strip().lower()
    if _HEX_COLOR_RE.fullmatch(s):
        color = colors.HexColor(s)
    else:
        color = colors.getAllNamedColors().get(s)
        if color is None:
            return fallback
    return (color.red, color.green, color.blue)


def layout_field_value(
    document: FillDocument,
    font: str,
    field_name: str,
    spec: FieldSpec,
    value: str,
    options: FillOptions,
) -> FieldLayout:
    """Work out where and how big one field value is drawn, without drawing it."""

    def measure(text: str, size: float) -> float:
        return document.measure_text(text, font, size)

    direction = resolve_direction(spec.direction, value, options.auto_detect_rtl)
    align = resolve_alignment(spec.align, direction, spec.width, options.default_rtl_align_right)
    base_font_size = spec.font_size if spec.font_size is not None else options.default_font_size

    rendered = select_render_text(value, direction)
    font_size = fit_font_size(
        measure,
        split_lines(rendered),
        spec.width,
        base_font_size,
        min_size=spec.min_font_size,
        max_size=spec.max_font_size,
    )
    layout = layout_field(measure, rendered, spec, font_size, align)
    if layout.overflow:
        print(
            f"[WARN] Field '{field_name}' does not fit width {spec.width:g} even at "
            f"{font_size:g}pt; drawing it anyway."
        )
    return layout


def fill_document(
    document: FillDocument,
    fields: dict[str, str],
    field_map: FieldMap,
    options: FillOptions | None = None,
) -> None:
    """Draw every requested value onto *document*, in request order.

    An unmapped field name aborts the whole fill. Fields in the map that are
    not requested are left untouched.
    """
    options = options or FillOptions()
    font = document.embed_font(options.font_path)
    text_color = normalize_color(options.text_color, BLACK)

    for field_name, raw_value in fields.items():
        spec = field_map.get(field_name)
        if spec is None:
            raise UnknownFieldError(field_name)
        # Fails on a bad page index before anything is drawn for this field.
        document.page_size(spec.page_index)

        layout = layout_field_value(document, font, field_name, spec, str(raw_value), options)

        if layout.clear_rect is not None:
            rect = layout.clear_rect
            document.draw_rectangle(spec.page_index, rect.x, rect.y, rect.width, rect.height, WHITE)

        for line in layout.lines:
            document.draw_text(spec.page_index, line.text, line.x, line.y, font, line.font_size, text_color)


def fill_fields_to_pdf_bytes(
    input_pdf_bytes: bytes,
    fields: dict[str, str],
    field_map: FieldMap,
    options: FillOptions | None = None,
) -> bytes:
    document = PdfTemplateDocument.load(input_pdf_bytes)
    fill_document(document, fields, field_map, options)
    return document.save()


def atomic_write_bytes(output_path: Path, data: bytes) -> None:
    """Write *data* next to *output_path*, then rename it into place.

    Readers of *output_path* see either the old file or the complete new one.
    """
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    tmp = tempfile.NamedTemporaryFile(
        delete=False,
        suffix=".tmp",
        prefix=f".{output_path.name}.",
        dir=output_path.parent,
    )
    temp_path = Path(tmp.name)
    try:
        with tmp:
            tmp.write(data)
            tmp.flush()
            os.fsync(tmp.fileno())
        os.replace(temp_path, output_path)
    except Exception:
        temp_path.unlink(missing_ok=True)
        raise


def fill_fields_in_place(
    input_path: Path,
    fields: dict[str, str],
    field_map: FieldMap,
    output_path: Path,
    options: FillOptions | None = None,
) -> None:
    input_bytes = Path(input_path).read_bytes()
    out_bytes = fill_fields_to_pdf_bytes(input_bytes, fields, field_map, options)
    atomic_write_bytes(Path(output_path), out_bytes)


def parse_value_pairs(pairs: list[str]) -> dict[str, str]:
    values: dict[str, str] = {}
    for pair in pairs:
        if "=" not in pair:
            raise ValueError(f"Expected NAME=VALUE, got {pair!r}.")
        name, value = pair.split("=", 1)
        # Shells can't easily pass real newlines; accept the escaped form.
        values[name.strip()] = value.replace("\\n", "\n")
    return values


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Fill named fields on a PDF template with text values (Hebrew-aware)."
    )
    parser.add_argument("--template", required=True, help="Path to the template PDF.")
    parser.add_argument("--fields", required=True, help="Path to the field map JSON.")
    parser.add_argument("--data-json", help="Path to JSON file with {field: value}.")
    parser.add_argument(
        "--value",
        action="append",
        default=[],
        metavar="NAME=VALUE",
        help="Field value; repeat for several fields. Applied after --data-json.",
    )
    parser.add_argument("--output", required=True, help="Output PDF path.")
    parser.add_argument(
        "--font-path",
        help="TrueType (.ttf) font with Hebrew coverage. CFF-based .otf files are not supported. Without it Helvetica is used (Latin only).",
    )
    parser.add_argument("--font-size", type=float, default=12.0, help="Default font size in points.")
    parser.add_argument("--text-color", default="black", help="Text color: a CSS color name or #rrggbb.")
    parser.add_argument(
        "--no-auto-rtl",
        action="store_true",
        help="Do not detect right-to-left fields from their content.",
    )
    parser.add_argument(
        "--no-rtl-align-right",
        action="store_true",
        help="Do not right-align RTL fields that have no explicit alignment.",
    )
    return parser.parse_args()


def main() -> None:
    args = parse_args()

    field_map = load_field_map(Path(args.fields))

    values: dict[str, str] = {}
    if args.data_json:
        data = json.loads(Path(args.data_json).read_text(encoding="utf-8"))
        if not isinstance(data, dict):
            raise FieldConfigError("--data-json must contain a JSON object.")
        values.update({str(k): str(v) for k, v in data.items()})
    values.update(parse_value_pairs(args.value))
    if not values:
        raise ValueError("Provide --data-json or at least one --value.")

    options = FillOptions(
        font_path=Path(args.font_path) if args.font_path else None,
        default_font_size=args.font_size,
        text_color=parse_css_color(args.text_color, BLACK),
        auto_detect_rtl=not args.no_auto_rtl,
        default_rtl_align_right=not args.no_rtl_align_right,
    )
    if options.font_path is None:
        print("[WARN] No --font-path given; Hebrew text will not render with Helvetica.")

    output_path = Path(args.output)
    fill_fields_in_place(Path(args.template), values, field_map, output_path, options)
    print(f"Wrote: {output_path}")


if __name__ == "__main__":
    main()
