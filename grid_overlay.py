"""Draw a labelled calibration grid on every page of a PDF.

Coordinates are PDF points with the origin at the bottom-left, the same
space used by the field map, so you can read field positions straight off
the grid.
"""

import argparse
from pathlib import Path

from pdf_document import RGB, FillDocument, PdfTemplateDocument
from pdf_fill import atomic_write_bytes

MINOR_COLOR: RGB = (0.85, 0.85, 0.85)
MAJOR_COLOR: RGB = (0.65, 0.65, 0.65)
AXIS_COLOR: RGB = (0.2, 0.2, 0.2)

MINOR_THICKNESS = 0.5
MAJOR_THICKNESS = 1.0
AXIS_THICKNESS = 1.5

LABEL_SIZE = 8
LABEL_PADDING = 2


def _grid_positions(limit: float, step: float) -> list[int]:
    return list(range(0, int(limit) + 1, int(step)))


def add_grid_overlay(
    document: FillDocument,
    minor_step: int = 10,
    major_step: int = 50,
    label_major: bool = True,
) -> None:
    if minor_step <= 0 or major_step <= 0:
        raise ValueError("Grid steps must be positive.")

    font = document.embed_font()
    for i in range(document.page_count):
        width, height = document.page_size(i)

        document.draw_line(i, (0, 0), (width, 0), AXIS_COLOR, AXIS_THICKNESS)
        document.draw_line(i, (0, 0), (0, height), AXIS_COLOR, AXIS_THICKNESS)

        for x in _grid_positions(width, minor_step):
            is_major = x % major_step == 0
            document.draw_line(
                i,
                (x, 0),
                (x, height),
                MAJOR_COLOR if is_major else MINOR_COLOR,
                MAJOR_THICKNESS if is_major else MINOR_THICKNESS,
            )
            if label_major and is_major:
                document.draw_text(i, f"x={x}", x + LABEL_PADDING, LABEL_PADDING, font, LABEL_SIZE, AXIS_COLOR)

        for y in _grid_positions(height, minor_step):
            is_major = y % major_step == 0
            document.draw_line(
                i,
                (0, y),
                (width, y),
                MAJOR_COLOR if is_major else MINOR_COLOR,
                MAJOR_THICKNESS if is_major else MINOR_THICKNESS,
            )
            if label_major and is_major:
                document.draw_text(i, f"y={y}", LABEL_PADDING, y + LABEL_PADDING, font, LABEL_SIZE, AXIS_COLOR)

        document.draw_text(i, f"page={i}", width - 60, height - 14, font, 10, AXIS_COLOR)


def add_grid_overlay_to_pdf_bytes(pdf_bytes: bytes, minor_step: int = 10, major_step: int = 50) -> bytes:
    document = PdfTemplateDocument.load(pdf_bytes)
    add_grid_overlay(document, minor_step=minor_step, major_step=major_step)
    return document.save()


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Draw a debug grid (PDF points, origin bottom-left) onto every page of a PDF."
    )
    parser.add_argument("input", help="Input PDF path.")
    parser.add_argument("output", help="Output PDF path.")
    parser.add_argument("--minor-step", type=int, default=10, help="Points between light lines.")
    parser.add_argument("--major-step", type=int, default=50, help="Points between darker, labelled lines.")
    return parser.parse_args()


def main() -> None:
    args = parse_args()
    input_bytes = Path(args.input).read_bytes()
    out_bytes = add_grid_overlay_to_pdf_bytes(input_bytes, args.minor_step, args.major_step)
    output_path = Path(args.output)
    atomic_write_bytes(output_path, out_bytes)
    print(f"Wrote gridded PDF to: {output_path}")


if __name__ == "__main__":
    main()
