import io
from pathlib import Path

import pytest
from reportlab.pdfgen import canvas

from fill_errors import FontLoadError, PageIndexError
from pdf_document import font_name_for_path

CHAR_WIDTH_RATIO = 0.5


class FakeDocument:
    """In-memory stand-in for PdfTemplateDocument that records every call.

    Every character is ``size * 0.5`` points wide, so expected widths are
    easy to work out by hand.
    """

    def __init__(self, pages: list[tuple[float, float]] | None = None) -> None:
        self.pages = pages if pages is not None else [(612.0, 792.0)]
        self.calls: list[tuple] = []
        self.embedded: list[Path | None] = []
        self.saved = False

    @property
    def page_count(self) -> int:
        return len(self.pages)

    def page_size(self, page_index: int) -> tuple[float, float]:
        if page_index < 0 or page_index >= len(self.pages):
            raise PageIndexError(page_index, len(self.pages))
        return self.pages[page_index]

    def embed_font(self, font_path: Path | None = None) -> str:
        self.embedded.append(font_path)
        if font_path is None:
            return "Helvetica"
        if not Path(font_path).exists():
            raise FontLoadError(f"Failed to load font {font_path}")
        return font_name_for_path(Path(font_path))

    def measure_text(self, text: str, font: str, size: float) -> float:
        return len(text) * size * CHAR_WIDTH_RATIO

    def draw_text(self, page_index, text, x, y, font, size, color) -> None:
        self.page_size(page_index)
        self.calls.append(("text", page_index, text, x, y, font, size, color))

    def draw_rectangle(self, page_index, x, y, width, height, color) -> None:
        self.page_size(page_index)
        self.calls.append(("rect", page_index, x, y, width, height, color))

    def draw_line(self, page_index, start, end, color, thickness) -> None:
        self.page_size(page_index)
        self.calls.append(("line", page_index, start, end, color, thickness))

    def save(self) -> bytes:
        self.saved = True
        return b"%PDF-fake"

    def texts(self) -> list[tuple]:
        return [call for call in self.calls if call[0] == "text"]


def fake_measure(text: str, size: float) -> float:
    return len(text) * size * CHAR_WIDTH_RATIO


def make_template_pdf(page_count: int = 1, label: str = "TEMPLATE") -> bytes:
    packet = io.BytesIO()
    c = canvas.Canvas(packet, pagesize=(612, 792))
    for i in range(page_count):
        c.setFont("Helvetica", 14)
        c.drawString(72, 740, f"{label} page {i}")
        c.showPage()
    c.save()
    return packet.getvalue()


@pytest.fixture
def fake_document() -> FakeDocument:
    return FakeDocument()


@pytest.fixture
def template_bytes() -> bytes:
    return make_template_pdf()


@pytest.fixture
def template_path(tmp_path: Path, template_bytes: bytes) -> Path:
    path = tmp_path / "template.pdf"
    path.write_bytes(template_bytes)
    return path
