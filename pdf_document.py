"""The document operations the fill engine needs, plus the pypdf/reportlab binding.

``FillDocument`` lists what the orchestrator calls. ``PdfTemplateDocument``
implements it the usual way: draw on one reportlab overlay canvas per page,
then merge each overlay onto its template page with pypdf when saving.
"""

from __future__ import annotations

import hashlib
import io
from pathlib import Path
from typing import Protocol

from pypdf import PdfReader, PdfWriter
from pypdf.errors import PdfReadError
from reportlab.lib.colors import Color
from reportlab.pdfbase import pdfmetrics
from reportlab.pdfbase.ttfonts import TTFError, TTFont
from reportlab.pdfgen import canvas

from fill_errors import DocumentLoadError, FontLoadError, PageIndexError

RGB = tuple[float, float, float]

DEFAULT_FONT = "Helvetica"


class FillDocument(Protocol):
    @property
    def page_count(self) -> int: ...

    def page_size(self, page_index: int) -> tuple[float, float]: ...

    def embed_font(self, font_path: Path | None = None) -> str: ...

    def measure_text(self, text: str, font: str, size: float) -> float: ...

    def draw_text(self, page_index: int, text: str, x: float, y: float, font: str, size: float, color: RGB) -> None: ...

    def draw_rectangle(
        self, page_index: int, x: float, y: float, width: float, height: float, color: RGB
    ) -> None: ...

    def draw_line(
        self,
        page_index: int,
        start: tuple[float, float],
        end: tuple[float, float],
        color: RGB,
        thickness: float,
    ) -> None: ...

    def save(self) -> bytes: ...


def font_name_for_path(font_path: Path) -> str:
    # Same stem in two directories must not collide in the shared registry.
    digest = hashlib.sha1(str(Path(font_path).resolve()).encode("utf-8")).hexdigest()[:8]
    return f"FillFont-{Path(font_path).stem}-{digest}"


def register_font(font_path: Path) -> str:
    """Register a TrueType (.ttf) file with reportlab and return its font name.

    reportlab keeps one process-wide registry. Names are derived from the
    resolved path, so registering the same file twice is harmless.
    """
    font_path = Path(font_path)
    font_name = font_name_for_path(font_path)
    try:
        pdfmetrics.registerFont(TTFont(font_name, str(font_path)))
    except (TTFError, OSError) as exc:
        raise FontLoadError(f"Failed to load font {font_path}: {exc}") from exc
    return font_name


class PdfTemplateDocument:
    def __init__(self, reader: PdfReader) -> None:
        self._reader = reader
        self._pages = list(reader.pages)
        self._overlays: dict[int, tuple[io.BytesIO, canvas.Canvas]] = {}

    @classmethod
    def load(cls, pdf_bytes: bytes) -> "PdfTemplateDocument":
        try:
            reader = PdfReader(io.BytesIO(pdf_bytes))
            return cls(reader)
        except (PdfReadError, ValueError, KeyError) as exc:
            raise DocumentLoadError(f"Could not read template PDF: {exc}") from exc

    @property
    def page_count(self) -> int:
        return len(self._pages)

    def _check_page(self, page_index: int) -> None:
        if page_index < 0 or page_index >= len(self._pages):
            raise PageIndexError(page_index, len(self._pages))

    def page_size(self, page_index: int) -> tuple[float, float]:
        self._check_page(page_index)
        page = self._pages[page_index]
        return float(page.mediabox.width), float(page.mediabox.height)

    def embed_font(self, font_path: Path | None = None) -> str:
        if font_path is None:
            # Latin only. Hebrew needs a custom TTF.
            return DEFAULT_FONT
        return register_font(font_path)

    def measure_text(self, text: str, font: str, size: float) -> float:
        return pdfmetrics.stringWidth(text, font, size)

    def _canvas(self, page_index: int) -> canvas.Canvas:
        self._check_page(page_index)
        if page_index not in self._overlays:
            packet = io.BytesIO()
            c = canvas.Canvas(packet, pagesize=self.page_size(page_index))
            self._overlays[page_index] = (packet, c)
        return self._overlays[page_index][1]

    def draw_text(self, page_index: int, text: str, x: float, y: float, font: str, size: float, color: RGB) -> None:
        c = self._canvas(page_index)
        c.setFont(font, size)
        c.setFillColor(Color(*color))
        c.drawString(x, y, text)

    def draw_rectangle(self, page_index: int, x: float, y: float, width: float, height: float, color: RGB) -> None:
        c = self._canvas(page_index)
        c.saveState()
        c.setFillColor(Color(*color))
        c.setStrokeColor(Color(*color))
        c.rect(x, y, width, height, stroke=1, fill=1)
        c.restoreState()

    def draw_line(
        self,
        page_index: int,
        start: tuple[float, float],
        end: tuple[float, float],
        color: RGB,
        thickness: float,
    ) -> None:
        c = self._canvas(page_index)
        c.saveState()
        c.setStrokeColor(Color(*color))
        c.setLineWidth(thickness)
        c.line(start[0], start[1], end[0], end[1])
        c.restoreState()

    def save(self) -> bytes:
        # Merge into the writer's own pages; pypdf no longer edits reader pages in place.
        writer = PdfWriter(clone_from=self._reader)
        for i, (packet, c) in sorted(self._overlays.items()):
            c.showPage()
            c.save()
            packet.seek(0)
            writer.pages[i].merge_page(PdfReader(packet).pages[0])
        # Overlays are merged once; the document is spent after saving.
        self._overlays = {}

        out = io.BytesIO()
        writer.write(out)
        return out.getvalue()
