import json
import os
from pathlib import Path
from typing import Any

# load_dotenv() runs before importing auth, which reads PDF_FILL_JWT_SECRET
# at import time.
from dotenv import load_dotenv
load_dotenv()

import auth
from fastapi import FastAPI, File, Form, HTTPException, Request, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel

from field_map import FieldMap, dump_field_map, load_field_map, parse_field_map
from fill_errors import (
    DocumentLoadError,
    FieldConfigError,
    FontLoadError,
    PageIndexError,
    UnknownFieldError,
)
from grid_overlay import add_grid_overlay_to_pdf_bytes
from pdf_fill import (
    BLACK,
    FillOptions,
    atomic_write_bytes,
    fill_fields_to_pdf_bytes,
    normalize_color,
    parse_css_color,
)

ROOT_DIR = Path(__file__).resolve().parent
FIELDS_FILE = Path(os.environ.get("PDF_FILL_FIELDS", ROOT_DIR / "fields.json"))
TEMPLATE_FILE = Path(os.environ.get("PDF_FILL_TEMPLATE", ROOT_DIR / "templates" / "template.pdf"))
FONT_FILE: Path | None = Path(os.environ["PDF_FILL_FONT"]) if os.environ.get("PDF_FILL_FONT") else None

app = FastAPI(title="PDF Field Fill API")

# ── CORS ──────────────────────────────────────────────────────────────────────
# Allow the mapper dev server to reach the API during development.
_CORS_ORIGINS = [
    origin.strip()
    for origin in os.environ.get(
        "PDF_FILL_CORS_ORIGINS", "http://localhost:3000,http://127.0.0.1:3000"
    ).split(",")
    if origin.strip()
]
app.add_middleware(
    CORSMiddleware,
    allow_origins=_CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def require_bearer_token(request: Request, call_next):
    if request.method == "OPTIONS" or not auth.requires_auth(request.url.path):
        return await call_next(request)
    try:
        auth.check_authorization(request.headers.get("Authorization"))
    except auth.AuthError as exc:
        return JSONResponse(
            status_code=401,
            content={"detail": str(exc)},
            headers={"WWW-Authenticate": "Bearer"},
        )
    return await call_next(request)


class FillRequest(BaseModel):
    values: dict[str, str]
    field_map: dict[str, Any] | None = None
    default_font_size: float = 12.0
    text_color: list[float] | None = None
    auto_detect_rtl: bool = True
    default_rtl_align_right: bool = True


@app.get("/api/health")
def health() -> dict[str, str]:
    return {"status": "ok"}


def current_field_map() -> FieldMap:
    """Read the field map from disk on every call; nothing is cached."""
    if not FIELDS_FILE.exists():
        raise HTTPException(status_code=404, detail=f"Field map not found: {FIELDS_FILE.name}")
    try:
        return load_field_map(FIELDS_FILE)
    except FieldConfigError as exc:
        raise HTTPException(status_code=500, detail=f"Invalid field map {FIELDS_FILE.name}: {exc}") from exc


def read_template_bytes() -> bytes:
    if not TEMPLATE_FILE.exists():
        raise HTTPException(status_code=500, detail=f"Template not found: {TEMPLATE_FILE.name}")
    return TEMPLATE_FILE.read_bytes()


def pdf_response(pdf_bytes: bytes, filename: str = "filled.pdf") -> Response:
    return Response(
        content=pdf_bytes,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


def run_fill(template_bytes: bytes, values: dict[str, str], field_map: FieldMap, options: FillOptions) -> bytes:
    try:
        return fill_fields_to_pdf_bytes(template_bytes, values, field_map, options)
    except UnknownFieldError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except (FieldConfigError, PageIndexError) as exc:
        raise HTTPException(status_code=400, detail=f"Field map does not match template: {exc}") from exc
    except DocumentLoadError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except FontLoadError as exc:
        raise HTTPException(status_code=500, detail=str(exc)) from exc


@app.get("/api/fields")
def get_fields() -> dict[str, Any]:
    return dump_field_map(current_field_map())


@app.post("/api/fields")
def save_fields(payload: dict[str, Any]) -> dict[str, str]:
    try:
        field_map = parse_field_map(payload)
    except FieldConfigError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    content = json.dumps(dump_field_map(field_map), indent=2, ensure_ascii=False)
    atomic_write_bytes(FIELDS_FILE, content.encode("utf-8"))
    return {"message": f"Saved {len(field_map)} field(s) to {FIELDS_FILE.name}"}


@app.post("/api/fill-pdf")
def fill_pdf(values: dict[str, str]) -> Response:
    """Fill the configured template with ``{field: value}`` and return the PDF."""
    options = FillOptions(font_path=FONT_FILE)
    pdf_bytes = run_fill(read_template_bytes(), values, current_field_map(), options)
    return pdf_response(pdf_bytes)


@app.post("/api/fill")
def fill_with_options(request: FillRequest) -> Response:
    if request.field_map is not None:
        try:
            field_map = parse_field_map(request.field_map)
        except FieldConfigError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
    else:
        field_map = current_field_map()

    options = FillOptions(
        font_path=FONT_FILE,
        default_font_size=request.default_font_size,
        text_color=normalize_color(request.text_color, BLACK),
        auto_detect_rtl=request.auto_detect_rtl,
        default_rtl_align_right=request.default_rtl_align_right,
    )
    pdf_bytes = run_fill(read_template_bytes(), request.values, field_map, options)
    return pdf_response(pdf_bytes)


def _parse_json_form(raw: str, label: str) -> Any:
    try:
        return json.loads(raw)
    except json.JSONDecodeError as exc:
        raise HTTPException(status_code=400, detail=f"Invalid JSON in {label}: {exc}") from exc


@app.post("/api/fill-pdf-upload")
def fill_pdf_upload(
    template: UploadFile = File(...),
    values_json: str = Form(...),
    field_map_json: str | None = Form(None),
    default_font_size: float = Form(12.0),
    text_color: str = Form("black"),
    auto_detect_rtl: bool = Form(True),
    default_rtl_align_right: bool = Form(True),
) -> Response:
    values = _parse_json_form(values_json, "values_json")
    if not isinstance(values, dict):
        raise HTTPException(status_code=400, detail="values_json must be a JSON object.")

    if field_map_json:
        try:
            field_map = parse_field_map(_parse_json_form(field_map_json, "field_map_json"))
        except FieldConfigError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
    else:
        field_map = current_field_map()

    options = FillOptions(
        font_path=FONT_FILE,
        default_font_size=default_font_size,
        text_color=parse_css_color(text_color, BLACK),
        auto_detect_rtl=auto_detect_rtl,
        default_rtl_align_right=default_rtl_align_right,
    )
    template_bytes = template.file.read()
    pdf_bytes = run_fill(template_bytes, {str(k): str(v) for k, v in values.items()}, field_map, options)
    return pdf_response(pdf_bytes)


@app.post("/api/grid-overlay")
def grid_overlay(
    template: UploadFile = File(...),
    minor_step: int = Form(10),
    major_step: int = Form(50),
) -> Response:
    """Return the uploaded PDF with a coordinate grid, for placing fields."""
    if minor_step <= 0 or major_step <= 0:
        raise HTTPException(status_code=400, detail="Grid steps must be positive.")
    try:
        pdf_bytes = add_grid_overlay_to_pdf_bytes(template.file.read(), minor_step, major_step)
    except DocumentLoadError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return pdf_response(pdf_bytes, filename="grid.pdf")
