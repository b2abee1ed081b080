import io
import json
import time

import jwt
import pytest
from fastapi.testclient import TestClient
from pypdf import PdfReader

import app_server
import auth
from conftest import make_template_pdf

SECRET = "test-secret-that-is-long-enough-for-hs256"

FIELD_MAP = {
    "fullName": {"pageIndex": 0, "x": 90, "y": 650, "width": 300, "fontSize": 12},
    "idNumber": {"pageIndex": 0, "x": 420, "y": 650, "width": 120, "fontSize": 12},
}


@pytest.fixture
def client(tmp_path, monkeypatch):
    template = tmp_path / "template.pdf"
    template.write_bytes(make_template_pdf())
    fields = tmp_path / "fields.json"
    fields.write_text(json.dumps(FIELD_MAP), encoding="utf-8")

    monkeypatch.setattr(app_server, "TEMPLATE_FILE", template)
    monkeypatch.setattr(app_server, "FIELDS_FILE", fields)
    monkeypatch.setattr(app_server, "FONT_FILE", None)
    monkeypatch.setattr(auth, "JWT_SECRET", "")
    return TestClient(app_server.app)


def pdf_text(content: bytes) -> str:
    return PdfReader(io.BytesIO(content)).pages[0].extract_text()


def test_health(client):
    assert client.get("/api/health").json() == {"status": "ok"}


def test_fill_pdf_returns_attachment(client):
    response = client.post("/api/fill-pdf", json={"fullName": "John Doe", "idNumber": "123123123"})

    assert response.status_code == 200
    assert response.headers["content-type"] == "application/pdf"
    assert response.headers["content-disposition"] == 'attachment; filename="filled.pdf"'
    text = pdf_text(response.content)
    assert "John Doe" in text
    assert "123123123" in text


def test_fill_pdf_unknown_field_is_400(client):
    response = client.post("/api/fill-pdf", json={"nope": "x"})
    assert response.status_code == 400
    assert 'Unknown field "nope"' in response.json()["detail"]


def test_fill_pdf_missing_template_is_500(client, tmp_path, monkeypatch):
    monkeypatch.setattr(app_server, "TEMPLATE_FILE", tmp_path / "missing.pdf")
    assert client.post("/api/fill-pdf", json={"fullName": "x"}).status_code == 500


def test_fill_with_inline_field_map_and_options(client):
    response = client.post(
        "/api/fill",
        json={
            "values": {"extra": "Inline"},
            "field_map": {"extra": {"pageIndex": 0, "x": 72, "y": 500}},
            "text_color": [1, 0, 0],
            "default_font_size": 14,
        },
    )
    assert response.status_code == 200
    assert "Inline" in pdf_text(response.content)


def test_fill_with_bad_page_index_is_400(client):
    response = client.post(
        "/api/fill",
        json={"values": {"f": "x"}, "field_map": {"f": {"pageIndex": 4, "x": 0, "y": 0}}},
    )
    assert response.status_code == 400
    assert "out of range" in response.json()["detail"]


def test_fill_with_invalid_inline_field_map_is_400(client):
    response = client.post(
        "/api/fill",
        json={"values": {"f": "x"}, "field_map": {"f": {"pageIndex": 0, "x": 0, "y": 0, "width": -1}}},
    )
    assert response.status_code == 400


def test_fill_pdf_upload(client):
    response = client.post(
        "/api/fill-pdf-upload",
        files={"template": ("template.pdf", make_template_pdf(label="UPLOADED"), "application/pdf")},
        data={"values_json": json.dumps({"fullName": "Uploaded Name"}), "text_color": "#333333"},
    )
    assert response.status_code == 200
    text = pdf_text(response.content)
    assert "UPLOADED page 0" in text
    assert "Uploaded Name" in text


def test_fill_pdf_upload_rejects_bad_json(client):
    response = client.post(
        "/api/fill-pdf-upload",
        files={"template": ("template.pdf", make_template_pdf(), "application/pdf")},
        data={"values_json": "{oops"},
    )
    assert response.status_code == 400


def test_fill_pdf_upload_rejects_non_pdf(client):
    response = client.post(
        "/api/fill-pdf-upload",
        files={"template": ("template.pdf", b"not a pdf", "application/pdf")},
        data={"values_json": json.dumps({"fullName": "x"})},
    )
    assert response.status_code == 400


def test_get_and_save_fields(client):
    assert client.get("/api/fields").json()["fullName"]["width"] == 300

    new_map = {"address": {"page_index": 0, "x": 90, "y": 610, "width": 450, "clear_background": True}}
    response = client.post("/api/fields", json=new_map)
    assert response.status_code == 200

    saved = json.loads(app_server.FIELDS_FILE.read_text(encoding="utf-8"))
    assert saved == {"address": {"pageIndex": 0, "x": 90.0, "y": 610.0, "width": 450.0, "clearBackground": True}}
    assert list(client.get("/api/fields").json()) == ["address"]


def test_save_invalid_fields_is_400_and_keeps_file(client):
    before = app_server.FIELDS_FILE.read_text(encoding="utf-8")
    response = client.post("/api/fields", json={"bad": {"pageIndex": 0, "x": 0}})
    assert response.status_code == 400
    assert app_server.FIELDS_FILE.read_text(encoding="utf-8") == before


def test_grid_overlay_endpoint(client):
    response = client.post(
        "/api/grid-overlay",
        files={"template": ("template.pdf", make_template_pdf(), "application/pdf")},
        data={"minor_step": "20", "major_step": "100"},
    )
    assert response.status_code == 200
    assert "page=0" in pdf_text(response.content)


def test_auth_required_when_secret_configured(client, monkeypatch):
    monkeypatch.setattr(auth, "JWT_SECRET", SECRET)

    assert client.get("/api/health").status_code == 200
    assert client.get("/api/fields").status_code == 401

    token = jwt.encode({"sub": "user-1"}, SECRET, algorithm="HS256")
    response = client.get("/api/fields", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 200


def test_auth_rejects_expired_and_forged_tokens(client, monkeypatch):
    monkeypatch.setattr(auth, "JWT_SECRET", SECRET)

    expired = jwt.encode({"sub": "u", "exp": int(time.time()) - 60}, SECRET, algorithm="HS256")
    response = client.get("/api/fields", headers={"Authorization": f"Bearer {expired}"})
    assert response.status_code == 401
    assert response.json()["detail"] == "Token has expired."

    forged = jwt.encode({"sub": "u"}, "another-secret-that-is-also-long-enough", algorithm="HS256")
    response = client.get("/api/fields", headers={"Authorization": f"Bearer {forged}"})
    assert response.status_code == 401
    assert response.json()["detail"].startswith("Invalid token")


def test_auth_rejects_missing_and_malformed_headers(client, monkeypatch):
    monkeypatch.setattr(auth, "JWT_SECRET", SECRET)
    token = jwt.encode({"sub": "u"}, SECRET, algorithm="HS256")

    for headers in ({}, {"Authorization": token}, {"Authorization": f"Basic {token}"}, {"Authorization": "Bearer "}):
        response = client.get("/api/fields", headers=headers)
        assert response.status_code == 401
        assert response.json()["detail"] == "Missing or invalid Authorization header."
        assert response.headers["www-authenticate"] == "Bearer"
