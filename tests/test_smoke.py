import pytest
from fastapi.testclient import TestClient
from openpyxl import Workbook

from contrib_ingest.config import Settings, get_settings
from contrib_ingest.main import app

client = TestClient(app)


@pytest.fixture
def storage(tmp_path):
    app.dependency_overrides[get_settings] = lambda: Settings(
        storage_root=tmp_path, max_upload_bytes=1024
    )
    yield tmp_path
    app.dependency_overrides.clear()


def test_health():
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json() == {"ok": True}


def test_preview_csv_upload(storage):
    raw = "Name, Score\nAlice, 10\n, \nBob,\n".encode("utf-8")

    files = {"file": ("scores.csv", raw, "text/csv")}
    r = client.post("/preview", files=files)
    assert r.status_code == 200

    data = r.json()
    assert data["success"] is True
    assert data["headers"] == ["Name", "Score"]
    assert data["rows"] == [
        {"Name": "Alice", "Score": 10},
        {"Name": "Bob", "Score": None},
    ]
    assert data["data"] == {"headers": data["headers"], "rows": data["rows"]}
    assert data["file_info"] == {
        "id": None,
        "name": "scores.csv",
        "type": "csv",
        "size": f"{len(raw)} Bytes",
    }


def test_preview_rejects_unsupported_extension(storage):
    files = {"file": ("report.pdf", b"%PDF-1.4", "application/pdf")}
    r = client.post("/preview", files=files)
    assert r.status_code == 422
    assert "Unsupported file format" in r.json()["error"]


def test_preview_rejects_oversized_upload(storage):
    files = {"file": ("big.csv", b"a\n" + b"1\n" * 1024, "text/csv")}
    r = client.post("/preview", files=files)
    assert r.status_code == 413
    assert r.json() == {"error": "File exceeds the 1 KB upload limit"}


def test_preview_accepts_upload_at_the_limit(storage):
    raw = b"n\n" + b"7\n" * 511
    assert len(raw) == 1024

    files = {"file": ("limit.csv", raw, "text/csv")}
    r = client.post("/preview", files=files)
    assert r.status_code == 200
    assert len(r.json()["rows"]) == 511


def test_unknown_route_uses_error_envelope():
    r = client.get("/no/such/route")
    assert r.status_code == 404
    assert r.json() == {"error": "Not Found"}


def test_error_responses_are_documented():
    paths = app.openapi()["paths"]
    stored = paths["/files/data"]["get"]["responses"]
    preview = paths["/preview"]["post"]["responses"]

    assert stored["404"]["content"]["application/json"]["schema"]["$ref"].endswith("/ErrorResponse")
    assert {"404", "422", "500", "413"} <= set(preview)


def test_stored_file_data(storage):
    uploads = storage / "uploads"
    uploads.mkdir()
    (uploads / "1700000000_abc_prices.CSV").write_text("item,price\napple,1.25\n")

    r = client.get(
        "/files/data",
        params={
            "path": "uploads/1700000000_abc_prices.CSV",
            "file_id": 7,
            "name": "prices.csv",
            "size": 1536,
        },
    )
    assert r.status_code == 200

    data = r.json()
    assert data["file_type"] == "csv"
    assert data["rows"] == [{"item": "apple", "price": 1.25}]
    assert data["file_info"] == {
        "id": 7,
        "name": "prices.csv",
        "type": "csv",
        "size": "1.5 KB",
    }


def test_stored_xlsx_with_declared_type(storage):
    wb = Workbook()
    wb.active.append(["region", "total"])
    wb.active.append(["north", 12])
    wb.save(storage / "upload.bin")

    r = client.get("/files/data", params={"path": "upload.bin", "file_type": "XLSX"})
    assert r.status_code == 200
    assert r.json()["rows"] == [{"region": "north", "total": 12}]
    assert r.json()["file_info"]["name"] == "upload.bin"


def test_stored_file_missing(storage):
    r = client.get("/files/data", params={"path": "uploads/gone.csv"})
    assert r.status_code == 404
    assert r.json() == {"error": "File not found: gone.csv"}


def test_stored_file_outside_storage_root(storage):
    (storage.parent / "secret.csv").write_text("a\n1\n")

    r = client.get("/files/data", params={"path": "../secret.csv"})
    assert r.status_code == 404


def test_stored_file_unsupported_type(storage):
    (storage / "notes.txt").write_text("hello")

    r = client.get("/files/data", params={"path": "notes.txt", "file_type": "pdf"})
    assert r.status_code == 422


def test_stored_file_corrupted_workbook(storage):
    (storage / "broken.xlsx").write_bytes(b"PK\x03\x04" + b"\x00" * 32)

    r = client.get("/files/data", params={"path": "broken.xlsx"})
    assert r.status_code == 500
    assert r.json()["error"].startswith("Failed to parse file: ")


def test_category_defaults():
    r = client.get("/categories/Health/defaults")
    assert r.status_code == 200
    assert r.json()["icon"] == "heart-pulse"

    r = client.get("/categories/Space Weather/defaults")
    assert r.json() == {
        "name": "Space Weather",
        "icon": "folder",
        "description": "Community contributed datasets.",
    }


def test_stored_xls_with_damaged_stream(storage):
    (storage / "old.xls").write_bytes(b"\xd0\xcf\x11\xe0\xa1\xb1\x1a\xe1" + b"\x00" * 600)

    r = client.get("/files/data", params={"path": "old.xls"})
    assert r.status_code == 500
    assert r.json()["error"].startswith("Failed to parse file: ")


def test_stored_file_keeps_out_of_range_numeral(storage):
    (storage / "big.csv").write_text("a\n1e999\n")

    r = client.get("/files/data", params={"path": "big.csv"})
    assert r.status_code == 200
    assert r.json()["rows"] == [{"a": "1e999"}]
