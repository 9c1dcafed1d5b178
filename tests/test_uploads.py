import re
import threading

import pytest
from httpx import AsyncClient

import uploads
from errors import EduHubError, UnsupportedType
from settings import UPLOAD_DIR
from uploads import generate_filename, sanitize_filename, save_upload, store_upload

PDF_BYTES = b"%PDF-1.4\n%test\n"


@pytest.mark.parametrize(
    "original, expected",
    [
        ("notes.pdf", "notes.pdf"),
        ("module 1 notes.pdf", "module_1_notes.pdf"),
        ("../../etc/passwd.pdf", ".._.._etc_passwd.pdf"),
        ("C:\\Users\\admin\\os.pdf", "C__Users_admin_os.pdf"),
        ("गणित-notes.pdf", "____-notes.pdf"),
    ],
)
def test_sanitize_filename(original, expected):
    assert sanitize_filename(original) == expected


def test_generated_name_is_timestamp_prefixed():
    name = generate_filename("data structures (final).pdf")

    assert re.fullmatch(r"\d+-[A-Za-z0-9._-]+", name)
    assert name.endswith("-data_structures__final_.pdf")


def test_same_name_never_collides():
    names = [generate_filename("notes.pdf") for _ in range(50)]

    assert len(set(names)) == 50


def test_store_upload_writes_file(tmp_path):
    upload_dir = tmp_path / "uploads"

    stored = store_upload(PDF_BYTES, "OS unit 2.pdf", upload_dir)

    assert stored.url == f"/uploads/{stored.stored_name}"
    assert stored.filename == "OS unit 2.pdf"
    assert stored.size == len(PDF_BYTES)
    assert (upload_dir / stored.stored_name).read_bytes() == PDF_BYTES


def test_store_upload_existing_directory(tmp_path):
    first = store_upload(PDF_BYTES, "a.pdf", tmp_path)
    second = store_upload(PDF_BYTES, "a.pdf", tmp_path)

    assert first.stored_name != second.stored_name
    assert len(list(tmp_path.iterdir())) == 2


def test_store_upload_rejects_non_pdf_before_write(tmp_path):
    upload_dir = tmp_path / "uploads"

    with pytest.raises(UnsupportedType):
        store_upload(b"PK\x03\x04", "notes.docx", upload_dir)

    assert not upload_dir.exists()


@pytest.mark.asyncio
async def test_upload_endpoint(client: AsyncClient, upload_dir):
    response = await client.post(
        "/api/upload",
        files={"file": ("Engineering Maths.pdf", PDF_BYTES, "application/pdf")},
    )

    assert response.status_code == 200
    data = response.json()
    assert data["filename"] == "Engineering Maths.pdf"
    assert data["size"] == len(PDF_BYTES)
    assert data["message"] == "File uploaded successfully"
    assert re.fullmatch(r"/uploads/\d+-Engineering_Maths\.pdf", data["url"])
    stored_name = data["url"].rsplit("/", 1)[1]
    assert (upload_dir / stored_name).exists()


@pytest.mark.asyncio
async def test_upload_endpoint_rejects_docx(client: AsyncClient, upload_dir):
    response = await client.post(
        "/api/upload",
        files={"file": ("notes.docx", b"PK\x03\x04", "application/octet-stream")},
    )

    assert response.status_code == 400
    assert response.json()["error"] == "Only PDF files are allowed"
    assert not upload_dir.exists()


@pytest.mark.asyncio
async def test_upload_endpoint_without_file(client: AsyncClient):
    response = await client.post("/api/upload", data={"note": "nothing attached"})

    assert response.status_code == 400
    assert response.json()["error"] == "No file uploaded"


@pytest.mark.asyncio
async def test_upload_preflight(client: AsyncClient):
    response = await client.options("/api/upload")

    assert response.status_code == 200


@pytest.mark.asyncio
async def test_missing_upload_is_not_found(client: AsyncClient):
    response = await client.get("/uploads/nothing.pdf")

    assert response.status_code == 404


@pytest.mark.asyncio
async def test_stored_upload_is_served(client: AsyncClient):
    stored = store_upload(PDF_BYTES, "served notes.pdf", UPLOAD_DIR)

    response = await client.get(stored.url)

    assert response.status_code == 200
    assert response.content == PDF_BYTES


@pytest.mark.asyncio
async def test_save_upload_writes_off_the_event_loop(monkeypatch, tmp_path):
    threads = []

    def recording_store(*args, **kwargs):
        threads.append(threading.get_ident())
        return store_upload(*args, **kwargs)

    monkeypatch.setattr(uploads, "store_upload", recording_store)

    stored = await save_upload(PDF_BYTES, "big.pdf", tmp_path)

    assert (tmp_path / stored.stored_name).exists()
    assert threads and threads[0] != threading.get_ident()


@pytest.mark.asyncio
async def test_save_upload_filesystem_error(monkeypatch, tmp_path):
    def failing_store(*args, **kwargs):
        raise OSError(36, "File name too long")

    monkeypatch.setattr(uploads, "store_upload", failing_store)

    with pytest.raises(EduHubError) as exc_info:
        await save_upload(PDF_BYTES, "x" * 300 + ".pdf", tmp_path)

    assert exc_info.value.message == "Failed to upload file"
    assert exc_info.value.status_code == 500


@pytest.mark.asyncio
async def test_upload_endpoint_filesystem_error(client: AsyncClient, monkeypatch):
    def failing_store(*args, **kwargs):
        raise OSError(36, "File name too long")

    monkeypatch.setattr(uploads, "store_upload", failing_store)

    response = await client.post(
        "/api/upload",
        files={"file": ("notes.pdf", PDF_BYTES, "application/pdf")},
    )

    assert response.status_code == 500
    assert response.json() == {"error": "Failed to upload file"}
