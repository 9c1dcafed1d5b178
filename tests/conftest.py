"""
Kalpavruksha Admin - Test Configuration and Fixtures
"""
import os
import tempfile

import pytest
from httpx import ASGITransport, AsyncClient
from mongomock_motor import AsyncMongoMockClient

os.environ["DATABASE_NAME"] = "kalpavruksha_test"
# not created yet; the app creates it at import
os.environ["UPLOAD_DIR"] = os.path.join(tempfile.mkdtemp(), "public", "uploads")

from main import app
from database import get_db
from uploads import get_upload_dir


@pytest.fixture
def db():
    """Fresh in-memory database for each test"""
    return AsyncMongoMockClient()["kalpavruksha_test"]


@pytest.fixture
def upload_dir(tmp_path):
    return tmp_path / "public" / "uploads"


@pytest.fixture
async def client(db, upload_dir):
    """Test client with the database and upload directory overridden"""
    app.dependency_overrides[get_db] = lambda: db
    app.dependency_overrides[get_upload_dir] = lambda: upload_dir

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def resource_data():
    def make(**overrides):
        data = {
            "name": "Engineering Mathematics Notes",
            "subjectCode": "21MAT41",
            "header": "Module 1",
            "university": "vtu",
            "scheme": "2021",
            "branch": "cse",
            "semester": "4th",
            "type": "notes",
            "fileUrl": "https://drive.google.com/file/d/abc123/view",
        }
        data.update(overrides)
        return data
    return make


@pytest.fixture
def class_data():
    def make(**overrides):
        data = {
            "name": "Advanced Mathematics IV",
            "status": "ongoing",
            "schedule": "Mon,Wed,Fri",
            "time": "10:00 AM",
            "university": "vtu",
            "branch": "cse",
            "semester": "4th",
        }
        data.update(overrides)
        return data
    return make
