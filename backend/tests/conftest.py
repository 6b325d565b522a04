import asyncio
import io

import fitz
import pytest
from fastapi.testclient import TestClient
from PIL import Image
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import NullPool

from skillvault.main import app
from skillvault.database import Base, enable_sqlite_foreign_keys, get_db
from skillvault.services.storage import LocalStorage, get_storage
from skillvault.services.certificate_analyzer import CertificateAnalyzer, get_certificate_analyzer


# ============================================================================
# Fake Gemini client
# ============================================================================

class FakeResponse:
    def __init__(self, text):
        self.text = text


class FakeModels:
    """Returns scripted responses in order; exceptions in the script are raised."""

    def __init__(self):
        self.responses = []
        self.calls = []

    def generate_content(self, model, contents, config=None):
        self.calls.append({"model": model, "contents": contents})
        if not self.responses:
            raise RuntimeError("No scripted response left")
        item = self.responses.pop(0)
        if isinstance(item, Exception):
            raise item
        return FakeResponse(item)


class FakeGenAIClient:
    def __init__(self):
        self.models = FakeModels()


ANALYSIS_JSON = """{
  "extracted_info": {
    "title": "AWS Cloud Practitioner",
    "issuer": "Amazon Web Services",
    "issue_date": "2023-05-12",
    "credential_id": "AWS-CP-1234"
  },
  "validation": {
    "matches": ["title", "issuer", "issue_date"],
    "discrepancies": []
  },
  "suggested_skills": ["AWS", "Cloud Computing"],
  "category": "Cloud"
}"""

AUTHENTICITY_JSON = """{
  "authenticity_score": 0.93,
  "confidence_level": "high",
  "flags": [],
  "recommendations": []
}"""


# ============================================================================
# Sample files
# ============================================================================

def make_pdf(text="Certificate of Completion\nAWS Cloud Practitioner\nAmazon Web Services") -> bytes:
    with fitz.open() as doc:
        page = doc.new_page()
        if text:
            page.insert_text((72, 72), text)
        return doc.tobytes()


def make_png(size=(64, 32), color=(200, 30, 30)) -> bytes:
    output = io.BytesIO()
    Image.new("RGB", size, color).save(output, format="PNG")
    return output.getvalue()


# ============================================================================
# Fixtures
# ============================================================================

@pytest.fixture
def engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}", poolclass=NullPool)
    enable_sqlite_foreign_keys(engine)

    async def create_tables():
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    asyncio.run(create_tables())
    yield engine
    asyncio.run(engine.dispose())


@pytest.fixture
def storage(tmp_path):
    return LocalStorage(str(tmp_path / "uploads"))


@pytest.fixture
def genai_client():
    return FakeGenAIClient()


@pytest.fixture
def session_maker(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
def client(session_maker, storage, genai_client):
    async def override_get_db():
        async with session_maker() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_storage] = lambda: storage
    app.dependency_overrides[get_certificate_analyzer] = lambda: CertificateAnalyzer(
        genai_client, text_model="text-model", vision_model="vision-model", max_attempts=2
    )
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def make_user(client):
    """Register a user; returns (auth response json, auth headers)."""
    def _make(name="Alice Martin", email=None, password="secret123", public=False):
        email = email or f"{name.split()[0].lower()}@example.com"
        response = client.post(
            "/api/users/register",
            json={"name": name, "email": email, "password": password}
        )
        assert response.status_code == 201, response.text
        data = response.json()
        headers = {"Authorization": f"Bearer {data['token']}"}
        if public:
            response = client.put("/api/users/profile", json={"public_profile": True}, headers=headers)
            assert response.status_code == 200, response.text
        return data, headers

    return _make
