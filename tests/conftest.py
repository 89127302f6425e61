"""Pytest configuration and fixtures."""

import os

# Settings are read once at import time
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./test.db")
os.environ.setdefault("RATE_LIMIT_STORAGE_URI", "memory://")
os.environ.setdefault("GENERATE_RATE_LIMIT", "1000/minute")
os.environ.setdefault("AUTH_JWT_SECRET", "test-secret")
os.environ.setdefault("REDIS_URL", "redis://localhost:6399/0")

from typing import AsyncGenerator, Optional

import pytest
import pytest_asyncio
from botocore.exceptions import ClientError
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from mindsy.api.deps import (
    get_note_generator,
    get_pdf_renderer,
    get_storage_service,
    get_transcription_client,
)
from mindsy.auth.security import create_session_token
from mindsy.db import models  # noqa: F401
from mindsy.db.session import Base, get_db
from mindsy.main import app
from mindsy.services.note_generation import NotesInput, NotesResult
from mindsy.services.pdf_renderer import PdfResult
from mindsy.services.transcription import Transcript, TranscriptionResult

USER_ID = "user-1"
OTHER_USER_ID = "user-2"

SAMPLE_NOTES = """## Table of Contents
*   Photosynthesis basics

---

## Mindsy Notes

### Cue Column
*   What does chlorophyll absorb?

### Detailed Notes
- Chlorophyll absorbs mostly red and blue light
- Oxygen is released as a by-product of the reaction

<!-- NEW_PAGE -->

## Comprehensive Summary
Photosynthesis turns light into chemical energy stored in glucose.
"""


class FakeStorage:
    """In-memory stand-in for the object store."""

    uploads_bucket = "user-uploads"
    generated_bucket = "generated-notes"

    def __init__(self):
        self.objects: dict[tuple[str, str], bytes] = {}
        self.fail_suffixes: tuple[str, ...] = ()
        self.deleted: list[tuple[str, str]] = []

    async def signed_url(self, bucket: str, path: str, expires_in: Optional[int] = None) -> str:
        return f"https://storage.test/{bucket}/{path}?expires={expires_in}"

    async def upload_bytes(self, bucket: str, path: str, content: bytes, content_type: str) -> str:
        if path.endswith(self.fail_suffixes):
            raise RuntimeError(f"upload refused for {path}")
        self.objects[(bucket, path)] = content
        return path

    async def download(self, bucket: str, path: str) -> bytes:
        try:
            return self.objects[(bucket, path)]
        except KeyError:
            raise ClientError({"Error": {"Code": "NoSuchKey"}}, "GetObject")

    async def download_any(self, path: str) -> Optional[bytes]:
        for bucket in (self.generated_bucket, self.uploads_bucket):
            if (bucket, path) in self.objects:
                return self.objects[(bucket, path)]
        return None

    async def delete_objects(self, bucket: str, paths: list):
        for path in paths:
            if path:
                self.deleted.append((bucket, path))
                self.objects.pop((bucket, path), None)

    def health_check(self) -> bool:
        return True


class FakeTranscriber:
    def __init__(self, text: str = "plants turn light into sugar " * 20):
        self.text = text
        self.error: Optional[str] = None
        self.calls: list[str] = []

    async def transcribe(self, audio_url: str) -> TranscriptionResult:
        self.calls.append(audio_url)
        if self.error:
            return TranscriptionResult(success=False, error=self.error, error_code="API_ERROR")
        return TranscriptionResult(success=True, data=Transcript(text=self.text, detected_language="en"))


class FakeGenerator:
    def __init__(self, notes: str = SAMPLE_NOTES):
        self.notes = notes
        self.error: Optional[str] = None
        self.inputs: list[NotesInput] = []

    async def generate(self, notes_input: NotesInput) -> NotesResult:
        self.inputs.append(notes_input)
        if self.error:
            return NotesResult(success=False, error=self.error, error_code="OPENAI_API_ERROR")
        return NotesResult(success=True, notes=self.notes)


class FakeRenderer:
    def __init__(self):
        self.error: Optional[str] = None
        self.rendered: list[str] = []

    async def render_html(self, html_content: str, generate_bookmarks: bool = False) -> PdfResult:
        self.rendered.append(html_content)
        if self.error:
            return PdfResult(success=False, error=self.error, error_code="API_ERROR")
        return PdfResult(success=True, pdf=b"%PDF-1.4 fake")

    async def render_markdown(self, content: str, title=None, generate_bookmarks: bool = True) -> PdfResult:
        return await self.render_html(content, generate_bookmarks)


@pytest_asyncio.fixture
async def test_engine():
    """Fresh in-memory database per test."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(test_engine) -> AsyncGenerator[AsyncSession, None]:
    """Create a test database session."""
    async_session = async_sessionmaker(
        test_engine, class_=AsyncSession, expire_on_commit=False
    )

    async with async_session() as session:
        yield session
        await session.rollback()


@pytest.fixture
def storage() -> FakeStorage:
    return FakeStorage()


@pytest.fixture
def transcriber() -> FakeTranscriber:
    return FakeTranscriber()


@pytest.fixture
def generator() -> FakeGenerator:
    return FakeGenerator()


@pytest.fixture
def renderer() -> FakeRenderer:
    return FakeRenderer()


@pytest_asyncio.fixture
async def client(
    db_session: AsyncSession,
    storage: FakeStorage,
    transcriber: FakeTranscriber,
    generator: FakeGenerator,
    renderer: FakeRenderer,
) -> AsyncGenerator[AsyncClient, None]:
    """Create a test HTTP client with every external service faked."""

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_storage_service] = lambda: storage
    app.dependency_overrides[get_transcription_client] = lambda: transcriber
    app.dependency_overrides[get_note_generator] = lambda: generator
    app.dependency_overrides[get_pdf_renderer] = lambda: renderer

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def user_id() -> str:
    return USER_ID


@pytest.fixture
def other_user_id() -> str:
    return OTHER_USER_ID


@pytest.fixture
def auth_headers() -> dict:
    """Session token for the primary test user."""
    return {"Authorization": f"Bearer {create_session_token(USER_ID, email='student@example.com')}"}


@pytest.fixture
def other_headers() -> dict:
    """Session token for a second user."""
    return {"Authorization": f"Bearer {create_session_token(OTHER_USER_ID)}"}
