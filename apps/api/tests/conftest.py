import io
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional, Sequence, Tuple

import pytest
from fastapi.testclient import TestClient
from jose import jwt
from PIL import Image
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.core.errors import StorageDeleteFailure, StorageWriteFailure
from app.core.config import settings
from app.db.session import get_db
from app.dependencies.providers import get_admission, get_revalidator, get_storage, get_vision_model
from app.main import app
from app.models.base import Base
from app.models.user import User
from app.services.admission import AdmissionDecision
from app.services.storage import SupabaseImageStorage

SUPABASE_URL = "https://test-project.supabase.co"
BUCKET = "car-images"
BASE = "/api/v1"


def make_token(subject: str, expires_delta: Optional[timedelta] = None, token_type: str = "access") -> str:
    """Token as the identity provider would issue it."""
    now = datetime.now(timezone.utc)
    payload = {
        "sub": subject,
        "iat": int(now.timestamp()),
        "exp": int((now + (expires_delta or timedelta(minutes=30))).timestamp()),
        "type": token_type,
    }
    return jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


class FakeStorage(SupabaseImageStorage):
    """In-memory bucket; URL building/parsing comes from the real class."""

    def __init__(self, fail_upload_at: Optional[int] = None, fail_remove: bool = False) -> None:
        super().__init__(client=None, base_url=SUPABASE_URL, bucket=BUCKET)  # type: ignore[arg-type]
        self.objects: Dict[str, Tuple[bytes, str]] = {}
        self.upload_calls: List[str] = []
        self.remove_calls: List[List[str]] = []
        self.fail_upload_at = fail_upload_at
        self.fail_remove = fail_remove

    def upload(self, path: str, data: bytes, content_type: str) -> None:
        self.upload_calls.append(path)
        if self.fail_upload_at is not None and len(self.upload_calls) - 1 == self.fail_upload_at:
            raise StorageWriteFailure("Failed to upload image: bucket unavailable")
        self.objects[path] = (data, content_type)

    def remove(self, paths: Sequence[str]) -> None:
        self.remove_calls.append(list(paths))
        if self.fail_remove:
            raise StorageDeleteFailure("Failed to delete images: bucket unavailable")
        for p in paths:
            self.objects.pop(p, None)

    @property
    def call_count(self) -> int:
        return len(self.upload_calls) + len(self.remove_calls)


class FakeVisionModel:
    def __init__(self, text: str = "{}") -> None:
        self.text = text
        self.calls: List[Tuple[bytes, str, str]] = []

    def generate(self, image: bytes, mime_type: str, prompt: str) -> str:
        self.calls.append((image, mime_type, prompt))
        return self.text


class RecordingRevalidator:
    def __init__(self) -> None:
        self.paths: List[str] = []

    def revalidate_path(self, path: str) -> None:
        self.paths.append(path)


class FakeAdmission:
    def __init__(self, decision: Optional[AdmissionDecision] = None) -> None:
        self.decision = decision or AdmissionDecision(allowed=True, remaining=9, reset_in_seconds=3600)
        self.calls: List[Tuple[str, int]] = []

    def protect(self, fingerprint: str, requested: int = 1) -> AdmissionDecision:
        self.calls.append((fingerprint, requested))
        return self.decision


def png_bytes(color: str = "red") -> bytes:
    buf = io.BytesIO()
    Image.new("RGB", (4, 4), color).save(buf, format="PNG")
    return buf.getvalue()


@pytest.fixture()
def engine():
    eng = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=eng)
    try:
        yield eng
    finally:
        Base.metadata.drop_all(bind=eng)
        eng.dispose()


@pytest.fixture()
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False)


@pytest.fixture()
def db_session(session_factory):
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture()
def storage():
    return FakeStorage()


@pytest.fixture()
def revalidator():
    return RecordingRevalidator()


@pytest.fixture()
def vision_model():
    return FakeVisionModel()


@pytest.fixture()
def admission():
    return FakeAdmission()


@pytest.fixture()
def client(session_factory, storage, revalidator, vision_model, admission):
    def _get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_storage] = lambda: storage
    app.dependency_overrides[get_revalidator] = lambda: revalidator
    app.dependency_overrides[get_vision_model] = lambda: vision_model
    app.dependency_overrides[get_admission] = lambda: admission

    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture()
def user(db_session):
    u = User(external_id="user_2abcDEF", email="admin@example.com", name="Admin")
    db_session.add(u)
    db_session.commit()
    return u


@pytest.fixture()
def auth_headers(user):
    return {"Authorization": f"Bearer {make_token(user.external_id)}"}
