import os
import tempfile
import uuid
from datetime import timedelta

os.environ.setdefault("INTAKE_SECRET", "test-secret")
os.environ.setdefault("LOCAL_STORAGE_PATH", os.path.join(tempfile.gettempdir(), "counsel-intake-test-uploads"))

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from counsel_intake.auth.security import hash_password, token_for
from counsel_intake.core.db import Base, get_db, utcnow
from counsel_intake.main import app
from counsel_intake.models.orm import IntakeLink, Organization, User
from counsel_intake.services import extraction_service
from counsel_intake.services.extraction_service import ExtractionReply


@pytest.fixture
def engine():
    eng = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, autocommit=False)


@pytest.fixture
def db(session_factory):
    s = session_factory()
    yield s
    s.close()


@pytest.fixture
def client(session_factory):
    def _get_db():
        s = session_factory()
        try:
            yield s
        finally:
            s.close()

    app.dependency_overrides[get_db] = _get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def firm(db):
    """A law firm with an admin and a lawyer (passwords: admin123 / lawyer123)."""
    org = Organization(slug="smith-law", name="Smith Law")
    db.add(org)
    db.flush()
    admin = User(
        email="admin@smith.law",
        hashed_password=hash_password("admin123"),
        role="admin",
        organization_id=org.id,
    )
    lawyer = User(
        email="lawyer@smith.law",
        hashed_password=hash_password("lawyer123"),
        role="lawyer",
        organization_id=org.id,
    )
    db.add_all([admin, lawyer])
    db.commit()
    return {"org": org, "admin": admin, "lawyer": lawyer}


class Staff:
    """Minimal stand-in for AuthContext in service-level tests."""
    def __init__(self, user: User):
        self.user_id = user.id
        self.email = user.email
        self.organization_id = user.organization_id
        self.role = user.role


@pytest.fixture
def lawyer(firm):
    return Staff(firm["lawyer"])


def auth_headers(user: User) -> dict:
    return {"Authorization": f"Bearer {token_for(user)}"}


@pytest.fixture
def make_link(db, firm):
    def _make(case_type="Immigration", status="pending", expires_in=timedelta(days=7), creator=None):
        creator = creator or firm["lawyer"]
        now = utcnow()
        link = IntakeLink(
            link_id=str(uuid.uuid4()),
            case_type=case_type,
            created_by_id=creator.id,
            organization_id=creator.organization_id,
            created_at=now,
            expires_at=now + expires_in,
            status=status,
        )
        db.add(link)
        db.commit()
        return link

    return _make


@pytest.fixture
def fake_extraction(monkeypatch):
    """
    Queue replies for the extraction service; records each call's messages.
    Queue an Exception instance to make that call fail.
    """
    class Fake:
        def __init__(self):
            self.replies = []
            self.calls = []

        def reply(self, data=None, next_question="Next?", confidence=None):
            self.replies.append(
                ExtractionReply(extracted_data=data or {}, next_question=next_question, confidence=confidence)
            )

        def __call__(self, messages, session_id=""):
            self.calls.append(messages)
            item = self.replies.pop(0)
            if isinstance(item, Exception):
                raise item
            return item

    fake = Fake()
    monkeypatch.setattr(extraction_service, "extract", fake)
    return fake


@pytest.fixture
def headers_for():
    return auth_headers
