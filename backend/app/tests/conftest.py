"""Pytest configuration for app integration tests

WHAT: Provides shared fixtures for HTTP endpoint and service-level tests
WHY: Ensures consistent test setup, database isolation, and a mail outbox
REFERENCES:
    - app/main.py: FastAPI application
    - app/database.py: Database configuration
    - app/deps.py: Dependency injection
    - app/services/signature_service.py: Signature intake
"""

import pytest
import os
from typing import Generator

from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool
from fastapi.testclient import TestClient

# Ensure backend is in path
import sys
from pathlib import Path
BACKEND_ROOT = Path(__file__).resolve().parents[2]
if str(BACKEND_ROOT) not in sys.path:
    sys.path.insert(0, str(BACKEND_ROOT))

# Set test environment (before app modules read it)
os.environ["DATABASE_URL"] = "sqlite:///:memory:"
os.environ["TOKEN_HASH_SECRET"] = "test-token-secret"
os.environ["SESSION_SECRET_KEY"] = "test-session-secret"
os.environ["SITE_URL"] = "http://petitions.test"
os.environ.pop("RESEND_API_KEY", None)
os.environ.pop("SENTRY_DSN", None)

from app.services.notification_service import MailTransport  # noqa: E402


TEST_TOKEN_SECRET = os.environ["TOKEN_HASH_SECRET"]


class RecordingTransport(MailTransport):
    """Mail transport that keeps sent emails in memory.

    Set `error` to make the next sends raise it.
    """

    def __init__(self):
        self.deliveries = []
        self.error = None

    def send(self, to, subject, text, html=None):
        if self.error is not None:
            raise self.error
        self.deliveries.append({"to": list(to), "subject": subject, "text": text, "html": html})
        return f"msg-{len(self.deliveries)}"


# ============================================================================
# Database Fixtures
# ============================================================================

@pytest.fixture
def test_db_engine():
    """Create in-memory test database engine."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    # pysqlite needs these hooks for SAVEPOINT (begin_nested) to behave
    # https://docs.sqlalchemy.org/en/20/dialects/sqlite.html#serializable-isolation-savepoints-transactional-ddl
    @event.listens_for(engine, "connect")
    def _do_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _do_begin(conn):
        conn.exec_driver_sql("BEGIN")

    from app.database import Base
    Base.metadata.create_all(bind=engine)

    yield engine

    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def test_db_session(test_db_engine) -> Generator[Session, None, None]:
    """Create test database session."""
    SessionLocal = sessionmaker(
        autocommit=False,
        autoflush=False,
        bind=test_db_engine
    )

    session = SessionLocal()
    yield session
    session.rollback()
    session.close()


# ============================================================================
# Application & Client Fixtures
# ============================================================================

@pytest.fixture
def mail_transport() -> RecordingTransport:
    return RecordingTransport()


@pytest.fixture
def app(test_db_session, mail_transport):
    """Create FastAPI test application."""
    from app.main import create_app
    from app.database import get_db
    from app.deps import get_mail_transport

    test_app = create_app()

    def override_get_db():
        # Shared with the test so fixtures stay attached after requests
        yield test_db_session

    test_app.dependency_overrides[get_db] = override_get_db
    test_app.dependency_overrides[get_mail_transport] = lambda: mail_transport

    return test_app


@pytest.fixture
def client(app) -> TestClient:
    """Create TestClient for HTTP testing."""
    return TestClient(app)


# ============================================================================
# Service Fixtures
# ============================================================================

@pytest.fixture
def token_secret() -> str:
    return TEST_TOKEN_SECRET


@pytest.fixture
def token_service(test_db_session):
    from app.services.token_service import TokenService

    return TokenService(test_db_session, TEST_TOKEN_SECRET)


@pytest.fixture
def build_signature_service(test_db_session, token_service, mail_transport):
    """Factory for SignatureService; pass `tracker` to replace the real one."""
    from app.services.experiment_tracker import ExperimentTracker
    from app.services.member_registry import MemberRegistry
    from app.services.notification_service import NotificationDispatcher
    from app.services.referral_resolver import ReferralResolver
    from app.services.signature_service import SignatureService
    from app.services.token_service import IdentityCookieIssuer

    def _build(tracker=None):
        return SignatureService(
            db=test_db_session,
            registry=MemberRegistry(test_db_session, token_service.members),
            resolver=ReferralResolver(test_db_session, token_service),
            tracker=tracker or ExperimentTracker(test_db_session),
            dispatcher=NotificationDispatcher(mail_transport, "http://petitions.test", token_service.members),
            cookies=IdentityCookieIssuer(token_service.members),
        )

    return _build


# ============================================================================
# Model Fixtures
# ============================================================================

@pytest.fixture
def petition(test_db_session):
    """Create test petition."""
    from app.models import Petition

    petition = Petition(title="Save the Riverside Park", description="Keep the park green.")
    test_db_session.add(petition)
    test_db_session.commit()
    test_db_session.refresh(petition)
    return petition


@pytest.fixture
def make_member(test_db_session):
    """Create members directly, without indexing their token."""
    from app.models import Member

    def _make(name="recomender", email="recomender@recomend.com"):
        member = Member(name=name, email=email)
        test_db_session.add(member)
        test_db_session.commit()
        test_db_session.refresh(member)
        return member

    return _make


@pytest.fixture
def make_sent_email(test_db_session):
    """Create a sent email, optionally owned by a member and carrying experiment choices."""
    from app.models import EmailExperiment, SentEmail

    def _make(member=None, petition=None, experiments=()):
        sent_email = SentEmail(
            email="friend@example.com",
            member=member,
            petition_id=petition.id if petition else None,
        )
        for key, choice in experiments:
            sent_email.experiments.append(EmailExperiment(key=key, choice=choice))
        test_db_session.add(sent_email)
        test_db_session.commit()
        test_db_session.refresh(sent_email)
        return sent_email

    return _make


@pytest.fixture
def make_share(test_db_session):
    from app.models import Share

    def _make(member, action_id="abcd1234"):
        share = Share(member=member, action_id=action_id)
        test_db_session.add(share)
        test_db_session.commit()
        test_db_session.refresh(share)
        return share

    return _make
