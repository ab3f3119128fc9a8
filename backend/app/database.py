"""Database engine and sessions.

WHAT:
    One SQLAlchemy engine for the process, a session factory, the `get_db`
    request dependency, and `get_sync_session` for scripts.

WHY:
    A signature request is one unit of work. Services flush and commit on
    the request's session; `get_db` only guarantees it is closed.

REFERENCES:
    - app/deps.py (services are built on the request session)
    - scripts/rebuild_token_index.py (get_sync_session)
    - alembic/env.py (reuses DATABASE_URL)
"""

import os
from contextlib import contextmanager
from typing import Generator

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker


def _get_database_url() -> str:
    """Return DATABASE_URL, falling back to backend/.env.

    Raises:
        RuntimeError: when neither the environment nor .env defines it
    """
    url = os.getenv("DATABASE_URL")
    if not url:
        from app.utils.env import load_env_file
        load_env_file()
        url = os.getenv("DATABASE_URL")

    if not url:
        raise RuntimeError("DATABASE_URL is not set (export it or add it to backend/.env)")

    # SQLAlchemy 2.x rejects the legacy postgres:// scheme
    if url.startswith("postgres://"):
        url = "postgresql://" + url[len("postgres://"):]
    return url


DATABASE_URL = _get_database_url()

if DATABASE_URL.startswith("sqlite"):
    # Tests and local runs; pool sizing does not apply
    engine = create_engine(DATABASE_URL, connect_args={"check_same_thread": False})
else:
    engine = create_engine(
        DATABASE_URL,
        pool_size=10,
        max_overflow=20,
        pool_recycle=3600,
        pool_pre_ping=True,
    )

SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)

# Single metadata registry lives in app.models
from .models import Base  # noqa: E402,F401


def get_db() -> Generator[Session, None, None]:
    """FastAPI dependency: one session per request, always closed."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def get_sync_session() -> Generator[Session, None, None]:
    """Session for code running outside a request.

    Example:
        with get_sync_session() as db:
            TokenService(db, secret).members.rebuild_index()
            db.commit()
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
