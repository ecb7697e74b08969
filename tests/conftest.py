"""Shared fixtures: in-memory database and clean settings."""
import pytest
from sqlalchemy.orm import sessionmaker

from taskboard_core import models
from taskboard_core.config import get_settings
from taskboard_core.database import build_engine, init_db


@pytest.fixture(autouse=True)
def clean_settings(monkeypatch):
    """Each test starts from default settings."""
    for name in ("TASKBOARD_STRICT_ROLES", "TASKBOARD_STRICT_ROLE_LABELS", "TASKBOARD_DEFAULT_TASK_DURATION_DAYS"):
        monkeypatch.delenv(name, raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def db():
    """Session on a fresh in-memory SQLite database."""
    engine = build_engine("sqlite://")
    init_db(engine)
    session = sessionmaker(bind=engine, autoflush=False)()
    try:
        yield session
    finally:
        session.close()
        engine.dispose()


@pytest.fixture
def requirement(db):
    """A stored requirement with no tasks."""
    req = models.Requirement(name="Export invoices to PDF", description="Monthly invoice export")
    db.add(req)
    db.commit()
    db.refresh(req)
    return req
