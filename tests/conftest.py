"""Shared pytest fixtures"""

import os

# Settings are cached on first use; point them at SQLite before moviegen is imported.
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("ADMIN_API_TOKEN", "test-admin-token")
os.environ.setdefault("CRON_SECRET", "test-cron-secret")
os.environ.setdefault("OPENAI_API_KEY", "test-openai-key")

from datetime import datetime, timezone

import pytest
from sqlalchemy.orm import sessionmaker

import moviegen.db.models  # noqa: F401 - register all tables
from moviegen.config import get_settings
from moviegen.db.base import Base, make_engine
from moviegen.services.orchestrator import SceneOrchestrator
from tests.mocks.fakes import FakeGateway, FakeMedia, FakeNarrator, FakeStorage

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


# ============================================================
# Database
# ============================================================

@pytest.fixture
def engine():
    """Fresh in-memory database per test"""
    engine = make_engine("sqlite://")
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def file_engine(tmp_path):
    """File-backed database for tests that need real concurrent connections"""
    engine = make_engine(f"sqlite:///{tmp_path / 'moviegen.db'}")
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


# ============================================================
# Orchestrator
# ============================================================

@pytest.fixture
def settings():
    """Sequential projects so passes are deterministic"""
    return get_settings().model_copy(
        update={
            "orchestrator_project_concurrency": 1,
            "orchestrator_steps_per_project": 6,
            "orchestrator_batch_size": 10,
        }
    )


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def storage():
    return FakeStorage()


@pytest.fixture
def media():
    return FakeMedia()


@pytest.fixture
def narrator():
    return FakeNarrator()


@pytest.fixture
def orchestrator(gateway, storage, media, narrator, session_factory, settings):
    return SceneOrchestrator(
        gateway=gateway,
        storage=storage,
        media=media,
        narrator=narrator,
        session_factory=session_factory,
        settings=settings,
        clock=lambda: NOW,
    )


def pytest_configure(config):
    """Register custom markers"""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )
