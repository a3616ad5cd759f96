"""
Test configuration and fixtures for Label Scan.

- In-memory local cache and hand-written mocks for OCR, enrichment and the
  remote store
- Function-scoped in-memory SQLite engine for the SQLAlchemy store
- TestClient with the scan services dependency overridden
"""

import os

# Must be set before labelscan.config is imported
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("LOCAL_CACHE_BACKEND", "memory")

from typing import Generator
from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from labelscan.api.dependencies import get_scan_services
from labelscan.database import Base
from labelscan.main import app
from labelscan.services.history_store import create_notification_feed, create_scan_history
from labelscan.services.image_service import ImageService
from labelscan.services.local_cache import MemoryCache
from labelscan.services.notification_counter import NotificationCounter
from labelscan.services.remote_store import SqlScanStore
from labelscan.services.scan_pipeline import ScanServices, build_scan_services
from tests.fixtures.mocks import MockInsightService, MockOcrService, MockRemoteStore


# =============================================================================
# Local State Fixtures
# =============================================================================


@pytest.fixture
def cache() -> MemoryCache:
    return MemoryCache()


@pytest.fixture
def history(cache):
    return create_scan_history(cache)


@pytest.fixture
def feed(cache):
    return create_notification_feed(cache)


@pytest.fixture
def notifications(feed, cache) -> NotificationCounter:
    return NotificationCounter(feed, cache)


# =============================================================================
# Collaborator Mocks
# =============================================================================


@pytest.fixture
def mock_ocr() -> MockOcrService:
    return MockOcrService()


@pytest.fixture
def mock_insight() -> MockInsightService:
    return MockInsightService()


@pytest.fixture
def remote_store() -> MockRemoteStore:
    return MockRemoteStore()


@pytest.fixture
def mock_images():
    """Image service stand-in that skips file access."""
    images = MagicMock(spec=ImageService)
    images.encode_for_ocr.return_value = "aW1hZ2U="
    images.delete_file.return_value = True
    return images


@pytest.fixture
def services(cache, remote_store, mock_ocr, mock_insight, mock_images) -> ScanServices:
    """Scan services over mocks only: no files, network or database."""
    return build_scan_services(
        cache=cache,
        remote_store=remote_store,
        ocr_service=mock_ocr,
        insight_service=mock_insight,
        images=mock_images,
    )


# =============================================================================
# Database Fixtures
# =============================================================================


@pytest.fixture
def test_engine():
    """
    Fresh in-memory SQLite database per test.

    StaticPool keeps one connection so every session sees the same database.
    """
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=test_engine)


@pytest.fixture
def db(session_factory) -> Generator[Session, None, None]:
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def sql_store(session_factory) -> SqlScanStore:
    return SqlScanStore(session_factory=session_factory)


# =============================================================================
# TestClient Fixtures
# =============================================================================


@pytest.fixture
def api_services(cache, sql_store, mock_ocr, mock_insight, tmp_path) -> ScanServices:
    """Scan services backed by the SQLite store and a temporary upload dir."""
    return build_scan_services(
        cache=cache,
        remote_store=sql_store,
        ocr_service=mock_ocr,
        insight_service=mock_insight,
        images=ImageService(upload_dir=str(tmp_path / "uploads")),
    )


@pytest.fixture
def client(api_services) -> Generator[TestClient, None, None]:
    """TestClient with the scan services dependency override."""
    app.dependency_overrides[get_scan_services] = lambda: api_services

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


@pytest.fixture
def user_headers() -> dict:
    return {"X-User-Id": "user-1"}
