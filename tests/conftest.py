"""
Shared test fixtures for the signage scheduler test suite.

Provides:
- In-memory SQLite database with all tables created
- Catalog wired to the test database
- A manually driven clock
- The scheduling service and helpers for building candidates

Usage:
    def test_example(service, make_item):
        item = service.create_item(make_item(devices={"TV1"}))
        assert item.item_id is not None
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

import pytest

from infrastructure.database.repositories.content import SQLiteContentCatalog
from infrastructure.database.sqlite_handler import SQLiteDatabaseHandler
from signage.domain.content import ContentItem, Window
from signage.domain.devices import DeviceRegistry
from signage.enums import ContentKind
from signage.services.scheduling_service import ContentSchedulingService
from signage.utils.time import FixedClock

# ---------------------------------------------------------------------------
# Logging: keep test output quiet
# ---------------------------------------------------------------------------
logging.getLogger("infrastructure").setLevel(logging.WARNING)

# 09:00 UTC on a fixed day; tests move the clock from here
T0 = datetime(2026, 1, 5, 9, 0, tzinfo=timezone.utc)


def at(hour: int, minute: int = 0, second: int = 0) -> datetime:
    """Timestamp on the test day."""
    return T0.replace(hour=hour, minute=minute, second=second)


# ========================== Database Fixtures ==============================


@pytest.fixture()
def db_handler():
    """In-memory SQLite database with all tables created.

    Each test gets a fresh database.
    """
    handler = SQLiteDatabaseHandler(":memory:")
    handler.create_tables()
    yield handler
    handler.close_db()


@pytest.fixture()
def catalog(db_handler):
    """SQLiteContentCatalog backed by the in-memory DB."""
    return SQLiteContentCatalog(db_handler)


# ========================== Service Fixtures ===============================


@pytest.fixture()
def clock():
    return FixedClock(T0)


@pytest.fixture()
def registry():
    return DeviceRegistry()


@pytest.fixture()
def service(catalog, clock, registry):
    """ContentSchedulingService on the test DB with the fixed clock."""
    return ContentSchedulingService(catalog, clock=clock, registry=registry)


# ========================== Builders =======================================


@pytest.fixture()
def make_item():
    """Factory for unsaved candidates. Defaults to a single-image item on TV1."""

    def _make(
        title: str = "Notice",
        *,
        devices=("TV1",),
        kind: ContentKind = ContentKind.IMAGE_SINGLE,
        windows=(),
        active: bool = True,
        **overrides,
    ) -> ContentItem:
        payload = {
            ContentKind.IMAGE_SINGLE: {"image_urls": ["a.png"]},
            ContentKind.IMAGE_DUAL: {"image_urls": ["a.png", "b.png"]},
            ContentKind.IMAGE_QUAD: {"image_urls": ["a.png", "b.png", "c.png", "d.png"]},
            ContentKind.VIDEO: {"video_urls": ["clip.mp4"]},
            ContentKind.EMBED: {"content": "<iframe src='https://example.org'></iframe>"},
            ContentKind.TEXT: {"content": "Hello"},
        }[kind]
        payload.update(overrides)
        return ContentItem(
            title=title,
            kind=kind,
            target_devices=set(devices),
            active=active,
            windows=[Window(start=s, end=e) for s, e in windows],
            **payload,
        )

    return _make


@pytest.fixture(name="at")
def at_fixture():
    """Build a timestamp on the test day: ``at(10, 5)`` is 10:05 UTC."""
    return at
