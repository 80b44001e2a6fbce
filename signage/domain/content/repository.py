"""
Content Catalog Protocol
========================

Defines the interface for content item and window persistence.
Implementations can use SQLite, PostgreSQL, or other storage.

Every method may raise ``StorageError`` on I/O failure.
"""

from __future__ import annotations

import datetime
from abc import abstractmethod
from contextlib import AbstractContextManager
from typing import Protocol

from signage.domain.content.content_item import ContentItem
from signage.domain.content.window import Window


class ContentCatalog(Protocol):
    """Protocol for content persistence operations."""

    @abstractmethod
    def transaction(self) -> AbstractContextManager:
        """
        Open a transaction scope.

        Writes performed inside the scope are committed together on normal
        exit and rolled back if the block raises. Scopes nest; only the
        outermost one commits.
        """
        ...

    # ---- items ----

    @abstractmethod
    def save_item(self, item: ContentItem) -> ContentItem:
        """
        Insert or update an item's own columns and targets.

        New items (item_id None) get an identifier assigned; their windows
        are inserted as well. For existing items windows are left alone, use
        :meth:`replace_windows` or :meth:`save_window`.
        """
        ...

    @abstractmethod
    def find_by_id(self, item_id: int) -> ContentItem | None:
        """Get item (with windows) by ID, None if absent."""
        ...

    @abstractmethod
    def find_all(self) -> list[ContentItem]:
        """All items ordered by ID."""
        ...

    @abstractmethod
    def find_by_ids(self, item_ids: list[int]) -> list[ContentItem]:
        """Items whose IDs are in *item_ids*, ordered by ID; unknown IDs are skipped."""
        ...

    @abstractmethod
    def set_active(self, item_id: int, active: bool) -> bool:
        """Flip an item's active flag. False if the item does not exist."""
        ...

    @abstractmethod
    def delete_by_id(self, item_id: int) -> bool:
        """Delete an item and its windows. True if something was deleted."""
        ...

    @abstractmethod
    def find_immediate_active_by_device(self, device_id: str) -> list[ContentItem]:
        """Active items without windows that target *device_id*, by ID."""
        ...

    # ---- windows ----

    @abstractmethod
    def save_window(self, window: Window) -> Window:
        """Insert or update a single window (its item_id must be set)."""
        ...

    @abstractmethod
    def replace_windows(self, item_id: int, windows: list[Window]) -> list[Window]:
        """Delete every window of *item_id* and insert *windows* in its place."""
        ...

    @abstractmethod
    def find_windows_active_at(self, at: datetime.datetime) -> list[Window]:
        """Windows flagged active with start < at < end, earliest start first."""
        ...

    @abstractmethod
    def find_windows_active_by_device_at(self, device_id: str, at: datetime.datetime) -> list[Window]:
        """Like find_windows_active_at, restricted to active items targeting *device_id*."""
        ...

    @abstractmethod
    def find_overlapping_windows_by_device(
        self,
        device_id: str,
        start: datetime.datetime,
        end: datetime.datetime,
    ) -> list[Window]:
        """
        Windows of active items on *device_id* with w.start < end and w.end > start.

        Paused windows are included so a new override records itself on them too.
        """
        ...

    @abstractmethod
    def find_expired_windows(self, at: datetime.datetime) -> list[Window]:
        """Windows ending before *at* that are not terminal yet (flagged active or paused)."""
        ...

    @abstractmethod
    def find_upcoming_windows(self, at: datetime.datetime, device_id: str | None = None) -> list[Window]:
        """Active windows of active items starting after *at*, earliest first."""
        ...

    @abstractmethod
    def find_paused_windows(self, window_id: int) -> list[Window]:
        """Windows currently paused by *window_id*, possibly among other pausing windows."""
        ...
