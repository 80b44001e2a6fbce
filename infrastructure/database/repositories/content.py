"""
Content Catalog
===============

Concrete implementation of the ContentCatalog protocol using SQLite.
Wraps the ContentOperations mixin from the infrastructure layer.
"""
from __future__ import annotations

from contextlib import AbstractContextManager
from datetime import datetime
from typing import TYPE_CHECKING, List, Optional

from signage.domain.content import ContentItem, Window

if TYPE_CHECKING:
    from infrastructure.database.sqlite_handler import SQLiteDatabaseHandler


class SQLiteContentCatalog:
    """
    Concrete implementation of ContentCatalog protocol.

    Wraps the SQLite handler to provide repository pattern access.
    """

    def __init__(self, backend: "SQLiteDatabaseHandler") -> None:
        """
        Initialize with database backend.

        Args:
            backend: Database handler that implements ContentOperations
        """
        self._backend = backend

    def transaction(self) -> AbstractContextManager:
        return self._backend.transaction()

    # ==================== Items ====================

    def save_item(self, item: ContentItem) -> ContentItem:
        """Create the item (with windows) or update its own columns."""
        if item.item_id is None:
            return self._backend.insert_content_item(item)
        return self._backend.update_content_item(item)

    def find_by_id(self, item_id: int) -> Optional[ContentItem]:
        return self._backend.get_content_item(item_id)

    def find_by_ids(self, item_ids: List[int]) -> List[ContentItem]:
        return self._backend.get_content_items(item_ids)

    def find_all(self) -> List[ContentItem]:
        return self._backend.get_content_items()

    def delete_by_id(self, item_id: int) -> bool:
        return self._backend.delete_content_item(item_id)

    def set_active(self, item_id: int, active: bool) -> bool:
        return self._backend.set_content_item_active(item_id, active)

    def find_immediate_active_by_device(self, device_id: str) -> List[ContentItem]:
        return self._backend.get_immediate_active_items_by_device(device_id)

    # ==================== Windows ====================

    def save_window(self, window: Window) -> Window:
        return self._backend.save_content_window(window)

    def replace_windows(self, item_id: int, windows: List[Window]) -> List[Window]:
        return self._backend.replace_content_windows(item_id, windows)

    def find_windows_active_at(self, at: datetime) -> List[Window]:
        return self._backend.get_windows_active_at(at)

    def find_windows_active_by_device_at(self, device_id: str, at: datetime) -> List[Window]:
        return self._backend.get_windows_active_at(at, device_id=device_id)

    def find_overlapping_windows_by_device(self, device_id: str, start: datetime, end: datetime) -> List[Window]:
        return self._backend.get_overlapping_windows_by_device(device_id, start, end)

    def find_expired_windows(self, at: datetime) -> List[Window]:
        return self._backend.get_expired_windows(at)

    def find_upcoming_windows(self, at: datetime, device_id: str | None = None) -> List[Window]:
        return self._backend.get_upcoming_windows(at, device_id=device_id)

    def find_paused_windows(self, window_id: int) -> List[Window]:
        return self._backend.get_windows_paused_by(window_id)
