"""
Content Database Operations
===========================

Database operations for the ContentItems, ContentItemDevices and
ContentWindows tables. Backs the ContentCatalog protocol.

Timestamps are stored as fixed-width UTC strings (see
``signage.utils.time.sqlite_timestamp``) so the time predicates below can
compare them in SQL.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from datetime import datetime
from typing import TYPE_CHECKING, Any, Iterable

from signage.domain.content.content_item import ContentItem
from signage.domain.content.window import Window
from signage.domain.exceptions import StorageError
from signage.enums import ContentKind
from signage.utils.time import parse_sqlite_timestamp, sqlite_timestamp, utc_now

if TYPE_CHECKING:
    from sqlite3 import Connection

logger = logging.getLogger(__name__)

_WINDOW_ORDER = "w.start_time ASC, w.item_id ASC, w.window_id ASC"
# Windows that still matter for overrides: flagged active, or paused by another window
_LIVE_OR_PAUSED = "(w.active = 1 OR EXISTS (SELECT 1 FROM ContentWindowPauses p WHERE p.window_id = w.window_id))"


class ContentOperations:
    """Content-related CRUD helpers for database handlers."""

    def get_db(self) -> "Connection":
        """Get database connection. Must be implemented by mixing class."""
        raise NotImplementedError("Subclass must implement get_db()")

    def _commit(self) -> None:
        """Commit outside of a transaction scope. Must be implemented by mixing class."""
        raise NotImplementedError("Subclass must implement _commit()")

    # =========================================================================
    # Items
    # =========================================================================

    def insert_content_item(self, item: ContentItem) -> ContentItem:
        """
        Insert a new item with its targets and windows.

        Args:
            item: Item to create (item_id should be None)

        Returns:
            The same item with item_id and window ids assigned
        """
        db = self.get_db()
        now = utc_now()
        try:
            cursor = db.execute(
                """
                INSERT INTO ContentItems (
                    title, description, content_kind, content,
                    image_urls, video_urls, active, created_at, updated_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    item.title,
                    item.description,
                    item.kind.value,
                    item.content,
                    json.dumps(item.image_urls),
                    json.dumps(item.video_urls),
                    item.active,
                    sqlite_timestamp(item.created_at or now),
                    sqlite_timestamp(item.updated_at or now),
                ),
            )
            item.bind_id(cursor.lastrowid)
            self._write_targets(db, item.item_id, item.target_devices)
            for window in item.windows:
                self._insert_window(db, window)
            self._commit()
        except sqlite3.Error as e:
            logger.error(f"Error creating content item '{item.title}': {e}")
            raise StorageError(f"Error creating content item: {e}") from e

        logger.debug("Inserted content item %s with %d window(s)", item.item_id, len(item.windows))
        return item

    def update_content_item(self, item: ContentItem) -> ContentItem:
        """Update an item's own columns and its targets; windows are untouched."""
        db = self.get_db()
        try:
            cursor = db.execute(
                """
                UPDATE ContentItems SET
                    title = ?, description = ?, content_kind = ?, content = ?,
                    image_urls = ?, video_urls = ?, active = ?, updated_at = ?
                WHERE item_id = ?
                """,
                (
                    item.title,
                    item.description,
                    item.kind.value,
                    item.content,
                    json.dumps(item.image_urls),
                    json.dumps(item.video_urls),
                    item.active,
                    sqlite_timestamp(item.updated_at or utc_now()),
                    item.item_id,
                ),
            )
            if cursor.rowcount == 0:
                raise StorageError(f"Content item {item.item_id} does not exist", detail={"item_id": item.item_id})
            db.execute("DELETE FROM ContentItemDevices WHERE item_id = ?", (item.item_id,))
            self._write_targets(db, item.item_id, item.target_devices)
            self._commit()
        except sqlite3.Error as e:
            logger.error(f"Error updating content item {item.item_id}: {e}")
            raise StorageError(f"Error updating content item: {e}") from e
        return item

    def set_content_item_active(self, item_id: int, active: bool) -> bool:
        db = self.get_db()
        try:
            cursor = db.execute(
                "UPDATE ContentItems SET active = ?, updated_at = ? WHERE item_id = ?",
                (active, sqlite_timestamp(utc_now()), item_id),
            )
            self._commit()
            return cursor.rowcount > 0
        except sqlite3.Error as e:
            logger.error(f"Error setting active={active} on content item {item_id}: {e}")
            raise StorageError(f"Error updating content item: {e}") from e

    def get_content_item(self, item_id: int) -> ContentItem | None:
        db = self.get_db()
        try:
            row = db.execute("SELECT * FROM ContentItems WHERE item_id = ?", (item_id,)).fetchone()
            if row is None:
                return None
            return self._load_items(db, [row])[0]
        except sqlite3.Error as e:
            logger.error(f"Error getting content item {item_id}: {e}")
            raise StorageError(f"Error reading content item: {e}") from e

    def get_content_items(self, item_ids: Iterable[int] | None = None) -> list[ContentItem]:
        """All items ordered by id, or only those in *item_ids*."""
        db = self.get_db()
        try:
            if item_ids is None:
                rows = db.execute("SELECT * FROM ContentItems ORDER BY item_id").fetchall()
            else:
                ids = sorted(set(item_ids))
                if not ids:
                    return []
                placeholders = ",".join("?" for _ in ids)
                rows = db.execute(
                    f"SELECT * FROM ContentItems WHERE item_id IN ({placeholders}) ORDER BY item_id",
                    ids,
                ).fetchall()
            return self._load_items(db, rows)
        except sqlite3.Error as e:
            logger.error(f"Error listing content items: {e}")
            raise StorageError(f"Error reading content items: {e}") from e

    def delete_content_item(self, item_id: int) -> bool:
        """Delete an item; targets and windows go with it (ON DELETE CASCADE)."""
        db = self.get_db()
        try:
            cursor = db.execute("DELETE FROM ContentItems WHERE item_id = ?", (item_id,))
            self._commit()
            return cursor.rowcount > 0
        except sqlite3.Error as e:
            logger.error(f"Error deleting content item {item_id}: {e}")
            raise StorageError(f"Error deleting content item: {e}") from e

    def get_immediate_active_items_by_device(self, device_id: str) -> list[ContentItem]:
        db = self.get_db()
        try:
            rows = db.execute(
                """
                SELECT i.* FROM ContentItems i
                JOIN ContentItemDevices d ON d.item_id = i.item_id
                WHERE d.device_id = ?
                  AND i.active = 1
                  AND NOT EXISTS (SELECT 1 FROM ContentWindows w WHERE w.item_id = i.item_id)
                ORDER BY i.item_id
                """,
                (device_id,),
            ).fetchall()
            return self._load_items(db, rows)
        except sqlite3.Error as e:
            logger.error(f"Error getting immediate items for {device_id}: {e}")
            raise StorageError(f"Error reading content items: {e}") from e

    # =========================================================================
    # Windows
    # =========================================================================

    def save_content_window(self, window: Window) -> Window:
        """Insert a new window or update an existing one, including its pause records."""
        if window.item_id is None:
            raise StorageError("Window has no owning item", detail={"window": repr(window)})
        db = self.get_db()
        try:
            if window.window_id is None:
                self._insert_window(db, window)
            else:
                db.execute(
                    """
                    UPDATE ContentWindows SET
                        start_time = ?, end_time = ?, active = ?, suppressed_item_ids = ?
                    WHERE window_id = ?
                    """,
                    (
                        sqlite_timestamp(window.start),
                        sqlite_timestamp(window.end),
                        window.active,
                        json.dumps(sorted(window.suppressed_item_ids)),
                        window.window_id,
                    ),
                )
                self._write_pauses(db, window)
            self._commit()
        except sqlite3.Error as e:
            logger.error(f"Error saving window {window.window_id} of item {window.item_id}: {e}")
            raise StorageError(f"Error saving window: {e}") from e
        return window

    def replace_content_windows(self, item_id: int, windows: list[Window]) -> list[Window]:
        db = self.get_db()
        try:
            db.execute("DELETE FROM ContentWindows WHERE item_id = ?", (item_id,))
            for window in windows:
                window.item_id = item_id
                window.window_id = None
                self._insert_window(db, window)
            self._commit()
        except sqlite3.Error as e:
            logger.error(f"Error replacing windows of item {item_id}: {e}")
            raise StorageError(f"Error replacing windows: {e}") from e
        return windows

    def get_windows_active_at(self, at: datetime, device_id: str | None = None) -> list[Window]:
        """Flagged-active windows strictly containing *at*; device filter also requires an active item."""
        t = sqlite_timestamp(at)
        if device_id is None:
            return self._query_windows(
                f"""
                SELECT w.* FROM ContentWindows w
                WHERE w.active = 1 AND w.start_time < ? AND w.end_time > ?
                ORDER BY {_WINDOW_ORDER}
                """,
                (t, t),
            )
        return self._query_windows(
            f"""
            SELECT w.* FROM ContentWindows w
            JOIN ContentItems i ON i.item_id = w.item_id
            JOIN ContentItemDevices d ON d.item_id = w.item_id
            WHERE d.device_id = ? AND i.active = 1
              AND w.active = 1 AND w.start_time < ? AND w.end_time > ?
            ORDER BY {_WINDOW_ORDER}
            """,
            (device_id, t, t),
        )

    def get_overlapping_windows_by_device(self, device_id: str, start: datetime, end: datetime) -> list[Window]:
        """Live or paused windows of active items on *device_id* overlapping ``(start, end)``."""
        return self._query_windows(
            f"""
            SELECT w.* FROM ContentWindows w
            JOIN ContentItems i ON i.item_id = w.item_id
            JOIN ContentItemDevices d ON d.item_id = w.item_id
            WHERE d.device_id = ? AND i.active = 1
              AND {_LIVE_OR_PAUSED} AND w.start_time < ? AND w.end_time > ?
            ORDER BY {_WINDOW_ORDER}
            """,
            (device_id, sqlite_timestamp(end), sqlite_timestamp(start)),
        )

    def get_expired_windows(self, at: datetime) -> list[Window]:
        """Windows ended before *at* that are not terminal yet (live or still paused)."""
        return self._query_windows(
            f"""
            SELECT w.* FROM ContentWindows w
            WHERE {_LIVE_OR_PAUSED} AND w.end_time < ?
            ORDER BY w.end_time ASC, w.window_id ASC
            """,
            (sqlite_timestamp(at),),
        )

    def get_upcoming_windows(self, at: datetime, device_id: str | None = None) -> list[Window]:
        t = sqlite_timestamp(at)
        if device_id is None:
            return self._query_windows(
                f"""
                SELECT w.* FROM ContentWindows w
                JOIN ContentItems i ON i.item_id = w.item_id
                WHERE i.active = 1 AND w.active = 1 AND w.start_time > ?
                ORDER BY {_WINDOW_ORDER}
                """,
                (t,),
            )
        return self._query_windows(
            f"""
            SELECT w.* FROM ContentWindows w
            JOIN ContentItems i ON i.item_id = w.item_id
            JOIN ContentItemDevices d ON d.item_id = w.item_id
            WHERE d.device_id = ? AND i.active = 1 AND w.active = 1 AND w.start_time > ?
            ORDER BY {_WINDOW_ORDER}
            """,
            (device_id, t),
        )

    def get_windows_paused_by(self, window_id: int) -> list[Window]:
        return self._query_windows(
            """
            SELECT w.* FROM ContentWindows w
            JOIN ContentWindowPauses p ON p.window_id = w.window_id
            WHERE p.paused_by = ?
            ORDER BY w.window_id
            """,
            (window_id,),
        )

    # =========================================================================
    # Helpers
    # =========================================================================

    def _query_windows(self, sql: str, params: tuple) -> list[Window]:
        db = self.get_db()
        try:
            rows = db.execute(sql, params).fetchall()
            windows = [self._row_to_window(dict(row)) for row in rows]
            self._attach_pauses(db, windows)
        except sqlite3.Error as e:
            logger.error(f"Error querying windows: {e}")
            raise StorageError(f"Error reading windows: {e}") from e
        return windows

    @staticmethod
    def _write_targets(db: "Connection", item_id: int, devices: Iterable[str]) -> None:
        db.executemany(
            "INSERT INTO ContentItemDevices (item_id, device_id) VALUES (?, ?)",
            [(item_id, device) for device in sorted(devices)],
        )

    @staticmethod
    def _write_pauses(db: "Connection", window: Window) -> None:
        db.execute("DELETE FROM ContentWindowPauses WHERE window_id = ?", (window.window_id,))
        db.executemany(
            "INSERT INTO ContentWindowPauses (window_id, paused_by) VALUES (?, ?)",
            [(window.window_id, paused_by) for paused_by in sorted(window.paused_by)],
        )

    @staticmethod
    def _attach_pauses(db: "Connection", windows: list[Window]) -> None:
        if not windows:
            return
        by_id = {window.window_id: window for window in windows}
        placeholders = ",".join("?" for _ in by_id)
        for row in db.execute(
            f"SELECT window_id, paused_by FROM ContentWindowPauses WHERE window_id IN ({placeholders})",
            list(by_id),
        ):
            by_id[row["window_id"]].paused_by.add(row["paused_by"])

    @classmethod
    def _insert_window(cls, db: "Connection", window: Window) -> None:
        cursor = db.execute(
            """
            INSERT INTO ContentWindows (
                item_id, start_time, end_time, active, suppressed_item_ids
            ) VALUES (?, ?, ?, ?, ?)
            """,
            (
                window.item_id,
                sqlite_timestamp(window.start),
                sqlite_timestamp(window.end),
                window.active,
                json.dumps(sorted(window.suppressed_item_ids)),
            ),
        )
        window.window_id = cursor.lastrowid
        cls._write_pauses(db, window)

    def _load_items(self, db: "Connection", rows: list[sqlite3.Row]) -> list[ContentItem]:
        """Build items from rows, attaching targets, windows and pauses in batched queries."""
        if not rows:
            return []
        ids = [row["item_id"] for row in rows]
        placeholders = ",".join("?" for _ in ids)

        targets: dict[int, set[str]] = {item_id: set() for item_id in ids}
        for row in db.execute(
            f"SELECT item_id, device_id FROM ContentItemDevices WHERE item_id IN ({placeholders})",
            ids,
        ):
            targets[row["item_id"]].add(row["device_id"])

        windows: dict[int, list[Window]] = {item_id: [] for item_id in ids}
        loaded: list[Window] = []
        for row in db.execute(
            f"SELECT * FROM ContentWindows WHERE item_id IN ({placeholders}) ORDER BY window_id",
            ids,
        ):
            window = self._row_to_window(dict(row))
            windows[window.item_id].append(window)
            loaded.append(window)
        self._attach_pauses(db, loaded)

        return [self._row_to_item(dict(row), targets[row["item_id"]], windows[row["item_id"]]) for row in rows]

    @staticmethod
    def _row_to_item(row: dict[str, Any], targets: set[str], windows: list[Window]) -> ContentItem:
        return ContentItem(
            item_id=row["item_id"],
            title=row["title"],
            description=row.get("description"),
            kind=ContentKind(row["content_kind"]),
            image_urls=_load_json_list(row.get("image_urls"), "image_urls", row["item_id"]),
            video_urls=_load_json_list(row.get("video_urls"), "video_urls", row["item_id"]),
            content=row.get("content"),
            target_devices=targets,
            active=bool(row["active"]),
            windows=windows,
            created_at=parse_sqlite_timestamp(row["created_at"]),
            updated_at=parse_sqlite_timestamp(row["updated_at"]),
        )

    @staticmethod
    def _row_to_window(row: dict[str, Any]) -> Window:
        return Window(
            start=parse_sqlite_timestamp(row["start_time"]),
            end=parse_sqlite_timestamp(row["end_time"]),
            active=bool(row["active"]),
            suppressed_item_ids=_load_suppressed_ids(row.get("suppressed_item_ids"), row["window_id"]),
            window_id=row["window_id"],
            item_id=row["item_id"],
        )


def _load_json_list(raw: str | None, column: str, item_id: int) -> list[str]:
    if not raw:
        return []
    try:
        value = json.loads(raw)
    except json.JSONDecodeError:
        logger.warning("Content item %s has malformed %s: %r", item_id, column, raw)
        return []
    return [str(v) for v in value] if isinstance(value, list) else []


def _load_suppressed_ids(raw: str | None, window_id: int) -> set[int]:
    """Parse the stored JSON id list, dropping entries that are not integers."""
    if not raw:
        return set()
    try:
        values = json.loads(raw)
    except json.JSONDecodeError:
        logger.warning("Window %s has malformed suppressed ids %r; ignoring", window_id, raw)
        return set()
    if not isinstance(values, list):
        logger.warning("Window %s has malformed suppressed ids %r; ignoring", window_id, raw)
        return set()

    ids = set()
    for value in values:
        if isinstance(value, bool):
            logger.warning("Window %s: dropping malformed suppressed id %r", window_id, value)
            continue
        try:
            ids.add(int(value))
        except (TypeError, ValueError):
            logger.warning("Window %s: dropping malformed suppressed id %r", window_id, value)
    return ids
