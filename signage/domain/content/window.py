"""
Time Window Entity
==================

A bounded time interval during which its owning content item is eligible
for display.

Windows hold a foreign-key style reference (``item_id``) to the owning
content item instead of a live back-pointer. The owning ``ContentItem`` keeps
the windows in an ordered list.

Interval semantics are open: the start and end instants themselves are
neither "active" nor "upcoming"/"expired".
"""

from __future__ import annotations

import datetime
import logging
from dataclasses import dataclass, field
from typing import Any

from signage.enums import WindowStatus
from signage.utils.time import coerce_datetime, ensure_utc

logger = logging.getLogger(__name__)


@dataclass
class Window:
    """
    Time window owned by exactly one content item.

    Attributes:
        start: Interval start (UTC, exclusive)
        end: Interval end (UTC, exclusive)
        active: False once the window was swept as expired or paused by an override
        suppressed_item_ids: Items deactivated because this window came into force;
            they are restored when this window is released
        paused_by: Windows that paused this one through an overlap override; the
            window stays paused until every one of them is released
        window_id: Catalog identifier (None until persisted)
        item_id: Identifier of the owning content item (None until persisted)
    """

    start: datetime.datetime | None
    end: datetime.datetime | None
    active: bool = True
    suppressed_item_ids: set[int] = field(default_factory=set)
    paused_by: set[int] = field(default_factory=set)
    window_id: int | None = None
    item_id: int | None = None

    def __post_init__(self):
        if self.start is not None:
            self.start = ensure_utc(self.start)
        if self.end is not None:
            self.end = ensure_utc(self.end)
        self.suppressed_item_ids = set(self.suppressed_item_ids or ())
        self.paused_by = set(self.paused_by or ())

    # ==================== Classification ====================

    def classify(self, at: datetime.datetime) -> WindowStatus:
        """Classify the window relative to *at*.

        Exactly one status is returned. Expired and upcoming depend only on
        the bounds; active additionally requires the window flag.
        """
        at = ensure_utc(at)
        if at > self.end:
            return WindowStatus.EXPIRED
        if at < self.start:
            return WindowStatus.UPCOMING
        if self.active and self.start < at < self.end:
            return WindowStatus.ACTIVE
        return WindowStatus.INACTIVE

    def is_currently_active(self, at: datetime.datetime) -> bool:
        return self.classify(at) is WindowStatus.ACTIVE

    def is_upcoming(self, at: datetime.datetime) -> bool:
        return self.classify(at) is WindowStatus.UPCOMING

    def is_expired(self, at: datetime.datetime) -> bool:
        return self.classify(at) is WindowStatus.EXPIRED

    def overlaps(self, start: datetime.datetime, end: datetime.datetime) -> bool:
        """Open-interval overlap test against ``(start, end)``."""
        return self.start < ensure_utc(end) and self.end > ensure_utc(start)

    # ==================== State transitions ====================

    def suppress(self, item_id: int) -> None:
        """Record an item deactivated because this window came into force."""
        self.suppressed_item_ids.add(int(item_id))

    def pause(self, by_window_id: int) -> None:
        """Deactivate because an overlapping window took precedence."""
        self.active = False
        self.paused_by.add(int(by_window_id))

    def lift_pause(self, by_window_id: int) -> bool:
        """Forget one pausing window. True when no other window still pauses this one."""
        self.paused_by.discard(int(by_window_id))
        return not self.paused_by

    def resume(self) -> None:
        """Reactivate a paused window once every pausing window is released."""
        self.active = True
        self.paused_by.clear()

    def expire(self) -> None:
        """Mark the window terminal."""
        self.active = False
        self.paused_by.clear()

    @property
    def is_paused(self) -> bool:
        return not self.active and bool(self.paused_by)

    @property
    def is_terminal(self) -> bool:
        return not self.active and not self.paused_by

    def copy_bounds(self) -> "Window":
        """Fresh, unpersisted window with the same bounds."""
        return Window(start=self.start, end=self.end)

    # ==================== Serialization ====================

    def to_dict(self) -> dict[str, Any]:
        return {
            "window_id": self.window_id,
            "item_id": self.item_id,
            "start": self.start.isoformat() if self.start else None,
            "end": self.end.isoformat() if self.end else None,
            "active": self.active,
            "suppressed_item_ids": sorted(self.suppressed_item_ids),
            "paused_by": sorted(self.paused_by),
        }

    @staticmethod
    def from_dict(data: dict[str, Any]) -> "Window":
        return Window(
            start=coerce_datetime(data.get("start")),
            end=coerce_datetime(data.get("end")),
            active=data.get("active", True),
            suppressed_item_ids=set(data.get("suppressed_item_ids") or ()),
            paused_by=set(data.get("paused_by") or ()),
            window_id=data.get("window_id"),
            item_id=data.get("item_id"),
        )

    def __repr__(self) -> str:
        return (
            f"Window(id={self.window_id}, item={self.item_id}, "
            f"{self.start.isoformat() if self.start else None}"
            f"..{self.end.isoformat() if self.end else None}, active={self.active})"
        )
