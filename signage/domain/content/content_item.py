"""
Content Item Entity
===================

A schedulable unit of display content.

Supports:
- Six content kinds (single/dual/quad image, video, embed, text)
- Multiple target devices per item
- Zero or more time windows; an item without windows is "immediate"
- Enable/disable without deletion through the ``active`` flag
"""

from __future__ import annotations

import datetime
import logging
from dataclasses import dataclass, field
from typing import Any, Iterable

from signage.domain.content.window import Window
from signage.enums import ContentKind, WindowStatus
from signage.utils.time import coerce_datetime, utc_now

logger = logging.getLogger(__name__)


@dataclass
class ContentItem:
    """
    Display content targeted at one or more devices.

    ``immediate`` is derived from the window list and cannot be assigned:
    an item is immediate exactly when it has no windows.

    Attributes:
        item_id: Catalog identifier (None for new items)
        title: Human-readable title
        description: Optional free text
        kind: Content kind; decides which payload field must be populated
        image_urls: Image references (image kinds)
        video_urls: Video references (VIDEO)
        content: Opaque text/embed blob (TEXT, EMBED)
        target_devices: Device keys this item is shown on
        active: Whether the item is eligible for display
        windows: Owned time windows, in insertion order
        created_at: Creation timestamp
        updated_at: Last update timestamp
    """

    # Identity
    item_id: int | None = None
    title: str = ""
    description: str | None = None

    # Payload
    kind: ContentKind | None = None
    image_urls: list[str] = field(default_factory=list)
    video_urls: list[str] = field(default_factory=list)
    content: str | None = None

    # Targeting
    target_devices: set[str] = field(default_factory=set)
    active: bool = True

    # Schedule
    windows: list[Window] = field(default_factory=list)

    # Metadata
    created_at: datetime.datetime = field(default_factory=utc_now)
    updated_at: datetime.datetime = field(default_factory=utc_now)

    def __post_init__(self):
        if isinstance(self.kind, str):
            self.kind = ContentKind(self.kind.upper())
        self.target_devices = set(self.target_devices or ())
        self.image_urls = list(self.image_urls or [])
        self.video_urls = list(self.video_urls or [])
        self.windows = list(self.windows or [])
        for window in self.windows:
            window.item_id = self.item_id

    # ==================== Derived state ====================

    @property
    def immediate(self) -> bool:
        """True when the item has no time windows."""
        return not self.windows

    def targets(self, device_id: str) -> bool:
        return device_id in self.target_devices

    # ==================== Window management ====================

    def add_window(self, window: Window) -> Window:
        window.item_id = self.item_id
        self.windows.append(window)
        return window

    def remove_window(self, window: Window) -> None:
        self.windows.remove(window)
        window.item_id = None

    def replace_windows(self, windows: Iterable[Window]) -> list[Window]:
        """Discard every owned window and adopt *windows*; returns the discarded ones."""
        discarded = self.windows
        for window in discarded:
            window.item_id = None
        self.windows = []
        for window in windows:
            self.add_window(window)
        return discarded

    def clear_windows(self) -> list[Window]:
        return self.replace_windows(())

    def bind_id(self, item_id: int) -> None:
        """Attach the catalog identifier to the item and its windows."""
        self.item_id = item_id
        for window in self.windows:
            window.item_id = item_id

    # ==================== Time queries ====================

    def is_currently_active_by_schedule(self, at: datetime.datetime) -> bool:
        """Eligibility at *at*: immediate items follow ``active``, others need an active window."""
        if self.immediate:
            return self.active
        return any(w.is_currently_active(at) for w in self.windows)

    def current_windows(self, at: datetime.datetime) -> list[Window]:
        return [w for w in self.windows if w.classify(at) is WindowStatus.ACTIVE]

    def next_upcoming_window(self, at: datetime.datetime) -> Window | None:
        upcoming = [w for w in self.windows if w.classify(at) is WindowStatus.UPCOMING]
        return min(upcoming, key=lambda w: w.start) if upcoming else None

    def has_live_window(self, at: datetime.datetime) -> bool:
        """True when some window is still flagged active and has not expired."""
        return any(w.active and w.classify(at) is not WindowStatus.EXPIRED for w in self.windows)

    def has_pending_window(self, at: datetime.datetime) -> bool:
        """Like has_live_window, but a window paused by an override also counts."""
        return any(
            (w.active or w.is_paused) and w.classify(at) is not WindowStatus.EXPIRED for w in self.windows
        )

    # ==================== Serialization ====================

    def to_dict(self) -> dict[str, Any]:
        """Convert item to dictionary for serialization."""
        return {
            "item_id": self.item_id,
            "title": self.title,
            "description": self.description,
            "kind": self.kind.value if self.kind else None,
            "image_urls": list(self.image_urls),
            "video_urls": list(self.video_urls),
            "content": self.content,
            "target_devices": sorted(self.target_devices),
            "active": self.active,
            "immediate": self.immediate,
            "windows": [w.to_dict() for w in self.windows],
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    @staticmethod
    def from_dict(data: dict[str, Any]) -> "ContentItem":
        """Create ContentItem from dictionary."""
        kind = data.get("kind")
        return ContentItem(
            item_id=data.get("item_id"),
            title=data.get("title", ""),
            description=data.get("description"),
            kind=ContentKind(kind) if kind else None,
            image_urls=data.get("image_urls") or [],
            video_urls=data.get("video_urls") or [],
            content=data.get("content"),
            target_devices=set(data.get("target_devices") or ()),
            active=data.get("active", True),
            windows=[Window.from_dict(w) for w in data.get("windows") or []],
            created_at=coerce_datetime(data.get("created_at")) or utc_now(),
            updated_at=coerce_datetime(data.get("updated_at")) or utc_now(),
        )

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ContentItem):
            return False
        if self.item_id and other.item_id:
            return self.item_id == other.item_id
        return self is other

    def __hash__(self) -> int:
        return hash(self.item_id)
