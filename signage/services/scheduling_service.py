"""
Content Scheduling Service
==========================

Decides what each display device shows and keeps the catalog consistent as
content is created, changed, removed and as time passes.

Features:
- Validated create/update/delete of content items
- Override resolution: new content suppresses competing content on its devices
- Per-device "what to show now" resolution
- Expiry & restoration sweep (run periodically by the UnifiedScheduler)
- Read-only listings for dashboards and the CLI

Note: The periodic sweep is registered by ``signage.workers.scheduled_tasks``.
This service holds no timer of its own; ``run_sweep`` is a plain call.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Any

from signage.domain.content import ContentItem, Window, validate_candidate
from signage.domain.exceptions import NotFoundError, ValidationError
from signage.enums import WindowStatus
from signage.utils.time import Clock, SystemClock, ensure_utc

if TYPE_CHECKING:
    from signage.domain.content.repository import ContentCatalog
    from signage.domain.devices import DeviceRegistry

logger = logging.getLogger(__name__)


@dataclass
class SweepReport:
    """Outcome of one expiry & restoration sweep."""

    at: datetime
    windows_expired: int = 0
    items_restored: int = 0
    windows_resumed: int = 0
    items_deactivated: int = 0
    missing_item_ids: list[int] = field(default_factory=list)

    @property
    def missing(self) -> int:
        return len(self.missing_item_ids)

    @property
    def changed(self) -> bool:
        return bool(self.windows_expired or self.items_restored or self.windows_resumed or self.items_deactivated)

    def to_dict(self) -> dict[str, Any]:
        return {
            "at": self.at.isoformat(),
            "windows_expired": self.windows_expired,
            "items_restored": self.items_restored,
            "windows_resumed": self.windows_resumed,
            "items_deactivated": self.items_deactivated,
            "missing_item_ids": list(self.missing_item_ids),
        }


class ContentSchedulingService:
    """
    Scheduling and override-resolution engine for display content.

    Every public operation serializes on one re-entrant lock, and every
    mutation runs inside a catalog transaction. The sweep commits once per
    expired window so a crash leaves each window either fully processed or
    untouched.
    """

    def __init__(
        self,
        catalog: "ContentCatalog",
        clock: Clock | None = None,
        registry: "DeviceRegistry" | None = None,
    ):
        """
        Initialize scheduling service.

        Args:
            catalog: ContentCatalog for persistence
            clock: Source of current time (defaults to the UTC wall clock)
            registry: Known devices; when given, unknown device keys are rejected
        """
        self.catalog = catalog
        self.clock = clock or SystemClock()
        self.registry = registry
        self._lock = threading.RLock()

        logger.info("ContentSchedulingService initialized")

    def _now(self, at: datetime | None = None) -> datetime:
        return ensure_utc(at) if at is not None else self.clock.now()

    def _known_devices(self) -> list[str] | None:
        return self.registry.keys() if self.registry is not None else None

    def _device_key(self, device_id: str) -> str:
        """Accept a device key or display name; unknown names fail only with a registry."""
        if self.registry is None:
            return device_id
        return self.registry.get(device_id).key

    def _normalize_targets(self, candidate: ContentItem) -> None:
        """Map display names to device keys; unknown names are left for validation to report."""
        if self.registry is None:
            return
        keys = set()
        for name in candidate.target_devices:
            device = self.registry.find(name)
            keys.add(device.key if device is not None else name)
        candidate.target_devices = keys

    # ==================== Mutations ====================

    def create_item(self, candidate: ContentItem) -> ContentItem:
        """
        Validate and persist a new content item, then apply overrides.

        Args:
            candidate: Unsaved item with its proposed windows

        Returns:
            The persisted item with item_id and window ids assigned

        Raises:
            ValidationError: Candidate is malformed (nothing is written)
        """
        with self._lock:
            now = self._now()
            if candidate.item_id is not None:
                raise ValidationError("New content must not carry an id", detail={"item_id": candidate.item_id})
            self._normalize_targets(candidate)
            validate_candidate(candidate, now, known_devices=self._known_devices())

            candidate.replace_windows([w.copy_bounds() for w in candidate.windows])
            candidate.created_at = now
            candidate.updated_at = now

            with self.catalog.transaction():
                item = self.catalog.save_item(candidate)
                if item.active:
                    self._resolve_overrides(item)

        logger.info(
            "Created content %s '%s' (%s, %s) for %s",
            item.item_id,
            item.title,
            item.kind.value,
            "immediate" if item.immediate else f"{len(item.windows)} window(s)",
            ", ".join(sorted(item.target_devices)),
        )
        return item

    def update_item(self, item_id: int, candidate: ContentItem) -> ContentItem:
        """
        Replace an item's attributes and windows wholesale.

        Suppressions held by the item's old, still-live windows are released
        first, then override resolution runs again for the new state.

        Raises:
            ValidationError: Candidate is malformed (nothing is written)
            NotFoundError: No item with this id
        """
        with self._lock:
            now = self._now()
            self._normalize_targets(candidate)
            validate_candidate(candidate, now, known_devices=self._known_devices())

            with self.catalog.transaction():
                item = self.catalog.find_by_id(item_id)
                if item is None:
                    raise NotFoundError(f"Content item {item_id} not found", detail={"item_id": item_id})

                for window in item.windows:
                    if window.active or window.is_paused:
                        self._release_window(window, now)

                item.title = candidate.title
                item.description = candidate.description
                item.kind = candidate.kind
                item.image_urls = list(candidate.image_urls)
                item.video_urls = list(candidate.video_urls)
                item.content = candidate.content
                item.target_devices = set(candidate.target_devices)
                item.active = candidate.active
                item.updated_at = now
                self.catalog.save_item(item)

                new_windows = self.catalog.replace_windows(item_id, [w.copy_bounds() for w in candidate.windows])
                item.replace_windows(new_windows)

                if item.active:
                    self._resolve_overrides(item)

        logger.info(
            "Updated content %s '%s' (%s)",
            item.item_id,
            item.title,
            "immediate" if item.immediate else f"{len(item.windows)} window(s)",
        )
        return item

    def delete_item(self, item_id: int) -> None:
        """
        Delete an item and its windows, releasing whatever its windows suppressed.

        Raises:
            NotFoundError: No item with this id
        """
        with self._lock:
            now = self._now()
            with self.catalog.transaction():
                item = self.catalog.find_by_id(item_id)
                if item is None:
                    raise NotFoundError(f"Content item {item_id} not found", detail={"item_id": item_id})
                for window in item.windows:
                    if window.active or window.is_paused:
                        self._release_window(window, now)
                self.catalog.delete_by_id(item_id)

        logger.info("Deleted content %s '%s'", item_id, item.title)

    # ==================== Override resolution ====================

    def _resolve_overrides(self, item: ContentItem) -> None:
        """
        Suppress everything competing with *item* on its devices.

        Immediate items on the same device are deactivated (permanently when
        *item* is immediate itself). Windows of other items overlapping one of
        *item*'s windows are paused and record every window that paused them,
        including windows that were already paused by an earlier override.
        Nothing is reactivated here.
        """
        for device_id in sorted(item.target_devices):
            for other in self.catalog.find_immediate_active_by_device(device_id):
                if other.item_id == item.item_id:
                    continue
                self.catalog.set_active(other.item_id, False)
                if item.immediate:
                    logger.info(
                        "Immediate content %s replaces immediate content %s on %s",
                        item.item_id,
                        other.item_id,
                        device_id,
                    )
                else:
                    for window in item.windows:
                        window.suppress(other.item_id)
                    logger.info(
                        "Scheduled content %s suppresses immediate content %s on %s",
                        item.item_id,
                        other.item_id,
                        device_id,
                    )

            if item.immediate:
                continue

            for window in item.windows:
                overlapping = self.catalog.find_overlapping_windows_by_device(device_id, window.start, window.end)
                for existing in overlapping:
                    if existing.item_id == item.item_id:
                        continue
                    existing.pause(window.window_id)
                    self.catalog.save_window(existing)
                    window.suppress(existing.item_id)
                    logger.info(
                        "Window %s of content %s pauses overlapping window %s of content %s on %s",
                        window.window_id,
                        item.item_id,
                        existing.window_id,
                        existing.item_id,
                        device_id,
                    )

        for window in item.windows:
            self.catalog.save_window(window)

    def _release_window(self, window: Window, now: datetime, report: SweepReport | None = None) -> None:
        """
        Undo the suppressions *window* holds.

        Suppressed items that still exist are reactivated. A window it paused
        resumes only once no other window still pauses it; if it has expired
        meanwhile it becomes terminal instead and releases its own
        suppressions in turn.
        """
        for suppressed_id in sorted(window.suppressed_item_ids):
            suppressed = self.catalog.find_by_id(suppressed_id)
            if suppressed is None:
                logger.warning(
                    "Window %s suppressed content %s which no longer exists",
                    window.window_id,
                    suppressed_id,
                )
                if report is not None:
                    report.missing_item_ids.append(suppressed_id)
                continue
            if not suppressed.active:
                self.catalog.set_active(suppressed_id, True)
                if report is not None:
                    report.items_restored += 1
                logger.info("Restored content %s released by window %s", suppressed_id, window.window_id)

        if window.window_id is None:
            return

        for paused in self.catalog.find_paused_windows(window.window_id):
            if not paused.lift_pause(window.window_id):
                self.catalog.save_window(paused)
                logger.info(
                    "Window %s stays paused by window(s) %s",
                    paused.window_id,
                    sorted(paused.paused_by),
                )
            elif paused.classify(now) is WindowStatus.EXPIRED:
                self._release_window(paused, now, report)
                paused.expire()
                self.catalog.save_window(paused)
                if report is not None:
                    report.windows_expired += 1
                logger.info("Paused window %s expired while suppressed", paused.window_id)
            else:
                paused.resume()
                self.catalog.save_window(paused)
                if report is not None:
                    report.windows_resumed += 1
                logger.info("Resumed window %s of content %s", paused.window_id, paused.item_id)

    def _reload_window(self, window: Window) -> Window | None:
        item = self.catalog.find_by_id(window.item_id)
        if item is None:
            return None
        return next((w for w in item.windows if w.window_id == window.window_id), None)

    # ==================== Resolution ====================

    def resolve_for_device(self, device_id: str, now: datetime | None = None) -> ContentItem | None:
        """
        Decide what *device_id* shows at *now*.

        A currently active window beats immediate content: the owner of the
        earliest-starting active window wins (ties by item id, then window
        id). Otherwise the lowest-id active immediate item is shown.

        Returns:
            The item to display, or None when nothing is eligible
        """
        with self._lock:
            at = self._now(now)
            key = self._device_key(device_id)

            live = [
                w
                for w in self.catalog.find_windows_active_by_device_at(key, at)
                if w.classify(at) is WindowStatus.ACTIVE
            ]
            if live:
                winner = min(live, key=lambda w: (w.start, w.item_id, w.window_id))
                item = self.catalog.find_by_id(winner.item_id)
                if item is not None and item.active:
                    return item

            immediate = self.catalog.find_immediate_active_by_device(key)
            if immediate:
                return min(immediate, key=lambda i: i.item_id)
            return None

    # ==================== Sweep ====================

    def run_sweep(self, now: datetime | None = None) -> SweepReport:
        """
        Expire windows, restore what they suppressed and retire stale items.

        Idempotent: a second run at the same instant changes nothing.
        """
        with self._lock:
            at = self._now(now)
            report = SweepReport(at=at)

            for stale in self.catalog.find_expired_windows(at):
                with self.catalog.transaction():
                    # An earlier release in this sweep may already have settled it
                    window = self._reload_window(stale)
                    if window is None or window.is_terminal:
                        continue
                    self._release_window(window, at, report)
                    window.expire()
                    self.catalog.save_window(window)
                    report.windows_expired += 1
                logger.debug("Expired window %s of content %s", window.window_id, window.item_id)

            with self.catalog.transaction():
                for item in self.catalog.find_all():
                    if item.active and not item.immediate and not item.has_pending_window(at):
                        self.catalog.set_active(item.item_id, False)
                        report.items_deactivated += 1
                        logger.info("Deactivated content %s: no remaining windows", item.item_id)

        if report.missing_item_ids:
            logger.warning(
                "Sweep could not restore %d missing item(s): %s",
                report.missing,
                report.missing_item_ids,
            )
        if report.changed:
            logger.info(
                "Sweep at %s: %d window(s) expired, %d item(s) restored, %d window(s) resumed, %d item(s) deactivated",
                at.isoformat(),
                report.windows_expired,
                report.items_restored,
                report.windows_resumed,
                report.items_deactivated,
            )
        return report

    # ==================== Queries ====================

    def get_item(self, item_id: int) -> ContentItem:
        with self._lock:
            item = self.catalog.find_by_id(item_id)
        if item is None:
            raise NotFoundError(f"Content item {item_id} not found", detail={"item_id": item_id})
        return item

    def list_items(self) -> list[ContentItem]:
        with self._lock:
            return self.catalog.find_all()

    def list_immediate(self) -> list[ContentItem]:
        """Active content without windows."""
        with self._lock:
            return [item for item in self.catalog.find_all() if item.active and item.immediate]

    def list_currently_active(self, now: datetime | None = None) -> list[ContentItem]:
        """Active immediate content plus owners of windows active at *now*, by id."""
        with self._lock:
            at = self._now(now)
            return [
                item
                for item in self.catalog.find_all()
                if item.active and item.is_currently_active_by_schedule(at)
            ]

    def list_upcoming(self, now: datetime | None = None, device_id: str | None = None) -> list[ContentItem]:
        """Owners of windows that have not started yet, in start order."""
        with self._lock:
            at = self._now(now)
            key = self._device_key(device_id) if device_id is not None else None
            windows = self.catalog.find_upcoming_windows(at, device_id=key)

            order: list[int] = []
            for window in windows:
                if window.item_id not in order:
                    order.append(window.item_id)
            by_id = {item.item_id: item for item in self.catalog.find_by_ids(order)}
        return [by_id[item_id] for item_id in order if item_id in by_id]

    def device_status(self, device_id: str, now: datetime | None = None) -> dict[str, Any]:
        """Diagnostic summary of the content targeting one device."""
        with self._lock:
            at = self._now(now)
            key = self._device_key(device_id)
            items = [item for item in self.catalog.find_all() if item.targets(key)]
            showing = self.resolve_for_device(key, at)

        return {
            "device_id": key,
            "at": at.isoformat(),
            "total_items": len(items),
            "active_items": sum(1 for i in items if i.active),
            "scheduled_items": sum(1 for i in items if not i.immediate),
            "immediate_items": sum(1 for i in items if i.immediate),
            "currently_eligible": sum(1 for i in items if i.active and i.is_currently_active_by_schedule(at)),
            "showing": showing.to_dict() if showing else None,
        }
