"""
Candidate validation for content items.

Validation is side-effect free: it only reads the candidate and the supplied
reference time, and raises :class:`ValidationError` on the first problem
found. Nothing is coerced.
"""

from __future__ import annotations

import datetime
from typing import Collection

from signage.domain.content.content_item import ContentItem
from signage.domain.exceptions import ValidationError
from signage.enums import ContentKind
from signage.utils.time import ensure_utc

# Minimum image references per image kind
_MIN_IMAGES = {
    ContentKind.IMAGE_SINGLE: 1,
    ContentKind.IMAGE_DUAL: 2,
    ContentKind.IMAGE_QUAD: 4,
}


def validate_windows(item: ContentItem, now: datetime.datetime) -> None:
    """Check every proposed window of *item* against *now*."""
    now = ensure_utc(now)
    for index, window in enumerate(item.windows):
        detail = {"field": f"windows[{index}]"}
        if window.start is None or window.end is None:
            raise ValidationError("Window start and end times are required", detail=detail)
        if not window.start < window.end:
            raise ValidationError("Window start time must be before end time", detail=detail)
        if window.end < now:
            raise ValidationError("Cannot schedule content in the past", detail=detail)


def validate_payload(item: ContentItem) -> None:
    """Check that the payload cardinality matches the content kind."""
    kind = item.kind
    if kind in _MIN_IMAGES:
        required = _MIN_IMAGES[kind]
        if len(item.image_urls) < required:
            raise ValidationError(
                f"{kind.value} content requires at least {required} image URL(s)",
                detail={"field": "image_urls", "required": required, "got": len(item.image_urls)},
            )
    elif kind is ContentKind.VIDEO:
        if len(item.video_urls) != 1:
            raise ValidationError(
                "VIDEO content requires exactly one video URL",
                detail={"field": "video_urls", "got": len(item.video_urls)},
            )
    elif kind in (ContentKind.EMBED, ContentKind.TEXT):
        if not (item.content or "").strip():
            raise ValidationError(f"{kind.value} content requires a non-empty payload", detail={"field": "content"})


def validate_candidate(
    item: ContentItem,
    now: datetime.datetime,
    *,
    known_devices: Collection[str] | None = None,
) -> None:
    """
    Validate a candidate content item before any state is touched.

    Args:
        item: Candidate item with its proposed windows
        now: Reference time for the "not in the past" rule
        known_devices: When given, every target device must be one of these

    Raises:
        ValidationError: On the first rule that fails
    """
    if not item.title or not item.title.strip():
        raise ValidationError("Title is required", detail={"field": "title"})

    if not item.target_devices:
        raise ValidationError("At least one target device is required", detail={"field": "target_devices"})

    if known_devices is not None:
        unknown = sorted(set(item.target_devices) - set(known_devices))
        if unknown:
            raise ValidationError(
                f"Unknown target device(s): {', '.join(unknown)}",
                detail={"field": "target_devices", "unknown": unknown},
            )

    if item.kind is None:
        raise ValidationError("Content kind is required", detail={"field": "kind"})

    validate_payload(item)
    validate_windows(item, now)
