"""
Content-related Enumerations
============================

This module contains the enums used by content items and their time windows.
"""

from enum import Enum


class ContentKind(str, Enum):
    """Kind of display content carried by a content item."""

    IMAGE_SINGLE = "IMAGE_SINGLE"
    IMAGE_DUAL = "IMAGE_DUAL"
    IMAGE_QUAD = "IMAGE_QUAD"
    VIDEO = "VIDEO"
    EMBED = "EMBED"
    TEXT = "TEXT"

    def __str__(self):
        return self.value

    @property
    def is_image(self) -> bool:
        return self in (ContentKind.IMAGE_SINGLE, ContentKind.IMAGE_DUAL, ContentKind.IMAGE_QUAD)

    @property
    def images_per_display(self) -> int:
        """How many images a device shows at once for this kind."""
        return {
            ContentKind.IMAGE_SINGLE: 1,
            ContentKind.IMAGE_DUAL: 2,
            ContentKind.IMAGE_QUAD: 4,
        }.get(self, 1)


class WindowStatus(str, Enum):
    """Classification of a time window relative to a timestamp.

    - ACTIVE: window flag set and start < t < end
    - UPCOMING: t < start
    - EXPIRED: t > end
    - INACTIVE: anything else (boundary instants, or deactivated inside its interval)
    """

    ACTIVE = "active"
    UPCOMING = "upcoming"
    EXPIRED = "expired"
    INACTIVE = "inactive"

    def __str__(self):
        return self.value
