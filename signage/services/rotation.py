"""
Image rotation for multi-image content.

Image kinds show a fixed number of images at a time (1 for single, 2 for
dual, 4 for quad). References are grouped into consecutive sets of that size;
a display cycles through the sets by rotation index. The last set may be
short.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from signage.domain.content import ContentItem


@dataclass
class RotationSlice:
    images: list[str] = field(default_factory=list)
    index: int = 0
    total_images: int = 0
    total_rotations: int = 0

    @property
    def rotates(self) -> bool:
        return self.total_rotations > 1


def image_sets(item: ContentItem) -> list[list[str]]:
    """Consecutive image groups for *item*; empty for non-image kinds."""
    if item.kind is None or not item.kind.is_image:
        return []
    per_display = item.kind.images_per_display
    urls = item.image_urls
    return [urls[i : i + per_display] for i in range(0, len(urls), per_display)]


def compute_rotation(item: ContentItem, index: int) -> RotationSlice:
    """
    Images to show for rotation *index* (wraps around).

    Non-image items, and image items without references, report no rotation.
    """
    sets = image_sets(item)
    if not sets:
        return RotationSlice()
    position = index % len(sets)
    return RotationSlice(
        images=list(sets[position]),
        index=position,
        total_images=len(item.image_urls),
        total_rotations=len(sets),
    )
