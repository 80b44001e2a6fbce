"""Application services."""

from signage.services.rotation import RotationSlice, compute_rotation, image_sets
from signage.services.scheduling_service import ContentSchedulingService, SweepReport

__all__ = [
    "ContentSchedulingService",
    "RotationSlice",
    "SweepReport",
    "compute_rotation",
    "image_sets",
]
