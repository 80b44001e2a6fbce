"""
Enums Module
============

Enumeration types shared across the signage scheduler.
"""

from signage.enums.content import ContentKind, WindowStatus

__all__ = [
    "ContentKind",
    "WindowStatus",
]
