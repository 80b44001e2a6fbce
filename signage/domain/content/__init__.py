"""
Content Domain Module
=====================

Content items, their time windows, and the catalog protocol.

This module provides:
- ContentItem: display content owning zero or more windows
- Window: time interval with open-interval classification
- ContentCatalog: Protocol for content persistence
- validate_candidate: side-effect free candidate validation
"""
from signage.domain.content.content_item import ContentItem
from signage.domain.content.repository import ContentCatalog
from signage.domain.content.validation import validate_candidate
from signage.domain.content.window import Window

__all__ = [
    "ContentItem",
    "ContentCatalog",
    "Window",
    "validate_candidate",
]
