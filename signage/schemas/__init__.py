"""Request schemas."""

from signage.schemas.content import ContentItemRequest, TimeWindowRequest, parse_content_request

__all__ = ["ContentItemRequest", "TimeWindowRequest", "parse_content_request"]
