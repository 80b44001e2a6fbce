"""
Content Schemas
===============

Pydantic models for content item requests.

Accepts snake_case field names and the camelCase names used by existing
dashboard clients (``contentType``, ``targetTVs``, ``timeSchedules``...).
"""

from datetime import datetime
from typing import Any, List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from signage.domain.content import ContentItem, Window
from signage.domain.exceptions import ValidationError
from signage.enums import ContentKind


class TimeWindowRequest(BaseModel):
    """A single display window. Bounds are checked by the domain validator."""

    model_config = ConfigDict(populate_by_name=True)

    start_time: Optional[datetime] = Field(
        default=None,
        validation_alias=AliasChoices("start_time", "startTime", "start"),
        description="Window start (ISO 8601; naive values are UTC)",
    )
    end_time: Optional[datetime] = Field(
        default=None,
        validation_alias=AliasChoices("end_time", "endTime", "end"),
        description="Window end (ISO 8601; naive values are UTC)",
    )

    def to_window(self) -> Window:
        return Window(start=self.start_time, end=self.end_time)


class ContentItemRequest(BaseModel):
    """Schema for creating or replacing a content item."""

    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)

    title: str = Field(default="", max_length=200, description="Content title")
    description: Optional[str] = Field(default=None, max_length=2000)
    content_type: Optional[ContentKind] = Field(
        default=None,
        validation_alias=AliasChoices("content_type", "contentType", "kind"),
        description="IMAGE_SINGLE, IMAGE_DUAL, IMAGE_QUAD, VIDEO, EMBED or TEXT",
    )
    content: Optional[str] = Field(default=None, description="Text or embed payload")
    image_urls: List[str] = Field(default_factory=list, validation_alias=AliasChoices("image_urls", "imageUrls"))
    video_urls: List[str] = Field(default_factory=list, validation_alias=AliasChoices("video_urls", "videoUrls"))
    target_devices: List[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("target_devices", "targetTVs", "target_tvs"),
        description="Device keys the content is shown on",
    )
    active: bool = Field(default=True)
    time_windows: Optional[List[TimeWindowRequest]] = Field(
        default=None,
        validation_alias=AliasChoices("time_windows", "timeSchedules", "time_schedules"),
    )

    # Legacy single window
    start_time: Optional[datetime] = Field(default=None, validation_alias=AliasChoices("start_time", "startTime"))
    end_time: Optional[datetime] = Field(default=None, validation_alias=AliasChoices("end_time", "endTime"))

    @field_validator("content_type", mode="before")
    @classmethod
    def normalize_content_type(cls, v):
        if isinstance(v, str):
            v = v.strip()
            return ContentKind(v.upper()) if v else None
        return v

    @field_validator("image_urls", "video_urls", "target_devices", mode="before")
    @classmethod
    def none_to_empty(cls, v):
        return [] if v is None else v

    def windows(self) -> list[Window]:
        """Proposed windows; the legacy pair is used only when no list was sent."""
        if self.time_windows:
            return [w.to_window() for w in self.time_windows]
        if self.start_time is not None or self.end_time is not None:
            return [Window(start=self.start_time, end=self.end_time)]
        return []

    def to_candidate(self) -> ContentItem:
        """Build an unsaved domain item for the scheduling service."""
        return ContentItem(
            title=self.title,
            description=self.description,
            kind=self.content_type,
            image_urls=list(self.image_urls),
            video_urls=list(self.video_urls),
            content=self.content,
            target_devices={d.strip() for d in self.target_devices if d and d.strip()},
            active=self.active,
            windows=self.windows(),
        )


def parse_content_request(payload: dict[str, Any]) -> ContentItemRequest:
    """Validate a raw payload, raising the domain ValidationError on failure."""
    try:
        return ContentItemRequest.model_validate(payload)
    except PydanticValidationError as e:
        errors = e.errors(include_url=False, include_context=False)
        first = errors[0] if errors else {}
        field = ".".join(str(p) for p in first.get("loc", ()))
        message = f"Invalid {field}: {first.get('msg', 'invalid value')}" if field else "Invalid content request"
        raise ValidationError(message, detail={"errors": errors}) from e
