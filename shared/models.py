from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from shared.enums import MemberRole, ServerEvent, SlideType
from shared.utils import default_slide_title, ensure_data_object, ensure_string_list


class CamelModel(BaseModel):
    """Base model that speaks camelCase on the wire and snake_case in Python."""

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, from_attributes=True
    )

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


# Slides
class SlideRecord(CamelModel):
    """Full persisted state of a slide, as broadcast to every client."""

    id: str
    project_id: str
    title: str
    content: str = ""
    bullet_points: list[str] = Field(default_factory=list)
    slide_type: SlideType = SlideType.CONTENT
    image_prompt: str | None = None
    image_url: str | None = None
    data: dict[str, Any] | None = None
    created_at: datetime
    updated_at: datetime

    @field_validator("bullet_points", mode="before")
    @classmethod
    def _coerce_bullets(cls, value: Any) -> list[str]:
        return ensure_string_list(value)


NON_NULLABLE_PATCH_FIELDS = {"title", "content", "bullet_points", "slide_type"}


class SlidePatch(CamelModel):
    """Sparse set of slide field changes (merge patch). Unknown fields are rejected."""

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, extra="forbid"
    )

    title: str | None = Field(None, max_length=500)
    content: str | None = None
    bullet_points: list[str] | None = None
    slide_type: SlideType | None = None
    image_prompt: str | None = None
    image_url: str | None = Field(None, max_length=1000)
    data: dict[str, Any] | None = None

    @model_validator(mode="after")
    def _reject_null_required_fields(self) -> "SlidePatch":
        nulled = sorted(
            name for name in self.model_fields_set & NON_NULLABLE_PATCH_FIELDS
            if getattr(self, name) is None
        )
        if nulled:
            raise ValueError(f"Fields cannot be null: {', '.join(nulled)}")
        return self

    def to_changes(self) -> dict[str, Any]:
        """Column values for the fields explicitly present in the patch."""
        changes = self.model_dump(exclude_unset=True)
        if "title" in changes:
            changes["title"] = default_slide_title(changes["title"])
        return changes


class SlideCreate(CamelModel):
    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, extra="forbid"
    )

    project_id: str
    title: str = Field("", max_length=500)
    content: str = ""
    bullet_points: list[str] = Field(default_factory=list)
    slide_type: SlideType = SlideType.CONTENT
    image_prompt: str | None = None
    image_url: str | None = Field(None, max_length=1000)
    data: dict[str, Any] | None = None


class SlideImport(CamelModel):
    """Loosely-typed slide as produced by generation or an export round-trip."""

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, extra="ignore"
    )

    title: str | None = None
    content: str | None = None
    bullet_points: Any = None
    slide_type: str | None = None
    image_prompt: str | None = None
    image_url: str | None = None
    data: Any = None

    def normalized(self, index: int, total: int) -> dict[str, Any]:
        """Column values with placeholders and type coercion applied."""
        if self.slide_type in SlideType._value2member_map_:
            slide_type = SlideType(self.slide_type)
        elif index == 0:
            slide_type = SlideType.TITLE
        elif index == total - 1:
            slide_type = SlideType.CONCLUSION
        else:
            slide_type = SlideType.CONTENT
        return {
            "title": default_slide_title(self.title, index),
            "content": self.content or "",
            "bullet_points": ensure_string_list(self.bullet_points),
            "slide_type": slide_type,
            "image_prompt": self.image_prompt or None,
            "image_url": self.image_url or None,
            "data": ensure_data_object(self.data),
        }


class BulkImportRequest(BaseModel):
    slides: list[SlideImport] = Field(..., min_length=1)


# Projects and membership
class MemberRecord(CamelModel):
    id: str
    project_id: str
    user_id: str
    role: MemberRole
    created_at: datetime


class ProjectCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)


class ProjectUpdate(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=255)


class InviteRequest(CamelModel):
    user_id: str
    role: MemberRole = MemberRole.EDITOR

    @field_validator("role")
    @classmethod
    def _owner_not_assignable(cls, value: MemberRole) -> MemberRole:
        if value == MemberRole.OWNER:
            raise ValueError("The owner role is assigned only when a project is created")
        return value


class ProjectRecord(CamelModel):
    id: str
    name: str
    user_id: str
    export_url: str | None = None
    download_url: str | None = None
    created_at: datetime
    updated_at: datetime | None = None
    members: list[MemberRecord] = Field(default_factory=list)
    slides: list[SlideRecord] = Field(default_factory=list)


# Collaboration socket messages
class ClientMessage(BaseModel):
    """Envelope of every inbound socket message."""

    event: str
    data: dict[str, Any] = Field(default_factory=dict)


class DocumentPayload(CamelModel):
    document_id: str = Field(..., min_length=1)


class EditSlidePayload(CamelModel):
    document_id: str = Field(..., min_length=1)
    slide_id: str = Field(..., min_length=1)
    changes: dict[str, Any]


class DeleteSlidePayload(CamelModel):
    document_id: str = Field(..., min_length=1)
    slide_id: str = Field(..., min_length=1)


def event_message(event: ServerEvent, data: dict[str, Any] | None = None) -> dict[str, Any]:
    """Build an outbound socket message."""
    return {"event": event.value, "data": data or {}}
