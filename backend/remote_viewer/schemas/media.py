"""Pydantic schemas for the media-index.json manifest."""
from datetime import datetime, timezone
from typing import Any

from pydantic import Field, field_serializer

from remote_viewer.schemas.schedule import MediaRef, _DocumentModel


class MediaIndex(_DocumentModel):
    generated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    items: list[MediaRef] = Field(default_factory=list)

    @field_serializer("generated_at")
    def serialize_generated_at(self, value: datetime) -> str:
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class MediaIndexPushResult(_DocumentModel):
    success: bool
    message: str
    remote_path: str | None = None
    count: int | None = None
