"""Pydantic schemas for channel listing and metadata edits."""
from pydantic import BaseModel, Field

from remote_viewer.schemas.schedule import _DocumentModel


class ChannelInfo(_DocumentModel):
    id: str
    short_name: str | None = None
    active: bool = True
    type: str = "24hour"


class ChannelCreate(_DocumentModel):
    id: str = Field(..., min_length=1)
    short_name: str | None = None


class ChannelUpdate(_DocumentModel):
    id: str = Field(..., min_length=1)
    new_id: str | None = None
    short_name: str | None = None
    active: bool | None = None


class ChannelHealthIssue(BaseModel):
    file: str
    title: str | None = None
    issue: str  # "missing" | "zero_duration"
    details: str


class ChannelHealth(_DocumentModel):
    channel_id: str
    short_name: str | None = None
    type: str
    active: bool
    total_items: int
    healthy_items: int
    issues: list[ChannelHealthIssue] = []


class HealthReport(_DocumentModel):
    source: str
    checked_at: str
    total_channels: int
    total_items: int
    total_issues: int
    channels: list[ChannelHealth] = []
