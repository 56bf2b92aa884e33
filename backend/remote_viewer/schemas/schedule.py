"""
Pydantic schemas for the shared schedule document: channels, slots, playlists,
media references, and the resolved playback position.
"""
import enum
import re
from datetime import datetime, time
from typing import Annotated, Any, Literal, Union

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Discriminator,
    Field,
    Tag,
    TypeAdapter,
    field_serializer,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel

from remote_viewer.core.exceptions import ValidationError

SECONDS_PER_DAY = 86400

_TIME_PATTERN = re.compile(r"^([01]?\d|2[0-3]):([0-5]\d)(?::([0-5]\d))?$")
_CHANNEL_ID_UNSAFE = re.compile(r"[^a-zA-Z0-9_-]")


class ScheduleType(str, enum.Enum):
    SLOTS = "24hour"
    LOOPING = "looping"


def parse_time_of_day(value: str) -> time | None:
    """Parse "HH:MM" or "HH:MM:SS" (24h). Returns None when the value doesn't match."""
    match = _TIME_PATTERN.match(value.strip()) if value else None
    if not match:
        return None
    return time(int(match.group(1)), int(match.group(2)), int(match.group(3) or 0))


def time_to_seconds(value: time) -> int:
    return value.hour * 3600 + value.minute * 60 + value.second


def format_time_of_day(value: time) -> str:
    """"HH:MM", or "HH:MM:SS" when seconds are set."""
    if value.second:
        return value.strftime("%H:%M:%S")
    return value.strftime("%H:%M")


def normalize_channel_id(channel: str | None) -> str:
    base = (channel or "").strip()
    if not base:
        raise ValidationError("Channel ID is required")
    return _CHANNEL_ID_UNSAFE.sub("-", base)


class _DocumentModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


# ==================== MediaRef ====================
class MediaRef(_DocumentModel):
    """Catalogue entry. Identity is relative_path; everything else is refreshed by re-scanning."""

    relative_path: str = Field(
        validation_alias=AliasChoices("relativePath", "relative_path", "relPath", "file"),
        serialization_alias="relativePath",
    )
    duration_seconds: float = Field(0, ge=0)
    format: str | None = None
    supported: bool | None = None
    supported_via_companion: bool | None = None
    title: str | None = None
    audio_codec: str | None = None
    video_codec: str | None = None


# ==================== Slot ====================
class Slot(_DocumentModel):
    start_time_of_day: time
    item: MediaRef
    duration_seconds: int = Field(..., gt=0)

    @model_validator(mode="before")
    @classmethod
    def upgrade_legacy_slot(cls, data: Any) -> Any:
        # Older documents stored {start, end, file, title}
        if not isinstance(data, dict) or "start" not in data or "startTimeOfDay" in data:
            return data
        start = parse_time_of_day(str(data.get("start", "")))
        end = parse_time_of_day(str(data.get("end", "")))
        if start is None or end is None:
            raise ValueError(f"Invalid legacy slot times: {data.get('start')} -> {data.get('end')}")
        start_s, end_s = time_to_seconds(start), time_to_seconds(end)
        duration = end_s - start_s if end_s > start_s else (SECONDS_PER_DAY - start_s) + end_s
        return {
            "startTimeOfDay": start,
            "durationSeconds": duration,
            "item": {"relativePath": data.get("file") or "", "title": data.get("title")},
        }

    @field_validator("start_time_of_day", mode="before")
    @classmethod
    def parse_start(cls, v: Any) -> Any:
        if isinstance(v, str):
            parsed = parse_time_of_day(v)
            if parsed is None:
                raise ValueError(f"Invalid start time: {v}")
            return parsed
        return v

    @field_serializer("start_time_of_day")
    def serialize_start(self, value: time) -> str:
        return format_time_of_day(value)

    @property
    def start_seconds(self) -> int:
        return time_to_seconds(self.start_time_of_day)


# ==================== ChannelSchedule ====================
class ChannelScheduleBase(_DocumentModel):
    short_name: str | None = None
    active: bool = True

    @field_validator("short_name", mode="before")
    @classmethod
    def blank_short_name(cls, v: Any) -> Any:
        if isinstance(v, str):
            return v.strip() or None
        return v


class SlotSchedule(ChannelScheduleBase):
    """Daily time-of-day grid."""

    type: Literal["24hour"] = "24hour"
    slots: list[Slot] = Field(default_factory=list)


class LoopSchedule(ChannelScheduleBase):
    """Playlist looping forever, phase-anchored to the Unix epoch shifted by epoch_offset_hours."""

    type: Literal["looping"] = "looping"
    playlist: list[MediaRef] = Field(default_factory=list)
    epoch_offset_hours: float = 0.0


def _schedule_tag(value: Any) -> str:
    if isinstance(value, dict):
        return str(value.get("type") or ScheduleType.SLOTS.value)
    return getattr(value, "type", ScheduleType.SLOTS.value)


# Missing "type" means a slot grid, for backwards compatibility
ChannelSchedule = Annotated[
    Union[
        Annotated[SlotSchedule, Tag(ScheduleType.SLOTS.value)],
        Annotated[LoopSchedule, Tag(ScheduleType.LOOPING.value)],
    ],
    Discriminator(_schedule_tag),
]

channel_schedule_adapter: TypeAdapter[SlotSchedule | LoopSchedule] = TypeAdapter(ChannelSchedule)


def merge_channel(
    existing: SlotSchedule | LoopSchedule | None,
    incoming: SlotSchedule | LoopSchedule,
) -> SlotSchedule | LoopSchedule:
    """
    Overwrite a channel wholesale with `incoming`, keeping the existing channel's
    metadata (short name, active flag, loop offset) wherever the save didn't supply it.
    The inactive variant's fields are dropped because each variant only carries its own.
    """
    if existing is None:
        return incoming
    update: dict[str, Any] = {}
    if "short_name" not in incoming.model_fields_set:
        update["short_name"] = existing.short_name
    if "active" not in incoming.model_fields_set:
        update["active"] = existing.active
    if (
        isinstance(incoming, LoopSchedule)
        and isinstance(existing, LoopSchedule)
        and "epoch_offset_hours" not in incoming.model_fields_set
    ):
        update["epoch_offset_hours"] = existing.epoch_offset_hours
    return incoming.model_copy(update=update) if update else incoming


def validate_channel_schedule(schedule: SlotSchedule | LoopSchedule, channel_id: str = "") -> None:
    """Write-time checks. Reads stay lenient so old documents can still be played."""
    prefix = f"Channel {channel_id}: " if channel_id else ""

    if isinstance(schedule, LoopSchedule):
        for i, item in enumerate(schedule.playlist):
            if not item.relative_path:
                raise ValidationError(f"{prefix}Playlist item {i + 1} is missing file path")
            if item.duration_seconds <= 0:
                raise ValidationError(
                    f'{prefix}Playlist item "{item.relative_path}" has invalid duration (must be positive number)'
                )
        return

    seen: set[int] = set()
    for slot in schedule.slots:
        label = format_time_of_day(slot.start_time_of_day)
        if not slot.item.relative_path:
            raise ValidationError(f"{prefix}Missing file path at {label}")
        if slot.duration_seconds > SECONDS_PER_DAY:
            raise ValidationError(f"{prefix}Slot at {label} is longer than a day")
        if slot.start_seconds in seen:
            raise ValidationError(f"{prefix}Two slots start at {label}")
        seen.add(slot.start_seconds)


def normalize_channel(schedule: SlotSchedule | LoopSchedule) -> SlotSchedule | LoopSchedule:
    """Make implicit defaults explicit before a write: `active` and slot ordering."""
    update: dict[str, Any] = {"active": schedule.active}
    if isinstance(schedule, SlotSchedule):
        update["slots"] = sorted(schedule.slots, key=lambda s: s.start_seconds)
    return schedule.model_copy(update=update)


# ==================== Document ====================
class Document(_DocumentModel):
    """The whole shared schedule.json."""

    channels: dict[str, ChannelSchedule] = Field(default_factory=dict)
    version: int | None = None

    def with_channel(self, channel_id: str, schedule: SlotSchedule | LoopSchedule) -> "Document":
        channels = dict(self.channels)
        channels[channel_id] = merge_channel(channels.get(channel_id), schedule)
        return self.model_copy(update={"channels": channels})

    def without_channel(self, channel_id: str) -> "Document":
        channels = {k: v for k, v in self.channels.items() if k != channel_id}
        return self.model_copy(update={"channels": channels})

    def validate_for_write(self) -> None:
        for channel_id, schedule in self.channels.items():
            validate_channel_schedule(schedule, channel_id)

    def normalized(self) -> "Document":
        return self.model_copy(
            update={"channels": {k: normalize_channel(v) for k, v in self.channels.items()}}
        )

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


def dump_channel(schedule: SlotSchedule | LoopSchedule) -> dict[str, Any]:
    return schedule.model_dump(mode="json", by_alias=True, exclude_none=True)


# ==================== Playback ====================
class PlaybackPosition(BaseModel):
    item: MediaRef
    index: int
    offset_seconds: float
    started_at: datetime
    next_boundary: datetime


class NowPlaying(_DocumentModel):
    channel: str
    source: str
    title: str | None = None
    relative_path: str | None = None
    duration_seconds: float | None = None
    offset_seconds: float | None = None
    started_at: datetime | None = None
    ends_at: datetime | None = None
    next_slot_start: datetime | None = None
    active: bool = True
    server_time_ms: int
