# Schemas package
from remote_viewer.schemas.channel import ChannelCreate, ChannelHealth, ChannelInfo, ChannelUpdate, HealthReport
from remote_viewer.schemas.media import MediaIndex, MediaIndexPushResult
from remote_viewer.schemas.schedule import (
    ChannelSchedule,
    Document,
    LoopSchedule,
    MediaRef,
    NowPlaying,
    PlaybackPosition,
    ScheduleType,
    Slot,
    SlotSchedule,
)

__all__ = [
    "ChannelCreate",
    "ChannelHealth",
    "ChannelInfo",
    "ChannelSchedule",
    "ChannelUpdate",
    "Document",
    "HealthReport",
    "LoopSchedule",
    "MediaIndex",
    "MediaIndexPushResult",
    "MediaRef",
    "NowPlaying",
    "PlaybackPosition",
    "ScheduleType",
    "Slot",
    "SlotSchedule",
]
