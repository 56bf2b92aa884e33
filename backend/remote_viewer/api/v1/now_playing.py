"""
Now-playing endpoint — what a channel is airing at a given moment.
"""
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Query

from remote_viewer.config import Settings
from remote_viewer.core.dependencies import get_settings, get_source, get_store
from remote_viewer.schemas.schedule import NowPlaying, normalize_channel_id
from remote_viewer.services.playback_clock import next_slot_start, position_at
from remote_viewer.services.schedule_store import Backend, ScheduleStore

router = APIRouter(prefix="/now-playing", tags=["now-playing"])


@router.get("", response_model=NowPlaying, response_model_exclude_none=True)
async def get_now_playing(
    channel: str = Query(...),
    at: datetime | None = Query(None, description="ISO-8601 instant; defaults to now"),
    source: Backend = Depends(get_source),
    store: ScheduleStore = Depends(get_store),
    config: Settings = Depends(get_settings),
):
    """
    Resolve the active item. `serverTimeMs` lets clients correct for their own
    clock skew before seeking to `offsetSeconds`.
    """
    channel_id = normalize_channel_id(channel)
    schedule = await store.load(channel_id, source)
    now = datetime.now(timezone.utc)
    instant = at or now

    position = position_at(schedule, instant, config.timezone)
    if position is None:
        return NowPlaying(
            channel=channel_id,
            source=source.value,
            active=schedule.active,
            next_slot_start=next_slot_start(schedule, instant, config.timezone),
            server_time_ms=int(now.timestamp() * 1000),
        )

    return NowPlaying(
        channel=channel_id,
        source=source.value,
        title=position.item.title,
        relative_path=position.item.relative_path,
        duration_seconds=position.item.duration_seconds,
        offset_seconds=position.offset_seconds,
        started_at=position.started_at,
        ends_at=position.next_boundary,
        active=schedule.active,
        server_time_ms=int(now.timestamp() * 1000),
    )
