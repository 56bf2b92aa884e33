"""
Schedule endpoints — read and write channel schedules on the local or remote backend.
"""
import logging
from typing import Any

from fastapi import APIRouter, Body, Depends, Query
from pydantic import ValidationError as PydanticValidationError

from remote_viewer.core.dependencies import get_source, get_store, get_updater
from remote_viewer.core.exceptions import ValidationError
from remote_viewer.schemas.schedule import (
    Document,
    LoopSchedule,
    SlotSchedule,
    channel_schedule_adapter,
    dump_channel,
    normalize_channel_id,
)
from remote_viewer.services.atomic_updater import SCHEDULE_RESOURCE, AtomicUpdater
from remote_viewer.services.schedule_store import Backend, ScheduleStore

logger = logging.getLogger(__name__)

router = APIRouter(tags=["schedules"])


def parse_schedule_body(payload: dict[str, Any]) -> SlotSchedule | LoopSchedule:
    try:
        return channel_schedule_adapter.validate_python(payload)
    except PydanticValidationError as e:
        first = e.errors()[0]
        location = ".".join(str(part) for part in first["loc"])
        raise ValidationError(f"Invalid schedule ({location}): {first['msg']}") from e


async def save_channel(
    channel_id: str,
    schedule: SlotSchedule | LoopSchedule,
    source: Backend,
    store: ScheduleStore,
    updater: AtomicUpdater,
) -> SlotSchedule | LoopSchedule:
    if source == Backend.REMOTE:
        # Never rebuild the remote document from scratch: other channels live in it too
        document = await updater.atomic_update(
            SCHEDULE_RESOURCE,
            lambda doc: doc.with_channel(channel_id, schedule),
            Document(),
            require_existing_on_error=True,
        )
        return document.channels[channel_id]
    return await store.save(channel_id, schedule, Backend.LOCAL)


# ==================== Query-style ====================
@router.get("/schedule")
async def get_schedule(
    channel: str | None = Query(None),
    source: Backend = Depends(get_source),
    store: ScheduleStore = Depends(get_store),
):
    """Full document, or a single channel when `channel` is given."""
    if channel:
        schedule = await store.load(normalize_channel_id(channel), source)
        return {"schedule": dump_channel(schedule), "source": source.value}
    document = await store.load_document(source)
    return {"schedule": document.to_payload(), "source": source.value}


@router.put("/schedule")
async def put_schedule(
    channel: str = Query(...),
    payload: dict[str, Any] = Body(...),
    source: Backend = Depends(get_source),
    store: ScheduleStore = Depends(get_store),
    updater: AtomicUpdater = Depends(get_updater),
):
    channel_id = normalize_channel_id(channel)
    saved = await save_channel(channel_id, parse_schedule_body(payload), source, store, updater)
    logger.info("Saved schedule for channel %s on %s", channel_id, source.value)
    return {"schedule": dump_channel(saved), "source": source.value}


@router.post("/schedule/push")
async def push_schedule(
    store: ScheduleStore = Depends(get_store),
    updater: AtomicUpdater = Depends(get_updater),
):
    """
    Publish every local channel to the remote document. Channels that only exist
    remotely are kept; a missing remote document is created.
    """
    local = await store.load_document(Backend.LOCAL)
    if not local.channels:
        raise ValidationError("Local schedule has no channels to push")

    def transform(doc: Document) -> Document:
        return doc.model_copy(update={"channels": {**doc.channels, **local.channels}})

    document = await updater.atomic_update(SCHEDULE_RESOURCE, transform, Document())
    return {
        "schedule": document.to_payload(),
        "source": Backend.REMOTE.value,
        "pushed": sorted(local.channels),
    }


# ==================== Path-style (local) ====================
@router.get("/channels/{channel_id}/schedule")
async def get_channel_schedule(
    channel_id: str,
    store: ScheduleStore = Depends(get_store),
):
    schedule = await store.load(normalize_channel_id(channel_id), Backend.LOCAL)
    return {"schedule": dump_channel(schedule), "source": Backend.LOCAL.value}


@router.put("/channels/{channel_id}/schedule")
async def put_channel_schedule(
    channel_id: str,
    payload: dict[str, Any] = Body(...),
    store: ScheduleStore = Depends(get_store),
):
    channel_id = normalize_channel_id(channel_id)
    saved = await store.save(channel_id, parse_schedule_body(payload), Backend.LOCAL)
    return {"schedule": dump_channel(saved), "source": Backend.LOCAL.value}
