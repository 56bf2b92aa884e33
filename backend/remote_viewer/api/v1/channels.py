"""
Channel endpoints — list, create, edit, remove, and health-check channels.
"""
from fastapi import APIRouter, Depends, Query

from remote_viewer.core.dependencies import get_channel_service, get_source
from remote_viewer.schemas.channel import ChannelCreate, ChannelInfo, ChannelUpdate, HealthReport
from remote_viewer.services.channel_service import ChannelService
from remote_viewer.services.schedule_store import Backend

router = APIRouter(prefix="/channels", tags=["channels"])


@router.get("")
async def list_channels(
    source: Backend = Depends(get_source),
    service: ChannelService = Depends(get_channel_service),
):
    channels = await service.list_channels(source)
    return {"channels": [c.model_dump(by_alias=True, exclude_none=True) for c in channels], "source": source.value}


@router.post("", response_model=ChannelInfo, response_model_exclude_none=True)
async def create_channel(
    data: ChannelCreate,
    source: Backend = Depends(get_source),
    service: ChannelService = Depends(get_channel_service),
):
    return await service.create_channel(data.id, data.short_name, source)


@router.patch("", response_model=ChannelInfo, response_model_exclude_none=True)
async def update_channel(
    data: ChannelUpdate,
    source: Backend = Depends(get_source),
    service: ChannelService = Depends(get_channel_service),
):
    return await service.update_channel(
        data.id,
        short_name=data.short_name,
        active=data.active,
        new_id=data.new_id,
        backend=source,
    )


@router.delete("")
async def delete_channel(
    id: str = Query(..., min_length=1),
    source: Backend = Depends(get_source),
    service: ChannelService = Depends(get_channel_service),
):
    remaining = await service.delete_channel(id, source)
    return {
        "deleted": id.strip(),
        "channels": [c.model_dump(by_alias=True, exclude_none=True) for c in remaining],
        "source": source.value,
    }


@router.post("/health", response_model=HealthReport)
async def channel_health(
    source: Backend = Depends(get_source),
    service: ChannelService = Depends(get_channel_service),
):
    """Verify every item referenced by every channel exists in the media index."""
    return await service.health_check(source)
