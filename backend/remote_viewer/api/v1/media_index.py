"""
Media index endpoints — read the manifest, accept a fresh scan, publish it remotely.
"""
from fastapi import APIRouter, Depends
from pydantic import BaseModel

from remote_viewer.core.dependencies import get_media_index_service, get_source
from remote_viewer.core.exceptions import NotFoundError
from remote_viewer.schemas.media import MediaIndexPushResult
from remote_viewer.schemas.schedule import MediaRef
from remote_viewer.services.media_index_service import MediaIndexService, build_manifest
from remote_viewer.services.schedule_store import Backend

router = APIRouter(prefix="/media-index", tags=["media-index"])


class ScanResult(BaseModel):
    """What the external scanner hands over."""

    items: list[MediaRef]


@router.get("")
async def get_media_index(
    source: Backend = Depends(get_source),
    service: MediaIndexService = Depends(get_media_index_service),
):
    manifest = await service.load_manifest(source)
    if manifest is None:
        raise NotFoundError(f"No media-index.json on {source.value}")
    return manifest.to_payload()


@router.put("")
async def save_media_index(
    data: ScanResult,
    service: MediaIndexService = Depends(get_media_index_service),
):
    manifest = build_manifest(data.items)
    service.save_local_manifest(manifest)
    return manifest.to_payload()


@router.post("/push", response_model=MediaIndexPushResult, response_model_exclude_none=True)
async def push_media_index(
    service: MediaIndexService = Depends(get_media_index_service),
):
    """Upload the local media-index.json to the remote folder, overwriting it."""
    return await service.push_local_manifest()
