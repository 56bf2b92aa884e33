from fastapi import APIRouter

from remote_viewer.api.v1.schedules import router as schedules_router
from remote_viewer.api.v1.now_playing import router as now_playing_router
from remote_viewer.api.v1.channels import router as channels_router
from remote_viewer.api.v1.media_index import router as media_index_router

router = APIRouter()
router.include_router(schedules_router)
router.include_router(now_playing_router)
router.include_router(channels_router)
router.include_router(media_index_router)
