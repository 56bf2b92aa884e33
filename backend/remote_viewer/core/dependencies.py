from fastapi import Depends, Query, Request

from remote_viewer.config import Settings
from remote_viewer.services.atomic_updater import AtomicUpdater, RemoteTransport
from remote_viewer.services.channel_service import ChannelService
from remote_viewer.services.media_index_service import MediaIndexService
from remote_viewer.services.schedule_store import Backend, ScheduleStore


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_store(request: Request) -> ScheduleStore:
    return request.app.state.store


def get_transport(request: Request) -> RemoteTransport:
    return request.app.state.transport


def get_updater(request: Request) -> AtomicUpdater:
    # One shared instance so its per-resource locks cover every request
    return request.app.state.updater


def get_source(source: Backend = Query(Backend.LOCAL, description="local or remote")) -> Backend:
    return source


def get_media_index_service(
    config: Settings = Depends(get_settings),
    transport: RemoteTransport = Depends(get_transport),
) -> MediaIndexService:
    return MediaIndexService(config, transport)


def get_channel_service(
    store: ScheduleStore = Depends(get_store),
    updater: AtomicUpdater = Depends(get_updater),
    media_index: MediaIndexService = Depends(get_media_index_service),
) -> ChannelService:
    return ChannelService(store, updater, media_index)
