import logging
from contextlib import asynccontextmanager
from collections.abc import AsyncIterator

from fastapi import FastAPI

from remote_viewer.config import Settings, settings
from remote_viewer.core.exceptions import register_exception_handlers
from remote_viewer.core.middleware import setup_middleware
from remote_viewer.services.atomic_updater import AtomicUpdater
from remote_viewer.services.ftp_client import FtpTransport
from remote_viewer.services.schedule_store import ScheduleStore

logger = logging.getLogger(__name__)


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    config: Settings = app.state.settings
    logger.info(
        "Starting remote viewer (local data: %s, remote read: %s, ftp: %s, tz: %s)",
        config.data_dir or "unset",
        config.REMOTE_MEDIA_BASE or "unset",
        "configured" if config.ftp_enabled else "unset",
        config.SCHEDULE_TIMEZONE,
    )
    yield
    logger.info("Remote viewer stopped")


def create_app(config: Settings | None = None) -> FastAPI:
    config = config or settings
    configure_logging(config.LOG_LEVEL)

    app = FastAPI(
        title="Remote Viewer API",
        version="0.1.0",
        description="Shared channel schedules and wall-clock playback",
        debug=config.APP_DEBUG,
        lifespan=lifespan,
    )

    # Built here rather than in lifespan so hosts without lifespan support (e.g. Vercel) still get them
    app.state.settings = config
    app.state.store = ScheduleStore(config)
    app.state.transport = FtpTransport(config)
    app.state.updater = AtomicUpdater(app.state.transport)

    setup_middleware(app, config)
    register_exception_handlers(app)

    @app.get("/health")
    async def health_check():
        return {
            "status": "ok",
            "local": bool(config.data_dir),
            "remote_read": config.remote_read_enabled,
            "remote_write": config.ftp_enabled,
        }

    from remote_viewer.api.v1 import router as api_v1_router
    app.include_router(api_v1_router, prefix="/api/v1")

    return app


app = create_app()
