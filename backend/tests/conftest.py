import json
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from remote_viewer.config import Settings
from remote_viewer.core.dependencies import get_transport, get_updater
from remote_viewer.core.exceptions import NotFoundError, TransportError
from remote_viewer.main import create_app
from remote_viewer.services.atomic_updater import AtomicUpdater


class FakeFtpSession:
    def __init__(self, server: "FakeFtpServer"):
        self.server = server

    async def download(self, filename: str) -> bytes:
        self.server.downloads.append(filename)
        if filename not in self.server.files:
            raise NotFoundError(f"{filename} not found on FTP server")
        return self.server.files[filename]

    async def upload(self, filename: str, data: bytes) -> str:
        if self.server.fail_uploads:
            raise TransportError("FTP upload failed: 451 local error")
        self.server.files[filename] = data
        self.server.uploads.append((filename, data))
        return f"/media/{filename}"


class FakeFtpServer:
    """In-memory stand-in for FtpTransport; records every transfer."""

    def __init__(self):
        self.files: dict[str, bytes] = {}
        self.uploads: list[tuple[str, bytes]] = []
        self.downloads: list[str] = []
        self.sessions_opened = 0
        self.sessions_closed = 0
        self.fail_connect = False
        self.fail_uploads = False

    def put_json(self, filename: str, payload) -> bytes:
        raw = json.dumps(payload, indent=2).encode("utf-8")
        self.files[filename] = raw
        return raw

    def read_json(self, filename: str):
        return json.loads(self.files[filename])

    @asynccontextmanager
    async def session(self) -> AsyncIterator[FakeFtpSession]:
        if self.fail_connect:
            raise TransportError("FTP connection failed: timed out")
        self.sessions_opened += 1
        try:
            yield FakeFtpSession(self)
        finally:
            self.sessions_closed += 1


@pytest.fixture
def test_settings(tmp_path) -> Settings:
    return Settings(
        _env_file=None,
        DATA_DIR=str(tmp_path / "data"),
        REMOTE_MEDIA_BASE="https://cdn.test/media",
        FTP_HOST="ftp.test",
        FTP_USER="viewer",
        FTP_PASS="secret",
        FTP_REMOTE_PATH="/media/media-index.json",
        SCHEDULE_TIMEZONE="UTC",
        LOG_LEVEL="DEBUG",
    )


@pytest.fixture
def ftp_server() -> FakeFtpServer:
    return FakeFtpServer()


@pytest.fixture
def updater(ftp_server: FakeFtpServer) -> AtomicUpdater:
    return AtomicUpdater(ftp_server)


@pytest_asyncio.fixture
async def client(test_settings: Settings, ftp_server: FakeFtpServer, updater: AtomicUpdater) -> AsyncIterator[AsyncClient]:
    app = create_app(test_settings)
    app.dependency_overrides[get_transport] = lambda: ftp_server
    app.dependency_overrides[get_updater] = lambda: updater

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


def slot_channel(*slots: tuple[str, str, int], **extra) -> dict:
    """{"type": "24hour", "slots": [...]} from (start, file, duration) triples."""
    return {
        "type": "24hour",
        "slots": [
            {"startTimeOfDay": start, "durationSeconds": duration, "item": {"relativePath": path}}
            for start, path, duration in slots
        ],
        **extra,
    }


def loop_channel(*items: tuple[str, float], **extra) -> dict:
    return {
        "type": "looping",
        "playlist": [{"relativePath": path, "durationSeconds": duration} for path, duration in items],
        **extra,
    }
