"""
Schedule store — one get/put interface over the local schedule.json and the
published, read-only remote copy. Remote writes are not handled here; they go
through AtomicUpdater because the remote document is shared and must be merged.
"""
import asyncio
import enum
import logging
from collections.abc import Callable

from pydantic import ValidationError as PydanticValidationError

from remote_viewer.config import Settings
from remote_viewer.core.exceptions import MalformedDocumentError, NotFoundError, ReadOnlyBackendError
from remote_viewer.schemas.schedule import Document, LoopSchedule, SlotSchedule
from remote_viewer.services import storage_service

logger = logging.getLogger(__name__)

SCHEDULE_FILE = "schedule.json"


class Backend(str, enum.Enum):
    LOCAL = "local"
    REMOTE = "remote"


def parse_document(raw: bytes, origin: str) -> Document:
    try:
        return Document.model_validate_json(raw)
    except (PydanticValidationError, ValueError) as e:
        logger.error("Stored schedule at %s is malformed: %s", origin, e)
        raise MalformedDocumentError(f"Schedule at {origin} could not be parsed") from e


class ScheduleStore:
    def __init__(self, config: Settings):
        self.config = config
        self._local_lock = asyncio.Lock()

    @property
    def local_path(self) -> str:
        return storage_service.local_file_path(self.config, SCHEDULE_FILE)

    async def load_document(self, backend: Backend = Backend.LOCAL) -> Document:
        """Full document; the empty scaffold when nothing has been written yet."""
        if backend == Backend.REMOTE:
            raw = await storage_service.fetch_published_file(self.config, SCHEDULE_FILE)
            origin = f"{self.config.REMOTE_MEDIA_BASE}{SCHEDULE_FILE}"
        else:
            origin = self.local_path
            raw = storage_service.read_local_file(origin)
        if raw is None:
            return Document()
        return parse_document(raw, origin)

    async def load(self, channel_id: str, backend: Backend = Backend.LOCAL) -> SlotSchedule | LoopSchedule:
        document = await self.load_document(backend)
        schedule = document.channels.get(channel_id)
        if schedule is None:
            raise NotFoundError(f'No schedule for channel "{channel_id}"')
        return schedule

    async def save(
        self,
        channel_id: str,
        schedule: SlotSchedule | LoopSchedule,
        backend: Backend = Backend.LOCAL,
    ) -> SlotSchedule | LoopSchedule:
        """Overwrite one channel and return the copy that was persisted."""
        if backend == Backend.REMOTE:
            raise ReadOnlyBackendError()
        document = await self.update_local(lambda doc: doc.with_channel(channel_id, schedule))
        return document.channels[channel_id]

    async def replace_document(self, document: Document) -> Document:
        """Full replacement; the only way a channel is removed. Also recovers a corrupt file."""
        async with self._local_lock:
            return self._write_local(document)

    async def update_local(self, transform: Callable[[Document], Document]) -> Document:
        async with self._local_lock:
            current = await self.load_document(Backend.LOCAL)
            return self._write_local(transform(current))

    def _write_local(self, document: Document) -> Document:
        document.validate_for_write()
        document = document.normalized()
        storage_service.write_json_atomic(self.local_path, document.to_payload())
        logger.info("Saved local schedule (%d channels)", len(document.channels))
        return document
