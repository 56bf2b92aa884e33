"""
Media index sync — the manifest of playable items (media-index.json).

The scanner that walks the media folder and probes durations lives outside this
service; it hands its results over through `build_manifest` / `save_local_manifest`.
Publishing is a plain overwrite: the manifest has a single writer, so there is no
lock and no merge.
"""
import logging
import posixpath
from datetime import datetime, timezone
from typing import Iterable

from pydantic import ValidationError as PydanticValidationError

from remote_viewer.config import Settings
from remote_viewer.core.exceptions import MalformedDocumentError, NotFoundError, ValidationError
from remote_viewer.schemas.media import MediaIndex, MediaIndexPushResult
from remote_viewer.schemas.schedule import MediaRef
from remote_viewer.services import storage_service
from remote_viewer.services.atomic_updater import RemoteTransport
from remote_viewer.services.ftp_client import encode_json, require_ftp_config
from remote_viewer.services.schedule_store import Backend

logger = logging.getLogger(__name__)

MEDIA_INDEX_FILE = "media-index.json"


def _parse_manifest(raw: bytes, origin: str) -> MediaIndex:
    try:
        return MediaIndex.model_validate_json(raw)
    except (PydanticValidationError, ValueError) as e:
        raise MalformedDocumentError(f"Media index at {origin} could not be parsed") from e


def build_manifest(items: Iterable[MediaRef | dict]) -> MediaIndex:
    refs = [item if isinstance(item, MediaRef) else MediaRef.model_validate(item) for item in items]
    return MediaIndex(generated_at=datetime.now(timezone.utc), items=refs)


class MediaIndexService:
    def __init__(self, config: Settings, transport: RemoteTransport):
        self.config = config
        self.transport = transport

    @property
    def remote_filename(self) -> str:
        # FTP_REMOTE_PATH points at the manifest itself
        return posixpath.basename(self.config.FTP_REMOTE_PATH) or MEDIA_INDEX_FILE

    def save_local_manifest(self, manifest: MediaIndex) -> str:
        path = storage_service.local_file_path(self.config, MEDIA_INDEX_FILE)
        storage_service.write_json_atomic(path, manifest.to_payload())
        logger.info("Saved local media index (%d items) to %s", len(manifest.items), path)
        return path

    async def load_manifest(self, backend: Backend = Backend.LOCAL) -> MediaIndex | None:
        """The stored manifest, or None when none has been written yet."""
        if backend == Backend.REMOTE:
            raw = await storage_service.fetch_published_file(self.config, MEDIA_INDEX_FILE)
            origin = f"{self.config.REMOTE_MEDIA_BASE}{MEDIA_INDEX_FILE}"
        else:
            origin = storage_service.local_file_path(self.config, MEDIA_INDEX_FILE)
            raw = storage_service.read_local_file(origin)
        if raw is None:
            return None
        return _parse_manifest(raw, origin)

    async def publish_manifest(self, manifest: MediaIndex, backend: Backend = Backend.REMOTE) -> MediaIndexPushResult:
        if not manifest.items:
            raise ValidationError("Refusing to publish an empty media index")

        if backend == Backend.LOCAL:
            path = self.save_local_manifest(manifest)
            return MediaIndexPushResult(
                success=True,
                message=f"Saved media-index.json with {len(manifest.items)} items",
                remote_path=path,
                count=len(manifest.items),
            )

        require_ftp_config(self.config)
        async with self.transport.session() as session:
            remote_path = await session.upload(self.remote_filename, encode_json(manifest.to_payload()))
        logger.info("Published media index (%d items) to %s", len(manifest.items), remote_path)
        return MediaIndexPushResult(
            success=True,
            message=f"Uploaded media-index.json with {len(manifest.items)} items",
            remote_path=remote_path,
            count=len(manifest.items),
        )

    async def push_local_manifest(self) -> MediaIndexPushResult:
        """Publish the scanner's local media-index.json to the remote folder."""
        manifest = await self.load_manifest(Backend.LOCAL)
        if manifest is None:
            raise NotFoundError("No local media-index.json found. Run a scan first.")
        manifest = manifest.model_copy(update={"generated_at": datetime.now(timezone.utc)})
        return await self.publish_manifest(manifest, Backend.REMOTE)

    async def catalogue(self, backend: Backend = Backend.LOCAL) -> dict[str, MediaRef]:
        manifest = await self.load_manifest(backend)
        if manifest is None:
            return {}
        return {item.relative_path: item for item in manifest.items}
