"""
Atomic read-modify-write of a shared JSON document on the FTP server.

FTP has no transactions, so every mutation runs as one serialized transaction:
acquire lock -> open session -> download current -> transform -> validate -> upload
-> close session -> release lock. The lock is per resource and per updater instance;
the application keeps a single instance, so writers in one process never interleave.
Two separate processes can still race, in which case the last upload wins.
"""
import asyncio
import logging
import time
from collections.abc import Callable
from typing import Any, Protocol

from pydantic import ValidationError as PydanticValidationError

from remote_viewer.core.exceptions import AbortedMissingResourceError, NotFoundError, ValidationError
from remote_viewer.schemas.schedule import Document
from remote_viewer.services.ftp_client import encode_json

logger = logging.getLogger(__name__)

SCHEDULE_RESOURCE = "schedule.json"

DocumentTransform = Callable[[Document], Document]


class RemoteSession(Protocol):
    async def download(self, filename: str) -> bytes: ...

    async def upload(self, filename: str, data: bytes) -> str: ...


class RemoteTransport(Protocol):
    def session(self) -> Any: ...


class AtomicUpdater:
    def __init__(self, transport: RemoteTransport):
        self.transport = transport
        self._locks: dict[str, asyncio.Lock] = {}

    def _lock_for(self, resource_name: str) -> asyncio.Lock:
        return self._locks.setdefault(resource_name, asyncio.Lock())

    async def atomic_update(
        self,
        resource_name: str,
        transform: DocumentTransform,
        default_document: Document,
        *,
        require_existing_on_error: bool = False,
        allow_empty: bool = False,
    ) -> Document:
        """
        Run `transform` against the latest remote copy of `resource_name` and upload the result.

        `transform` receives the whole document and must return the whole replacement;
        channels it should not touch have to be carried over by the caller.

        With `require_existing_on_error`, a document that can't be fetched aborts the
        update instead of starting over from `default_document`. Set it whenever other
        channels' data could be wiped by a transient read failure.
        """
        lock = self._lock_for(resource_name)
        async with lock:
            started = time.monotonic()
            logger.debug("Lock acquired for %s", resource_name)
            async with self.transport.session() as session:
                current = await self._fetch_current(
                    session, resource_name, default_document, require_existing_on_error
                )
                updated = self._check(transform(current), resource_name, allow_empty)
                await session.upload(resource_name, encode_json(updated.to_payload()))
            logger.info(
                "Atomic update of %s committed (%d channels, %.2fs)",
                resource_name, len(updated.channels), time.monotonic() - started,
            )
            return updated

    async def _fetch_current(
        self,
        session: RemoteSession,
        resource_name: str,
        default_document: Document,
        require_existing: bool,
    ) -> Document:
        reason: str
        try:
            raw = await session.download(resource_name)
        except NotFoundError as e:
            reason = str(e)
        else:
            try:
                return Document.model_validate_json(raw)
            except (PydanticValidationError, ValueError) as e:
                reason = f"unreadable content: {e.__class__.__name__}"

        if require_existing:
            logger.warning("Aborting update of %s: current copy could not be read (%s)", resource_name, reason)
            raise AbortedMissingResourceError(
                f"Could not read the current {resource_name} ({reason}); update aborted so existing channels are not lost"
            )
        logger.warning("Starting %s from the default document: %s", resource_name, reason)
        return default_document.model_copy(deep=True)

    @staticmethod
    def _check(result: Any, resource_name: str, allow_empty: bool) -> Document:
        if not isinstance(result, Document):
            try:
                result = Document.model_validate(result)
            except PydanticValidationError as e:
                raise ValidationError(f"Update produced an invalid {resource_name}: {e.error_count()} errors") from e
        result.validate_for_write()
        if not result.channels and not allow_empty:
            raise ValidationError(f"Update would leave {resource_name} with no channels")
        return result.normalized()
