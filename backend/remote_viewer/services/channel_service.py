"""
Channel service — listing, creating, renaming and removing channels, plus the
media health check. Channels are the keys of schedule.json; remote edits run
through the atomic updater so channels edited by others are carried over.
"""
import logging
from datetime import datetime, timezone

from remote_viewer.core.exceptions import ConflictError, NotFoundError
from remote_viewer.schemas.channel import ChannelHealth, ChannelHealthIssue, ChannelInfo, HealthReport
from remote_viewer.schemas.schedule import (
    Document,
    LoopSchedule,
    MediaRef,
    SlotSchedule,
    normalize_channel_id,
)
from remote_viewer.services.atomic_updater import SCHEDULE_RESOURCE, AtomicUpdater, DocumentTransform
from remote_viewer.services.media_index_service import MediaIndexService
from remote_viewer.services.schedule_store import Backend, ScheduleStore

logger = logging.getLogger(__name__)


def channel_sort_key(channel_id: str) -> tuple[int, int, str]:
    """Numeric ids first in numeric order, then the rest case-insensitively."""
    if channel_id.isdigit():
        return (0, int(channel_id), channel_id)
    return (1, 0, channel_id.lower())


def to_channel_info(channel_id: str, schedule: SlotSchedule | LoopSchedule) -> ChannelInfo:
    return ChannelInfo(id=channel_id, short_name=schedule.short_name, active=schedule.active, type=schedule.type)


def _schedule_items(schedule: SlotSchedule | LoopSchedule) -> list[MediaRef]:
    if isinstance(schedule, LoopSchedule):
        return list(schedule.playlist)
    return [slot.item for slot in schedule.slots]


class ChannelService:
    def __init__(self, store: ScheduleStore, updater: AtomicUpdater, media_index: MediaIndexService):
        self.store = store
        self.updater = updater
        self.media_index = media_index

    async def _apply(self, transform: DocumentTransform, backend: Backend, *, allow_empty: bool = False) -> Document:
        if backend == Backend.REMOTE:
            return await self.updater.atomic_update(
                SCHEDULE_RESOURCE,
                transform,
                Document(),
                require_existing_on_error=True,
                allow_empty=allow_empty,
            )
        return await self.store.update_local(transform)

    async def list_channels(self, backend: Backend = Backend.LOCAL) -> list[ChannelInfo]:
        document = await self.store.load_document(backend)
        return [
            to_channel_info(channel_id, document.channels[channel_id])
            for channel_id in sorted(document.channels, key=channel_sort_key)
        ]

    async def create_channel(
        self,
        channel_id: str,
        short_name: str | None = None,
        backend: Backend = Backend.LOCAL,
    ) -> ChannelInfo:
        """Add an empty slot-grid channel. An existing channel is returned as-is."""
        channel_id = normalize_channel_id(channel_id)

        def transform(doc: Document) -> Document:
            if channel_id in doc.channels:
                return doc
            return doc.with_channel(channel_id, SlotSchedule(short_name=short_name, active=True))

        document = await self._apply(transform, backend)
        logger.info("Channel %s ensured on %s", channel_id, backend.value)
        return to_channel_info(channel_id, document.channels[channel_id])

    async def update_channel(
        self,
        channel_id: str,
        *,
        short_name: str | None = None,
        active: bool | None = None,
        new_id: str | None = None,
        backend: Backend = Backend.LOCAL,
    ) -> ChannelInfo:
        """
        Edit channel metadata and optionally rename it. `None` leaves a field alone;
        a blank short name clears it.
        """
        channel_id = normalize_channel_id(channel_id)
        target_id = normalize_channel_id(new_id) if new_id and new_id.strip() else channel_id

        def transform(doc: Document) -> Document:
            existing = doc.channels.get(channel_id)
            if existing is None:
                raise NotFoundError(f'Channel "{channel_id}" not found')
            if target_id != channel_id and target_id in doc.channels:
                raise ConflictError(f'Channel ID "{target_id}" already exists')

            changes: dict = {}
            if short_name is not None:
                changes["short_name"] = short_name.strip() or None
            if active is not None:
                changes["active"] = active
            updated = existing.model_copy(update=changes) if changes else existing

            # Rebuild so a renamed channel keeps its position
            channels = {
                (target_id if key == channel_id else key): (updated if key == channel_id else value)
                for key, value in doc.channels.items()
            }
            return doc.model_copy(update={"channels": channels})

        document = await self._apply(transform, backend)
        if target_id != channel_id:
            logger.info("Renamed channel %s -> %s on %s", channel_id, target_id, backend.value)
        return to_channel_info(target_id, document.channels[target_id])

    async def delete_channel(self, channel_id: str, backend: Backend = Backend.LOCAL) -> list[ChannelInfo]:
        """Replace the whole document without `channel_id`; returns the remaining channels."""
        channel_id = normalize_channel_id(channel_id)

        def transform(doc: Document) -> Document:
            if channel_id not in doc.channels:
                raise NotFoundError(f'Channel "{channel_id}" not found')
            return doc.without_channel(channel_id)

        document = await self._apply(transform, backend, allow_empty=True)
        logger.info("Deleted channel %s on %s", channel_id, backend.value)
        return [
            to_channel_info(cid, document.channels[cid])
            for cid in sorted(document.channels, key=channel_sort_key)
        ]

    async def health_check(self, backend: Backend = Backend.LOCAL) -> HealthReport:
        """Check every referenced item against the media index for the same backend."""
        document = await self.store.load_document(backend)
        catalogue = await self.media_index.catalogue(backend) if document.channels else {}

        results: list[ChannelHealth] = []
        for channel_id in sorted(document.channels, key=channel_sort_key):
            schedule = document.channels[channel_id]
            items = _schedule_items(schedule)
            issues: list[ChannelHealthIssue] = []
            healthy = 0
            for item in items:
                item_issues = self._check_item(item, catalogue, is_playlist=isinstance(schedule, LoopSchedule))
                issues.extend(item_issues)
                if not item_issues:
                    healthy += 1
            results.append(
                ChannelHealth(
                    channel_id=channel_id,
                    short_name=schedule.short_name,
                    type=schedule.type,
                    active=schedule.active,
                    total_items=len(items),
                    healthy_items=healthy,
                    issues=issues,
                )
            )

        report = HealthReport(
            source=backend.value,
            checked_at=datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            total_channels=len(results),
            total_items=sum(r.total_items for r in results),
            total_issues=sum(len(r.issues) for r in results),
            channels=results,
        )
        logger.info(
            "Health check on %s: %d channels, %d issues", backend.value, report.total_channels, report.total_issues
        )
        return report

    @staticmethod
    def _check_item(item: MediaRef, catalogue: dict[str, MediaRef], is_playlist: bool) -> list[ChannelHealthIssue]:
        if not item.relative_path:
            return [
                ChannelHealthIssue(file="(empty)", title=item.title, issue="missing", details="Item has no file path")
            ]
        issues = []
        if item.relative_path not in catalogue:
            issues.append(
                ChannelHealthIssue(
                    file=item.relative_path,
                    title=item.title,
                    issue="missing",
                    details="File not found in media library",
                )
            )
        # Slot length comes from the slot itself, so only playlist items can stall on a zero duration
        if is_playlist and item.duration_seconds <= 0:
            issues.append(
                ChannelHealthIssue(
                    file=item.relative_path,
                    title=item.title,
                    issue="zero_duration",
                    details="Item has zero or negative duration",
                )
            )
        return issues
