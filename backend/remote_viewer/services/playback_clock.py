"""
Playback clock — maps a wall-clock instant to what a channel is airing.

Everything here is a pure function of (schedule, instant, time zone), so every
viewer that asks at the same moment gets the same answer without any shared state.
"""
from datetime import datetime, timedelta, timezone, tzinfo

from remote_viewer.schemas.schedule import (
    SECONDS_PER_DAY,
    LoopSchedule,
    PlaybackPosition,
    SlotSchedule,
)


def _as_utc(instant: datetime) -> datetime:
    # Naive instants are taken to be UTC
    if instant.tzinfo is None:
        return instant.replace(tzinfo=timezone.utc)
    return instant.astimezone(timezone.utc)


def _seconds_into_day(local: datetime) -> float:
    return local.hour * 3600 + local.minute * 60 + local.second + local.microsecond / 1_000_000


def cycle_length(schedule: LoopSchedule) -> float:
    """Total loop length; zero or unknown durations contribute nothing."""
    return sum(max(item.duration_seconds, 0) for item in schedule.playlist)


def _slot_position(schedule: SlotSchedule, instant: datetime, tz: tzinfo) -> PlaybackPosition | None:
    tod = _seconds_into_day(instant.astimezone(tz))
    best: tuple[int, float] | None = None
    for index, slot in enumerate(schedule.slots):
        elapsed = (tod - slot.start_seconds) % SECONDS_PER_DAY
        if elapsed >= slot.duration_seconds:
            continue
        # The slot that started earliest wins an overlap; list order breaks ties
        if best is None or elapsed > best[1]:
            best = (index, elapsed)
    if best is None:
        return None

    index, elapsed = best
    slot = schedule.slots[index]
    started_at = instant - timedelta(seconds=elapsed)
    return PlaybackPosition(
        item=slot.item,
        index=index,
        offset_seconds=elapsed,
        started_at=started_at,
        next_boundary=started_at + timedelta(seconds=slot.duration_seconds),
    )


def _loop_position(schedule: LoopSchedule, instant: datetime) -> PlaybackPosition | None:
    cycle = cycle_length(schedule)
    if cycle <= 0:
        return None

    # Python's % already lands in [0, cycle) for negative operands
    phase = (instant.timestamp() - schedule.epoch_offset_hours * 3600) % cycle
    if phase >= cycle:
        # a tiny negative operand can round up to cycle itself
        phase = 0.0
    cumulative = 0.0
    for index, item in enumerate(schedule.playlist):
        duration = item.duration_seconds
        if duration <= 0:
            continue
        if cumulative + duration > phase:
            offset = phase - cumulative
            return PlaybackPosition(
                item=item,
                index=index,
                offset_seconds=offset,
                started_at=instant - timedelta(seconds=offset),
                next_boundary=instant + timedelta(seconds=cumulative + duration - phase),
            )
        cumulative += duration
    return None


def position_at(
    schedule: SlotSchedule | LoopSchedule,
    instant: datetime,
    tz: tzinfo = timezone.utc,
) -> PlaybackPosition | None:
    """
    Resolve the active item for `schedule` at `instant`.

    Returns None when nothing is on air: outside every slot, or an empty /
    zero-length loop. Inactive channels are still resolved; callers decide
    whether to show them.
    """
    instant = _as_utc(instant)
    if isinstance(schedule, LoopSchedule):
        return _loop_position(schedule, instant)
    return _slot_position(schedule, instant, tz)


def next_slot_start(
    schedule: SlotSchedule | LoopSchedule,
    instant: datetime,
    tz: tzinfo = timezone.utc,
) -> datetime | None:
    """Next instant, strictly after `instant`, at which a slot begins."""
    if not isinstance(schedule, SlotSchedule) or not schedule.slots:
        return None
    instant = _as_utc(instant)
    tod = _seconds_into_day(instant.astimezone(tz))
    wait = min(
        (slot.start_seconds - tod) % SECONDS_PER_DAY or SECONDS_PER_DAY
        for slot in schedule.slots
    )
    return instant + timedelta(seconds=wait)
