"""Which availability slots a student may still book"""

from datetime import datetime, tzinfo
from typing import Iterable, Optional

from .schemas import AvailabilitySlot


def combine(day: str, time: str) -> datetime:
    """Local date 'YYYY-MM-DD' + local time 'HH:MM' -> naive local datetime"""
    return datetime.strptime(f"{day} {time}", "%Y-%m-%d %H:%M")


def slot_start(slot: AvailabilitySlot, tz: Optional[tzinfo] = None) -> datetime:
    """The slot's start as an aware instant; its date and time are read in `tz` (system zone when None)"""
    local = combine(slot.date, slot.start_time)
    if tz is not None:
        return local.replace(tzinfo=tz)
    return local.astimezone()


def is_offerable(slot: AvailabilitySlot, now: datetime, tz: Optional[tzinfo] = None) -> bool:
    # A slot that has already started is not offered; a naive `now` is system local time
    if now.tzinfo is None:
        now = now.astimezone()
    return slot_start(slot, tz) > now


def offerable(slots: Iterable[AvailabilitySlot], now: datetime, tz: Optional[tzinfo] = None) -> list[AvailabilitySlot]:
    """
    Slots starting strictly after `now`, in date/start order.
    Callers pass a fresh `now` each time the booking surface opens.
    """
    upcoming = [slot for slot in slots if is_offerable(slot, now, tz)]
    return sorted(upcoming, key=lambda slot: (slot.date, slot.start_time))
