"""
Client-side cache of a teacher's availability, grouped by day.

The server is the source of truth: a slot enters the cache only once the
server has returned it with an id, and leaves only after the server confirms
the delete. Days left without slots are dropped.
"""

import logging
from collections import defaultdict
from typing import Awaitable, Callable, Optional, Protocol

from ...shared.errors import AvailabilityInputError, GatewayError
from ...shared.notifications import LoggingNotifier, Notifier
from ...shared.validators import validate_time_string
from .schemas import AvailabilitySlot, DayAvailability

logger = logging.getLogger(__name__)

DELETE_CONFIRMATION = "Are you sure you want to remove this availability slot?"


class AvailabilityGateway(Protocol):
    async def list_availability(
        self,
        community_slug: str,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
        teacher_id: Optional[str] = None,
    ) -> list[AvailabilitySlot]: ...

    async def add_availability_slot(
        self, community_slug: str, date: str, start_time: str, end_time: str
    ) -> AvailabilitySlot: ...

    async def delete_availability_slot(self, community_slug: str, slot_id: str) -> None: ...


def check_slot_times(
    date: Optional[str], start_time: Optional[str], end_time: Optional[str]
) -> tuple[str, str]:
    """
    Local checks done before any network call.

    Returns:
        The start and end time zero-padded to HH:MM

    Raises:
        AvailabilityInputError: If a field is missing, a time is malformed or the range is empty
    """
    if not date or not start_time or not end_time:
        raise AvailabilityInputError("Please fill all fields")
    try:
        start_time = validate_time_string(start_time)
        end_time = validate_time_string(end_time)
    except ValueError as e:
        raise AvailabilityInputError(str(e)) from e
    if start_time >= end_time:
        raise AvailabilityInputError("End time must be after start time")
    return start_time, end_time


def group_by_day(slots: list[AvailabilitySlot]) -> list[DayAvailability]:
    grouped: dict[str, list[AvailabilitySlot]] = defaultdict(list)
    for slot in slots:
        grouped[slot.date].append(slot)
    return [
        DayAvailability(date=day, slots=tuple(sorted(day_slots, key=lambda s: s.start_time)))
        for day, day_slots in sorted(grouped.items())
    ]


async def _deny(message: str) -> bool:
    return False


class AvailabilitySlotStore:
    """Per-teacher availability for one community"""

    def __init__(
        self,
        community_slug: str,
        gateway: AvailabilityGateway,
        notifier: Optional[Notifier] = None,
        confirm: Callable[[str], Awaitable[bool]] = _deny,
    ):
        self.community_slug = community_slug
        self.gateway = gateway
        self.notifier = notifier or LoggingNotifier()
        self.confirm = confirm
        self.days: list[DayAvailability] = []

    def day(self, date: str) -> Optional[DayAvailability]:
        return next((d for d in self.days if d.date == date), None)

    def slots(self) -> list[AvailabilitySlot]:
        return [slot for day in self.days for slot in day.slots]

    def dates_with_availability(self) -> set[str]:
        return {day.date for day in self.days}

    async def load(
        self,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
        teacher_id: Optional[str] = None,
    ) -> list[DayAvailability]:
        """Replace the cache with the server's slots for the range"""
        try:
            slots = await self.gateway.list_availability(
                self.community_slug, start_date=start_date, end_date=end_date, teacher_id=teacher_id
            )
        except GatewayError as e:
            logger.error(f"❌ Loading availability for {self.community_slug} failed: {e.message}")
            self.notifier.error(e.message or "Failed to load availability")
            return self.days

        self.days = group_by_day(slots)
        return self.days

    async def add(self, date: str, start_time: str, end_time: str) -> Optional[AvailabilitySlot]:
        try:
            start_time, end_time = check_slot_times(date, start_time, end_time)
        except AvailabilityInputError as e:
            self.notifier.error(e.message)
            return None

        try:
            slot = await self.gateway.add_availability_slot(self.community_slug, date, start_time, end_time)
        except GatewayError as e:
            logger.error(f"❌ Adding slot {date} {start_time}-{end_time} failed: {e.message}")
            self.notifier.error(e.message or "Failed to add availability slot")
            return None

        if not slot.id:
            self.notifier.error("Failed to add availability slot")
            return None

        self._merge(slot)
        self.notifier.success("Availability slot added successfully")
        return slot

    def _merge(self, slot: AvailabilitySlot) -> None:
        existing = self.day(slot.date)
        if existing is None:
            self.days = sorted(
                [*self.days, DayAvailability(date=slot.date, slots=(slot,))], key=lambda d: d.date
            )
            return

        slots = tuple(sorted([*existing.slots, slot], key=lambda s: s.start_time))
        self.days = [
            DayAvailability(date=d.date, slots=slots) if d.date == slot.date else d for d in self.days
        ]

    async def remove(self, slot_id: str) -> bool:
        """Delete a slot after the user confirms; returns True once the server has removed it"""
        if not await self.confirm(DELETE_CONFIRMATION):
            return False

        try:
            await self.gateway.delete_availability_slot(self.community_slug, slot_id)
        except GatewayError as e:
            logger.error(f"❌ Deleting slot {slot_id} failed: {e.message}")
            self.notifier.error(e.message or "Failed to remove availability slot")
            return False

        remaining = [
            DayAvailability(date=d.date, slots=tuple(s for s in d.slots if s.id != slot_id))
            for d in self.days
        ]
        self.days = [d for d in remaining if d.slots]
        self.notifier.success("Availability slot removed successfully")
        return True
