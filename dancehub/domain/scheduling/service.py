"""Scheduling service - Business logic for teacher availability"""

import logging
from datetime import date
from typing import Callable, Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ...auth import AuthUser
from ...models import Community, TeacherAvailabilitySlot
from ...shared.validators import validate_date_string, validate_time_string
from ..onboarding.repository import CommunityRepository
from .repository import AvailabilityRepository
from .schemas import SlotCreate

logger = logging.getLogger(__name__)


def overlaps(start_time: str, end_time: str, slot: TeacherAvailabilitySlot) -> bool:
    """Half-open interval overlap on zero-padded HH:MM strings"""
    return start_time < slot.end_time and end_time > slot.start_time


class AvailabilityService:
    """Service layer for teacher availability"""

    def __init__(self, db: Session, today: Callable[[], date] = date.today):
        self.db = db
        self.today = today
        self.repo = AvailabilityRepository()
        self.communities = CommunityRepository()

    def _get_community(self, slug: str) -> Community:
        community = self.communities.get_by_slug(self.db, slug)
        if not community:
            raise HTTPException(status_code=404, detail="Community not found")
        return community

    def list_slots(
        self,
        slug: str,
        user: AuthUser,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
        teacher_id: Optional[str] = None,
    ) -> list[TeacherAvailabilitySlot]:
        """A given teacher's slots for students booking, otherwise the caller's own"""
        community = self._get_community(slug)
        return self.repo.list_slots(self.db, teacher_id or user.id, community.id, start_date, end_date)

    def add_slot(self, slug: str, data: SlotCreate, user: AuthUser) -> TeacherAvailabilitySlot:
        community = self._get_community(slug)

        if not data.date:
            raise HTTPException(status_code=400, detail="Date is required")
        try:
            validate_date_string(data.date)
        except ValueError as e:
            raise HTTPException(status_code=400, detail="Invalid date format. Use YYYY-MM-DD") from e

        if date.fromisoformat(data.date) < self.today():
            raise HTTPException(status_code=400, detail="Cannot set availability for past dates")

        if not data.start_time or not data.end_time:
            raise HTTPException(status_code=400, detail="Start time and end time are required")
        try:
            start_time = validate_time_string(data.start_time)
            end_time = validate_time_string(data.end_time)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e)) from e

        if start_time >= end_time:
            raise HTTPException(status_code=400, detail="End time must be after start time")

        existing = self.repo.slots_on_date(self.db, user.id, community.id, data.date)
        if any(overlaps(start_time, end_time, slot) for slot in existing):
            raise HTTPException(status_code=400, detail="Time slot overlaps with existing availability")

        slot = self.repo.create_slot(
            self.db,
            teacher_id=user.id,
            community_id=community.id,
            availability_date=data.date,
            start_time=start_time,
            end_time=end_time,
        )
        logger.info(f"🗓️ Teacher {user.id} added availability {data.date} {start_time}-{end_time}")
        return slot

    def delete_slot(self, slot_id: Optional[str], user: AuthUser) -> dict:
        if not slot_id:
            raise HTTPException(status_code=400, detail="Slot ID is required")

        if not self.repo.deactivate_slot(self.db, slot_id, user.id):
            raise HTTPException(status_code=404, detail="Availability slot not found")

        logger.info(f"🗑️ Teacher {user.id} removed availability slot {slot_id}")
        return {"success": True}
