"""Scheduling router - FastAPI endpoints for teacher availability"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...auth import AuthUser, get_current_user
from ...database import get_db
from .schemas import SlotCreate, SlotResponse
from .service import AvailabilityService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/community/{slug}/teacher-availability", tags=["Teacher Availability"])


def get_availability_service(db: Session = Depends(get_db)) -> AvailabilityService:
    """Dependency injection for AvailabilityService"""
    return AvailabilityService(db)


@router.get("", response_model=list[SlotResponse])
async def list_availability(
    slug: str,
    startDate: Optional[str] = Query(None),
    endDate: Optional[str] = Query(None),
    teacher_id: Optional[str] = Query(None),
    current_user: AuthUser = Depends(get_current_user),
    service: AvailabilityService = Depends(get_availability_service),
):
    """Get active availability slots in a date range"""
    return service.list_slots(slug, current_user, startDate, endDate, teacher_id)


@router.post("", response_model=SlotResponse, status_code=201)
async def add_availability_slot(
    slug: str,
    data: SlotCreate,
    current_user: AuthUser = Depends(get_current_user),
    service: AvailabilityService = Depends(get_availability_service),
):
    """Add a slot for the current teacher"""
    return service.add_slot(slug, data, current_user)


@router.delete("")
async def delete_availability_slot(
    slug: str,
    slotId: Optional[str] = Query(None),
    current_user: AuthUser = Depends(get_current_user),
    service: AvailabilityService = Depends(get_availability_service),
):
    """Remove one of the current teacher's slots"""
    return service.delete_slot(slotId, current_user)
