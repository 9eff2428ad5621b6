"""Booking router - FastAPI endpoints for private lesson bookings"""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ...auth import AuthUser, get_current_user
from ...database import get_db
from ...services.stripe_service import StripeConnectService
from ..onboarding.router import get_stripe_service
from .schemas import BookingCreate
from .service import BookingService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/community/{slug}/private-lessons", tags=["Private Lessons"])


def get_booking_service(
    db: Session = Depends(get_db),
    stripe_client: StripeConnectService = Depends(get_stripe_service),
) -> BookingService:
    """Dependency injection for BookingService"""
    return BookingService(db, stripe_client)


@router.post("/{lesson_id}/book")
async def book_private_lesson(
    slug: str,
    lesson_id: str,
    data: BookingCreate,
    current_user: AuthUser = Depends(get_current_user),
    service: BookingService = Depends(get_booking_service),
):
    """Place a provisional booking and return the client secret needed to pay for it"""
    return await service.book_lesson(slug, lesson_id, data, current_user)
