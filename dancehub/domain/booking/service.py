"""Booking service - Business logic for placing provisional private lesson bookings"""

import logging

import stripe
from fastapi import HTTPException
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ...auth import AuthUser
from ...config import LESSON_CURRENCY
from ...services.stripe_service import StripeConnectService
from ..onboarding.repository import CommunityRepository
from ..onboarding.service import stripe_http_error
from .pricing import select_price, to_cents
from .repository import BookingRepository
from .schemas import BookingCreate, BookingResponse

logger = logging.getLogger(__name__)


class BookingService:
    """Service layer for lesson bookings"""

    def __init__(self, db: Session, stripe_client: StripeConnectService):
        self.db = db
        self.stripe = stripe_client
        self.repo = BookingRepository()
        self.communities = CommunityRepository()

    async def book_lesson(self, slug: str, lesson_id: str, data: BookingCreate, user: AuthUser) -> dict:
        """
        Create a pending booking and the PaymentIntent that pays for it.

        The booking stays pending until the payment webhook reconciles it.
        """
        community = self.communities.get_by_slug(self.db, slug)
        if not community:
            raise HTTPException(status_code=404, detail="Community not found")
        if not community.stripe_account_id:
            raise HTTPException(status_code=400, detail="Community payment processing not set up")

        lesson = self.repo.get_active_lesson(self.db, lesson_id, community.id)
        if not lesson:
            raise HTTPException(status_code=404, detail="Private lesson not found or not available")

        is_member = self.repo.is_active_member(self.db, community.id, user.id)
        price = select_price(lesson.regular_price, lesson.member_price, is_member)

        student_email = (data.student_email or "").strip()
        if not student_email:
            raise HTTPException(status_code=400, detail="Email is required")

        if data.availability_slot_id and not self.repo.get_active_slot(
            self.db, data.availability_slot_id, community.id
        ):
            raise HTTPException(status_code=400, detail="Selected time slot is no longer available")

        if self.repo.get_pending_booking(self.db, lesson.id, user.id):
            raise HTTPException(status_code=400, detail="You already have a pending booking for this lesson")

        try:
            payment_intent = await self.stripe.create_payment_intent(
                community.stripe_account_id,
                amount_cents=to_cents(price),
                currency=LESSON_CURRENCY,
                metadata={
                    "type": "private_lesson",
                    "lesson_id": lesson.id,
                    "community_id": community.id,
                    "student_id": user.id,
                    "is_member": str(is_member).lower(),
                    "availability_slot_id": data.availability_slot_id or "",
                },
                description=f"Private Lesson: {lesson.title} - {community.name}",
                receipt_email=student_email,
            )
        except stripe.StripeError as e:
            logger.error(f"❌ PaymentIntent creation failed for lesson {lesson.id}: {e}")
            raise stripe_http_error(e, "Failed to create payment") from e

        try:
            booking = self.repo.create_booking(
                self.db,
                private_lesson_id=lesson.id,
                community_id=community.id,
                student_id=user.id,
                student_email=student_email,
                student_name=data.student_name,
                is_community_member=is_member,
                price_paid=price,
                stripe_payment_intent_id=payment_intent["id"],
                scheduled_at=data.scheduled_at,
                availability_slot_id=data.availability_slot_id,
                student_message=data.student_message,
                contact_info=data.contact_info,
            )
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"❌ Could not store booking for lesson {lesson.id}, canceling payment: {e}")
            try:
                await self.stripe.cancel_payment_intent(community.stripe_account_id, payment_intent["id"])
            except stripe.StripeError as cancel_error:
                logger.error(f"❌ Failed to cancel PaymentIntent {payment_intent['id']}: {cancel_error}")
            raise HTTPException(status_code=500, detail="Failed to create booking") from e

        logger.info(
            f"💃 Booking {booking.id} created for lesson {lesson.id} "
            f"(member={is_member}, price={price} {LESSON_CURRENCY})"
        )
        return {
            "booking": BookingResponse.model_validate(booking).model_dump(mode="json"),
            "clientSecret": payment_intent["client_secret"],
            "stripeAccountId": community.stripe_account_id,
            "price": price,
        }
