"""
Private lesson booking, from slot selection through payment.

The flow moves selecting -> awaiting_payment -> confirmed. A booking created
on the server stays provisional until payment is confirmed; a failed payment
leaves it pending for the caller to retry. Reconciling abandoned bookings is
left to the payment webhook.
"""

import asyncio
import logging
from datetime import datetime, tzinfo
from enum import Enum
from typing import Awaitable, Callable, Iterable, Optional, Protocol

from ...auth import AuthUser
from ...shared.errors import BookingError, GatewayError, PaymentError
from ...shared.notifications import LoggingNotifier, Notifier
from ..scheduling.offer import is_offerable, offerable, slot_start
from ..scheduling.schemas import AvailabilitySlot
from .pricing import has_member_discount, select_price
from .schemas import BookingCreated, LessonInfo, StudentContact

logger = logging.getLogger(__name__)

SIGN_IN_REQUIRED_MESSAGE = "Please sign in to book a lesson"
SELECT_SLOT_MESSAGE = "Please select an available time slot"
SLOT_UNAVAILABLE_MESSAGE = "This time slot is no longer available"
EMAIL_REQUIRED_MESSAGE = "Email is required"
BOOKING_FAILED_MESSAGE = "Failed to create booking"
PAYMENT_FAILED_MESSAGE = "Payment failed. Your booking is pending and you can retry the payment."


class BookingGateway(Protocol):
    async def create_booking(self, community_slug: str, lesson_id: str, request: dict) -> BookingCreated: ...


class PaymentConfirmer(Protocol):
    async def confirm(self, client_secret: str, stripe_account_id: str) -> bool: ...


class BookingState(str, Enum):
    SELECTING = "selecting"
    AWAITING_PAYMENT = "awaiting_payment"
    CONFIRMED = "confirmed"
    CLOSED = "closed"


class BookingFlow:
    """
    Books one private lesson for one student.

    Args:
        community_slug: Community the lesson belongs to
        lesson: Lesson being booked
        actor: Signed-in user, or None when nobody is signed in
        is_member: Whether the actor is a member of the community
        gateway: create-booking collaborator
        payments: confirm-payment collaborator
        on_sign_in_required: Called when an anonymous user tries to book
        on_success: Awaited with the booking once payment is confirmed
        now: Clock used for slot offerability
        tz: Zone the slot's local date/time is expressed in (system zone when None)
    """

    def __init__(
        self,
        community_slug: str,
        lesson: LessonInfo,
        actor: Optional[AuthUser],
        is_member: bool,
        gateway: BookingGateway,
        payments: PaymentConfirmer,
        notifier: Optional[Notifier] = None,
        on_sign_in_required: Optional[Callable[[], None]] = None,
        on_success: Optional[Callable[[BookingCreated], Awaitable[None]]] = None,
        now: Callable[[], datetime] = datetime.now,
        tz: Optional[tzinfo] = None,
    ):
        self.community_slug = community_slug
        self.lesson = lesson
        self.actor = actor
        self.is_member = is_member
        self.gateway = gateway
        self.payments = payments
        self.notifier = notifier or LoggingNotifier()
        self.on_sign_in_required = on_sign_in_required
        self.on_success = on_success
        self.now = now
        self.tz = tz

        # Fixed for the lifetime of the flow
        self.price = select_price(lesson.regular_price, lesson.member_price, is_member)
        self.member_discount = has_member_discount(lesson.regular_price, lesson.member_price, is_member)

        self.state = BookingState.SELECTING
        self.selected_slot: Optional[AvailabilitySlot] = None
        self.contact = StudentContact(email=actor.email if actor and actor.email else "")
        self.booking: Optional[BookingCreated] = None
        self.is_submitting = False

        self._generation = 0
        self._lock = asyncio.Lock()
        self._observers: list[Callable[["BookingFlow"], None]] = []

    def subscribe(self, callback: Callable[["BookingFlow"], None]) -> Callable[[], None]:
        self._observers.append(callback)

        def unsubscribe() -> None:
            if callback in self._observers:
                self._observers.remove(callback)

        return unsubscribe

    def _changed(self) -> None:
        for callback in list(self._observers):
            callback(self)

    def _is_stale(self, generation: int) -> bool:
        return generation != self._generation or self.state == BookingState.CLOSED

    @property
    def is_open(self) -> bool:
        return self.state != BookingState.CLOSED

    def available_slots(self, slots: Iterable[AvailabilitySlot]) -> list[AvailabilitySlot]:
        """Slots that can still be booked, evaluated against the clock on every call"""
        return offerable(slots, self.now(), self.tz)

    def select_slot(self, slot: AvailabilitySlot) -> bool:
        if self.state != BookingState.SELECTING:
            return False
        if not is_offerable(slot, self.now(), self.tz):
            self.notifier.error(SLOT_UNAVAILABLE_MESSAGE)
            return False
        self.selected_slot = slot
        self._changed()
        return True

    def update_contact(self, **changes) -> None:
        self.contact = self.contact.model_copy(update=changes)
        self._changed()

    def scheduled_at(self, slot: AvailabilitySlot) -> datetime:
        """The slot's start as an absolute instant"""
        return slot_start(slot, self.tz)

    def booking_request(self, slot: AvailabilitySlot) -> dict:
        return {
            "student_email": self.contact.email.strip(),
            "student_name": self.contact.name.strip() or None,
            "student_message": self.contact.message.strip() or None,
            "contact_info": {
                "phone": self.contact.phone.strip() or None,
                "preferred_contact": self.contact.preferred_contact,
            },
            "scheduled_at": self.scheduled_at(slot).isoformat(),
            "availability_slot_id": slot.id,
        }

    def _check_ready(self) -> AvailabilitySlot:
        """
        Raises:
            BookingError: Not signed in, no usable slot, or no email
        """
        if self.actor is None:
            if self.on_sign_in_required:
                self.on_sign_in_required()
            raise BookingError(SIGN_IN_REQUIRED_MESSAGE)

        slot = self.selected_slot
        if slot is None:
            raise BookingError(SELECT_SLOT_MESSAGE)
        if not is_offerable(slot, self.now(), self.tz):
            self.selected_slot = None
            raise BookingError(SLOT_UNAVAILABLE_MESSAGE)

        if not self.contact.email.strip():
            raise BookingError(EMAIL_REQUIRED_MESSAGE)
        return slot

    async def submit(self) -> Optional[BookingCreated]:
        """Place the provisional booking; returns it, or None after notifying why not"""
        async with self._lock:
            if self.state != BookingState.SELECTING:
                return self.booking

            try:
                slot = self._check_ready()
            except BookingError as e:
                self.notifier.error(e.message)
                return None

            generation = self._generation
            self.is_submitting = True
            self._changed()
            try:
                created = await self.gateway.create_booking(
                    self.community_slug, self.lesson.id, self.booking_request(slot)
                )
            except GatewayError as e:
                logger.error(f"❌ Booking lesson {self.lesson.id} failed: {e.message}")
                if not self._is_stale(generation):
                    self.notifier.error(e.message or BOOKING_FAILED_MESSAGE)
                return None
            finally:
                if not self._is_stale(generation):
                    self.is_submitting = False

            if self._is_stale(generation):
                return None

            self.booking = created
            self.state = BookingState.AWAITING_PAYMENT
            logger.info(f"📝 Provisional booking for lesson {self.lesson.id} at {created.price}")
            self._changed()
            return created

    async def pay(self) -> bool:
        """Confirm payment for the provisional booking; on failure it stays pending and can be retried"""
        async with self._lock:
            if self.state != BookingState.AWAITING_PAYMENT or self.booking is None:
                return False

            booking = self.booking
            generation = self._generation
            try:
                confirmed = await self.payments.confirm(booking.client_secret, booking.stripe_account_id)
                if not confirmed:
                    raise PaymentError(PAYMENT_FAILED_MESSAGE)
            except GatewayError as e:
                logger.error(f"❌ Payment for lesson {self.lesson.id} failed: {e.message}")
                if not self._is_stale(generation):
                    self.notifier.error(PAYMENT_FAILED_MESSAGE)
                return False
            except PaymentError as e:
                logger.warning(f"⚠️ Payment for lesson {self.lesson.id} was not confirmed")
                if not self._is_stale(generation):
                    self.notifier.error(e.message)
                return False

            if self._is_stale(generation):
                return False

            self.state = BookingState.CONFIRMED
            self.notifier.success("Lesson booked successfully!")

        if self.on_success:
            try:
                await self.on_success(booking)
            except Exception as e:
                logger.error(f"❌ Success callback for lesson {self.lesson.id} failed: {e}")
        self.close()
        return True

    async def book(self) -> bool:
        """submit() followed by pay()"""
        if await self.submit() is None:
            return False
        return await self.pay()

    def close(self) -> None:
        """Close the booking surface; late results from in-flight calls are ignored"""
        self._generation += 1
        self.state = BookingState.CLOSED
        self.is_submitting = False
        self._changed()
