from datetime import datetime, timezone
from zoneinfo import ZoneInfo

import pytest

from dancehub.auth import AuthUser
from dancehub.domain.booking.flow import (
    EMAIL_REQUIRED_MESSAGE,
    PAYMENT_FAILED_MESSAGE,
    SELECT_SLOT_MESSAGE,
    SIGN_IN_REQUIRED_MESSAGE,
    SLOT_UNAVAILABLE_MESSAGE,
    BookingFlow,
    BookingState,
)
from dancehub.domain.booking.pricing import has_member_discount, select_price, to_cents
from dancehub.domain.booking.schemas import LessonInfo, location_label
from dancehub.domain.scheduling.schemas import AvailabilitySlot
from dancehub.shared.errors import GatewayError

from .fakes import COMMUNITY_SLUG, FakeBookingGateway, FakePaymentConfirmer

STUDENT = AuthUser(id="student-1", email="student@example.com")
LESSON = LessonInfo(id="lesson-1", title="Bachata Basics", regular_price=60.0, member_price=45.0)
SLOT = AvailabilitySlot(id="slot-1", date="2024-06-02", start_time="18:00", end_time="19:00")


class Clock:
    def __init__(self, now):
        self.now = now

    def __call__(self):
        return self.now


@pytest.fixture
def clock():
    return Clock(datetime(2024, 6, 1, 10, 0, tzinfo=timezone.utc))


@pytest.fixture
def gateway():
    return FakeBookingGateway()


@pytest.fixture
def payments():
    return FakePaymentConfirmer()


@pytest.fixture
def make_flow(gateway, payments, notifier, clock):
    def make(actor=STUDENT, is_member=False, **kwargs):
        return BookingFlow(
            COMMUNITY_SLUG,
            LESSON,
            actor,
            is_member,
            gateway,
            payments,
            notifier=notifier,
            now=clock,
            tz=timezone.utc,
            **kwargs,
        )

    return make


@pytest.mark.parametrize(
    "regular, member, is_member, expected",
    [
        (60.0, 45.0, True, 45.0),
        (60.0, 45.0, False, 60.0),
        (60.0, None, True, 60.0),
        (60.0, 70.0, True, 60.0),
        (60.0, 60.0, True, 60.0),
    ],
)
def test_price_selection(regular, member, is_member, expected):
    assert select_price(regular, member, is_member) == expected
    assert has_member_discount(regular, member, is_member) is (expected < regular)


def test_cents_rounding():
    assert to_cents(19.99) == 1999
    assert to_cents(45) == 4500


def test_location_labels():
    assert location_label("in_person") == "In Person"
    assert location_label(None) == "Location TBD"


async def test_booking_and_payment(make_flow, gateway, payments, notifier):
    booked = []

    async def on_success(booking):
        booked.append(booking)

    flow = make_flow(is_member=True, on_success=on_success)
    assert flow.price == 45.0
    assert flow.contact.email == "student@example.com"

    assert flow.select_slot(SLOT)
    flow.update_contact(name="Ana", phone="+1 555 0100", message="First lesson")
    assert await flow.book()

    slug, lesson_id, request = gateway.requests[0]
    assert (slug, lesson_id) == (COMMUNITY_SLUG, "lesson-1")
    assert request["scheduled_at"] == "2024-06-02T18:00:00+00:00"
    assert request["availability_slot_id"] == "slot-1"
    assert request["student_email"] == "student@example.com"
    assert request["contact_info"] == {"phone": "+1 555 0100", "preferred_contact": "email"}

    assert payments.calls == [("pi_123_secret_abc", "acct_test_1")]
    assert booked[0].client_secret == "pi_123_secret_abc"
    assert flow.state == BookingState.CLOSED
    assert "Lesson booked successfully!" in notifier.of_level("success")


async def test_anonymous_user_is_sent_to_sign_in(make_flow, gateway, notifier):
    prompts = []
    flow = make_flow(actor=None, on_sign_in_required=lambda: prompts.append(True))
    flow.select_slot(SLOT)

    assert await flow.submit() is None
    assert prompts == [True]
    assert gateway.requests == []
    assert notifier.of_level("error") == [SIGN_IN_REQUIRED_MESSAGE]


async def test_slot_is_required(make_flow, gateway, notifier):
    assert await make_flow().submit() is None
    assert gateway.requests == []
    assert notifier.of_level("error") == [SELECT_SLOT_MESSAGE]


async def test_slot_that_started_meanwhile_is_rejected(make_flow, gateway, notifier, clock):
    flow = make_flow()
    assert flow.select_slot(SLOT)

    clock.now = datetime(2024, 6, 2, 18, 5, tzinfo=timezone.utc)
    assert await flow.submit() is None
    assert flow.selected_slot is None
    assert gateway.requests == []
    assert notifier.of_level("error") == [SLOT_UNAVAILABLE_MESSAGE]


async def test_past_slot_cannot_be_selected(make_flow, notifier):
    past = SLOT.model_copy(update={"date": "2024-05-31"})
    flow = make_flow()
    assert not flow.select_slot(past)
    assert flow.available_slots([past, SLOT]) == [SLOT]


async def test_email_is_required(make_flow, gateway, notifier):
    flow = make_flow(actor=AuthUser(id="student-2"))
    flow.select_slot(SLOT)

    assert await flow.submit() is None
    assert notifier.of_level("error") == [EMAIL_REQUIRED_MESSAGE]


async def test_failed_create_shows_server_message(make_flow, gateway, notifier):
    gateway.error = GatewayError("You already have a pending booking for this lesson", 400)
    flow = make_flow()
    flow.select_slot(SLOT)

    assert not await flow.book()
    assert flow.state == BookingState.SELECTING
    assert flow.booking is None
    assert notifier.of_level("error") == ["You already have a pending booking for this lesson"]


async def test_failed_payment_leaves_booking_pending(make_flow, gateway, payments, notifier):
    payments.results = [False, GatewayError("card_declined", 402), True]
    flow = make_flow()
    flow.select_slot(SLOT)

    assert not await flow.book()
    assert flow.state == BookingState.AWAITING_PAYMENT
    assert flow.booking is not None

    assert not await flow.pay()
    assert notifier.of_level("error") == [PAYMENT_FAILED_MESSAGE, PAYMENT_FAILED_MESSAGE]

    # Retrying pays for the same booking without creating another
    assert await flow.pay()
    assert len(gateway.requests) == 1
    assert len(payments.calls) == 3


async def test_price_is_fixed_at_start(make_flow):
    flow = make_flow(is_member=True)
    flow.is_member = False
    flow.select_slot(SLOT)
    assert flow.price == 45.0


async def test_closed_flow_ignores_late_booking(make_flow, gateway, notifier):
    flow = make_flow()
    flow.select_slot(SLOT)
    flow.close()

    assert await flow.submit() is None
    assert not await flow.pay()


NEW_YORK = ZoneInfo("America/New_York")


async def test_slots_are_read_in_the_lesson_time_zone(gateway, payments, notifier):
    morning = AvailabilitySlot(id="slot-9", date="2024-06-01", start_time="09:00", end_time="10:00")
    late_morning = AvailabilitySlot(id="slot-11", date="2024-06-01", start_time="11:00", end_time="12:00")
    # 14:30 UTC is 10:30 in New York
    clock = Clock(datetime(2024, 6, 1, 14, 30, tzinfo=timezone.utc))
    flow = BookingFlow(
        COMMUNITY_SLUG, LESSON, STUDENT, False, gateway, payments, notifier=notifier, now=clock, tz=NEW_YORK
    )

    assert flow.available_slots([morning, late_morning]) == [late_morning]
    assert not flow.select_slot(morning)
    assert flow.select_slot(late_morning)

    assert await flow.submit() is not None
    assert gateway.requests[0][2]["scheduled_at"] == "2024-06-01T11:00:00-04:00"


async def test_clock_in_the_lesson_time_zone(gateway, payments, notifier):
    slot = AvailabilitySlot(id="slot-11", date="2024-06-01", start_time="11:00", end_time="12:00")
    clock = Clock(datetime(2024, 6, 1, 10, 0, tzinfo=NEW_YORK))
    flow = BookingFlow(
        COMMUNITY_SLUG, LESSON, STUDENT, False, gateway, payments, notifier=notifier, now=clock, tz=NEW_YORK
    )

    assert flow.available_slots([slot]) == [slot]

    clock.now = datetime(2024, 6, 1, 11, 0, tzinfo=NEW_YORK)
    assert flow.available_slots([slot]) == []


async def test_failing_success_callback_still_closes(make_flow, notifier):
    async def on_success(booking):
        raise RuntimeError("calendar sync failed")

    flow = make_flow(on_success=on_success)
    flow.select_slot(SLOT)

    assert await flow.book()
    assert flow.state == BookingState.CLOSED
    assert "Lesson booked successfully!" in notifier.of_level("success")
