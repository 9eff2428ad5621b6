"""Booking domain schemas - Pydantic models for private lesson bookings"""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class LessonInfo(BaseModel):
    """The private lesson being booked, as the booking surface sees it"""

    id: str
    title: str
    regular_price: float
    member_price: Optional[float] = None
    duration_minutes: int = 60
    location_type: str = "online"


LOCATION_LABELS = {
    "online": "Online",
    "in_person": "In Person",
    "both": "Online or In Person",
}


def location_label(location_type: Optional[str]) -> str:
    return LOCATION_LABELS.get(location_type or "", "Location TBD")


class StudentContact(BaseModel):
    email: str = ""
    name: str = ""
    message: str = ""
    phone: str = ""
    preferred_contact: str = "email"


class BookingCreate(BaseModel):
    """Schema for placing a provisional booking"""

    student_email: Optional[str] = None
    student_name: Optional[str] = None
    student_message: Optional[str] = None
    contact_info: dict[str, Any] = Field(default_factory=dict)
    scheduled_at: Optional[datetime] = None
    availability_slot_id: Optional[str] = None


class BookingResponse(BaseModel):
    """Schema for a stored booking"""

    model_config = ConfigDict(from_attributes=True)

    id: str
    private_lesson_id: str
    community_id: str
    student_id: str
    student_email: str
    student_name: Optional[str] = None
    is_community_member: bool
    price_paid: float
    stripe_payment_intent_id: Optional[str] = None
    payment_status: str
    lesson_status: str
    scheduled_at: Optional[datetime] = None
    availability_slot_id: Optional[str] = None
    student_message: Optional[str] = None
    contact_info: Optional[dict[str, Any]] = None
    created_at: Optional[datetime] = None


class BookingCreated(BaseModel):
    """create-booking result: the provisional booking and what is needed to pay for it"""

    model_config = ConfigDict(populate_by_name=True)

    booking: dict[str, Any] = Field(default_factory=dict)
    client_secret: str = Field(alias="clientSecret")
    stripe_account_id: str = Field(alias="stripeAccountId")
    price: float
