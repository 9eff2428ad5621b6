"""Scheduling domain schemas - Pydantic models for teacher availability"""

from datetime import datetime
from typing import NamedTuple, Optional

from pydantic import BaseModel, ConfigDict, Field


class TimeOption(NamedTuple):
    value: str  # HH:MM
    label: str  # 12-hour display


def format_time(time: str) -> str:
    """'13:30' -> '1:30 PM', '00:00' -> '12:00 AM'"""
    hours, minutes = time.split(":")
    hour = int(hours)
    display_hour = 12 if hour == 0 else hour - 12 if hour > 12 else hour
    ampm = "AM" if hour < 12 else "PM"
    return f"{display_hour}:{minutes} {ampm}"


# Every 30 minutes from 00:00 to 23:30
TIME_OPTIONS = [
    TimeOption(value, format_time(value))
    for value in (f"{i // 2:02d}:{(i % 2) * 30:02d}" for i in range(48))
]


class AvailabilitySlot(BaseModel):
    """A teacher's bookable interval on one local date; id is set once the server has stored it"""

    model_config = ConfigDict(frozen=True)

    id: Optional[str] = None
    date: str  # YYYY-MM-DD
    start_time: str  # HH:MM
    end_time: str  # HH:MM
    teacher_id: Optional[str] = None


class DayAvailability(BaseModel):
    model_config = ConfigDict(frozen=True)

    date: str
    slots: tuple[AvailabilitySlot, ...] = Field(default_factory=tuple)


# ============================================================================
# API SCHEMAS
# ============================================================================


class SlotCreate(BaseModel):
    """Schema for adding an availability slot; formats are checked by the service"""

    date: Optional[str] = None
    start_time: Optional[str] = None
    end_time: Optional[str] = None


class SlotResponse(BaseModel):
    """Schema for an availability slot as stored"""

    model_config = ConfigDict(from_attributes=True)

    id: str
    teacher_id: str
    community_id: str
    availability_date: str
    start_time: str
    end_time: str
    is_active: bool
    created_at: Optional[datetime] = None
