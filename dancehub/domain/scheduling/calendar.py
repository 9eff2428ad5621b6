"""
Month grid for the teacher availability calendar.

The grid is always six weeks (42 cells) starting on the Sunday on or before
the 1st, so every month renders with the same shape.
"""

from dataclasses import dataclass
from datetime import date, timedelta
from typing import Iterable, Optional

from .schemas import DayAvailability

GRID_SIZE = 42


@dataclass(frozen=True)
class CalendarDay:
    date: date
    is_current_month: bool
    is_today: bool
    is_past: bool
    has_availability: bool

    @property
    def iso(self) -> str:
        return self.date.isoformat()


def grid_start(year: int, month: int) -> date:
    first = date(year, month, 1)
    # weekday(): Monday=0 .. Sunday=6
    return first - timedelta(days=(first.weekday() + 1) % 7)


def build_grid(
    year: int,
    month: int,
    today: Optional[date] = None,
    availability: Iterable[DayAvailability] = (),
) -> list[CalendarDay]:
    today = today or date.today()
    available_dates = {day.date for day in availability if day.slots}
    start = grid_start(year, month)

    cells = []
    for offset in range(GRID_SIZE):
        day = start + timedelta(days=offset)
        cells.append(
            CalendarDay(
                date=day,
                is_current_month=day.month == month,
                is_today=day == today,
                is_past=day < today,
                has_availability=day.isoformat() in available_dates,
            )
        )
    return cells


def handle_date_click(day: CalendarDay) -> Optional[str]:
    """The date whose slot editor should open, or None for past days"""
    if day.is_past:
        return None
    return day.iso


def previous_month(year: int, month: int) -> tuple[int, int]:
    if month == 1:
        return year - 1, 12
    return year, month - 1


def next_month(year: int, month: int) -> tuple[int, int]:
    if month == 12:
        return year + 1, 1
    return year, month + 1


def month_title(year: int, month: int) -> str:
    return date(year, month, 1).strftime("%B %Y")
