"""Booking repository - Database operations for private lessons and their bookings"""

from typing import Optional

from sqlalchemy.orm import Session

from ...models import CommunityMember, LessonBooking, PrivateLesson, TeacherAvailabilitySlot


class BookingRepository:
    """Repository for lesson booking database operations"""

    @staticmethod
    def get_active_lesson(db: Session, lesson_id: str, community_id: str) -> Optional[PrivateLesson]:
        return (
            db.query(PrivateLesson)
            .filter(
                PrivateLesson.id == lesson_id,
                PrivateLesson.community_id == community_id,
                PrivateLesson.is_active.is_(True),
            )
            .first()
        )

    @staticmethod
    def is_active_member(db: Session, community_id: str, user_id: str) -> bool:
        return (
            db.query(CommunityMember)
            .filter(
                CommunityMember.community_id == community_id,
                CommunityMember.user_id == user_id,
                CommunityMember.status == "active",
            )
            .first()
            is not None
        )

    @staticmethod
    def get_active_slot(db: Session, slot_id: str, community_id: str) -> Optional[TeacherAvailabilitySlot]:
        return (
            db.query(TeacherAvailabilitySlot)
            .filter(
                TeacherAvailabilitySlot.id == slot_id,
                TeacherAvailabilitySlot.community_id == community_id,
                TeacherAvailabilitySlot.is_active.is_(True),
            )
            .first()
        )

    @staticmethod
    def get_pending_booking(db: Session, lesson_id: str, student_id: str) -> Optional[LessonBooking]:
        return (
            db.query(LessonBooking)
            .filter(
                LessonBooking.private_lesson_id == lesson_id,
                LessonBooking.student_id == student_id,
                LessonBooking.payment_status == "pending",
            )
            .first()
        )

    @staticmethod
    def create_booking(db: Session, **booking_data) -> LessonBooking:
        booking = LessonBooking(payment_status="pending", lesson_status="booked", **booking_data)
        db.add(booking)
        db.commit()
        db.refresh(booking)
        return booking
