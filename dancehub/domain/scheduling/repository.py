"""Scheduling repository - Database operations for teacher availability"""

from typing import Optional

from sqlalchemy.orm import Session

from ...models import TeacherAvailabilitySlot


class AvailabilityRepository:
    """Repository for availability slot database operations"""

    @staticmethod
    def list_slots(
        db: Session,
        teacher_id: str,
        community_id: str,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
    ) -> list[TeacherAvailabilitySlot]:
        """Active slots ordered by date, then start time"""
        query = db.query(TeacherAvailabilitySlot).filter(
            TeacherAvailabilitySlot.teacher_id == teacher_id,
            TeacherAvailabilitySlot.community_id == community_id,
            TeacherAvailabilitySlot.is_active.is_(True),
        )
        # YYYY-MM-DD strings order the same way as the dates they name
        if start_date:
            query = query.filter(TeacherAvailabilitySlot.availability_date >= start_date)
        if end_date:
            query = query.filter(TeacherAvailabilitySlot.availability_date <= end_date)

        return query.order_by(
            TeacherAvailabilitySlot.availability_date.asc(),
            TeacherAvailabilitySlot.start_time.asc(),
        ).all()

    @staticmethod
    def slots_on_date(
        db: Session, teacher_id: str, community_id: str, availability_date: str
    ) -> list[TeacherAvailabilitySlot]:
        return (
            db.query(TeacherAvailabilitySlot)
            .filter(
                TeacherAvailabilitySlot.teacher_id == teacher_id,
                TeacherAvailabilitySlot.community_id == community_id,
                TeacherAvailabilitySlot.availability_date == availability_date,
                TeacherAvailabilitySlot.is_active.is_(True),
            )
            .all()
        )

    @staticmethod
    def get_slot(db: Session, slot_id: str) -> Optional[TeacherAvailabilitySlot]:
        return db.query(TeacherAvailabilitySlot).filter(TeacherAvailabilitySlot.id == slot_id).first()

    @staticmethod
    def create_slot(db: Session, **slot_data) -> TeacherAvailabilitySlot:
        slot = TeacherAvailabilitySlot(is_active=True, **slot_data)
        db.add(slot)
        db.commit()
        db.refresh(slot)
        return slot

    @staticmethod
    def deactivate_slot(db: Session, slot_id: str, teacher_id: str) -> int:
        """Soft delete; only the owning teacher's slot is touched. Returns rows updated."""
        updated = (
            db.query(TeacherAvailabilitySlot)
            .filter(TeacherAvailabilitySlot.id == slot_id, TeacherAvailabilitySlot.teacher_id == teacher_id)
            .update({TeacherAvailabilitySlot.is_active: False}, synchronize_session=False)
        )
        db.commit()
        return updated
