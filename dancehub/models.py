import uuid

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .database import Base


def generate_id():
    """Generate a UUID string primary key"""
    return str(uuid.uuid4())


class Community(Base):
    __tablename__ = "communities"

    id = Column(String(36), primary_key=True, default=generate_id)
    slug = Column(String(255), unique=True, index=True, nullable=False)
    name = Column(String(255), nullable=False)
    created_by = Column(String(36), index=True, nullable=False)  # Auth provider user id
    status = Column(String(50), default="active", nullable=False)
    # Connected Stripe account; set on first provisioning, cleared when Stripe no longer knows it
    stripe_account_id = Column(String(255), nullable=True, index=True)
    stripe_onboarding_type = Column(String(50), nullable=True)  # custom
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    members = relationship("CommunityMember", back_populates="community", cascade="all, delete-orphan")
    private_lessons = relationship(
        "PrivateLesson", back_populates="community", cascade="all, delete-orphan"
    )


class CommunityMember(Base):
    __tablename__ = "community_members"

    id = Column(String(36), primary_key=True, default=generate_id)
    community_id = Column(String(36), ForeignKey("communities.id"), index=True, nullable=False)
    user_id = Column(String(36), index=True, nullable=False)
    status = Column(String(50), default="active", nullable=False)  # active, inactive, banned
    joined_at = Column(DateTime(timezone=True), server_default=func.now())

    community = relationship("Community", back_populates="members")


class PrivateLesson(Base):
    __tablename__ = "private_lessons"

    id = Column(String(36), primary_key=True, default=generate_id)
    community_id = Column(String(36), ForeignKey("communities.id"), index=True, nullable=False)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    duration_minutes = Column(Integer, default=60, nullable=False)
    regular_price = Column(Float, nullable=False)
    member_price = Column(Float, nullable=True)  # Must be lower than regular_price to apply
    is_active = Column(Boolean, default=True, nullable=False)
    location_type = Column(String(20), default="online", nullable=False)  # online, in_person, both
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    community = relationship("Community", back_populates="private_lessons")
    bookings = relationship("LessonBooking", back_populates="private_lesson")


class TeacherAvailabilitySlot(Base):
    __tablename__ = "teacher_availability_slots"

    id = Column(String(36), primary_key=True, default=generate_id)
    teacher_id = Column(String(36), index=True, nullable=False)
    community_id = Column(String(36), ForeignKey("communities.id"), index=True, nullable=False)
    availability_date = Column(String(10), index=True, nullable=False)  # YYYY-MM-DD, local date
    start_time = Column(String(5), nullable=False)  # HH:MM
    end_time = Column(String(5), nullable=False)  # HH:MM
    is_active = Column(Boolean, default=True, nullable=False)  # Deletes are soft
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class LessonBooking(Base):
    __tablename__ = "lesson_bookings"

    id = Column(String(36), primary_key=True, default=generate_id)
    private_lesson_id = Column(String(36), ForeignKey("private_lessons.id"), index=True, nullable=False)
    community_id = Column(String(36), ForeignKey("communities.id"), index=True, nullable=False)
    student_id = Column(String(36), index=True, nullable=False)
    student_email = Column(String(255), nullable=False)
    student_name = Column(String(255), nullable=True)
    is_community_member = Column(Boolean, default=False, nullable=False)
    price_paid = Column(Float, nullable=False)
    stripe_payment_intent_id = Column(String(255), nullable=True, index=True)
    payment_status = Column(String(20), default="pending", nullable=False)  # pending, succeeded, failed, canceled
    lesson_status = Column(String(20), default="booked", nullable=False)  # booked, scheduled, completed, canceled
    scheduled_at = Column(DateTime(timezone=True), nullable=True)
    availability_slot_id = Column(
        String(36), ForeignKey("teacher_availability_slots.id"), nullable=True
    )
    student_message = Column(Text, nullable=True)
    contact_info = Column(JSON, default=dict, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    private_lesson = relationship("PrivateLesson", back_populates="bookings")
