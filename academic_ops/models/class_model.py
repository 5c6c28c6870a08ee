# academic_ops/models/class_model.py
from sqlalchemy import Column, String, Integer, Text, ForeignKey, Uuid, UniqueConstraint, CheckConstraint, Index
from sqlalchemy.orm import relationship
from .base import Base
from .branch import _in_clause
from .enums import ClassStatus, enum_values


class ClassModel(Base):
    __tablename__ = "classes"

    # Foreign Keys
    branch_id = Column(Uuid(as_uuid=True), ForeignKey("branches.id", ondelete="CASCADE"), nullable=False, index=True)
    teacher_id = Column(Uuid(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)

    # Class Information
    class_name = Column(String(50), nullable=False)
    grade = Column(String(100))
    standard = Column(String(50))
    semester = Column(String(50))
    capacity = Column(Integer, default=30)
    room_number = Column(String(20))
    schedule = Column(Text)
    academic_year = Column(String(20), nullable=False, index=True)
    status = Column(String(20), default=ClassStatus.ACTIVE.value, nullable=False)

    __table_args__ = (
        UniqueConstraint("branch_id", "class_name", "academic_year", name="uq_classes_branch_name_year"),
        CheckConstraint(_in_clause("status", enum_values(ClassStatus)), name="classes_status_check"),
        Index("idx_classes_teacher_year", "teacher_id", "academic_year"),
    )

    # Relationships
    slots = relationship(
        "TimetableSlot", back_populates="class_ref",
        cascade="all, delete-orphan", passive_deletes=True, lazy="raise",
    )
    attendance_records = relationship(
        "AttendanceRecord", back_populates="class_ref",
        cascade="all, delete-orphan", passive_deletes=True, lazy="raise",
    )
