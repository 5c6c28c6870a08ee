# academic_ops/models/timetable.py
from sqlalchemy import Column, String, Integer, Time, ForeignKey, Uuid, CheckConstraint, Index
from sqlalchemy.orm import relationship
from .base import Base
from .enums import DAY_NAMES


class TimetableSlot(Base):
    """One weekly recurring slot of a class.

    Slots of the same class and day never overlap; intervals are half-open
    ``[start_time, end_time)`` so back-to-back slots are allowed.
    """
    __tablename__ = "timetable_slots"

    # Foreign Keys
    branch_id = Column(Uuid(as_uuid=True), ForeignKey("branches.id", ondelete="CASCADE"), nullable=False, index=True)
    class_id = Column(Uuid(as_uuid=True), ForeignKey("classes.id", ondelete="CASCADE"), nullable=False)
    teacher_id = Column(Uuid(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    # Slot Information
    subject = Column(String(100), nullable=False)
    day_of_week = Column(Integer, nullable=False)
    start_time = Column(Time, nullable=False)  # wall-clock local time
    end_time = Column(Time, nullable=False)
    room_number = Column(String(20))
    academic_year = Column(String(20), nullable=False, index=True)
    semester = Column(String(50))

    __table_args__ = (
        CheckConstraint("day_of_week >= 1 AND day_of_week <= 7", name="timetable_slots_day_of_week_check"),
        CheckConstraint("start_time < end_time", name="timetable_slots_time_range_check"),
        Index("idx_timetable_slots_class_day", "class_id", "day_of_week"),
    )

    class_ref = relationship("ClassModel", back_populates="slots")

    @property
    def day_name(self) -> str:
        return DAY_NAMES.get(self.day_of_week, "")
