# academic_ops/models/attendance.py
from sqlalchemy import Column, String, Text, Date, DateTime, ForeignKey, Uuid, UniqueConstraint, CheckConstraint, Index, func
from sqlalchemy.orm import relationship
from .base import Base
from .branch import _in_clause
from .enums import AttendanceStatus, enum_values


class AttendanceRecord(Base):
    __tablename__ = "attendance_records"

    # Foreign Keys
    branch_id = Column(Uuid(as_uuid=True), ForeignKey("branches.id", ondelete="CASCADE"), nullable=False, index=True)
    student_id = Column(Uuid(as_uuid=True), ForeignKey("students.id", ondelete="CASCADE"), nullable=False, index=True)
    class_id = Column(Uuid(as_uuid=True), ForeignKey("classes.id", ondelete="CASCADE"), nullable=False)
    teacher_id = Column(Uuid(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    # Attendance Information
    attendance_date = Column(Date, nullable=False, index=True)
    status = Column(String(20), nullable=False)
    subject = Column(String(100))
    remarks = Column(Text)
    academic_year = Column(String(20), nullable=False, index=True)
    marked_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        # Final backstop for concurrent first marks of the same student/day
        UniqueConstraint("student_id", "attendance_date", name="uq_attendance_student_date"),
        CheckConstraint(_in_clause("status", enum_values(AttendanceStatus)), name="attendance_status_check"),
        Index("idx_attendance_class_date", "class_id", "attendance_date"),
    )

    class_ref = relationship("ClassModel", back_populates="attendance_records")
