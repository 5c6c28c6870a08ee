# academic_ops/models/branch.py
"""Branch (school site) and the people that belong to it.

These tables are owned by other services; the scheduling engines only read
them to resolve ownership, teacher eligibility and student existence.
"""
from sqlalchemy import Column, String, ForeignKey, Uuid, CheckConstraint, Index
from .base import Base
from .enums import UserRole, UserStatus, StudentStatus, enum_values


def _in_clause(column: str, values) -> str:
    quoted = ", ".join(f"'{v}'" for v in values)
    return f"{column} IN ({quoted})"


class Branch(Base):
    __tablename__ = "branches"

    name = Column(String(200), nullable=False)



class User(Base):
    __tablename__ = "users"

    branch_id = Column(Uuid(as_uuid=True), ForeignKey("branches.id", ondelete="CASCADE"), nullable=True, index=True)
    name = Column(String(100), nullable=False)
    email = Column(String(254), nullable=False, unique=True)
    role = Column(String(20), default=UserRole.TEACHER.value, nullable=False)
    status = Column(String(20), default=UserStatus.ACTIVE.value, nullable=False)

    __table_args__ = (
        CheckConstraint(_in_clause("role", enum_values(UserRole)), name="users_role_check"),
        CheckConstraint(_in_clause("status", enum_values(UserStatus)), name="users_status_check"),
    )


class Student(Base):
    __tablename__ = "students"

    branch_id = Column(Uuid(as_uuid=True), ForeignKey("branches.id", ondelete="CASCADE"), nullable=False, index=True)
    class_id = Column(Uuid(as_uuid=True), ForeignKey("classes.id", ondelete="SET NULL"), nullable=True, index=True)
    name = Column(String(100), nullable=False)
    roll_number = Column(String(20))
    status = Column(String(20), default=StudentStatus.ACTIVE.value, nullable=False)
    academic_year = Column(String(20), nullable=False, index=True)

    __table_args__ = (
        CheckConstraint(_in_clause("status", enum_values(StudentStatus)), name="students_status_check"),
        Index("idx_students_class_status", "class_id", "status"),
    )
