# academic_ops/models/academic_year.py
from sqlalchemy import Column, String, Date, ForeignKey, Uuid, UniqueConstraint, CheckConstraint, Index, text
from .base import Base
from .branch import _in_clause
from .enums import AcademicYearStatus, enum_values


class AcademicYear(Base):
    __tablename__ = "academic_years"

    # Bound on activation when created without a branch
    branch_id = Column(Uuid(as_uuid=True), ForeignKey("branches.id", ondelete="CASCADE"), nullable=True, index=True)

    name = Column(String(20), nullable=False)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    status = Column(String(20), default=AcademicYearStatus.UPCOMING.value, nullable=False, index=True)

    __table_args__ = (
        UniqueConstraint("branch_id", "name", name="uq_academic_years_branch_name"),
        CheckConstraint("start_date < end_date", name="academic_years_date_range_check"),
        CheckConstraint(_in_clause("status", enum_values(AcademicYearStatus)), name="academic_years_status_check"),
        # At most one active year per branch
        Index(
            "uq_academic_years_branch_active",
            "branch_id",
            unique=True,
            postgresql_where=text("status = 'active'"),
            sqlite_where=text("status = 'active'"),
        ),
    )
