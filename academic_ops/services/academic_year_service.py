# academic_ops/services/academic_year_service.py
"""Academic Year Registry.

Owns the academic years of each branch and the invariant that a branch has at
most one active year. The active year is always resolved by query; nothing is
cached between requests.
"""
from datetime import date
from typing import List, Optional, Union
from uuid import UUID
import logging

from sqlalchemy import select, func, case, or_
from sqlalchemy.ext.asyncio import AsyncSession

from .base_service import BaseService
from .consistency_gate import check_duplicate_name, check_single_active, enforce
from ..core.exceptions import ConflictError, NotFoundError, ValidationError
from ..core.security import ADMIN_ROLES, CallerIdentity, ensure_role
from ..models.academic_year import AcademicYear
from ..models.branch import Student
from ..models.class_model import ClassModel
from ..models.enums import AcademicYearStatus

logger = logging.getLogger(__name__)


def parse_year_status(status: Union[str, AcademicYearStatus, None]) -> AcademicYearStatus:
    if isinstance(status, AcademicYearStatus):
        return status
    try:
        return AcademicYearStatus(status)
    except ValueError:
        allowed = ", ".join(s.value for s in AcademicYearStatus)
        raise ValidationError(f"Status must be one of: {allowed}", field="status")


class AcademicYearService(BaseService[AcademicYear]):
    def __init__(self, db: AsyncSession):
        super().__init__(AcademicYear, db)

    def _visible_to(self, branch_id: UUID):
        # Unbound years can still be activated by any branch
        return or_(self.model.branch_id == branch_id, self.model.branch_id.is_(None))

    async def _active_years(self, branch_id: UUID, for_update: bool = False) -> List[AcademicYear]:
        stmt = select(self.model).where(
            self.model.branch_id == branch_id,
            self.model.status == AcademicYearStatus.ACTIVE.value
        )
        if for_update:
            stmt = stmt.with_for_update()
        result = await self.db.execute(stmt)
        return result.scalars().all()

    async def list_years(self, branch_id: UUID) -> List[AcademicYear]:
        """Active year first, then most recent start date first."""
        active_first = case((self.model.status == AcademicYearStatus.ACTIVE.value, 0), else_=1)
        stmt = (
            select(self.model)
            .where(self._visible_to(branch_id))
            .order_by(active_first, self.model.start_date.desc())
        )
        result = await self.db.execute(stmt)
        return result.scalars().all()

    async def get_year(self, branch_id: UUID, year_id: UUID) -> AcademicYear:
        stmt = select(self.model).where(self.model.id == year_id, self._visible_to(branch_id))
        result = await self.db.execute(stmt)
        year = result.scalar_one_or_none()
        if not year:
            raise NotFoundError("Academic year", year_id)
        return year

    async def resolve_current_active(self, branch_id: UUID) -> AcademicYear:
        active = await self._active_years(branch_id)
        if not active:
            raise NotFoundError(f"Active academic year for branch {branch_id}")
        return active[0]

    async def create(
        self,
        caller: CallerIdentity,
        name: str,
        start_date: date,
        end_date: date,
        status: Union[str, AcademicYearStatus] = AcademicYearStatus.UPCOMING,
    ) -> AcademicYear:
        ensure_role(caller, *ADMIN_ROLES)
        branch_id = caller.branch_id

        name = (name or "").strip()
        if not name:
            raise ValidationError("Academic year name is required", field="name")
        if start_date is None or end_date is None:
            raise ValidationError("Start date and end date are required")
        if start_date >= end_date:
            raise ValidationError("Start date must be before end date", field="start_date")
        year_status = parse_year_status(status)

        async with self.atomic("Create academic year"):
            same_name = await self.db.execute(
                select(self.model).where(self.model.branch_id == branch_id, self.model.name == name)
            )
            duplicate = check_duplicate_name(name, same_name.scalars().all(), label="Academic year")
            if not duplicate.ok:
                raise ValidationError(duplicate.message, field="name")

            if year_status is AcademicYearStatus.ACTIVE:
                enforce(check_single_active(await self._active_years(branch_id, for_update=True)))

            year = self.model(
                branch_id=branch_id,
                name=name,
                start_date=start_date,
                end_date=end_date,
                status=year_status.value,
            )
            self.db.add(year)
            await self.db.flush()

        logger.info(f"Created academic year {name} ({year_status.value}) for branch {branch_id}")
        return year

    async def activate(self, caller: CallerIdentity, year_id: UUID) -> AcademicYear:
        """Demote the branch's active year to completed, then promote the target.

        Both steps share one transaction; the demotion is flushed first so the
        single-active index never sees two active rows, and a failure while
        promoting rolls the demotion back too.
        """
        ensure_role(caller, *ADMIN_ROLES)
        branch_id = caller.branch_id

        async with self.atomic("Activate academic year"):
            result = await self.db.execute(
                select(self.model)
                .where(self.model.id == year_id, self._visible_to(branch_id))
                .with_for_update()
            )
            target = result.scalar_one_or_none()
            if not target:
                raise NotFoundError("Academic year", year_id)

            demoted = []
            for year in await self._active_years(branch_id, for_update=True):
                if year.id == target.id:
                    continue
                year.status = AcademicYearStatus.COMPLETED.value
                demoted.append(year.name)
            await self.db.flush()

            target.status = AcademicYearStatus.ACTIVE.value
            target.branch_id = branch_id
            await self.db.flush()

        logger.info(f"Activated academic year {target.name} for branch {branch_id}; completed: {demoted or 'none'}")
        return target

    async def delete(self, caller: CallerIdentity, year_id: UUID) -> None:
        ensure_role(caller, *ADMIN_ROLES)

        async with self.atomic("Delete academic year"):
            year = await self.get_year(caller.branch_id, year_id)
            scope = year.branch_id or caller.branch_id

            class_count = await self.db.scalar(
                select(func.count()).select_from(ClassModel).where(
                    ClassModel.branch_id == scope,
                    ClassModel.academic_year == year.name
                )
            )
            student_count = await self.db.scalar(
                select(func.count()).select_from(Student).where(
                    Student.branch_id == scope,
                    Student.academic_year == year.name
                )
            )
            if class_count or student_count:
                logger.warning(
                    f"Refusing to delete academic year {year.name}: "
                    f"{class_count} classes, {student_count} students reference it"
                )
                raise ConflictError(
                    f"Cannot delete academic year {year.name}: it is referenced by "
                    f"{class_count} classes and {student_count} students"
                )

            await self.db.delete(year)

        logger.info(f"Deleted academic year {year.name}")

    async def resolve_year_name(self, branch_id: UUID, academic_year: Optional[str]) -> Optional[str]:
        """Explicit year name, or the branch's active year when none is given."""
        if academic_year:
            return academic_year
        try:
            return (await self.resolve_current_active(branch_id)).name
        except NotFoundError:
            return None
