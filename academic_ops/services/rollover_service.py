# academic_ops/services/rollover_service.py
"""Class roster rollover.

Duplicates the Active classes of a branch's current academic year into a new
academic year as one all-or-nothing batch. Timetable slots and attendance are
year specific and are not copied; the new year starts with an empty schedule.
"""
from dataclasses import dataclass, field
from typing import List
from uuid import UUID
import logging

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from .base_service import BaseService
from .academic_year_service import AcademicYearService
from .consistency_gate import ConflictKind
from ..core.exceptions import ConflictError, NotFoundError, ValidationError
from ..core.security import ADMIN_ROLES, CallerIdentity, ensure_role
from ..models.class_model import ClassModel
from ..models.enums import ClassStatus

logger = logging.getLogger(__name__)

# Attributes carried over from the source class verbatim
COPIED_FIELDS = (
    "branch_id", "class_name", "grade", "standard", "teacher_id",
    "semester", "capacity", "room_number", "schedule",
)


@dataclass
class RolloverResult:
    created_count: int
    source_year: str
    target_year: str
    class_ids: List[UUID] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "createdCount": self.created_count,
            "sourceYear": self.source_year,
            "targetYear": self.target_year,
            "totalClasses": self.created_count,
            "classIds": [str(class_id) for class_id in self.class_ids],
        }


class RolloverService(BaseService[ClassModel]):
    def __init__(self, db: AsyncSession):
        super().__init__(ClassModel, db)
        self.years = AcademicYearService(db)

    def _clone_class(self, source: ClassModel, target_year: str) -> ClassModel:
        clone = self.model(**{name: getattr(source, name) for name in COPIED_FIELDS})
        clone.academic_year = target_year
        clone.status = ClassStatus.ACTIVE.value
        return clone

    async def rollover(self, caller: CallerIdentity, new_year_name: str) -> RolloverResult:
        ensure_role(caller, *ADMIN_ROLES)
        branch_id = caller.branch_id

        target_year = (new_year_name or "").strip()
        if not target_year:
            raise ValidationError("New academic year is required", field="new_academic_year")

        async with self.atomic("Rollover classes"):
            try:
                active = await self.years.resolve_current_active(branch_id)
            except NotFoundError:
                raise ValidationError("No active academic year found")

            result = await self.db.execute(
                select(self.model).where(
                    self.model.branch_id == branch_id,
                    self.model.academic_year == active.name,
                    self.model.status == ClassStatus.ACTIVE.value
                ).order_by(self.model.class_name)
            )
            sources = result.scalars().all()
            if not sources:
                raise NotFoundError(f"Classes in the current academic year {active.name} to duplicate")

            # Rollover must not run twice for the same target year
            already = await self.db.scalar(
                select(func.count()).select_from(self.model).where(
                    self.model.branch_id == branch_id,
                    self.model.academic_year == target_year
                )
            )
            if already:
                logger.warning(f"Rollover to {target_year} rejected: {already} classes already exist")
                raise ConflictError(
                    f"Classes already exist for academic year {target_year}",
                    conflict=ConflictKind.DUPLICATE_NAME.value,
                )

            clones = []
            for source in sources:
                clone = self._clone_class(source, target_year)
                self.db.add(clone)
                await self.db.flush()
                clones.append(clone)

        logger.info(f"Rolled over {len(clones)} classes from {active.name} to {target_year} in branch {branch_id}")
        return RolloverResult(
            created_count=len(clones),
            source_year=active.name,
            target_year=target_year,
            class_ids=[clone.id for clone in clones],
        )
