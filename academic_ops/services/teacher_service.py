# academic_ops/services/teacher_service.py
from typing import List, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from .base_service import BaseService
from ..core.exceptions import ValidationError
from ..models.branch import User
from ..models.class_model import ClassModel
from ..models.enums import UserRole, UserStatus


class TeacherService(BaseService[User]):
    def __init__(self, db: AsyncSession):
        super().__init__(User, db)

    def _eligible(self, branch_id: UUID):
        return select(self.model).where(
            self.model.branch_id == branch_id,
            self.model.role == UserRole.TEACHER.value,
            self.model.status == UserStatus.ACTIVE.value
        )

    async def get_eligible_teacher(self, branch_id: UUID, teacher_id: UUID) -> Optional[User]:
        """An active user with the teacher role in ``branch_id``."""
        result = await self.db.execute(self._eligible(branch_id).where(self.model.id == teacher_id))
        return result.scalar_one_or_none()

    async def require_teacher(self, branch_id: UUID, teacher_id: Optional[UUID]) -> User:
        if not teacher_id:
            raise ValidationError("Teacher is required", field="teacher_id")
        teacher = await self.get_eligible_teacher(branch_id, teacher_id)
        if not teacher:
            raise ValidationError("Invalid teacher assignment", field="teacher_id")
        return teacher

    async def all_teachers(self, branch_id: UUID) -> List[User]:
        result = await self.db.execute(self._eligible(branch_id).order_by(self.model.name))
        return result.scalars().all()

    async def available_teachers(self, branch_id: UUID, academic_year: str) -> List[User]:
        """Active teachers not yet class teacher of any class in ``academic_year``."""
        assigned = select(ClassModel.teacher_id).where(
            ClassModel.branch_id == branch_id,
            ClassModel.academic_year == academic_year,
            ClassModel.teacher_id.is_not(None)
        )
        stmt = self._eligible(branch_id).where(self.model.id.not_in(assigned)).order_by(self.model.name)
        result = await self.db.execute(stmt)
        return result.scalars().all()
