# academic_ops/services/base_service.py
"""Base service with common read operations and the transaction boundary."""
import contextlib
import logging
from typing import Any, AsyncIterator, Generic, Optional, Type, TypeVar
from uuid import UUID

from sqlalchemy import select, func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.exceptions import AcademicOpsError, ConflictError, TransactionError, ValidationError

logger = logging.getLogger(__name__)

# Define generic type
T = TypeVar('T')


def coerce_uuid(value: Any, field: str) -> UUID:
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid {field}", field=field)


class BaseService(Generic[T]):
    def __init__(self, model: Type[T], db: AsyncSession):
        self.model = model
        self.db = db

    async def get_in_branch(self, id: Any, branch_id: UUID, for_update: bool = False) -> Optional[T]:
        """Fetch a row only if it belongs to ``branch_id``; cross-branch rows read as absent."""
        stmt = select(self.model).where(
            self.model.id == id,
            self.model.branch_id == branch_id
        )
        if for_update:
            stmt = stmt.with_for_update()
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def count(self, **filters) -> int:
        stmt = select(func.count()).select_from(self.model)
        for key, value in filters.items():
            if hasattr(self.model, key):
                stmt = stmt.where(getattr(self.model, key) == value)
        result = await self.db.execute(stmt)
        return result.scalar()

    @contextlib.asynccontextmanager
    async def atomic(self, operation: str) -> AsyncIterator[AsyncSession]:
        """One all-or-nothing unit of work.

        Commits when the block exits cleanly. Any exception rolls the whole
        unit back; domain errors propagate unchanged, uniqueness violations
        become ``ConflictError`` and other database failures (including
        statement timeouts) become ``TransactionError``.
        """
        try:
            yield self.db
            await self.db.commit()
        except AcademicOpsError:
            await self.db.rollback()
            raise
        except IntegrityError as e:
            await self.db.rollback()
            logger.warning(f"{operation}: integrity violation, rolled back: {e.orig}")
            raise ConflictError(f"{operation} conflicts with existing data") from e
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"{operation}: transaction failed, rolled back: {e}")
            raise TransactionError(f"{operation} failed; no changes were applied, safe to retry") from e
        except BaseException:
            await self.db.rollback()
            raise
