# academic_ops/core/security.py
"""Caller identity supplied by the upstream token-verification gateway.

Token verification itself happens outside this service. The gateway forwards
the verified identity as trusted headers, and every operation performs one
capability check against the caller's role.
"""
from typing import Optional
from uuid import UUID
import logging

from fastapi import Header, HTTPException, status
from pydantic import BaseModel, ValidationError as PydanticValidationError

from ..models.enums import UserRole
from .exceptions import AccessDeniedError

logger = logging.getLogger(__name__)

ADMIN_ROLES = (UserRole.ADMIN, UserRole.SUPERADMIN)
ATTENDANCE_ROLES = (UserRole.TEACHER, UserRole.ADMIN, UserRole.SUPERADMIN)


class CallerIdentity(BaseModel):
    branch_id: UUID
    user_id: UUID
    role: UserRole



def ensure_role(caller: CallerIdentity, *allowed: UserRole) -> None:
    """Single capability check performed once per operation."""
    if caller.role not in allowed:
        logger.warning(f"Role {caller.role.value} denied; requires one of {[r.value for r in allowed]}")
        raise AccessDeniedError(
            f"Access denied. Required roles: {', '.join(r.value for r in allowed)}"
        )


async def get_caller_identity(
    x_branch_id: Optional[str] = Header(None),
    x_user_id: Optional[str] = Header(None),
    x_user_role: Optional[str] = Header(None),
) -> CallerIdentity:
    if not (x_branch_id and x_user_id and x_user_role):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Authentication required")
    try:
        return CallerIdentity(branch_id=x_branch_id, user_id=x_user_id, role=x_user_role.lower())
    except PydanticValidationError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid caller identity")
