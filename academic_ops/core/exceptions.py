# academic_ops/core/exceptions.py
"""Error taxonomy shared by the academic-year, timetable, rollover and attendance engines.

Every failure surfaced by a service is one of these kinds so that callers can
tell "fix your input" (validation, not found, conflict) apart from "try again"
(transaction).
"""
from typing import Optional


class AcademicOpsError(Exception):
    """Base exception for the academic operations service."""
    kind = "Error"
    status_code = 500

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {"kind": self.kind, "message": self.message}


class ValidationError(AcademicOpsError):
    """Malformed or missing input. Never retried automatically."""
    kind = "ValidationError"
    status_code = 422

    def __init__(self, message: str, field: Optional[str] = None):
        self.field = field
        super().__init__(message)

    def to_dict(self) -> dict:
        detail = super().to_dict()
        if self.field:
            detail["field"] = self.field
        return detail


class NotFoundError(AcademicOpsError):
    """Referenced entity is absent or outside the caller's branch."""
    kind = "NotFoundError"
    status_code = 404

    def __init__(self, resource: str, id: Optional[object] = None):
        message = f"{resource} not found"
        if id is not None:
            message += f" with id: {id}"
        self.resource = resource
        super().__init__(message)


class ConflictError(AcademicOpsError):
    """Mutation would violate a cross-row invariant."""
    kind = "ConflictError"
    status_code = 409

    def __init__(self, message: str, conflict: Optional[str] = None):
        self.conflict = conflict
        super().__init__(message)

    def to_dict(self) -> dict:
        detail = super().to_dict()
        if self.conflict:
            detail["conflict"] = self.conflict
        return detail


class ExclusivityError(ConflictError):
    """Teacher is already the class teacher of another class in the year."""
    kind = "ExclusivityError"


class TransactionError(AcademicOpsError):
    """The atomic unit failed for infrastructure reasons; nothing was committed."""
    kind = "TransactionError"
    status_code = 503


class AccessDeniedError(AcademicOpsError):
    """Caller's role does not grant the requested capability."""
    kind = "AccessDeniedError"
    status_code = 403

    def __init__(self, message: str = "Access denied"):
        super().__init__(message)
