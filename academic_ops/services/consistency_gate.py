# academic_ops/services/consistency_gate.py
"""Shared invariant checks.

Each check takes the proposed mutation plus the persisted siblings the caller
has just read inside its transaction, and returns either ``OK`` or a typed
conflict. ``enforce`` turns a conflict into the matching exception so that
timetable, class, rollover and year-activation paths report conflicts with the
same vocabulary and messages.
"""
from dataclasses import dataclass
from datetime import time
from typing import Any, Iterable, Optional
import enum

from ..core.exceptions import ConflictError, ExclusivityError


class ConflictKind(str, enum.Enum):
    OVERLAP = "Overlap"
    DUPLICATE_NAME = "DuplicateName"
    EXCLUSIVITY_VIOLATION = "ExclusivityViolation"
    ALREADY_ACTIVE = "AlreadyActive"


@dataclass(frozen=True)
class GateResult:
    conflict: Optional[ConflictKind] = None
    message: str = ""
    conflicting_id: Any = None

    @property
    def ok(self) -> bool:
        return self.conflict is None


OK = GateResult()


def intervals_overlap(start_a: time, end_a: time, start_b: time, end_b: time) -> bool:
    """Half-open ``[start, end)`` intersection; touching intervals do not overlap."""
    return start_a < end_b and end_a > start_b


def check_overlap(start: time, end: time, siblings: Iterable[Any], exclude_id: Any = None) -> GateResult:
    """Reject ``[start, end)`` if it intersects any sibling slot of the same class and day."""
    for slot in siblings:
        if exclude_id is not None and slot.id == exclude_id:
            continue
        if intervals_overlap(slot.start_time, slot.end_time, start, end):
            return GateResult(
                ConflictKind.OVERLAP,
                "Time conflict detected! This slot overlaps with an existing class "
                f"({slot.start_time.strftime('%H:%M')}-{slot.end_time.strftime('%H:%M')}).",
                slot.id,
            )
    return OK


def check_duplicate_name(name: str, existing: Iterable[Any], exclude_id: Any = None, label: str = "Record") -> GateResult:
    """``existing`` holds rows already using ``name`` in the same scope."""
    for row in existing:
        if exclude_id is not None and row.id == exclude_id:
            continue
        return GateResult(ConflictKind.DUPLICATE_NAME, f"{label} '{name}' already exists", row.id)
    return OK


def check_teacher_exclusivity(teacher_id: Any, assigned_classes: Iterable[Any], exclude_id: Any = None) -> GateResult:
    """A teacher is the class teacher of at most one class per academic year."""
    if teacher_id is None:
        return OK
    for cls in assigned_classes:
        if exclude_id is not None and cls.id == exclude_id:
            continue
        return GateResult(
            ConflictKind.EXCLUSIVITY_VIOLATION,
            f"Teacher is already assigned to class '{cls.class_name}' in academic year {cls.academic_year}",
            cls.id,
        )
    return OK


def check_single_active(active_years: Iterable[Any], target_id: Any = None) -> GateResult:
    """Creating an active year is only allowed when the branch has none."""
    for year in active_years:
        if target_id is not None and year.id == target_id:
            continue
        return GateResult(
            ConflictKind.ALREADY_ACTIVE,
            f"Academic year '{year.name}' is already active for this branch",
            year.id,
        )
    return OK


def enforce(result: GateResult) -> None:
    if result.ok:
        return
    if result.conflict is ConflictKind.EXCLUSIVITY_VIOLATION:
        raise ExclusivityError(result.message, conflict=result.conflict.value)
    raise ConflictError(result.message, conflict=result.conflict.value)
