"""
Workload and availability reports derived from a live schedule.
"""
from typing import List, Optional
import logging

from models.domain import PeriodSlot
from models.schemas import (
    RoomUtilization, RoomUtilizationResponse, SlotAvailabilityResponse, SlotConflict,
    TeacherLoad, TeacherLoadResponse
)
from service.availability import ROOM, SECTION, TEACHER
from service.constraints import SchedulingContext
from service.exceptions import UnknownEntityError

logger = logging.getLogger(__name__)


def workload_status(percentage: float) -> str:
    if percentage <= 60:
        return "Low"
    if percentage <= 85:
        return "Optimal"
    if percentage <= 100:
        return "High"
    return "Overloaded"


def _percentage(used: int, available: int) -> float:
    if available <= 0:
        return 0.0 if used == 0 else 100.0 * used
    return round(used * 100 / available, 1)


def teacher_loads(context: SchedulingContext) -> TeacherLoadResponse:
    """Assigned periods against each teacher's weekly ceiling, in catalog order."""
    loads = []
    for teacher in context.registry.teachers.values():
        assignments = context.schedule.for_teacher(teacher.id)
        assigned = len(assignments)
        percentage = _percentage(assigned, teacher.max_periods_per_week)
        loads.append(TeacherLoad(
            teacher_id=teacher.id,
            teacher_name=teacher.name,
            department=teacher.department,
            assigned_periods=assigned,
            max_periods_per_week=teacher.max_periods_per_week,
            remaining_capacity=max(0, teacher.max_periods_per_week - assigned),
            workload_percentage=percentage,
            status=workload_status(percentage),
            can_accept_more=assigned < teacher.max_periods_per_week,
            sections=list(dict.fromkeys(a.section_id for a in assignments)),
            subjects=list(dict.fromkeys(a.subject_id for a in assignments)),
        ))

    overloaded = sum(1 for load in loads if load.assigned_periods > load.max_periods_per_week)
    average = round(sum(load.assigned_periods for load in loads) / len(loads), 1) if loads else 0.0
    if overloaded:
        logger.warning(f"{overloaded} teacher(s) above their weekly period ceiling")
    return TeacherLoadResponse(teachers=loads, overloaded_teachers=overloaded, average_periods=average)


def room_utilization(context: SchedulingContext) -> RoomUtilizationResponse:
    available = len(context.registry.allocatable_slots)
    rooms = []
    for room in context.registry.rooms.values():
        used = context.schedule.room_periods(room.id)
        rooms.append(RoomUtilization(
            room_id=room.id,
            room_name=room.name,
            room_type=room.type.value,
            capacity=room.capacity,
            used_periods=used,
            available_periods=available,
            utilization=_percentage(used, available),
        ))
    average = round(sum(r.utilization for r in rooms) / len(rooms), 1) if rooms else 0.0
    return RoomUtilizationResponse(rooms=rooms, average_utilization=average)


def check_slot(
    context: SchedulingContext,
    slot: PeriodSlot,
    section_id: Optional[str] = None,
    teacher_id: Optional[str] = None,
    room_id: Optional[str] = None,
) -> SlotAvailabilityResponse:
    """
    Report whether a slot is free for the given section, teacher and room.

    Each conflict names the assignment holding the slot, so the console can
    offer to move or remove it.

    Raises:
        UnknownEntityError: if the slot is outside the grid or an entity is unknown.
    """
    registry = context.registry
    canonical = registry.canonical(slot)
    if canonical is None:
        raise UnknownEntityError("Slot", slot.label)

    conflicts: List[SlotConflict] = []
    if registry.is_reserved(canonical):
        conflicts.append(SlotConflict(type="reserved", description=f"{canonical.label} is a reserved period"))

    checks = []
    if section_id:
        checks.append((SECTION, registry.section(section_id).id, "section"))
    if teacher_id:
        teacher = registry.teacher(teacher_id)
        checks.append((TEACHER, teacher.id, "teacher"))
        if canonical in set(teacher.unavailable_slots):
            conflicts.append(SlotConflict(
                type="teacher_unavailable",
                description=f"{teacher.name} is unavailable on {canonical.label}",
                teacher_id=teacher.id,
            ))
    if room_id:
        checks.append((ROOM, registry.room(room_id).id, "room"))

    for kind, entity_id, conflict_type in checks:
        for assignment_id in sorted(context.index.holders(kind, entity_id, canonical)):
            assignment = context.schedule.get(assignment_id)
            if assignment is None:
                continue
            conflicts.append(SlotConflict(
                type=conflict_type,
                description=f"{context.describe(assignment)} already holds {canonical.label}",
                assignment_id=assignment.id,
                section_id=assignment.section_id,
                subject_id=assignment.subject_id,
                teacher_id=assignment.teacher_id,
                room_id=assignment.room_id,
            ))

    available = not conflicts
    message = (
        f"{canonical.label} is available" if available
        else f"{canonical.label} has {len(conflicts)} conflict(s)"
    )
    return SlotAvailabilityResponse(slot=canonical, available=available, conflicts=conflicts, message=message)
