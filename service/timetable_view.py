"""
Timetable views: one entity's week laid out day by day with clock times.
"""
from typing import List

from models.domain import Assignment, Day
from models.schemas import DaySchedule, ScheduleSlot, TimetableResponse
from service.constraints import SchedulingContext
from service.registry import format_duration


def _assignment_slot(context: SchedulingContext, assignment: Assignment) -> ScheduleSlot:
    start, end = context.registry.period_times[assignment.slot.period]
    return ScheduleSlot(
        day=assignment.slot.day.value,
        period=assignment.slot.period,
        start_time=start,
        end_time=end,
        break_=False,
        duration=format_duration(start, end),
        assignment_id=assignment.id,
        section_id=assignment.section_id,
        section_name=context.section_name(assignment.section_id),
        subject_id=assignment.subject_id,
        subject_name=context.subject_name(assignment.subject_id),
        teacher_id=assignment.teacher_id,
        teacher_name=context.teacher_name(assignment.teacher_id),
        room_id=assignment.room_id,
        room_name=context.room_name(assignment.room_id),
    )


def _break_slots(context: SchedulingContext, day: Day) -> List[ScheduleSlot]:
    """Reserved periods of a day, e.g. lunch, shown as break rows."""
    slots = []
    for slot in context.registry.day_slots(day):
        if not context.registry.is_reserved(slot):
            continue
        start, end = context.registry.period_times[slot.period]
        slots.append(ScheduleSlot(
            day=day.value,
            period=slot.period,
            start_time=start,
            end_time=end,
            break_=True,
            duration=format_duration(start, end),
        ))
    return slots


def _build(context: SchedulingContext, assignments: List[Assignment]) -> List[DaySchedule]:
    timetable = []
    for day in context.registry.days:
        day_slots = [_assignment_slot(context, a) for a in assignments if a.slot.day == day]

        # Days without any class are left out
        if not day_slots:
            continue

        day_slots.extend(_break_slots(context, day))
        day_slots.sort(key=lambda s: (s.period, s.section_id or ""))
        timetable.append(DaySchedule(day=day.value, slots=day_slots))
    return timetable


def section_timetable(context: SchedulingContext, section_id: str) -> TimetableResponse:
    section = context.registry.section(section_id)
    return TimetableResponse(
        scope="section",
        entity_id=section.id,
        entity_name=section.display_name,
        timetable=_build(context, context.schedule.for_section(section.id)),
    )


def teacher_timetable(context: SchedulingContext, teacher_id: str) -> TimetableResponse:
    teacher = context.registry.teacher(teacher_id)
    return TimetableResponse(
        scope="teacher",
        entity_id=teacher.id,
        entity_name=teacher.name,
        timetable=_build(context, context.schedule.for_teacher(teacher.id)),
    )


def room_timetable(context: SchedulingContext, room_id: str) -> TimetableResponse:
    room = context.registry.room(room_id)
    return TimetableResponse(
        scope="room",
        entity_id=room.id,
        entity_name=room.name,
        timetable=_build(context, context.schedule.for_room(room.id)),
    )
