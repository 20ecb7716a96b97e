"""
Hard and soft scheduling constraints.

Every constraint answers two questions:

* `evaluate(candidate, context)` - would placing this block be acceptable?
  Returns a Verdict: satisfied, a hard violation (the block must not be
  placed) or a soft penalty (placeable, but worse).
* `check(context)` - what is wrong with the schedule as it stands? Returns
  ConstraintViolation records naming the entities and slots involved.

Constraints are toggled and re-weighted through ConstraintSetting overrides,
see `build_constraint_set`.
"""
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set, Tuple
import logging

from models.domain import (
    Assignment, ConstraintSetting, ConstraintViolation, PeriodSlot, Room,
    Section, Severity, Subject, Teacher
)
from service.availability import AvailabilityIndex, ROOM, SECTION, TEACHER
from service.registry import DomainRegistry
from service.schedule import Schedule

logger = logging.getLogger(__name__)


# ===========================
# Evaluation primitives
# ===========================

SATISFIED = "satisfied"
HARD = "hard"
SOFT = "soft"


@dataclass(frozen=True)
class Verdict:
    status: str
    constraint_id: str = ""
    reason: str = ""
    weight: float = 0.0
    blocking_entity: Optional[str] = None
    slot: Optional[PeriodSlot] = None

    @property
    def is_hard(self) -> bool:
        return self.status == HARD


OK = Verdict(SATISFIED)


@dataclass(frozen=True)
class Candidate:
    """One block of contiguous slots for a (section, subject, teacher, room)."""
    section: Section
    subject: Subject
    teacher: Teacher
    room: Room
    slots: Tuple[PeriodSlot, ...]


@dataclass
class SchedulingContext:
    registry: DomainRegistry
    schedule: Schedule
    index: AvailabilityIndex
    core_subjects: Set[str] = field(default_factory=set)

    def section_name(self, section_id: str) -> str:
        section = self.registry.sections.get(section_id)
        return section.display_name if section else section_id

    def subject_name(self, subject_id: str) -> str:
        subject = self.registry.subjects.get(subject_id)
        return subject.name if subject else subject_id

    def teacher_name(self, teacher_id: str) -> str:
        teacher = self.registry.teachers.get(teacher_id)
        return teacher.name if teacher else teacher_id

    def room_name(self, room_id: str) -> str:
        room = self.registry.rooms.get(room_id)
        return room.name if room else room_id

    def describe(self, assignment: Assignment) -> str:
        """e.g. 'Grade 2-B (Science)'"""
        return f"{self.section_name(assignment.section_id)} ({self.subject_name(assignment.subject_id)})"


class Constraint:
    """Base class for all constraints."""

    constraint_id: str = ""
    title: str = ""
    hard: bool = False
    default_weight: float = 1.0
    default_severity: Severity = Severity.LOW

    def __init__(self, enabled: bool = True, weight: Optional[float] = None, severity: Optional[Severity] = None):
        self.enabled = enabled
        self.weight = self.default_weight if weight is None else weight
        if self.hard:
            self.severity = Severity.HIGH
        else:
            self.severity = severity or self.default_severity

    def evaluate(self, candidate: Candidate, context: SchedulingContext) -> Verdict:
        return OK

    def check(self, context: SchedulingContext) -> List[ConstraintViolation]:
        return []

    def violation(self, reason: str, blocking_entity: Optional[str] = None, slot: Optional[PeriodSlot] = None) -> Verdict:
        return Verdict(HARD, self.constraint_id, reason, blocking_entity=blocking_entity, slot=slot)

    def penalty(self, amount: float, reason: str) -> Verdict:
        if amount <= 0 or self.weight <= 0:
            return OK
        return Verdict(SOFT, self.constraint_id, reason, weight=self.weight * amount)

    def report(self, description: str, **entities) -> ConstraintViolation:
        return ConstraintViolation(severity=self.severity, kind=self.constraint_id, description=description, **entities)


def _contiguous_runs(periods: List[int]) -> List[List[int]]:
    runs: List[List[int]] = []
    for period in sorted(periods):
        if runs and period == runs[-1][-1] + 1:
            runs[-1].append(period)
        else:
            runs.append([period])
    return runs


def _slot_range(slots: List[PeriodSlot]) -> str:
    if len(slots) == 1:
        return slots[0].label
    return f"{slots[0].day.value} P{slots[0].period}-P{slots[-1].period}"


# ===========================
# Hard constraints
# ===========================

class NoDoubleBooking(Constraint):
    constraint_id = "no_double_booking"
    title = "No teacher, room or section double-booking"
    hard = True

    def evaluate(self, candidate: Candidate, context: SchedulingContext) -> Verdict:
        index = context.index
        for slot in candidate.slots:
            holders = index.holders(SECTION, candidate.section.id, slot)
            if holders:
                other = context.schedule.get(sorted(holders)[0])
                return self.violation(
                    f"Section {candidate.section.display_name} already has "
                    f"{context.subject_name(other.subject_id)} on {slot.label}",
                    blocking_entity=f"section:{candidate.section.id}", slot=slot,
                )
            holders = index.holders(TEACHER, candidate.teacher.id, slot)
            if holders:
                other = context.schedule.get(sorted(holders)[0])
                return self.violation(
                    f"Teacher {candidate.teacher.name} already teaches {context.describe(other)} on {slot.label}",
                    blocking_entity=f"teacher:{candidate.teacher.id}", slot=slot,
                )
            holders = index.holders(ROOM, candidate.room.id, slot)
            if holders:
                other = context.schedule.get(sorted(holders)[0])
                return self.violation(
                    f"Room {candidate.room.name} double-booked with {context.section_name(other.section_id)} on {slot.label}",
                    blocking_entity=f"room:{candidate.room.id}", slot=slot,
                )
        return OK

    def check(self, context: SchedulingContext) -> List[ConstraintViolation]:
        groups = {
            TEACHER: defaultdict(list),
            ROOM: defaultdict(list),
            SECTION: defaultdict(list),
        }
        for assignment in context.schedule.ordered():
            groups[TEACHER][(assignment.teacher_id, assignment.slot)].append(assignment)
            groups[ROOM][(assignment.room_id, assignment.slot)].append(assignment)
            groups[SECTION][(assignment.section_id, assignment.slot)].append(assignment)

        violations = []
        for (section_id, slot), clash in groups[SECTION].items():
            if len(clash) > 1:
                subjects = " and ".join(context.subject_name(a.subject_id) for a in clash)
                violations.append(self.report(
                    f"Section {context.section_name(section_id)} double-booked on {slot.label}: {subjects}",
                    section_id=section_id, slots=[slot], assignment_ids=[a.id for a in clash],
                ))
        for (teacher_id, slot), clash in groups[TEACHER].items():
            if len(clash) > 1:
                classes = " and ".join(context.describe(a) for a in clash)
                violations.append(self.report(
                    f"Teacher {context.teacher_name(teacher_id)} double-booked on {slot.label}: {classes}",
                    teacher_id=teacher_id, slots=[slot], assignment_ids=[a.id for a in clash],
                ))
        for (room_id, slot), clash in groups[ROOM].items():
            if len(clash) > 1:
                classes = " and ".join(context.describe(a) for a in clash)
                violations.append(self.report(
                    f"Room {context.room_name(room_id)} double-booked on {slot.label}: {classes}",
                    room_id=room_id, slots=[slot], assignment_ids=[a.id for a in clash],
                ))
        return violations


class TeacherQualification(Constraint):
    constraint_id = "teacher_qualification"
    title = "Teacher teaches the subject"
    hard = True

    def evaluate(self, candidate: Candidate, context: SchedulingContext) -> Verdict:
        if candidate.subject.id not in candidate.teacher.subjects:
            return self.violation(
                f"Teacher {candidate.teacher.name} does not teach {candidate.subject.name}",
                blocking_entity=f"teacher:{candidate.teacher.id}",
            )
        return OK

    def check(self, context: SchedulingContext) -> List[ConstraintViolation]:
        violations = []
        for assignment in context.schedule.ordered():
            teacher = context.registry.teachers.get(assignment.teacher_id)
            if teacher is None or assignment.subject_id not in teacher.subjects:
                violations.append(self.report(
                    f"Teacher {context.teacher_name(assignment.teacher_id)} is not qualified for "
                    f"{context.describe(assignment)} on {assignment.slot.label}",
                    section_id=assignment.section_id, subject_id=assignment.subject_id,
                    teacher_id=assignment.teacher_id, slots=[assignment.slot], assignment_ids=[assignment.id],
                ))
        return violations


class TeacherAvailability(Constraint):
    constraint_id = "teacher_availability"
    title = "Respect teacher unavailable slots"
    hard = True

    def evaluate(self, candidate: Candidate, context: SchedulingContext) -> Verdict:
        unavailable = candidate.teacher.unavailable_slots
        if not unavailable:
            return OK
        for slot in candidate.slots:
            if slot in unavailable:
                return self.violation(
                    f"Teacher {candidate.teacher.name} is unavailable on {slot.label}",
                    blocking_entity=f"teacher:{candidate.teacher.id}", slot=slot,
                )
        return OK

    def check(self, context: SchedulingContext) -> List[ConstraintViolation]:
        violations = []
        for assignment in context.schedule.ordered():
            teacher = context.registry.teachers.get(assignment.teacher_id)
            if teacher and assignment.slot in teacher.unavailable_slots:
                violations.append(self.report(
                    f"Teacher {teacher.name} is scheduled for {context.describe(assignment)} "
                    f"on {assignment.slot.label} but is unavailable",
                    section_id=assignment.section_id, teacher_id=teacher.id,
                    slots=[assignment.slot], assignment_ids=[assignment.id],
                ))
        return violations


class RoomCompatibility(Constraint):
    constraint_id = "room_compatibility"
    title = "Room type, capacity and facilities"
    hard = True

    @staticmethod
    def problems(section: Section, subject: Subject, room: Room) -> List[str]:
        problems = []
        if subject.requires_room_type and room.type != subject.requires_room_type:
            problems.append(f"{subject.name} needs a {subject.requires_room_type.value} but {room.name} is a {room.type.value}")
        if room.capacity < section.strength:
            problems.append(f"{room.name} seats {room.capacity} but {section.display_name} has {section.strength} students")
        missing = sorted(subject.requires_facilities - room.facilities)
        if missing:
            problems.append(f"{room.name} lacks {', '.join(missing)} required by {subject.name}")
        return problems

    def evaluate(self, candidate: Candidate, context: SchedulingContext) -> Verdict:
        problems = self.problems(candidate.section, candidate.subject, candidate.room)
        if problems:
            return self.violation(problems[0], blocking_entity=f"room:{candidate.room.id}")
        return OK

    def check(self, context: SchedulingContext) -> List[ConstraintViolation]:
        registry = context.registry
        violations = []
        for assignment in context.schedule.ordered():
            section = registry.sections.get(assignment.section_id)
            subject = registry.subjects.get(assignment.subject_id)
            room = registry.rooms.get(assignment.room_id)
            if not (section and subject and room):
                continue
            for problem in self.problems(section, subject, room):
                violations.append(self.report(
                    f"{problem} ({assignment.slot.label})",
                    section_id=section.id, subject_id=subject.id, room_id=room.id,
                    slots=[assignment.slot], assignment_ids=[assignment.id],
                ))
        return violations


class ConsecutivePeriods(Constraint):
    constraint_id = "consecutive_periods"
    title = "Consecutive periods for double-period subjects"
    hard = True

    def evaluate(self, candidate: Candidate, context: SchedulingContext) -> Verdict:
        required = candidate.subject.requires_consecutive_periods
        if required <= 1 and len(candidate.slots) == 1:
            return OK
        first = candidate.slots[0]
        if len(candidate.slots) > required:
            return self.violation(
                f"{candidate.subject.name} blocks are at most {required} periods long",
                slot=first,
            )
        for offset, slot in enumerate(candidate.slots):
            if slot.day != first.day or slot.period != first.period + offset or context.registry.is_reserved(slot):
                return self.violation(
                    f"{candidate.subject.name} needs {len(candidate.slots)} contiguous periods starting {first.label}",
                    slot=first,
                )
        return OK

    def check(self, context: SchedulingContext) -> List[ConstraintViolation]:
        registry = context.registry
        violations = []
        for section in registry.sections.values():
            assignments = context.schedule.for_section(section.id)
            for subject_id, periods in section.demands.items():
                subject = registry.subjects.get(subject_id)
                if subject is None or subject.requires_consecutive_periods <= 1:
                    continue
                required = subject.requires_consecutive_periods
                remainder = periods % required
                by_day = defaultdict(list)
                for assignment in assignments:
                    if assignment.subject_id == subject_id:
                        by_day[assignment.slot.day].append(assignment)
                remainder_used = False
                for day, day_assignments in by_day.items():
                    by_period = {a.slot.period: a for a in day_assignments}
                    for run in _contiguous_runs(list(by_period)):
                        run_assignments = [by_period[p] for p in run]
                        run_slots = [a.slot for a in run_assignments]
                        if len({(a.teacher_id, a.room_id) for a in run_assignments}) > 1 and len(run) <= required:
                            violations.append(self.report(
                                f"{subject.name} block for {section.display_name} on {_slot_range(run_slots)} "
                                f"changes teacher or room mid-block",
                                section_id=section.id, subject_id=subject_id, slots=run_slots,
                                assignment_ids=[a.id for a in run_assignments],
                            ))
                        if len(run) < required:
                            if len(run) == remainder and not remainder_used:
                                remainder_used = True
                                continue
                            violations.append(self.report(
                                f"{subject.name} for {section.display_name} needs {required} consecutive periods "
                                f"but {_slot_range(run_slots)} is only {len(run)}",
                                section_id=section.id, subject_id=subject_id, slots=run_slots,
                                assignment_ids=[a.id for a in run_assignments],
                            ))
        return violations


class TeacherLoad(Constraint):
    constraint_id = "teacher_load"
    title = "Teacher weekly load ceiling"
    hard = True

    def evaluate(self, candidate: Candidate, context: SchedulingContext) -> Verdict:
        assigned = context.schedule.assigned_periods(candidate.teacher.id)
        if assigned + len(candidate.slots) > candidate.teacher.max_periods_per_week:
            return self.violation(
                f"Teacher {candidate.teacher.name} would exceed {candidate.teacher.max_periods_per_week} "
                f"periods per week ({assigned} already assigned)",
                blocking_entity=f"teacher:{candidate.teacher.id}",
            )
        return OK

    def check(self, context: SchedulingContext) -> List[ConstraintViolation]:
        violations = []
        for teacher in context.registry.teachers.values():
            assignments = context.schedule.for_teacher(teacher.id)
            if len(assignments) > teacher.max_periods_per_week:
                violations.append(self.report(
                    f"Teacher {teacher.name} is assigned {len(assignments)} periods, "
                    f"above the weekly maximum of {teacher.max_periods_per_week}",
                    teacher_id=teacher.id, assignment_ids=[a.id for a in assignments],
                ))
        return violations


# ===========================
# Soft constraints
# ===========================

def _outside_neighbours(candidate: Candidate) -> List[int]:
    return [candidate.slots[0].period - 1, candidate.slots[-1].period + 1]


class NoBackToBack(Constraint):
    constraint_id = "no_back_to_back"
    title = "No back-to-back same subject"
    default_weight = 5.0
    default_severity = Severity.MEDIUM

    def evaluate(self, candidate: Candidate, context: SchedulingContext) -> Verdict:
        day = context.schedule.section_day(candidate.section.id, candidate.slots[0].day)
        repeats = sum(
            1 for period in _outside_neighbours(candidate)
            if any(a.subject_id == candidate.subject.id for a in day.get(period, ()))
        )
        return self.penalty(repeats, f"{candidate.subject.name} back-to-back for {candidate.section.display_name}")

    def check(self, context: SchedulingContext) -> List[ConstraintViolation]:
        violations = []
        for section in context.registry.sections.values():
            for day in context.registry.days:
                by_period = context.schedule.section_day(section.id, day)
                for period in sorted(by_period):
                    for first in by_period[period]:
                        for second in by_period.get(period + 1, ()):
                            if first.subject_id != second.subject_id:
                                continue
                            if first.block_id and first.block_id == second.block_id:
                                continue
                            violations.append(self.report(
                                f"Double {context.subject_name(first.subject_id)} for {section.display_name} "
                                f"on {_slot_range([first.slot, second.slot])}",
                                section_id=section.id, subject_id=first.subject_id,
                                slots=[first.slot, second.slot], assignment_ids=[first.id, second.id],
                            ))
        return violations


class MorningCoreSubjects(Constraint):
    constraint_id = "morning_core_subjects"
    title = "Core subjects in the morning"
    default_weight = 2.0
    default_severity = Severity.LOW

    @staticmethod
    def is_core(subject: Subject, context: SchedulingContext) -> bool:
        return subject.id in context.core_subjects or subject.code in context.core_subjects

    def evaluate(self, candidate: Candidate, context: SchedulingContext) -> Verdict:
        if not self.is_core(candidate.subject, context):
            return OK
        late = sum(1 for slot in candidate.slots if not context.registry.is_first_half(slot.period))
        return self.penalty(late, f"Core subject {candidate.subject.name} after mid-day")

    def check(self, context: SchedulingContext) -> List[ConstraintViolation]:
        violations = []
        for section in context.registry.sections.values():
            late = defaultdict(list)
            for assignment in context.schedule.for_section(section.id):
                subject = context.registry.subjects.get(assignment.subject_id)
                if subject and self.is_core(subject, context) and not context.registry.is_first_half(assignment.slot.period):
                    late[subject.id].append(assignment)
            for subject_id, assignments in late.items():
                violations.append(self.report(
                    f"Core subject {context.subject_name(subject_id)} for {section.display_name} is taught after "
                    f"mid-day on {', '.join(a.slot.label for a in assignments)}",
                    section_id=section.id, subject_id=subject_id,
                    slots=[a.slot for a in assignments], assignment_ids=[a.id for a in assignments],
                ))
        return violations


class BalancedDistribution(Constraint):
    constraint_id = "balanced_distribution"
    title = "Spread subjects evenly across the week"
    default_weight = 3.0
    default_severity = Severity.MEDIUM

    def evaluate(self, candidate: Candidate, context: SchedulingContext) -> Verdict:
        day = context.schedule.section_day(candidate.section.id, candidate.slots[0].day)
        already = sum(1 for assignments in day.values() for a in assignments if a.subject_id == candidate.subject.id)
        units = already / max(1, candidate.subject.requires_consecutive_periods)
        return self.penalty(units, f"{candidate.subject.name} already on {candidate.slots[0].day.value} for {candidate.section.display_name}")

    def check(self, context: SchedulingContext) -> List[ConstraintViolation]:
        registry = context.registry
        day_count = len(registry.days)
        violations = []
        for section in registry.sections.values():
            by_subject = defaultdict(list)
            for assignment in context.schedule.for_section(section.id):
                by_subject[assignment.subject_id].append(assignment)
            for subject_id, assignments in by_subject.items():
                subject = registry.subjects.get(subject_id)
                block = subject.requires_consecutive_periods if subject else 1
                units = -(-len(assignments) // block)
                by_day = defaultdict(list)
                for assignment in assignments:
                    by_day[assignment.slot.day].append(assignment)
                name = context.subject_name(subject_id)
                if units <= day_count:
                    for day, day_assignments in by_day.items():
                        if len(day_assignments) > block:
                            violations.append(self.report(
                                f"{name} is scheduled {len(day_assignments)} times on {day.value} for "
                                f"{section.display_name} instead of being spread across the week",
                                section_id=section.id, subject_id=subject_id,
                                slots=[a.slot for a in day_assignments],
                                assignment_ids=[a.id for a in day_assignments],
                            ))
                elif len(by_day) <= 2 < day_count:
                    days = ", ".join(d.value for d in registry.days if d in by_day)
                    violations.append(self.report(
                        f"All {len(assignments)} {name} periods for {section.display_name} fall on {days}",
                        section_id=section.id, subject_id=subject_id,
                        slots=[a.slot for a in assignments], assignment_ids=[a.id for a in assignments],
                    ))
        return violations


def _gap_periods(periods: Set[int], allocatable: List[int]) -> List[int]:
    if not periods:
        return []
    low, high = min(periods), max(periods)
    return [p for p in allocatable if low < p < high and p not in periods]


class TeacherIdleGaps(Constraint):
    constraint_id = "teacher_idle_gaps"
    title = "Minimize teacher idle gaps"
    default_weight = 1.0
    default_severity = Severity.LOW

    def evaluate(self, candidate: Candidate, context: SchedulingContext) -> Verdict:
        day = candidate.slots[0].day
        allocatable = context.registry.allocatable_periods(day)
        before = context.schedule.teacher_day_periods(candidate.teacher.id, day)
        after = before | {slot.period for slot in candidate.slots}
        added = len(_gap_periods(after, allocatable)) - len(_gap_periods(before, allocatable))
        return self.penalty(added, f"Idle gap for {candidate.teacher.name} on {day.value}")

    def check(self, context: SchedulingContext) -> List[ConstraintViolation]:
        violations = []
        for teacher in context.registry.teachers.values():
            for day in context.registry.days:
                periods = context.schedule.teacher_day_periods(teacher.id, day)
                gaps = _gap_periods(periods, context.registry.allocatable_periods(day))
                if gaps:
                    slots = [context.registry.slot(day, p) for p in gaps]
                    violations.append(self.report(
                        f"Teacher {teacher.name} has {len(gaps)} idle period(s) on {day.value}: "
                        f"{', '.join(s.label for s in slots)}",
                        teacher_id=teacher.id, slots=slots,
                    ))
        return violations


class MinimizeRoomChanges(Constraint):
    constraint_id = "minimize_room_changes"
    title = "Minimize room changes"
    default_weight = 1.0
    default_severity = Severity.LOW

    def evaluate(self, candidate: Candidate, context: SchedulingContext) -> Verdict:
        day = context.schedule.section_day(candidate.section.id, candidate.slots[0].day)
        changes = sum(
            1 for period in _outside_neighbours(candidate)
            if any(a.room_id != candidate.room.id for a in day.get(period, ()))
        )
        return self.penalty(changes, f"{candidate.section.display_name} changes room around {candidate.slots[0].label}")

    def check(self, context: SchedulingContext) -> List[ConstraintViolation]:
        violations = []
        for section in context.registry.sections.values():
            for day in context.registry.days:
                by_period = context.schedule.section_day(section.id, day)
                for period in sorted(by_period):
                    if len(by_period[period]) != 1 or len(by_period.get(period + 1, ())) != 1:
                        continue
                    first, second = by_period[period][0], by_period[period + 1][0]
                    if first.room_id != second.room_id:
                        violations.append(self.report(
                            f"{section.display_name} moves from {context.room_name(first.room_id)} to "
                            f"{context.room_name(second.room_id)} between {first.slot.label} and {second.slot.label}",
                            section_id=section.id, room_id=second.room_id,
                            slots=[first.slot, second.slot], assignment_ids=[first.id, second.id],
                        ))
        return violations


class TeacherDailyBreak(Constraint):
    constraint_id = "teacher_daily_break"
    title = "Teachers keep a free period each day"
    default_weight = 2.0
    default_severity = Severity.MEDIUM

    def evaluate(self, candidate: Candidate, context: SchedulingContext) -> Verdict:
        day = candidate.slots[0].day
        allocatable = set(context.registry.allocatable_periods(day))
        after = context.schedule.teacher_day_periods(candidate.teacher.id, day) | {s.period for s in candidate.slots}
        if allocatable and allocatable <= after:
            return self.penalty(1, f"Teacher {candidate.teacher.name} has no free period on {day.value}")
        return OK

    def check(self, context: SchedulingContext) -> List[ConstraintViolation]:
        violations = []
        for teacher in context.registry.teachers.values():
            for day in context.registry.days:
                allocatable = set(context.registry.allocatable_periods(day))
                if allocatable and allocatable <= context.schedule.teacher_day_periods(teacher.id, day):
                    violations.append(self.report(
                        f"Teacher {teacher.name} teaches every period on {day.value} without a break",
                        teacher_id=teacher.id,
                    ))
        return violations


# ===========================
# Constraint set
# ===========================

CONSTRAINT_TYPES = [
    NoDoubleBooking,
    TeacherQualification,
    TeacherAvailability,
    RoomCompatibility,
    ConsecutivePeriods,
    TeacherLoad,
    NoBackToBack,
    MorningCoreSubjects,
    BalancedDistribution,
    TeacherIdleGaps,
    MinimizeRoomChanges,
    TeacherDailyBreak,
]

CONSTRAINT_IDS = [c.constraint_id for c in CONSTRAINT_TYPES]
ALWAYS_ENABLED = {NoDoubleBooking.constraint_id}


class ConstraintSet:
    """Ordered collection of constraints; hard ones are evaluated first."""

    def __init__(self, constraints: List[Constraint]):
        self.constraints = constraints

    def __iter__(self):
        return iter(self.constraints)

    def get(self, constraint_id: str) -> Optional[Constraint]:
        return next((c for c in self.constraints if c.constraint_id == constraint_id), None)

    @property
    def hard(self) -> List[Constraint]:
        return [c for c in self.constraints if c.hard and c.enabled]

    @property
    def soft(self) -> List[Constraint]:
        return [c for c in self.constraints if not c.hard and c.enabled]

    def first_hard_violation(self, candidate: Candidate, context: SchedulingContext) -> Optional[Verdict]:
        for constraint in self.hard:
            verdict = constraint.evaluate(candidate, context)
            if verdict.is_hard:
                return verdict
        return None

    def soft_penalty(self, candidate: Candidate, context: SchedulingContext) -> float:
        return sum(constraint.evaluate(candidate, context).weight for constraint in self.soft)

    def check_all(self, context: SchedulingContext, include_hard: bool = True) -> List[ConstraintViolation]:
        violations = []
        for constraint in (self.hard + self.soft) if include_hard else self.soft:
            violations.extend(constraint.check(context))
        return violations

    def describe(self) -> Dict[str, dict]:
        return {
            c.constraint_id: {
                "title": c.title,
                "hard": c.hard,
                "enabled": c.enabled,
                "weight": c.weight,
                "severity": c.severity.value,
            }
            for c in self.constraints
        }


def build_constraint_set(overrides: Optional[Dict[str, ConstraintSetting]] = None) -> ConstraintSet:
    """
    Instantiate every built-in constraint with the given overrides applied.

    Raises:
        ValueError: if an override names an unknown constraint.
    """
    overrides = overrides or {}
    unknown = sorted(set(overrides) - set(CONSTRAINT_IDS))
    if unknown:
        raise ValueError(f"Unknown constraint id(s): {', '.join(unknown)}")

    constraints = []
    for constraint_type in CONSTRAINT_TYPES:
        setting = overrides.get(constraint_type.constraint_id) or ConstraintSetting()
        enabled = True if setting.enabled is None else setting.enabled
        if not enabled and constraint_type.constraint_id in ALWAYS_ENABLED:
            logger.warning(f"Constraint {constraint_type.constraint_id} cannot be disabled; keeping it enabled")
            enabled = True
        constraints.append(constraint_type(enabled=enabled, weight=setting.weight, severity=setting.severity))
    return ConstraintSet(constraints)
