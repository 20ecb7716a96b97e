"""
Domain registry: the read-only catalog a scheduling session works against.

`load_catalog` validates the catalog up front so that demands which can never
be satisfied are rejected before any search starts.
"""
from collections import Counter
from datetime import datetime, time, timedelta
from typing import Dict, Iterable, List, Optional, Tuple
import logging

from models.domain import (
    DAY_ORDER, Day, PeriodSlot, PeriodTemplate, Room, Section, Subject, Teacher
)
from service.exceptions import CatalogError, UnknownEntityError

logger = logging.getLogger(__name__)


# ===========================
# Time helpers
# ===========================

def parse_time(time_str: str) -> time:
    """Parse HH:MM time string to time object."""
    return datetime.strptime(time_str, '%H:%M').time()


def time_to_str(t: time) -> str:
    """Convert time object to HH:MM string."""
    return t.strftime('%H:%M')


def add_minutes(t: time, minutes: int) -> time:
    """Add minutes to a time object."""
    dt = datetime.combine(datetime.today(), t)
    dt += timedelta(minutes=minutes)
    return dt.time()


def format_duration(start_str: str, end_str: str) -> str:
    """Format duration between two times as 'Xh Ymin'."""
    start_dt = datetime.combine(datetime.today(), parse_time(start_str))
    end_dt = datetime.combine(datetime.today(), parse_time(end_str))
    total_minutes = int((end_dt - start_dt).total_seconds() / 60)

    hours = total_minutes // 60
    minutes = total_minutes % 60

    if hours > 0 and minutes > 0:
        return f"{hours}h {minutes}min"
    elif hours > 0:
        return f"{hours}h"
    else:
        return f"{minutes}min"


# ===========================
# Registry
# ===========================

class DomainRegistry:
    """
    Immutable catalog of teachers, rooms, subjects, sections and the period grid.

    Collections keep the order they were supplied in; every search that walks
    them does so in that order, which keeps scheduling deterministic.
    """

    def __init__(
        self,
        teachers: List[Teacher],
        rooms: List[Room],
        subjects: List[Subject],
        sections: List[Section],
        template: PeriodTemplate,
    ):
        self.template = template
        self.teachers: Dict[str, Teacher] = {t.id: t for t in teachers}
        self.rooms: Dict[str, Room] = {r.id: r for r in rooms}
        self.subjects: Dict[str, Subject] = {s.id: s for s in subjects}
        self.sections: Dict[str, Section] = {s.id: s for s in sections}

        self.days: List[Day] = sorted(set(template.days), key=lambda d: DAY_ORDER[d])
        self._reserved = {(day, period) for day in self.days for period in template.reserved_periods}
        self._reserved.update((s.day, s.period) for s in template.reserved_slots)

        # Canonical slot instances, reused everywhere as dict keys
        self._slots: Dict[Tuple[Day, int], PeriodSlot] = {}
        for day in self.days:
            for period in range(1, template.periods_per_day + 1):
                self._slots[(day, period)] = PeriodSlot(day=day, period=period)

        self.allocatable_slots: List[PeriodSlot] = [
            slot for key, slot in self._slots.items() if key not in self._reserved
        ]
        self.period_times = self._build_period_times()

        self._qualified: Dict[str, List[Teacher]] = {}
        for teacher in self.teachers.values():
            for subject_id in teacher.subjects:
                self._qualified.setdefault(subject_id, []).append(teacher)

        self._runs_cache: Dict[int, List[Tuple[PeriodSlot, ...]]] = {}

    def _build_period_times(self) -> Dict[int, Tuple[str, str]]:
        """Wall-clock start/end per period; daily reserved periods use the lunch length."""
        times = {}
        current = parse_time(self.template.start_time)
        for period in range(1, self.template.periods_per_day + 1):
            minutes = self.template.lunch_minutes if period in self.template.reserved_periods else self.template.period_minutes
            end = add_minutes(current, minutes)
            times[period] = (time_to_str(current), time_to_str(end))
            current = end
        return times

    # ---- lookups ----

    def teacher(self, teacher_id: str) -> Teacher:
        if teacher_id not in self.teachers:
            raise UnknownEntityError("Teacher", teacher_id)
        return self.teachers[teacher_id]

    def room(self, room_id: str) -> Room:
        if room_id not in self.rooms:
            raise UnknownEntityError("Room", room_id)
        return self.rooms[room_id]

    def subject(self, subject_id: str) -> Subject:
        if subject_id not in self.subjects:
            raise UnknownEntityError("Subject", subject_id)
        return self.subjects[subject_id]

    def section(self, section_id: str) -> Section:
        if section_id not in self.sections:
            raise UnknownEntityError("Section", section_id)
        return self.sections[section_id]

    def qualified_teachers(self, subject_id: str) -> List[Teacher]:
        return self._qualified.get(subject_id, [])

    # ---- grid ----

    def slot(self, day: Day, period: int) -> Optional[PeriodSlot]:
        """Canonical slot for (day, period), or None if it is outside the grid."""
        return self._slots.get((Day(day), period))

    def canonical(self, slot: PeriodSlot) -> Optional[PeriodSlot]:
        return self._slots.get((slot.day, slot.period))

    def is_reserved(self, slot: PeriodSlot) -> bool:
        return (slot.day, slot.period) in self._reserved

    def is_allocatable(self, slot: PeriodSlot) -> bool:
        return (slot.day, slot.period) in self._slots and not self.is_reserved(slot)

    def day_slots(self, day: Day) -> List[PeriodSlot]:
        """Every slot of a day including reserved ones, in period order."""
        return [self._slots[(day, p)] for p in range(1, self.template.periods_per_day + 1)]

    def allocatable_periods(self, day: Day) -> List[int]:
        return [s.period for s in self.allocatable_slots if s.day == day]

    def is_first_half(self, period: int) -> bool:
        return period * 2 <= self.template.periods_per_day

    def runs(self, length: int) -> List[Tuple[PeriodSlot, ...]]:
        """All runs of `length` contiguous allocatable periods, ascending by (day, start period)."""
        if length not in self._runs_cache:
            runs = []
            for day in self.days:
                for start in range(1, self.template.periods_per_day - length + 2):
                    block = tuple(self._slots[(day, p)] for p in range(start, start + length))
                    if all(not self.is_reserved(s) for s in block):
                        runs.append(block)
            self._runs_cache[length] = runs
        return self._runs_cache[length]

    def run_containing(self, start: PeriodSlot, length: int) -> Optional[Tuple[PeriodSlot, ...]]:
        """The run of `length` periods beginning at `start`, if it is fully allocatable."""
        block = []
        for period in range(start.period, start.period + length):
            slot = self._slots.get((start.day, period))
            if slot is None or self.is_reserved(slot):
                return None
            block.append(slot)
        return tuple(block)

    def longest_run(self) -> int:
        longest = 0
        for day in self.days:
            current = 0
            for period in range(1, self.template.periods_per_day + 1):
                if (day, period) in self._reserved:
                    current = 0
                else:
                    current += 1
                    longest = max(longest, current)
        return longest


# ===========================
# Catalog loading
# ===========================

def _duplicate_ids(kind: str, items: Iterable) -> List[str]:
    counts = Counter(item.id for item in items)
    return [f"Duplicate {kind} id '{item_id}'" for item_id, count in counts.items() if count > 1]


def _validate_template(template: PeriodTemplate) -> List[str]:
    errors = []
    if not template.days:
        errors.append("Period template must name at least one working day")
    if len(set(template.days)) != len(template.days):
        errors.append("Period template lists a working day more than once")
    for period in template.reserved_periods:
        if period < 1 or period > template.periods_per_day:
            errors.append(f"Reserved period {period} is outside 1..{template.periods_per_day}")
    for slot in template.reserved_slots:
        if slot.day not in template.days or slot.period > template.periods_per_day:
            errors.append(f"Reserved slot {slot.label} is outside the weekly grid")
    try:
        parse_time(template.start_time)
    except ValueError:
        errors.append(f"Invalid start time '{template.start_time}'. Use HH:MM format (e.g., '08:00')")
    return errors


def load_catalog(
    teachers: List[Teacher],
    rooms: List[Room],
    subjects: List[Subject],
    sections: List[Section],
    template: PeriodTemplate,
) -> DomainRegistry:
    """
    Validate the catalog and build a registry.

    Raises:
        CatalogError: listing every problem that makes the catalog unsatisfiable
            by construction.
    """
    errors = _validate_template(template)
    errors.extend(_duplicate_ids("teacher", teachers))
    errors.extend(_duplicate_ids("room", rooms))
    errors.extend(_duplicate_ids("subject", subjects))
    errors.extend(_duplicate_ids("section", sections))
    if errors:
        raise CatalogError(errors)

    registry = DomainRegistry(teachers, rooms, subjects, sections, template)
    if not registry.allocatable_slots:
        raise CatalogError(["Period template has no allocatable slots"])

    for teacher in teachers:
        for subject_id in sorted(teacher.subjects):
            if subject_id not in registry.subjects:
                errors.append(f"Teacher {teacher.name} teaches unknown subject '{subject_id}'")

    capacity = len(registry.allocatable_slots)
    longest_run = registry.longest_run()
    for section in sections:
        total = 0
        for subject_id, periods in section.demands.items():
            if subject_id not in registry.subjects:
                errors.append(f"Section {section.display_name} demands unknown subject '{subject_id}'")
                continue
            if periods == 0:
                continue
            total += periods
            subject = registry.subjects[subject_id]
            if not registry.qualified_teachers(subject_id):
                errors.append(f"Section {section.display_name} demands {subject.name} but no teacher teaches it")
            if subject.requires_consecutive_periods > longest_run:
                errors.append(
                    f"{subject.name} requires {subject.requires_consecutive_periods} consecutive periods "
                    f"but the longest run in a day is {longest_run}"
                )
        if total > capacity:
            errors.append(
                f"Section {section.display_name} demands {total} periods per week "
                f"but only {capacity} non-reserved periods exist"
            )

    if errors:
        errors = list(dict.fromkeys(errors))
        logger.warning(f"Catalog rejected with {len(errors)} problem(s)")
        raise CatalogError(errors)

    logger.info(
        f"Catalog loaded: {len(teachers)} teachers, {len(rooms)} rooms, "
        f"{len(subjects)} subjects, {len(sections)} sections, {capacity} allocatable slots"
    )
    return registry
