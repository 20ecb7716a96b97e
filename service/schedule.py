"""
Schedule: the set of assignments for one term.

Per-entity lookups are views over the live assignment set; counts such as a
teacher's assigned periods are always derived from them, never stored.
"""
from collections import defaultdict
from typing import Dict, Iterator, List, Optional, Set

from models.domain import DAY_ORDER, Assignment, Day


class Schedule:

    def __init__(self):
        self._assignments: Dict[str, Assignment] = {}
        self._by_section: Dict[str, Set[str]] = defaultdict(set)
        self._by_teacher: Dict[str, Set[str]] = defaultdict(set)
        self._by_room: Dict[str, Set[str]] = defaultdict(set)
        self._by_block: Dict[str, Set[str]] = defaultdict(set)
        self._seq = 0
        self._block_seq = 0

    def __len__(self) -> int:
        return len(self._assignments)

    def __iter__(self) -> Iterator[Assignment]:
        return iter(list(self._assignments.values()))

    def __contains__(self, assignment_id: str) -> bool:
        return assignment_id in self._assignments

    def next_id(self) -> str:
        self._seq += 1
        return f"a{self._seq:05d}"

    def next_block_id(self) -> str:
        self._block_seq += 1
        return f"b{self._block_seq:05d}"

    def get(self, assignment_id: str) -> Optional[Assignment]:
        return self._assignments.get(assignment_id)

    def add(self, assignment: Assignment):
        self._assignments[assignment.id] = assignment
        self._by_section[assignment.section_id].add(assignment.id)
        self._by_teacher[assignment.teacher_id].add(assignment.id)
        self._by_room[assignment.room_id].add(assignment.id)
        if assignment.block_id:
            self._by_block[assignment.block_id].add(assignment.id)

    def remove(self, assignment_id: str) -> Optional[Assignment]:
        assignment = self._assignments.pop(assignment_id, None)
        if assignment is None:
            return None
        self._by_section[assignment.section_id].discard(assignment_id)
        self._by_teacher[assignment.teacher_id].discard(assignment_id)
        self._by_room[assignment.room_id].discard(assignment_id)
        if assignment.block_id:
            self._by_block[assignment.block_id].discard(assignment_id)
        return assignment

    def clear(self):
        self._assignments.clear()
        self._by_section.clear()
        self._by_teacher.clear()
        self._by_room.clear()
        self._by_block.clear()
        self._seq = 0
        self._block_seq = 0

    def _resolve(self, ids: Set[str]) -> List[Assignment]:
        return sorted((self._assignments[i] for i in ids), key=sort_key)

    def for_section(self, section_id: str) -> List[Assignment]:
        return self._resolve(self._by_section.get(section_id, set()))

    def for_teacher(self, teacher_id: str) -> List[Assignment]:
        return self._resolve(self._by_teacher.get(teacher_id, set()))

    def for_room(self, room_id: str) -> List[Assignment]:
        return self._resolve(self._by_room.get(room_id, set()))

    def block(self, block_id: str) -> List[Assignment]:
        return self._resolve(self._by_block.get(block_id, set()))

    def assigned_periods(self, teacher_id: str) -> int:
        return len(self._by_teacher.get(teacher_id, ()))

    def room_periods(self, room_id: str) -> int:
        return len(self._by_room.get(room_id, ()))

    def periods_scheduled(self, section_id: str, subject_id: str) -> int:
        return sum(1 for a in self.for_section(section_id) if a.subject_id == subject_id)

    def section_day(self, section_id: str, day: Day) -> Dict[int, List[Assignment]]:
        """period -> assignments for one section on one day."""
        by_period = defaultdict(list)
        for assignment_id in self._by_section.get(section_id, ()):
            assignment = self._assignments[assignment_id]
            if assignment.slot.day == day:
                by_period[assignment.slot.period].append(assignment)
        return by_period

    def teacher_day_periods(self, teacher_id: str, day: Day) -> Set[int]:
        return {
            self._assignments[i].slot.period
            for i in self._by_teacher.get(teacher_id, ())
            if self._assignments[i].slot.day == day
        }

    def ordered(self) -> List[Assignment]:
        return sorted(self._assignments.values(), key=sort_key)


def sort_key(assignment: Assignment):
    return (DAY_ORDER[assignment.slot.day], assignment.slot.period, assignment.section_id, assignment.id)
