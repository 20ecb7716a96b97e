"""
Availability index: which teacher, room and section coordinates are busy.

Each partition maps an entity id and a slot to the ids of the assignments
holding it. A coordinate is free when no assignment holds it. Forced manual
placements can make a coordinate hold more than one assignment; releasing one
of them leaves the coordinate busy for the other.
"""
from collections import defaultdict
from typing import Dict, Iterable, Set

from models.domain import Assignment, PeriodSlot

TEACHER = "teacher"
ROOM = "room"
SECTION = "section"


class AvailabilityIndex:

    def __init__(self):
        self.teacher_busy: Dict[str, Dict[PeriodSlot, Set[str]]] = defaultdict(lambda: defaultdict(set))
        self.room_busy: Dict[str, Dict[PeriodSlot, Set[str]]] = defaultdict(lambda: defaultdict(set))
        self.section_busy: Dict[str, Dict[PeriodSlot, Set[str]]] = defaultdict(lambda: defaultdict(set))
        self._reserved: Dict[str, Assignment] = {}

    def _partition(self, kind: str) -> Dict[str, Dict[PeriodSlot, Set[str]]]:
        return {TEACHER: self.teacher_busy, ROOM: self.room_busy, SECTION: self.section_busy}[kind]

    def _is_busy(self, partition, entity_id: str, slot: PeriodSlot) -> bool:
        slots = partition.get(entity_id)
        return bool(slots and slots.get(slot))

    def is_free(self, teacher_id: str, room_id: str, section_id: str, slot: PeriodSlot) -> bool:
        return not (
            self._is_busy(self.teacher_busy, teacher_id, slot)
            or self._is_busy(self.room_busy, room_id, slot)
            or self._is_busy(self.section_busy, section_id, slot)
        )

    def is_busy(self, kind: str, entity_id: str, slot: PeriodSlot) -> bool:
        return self._is_busy(self._partition(kind), entity_id, slot)

    def holders(self, kind: str, entity_id: str, slot: PeriodSlot) -> Set[str]:
        """Ids of the assignments occupying (entity, slot)."""
        slots = self._partition(kind).get(entity_id)
        if not slots:
            return set()
        return set(slots.get(slot, ()))

    def busy_slots(self, kind: str, entity_id: str) -> Set[PeriodSlot]:
        slots = self._partition(kind).get(entity_id, {})
        return {slot for slot, ids in slots.items() if ids}

    def reserve(self, assignment: Assignment):
        if assignment.id in self._reserved:
            return
        self._reserved[assignment.id] = assignment
        self.teacher_busy[assignment.teacher_id][assignment.slot].add(assignment.id)
        self.room_busy[assignment.room_id][assignment.slot].add(assignment.id)
        self.section_busy[assignment.section_id][assignment.slot].add(assignment.id)

    def release(self, assignment: Assignment):
        """Free the assignment's coordinates; a no-op if it was never reserved."""
        reserved = self._reserved.pop(assignment.id, None)
        if reserved is None:
            return
        for partition, entity_id in (
            (self.teacher_busy, reserved.teacher_id),
            (self.room_busy, reserved.room_id),
            (self.section_busy, reserved.section_id),
        ):
            ids = partition[entity_id][reserved.slot]
            ids.discard(reserved.id)
            if not ids:
                del partition[entity_id][reserved.slot]
            if not partition[entity_id]:
                del partition[entity_id]

    def clear(self):
        self.teacher_busy.clear()
        self.room_busy.clear()
        self.section_busy.clear()
        self._reserved.clear()

    def rebuild(self, assignments: Iterable[Assignment]):
        self.clear()
        for assignment in assignments:
            self.reserve(assignment)

    def reserved_ids(self) -> Set[str]:
        return set(self._reserved)

    def snapshot(self) -> Dict[str, Dict[str, Dict[PeriodSlot, frozenset]]]:
        """Plain copy of all three partitions, for comparisons."""
        return {
            kind: {
                entity_id: {slot: frozenset(ids) for slot, ids in slots.items() if ids}
                for entity_id, slots in self._partition(kind).items()
            }
            for kind in (TEACHER, ROOM, SECTION)
        }
