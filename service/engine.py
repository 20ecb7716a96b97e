"""
Allocation engine: places, generates and removes assignments.

All schedule mutations go through this class so the schedule and the
availability index never drift apart.
"""
from collections import Counter
from dataclasses import dataclass, field
from time import perf_counter
from typing import Dict, Iterable, List, Optional, Tuple, Union
import logging
import threading

from models.domain import Assignment, ConstraintViolation, PeriodSlot, Section, Severity, Subject
from service.availability import AvailabilityIndex, ROOM, SECTION
from service.constraints import (
    CONSTRAINT_IDS, Candidate, ConstraintSet, RoomCompatibility, SchedulingContext, Verdict
)
from service.exceptions import ConflictError
from service.registry import DomainRegistry
from service.schedule import Schedule

logger = logging.getLogger(__name__)


class CancellationToken:
    """Cooperative cancellation flag shared between a caller and a running generation."""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self):
        self._event.set()

    def reset(self):
        self._event.clear()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


@dataclass(frozen=True)
class DemandItem:
    """One block of periods still to be placed for a (section, subject)."""
    section_id: str
    subject_id: str
    size: int
    unit: int
    units: int


@dataclass
class Placement:
    assignments: List[Assignment]
    preferred_slot_conflict: Optional[ConflictError] = None


@dataclass
class SearchOutcome:
    candidate: Optional[Candidate] = None
    penalty: float = 0.0
    rejections: Counter = field(default_factory=Counter)
    first_rejection: Dict[str, Verdict] = field(default_factory=dict)

    def reject(self, verdict: Verdict):
        self.rejections[verdict.constraint_id] += 1
        self.first_rejection.setdefault(verdict.constraint_id, verdict)

    def blocking_verdict(self) -> Optional[Verdict]:
        """
        The rejection from the constraint evaluated last.

        Hard constraints run in a fixed order, so the latest one that rejected
        anything is the barrier the best candidates ran into.
        """
        if not self.rejections:
            return None
        constraint_id = max(self.first_rejection, key=lambda c: CONSTRAINT_IDS.index(c) if c in CONSTRAINT_IDS else -1)
        return self.first_rejection[constraint_id]

    def to_error(self, fallback: str) -> ConflictError:
        verdict = self.blocking_verdict()
        if verdict is None:
            return ConflictError(fallback)
        return ConflictError(verdict.reason, verdict.blocking_entity, verdict.slot, verdict.constraint_id)


@dataclass
class GenerationResult:
    schedule: Schedule
    violations: List[ConstraintViolation]
    placed_periods: int = 0
    failed_periods: int = 0
    cancelled: bool = False
    strategy: str = "greedy"
    duration_seconds: float = 0.0
    # Ordered copy of the schedule taken while the session lock is held
    assignments: List[Assignment] = field(default_factory=list)


def _entity_ids(blocking_entity: Optional[str]) -> Dict[str, str]:
    if not blocking_entity or ":" not in blocking_entity:
        return {}
    kind, entity_id = blocking_entity.split(":", 1)
    return {f"{kind}_id": entity_id} if kind in ("teacher", "room") else {}


class AllocationEngine:

    def __init__(
        self,
        registry: DomainRegistry,
        constraints: ConstraintSet,
        schedule: Optional[Schedule] = None,
        index: Optional[AvailabilityIndex] = None,
        core_subjects: Optional[Iterable[str]] = None,
    ):
        self.registry = registry
        self.constraints = constraints
        self.schedule = schedule if schedule is not None else Schedule()
        self.index = index if index is not None else AvailabilityIndex()
        self.context = SchedulingContext(registry, self.schedule, self.index, set(core_subjects or ()))

    # ===========================
    # Search
    # ===========================

    def _teachers(self, subject: Subject, teacher_id: Optional[str]):
        if teacher_id:
            return [self.registry.teacher(teacher_id)]
        return self.registry.qualified_teachers(subject.id)

    def _rooms(self, room_id: Optional[str]):
        if room_id:
            return [self.registry.room(room_id)]
        return list(self.registry.rooms.values())

    def _block_size(self, section: Section, subject: Subject) -> int:
        remaining = section.demands.get(subject.id, 0) - self.schedule.periods_scheduled(section.id, subject.id)
        if remaining <= 0:
            return subject.requires_consecutive_periods
        return min(subject.requires_consecutive_periods, remaining)

    def _evaluate_block(
        self,
        section: Section,
        subject: Subject,
        block: Tuple[PeriodSlot, ...],
        teachers,
        rooms,
        outcome: SearchOutcome,
        best: Optional[Tuple[float, Candidate]],
    ) -> Optional[Tuple[float, Candidate]]:
        for teacher in teachers:
            for room in rooms:
                candidate = Candidate(section, subject, teacher, room, block)
                verdict = self.constraints.first_hard_violation(candidate, self.context)
                if verdict is not None:
                    outcome.reject(verdict)
                    continue
                penalty = self.constraints.soft_penalty(candidate, self.context)
                if best is None or penalty < best[0]:
                    best = (penalty, candidate)
                    if penalty == 0:
                        return best
        return best

    def _search(
        self,
        section: Section,
        subject: Subject,
        size: int,
        teacher_id: Optional[str] = None,
        room_id: Optional[str] = None,
        blocks: Optional[List[Tuple[PeriodSlot, ...]]] = None,
    ) -> SearchOutcome:
        """
        Find the lowest-penalty hard-feasible candidate.

        Blocks are walked in ascending (day, period) order and teachers and
        rooms in catalog order, so the first candidate seen wins any tie.
        """
        outcome = SearchOutcome()
        teachers = self._teachers(subject, teacher_id)
        rooms = self._rooms(room_id)
        if not teachers:
            outcome.reject(Verdict(
                "hard", "teacher_qualification", f"No teacher is qualified to teach {subject.name}",
                blocking_entity=f"subject:{subject.id}",
            ))
            return outcome

        best = None
        for block in (blocks if blocks is not None else self.registry.runs(size)):
            busy = next((s for s in block if self.index.is_busy(SECTION, section.id, s)), None)
            if busy is not None:
                self._reject_busy_section(section, busy, outcome)
                continue
            best = self._evaluate_block(section, subject, block, teachers, rooms, outcome, best)
            if best is not None and best[0] == 0:
                break

        if best is not None:
            outcome.penalty, outcome.candidate = best
        return outcome

    def _reject_busy_section(self, section: Section, slot: PeriodSlot, outcome: SearchOutcome):
        holder = self.schedule.get(sorted(self.index.holders(SECTION, section.id, slot))[0])
        outcome.reject(Verdict(
            "hard", "no_double_booking",
            f"Section {section.display_name} already has {self.context.subject_name(holder.subject_id)} on {slot.label}",
            blocking_entity=f"section:{section.id}", slot=slot,
        ))

    # ===========================
    # Mutations
    # ===========================

    def commit(self, candidate: Candidate, forced: bool = False) -> List[Assignment]:
        block_id = self.schedule.next_block_id() if len(candidate.slots) > 1 else None
        assignments = []
        for slot in candidate.slots:
            assignment = Assignment(
                id=self.schedule.next_id(),
                section_id=candidate.section.id,
                subject_id=candidate.subject.id,
                teacher_id=candidate.teacher.id,
                room_id=candidate.room.id,
                slot=slot,
                block_id=block_id,
                forced=forced,
            )
            self.schedule.add(assignment)
            self.index.reserve(assignment)
            assignments.append(assignment)
        return assignments

    def place_one(
        self,
        section_id: str,
        subject_id: str,
        preferred_slot: Optional[PeriodSlot] = None,
        teacher_id: Optional[str] = None,
        room_id: Optional[str] = None,
        strict: bool = False,
        force: bool = False,
    ) -> Placement:
        """
        Place one block of `subject` for `section`.

        The preferred slot is tried first. If it breaks a hard constraint the
        conflict is kept on the returned Placement and the rest of the week is
        searched, unless `strict` is set. `force` places at the preferred slot
        whatever the hard constraints say.

        Raises:
            ConflictError: if no slot in the week satisfies every hard constraint.
        """
        section = self.registry.section(section_id)
        subject = self.registry.subject(subject_id)
        size = self._block_size(section, subject)

        preferred_block = None
        preferred_conflict = None
        if preferred_slot is not None:
            slot = self.registry.canonical(preferred_slot)
            if slot is None or self.registry.is_reserved(slot):
                preferred_conflict = ConflictError(
                    f"{preferred_slot.label} is not an allocatable period",
                    blocking_entity=f"slot:{preferred_slot.label}", slot=preferred_slot, kind="reserved_slot",
                )
            else:
                preferred_block = self.registry.run_containing(slot, size)
                if preferred_block is None:
                    preferred_conflict = ConflictError(
                        f"{subject.name} needs {size} contiguous periods starting {slot.label}",
                        blocking_entity=f"slot:{slot.label}", slot=slot, kind="consecutive_periods",
                    )

        if force:
            if preferred_conflict is not None:
                raise preferred_conflict
            if preferred_block is None:
                raise ConflictError("A forced placement needs a preferred slot", kind="force")
            return Placement(self._force(section, subject, preferred_block, teacher_id, room_id))

        if preferred_block is not None:
            outcome = self._search(section, subject, size, teacher_id, room_id, blocks=[preferred_block])
            if outcome.candidate is not None:
                return Placement(self.commit(outcome.candidate))
            preferred_conflict = outcome.to_error(f"{preferred_block[0].label} is not available")

        if preferred_conflict is not None:
            logger.info(f"Preferred slot rejected for {section.display_name} {subject.name}: {preferred_conflict.reason}")
            if strict:
                raise preferred_conflict

        blocks = [b for b in self.registry.runs(size) if b != preferred_block]
        outcome = self._search(section, subject, size, teacher_id, room_id, blocks=blocks)
        if outcome.candidate is None:
            if preferred_conflict is not None and not outcome.rejections:
                raise preferred_conflict
            error = outcome.to_error(f"No free period left for {section.display_name}")
            logger.warning(f"Cannot place {subject.name} for {section.display_name}: {error.reason}")
            raise error
        return Placement(self.commit(outcome.candidate), preferred_slot_conflict=preferred_conflict)

    def _force(self, section: Section, subject: Subject, block, teacher_id: Optional[str], room_id: Optional[str]):
        teachers = self._teachers(subject, teacher_id)
        if not teachers:
            raise ConflictError(f"No teacher is qualified to teach {subject.name}", kind="teacher_qualification")
        rooms = self._rooms(room_id)
        if not rooms:
            raise ConflictError("The catalog has no rooms", kind="room_compatibility")
        compatible = [r for r in rooms if not RoomCompatibility.problems(section, subject, r)]
        free = [r for r in compatible if not any(self.index.is_busy(ROOM, r.id, s) for s in block)]
        room = (free or compatible or rooms)[0]
        candidate = Candidate(section, subject, teachers[0], room, block)
        verdict = self.constraints.first_hard_violation(candidate, self.context)
        if verdict is not None:
            logger.warning(f"Forcing {subject.name} for {section.display_name} despite: {verdict.reason}")
        return self.commit(candidate, forced=True)

    def remove_assignment(self, assignment: Union[str, Assignment]) -> List[Assignment]:
        """
        Remove an assignment and every other period of its block.

        Unknown or already removed assignments are ignored.
        """
        if isinstance(assignment, Assignment):
            self.index.release(assignment)
            assignment = assignment.id
        existing = self.schedule.get(assignment)
        if existing is None:
            return []
        members = self.schedule.block(existing.block_id) if existing.block_id else [existing]
        for member in members:
            self.schedule.remove(member.id)
            self.index.release(member)
        return members

    def reset(self):
        self.schedule.clear()
        self.index.clear()

    # ===========================
    # Generation
    # ===========================

    def demand_items(self, section_ids: Optional[Iterable[str]] = None, subject_ids: Optional[Iterable[str]] = None) -> List[DemandItem]:
        """Unscheduled periods cut into blocks, most constrained first."""
        sections = [self.registry.section(s) for s in section_ids] if section_ids else list(self.registry.sections.values())
        subject_filter = set(subject_ids) if subject_ids else None
        section_order = {s.id: i for i, s in enumerate(self.registry.sections.values())}
        subject_order = {s.id: i for i, s in enumerate(self.registry.subjects.values())}

        items = []
        for section in sections:
            for subject_id, periods in section.demands.items():
                if subject_filter is not None and subject_id not in subject_filter:
                    continue
                remaining = periods - self.schedule.periods_scheduled(section.id, subject_id)
                if remaining <= 0:
                    continue
                block = self.registry.subject(subject_id).requires_consecutive_periods
                sizes = [block] * (remaining // block)
                if remaining % block:
                    sizes.append(remaining % block)
                for unit, size in enumerate(sizes, start=1):
                    items.append(DemandItem(section.id, subject_id, size, unit, len(sizes)))

        def priority(item: DemandItem):
            section = self.registry.sections[item.section_id]
            subject = self.registry.subjects[item.subject_id]
            return (
                0 if subject.requires_room_type else 1,
                -section.demands[item.subject_id],
                -section.strength,
                section_order[item.section_id],
                subject_order[item.subject_id],
                item.unit,
            )

        return sorted(items, key=priority)

    def search_item(self, item: DemandItem) -> SearchOutcome:
        section = self.registry.sections[item.section_id]
        subject = self.registry.subjects[item.subject_id]
        return self._search(section, subject, item.size)

    def candidates_for(self, item: DemandItem) -> List[Tuple[Candidate, float]]:
        """Every hard-feasible candidate for an item against the current schedule."""
        section = self.registry.sections[item.section_id]
        subject = self.registry.subjects[item.subject_id]
        found = []
        for block in self.registry.runs(item.size):
            if any(self.index.is_busy(SECTION, section.id, s) for s in block):
                continue
            for teacher in self.registry.qualified_teachers(subject.id):
                for room in self.registry.rooms.values():
                    candidate = Candidate(section, subject, teacher, room, block)
                    if self.constraints.first_hard_violation(candidate, self.context) is None:
                        found.append((candidate, self.constraints.soft_penalty(candidate, self.context)))
        return found

    def unplaced_violation(self, item: DemandItem, outcome: SearchOutcome) -> ConstraintViolation:
        section = self.registry.sections[item.section_id]
        subject = self.registry.subjects[item.subject_id]
        verdict = outcome.blocking_verdict()
        reason = verdict.reason if verdict else "no conflict-free teacher, room and period combination"
        return ConstraintViolation(
            severity=Severity.HIGH,
            kind="unplaced_demand",
            description=(
                f"Unable to place {subject.name} for {section.display_name} "
                f"({item.size} period(s), block {item.unit} of {item.units}): {reason}"
            ),
            section_id=section.id,
            subject_id=subject.id,
            slots=[verdict.slot] if verdict and verdict.slot else [],
            **_entity_ids(verdict.blocking_entity if verdict else None),
        )

    def generate_schedule(
        self,
        section_ids: Optional[Iterable[str]] = None,
        subject_ids: Optional[Iterable[str]] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> GenerationResult:
        """
        Greedy generation over every unscheduled demand item.

        Items that cannot be placed become high-severity violations and the run
        carries on. Cancellation is honoured between items; a cancelled run
        returns what it placed so far.
        """
        started = perf_counter()
        items = self.demand_items(section_ids, subject_ids)
        logger.info(f"Generating schedule for {len(items)} demand item(s)")

        result = GenerationResult(schedule=self.schedule, violations=[])
        for item in items:
            if cancel_token is not None and cancel_token.cancelled:
                result.cancelled = True
                logger.warning(f"Generation cancelled with {result.placed_periods} period(s) placed")
                break
            outcome = self.search_item(item)
            if outcome.candidate is None:
                result.failed_periods += item.size
                violation = self.unplaced_violation(item, outcome)
                logger.warning(violation.description)
                result.violations.append(violation)
                continue
            self.commit(outcome.candidate)
            result.placed_periods += item.size

        if not result.cancelled:
            result.violations.extend(self.constraints.check_all(self.context, include_hard=False))
        result.duration_seconds = perf_counter() - started
        logger.info(
            f"Generation finished: {result.placed_periods} placed, {result.failed_periods} unplaced, "
            f"{len(result.violations)} violation(s) in {result.duration_seconds:.2f}s"
        )
        return result
