"""
Scheduling sessions: one term's catalog, schedule and engine behind a lock.

A session is the unit of isolation. Generation, manual placement, removal
and every read of one session are serialized through its lock; different
sessions share nothing and run in parallel.
"""
from dataclasses import dataclass
from typing import Dict, List, Optional
import logging
import threading
import uuid

from models.domain import Assignment, ConstraintSetting, ConstraintViolation, PeriodSlot
from models.schemas import (
    CatalogPayload, RoomUtilizationResponse, SlotAvailabilityResponse, TeacherLoadResponse,
    TimetableResponse
)
from service import timetable_view, workload
from service.conflict_reporter import ConflictReporter
from service.constraints import ConstraintSet, build_constraint_set
from service.engine import AllocationEngine, CancellationToken, GenerationResult, Placement
from service.exceptions import CatalogError, SessionNotFoundError
from service.ortools_solver import ORToolsScheduler
from service.registry import DomainRegistry, load_catalog

logger = logging.getLogger(__name__)

STRATEGIES = ("greedy", "cp_sat")


@dataclass(frozen=True)
class SolverOptions:
    time_limit_seconds: int = 30
    random_seed: int = 42
    num_workers: int = 1


class SchedulingSession:

    def __init__(
        self,
        session_id: str,
        registry: DomainRegistry,
        constraints: ConstraintSet,
        section_ids: Optional[List[str]] = None,
        core_subjects: Optional[List[str]] = None,
        strategy: str = "greedy",
        solver_options: Optional[SolverOptions] = None,
    ):
        self.session_id = session_id
        self.registry = registry
        self.constraints = constraints
        self.section_ids = list(section_ids or registry.sections)
        self.core_subjects = list(core_subjects or [])
        self.strategy = strategy
        self.solver_options = solver_options or SolverOptions()

        self.engine = AllocationEngine(registry, constraints, core_subjects=self.core_subjects)
        self.reporter = ConflictReporter(constraints, section_ids=self.section_ids)
        self.cancel_token = CancellationToken()
        self.generating = False
        self._lock = threading.RLock()

    @property
    def context(self):
        return self.engine.context

    # ===========================
    # Mutations
    # ===========================

    def generate(self, reset: bool = True, strategy: Optional[str] = None) -> GenerationResult:
        """
        Fill the session's sections with every outstanding demand.

        With `reset` the schedule is emptied first; otherwise existing
        assignments, manual ones included, are kept and only the gaps filled.
        """
        strategy = strategy or self.strategy
        if strategy not in STRATEGIES:
            raise ValueError(f"Unknown scheduling strategy '{strategy}'")

        with self._lock:
            self.cancel_token.reset()
            self.generating = True
            try:
                if reset:
                    self.engine.reset()
                logger.info(f"Session {self.session_id}: generating with {strategy} strategy (reset={reset})")
                if strategy == "cp_sat":
                    scheduler = ORToolsScheduler(
                        self.engine,
                        time_limit_seconds=self.solver_options.time_limit_seconds,
                        random_seed=self.solver_options.random_seed,
                        num_workers=self.solver_options.num_workers,
                    )
                    result = scheduler.solve_scheduling(self.section_ids, cancel_token=self.cancel_token)
                else:
                    result = self.engine.generate_schedule(self.section_ids, cancel_token=self.cancel_token)
                result.assignments = self.engine.schedule.ordered()
                return result
            finally:
                self.generating = False

    def cancel(self) -> bool:
        """Ask a running generation to stop. Does not wait for the lock."""
        if not self.generating:
            return False
        self.cancel_token.cancel()
        logger.info(f"Session {self.session_id}: cancellation requested")
        return True

    def place(
        self,
        section_id: str,
        subject_id: str,
        preferred_slot: Optional[PeriodSlot] = None,
        teacher_id: Optional[str] = None,
        room_id: Optional[str] = None,
        strict: bool = False,
        force: bool = False,
    ) -> Placement:
        with self._lock:
            return self.engine.place_one(
                section_id, subject_id, preferred_slot,
                teacher_id=teacher_id, room_id=room_id, strict=strict, force=force,
            )

    def remove(self, assignment_id: str) -> List[Assignment]:
        with self._lock:
            removed = self.engine.remove_assignment(assignment_id)
            if removed:
                logger.info(f"Session {self.session_id}: removed {len(removed)} assignment(s)")
            return removed

    # ===========================
    # Reads
    # ===========================

    def assignments(self) -> List[Assignment]:
        with self._lock:
            return self.engine.schedule.ordered()

    def analyze(self) -> List[ConstraintViolation]:
        with self._lock:
            return self.reporter.analyze(self.context)

    def teacher_loads(self) -> TeacherLoadResponse:
        with self._lock:
            return workload.teacher_loads(self.context)

    def room_utilization(self) -> RoomUtilizationResponse:
        with self._lock:
            return workload.room_utilization(self.context)

    def check_slot(
        self,
        slot: PeriodSlot,
        section_id: Optional[str] = None,
        teacher_id: Optional[str] = None,
        room_id: Optional[str] = None,
    ) -> SlotAvailabilityResponse:
        with self._lock:
            return workload.check_slot(self.context, slot, section_id, teacher_id, room_id)

    def timetable(
        self,
        section_id: Optional[str] = None,
        teacher_id: Optional[str] = None,
        room_id: Optional[str] = None,
    ) -> TimetableResponse:
        with self._lock:
            if section_id:
                return timetable_view.section_timetable(self.context, section_id)
            if teacher_id:
                return timetable_view.teacher_timetable(self.context, teacher_id)
            if room_id:
                return timetable_view.room_timetable(self.context, room_id)
        raise ValueError("One of section_id, teacher_id or room_id is required")

    def summary(self) -> dict:
        with self._lock:
            return {
                "session_id": self.session_id,
                "section_ids": self.section_ids,
                "strategy": self.strategy,
                "core_subjects": self.core_subjects,
                "constraints": self.constraints.describe(),
                "assignment_count": len(self.engine.schedule),
                "generating": self.generating,
            }


class SessionStore:
    """In-memory sessions keyed by id."""

    def __init__(self, solver_options: Optional[SolverOptions] = None):
        self.solver_options = solver_options or SolverOptions()
        self._sessions: Dict[str, SchedulingSession] = {}
        self._lock = threading.Lock()

    def create(
        self,
        catalog: CatalogPayload,
        section_ids: Optional[List[str]] = None,
        constraints: Optional[Dict[str, ConstraintSetting]] = None,
        core_subjects: Optional[List[str]] = None,
        strategy: str = "greedy",
    ) -> SchedulingSession:
        """
        Validate the catalog and open a session over it.

        Raises:
            CatalogError: if the catalog, the section scope or the constraint
                configuration is invalid.
        """
        registry = load_catalog(
            catalog.teachers, catalog.rooms, catalog.subjects, catalog.sections, catalog.period_template
        )

        unknown = [s for s in (section_ids or []) if s not in registry.sections]
        if unknown:
            raise CatalogError([f"Unknown section id '{s}' in scope" for s in unknown])

        try:
            constraint_set = build_constraint_set(constraints)
        except ValueError as e:
            raise CatalogError([str(e)])

        session = SchedulingSession(
            session_id=str(uuid.uuid4()),
            registry=registry,
            constraints=constraint_set,
            section_ids=section_ids,
            core_subjects=core_subjects,
            strategy=strategy,
            solver_options=self.solver_options,
        )
        with self._lock:
            self._sessions[session.session_id] = session
        logger.info(f"Session {session.session_id} created for {len(session.section_ids)} section(s)")
        return session

    def get(self, session_id: str) -> SchedulingSession:
        with self._lock:
            session = self._sessions.get(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        return session

    def delete(self, session_id: str):
        with self._lock:
            session = self._sessions.pop(session_id, None)
        if session is None:
            raise SessionNotFoundError(session_id)
        session.cancel()
        logger.info(f"Session {session_id} deleted")

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)
