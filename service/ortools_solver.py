"""
OR-Tools CP-SAT generation strategy.

Solves the same demand items as the greedy engine in one global model: every
hard-feasible placement of a block is a boolean, every block may instead be
left unplaced at a heavy cost, and the objective trades unplaced periods
against soft penalties. The chosen placements are committed through the
engine, so the schedule and availability index stay consistent.
"""

from collections import defaultdict
from ortools.sat.python import cp_model
from time import perf_counter
from typing import Dict, List, Optional, Tuple
import logging

from service.constraints import Candidate
from service.engine import AllocationEngine, CancellationToken, DemandItem, GenerationResult

logger = logging.getLogger(__name__)


class _CancellationCallback(cp_model.CpSolverSolutionCallback):
    """Stops the search at the next solution once the token is cancelled."""

    def __init__(self, cancel_token: Optional[CancellationToken]):
        super().__init__()
        self.cancel_token = cancel_token
        self.solutions = 0

    def on_solution_callback(self):
        self.solutions += 1
        if self.cancel_token is not None and self.cancel_token.cancelled:
            self.StopSearch()


class ORToolsScheduler:
    """
    Constraint-based generation using the OR-Tools CP-SAT solver.

    Solver parameters are fixed (seed, single worker) so identical inputs give
    identical schedules.
    """

    UNPLACED_WEIGHT = 1000  # per unplaced period; dominates every soft penalty
    PENALTY_SCALE = 10      # soft penalties are floats, CP-SAT needs integers

    def __init__(
        self,
        engine: AllocationEngine,
        time_limit_seconds: int = 30,
        random_seed: int = 42,
        num_workers: int = 1,
        rooms_per_slot: int = 3,
    ):
        """
        Initialize the scheduler.

        Args:
            engine: engine whose schedule receives the solution
            time_limit_seconds: Maximum time allowed for solver
            random_seed: solver seed
            num_workers: solver worker threads; 1 keeps runs reproducible
            rooms_per_slot: feasible rooms kept per (block, teacher) to bound model size
        """
        self.engine = engine
        self.rooms_per_slot = rooms_per_slot
        self.model = cp_model.CpModel()
        self.solver = cp_model.CpSolver()

        # Solver parameters for deterministic behavior
        self.solver.parameters.random_seed = random_seed
        self.solver.parameters.num_workers = num_workers
        self.solver.parameters.max_time_in_seconds = time_limit_seconds

        # Data structures
        self.items: List[DemandItem] = []
        self.variables: Dict[int, List[Tuple[cp_model.IntVar, Candidate, float]]] = {}
        self.unplaced: Dict[int, cp_model.IntVar] = {}

    def solve_scheduling(
        self,
        section_ids=None,
        subject_ids=None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> GenerationResult:
        """
        Main entry point to solve the scheduling problem.

        Returns:
            GenerationResult with the engine's schedule and every violation
        """
        started = perf_counter()
        result = GenerationResult(schedule=self.engine.schedule, violations=[], strategy="cp_sat")
        if cancel_token is not None and cancel_token.cancelled:
            result.cancelled = True
            return result

        try:
            # Step 1: Collect demand items still to be placed
            self.items = self.engine.demand_items(section_ids, subject_ids)
            logger.info(f"Building CP-SAT model for {len(self.items)} demand item(s)")

            # Step 2: Create decision variables
            self._create_variables()

            # Step 3: Add hard constraints
            self._add_hard_constraints()

            # Step 4: Add soft constraints and objective
            self._add_soft_constraints_and_objective()

            # Step 5: Solve the model
            callback = _CancellationCallback(cancel_token)
            status = self.solver.Solve(self.model, callback)
        except Exception as e:
            logger.error(f"CP-SAT scheduling error, falling back to greedy search: {str(e)}", exc_info=True)
            return self.engine.generate_schedule(section_ids, subject_ids, cancel_token)

        # Step 6: Extract and commit the solution
        result.cancelled = cancel_token is not None and cancel_token.cancelled
        if status not in (cp_model.OPTIMAL, cp_model.FEASIBLE):
            if result.cancelled:
                return result
            logger.warning(
                f"CP-SAT returned {self.solver.StatusName(status)}; falling back to greedy search"
            )
            return self.engine.generate_schedule(section_ids, subject_ids, cancel_token)

        self._extract_solution(result)
        if not result.cancelled:
            result.violations.extend(self.engine.constraints.check_all(self.engine.context, include_hard=False))
        result.duration_seconds = perf_counter() - started
        logger.info(
            f"CP-SAT {self.solver.StatusName(status)}: {result.placed_periods} placed, "
            f"{result.failed_periods} unplaced in {result.duration_seconds:.2f}s"
        )
        return result

    def _create_variables(self):
        """One boolean per kept placement option, plus an 'unplaced' slack per item."""
        self.variables = {}
        self.unplaced = {}

        for item_idx, item in enumerate(self.items):
            options = []
            rooms_kept = defaultdict(int)
            for candidate, penalty in self.engine.candidates_for(item):
                key = (candidate.slots, candidate.teacher.id)
                if rooms_kept[key] >= self.rooms_per_slot:
                    continue
                rooms_kept[key] += 1
                var = self.model.NewBoolVar(
                    f'item_{item_idx}_{candidate.slots[0].day.value}_{candidate.slots[0].period}'
                    f'_t_{candidate.teacher.id}_r_{candidate.room.id}'
                )
                options.append((var, candidate, penalty))

            self.variables[item_idx] = options
            self.unplaced[item_idx] = self.model.NewBoolVar(f'item_{item_idx}_unplaced')

            # Each block is placed exactly once or left unplaced
            self.model.Add(sum(var for var, _, _ in options) + self.unplaced[item_idx] == 1)

    def _add_hard_constraints(self):
        """Add all hard constraints to the model."""
        section_slots = defaultdict(list)
        teacher_slots = defaultdict(list)
        room_slots = defaultdict(list)
        teacher_periods = defaultdict(list)

        for options in self.variables.values():
            for var, candidate, _ in options:
                for slot in candidate.slots:
                    section_slots[(candidate.section.id, slot)].append(var)
                    teacher_slots[(candidate.teacher.id, slot)].append(var)
                    room_slots[(candidate.room.id, slot)].append(var)
                teacher_periods[candidate.teacher.id].append((var, len(candidate.slots)))

        # 1. No section, teacher or room double-booking
        for slot_vars in (section_slots, teacher_slots, room_slots):
            for variables in slot_vars.values():
                if len(variables) > 1:
                    self.model.Add(sum(variables) <= 1)

        # 2. Teacher weekly load, counting periods already in the schedule
        load = self.engine.constraints.get("teacher_load")
        if load is not None and load.enabled:
            for teacher_id, terms in teacher_periods.items():
                teacher = self.engine.registry.teachers[teacher_id]
                capacity = teacher.max_periods_per_week - self.engine.schedule.assigned_periods(teacher_id)
                self.model.Add(sum(var * size for var, size in terms) <= max(0, capacity))

    def _add_soft_constraints_and_objective(self):
        """Add soft constraints as weighted objectives."""
        objective_terms = []

        for item_idx, item in enumerate(self.items):
            objective_terms.append(self.unplaced[item_idx] * self.UNPLACED_WEIGHT * item.size)
            for var, _, penalty in self.variables[item_idx]:
                weight = int(round(penalty * self.PENALTY_SCALE))
                if weight:
                    objective_terms.append(var * weight)

        # Same-day clustering between blocks placed in this run
        balanced = self.engine.constraints.get("balanced_distribution")
        if balanced is not None and balanced.enabled and balanced.weight > 0:
            per_day = defaultdict(list)
            for item_idx, item in enumerate(self.items):
                for var, candidate, _ in self.variables[item_idx]:
                    per_day[(item.section_id, item.subject_id, candidate.slots[0].day)].append(var)
            weight = int(round(balanced.weight * self.PENALTY_SCALE))
            for (section_id, subject_id, day), variables in per_day.items():
                if len(variables) < 2:
                    continue
                excess = self.model.NewIntVar(0, len(variables), f'cluster_{section_id}_{subject_id}_{day.value}')
                self.model.Add(excess >= sum(variables) - 1)
                objective_terms.append(excess * weight)

        # Objective: place everything, then minimize penalties
        if objective_terms:
            self.model.Minimize(sum(objective_terms))

    def _extract_solution(self, result: GenerationResult):
        """Commit chosen placements in priority order, then report what is left."""
        failed = []
        for item_idx, item in enumerate(self.items):
            chosen = next(
                (candidate for var, candidate, _ in self.variables[item_idx] if self.solver.Value(var) == 1),
                None,
            )
            if chosen is None:
                failed.append(item)
                continue
            verdict = self.engine.constraints.first_hard_violation(chosen, self.engine.context)
            if verdict is not None:
                logger.warning(f"Discarding CP-SAT placement that breaks {verdict.constraint_id}: {verdict.reason}")
                failed.append(item)
                continue
            self.engine.commit(chosen)
            result.placed_periods += item.size

        # Left-over items get one greedy attempt against the committed schedule
        for item in failed:
            outcome = self.engine.search_item(item)
            if outcome.candidate is not None:
                self.engine.commit(outcome.candidate)
                result.placed_periods += item.size
                continue
            result.failed_periods += item.size
            violation = self.engine.unplaced_violation(item, outcome)
            logger.warning(violation.description)
            result.violations.append(violation)
