"""
Conflict reporter: explains what is wrong with a schedule as it stands.

Used after manual edits and imports, where assignments may not have gone
through the engine's hard-constraint guard.
"""
from typing import Iterable, List, Optional
import logging

from models.domain import SEVERITY_RANK, ConstraintViolation, Severity
from service.constraints import ConstraintSet, SchedulingContext

logger = logging.getLogger(__name__)


class ConflictReporter:

    def __init__(self, constraints: ConstraintSet, include_demand: bool = True, section_ids: Optional[Iterable[str]] = None):
        self.constraints = constraints
        self.include_demand = include_demand
        # Demand coverage is limited to these sections; None means every section
        self.section_ids = list(section_ids) if section_ids is not None else None

    def analyze(self, context: SchedulingContext) -> List[ConstraintViolation]:
        """Every enabled hard and soft constraint, plus demand coverage, ordered by severity."""
        violations = self.constraints.check_all(context, include_hard=True)
        if self.include_demand:
            violations.extend(self._demand_coverage(context))
        violations.sort(key=lambda v: SEVERITY_RANK[v.severity])

        high = sum(1 for v in violations if v.severity == Severity.HIGH)
        logger.info(f"Analysis found {len(violations)} violation(s), {high} high severity")
        return violations

    def _demand_coverage(self, context: SchedulingContext) -> List[ConstraintViolation]:
        violations = []
        sections = context.registry.sections
        scope = self.section_ids if self.section_ids is not None else list(sections)
        for section in (sections[s] for s in scope if s in sections):
            scheduled = {}
            for assignment in context.schedule.for_section(section.id):
                scheduled.setdefault(assignment.subject_id, []).append(assignment)

            for subject_id, periods in section.demands.items():
                assignments = scheduled.get(subject_id, [])
                if len(assignments) < periods:
                    violations.append(ConstraintViolation(
                        severity=Severity.MEDIUM,
                        kind="unscheduled_demand",
                        description=(
                            f"{context.section_name(section.id)} has {len(assignments)} of {periods} "
                            f"{context.subject_name(subject_id)} periods scheduled"
                        ),
                        section_id=section.id,
                        subject_id=subject_id,
                        assignment_ids=[a.id for a in assignments],
                    ))

            for subject_id, assignments in scheduled.items():
                demanded = section.demands.get(subject_id, 0)
                if len(assignments) > demanded:
                    violations.append(ConstraintViolation(
                        severity=Severity.LOW,
                        kind="excess_demand",
                        description=(
                            f"{context.section_name(section.id)} has {len(assignments)} "
                            f"{context.subject_name(subject_id)} periods scheduled but only {demanded} demanded"
                        ),
                        section_id=section.id,
                        subject_id=subject_id,
                        slots=[a.slot for a in assignments],
                        assignment_ids=[a.id for a in assignments],
                    ))
        return violations
