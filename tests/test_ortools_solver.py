"""
CP-SAT generation strategy tests.
"""
from builders import build_engine, build_registry, science_shortage
from models.domain import Severity
from service.conflict_reporter import ConflictReporter
from service.engine import CancellationToken
from service.ortools_solver import ORToolsScheduler


def solve(engine, **kwargs):
    scheduler = ORToolsScheduler(engine, time_limit_seconds=10, **kwargs)
    return scheduler.solve_scheduling()


def test_cp_sat_places_every_demand():
    engine = build_engine()
    result = solve(engine)

    assert result.strategy == "cp_sat"
    assert result.placed_periods == 24
    assert result.failed_periods == 0
    assert len(engine.schedule) == 24
    assert engine.index.reserved_ids() == {a.id for a in engine.schedule}


def test_cp_sat_respects_hard_constraints():
    engine = build_engine()
    solve(engine)

    violations = ConflictReporter(engine.constraints).analyze(engine.context)
    assert not [v for v in violations if v.severity == Severity.HIGH]
    assert all(a.room_id == "lab1" for a in engine.schedule if a.subject_id == "sci")


def test_cp_sat_science_shortage():
    engine = build_engine(build_registry(science_shortage()))
    result = solve(engine)

    assert result.placed_periods == 3
    assert result.failed_periods == 1
    assert engine.schedule.assigned_periods("t_sci") == 3
    unplaced = [v for v in result.violations if v.kind == "unplaced_demand"]
    assert len(unplaced) == 1
    assert unplaced[0].severity == Severity.HIGH


def test_cp_sat_is_reproducible():
    registry = build_registry()
    first = build_engine(registry)
    second = build_engine(registry)
    solve(first)
    solve(second)

    assert first.schedule.ordered() == second.schedule.ordered()


def test_cp_sat_cancelled_before_solving():
    engine = build_engine()
    token = CancellationToken()
    token.cancel()
    result = ORToolsScheduler(engine).solve_scheduling(cancel_token=token)

    assert result.cancelled
    assert len(engine.schedule) == 0
