"""
Conflict reporter tests: analysis of schedules edited by hand.
"""
from builders import build_engine, slot
from models.domain import Severity
from service.conflict_reporter import ConflictReporter


def test_empty_schedule_reports_unscheduled_demand():
    engine = build_engine()
    violations = ConflictReporter(engine.constraints).analyze(engine.context)

    unscheduled = [v for v in violations if v.kind == "unscheduled_demand"]
    assert len(unscheduled) == 6
    assert all(v.severity == Severity.MEDIUM for v in unscheduled)
    assert "Grade 2-A has 0 of 5 Mathematics periods scheduled" in [v.description for v in unscheduled]


def test_demand_coverage_can_be_switched_off():
    engine = build_engine()
    assert ConflictReporter(engine.constraints, include_demand=False).analyze(engine.context) == []


def test_room_double_booking_names_both_sections():
    engine = build_engine()
    engine.place_one("g2b", "sci", slot("Tue", 4))
    engine.place_one("g2a", "sci", slot("Tue", 4), teacher_id="t_sci2", room_id="lab1", force=True)

    violations = ConflictReporter(engine.constraints, include_demand=False).analyze(engine.context)
    assert violations[0].severity == Severity.HIGH
    assert violations[0].kind == "no_double_booking"
    assert violations[0].room_id == "lab1"
    assert violations[0].slots == [slot("Tue", 4)]
    assert violations[0].description == (
        "Room Science Lab 1 double-booked on Tue P4: Grade 2-A (Science) and Grade 2-B (Science)"
    )


def test_violations_are_ordered_by_severity():
    engine = build_engine()
    engine.place_one("g2a", "eng", slot("Mon", 1))
    engine.place_one("g2a", "math", slot("Mon", 1), force=True)

    violations = ConflictReporter(engine.constraints).analyze(engine.context)
    ranks = [v.severity for v in violations]
    assert ranks[0] == Severity.HIGH
    assert ranks == sorted(ranks, key=[Severity.HIGH, Severity.MEDIUM, Severity.LOW].index)


def test_excess_periods_are_reported():
    engine = build_engine()
    for day in ("Mon", "Tue", "Wed", "Thu", "Fri", "Fri"):
        engine.place_one("g2a", "math", slot(day, 1))

    violations = ConflictReporter(engine.constraints).analyze(engine.context)
    excess = [v for v in violations if v.kind == "excess_demand"]
    assert len(excess) == 1
    assert excess[0].severity == Severity.LOW
    assert len(excess[0].assignment_ids) == 6


def test_generated_schedule_analyzes_clean_of_hard_violations():
    engine = build_engine()
    engine.generate_schedule()

    violations = ConflictReporter(engine.constraints).analyze(engine.context)
    assert not [v for v in violations if v.severity == Severity.HIGH]
    assert not [v for v in violations if v.kind == "unscheduled_demand"]
