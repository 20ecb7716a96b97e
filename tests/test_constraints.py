"""
Constraint evaluation and schedule checks.
"""
import pytest

from builders import build_engine, build_registry, make_subject, make_teacher, slot, small_school
from models.domain import ConstraintSetting, Severity
from service.constraints import CONSTRAINT_IDS, Candidate, build_constraint_set


def candidate(engine, section_id, subject_id, teacher_id, room_id, *slots):
    registry = engine.registry
    return Candidate(
        registry.section(section_id),
        registry.subject(subject_id),
        registry.teacher(teacher_id),
        registry.room(room_id),
        tuple(registry.canonical(s) for s in slots),
    )


def place(engine, section_id, subject_id, teacher_id, room_id, *slots):
    return engine.commit(candidate(engine, section_id, subject_id, teacher_id, room_id, *slots))


def evaluate(engine, constraint_id, cand):
    return engine.constraints.get(constraint_id).evaluate(cand, engine.context)


# ===========================
# Hard constraints
# ===========================

def test_room_double_booking_names_the_other_section():
    engine = build_engine()
    place(engine, "g2b", "sci", "t_sci", "lab1", slot("Tue", 4))

    verdict = evaluate(engine, "no_double_booking", candidate(engine, "g2a", "sci", "t_sci2", "lab1", slot("Tue", 4)))
    assert verdict.is_hard
    assert verdict.reason == "Room Science Lab 1 double-booked with Grade 2-B on Tue P4"
    assert verdict.blocking_entity == "room:lab1"
    assert verdict.slot == slot("Tue", 4)


def test_teacher_and_section_double_booking():
    engine = build_engine()
    place(engine, "g2a", "eng", "t_eng", "r101", slot("Mon", 1))

    section_clash = evaluate(engine, "no_double_booking", candidate(engine, "g2a", "math", "t_math", "r102", slot("Mon", 1)))
    assert section_clash.reason == "Section Grade 2-A already has English on Mon P1"
    assert section_clash.blocking_entity == "section:g2a"

    teacher_clash = evaluate(engine, "no_double_booking", candidate(engine, "g2b", "eng", "t_eng", "r102", slot("Mon", 1)))
    assert teacher_clash.reason == "Teacher Bob Johnson already teaches Grade 2-A (English) on Mon P1"


def test_double_booking_check_reports_forced_clash():
    engine = build_engine()
    first = place(engine, "g2b", "sci", "t_sci", "lab1", slot("Tue", 4))[0]
    second = engine.commit(candidate(engine, "g2a", "sci", "t_sci2", "lab1", slot("Tue", 4)), forced=True)[0]

    violations = engine.constraints.get("no_double_booking").check(engine.context)
    assert len(violations) == 1
    violation = violations[0]
    assert violation.severity == Severity.HIGH
    assert violation.room_id == "lab1"
    assert violation.slots == [slot("Tue", 4)]
    assert set(violation.assignment_ids) == {first.id, second.id}
    assert "Room Science Lab 1 double-booked on Tue P4" in violation.description
    assert "Grade 2-B (Science)" in violation.description


def test_teacher_qualification():
    engine = build_engine()
    verdict = evaluate(engine, "teacher_qualification", candidate(engine, "g2a", "math", "t_eng", "r101", slot("Mon", 1)))
    assert verdict.reason == "Teacher Bob Johnson does not teach Mathematics"


def test_teacher_availability():
    catalog = small_school()
    catalog["teachers"][0] = make_teacher(
        "t_math", ["math"], name="Alice Smith", unavailable_slots=[{"day": "Mon", "period": 1}]
    )
    engine = build_engine(build_registry(catalog))

    verdict = evaluate(engine, "teacher_availability", candidate(engine, "g2a", "math", "t_math", "r101", slot("Mon", 1)))
    assert verdict.is_hard
    assert verdict.slot == slot("Mon", 1)
    assert not evaluate(engine, "teacher_availability", candidate(engine, "g2a", "math", "t_math", "r101", slot("Mon", 2))).is_hard


def test_room_compatibility():
    engine = build_engine()
    wrong_type = evaluate(engine, "room_compatibility", candidate(engine, "g2a", "sci", "t_sci", "r101", slot("Mon", 1)))
    assert wrong_type.reason == "Science needs a lab but Room 101 is a classroom"

    catalog = small_school()
    catalog["rooms"].append(catalog["rooms"][0].model_copy(update={"id": "r201", "name": "Room 201", "capacity": 20}))
    engine = build_engine(build_registry(catalog))
    too_small = evaluate(engine, "room_compatibility", candidate(engine, "g2a", "math", "t_math", "r201", slot("Mon", 1)))
    assert too_small.reason == "Room 201 seats 20 but Grade 2-A has 30 students"


def test_missing_facilities():
    catalog = small_school()
    catalog["subjects"].append(make_subject("ict", "Computing", requires_facilities={"computers"}))
    catalog["teachers"].append(make_teacher("t_ict", ["ict"]))
    engine = build_engine(build_registry(catalog))

    verdict = evaluate(engine, "room_compatibility", candidate(engine, "g2a", "ict", "t_ict", "r101", slot("Mon", 1)))
    assert verdict.reason == "Room 101 lacks computers required by Computing"


def test_consecutive_periods_must_be_contiguous():
    catalog = small_school()
    catalog["subjects"].append(make_subject("chem", "Chemistry", requires_consecutive_periods=2))
    catalog["teachers"].append(make_teacher("t_chem", ["chem"]))
    engine = build_engine(build_registry(catalog))

    split = evaluate(engine, "consecutive_periods", candidate(engine, "g2a", "chem", "t_chem", "r101", slot("Mon", 1), slot("Mon", 3)))
    assert split.is_hard
    across_lunch = evaluate(engine, "consecutive_periods", candidate(engine, "g2a", "chem", "t_chem", "r101", slot("Mon", 4), slot("Mon", 5)))
    assert across_lunch.is_hard
    assert not evaluate(engine, "consecutive_periods", candidate(engine, "g2a", "chem", "t_chem", "r101", slot("Mon", 1), slot("Mon", 2))).is_hard


def test_teacher_load_ceiling():
    catalog = small_school()
    catalog["teachers"][0] = make_teacher("t_math", ["math"], name="Alice Smith", max_periods_per_week=2)
    engine = build_engine(build_registry(catalog))
    place(engine, "g2a", "math", "t_math", "r101", slot("Mon", 1))
    place(engine, "g2b", "math", "t_math", "r102", slot("Tue", 1))

    verdict = evaluate(engine, "teacher_load", candidate(engine, "g2a", "math", "t_math", "r101", slot("Wed", 1)))
    assert verdict.reason == "Teacher Alice Smith would exceed 2 periods per week (2 already assigned)"
    assert verdict.blocking_entity == "teacher:t_math"


# ===========================
# Soft constraints
# ===========================

def test_back_to_back_penalty():
    engine = build_engine()
    place(engine, "g2a", "math", "t_math", "r101", slot("Wed", 2))

    verdict = evaluate(engine, "no_back_to_back", candidate(engine, "g2a", "math", "t_math", "r101", slot("Wed", 3)))
    assert verdict.weight == 5.0
    assert not evaluate(engine, "no_back_to_back", candidate(engine, "g2a", "math", "t_math", "r101", slot("Wed", 4))).weight

    place(engine, "g2a", "math", "t_math", "r101", slot("Wed", 3))
    violations = engine.constraints.get("no_back_to_back").check(engine.context)
    assert [v.description for v in violations] == ["Double Mathematics for Grade 2-A on Wed P2-P3"]
    assert violations[0].severity == Severity.MEDIUM


def test_morning_core_subjects_by_code():
    engine = build_engine(core_subjects=["MATH"])
    late = evaluate(engine, "morning_core_subjects", candidate(engine, "g2a", "math", "t_math", "r101", slot("Mon", 6)))
    assert late.weight == 2.0
    early = evaluate(engine, "morning_core_subjects", candidate(engine, "g2a", "math", "t_math", "r101", slot("Mon", 2)))
    assert early.weight == 0
    other = evaluate(engine, "morning_core_subjects", candidate(engine, "g2a", "eng", "t_eng", "r101", slot("Mon", 6)))
    assert other.weight == 0


def test_balanced_distribution_check():
    engine = build_engine()
    place(engine, "g2a", "eng", "t_eng", "r101", slot("Thu", 1))
    place(engine, "g2a", "eng", "t_eng", "r101", slot("Thu", 3))

    violations = engine.constraints.get("balanced_distribution").check(engine.context)
    assert len(violations) == 1
    assert violations[0].description == (
        "English is scheduled 2 times on Thu for Grade 2-A instead of being spread across the week"
    )


def test_teacher_idle_gaps_and_room_changes():
    engine = build_engine()
    place(engine, "g2a", "math", "t_math", "r101", slot("Mon", 1))
    place(engine, "g2b", "math", "t_math", "r102", slot("Mon", 4))
    place(engine, "g2a", "eng", "t_eng", "r102", slot("Mon", 2))

    gaps = engine.constraints.get("teacher_idle_gaps").check(engine.context)
    assert [v.description for v in gaps] == ["Teacher Alice Smith has 2 idle period(s) on Mon: Mon P2, Mon P3"]

    moves = engine.constraints.get("minimize_room_changes").check(engine.context)
    assert [v.description for v in moves] == ["Grade 2-A moves from Room 101 to Room 102 between Mon P1 and Mon P2"]


def test_teacher_daily_break():
    engine = build_engine()
    for period in (1, 2, 3, 4, 6, 7):
        section = "g2a" if period % 2 else "g2b"
        place(engine, section, "eng", "t_eng", "r101", slot("Fri", period))

    verdict = evaluate(engine, "teacher_daily_break", candidate(engine, "g2a", "eng", "t_eng", "r101", slot("Fri", 8)))
    assert verdict.weight == 2.0


# ===========================
# Configuration
# ===========================

def test_disabled_constraints_are_skipped():
    engine = build_engine(constraints={"no_back_to_back": ConstraintSetting(enabled=False)})
    assert "no_back_to_back" not in [c.constraint_id for c in engine.constraints.soft]

    place(engine, "g2a", "math", "t_math", "r101", slot("Wed", 2))
    cand = candidate(engine, "g2a", "math", "t_math", "r101", slot("Wed", 3))
    assert engine.constraints.soft_penalty(cand, engine.context) == 3.0  # balanced distribution only


def test_weight_and_severity_overrides():
    constraints = build_constraint_set({
        "balanced_distribution": ConstraintSetting(weight=7.5, severity=Severity.HIGH),
        "teacher_load": ConstraintSetting(severity=Severity.LOW),
    })
    assert constraints.get("balanced_distribution").weight == 7.5
    assert constraints.get("balanced_distribution").severity == Severity.HIGH
    # hard constraints always report as high
    assert constraints.get("teacher_load").severity == Severity.HIGH


def test_double_booking_cannot_be_disabled():
    constraints = build_constraint_set({"no_double_booking": ConstraintSetting(enabled=False)})
    assert constraints.get("no_double_booking").enabled


def test_unknown_constraint_id():
    with pytest.raises(ValueError):
        build_constraint_set({"no_homework_on_fridays": ConstraintSetting(enabled=True)})


def test_describe_lists_every_constraint():
    described = build_constraint_set().describe()
    assert list(described) == CONSTRAINT_IDS
    assert described["no_back_to_back"]["weight"] == 5.0
    assert described["teacher_load"]["hard"] is True
