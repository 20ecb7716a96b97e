"""
Catalog validation and period grid tests.
"""
import pytest

from builders import build_registry, make_section, make_subject, make_teacher, slot, small_school
from models.domain import Day, PeriodTemplate
from service.exceptions import CatalogError, UnknownEntityError


def test_default_grid():
    """Five days of eight periods with lunch in period 5 leave 35 allocatable slots."""
    registry = build_registry()
    assert len(registry.allocatable_slots) == 35
    assert registry.days == [Day.MON, Day.TUE, Day.WED, Day.THU, Day.FRI]
    assert registry.is_reserved(slot("Wed", 5))
    assert not registry.is_allocatable(slot("Wed", 5))
    assert registry.is_allocatable(slot("Wed", 6))
    assert registry.slot(Day.SAT, 1) is None


def test_period_times_include_lunch():
    registry = build_registry()
    assert registry.period_times[1] == ("08:00", "08:45")
    assert registry.period_times[5] == ("11:00", "11:30")
    assert registry.period_times[6] == ("11:30", "12:15")


def test_runs_do_not_cross_reserved_periods():
    registry = build_registry()
    runs = registry.runs(2)

    # periods 1-4 give three runs, 6-8 give two
    assert len(runs) == 25
    assert runs[0] == (slot("Mon", 1), slot("Mon", 2))
    assert all(not registry.is_reserved(s) for run in runs for s in run)
    assert (slot("Mon", 4), slot("Mon", 5)) not in runs
    assert registry.run_containing(slot("Mon", 4), 2) is None
    assert registry.longest_run() == 4


def test_one_off_reserved_slot():
    registry = build_registry(template=PeriodTemplate(reserved_slots=[{"day": "Fri", "period": 8}]))
    assert registry.is_reserved(slot("Fri", 8))
    assert registry.is_allocatable(slot("Thu", 8))
    assert len(registry.allocatable_slots) == 34


def test_qualified_teachers_keep_catalog_order():
    registry = build_registry()
    assert [t.id for t in registry.qualified_teachers("sci")] == ["t_sci", "t_sci2"]
    assert registry.qualified_teachers("art") == []


def test_unknown_lookups_raise():
    registry = build_registry()
    with pytest.raises(UnknownEntityError) as exc:
        registry.section("g9z")
    assert exc.value.status_code == 404
    with pytest.raises(UnknownEntityError):
        registry.teacher("nobody")


def test_demand_without_teacher_is_rejected():
    catalog = small_school()
    catalog["subjects"].append(make_subject("art", "Art"))
    catalog["sections"][0] = make_section("g2a", demands={"math": 5, "art": 2})

    with pytest.raises(CatalogError) as exc:
        build_registry(catalog)
    assert exc.value.status_code == 422
    assert "Section Grade 2-A demands Art but no teacher teaches it" in exc.value.problems


def test_duplicate_ids_are_rejected():
    catalog = small_school()
    catalog["teachers"].append(make_teacher("t_math", ["math"]))

    with pytest.raises(CatalogError) as exc:
        build_registry(catalog)
    assert "Duplicate teacher id 't_math'" in exc.value.problems


def test_unknown_subject_references_are_rejected():
    catalog = small_school()
    catalog["teachers"].append(make_teacher("t_music", ["music"], name="Eve Black"))
    catalog["sections"].append(make_section("g3a", class_name="Grade 3", demands={"history": 2}))

    with pytest.raises(CatalogError) as exc:
        build_registry(catalog)
    assert "Teacher Eve Black teaches unknown subject 'music'" in exc.value.problems
    assert "Section Grade 3-A demands unknown subject 'history'" in exc.value.problems


def test_block_longer_than_any_run_is_rejected():
    catalog = small_school()
    catalog["subjects"].append(make_subject("lab_prac", "Lab Practical", requires_consecutive_periods=5))
    catalog["teachers"].append(make_teacher("t_lab", ["lab_prac"]))
    catalog["sections"].append(make_section("g3a", class_name="Grade 3", demands={"lab_prac": 5}))

    with pytest.raises(CatalogError) as exc:
        build_registry(catalog)
    assert any("requires 5 consecutive periods" in p for p in exc.value.problems)


def test_demand_above_weekly_capacity_is_rejected():
    catalog = small_school()
    catalog["sections"][0] = make_section("g2a", demands={"math": 20, "eng": 20})

    with pytest.raises(CatalogError) as exc:
        build_registry(catalog)
    assert any("demands 40 periods per week" in p for p in exc.value.problems)


def test_invalid_template_is_rejected():
    with pytest.raises(CatalogError) as exc:
        build_registry(template=PeriodTemplate(reserved_periods=[9], start_time="8 am"))
    problems = exc.value.problems
    assert "Reserved period 9 is outside 1..8" in problems
    assert any("Invalid start time" in p for p in problems)


def test_missing_lab_is_not_a_catalog_error():
    """A lab subject with no lab room loads; generation reports it instead."""
    catalog = small_school()
    catalog["rooms"] = [r for r in catalog["rooms"] if r.id != "lab1"]
    registry = build_registry(catalog)
    assert "lab1" not in registry.rooms
