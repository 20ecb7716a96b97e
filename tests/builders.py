"""
Catalog builders shared by the test modules.
"""
from models.domain import Day, PeriodSlot, PeriodTemplate, Room, Section, Subject, Teacher
from service.constraints import build_constraint_set
from service.engine import AllocationEngine
from service.registry import load_catalog


def slot(day: str, period: int) -> PeriodSlot:
    return PeriodSlot(day=Day(day), period=period)


def make_teacher(teacher_id, subjects, name=None, **kwargs):
    return Teacher(id=teacher_id, name=name or teacher_id, subjects=set(subjects), **kwargs)


def make_room(room_id, name=None, type="classroom", capacity=40, **kwargs):
    return Room(id=room_id, name=name or room_id, type=type, capacity=capacity, **kwargs)


def make_subject(subject_id, name, code=None, **kwargs):
    return Subject(id=subject_id, name=name, code=code or subject_id.upper(), **kwargs)


def make_section(section_id, class_name="Grade 2", label="A", strength=30, demands=None):
    return Section(
        id=section_id, class_name=class_name, section_label=label,
        strength=strength, demands=demands or {},
    )


def small_school():
    """Two Grade 2 sections sharing a maths, an english and two science teachers."""
    return {
        "teachers": [
            make_teacher("t_math", ["math"], name="Alice Smith", max_periods_per_week=20),
            make_teacher("t_eng", ["eng"], name="Bob Johnson"),
            make_teacher("t_sci", ["sci"], name="Carol White"),
            make_teacher("t_sci2", ["sci"], name="Dan Brown"),
        ],
        "rooms": [
            make_room("r101", name="Room 101"),
            make_room("r102", name="Room 102"),
            make_room("lab1", name="Science Lab 1", type="lab", capacity=35),
        ],
        "subjects": [
            make_subject("math", "Mathematics", code="MATH"),
            make_subject("eng", "English", code="ENG"),
            make_subject("sci", "Science", code="SCI", requires_room_type="lab"),
        ],
        "sections": [
            make_section("g2a", label="A", strength=30, demands={"math": 5, "eng": 4, "sci": 3}),
            make_section("g2b", label="B", strength=32, demands={"math": 5, "eng": 4, "sci": 3}),
        ],
        "template": PeriodTemplate(),
    }


def build_registry(catalog=None, **overrides):
    catalog = dict(catalog or small_school())
    catalog.update(overrides)
    return load_catalog(
        catalog["teachers"], catalog["rooms"], catalog["subjects"], catalog["sections"], catalog["template"]
    )


def build_engine(registry=None, constraints=None, core_subjects=None):
    return AllocationEngine(
        registry or build_registry(),
        build_constraint_set(constraints),
        core_subjects=core_subjects,
    )


def science_shortage():
    """One section needing Science four times a week from a teacher capped at three."""
    return {
        "teachers": [make_teacher("t_sci", ["sci"], name="Carol White", max_periods_per_week=3)],
        "rooms": [make_room("lab1", name="Science Lab 1", type="lab", capacity=35)],
        "subjects": [make_subject("sci", "Science", code="SCI", requires_room_type="lab")],
        "sections": [make_section("g2a", demands={"sci": 4})],
        "template": PeriodTemplate(),
    }
