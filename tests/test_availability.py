"""
Availability index tests: reservations, idempotent release and rebuilds.
"""
from builders import slot
from models.domain import Assignment
from service.availability import AvailabilityIndex, ROOM, SECTION, TEACHER


def make_assignment(assignment_id="a00001", section_id="g2a", teacher_id="t_math", room_id="r101", at=None):
    return Assignment(
        id=assignment_id,
        section_id=section_id,
        subject_id="math",
        teacher_id=teacher_id,
        room_id=room_id,
        slot=at or slot("Mon", 1),
    )


def test_reserve_marks_all_three_coordinates():
    index = AvailabilityIndex()
    index.reserve(make_assignment())

    assert index.is_busy(TEACHER, "t_math", slot("Mon", 1))
    assert index.is_busy(ROOM, "r101", slot("Mon", 1))
    assert index.is_busy(SECTION, "g2a", slot("Mon", 1))
    assert not index.is_free("t_math", "r102", "g2b", slot("Mon", 1))
    assert index.is_free("t_eng", "r102", "g2b", slot("Mon", 1))
    assert index.is_free("t_math", "r101", "g2a", slot("Mon", 2))


def test_reserve_twice_then_release_once_frees():
    index = AvailabilityIndex()
    assignment = make_assignment()
    index.reserve(assignment)
    index.reserve(assignment)
    index.release(assignment)

    assert index.is_free("t_math", "r101", "g2a", slot("Mon", 1))
    assert index.reserved_ids() == set()


def test_release_is_idempotent():
    """Releasing twice, or releasing something never reserved, changes nothing."""
    index = AvailabilityIndex()
    kept = make_assignment("a00001")
    removed = make_assignment("a00002", section_id="g2b", teacher_id="t_eng", room_id="r102")
    index.reserve(kept)
    index.reserve(removed)

    index.release(removed)
    after_first = index.snapshot()
    index.release(removed)
    index.release(make_assignment("a09999", at=slot("Fri", 8)))

    assert index.snapshot() == after_first
    assert index.reserved_ids() == {"a00001"}


def test_shared_coordinate_stays_busy_until_last_holder_leaves():
    index = AvailabilityIndex()
    first = make_assignment("a00001")
    forced = make_assignment("a00002", section_id="g2b", teacher_id="t_eng")
    index.reserve(first)
    index.reserve(forced)

    assert index.holders(ROOM, "r101", slot("Mon", 1)) == {"a00001", "a00002"}
    index.release(first)
    assert index.is_busy(ROOM, "r101", slot("Mon", 1))
    assert not index.is_busy(TEACHER, "t_math", slot("Mon", 1))
    index.release(forced)
    assert not index.is_busy(ROOM, "r101", slot("Mon", 1))


def test_rebuild_matches_incremental_reservations():
    assignments = [
        make_assignment("a00001"),
        make_assignment("a00002", at=slot("Tue", 3)),
        make_assignment("a00003", section_id="g2b", teacher_id="t_eng", room_id="r102", at=slot("Tue", 3)),
    ]
    incremental = AvailabilityIndex()
    for assignment in assignments:
        incremental.reserve(assignment)

    rebuilt = AvailabilityIndex()
    rebuilt.reserve(make_assignment("a00042", at=slot("Fri", 1)))
    rebuilt.rebuild(assignments)

    assert rebuilt.snapshot() == incremental.snapshot()
    assert rebuilt.busy_slots(TEACHER, "t_math") == {slot("Mon", 1), slot("Tue", 3)}
