from fastapi import APIRouter, HTTPException, Query, Response, status
from typing import Optional

from config.settings import settings
from models.domain import Day, PeriodSlot, Severity
from models.schemas import (
    CancelResponse, ConflictInfo, ConflictsResponse, GenerateRequest, GenerateResponse,
    PlacementRequest, PlacementResponse, RoomUtilizationResponse, ScheduleResponse,
    SessionCreateRequest, SessionSummary, SlotAvailabilityResponse, TeacherLoadResponse,
    TimetableResponse
)
from service.sessions import SessionStore, SolverOptions

# Create a router instance
router = APIRouter(prefix="/scheduler")

store = SessionStore(SolverOptions(
    time_limit_seconds=settings.solver_timeout_seconds,
    random_seed=settings.solver_random_seed,
    num_workers=settings.solver_num_workers,
))


# Sync endpoints run in the threadpool; cancel must be served while generate runs.

@router.post("/sessions", response_model=SessionSummary, status_code=status.HTTP_201_CREATED)
def create_session(request: SessionCreateRequest):
    """
    Open a scheduling session over a validated catalog.

    The catalog is rejected with 422 when a demand can never be satisfied,
    e.g. a subject nobody teaches.
    """
    session = store.create(
        request.catalog,
        section_ids=request.section_ids,
        constraints=request.constraints,
        core_subjects=request.core_subjects if request.core_subjects is not None else settings.default_core_subjects,
        strategy=request.strategy or settings.default_strategy,
    )
    return session.summary()


@router.get("/sessions/{session_id}", response_model=SessionSummary)
def get_session(session_id: str):
    return store.get(session_id).summary()


@router.delete("/sessions/{session_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_session(session_id: str):
    store.delete(session_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/sessions/{session_id}/generate", response_model=GenerateResponse)
def generate_schedule(session_id: str, request: Optional[GenerateRequest] = None):
    """
    Generate the timetable for the session's sections.

    Demands that cannot be placed come back as high-severity violations next
    to the partial schedule; generation never fails as a whole.
    """
    request = request or GenerateRequest()
    result = store.get(session_id).generate(reset=request.reset, strategy=request.strategy)
    return GenerateResponse(
        schedule=result.assignments,
        violations=result.violations,
        placed_periods=result.placed_periods,
        failed_periods=result.failed_periods,
        cancelled=result.cancelled,
        strategy=result.strategy,
        solve_time_seconds=round(result.duration_seconds, 3),
    )


@router.post("/sessions/{session_id}/generate/cancel", response_model=CancelResponse)
def cancel_generation(session_id: str):
    requested = store.get(session_id).cancel()
    return CancelResponse(session_id=session_id, cancel_requested=requested)


@router.get("/sessions/{session_id}/schedule", response_model=ScheduleResponse)
def get_schedule(session_id: str):
    return ScheduleResponse(assignments=store.get(session_id).assignments())


@router.post("/sessions/{session_id}/assignments", response_model=PlacementResponse, status_code=status.HTTP_201_CREATED)
def place_assignment(session_id: str, request: PlacementRequest):
    """
    Place one block of a subject for a section, preferring the given slot.

    Returns 409 with the blocking entity when nothing in the week fits.
    """
    placement = store.get(session_id).place(
        request.section_id,
        request.subject_id,
        request.preferred_slot,
        teacher_id=request.teacher_id,
        room_id=request.room_id,
        strict=request.strict,
        force=request.force,
    )
    conflict = placement.preferred_slot_conflict
    return PlacementResponse(
        assignments=placement.assignments,
        preferred_slot_conflict=ConflictInfo(
            reason=conflict.reason,
            kind=conflict.kind,
            blocking_entity=conflict.blocking_entity,
            slot=conflict.slot,
        ) if conflict is not None else None,
    )


@router.delete("/sessions/{session_id}/assignments/{assignment_id}", status_code=status.HTTP_204_NO_CONTENT)
def remove_assignment(session_id: str, assignment_id: str):
    """Remove an assignment and the rest of its block; unknown ids are ignored."""
    store.get(session_id).remove(assignment_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/sessions/{session_id}/conflicts", response_model=ConflictsResponse)
def get_conflicts(session_id: str):
    violations = store.get(session_id).analyze()
    counts = {severity.value: 0 for severity in Severity}
    for violation in violations:
        counts[violation.severity.value] += 1
    return ConflictsResponse(violations=violations, counts=counts)


@router.get("/sessions/{session_id}/teacher-load", response_model=TeacherLoadResponse)
def get_teacher_load(session_id: str):
    return store.get(session_id).teacher_loads()


@router.get("/sessions/{session_id}/room-utilization", response_model=RoomUtilizationResponse)
def get_room_utilization(session_id: str):
    return store.get(session_id).room_utilization()


@router.get("/sessions/{session_id}/timetable", response_model=TimetableResponse, response_model_by_alias=True)
def get_timetable(
    session_id: str,
    section_id: Optional[str] = None,
    teacher_id: Optional[str] = None,
    room_id: Optional[str] = None,
):
    """Timetable of one section, teacher or room, with lunch rows flagged as breaks."""
    if sum(1 for value in (section_id, teacher_id, room_id) if value) != 1:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Exactly one of section_id, teacher_id or room_id is required",
        )
    return store.get(session_id).timetable(section_id, teacher_id, room_id)


@router.get("/sessions/{session_id}/availability", response_model=SlotAvailabilityResponse)
def check_availability(
    session_id: str,
    day: Day,
    period: int = Query(..., ge=1),
    section_id: Optional[str] = None,
    teacher_id: Optional[str] = None,
    room_id: Optional[str] = None,
):
    """Whether a slot is free for a section, teacher and room, and who holds it if not."""
    slot = PeriodSlot(day=day, period=period)
    return store.get(session_id).check_slot(slot, section_id, teacher_id, room_id)
