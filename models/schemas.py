from pydantic import BaseModel, Field
from typing import List, Dict, Optional, Literal

from models.domain import (
    Assignment, ConstraintSetting, ConstraintViolation, PeriodSlot, PeriodTemplate,
    Room, Section, Subject, Teacher
)


Strategy = Literal["greedy", "cp_sat"]


# ===========================
# Session Models
# ===========================

class CatalogPayload(BaseModel):
    """Domain registry contents supplied by the administration console"""
    teachers: List[Teacher]
    rooms: List[Room]
    subjects: List[Subject]
    sections: List[Section]
    period_template: PeriodTemplate = PeriodTemplate()


class SessionCreateRequest(BaseModel):
    catalog: CatalogPayload
    section_ids: List[str] = []  # class/section scope; empty means every section
    constraints: Dict[str, ConstraintSetting] = {}  # constraint id -> toggle/weight override
    core_subjects: Optional[List[str]] = None  # subject ids or codes preferred in the morning
    strategy: Optional[Strategy] = None


class ConstraintInfo(BaseModel):
    title: str
    hard: bool
    enabled: bool
    weight: float
    severity: str


class SessionSummary(BaseModel):
    session_id: str
    section_ids: List[str]
    strategy: Strategy
    core_subjects: List[str]
    constraints: Dict[str, ConstraintInfo]
    assignment_count: int
    generating: bool = False


# ===========================
# Generation Models
# ===========================

class GenerateRequest(BaseModel):
    reset: bool = True  # start from an empty schedule instead of filling gaps
    strategy: Optional[Strategy] = None


class GenerateResponse(BaseModel):
    schedule: List[Assignment]
    violations: List[ConstraintViolation]
    placed_periods: int
    failed_periods: int
    cancelled: bool
    strategy: Strategy
    solve_time_seconds: Optional[float] = None


class CancelResponse(BaseModel):
    session_id: str
    cancel_requested: bool


# ===========================
# Manual Placement Models
# ===========================

class PlacementRequest(BaseModel):
    section_id: str
    subject_id: str
    preferred_slot: Optional[PeriodSlot] = None
    teacher_id: Optional[str] = None  # pin the teacher, e.g. when assigning a class teacher
    room_id: Optional[str] = None
    strict: bool = False  # only the preferred slot, no fallback search
    force: bool = False   # place at the preferred slot even if hard constraints break


class ConflictInfo(BaseModel):
    reason: str
    kind: Optional[str] = None
    blocking_entity: Optional[str] = None
    slot: Optional[PeriodSlot] = None


class PlacementResponse(BaseModel):
    assignments: List[Assignment]
    preferred_slot_conflict: Optional[ConflictInfo] = None


class ScheduleResponse(BaseModel):
    assignments: List[Assignment]


class ConflictsResponse(BaseModel):
    violations: List[ConstraintViolation]
    counts: Dict[str, int]


# ===========================
# Report Models
# ===========================

class TeacherLoad(BaseModel):
    teacher_id: str
    teacher_name: str
    department: Optional[str] = None
    assigned_periods: int
    max_periods_per_week: int
    remaining_capacity: int
    workload_percentage: float
    status: Literal["Low", "Optimal", "High", "Overloaded"]
    can_accept_more: bool
    sections: List[str] = []
    subjects: List[str] = []


class TeacherLoadResponse(BaseModel):
    teachers: List[TeacherLoad]
    overloaded_teachers: int
    average_periods: float


class RoomUtilization(BaseModel):
    room_id: str
    room_name: str
    room_type: str
    capacity: int
    used_periods: int
    available_periods: int
    utilization: float  # percentage of allocatable periods in use


class RoomUtilizationResponse(BaseModel):
    rooms: List[RoomUtilization]
    average_utilization: float


class ScheduleSlot(BaseModel):
    """Individual period in a timetable view"""
    day: str
    period: int
    start_time: str
    end_time: str
    break_: bool = Field(default=False, alias="break")  # "break" is Python keyword
    duration: Optional[str] = None  # Human-readable: "45min"
    assignment_id: Optional[str] = None
    section_id: Optional[str] = None
    section_name: Optional[str] = None
    subject_id: Optional[str] = None
    subject_name: Optional[str] = None
    teacher_id: Optional[str] = None
    teacher_name: Optional[str] = None
    room_id: Optional[str] = None
    room_name: Optional[str] = None

    class Config:
        populate_by_name = True  # Allow both "break" and "break_"


class DaySchedule(BaseModel):
    """Schedule for a single day"""
    day: str
    slots: List[ScheduleSlot]


class TimetableResponse(BaseModel):
    scope: Literal["section", "teacher", "room"]
    entity_id: str
    entity_name: str
    timetable: List[DaySchedule]


class SlotConflict(BaseModel):
    type: Literal["section", "teacher", "room", "teacher_unavailable", "reserved"]
    description: str
    assignment_id: Optional[str] = None
    section_id: Optional[str] = None
    subject_id: Optional[str] = None
    teacher_id: Optional[str] = None
    room_id: Optional[str] = None


class SlotAvailabilityResponse(BaseModel):
    slot: PeriodSlot
    available: bool
    conflicts: List[SlotConflict]
    message: str
