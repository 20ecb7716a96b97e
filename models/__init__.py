"""
Domain entities and Pydantic schemas for the scheduling API.
"""
from .domain import (
    Day,
    PeriodSlot,
    PeriodTemplate,
    RoomType,
    Teacher,
    Room,
    Subject,
    Section,
    Assignment,
    Severity,
    ConstraintViolation,
    ConstraintSetting
)
from .schemas import (
    CatalogPayload,
    SessionCreateRequest,
    SessionSummary,
    GenerateRequest,
    GenerateResponse,
    PlacementRequest,
    PlacementResponse,
    ConflictsResponse,
    TeacherLoad,
    TeacherLoadResponse,
    RoomUtilization,
    RoomUtilizationResponse,
    ScheduleSlot,
    DaySchedule,
    TimetableResponse,
    SlotConflict,
    SlotAvailabilityResponse
)

__all__ = [
    "Day",
    "PeriodSlot",
    "PeriodTemplate",
    "RoomType",
    "Teacher",
    "Room",
    "Subject",
    "Section",
    "Assignment",
    "Severity",
    "ConstraintViolation",
    "ConstraintSetting",
    "CatalogPayload",
    "SessionCreateRequest",
    "SessionSummary",
    "GenerateRequest",
    "GenerateResponse",
    "PlacementRequest",
    "PlacementResponse",
    "ConflictsResponse",
    "TeacherLoad",
    "TeacherLoadResponse",
    "RoomUtilization",
    "RoomUtilizationResponse",
    "ScheduleSlot",
    "DaySchedule",
    "TimetableResponse",
    "SlotConflict",
    "SlotAvailabilityResponse"
]
