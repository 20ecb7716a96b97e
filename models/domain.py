"""
Domain entities shared by the registry, the allocation engine and the reporter.
"""
from enum import Enum
from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Dict, List, Optional, Set


# ===========================
# Calendar
# ===========================

class Day(str, Enum):
    MON = "Mon"
    TUE = "Tue"
    WED = "Wed"
    THU = "Thu"
    FRI = "Fri"
    SAT = "Sat"


DAY_ORDER: Dict[Day, int] = {day: idx for idx, day in enumerate(Day)}


class PeriodSlot(BaseModel):
    """A (day, period) coordinate in the weekly grid."""
    model_config = ConfigDict(frozen=True)

    day: Day
    period: int = Field(ge=1)

    @property
    def label(self) -> str:
        return f"{self.day.value} P{self.period}"


class PeriodTemplate(BaseModel):
    """Shape of the school week shared by every section."""
    model_config = ConfigDict(frozen=True)

    days: List[Day] = [Day.MON, Day.TUE, Day.WED, Day.THU, Day.FRI]
    periods_per_day: int = Field(default=8, ge=1, le=16)
    reserved_periods: List[int] = [5]  # lunch, excluded from allocation every day
    reserved_slots: List[PeriodSlot] = []  # one-off reservations, e.g. Sat P4 assembly
    start_time: str = "08:00"  # HH:MM
    period_minutes: int = Field(default=45, gt=0)
    lunch_minutes: int = Field(default=30, gt=0)


# ===========================
# Catalog entities
# ===========================

class RoomType(str, Enum):
    CLASSROOM = "classroom"
    LAB = "lab"
    SPECIAL = "special"


class Teacher(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    subjects: Set[str] = set()
    department: Optional[str] = None
    max_periods_per_week: int = Field(default=30, ge=0)
    unavailable_slots: List[PeriodSlot] = []


class Room(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    type: RoomType = RoomType.CLASSROOM
    capacity: int = Field(gt=0)
    facilities: Set[str] = set()


class Subject(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    code: str
    requires_room_type: Optional[RoomType] = None
    requires_consecutive_periods: int = Field(default=1, ge=1)
    requires_facilities: Set[str] = set()


class Section(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    class_name: str
    section_label: str
    strength: int = Field(default=0, ge=0)
    demands: Dict[str, int] = {}  # subject id -> periods per week

    @field_validator("demands")
    @classmethod
    def demands_non_negative(cls, value: Dict[str, int]) -> Dict[str, int]:
        for subject_id, periods in value.items():
            if periods < 0:
                raise ValueError(f"periods per week for {subject_id} must be >= 0")
        return value

    @property
    def display_name(self) -> str:
        return f"{self.class_name}-{self.section_label}"


# ===========================
# Schedule state and output
# ===========================

class Assignment(BaseModel):
    """(section, subject, slot) -> (teacher, room); the unit the engine places or removes."""
    model_config = ConfigDict(frozen=True)

    id: str
    section_id: str
    subject_id: str
    teacher_id: str
    room_id: str
    slot: PeriodSlot
    block_id: Optional[str] = None
    forced: bool = False


class Severity(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


SEVERITY_RANK: Dict[Severity, int] = {Severity.HIGH: 0, Severity.MEDIUM: 1, Severity.LOW: 2}


class ConstraintViolation(BaseModel):
    severity: Severity
    kind: str
    description: str
    section_id: Optional[str] = None
    subject_id: Optional[str] = None
    teacher_id: Optional[str] = None
    room_id: Optional[str] = None
    slots: List[PeriodSlot] = []
    assignment_ids: List[str] = []


class ConstraintSetting(BaseModel):
    """Per-constraint override: toggle, weight and report severity."""
    enabled: Optional[bool] = None
    weight: Optional[float] = Field(default=None, ge=0)
    severity: Optional[Severity] = None
