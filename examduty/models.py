from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Set, Tuple, Union

UNFILLED_MARKER = "!!"


class AssignedBy(str, Enum):
    AUTO = "auto"
    MANUAL = "manual"
    DESIGNATED = "designated"
    FORCED = "forced"


class SupervisionMode(str, Enum):
    SOLO = "solo"
    JOINT = "joint"


class ConflictType(str, Enum):
    ALLOCATION = "allocation"
    TIME = "time"
    RULE = "rule"


class Severity(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


@dataclass(frozen=True)
class Teacher:
    name: str
    department: Optional[str] = None
    contact: Optional[str] = None


@dataclass(frozen=True)
class ScheduleRow:
    """One location's seat requirement within a time window."""
    date: str
    start_time: str
    end_time: str
    location: str
    required: int = 1


@dataclass(frozen=True)
class Slot:
    location: str
    required: int = 1


def session_id_for(day: str, start_time: str, end_time: str) -> str:
    return f"{day}_{start_time}_{end_time}"


@dataclass
class Session:
    date: str
    start_time: str
    end_time: str
    slots: List[Slot] = field(default_factory=list)

    @property
    def id(self) -> str:
        return session_id_for(self.date, self.start_time, self.end_time)

    @property
    def key(self) -> Tuple[str, str, str]:
        return (self.date, self.start_time, self.end_time)

    def requirements(self) -> Dict[str, int]:
        """Location -> seats required, in first-seen slot order.

        Repeated rows for the same location add up instead of being dropped.
        """
        need: Dict[str, int] = {}
        for slot in self.slots:
            need[slot.location] = need.get(slot.location, 0) + slot.required
        return need


@dataclass(frozen=True)
class ForcedTask:
    session_id: str
    location: str
    teacher: str


@dataclass(frozen=True)
class DesignatedTask:
    teacher: str
    date: str
    slot_id: str
    location: str


@dataclass
class SpecialTasks:
    designated: List[DesignatedTask] = field(default_factory=list)
    forced: List[ForcedTask] = field(default_factory=list)


@dataclass(frozen=True)
class Named:
    name: str

    @property
    def label(self) -> str:
        return self.name


@dataclass(frozen=True)
class Unfilled:
    location: str
    reason: str = "understaffed"

    @property
    def label(self) -> str:
        return f"{UNFILLED_MARKER}{self.reason}-{self.location}"


TeacherRef = Union[Named, Unfilled]


@dataclass(frozen=True)
class Assignment:
    id: str
    date: str
    start_time: str
    end_time: str
    location: str
    teacher: TeacherRef
    assigned_by: AssignedBy = AssignedBy.AUTO
    supervision: SupervisionMode = SupervisionMode.SOLO

    @property
    def session_id(self) -> str:
        return session_id_for(self.date, self.start_time, self.end_time)

    @property
    def window(self) -> Tuple[str, str, str]:
        return (self.date, self.start_time, self.end_time)

    @property
    def is_unfilled(self) -> bool:
        return isinstance(self.teacher, Unfilled)

    @property
    def is_joint(self) -> bool:
        return self.supervision is SupervisionMode.JOINT

    @property
    def teacher_name(self) -> Optional[str]:
        if isinstance(self.teacher, Named):
            return self.teacher.name
        return None


@dataclass
class WorkloadEntry:
    count: int = 0
    duration: float = 0.0


HistoricalStats = Dict[str, WorkloadEntry]
Exclusions = Dict[str, Set[str]]


@dataclass(frozen=True)
class Conflict:
    type: ConflictType
    description: str
    severity: Severity


@dataclass(frozen=True)
class ValidationIssue:
    level: str  # 'error' | 'warning'
    message: str

    @property
    def is_error(self) -> bool:
        return self.level == "error"
