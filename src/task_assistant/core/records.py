"""Record models shared by the datastore, the tools and the decision engines."""

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Role(str, Enum):
    """Role partitions that decide which tools a caller may use."""

    ADMIN = "admin"
    EMPLOYEE = "employee"


class TaskStatus(str, Enum):
    PENDING = "pending"
    INVITED = "invited"
    ACCEPTED = "accepted"
    ONGOING = "ongoing"
    COMPLETED = "completed"
    REJECTED = "rejected"


class TaskPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    PAID = "paid"


# Statuses that no longer count toward an assignee's workload.
TERMINAL_STATUSES = frozenset({TaskStatus.COMPLETED, TaskStatus.REJECTED})

ALLOWED_TRANSITIONS: dict[TaskStatus, frozenset[TaskStatus]] = {
    TaskStatus.PENDING: frozenset(
        {TaskStatus.INVITED, TaskStatus.ONGOING, TaskStatus.REJECTED}
    ),
    TaskStatus.INVITED: frozenset(
        {TaskStatus.ACCEPTED, TaskStatus.REJECTED, TaskStatus.PENDING}
    ),
    TaskStatus.ACCEPTED: frozenset(
        {TaskStatus.ONGOING, TaskStatus.COMPLETED, TaskStatus.REJECTED}
    ),
    TaskStatus.ONGOING: frozenset({TaskStatus.COMPLETED}),
    TaskStatus.COMPLETED: frozenset({TaskStatus.ONGOING}),
    TaskStatus.REJECTED: frozenset({TaskStatus.PENDING, TaskStatus.INVITED}),
}

PRIORITY_ORDER: dict[TaskPriority, int] = {
    TaskPriority.HIGH: 0,
    TaskPriority.MEDIUM: 1,
    TaskPriority.LOW: 2,
}


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def as_utc(value: datetime | None) -> datetime | None:
    """Treat naive datetimes as UTC so they compare with aware ones."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


def can_transition(current: TaskStatus, new: TaskStatus) -> bool:
    """Check whether a task may move from ``current`` to ``new``."""
    if current == new:
        return True
    return new in ALLOWED_TRANSITIONS[current]


def normalize_skills(skills: list[str] | None) -> list[str]:
    """Lower-case, strip and de-duplicate skill tags, keeping first-seen order."""
    normalized: list[str] = []
    for skill in skills or []:
        tag = skill.strip().lower()
        if tag and tag not in normalized:
            normalized.append(tag)
    return normalized


class EmployeeRecord(BaseModel):
    """Employee profile with the metrics used for ranking and payments."""

    id: str
    full_name: str
    email: str
    contact: str | None = None
    department: str | None = None
    designation: str | None = None
    skills: list[str] = []
    availability: bool = True
    current_workload: int = Field(default=0, ge=0)
    performance_score: float = Field(default=0.0, ge=0.0, le=1.0)
    on_time_rate: float = Field(default=0.0, ge=0.0, le=1.0)
    quality_score: float = Field(default=0.0, ge=0.0, le=1.0)
    hourly_rate: float = Field(default=0.0, ge=0.0)
    tasks_completed: int = Field(default=0, ge=0)

    @field_validator("skills")
    @classmethod
    def _normalize_skills(cls, value: list[str]) -> list[str]:
        return normalize_skills(value)


class TaskRecord(BaseModel):
    """Task with its lifecycle timestamps and estimation inputs."""

    id: str
    title: str
    description: str = ""
    status: TaskStatus = TaskStatus.PENDING
    priority: TaskPriority = TaskPriority.MEDIUM
    progress: int = Field(default=0, ge=0, le=100)
    deadline: datetime | None = None
    assigned_to: str | None = None
    created_by: str | None = None
    required_skills: list[str] = []
    estimated_hours: float = Field(default=0.0, ge=0.0)
    complexity_multiplier: float = Field(default=1.0, ge=1.0)
    created_at: datetime | None = None
    accepted_at: datetime | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None

    @field_validator("required_skills")
    @classmethod
    def _normalize_skills(cls, value: list[str]) -> list[str]:
        return normalize_skills(value)

    @field_validator(
        "deadline", "created_at", "accepted_at", "started_at", "completed_at"
    )
    @classmethod
    def _to_utc(cls, value: datetime | None) -> datetime | None:
        return as_utc(value)

    def is_overdue(self, now: datetime) -> bool:
        """A task is overdue when its deadline passed and it is still open."""
        if self.deadline is None or self.status in TERMINAL_STATUSES:
            return False
        return self.deadline < now


class TaskUpdateRecord(BaseModel):
    """Progress note written by a task's assignee."""

    id: str
    task_id: str
    user_id: str
    message: str
    hours_logged: float = Field(default=0.0, ge=0.0)
    created_at: datetime


class PaymentRecord(BaseModel):
    """Payment owed to an employee for a completed task."""

    id: str
    employee_id: str
    task_id: str
    amount_manual: float | None = None
    amount_ai_suggested: float | None = None
    status: PaymentStatus = PaymentStatus.PENDING
    reasoning: str | None = None
    confidence: float | None = None
    created_at: datetime
    approved_at: datetime | None = None
    paid_at: datetime | None = None

    @property
    def amount(self) -> float | None:
        """Manual amount when an admin set one, otherwise the suggestion."""
        if self.amount_manual is not None:
            return self.amount_manual
        return self.amount_ai_suggested


class DisambiguationCandidate(BaseModel):
    """Lightweight projection offered when a reference matches several records."""

    id: str
    label: str
    secondary: str = ""


class IdentityContext(BaseModel):
    """Caller identity for a single turn, passed into every tool invocation."""

    model_config = ConfigDict(frozen=True)

    user_id: str
    role: Role


__all__ = [
    "ALLOWED_TRANSITIONS",
    "PRIORITY_ORDER",
    "TERMINAL_STATUSES",
    "DisambiguationCandidate",
    "EmployeeRecord",
    "IdentityContext",
    "PaymentRecord",
    "PaymentStatus",
    "Role",
    "TaskPriority",
    "TaskRecord",
    "TaskStatus",
    "TaskUpdateRecord",
    "as_utc",
    "can_transition",
    "normalize_skills",
    "utc_now",
]
