from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

from task_assistant.core.records import PaymentStatus, TaskPriority, TaskStatus

TimeRange = Literal["week", "month", "quarter", "year", "all"]
SelfServiceStatus = Literal["accepted", "ongoing", "completed", "rejected"]

EMPLOYEE_REFERENCE = "Employee full name, partial name, or employee ID (UUID)"
TASK_REFERENCE = "Task title, partial title, or task ID (UUID)"


class ToolInput(BaseModel):
    """Base for tool inputs; unknown fields are rejected rather than ignored."""

    model_config = ConfigDict(extra="forbid")


class NoInput(ToolInput):
    """Input schema for tools that take no arguments."""


class EmployeeReferenceInput(ToolInput):
    """Input schema for operations on a single employee."""

    employee: str = Field(min_length=1, description=EMPLOYEE_REFERENCE)


class TaskReferenceInput(ToolInput):
    """Input schema for operations on a single task."""

    task: str = Field(min_length=1, description=TASK_REFERENCE)


class ListEmployeesInput(ToolInput):
    """Input schema for employee listing."""

    department: str | None = Field(default=None, description="Filter by department")
    designation: str | None = Field(default=None, description="Filter by job title")
    availability: bool | None = Field(
        default=None, description="Only available (true) or unavailable (false) employees"
    )
    search_query: str | None = Field(
        default=None, description="Substring of the employee's name"
    )
    skills: list[str] | None = Field(
        default=None, description="Only employees having at least one of these skills"
    )


class EmployeeProfileChanges(ToolInput):
    """Editable employee profile fields."""

    department: str | None = None
    designation: str | None = None
    contact: str | None = None
    hourly_rate: float | None = Field(default=None, ge=0, description="Hourly rate in USD")
    availability: bool | None = None
    skills: list[str] | None = Field(
        default=None, description="Replaces the employee's full skill list"
    )


class UpdateEmployeeInput(EmployeeReferenceInput):
    """Input schema for employee profile updates."""

    updates: EmployeeProfileChanges = Field(description="Fields to change")


class DeleteEmployeeInput(EmployeeReferenceInput):
    """Input schema for employee deletion."""

    confirmed: bool = Field(
        default=False, description="Must be true; the user has to confirm deletion first"
    )


class EmployeePerformanceInput(EmployeeReferenceInput):
    """Input schema for employee performance reports."""

    time_range: TimeRange = Field(
        default="month", description="Period to report on: week, month, quarter, year or all"
    )


class SearchBySkillsInput(ToolInput):
    """Input schema for skill-based employee search."""

    required_skills: list[str] = Field(
        min_length=1, description="Skills to match (e.g., ['React', 'SQL'])"
    )
    available_only: bool = Field(
        default=True, description="Only consider employees marked as available"
    )
    limit: int = Field(default=5, ge=1, le=20, description="Maximum results")


class AnalyzeTaskInput(ToolInput):
    """Input schema for task requirement analysis."""

    task_description: str = Field(
        min_length=10, description="Free-text description of the work to be done"
    )


class SuggestAssigneesInput(TaskReferenceInput):
    """Input schema for assignee suggestions on an existing task."""

    limit: int = Field(default=5, ge=1, le=10, description="Maximum suggestions")


class CreateTaskInput(ToolInput):
    """Input schema for task creation."""

    title: str = Field(min_length=1, max_length=200, description="Short task title")
    description: str = Field(min_length=1, description="What needs to be done")
    deadline: datetime = Field(description="Due date in ISO 8601, must be in the future")
    priority: TaskPriority = Field(default=TaskPriority.MEDIUM, description="low, medium or high")
    required_skills: list[str] = Field(default=[], description="Skills the task needs")
    estimated_hours: float = Field(default=0, ge=0, le=1000, description="Estimated effort in hours")
    complexity_multiplier: float = Field(
        default=1.0, ge=1.0, le=3.0, description="Complexity from 1.0 (simple) to 3.0"
    )


class AssignTaskInput(TaskReferenceInput):
    """Input schema for task assignment."""

    employee: str = Field(min_length=1, description=EMPLOYEE_REFERENCE)


class TaskChanges(ToolInput):
    """Editable task fields."""

    title: str | None = Field(default=None, min_length=1, max_length=200)
    description: str | None = None
    status: TaskStatus | None = None
    priority: TaskPriority | None = None
    progress: int | None = Field(default=None, ge=0, le=100)
    deadline: datetime | None = None
    required_skills: list[str] | None = None
    estimated_hours: float | None = Field(default=None, ge=0, le=1000)
    complexity_multiplier: float | None = Field(default=None, ge=1.0, le=3.0)


class UpdateTaskInput(TaskReferenceInput):
    """Input schema for task updates."""

    updates: TaskChanges = Field(description="Fields to change")


class DeleteTaskInput(TaskReferenceInput):
    """Input schema for task deletion."""

    confirmed: bool = Field(
        default=False, description="Must be true; the user has to confirm deletion first"
    )


class ListTasksInput(ToolInput):
    """Input schema for task listing."""

    status: TaskStatus | None = Field(default=None, description="Filter by status")
    priority: TaskPriority | None = Field(default=None, description="Filter by priority")
    assigned_to: str | None = Field(default=None, description=EMPLOYEE_REFERENCE)
    overdue: bool = Field(default=False, description="Only tasks past their deadline")
    limit: int = Field(default=20, ge=1, le=100, description="Maximum results")


class ListMyTasksInput(ToolInput):
    """Input schema for listing the caller's own tasks."""

    status: TaskStatus | None = Field(default=None, description="Filter by status")
    priority: TaskPriority | None = Field(default=None, description="Filter by priority")
    overdue: bool = Field(default=False, description="Only tasks past their deadline")
    limit: int = Field(default=20, ge=1, le=100, description="Maximum results")


class UpdateMyTaskInput(TaskReferenceInput):
    """Input schema for status or progress changes on the caller's own task."""

    status: SelfServiceStatus | None = Field(
        default=None, description="accepted, ongoing, completed or rejected"
    )
    progress: int | None = Field(default=None, ge=0, le=100, description="Percent complete")

    @model_validator(mode="after")
    def _require_change(self) -> "UpdateMyTaskInput":
        if self.status is None and self.progress is None:
            raise ValueError("Provide a status or a progress value")
        return self


class AddProgressUpdateInput(TaskReferenceInput):
    """Input schema for progress notes."""

    message: str = Field(min_length=1, description="What was done")
    hours_logged: float = Field(default=0, ge=0, le=24, description="Hours worked")


class EstimatePaymentInput(TaskReferenceInput):
    """Input schema for payment estimation on a completed task."""

    store: bool = Field(
        default=True, description="Save the estimate as the task's suggested payment"
    )


class ListPaymentsInput(ToolInput):
    """Input schema for payment listing."""

    status: PaymentStatus | None = Field(default=None, description="pending, approved or paid")
    employee: str | None = Field(default=None, description=EMPLOYEE_REFERENCE)
    limit: int = Field(default=20, ge=1, le=100, description="Maximum results")


class ApprovePaymentInput(TaskReferenceInput):
    """Input schema for payment approval."""

    amount: float | None = Field(
        default=None, gt=0, description="Manual amount overriding the suggestion"
    )
    confirmed: bool = Field(
        default=False, description="Must be true; the user has to confirm the approval first"
    )


class MarkPaymentPaidInput(TaskReferenceInput):
    """Input schema for marking an approved payment as paid."""

    confirmed: bool = Field(
        default=False, description="Must be true; the user has to confirm the payout first"
    )


__all__ = [
    "AddProgressUpdateInput",
    "AnalyzeTaskInput",
    "ApprovePaymentInput",
    "AssignTaskInput",
    "CreateTaskInput",
    "DeleteEmployeeInput",
    "DeleteTaskInput",
    "EmployeePerformanceInput",
    "EmployeeProfileChanges",
    "EmployeeReferenceInput",
    "EstimatePaymentInput",
    "ListEmployeesInput",
    "ListMyTasksInput",
    "ListPaymentsInput",
    "ListTasksInput",
    "MarkPaymentPaidInput",
    "NoInput",
    "SearchBySkillsInput",
    "SuggestAssigneesInput",
    "TaskChanges",
    "TaskReferenceInput",
    "ToolInput",
    "UpdateEmployeeInput",
    "UpdateMyTaskInput",
]
