"""Task management tools for administrators."""

import asyncio
from datetime import datetime
from typing import Any

from pydantic import BaseModel

from task_assistant.core.datastore import with_task_skills
from task_assistant.core.errors import ConfirmationRequired, ValidationFailure
from task_assistant.core.records import (
    PRIORITY_ORDER,
    TERMINAL_STATUSES,
    IdentityContext,
    TaskRecord,
    TaskStatus,
    as_utc,
    can_transition,
    normalize_skills,
    utc_now,
)
from task_assistant.interfaces.langchain.models import (
    AssignTaskInput,
    CreateTaskInput,
    DeleteTaskInput,
    ListTasksInput,
    TaskReferenceInput,
    UpdateTaskInput,
)
from task_assistant.interfaces.langchain.tools.base import (
    PreparedCall,
    TaskAssistantTool,
    success,
    task_summary,
)

ASSIGNABLE_STATUSES = frozenset({TaskStatus.PENDING, TaskStatus.INVITED, TaskStatus.REJECTED})
RECENT_UPDATES = 5


def select_tasks(
    tasks: list[TaskRecord], overdue: bool, limit: int, now: datetime
) -> list[TaskRecord]:
    """Filter overdue tasks if asked, order by priority then deadline, and cap."""
    if overdue:
        tasks = [task for task in tasks if task.is_overdue(now)]
    tasks = sorted(
        tasks,
        key=lambda task: (
            PRIORITY_ORDER[task.priority],
            task.deadline is None,
            task.deadline.timestamp() if task.deadline else 0.0,
        ),
    )
    return tasks[:limit]


def check_deadline(
    deadline: datetime, status: TaskStatus, now: datetime
) -> datetime:
    """Deadlines must lie in the future unless the task is finished."""
    deadline = as_utc(deadline) or deadline
    if deadline <= now and status not in TERMINAL_STATUSES:
        raise ValidationFailure("Deadline must be in the future", field="deadline")
    return deadline


async def apply_task_changes(
    tool: TaskAssistantTool, task: TaskRecord, changes: dict[str, Any]
) -> TaskRecord:
    """Apply ``changes`` to ``task`` with lifecycle stamps and assignee counters.

    Completion stamps ``completed_at``, sets progress to 100, moves the task
    off the assignee's workload, credits their completed count and schedules a
    payment suggestion.
    """
    now = utc_now()
    changes = dict(changes)
    new_status = TaskStatus(changes["status"]) if changes.get("status") else task.status
    if not can_transition(task.status, new_status):
        raise ValidationFailure(
            f"Cannot move task from {task.status.value} to {new_status.value}",
            field="status",
        )
    if changes.get("deadline") is not None:
        changes["deadline"] = check_deadline(changes["deadline"], new_status, now)

    status_changed = new_status != task.status
    finishing = status_changed and new_status == TaskStatus.COMPLETED
    if status_changed:
        changes["status"] = new_status
        if new_status == TaskStatus.ACCEPTED and task.accepted_at is None:
            changes["accepted_at"] = now
        if new_status == TaskStatus.ONGOING and task.started_at is None:
            changes["started_at"] = now
        if task.status == TaskStatus.COMPLETED:
            changes["completed_at"] = None
    if finishing:
        changes["completed_at"] = now
        changes["progress"] = 100

    skills = changes.pop("required_skills", None)
    updated = await tool.datastore.update_task(task.id, changes) if changes else task
    if skills is not None:
        await tool.datastore.set_task_required_skills(task.id, skills)
    updated = updated.model_copy(
        update={
            "required_skills": normalize_skills(skills)
            if skills is not None
            else task.required_skills
        }
    )

    if status_changed and task.assigned_to:
        was_open = task.status not in TERMINAL_STATUSES
        is_open = new_status not in TERMINAL_STATUSES
        workload_delta = int(is_open) - int(was_open)
        completed_delta = int(finishing) - int(task.status == TaskStatus.COMPLETED)
        if workload_delta or completed_delta:
            await tool.datastore.adjust_employee_counters(
                task.assigned_to,
                workload_delta=workload_delta,
                completed_delta=completed_delta,
            )
    if finishing and task.assigned_to:
        tool.schedule_payment_suggestion(task.id)
    return updated


class CreateTaskTool(TaskAssistantTool):
    """Tool for creating a task."""

    name: str = "create_task"
    description: str = (
        "Create a new task with a title, description, future deadline, priority, "
        "required skills, estimated hours and complexity. The task starts as pending "
        "and unassigned; use assign_task afterwards."
    )
    args_schema: type[BaseModel] = CreateTaskInput

    # Explicit __init__ needed for mypy to recognize inherited constructor from BaseTool
    def __init__(self, **kwargs: Any) -> None:
        super().__init__(**kwargs)

    async def execute(
        self, context: IdentityContext, params: CreateTaskInput
    ) -> dict[str, Any]:
        deadline = check_deadline(params.deadline, TaskStatus.PENDING, utc_now())
        task = await self.datastore.create_task(
            {
                "title": params.title.strip(),
                "description": params.description.strip(),
                "priority": params.priority,
                "deadline": deadline,
                "status": TaskStatus.PENDING,
                "created_by": context.user_id,
                "estimated_hours": params.estimated_hours,
                "complexity_multiplier": params.complexity_multiplier,
                "required_skills": params.required_skills,
            }
        )
        task = task.model_copy(
            update={"required_skills": normalize_skills(params.required_skills)}
        )
        self.logger.info(f"Task {task.id} created by {context.user_id}")
        return success(f'Created task "{task.title}"', task=task_summary(task))


class AssignTaskTool(TaskAssistantTool):
    """Tool for assigning a task to an employee."""

    name: str = "assign_task"
    description: str = (
        "Assign a task to an employee (both by name, partial name or ID). The task "
        "becomes invited until the employee accepts it."
    )
    args_schema: type[BaseModel] = AssignTaskInput

    # Explicit __init__ needed for mypy to recognize inherited constructor from BaseTool
    def __init__(self, **kwargs: Any) -> None:
        super().__init__(**kwargs)

    async def execute(
        self, context: IdentityContext, params: AssignTaskInput
    ) -> dict[str, Any]:
        task, employee = await asyncio.gather(
            self.resolve_task(params.task), self.resolve_employee(params.employee)
        )
        if task.status not in ASSIGNABLE_STATUSES:
            raise ValidationFailure(
                f'Task "{task.title}" is already {task.status.value} and cannot be reassigned',
                field="task",
            )
        if task.assigned_to == employee.id and task.status == TaskStatus.INVITED:
            raise ValidationFailure(
                f'Task "{task.title}" is already assigned to {employee.full_name}'
            )

        updated = await self.datastore.update_task(
            task.id, {"assigned_to": employee.id, "status": TaskStatus.INVITED}
        )
        if task.assigned_to and task.assigned_to != employee.id:
            if task.status not in TERMINAL_STATUSES:
                await self.datastore.adjust_employee_counters(
                    task.assigned_to, workload_delta=-1
                )
        if task.assigned_to != employee.id or task.status in TERMINAL_STATUSES:
            await self.datastore.adjust_employee_counters(employee.id, workload_delta=1)

        self.logger.info(f"Task {task.id} assigned to {employee.id} by {context.user_id}")
        return success(
            f'Assigned "{task.title}" to {employee.full_name}',
            task=task_summary(updated.model_copy(update={"required_skills": task.required_skills})),
            employee={"id": employee.id, "full_name": employee.full_name},
        )


class UpdateTaskTool(TaskAssistantTool):
    """Tool for editing a task."""

    name: str = "update_task"
    description: str = (
        "Update a task's title, description, status, priority, progress, deadline, "
        "required skills, estimated hours or complexity. Marking it completed records "
        "the completion and prepares a payment suggestion."
    )
    args_schema: type[BaseModel] = UpdateTaskInput

    # Explicit __init__ needed for mypy to recognize inherited constructor from BaseTool
    def __init__(self, **kwargs: Any) -> None:
        super().__init__(**kwargs)

    async def execute(
        self, context: IdentityContext, params: UpdateTaskInput
    ) -> dict[str, Any]:
        changes = params.updates.model_dump(exclude_none=True)
        if not changes:
            raise ValidationFailure("No changes provided", field="updates")
        task = await self.resolve_task(params.task)
        updated = await apply_task_changes(self, task, changes)
        return success(f'Updated task "{updated.title}"', task=task_summary(updated))


class DeleteTaskTool(TaskAssistantTool):
    """Tool for permanently deleting a task."""

    name: str = "delete_task"
    description: str = (
        "Permanently delete a task. Destructive: the user is asked to confirm before "
        "anything is deleted."
    )
    args_schema: type[BaseModel] = DeleteTaskInput
    requires_confirmation: bool = True

    # Explicit __init__ needed for mypy to recognize inherited constructor from BaseTool
    def __init__(self, **kwargs: Any) -> None:
        super().__init__(**kwargs)

    async def prepare(
        self, context: IdentityContext, params: DeleteTaskInput
    ) -> PreparedCall:
        task = await self.resolve_task(params.task)
        assignee = await self.assignee_name(task)
        return PreparedCall(
            params={"task": task.id},
            description=(
                f'You are about to permanently delete the task "{task.title}" '
                f"({task.status.value}, {task.priority.value} priority, "
                f"assigned to {assignee or 'nobody'}). Its progress updates are removed "
                "with it and this cannot be undone."
            ),
        )

    async def execute(
        self, context: IdentityContext, params: DeleteTaskInput
    ) -> dict[str, Any]:
        if not params.confirmed:
            raise ConfirmationRequired(
                "Task deletion requires explicit confirmation. "
                "Please set confirmed=true to proceed."
            )
        task = await self.resolve_task(params.task)
        await self.datastore.delete_task(task.id)
        if task.assigned_to and task.status not in TERMINAL_STATUSES:
            await self.datastore.adjust_employee_counters(
                task.assigned_to, workload_delta=-1
            )
        self.logger.info(f"Task {task.id} deleted by {context.user_id}")
        return success(f'Deleted task "{task.title}"', task_id=task.id)


class ListTasksTool(TaskAssistantTool):
    """Tool for listing tasks across the organization."""

    name: str = "list_tasks"
    description: str = (
        "List tasks filtered by status, priority, assignee or overdue flag, ordered by "
        "priority (high first) then deadline."
    )
    args_schema: type[BaseModel] = ListTasksInput

    # Explicit __init__ needed for mypy to recognize inherited constructor from BaseTool
    def __init__(self, **kwargs: Any) -> None:
        super().__init__(**kwargs)

    async def execute(
        self, context: IdentityContext, params: ListTasksInput
    ) -> dict[str, Any]:
        assignee_id = None
        if params.assigned_to:
            assignee_id = (await self.resolve_employee(params.assigned_to)).id
        tasks = await self.datastore.list_tasks(
            status=params.status, priority=params.priority, assigned_to=assignee_id
        )
        now = utc_now()
        selected = await with_task_skills(
            self.datastore, select_tasks(tasks, params.overdue, params.limit, now)
        )
        return success(
            f"Found {len(selected)} task(s)",
            tasks=[task_summary(task, now) for task in selected],
        )


class GetTaskDetailsTool(TaskAssistantTool):
    """Tool for one task with its assignee, recent updates and payment."""

    name: str = "get_task_details"
    description: str = (
        "Get a task's full details by title, partial title or ID, including assignee, "
        "recent progress updates and payment status."
    )
    args_schema: type[BaseModel] = TaskReferenceInput

    # Explicit __init__ needed for mypy to recognize inherited constructor from BaseTool
    def __init__(self, **kwargs: Any) -> None:
        super().__init__(**kwargs)

    async def execute(
        self, context: IdentityContext, params: TaskReferenceInput
    ) -> dict[str, Any]:
        task = await self.resolve_task(params.task)
        assignee, updates, payment = await asyncio.gather(
            self.assignee_name(task),
            self.datastore.list_task_updates(task_id=task.id),
            self.datastore.get_payment_for_task(task.id),
        )
        recent = sorted(updates, key=lambda update: update.created_at, reverse=True)
        return success(
            f'Details for "{task.title}"',
            task=task_summary(task),
            assignee=assignee,
            hours_logged=round(sum(update.hours_logged for update in updates), 2),
            recent_updates=[
                update.model_dump(mode="json") for update in recent[:RECENT_UPDATES]
            ],
            payment=(
                {"status": payment.status.value, "amount": payment.amount}
                if payment
                else None
            ),
        )


__all__ = [
    "AssignTaskTool",
    "CreateTaskTool",
    "DeleteTaskTool",
    "GetTaskDetailsTool",
    "ListTasksTool",
    "UpdateTaskTool",
    "apply_task_changes",
    "check_deadline",
    "select_tasks",
]
