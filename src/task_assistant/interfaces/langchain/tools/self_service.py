"""Tools employees use on their own tasks."""

from typing import Any

from pydantic import BaseModel

from task_assistant.core.datastore import with_task_skills
from task_assistant.core.errors import NotFoundError
from task_assistant.core.records import IdentityContext, TaskRecord, utc_now
from task_assistant.interfaces.langchain.models import (
    AddProgressUpdateInput,
    ListMyTasksInput,
    UpdateMyTaskInput,
)
from task_assistant.interfaces.langchain.tools.base import (
    TaskAssistantTool,
    success,
    task_summary,
)
from task_assistant.interfaces.langchain.tools.tasks import apply_task_changes, select_tasks


class OwnTaskTool(TaskAssistantTool):
    """Base for tools that may only touch tasks assigned to the caller."""

    # Explicit __init__ needed for mypy to recognize inherited constructor from BaseTool
    def __init__(self, **kwargs: Any) -> None:
        super().__init__(**kwargs)

    async def resolve_own_task(self, context: IdentityContext, reference: str) -> TaskRecord:
        task = await self.resolve_task(reference)
        if task.assigned_to != context.user_id:
            raise NotFoundError("Task not found or you are not assigned to it")
        return task


class ListMyTasksTool(TaskAssistantTool):
    """Tool for listing the caller's assigned tasks."""

    name: str = "list_my_tasks"
    description: str = (
        "List the tasks assigned to you, optionally filtered by status, priority or "
        "overdue flag."
    )
    args_schema: type[BaseModel] = ListMyTasksInput

    # Explicit __init__ needed for mypy to recognize inherited constructor from BaseTool
    def __init__(self, **kwargs: Any) -> None:
        super().__init__(**kwargs)

    async def execute(
        self, context: IdentityContext, params: ListMyTasksInput
    ) -> dict[str, Any]:
        tasks = await self.datastore.list_tasks(
            status=params.status, priority=params.priority, assigned_to=context.user_id
        )
        now = utc_now()
        selected = await with_task_skills(
            self.datastore, select_tasks(tasks, params.overdue, params.limit, now)
        )
        return success(
            f"You have {len(selected)} matching task(s)",
            tasks=[task_summary(task, now) for task in selected],
        )


class UpdateMyTaskTool(OwnTaskTool):
    """Tool for accepting, starting, finishing or reporting progress on own tasks."""

    name: str = "update_my_task"
    description: str = (
        "Update the status (accepted, ongoing, completed, rejected) or progress of a "
        "task assigned to you. Completing a task records it for payment."
    )
    args_schema: type[BaseModel] = UpdateMyTaskInput

    async def execute(
        self, context: IdentityContext, params: UpdateMyTaskInput
    ) -> dict[str, Any]:
        task = await self.resolve_own_task(context, params.task)
        changes = params.model_dump(include={"status", "progress"}, exclude_none=True)
        updated = await apply_task_changes(self, task, changes)
        self.logger.info(f"Employee {context.user_id} updated task {task.id}: {changes}")
        return success(f'Updated "{updated.title}"', task=task_summary(updated))


class AddProgressUpdateTool(OwnTaskTool):
    """Tool for logging a progress note with hours on an own task."""

    name: str = "add_progress_update"
    description: str = (
        "Add a progress note to a task assigned to you, optionally logging hours worked "
        "(up to 24 per note)."
    )
    args_schema: type[BaseModel] = AddProgressUpdateInput

    async def execute(
        self, context: IdentityContext, params: AddProgressUpdateInput
    ) -> dict[str, Any]:
        task = await self.resolve_own_task(context, params.task)
        update = await self.datastore.add_task_update(
            task.id, context.user_id, params.message.strip(), params.hours_logged
        )
        return success(
            f'Logged progress on "{task.title}"',
            update=update.model_dump(mode="json"),
        )


__all__ = ["AddProgressUpdateTool", "ListMyTasksTool", "OwnTaskTool", "UpdateMyTaskTool"]
