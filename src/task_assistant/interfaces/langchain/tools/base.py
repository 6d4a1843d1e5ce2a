import logging
from datetime import datetime
from typing import Any, cast

from langchain_core.callbacks import CallbackManagerForToolRun
from langchain_core.tools import BaseTool
from pydantic import BaseModel

from task_assistant.core.datastore import Datastore
from task_assistant.core.errors import NotFoundError
from task_assistant.core.payments import PaymentSuggestionService
from task_assistant.core.records import (
    EmployeeRecord,
    IdentityContext,
    TaskRecord,
    utc_now,
)
from task_assistant.core.resolver import EntityResolver, Resolved


class PreparedCall(BaseModel):
    """A confirmable call with its references already resolved."""

    params: dict[str, Any]
    description: str


class ResolutionFailure(Exception):
    """Carries a resolver failure payload out of a tool helper."""

    def __init__(self, payload: dict[str, Any]) -> None:
        super().__init__(payload["message"])
        self.payload = payload


class TaskAssistantTool(BaseTool):
    """Base class for assistant tools with injectable datastore and services.

    Tools run through :meth:`execute`, which receives the caller's identity
    context explicitly. The LangChain ``_run`` path raises, since without a
    context a tool cannot tell whose tasks it is touching.
    """

    requires_confirmation: bool = False

    def __init__(
        self,
        datastore: Datastore,
        resolver: EntityResolver | None = None,
        payments: PaymentSuggestionService | None = None,
        **kwargs: Any,
    ) -> None:
        """Initialize with shared collaborators.

        Args:
            datastore: Datastore the tool reads and mutates.
            resolver: Entity resolver. Creates one over ``datastore`` if None.
            payments: Payment suggestion service used by completion and
                payment tools.
            **kwargs: Additional arguments passed to BaseTool.
        """
        super().__init__(**kwargs)
        self._datastore = datastore
        self._resolver = resolver or EntityResolver(datastore)
        self._payments = payments
        self._logger = logging.getLogger(__name__)

    @property
    def datastore(self) -> Datastore:
        return self._datastore

    @property
    def resolver(self) -> EntityResolver:
        return self._resolver

    @property
    def payments(self) -> PaymentSuggestionService:
        if self._payments is None:
            raise RuntimeError(f"{self.name} is not configured with payments")
        return self._payments

    @property
    def logger(self) -> logging.Logger:
        return self._logger

    async def execute(self, context: IdentityContext, params: Any) -> dict[str, Any]:
        """Run the tool body with validated ``params``."""
        raise NotImplementedError

    async def prepare(self, context: IdentityContext, params: Any) -> PreparedCall:
        """Resolve references and describe the consequences of a confirmable call."""
        raise NotImplementedError(f"{self.name} does not require confirmation")

    def _run(
        self, *args: Any, run_manager: CallbackManagerForToolRun | None = None, **kwargs: Any
    ) -> Any:
        raise NotImplementedError(
            f"{self.name} needs an identity context; invoke it through ToolRegistry"
        )

    # Shared helpers

    async def resolve_employee(self, reference: str) -> EmployeeRecord:
        resolution = await self.resolver.resolve_employee(reference)
        if not isinstance(resolution, Resolved):
            raise ResolutionFailure(resolution.to_payload())
        return cast(EmployeeRecord, resolution.record)

    async def resolve_task(self, reference: str) -> TaskRecord:
        resolution = await self.resolver.resolve_task(reference)
        if not isinstance(resolution, Resolved):
            raise ResolutionFailure(resolution.to_payload())
        return cast(TaskRecord, resolution.record)

    def schedule_payment_suggestion(self, task_id: str) -> None:
        """Start a background payment suggestion when payments are configured."""
        if self._payments is not None:
            self._payments.schedule_for_task(task_id)

    async def assignee_name(self, task: TaskRecord) -> str | None:
        if not task.assigned_to:
            return None
        employee = await self.datastore.get_employee(task.assigned_to)
        if employee is None:
            raise NotFoundError(f"Assignee {task.assigned_to} no longer exists")
        return employee.full_name


def employee_summary(employee: EmployeeRecord) -> dict[str, Any]:
    """JSON-friendly view of an employee for tool results."""
    return employee.model_dump(mode="json")


def task_summary(task: TaskRecord, now: datetime | None = None) -> dict[str, Any]:
    """JSON-friendly view of a task, flagged when it is overdue."""
    summary = task.model_dump(mode="json")
    summary["is_overdue"] = task.is_overdue(now or utc_now())
    return summary


def success(message: str, **data: Any) -> dict[str, Any]:
    return {"success": True, "message": message, **data}


__all__ = [
    "PreparedCall",
    "ResolutionFailure",
    "TaskAssistantTool",
    "employee_summary",
    "success",
    "task_summary",
]
