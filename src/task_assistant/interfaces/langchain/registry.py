"""Role-scoped tool registry and the single path through which tools execute."""

import logging
from typing import Any

from pydantic import ValidationError

from task_assistant.core.datastore import Datastore
from task_assistant.core.errors import (
    DatastoreError,
    TaskAssistantError,
    UpstreamFailure,
    ValidationFailure,
)
from task_assistant.core.payments import PaymentSuggestionService
from task_assistant.core.records import IdentityContext, Role
from task_assistant.interfaces.langchain.confirmation import ConfirmationRequest
from task_assistant.interfaces.langchain.tools import (
    ResolutionFailure,
    TaskAssistantTool,
    create_task_assistant_tools,
)

ROLE_TOOLSETS: dict[Role, tuple[str, ...]] = {
    Role.ADMIN: (
        "list_employees",
        "get_employee_details",
        "update_employee",
        "delete_employee",
        "get_employee_performance",
        "search_employees_by_skills",
        "analyze_and_plan_task",
        "suggest_assignees",
        "create_task",
        "assign_task",
        "update_task",
        "delete_task",
        "list_tasks",
        "get_task_details",
        "estimate_payment",
        "list_payments",
        "approve_payment",
        "mark_payment_paid",
    ),
    Role.EMPLOYEE: (
        "list_my_tasks",
        "update_my_task",
        "add_progress_update",
        "get_my_profile",
        "get_task_details",
        "get_employee_details",
        "search_employees_by_skills",
    ),
}


def format_validation_error(error: ValidationError) -> str:
    """Condense pydantic errors into one line the model can act on."""
    problems = []
    for detail in error.errors():
        location = ".".join(str(part) for part in detail["loc"]) or "input"
        problems.append(f"{location}: {detail['msg']}")
    return "Invalid arguments: " + "; ".join(problems)


class ToolRegistry:
    """Builds the tool set once and hands out role-scoped views of it.

    Every invocation goes through :meth:`invoke`, which enforces the role
    partition and argument validation and turns failures into payloads the
    model can read.
    """

    def __init__(
        self,
        datastore: Datastore,
        payments: PaymentSuggestionService | None = None,
    ) -> None:
        self.datastore = datastore
        self.payments = payments
        self.logger = logging.getLogger(__name__)
        self._tools = {
            tool.name: tool
            for tool in create_task_assistant_tools(datastore, payments=payments)
        }

    def tools_for(self, role: Role) -> dict[str, TaskAssistantTool]:
        """Return the tools available to ``role``, keyed by name."""
        return {name: self._tools[name] for name in ROLE_TOOLSETS[Role(role)]}

    def get(self, role: Role, name: str) -> TaskAssistantTool | None:
        return self.tools_for(role).get(name)

    async def invoke(
        self, tool: TaskAssistantTool, args: dict[str, Any], context: IdentityContext
    ) -> dict[str, Any]:
        """Validate ``args`` and run ``tool`` for ``context``.

        Returns:
            The tool's result, or a failure payload for typed failures.
        """
        try:
            params = self._validate(tool, args, context)
            return await tool.execute(context, params)
        except ResolutionFailure as e:
            return e.payload
        except TaskAssistantError as e:
            self.logger.info(f"{tool.name} failed for {context.user_id}: {e.kind}: {e}")
            return e.to_payload()
        except DatastoreError as e:
            self.logger.warning(f"Datastore error in {tool.name}: {e}")
            return UpstreamFailure(
                f"The data service failed while running {tool.name}. Please try again.",
                tool=tool.name,
            ).to_payload()

    async def propose(
        self, tool: TaskAssistantTool, args: dict[str, Any], context: IdentityContext
    ) -> ConfirmationRequest | dict[str, Any]:
        """Bind a confirmable call without executing it.

        References are resolved now so that approval executes against the
        records the user saw. Returns a failure payload when the arguments
        are invalid or a reference does not resolve.
        """
        try:
            params = self._validate(tool, args, context)
            prepared = await tool.prepare(context, params)
        except ResolutionFailure as e:
            return e.payload
        except TaskAssistantError as e:
            return e.to_payload()
        except DatastoreError as e:
            self.logger.warning(f"Datastore error preparing {tool.name}: {e}")
            return UpstreamFailure(
                f"The data service failed while preparing {tool.name}. Please try again.",
                tool=tool.name,
            ).to_payload()
        return ConfirmationRequest(
            tool_name=tool.name,
            arguments=prepared.params,
            description=prepared.description,
        )

    async def execute_confirmed(
        self, request: ConfirmationRequest, context: IdentityContext
    ) -> dict[str, Any]:
        """Execute an approved request exactly as it was bound."""
        tool = self.get(context.role, request.tool_name)
        if tool is None:
            return ValidationFailure(
                f"Tool {request.tool_name} is not available for role {context.role.value}"
            ).to_payload()
        return await self.invoke(tool, {**request.arguments, "confirmed": True}, context)

    def _validate(
        self, tool: TaskAssistantTool, args: dict[str, Any], context: IdentityContext
    ) -> Any:
        if tool.name not in ROLE_TOOLSETS[context.role]:
            raise ValidationFailure(
                f"Tool {tool.name} is not available for role {context.role.value}"
            )
        if tool.args_schema is None:
            return None
        try:
            return tool.args_schema.model_validate(args)  # type: ignore[union-attr]
        except ValidationError as e:
            raise ValidationFailure(format_validation_error(e), tool=tool.name) from e


__all__ = ["ROLE_TOOLSETS", "ToolRegistry", "format_validation_error"]
