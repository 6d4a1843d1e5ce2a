"""LangChain tools exposed to the task assistant."""

from task_assistant.core.datastore import Datastore
from task_assistant.core.payments import PaymentSuggestionService
from task_assistant.core.resolver import EntityResolver
from task_assistant.interfaces.langchain.tools.base import (
    PreparedCall,
    ResolutionFailure,
    TaskAssistantTool,
)
from task_assistant.interfaces.langchain.tools.employees import (
    AnalyzeAndPlanTaskTool,
    DeleteEmployeeTool,
    GetEmployeeDetailsTool,
    GetEmployeePerformanceTool,
    GetMyProfileTool,
    ListEmployeesTool,
    SearchEmployeesBySkillsTool,
    SuggestAssigneesTool,
    UpdateEmployeeTool,
)
from task_assistant.interfaces.langchain.tools.payments import (
    ApprovePaymentTool,
    EstimatePaymentTool,
    ListPaymentsTool,
    MarkPaymentPaidTool,
)
from task_assistant.interfaces.langchain.tools.self_service import (
    AddProgressUpdateTool,
    ListMyTasksTool,
    UpdateMyTaskTool,
)
from task_assistant.interfaces.langchain.tools.tasks import (
    AssignTaskTool,
    CreateTaskTool,
    DeleteTaskTool,
    GetTaskDetailsTool,
    ListTasksTool,
    UpdateTaskTool,
)

TOOL_CLASSES: tuple[type[TaskAssistantTool], ...] = (
    ListEmployeesTool,
    GetEmployeeDetailsTool,
    GetMyProfileTool,
    UpdateEmployeeTool,
    DeleteEmployeeTool,
    GetEmployeePerformanceTool,
    SearchEmployeesBySkillsTool,
    AnalyzeAndPlanTaskTool,
    SuggestAssigneesTool,
    CreateTaskTool,
    AssignTaskTool,
    UpdateTaskTool,
    DeleteTaskTool,
    ListTasksTool,
    GetTaskDetailsTool,
    ListMyTasksTool,
    UpdateMyTaskTool,
    AddProgressUpdateTool,
    EstimatePaymentTool,
    ListPaymentsTool,
    ApprovePaymentTool,
    MarkPaymentPaidTool,
)


def create_task_assistant_tools(
    datastore: Datastore,
    payments: PaymentSuggestionService | None = None,
    resolver: EntityResolver | None = None,
) -> list[TaskAssistantTool]:
    """Create every assistant tool over shared collaborators.

    Args:
        datastore: Datastore all tools read and mutate.
        payments: Payment suggestion service. Payment estimation is
            unavailable and task completion schedules nothing if None.
        resolver: Entity resolver. Creates one over ``datastore`` if None.

    Returns:
        List of all tool instances, admin and employee tools alike.
    """
    if resolver is None:
        resolver = EntityResolver(datastore)

    return [
        tool_class(datastore=datastore, resolver=resolver, payments=payments)
        for tool_class in TOOL_CLASSES
    ]


__all__ = [
    "AddProgressUpdateTool",
    "AnalyzeAndPlanTaskTool",
    "ApprovePaymentTool",
    "AssignTaskTool",
    "CreateTaskTool",
    "DeleteEmployeeTool",
    "DeleteTaskTool",
    "EstimatePaymentTool",
    "GetEmployeeDetailsTool",
    "GetEmployeePerformanceTool",
    "GetMyProfileTool",
    "GetTaskDetailsTool",
    "ListEmployeesTool",
    "ListMyTasksTool",
    "ListPaymentsTool",
    "ListTasksTool",
    "MarkPaymentPaidTool",
    "PreparedCall",
    "ResolutionFailure",
    "SearchEmployeesBySkillsTool",
    "SuggestAssigneesTool",
    "TOOL_CLASSES",
    "TaskAssistantTool",
    "UpdateEmployeeTool",
    "UpdateMyTaskTool",
    "UpdateTaskTool",
    "create_task_assistant_tools",
]
