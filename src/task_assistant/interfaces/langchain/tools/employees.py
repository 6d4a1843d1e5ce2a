"""Employee lookup, profile and skill-matching tools."""

import asyncio
from datetime import timedelta
from typing import Any

from pydantic import BaseModel

from task_assistant.core.datastore import with_employee_skills
from task_assistant.core.errors import (
    ConfirmationRequired,
    NotFoundError,
    ValidationFailure,
)
from task_assistant.core.ranking import (
    RankedCandidate,
    rank_candidates,
    recommendation_label,
    skill_matches,
)
from task_assistant.core.records import (
    EmployeeRecord,
    IdentityContext,
    Role,
    TaskStatus,
    normalize_skills,
    utc_now,
)
from task_assistant.core.skills import analyze_task_requirements, infer_required_skills
from task_assistant.interfaces.langchain.models import (
    AnalyzeTaskInput,
    DeleteEmployeeInput,
    EmployeePerformanceInput,
    EmployeeReferenceInput,
    ListEmployeesInput,
    NoInput,
    SearchBySkillsInput,
    SuggestAssigneesInput,
    UpdateEmployeeInput,
)
from task_assistant.interfaces.langchain.tools.base import (
    PreparedCall,
    TaskAssistantTool,
    employee_summary,
    success,
    task_summary,
)

TIME_RANGE_DAYS = {"week": 7, "month": 30, "quarter": 90, "year": 365}

ACTIVE_STATUSES = frozenset({TaskStatus.INVITED, TaskStatus.ACCEPTED, TaskStatus.ONGOING})

# Compensation and scoring fields only admins may see on a colleague's profile.
RESTRICTED_FIELDS = ("hourly_rate", "performance_score", "on_time_rate", "quality_score")


def ranked_summary(candidate: RankedCandidate) -> dict[str, Any]:
    employee = candidate.employee
    return {
        "id": employee.id,
        "full_name": employee.full_name,
        "email": employee.email,
        "department": employee.department,
        "skills": employee.skills,
        "matched_skills": candidate.matched_skills,
        "match_score": round(candidate.score * 100),
        "current_workload": employee.current_workload,
        "performance_score": employee.performance_score,
        "recommendation": recommendation_label(candidate.score),
    }


class ListEmployeesTool(TaskAssistantTool):
    """Tool for listing employees with optional filters."""

    name: str = "list_employees"
    description: str = (
        "List employees, optionally filtered by department, designation, availability, "
        "a name fragment, or skills. Returns profiles with skills and current workload."
    )
    args_schema: type[BaseModel] = ListEmployeesInput

    # Explicit __init__ needed for mypy to recognize inherited constructor from BaseTool
    def __init__(self, **kwargs: Any) -> None:
        super().__init__(**kwargs)

    async def execute(
        self, context: IdentityContext, params: ListEmployeesInput
    ) -> dict[str, Any]:
        employees = await self.datastore.list_employees(
            department=params.department,
            designation=params.designation,
            availability=params.availability,
            name_fragment=params.search_query,
        )
        employees = await with_employee_skills(self.datastore, employees)
        if params.skills:
            wanted = normalize_skills(params.skills)
            employees = [
                employee
                for employee in employees
                if any(
                    skill_matches(skill, required)
                    for skill in employee.skills
                    for required in wanted
                )
            ]
        return success(
            f"Found {len(employees)} employee(s)",
            employees=[employee_summary(employee) for employee in employees],
        )


class GetEmployeeDetailsTool(TaskAssistantTool):
    """Tool for retrieving one employee's profile and active tasks."""

    name: str = "get_employee_details"
    description: str = (
        "Get an employee's profile, skills and active tasks by name, partial name or ID. "
        "If several employees match, the result lists them so you can ask the user which one."
    )
    args_schema: type[BaseModel] = EmployeeReferenceInput

    # Explicit __init__ needed for mypy to recognize inherited constructor from BaseTool
    def __init__(self, **kwargs: Any) -> None:
        super().__init__(**kwargs)

    async def execute(
        self, context: IdentityContext, params: EmployeeReferenceInput
    ) -> dict[str, Any]:
        employee = await self.resolve_employee(params.employee)
        tasks = await self.datastore.list_tasks(assigned_to=employee.id)
        now = utc_now()
        profile = employee_summary(employee)
        if context.role != Role.ADMIN and employee.id != context.user_id:
            for field in RESTRICTED_FIELDS:
                profile.pop(field, None)
        return success(
            f"Details for {employee.full_name}",
            employee=profile,
            active_tasks=[
                task_summary(task, now)
                for task in tasks
                if task.status not in (TaskStatus.COMPLETED, TaskStatus.REJECTED)
            ],
        )


class GetMyProfileTool(TaskAssistantTool):
    """Tool for the caller's own profile."""

    name: str = "get_my_profile"
    description: str = "Get your own employee profile, skills, workload and performance."
    args_schema: type[BaseModel] = NoInput

    # Explicit __init__ needed for mypy to recognize inherited constructor from BaseTool
    def __init__(self, **kwargs: Any) -> None:
        super().__init__(**kwargs)

    async def execute(self, context: IdentityContext, params: NoInput) -> dict[str, Any]:
        employee, skills = await asyncio.gather(
            self.datastore.get_employee(context.user_id),
            self.datastore.get_employee_skills(context.user_id),
        )
        if employee is None:
            raise NotFoundError("Your employee profile was not found")
        employee = employee.model_copy(update={"skills": normalize_skills(skills)})
        return success("Your profile", employee=employee_summary(employee))


class UpdateEmployeeTool(TaskAssistantTool):
    """Tool for administrative profile edits."""

    name: str = "update_employee"
    description: str = (
        "Update an employee's department, designation, contact, hourly rate, "
        "availability or skills. Skills replace the existing list."
    )
    args_schema: type[BaseModel] = UpdateEmployeeInput

    # Explicit __init__ needed for mypy to recognize inherited constructor from BaseTool
    def __init__(self, **kwargs: Any) -> None:
        super().__init__(**kwargs)

    async def execute(
        self, context: IdentityContext, params: UpdateEmployeeInput
    ) -> dict[str, Any]:
        changes = params.updates.model_dump(exclude_none=True)
        skills = changes.pop("skills", None)
        if not changes and skills is None:
            raise ValidationFailure("No changes provided", field="updates")

        employee = await self.resolve_employee(params.employee)
        if changes:
            employee = (
                await self.datastore.update_employee(employee.id, changes)
            ).model_copy(update={"skills": employee.skills})
        if skills is not None:
            await self.datastore.set_employee_skills(employee.id, skills)
            employee = employee.model_copy(update={"skills": normalize_skills(skills)})

        self.logger.info(f"Employee {employee.id} updated by {context.user_id}")
        return success(
            f"Updated {employee.full_name}", employee=employee_summary(employee)
        )


class DeleteEmployeeTool(TaskAssistantTool):
    """Tool for permanently removing an employee."""

    name: str = "delete_employee"
    description: str = (
        "Permanently delete an employee and their skills. Refused while the employee "
        "has invited, accepted or ongoing tasks. Destructive: the user is asked to "
        "confirm before anything is deleted."
    )
    args_schema: type[BaseModel] = DeleteEmployeeInput
    requires_confirmation: bool = True

    # Explicit __init__ needed for mypy to recognize inherited constructor from BaseTool
    def __init__(self, **kwargs: Any) -> None:
        super().__init__(**kwargs)

    async def deletable_employee(self, reference: str) -> EmployeeRecord:
        employee = await self.resolve_employee(reference)
        tasks = await self.datastore.list_tasks(assigned_to=employee.id)
        active = [task for task in tasks if task.status in ACTIVE_STATUSES]
        if active:
            listed = ", ".join(f'"{task.title}" ({task.status.value})' for task in active)
            raise ValidationFailure(
                f'Cannot delete "{employee.full_name}" while they have {len(active)} '
                f"active task(s): {listed}. Complete or reassign them first.",
                field="employee",
            )
        return employee

    async def prepare(
        self, context: IdentityContext, params: DeleteEmployeeInput
    ) -> PreparedCall:
        employee = await self.deletable_employee(params.employee)
        return PreparedCall(
            params={"employee": employee.id},
            description=(
                f"You are about to permanently delete {employee.full_name} "
                f"({employee.email}, {employee.department or 'no department'}) "
                "together with their skills. This cannot be undone."
            ),
        )

    async def execute(
        self, context: IdentityContext, params: DeleteEmployeeInput
    ) -> dict[str, Any]:
        if not params.confirmed:
            raise ConfirmationRequired(
                "Employee deletion requires explicit confirmation. "
                "Please set confirmed=true to proceed."
            )
        employee = await self.deletable_employee(params.employee)
        await self.datastore.delete_employee(employee.id)
        self.logger.info(f"Employee {employee.id} deleted by {context.user_id}")
        return success(f"Deleted {employee.full_name}", employee_id=employee.id)


class GetEmployeePerformanceTool(TaskAssistantTool):
    """Tool for an employee's task performance over a period."""

    name: str = "get_employee_performance"
    description: str = (
        "Report an employee's task metrics (completion rate, on-time rate, hours logged, "
        "average completion time) over a week, month, quarter, year or all time."
    )
    args_schema: type[BaseModel] = EmployeePerformanceInput

    # Explicit __init__ needed for mypy to recognize inherited constructor from BaseTool
    def __init__(self, **kwargs: Any) -> None:
        super().__init__(**kwargs)

    async def execute(
        self, context: IdentityContext, params: EmployeePerformanceInput
    ) -> dict[str, Any]:
        employee = await self.resolve_employee(params.employee)
        now = utc_now()
        days = TIME_RANGE_DAYS.get(params.time_range)
        since = now - timedelta(days=days) if days else None

        tasks, updates = await asyncio.gather(
            self.datastore.list_tasks(assigned_to=employee.id),
            self.datastore.list_task_updates(user_id=employee.id),
        )
        if since is not None:
            tasks = [task for task in tasks if task.created_at and task.created_at >= since]
            updates = [update for update in updates if update.created_at >= since]

        completed = [task for task in tasks if task.status == TaskStatus.COMPLETED]
        with_deadline = [task for task in completed if task.deadline and task.completed_at]
        on_time = [
            task
            for task in with_deadline
            if task.completed_at and task.deadline and task.completed_at <= task.deadline
        ]
        durations = [
            (task.completed_at - task.started_at).total_seconds() / 3600
            for task in completed
            if task.completed_at and task.started_at
        ]

        metrics = {
            "total_tasks": len(tasks),
            "completed_tasks": len(completed),
            "in_progress_tasks": sum(
                task.status in (TaskStatus.ACCEPTED, TaskStatus.ONGOING) for task in tasks
            ),
            "overdue_tasks": sum(task.is_overdue(now) for task in tasks),
            "completion_rate": round(100 * len(completed) / len(tasks), 1) if tasks else 0.0,
            "on_time_rate": (
                round(100 * len(on_time) / len(with_deadline), 1) if with_deadline else None
            ),
            "average_completion_hours": (
                round(sum(durations) / len(durations), 1) if durations else None
            ),
            "hours_logged": round(sum(update.hours_logged for update in updates), 2),
        }
        return success(
            f"Performance of {employee.full_name} ({params.time_range})",
            employee={"id": employee.id, "full_name": employee.full_name},
            time_range=params.time_range,
            metrics=metrics,
            scores={
                "performance_score": employee.performance_score,
                "on_time_rate": employee.on_time_rate,
                "quality_score": employee.quality_score,
                "tasks_completed": employee.tasks_completed,
            },
        )


class SearchEmployeesBySkillsTool(TaskAssistantTool):
    """Tool for ranking employees against a set of skills."""

    name: str = "search_employees_by_skills"
    description: str = (
        "Rank employees by how many of the required skills they have, preferring lower "
        "workload and higher performance on ties. Always returns the best available people, "
        "even when nobody matches every skill."
    )
    args_schema: type[BaseModel] = SearchBySkillsInput

    # Explicit __init__ needed for mypy to recognize inherited constructor from BaseTool
    def __init__(self, **kwargs: Any) -> None:
        super().__init__(**kwargs)

    async def execute(
        self, context: IdentityContext, params: SearchBySkillsInput
    ) -> dict[str, Any]:
        ranked = await rank_available_employees(
            self, params.required_skills, params.available_only
        )
        return success(
            f"Ranked {len(ranked)} employee(s) for {', '.join(params.required_skills)}",
            required_skills=normalize_skills(params.required_skills),
            employees=[ranked_summary(candidate) for candidate in ranked[: params.limit]],
        )


class AnalyzeAndPlanTaskTool(TaskAssistantTool):
    """Tool for turning a task idea into requirements and suggested assignees."""

    name: str = "analyze_and_plan_task"
    description: str = (
        "Analyze a free-text task idea: suggests a title, infers required skills and "
        "ranks suitable employees. Use it before create_task and show the analysis to "
        "the user; it does not create anything."
    )
    args_schema: type[BaseModel] = AnalyzeTaskInput

    # Explicit __init__ needed for mypy to recognize inherited constructor from BaseTool
    def __init__(self, **kwargs: Any) -> None:
        super().__init__(**kwargs)

    async def execute(
        self, context: IdentityContext, params: AnalyzeTaskInput
    ) -> dict[str, Any]:
        analysis = analyze_task_requirements(params.task_description)
        ranked = await rank_available_employees(self, analysis.required_skills)
        return success(
            f'Analysis for "{analysis.title}"',
            analysis=analysis.model_dump(),
            suggested_employees=[ranked_summary(candidate) for candidate in ranked[:5]],
            next_step=(
                "Confirm title, deadline and priority with the user, then call create_task."
            ),
        )


class SuggestAssigneesTool(TaskAssistantTool):
    """Tool for ranking employees against an existing task."""

    name: str = "suggest_assignees"
    description: str = (
        "Suggest the best employees for an existing task based on its required skills "
        "(inferred from the description when none are set)."
    )
    args_schema: type[BaseModel] = SuggestAssigneesInput

    # Explicit __init__ needed for mypy to recognize inherited constructor from BaseTool
    def __init__(self, **kwargs: Any) -> None:
        super().__init__(**kwargs)

    async def execute(
        self, context: IdentityContext, params: SuggestAssigneesInput
    ) -> dict[str, Any]:
        task = await self.resolve_task(params.task)
        required = task.required_skills or infer_required_skills(
            f"{task.title}. {task.description}"
        )
        ranked = await rank_available_employees(self, required)
        return success(
            f'Suggested assignees for "{task.title}"',
            task={"id": task.id, "title": task.title},
            required_skills=normalize_skills(required),
            suggestions=[ranked_summary(candidate) for candidate in ranked[: params.limit]],
        )


async def rank_available_employees(
    tool: TaskAssistantTool, required_skills: list[str], available_only: bool = True
) -> list[RankedCandidate]:
    employees: list[EmployeeRecord] = await tool.datastore.list_employees(
        availability=True if available_only else None
    )
    employees = await with_employee_skills(tool.datastore, employees)
    return rank_candidates(required_skills, employees)


__all__ = [
    "AnalyzeAndPlanTaskTool",
    "GetEmployeeDetailsTool",
    "GetEmployeePerformanceTool",
    "GetMyProfileTool",
    "ListEmployeesTool",
    "SearchEmployeesBySkillsTool",
    "SuggestAssigneesTool",
    "UpdateEmployeeTool",
]
