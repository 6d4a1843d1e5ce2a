"""Generative payment estimator backed by a LangChain chat model."""

from langchain_core.language_models import BaseChatModel
from langchain_core.prompts import ChatPromptTemplate

from task_assistant.core.payments import (
    MAX_RATE_FACTOR,
    MIN_RATE_FACTOR,
    EmployeePerformanceSnapshot,
    GeneratedEstimate,
    HistoricalPayment,
    TaskCompletionSnapshot,
)

ESTIMATOR_PROMPT = """You are a compensation analyst estimating a fair payment for completed work.

Consider:
- The employee's hourly rate and the hours the work took
- Performance: overall score, on-time delivery rate and quality score (each 0-1)
- Task complexity (1.0 simple to 3.0 very complex) and priority
- The employee's recent paid amounts, for consistency

The amount must lie between {min_factor}x and {max_factor}x of hours multiplied by the hourly rate.
Explain the calculation briefly and give a confidence score between 0 and 1."""

ESTIMATION_REQUEST = """Employee: {employee_name}
- Hourly rate: ${hourly_rate}
- Performance score: {performance_score}
- On-time rate: {on_time_rate}
- Quality score: {quality_score}
- Tasks completed: {tasks_completed}

Task: {title}
- Description: {description}
- Priority: {priority}
- Estimated hours: {estimated_hours}
- Actual hours: {actual_hours}
- Complexity: {complexity}
- Required skills: {skills}

Recent payments:
{history}"""


def format_history(history: list[HistoricalPayment]) -> str:
    if not history:
        return "- None"
    return "\n".join(
        f"- ${payment.amount:.2f} (complexity {payment.task_complexity}, "
        f"performance {payment.employee_performance:.2f})"
        for payment in history
    )


class LLMPaymentEstimator:
    """Asks a chat model for a structured :class:`GeneratedEstimate`."""

    def __init__(self, llm: BaseChatModel) -> None:
        prompt = ChatPromptTemplate.from_messages(
            [
                ("system", ESTIMATOR_PROMPT),
                ("user", ESTIMATION_REQUEST),
            ]
        )
        self.chain = prompt | llm.with_structured_output(GeneratedEstimate)

    async def generate(
        self,
        employee: EmployeePerformanceSnapshot,
        task: TaskCompletionSnapshot,
        history: list[HistoricalPayment],
    ) -> GeneratedEstimate:
        result = await self.chain.ainvoke(
            {
                "min_factor": MIN_RATE_FACTOR,
                "max_factor": MAX_RATE_FACTOR,
                "employee_name": employee.full_name,
                "hourly_rate": f"{employee.hourly_rate:.2f}",
                "performance_score": f"{employee.performance_score:.2f}",
                "on_time_rate": f"{employee.on_time_rate:.2f}",
                "quality_score": f"{employee.quality_score:.2f}",
                "tasks_completed": employee.tasks_completed,
                "title": task.title,
                "description": task.description or "(none)",
                "priority": task.priority.value,
                "estimated_hours": task.estimated_hours,
                "actual_hours": task.actual_hours if task.actual_hours else "not logged",
                "complexity": task.complexity_multiplier,
                "skills": ", ".join(task.required_skills) or "none listed",
                "history": format_history(history),
            }
        )

        if not isinstance(result, GeneratedEstimate):
            raise TypeError(f"Expected GeneratedEstimate, got {type(result)}")
        return result


__all__ = ["LLMPaymentEstimator", "format_history"]
