"""Payment estimation for completed tasks.

The estimator asks a generative model for a suggested amount, retrying with
exponential backoff, and keeps the answer inside a sanity range derived from
the hours worked and the employee's hourly rate. When every attempt fails it
falls back to a closed-form rule, so callers always get an estimate.
"""

import asyncio
import logging
import math
from collections.abc import Awaitable, Callable
from decimal import ROUND_CEILING, ROUND_FLOOR, ROUND_HALF_UP, Decimal
from datetime import datetime
from typing import Any, Literal, Protocol

from pydantic import BaseModel, Field
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from task_assistant.core.datastore import Datastore
from task_assistant.core.errors import NotFoundError, ValidationFailure
from task_assistant.core.records import (
    EmployeeRecord,
    PaymentRecord,
    PaymentStatus,
    TaskPriority,
    TaskRecord,
    normalize_skills,
)

MIN_RATE_FACTOR = 0.5
MAX_RATE_FACTOR = 2.0
FALLBACK_CONFIDENCE = 0.6
HISTORY_LIMIT = 10

PRIORITY_BONUS: dict[TaskPriority, float] = {
    TaskPriority.HIGH: 1.10,
    TaskPriority.MEDIUM: 1.05,
    TaskPriority.LOW: 1.00,
}


class EmployeePerformanceSnapshot(BaseModel):
    """Employee metrics that feed a payment estimate."""

    employee_id: str
    full_name: str
    performance_score: float = Field(ge=0.0, le=1.0)
    on_time_rate: float = Field(ge=0.0, le=1.0)
    quality_score: float = Field(ge=0.0, le=1.0)
    hourly_rate: float = Field(ge=0.0)
    tasks_completed: int = 0

    @classmethod
    def from_employee(cls, employee: EmployeeRecord) -> "EmployeePerformanceSnapshot":
        return cls(
            employee_id=employee.id,
            full_name=employee.full_name,
            performance_score=employee.performance_score,
            on_time_rate=employee.on_time_rate,
            quality_score=employee.quality_score,
            hourly_rate=employee.hourly_rate,
            tasks_completed=employee.tasks_completed,
        )

    @property
    def performance_multiplier(self) -> float:
        return (
            0.4 * self.performance_score
            + 0.3 * self.on_time_rate
            + 0.3 * self.quality_score
        )


class TaskCompletionSnapshot(BaseModel):
    """Completed task details that feed a payment estimate."""

    task_id: str
    title: str
    description: str = ""
    priority: TaskPriority = TaskPriority.MEDIUM
    estimated_hours: float = Field(default=0.0, ge=0.0)
    actual_hours: float | None = Field(default=None, ge=0.0)
    complexity_multiplier: float = Field(default=1.0, ge=1.0)
    required_skills: list[str] = []
    started_at: datetime | None = None
    completed_at: datetime | None = None

    @property
    def base_hours(self) -> float:
        """Logged hours when there are any, otherwise the estimate."""
        if self.actual_hours:
            return self.actual_hours
        return self.estimated_hours


class HistoricalPayment(BaseModel):
    """A past paid amount for the same employee, used as context."""

    amount: float
    task_complexity: float = 1.0
    employee_performance: float
    created_at: datetime | None = None


class EstimateFactors(BaseModel):
    base_hours: float
    performance_multiplier: float
    complexity_multiplier: float
    effective_rate: float


class PaymentEstimate(BaseModel):
    """Suggested payment with its confidence and the factors behind it."""

    amount: float
    confidence: float = Field(ge=0.0, le=1.0)
    factors: EstimateFactors
    justification: str
    source: Literal["generative", "fallback"]
    attempts: int = 0


class CalculationFactors(BaseModel):
    """Factor breakdown the generative estimator must report."""

    base_hours: float = Field(description="Hours the amount is based on")
    performance_multiplier: float = Field(
        description="Multiplier derived from the employee's performance metrics"
    )
    complexity_multiplier: float = Field(description="Task complexity multiplier")
    final_rate: float = Field(description="Effective hourly rate after adjustments")


class GeneratedEstimate(BaseModel):
    """Structured result expected from the generative estimator."""

    estimated_amount: float = Field(description="Suggested payment in USD")
    reasoning: str = Field(description="Short explanation of the calculation")
    confidence_score: float = Field(description="Confidence between 0 and 1")
    calculation_factors: CalculationFactors


class GenerativeEstimator(Protocol):
    """Unreliable generative capability producing a structured estimate."""

    async def generate(
        self,
        employee: EmployeePerformanceSnapshot,
        task: TaskCompletionSnapshot,
        history: list[HistoricalPayment],
    ) -> GeneratedEstimate | dict[str, Any]: ...


def _quantize(value: float, rounding: str) -> float:
    return float(Decimal(str(value)).quantize(Decimal("0.01"), rounding=rounding))


def round_currency(value: float) -> float:
    """Round to cents, halves away from zero."""
    return _quantize(value, ROUND_HALF_UP)


def amount_bounds(base_hours: float, hourly_rate: float) -> tuple[float, float]:
    base = base_hours * hourly_rate
    return base * MIN_RATE_FACTOR, base * MAX_RATE_FACTOR


def bounded_amount(value: float, low: float, high: float) -> float:
    """Clamp ``value`` into ``[low, high]`` and round to cents inside the range."""
    amount = round_currency(min(max(value, low), high))
    if amount > high:
        amount = _quantize(high, ROUND_FLOOR)
    if amount < low:
        amount = _quantize(low, ROUND_CEILING)
    return amount


class PaymentEstimator:
    """Bounded payment estimates with retry and a deterministic fallback."""

    def __init__(
        self,
        generator: GenerativeEstimator | None = None,
        max_attempts: int = 3,
        attempt_timeout: float = 30.0,
        backoff_multiplier: float = 1.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        """Initialize the estimator.

        Args:
            generator: Generative estimator. Without one every estimate uses
                the fallback rule.
            max_attempts: Generative attempts before falling back.
            attempt_timeout: Seconds allowed for a single attempt.
            backoff_multiplier: Base of the exponential wait between attempts
                (1s, 2s, 4s, ... for the default of 1).
            sleep: Awaitable used for backoff waits.
        """
        self.generator = generator
        self.max_attempts = max_attempts
        self.attempt_timeout = attempt_timeout
        self.backoff_multiplier = backoff_multiplier
        self._sleep = sleep
        self.logger = logging.getLogger(__name__)

    async def estimate(
        self,
        employee: EmployeePerformanceSnapshot,
        task: TaskCompletionSnapshot,
        history: list[HistoricalPayment],
    ) -> PaymentEstimate:
        """Estimate the payment for ``task``. Never raises."""
        if self.generator is None:
            return self.fallback(employee, task)

        recent = sorted(
            history,
            key=lambda payment: (
                payment.created_at.timestamp() if payment.created_at else 0.0
            ),
            reverse=True,
        )[:HISTORY_LIMIT]

        attempts = 0
        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(self.max_attempts),
                wait=wait_exponential(multiplier=self.backoff_multiplier),
                retry=retry_if_exception_type(Exception),
                sleep=self._sleep,
                before_sleep=self._log_retry,
                reraise=True,
            ):
                with attempt:
                    attempts = attempt.retry_state.attempt_number
                    generated = await self._generate_once(employee, task, recent)
        except Exception as e:
            self.logger.warning(
                f"Generative estimate for task {task.task_id} failed after "
                f"{attempts} attempts ({e!r}), using fallback"
            )
            return self.fallback(employee, task, attempts=attempts)

        return self._accept(generated, employee, task, attempts)

    def fallback(
        self,
        employee: EmployeePerformanceSnapshot,
        task: TaskCompletionSnapshot,
        attempts: int = 0,
    ) -> PaymentEstimate:
        """Closed-form estimate used when the generative path is unavailable."""
        base_hours = task.base_hours
        rate = employee.hourly_rate
        performance = employee.performance_multiplier
        bonus = PRIORITY_BONUS[task.priority]
        low, high = amount_bounds(base_hours, rate)

        raw = base_hours * rate * performance * task.complexity_multiplier * bonus
        amount = bounded_amount(raw, low, high)

        return PaymentEstimate(
            amount=amount,
            confidence=FALLBACK_CONFIDENCE,
            factors=EstimateFactors(
                base_hours=base_hours,
                performance_multiplier=round(performance, 4),
                complexity_multiplier=task.complexity_multiplier,
                effective_rate=round(rate * bonus, 4),
            ),
            justification=(
                f"Fallback calculation: Base amount (${base_hours * rate:.2f}) x "
                f"Performance multiplier ({performance:.3f}) x "
                f"Complexity ({task.complexity_multiplier}) x "
                f"Priority bonus ({bonus:.2f})"
            ),
            source="fallback",
            attempts=attempts,
        )

    async def _generate_once(
        self,
        employee: EmployeePerformanceSnapshot,
        task: TaskCompletionSnapshot,
        history: list[HistoricalPayment],
    ) -> GeneratedEstimate:
        assert self.generator is not None
        raw = await asyncio.wait_for(
            self.generator.generate(employee, task, history),
            timeout=self.attempt_timeout,
        )
        generated = (
            raw
            if isinstance(raw, GeneratedEstimate)
            else GeneratedEstimate.model_validate(raw)
        )
        if not math.isfinite(generated.estimated_amount) or generated.estimated_amount < 0:
            raise ValueError(f"Unusable estimated amount {generated.estimated_amount}")
        if not math.isfinite(generated.confidence_score):
            raise ValueError("Confidence score is not a number")
        return generated

    def _accept(
        self,
        generated: GeneratedEstimate,
        employee: EmployeePerformanceSnapshot,
        task: TaskCompletionSnapshot,
        attempts: int,
    ) -> PaymentEstimate:
        base_hours = task.base_hours
        low, high = amount_bounds(base_hours, employee.hourly_rate)
        amount = bounded_amount(generated.estimated_amount, low, high)

        justification = generated.reasoning
        if amount != round_currency(generated.estimated_amount):
            self.logger.info(
                f"Clamped generated amount {generated.estimated_amount} for task "
                f"{task.task_id} into [{low:.2f}, {high:.2f}]"
            )
            justification += (
                f" (adjusted from ${generated.estimated_amount:.2f} into the allowed "
                f"range ${low:.2f}-${high:.2f})"
            )

        return PaymentEstimate(
            amount=amount,
            confidence=min(max(generated.confidence_score, 0.0), 1.0),
            factors=EstimateFactors(
                base_hours=base_hours,
                performance_multiplier=generated.calculation_factors.performance_multiplier,
                complexity_multiplier=task.complexity_multiplier,
                effective_rate=generated.calculation_factors.final_rate,
            ),
            justification=justification,
            source="generative",
            attempts=attempts,
        )

    def _log_retry(self, retry_state: RetryCallState) -> None:
        wait = retry_state.next_action.sleep if retry_state.next_action else 0
        error = retry_state.outcome.exception() if retry_state.outcome else None
        self.logger.warning(
            f"Estimate attempt {retry_state.attempt_number} failed ({error!r}), "
            f"retrying in {wait:.0f}s"
        )


async def collect_estimation_inputs(
    datastore: Datastore, task_id: str
) -> tuple[EmployeePerformanceSnapshot, TaskCompletionSnapshot, list[HistoricalPayment]]:
    """Gather the snapshots and payment history for a completed task.

    Raises:
        NotFoundError: The task or its assignee does not exist.
        ValidationFailure: The task has no assignee.
    """
    task = await datastore.get_task(task_id)
    if task is None:
        raise NotFoundError(f"Task {task_id} not found")
    if not task.assigned_to:
        raise ValidationFailure(
            f'Task "{task.title}" has no assignee, so there is nobody to pay'
        )

    employee, skills, updates, paid = await asyncio.gather(
        datastore.get_employee(task.assigned_to),
        datastore.get_task_required_skills(task.id),
        datastore.list_task_updates(task_id=task.id),
        datastore.list_payments(
            employee_id=task.assigned_to,
            status=PaymentStatus.PAID,
            limit=HISTORY_LIMIT,
        ),
    )
    if employee is None:
        raise NotFoundError(f"Assignee {task.assigned_to} of task {task.id} not found")

    paid = [payment for payment in paid if payment.amount is not None]
    past_tasks = await asyncio.gather(
        *(datastore.get_task(payment.task_id) for payment in paid)
    )
    history = [
        HistoricalPayment(
            amount=payment.amount or 0.0,
            task_complexity=past.complexity_multiplier if past else 1.0,
            employee_performance=employee.performance_score,
            created_at=payment.created_at,
        )
        for payment, past in zip(paid, past_tasks, strict=True)
    ]

    logged_hours = sum(update.hours_logged for update in updates)
    snapshot = _task_snapshot(task, normalize_skills(skills), logged_hours or None)
    return EmployeePerformanceSnapshot.from_employee(employee), snapshot, history


def _task_snapshot(
    task: TaskRecord, skills: list[str], actual_hours: float | None
) -> TaskCompletionSnapshot:
    return TaskCompletionSnapshot(
        task_id=task.id,
        title=task.title,
        description=task.description,
        priority=task.priority,
        estimated_hours=task.estimated_hours,
        actual_hours=actual_hours,
        complexity_multiplier=task.complexity_multiplier,
        required_skills=skills,
        started_at=task.started_at,
        completed_at=task.completed_at,
    )


class PaymentSuggestionService:
    """Estimates payments for completed tasks and stores them as suggestions."""

    def __init__(self, datastore: Datastore, estimator: PaymentEstimator) -> None:
        self.datastore = datastore
        self.estimator = estimator
        self.logger = logging.getLogger(__name__)
        self._background: set[asyncio.Task[Any]] = set()

    async def suggest_for_task(
        self, task_id: str, store: bool = True
    ) -> tuple[PaymentEstimate, PaymentRecord | None]:
        """Estimate the payment for a completed task and optionally persist it.

        A stored suggestion creates a pending payment or refreshes the
        suggested amount of an existing pending one. Approved and paid
        payments are left untouched.
        """
        employee, task, history = await collect_estimation_inputs(
            self.datastore, task_id
        )
        estimate = await self.estimator.estimate(employee, task, history)
        if not store:
            return estimate, None

        suggestion = {
            "amount_ai_suggested": estimate.amount,
            "reasoning": estimate.justification,
            "confidence": estimate.confidence,
        }
        existing = await self.datastore.get_payment_for_task(task.task_id)
        if existing is None:
            payment = await self.datastore.create_payment(
                {
                    "employee_id": employee.employee_id,
                    "task_id": task.task_id,
                    "status": PaymentStatus.PENDING,
                    **suggestion,
                }
            )
        elif existing.status == PaymentStatus.PENDING:
            payment = await self.datastore.update_payment(existing.id, suggestion)
        else:
            payment = existing

        self.logger.info(
            f"Suggested ${estimate.amount:.2f} ({estimate.source}) for task {task.task_id}"
        )
        return estimate, payment

    def schedule_for_task(self, task_id: str) -> asyncio.Task[Any]:
        """Run :meth:`suggest_for_task` in the background."""
        background = asyncio.create_task(self._suggest_in_background(task_id))
        self._background.add(background)
        background.add_done_callback(self._background.discard)
        return background

    async def drain(self) -> None:
        """Wait for scheduled suggestions to finish."""
        if self._background:
            await asyncio.gather(*self._background, return_exceptions=True)

    async def _suggest_in_background(self, task_id: str) -> None:
        try:
            await self.suggest_for_task(task_id)
        except Exception as e:
            self.logger.error(f"Payment suggestion for task {task_id} failed: {e}")


__all__ = [
    "CalculationFactors",
    "EmployeePerformanceSnapshot",
    "EstimateFactors",
    "GeneratedEstimate",
    "GenerativeEstimator",
    "HistoricalPayment",
    "PaymentEstimate",
    "PaymentEstimator",
    "PaymentSuggestionService",
    "TaskCompletionSnapshot",
    "amount_bounds",
    "bounded_amount",
    "collect_estimation_inputs",
    "round_currency",
]
