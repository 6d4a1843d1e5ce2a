"""Payment estimation and approval tools."""

from typing import Any

from pydantic import BaseModel

from task_assistant.core.errors import ConfirmationRequired, NotFoundError, ValidationFailure
from task_assistant.core.records import (
    IdentityContext,
    PaymentRecord,
    PaymentStatus,
    TaskRecord,
    TaskStatus,
    utc_now,
)
from task_assistant.interfaces.langchain.models import (
    ApprovePaymentInput,
    EstimatePaymentInput,
    ListPaymentsInput,
    MarkPaymentPaidInput,
)
from task_assistant.interfaces.langchain.tools.base import (
    PreparedCall,
    TaskAssistantTool,
    success,
)


def payment_summary(payment: PaymentRecord) -> dict[str, Any]:
    summary = payment.model_dump(mode="json")
    summary["amount"] = payment.amount
    return summary


class PaymentTool(TaskAssistantTool):
    """Base for tools acting on the payment of one task."""

    # Explicit __init__ needed for mypy to recognize inherited constructor from BaseTool
    def __init__(self, **kwargs: Any) -> None:
        super().__init__(**kwargs)

    async def payment_for(
        self, reference: str, expected: PaymentStatus
    ) -> tuple[TaskRecord, PaymentRecord]:
        """Resolve a task and its payment, which must be in ``expected`` status."""
        task = await self.resolve_task(reference)
        payment = await self.datastore.get_payment_for_task(task.id)
        if payment is None:
            raise NotFoundError(
                f'No payment exists for "{task.title}". Estimate one first.'
            )
        if payment.status != expected:
            raise ValidationFailure(
                f'Payment for "{task.title}" is {payment.status.value}, '
                f"expected {expected.value}",
                field="status",
            )
        return task, payment

    async def payee_name(self, payment: PaymentRecord) -> str:
        employee = await self.datastore.get_employee(payment.employee_id)
        return employee.full_name if employee else payment.employee_id


class EstimatePaymentTool(TaskAssistantTool):
    """Tool for estimating the payment of a completed task."""

    name: str = "estimate_payment"
    description: str = (
        "Estimate a fair payment for a completed task from the assignee's rate, "
        "performance, task complexity, priority and payment history. Saves the "
        "estimate as the suggested amount unless store is false."
    )
    args_schema: type[BaseModel] = EstimatePaymentInput

    # Explicit __init__ needed for mypy to recognize inherited constructor from BaseTool
    def __init__(self, **kwargs: Any) -> None:
        super().__init__(**kwargs)

    async def execute(
        self, context: IdentityContext, params: EstimatePaymentInput
    ) -> dict[str, Any]:
        task = await self.resolve_task(params.task)
        if task.status != TaskStatus.COMPLETED:
            raise ValidationFailure(
                f'Task "{task.title}" is {task.status.value}; only completed tasks '
                "can be estimated",
                field="task",
            )
        estimate, payment = await self.payments.suggest_for_task(task.id, store=params.store)
        return success(
            f'Estimated ${estimate.amount:.2f} for "{task.title}"',
            estimate=estimate.model_dump(mode="json"),
            payment=payment_summary(payment) if payment else None,
        )


class ListPaymentsTool(TaskAssistantTool):
    """Tool for listing payments, most recent first."""

    name: str = "list_payments"
    description: str = "List payments, optionally filtered by status or employee."
    args_schema: type[BaseModel] = ListPaymentsInput

    # Explicit __init__ needed for mypy to recognize inherited constructor from BaseTool
    def __init__(self, **kwargs: Any) -> None:
        super().__init__(**kwargs)

    async def execute(
        self, context: IdentityContext, params: ListPaymentsInput
    ) -> dict[str, Any]:
        employee_id = None
        if params.employee:
            employee_id = (await self.resolve_employee(params.employee)).id
        payments = await self.datastore.list_payments(
            employee_id=employee_id, status=params.status, limit=params.limit
        )
        total = sum(payment.amount or 0.0 for payment in payments)
        return success(
            f"Found {len(payments)} payment(s) totalling ${total:.2f}",
            payments=[payment_summary(payment) for payment in payments],
        )


class ApprovePaymentTool(PaymentTool):
    """Tool for approving a pending payment."""

    name: str = "approve_payment"
    description: str = (
        "Approve the pending payment of a completed task, optionally overriding the "
        "suggested amount. The user is asked to confirm before it is approved."
    )
    args_schema: type[BaseModel] = ApprovePaymentInput
    requires_confirmation: bool = True

    async def prepare(
        self, context: IdentityContext, params: ApprovePaymentInput
    ) -> PreparedCall:
        task, payment = await self.payment_for(params.task, PaymentStatus.PENDING)
        amount = params.amount if params.amount is not None else payment.amount
        payee = await self.payee_name(payment)
        description = f'You are about to approve ${amount or 0:.2f} to {payee} for "{task.title}".'
        if params.amount is not None and payment.amount_ai_suggested is not None:
            description += f" The suggested amount was ${payment.amount_ai_suggested:.2f}."
        return PreparedCall(
            params={"task": task.id, "amount": params.amount}, description=description
        )

    async def execute(
        self, context: IdentityContext, params: ApprovePaymentInput
    ) -> dict[str, Any]:
        if not params.confirmed:
            raise ConfirmationRequired(
                "Payment approval requires explicit confirmation. "
                "Please set confirmed=true to proceed."
            )
        task, payment = await self.payment_for(params.task, PaymentStatus.PENDING)
        if params.amount is None and payment.amount is None:
            raise ValidationFailure(
                f'Payment for "{task.title}" has no amount yet; provide one', field="amount"
            )
        changes: dict[str, Any] = {"status": PaymentStatus.APPROVED, "approved_at": utc_now()}
        if params.amount is not None:
            changes["amount_manual"] = params.amount
        approved = await self.datastore.update_payment(payment.id, changes)
        self.logger.info(f"Payment {payment.id} approved by {context.user_id}")
        return success(
            f'Approved ${approved.amount or 0:.2f} for "{task.title}"',
            payment=payment_summary(approved),
        )


class MarkPaymentPaidTool(PaymentTool):
    """Tool for recording that an approved payment went out."""

    name: str = "mark_payment_paid"
    description: str = (
        "Mark the approved payment of a task as paid. The user is asked to confirm "
        "before it is recorded."
    )
    args_schema: type[BaseModel] = MarkPaymentPaidInput
    requires_confirmation: bool = True

    async def prepare(
        self, context: IdentityContext, params: MarkPaymentPaidInput
    ) -> PreparedCall:
        task, payment = await self.payment_for(params.task, PaymentStatus.APPROVED)
        payee = await self.payee_name(payment)
        return PreparedCall(
            params={"task": task.id},
            description=(
                f'You are about to mark ${payment.amount or 0:.2f} to {payee} for '
                f'"{task.title}" as paid. Paid payments cannot be changed.'
            ),
        )

    async def execute(
        self, context: IdentityContext, params: MarkPaymentPaidInput
    ) -> dict[str, Any]:
        if not params.confirmed:
            raise ConfirmationRequired(
                "Marking a payment as paid requires explicit confirmation. "
                "Please set confirmed=true to proceed."
            )
        task, payment = await self.payment_for(params.task, PaymentStatus.APPROVED)
        paid = await self.datastore.update_payment(
            payment.id, {"status": PaymentStatus.PAID, "paid_at": utc_now()}
        )
        self.logger.info(f"Payment {payment.id} marked paid by {context.user_id}")
        return success(
            f'Marked ${paid.amount or 0:.2f} for "{task.title}" as paid',
            payment=payment_summary(paid),
        )


__all__ = [
    "ApprovePaymentTool",
    "EstimatePaymentTool",
    "ListPaymentsTool",
    "MarkPaymentPaidTool",
    "PaymentTool",
    "payment_summary",
]
