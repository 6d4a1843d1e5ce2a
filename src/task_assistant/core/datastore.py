"""Datastore protocol consumed by the assistant, plus an in-memory implementation.

The production datastore is an external relational service. The core only
depends on the :class:`Datastore` protocol below. :class:`InMemoryDatastore`
implements it for tests and for the interactive CLI.
"""

import asyncio
import logging
from collections.abc import Iterable
from typing import Any, Protocol
from uuid import uuid4

from pydantic import ValidationError

from task_assistant.core.errors import DatastoreError
from task_assistant.core.records import (
    EmployeeRecord,
    PaymentRecord,
    PaymentStatus,
    TaskPriority,
    TaskRecord,
    TaskStatus,
    TaskUpdateRecord,
    can_transition,
    normalize_skills,
    utc_now,
)


class Datastore(Protocol):
    """Structured query and mutation capability over the assistant's records.

    Employee and task rows are returned without their skill tags; skills live
    in their own record kinds and are fetched separately. Implementations
    raise :class:`DatastoreError` for storage failures and for updates that
    target missing rows or break a status transition.
    """

    async def get_employee(self, employee_id: str) -> EmployeeRecord | None: ...

    async def search_employees(
        self, name_fragment: str, limit: int = 5
    ) -> list[EmployeeRecord]: ...

    async def list_employees(
        self,
        department: str | None = None,
        designation: str | None = None,
        availability: bool | None = None,
        name_fragment: str | None = None,
    ) -> list[EmployeeRecord]: ...

    async def update_employee(
        self, employee_id: str, changes: dict[str, Any]
    ) -> EmployeeRecord: ...

    async def adjust_employee_counters(
        self, employee_id: str, workload_delta: int = 0, completed_delta: int = 0
    ) -> None: ...

    async def get_employee_skills(self, employee_id: str) -> list[str]: ...

    async def set_employee_skills(self, employee_id: str, skills: list[str]) -> None: ...

    async def delete_employee(self, employee_id: str) -> None: ...

    async def get_task(self, task_id: str) -> TaskRecord | None: ...

    async def search_tasks(
        self, title_fragment: str, limit: int = 5
    ) -> list[TaskRecord]: ...

    async def list_tasks(
        self,
        status: TaskStatus | None = None,
        priority: TaskPriority | None = None,
        assigned_to: str | None = None,
    ) -> list[TaskRecord]: ...

    async def create_task(self, fields: dict[str, Any]) -> TaskRecord: ...

    async def update_task(self, task_id: str, changes: dict[str, Any]) -> TaskRecord: ...

    async def delete_task(self, task_id: str) -> None: ...

    async def get_task_required_skills(self, task_id: str) -> list[str]: ...

    async def set_task_required_skills(self, task_id: str, skills: list[str]) -> None: ...

    async def add_task_update(
        self, task_id: str, user_id: str, message: str, hours_logged: float = 0.0
    ) -> TaskUpdateRecord: ...

    async def list_task_updates(
        self, task_id: str | None = None, user_id: str | None = None
    ) -> list[TaskUpdateRecord]: ...

    async def list_payments(
        self,
        employee_id: str | None = None,
        status: PaymentStatus | None = None,
        limit: int | None = None,
    ) -> list[PaymentRecord]: ...

    async def get_payment_for_task(self, task_id: str) -> PaymentRecord | None: ...

    async def create_payment(self, fields: dict[str, Any]) -> PaymentRecord: ...

    async def update_payment(
        self, payment_id: str, changes: dict[str, Any]
    ) -> PaymentRecord: ...


async def with_employee_skills(
    datastore: Datastore, employees: Iterable[EmployeeRecord]
) -> list[EmployeeRecord]:
    """Attach skill tags to employee rows, fetching them concurrently."""
    employees = list(employees)
    skill_sets = await asyncio.gather(
        *(datastore.get_employee_skills(employee.id) for employee in employees)
    )
    return [
        employee.model_copy(update={"skills": normalize_skills(skills)})
        for employee, skills in zip(employees, skill_sets, strict=True)
    ]


async def with_task_skills(
    datastore: Datastore, tasks: Iterable[TaskRecord]
) -> list[TaskRecord]:
    """Attach required skill tags to task rows, fetching them concurrently."""
    tasks = list(tasks)
    skill_sets = await asyncio.gather(
        *(datastore.get_task_required_skills(task.id) for task in tasks)
    )
    return [
        task.model_copy(update={"required_skills": normalize_skills(skills)})
        for task, skills in zip(tasks, skill_sets, strict=True)
    ]


def _matches(fragment: str, text: str) -> bool:
    return fragment.strip().lower() in text.lower()


class InMemoryDatastore:
    """Dictionary-backed :class:`Datastore` used by tests and the CLI.

    Rows are copied on the way in and out so callers never share state with
    the store.
    """

    def __init__(self) -> None:
        self.logger = logging.getLogger(__name__)
        self._employees: dict[str, EmployeeRecord] = {}
        self._employee_skills: dict[str, list[str]] = {}
        self._tasks: dict[str, TaskRecord] = {}
        self._task_skills: dict[str, list[str]] = {}
        self._updates: list[TaskUpdateRecord] = []
        self._payments: dict[str, PaymentRecord] = {}

    @classmethod
    def from_seed(cls, seed: dict[str, Any]) -> "InMemoryDatastore":
        """Build a store from a seed mapping with ``employees``, ``tasks``,
        ``task_updates`` and ``payments`` lists."""
        store = cls()
        for row in seed.get("employees", []):
            store.add_employee(EmployeeRecord.model_validate(row))
        for row in seed.get("tasks", []):
            store.add_task(TaskRecord.model_validate(row))
        for row in seed.get("task_updates", []):
            store._updates.append(TaskUpdateRecord.model_validate(row))
        for row in seed.get("payments", []):
            payment = PaymentRecord.model_validate(row)
            store._payments[payment.id] = payment
        return store

    def add_employee(self, employee: EmployeeRecord) -> EmployeeRecord:
        """Insert an employee row and its skills directly."""
        employee = employee.model_copy(update={"id": employee.id.lower()})
        self._employee_skills[employee.id] = list(employee.skills)
        self._employees[employee.id] = employee.model_copy(update={"skills": []})
        return employee

    def add_task(self, task: TaskRecord) -> TaskRecord:
        """Insert a task row and its required skills directly."""
        task = task.model_copy(update={"id": task.id.lower()})
        self._task_skills[task.id] = list(task.required_skills)
        self._tasks[task.id] = task.model_copy(update={"required_skills": []})
        return task

    # Employees

    async def get_employee(self, employee_id: str) -> EmployeeRecord | None:
        employee = self._employees.get(employee_id.lower())
        return employee.model_copy() if employee else None

    async def search_employees(
        self, name_fragment: str, limit: int = 5
    ) -> list[EmployeeRecord]:
        matches = [
            employee.model_copy()
            for employee in self._employees.values()
            if _matches(name_fragment, employee.full_name)
        ]
        return matches[:limit]

    async def list_employees(
        self,
        department: str | None = None,
        designation: str | None = None,
        availability: bool | None = None,
        name_fragment: str | None = None,
    ) -> list[EmployeeRecord]:
        employees = []
        for employee in self._employees.values():
            if department and not _matches(department, employee.department or ""):
                continue
            if designation and not _matches(designation, employee.designation or ""):
                continue
            if availability is not None and employee.availability != availability:
                continue
            if name_fragment and not _matches(name_fragment, employee.full_name):
                continue
            employees.append(employee.model_copy())
        return sorted(employees, key=lambda employee: employee.full_name)

    async def update_employee(
        self, employee_id: str, changes: dict[str, Any]
    ) -> EmployeeRecord:
        current = self._require_employee(employee_id)
        updated = self._revalidate(EmployeeRecord, current, changes)
        self._employees[current.id] = updated
        return updated.model_copy()

    async def adjust_employee_counters(
        self, employee_id: str, workload_delta: int = 0, completed_delta: int = 0
    ) -> None:
        current = self._require_employee(employee_id)
        self._employees[current.id] = current.model_copy(
            update={
                "current_workload": max(0, current.current_workload + workload_delta),
                "tasks_completed": max(0, current.tasks_completed + completed_delta),
            }
        )

    async def get_employee_skills(self, employee_id: str) -> list[str]:
        return list(self._employee_skills.get(employee_id.lower(), []))

    async def set_employee_skills(self, employee_id: str, skills: list[str]) -> None:
        current = self._require_employee(employee_id)
        self._employee_skills[current.id] = normalize_skills(skills)

    async def delete_employee(self, employee_id: str) -> None:
        current = self._require_employee(employee_id)
        del self._employees[current.id]
        self._employee_skills.pop(current.id, None)

    # Tasks

    async def get_task(self, task_id: str) -> TaskRecord | None:
        task = self._tasks.get(task_id.lower())
        return task.model_copy() if task else None

    async def search_tasks(self, title_fragment: str, limit: int = 5) -> list[TaskRecord]:
        matches = [
            task.model_copy()
            for task in self._tasks.values()
            if _matches(title_fragment, task.title)
        ]
        return matches[:limit]

    async def list_tasks(
        self,
        status: TaskStatus | None = None,
        priority: TaskPriority | None = None,
        assigned_to: str | None = None,
    ) -> list[TaskRecord]:
        return [
            task.model_copy()
            for task in self._tasks.values()
            if (status is None or task.status == status)
            and (priority is None or task.priority == priority)
            and (assigned_to is None or task.assigned_to == assigned_to)
        ]

    async def create_task(self, fields: dict[str, Any]) -> TaskRecord:
        fields = dict(fields)
        skills = fields.pop("required_skills", [])
        try:
            task = TaskRecord.model_validate(
                {"id": str(uuid4()), "created_at": utc_now(), **fields}
            )
        except ValidationError as e:
            raise DatastoreError(f"Invalid task row: {e}") from e
        self._tasks[task.id] = task
        self._task_skills[task.id] = normalize_skills(skills)
        return task.model_copy()

    async def update_task(self, task_id: str, changes: dict[str, Any]) -> TaskRecord:
        current = self._require_task(task_id)
        new_status = changes.get("status")
        if new_status is not None and not can_transition(
            current.status, TaskStatus(new_status)
        ):
            raise DatastoreError(
                f"Invalid status transition {current.status.value} -> {new_status}"
            )
        updated = self._revalidate(TaskRecord, current, changes)
        self._tasks[current.id] = updated
        return updated.model_copy()

    async def delete_task(self, task_id: str) -> None:
        current = self._require_task(task_id)
        del self._tasks[current.id]
        self._task_skills.pop(current.id, None)
        self._updates = [u for u in self._updates if u.task_id != current.id]

    async def get_task_required_skills(self, task_id: str) -> list[str]:
        return list(self._task_skills.get(task_id.lower(), []))

    async def set_task_required_skills(self, task_id: str, skills: list[str]) -> None:
        current = self._require_task(task_id)
        self._task_skills[current.id] = normalize_skills(skills)

    # Progress updates

    async def add_task_update(
        self, task_id: str, user_id: str, message: str, hours_logged: float = 0.0
    ) -> TaskUpdateRecord:
        current = self._require_task(task_id)
        update = TaskUpdateRecord(
            id=str(uuid4()),
            task_id=current.id,
            user_id=user_id,
            message=message,
            hours_logged=hours_logged,
            created_at=utc_now(),
        )
        self._updates.append(update)
        return update.model_copy()

    async def list_task_updates(
        self, task_id: str | None = None, user_id: str | None = None
    ) -> list[TaskUpdateRecord]:
        return [
            update.model_copy()
            for update in self._updates
            if (task_id is None or update.task_id == task_id)
            and (user_id is None or update.user_id == user_id)
        ]

    # Payments

    async def list_payments(
        self,
        employee_id: str | None = None,
        status: PaymentStatus | None = None,
        limit: int | None = None,
    ) -> list[PaymentRecord]:
        payments = sorted(
            (
                payment.model_copy()
                for payment in self._payments.values()
                if (employee_id is None or payment.employee_id == employee_id)
                and (status is None or payment.status == status)
            ),
            key=lambda payment: payment.created_at,
            reverse=True,
        )
        return payments[:limit] if limit is not None else payments

    async def get_payment_for_task(self, task_id: str) -> PaymentRecord | None:
        for payment in self._payments.values():
            if payment.task_id == task_id:
                return payment.model_copy()
        return None

    async def create_payment(self, fields: dict[str, Any]) -> PaymentRecord:
        try:
            payment = PaymentRecord.model_validate(
                {"id": str(uuid4()), "created_at": utc_now(), **fields}
            )
        except ValidationError as e:
            raise DatastoreError(f"Invalid payment row: {e}") from e
        self._payments[payment.id] = payment
        return payment.model_copy()

    async def update_payment(
        self, payment_id: str, changes: dict[str, Any]
    ) -> PaymentRecord:
        current = self._payments.get(payment_id)
        if current is None:
            raise DatastoreError(f"Payment {payment_id} does not exist")
        updated = self._revalidate(PaymentRecord, current, changes)
        self._payments[current.id] = updated
        return updated.model_copy()

    # Helpers

    def _require_employee(self, employee_id: str) -> EmployeeRecord:
        employee = self._employees.get(employee_id.lower())
        if employee is None:
            raise DatastoreError(f"Employee {employee_id} does not exist")
        return employee

    def _require_task(self, task_id: str) -> TaskRecord:
        task = self._tasks.get(task_id.lower())
        if task is None:
            raise DatastoreError(f"Task {task_id} does not exist")
        return task

    def _revalidate(self, model: Any, current: Any, changes: dict[str, Any]) -> Any:
        try:
            return model.model_validate({**current.model_dump(), **changes})
        except ValidationError as e:
            self.logger.debug(f"Rejected update for {current.id}: {e}")
            raise DatastoreError(f"Invalid update for {current.id}: {e}") from e


__all__ = [
    "Datastore",
    "InMemoryDatastore",
    "with_employee_skills",
    "with_task_skills",
]
