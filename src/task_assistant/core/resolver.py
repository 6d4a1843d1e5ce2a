"""Resolution of free-text or identifier references to employee and task records."""

import asyncio
import logging
import re
from enum import Enum
from typing import Any

from pydantic import BaseModel

from task_assistant.core.datastore import Datastore
from task_assistant.core.records import (
    DisambiguationCandidate,
    EmployeeRecord,
    TaskRecord,
    normalize_skills,
)

CANONICAL_ID_PATTERN = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$", re.IGNORECASE
)

MAX_CANDIDATES = 5


class EntityKind(str, Enum):
    EMPLOYEE = "employee"
    TASK = "task"


class Resolved(BaseModel):
    """Exactly one record matched; ``record`` carries its skills."""

    kind: EntityKind
    record: EmployeeRecord | TaskRecord


class Disambiguation(BaseModel):
    """Several records matched and the user has to pick one."""

    kind: EntityKind
    identifier: str
    candidates: list[DisambiguationCandidate]

    def render(self) -> str:
        """Numbered candidate list for the user."""
        lines = [f'Multiple {self.kind.value}s match "{self.identifier}":']
        for index, candidate in enumerate(self.candidates, 1):
            suffix = f" ({candidate.secondary})" if candidate.secondary else ""
            lines.append(f"{index}. {candidate.label}{suffix}")
        lines.append("Please specify which one you mean.")
        return "\n".join(lines)

    def to_payload(self) -> dict[str, Any]:
        return {
            "success": False,
            "error": "disambiguation",
            "message": self.render(),
            "candidates": [candidate.model_dump() for candidate in self.candidates],
        }


class NotFound(BaseModel):
    """No record matched the reference."""

    kind: EntityKind
    identifier: str

    def render(self) -> str:
        return (
            f'No {self.kind.value} found matching "{self.identifier}". '
            f"Please check the {self._hint()} and try again."
        )

    def to_payload(self) -> dict[str, Any]:
        return {"success": False, "error": "not_found", "message": self.render()}

    def _hint(self) -> str:
        return "name or ID" if self.kind == EntityKind.EMPLOYEE else "title or ID"


Resolution = Resolved | Disambiguation | NotFound


def is_canonical_id(identifier: str) -> bool:
    """Check whether ``identifier`` has the fixed-length hyphenated hex form."""
    return bool(CANONICAL_ID_PATTERN.match(identifier.strip()))


class EntityResolver:
    """Turns a reference into one record, a disambiguation, or not-found.

    Expected outcomes are returned, never raised. Storage failures from the
    datastore propagate unchanged so the calling tool can wrap them.
    """

    def __init__(self, datastore: Datastore) -> None:
        self.datastore = datastore
        self.logger = logging.getLogger(__name__)

    async def resolve(self, kind: EntityKind, identifier: str) -> Resolution:
        """Resolve ``identifier`` to a single record of ``kind``.

        Args:
            kind: Whether to look for an employee or a task.
            identifier: Canonical ID, full name/title, or a fragment of one.

        Returns:
            Resolved, Disambiguation or NotFound.
        """
        reference = identifier.strip()
        if not reference:
            return NotFound(kind=kind, identifier=identifier)

        if is_canonical_id(reference):
            return await self._resolve_exact(kind, reference)

        matches: list[Any]
        if kind == EntityKind.EMPLOYEE:
            matches = await self.datastore.search_employees(reference, MAX_CANDIDATES)
        else:
            matches = await self.datastore.search_tasks(reference, MAX_CANDIDATES)

        if not matches:
            return NotFound(kind=kind, identifier=reference)

        if len(matches) > 1:
            self.logger.debug(
                f"{len(matches)} {kind.value}s match '{reference}', asking to disambiguate"
            )
            return Disambiguation(
                kind=kind,
                identifier=reference,
                candidates=[self._candidate(match) for match in matches],
            )

        return await self._resolve_exact(kind, matches[0].id)

    async def resolve_employee(self, identifier: str) -> Resolution:
        return await self.resolve(EntityKind.EMPLOYEE, identifier)

    async def resolve_task(self, identifier: str) -> Resolution:
        return await self.resolve(EntityKind.TASK, identifier)

    async def _resolve_exact(self, kind: EntityKind, entity_id: str) -> Resolution:
        record: EmployeeRecord | TaskRecord | None
        if kind == EntityKind.EMPLOYEE:
            employee, skills = await asyncio.gather(
                self.datastore.get_employee(entity_id),
                self.datastore.get_employee_skills(entity_id),
            )
            record = (
                employee.model_copy(update={"skills": normalize_skills(skills)})
                if employee
                else None
            )
        else:
            task, skills = await asyncio.gather(
                self.datastore.get_task(entity_id),
                self.datastore.get_task_required_skills(entity_id),
            )
            record = (
                task.model_copy(update={"required_skills": normalize_skills(skills)})
                if task
                else None
            )

        if record is None:
            return NotFound(kind=kind, identifier=entity_id)
        return Resolved(kind=kind, record=record)

    @staticmethod
    def _candidate(record: EmployeeRecord | TaskRecord) -> DisambiguationCandidate:
        if isinstance(record, EmployeeRecord):
            secondary = ", ".join(
                part for part in (record.email, record.department) if part
            )
            return DisambiguationCandidate(
                id=record.id, label=record.full_name, secondary=secondary
            )
        return DisambiguationCandidate(
            id=record.id,
            label=record.title,
            secondary=f"{record.status.value}, {record.priority.value} priority",
        )


__all__ = [
    "CANONICAL_ID_PATTERN",
    "Disambiguation",
    "EntityKind",
    "EntityResolver",
    "NotFound",
    "Resolution",
    "Resolved",
    "is_canonical_id",
]
