"""Skill-based ranking of candidate employees."""

from collections.abc import Iterable, Sequence

from pydantic import BaseModel

from task_assistant.core.records import EmployeeRecord, normalize_skills


class RankedCandidate(BaseModel):
    """An employee with the required skills they cover and their match score."""

    employee: EmployeeRecord
    matched_skills: list[str]
    score: float


def skill_matches(candidate_skill: str, required_skill: str) -> bool:
    """Case-insensitive substring containment in either direction.

    ``"react native"`` covers ``"react"`` and ``"sql"`` covers
    ``"sql server"``, so phrasing differences between profiles and task
    requirements still match.
    """
    candidate = candidate_skill.strip().lower()
    required = required_skill.strip().lower()
    if not candidate or not required:
        return False
    return required in candidate or candidate in required


def matched_skills(
    required_skills: Sequence[str], employee_skills: Iterable[str]
) -> list[str]:
    """Required skills (normalized) that at least one employee skill covers."""
    employee_skills = list(employee_skills)
    return [
        required
        for required in required_skills
        if any(skill_matches(skill, required) for skill in employee_skills)
    ]


def rank_candidates(
    required_skills: Iterable[str], candidates: Sequence[EmployeeRecord]
) -> list[RankedCandidate]:
    """Rank every candidate against the required skills.

    Candidates with no overlap are kept with a score of zero. Ordering is by
    score descending, then current workload ascending, then performance score
    descending. The sort is stable, so equal candidates keep their input order.
    With no required skills every score is zero and only the tie-breaks apply.
    """
    required = normalize_skills(list(required_skills))

    ranked = []
    for employee in candidates:
        matched = matched_skills(required, employee.skills) if required else []
        score = len(matched) / len(required) if required else 0.0
        ranked.append(
            RankedCandidate(employee=employee, matched_skills=matched, score=score)
        )

    ranked.sort(
        key=lambda candidate: (
            -candidate.score,
            candidate.employee.current_workload,
            -candidate.employee.performance_score,
        )
    )
    return ranked


def recommendation_label(score: float) -> str:
    """Short human label for a match score."""
    if score >= 0.8:
        return "Excellent match"
    if score >= 0.5:
        return "Good match"
    if score > 0:
        return "Partial match"
    return "Available employee"


__all__ = [
    "RankedCandidate",
    "matched_skills",
    "rank_candidates",
    "recommendation_label",
    "skill_matches",
]
