"""Keyword analysis that infers required skills from a task description."""

import re

from pydantic import BaseModel

DEFAULT_SKILL = "General Skills"

# Keyword groups are checked in order; every group that matches adds its skills.
KEYWORD_SKILLS: list[tuple[tuple[str, ...], tuple[str, ...]]] = [
    (("web", "website", "frontend", "ui", "ux"), ("Web Development", "UI/UX Design")),
    (
        ("backend", "server", "api", "database"),
        ("Backend Development", "Database Management"),
    ),
    (("design", "graphic", "logo", "branding"), ("Graphic Design",)),
    (("marketing", "social media", "campaign"), ("Digital Marketing",)),
    (("data", "analytics", "report"), ("Data Analysis",)),
    (("mobile", "app", "ios", "android"), ("Mobile Development",)),
    (
        ("project management", "coordinate", "manage"),
        ("Project Management",),
    ),
    (("writing", "content", "copy"), ("Content Writing",)),
]

SKILL_DESCRIPTIONS: dict[str, str] = {
    "Web Development": "Building and maintaining websites and web applications",
    "UI/UX Design": "Designing user interfaces and user experiences",
    "Backend Development": "Server-side logic, APIs and integrations",
    "Database Management": "Designing, querying and maintaining databases",
    "Graphic Design": "Visual content such as logos, branding and layouts",
    "Digital Marketing": "Campaigns, social media and online promotion",
    "Data Analysis": "Analyzing data and producing reports and insights",
    "Mobile Development": "Building applications for iOS and Android",
    "Project Management": "Planning, coordinating and tracking delivery",
    "Content Writing": "Writing copy, articles and documentation",
    DEFAULT_SKILL: "General problem solving for tasks without a clear specialty",
}

MAX_TITLE_LENGTH = 50


class TaskAnalysis(BaseModel):
    """Suggested title, description and required skills for a task idea."""

    title: str
    description: str
    required_skills: list[str]
    skill_details: dict[str, str]


def _contains_keyword(text: str, keyword: str) -> bool:
    return re.search(rf"\b{re.escape(keyword)}", text) is not None


def infer_required_skills(description: str) -> list[str]:
    """Skills implied by keywords in ``description``; never empty."""
    text = description.lower()
    skills: list[str] = []
    for keywords, group_skills in KEYWORD_SKILLS:
        if any(_contains_keyword(text, keyword) for keyword in keywords):
            skills.extend(skill for skill in group_skills if skill not in skills)
    return skills or [DEFAULT_SKILL]


def suggest_title(description: str) -> str:
    """First sentence of the description, shortened to fit a title."""
    first_sentence = re.split(r"[.!?\n]", description.strip(), maxsplit=1)[0].strip()
    if len(first_sentence) > MAX_TITLE_LENGTH:
        return first_sentence[: MAX_TITLE_LENGTH - 3] + "..."
    return first_sentence


def describe_skill(skill: str) -> str:
    return SKILL_DESCRIPTIONS.get(skill, f"Experience with {skill}")


def analyze_task_requirements(description: str) -> TaskAnalysis:
    """Turn a free-text task idea into a title and a required-skill list."""
    skills = infer_required_skills(description)
    return TaskAnalysis(
        title=suggest_title(description),
        description=description.strip(),
        required_skills=skills,
        skill_details={skill: describe_skill(skill) for skill in skills},
    )


__all__ = [
    "DEFAULT_SKILL",
    "TaskAnalysis",
    "analyze_task_requirements",
    "describe_skill",
    "infer_required_skills",
    "suggest_title",
]
