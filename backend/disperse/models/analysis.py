"""Model-produced analyses of employees and departments."""

from __future__ import annotations

import logging
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

logger = logging.getLogger(__name__)


def clamp_fit_score(value: float) -> float:
    return max(0.0, min(1.0, value))


class EmployeeAnalysis(BaseModel):
    """Per-employee trait analysis with a fit score in [0, 1] per department."""

    model_config = ConfigDict(populate_by_name=True)

    employee_id: str
    personality_traits: list[str] = Field(default_factory=list, alias="personalityTraits")
    skill_categories: list[str] = Field(default_factory=list, alias="skillCategories")
    career_goals: list[str] = Field(default_factory=list, alias="careerGoals")
    strengths: list[str] = Field(default_factory=list)
    development_areas: list[str] = Field(default_factory=list, alias="developmentAreas")
    department_fit: dict[str, float] = Field(..., alias="departmentFit")

    @field_validator("department_fit", mode="before")
    @classmethod
    def _sanitize_fit(cls, value: Any) -> dict[str, float]:
        if not isinstance(value, dict):
            raise ValueError("departmentFit must be an object")

        cleaned: dict[str, float] = {}
        for name, raw in value.items():
            if isinstance(raw, bool):
                continue
            try:
                score = float(raw)
            except (TypeError, ValueError):
                logger.warning("Dropping non-numeric fit score for %s: %r", name, raw)
                continue
            if score != score:  # NaN
                continue
            if not 0.0 <= score <= 1.0:
                logger.warning("Clamping out-of-range fit score for %s: %s", name, score)
            cleaned[str(name)] = clamp_fit_score(score)
        return cleaned


class DepartmentRequirements(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    department_name: str
    required_skills: list[str] = Field(default_factory=list, alias="requiredSkills")
    preferred_personality: list[str] = Field(default_factory=list, alias="preferredPersonality")
    work_style: str = Field(default="", alias="workStyle")
    growth_opportunities: list[str] = Field(default_factory=list, alias="growthOpportunities")
    challenges: list[str] = Field(default_factory=list)
