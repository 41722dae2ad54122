"""Employee and department records as imported from the HR roster."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class Employee(BaseModel):
    """One imported employee row. Records are never mutated after import."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    department: str = Field(..., min_length=1)
    position: str = ""
    personality: str = ""
    experience: str = ""
    aspirations: str = ""
    relationships: str = ""
    skills: list[str] = []
    raw_data: dict[str, Any] = {}


class Department(BaseModel):
    """Department derived from the members found in the roster."""

    name: str
    description: str = ""
    required_skills: list[str] = []
    current_members: list[str] = []


class EmployeeRecordInput(BaseModel):
    """Request body row for loading a roster; skills are derived if omitted."""

    id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    department: str = Field(..., min_length=1)
    position: str = ""
    personality: str = ""
    experience: str = ""
    aspirations: str = ""
    relationships: str = ""
    skills: list[str] | None = None


class RosterLoadRequest(BaseModel):
    employees: list[EmployeeRecordInput] = Field(..., min_length=1)


class RosterResponse(BaseModel):
    employees: list[Employee]
    departments: list[Department]
