from __future__ import annotations

import logging
import time
from typing import Any

from pydantic import ValidationError

from disperse.models.analysis import DepartmentRequirements, EmployeeAnalysis
from disperse.models.employee import Department, Employee
from disperse.services.json_extractor import MalformedModelOutput, extract_json
from disperse.services.llm_client import DEFAULT_TIMEOUT, ModelCaller, ModelCallExhausted

logger = logging.getLogger(__name__)

DEFAULT_DEPARTMENT_NAMES = [
    "Sales",
    "Engineering",
    "Human Resources",
    "Marketing",
    "Accounting",
    "General Affairs",
    "Planning",
    "IT Systems",
    "Quality Assurance",
    "Legal",
]

EMPLOYEE_TEMPERATURE = 0.3
EMPLOYEE_MAX_TOKENS = 1000
DEPARTMENT_TEMPERATURE = 0.3
DEPARTMENT_MAX_TOKENS = 800

EMPLOYEE_SYSTEM_PROMPT = (
    "You are an HR analytics expert. Analyze the employee information and evaluate "
    "personality traits, skills, career goals, strengths, development areas and the "
    "fit for each department.\n\n"
    "Rules:\n"
    "1. Reply with a single valid JSON object only.\n"
    "2. Do not wrap the JSON in Markdown code fences.\n"
    "3. Do not add explanations or any text before or after the object.\n\n"
    "Use exactly this shape, with one departmentFit entry per department listed "
    "in the request and scores between 0 and 1:\n"
    "{\n"
    '  "personalityTraits": ["trait"],\n'
    '  "skillCategories": ["category"],\n'
    '  "careerGoals": ["goal"],\n'
    '  "strengths": ["strength"],\n'
    '  "developmentAreas": ["area"],\n'
    '  "departmentFit": {"<department name>": 0.7}\n'
    "}"
)

DEPARTMENT_SYSTEM_PROMPT = (
    "You are an organizational analysis expert. Analyze the department and its members "
    "and describe what the department requires.\n\n"
    "Reply with a single valid JSON object only, without Markdown code fences or "
    "explanations, in this shape:\n"
    "{\n"
    '  "requiredSkills": ["skill"],\n'
    '  "preferredPersonality": ["trait"],\n'
    '  "workStyle": "description",\n'
    '  "growthOpportunities": ["opportunity"],\n'
    '  "challenges": ["challenge"]\n'
    "}"
)


class EmployeeAnalysisFailed(Exception):
    pass


class DepartmentAnalysisFailed(Exception):
    pass


def build_employee_prompt(employee: Employee, department_names: list[str]) -> str:
    return (
        "Analyze the following employee.\n\n"
        f"Name: {employee.name}\n"
        f"Department: {employee.department}\n"
        f"Position: {employee.position}\n\n"
        f"Personality:\n{employee.personality}\n\n"
        f"Experience and skills:\n{employee.experience}\n\n"
        f"Aspirations and goals:\n{employee.aspirations}\n\n"
        f"Skills: {', '.join(employee.skills)}\n\n"
        "Rate the fit for each of these departments with a score from 0 to 1:\n"
        f"{', '.join(department_names)}"
    )


def build_department_prompt(department: Department, members: list[Employee]) -> str:
    profiles = "\n".join(f"- {m.name} ({m.position}): {', '.join(m.skills)}" for m in members)
    return (
        "Analyze the following department.\n\n"
        f"Name: {department.name}\n"
        f"Description: {department.description}\n"
        f"Current required skills: {', '.join(department.required_skills)}\n\n"
        f"Members:\n{profiles or '(none)'}"
    )


class ProfileAnalyzer:
    def __init__(
        self,
        caller: ModelCaller,
        employee_timeout: float = DEFAULT_TIMEOUT,
        department_timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        self.caller = caller
        self.employee_timeout = employee_timeout
        self.department_timeout = department_timeout

    async def analyze_employee(
        self,
        employee: Employee,
        department_names: list[str] | None = None,
    ) -> EmployeeAnalysis:
        names = department_names or DEFAULT_DEPARTMENT_NAMES
        started = time.perf_counter()

        def parse(content: str) -> EmployeeAnalysis:
            data: dict[str, Any] = extract_json(content)
            if not isinstance(data.get("departmentFit"), dict):
                raise MalformedModelOutput("Model output has no departmentFit mapping")
            data.pop("employee_id", None)
            return EmployeeAnalysis(employee_id=employee.id, **data)

        logger.info("Analyzing employee %s (%s)", employee.id, employee.name)
        try:
            analysis = await self.caller.call(
                EMPLOYEE_SYSTEM_PROMPT,
                build_employee_prompt(employee, names),
                max_tokens=EMPLOYEE_MAX_TOKENS,
                temperature=EMPLOYEE_TEMPERATURE,
                timeout=self.employee_timeout,
                parser=parse,
            )
        except ModelCallExhausted as e:
            raise EmployeeAnalysisFailed(
                f"Analysis of employee {employee.name} failed after {e.attempts} attempts: {e.last_error}"
            ) from e

        logger.info(
            "Analyzed employee %s in %.0fms",
            employee.id,
            (time.perf_counter() - started) * 1000,
        )
        return analysis

    async def analyze_department_requirements(
        self,
        department: Department,
        employees: list[Employee],
    ) -> DepartmentRequirements:
        members = [e for e in employees if e.department == department.name]

        try:
            content = await self.caller.call(
                DEPARTMENT_SYSTEM_PROMPT,
                build_department_prompt(department, members),
                max_tokens=DEPARTMENT_MAX_TOKENS,
                temperature=DEPARTMENT_TEMPERATURE,
                timeout=self.department_timeout,
            )
            data = extract_json(content)
            data.pop("department_name", None)
            return DepartmentRequirements(department_name=department.name, **data)
        except (ModelCallExhausted, MalformedModelOutput, ValidationError) as e:
            logger.error("Department analysis failed for %s: %s", department.name, e)
            raise DepartmentAnalysisFailed(f"Analysis of department {department.name} failed: {e}") from e
