"""In-memory store for the imported roster and generated results."""

from __future__ import annotations

import logging
import re

from disperse.models.employee import Department, Employee, EmployeeRecordInput
from disperse.models.metrics import PerformanceMetrics
from disperse.models.proposal import ProposalAnalysis, ProposalSummary, TransferProposal

logger = logging.getLogger(__name__)

_SKILL_SPLIT_RE = re.compile(r"[,;、\n]")


def parse_skills(text: str) -> list[str]:
    if not text:
        return []
    return [s.strip() for s in _SKILL_SPLIT_RE.split(text) if s.strip()]


def build_employee(record: EmployeeRecordInput) -> Employee:
    data = record.model_dump()
    skills = data.pop("skills")
    return Employee(
        **data,
        skills=skills if skills is not None else parse_skills(record.experience),
        raw_data=record.model_dump(exclude_none=True),
    )


def build_departments(employees: list[Employee]) -> list[Department]:
    """Derive departments in first-seen order, accumulating member skills."""
    departments: dict[str, Department] = {}
    for employee in employees:
        department = departments.get(employee.department)
        if department is None:
            department = Department(name=employee.department, description=f"{employee.department} department")
            departments[employee.department] = department

        department.current_members.append(employee.id)
        for skill in employee.skills:
            if skill not in department.required_skills:
                department.required_skills.append(skill)
    return list(departments.values())


class RecordStore:
    def __init__(self) -> None:
        self.employees: list[Employee] = []
        self.departments: list[Department] = []
        self.proposals: list[TransferProposal] = []
        self.metrics: list[PerformanceMetrics] = []

    def set_employees(self, employees: list[Employee]) -> None:
        self.employees = list(employees)
        self.departments = build_departments(self.employees)
        logger.info(
            "Roster loaded: %d employees, %d departments",
            len(self.employees),
            len(self.departments),
        )

    def get_employees(self) -> list[Employee]:
        return list(self.employees)

    def get_departments(self) -> list[Department]:
        return list(self.departments)

    def get_employee(self, employee_id: str) -> Employee | None:
        return next((e for e in self.employees if e.id == employee_id), None)

    def get_department(self, name: str) -> Department | None:
        return next((d for d in self.departments if d.name == name), None)

    def add_proposals(self, proposals: list[TransferProposal]) -> None:
        self.proposals.extend(proposals)

    def get_proposals(self) -> list[TransferProposal]:
        return list(self.proposals)

    def clear_proposals(self) -> None:
        self.proposals = []

    def add_metrics(self, metrics: PerformanceMetrics) -> None:
        self.metrics.append(metrics)

    def get_metrics(self) -> list[PerformanceMetrics]:
        return list(self.metrics)

    def get_proposal_analysis(self) -> ProposalAnalysis:
        total = len(self.proposals)
        average = sum(p.confidence_score for p in self.proposals) / total if total else 0.0

        changes: dict[str, int] = {}
        for p in self.proposals:
            key = f"{p.from_department} → {p.to_department}"
            changes[key] = changes.get(key, 0) + 1

        return ProposalAnalysis(
            proposals=self.get_proposals(),
            summary=ProposalSummary(
                total_proposals=total,
                average_confidence=round(average, 4),
                department_changes=changes,
            ),
        )

    def clear_data(self) -> None:
        self.employees = []
        self.departments = []
        self.proposals = []
        self.metrics = []


record_store = RecordStore()
