from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable, Sequence
from typing import TypeVar

from disperse.models.analysis import EmployeeAnalysis
from disperse.models.employee import Department, Employee
from disperse.models.proposal import AnalysisRequest, BatchResult, TransferProposal
from disperse.services.candidate_search import CandidateSearch
from disperse.services.llm_client import DEFAULT_TIMEOUT, ModelCaller
from disperse.services.profile_analyzer import ProfileAnalyzer

logger = logging.getLogger(__name__)

TARGETED_CONFIDENCE_FLOOR = 0.6
MAX_CANDIDATE_DEPARTMENTS = 3

REASONING_TEMPERATURE = 0.4
REASONING_MAX_TOKENS = 300

REASONING_SYSTEM_PROMPT = "You are an HR consultant. Explain the reasons for an employee transfer clearly."
TARGETED_REASONING_SYSTEM_PROMPT = (
    "You are an HR consultant. Explain clearly why a transfer satisfies the given condition."
)

T = TypeVar("T")
R = TypeVar("R")


class EmptyRosterError(Exception):
    pass


class UnknownDepartmentError(Exception):
    pass


def default_reasoning(employee: Employee, to_department: str) -> str:
    return (
        f"Considering {employee.name}'s skills and aptitude, "
        f"a transfer to {to_department} is recommended."
    )


def default_targeted_reasoning(employee: Employee, to_department: str) -> str:
    return f"{employee.name} matches the specified condition and is expected to perform well in {to_department}."


def rank_target_departments(
    analysis: EmployeeAnalysis,
    current_department: str,
    threshold: float,
    allowed: set[str] | None = None,
) -> list[tuple[str, float]]:
    """Top departments other than the current one scoring above ``threshold``."""
    ranked = [
        (name, score)
        for name, score in analysis.department_fit.items()
        if name != current_department and score > threshold and (allowed is None or name in allowed)
    ]
    ranked.sort(key=lambda item: item[1], reverse=True)
    return ranked[:MAX_CANDIDATE_DEPARTMENTS]


def targeted_confidence(fit_score: float) -> float:
    return round(min(1.0, max(fit_score, TARGETED_CONFIDENCE_FLOOR)), 2)


def extract_target_department(condition: str, departments: list[Department]) -> str | None:
    """First roster department whose name appears in the condition."""
    for department in departments:
        if department.name and department.name in condition:
            return department.name
    return None


def _elapsed_ms(started: float) -> float:
    return round((time.perf_counter() - started) * 1000, 1)


class ProposalGenerator:
    def __init__(
        self,
        caller: ModelCaller,
        profiler: ProfileAnalyzer,
        search: CandidateSearch,
        concurrency: int = 1,
        reasoning_timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        self.caller = caller
        self.profiler = profiler
        self.search = search
        self.concurrency = max(1, concurrency)
        self.reasoning_timeout = reasoning_timeout

    async def _fan_out(
        self,
        items: Sequence[T],
        worker: Callable[[T], Awaitable[R]],
    ) -> list[tuple[T, R | None, Exception | None]]:
        """Run ``worker`` over ``items`` with bounded concurrency, in input order."""
        semaphore = asyncio.Semaphore(self.concurrency)

        async def run(index: int, item: T) -> tuple[int, R | None, Exception | None]:
            async with semaphore:
                try:
                    return index, await worker(item), None
                except Exception as e:
                    return index, None, e

        outcomes = await asyncio.gather(*(run(i, item) for i, item in enumerate(items)))
        return [(items[index], result, error) for index, result, error in sorted(outcomes, key=lambda o: o[0])]

    async def _filter_by_condition(self, employees: list[Employee], condition: str) -> list[Employee]:
        try:
            result = await self.search.find_candidates(employees, [], condition)
        except Exception:
            logger.exception("Condition filter failed, analyzing all %d employees", len(employees))
            return employees
        return result.candidates

    async def _reasoning(
        self,
        system_prompt: str,
        user_prompt: str,
        fallback: str,
    ) -> str:
        try:
            content = await self.caller.call(
                system_prompt,
                user_prompt,
                max_tokens=REASONING_MAX_TOKENS,
                temperature=REASONING_TEMPERATURE,
                timeout=self.reasoning_timeout,
            )
        except Exception:
            logger.exception("Reasoning generation failed, using template")
            return fallback
        return content.strip() or fallback

    async def generate_transfer_reasoning(
        self,
        employee: Employee,
        analysis: EmployeeAnalysis,
        to_department: str,
        include_reasons: bool,
    ) -> str:
        fallback = default_reasoning(employee, to_department)
        if not include_reasons:
            return fallback

        prompt = (
            "Employee:\n"
            f"- Name: {employee.name}\n"
            f"- Current department: {employee.department}\n"
            f"- Position: {employee.position}\n"
            f"- Personality: {employee.personality}\n"
            f"- Experience: {employee.experience}\n"
            f"- Aspirations: {employee.aspirations}\n\n"
            "Analysis:\n"
            f"- Strengths: {', '.join(analysis.strengths)}\n"
            f"- Development areas: {', '.join(analysis.development_areas)}\n"
            f"- Career goals: {', '.join(analysis.career_goals)}\n\n"
            f"Proposal: transfer from {employee.department} to {to_department}\n\n"
            "Explain this proposal in about 200 characters in terms of the employee's growth, "
            "career goals and contribution to the organization."
        )
        return await self._reasoning(REASONING_SYSTEM_PROMPT, prompt, fallback)

    async def generate_targeted_reasoning(
        self,
        employee: Employee,
        analysis: EmployeeAnalysis,
        to_department: str,
        condition: str,
    ) -> str:
        prompt = (
            "Employee:\n"
            f"- Name: {employee.name}\n"
            f"- Current department: {employee.department}\n"
            f"- Position: {employee.position}\n"
            f"- Personality: {employee.personality}\n"
            f"- Experience: {employee.experience}\n"
            f"- Aspirations: {employee.aspirations}\n"
            f"- Skills: {', '.join(employee.skills)}\n\n"
            "Analysis:\n"
            f"- Strengths: {', '.join(analysis.strengths)}\n"
            f"- Development areas: {', '.join(analysis.development_areas)}\n"
            f"- Career goals: {', '.join(analysis.career_goals)}\n\n"
            f"Transfer condition: {condition}\n"
            f"Proposal: transfer from {employee.department} to {to_department}\n\n"
            "Explain in about 200 characters why this employee satisfies the condition "
            f"and how they can succeed in {to_department}."
        )
        return await self._reasoning(
            TARGETED_REASONING_SYSTEM_PROMPT,
            prompt,
            default_targeted_reasoning(employee, to_department),
        )

    async def generate_transfer_proposals(
        self,
        employees: list[Employee],
        departments: list[Department],
        request: AnalysisRequest | None = None,
    ) -> BatchResult:
        request = request or AnalysisRequest()
        options = request.options

        if not employees:
            raise EmptyRosterError("No employees loaded")

        targets = list(employees)
        if options.max_employees:
            targets = targets[: options.max_employees]
        if request.employee_ids is not None:
            wanted = set(request.employee_ids)
            targets = [e for e in targets if e.id in wanted]

        condition = (request.natural_language_condition or "").strip()
        if condition:
            logger.info("Filtering %d employees by condition %r", len(targets), condition[:50])
            targets = await self._filter_by_condition(targets, condition)

        department_names = [d.name for d in departments] or None
        allowed = set(department_names) if department_names else None
        analyses: dict[str, EmployeeAnalysis] = {}
        total = len(targets)
        logger.info("Generating transfer proposals for %d employees", total)

        async def propose(employee: Employee) -> TransferProposal | None:
            started = time.perf_counter()
            analysis = analyses.get(employee.id)
            if analysis is None:
                analysis = await self.profiler.analyze_employee(employee, department_names)
                analyses[employee.id] = analysis

            ranked = rank_target_departments(analysis, employee.department, options.confidence_threshold, allowed)
            if not ranked:
                return None

            to_department, fit_score = ranked[0]
            reasoning = await self.generate_transfer_reasoning(
                employee, analysis, to_department, options.include_reasons
            )
            return TransferProposal(
                employee_id=employee.id,
                employee_name=employee.name,
                from_department=employee.department,
                to_department=to_department,
                confidence_score=round(fit_score, 2),
                reasoning=reasoning,
                ai_model=self.caller.model,
                processing_time=_elapsed_ms(started),
            )

        result = BatchResult(processed_count=total)
        for position, (employee, proposal, error) in enumerate(await self._fan_out(targets, propose), start=1):
            if error is not None:
                result.error_count += 1
                logger.error(
                    "[%d/%d] Proposal failed for %s (%s): %s", position, total, employee.name, employee.id, error
                )
            elif proposal is None:
                result.skipped_count += 1
                logger.info("[%d/%d] No suitable department for %s", position, total, employee.name)
            else:
                result.success_count += 1
                result.proposals.append(proposal)
                logger.info(
                    "[%d/%d] Proposed %s: %s -> %s (%.2f)",
                    position,
                    total,
                    employee.name,
                    proposal.from_department,
                    proposal.to_department,
                    proposal.confidence_score,
                )

        if options.max_proposals:
            result.proposals = result.proposals[: options.max_proposals]

        logger.info(
            "Transfer proposals complete: employees=%d proposals=%d skipped=%d errors=%d",
            total,
            len(result.proposals),
            result.skipped_count,
            result.error_count,
        )
        return result

    async def generate_targeted_transfer_proposals(
        self,
        candidates: list[Employee],
        target_department: str,
        condition: str = "",
        departments: list[Department] | None = None,
    ) -> BatchResult:
        if departments is not None and target_department not in {d.name for d in departments}:
            raise UnknownDepartmentError(f"Unknown department: {target_department}")

        department_names = [d.name for d in departments] if departments else None
        eligible: list[Employee] = []
        result = BatchResult(processed_count=len(candidates))
        for employee in candidates:
            if employee.department == target_department:
                logger.info("%s already belongs to %s, skipped", employee.name, target_department)
                result.skipped_count += 1
            else:
                eligible.append(employee)

        async def propose(employee: Employee) -> TransferProposal:
            started = time.perf_counter()
            names = department_names or [target_department]
            analysis = await self.profiler.analyze_employee(employee, names)
            fit_score = analysis.department_fit.get(target_department, 0.0)
            reasoning = await self.generate_targeted_reasoning(employee, analysis, target_department, condition)
            return TransferProposal(
                employee_id=employee.id,
                employee_name=employee.name,
                from_department=employee.department,
                to_department=target_department,
                confidence_score=targeted_confidence(fit_score),
                reasoning=reasoning,
                ai_model=self.caller.model,
                processing_time=_elapsed_ms(started),
            )

        for employee, proposal, error in await self._fan_out(eligible, propose):
            if error is not None or proposal is None:
                result.error_count += 1
                logger.error("Targeted proposal failed for %s (%s): %s", employee.name, employee.id, error)
                continue
            result.success_count += 1
            result.proposals.append(proposal)
            logger.info("Proposed %s -> %s", employee.name, target_department)

        return result
