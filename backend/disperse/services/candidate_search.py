from __future__ import annotations

import logging
from typing import Any

from disperse.models.conversation import CandidateSearchResult, RefinementResult
from disperse.models.employee import Department, Employee
from disperse.services.json_extractor import extract_json
from disperse.services.llm_client import ModelCaller

logger = logging.getLogger(__name__)

SEARCH_TEMPERATURE = 0.2
SEARCH_MAX_TOKENS = 1500
REFINE_TEMPERATURE = 0.2
REFINE_MAX_TOKENS = 1000
DEFAULT_SEARCH_TIMEOUT = 60.0

DEFAULT_SEARCH_REASONING = "Selected candidates matching the condition."
DEFAULT_REFINE_REASONING = "Narrowed down the candidates."
REFINE_ERROR_REASONING = "An error occurred while processing the feedback. The candidate list is unchanged."

SEARCH_SYSTEM_PROMPT = (
    "You are an HR analytics expert. Select suitable candidates based on the given "
    "condition and explain your selection."
)

REFINE_SYSTEM_PROMPT = (
    "You are an HR analytics expert. Narrow down the candidate list based on the "
    "user's feedback."
)


class CandidateSearchFailed(Exception):
    pass


def format_employee(employee: Employee) -> str:
    return (
        f"ID: {employee.id}\n"
        f"Name: {employee.name}\n"
        f"Department: {employee.department}\n"
        f"Position: {employee.position}\n"
        f"Personality: {employee.personality}\n"
        f"Experience: {employee.experience}\n"
        f"Aspirations: {employee.aspirations}\n"
        f"Skills: {', '.join(employee.skills)}\n"
        "---"
    )


def format_department(department: Department) -> str:
    return (
        f"Name: {department.name}\n"
        f"Description: {department.description}\n"
        f"Required skills: {', '.join(department.required_skills)}\n"
        f"Current members: {len(department.current_members)}\n"
        "---"
    )


def build_search_prompt(employees: list[Employee], departments: list[Department], condition: str) -> str:
    roster = "\n".join(format_employee(e) for e in employees)
    units = "\n".join(format_department(d) for d in departments)
    return (
        f"Condition:\n{condition}\n\n"
        f"Employees:\n{roster}\n\n"
        f"Departments:\n{units or '(not provided)'}\n\n"
        "Reply with a single JSON object in this shape:\n"
        "{\n"
        '  "selectedEmployeeIds": ["id"],\n'
        '  "reasoning": "why these candidates were selected (about 200 characters)",\n'
        '  "suggestions": ["additional suggestion"],\n'
        '  "clarificationQuestions": ["question to clarify the condition"]\n'
        "}\n\n"
        "Interpret the condition precisely. Return an empty list when nobody matches. "
        "Ask clarification questions when the condition is ambiguous."
    )


def build_refine_prompt(candidates: list[Employee], original_condition: str, feedback: str) -> str:
    current = "\n".join(format_employee(e) for e in candidates)
    return (
        f"Original condition:\n{original_condition}\n\n"
        f"Current candidates:\n{current or '(none)'}\n\n"
        f"User feedback:\n{feedback}\n\n"
        "Apply the feedback and reply with a single JSON object in this shape:\n"
        "{\n"
        '  "refinedEmployeeIds": ["id"],\n'
        '  "reasoning": "why the list changed (about 150 characters)",\n'
        '  "nextQuestions": ["follow-up question"]\n'
        "}"
    )


def _string_list(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    return [str(v) for v in value if v is not None]


def select_by_ids(pool: list[Employee], ids: Any) -> list[Employee]:
    """Keep pool members whose id was returned, in pool order."""
    wanted = set(_string_list(ids))
    return [e for e in pool if e.id in wanted]


class CandidateSearch:
    def __init__(self, caller: ModelCaller, timeout: float = DEFAULT_SEARCH_TIMEOUT) -> None:
        self.caller = caller
        self.timeout = timeout

    async def find_candidates(
        self,
        employees: list[Employee],
        departments: list[Department],
        condition: str,
    ) -> CandidateSearchResult:
        try:
            data = await self.caller.call(
                SEARCH_SYSTEM_PROMPT,
                build_search_prompt(employees, departments, condition),
                max_tokens=SEARCH_MAX_TOKENS,
                temperature=SEARCH_TEMPERATURE,
                timeout=self.timeout,
                parser=extract_json,
            )
        except Exception as e:
            logger.error("Candidate search failed for condition %r: %s", condition[:50], e)
            raise CandidateSearchFailed(f"Candidate search failed: {e}") from e

        candidates = select_by_ids(employees, data.get("selectedEmployeeIds"))
        logger.info("Condition %r selected %d candidates", condition[:50], len(candidates))

        questions = data.get("clarificationQuestions")
        return CandidateSearchResult(
            candidates=candidates,
            reasoning=str(data.get("reasoning") or DEFAULT_SEARCH_REASONING),
            suggestions=_string_list(data.get("suggestions")),
            clarification_questions=_string_list(questions) if questions is not None else None,
        )

    async def refine_candidates(
        self,
        candidates: list[Employee],
        original_condition: str,
        feedback: str,
        roster: list[Employee] | None = None,
    ) -> RefinementResult:
        """Apply feedback to the current candidates.

        Returned ids are resolved against ``roster`` so the model may also
        bring back employees that were dropped earlier; anyone outside the
        roster is ignored. Failures leave the candidate list unchanged.
        """
        pool = roster if roster is not None else candidates

        try:
            data = await self.caller.call(
                REFINE_SYSTEM_PROMPT,
                build_refine_prompt(candidates, original_condition, feedback),
                max_tokens=REFINE_MAX_TOKENS,
                temperature=REFINE_TEMPERATURE,
                timeout=self.timeout,
                parser=extract_json,
            )
        except Exception:
            logger.exception("Candidate refinement failed, keeping current candidates")
            return RefinementResult(refined_candidates=list(candidates), reasoning=REFINE_ERROR_REASONING)

        questions = data.get("nextQuestions")
        return RefinementResult(
            refined_candidates=select_by_ids(pool, data.get("refinedEmployeeIds")),
            reasoning=str(data.get("reasoning") or DEFAULT_REFINE_REASONING),
            next_questions=_string_list(questions) if questions is not None else None,
        )
