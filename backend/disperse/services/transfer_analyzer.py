"""Entry point for the transfer analysis pipeline.

Wires the chat model provider, the retrying caller and the analysis services
together and exposes the operations used by the request layer.
"""

from __future__ import annotations

import logging

from disperse.core.config import Settings, settings as default_settings
from disperse.models.analysis import DepartmentRequirements, EmployeeAnalysis
from disperse.models.conversation import CandidateSearchResult, RefinementResult
from disperse.models.employee import Department, Employee
from disperse.models.metrics import PerformanceMetrics, TokenUsage
from disperse.models.proposal import AnalysisRequest, BatchResult, TransferProposal
from disperse.services.candidate_search import CandidateSearch
from disperse.services.llm_client import ChatModelProvider, CompletionProvider, ModelCaller
from disperse.services.metrics import generate_metrics
from disperse.services.profile_analyzer import ProfileAnalyzer
from disperse.services.proposal_generator import ProposalGenerator

logger = logging.getLogger(__name__)


class TransferAnalyzer:
    def __init__(self, provider: CompletionProvider | None = None) -> None:
        self.provider: CompletionProvider = provider or ChatModelProvider()
        self.initialized = False
        self.configure(default_settings)

    def configure(self, settings: Settings) -> None:
        self.caller = ModelCaller(
            self.provider,
            max_attempts=settings.LLM_MAX_ATTEMPTS,
            retry_delay=settings.LLM_RETRY_DELAY_SECONDS,
        )
        self.profiler = ProfileAnalyzer(
            self.caller,
            employee_timeout=settings.EMPLOYEE_ANALYSIS_TIMEOUT_SECONDS,
            department_timeout=settings.DEPARTMENT_ANALYSIS_TIMEOUT_SECONDS,
        )
        self.search = CandidateSearch(self.caller, timeout=settings.CANDIDATE_SEARCH_TIMEOUT_SECONDS)
        self.generator = ProposalGenerator(
            self.caller,
            self.profiler,
            self.search,
            concurrency=settings.ANALYSIS_CONCURRENCY,
            reasoning_timeout=settings.REASONING_TIMEOUT_SECONDS,
        )

    async def initialize(self, settings: Settings) -> None:
        if self.initialized:
            return

        if isinstance(self.provider, ChatModelProvider):
            await self.provider.initialize(settings)
            if not self.provider.initialized:
                logger.warning("Chat model unavailable, TransferAnalyzer not initialized")
                return

        self.configure(settings)
        self.initialized = True
        logger.info("TransferAnalyzer initialized (model=%s)", self.caller.model)

    async def close(self) -> None:
        if isinstance(self.provider, ChatModelProvider):
            await self.provider.close()
        self.initialized = False

    async def analyze_employee(
        self,
        employee: Employee,
        department_names: list[str] | None = None,
    ) -> EmployeeAnalysis:
        return await self.profiler.analyze_employee(employee, department_names)

    async def analyze_department_requirements(
        self,
        department: Department,
        employees: list[Employee],
    ) -> DepartmentRequirements:
        return await self.profiler.analyze_department_requirements(department, employees)

    async def find_candidates_with_condition(
        self,
        employees: list[Employee],
        departments: list[Department],
        condition: str,
    ) -> CandidateSearchResult:
        return await self.search.find_candidates(employees, departments, condition)

    async def refine_candidate(
        self,
        candidates: list[Employee],
        original_condition: str,
        feedback: str,
        roster: list[Employee] | None = None,
    ) -> RefinementResult:
        return await self.search.refine_candidates(candidates, original_condition, feedback, roster)

    async def generate_transfer_proposals(
        self,
        employees: list[Employee],
        departments: list[Department],
        request: AnalysisRequest | None = None,
    ) -> BatchResult:
        return await self.generator.generate_transfer_proposals(employees, departments, request)

    async def generate_targeted_transfer_proposals(
        self,
        candidates: list[Employee],
        target_department: str,
        condition: str = "",
        departments: list[Department] | None = None,
    ) -> BatchResult:
        return await self.generator.generate_targeted_transfer_proposals(
            candidates, target_department, condition, departments
        )

    def generate_metrics(
        self,
        proposals: list[TransferProposal],
        elapsed_ms: float,
        token_usage: TokenUsage | None = None,
        error_count: int = 0,
    ) -> PerformanceMetrics:
        return generate_metrics(proposals, elapsed_ms, token_usage, error_count, ai_model=self.caller.model)


transfer_analyzer = TransferAnalyzer()
