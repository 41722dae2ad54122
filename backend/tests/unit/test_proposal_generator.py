from __future__ import annotations

import asyncio
import json
from unittest.mock import AsyncMock, MagicMock

import pytest

from disperse.models.analysis import EmployeeAnalysis
from disperse.models.proposal import AnalysisOptions, AnalysisRequest
from disperse.services.candidate_search import SEARCH_SYSTEM_PROMPT, CandidateSearch
from disperse.services.llm_client import ModelCaller
from disperse.services.profile_analyzer import EMPLOYEE_SYSTEM_PROMPT, ProfileAnalyzer
from disperse.services.proposal_generator import (
    REASONING_SYSTEM_PROMPT,
    TARGETED_REASONING_SYSTEM_PROMPT,
    EmptyRosterError,
    ProposalGenerator,
    UnknownDepartmentError,
    default_reasoning,
    default_targeted_reasoning,
    extract_target_department,
    rank_target_departments,
    targeted_confidence,
)
from disperse.services.record_store import build_departments

MODEL_REASONING = "Model-written reasoning."


class FakeModel:
    """Routes prompts to canned replies the way the chat model would answer them."""

    def __init__(self, fits: dict[str, dict[str, float] | Exception], selected: list[str] | None = None):
        self.fits = fits
        self.selected = selected
        self.calls: list[tuple[str, str]] = []
        self.reasoning: str | Exception = MODEL_REASONING

    async def complete(self, system: str, user: str, max_tokens: int, temperature: float) -> str:
        self.calls.append((system, user))
        if system == EMPLOYEE_SYSTEM_PROMPT:
            for name, fit in self.fits.items():
                if f"Name: {name}\n" in user:
                    if isinstance(fit, Exception):
                        raise fit
                    return json.dumps({"strengths": ["focus"], "departmentFit": fit})
            raise AssertionError("unexpected employee prompt")
        if system == SEARCH_SYSTEM_PROMPT:
            if self.selected is None:
                raise RuntimeError("search unavailable")
            return json.dumps({"selectedEmployeeIds": self.selected, "reasoning": "filtered"})
        if system in (REASONING_SYSTEM_PROMPT, TARGETED_REASONING_SYSTEM_PROMPT):
            if isinstance(self.reasoning, Exception):
                raise self.reasoning
            return self.reasoning
        raise AssertionError(f"unexpected system prompt: {system[:40]}")

    def count(self, system: str) -> int:
        return sum(1 for s, _ in self.calls if s == system)


def _generator(model: FakeModel, concurrency: int = 1) -> ProposalGenerator:
    provider = MagicMock()
    provider.model = "gpt-4o-mini"
    provider.complete = AsyncMock(side_effect=model.complete)
    caller = ModelCaller(provider, retry_delay=0)
    return ProposalGenerator(caller, ProfileAnalyzer(caller), CandidateSearch(caller), concurrency=concurrency)


def _analysis(fit: dict[str, float]) -> EmployeeAnalysis:
    return EmployeeAnalysis(employee_id="E1", department_fit=fit)


class TestRankTargetDepartments:
    def test_excludes_current_and_scores_at_threshold(self):
        analysis = _analysis({"Sales": 0.95, "Engineering": 0.9, "Legal": 0.6, "HR": 0.7})
        assert rank_target_departments(analysis, "Sales", 0.6) == [("Engineering", 0.9), ("HR", 0.7)]

    def test_keeps_top_three(self):
        analysis = _analysis({"A": 0.7, "B": 0.8, "C": 0.9, "D": 0.95})
        assert [name for name, _ in rank_target_departments(analysis, "X", 0.5)] == ["D", "C", "B"]

    def test_respects_allowed_names(self):
        analysis = _analysis({"Engineering": 0.9, "Imaginary": 0.99})
        assert rank_target_departments(analysis, "Sales", 0.6, {"Engineering"}) == [("Engineering", 0.9)]


class TestHelpers:
    def test_targeted_confidence_floor_and_cap(self):
        assert targeted_confidence(0.3) == 0.6
        assert targeted_confidence(0.834) == 0.83
        assert targeted_confidence(1.0) == 1.0

    def test_extract_target_department(self, sample_employees):
        departments = build_departments(sample_employees)
        assert extract_target_department("Move data people into Engineering", departments) == "Engineering"
        assert extract_target_department("Anyone who enjoys travel", departments) is None

    def test_default_reasoning_templates(self, sample_employees):
        employee = sample_employees[0]
        assert default_reasoning(employee, "Engineering") == (
            "Considering Aiko Tanaka's skills and aptitude, a transfer to Engineering is recommended."
        )
        assert "Aiko Tanaka matches the specified condition" in default_targeted_reasoning(employee, "Engineering")


class TestGenerateTransferProposals:
    @pytest.mark.anyio
    async def test_single_proposal_end_to_end(self, sample_employees):
        aiko = sample_employees[0]
        model = FakeModel(
            {
                "Aiko Tanaka": {"Sales": 0.4, "Engineering": 0.9},
                "Ben Carter": {"Engineering": 0.95, "Sales": 0.3},
            }
        )
        generator = _generator(model)

        result = await generator.generate_transfer_proposals(
            sample_employees[:2], build_departments(sample_employees)
        )

        assert result.processed_count == 2
        assert result.success_count == 1
        assert result.skipped_count == 1
        assert result.error_count == 0
        assert len(result.proposals) == 1
        proposal = result.proposals[0]
        assert proposal.employee_id == "E1"
        assert proposal.from_department == "Sales"
        assert proposal.to_department == "Engineering"
        assert proposal.confidence_score == 0.9
        assert proposal.reasoning == default_reasoning(aiko, "Engineering")
        assert proposal.ai_model == "gpt-4o-mini"
        assert model.count(REASONING_SYSTEM_PROMPT) == 0

    @pytest.mark.anyio
    async def test_include_reasons_asks_the_model(self, sample_employees):
        model = FakeModel({"Aiko Tanaka": {"Engineering": 0.9}})
        generator = _generator(model)
        request = AnalysisRequest(options=AnalysisOptions(include_reasons=True))

        result = await generator.generate_transfer_proposals(sample_employees[:1], [], request)

        assert result.proposals[0].reasoning == MODEL_REASONING
        assert model.count(REASONING_SYSTEM_PROMPT) == 1

    @pytest.mark.anyio
    async def test_reasoning_failure_falls_back_to_template(self, sample_employees):
        model = FakeModel({"Aiko Tanaka": {"Engineering": 0.9}})
        model.reasoning = RuntimeError("reasoning down")
        generator = _generator(model)
        request = AnalysisRequest(options=AnalysisOptions(include_reasons=True))

        result = await generator.generate_transfer_proposals(sample_employees[:1], [], request)

        assert result.success_count == 1
        assert result.proposals[0].reasoning == default_reasoning(sample_employees[0], "Engineering")

    @pytest.mark.anyio
    async def test_every_analysis_failing_yields_errors_not_exception(self, sample_employees):
        model = FakeModel({e.name: RuntimeError("model down") for e in sample_employees})
        generator = _generator(model)

        result = await generator.generate_transfer_proposals(sample_employees, build_departments(sample_employees))

        assert result.proposals == []
        assert result.error_count == 3
        assert result.processed_count == 3
        assert model.count(EMPLOYEE_SYSTEM_PROMPT) == 9

    @pytest.mark.anyio
    async def test_one_failure_does_not_stop_the_batch(self, sample_employees):
        model = FakeModel(
            {
                "Aiko Tanaka": {"Engineering": 0.9},
                "Ben Carter": RuntimeError("model down"),
                "Chloe Martin": {"Sales": 0.8},
            }
        )
        generator = _generator(model)

        result = await generator.generate_transfer_proposals(sample_employees, build_departments(sample_employees))

        assert [p.employee_id for p in result.proposals] == ["E1", "E3"]
        assert result.error_count == 1
        assert result.success_count == 2

    @pytest.mark.anyio
    async def test_low_fit_employees_are_skipped(self, sample_employees):
        model = FakeModel(
            {
                "Aiko Tanaka": {"Engineering": 0.6, "Marketing": 0.2},
                "Ben Carter": {"Engineering": 0.99},
                "Chloe Martin": {"Sales": 0.61},
            }
        )
        generator = _generator(model)

        result = await generator.generate_transfer_proposals(sample_employees, build_departments(sample_employees))

        assert [p.employee_id for p in result.proposals] == ["E3"]
        assert result.skipped_count == 2
        for proposal in result.proposals:
            assert proposal.from_department != proposal.to_department
            assert proposal.confidence_score > 0.6

    @pytest.mark.anyio
    async def test_preserves_input_order_under_concurrency(self, sample_employees):
        model = FakeModel({e.name: {"Legal": 0.9} for e in sample_employees})
        original = model.complete

        async def slow_first(system, user, max_tokens, temperature):
            if "Name: Aiko Tanaka\n" in user:
                await asyncio.sleep(0.05)
            return await original(system, user, max_tokens, temperature)

        model.complete = slow_first
        generator = _generator(model, concurrency=3)

        result = await generator.generate_transfer_proposals(sample_employees, [])

        assert [p.employee_id for p in result.proposals] == ["E1", "E2", "E3"]

    @pytest.mark.anyio
    async def test_max_employees_and_max_proposals(self, sample_employees):
        model = FakeModel({e.name: {"Legal": 0.9} for e in sample_employees})
        generator = _generator(model)

        limited = await generator.generate_transfer_proposals(
            sample_employees, [], AnalysisRequest(options=AnalysisOptions(max_employees=2))
        )
        capped = await generator.generate_transfer_proposals(
            sample_employees, [], AnalysisRequest(options=AnalysisOptions(max_proposals=1))
        )

        assert limited.processed_count == 2
        assert [p.employee_id for p in limited.proposals] == ["E1", "E2"]
        assert capped.processed_count == 3
        assert [p.employee_id for p in capped.proposals] == ["E1"]

    @pytest.mark.anyio
    async def test_employee_ids_restrict_targets(self, sample_employees):
        model = FakeModel({e.name: {"Legal": 0.9} for e in sample_employees})
        generator = _generator(model)

        result = await generator.generate_transfer_proposals(
            sample_employees, [], AnalysisRequest(employee_ids=["E2"])
        )

        assert [p.employee_id for p in result.proposals] == ["E2"]
        assert model.count(EMPLOYEE_SYSTEM_PROMPT) == 1

    @pytest.mark.anyio
    async def test_condition_filters_before_analysis(self, sample_employees):
        model = FakeModel({e.name: {"Legal": 0.9} for e in sample_employees}, selected=["E3"])
        generator = _generator(model)

        result = await generator.generate_transfer_proposals(
            sample_employees, [], AnalysisRequest(natural_language_condition="creative people")
        )

        assert result.processed_count == 1
        assert [p.employee_id for p in result.proposals] == ["E3"]

    @pytest.mark.anyio
    async def test_condition_filter_failure_analyzes_everyone(self, sample_employees):
        model = FakeModel({e.name: {"Legal": 0.9} for e in sample_employees}, selected=None)
        generator = _generator(model)

        result = await generator.generate_transfer_proposals(
            sample_employees, [], AnalysisRequest(natural_language_condition="creative people")
        )

        assert result.processed_count == 3
        assert len(result.proposals) == 3

    @pytest.mark.anyio
    async def test_roster_departments_bound_destinations(self, sample_employees):
        model = FakeModel({"Aiko Tanaka": {"Atlantis": 0.99, "Marketing": 0.7}})
        generator = _generator(model)

        result = await generator.generate_transfer_proposals(
            sample_employees[:1], build_departments(sample_employees)
        )

        assert result.proposals[0].to_department == "Marketing"
        employee_prompt = next(u for s, u in model.calls if s == EMPLOYEE_SYSTEM_PROMPT)
        assert "Sales, Engineering, Marketing" in employee_prompt

    @pytest.mark.anyio
    async def test_empty_roster_raises(self):
        generator = _generator(FakeModel({}))
        with pytest.raises(EmptyRosterError):
            await generator.generate_transfer_proposals([], [])


class TestGenerateTargetedProposals:
    @pytest.mark.anyio
    async def test_low_fit_is_floored(self, sample_employees):
        model = FakeModel({"Aiko Tanaka": {"Engineering": 0.3}})
        generator = _generator(model)

        result = await generator.generate_targeted_transfer_proposals(
            sample_employees[:1], "Engineering", "Python people to Engineering"
        )

        assert len(result.proposals) == 1
        assert result.proposals[0].confidence_score == 0.6
        assert result.proposals[0].reasoning == MODEL_REASONING

    @pytest.mark.anyio
    async def test_missing_score_is_floored(self, sample_employees):
        model = FakeModel({"Aiko Tanaka": {"Legal": 0.9}})
        generator = _generator(model)

        result = await generator.generate_targeted_transfer_proposals(sample_employees[:1], "Engineering")

        assert result.proposals[0].confidence_score == 0.6

    @pytest.mark.anyio
    async def test_members_of_target_are_skipped(self, sample_employees):
        model = FakeModel({e.name: {"Engineering": 0.8} for e in sample_employees})
        generator = _generator(model)

        result = await generator.generate_targeted_transfer_proposals(sample_employees, "Engineering")

        assert [p.employee_id for p in result.proposals] == ["E1", "E3"]
        assert result.skipped_count == 1
        assert all(p.to_department == "Engineering" for p in result.proposals)

    @pytest.mark.anyio
    async def test_failures_are_counted(self, sample_employees):
        model = FakeModel({"Aiko Tanaka": RuntimeError("down"), "Chloe Martin": {"Engineering": 0.75}})
        generator = _generator(model)

        result = await generator.generate_targeted_transfer_proposals(
            [sample_employees[0], sample_employees[2]], "Engineering"
        )

        assert result.error_count == 1
        assert [p.employee_id for p in result.proposals] == ["E3"]
        assert result.proposals[0].confidence_score == 0.75

    @pytest.mark.anyio
    async def test_reasoning_failure_uses_template(self, sample_employees):
        model = FakeModel({"Aiko Tanaka": {"Engineering": 0.9}})
        model.reasoning = RuntimeError("down")
        generator = _generator(model)

        result = await generator.generate_targeted_transfer_proposals(sample_employees[:1], "Engineering")

        assert result.proposals[0].reasoning == default_targeted_reasoning(sample_employees[0], "Engineering")

    @pytest.mark.anyio
    async def test_unknown_department_rejected(self, sample_employees):
        generator = _generator(FakeModel({}))
        with pytest.raises(UnknownDepartmentError):
            await generator.generate_targeted_transfer_proposals(
                sample_employees, "Atlantis", departments=build_departments(sample_employees)
            )

    @pytest.mark.anyio
    async def test_empty_candidates_produce_nothing(self):
        generator = _generator(FakeModel({}))
        result = await generator.generate_targeted_transfer_proposals([], "Engineering")
        assert result.proposals == []
        assert result.processed_count == 0
