"""Multi-turn candidate selection sessions.

A session moves Idle -> Searching -> Refining -> ProposalsGenerated, and
``reset`` brings it back to Idle from anywhere. Each transition appends the
user's utterance and the assistant's answer to the turn log; the log lives as
long as the session.
"""

from __future__ import annotations

import logging
import time
from collections import OrderedDict
from typing import TYPE_CHECKING

from disperse.core.config import settings
from disperse.models.conversation import (
    ConversationPhase,
    ConversationState,
    ConversationTurn,
    RefinementResult,
)
from disperse.models.employee import Department, Employee
from disperse.models.proposal import AnalysisOptions, AnalysisRequest, TransferProposal
from disperse.services.candidate_search import CandidateSearchFailed
from disperse.services.proposal_generator import extract_target_department
from disperse.services.record_store import RecordStore

if TYPE_CHECKING:
    from disperse.services.transfer_analyzer import TransferAnalyzer

logger = logging.getLogger(__name__)

SEARCH_ERROR_REASONING = "The candidate search could not be completed. Please rephrase the condition and try again."
GENERATION_ERROR_REASONING = "No proposals could be generated. The candidates are unchanged; please try again."


class ConversationStateError(Exception):
    pass


class ProposalGenerationFailed(Exception):
    pass


class CandidateConversation:
    def __init__(self, analyzer: TransferAnalyzer, store: RecordStore) -> None:
        self.analyzer = analyzer
        self.store = store
        self.state = ConversationState()
        self.roster: list[Employee] = []
        self.departments: list[Department] = []
        self.last_used = time.monotonic()

    @property
    def phase(self) -> ConversationPhase:
        return self.state.phase

    def _require(self, *phases: ConversationPhase) -> None:
        if self.state.phase not in phases:
            allowed = ", ".join(p.value for p in phases)
            raise ConversationStateError(f"Not allowed in state '{self.state.phase.value}' (expected {allowed})")

    def _user_turn(self, content: str) -> None:
        self.state.turns.append(ConversationTurn(role="user", content=content))

    def reset(self) -> None:
        self.state = ConversationState()
        self.roster = []
        self.departments = []

    async def search(self, condition: str) -> ConversationTurn:
        self._require(ConversationPhase.IDLE)

        self.roster = self.store.get_employees()
        self.departments = self.store.get_departments()
        self.state.condition = condition
        self.state.phase = ConversationPhase.SEARCHING
        self._user_turn(condition)

        try:
            result = await self.analyzer.find_candidates_with_condition(self.roster, self.departments, condition)
        except CandidateSearchFailed:
            logger.exception("Candidate search failed, returning fallback answer")
            turn = ConversationTurn(role="assistant", content=SEARCH_ERROR_REASONING)
        except Exception:
            self.state.phase = ConversationPhase.IDLE
            raise
        else:
            turn = ConversationTurn(
                role="assistant",
                content=result.reasoning,
                candidates=result.candidates,
                suggestions=result.suggestions,
                questions=result.clarification_questions or [],
            )

        self.state.candidates = list(turn.candidates)
        self.state.turns.append(turn)
        self.state.phase = ConversationPhase.REFINING
        return turn

    async def refine(self, feedback: str) -> ConversationTurn:
        self._require(ConversationPhase.REFINING)
        self._user_turn(feedback)

        result: RefinementResult = await self.analyzer.refine_candidate(
            self.state.candidates,
            self.state.condition or "",
            feedback,
            roster=self.roster,
        )
        turn = ConversationTurn(
            role="assistant",
            content=result.reasoning,
            candidates=result.refined_candidates,
            questions=result.next_questions or [],
        )
        self.state.candidates = list(result.refined_candidates)
        self.state.turns.append(turn)
        return turn

    async def generate_proposals(self) -> list[TransferProposal]:
        self._require(ConversationPhase.REFINING)
        if not self.state.candidates:
            raise ConversationStateError("No candidates to generate proposals for")

        condition = self.state.condition or ""
        candidates = list(self.state.candidates)
        target = extract_target_department(condition, self.departments)
        logger.info(
            "Generating proposals for %d candidates (target=%s)",
            len(candidates),
            target or "best fit",
        )

        if target:
            result = await self.analyzer.generate_targeted_transfer_proposals(
                candidates, target, condition, departments=self.departments
            )
        else:
            # Candidates are already selected, so the condition is not applied again.
            result = await self.analyzer.generate_transfer_proposals(
                candidates,
                self.departments,
                AnalysisRequest(options=AnalysisOptions(include_reasons=True)),
            )

        if result.error_count and not result.proposals:
            logger.error("All %d proposal attempts failed; keeping candidates", result.error_count)
            self.state.turns.append(ConversationTurn(role="assistant", content=GENERATION_ERROR_REASONING))
            raise ProposalGenerationFailed(f"Proposal generation failed for all {result.error_count} candidates")

        self.store.clear_proposals()
        self.store.add_proposals(result.proposals)

        self.state = ConversationState(
            phase=ConversationPhase.PROPOSALS_GENERATED,
            proposals=result.proposals,
        )
        return result.proposals


class ConversationRegistry:
    """One candidate conversation per client session.

    Sessions idle for longer than ``idle_ttl`` seconds are dropped, and once
    ``max_sessions`` is reached the least recently used one is evicted.
    """

    def __init__(
        self,
        max_sessions: int = settings.CONVERSATION_MAX_SESSIONS,
        idle_ttl: float = settings.CONVERSATION_IDLE_TTL_SECONDS,
    ) -> None:
        self.sessions: OrderedDict[str, CandidateConversation] = OrderedDict()
        self.max_sessions = max(1, max_sessions)
        self.idle_ttl = idle_ttl

    def _expire(self) -> None:
        cutoff = time.monotonic() - self.idle_ttl
        for session_id in [sid for sid, c in self.sessions.items() if c.last_used < cutoff]:
            logger.info("Dropping idle candidate session %s", session_id)
            del self.sessions[session_id]

    def peek(self, session_id: str) -> CandidateConversation | None:
        """Look a session up without creating or refreshing it."""
        self._expire()
        return self.sessions.get(session_id)

    def get(self, session_id: str, analyzer: TransferAnalyzer, store: RecordStore) -> CandidateConversation:
        self._expire()
        conversation = self.sessions.get(session_id)
        if conversation is None:
            while len(self.sessions) >= self.max_sessions:
                evicted, _ = self.sessions.popitem(last=False)
                logger.info("Session limit %d reached, evicted %s", self.max_sessions, evicted)
            conversation = CandidateConversation(analyzer, store)
            self.sessions[session_id] = conversation
        else:
            self.sessions.move_to_end(session_id)
        conversation.last_used = time.monotonic()
        return conversation

    def discard(self, session_id: str) -> None:
        self.sessions.pop(session_id, None)


conversation_registry = ConversationRegistry()
