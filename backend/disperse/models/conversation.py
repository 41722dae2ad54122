"""Interactive candidate search and refinement."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Literal

from pydantic import BaseModel, Field

from disperse.models.employee import Employee
from disperse.models.proposal import TransferProposal


class ConversationPhase(str, Enum):
    IDLE = "idle"
    SEARCHING = "searching"
    REFINING = "refining"
    PROPOSALS_GENERATED = "proposals_generated"


class ConversationTurn(BaseModel):
    role: Literal["user", "assistant"]
    content: str
    candidates: list[Employee] = []
    suggestions: list[str] = []
    questions: list[str] = []
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class CandidateSearchResult(BaseModel):
    candidates: list[Employee]
    reasoning: str
    suggestions: list[str] = []
    clarification_questions: list[str] | None = None


class RefinementResult(BaseModel):
    refined_candidates: list[Employee]
    reasoning: str
    next_questions: list[str] | None = None


class ConversationState(BaseModel):
    phase: ConversationPhase = ConversationPhase.IDLE
    condition: str | None = None
    candidates: list[Employee] = []
    turns: list[ConversationTurn] = []
    proposals: list[TransferProposal] = []


class SearchRequest(BaseModel):
    condition: str = Field(..., min_length=1, max_length=2000)


class RefineRequest(BaseModel):
    feedback: str = Field(..., min_length=1, max_length=2000)
