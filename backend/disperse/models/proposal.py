"""Transfer proposals and the requests that produce them."""

from __future__ import annotations

from datetime import datetime, timezone

from pydantic import BaseModel, Field, model_validator

from disperse.models.metrics import PerformanceMetrics

DEFAULT_CONFIDENCE_THRESHOLD = 0.6


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TransferProposal(BaseModel):
    employee_id: str
    employee_name: str
    from_department: str
    to_department: str
    confidence_score: float = Field(..., ge=0.0, le=1.0)
    reasoning: str
    ai_model: str = "openai"
    processing_time: float = Field(default=0.0, ge=0.0, description="Milliseconds")
    timestamp: datetime = Field(default_factory=_utcnow)

    @model_validator(mode="after")
    def _must_change_department(self) -> TransferProposal:
        if self.from_department == self.to_department:
            raise ValueError("to_department must differ from from_department")
        return self


class AnalysisOptions(BaseModel):
    include_reasons: bool = False
    confidence_threshold: float = Field(default=DEFAULT_CONFIDENCE_THRESHOLD, ge=0.0, le=1.0)
    max_proposals: int | None = Field(default=None, ge=1)
    max_employees: int | None = Field(default=None, ge=1)


class AnalysisRequest(BaseModel):
    """Options for a batch proposal run."""

    employee_ids: list[str] | None = None
    natural_language_condition: str | None = Field(default=None, max_length=2000)
    options: AnalysisOptions = Field(default_factory=AnalysisOptions)


class BatchResult(BaseModel):
    proposals: list[TransferProposal] = []
    processed_count: int = 0
    success_count: int = 0
    skipped_count: int = 0
    error_count: int = 0


class ProposalSummary(BaseModel):
    total_proposals: int
    average_confidence: float
    department_changes: dict[str, int]


class ProposalAnalysis(BaseModel):
    proposals: list[TransferProposal]
    summary: ProposalSummary
    generated_at: datetime = Field(default_factory=_utcnow)


class AnalysisResponse(BaseModel):
    proposals: list[TransferProposal]
    metrics: PerformanceMetrics
    processed_count: int
    skipped_count: int
    error_count: int
    message: str


class StoredResultsResponse(BaseModel):
    proposals: list[TransferProposal]
    metrics: list[PerformanceMetrics]
    summary: ProposalSummary
    has_data: bool
