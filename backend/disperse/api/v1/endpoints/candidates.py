from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, status

from disperse.core.dependencies import get_current_user, require_model_available
from disperse.models.auth import UserInfo
from disperse.models.conversation import ConversationState, ConversationTurn, RefineRequest, SearchRequest
from disperse.models.proposal import TransferProposal
from disperse.services.conversation import (
    CandidateConversation,
    ConversationStateError,
    ProposalGenerationFailed,
    conversation_registry,
)
from disperse.services.proposal_generator import UnknownDepartmentError
from disperse.services.record_store import record_store
from disperse.services.transfer_analyzer import transfer_analyzer

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/candidates", tags=["candidates"])


def _conversation(session_id: str) -> CandidateConversation:
    return conversation_registry.get(session_id, transfer_analyzer, record_store)


def _require_roster() -> None:
    if not record_store.get_employees():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="No employee data loaded. Load a roster first.",
        )


def _conflict(e: ConversationStateError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))


@router.get("/{session_id}", response_model=ConversationState)
async def get_conversation(
    session_id: str,
    user: UserInfo = Depends(get_current_user),  # noqa: B008
):
    conversation = conversation_registry.peek(session_id)
    return conversation.state if conversation else ConversationState()


@router.post("/{session_id}/search", response_model=ConversationTurn)
async def search_candidates(
    session_id: str,
    request: SearchRequest,
    user: UserInfo = Depends(get_current_user),  # noqa: B008
):
    require_model_available(transfer_analyzer)
    _require_roster()
    logger.info("Candidate search session=%s user=%s condition=%s", session_id, user.name, request.condition[:50])
    try:
        return await _conversation(session_id).search(request.condition)
    except ConversationStateError as e:
        raise _conflict(e) from e


@router.post("/{session_id}/refine", response_model=ConversationTurn)
async def refine_candidates(
    session_id: str,
    request: RefineRequest,
    user: UserInfo = Depends(get_current_user),  # noqa: B008
):
    require_model_available(transfer_analyzer)
    try:
        return await _conversation(session_id).refine(request.feedback)
    except ConversationStateError as e:
        raise _conflict(e) from e


@router.post("/{session_id}/proposals", response_model=list[TransferProposal])
async def generate_proposals(
    session_id: str,
    user: UserInfo = Depends(get_current_user),  # noqa: B008
):
    require_model_available(transfer_analyzer)
    try:
        proposals = await _conversation(session_id).generate_proposals()
    except ConversationStateError as e:
        raise _conflict(e) from e
    except UnknownDepartmentError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e
    except ProposalGenerationFailed as e:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=f"AI analysis failed: {e}") from e

    logger.info("Session %s produced %d proposals for user=%s", session_id, len(proposals), user.name)
    return proposals


@router.delete("/{session_id}")
async def reset_conversation(
    session_id: str,
    user: UserInfo = Depends(get_current_user),  # noqa: B008
):
    conversation_registry.discard(session_id)
    return {"success": True}
