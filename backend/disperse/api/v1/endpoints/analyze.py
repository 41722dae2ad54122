from __future__ import annotations

import asyncio
import logging
import time

from fastapi import APIRouter, Depends, HTTPException, status

from disperse.core.config import settings
from disperse.core.dependencies import get_current_user, require_model_available
from disperse.models.analysis import DepartmentRequirements, EmployeeAnalysis
from disperse.models.auth import UserInfo
from disperse.models.proposal import AnalysisRequest, AnalysisResponse, StoredResultsResponse
from disperse.services.llm_client import track_usage
from disperse.services.profile_analyzer import DepartmentAnalysisFailed, EmployeeAnalysisFailed
from disperse.services.proposal_generator import EmptyRosterError
from disperse.services.record_store import record_store
from disperse.services.transfer_analyzer import transfer_analyzer

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/analyze", tags=["analyze"])

NO_DATA_DETAIL = "No employee data loaded. Load a roster first."


@router.post("", response_model=AnalysisResponse)
async def analyze(
    request: AnalysisRequest,
    user: UserInfo = Depends(get_current_user),  # noqa: B008
):
    require_model_available(transfer_analyzer)
    employees = record_store.get_employees()
    departments = record_store.get_departments()
    if not employees:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=NO_DATA_DETAIL)

    logger.info(
        "Analysis requested by user=%s: employees=%d departments=%d options=%s",
        user.name,
        len(employees),
        len(departments),
        request.options.model_dump(),
    )

    started = time.perf_counter()
    try:
        with track_usage() as usage:
            result = await asyncio.wait_for(
                transfer_analyzer.generate_transfer_proposals(employees, departments, request),
                timeout=settings.ANALYSIS_DEADLINE_SECONDS,
            )
    except asyncio.TimeoutError as e:
        logger.error("Analysis exceeded %ss deadline and was abandoned", settings.ANALYSIS_DEADLINE_SECONDS)
        raise HTTPException(
            status_code=status.HTTP_504_GATEWAY_TIMEOUT,
            detail="AI analysis did not finish in time",
        ) from e
    except EmptyRosterError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e

    elapsed_ms = (time.perf_counter() - started) * 1000
    metrics = transfer_analyzer.generate_metrics(
        result.proposals,
        elapsed_ms,
        usage,
        result.error_count,
    )
    record_store.add_proposals(result.proposals)
    record_store.add_metrics(metrics)

    logger.info(
        "Analysis finished: proposals=%d errors=%d elapsed=%.0fms",
        len(result.proposals),
        result.error_count,
        elapsed_ms,
    )
    return AnalysisResponse(
        proposals=result.proposals,
        metrics=metrics,
        processed_count=result.processed_count,
        skipped_count=result.skipped_count,
        error_count=result.error_count,
        message=f"Generated {len(result.proposals)} transfer proposals",
    )


@router.get("", response_model=StoredResultsResponse)
async def get_results(user: UserInfo = Depends(get_current_user)):  # noqa: B008
    analysis = record_store.get_proposal_analysis()
    return StoredResultsResponse(
        proposals=analysis.proposals,
        metrics=record_store.get_metrics(),
        summary=analysis.summary,
        has_data=bool(analysis.proposals),
    )


@router.post("/employees/{employee_id}", response_model=EmployeeAnalysis)
async def analyze_employee(
    employee_id: str,
    user: UserInfo = Depends(get_current_user),  # noqa: B008
):
    require_model_available(transfer_analyzer)
    employee = record_store.get_employee(employee_id)
    if not employee:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Employee '{employee_id}' not found",
        )

    names = [d.name for d in record_store.get_departments()]
    try:
        return await transfer_analyzer.analyze_employee(employee, names)
    except EmployeeAnalysisFailed as e:
        logger.error("Employee analysis failed for user=%s: %s", user.name, e)
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=f"AI analysis failed: {e}",
        ) from e


@router.post("/departments/{name}", response_model=DepartmentRequirements)
async def analyze_department(
    name: str,
    user: UserInfo = Depends(get_current_user),  # noqa: B008
):
    require_model_available(transfer_analyzer)
    department = record_store.get_department(name)
    if not department:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Department '{name}' not found",
        )

    try:
        return await transfer_analyzer.analyze_department_requirements(department, record_store.get_employees())
    except DepartmentAnalysisFailed as e:
        logger.error("Department analysis failed for user=%s: %s", user.name, e)
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=f"AI analysis failed: {e}",
        ) from e
