from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, status

from disperse.core.dependencies import get_current_user
from disperse.models.auth import UserInfo
from disperse.models.employee import Department, Employee, RosterLoadRequest, RosterResponse
from disperse.services.record_store import build_employee, record_store

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/data", tags=["data"])


@router.get("", response_model=RosterResponse)
async def get_roster(user: UserInfo = Depends(get_current_user)):  # noqa: B008
    return RosterResponse(
        employees=record_store.get_employees(),
        departments=record_store.get_departments(),
    )


@router.put("", response_model=RosterResponse)
async def load_roster(
    request: RosterLoadRequest,
    user: UserInfo = Depends(get_current_user),  # noqa: B008
):
    ids = [r.id for r in request.employees]
    if len(ids) != len(set(ids)):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Employee ids must be unique",
        )

    record_store.set_employees([build_employee(r) for r in request.employees])
    logger.info("Roster replaced by user=%s", user.name)
    return RosterResponse(
        employees=record_store.get_employees(),
        departments=record_store.get_departments(),
    )


@router.delete("")
async def clear_roster(user: UserInfo = Depends(get_current_user)):  # noqa: B008
    record_store.clear_data()
    return {"success": True}


@router.get("/employees/{employee_id}", response_model=Employee)
async def get_employee(
    employee_id: str,
    user: UserInfo = Depends(get_current_user),  # noqa: B008
):
    employee = record_store.get_employee(employee_id)
    if not employee:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Employee '{employee_id}' not found",
        )
    return employee


@router.get("/departments/{name}", response_model=Department)
async def get_department(
    name: str,
    user: UserInfo = Depends(get_current_user),  # noqa: B008
):
    department = record_store.get_department(name)
    if not department:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Department '{name}' not found",
        )
    return department
