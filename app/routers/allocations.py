# app/routers/allocations.py
from datetime import date
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from app.config import EngineConfig, get_engine_config
from app.db.session import get_store, get_today
from app.models.allocation import Allocation
from app.schemas.allocation import AllocationCreate, AllocationUpdate
from app.services import allocation_service
from app.services.data_access import SqlAlchemyStore
from app.services.errors import AllocationError
from app.services.utilization_service import UtilizationReporter

router = APIRouter(prefix="/allocations", tags=["allocations"])


def _iso(value: Optional[Any]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def _allocation_out(allocation: Allocation) -> Dict[str, Any]:
    return {
        "id": allocation.id,
        "project_id": allocation.project_id,
        "project_name": allocation.project.project_name if allocation.project else None,
        "person_id": allocation.person_id,
        "personnel_name": allocation.person.name if allocation.person else None,
        "allocation_percentage": allocation.allocation_percentage,
        "start_date": _iso(allocation.start_date),
        "end_date": _iso(allocation.end_date),
        "role_in_project": allocation.role_in_project,
        "created_at": _iso(allocation.created_at),
        "updated_at": _iso(allocation.updated_at),
    }


def _reporter(
    store: SqlAlchemyStore = Depends(get_store),
    config: EngineConfig = Depends(get_engine_config),
    today: date = Depends(get_today),
) -> UtilizationReporter:
    return UtilizationReporter(store, config, today=lambda: today)


@router.post("", status_code=201)
def create_allocation(
    payload: AllocationCreate,
    store: SqlAlchemyStore = Depends(get_store),
    config: EngineConfig = Depends(get_engine_config),
) -> Dict[str, Any]:
    """
    Admit a new allocation.

    Rejections come back as 400 (invalid_input), 404 (not_found) or
    409 (duplicate_assignment, insufficient_availability, capacity_exceeded)
    with the detail payload needed to explain them.
    """
    try:
        allocation = allocation_service.create_allocation(
            store, payload.model_dump(), config=config
        )
    except AllocationError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_dict())

    return {
        "message": "Project allocation created successfully",
        "allocation": _allocation_out(allocation),
    }


@router.get("")
def list_allocations(
    project_id: Optional[int] = None,
    person_id: Optional[int] = None,
    store: SqlAlchemyStore = Depends(get_store),
) -> Dict[str, Any]:
    allocations = allocation_service.list_allocations(
        store, project_id=project_id, person_id=person_id
    )
    return {"allocations": [_allocation_out(a) for a in allocations]}


@router.get("/team/utilization")
def get_team_utilization(
    months: Optional[int] = None,
    reporter: UtilizationReporter = Depends(_reporter),
) -> Dict[str, Any]:
    """
    Monthly utilization per person from today over the next `months`
    months (default 3), for dashboards.
    """
    try:
        team = reporter.team_utilization_by_month(months)
    except AllocationError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_dict())

    return {
        "data": [
            {
                "person_id": t.person.id,
                "personnel_name": t.person.name,
                "role_title": t.person.role_title,
                "experience_level": t.person.experience_level,
                "allocations": [_allocation_out(a) for a in t.allocations],
                "total_utilization": t.total_utilization,
                "utilization_by_month": [m.to_dict() for m in t.utilization_by_month],
            }
            for t in team.people
        ],
        "date_range": {
            "start": team.start_date.isoformat(),
            "end": team.end_date.isoformat(),
        },
    }


@router.get("/available")
def get_available_personnel(
    start_date: Optional[str] = None,
    end_date: Optional[str] = None,
    include_unavailable: bool = False,
    reporter: UtilizationReporter = Depends(_reporter),
) -> Dict[str, Any]:
    """
    People with capacity left over a date range: their availability there
    minus what overlapping allocations already take.
    """
    try:
        rows = reporter.remaining_capacity(start_date, end_date, include_unavailable)
    except AllocationError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_dict())

    return {
        "personnel": [
            {
                "person_id": r.person.id,
                "personnel_name": r.person.name,
                "email": r.person.email,
                "role_title": r.person.role_title,
                "experience_level": r.person.experience_level,
                "availability_percentage": r.availability_percentage,
                "current_allocation_percentage": r.current_allocation_percentage,
                "remaining_capacity": r.remaining_capacity,
                "availability_status": r.availability_status,
            }
            for r in rows
        ],
        "date_range": {"start": start_date, "end": end_date},
    }


@router.get("/workload")
def get_workload(
    on_date: Optional[str] = Query(None, alias="date"),
    reporter: UtilizationReporter = Depends(_reporter),
) -> Dict[str, Any]:
    try:
        rows = reporter.workload(on_date)
    except AllocationError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_dict())

    return {
        "personnel": [
            {
                "person_id": w.person.id,
                "personnel_name": w.person.name,
                "email": w.person.email,
                "role_title": w.person.role_title,
                "active_project_count": w.active_project_count,
                "total_allocation_percentage": w.total_allocation_percentage,
                "allocation_status": w.allocation_status,
                "project_allocations": [
                    {
                        "project_id": a.project_id,
                        "project_name": a.project.project_name if a.project else None,
                        "allocation_percentage": a.allocation_percentage,
                    }
                    for a in w.allocations
                ],
            }
            for w in rows
        ],
    }


@router.get("/personnel/{person_id}/utilization")
def get_personnel_utilization(
    person_id: int,
    start_date: Optional[str] = None,
    end_date: Optional[str] = None,
    reporter: UtilizationReporter = Depends(_reporter),
) -> Dict[str, Any]:
    try:
        result = reporter.personnel_utilization(person_id, start_date, end_date)
    except AllocationError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_dict())

    return {
        "person_id": person_id,
        "personnel_name": result.person.name,
        "role_title": result.person.role_title,
        "allocations": [_allocation_out(a) for a in result.allocations],
        "utilization": result.summary(),
    }


@router.get("/personnel/{person_id}")
def get_personnel_allocations(
    person_id: int,
    store: SqlAlchemyStore = Depends(get_store),
) -> Dict[str, Any]:
    try:
        person, allocations = allocation_service.list_person_allocations(store, person_id)
    except AllocationError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_dict())

    return {
        "person_id": person.id,
        "personnel_name": person.name,
        "allocations": [_allocation_out(a) for a in allocations],
    }


@router.get("/project/{project_id}")
def get_project_team(
    project_id: int,
    store: SqlAlchemyStore = Depends(get_store),
) -> Dict[str, Any]:
    """
    Team roster of a project: its allocations joined with who is allocated.
    """
    try:
        project, allocations = allocation_service.project_team(store, project_id)
    except AllocationError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_dict())

    members = []
    for a in allocations:
        member = _allocation_out(a)
        member["personnel_email"] = a.person.email if a.person else None
        member["role_title"] = a.person.role_title if a.person else None
        member["experience_level"] = a.person.experience_level if a.person else None
        members.append(member)

    return {
        "project_id": project.id,
        "project_name": project.project_name,
        "allocations": members,
        "team_size": len(members),
    }


@router.get("/{allocation_id}")
def get_allocation(
    allocation_id: int,
    store: SqlAlchemyStore = Depends(get_store),
) -> Dict[str, Any]:
    try:
        allocation = allocation_service.get_allocation(store, allocation_id)
    except AllocationError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_dict())

    return {"allocation": _allocation_out(allocation)}


@router.put("/{allocation_id}")
def update_allocation(
    allocation_id: int,
    payload: AllocationUpdate,
    store: SqlAlchemyStore = Depends(get_store),
    config: EngineConfig = Depends(get_engine_config),
) -> Dict[str, Any]:
    """
    Change percentage, dates or role. The merged allocation is re-checked
    as if newly proposed, ignoring the allocation itself.
    """
    try:
        allocation = allocation_service.update_allocation(
            store,
            allocation_id,
            payload.model_dump(exclude_unset=True),
            config=config,
        )
    except AllocationError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_dict())

    return {
        "message": "Allocation updated successfully",
        "allocation": _allocation_out(allocation),
    }


@router.delete("/{allocation_id}")
def delete_allocation(
    allocation_id: int,
    store: SqlAlchemyStore = Depends(get_store),
) -> Dict[str, Any]:
    try:
        allocation_service.delete_allocation(store, allocation_id)
    except AllocationError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_dict())

    return {"message": "Allocation deleted successfully", "id": allocation_id}
