# app/routers/availability.py
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException

from app.config import EngineConfig, get_engine_config
from app.db.session import get_store
from app.models.availability_window import AvailabilityWindow
from app.schemas.availability import AvailabilityCreate, AvailabilityUpdate
from app.services import availability_service
from app.services.data_access import SqlAlchemyStore
from app.services.errors import AllocationError

router = APIRouter(prefix="/availability", tags=["availability"])


def _window_out(window: AvailabilityWindow) -> Dict[str, Any]:
    return {
        "id": window.id,
        "person_id": window.person_id,
        "start_date": window.start_date.isoformat(),
        "end_date": window.end_date.isoformat(),
        "availability_percentage": window.availability_percentage,
        "notes": window.notes,
    }


@router.post("", status_code=201)
def create_availability(
    payload: AvailabilityCreate,
    store: SqlAlchemyStore = Depends(get_store),
    config: EngineConfig = Depends(get_engine_config),
) -> Dict[str, Any]:
    try:
        window = availability_service.create_availability(
            store, payload.model_dump(), config=config
        )
    except AllocationError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_dict())

    return {
        "message": "Availability period created successfully",
        "availability": _window_out(window),
    }


@router.get("/{person_id}")
def get_person_availability(
    person_id: int,
    start_date: Optional[str] = None,
    end_date: Optional[str] = None,
    store: SqlAlchemyStore = Depends(get_store),
) -> Dict[str, Any]:
    """
    A person's availability windows. With both start_date and end_date the
    list is narrowed to that range and the day-weighted availability over
    it is included as total_availability_percentage.
    """
    try:
        result = availability_service.get_person_availability(
            store, person_id, start_date, end_date
        )
    except AllocationError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_dict())

    response: Dict[str, Any] = {
        "person_id": person_id,
        "personnel_name": result.person.name,
        "availability": [_window_out(w) for w in result.windows],
    }
    if result.total_availability_percentage is not None:
        response["total_availability_percentage"] = result.total_availability_percentage
    return response


@router.put("/{availability_id}")
def update_availability(
    availability_id: int,
    payload: AvailabilityUpdate,
    store: SqlAlchemyStore = Depends(get_store),
) -> Dict[str, Any]:
    try:
        window = availability_service.update_availability(
            store, availability_id, payload.model_dump(exclude_unset=True)
        )
    except AllocationError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_dict())

    return {
        "message": "Availability period updated successfully",
        "availability": _window_out(window),
    }


@router.delete("/{availability_id}")
def delete_availability(
    availability_id: int,
    store: SqlAlchemyStore = Depends(get_store),
) -> Dict[str, Any]:
    try:
        availability_service.delete_availability(store, availability_id)
    except AllocationError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_dict())

    return {"message": "Availability period deleted successfully", "id": availability_id}
