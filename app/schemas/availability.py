# app/schemas/availability.py
from typing import Optional

from pydantic import AliasChoices, BaseModel, Field


class AvailabilityCreate(BaseModel):
    person_id: Optional[int] = Field(
        default=None,
        validation_alias=AliasChoices("person_id", "personnel_id"),
    )
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    availability_percentage: Optional[int] = None
    notes: Optional[str] = None


class AvailabilityUpdate(BaseModel):
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    availability_percentage: Optional[int] = None
    notes: Optional[str] = None
