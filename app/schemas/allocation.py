# app/schemas/allocation.py
from typing import Optional

from pydantic import AliasChoices, BaseModel, Field


class AllocationCreate(BaseModel):
    project_id: Optional[int] = None
    person_id: Optional[int] = Field(
        default=None,
        validation_alias=AliasChoices("person_id", "personnel_id"),
    )
    # Left unset, the configured default (100) applies
    allocation_percentage: Optional[int] = None
    # Dates stay strings here; the feasibility engine parses and reports them
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    role_in_project: Optional[str] = None


class AllocationUpdate(BaseModel):
    allocation_percentage: Optional[int] = None
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    role_in_project: Optional[str] = None
