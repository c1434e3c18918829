# app/services/feasibility.py
"""
Admission decisions for allocations.

A proposed allocation (create) or a merged allocation (update) goes through,
in order:

  1. structural validation   -> invalid_input
  2. referential validation  -> not_found
  3. duplicate assignment    -> duplicate_assignment
  4. availability            -> insufficient_availability
  5. capacity                -> capacity_exceeded

and ends ACCEPTED or REJECTED. Nothing here writes; the caller persists an
accepted candidate.
"""
from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Any, Dict, Mapping, Optional

from app.config import EngineConfig
from app.log_config import get_logger
from app.models.allocation import Allocation
from app.services.allocation_ledger import AllocationLedger, ProposedCommitment
from app.services.availability_ledger import AvailabilityLedger
from app.services.data_access import AllocationStore
from app.services.errors import (
    AllocationError,
    CapacityExceeded,
    DuplicateAssignment,
    InsufficientAvailability,
    InvalidInput,
    NotFound,
)
from app.services.intervals import parse_calendar_date

logger = get_logger(__name__)

REQUIRED_CREATE_FIELDS = ("project_id", "person_id", "start_date", "end_date")
UPDATABLE_FIELDS = ("allocation_percentage", "start_date", "end_date", "role_in_project")


class AdmissionState(str, Enum):
    PENDING_VALIDATION = "PENDING_VALIDATION"
    ACCEPTED = "ACCEPTED"
    REJECTED = "REJECTED"


@dataclass
class AllocationCandidate:
    project_id: int
    person_id: int
    allocation_percentage: int
    start_date: date
    end_date: date
    role_in_project: Optional[str] = None

    def as_commitment(self) -> ProposedCommitment:
        return ProposedCommitment(
            start_date=self.start_date,
            end_date=self.end_date,
            allocation_percentage=self.allocation_percentage,
        )

    def to_fields(self) -> Dict[str, Any]:
        return {
            "project_id": self.project_id,
            "person_id": self.person_id,
            "allocation_percentage": self.allocation_percentage,
            "start_date": self.start_date,
            "end_date": self.end_date,
            "role_in_project": self.role_in_project,
        }


@dataclass
class Decision:
    state: AdmissionState
    candidate: Optional[AllocationCandidate] = None
    error: Optional[AllocationError] = None

    def __post_init__(self):
        if self.state == AdmissionState.ACCEPTED and self.candidate is None:
            raise ValueError("an accepted decision needs a candidate")
        if self.state == AdmissionState.REJECTED and self.error is None:
            raise ValueError("a rejected decision needs an error")

    @property
    def accepted(self) -> bool:
        return self.state == AdmissionState.ACCEPTED

    @property
    def reason(self) -> Optional[str]:
        return self.error.kind if self.error else None

    def raise_for_rejection(self) -> AllocationCandidate:
        """The accepted candidate, or the rejection error raised."""
        if self.error is not None:
            raise self.error
        if self.candidate is None:
            raise ValueError(f"decision is still {self.state.value}")
        return self.candidate

    @classmethod
    def rejected(cls, error: AllocationError, candidate: Optional[AllocationCandidate] = None) -> "Decision":
        return cls(state=AdmissionState.REJECTED, candidate=candidate, error=error)


def validate_percentage(value: Any, field_name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise InvalidInput(f"{field_name} must be a number between 0 and 100")
    if value < 0 or value > 100:
        raise InvalidInput(f"{field_name} must be between 0 and 100")
    if isinstance(value, float):
        if not value.is_integer():
            raise InvalidInput(f"{field_name} must be a whole number")
        value = int(value)
    return value


def validate_date_range(start_raw: Any, end_raw: Any) -> tuple:
    start_date = parse_calendar_date(start_raw, "start_date")
    end_date = parse_calendar_date(end_raw, "end_date")
    if end_date <= start_date:
        raise InvalidInput(
            "End date must be after start date.",
            hint="The period must span at least one day.",
        )
    return start_date, end_date


class FeasibilityEngine:
    def __init__(self, store: AllocationStore, config: Optional[EngineConfig] = None):
        self.store = store
        self.config = config or EngineConfig()
        self.availability = AvailabilityLedger(store)
        self.allocations = AllocationLedger(
            store,
            ceiling=self.config.capacity_ceiling,
            mode=self.config.capacity_check_mode,
        )

    # --- public entry points ----------------------------------------------

    def evaluate_create(self, payload: Mapping[str, Any]) -> Decision:
        try:
            candidate = self._structural_create(payload)
        except InvalidInput as e:
            return self._reject(e, action="create")
        return self._admit(candidate, exclude_allocation_id=None, action="create")

    def evaluate_update(self, allocation_id: int, changes: Mapping[str, Any]) -> Decision:
        existing = self.store.get_allocation(allocation_id)
        if existing is None:
            return self._reject(NotFound("Project allocation not found"), action="update")
        try:
            candidate = self._structural_update(existing, changes)
        except InvalidInput as e:
            return self._reject(e, action="update")
        return self._admit(candidate, exclude_allocation_id=allocation_id, action="update")

    # --- pipeline ------------------------------------------------------------

    def _structural_create(self, payload: Mapping[str, Any]) -> AllocationCandidate:
        missing = [name for name in REQUIRED_CREATE_FIELDS if payload.get(name) in (None, "")]
        if missing:
            raise InvalidInput(
                "Missing required fields: project_id, person_id, start_date, "
                "and end_date are required",
                details={"missing": missing},
            )

        percentage = payload.get("allocation_percentage")
        if percentage is None:
            percentage = self.config.default_allocation_percentage
        percentage = validate_percentage(percentage, "allocation_percentage")
        start_date, end_date = validate_date_range(payload["start_date"], payload["end_date"])

        return AllocationCandidate(
            project_id=payload["project_id"],
            person_id=payload["person_id"],
            allocation_percentage=percentage,
            start_date=start_date,
            end_date=end_date,
            role_in_project=payload.get("role_in_project") or None,
        )

    def _structural_update(
        self, existing: Allocation, changes: Mapping[str, Any]
    ) -> AllocationCandidate:
        provided = {name: changes[name] for name in UPDATABLE_FIELDS if name in changes}
        if not provided:
            raise InvalidInput("No fields provided to update")

        percentage = provided.get("allocation_percentage")
        if percentage is None:
            percentage = existing.allocation_percentage
        percentage = validate_percentage(percentage, "allocation_percentage")

        start_raw = provided.get("start_date") or existing.start_date
        end_raw = provided.get("end_date") or existing.end_date
        start_date, end_date = validate_date_range(start_raw, end_raw)

        role = provided["role_in_project"] if "role_in_project" in provided else existing.role_in_project

        return AllocationCandidate(
            project_id=existing.project_id,
            person_id=existing.person_id,
            allocation_percentage=percentage,
            start_date=start_date,
            end_date=end_date,
            role_in_project=role,
        )

    def _admit(
        self,
        candidate: AllocationCandidate,
        *,
        exclude_allocation_id: Optional[int],
        action: str,
    ) -> Decision:
        if self.store.get_project(candidate.project_id) is None:
            return self._reject(NotFound("Project not found"), candidate, action)
        if self.store.get_person(candidate.person_id) is None:
            return self._reject(NotFound("Personnel not found"), candidate, action)

        if self.allocations.has_duplicate_assignment(
            candidate.project_id,
            candidate.person_id,
            candidate.start_date,
            candidate.end_date,
            exclude_allocation_id=exclude_allocation_id,
        ):
            return self._reject(
                DuplicateAssignment(candidate.project_id, candidate.person_id),
                candidate,
                action,
            )

        availability = self.availability.check(
            candidate.person_id,
            candidate.start_date,
            candidate.end_date,
            candidate.allocation_percentage,
        )
        if not availability.available:
            return self._reject(
                InsufficientAvailability(
                    average_availability=availability.average_availability,
                    required=candidate.allocation_percentage,
                    conflicts=[c.to_dict() for c in availability.conflicts],
                ),
                candidate,
                action,
            )

        capacity = self.allocations.check_capacity(
            candidate.person_id,
            candidate.as_commitment(),
            exclude_allocation_id=exclude_allocation_id,
        )
        if capacity.exceeded:
            return self._reject(
                CapacityExceeded(
                    current=capacity.current,
                    requested=capacity.requested,
                    total=capacity.total,
                    max_allowed=capacity.max_allowed,
                ),
                candidate,
                action,
            )

        logger.info(
            "allocation_accepted",
            action=action,
            person_id=candidate.person_id,
            project_id=candidate.project_id,
            allocation_percentage=candidate.allocation_percentage,
        )
        return Decision(state=AdmissionState.ACCEPTED, candidate=candidate)

    def _reject(
        self,
        error: AllocationError,
        candidate: Optional[AllocationCandidate] = None,
        action: str = "create",
    ) -> Decision:
        logger.info(
            "allocation_rejected",
            action=action,
            reason=error.kind,
            person_id=candidate.person_id if candidate else None,
            project_id=candidate.project_id if candidate else None,
        )
        return Decision.rejected(error, candidate)
