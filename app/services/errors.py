# app/services/errors.py
from typing import Any, Dict, List, Optional


class AllocationError(Exception):
    """
    Base class for every rejection the allocation services produce.

    Each subclass carries a machine-readable `kind`, the HTTP status the
    routers map it to, a human-readable message and an optional detail
    payload so a client can render the problem without another request.
    """

    kind = "error"
    status_code = 500

    def __init__(
        self,
        message: str,
        *,
        hint: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.hint = hint
        self.details = details

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"kind": self.kind, "message": self.message}
        if self.hint:
            payload["hint"] = self.hint
        if self.details is not None:
            payload["details"] = self.details
        return payload


class InvalidInput(AllocationError, ValueError):
    kind = "invalid_input"
    status_code = 400


class NotFound(AllocationError):
    kind = "not_found"
    status_code = 404


class Conflict(AllocationError):
    kind = "conflict"
    status_code = 409


class DuplicateAssignment(Conflict):
    kind = "duplicate_assignment"

    def __init__(self, project_id: int, person_id: int):
        super().__init__(
            "This person is already allocated to this project during the specified dates.",
            hint="Check the project team roster or update the existing allocation instead of creating a new one.",
            details={"project_id": project_id, "person_id": person_id},
        )


class InsufficientAvailability(Conflict):
    kind = "insufficient_availability"

    def __init__(
        self,
        average_availability: int,
        required: int,
        conflicts: List[Dict[str, Any]],
    ):
        super().__init__(
            f"Cannot allocate: Personnel availability is {average_availability}%, "
            f"but {required}% allocation requested.",
            hint=(
                f"The person is only {average_availability}% available during this period. "
                "Either reduce the allocation percentage or update their availability."
            ),
            details={
                "average_availability": average_availability,
                "required": required,
                "conflicts": conflicts,
            },
        )
        self.average_availability = average_availability
        self.required = required
        self.conflicts = conflicts


class CapacityExceeded(Conflict):
    kind = "capacity_exceeded"

    def __init__(self, current: int, requested: int, total: int, max_allowed: int):
        super().__init__(
            f"Over-allocation detected: This would result in {total}% total allocation "
            f"(exceeds {max_allowed}% limit).",
            hint=(
                f"Current allocations: {current}% + Requested: {requested}% = {total}%. "
                "Consider reducing allocation percentage or adjusting dates."
            ),
            details={
                "current_allocation": current,
                "requested_allocation": requested,
                "total_allocation": total,
                "max_allowed": max_allowed,
            },
        )
        self.current = current
        self.requested = requested
        self.total = total
        self.max_allowed = max_allowed


class AvailabilityOverlap(Conflict):
    kind = "overlap"

    def __init__(self, person_id: int, overlapping_ids: List[int]):
        super().__init__(
            "Availability period overlaps with existing availability periods. "
            "Please update or delete the existing period first.",
            details={"person_id": person_id, "overlapping_ids": overlapping_ids},
        )
