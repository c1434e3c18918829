# app/services/availability_service.py
from dataclasses import dataclass
from datetime import date
from typing import Any, List, Mapping, Optional

from app.config import EngineConfig
from app.log_config import get_logger
from app.models.availability_window import AvailabilityWindow
from app.models.person import Person
from app.services.availability_ledger import AvailabilityLedger
from app.services.data_access import AllocationStore
from app.services.errors import AvailabilityOverlap, InvalidInput, NotFound
from app.services.feasibility import validate_date_range, validate_percentage
from app.services.intervals import parse_optional_date

logger = get_logger(__name__)

UPDATABLE_FIELDS = ("start_date", "end_date", "availability_percentage", "notes")


@dataclass
class PersonAvailability:
    person: Person
    windows: List[AvailabilityWindow]
    total_availability_percentage: Optional[int] = None


def create_availability(
    store: AllocationStore,
    payload: Mapping[str, Any],
    config: Optional[EngineConfig] = None,
) -> AvailabilityWindow:
    """
    Record an availability window for a person.

    Behavior:
    - Percentage defaults to the configured availability default (100).
    - Rejects windows that overlap any existing window of the same person;
      existing windows must be updated or deleted first.

    Existing allocations are not re-checked against the new window.
    """
    config = config or EngineConfig()

    person_id = payload.get("person_id")
    if person_id is None or not payload.get("start_date") or not payload.get("end_date"):
        raise InvalidInput(
            "Missing required fields: person_id, start_date, and end_date are required"
        )

    percentage = payload.get("availability_percentage")
    if percentage is None:
        percentage = config.default_availability_percentage
    percentage = validate_percentage(percentage, "availability_percentage")
    start_date, end_date = validate_date_range(payload["start_date"], payload["end_date"])

    if store.get_person(person_id) is None:
        raise NotFound("Personnel not found")

    ledger = AvailabilityLedger(store)

    with store.serialized(person_id):
        overlapping = ledger.overlapping_windows(person_id, start_date, end_date)
        if overlapping:
            raise AvailabilityOverlap(person_id, [w.id for w in overlapping])

        window = store.add_availability(
            person_id=person_id,
            start_date=start_date,
            end_date=end_date,
            availability_percentage=percentage,
            notes=payload.get("notes") or None,
        )

    logger.info("availability_created", availability_id=window.id, person_id=person_id)
    return window


def update_availability(
    store: AllocationStore,
    availability_id: int,
    changes: Mapping[str, Any],
) -> AvailabilityWindow:
    existing = store.get_availability(availability_id)
    if existing is None:
        raise NotFound("Availability period not found")

    provided = {name: changes[name] for name in UPDATABLE_FIELDS if name in changes}
    if not provided:
        raise InvalidInput("No fields provided to update")

    percentage = provided.get("availability_percentage")
    if percentage is None:
        percentage = existing.availability_percentage
    percentage = validate_percentage(percentage, "availability_percentage")

    start_date, end_date = validate_date_range(
        provided.get("start_date") or existing.start_date,
        provided.get("end_date") or existing.end_date,
    )

    ledger = AvailabilityLedger(store)

    with store.serialized(existing.person_id):
        overlapping = ledger.overlapping_windows(
            existing.person_id, start_date, end_date, exclude_id=availability_id
        )
        if overlapping:
            raise AvailabilityOverlap(existing.person_id, [w.id for w in overlapping])

        window = store.update_availability(
            existing,
            start_date=start_date,
            end_date=end_date,
            availability_percentage=percentage,
            notes=provided["notes"] if "notes" in provided else existing.notes,
        )

    logger.info("availability_updated", availability_id=availability_id)
    return window


def delete_availability(store: AllocationStore, availability_id: int) -> None:
    existing = store.get_availability(availability_id)
    if existing is None:
        raise NotFound("Availability period not found")

    with store.serialized(existing.person_id):
        store.delete_availability(existing)

    logger.info("availability_deleted", availability_id=availability_id)


def get_person_availability(
    store: AllocationStore,
    person_id: int,
    start_date: Optional[Any] = None,
    end_date: Optional[Any] = None,
) -> PersonAvailability:
    """
    The person's windows, filtered to [start_date, end_date] when both are
    given, along with the effective availability over that range.
    """
    person = store.get_person(person_id)
    if person is None:
        raise NotFound("Personnel not found")

    start: Optional[date] = parse_optional_date(start_date, "start_date")
    end: Optional[date] = parse_optional_date(end_date, "end_date")

    if start is None or end is None:
        return PersonAvailability(person=person, windows=store.list_availability(person_id))

    if end < start:
        raise InvalidInput("end_date must not be before start_date")

    effective = AvailabilityLedger(store).effective_availability(person_id, start, end)
    return PersonAvailability(
        person=person,
        windows=effective.covering_windows,
        total_availability_percentage=effective.percentage,
    )
