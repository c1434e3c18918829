# app/services/allocation_service.py
from typing import Any, List, Mapping, Optional, Tuple

from app.config import EngineConfig
from app.log_config import get_logger
from app.models.allocation import Allocation
from app.models.person import Person
from app.models.project import Project
from app.services.data_access import AllocationStore
from app.services.errors import NotFound
from app.services.feasibility import FeasibilityEngine

logger = get_logger(__name__)


def create_allocation(
    store: AllocationStore,
    payload: Mapping[str, Any],
    config: Optional[EngineConfig] = None,
) -> Allocation:
    """
    Admit and persist a new allocation.

    The feasibility check and the insert run inside the person's serialized
    scope, so two concurrent requests for the same person are decided one
    after the other. Raises the rejection error when the engine rejects.
    """
    engine = FeasibilityEngine(store, config)

    person_id = payload.get("person_id")
    if person_id is None or store.get_person(person_id) is None:
        # Unresolvable person: nothing to serialize against, the engine rejects it
        engine.evaluate_create(payload).raise_for_rejection()

    with store.serialized(person_id):
        candidate = engine.evaluate_create(payload).raise_for_rejection()
        allocation = store.add_allocation(**candidate.to_fields())

    logger.info(
        "allocation_created",
        allocation_id=allocation.id,
        person_id=allocation.person_id,
        project_id=allocation.project_id,
    )
    return allocation


def update_allocation(
    store: AllocationStore,
    allocation_id: int,
    changes: Mapping[str, Any],
    config: Optional[EngineConfig] = None,
) -> Allocation:
    """
    Re-validate the allocation merged with `changes` (ignoring itself) and
    apply it when accepted.
    """
    existing = store.get_allocation(allocation_id)
    if existing is None:
        raise NotFound("Project allocation not found")

    engine = FeasibilityEngine(store, config)

    with store.serialized(existing.person_id):
        candidate = engine.evaluate_update(allocation_id, changes).raise_for_rejection()
        allocation = store.update_allocation(
            existing,
            allocation_percentage=candidate.allocation_percentage,
            start_date=candidate.start_date,
            end_date=candidate.end_date,
            role_in_project=candidate.role_in_project,
        )

    logger.info("allocation_updated", allocation_id=allocation_id, person_id=allocation.person_id)
    return allocation


def delete_allocation(store: AllocationStore, allocation_id: int) -> None:
    existing = store.get_allocation(allocation_id)
    if existing is None:
        raise NotFound("Project allocation not found")

    with store.serialized(existing.person_id):
        store.delete_allocation(existing)

    logger.info("allocation_deleted", allocation_id=allocation_id)


def get_allocation(store: AllocationStore, allocation_id: int) -> Allocation:
    allocation = store.get_allocation(allocation_id)
    if allocation is None:
        raise NotFound("Allocation not found")
    return allocation


def list_allocations(
    store: AllocationStore,
    *,
    project_id: Optional[int] = None,
    person_id: Optional[int] = None,
) -> List[Allocation]:
    allocations = store.list_allocations(project_id=project_id, person_id=person_id)
    return sorted(allocations, key=lambda a: (a.created_at, a.id), reverse=True)


def list_person_allocations(
    store: AllocationStore, person_id: int
) -> Tuple[Person, List[Allocation]]:
    person = store.get_person(person_id)
    if person is None:
        raise NotFound("Personnel not found")
    allocations = store.list_allocations(person_id=person_id)
    return person, sorted(allocations, key=lambda a: (a.start_date, a.id), reverse=True)


def project_team(
    store: AllocationStore, project_id: int
) -> Tuple[Project, List[Allocation]]:
    """Allocations of one project, newest first."""
    project = store.get_project(project_id)
    if project is None:
        raise NotFound("Project not found")
    allocations = store.list_allocations(project_id=project_id)
    return project, sorted(allocations, key=lambda a: (a.created_at, a.id), reverse=True)
