# app/services/data_access.py
import threading
import weakref
from contextlib import contextmanager
from datetime import date
from typing import Any, ContextManager, Iterator, List, Optional, Protocol

from sqlalchemy.orm import Session

from app.models.allocation import Allocation
from app.models.availability_window import AvailabilityWindow
from app.models.person import Person
from app.models.project import Project


class AllocationStore(Protocol):
    """
    Everything the ledgers, the feasibility engine and the reports need from
    persistence. Services receive a store at construction time so tests can
    hand them an in-memory double.
    """

    def get_person(self, person_id: int) -> Optional[Person]: ...

    def get_project(self, project_id: int) -> Optional[Project]: ...

    def list_people(self) -> List[Person]: ...

    def list_availability(
        self,
        person_id: int,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        exclude_id: Optional[int] = None,
    ) -> List[AvailabilityWindow]: ...

    def get_availability(self, availability_id: int) -> Optional[AvailabilityWindow]: ...

    def add_availability(self, **fields: Any) -> AvailabilityWindow: ...

    def update_availability(self, window: AvailabilityWindow, **changes: Any) -> AvailabilityWindow: ...

    def delete_availability(self, window: AvailabilityWindow) -> None: ...

    def list_allocations(
        self,
        *,
        person_id: Optional[int] = None,
        project_id: Optional[int] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        exclude_id: Optional[int] = None,
    ) -> List[Allocation]: ...

    def get_allocation(self, allocation_id: int) -> Optional[Allocation]: ...

    def add_allocation(self, **fields: Any) -> Allocation: ...

    def update_allocation(self, allocation: Allocation, **changes: Any) -> Allocation: ...

    def delete_allocation(self, allocation: Allocation) -> None: ...

    def serialized(self, person_id: int) -> ContextManager[None]: ...


# One lock per person id, dropped once no request holds it. SQLite ignores
# FOR UPDATE, so within a single process this is what keeps two admissions
# for the same person apart.
_person_locks: "weakref.WeakValueDictionary[int, threading.Lock]" = weakref.WeakValueDictionary()
_person_locks_guard = threading.Lock()


def _lock_for(person_id: int) -> threading.Lock:
    with _person_locks_guard:
        lock = _person_locks.get(person_id)
        if lock is None:
            lock = threading.Lock()
            _person_locks[person_id] = lock
        return lock


class SqlAlchemyStore:
    """
    AllocationStore backed by a SQLAlchemy session.

    Writes only flush; the surrounding `serialized()` scope commits them, so a
    rejected admission never leaves partial state behind.
    """

    def __init__(self, db: Session):
        self.db = db

    # --- people / projects -------------------------------------------------

    def get_person(self, person_id: int) -> Optional[Person]:
        return self.db.query(Person).filter_by(id=person_id).first()

    def get_project(self, project_id: int) -> Optional[Project]:
        return self.db.query(Project).filter_by(id=project_id).first()

    def list_people(self) -> List[Person]:
        return self.db.query(Person).order_by(Person.name.asc(), Person.id.asc()).all()

    # --- availability windows ---------------------------------------------

    def list_availability(
        self,
        person_id: int,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        exclude_id: Optional[int] = None,
    ) -> List[AvailabilityWindow]:
        query = self.db.query(AvailabilityWindow).filter(
            AvailabilityWindow.person_id == person_id
        )
        if start_date is not None and end_date is not None:
            query = query.filter(
                AvailabilityWindow.start_date <= end_date,
                AvailabilityWindow.end_date >= start_date,
            )
        if exclude_id is not None:
            query = query.filter(AvailabilityWindow.id != exclude_id)
        return query.order_by(AvailabilityWindow.start_date.asc()).all()

    def get_availability(self, availability_id: int) -> Optional[AvailabilityWindow]:
        return self.db.query(AvailabilityWindow).filter_by(id=availability_id).first()

    def add_availability(self, **fields: Any) -> AvailabilityWindow:
        window = AvailabilityWindow(**fields)
        self.db.add(window)
        self.db.flush()
        return window

    def update_availability(self, window: AvailabilityWindow, **changes: Any) -> AvailabilityWindow:
        for name, value in changes.items():
            setattr(window, name, value)
        self.db.flush()
        return window

    def delete_availability(self, window: AvailabilityWindow) -> None:
        self.db.delete(window)
        self.db.flush()

    # --- allocations -------------------------------------------------------

    def list_allocations(
        self,
        *,
        person_id: Optional[int] = None,
        project_id: Optional[int] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        exclude_id: Optional[int] = None,
    ) -> List[Allocation]:
        query = self.db.query(Allocation)
        if person_id is not None:
            query = query.filter(Allocation.person_id == person_id)
        if project_id is not None:
            query = query.filter(Allocation.project_id == project_id)
        if start_date is not None:
            query = query.filter(Allocation.end_date >= start_date)
        if end_date is not None:
            query = query.filter(Allocation.start_date <= end_date)
        if exclude_id is not None:
            query = query.filter(Allocation.id != exclude_id)
        return query.order_by(Allocation.start_date.asc(), Allocation.id.asc()).all()

    def get_allocation(self, allocation_id: int) -> Optional[Allocation]:
        return self.db.query(Allocation).filter_by(id=allocation_id).first()

    def add_allocation(self, **fields: Any) -> Allocation:
        allocation = Allocation(**fields)
        self.db.add(allocation)
        self.db.flush()
        return allocation

    def update_allocation(self, allocation: Allocation, **changes: Any) -> Allocation:
        for name, value in changes.items():
            setattr(allocation, name, value)
        self.db.flush()
        return allocation

    def delete_allocation(self, allocation: Allocation) -> None:
        self.db.delete(allocation)
        self.db.flush()

    # --- transactions ------------------------------------------------------

    @contextmanager
    def serialized(self, person_id: int) -> Iterator[None]:
        """
        Read-decide-write scope for one person.

        Holds the in-process lock for `person_id` and row-locks the person
        (FOR UPDATE on databases that support it) so concurrent admissions
        cannot both pass the capacity check. Commits on success, rolls back
        on any exception.
        """
        lock = _lock_for(person_id)
        with lock:
            self.db.query(Person).filter(Person.id == person_id).with_for_update().first()
            try:
                yield
            except Exception:
                self.db.rollback()
                raise
            else:
                self.db.commit()
