# tests/conftest.py
import itertools
from contextlib import contextmanager
from datetime import date, datetime
from typing import Any, Dict, List, Optional

import pytest

from app.models import Allocation, AvailabilityWindow, Person, Project


class InMemoryStore:
    """
    Dict-backed stand-in for SqlAlchemyStore.

    Records are transient ORM instances, so services see the same attribute
    names they get from the database.
    """

    def __init__(self):
        self.people: Dict[int, Person] = {}
        self.projects: Dict[int, Project] = {}
        self.windows: Dict[int, AvailabilityWindow] = {}
        self.allocations: Dict[int, Allocation] = {}
        self._ids = itertools.count(1)
        self.commits = 0
        self.rollbacks = 0

    # --- seeding helpers ---

    def seed_person(self, name: str = "Alice", **fields: Any) -> Person:
        person = Person(id=next(self._ids), name=name, **fields)
        self.people[person.id] = person
        return person

    def seed_project(self, project_name: str = "Apollo") -> Project:
        project = Project(id=next(self._ids), project_name=project_name, status="Active")
        self.projects[project.id] = project
        return project

    def seed_window(self, person_id: int, start: date, end: date, pct: int) -> AvailabilityWindow:
        return self.add_availability(
            person_id=person_id, start_date=start, end_date=end, availability_percentage=pct
        )

    def seed_allocation(
        self, person_id: int, project_id: int, start: date, end: date, pct: int
    ) -> Allocation:
        return self.add_allocation(
            person_id=person_id,
            project_id=project_id,
            start_date=start,
            end_date=end,
            allocation_percentage=pct,
        )

    # --- AllocationStore ---

    def get_person(self, person_id: int) -> Optional[Person]:
        return self.people.get(person_id)

    def get_project(self, project_id: int) -> Optional[Project]:
        return self.projects.get(project_id)

    def list_people(self) -> List[Person]:
        return sorted(self.people.values(), key=lambda p: (p.name, p.id))

    def list_availability(self, person_id, start_date=None, end_date=None, exclude_id=None):
        result = []
        for w in self.windows.values():
            if w.person_id != person_id or w.id == exclude_id:
                continue
            if start_date is not None and end_date is not None:
                if not (w.start_date <= end_date and w.end_date >= start_date):
                    continue
            result.append(w)
        return sorted(result, key=lambda w: w.start_date)

    def get_availability(self, availability_id):
        return self.windows.get(availability_id)

    def add_availability(self, **fields):
        window = AvailabilityWindow(id=next(self._ids), **fields)
        self.windows[window.id] = window
        return window

    def update_availability(self, window, **changes):
        for name, value in changes.items():
            setattr(window, name, value)
        return window

    def delete_availability(self, window):
        del self.windows[window.id]

    def list_allocations(
        self, *, person_id=None, project_id=None, start_date=None, end_date=None, exclude_id=None
    ):
        result = []
        for a in self.allocations.values():
            if person_id is not None and a.person_id != person_id:
                continue
            if project_id is not None and a.project_id != project_id:
                continue
            if start_date is not None and a.end_date < start_date:
                continue
            if end_date is not None and a.start_date > end_date:
                continue
            if exclude_id is not None and a.id == exclude_id:
                continue
            result.append(a)
        return sorted(result, key=lambda a: (a.start_date, a.id))

    def get_allocation(self, allocation_id):
        return self.allocations.get(allocation_id)

    def add_allocation(self, **fields):
        now = datetime.utcnow()
        allocation = Allocation(id=next(self._ids), created_at=now, updated_at=now, **fields)
        self.allocations[allocation.id] = allocation
        return allocation

    def update_allocation(self, allocation, **changes):
        for name, value in changes.items():
            setattr(allocation, name, value)
        return allocation

    def delete_allocation(self, allocation):
        del self.allocations[allocation.id]

    @contextmanager
    def serialized(self, person_id):
        try:
            yield
        except Exception:
            self.rollbacks += 1
            raise
        else:
            self.commits += 1


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore()
