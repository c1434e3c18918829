# app/services/utilization_service.py
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Callable, Dict, List, Optional

from app.config import EngineConfig
from app.models.allocation import Allocation
from app.models.person import Person
from app.services.allocation_ledger import AllocationLedger
from app.services.availability_ledger import AvailabilityLedger
from app.services.data_access import AllocationStore
from app.services.errors import InvalidInput, NotFound
from app.services.intervals import (
    add_months,
    intersection_days,
    month_buckets,
    overlaps,
    parse_calendar_date,
    parse_optional_date,
    round_half_up,
    span_days,
)


@dataclass
class PersonnelUtilization:
    person: Person
    allocations: List[Allocation]
    percentage: int
    total_allocated_days: int
    total_days: Optional[int]
    available_capacity: int

    def summary(self) -> Dict[str, Any]:
        return {
            "percentage": self.percentage,
            "total_allocated_days": self.total_allocated_days,
            "total_days": self.total_days,
            "available_capacity": self.available_capacity,
        }


@dataclass
class MonthlyUtilization:
    month: str
    month_label: str
    utilization: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "month": self.month,
            "month_label": self.month_label,
            "utilization": self.utilization,
        }


@dataclass
class PersonTimeline:
    person: Person
    allocations: List[Allocation]
    utilization_by_month: List[MonthlyUtilization] = field(default_factory=list)
    total_utilization: int = 0


@dataclass
class TeamUtilization:
    start_date: date
    end_date: date
    people: List[PersonTimeline]


AVAILABLE = "Available"
FULLY_ALLOCATED = "Fully allocated"
OVER_ALLOCATED = "Over-allocated"
PARTIALLY_ALLOCATED = "Partially allocated"
NOT_ALLOCATED = "Not allocated"


@dataclass
class RemainingCapacity:
    person: Person
    availability_percentage: int
    current_allocation_percentage: int
    remaining_capacity: int
    allocations: List[Allocation] = field(default_factory=list)

    @property
    def availability_status(self) -> str:
        return AVAILABLE if self.remaining_capacity > 0 else FULLY_ALLOCATED


@dataclass
class PersonWorkload:
    person: Person
    allocations: List[Allocation]
    total_allocation_percentage: int
    allocation_status: str

    @property
    def active_project_count(self) -> int:
        return len({a.project_id for a in self.allocations})


def allocation_status(total: int, ceiling: int = 100) -> str:
    if total > ceiling:
        return OVER_ALLOCATED
    if total == ceiling:
        return FULLY_ALLOCATED
    if total > 0:
        return PARTIALLY_ALLOCATED
    return NOT_ALLOCATED


class UtilizationReporter:
    """
    Read-only utilization figures built from allocation records.

    `today` is injectable so "current and future" is deterministic in tests.
    """

    def __init__(
        self,
        store: AllocationStore,
        config: Optional[EngineConfig] = None,
        today: Callable[[], date] = date.today,
    ):
        self.store = store
        self.config = config or EngineConfig()
        self.today = today
        self.availability = AvailabilityLedger(store)
        self.allocations = AllocationLedger(
            store,
            ceiling=self.config.capacity_ceiling,
            mode=self.config.capacity_check_mode,
        )

    def personnel_utilization(
        self,
        person_id: int,
        start_date: Optional[Any] = None,
        end_date: Optional[Any] = None,
    ) -> PersonnelUtilization:
        """
        Day-weighted utilization for one person.

        With both bounds, every overlapping allocation contributes its
        percentage for the days it shares with the range, divided by the
        range length. Without a range, the window runs from the earliest
        start to the latest end among allocations that have not ended yet.
        Over-allocation is reported as-is, never capped.
        """
        person = self.store.get_person(person_id)
        if person is None:
            raise NotFound("Personnel not found")

        start = parse_optional_date(start_date, "start_date")
        end = parse_optional_date(end_date, "end_date")

        if start is not None and end is not None:
            if end < start:
                raise InvalidInput("end_date must not be before start_date")
            allocations = self.store.list_allocations(
                person_id=person_id, start_date=start, end_date=end
            )
            total_days = span_days(start, end)
            weighted_sum = 0
            allocated_days = 0
            for allocation in allocations:
                days = intersection_days(allocation.start_date, allocation.end_date, start, end)
                weighted_sum += days * allocation.allocation_percentage
                allocated_days += days
            return self._build(person, allocations, weighted_sum, allocated_days, total_days)

        allocations = self.store.list_allocations(person_id=person_id)
        today = self.today()
        relevant = [a for a in allocations if a.end_date >= today]
        if not relevant:
            return self._build(person, allocations, 0, 0, None)

        window_start = min(a.start_date for a in relevant)
        window_end = max(a.end_date for a in relevant)
        weighted_sum = 0
        allocated_days = 0
        for allocation in relevant:
            days = span_days(allocation.start_date, allocation.end_date)
            weighted_sum += days * allocation.allocation_percentage
            allocated_days += days
        return self._build(
            person,
            allocations,
            weighted_sum,
            allocated_days,
            span_days(window_start, window_end),
        )

    def team_utilization_by_month(self, horizon_months: Optional[int] = None) -> TeamUtilization:
        """
        Per-person monthly load from today to today + horizon_months.

        A month's figure is the plain sum of the percentages of every
        allocation touching that calendar month, clamped at the display cap.
        People without allocations in the horizon get all-zero months.
        """
        if horizon_months is None:
            horizon_months = self.config.default_horizon_months
        if horizon_months < 0:
            raise InvalidInput("months must be zero or a positive number")

        window_start = self.today()
        window_end = add_months(window_start, horizon_months)
        cap = self.config.utilization_display_cap

        timelines: List[PersonTimeline] = []
        for person in self.store.list_people():
            allocations = self.store.list_allocations(
                person_id=person.id, start_date=window_start, end_date=window_end
            )

            months: List[MonthlyUtilization] = []
            for step, first_day, last_day in month_buckets(window_start, window_end):
                load = sum(
                    a.allocation_percentage
                    for a in allocations
                    if overlaps(a.start_date, a.end_date, first_day, last_day)
                )
                months.append(
                    MonthlyUtilization(
                        month=step.strftime("%Y-%m"),
                        month_label=step.strftime("%b %Y"),
                        utilization=min(load, cap),
                    )
                )

            total = round_half_up(sum(m.utilization for m in months) / len(months)) if months else 0
            timelines.append(
                PersonTimeline(
                    person=person,
                    allocations=allocations,
                    utilization_by_month=months,
                    total_utilization=total,
                )
            )

        return TeamUtilization(start_date=window_start, end_date=window_end, people=timelines)

    def remaining_capacity(
        self,
        start_date: Any,
        end_date: Any,
        include_unavailable: bool = False,
    ) -> List[RemainingCapacity]:
        """
        Capacity each person still has over [start_date, end_date].

        Effective availability over the range minus the summed percentages
        of every allocation overlapping it. By default only people with
        capacity left are returned, most capacity first.
        """
        if start_date in (None, "") or end_date in (None, ""):
            raise InvalidInput("start_date and end_date are required")
        start = parse_calendar_date(start_date, "start_date")
        end = parse_calendar_date(end_date, "end_date")
        if end < start:
            raise InvalidInput("end_date must not be before start_date")

        results: List[RemainingCapacity] = []
        for person in self.store.list_people():
            availability = self.availability.effective_availability(person.id, start, end)
            allocations = self.allocations.overlapping(person.id, start, end)
            committed = sum(a.allocation_percentage for a in allocations)
            entry = RemainingCapacity(
                person=person,
                availability_percentage=availability.percentage,
                current_allocation_percentage=committed,
                remaining_capacity=availability.percentage - committed,
                allocations=allocations,
            )
            if include_unavailable or entry.remaining_capacity > 0:
                results.append(entry)

        # list_people is name-ordered and sort is stable
        return sorted(results, key=lambda r: r.remaining_capacity, reverse=True)

    def workload(self, on: Optional[Any] = None) -> List[PersonWorkload]:
        """Load per person on a single day (default today), heaviest first."""
        day = parse_optional_date(on, "date") or self.today()

        results: List[PersonWorkload] = []
        for person in self.store.list_people():
            allocations = self.allocations.overlapping(person.id, day, day)
            total = sum(a.allocation_percentage for a in allocations)
            results.append(
                PersonWorkload(
                    person=person,
                    allocations=allocations,
                    total_allocation_percentage=total,
                    allocation_status=allocation_status(total, self.config.capacity_ceiling),
                )
            )

        return sorted(results, key=lambda w: w.total_allocation_percentage, reverse=True)

    def _build(
        self,
        person: Person,
        allocations: List[Allocation],
        weighted_sum: int,
        allocated_days: int,
        total_days: Optional[int],
    ) -> PersonnelUtilization:
        percentage = round_half_up(weighted_sum / total_days) if total_days else 0
        return PersonnelUtilization(
            person=person,
            allocations=allocations,
            percentage=percentage,
            total_allocated_days=allocated_days,
            total_days=total_days,
            available_capacity=self.config.capacity_ceiling - percentage,
        )
