# app/services/allocation_ledger.py
from collections import defaultdict
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Dict, List, Optional, Protocol, Sequence

from app.models.allocation import Allocation
from app.services.data_access import AllocationStore
from app.services.intervals import overlaps

PAIRWISE = "pairwise"
SWEEP = "sweep"


class Commitment(Protocol):
    start_date: date
    end_date: date
    allocation_percentage: int


@dataclass
class ProposedCommitment:
    """A not-yet-persisted allocation as seen by the capacity check."""

    start_date: date
    end_date: date
    allocation_percentage: int


@dataclass
class CapacityCheck:
    exceeded: bool
    current: int
    requested: int
    total: int
    max_allowed: int


def would_exceed_capacity(
    candidate: Commitment,
    existing: Sequence[Commitment],
    ceiling: int = 100,
) -> bool:
    """
    Pairwise capacity check over the candidate plus the existing commitments.

    For each entry, its own percentage plus that of every other entry whose
    range overlaps it must stay within `ceiling`. Exact whenever at most two
    commitments share a day; with three or more overlapping in staggered
    patterns it can misjudge the true daily load (see `peak_concurrent_load`).
    """
    entries = [candidate, *existing]
    for i, entry in enumerate(entries):
        total = entry.allocation_percentage
        for j, other in enumerate(entries):
            if i == j:
                continue
            if overlaps(entry.start_date, entry.end_date, other.start_date, other.end_date):
                total += other.allocation_percentage
        if total > ceiling:
            return True
    return False


def peak_concurrent_load(candidate: Commitment, existing: Sequence[Commitment]) -> int:
    """
    Highest per-day sum of percentages on any day the candidate covers,
    computed with a sweep over start / end+1 events.
    """
    deltas: Dict[date, int] = defaultdict(int)
    for entry in [candidate, *existing]:
        start = max(entry.start_date, candidate.start_date)
        end = min(entry.end_date, candidate.end_date)
        if start > end:
            continue
        deltas[start] += entry.allocation_percentage
        deltas[end + timedelta(days=1)] -= entry.allocation_percentage

    peak = 0
    running = 0
    for day in sorted(deltas):
        running += deltas[day]
        peak = max(peak, running)
    return peak


def capacity_breakdown(
    candidate: Commitment,
    existing: Sequence[Commitment],
    ceiling: int = 100,
    mode: str = PAIRWISE,
) -> CapacityCheck:
    requested = candidate.allocation_percentage
    if mode == SWEEP:
        total = peak_concurrent_load(candidate, existing)
        exceeded = total > ceiling
    else:
        current = sum(
            other.allocation_percentage
            for other in existing
            if overlaps(candidate.start_date, candidate.end_date, other.start_date, other.end_date)
        )
        total = current + requested
        exceeded = would_exceed_capacity(candidate, existing, ceiling)
    return CapacityCheck(
        exceeded=exceeded,
        current=total - requested,
        requested=requested,
        total=total,
        max_allowed=ceiling,
    )


class AllocationLedger:
    """Per-person project commitments and the load they put on a date range."""

    def __init__(self, store: AllocationStore, ceiling: int = 100, mode: str = PAIRWISE):
        if mode not in (PAIRWISE, SWEEP):
            raise ValueError(f"unknown capacity check mode: {mode}")
        self.store = store
        self.ceiling = ceiling
        self.mode = mode

    def overlapping(
        self,
        person_id: int,
        start_date: date,
        end_date: date,
        exclude_allocation_id: Optional[int] = None,
    ) -> List[Allocation]:
        return self.store.list_allocations(
            person_id=person_id,
            start_date=start_date,
            end_date=end_date,
            exclude_id=exclude_allocation_id,
        )

    def has_duplicate_assignment(
        self,
        project_id: int,
        person_id: int,
        start_date: date,
        end_date: date,
        exclude_allocation_id: Optional[int] = None,
    ) -> bool:
        matches = self.store.list_allocations(
            person_id=person_id,
            project_id=project_id,
            start_date=start_date,
            end_date=end_date,
            exclude_id=exclude_allocation_id,
        )
        return len(matches) > 0

    def check_capacity(
        self,
        person_id: int,
        candidate: Commitment,
        exclude_allocation_id: Optional[int] = None,
    ) -> CapacityCheck:
        existing = self.overlapping(
            person_id,
            candidate.start_date,
            candidate.end_date,
            exclude_allocation_id=exclude_allocation_id,
        )
        return capacity_breakdown(candidate, existing, ceiling=self.ceiling, mode=self.mode)
