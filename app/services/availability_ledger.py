# app/services/availability_ledger.py
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, List, Optional, Sequence

from app.models.availability_window import AvailabilityWindow
from app.services.data_access import AllocationStore
from app.services.intervals import intersection_days, round_half_up, span_days

FULLY_AVAILABLE = 100


@dataclass
class EffectiveAvailability:
    percentage: int
    covering_windows: List[AvailabilityWindow] = field(default_factory=list)


@dataclass
class AvailabilityConflict:
    window: AvailabilityWindow
    message: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "period": {
                "id": self.window.id,
                "start_date": self.window.start_date.isoformat(),
                "end_date": self.window.end_date.isoformat(),
                "availability_percentage": self.window.availability_percentage,
            },
            "conflict": self.message,
        }


@dataclass
class AvailabilityCheck:
    available: bool
    average_availability: int
    conflicts: List[AvailabilityConflict]


def weighted_availability(
    windows: Sequence[AvailabilityWindow], start_date: date, end_date: date
) -> int:
    """
    Day-weighted average of the windows' percentages over [start_date, end_date].

    Days no window covers still count in the denominator, so partial
    coverage lowers the figure instead of defaulting the gap to 100%.
    """
    total_days = span_days(start_date, end_date)
    weighted_sum = 0
    for window in windows:
        days = intersection_days(window.start_date, window.end_date, start_date, end_date)
        weighted_sum += days * window.availability_percentage
    return round_half_up(weighted_sum / total_days)


class AvailabilityLedger:
    """Per-person availability windows and the availability they imply over a range."""

    def __init__(self, store: AllocationStore):
        self.store = store

    def overlapping_windows(
        self,
        person_id: int,
        start_date: date,
        end_date: date,
        exclude_id: Optional[int] = None,
    ) -> List[AvailabilityWindow]:
        return self.store.list_availability(
            person_id, start_date=start_date, end_date=end_date, exclude_id=exclude_id
        )

    def effective_availability(
        self, person_id: int, start_date: date, end_date: date
    ) -> EffectiveAvailability:
        windows = self.overlapping_windows(person_id, start_date, end_date)
        if not windows:
            return EffectiveAvailability(percentage=FULLY_AVAILABLE)
        return EffectiveAvailability(
            percentage=weighted_availability(windows, start_date, end_date),
            covering_windows=windows,
        )

    def find_conflicts(
        self,
        person_id: int,
        start_date: date,
        end_date: date,
        required_percentage: int,
    ) -> List[AvailabilityConflict]:
        """
        Windows whose own percentage is below what is required, regardless of
        whether the weighted average passes.
        """
        windows = self.overlapping_windows(person_id, start_date, end_date)
        return _conflicts_among(windows, required_percentage)

    def check(
        self,
        person_id: int,
        start_date: date,
        end_date: date,
        required_percentage: int,
    ) -> AvailabilityCheck:
        effective = self.effective_availability(person_id, start_date, end_date)
        return AvailabilityCheck(
            available=effective.percentage >= required_percentage,
            average_availability=effective.percentage,
            conflicts=_conflicts_among(effective.covering_windows, required_percentage),
        )


def _conflicts_among(
    windows: Sequence[AvailabilityWindow], required_percentage: int
) -> List[AvailabilityConflict]:
    return [
        AvailabilityConflict(
            window=window,
            message=(
                f"Available only {window.availability_percentage}% "
                f"but {required_percentage}% required"
            ),
        )
        for window in windows
        if window.availability_percentage < required_percentage
    ]
