# tests/test_allocation_ledger.py
from datetime import date

import pytest

from app.services.allocation_ledger import (
    AllocationLedger,
    ProposedCommitment,
    capacity_breakdown,
    peak_concurrent_load,
    would_exceed_capacity,
)


def _c(start, end, pct):
    return ProposedCommitment(start_date=start, end_date=end, allocation_percentage=pct)


JAN_1, JAN_10, JAN_15, JAN_20, JAN_31 = (
    date(2025, 1, 1),
    date(2025, 1, 10),
    date(2025, 1, 15),
    date(2025, 1, 20),
    date(2025, 1, 31),
)


def test_two_overlapping_commitments_over_capacity():
    existing = [_c(JAN_1, JAN_31, 60)]
    candidate = _c(JAN_15, date(2025, 2, 15), 50)

    assert would_exceed_capacity(candidate, existing) is True

    check = capacity_breakdown(candidate, existing)
    assert check.exceeded is True
    assert (check.current, check.requested, check.total, check.max_allowed) == (60, 50, 110, 100)


def test_exactly_full_capacity_is_allowed():
    assert would_exceed_capacity(_c(JAN_1, JAN_31, 40), [_c(JAN_1, JAN_31, 60)]) is False


def test_single_shared_day_counts_as_overlap():
    assert would_exceed_capacity(_c(JAN_15, JAN_31, 50), [_c(JAN_1, JAN_15, 60)]) is True


def test_disjoint_commitments_never_add_up():
    existing = [_c(JAN_1, JAN_10, 90)]
    candidate = _c(JAN_15, JAN_31, 90)

    assert would_exceed_capacity(candidate, existing) is False
    assert capacity_breakdown(candidate, existing).total == 90


def test_pairwise_check_overcounts_staggered_triples():
    # A and B never share a day, so the true daily peak is 80%,
    # but both overlap the candidate and get summed together.
    existing = [_c(JAN_1, JAN_10, 40), _c(JAN_20, JAN_31, 40)]
    candidate = _c(JAN_1, JAN_31, 40)

    assert would_exceed_capacity(candidate, existing) is True
    assert peak_concurrent_load(candidate, existing) == 80
    assert capacity_breakdown(candidate, existing, mode="sweep").exceeded is False


def test_sweep_finds_true_daily_peak():
    existing = [_c(JAN_1, JAN_20, 40), _c(JAN_10, JAN_31, 40)]
    candidate = _c(JAN_1, JAN_31, 30)

    check = capacity_breakdown(candidate, existing, mode="sweep")

    assert check.exceeded is True
    assert check.total == 110
    assert check.current == 80
    assert check.requested == 30


def test_sweep_ignores_load_outside_candidate_range():
    existing = [_c(date(2024, 12, 1), date(2024, 12, 31), 100), _c(JAN_1, JAN_31, 50)]
    candidate = _c(JAN_1, JAN_31, 50)

    assert peak_concurrent_load(candidate, existing) == 100


def test_duplicate_assignment_same_project_only(store):
    person = store.seed_person()
    apollo = store.seed_project("Apollo")
    gemini = store.seed_project("Gemini")
    existing = store.seed_allocation(person.id, apollo.id, JAN_1, JAN_31, 20)
    ledger = AllocationLedger(store)

    assert ledger.has_duplicate_assignment(apollo.id, person.id, JAN_31, date(2025, 2, 28))
    assert not ledger.has_duplicate_assignment(apollo.id, person.id, date(2025, 2, 1), date(2025, 2, 28))
    assert not ledger.has_duplicate_assignment(gemini.id, person.id, JAN_1, JAN_31)
    assert not ledger.has_duplicate_assignment(
        apollo.id, person.id, JAN_1, JAN_31, exclude_allocation_id=existing.id
    )


def test_overlapping_is_scoped_to_person(store):
    alice = store.seed_person("Alice")
    bob = store.seed_person("Bob")
    project = store.seed_project()
    mine = store.seed_allocation(alice.id, project.id, JAN_1, JAN_31, 50)
    store.seed_allocation(bob.id, project.id, JAN_1, JAN_31, 50)
    ledger = AllocationLedger(store)

    assert ledger.overlapping(alice.id, JAN_15, JAN_20) == [mine]
    assert ledger.overlapping(alice.id, JAN_15, JAN_20, exclude_allocation_id=mine.id) == []


def test_check_capacity_excludes_the_allocation_being_updated(store):
    person = store.seed_person()
    project = store.seed_project()
    existing = store.seed_allocation(person.id, project.id, JAN_1, JAN_31, 80)
    ledger = AllocationLedger(store)

    grown = _c(JAN_1, JAN_31, 100)
    assert ledger.check_capacity(person.id, grown).exceeded is True
    assert ledger.check_capacity(person.id, grown, exclude_allocation_id=existing.id).exceeded is False


def test_unknown_mode_rejected(store):
    with pytest.raises(ValueError):
        AllocationLedger(store, mode="daily")
