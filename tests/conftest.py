"""Shared test fixtures."""
import pytest

from domain import TokenEngine


@pytest.fixture
def engine():
    """Fresh engine with token ids starting at T001."""
    return TokenEngine()


@pytest.fixture
def make_doctor(engine):
    """Register a doctor with ``capacities`` slots, one per entry."""
    def _create(name: str, *capacities: int):
        engine.add_doctor(name)
        for i, capacity in enumerate(capacities):
            engine.add_slot(name, f"{9 + i}:00", f"{10 + i}:00", capacity)
        return engine.registry.get(name)
    return _create


@pytest.fixture
def check_invariants():
    """Capacity, ordering and single-container checks for one doctor."""
    def _check(doctor):
        _assert_invariants(doctor)
    return _check


def _assert_invariants(doctor):
    seen = set()
    for slot in doctor.slots:
        assert slot.count() <= slot.capacity
        keys = [(t.priority, t.seq) for t in slot.tokens]
        assert keys == sorted(keys)
        for t in slot.tokens:
            assert t.id not in seen
            seen.add(t.id)
    for t in doctor.waiting_list:
        assert t.id not in seen
        seen.add(t.id)
