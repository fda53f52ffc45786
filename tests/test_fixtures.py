"""Fixture occupancy bookkeeping."""
from __future__ import annotations

import pytest

from restsim.entities import FEMALE, MALE, Fixture
from restsim.errors import InvariantError
from restsim.fixtures import FixtureOccupancyManager

STALL_A = Fixture("stall-a", "stall", 0, 0, 20, 20)
STALL_B = Fixture("stall-b", "stall", 40, 0, 20, 20)
URINAL = Fixture("urinal", "urinal", 80, 0, 20, 20)
SINK = Fixture("sink", "sink", 120, 0, 20, 20)


@pytest.fixture
def occ():
    return FixtureOccupancyManager([STALL_A, STALL_B, URINAL, SINK])


def test_only_stalls_and_urinals_are_tracked(occ):
    assert set(occ.states) == {"stall-a", "stall-b", "urinal"}
    assert "sink" not in occ


def test_shortest_queue_ties_go_to_layout_order(occ):
    assert occ.shortest_queue(MALE) is STALL_A
    occ.enqueue("stall-a", 1)
    assert occ.shortest_queue(MALE) is STALL_B
    occ.enqueue("stall-b", 2)
    assert occ.shortest_queue(MALE) is URINAL


def test_female_never_gets_urinal(occ):
    occ.enqueue("stall-a", 1)
    occ.enqueue("stall-a", 2)
    occ.enqueue("stall-b", 3)
    assert occ.shortest_queue(FEMALE) is STALL_B
    assert occ.shortest_queue(MALE) is URINAL


def test_no_usable_fixture():
    occ = FixtureOccupancyManager([URINAL])
    assert occ.shortest_queue(FEMALE) is None


def test_enqueue_is_idempotent(occ):
    occ.enqueue("stall-a", 7)
    occ.enqueue("stall-a", 7)
    assert occ["stall-a"].queue == [7]
    assert occ.queue_index("stall-a", 7) == 0
    assert occ.queue_index("stall-a", 8) == -1


def test_claim_requires_front_and_free_fixture(occ):
    occ.enqueue("stall-a", 1)
    occ.enqueue("stall-a", 2)
    assert not occ.claim("stall-a", 2)
    assert occ.claim("stall-a", 1)
    st = occ["stall-a"]
    assert st.reserved_by == 1 and st.queue == [2]
    # agent 2 is now at the front but the fixture is reserved
    assert not occ.claim("stall-a", 2)
    occ.occupy("stall-a", 1, 500.0)
    assert st.occupied_by == 1 and st.reserved_by is None
    assert not occ.claim("stall-a", 2)


def test_consume_and_release_clamp_dwell(occ):
    occ.enqueue("stall-b", 4)
    occ.claim("stall-b", 4)
    occ.occupy("stall-b", 4, 150.0)
    assert not occ.consume("stall-b", 4, 100.0)
    assert occ.consume("stall-b", 4, 100.0)
    occ.release("stall-b", 4)
    st = occ["stall-b"]
    assert st.occupied_by is None and st.dwell_remaining == 0.0
    assert st.available


def test_double_occupancy_is_fatal(occ):
    occ.occupy("stall-a", 1, 100.0)
    with pytest.raises(InvariantError):
        occ.occupy("stall-a", 2, 100.0)


def test_occupant_cannot_queue_for_own_fixture(occ):
    occ.occupy("stall-a", 1, 100.0)
    with pytest.raises(InvariantError):
        occ.enqueue("stall-a", 1)


def test_verify_flags_inactive_holder(occ):
    occ.occupy("urinal", 9, 100.0)
    occ.verify([9])
    with pytest.raises(InvariantError):
        occ.verify([1, 2])


def test_queue_lengths_and_reset(occ):
    occ.enqueue("stall-a", 1)
    assert occ.queue_lengths() == {"stall-a": 1, "stall-b": 0, "urinal": 0}
    occ.reset([STALL_A])
    assert occ.queue_lengths() == {"stall-a": 0}
