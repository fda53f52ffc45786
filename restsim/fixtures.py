# Copyright (c) 2025
# MIT License
# -----------------------------------------------------------------------------
# fixtures.py
# -----------------------------------------------------------------------------
# Purpose:
#   Occupancy bookkeeping for stalls and urinals: who holds each fixture and
#   the FIFO line of agent ids waiting for it.
#
# Design notes:
#   - A fixture is available only when nobody occupies it and nobody holds the
#     reservation taken when the front-of-queue agent starts walking to it.
#     This keeps a second queued agent from claiming a fixture whose next
#     user is still on the way.
#   - enqueue() is idempotent. Double occupancy raises InvariantError.
#   - Only the agent update pass mutates this state, one agent at a time.
#
# Usage:
#   occ = FixtureOccupancyManager(layout.fixtures); occ.enqueue("s1", 3)
# -----------------------------------------------------------------------------

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional

from .entities import OCCUPIABLE_KINDS, Fixture
from .errors import InvariantError


@dataclass
class FixtureState:
    fixture: Fixture
    occupied_by: Optional[int] = None
    reserved_by: Optional[int] = None
    queue: List[int] = field(default_factory=list)
    dwell_remaining: float = 0.0

    @property
    def available(self) -> bool:
        return self.occupied_by is None and self.reserved_by is None


class FixtureOccupancyManager:
    def __init__(self, fixtures: Iterable[Fixture] = ()):
        self.states: Dict[str, FixtureState] = {}
        self.reset(fixtures)

    def reset(self, fixtures: Iterable[Fixture]):
        self.states = {f.id: FixtureState(f) for f in fixtures if f.kind in OCCUPIABLE_KINDS}

    def __getitem__(self, fixture_id: str) -> FixtureState:
        return self.states[fixture_id]

    def __contains__(self, fixture_id: str) -> bool:
        return fixture_id in self.states

    def get(self, fixture_id: str) -> Optional[FixtureState]:
        return self.states.get(fixture_id)

    # -- selection ---------------------------------------------------------

    def shortest_queue(self, gender: str) -> Optional[Fixture]:
        """Usable fixture with the fewest queued agents; ties go to layout order."""
        best: Optional[FixtureState] = None
        for st in self.states.values():
            if not st.fixture.usable_by(gender):
                continue
            if best is None or len(st.queue) < len(best.queue):
                best = st
        return best.fixture if best else None

    # -- queue -------------------------------------------------------------

    def enqueue(self, fixture_id: str, agent_id: int):
        st = self.states[fixture_id]
        if agent_id in (st.occupied_by, st.reserved_by):
            raise InvariantError(f"agent {agent_id} already holds {fixture_id}, cannot queue")
        if agent_id not in st.queue:
            st.queue.append(agent_id)

    def dequeue(self, fixture_id: str, agent_id: int):
        st = self.states[fixture_id]
        st.queue = [a for a in st.queue if a != agent_id]

    def queue_index(self, fixture_id: str, agent_id: int) -> int:
        """Position in line, or -1 when the agent is not queued."""
        st = self.states[fixture_id]
        try:
            return st.queue.index(agent_id)
        except ValueError:
            return -1

    # -- holding -----------------------------------------------------------

    def claim(self, fixture_id: str, agent_id: int) -> bool:
        """Front-of-queue agent takes the reservation; False if not eligible."""
        st = self.states[fixture_id]
        if not st.available or not st.queue or st.queue[0] != agent_id:
            return False
        st.queue.pop(0)
        st.reserved_by = agent_id
        return True

    def occupy(self, fixture_id: str, agent_id: int, dwell: float):
        st = self.states[fixture_id]
        if st.occupied_by is not None and st.occupied_by != agent_id:
            raise InvariantError(f"{fixture_id} already occupied by {st.occupied_by}, not {agent_id}")
        if st.reserved_by not in (None, agent_id):
            raise InvariantError(f"{fixture_id} reserved by {st.reserved_by}, not {agent_id}")
        if agent_id in st.queue:
            raise InvariantError(f"agent {agent_id} occupies {fixture_id} while still queued")
        st.occupied_by = agent_id
        st.reserved_by = None
        st.dwell_remaining = dwell

    def consume(self, fixture_id: str, agent_id: int, dt: float) -> bool:
        """Count down the occupant's dwell; True once it has run out."""
        st = self.states[fixture_id]
        if st.occupied_by != agent_id:
            return True
        st.dwell_remaining -= dt
        return st.dwell_remaining <= 0

    def release(self, fixture_id: str, agent_id: int):
        st = self.states[fixture_id]
        if st.occupied_by == agent_id:
            st.occupied_by = None
            st.dwell_remaining = 0.0
        if st.reserved_by == agent_id:
            st.reserved_by = None

    # -- inspection --------------------------------------------------------

    def queue_lengths(self) -> Dict[str, int]:
        return {fid: len(st.queue) for fid, st in self.states.items()}

    def verify(self, active_ids: Iterable[int]):
        """Raise InvariantError if any occupancy record contradicts the active set."""
        active = set(active_ids)
        for fid, st in self.states.items():
            if len(set(st.queue)) != len(st.queue):
                raise InvariantError(f"{fid} queue holds duplicates: {st.queue}")
            for holder in (st.occupied_by, st.reserved_by):
                if holder is None:
                    continue
                if holder not in active:
                    raise InvariantError(f"{fid} held by inactive agent {holder}")
                if holder in st.queue:
                    raise InvariantError(f"{fid} holder {holder} is also queued")
            if st.dwell_remaining < 0 and st.occupied_by is None:
                raise InvariantError(f"{fid} has negative dwell with no occupant")
