"""Shared fixtures for the ZoneMap test suite"""

import pytest

from zonemap.models import Bounds, GeoEntity, Vertex, Viewport
from zonemap.utils.monitoring import monitor


class FakeClock:
    """Manually advanced monotonic clock"""

    def __init__(self, now: float = 0.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeScheduler:
    """Records scheduled callbacks instead of starting timer threads"""

    def __init__(self, clock: FakeClock):
        self.clock = clock
        self.calls = []

    def __call__(self, delay, callback):
        self.calls.append((self.clock.now + delay, callback))

    def run_due(self) -> int:
        """Run every callback whose due time has passed, including ones they schedule"""
        ran = 0
        while True:
            due = [c for c in self.calls if c[0] <= self.clock.now]
            if not due:
                return ran
            for call in due:
                self.calls.remove(call)
                call[1]()
                ran += 1

    def run_all(self) -> int:
        """Advance the clock through every scheduled callback"""
        ran = 0
        while self.calls:
            self.clock.now = max(self.clock.now, min(c[0] for c in self.calls))
            ran += self.run_due()
        return ran


@pytest.fixture
def clock():
    return FakeClock(100.0)


@pytest.fixture
def scheduler(clock):
    return FakeScheduler(clock)


@pytest.fixture
def square():
    """10x10 square with x = lng, y = lat"""
    return (Vertex(0, 0), Vertex(0, 10), Vertex(10, 10), Vertex(10, 0))


@pytest.fixture
def world_viewport():
    return Viewport(bounds=Bounds(north=80, south=-80, east=170, west=-170), zoom=18)


@pytest.fixture
def make_entity():
    def _make(entity_id, lat, lng, address="", floor="", size=None, **attributes):
        return GeoEntity(
            id=str(entity_id), lat=lat, lng=lng, address=address,
            floor=floor, size=size, attributes=attributes,
        )
    return _make


@pytest.fixture(autouse=True)
def reset_monitor():
    monitor.reset_metrics()
    yield
    monitor.reset_metrics()
