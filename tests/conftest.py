import asyncio
import os

# Keep the background tick loop quiet while the service tests run
os.environ.setdefault("TICK_INTERVAL_MS", "60000")

import pytest

from session import MarketSession


class FixedRng:
    """Stands in for random.Random; always returns the same draw."""

    def __init__(self, value: float = 0.5):
        self.value = value

    def random(self) -> float:
        return self.value


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


class FakeSocket:
    def __init__(self, fail: bool = False):
        self.sent = []
        self.fail = fail

    async def send_json(self, message):
        if self.fail:
            raise RuntimeError("socket closed")
        self.sent.append(message)

    def events(self):
        return [m["event"] for m in self.sent]


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def session(clock):
    # Noise-free by default: u=0.5 makes the noise term exactly zero
    return MarketSession(rng=FixedRng(0.5), clock=clock)


@pytest.fixture
def fake_socket():
    return FakeSocket


@pytest.fixture
def fixed_rng():
    return FixedRng


class StalledSocket(FakeSocket):
    """A viewer that stopped reading: sends never complete."""

    async def send_json(self, message):
        await asyncio.Event().wait()


@pytest.fixture
def stalled_socket():
    return StalledSocket
