from __future__ import annotations

import asyncio

import pytest_asyncio

from playback_display.config import AppConfig, TimingConfig
from playback_display.context import DisplayContext
from playback_display.progress import ProgressExtrapolator
from playback_display.reconciler import Reconciler
from playback_display.render import TextRenderer
from playback_display.surface import AssetLoadError, HeadlessSurface
from playback_display.transitions import TransitionSequencer


class FakeClock:
    def __init__(self, start_ms: int = 1_000_000) -> None:
        self.ms = start_ms

    def now_ms(self) -> int:
        return self.ms

    def advance(self, ms: int) -> None:
        self.ms += ms


class FakeLoader:
    """Asset loader that resolves instantly unless a ref is gated or failing."""

    def __init__(self) -> None:
        self.loads: list[str] = []
        self.failing: set[str] = set()
        self.gates: dict[str, asyncio.Event] = {}

    def gate(self, ref: str) -> asyncio.Event:
        return self.gates.setdefault(ref, asyncio.Event())

    async def load(self, ref: str) -> bytes:
        self.loads.append(ref)
        if ref in self.gates:
            await self.gates[ref].wait()
        if ref in self.failing:
            raise AssetLoadError(f"failed to load {ref}")
        return b""

    async def close(self) -> None:
        return None


def make_config(**timing: float) -> AppConfig:
    defaults = {
        "retry_seconds": 0.01,
        "heartbeat_timeout_seconds": 60.0,
        "progress_tick_seconds": 60.0,
        "idle_timeout_seconds": 3600.0,
        "song_end_request_seconds": 0.01,
        "max_post_song_end_requests": 4,
    }
    defaults.update(timing)
    return AppConfig(base_url="http://display.test", timing=TimingConfig(**defaults))


class Harness:
    def __init__(self, config: AppConfig | None = None) -> None:
        self.clock = FakeClock()
        self.loader = FakeLoader()
        self.surface = HeadlessSurface(self.loader, frame_seconds=0)
        self.context = DisplayContext(
            config=config or make_config(), surface=self.surface, clock=self.clock
        )
        self.renderer = TextRenderer(self.surface)
        self.extrapolator = ProgressExtrapolator(self.context, self.renderer)
        self.sequencer = TransitionSequencer(self.context)
        self.reconciler = Reconciler(
            self.context, self.renderer, self.extrapolator, self.sequencer
        )
        self.resyncs: list[bool] = []
        self.extrapolator.on_resync(self.resyncs.append)

    def text(self, element: str) -> str:
        return self.surface.element(element).text

    def classes(self, element: str) -> set[str]:
        return self.surface.element(element).classes

    async def close(self) -> None:
        self.extrapolator.stop()
        await self.sequencer.close()


@pytest_asyncio.fixture
async def harness():
    h = Harness()
    yield h
    await h.close()


def data_event(**fields) -> dict:
    return {"type": "DATA", **fields}


async def wait_until(predicate, timeout: float = 2.0) -> None:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not reached in time")
        await asyncio.sleep(0.005)
