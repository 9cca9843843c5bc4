from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
import logging
from typing import Any

import httpx

from playback_display.config import AppConfig
from playback_display.context import DisplayContext
from playback_display.models import ConnectionState, PlaybackSnapshot
from playback_display.progress import ProgressExtrapolator
from playback_display.reconciler import Reconciler
from playback_display.render import TextRenderer, apply_preferences
from playback_display.stream import StreamClient
from playback_display.surface import AssetLoader, HeadlessSurface, PresentationSurface
from playback_display.timers import BackgroundTasks, Clock, MonotonicClock
from playback_display.transitions import TransitionSequencer


StateListener = Callable[["DisplayController"], Awaitable[None]]
LOGGER = logging.getLogger(__name__)


class DisplayController:
    def __init__(
        self,
        config: AppConfig,
        *,
        surface: PresentationSurface | None = None,
        clock: Clock | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._owned_surface: HeadlessSurface | None = None
        if surface is None:
            loader = AssetLoader(
                config.base_url,
                user_agent=config.user_agent,
                timeout=config.request_timeout_seconds,
            )
            surface = self._owned_surface = HeadlessSurface(loader)
        self.context = DisplayContext(
            config=config, surface=surface, clock=clock or MonotonicClock()
        )
        self.renderer = TextRenderer(surface)
        self.extrapolator = ProgressExtrapolator(self.context, self.renderer)
        self.sequencer = TransitionSequencer(self.context)
        self.reconciler = Reconciler(
            self.context, self.renderer, self.extrapolator, self.sequencer
        )
        self.stream = StreamClient(self.context, self.reconciler, transport=transport)
        self.extrapolator.on_resync(self.stream.request_snapshot)

        self._listeners: list[StateListener] = []
        self._emits = BackgroundTasks()
        self.reconciler.subscribe(lambda _snapshot: self._schedule_emit())
        self.extrapolator.subscribe_idle(self._schedule_emit)
        self.stream.subscribe(lambda _state: self._schedule_emit())

    @property
    def surface(self) -> PresentationSurface:
        return self.context.surface

    @property
    def snapshot(self) -> PlaybackSnapshot:
        return self.context.store

    @property
    def connection(self) -> ConnectionState:
        return self.context.connection

    @property
    def idle(self) -> bool:
        return self.context.idle

    @property
    def position_ms(self) -> int:
        return self.extrapolator.position_ms

    def subscribe(self, listener: StateListener) -> None:
        self._listeners.append(listener)

    async def start(self) -> None:
        apply_preferences(self.surface, self.context.config.display)
        self.stream.start()

    async def stop(self) -> None:
        self.extrapolator.stop()
        await self.stream.stop()
        await self.sequencer.close()
        await self._emits.cancel_all()
        if self._owned_surface is not None:
            await self._owned_surface.close()

    def refresh(self) -> None:
        self.stream.request_snapshot(full=True)

    def status_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "connection": self.connection.value,
            "idle": self.idle,
            "position_ms": self.position_ms,
            "snapshot": self.snapshot.to_payload(),
        }
        if self._owned_surface is not None:
            payload["surface"] = self._owned_surface.describe()
        return payload

    def _schedule_emit(self) -> None:
        if not self._listeners:
            return
        self._emits.spawn(self._emit_state(), name="playback-display-emit")

    async def _emit_state(self) -> None:
        results = await asyncio.gather(
            *(listener(self) for listener in self._listeners), return_exceptions=True
        )
        for result in results:
            if isinstance(result, Exception):
                LOGGER.error("State listener failed", exc_info=result)
