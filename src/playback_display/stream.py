from __future__ import annotations

import asyncio
from collections.abc import Callable
import json
import logging

import httpx

from playback_display.context import DisplayContext
from playback_display.models import ConnectionState, MalformedPayloadError
from playback_display.reconciler import Reconciler
from playback_display.sse import ServerSentEvent, iter_events
from playback_display.timers import Timer


LOGGER = logging.getLogger(__name__)

StateListener = Callable[[ConnectionState], None]


class TransportError(RuntimeError):
    pass


class StreamClient:
    def __init__(
        self,
        context: DisplayContext,
        reconciler: Reconciler,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._ctx = context
        self._reconciler = reconciler
        config = context.config
        self._timing = config.timing
        self._flux_path = config.flux_path
        self._info_path = config.info_path
        self._http = httpx.AsyncClient(
            base_url=config.base_url,
            headers={"Accept": "application/json", "User-Agent": config.user_agent},
            timeout=config.request_timeout_seconds,
            transport=transport,
        )
        self._stream_timeout = httpx.Timeout(config.request_timeout_seconds, read=None)
        self._heartbeat = Timer("heartbeat")
        self._flux_task: asyncio.Task[None] | None = None
        self._fetch_task: asyncio.Task[None] | None = None
        self._fetch_full = False
        self._listeners: list[StateListener] = []

    @property
    def state(self) -> ConnectionState:
        return self._ctx.connection

    @property
    def heartbeat_armed(self) -> bool:
        return self._heartbeat.armed

    @property
    def pending_fetches(self) -> int:
        return int(self._fetch_task is not None and not self._fetch_task.done())

    def subscribe(self, listener: StateListener) -> None:
        self._listeners.append(listener)

    def start(self) -> None:
        LOGGER.info("Starting playback stream from %s", self._ctx.config.base_url)
        self.request_snapshot(full=True)
        self._close_flux()
        self._flux_task = asyncio.create_task(self._run_flux(), name="playback-display-flux")
        self._arm_heartbeat()

    async def stop(self) -> None:
        self._heartbeat.cancel()
        task = self._flux_task
        self._close_flux()
        if task is not None:
            await asyncio.gather(task, return_exceptions=True)
        fetch = self._fetch_task
        self._cancel_fetch()
        if fetch is not None:
            await asyncio.gather(fetch, return_exceptions=True)
        await self._http.aclose()

    def request_snapshot(self, full: bool) -> None:
        # One fetch at a time: a newer request replaces the pending one and a
        # full request is never downgraded to an incremental one.
        if self._cancel_fetch():
            full = full or self._fetch_full
        self._fetch_full = full
        self._fetch_task = asyncio.create_task(
            self._fetch_snapshot(full),
            name=f"playback-display-fetch-{'full' if full else 'diff'}",
        )

    def _cancel_fetch(self) -> bool:
        task = self._fetch_task
        self._fetch_task = None
        if task is None or task.done() or task is asyncio.current_task():
            return False
        task.cancel()
        return True

    async def fetch_once(self, full: bool) -> bool:
        params = {"full": "true"} if full else None
        response = await self._http.get(self._info_path, params=params)
        response.raise_for_status()
        try:
            payload = response.json()
        except ValueError as exc:
            raise MalformedPayloadError("snapshot response is not JSON") from exc
        return self._reconciler.apply_payload(payload)

    async def _fetch_snapshot(self, full: bool) -> None:
        while True:
            try:
                await self.fetch_once(full)
                return
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                LOGGER.error(
                    "Snapshot request (full=%s) failed: %s; retrying in %.1fs",
                    full,
                    exc,
                    self._timing.retry_seconds,
                )
            await asyncio.sleep(self._timing.retry_seconds)

    async def _run_flux(self) -> None:
        while True:
            await asyncio.sleep(self._timing.retry_seconds)
            self._set_state(ConnectionState.CONNECTING)
            try:
                await self._consume_flux()
            except asyncio.CancelledError:
                raise
            except (httpx.HTTPError, TransportError) as exc:
                LOGGER.error("Flux transport error: %s", exc)
            except MalformedPayloadError as exc:
                LOGGER.error("Flux message could not be decoded: %s", exc)
                self.request_snapshot(full=True)
            except Exception:
                LOGGER.exception("Flux message handling failed")
            self._set_state(ConnectionState.DISCONNECTED)

    async def _consume_flux(self) -> None:
        async with self._http.stream(
            "GET",
            self._flux_path,
            headers={"Accept": "text/event-stream", "Cache-Control": "no-cache"},
            timeout=self._stream_timeout,
        ) as response:
            if not response.is_success:
                raise TransportError(f"flux responded with HTTP {response.status_code}")
            self._set_state(ConnectionState.CONNECTED)
            LOGGER.info("Flux connected")
            async for event in iter_events(response.aiter_lines()):
                self._on_event(event)
        raise TransportError("flux closed by server")

    def _on_event(self, event: ServerSentEvent) -> None:
        self._arm_heartbeat()
        if event.comment or event.event != "message":
            return
        if self._ctx.idle:
            LOGGER.info("Message received while idle, requesting full snapshot")
            self.request_snapshot(full=True)
            return
        try:
            payload = json.loads(event.data)
        except ValueError as exc:
            raise MalformedPayloadError(f"invalid JSON: {event.data[:200]!r}") from exc
        self._reconciler.apply_payload(payload)

    def _arm_heartbeat(self) -> None:
        self._heartbeat.arm(self._timing.heartbeat_timeout_seconds, self._on_heartbeat_timeout)

    def _on_heartbeat_timeout(self) -> None:
        LOGGER.error(
            "Heartbeat timeout: nothing received for %.0fs, restarting",
            self._timing.heartbeat_timeout_seconds,
        )
        if self._ctx.connection is ConnectionState.CONNECTED:
            self._set_state(ConnectionState.STALE)
        self.start()

    def _close_flux(self) -> None:
        if self._flux_task is not None:
            self._flux_task.cancel()
            self._flux_task = None
        if self._ctx.connection is not ConnectionState.DISCONNECTED:
            self._set_state(ConnectionState.DISCONNECTED)

    def _set_state(self, state: ConnectionState) -> None:
        if self._ctx.connection is state:
            return
        LOGGER.debug("Connection %s -> %s", self._ctx.connection.value, state.value)
        self._ctx.connection = state
        for listener in self._listeners:
            listener(state)
