from __future__ import annotations

from collections.abc import Callable, Collection
import logging

from playback_display import surface as el
from playback_display.context import DisplayContext
from playback_display.models import ProgressCursor
from playback_display.render import TextRenderer, show_hide
from playback_display.timers import PeriodicTimer, Timer


LOGGER = logging.getLogger(__name__)

PROGRESS_FIELDS = frozenset({"time_current_ms", "time_total_ms", "paused"})

ResyncHandler = Callable[[bool], None]
IdleListener = Callable[[], None]


class ProgressExtrapolator:
    def __init__(self, context: DisplayContext, renderer: TextRenderer) -> None:
        self._ctx = context
        self._renderer = renderer
        self._timing = context.config.timing
        self._tick_timer = PeriodicTimer("progress-tick")
        self._idle_timer = Timer("idle")
        self._song_end_timer = Timer("song-end-request")
        self._resync: ResyncHandler | None = None
        self._idle_listeners: list[IdleListener] = []
        self.cursor: ProgressCursor | None = None
        self.post_end_count = 0

    @property
    def ticking(self) -> bool:
        return self._tick_timer.running

    @property
    def idle_armed(self) -> bool:
        return self._idle_timer.armed

    @property
    def song_end_request_pending(self) -> bool:
        return self._song_end_timer.armed

    @property
    def position_ms(self) -> int:
        if self.cursor is None:
            return 0
        return self.cursor.reference_time_ms

    def on_resync(self, handler: ResyncHandler) -> None:
        self._resync = handler

    def subscribe_idle(self, listener: IdleListener) -> None:
        self._idle_listeners.append(listener)

    def restart(self, changed: Collection[str]) -> None:
        now = self._ctx.clock.now_ms()
        if self.cursor is None or "time_current_ms" in changed:
            reference_time_ms = self._ctx.store.time_current_ms or 0
        else:
            reference_time_ms = self.cursor.reference_time_ms
        self.cursor = ProgressCursor(
            reference_time_ms=reference_time_ms, reference_clock_ms=now
        )
        if PROGRESS_FIELDS.intersection(changed):
            self.post_end_count = 0

        self._tick_timer.start(self._timing.progress_tick_seconds, self.tick)
        self._idle_timer.arm(self._timing.idle_timeout_seconds, self.set_idle)

    def tick(self) -> None:
        snapshot = self._ctx.store
        cursor = self.cursor
        if cursor is None or snapshot.time_current_ms is None:
            return
        if snapshot.paused:
            self.post_end_count = 0
            return

        now = self._ctx.clock.now_ms()
        previous = cursor.reference_time_ms
        projected = previous + (now - cursor.reference_clock_ms)
        cursor.reference_clock_ms = now

        total = snapshot.time_total_ms
        if total is not None and projected >= total:
            self.post_end_count += 1
            if self.post_end_count > self._timing.max_post_song_end_requests:
                LOGGER.info(
                    "Still at end of track after %d ticks, forcing full resync",
                    self.post_end_count,
                )
                self._request(True)
            elif previous < total:
                self._song_end_timer.arm(
                    self._timing.song_end_request_seconds, lambda: self._request(False)
                )
            projected = total
        else:
            self.post_end_count = 0

        cursor.reference_time_ms = projected
        self._renderer.render_progress(projected, total, snapshot, idle=self._ctx.idle)

    def set_idle(self) -> None:
        if self._ctx.idle:
            return
        LOGGER.info("No updates received for %.0fs, going idle", self._timing.idle_timeout_seconds)
        self._ctx.idle = True
        self.stop()
        show_hide(self._ctx.surface, el.BODY, False)
        self._ctx.store.clear()
        self.cursor = None
        self.post_end_count = 0
        for listener in self._idle_listeners:
            listener()

    def stop(self) -> None:
        self._tick_timer.stop()
        self._idle_timer.cancel()
        self._song_end_timer.cancel()

    def _request(self, full: bool) -> None:
        if self._resync is None:
            LOGGER.debug("No resync handler bound, dropping request (full=%s)", full)
            return
        self._resync(full)
