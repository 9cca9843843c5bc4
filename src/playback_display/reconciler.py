from __future__ import annotations

from collections.abc import Callable
import logging
from typing import Any

from playback_display import surface as el
from playback_display.context import DisplayContext
from playback_display.models import (
    BLANK_IMAGE,
    DEFAULT_COLORS,
    DEFAULT_IMAGE,
    PlaybackSnapshot,
    UpdateEvent,
)
from playback_display.progress import PROGRESS_FIELDS, ProgressExtrapolator
from playback_display.render import TextRenderer, show_hide
from playback_display.transitions import TransitionSequencer


LOGGER = logging.getLogger(__name__)

TEXT_FIELDS = frozenset(
    {
        "title",
        "artists",
        "album",
        "release",
        "context",
        "device",
        "time_current_ms",
        "time_total_ms",
        "paused",
        "shuffle",
        "repeat",
    }
)
IMAGE_FIELDS = frozenset({"image", "image_colors"})

SnapshotListener = Callable[[PlaybackSnapshot], None]


class Reconciler:
    def __init__(
        self,
        context: DisplayContext,
        renderer: TextRenderer,
        extrapolator: ProgressExtrapolator,
        sequencer: TransitionSequencer,
    ) -> None:
        self._ctx = context
        self._renderer = renderer
        self._extrapolator = extrapolator
        self._sequencer = sequencer
        self._listeners: list[SnapshotListener] = []
        self.merge_count = 0

    @property
    def snapshot(self) -> PlaybackSnapshot:
        return self._ctx.store

    def subscribe(self, listener: SnapshotListener) -> None:
        self._listeners.append(listener)

    def apply_payload(self, payload: Any) -> bool:
        return self.apply(UpdateEvent.from_payload(payload))

    def apply(self, event: UpdateEvent) -> bool:
        if not event.is_data:
            LOGGER.debug("Ignoring %s event", event.kind)
            return False

        changes = self._normalize(event.fields)
        changed = frozenset(changes)
        snapshot = self._ctx.store
        snapshot.apply(changes)
        self.merge_count += 1
        LOGGER.debug("Merged fields: %s", ", ".join(sorted(changed)) or "<none>")

        self._ctx.idle = False
        if changed & TEXT_FIELDS:
            self._renderer.render(changed, snapshot, idle=False)
        if changed & IMAGE_FIELDS:
            self._sequencer.request(snapshot.image, snapshot.image_colors)
        self._extrapolator.restart(changed & PROGRESS_FIELDS)
        show_hide(self._ctx.surface, el.BODY, True)

        for listener in self._listeners:
            try:
                listener(snapshot)
            except Exception:
                LOGGER.exception("Snapshot listener failed")
        return True

    def _normalize(self, fields: dict[str, Any]) -> dict[str, Any]:
        changes = dict(fields)
        if changes.get("image") == BLANK_IMAGE:
            changes["image"] = DEFAULT_IMAGE
            changes["image_colors"] = DEFAULT_COLORS
        return changes
