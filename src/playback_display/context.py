from __future__ import annotations

from dataclasses import dataclass, field

from playback_display.config import AppConfig
from playback_display.models import ConnectionState, PlaybackSnapshot
from playback_display.surface import PresentationSurface
from playback_display.timers import Clock, MonotonicClock


@dataclass(slots=True)
class DisplayContext:
    config: AppConfig
    surface: PresentationSurface
    clock: Clock = field(default_factory=MonotonicClock)
    store: PlaybackSnapshot = field(default_factory=PlaybackSnapshot)
    connection: ConnectionState = ConnectionState.DISCONNECTED
    idle: bool = False
