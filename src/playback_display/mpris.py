from __future__ import annotations

import logging
from typing import Any

from dbus_next import Variant
from dbus_next.aio import MessageBus
from dbus_next.constants import BusType, PropertyAccess
from dbus_next.service import ServiceInterface, dbus_property, method, signal

from playback_display.controller import DisplayController
from playback_display.models import PlaybackSnapshot, RepeatMode


OBJECT_PATH = "/org/mpris/MediaPlayer2"
LOGGER = logging.getLogger(__name__)

LOOP_STATUS = {
    RepeatMode.OFF: "None",
    RepeatMode.CONTEXT: "Playlist",
    RepeatMode.TRACK: "Track",
}


def playback_status(snapshot: PlaybackSnapshot, idle: bool) -> str:
    if idle or snapshot.title is None:
        return "Stopped"
    return "Paused" if snapshot.paused else "Playing"


def loop_status(snapshot: PlaybackSnapshot) -> str:
    return LOOP_STATUS[snapshot.repeat or RepeatMode.OFF]


def track_metadata(snapshot: PlaybackSnapshot) -> dict[str, tuple[str, Any]]:
    track_obj = f"{OBJECT_PATH}/track/{'current' if snapshot.title else 'none'}"
    metadata: dict[str, tuple[str, Any]] = {
        "mpris:trackid": ("o", track_obj),
        "xesam:title": ("s", snapshot.title or ""),
        "xesam:artist": ("as", list(snapshot.artists or [])),
        "xesam:album": ("s", snapshot.album or ""),
        "mpris:length": ("x", (snapshot.time_total_ms or 0) * 1000),
    }
    if snapshot.image and snapshot.image.startswith(("http://", "https://", "file://")):
        metadata["mpris:artUrl"] = ("s", snapshot.image)
    return metadata


class MediaPlayer2Interface(ServiceInterface):
    def __init__(self, identity: str) -> None:
        super().__init__("org.mpris.MediaPlayer2")
        self._identity = identity

    @method()
    def Raise(self) -> "":
        return None

    @method()
    def Quit(self) -> "":
        return None

    @dbus_property(access=PropertyAccess.READ)
    def CanQuit(self) -> "b":
        return False

    @dbus_property(access=PropertyAccess.READ)
    def CanRaise(self) -> "b":
        return False

    @dbus_property(access=PropertyAccess.READ)
    def HasTrackList(self) -> "b":
        return False

    @dbus_property(access=PropertyAccess.READ)
    def Identity(self) -> "s":
        return self._identity

    @dbus_property(access=PropertyAccess.READ)
    def SupportedUriSchemes(self) -> "as":
        return []

    @dbus_property(access=PropertyAccess.READ)
    def SupportedMimeTypes(self) -> "as":
        return []


class MediaPlayer2PlayerInterface(ServiceInterface):
    def __init__(self, controller: DisplayController) -> None:
        super().__init__("org.mpris.MediaPlayer2.Player")
        self._controller = controller

    @method()
    def Next(self) -> "":
        return None

    @method()
    def Previous(self) -> "":
        return None

    @method()
    def Pause(self) -> "":
        return None

    @method()
    def PlayPause(self) -> "":
        return None

    @method()
    def Stop(self) -> "":
        return None

    @method()
    def Play(self) -> "":
        return None

    @method()
    def Seek(self, _offset: "x") -> "":
        return None

    @method()
    def SetPosition(self, _track_id: "o", _position: "x") -> "":
        return None

    @method()
    def OpenUri(self, _uri: "s") -> "":
        return None

    @signal()
    def Seeked(self, position: "x") -> "x":
        return position

    @dbus_property(access=PropertyAccess.READ)
    def PlaybackStatus(self) -> "s":
        return playback_status(self._controller.snapshot, self._controller.idle)

    @dbus_property(access=PropertyAccess.READ)
    def LoopStatus(self) -> "s":
        return loop_status(self._controller.snapshot)

    @dbus_property(access=PropertyAccess.READ)
    def Rate(self) -> "d":
        return 1.0

    @dbus_property(access=PropertyAccess.READ)
    def Shuffle(self) -> "b":
        return bool(self._controller.snapshot.shuffle)

    @dbus_property(access=PropertyAccess.READ)
    def Volume(self) -> "d":
        return 1.0

    @dbus_property(access=PropertyAccess.READ)
    def Position(self) -> "x":
        return self._controller.position_ms * 1000

    @dbus_property(access=PropertyAccess.READ)
    def MinimumRate(self) -> "d":
        return 1.0

    @dbus_property(access=PropertyAccess.READ)
    def MaximumRate(self) -> "d":
        return 1.0

    @dbus_property(access=PropertyAccess.READ)
    def CanGoNext(self) -> "b":
        return False

    @dbus_property(access=PropertyAccess.READ)
    def CanGoPrevious(self) -> "b":
        return False

    @dbus_property(access=PropertyAccess.READ)
    def CanPlay(self) -> "b":
        return False

    @dbus_property(access=PropertyAccess.READ)
    def CanPause(self) -> "b":
        return False

    @dbus_property(access=PropertyAccess.READ)
    def CanSeek(self) -> "b":
        return False

    @dbus_property(access=PropertyAccess.READ)
    def CanControl(self) -> "b":
        return False

    @dbus_property(access=PropertyAccess.READ)
    def Metadata(self) -> "a{sv}":
        return {
            key: Variant(signature, value)
            for key, (signature, value) in track_metadata(self._controller.snapshot).items()
        }


class DisplayMprisService:
    def __init__(self, controller: DisplayController, mpris_name: str) -> None:
        self._controller = controller
        self._mpris_name = mpris_name
        self._bus: MessageBus | None = None
        self._root = MediaPlayer2Interface(identity="Playback Display")
        self._player = MediaPlayer2PlayerInterface(controller)

    async def start(self) -> None:
        try:
            self._bus = await MessageBus(bus_type=BusType.SESSION).connect()
        except Exception as exc:  # noqa: BLE001
            LOGGER.warning("Session bus unavailable, MPRIS disabled: %s", exc)
            self._bus = None
            return
        self._bus.export(OBJECT_PATH, self._root)
        self._bus.export(OBJECT_PATH, self._player)
        await self._bus.request_name(f"org.mpris.MediaPlayer2.{self._mpris_name}")
        self._controller.subscribe(self.on_state_changed)

    async def stop(self) -> None:
        if self._bus:
            self._bus.disconnect()
            self._bus = None

    async def on_state_changed(self, controller: DisplayController) -> None:
        if self._bus is None:
            return
        snapshot = controller.snapshot
        self._player.emit_properties_changed(
            {
                "PlaybackStatus": playback_status(snapshot, controller.idle),
                "LoopStatus": loop_status(snapshot),
                "Shuffle": bool(snapshot.shuffle),
                "Position": controller.position_ms * 1000,
                "Metadata": self._player.Metadata,
            },
            [],
        )
