from __future__ import annotations

from dataclasses import dataclass, field, fields
from enum import Enum
from typing import Any


DATA_KIND = "DATA"
BLANK_IMAGE = "BLANK"
DEFAULT_IMAGE = "img/idle.png"


class MalformedPayloadError(ValueError):
    pass


class RepeatMode(str, Enum):
    OFF = "off"
    CONTEXT = "context"
    TRACK = "track"


class ConnectionState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    STALE = "stale"


class TransitionState(str, Enum):
    IDLE = "idle"
    FADING = "fading"


class Channel(str, Enum):
    ARTWORK = "artwork"
    BACKGROUND = "background"


@dataclass(frozen=True, slots=True)
class RGB:
    r: int
    g: int
    b: int

    @classmethod
    def from_payload(cls, raw: object) -> RGB:
        if not isinstance(raw, dict):
            raise MalformedPayloadError(f"color must be an object, got {type(raw).__name__}")
        try:
            return cls(r=int(raw["r"]), g=int(raw["g"]), b=int(raw["b"]))
        except (KeyError, TypeError, ValueError) as exc:
            raise MalformedPayloadError(f"invalid color {raw!r}") from exc

    def css(self) -> str:
        return f"rgb({self.r}, {self.g}, {self.b})"


WHITE = RGB(255, 255, 255)


@dataclass(frozen=True, slots=True)
class ColorPair:
    primary: RGB
    secondary: RGB

    @classmethod
    def from_payload(cls, raw: object) -> ColorPair:
        if not isinstance(raw, dict):
            raise MalformedPayloadError("imageColors must be an object")
        if "primary" not in raw or "secondary" not in raw:
            raise MalformedPayloadError("imageColors requires primary and secondary")
        return cls(
            primary=RGB.from_payload(raw["primary"]),
            secondary=RGB.from_payload(raw["secondary"]),
        )


DEFAULT_COLORS = ColorPair(primary=WHITE, secondary=WHITE)


@dataclass(slots=True)
class PlaybackSnapshot:
    title: str | None = None
    artists: list[str] | None = None
    album: str | None = None
    release: str | None = None
    context: str | None = None
    device: str | None = None
    time_current_ms: int | None = None
    time_total_ms: int | None = None
    paused: bool | None = None
    shuffle: bool | None = None
    repeat: RepeatMode | None = None
    image: str | None = None
    image_colors: ColorPair | None = None

    def apply(self, changes: dict[str, Any]) -> None:
        for name, value in changes.items():
            setattr(self, name, value)

    def clear(self) -> None:
        for item in fields(self):
            setattr(self, item.name, None)

    def is_empty(self) -> bool:
        return all(getattr(self, item.name) is None for item in fields(self))

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {}
        for wire_name, attr in WIRE_FIELDS.items():
            value = getattr(self, attr)
            if value is None:
                continue
            if isinstance(value, RepeatMode):
                value = value.value
            elif isinstance(value, ColorPair):
                value = {
                    "primary": _rgb_payload(value.primary),
                    "secondary": _rgb_payload(value.secondary),
                }
            elif isinstance(value, list):
                value = list(value)
            payload[wire_name] = value
        return payload


@dataclass(slots=True)
class ProgressCursor:
    reference_time_ms: int
    reference_clock_ms: int


@dataclass(slots=True)
class UpdateEvent:
    kind: str
    fields: dict[str, Any] = field(default_factory=dict)

    @property
    def is_data(self) -> bool:
        return self.kind == DATA_KIND

    @classmethod
    def from_payload(cls, payload: object) -> UpdateEvent:
        if not isinstance(payload, dict):
            raise MalformedPayloadError("update payload must be a JSON object")
        kind = payload.get("type")
        if not isinstance(kind, str):
            raise MalformedPayloadError("update payload is missing its type")
        changes: dict[str, Any] = {}
        for wire_name, raw in payload.items():
            attr = WIRE_FIELDS.get(wire_name)
            if attr is None:
                continue
            changes[attr] = _decode(attr, raw)
        return cls(kind=kind, fields=changes)


WIRE_FIELDS: dict[str, str] = {
    "title": "title",
    "artists": "artists",
    "album": "album",
    "release": "release",
    "context": "context",
    "device": "device",
    "timeCurrent": "time_current_ms",
    "timeTotal": "time_total_ms",
    "paused": "paused",
    "shuffle": "shuffle",
    "repeat": "repeat",
    "image": "image",
    "imageColors": "image_colors",
}


def _decode(attr: str, raw: object) -> Any:
    if raw is None:
        return None
    try:
        if attr in {"title", "album", "release", "context", "device", "image"}:
            return str(raw)
        if attr == "artists":
            if not isinstance(raw, list):
                raise MalformedPayloadError("artists must be a list")
            return [str(artist) for artist in raw]
        if attr in {"time_current_ms", "time_total_ms"}:
            if isinstance(raw, bool):
                raise MalformedPayloadError(f"{attr} must be a number")
            return max(0, int(raw))
        if attr in {"paused", "shuffle"}:
            return bool(raw)
        if attr == "repeat":
            return RepeatMode(str(raw).lower())
        if attr == "image_colors":
            return ColorPair.from_payload(raw)
    except (TypeError, ValueError) as exc:
        if isinstance(exc, MalformedPayloadError):
            raise
        raise MalformedPayloadError(f"invalid value for {attr}: {raw!r}") from exc
    raise MalformedPayloadError(f"unknown field {attr}")


def _rgb_payload(rgb: RGB) -> dict[str, int]:
    return {"r": rgb.r, "g": rgb.g, "b": rgb.b}
