from __future__ import annotations

from collections.abc import Collection
from dataclasses import dataclass
import math
import re

from playback_display import surface as el
from playback_display.config import DisplayPreferences
from playback_display.models import PlaybackSnapshot, RepeatMode
from playback_display.surface import PresentationSurface


FEATURE_PATTERN = re.compile(r"[(|\[]feat.+?[)|\]]")


@dataclass(frozen=True, slots=True)
class HMS:
    hours: int
    minutes: int
    seconds: int


def calc_hms(ms: int) -> HMS:
    total_seconds = math.floor(ms / 1000 + 0.5)
    return HMS(
        hours=total_seconds // 3600,
        minutes=(total_seconds // 60) % 60,
        seconds=total_seconds % 60,
    )


def format_time(current_ms: int, total_ms: int) -> tuple[str, str]:
    current = calc_hms(current_ms)
    total = calc_hms(total_ms)

    formatted_current = f"{current.seconds:02d}"
    formatted_total = f"{total.seconds:02d}"
    if total.minutes >= 10 or total.hours >= 1:
        formatted_current = f"{current.minutes:02d}:{formatted_current}"
        formatted_total = f"{total.minutes:02d}:{formatted_total}"
        if total.hours > 0:
            formatted_current = f"{current.hours}:{formatted_current}"
            formatted_total = f"{total.hours}:{formatted_total}"
    else:
        formatted_current = f"{current.minutes}:{formatted_current}"
        formatted_total = f"{total.minutes}:{formatted_total}"
    return formatted_current, formatted_total


def progress_ratio(current_ms: int | None, total_ms: int | None) -> float:
    if current_ms is None or not total_ms:
        return 0.0
    return max(0.0, min(1.0, current_ms / total_ms))


def remove_features(title: str) -> str:
    return FEATURE_PATTERN.sub("", title).strip()


def format_artists(artists: list[str]) -> str:
    if not artists:
        return ""
    text = artists[0]
    if len(artists) > 1:
        text += f" (feat. {' & '.join(artists[1:])})"
    return text


def format_album(album: str | None, release: str | None) -> str:
    album = album or ""
    if release:
        return f"{album} ({release})".strip()
    return album


def show_hide(
    surface: PresentationSurface, element: str, show: bool, use_invisibility: bool = False
) -> None:
    if show:
        surface.set_class(element, "invisible", False)
        surface.set_class(element, "hidden", False)
    elif use_invisibility:
        surface.set_class(element, "invisible", True)
        surface.set_class(element, "hidden", False)
    else:
        surface.set_class(element, "hidden", True)
        surface.set_class(element, "invisible", False)


class TextRenderer:
    def __init__(self, surface: PresentationSurface) -> None:
        self._surface = surface

    def render(self, changed: Collection[str], snapshot: PlaybackSnapshot, *, idle: bool) -> None:
        surface = self._surface
        if "title" in changed:
            surface.set_text(el.TITLE, remove_features(snapshot.title or ""))
        if "artists" in changed:
            surface.set_text(el.ARTISTS, format_artists(snapshot.artists or []))
        if "album" in changed or "release" in changed:
            surface.set_text(el.ALBUM, format_album(snapshot.album, snapshot.release))
        if "context" in changed:
            surface.set_text(el.CONTEXT, snapshot.context or "")
        if "device" in changed:
            surface.set_text(el.DEVICE, snapshot.device or "")

        if "time_current_ms" in changed or "time_total_ms" in changed:
            self.render_progress(
                snapshot.time_current_ms, snapshot.time_total_ms, snapshot, idle=idle
            )

        if "paused" in changed or "shuffle" in changed or "repeat" in changed:
            paused = bool(snapshot.paused)
            repeat = snapshot.repeat or RepeatMode.OFF
            show_hide(surface, el.PAUSE_BADGE, paused, paused)
            show_hide(surface, el.SHUFFLE_BADGE, bool(snapshot.shuffle), paused)
            show_hide(surface, el.REPEAT_BADGE, repeat is not RepeatMode.OFF, paused)
        if "repeat" in changed:
            surface.set_class(el.REPEAT_BADGE, "once", snapshot.repeat is RepeatMode.TRACK)

    def render_progress(
        self,
        current_ms: int | None,
        total_ms: int | None,
        snapshot: PlaybackSnapshot,
        *,
        idle: bool,
    ) -> None:
        formatted_current, formatted_total = format_time(current_ms or 0, total_ms or 0)
        self._surface.set_text(el.TIME_CURRENT, formatted_current)
        self._surface.set_text(el.TIME_TOTAL, formatted_total)
        self._surface.set_progress(progress_ratio(current_ms, total_ms))

        if idle or not snapshot.artists or not snapshot.title:
            self._surface.set_document_title(el.DEFAULT_DOCUMENT_TITLE)
        else:
            self._surface.set_document_title(
                f"[{formatted_current} / {formatted_total}] "
                f"{snapshot.artists[0]} - {remove_features(snapshot.title)}"
            )


def apply_preferences(surface: PresentationSurface, prefs: DisplayPreferences) -> None:
    surface.set_class(el.DARK_OVERLAY, "show", prefs.dark_mode)

    surface.set_class(el.BODY, "transition", prefs.transitions)
    show_hide(surface, el.ARTWORK_CROSSFADE, prefs.transitions, True)
    show_hide(surface, el.BACKGROUND_CROSSFADE, prefs.transitions, True)

    surface.set_class(el.BACKGROUND_IMG, "forcehide", not prefs.bg_artwork)
    surface.set_class(el.BACKGROUND_CROSSFADE, "forcehide", not prefs.bg_artwork)

    for element in (el.BACKGROUND, el.BACKGROUND_IMG, el.BACKGROUND_CROSSFADE):
        surface.set_class(element, "scale", prefs.scale_background)

    surface.set_class(el.BACKGROUND, "darken", prefs.darken_background)
    surface.set_class(el.ARTWORK_IMG, "noshadow", not prefs.artwork_glow)
    surface.set_class(el.BODY, "nocoloredtext", not prefs.colored_text)
