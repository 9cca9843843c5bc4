from __future__ import annotations

import asyncio
import logging
import math

from playback_display import surface as el
from playback_display.context import DisplayContext
from playback_display.models import DEFAULT_COLORS, RGB, Channel, ColorPair, TransitionState
from playback_display.surface import EMPTY_IMAGE_DATA, AssetLoadError
from playback_display.timers import BackgroundTasks


LOGGER = logging.getLogger(__name__)


def calculate_brightness(rgb: RGB) -> float:
    # HSP color model, see http://alienryderflex.com/hsp.html
    return math.sqrt(0.299 * rgb.r**2 + 0.587 * rgb.g**2 + 0.114 * rgb.b**2) / 255


def normalize_color(rgb: RGB, target_factor: float) -> RGB:
    peak = max(rgb.r, rgb.g, rgb.b)
    if peak <= 0:
        return rgb
    factor = 255 / peak * target_factor
    return RGB(
        r=round(rgb.r * factor),
        g=round(rgb.g * factor),
        b=round(rgb.b * factor),
    )


def artwork_glow(rgb: RGB) -> str:
    alpha = (1 - calculate_brightness(rgb) * 0.8) / 2
    return f"var(--artwork-shadow) rgba({rgb.r}, {rgb.g}, {rgb.b}, {alpha:.4f})"


def background_overlay(rgb: RGB) -> str:
    return f"rgba({rgb.r}, {rgb.g}, {rgb.b}, {calculate_brightness(rgb):.4f})"


class TransitionSequencer:
    def __init__(self, context: DisplayContext) -> None:
        self._surface = context.surface
        self._prefs = context.config.display
        self._targets: dict[Channel, str | None] = {channel: None for channel in Channel}
        self._states: dict[Channel, TransitionState] = {
            channel: TransitionState.IDLE for channel in Channel
        }
        self._tasks = BackgroundTasks()

    def state(self, channel: Channel) -> TransitionState:
        return self._states[channel]

    def target(self, channel: Channel) -> str | None:
        return self._targets[channel]

    def request(self, image: str | None, colors: ColorPair | None) -> asyncio.Task[bool] | None:
        if not image or self._is_displayed(image):
            return None
        return self._tasks.spawn(self.change(image, colors), name="playback-display-transition")

    async def change(self, image: str | None, colors: ColorPair | None) -> bool:
        if not image or self._is_displayed(image):
            return False

        previous = self._surface.get_image(el.ARTWORK_IMG)
        colors = colors or DEFAULT_COLORS
        LOGGER.debug("Transitioning artwork %s -> %s", previous or "<none>", image)

        results = await asyncio.gather(
            self._fade_artwork(previous, image, colors.secondary),
            self._fade_background(previous, image, colors.secondary),
            self._apply_text_color(colors.primary),
        )
        return all(results)

    async def close(self) -> None:
        await self._tasks.cancel_all()

    def _is_displayed(self, image: str) -> bool:
        if self._targets[Channel.ARTWORK] is not None:
            return self._targets[Channel.ARTWORK] == image
        return self._surface.get_image(el.ARTWORK_IMG) == image

    async def _fade_artwork(self, previous: str, image: str, rgb_glow: RGB) -> bool:
        channel = Channel.ARTWORK
        self._begin(channel, image)
        surface = self._surface
        try:
            if self._prefs.transitions:
                self._set_artwork_buffer_visible(True)
                await surface.load_image(el.ARTWORK_CROSSFADE, previous or EMPTY_IMAGE_DATA)
                if not self._is_current(channel, image):
                    return False
                surface.set_class(el.ARTWORK_CROSSFADE, "skiptransition", True)
                await surface.next_frame()
                if not self._is_current(channel, image):
                    return False
                surface.set_class(el.ARTWORK_CROSSFADE, "show", True)
            await surface.load_image(el.ARTWORK_IMG, image)
        except AssetLoadError as exc:
            return self._abandon(channel, image, exc)
        if not self._is_current(channel, image):
            return False

        surface.set_property(el.ARTWORK_IMG, "box-shadow", artwork_glow(rgb_glow))
        self._set_artwork_buffer_visible(False)
        self._finish(channel)
        return True

    async def _fade_background(self, previous: str, image: str, rgb_overlay: RGB) -> bool:
        channel = Channel.BACKGROUND
        self._begin(channel, image)
        surface = self._surface
        try:
            if self._prefs.transitions:
                await surface.load_image(el.BACKGROUND_CROSSFADE, previous or EMPTY_IMAGE_DATA)
                if not self._is_current(channel, image):
                    return False
                surface.set_class(el.BACKGROUND_CROSSFADE, "skiptransition", True)
                await surface.next_frame()
                if not self._is_current(channel, image):
                    return False
                surface.set_class(el.BACKGROUND_CROSSFADE, "show", True)
            await surface.load_image(el.BACKGROUND_IMG, image)
        except AssetLoadError as exc:
            return self._abandon(channel, image, exc)
        if not self._is_current(channel, image):
            return False

        surface.set_property(
            el.BACKGROUND_OVERLAY, "--background-overlay-color", background_overlay(rgb_overlay)
        )
        surface.set_class(el.BACKGROUND_CROSSFADE, "skiptransition", False)
        surface.set_class(el.BACKGROUND_CROSSFADE, "show", False)
        self._finish(channel)
        return True

    async def _apply_text_color(self, color: RGB) -> bool:
        self._surface.set_property(el.ROOT, "--color", normalize_color(color, 1.0).css())
        return True

    def _set_artwork_buffer_visible(self, visible: bool) -> None:
        self._surface.set_class(el.ARTWORK_CROSSFADE, "skiptransition", visible)
        self._surface.set_class(el.ARTWORK_CROSSFADE, "show", visible)

    def _begin(self, channel: Channel, image: str) -> None:
        self._targets[channel] = image
        self._states[channel] = TransitionState.FADING

    def _finish(self, channel: Channel) -> None:
        self._states[channel] = TransitionState.IDLE

    def _is_current(self, channel: Channel, image: str) -> bool:
        return self._targets[channel] == image

    def _abandon(self, channel: Channel, image: str, exc: AssetLoadError) -> bool:
        LOGGER.warning("%s image failed to load: %s", channel.value.capitalize(), exc)
        if self._is_current(channel, image):
            self._finish(channel)
        return False
