import asyncio

import pytest

from playback_display import surface as el
from playback_display.models import RGB, Channel, ColorPair, TransitionState
from playback_display.surface import EMPTY_IMAGE_DATA
from playback_display.transitions import (
    artwork_glow,
    background_overlay,
    calculate_brightness,
    normalize_color,
)

from conftest import Harness, make_config


COLORS = ColorPair(primary=RGB(100, 50, 25), secondary=RGB(255, 255, 255))


def test_brightness_bounds():
    assert calculate_brightness(RGB(0, 0, 0)) == 0
    assert calculate_brightness(RGB(255, 255, 255)) == pytest.approx(1.0)


def test_normalize_color_maximizes_peak_channel():
    normalized = normalize_color(RGB(100, 50, 25), 1.0)
    assert max(normalized.r, normalized.g, normalized.b) == 255
    assert normalized.r == 255
    assert normalize_color(RGB(0, 0, 0), 1.0) == RGB(0, 0, 0)


def test_glow_and_overlay_strings():
    assert artwork_glow(RGB(255, 255, 255)) == (
        "var(--artwork-shadow) rgba(255, 255, 255, 0.1000)"
    )
    assert background_overlay(RGB(0, 0, 0)) == "rgba(0, 0, 0, 0.0000)"


@pytest.mark.asyncio
async def test_first_transition_uses_placeholder_buffer(harness):
    done = await harness.sequencer.change("cover-1.jpg", COLORS)

    assert done
    assert harness.loader.loads.count(EMPTY_IMAGE_DATA) == 2
    assert harness.surface.get_image(el.ARTWORK_IMG) == "cover-1.jpg"
    assert harness.surface.get_image(el.BACKGROUND_IMG) == "cover-1.jpg"
    assert harness.classes(el.ARTWORK_CROSSFADE) == set()
    assert harness.classes(el.BACKGROUND_CROSSFADE) == set()
    assert harness.surface.element(el.ROOT).properties["--color"] == "rgb(255, 127, 64)"
    assert "box-shadow" in harness.surface.element(el.ARTWORK_IMG).properties
    assert harness.surface.element(el.BACKGROUND_OVERLAY).properties[
        "--background-overlay-color"
    ] == "rgba(255, 255, 255, 1.0000)"
    assert harness.sequencer.state(Channel.ARTWORK) is TransitionState.IDLE


@pytest.mark.asyncio
async def test_buffer_is_seeded_with_previous_image(harness):
    await harness.sequencer.change("cover-1.jpg", COLORS)
    harness.loader.loads.clear()

    await harness.sequencer.change("cover-2.jpg", COLORS)

    assert harness.loader.loads.count("cover-1.jpg") == 2
    assert harness.loader.loads.count("cover-2.jpg") == 2
    assert harness.surface.get_image(el.ARTWORK_CROSSFADE) == "cover-1.jpg"


@pytest.mark.asyncio
async def test_same_image_is_a_no_op(harness):
    await harness.sequencer.change("cover-1.jpg", COLORS)
    harness.loader.loads.clear()

    assert harness.sequencer.request("cover-1.jpg", COLORS) is None
    assert not await harness.sequencer.change("cover-1.jpg", COLORS)
    assert harness.loader.loads == []


@pytest.mark.asyncio
async def test_buffer_stays_visible_until_main_image_loads(harness):
    gate = harness.loader.gate("cover-1.jpg")
    task = harness.sequencer.request("cover-1.jpg", COLORS)
    await asyncio.sleep(0.01)

    assert harness.sequencer.state(Channel.ARTWORK) is TransitionState.FADING
    assert harness.sequencer.state(Channel.BACKGROUND) is TransitionState.FADING
    assert {"show", "skiptransition"} <= harness.classes(el.ARTWORK_CROSSFADE)
    assert "show" in harness.classes(el.BACKGROUND_CROSSFADE)

    gate.set()
    assert await task
    assert "show" not in harness.classes(el.ARTWORK_CROSSFADE)
    assert "show" not in harness.classes(el.BACKGROUND_CROSSFADE)


@pytest.mark.asyncio
async def test_newer_request_supersedes_in_flight_one(harness):
    slow = harness.loader.gate("slow.jpg")
    first = harness.sequencer.request("slow.jpg", COLORS)
    await asyncio.sleep(0.01)

    second = harness.sequencer.request("fast.jpg", ColorPair(RGB(0, 0, 255), RGB(0, 0, 0)))
    await asyncio.sleep(0.01)
    slow.set()

    assert await second
    assert not await first
    assert harness.surface.get_image(el.ARTWORK_IMG) == "fast.jpg"
    assert harness.surface.get_image(el.BACKGROUND_IMG) == "fast.jpg"
    assert harness.surface.element(el.BACKGROUND_OVERLAY).properties[
        "--background-overlay-color"
    ] == "rgba(0, 0, 0, 0.0000)"
    assert harness.sequencer.state(Channel.ARTWORK) is TransitionState.IDLE


@pytest.mark.asyncio
async def test_failed_load_leaves_channel_incomplete(harness):
    harness.loader.failing.add("broken.jpg")

    done = await harness.sequencer.change("broken.jpg", COLORS)

    assert not done
    assert "box-shadow" not in harness.surface.element(el.ARTWORK_IMG).properties
    assert harness.sequencer.state(Channel.ARTWORK) is TransitionState.IDLE
    assert harness.surface.element(el.ROOT).properties["--color"] == "rgb(255, 127, 64)"


@pytest.mark.asyncio
async def test_transitions_disabled_skips_buffer():
    config = make_config()
    config.display.transitions = False
    harness = Harness(config)
    try:
        assert await harness.sequencer.change("cover-1.jpg", COLORS)
        assert harness.loader.loads == ["cover-1.jpg", "cover-1.jpg"]
    finally:
        await harness.close()
