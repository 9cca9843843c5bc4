import asyncio

import pytest

from playback_display import surface as el
from playback_display.models import (
    DEFAULT_COLORS,
    DEFAULT_IMAGE,
    MalformedPayloadError,
    PlaybackSnapshot,
    RepeatMode,
    UpdateEvent,
)

from conftest import data_event


FULL_EVENT = data_event(
    title="First",
    artists=["Artist"],
    album="Album",
    release="2001",
    context="Playlist",
    device="Kitchen",
    timeCurrent=10_000,
    timeTotal=180_000,
    paused=False,
    shuffle=True,
    repeat="off",
)


@pytest.mark.asyncio
async def test_merge_is_sparse(harness):
    harness.reconciler.apply_payload(FULL_EVENT)
    before = PlaybackSnapshot(**{
        name: getattr(harness.context.store, name)
        for name in PlaybackSnapshot.__dataclass_fields__
    })

    harness.reconciler.apply_payload(data_event(title="X"))

    after = harness.context.store
    assert after.title == "X"
    for name in PlaybackSnapshot.__dataclass_fields__:
        if name != "title":
            assert getattr(after, name) == getattr(before, name)


@pytest.mark.asyncio
async def test_non_data_events_are_ignored(harness):
    assert not harness.reconciler.apply(UpdateEvent(kind="HEARTBEAT", fields={"title": "x"}))
    assert harness.context.store.is_empty()
    assert harness.reconciler.merge_count == 0


@pytest.mark.asyncio
async def test_repeated_event_reanchors_cursor_each_time(harness):
    event = data_event(timeCurrent=5_000, timeTotal=60_000, paused=False)

    harness.reconciler.apply_payload(event)
    first_store = harness.context.store.to_payload()
    first_anchor = harness.extrapolator.cursor.reference_clock_ms

    harness.clock.advance(1_500)
    harness.reconciler.apply_payload(event)

    assert harness.context.store.to_payload() == first_store
    cursor = harness.extrapolator.cursor
    assert cursor.reference_clock_ms == first_anchor + 1_500
    assert cursor.reference_time_ms == 5_000


@pytest.mark.asyncio
async def test_merge_renders_text_and_shows_surface(harness):
    harness.surface.set_class(el.BODY, "hidden", True)

    harness.reconciler.apply_payload(FULL_EVENT)

    assert harness.text(el.TITLE) == "First"
    assert harness.text(el.ALBUM) == "Album (2001)"
    assert harness.text(el.TIME_TOTAL) == "3:00"
    assert "hidden" not in harness.classes(el.BODY)
    assert harness.context.store.repeat is RepeatMode.OFF

    harness.reconciler.apply_payload(data_event(release=""))
    assert harness.text(el.ALBUM) == "Album"


@pytest.mark.asyncio
async def test_merge_restarts_timers_and_clears_idle(harness):
    harness.context.idle = True

    harness.reconciler.apply_payload(data_event(title="wake"))

    assert not harness.context.idle
    assert harness.extrapolator.ticking
    assert harness.extrapolator.idle_armed


@pytest.mark.asyncio
async def test_blank_image_falls_back_to_idle_artwork(harness):
    harness.reconciler.apply_payload(data_event(image="BLANK"))

    assert harness.context.store.image == DEFAULT_IMAGE
    assert harness.context.store.image_colors == DEFAULT_COLORS
    await asyncio.sleep(0.01)
    assert harness.surface.get_image(el.ARTWORK_IMG) == DEFAULT_IMAGE


@pytest.mark.asyncio
async def test_listeners_receive_merged_snapshot(harness):
    seen = []
    harness.reconciler.subscribe(lambda snapshot: seen.append(snapshot.title))

    harness.reconciler.apply_payload(data_event(title="one"))
    harness.reconciler.apply_payload({"type": "HEARTBEAT"})

    assert seen == ["one"]


@pytest.mark.asyncio
async def test_malformed_payload_propagates(harness):
    with pytest.raises(MalformedPayloadError):
        harness.reconciler.apply_payload("DATA")
