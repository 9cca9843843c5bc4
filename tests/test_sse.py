import pytest

from playback_display.sse import ServerSentEvent, iter_events


async def collect(lines):
    async def source():
        for line in lines:
            yield line

    return [event async for event in iter_events(source())]


@pytest.mark.asyncio
async def test_data_lines_are_joined_until_blank_line():
    events = await collect(["data: {\"a\":", "data: 1}", "", "data:x", ""])

    assert events == [
        ServerSentEvent(data='{"a":\n1}'),
        ServerSentEvent(data="x"),
    ]


@pytest.mark.asyncio
async def test_comments_named_events_and_ids():
    events = await collect([": ping", "event: heartbeat", "id: 7", "data: {}", ""])

    assert events[0].comment
    assert events[0].data == "ping"
    assert events[1] == ServerSentEvent(event="heartbeat", data="{}", id="7")


@pytest.mark.asyncio
async def test_unterminated_trailing_event_is_dropped():
    events = await collect(["data: done", "", "data: tail"])

    assert events == [ServerSentEvent(data="done")]


@pytest.mark.asyncio
async def test_block_without_data_is_not_dispatched():
    events = await collect(["event: update", "", "data:", ""])

    assert events == [ServerSentEvent(data="")]
