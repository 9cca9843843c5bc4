from __future__ import annotations

from collections.abc import AsyncIterable, AsyncIterator
from dataclasses import dataclass


@dataclass(slots=True)
class ServerSentEvent:
    event: str = "message"
    data: str = ""
    id: str = ""
    comment: bool = False


async def iter_events(lines: AsyncIterable[str]) -> AsyncIterator[ServerSentEvent]:
    event = ""
    data: list[str] = []
    event_id = ""
    async for raw in lines:
        line = raw.rstrip("\r\n")
        if not line:
            if data:
                yield ServerSentEvent(event=event or "message", data="\n".join(data), id=event_id)
            event, data = "", []
            continue
        if line.startswith(":"):
            yield ServerSentEvent(event="", data=line[1:].strip(), comment=True)
            continue
        name, _, value = line.partition(":")
        if value.startswith(" "):
            value = value[1:]
        if name == "data":
            data.append(value)
        elif name == "event":
            event = value
        elif name == "id":
            event_id = value
