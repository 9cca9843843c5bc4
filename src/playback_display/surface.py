from __future__ import annotations

import asyncio
import base64
import binascii
from dataclasses import dataclass, field
import logging
from typing import Any, Protocol

import httpx


LOGGER = logging.getLogger(__name__)

EMPTY_IMAGE_DATA = (
    "data:image/gif;base64,R0lGODlhAQABAAAAACH5BAEKAAEALAAAAAABAAEAAAICTAEAOw=="
)
DEFAULT_DOCUMENT_TITLE = "Playback Info"
FRAME_SECONDS = 1 / 60

BODY = "body"
ROOT = "root"
TITLE = "title"
ARTISTS = "artists"
ALBUM = "album"
CONTEXT = "context"
DEVICE = "device"
TIME_CURRENT = "time-current"
TIME_TOTAL = "time-total"
PAUSE_BADGE = "pause"
SHUFFLE_BADGE = "shuffle"
REPEAT_BADGE = "repeat"
ARTWORK_IMG = "artwork-img"
ARTWORK_CROSSFADE = "artwork-img-crossfade"
BACKGROUND = "background"
BACKGROUND_OVERLAY = "background-overlay"
BACKGROUND_IMG = "background-img"
BACKGROUND_CROSSFADE = "background-img-crossfade"
DARK_OVERLAY = "dark-overlay"


class AssetLoadError(RuntimeError):
    pass


class PresentationSurface(Protocol):
    def set_text(self, element: str, text: str) -> None: ...

    def set_document_title(self, title: str) -> None: ...

    def set_progress(self, ratio: float) -> None: ...

    def set_class(self, element: str, class_name: str, state: bool) -> None: ...

    def has_class(self, element: str, class_name: str) -> bool: ...

    def set_property(self, element: str, name: str, value: str) -> None: ...

    def get_image(self, element: str) -> str: ...

    async def load_image(self, element: str, ref: str) -> None: ...

    async def next_frame(self) -> None: ...


class AssetLoader:
    def __init__(
        self, base_url: str, *, user_agent: str = "playback-display/0.1", timeout: float = 20.0
    ) -> None:
        self._http = httpx.AsyncClient(
            base_url=base_url,
            headers={"User-Agent": user_agent},
            timeout=timeout,
            follow_redirects=True,
        )

    async def load(self, ref: str) -> bytes:
        if ref.startswith("data:"):
            return _decode_data_uri(ref)
        try:
            response = await self._http.get(ref)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise AssetLoadError(f"failed to load {ref}: {exc}") from exc
        return response.content

    async def close(self) -> None:
        await self._http.aclose()


@dataclass(slots=True)
class Element:
    text: str = ""
    classes: set[str] = field(default_factory=set)
    properties: dict[str, str] = field(default_factory=dict)
    src: str = ""
    loaded: bool = False


class HeadlessSurface:
    def __init__(self, loader: AssetLoader, *, frame_seconds: float = FRAME_SECONDS) -> None:
        self._loader = loader
        self._frame_seconds = frame_seconds
        self._elements: dict[str, Element] = {}
        self.document_title = DEFAULT_DOCUMENT_TITLE
        self.progress = 0.0

    def element(self, name: str) -> Element:
        return self._elements.setdefault(name, Element())

    def set_text(self, element: str, text: str) -> None:
        self.element(element).text = text

    def set_document_title(self, title: str) -> None:
        self.document_title = title

    def set_progress(self, ratio: float) -> None:
        self.progress = ratio

    def set_class(self, element: str, class_name: str, state: bool) -> None:
        classes = self.element(element).classes
        if state:
            classes.add(class_name)
        else:
            classes.discard(class_name)

    def has_class(self, element: str, class_name: str) -> bool:
        return class_name in self.element(element).classes

    def set_property(self, element: str, name: str, value: str) -> None:
        self.element(element).properties[name] = value

    def get_image(self, element: str) -> str:
        return self.element(element).src

    async def load_image(self, element: str, ref: str) -> None:
        target = self.element(element)
        target.src = ref
        target.loaded = False
        await self._loader.load(ref)
        if target.src == ref:
            target.loaded = True
        else:
            LOGGER.debug("Discarding late load of %s for %s", ref, element)

    async def next_frame(self) -> None:
        await asyncio.sleep(self._frame_seconds)

    def describe(self) -> dict[str, Any]:
        return {
            "title": self.document_title,
            "progress": round(self.progress, 4),
            "elements": {
                name: {
                    "text": element.text,
                    "classes": sorted(element.classes),
                    "properties": dict(element.properties),
                    "src": element.src,
                }
                for name, element in sorted(self._elements.items())
            },
        }

    async def close(self) -> None:
        await self._loader.close()


def _decode_data_uri(ref: str) -> bytes:
    header, _, data = ref.partition(",")
    if not header.endswith(";base64"):
        return data.encode("utf-8")
    try:
        return base64.b64decode(data, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise AssetLoadError("malformed data URI") from exc
