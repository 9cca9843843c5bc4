from __future__ import annotations

import argparse
import asyncio
import json
import logging
from typing import Any

import httpx

from playback_display.config import AppConfig, load_config
from playback_display.controller import DisplayController
from playback_display.ipc import DisplayIpcServer, send_ipc
from playback_display.mpris import DisplayMprisService
from playback_display.render import format_artists, format_time, remove_features


LOGGER = logging.getLogger(__name__)


async def run_daemon(config: AppConfig) -> None:
    controller = DisplayController(config)
    ipc = DisplayIpcServer(controller=controller, socket_path=config.control_socket_path)
    mpris = DisplayMprisService(controller=controller, mpris_name=config.mpris_name)

    await ipc.start()
    if config.mpris_enabled:
        await mpris.start()
    await controller.start()
    LOGGER.info("Display started, control socket at %s", config.control_socket_path)

    try:
        await asyncio.Event().wait()
    finally:
        await mpris.stop()
        await ipc.stop()
        await controller.stop()


async def run_status_command(config: AppConfig) -> None:
    response = await send_ipc(config.control_socket_path, "status")
    if not response.get("ok", False):
        raise SystemExit(f"status failed: {response.get('error', 'unknown error')}")
    print(json.dumps(response["state"], indent=2))


async def run_refresh_command(config: AppConfig) -> None:
    response = await send_ipc(config.control_socket_path, "refresh")
    if not response.get("ok", False):
        raise SystemExit(f"refresh failed: {response.get('error', 'unknown error')}")
    print(json.dumps(response, indent=2))


async def run_waybar_command(config: AppConfig) -> None:
    response = await send_ipc(config.control_socket_path, "status")
    if not response.get("ok", False):
        print(
            json.dumps(
                {
                    "text": "Display offline",
                    "class": ["offline"],
                    "tooltip": "playback-display daemon not running",
                }
            )
        )
        return
    print(json.dumps(waybar_payload(response.get("state", {}), config.waybar_max_length)))


def waybar_payload(state: dict[str, Any], max_length: int) -> dict[str, Any]:
    snapshot = state.get("snapshot", {})
    connection = str(state.get("connection", "disconnected"))
    if state.get("idle") or not snapshot.get("title"):
        return {"text": "■ Idle", "class": ["idle", connection], "tooltip": "Nothing playing"}

    paused = bool(snapshot.get("paused", False))
    icon = "⏸" if paused else "▶"
    title = remove_features(str(snapshot.get("title", "")))
    artists = [str(artist) for artist in snapshot.get("artists", [])]
    artist = artists[0] if artists else ""
    current, total = format_time(
        int(state.get("position_ms", 0)), int(snapshot.get("timeTotal", 0) or 0)
    )
    full_text = f"{icon} {artist} - {title}" if artist else f"{icon} {title}"
    tooltip_lines = [format_artists(artists), title]
    if snapshot.get("album"):
        tooltip_lines.append(str(snapshot["album"]))
    tooltip_lines.append(f"{current} / {total}")
    return {
        "text": _truncate(full_text, max_length),
        "class": ["paused" if paused else "playing", connection],
        "tooltip": "\n".join(line for line in tooltip_lines if line),
    }


def _truncate(text: str, max_length: int) -> str:
    if len(text) <= max_length:
        return text
    return text[: max_length - 1] + "…"


async def run_doctor(config: AppConfig) -> None:
    checks: dict[str, Any] = {
        "base_url": config.base_url,
        "flux_path": config.flux_path,
        "info_path": config.info_path,
        "control_socket_path": config.control_socket_path,
        "mpris_enabled": config.mpris_enabled,
        "heartbeat_timeout_seconds": config.timing.heartbeat_timeout_seconds,
        "retry_seconds": config.timing.retry_seconds,
    }
    async with httpx.AsyncClient(
        base_url=config.base_url, timeout=config.request_timeout_seconds
    ) as http:
        try:
            response = await http.get(config.info_path, params={"full": "true"})
            checks["info_status"] = response.status_code
        except httpx.HTTPError as exc:
            checks["info_error"] = repr(exc)
    print(json.dumps(checks, indent=2))


async def run(args: argparse.Namespace) -> None:
    config = load_config(args.config)
    command = args.command or "run"

    if command == "run":
        await run_daemon(config)
        return
    if command == "status":
        await run_status_command(config)
        return
    if command == "refresh":
        await run_refresh_command(config)
        return
    if command == "waybar":
        await run_waybar_command(config)
        return
    if command == "doctor":
        await run_doctor(config)
        return

    raise SystemExit(f"Unknown command: {command}")
