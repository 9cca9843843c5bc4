from __future__ import annotations

from dataclasses import dataclass, field
import os
from pathlib import Path
import tomllib


DEFAULT_CONFIG_PATH = Path.home() / ".config" / "playback-display" / "config.toml"


@dataclass(slots=True)
class TimingConfig:
    retry_seconds: float = 5.0
    heartbeat_timeout_seconds: float = 60.0
    progress_tick_seconds: float = 0.5
    idle_timeout_seconds: float = 60.0 * 60.0
    song_end_request_seconds: float = 0.2
    max_post_song_end_requests: int = 4


@dataclass(slots=True)
class DisplayPreferences:
    dark_mode: bool = False
    transitions: bool = True
    bg_artwork: bool = True
    artwork_glow: bool = True
    darken_background: bool = True
    scale_background: bool = True
    colored_text: bool = True


@dataclass(slots=True)
class AppConfig:
    base_url: str = "http://localhost:8080"
    flux_path: str = "/playbackinfoflux"
    info_path: str = "/playbackinfo"
    user_agent: str = "playback-display/0.1"
    request_timeout_seconds: float = 20.0
    control_socket_path: str = "/tmp/playback-display.sock"
    mpris_enabled: bool = True
    mpris_name: str = "playbackdisplay"
    waybar_max_length: int = 48
    timing: TimingConfig = field(default_factory=TimingConfig)
    display: DisplayPreferences = field(default_factory=DisplayPreferences)


def load_config(path: Path | None = None) -> AppConfig:
    resolved = path or DEFAULT_CONFIG_PATH
    if resolved.exists():
        raw = tomllib.loads(resolved.read_text(encoding="utf-8"))
    else:
        raw = {}
    app = raw.get("app", {})
    timing = raw.get("timing", {})
    display = raw.get("display", {})

    configured_base_url = str(app.get("base_url", "http://localhost:8080"))
    base_url = os.getenv("PLAYBACK_DISPLAY_BASE_URL", configured_base_url)

    defaults = TimingConfig()
    preferences = DisplayPreferences()

    return AppConfig(
        base_url=base_url.rstrip("/"),
        flux_path=str(app.get("flux_path", "/playbackinfoflux")),
        info_path=str(app.get("info_path", "/playbackinfo")),
        user_agent=str(app.get("user_agent", "playback-display/0.1")),
        request_timeout_seconds=float(app.get("request_timeout_seconds", 20.0)),
        control_socket_path=str(app.get("control_socket_path", "/tmp/playback-display.sock")),
        mpris_enabled=_as_bool(app.get("mpris_enabled", True)),
        mpris_name=str(app.get("mpris_name", "playbackdisplay")),
        waybar_max_length=int(app.get("waybar_max_length", 48)),
        timing=TimingConfig(
            retry_seconds=float(timing.get("retry_seconds", defaults.retry_seconds)),
            heartbeat_timeout_seconds=float(
                timing.get("heartbeat_timeout_seconds", defaults.heartbeat_timeout_seconds)
            ),
            progress_tick_seconds=float(
                timing.get("progress_tick_seconds", defaults.progress_tick_seconds)
            ),
            idle_timeout_seconds=float(
                timing.get("idle_timeout_seconds", defaults.idle_timeout_seconds)
            ),
            song_end_request_seconds=float(
                timing.get("song_end_request_seconds", defaults.song_end_request_seconds)
            ),
            max_post_song_end_requests=int(
                timing.get("max_post_song_end_requests", defaults.max_post_song_end_requests)
            ),
        ),
        display=DisplayPreferences(
            **{
                name: _as_bool(display.get(name, getattr(preferences, name)))
                for name in DisplayPreferences.__dataclass_fields__
            }
        ),
    )


def _as_bool(value: object) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes", "on"}
    return bool(value)
