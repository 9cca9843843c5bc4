from playback_display.app import waybar_payload
from playback_display.cli import parse_args


def test_waybar_idle():
    payload = waybar_payload({"idle": True, "connection": "connected", "snapshot": {}}, 48)

    assert payload["text"] == "■ Idle"
    assert payload["class"] == ["idle", "connected"]


def test_waybar_playing_track():
    state = {
        "idle": False,
        "connection": "connected",
        "position_ms": 65_000,
        "snapshot": {
            "title": "Song (feat. Guest)",
            "artists": ["Main", "Guest"],
            "album": "Record",
            "timeTotal": 200_000,
            "paused": False,
        },
    }

    payload = waybar_payload(state, 48)

    assert payload["text"] == "▶ Main - Song"
    assert payload["class"] == ["playing", "connected"]
    assert payload["tooltip"].splitlines() == [
        "Main (feat. Guest)",
        "Song",
        "Record",
        "1:05 / 3:20",
    ]


def test_waybar_truncates_and_marks_pause():
    state = {
        "connection": "stale",
        "snapshot": {"title": "A very long title indeed", "artists": ["Someone"], "paused": True},
    }

    payload = waybar_payload(state, 12)

    assert payload["text"] == "⏸ Someone -…"
    assert len(payload["text"]) == 12
    assert payload["class"] == ["paused", "stale"]


def test_parse_args():
    args = parse_args(["--log-level", "DEBUG", "waybar"])
    assert args.command == "waybar"
    assert args.log_level == "DEBUG"
    assert args.config is None

    assert parse_args([]).command is None
