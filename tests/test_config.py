from playback_display.config import AppConfig, load_config


def test_missing_file_gives_defaults(tmp_path, monkeypatch):
    monkeypatch.delenv("PLAYBACK_DISPLAY_BASE_URL", raising=False)

    config = load_config(tmp_path / "absent.toml")

    assert config == AppConfig()
    assert config.timing.retry_seconds == 5.0
    assert config.timing.heartbeat_timeout_seconds == 60.0
    assert config.timing.idle_timeout_seconds == 3600.0
    assert config.timing.max_post_song_end_requests == 4


def test_toml_sections_are_read(tmp_path, monkeypatch):
    monkeypatch.delenv("PLAYBACK_DISPLAY_BASE_URL", raising=False)
    path = tmp_path / "config.toml"
    path.write_text(
        """
[app]
base_url = "http://music.local:9000/"
mpris_enabled = "off"
waybar_max_length = 30

[timing]
retry_seconds = 2
progress_tick_seconds = 0.25

[display]
dark_mode = true
transitions = "no"
""",
        encoding="utf-8",
    )

    config = load_config(path)

    assert config.base_url == "http://music.local:9000"
    assert not config.mpris_enabled
    assert config.waybar_max_length == 30
    assert config.timing.retry_seconds == 2.0
    assert config.timing.progress_tick_seconds == 0.25
    assert config.timing.heartbeat_timeout_seconds == 60.0
    assert config.display.dark_mode
    assert not config.display.transitions
    assert config.display.colored_text


def test_environment_overrides_base_url(tmp_path, monkeypatch):
    path = tmp_path / "config.toml"
    path.write_text('[app]\nbase_url = "http://from-file"\n', encoding="utf-8")
    monkeypatch.setenv("PLAYBACK_DISPLAY_BASE_URL", "http://from-env/")

    assert load_config(path).base_url == "http://from-env"
