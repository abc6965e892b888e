"""Tests for context configuration loading and validation."""

from __future__ import annotations

import json

import pytest

from conftest import make_config_data
from focus_music.config import (
    DEFAULT_PRIORITY_ORDER,
    ConfigError,
    default_config_data,
    keyword_overlaps,
    load_config,
    parse_config,
    write_default_config,
)


def test_contexts_follow_priority_order(config) -> None:
    assert config.priority_order == (
        "meetings",
        "coding",
        "focus",
        "creative",
        "default",
    )
    assert "coding" in config
    assert config.get("nope") is None


def test_min_dwell_defaults_to_poll_interval() -> None:
    config = parse_config(make_config_data(pollIntervalSeconds=12))
    assert config.min_dwell_s == 12
    explicit = parse_config(make_config_data(minDwellSeconds=90))
    assert explicit.min_dwell_s == 90


def test_unknown_priority_entry_fails_fast() -> None:
    data = make_config_data()
    data["priorityOrder"] = [*data["priorityOrder"], "gaming"]
    with pytest.raises(ConfigError, match="unknown context 'gaming'"):
        parse_config(data)


def test_duplicate_priority_entry_fails_fast() -> None:
    data = make_config_data()
    data["priorityOrder"] = ["coding", *data["priorityOrder"]]
    with pytest.raises(ConfigError, match="more than once"):
        parse_config(data)


def test_context_missing_from_priority_order_fails_fast() -> None:
    data = make_config_data()
    data["priorityOrder"].remove("creative")
    with pytest.raises(ConfigError, match="creative"):
        parse_config(data)


def test_default_context_is_required() -> None:
    data = make_config_data()
    del data["contexts"]["default"]
    data["priorityOrder"].remove("default")
    with pytest.raises(ConfigError, match="'default'"):
        parse_config(data)


@pytest.mark.parametrize("volume", [-1, 101, "50", True])
def test_volume_must_be_integer_in_range(volume) -> None:
    data = make_config_data()
    data["contexts"]["coding"]["volume"] = volume
    with pytest.raises(ConfigError, match="volume"):
        parse_config(data)


def test_duplicate_context_names_in_file_fail_fast(tmp_path) -> None:
    path = tmp_path / "contexts.json"
    path.write_text(
        '{"contexts": {"default": {"volume": 1, "playlistId": "a"},'
        ' "default": {"volume": 2, "playlistId": "b"}},'
        ' "priorityOrder": ["default"]}',
        encoding="utf-8",
    )
    with pytest.raises(ConfigError, match="Duplicate key 'default'"):
        load_config(path)


def test_invalid_json_raises_config_error(tmp_path) -> None:
    path = tmp_path / "contexts.json"
    path.write_text("{not json", encoding="utf-8")
    with pytest.raises(ConfigError, match="not valid JSON"):
        load_config(path)


def test_missing_file_uses_builtin_defaults(tmp_path) -> None:
    config = load_config(tmp_path / "missing.json")
    assert list(config.priority_order) == DEFAULT_PRIORITY_ORDER
    assert not config.get("coding").playlist_configured


def test_write_default_config_round_trips(tmp_path) -> None:
    path = tmp_path / "nested" / "contexts.json"
    write_default_config(path)
    assert json.loads(path.read_text(encoding="utf-8")) == default_config_data()
    assert load_config(path).poll_interval_s == 30


def test_keywords_are_casefolded_and_deduplicated() -> None:
    data = make_config_data()
    data["contexts"]["coding"]["keywords"] = ["GitHub", "github", " ", "Dev "]
    config = parse_config(data)
    assert config.get("coding").keywords == ("github", "dev")


def test_legacy_playlist_uri_key_is_accepted() -> None:
    data = make_config_data()
    del data["contexts"]["focus"]["playlistId"]
    data["contexts"]["focus"]["playlist_uri"] = "spotify:playlist:legacy"
    assert parse_config(data).get("focus").playlist_id == "spotify:playlist:legacy"


def test_player_settings_are_validated() -> None:
    config = parse_config(
        make_config_data(player="Music", bridgeTimeoutSeconds=2, launchPlayer=True)
    )
    assert config.player_app == "Music"
    assert config.bridge_timeout_s == 2.0
    assert config.launch_player is True
    with pytest.raises(ConfigError, match="bridgeTimeoutSeconds"):
        parse_config(make_config_data(bridgeTimeoutSeconds=0))
    with pytest.raises(ConfigError, match="launchPlayer"):
        parse_config(make_config_data(launchPlayer="yes"))


def test_shadowed_keywords_are_reported(caplog) -> None:
    data = make_config_data()
    data["contexts"]["focus"]["keywords"] = ["github docs"]
    with caplog.at_level("WARNING", logger="focus_music.config"):
        config = parse_config(data)
    assert keyword_overlaps(config) == [("coding", "focus", "github docs")]
    assert "github docs" in caplog.text
