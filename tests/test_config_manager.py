"""Unit tests for configuration management."""

from pathlib import Path

import pytest

from igplanner.config import (
    ConfigError,
    ConfigManager,
    PlannerConfig,
    flatten_for_env,
    resolve_nextcloud_location,
    resolve_with_precedence,
)


def _fresh_manager(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> ConfigManager:
    monkeypatch.setenv("HOME", str(tmp_path))
    return ConfigManager(env={})


def test_ensure_exists_creates_default_file(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    manager = _fresh_manager(tmp_path, monkeypatch)

    path = manager.ensure_exists()

    assert path == tmp_path / ".igplanner" / "config.yaml"
    text = path.read_text(encoding="utf-8")
    assert "igplanner configuration file" in text
    assert "Last updated:" in text

    config = manager.load(include_env=False)
    assert isinstance(config, PlannerConfig)
    assert config.nextcloud.dir == "/Photos"
    assert config.server.port == 8080


def test_resolve_with_precedence_respects_order(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    manager = _fresh_manager(tmp_path, monkeypatch)
    manager.ensure_exists()

    manager.save({"llm": {"model": "gpt-4o"}, "server": {"port": 9000}})

    env = {"IGPLANNER__SERVER__PORT": "9100"}
    cli = {"server.port": 9200}

    config = manager.load(cli_overrides=cli, env_overrides=env)

    assert config.llm.model == "gpt-4o"
    # CLI overrides take precedence over environment
    assert config.server.port == 9200


def test_flat_environment_names_are_accepted(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    manager = _fresh_manager(tmp_path, monkeypatch)
    env = {
        "NEXTCLOUD_BASE_URL": "https://cloud.example.com/",
        "NEXTCLOUD_USERNAME": "alice",
        "NEXTCLOUD_APP_PASSWORD": "secret",
        "OPENAI_API_KEY": "sk-test",
        "OPENAI_FALLBACK_MODEL": "",
        "PORT": "8787",
    }

    config = manager.load(env_overrides=env)

    assert config.nextcloud.base_url == "https://cloud.example.com"
    assert config.nextcloud.is_configured
    assert config.llm.api_key == "sk-test"
    # Empty values leave the default untouched.
    assert config.llm.fallback_model == "gpt-4o-mini"
    assert config.server.port == 8787


def test_web_ui_url_supplies_directory(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    manager = _fresh_manager(tmp_path, monkeypatch)
    web_ui = "https://cloud.example.com/index.php/apps/files/files?dir=/Trips/2024"
    env = {"NEXTCLOUD_BASE_URL": web_ui}

    config = manager.load(env_overrides=env)

    assert config.nextcloud.base_url == "https://cloud.example.com"
    assert config.nextcloud.dir == "/Trips/2024"


def test_explicit_directory_beats_web_ui_url() -> None:
    base, directory = resolve_nextcloud_location(
        "https://cloud.example.com/apps/files/files?dir=/Other", "/Photos/Best"
    )

    assert base == "https://cloud.example.com"
    assert directory == "/Photos/Best"


def test_invalid_yaml_raises_config_error(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    manager = _fresh_manager(tmp_path, monkeypatch)
    manager.ensure_exists()

    manager.config_path.write_text("- not-a-mapping", encoding="utf-8")

    with pytest.raises(ConfigError):
        manager.load()


def test_flatten_for_env_round_trips_defaults() -> None:
    flat = flatten_for_env(PlannerConfig())

    assert flat["IGPLANNER__SERVER__PORT"] == "8080"
    assert flat["IGPLANNER__NEXTCLOUD__MAX_IMAGES"] == "300"
    assert flat["IGPLANNER__LLM__API_KEY"] == "null"


def test_resolve_with_precedence_invalid_value_raises() -> None:
    with pytest.raises(ConfigError):
        resolve_with_precedence(
            defaults=PlannerConfig(),
            file_overrides={"server": {"port": "not-an-int"}},
        )


def test_unknown_keys_are_rejected() -> None:
    with pytest.raises(ConfigError):
        resolve_with_precedence(
            defaults=PlannerConfig(),
            file_overrides={"nextcloud": {"pasword": "typo"}},
        )
