from pathlib import Path

import pytest

from nazer.configuration.app_configuration import (
    DEFAULT_CACHE_TTL_SECONDS,
    DEFAULT_RESTORE_DELAY_SECONDS,
    AppConfig,
)


@pytest.fixture()
def config_path(tmp_path: Path) -> Path:
    return tmp_path / "app_config.yml"


def test_app_config_reload_parses_yaml(config_path: Path) -> None:
    config_path.write_text(
        """
cache:
  ttl_seconds: 120
  sweep_interval_seconds: 15
eviction:
  restore_delay_seconds: 0.5
follow_up:
  fallback_parse_mode: MarkdownV2
database:
  path: data/test.db
""",
        encoding="utf-8",
    )

    config = AppConfig(config_path)

    assert config.cache_ttl_seconds == pytest.approx(120)
    assert config.cache_sweep_interval == pytest.approx(15)
    assert config.restore_delay_seconds == pytest.approx(0.5)
    assert config.fallback_parse_mode == "MarkdownV2"
    assert config.database_path == Path("data/test.db").resolve()
    assert config.reload()["cache"] == {"ttl_seconds": 120, "sweep_interval_seconds": 15}


def test_app_config_missing_file_returns_defaults(tmp_path: Path) -> None:
    config = AppConfig(tmp_path / "does_not_exist.yml")

    assert config.reload() == {}
    assert config.cache_ttl_seconds == DEFAULT_CACHE_TTL_SECONDS
    assert config.restore_delay_seconds == DEFAULT_RESTORE_DELAY_SECONDS
    assert config.fallback_parse_mode == "HTML"
    assert config.database_path.name == "app.db"


def test_app_config_non_mapping_is_ignored(config_path: Path) -> None:
    config_path.write_text("- just\n- a list\n", encoding="utf-8")

    assert AppConfig(config_path).reload() == {}


@pytest.mark.parametrize("raw", ["0", "-5", "soon"])
def test_invalid_numbers_fall_back_to_defaults(config_path: Path, raw: str) -> None:
    config_path.write_text(f"cache:\n  ttl_seconds: {raw}\n", encoding="utf-8")

    assert AppConfig(config_path).cache_ttl_seconds == DEFAULT_CACHE_TTL_SECONDS


def test_reload_picks_up_changes(config_path: Path) -> None:
    config_path.write_text("cache:\n  ttl_seconds: 10\n", encoding="utf-8")
    config = AppConfig(config_path)
    config_path.write_text("cache:\n  ttl_seconds: 20\n", encoding="utf-8")

    config.reload()

    assert config.cache_ttl_seconds == pytest.approx(20)
