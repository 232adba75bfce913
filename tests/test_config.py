"""Tests for config loading and saving."""

import stat

import pytest

from note_render.config import (
    AppConfig,
    BlinkSettings,
    load_config,
    load_config_or_default,
    save_config,
)


@pytest.fixture
def config_path(tmp_path):
    return tmp_path / "nested" / "config.toml"


class TestConfig:
    def test_round_trip(self, config_path):
        config = AppConfig(
            service_url="https://profiles.example",
            window_days=-1,
            blink=BlinkSettings(interval=1.5, transition=0.2, cycles=4),
        )
        save_config(config, config_path)
        assert load_config(config_path) == config

    def test_permissions(self, config_path):
        save_config(AppConfig(), config_path)
        assert stat.S_IMODE(config_path.stat().st_mode) == 0o600

    def test_no_service_url_omitted(self, config_path):
        save_config(AppConfig(), config_path)
        assert "base_url" not in config_path.read_text()
        assert load_config(config_path).service_url is None

    def test_missing_file(self, config_path):
        with pytest.raises(FileNotFoundError):
            load_config(config_path)
        assert load_config_or_default(config_path) == AppConfig()

    def test_defaults_for_missing_sections(self, config_path):
        config_path.parent.mkdir(parents=True)
        config_path.write_text('[service]\nbase_url = "https://p.example"\n')
        config = load_config(config_path)
        assert config.window_days == 90
        assert config.blink == BlinkSettings()

    def test_profile_path_gets_trailing_slash(self, config_path):
        config_path.parent.mkdir(parents=True)
        config_path.write_text('[render]\nprofile_path = "/u"\n')
        assert load_config(config_path).render.profile_path == "/u/"

    @pytest.mark.parametrize(
        "body",
        [
            "[recognition]\nwindow_days = -2\n",
            "[blink]\ncycles = 0\n",
            "[blink]\ninterval = 0\n",
        ],
    )
    def test_invalid_values(self, config_path, body):
        config_path.parent.mkdir(parents=True)
        config_path.write_text(body)
        with pytest.raises(ValueError):
            load_config(config_path)
