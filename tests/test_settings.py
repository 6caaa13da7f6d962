"""
Tests for settings loading and validation.
"""

import pytest
import os
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from core.settings import (
    ConfigurationError,
    MonitorSettings,
    DEFAULT_SETTINGS_PATH,
    load_settings,
    validate_settings,
)


@pytest.fixture
def settings_file(tmp_path):
    path = tmp_path / 'settings.yaml'
    path.write_text(
        "monitor:\n"
        "  app_id: 440\n"
        "  app_name: Team Fortress 2\n"
        "  state_file: /tmp/tf2.json\n"
        "reconnect:\n"
        "  base_delay: 2\n"
        "  max_delay: 120\n"
        "logging:\n"
        "  level: DEBUG\n",
        encoding='utf-8'
    )
    return str(path)


class TestLoadSettings:
    """Tests for load_settings."""

    def test_defaults_without_file(self, tmp_path):
        settings = load_settings(str(tmp_path / 'missing.yaml'), env={})

        assert settings == MonitorSettings()
        assert settings.resource_id == 570
        assert settings.resource_label == 'Dota 2'
        assert settings.anonymous is True

    def test_shipped_settings_file(self):
        settings = load_settings(DEFAULT_SETTINGS_PATH, env={})

        assert settings.resource_id == 570
        assert settings.base_reconnect_delay == 5.0
        assert settings.max_reconnect_delay == 300.0
        assert settings.connect_timeout == 30.0

    def test_yaml_values(self, settings_file):
        settings = load_settings(settings_file, env={})

        assert settings.resource_id == 440
        assert settings.resource_label == 'Team Fortress 2'
        assert settings.state_file == '/tmp/tf2.json'
        assert settings.base_reconnect_delay == 2.0
        assert isinstance(settings.base_reconnect_delay, float)
        assert settings.max_reconnect_delay == 120.0
        assert settings.log_level == 'DEBUG'

    def test_environment_overrides_yaml(self, settings_file):
        env = {
            'DISCORD_WEBHOOK_URL': 'https://discord.com/api/webhooks/1/x',
            'STEAM_USERNAME': 'user',
            'STEAM_PASSWORD': 'pw',
            'STATE_FILE': 'other.json',
            'TRACKED_APP_ID': '570',
            'LOG_LEVEL': '',
        }

        settings = load_settings(settings_file, env=env)

        assert settings.webhook_url == 'https://discord.com/api/webhooks/1/x'
        assert settings.anonymous is False
        assert settings.state_file == 'other.json'
        assert settings.resource_id == 570
        assert settings.log_level == 'DEBUG'

    def test_bad_app_id_in_environment(self, tmp_path):
        with pytest.raises(ConfigurationError):
            load_settings(str(tmp_path / 'missing.yaml'), env={'TRACKED_APP_ID': 'dota'})

    def test_bad_yaml_value(self, tmp_path):
        path = tmp_path / 'settings.yaml'
        path.write_text("reconnect:\n  base_delay: soon\n", encoding='utf-8')

        with pytest.raises(ConfigurationError):
            load_settings(str(path), env={})

    def test_invalid_yaml_falls_back_to_defaults(self, tmp_path):
        path = tmp_path / 'settings.yaml'
        path.write_text("monitor: [unclosed\n", encoding='utf-8')

        assert load_settings(str(path), env={}) == MonitorSettings()

    def test_repr_hides_secrets(self):
        settings = MonitorSettings(webhook_url='https://discord.com/api/webhooks/1/secret',
                                   steam_password='hunter2')
        text = repr(settings)

        assert 'secret' not in text
        assert 'hunter2' not in text


class TestValidateSettings:
    """Tests for validate_settings."""

    def test_valid(self):
        validate_settings(MonitorSettings(webhook_url='https://discord.com/api/webhooks/1/x'))

    def test_missing_webhook(self):
        with pytest.raises(ConfigurationError, match='DISCORD_WEBHOOK_URL is required'):
            validate_settings(MonitorSettings())

    def test_webhook_optional_when_not_required(self):
        validate_settings(MonitorSettings(), require_webhook=False)

    def test_collects_all_errors(self):
        settings = MonitorSettings(
            webhook_url='discord',
            base_reconnect_delay=10.0,
            max_reconnect_delay=5.0,
            steam_username='user'
        )

        with pytest.raises(ConfigurationError) as exc_info:
            validate_settings(settings)

        message = str(exc_info.value)
        assert 'http(s) URL' in message
        assert 'max_delay' in message
        assert 'STEAM_PASSWORD' in message


if __name__ == '__main__':
    pytest.main([__file__, '-v'])
