"""
Settings - Loads monitor configuration from YAML, .env and the environment.
"""

import os
import logging
from dataclasses import dataclass, fields, replace
from typing import Dict, Any, Optional, Union

import yaml
from dotenv import load_dotenv


BASE_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
DEFAULT_SETTINGS_PATH = os.path.join(BASE_DIR, 'config', 'settings.yaml')

logger = logging.getLogger('Settings')


class ConfigurationError(Exception):
    """Raised when the configuration cannot be used to start the monitor."""


@dataclass(frozen=True)
class MonitorSettings:
    """Validated runtime configuration."""

    resource_id: Union[int, str] = 570
    resource_label: str = 'Dota 2'
    webhook_url: str = ''
    steam_username: str = ''
    steam_password: str = ''
    state_file: str = 'state.json'
    base_reconnect_delay: float = 5.0
    max_reconnect_delay: float = 300.0
    connect_timeout: float = 30.0
    poll_interval: float = 60.0
    http_timeout: float = 30.0
    user_agent: str = 'Steam-Update-Monitor/1.0'
    api_base_url: str = 'https://api.steamcmd.net/v1'
    log_level: str = 'INFO'
    log_format: str = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    log_file: Optional[str] = None

    @property
    def anonymous(self) -> bool:
        """Anonymous log-on unless a username is configured."""
        return not self.steam_username

    def __repr__(self) -> str:
        # Secrets stay out of logs
        parts = []
        for f in fields(self):
            value = getattr(self, f.name)
            if f.name in SECRET_FIELDS and value:
                parts.append(f"{f.name}='***'")
            else:
                parts.append(f"{f.name}={value!r}")
        return f"MonitorSettings({', '.join(parts)})"


SECRET_FIELDS = frozenset(['steam_password', 'webhook_url'])


# Environment variable -> (settings field, converter)
ENV_OVERRIDES = {
    'DISCORD_WEBHOOK_URL': ('webhook_url', str),
    'STEAM_USERNAME': ('steam_username', str),
    'STEAM_PASSWORD': ('steam_password', str),
    'STATE_FILE': ('state_file', str),
    'TRACKED_APP_ID': ('resource_id', int),
    'LOG_LEVEL': ('log_level', str),
}

# YAML section -> {key: settings field}
YAML_LAYOUT = {
    'monitor': {
        'app_id': 'resource_id',
        'app_name': 'resource_label',
        'state_file': 'state_file',
    },
    'steam': {
        'api_base_url': 'api_base_url',
        'poll_interval': 'poll_interval',
        'connect_timeout': 'connect_timeout',
    },
    'reconnect': {
        'base_delay': 'base_reconnect_delay',
        'max_delay': 'max_reconnect_delay',
    },
    'http': {
        'timeout': 'http_timeout',
        'user_agent': 'user_agent',
    },
    'logging': {
        'level': 'log_level',
        'format': 'log_format',
        'file': 'log_file',
    },
}


def _load_yaml(path: str) -> Dict[str, Any]:
    """Load a YAML configuration file, returning {} if it is missing or invalid."""
    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = yaml.safe_load(f) or {}
    except FileNotFoundError:
        logger.warning(f"Config file not found: {path} - using defaults")
        return {}
    except yaml.YAMLError as e:
        logger.warning(f"Error parsing YAML file {path}: {e} - using defaults")
        return {}

    if not isinstance(data, dict):
        logger.warning(f"Config file {path} is not a mapping - using defaults")
        return {}
    return data


def load_settings(
    settings_path: str = None,
    env: Dict[str, str] = None,
    dotenv_path: str = None
) -> MonitorSettings:
    """
    Build settings from defaults, then the YAML file, then the environment.

    Args:
        settings_path: Path to settings.yaml
        env: Environment mapping (defaults to os.environ after loading .env)
        dotenv_path: Optional .env file to load before reading os.environ

    Returns:
        MonitorSettings

    Raises:
        ConfigurationError: If a value has the wrong type
    """
    if env is None:
        load_dotenv(dotenv_path)
        env = dict(os.environ)

    values: Dict[str, Any] = {}

    document = _load_yaml(settings_path or DEFAULT_SETTINGS_PATH)
    for section, keys in YAML_LAYOUT.items():
        section_data = document.get(section) or {}
        if not isinstance(section_data, dict):
            logger.warning(f"Ignoring config section '{section}': not a mapping")
            continue
        for key, field_name in keys.items():
            if section_data.get(key) is not None:
                values[field_name] = section_data[key]

    for var, (field_name, convert) in ENV_OVERRIDES.items():
        raw = env.get(var)
        if raw is None or raw == '':
            continue
        try:
            values[field_name] = convert(raw.strip())
        except ValueError:
            raise ConfigurationError(f"{var} must be {convert.__name__}, got {raw!r}")

    settings = MonitorSettings()
    try:
        return replace(settings, **_coerce(values))
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"Invalid configuration value: {e}")


def _coerce(values: Dict[str, Any]) -> Dict[str, Any]:
    """Convert values to the type of the matching default."""
    defaults = MonitorSettings()
    result = {}
    for name, value in values.items():
        default = getattr(defaults, name)
        if isinstance(default, float):
            value = float(value)
        elif isinstance(default, str) and name != 'resource_id':
            value = str(value)
        result[name] = value
    return result


def validate_settings(settings: MonitorSettings, require_webhook: bool = True) -> None:
    """
    Validate settings at startup.

    Args:
        settings: Settings to check
        require_webhook: Whether a Discord webhook URL is mandatory

    Raises:
        ConfigurationError: Listing every problem found
    """
    errors = []

    if require_webhook and not settings.webhook_url:
        errors.append("DISCORD_WEBHOOK_URL is required. Set it in your .env file.")
    elif settings.webhook_url and not settings.webhook_url.startswith(('https://', 'http://')):
        errors.append("DISCORD_WEBHOOK_URL must be an http(s) URL.")

    if settings.resource_id in (None, ''):
        errors.append("monitor.app_id must be set.")

    if settings.steam_username and not settings.steam_password:
        errors.append("STEAM_PASSWORD is required when STEAM_USERNAME is set.")

    if settings.base_reconnect_delay <= 0:
        errors.append("reconnect.base_delay must be positive.")
    if settings.max_reconnect_delay < settings.base_reconnect_delay:
        errors.append("reconnect.max_delay must not be lower than reconnect.base_delay.")
    if settings.connect_timeout <= 0:
        errors.append("steam.connect_timeout must be positive.")
    if settings.poll_interval <= 0:
        errors.append("steam.poll_interval must be positive.")
    if settings.http_timeout <= 0:
        errors.append("http.timeout must be positive.")

    if not settings.state_file:
        errors.append("monitor.state_file must be set.")

    if errors:
        raise ConfigurationError("Configuration errors:\n  - " + "\n  - ".join(errors))
