"""Provides functions for loading and accessing configuration settings.

Supports loading from .env files, environment variables, and a dedicated
YAML configuration file (e.g., ~/.hacienda/config.yaml).
"""

import logging
import os
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml
from dotenv import load_dotenv

from hacienda.domain.models.resilience import RateLimiterOptions, RetryOptions
from hacienda.domain.models.submission import SubmitAndWaitOptions

logger = logging.getLogger(__name__)

# --- Configuration Constants ---
DEFAULT_CONFIG_DIR = Path.home() / ".hacienda"
DEFAULT_CONFIG_FILE = DEFAULT_CONFIG_DIR / "config.yaml"
ENV_FILE_NAME = ".env"

# --- Global Configuration Store ---
_config: Dict[str, Any] = {}
_test_config: Dict[str, Any] = {}
_loaded = False


def _flatten(data: Mapping[str, Any], prefix: str = "") -> Dict[str, Any]:
    """Flattens nested YAML mappings into dotted keys ('hacienda.retry.max_retries')."""
    flat: Dict[str, Any] = {}
    for key, value in data.items():
        dotted = f"{prefix}{key}"
        if isinstance(value, Mapping):
            flat.update(_flatten(value, prefix=f"{dotted}."))
        else:
            flat[dotted] = value
    return flat


def load_configuration(
    config_file: Path = DEFAULT_CONFIG_FILE,
    env_file: Optional[Path] = None,
    force: bool = False,
) -> None:
    """Loads configuration from environment, .env file, and YAML file.

    Priority order (highest to lowest):
    1. Test overrides (set_config_for_testing)
    2. Environment Variables
    3. .env file
    4. YAML configuration file
    5. Default values passed to get_config

    Args:
        config_file: Path to the YAML configuration file.
        env_file: Path to the .env file (searches upwards from cwd if None).
        force: Reload even if configuration was already loaded.
    """
    global _config, _loaded
    if _loaded and not force:
        logger.debug("Configuration already loaded.")
        return

    _config = {}

    # 1. YAML file (lowest priority)
    if config_file.exists():
        try:
            with open(config_file, "r", encoding="utf-8") as f:
                yaml_config = yaml.safe_load(f)
        except (OSError, yaml.YAMLError) as e:
            logger.error(f"Failed to load or parse YAML config {config_file}: {e}")
        else:
            if isinstance(yaml_config, Mapping):
                _config.update(_flatten(yaml_config))
                logger.info(f"Loaded configuration from YAML: {config_file}")
            elif yaml_config is not None:
                logger.warning(f"YAML config file {config_file} did not contain a mapping.")
    else:
        logger.debug(f"YAML config file not found: {config_file}")

    # 2. .env file; override=False so real environment variables win
    dotenv_path = env_file or find_dotenv_path()
    if dotenv_path:
        if load_dotenv(dotenv_path=dotenv_path, override=False):
            logger.info(f"Loaded environment variables from: {dotenv_path}")
    else:
        logger.debug("No .env file found at or above the current directory.")

    _loaded = True


def _env_key(key: str) -> str:
    return key.upper().replace(".", "_")


def _coerce(value: str) -> Any:
    """Converts common string forms from the environment into Python values."""
    lowered = value.lower()
    if lowered == "true":
        return True
    if lowered == "false":
        return False
    try:
        if "." in value:
            return float(value)
        return int(value)
    except ValueError:
        return value


def get_config(key: str, default: Any = None) -> Any:
    """Get a configuration value by dotted key.

    The environment variable name is the key upper-cased with dots turned
    into underscores: 'hacienda.retry.max_retries' -> HACIENDA_RETRY_MAX_RETRIES.

    Args:
        key: The configuration key
        default: Default value if the key is not found

    Returns:
        The configuration value
    """
    if key in _test_config:
        return _test_config[key]

    env_key = _env_key(key)
    if env_key in os.environ:
        return _coerce(os.environ[env_key])

    if key in _config:
        return _config[key]

    return default


def find_dotenv_path() -> Optional[Path]:
    """Searches for the .env file upwards from the current directory."""
    cwd = Path.cwd()
    for path in [cwd] + list(cwd.parents):
        env_path = path / ENV_FILE_NAME
        if env_path.is_file():
            return env_path
    return None


# --- Convenience Functions ---

def get_environment_name() -> str:
    """Target environment: 'sandbox' (default) or 'production'."""
    return str(get_config("hacienda.environment", "sandbox"))


def get_config_str(key: str, default: Optional[str] = None) -> Optional[str]:
    """Like get_config, but without type coercion of environment values.

    Identification numbers can carry leading zeros that an int coercion would drop.
    """
    if key in _test_config:
        value = _test_config[key]
    elif _env_key(key) in os.environ:
        value = os.environ[_env_key(key)]
    else:
        value = _config.get(key, default)
    return str(value) if value is not None else None


def get_credential_fields() -> Dict[str, Optional[str]]:
    """Raw credential fields: id_type, id_number and password (values may be None)."""
    return {name: get_config_str(f"hacienda.{name}") for name in ("id_type", "id_number", "password")}


def get_rate_limiter_options() -> RateLimiterOptions:
    defaults = RateLimiterOptions()
    return RateLimiterOptions(
        max_requests=int(get_config("hacienda.rate_limit.max_requests", defaults.max_requests)),
        window_seconds=float(get_config("hacienda.rate_limit.window_seconds", defaults.window_seconds)),
    )


def get_retry_options() -> RetryOptions:
    defaults = RetryOptions()
    max_delay = get_config("hacienda.retry.max_delay", defaults.max_delay)
    return RetryOptions(
        max_retries=int(get_config("hacienda.retry.max_retries", defaults.max_retries)),
        initial_delay=float(get_config("hacienda.retry.initial_delay", defaults.initial_delay)),
        backoff_multiplier=float(get_config("hacienda.retry.backoff_multiplier", defaults.backoff_multiplier)),
        max_delay=float(max_delay) if max_delay is not None else None,
    )


def get_submit_options() -> SubmitAndWaitOptions:
    defaults = SubmitAndWaitOptions()
    return SubmitAndWaitOptions(
        poll_interval=float(get_config("hacienda.poll.interval", defaults.poll_interval)),
        timeout=float(get_config("hacienda.poll.timeout", defaults.timeout)),
    )


def get_http_timeout() -> float:
    return float(get_config("hacienda.http.timeout", 30.0))


def get_log_level() -> int:
    """Logging level from 'logging.level' (a name such as 'DEBUG'), INFO by default."""
    name = str(get_config("logging.level", "INFO")).upper()
    level = logging.getLevelName(name)
    if not isinstance(level, int):
        logger.warning(f"Unknown logging level '{name}'. Defaulting to INFO.")
        return logging.INFO
    return level


def get_log_file() -> Optional[str]:
    """Log file path from 'logging.file', or None for console only."""
    return get_config_str("logging.file") or None


def set_config(key: str, value: Any) -> None:
    """Sets a configuration value in memory for the rest of the process.

    Args:
        key: Configuration key (e.g., 'hacienda.poll.timeout')
        value: Value to set
    """
    logger.debug(f"Setting config: {key} (type {type(value).__name__})")
    _config[key] = value


def set_config_for_testing(config_dict: Dict[str, Any]) -> None:
    """
    Set configuration values for testing purposes.
    These values will override any existing configuration.

    Args:
        config_dict: Dictionary of configuration values to set
    """
    _test_config.update(config_dict)
    logger.debug(f"Set testing configuration keys: {sorted(config_dict)}")


def clear_test_config() -> None:
    """Clear all testing configuration values."""
    _test_config.clear()
    logger.debug("Cleared testing configuration")
