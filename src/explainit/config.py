"""
Configuration for the ExplainIt dispatch core.

This module holds the tunables for provider calls, the resilience profiles,
store locations and logging, with environment variable overrides. It also
provides the factory functions that wire stores, the resilience controller and
the settings manager together.

Key Features:
- Deployment profiles (development/production) for timeout and retry budget
- Environment variable overrides with safe fallbacks
- Store selection (JSON file or Redis) for the cross-device store
- Component factory functions for dependency injection
"""
# src/explainit/config.py
from pathlib import Path
import os
from typing import Any, Dict, Optional

# --- Environment ---
DEFAULT_ENVIRONMENT = "production"

# --- Resilience profiles ---
# retries are additional attempts after the first one
DEPLOYMENT_PROFILES: Dict[str, Dict[str, Any]] = {
    "development": {
        "timeout": 30.0,
        "max_retries": 2,
        "retry_delay": 1.0,
    },
    "production": {
        "timeout": 30.0,
        "max_retries": 3,
        "retry_delay": 2.0,
    },
}

# Credential probes fail fast: one attempt, shorter timeout
VALIDATION_TIMEOUT = 15.0
VALIDATION_MAX_TOKENS = 5
VALIDATION_PROMPT = "Hi"

# --- Provider request defaults ---
DEFAULT_REQUEST_TIMEOUT = 30.0
DEFAULT_MAX_TOKENS = 500
DEFAULT_TEMPERATURE = 0.7

# --- Selected text limits ---
MIN_TEXT_LENGTH = 1
MAX_TEXT_LENGTH = 2000

# --- Stores ---
DEFAULT_DATA_DIR = Path("~/.explainit").expanduser()
LOCAL_STORE_FILE = "local.json"
SYNC_STORE_FILE = "sync.json"
REDIS_KEY_PREFIX = "explainit:"

# --- API ---
API_HOST = "0.0.0.0"
API_PORT = 8000
API_DEBUG = False
ALLOWED_ORIGINS = ["*"]

# --- Logging ---
LOG_LEVEL = "INFO"
LOG_FILE = None  # None for console only, or file name under the data dir


def _env(name: str) -> Optional[str]:
    value = os.getenv(name)
    if value and value.strip():
        return value.strip()
    return None


def resolve_environment() -> str:
    """
    Resolution order for the deployment profile:
    1) Env EXPLAINIT_ENV if it names a known profile
    2) DEFAULT_ENVIRONMENT
    """
    env_val = _env("EXPLAINIT_ENV")
    if env_val and env_val.lower() in DEPLOYMENT_PROFILES:
        return env_val.lower()
    return DEFAULT_ENVIRONMENT


def resolve_resilience_settings(environment: Optional[str] = None) -> Dict[str, Any]:
    """Return timeout/max_retries/retry_delay for the given or current profile."""
    profile = dict(DEPLOYMENT_PROFILES.get(environment or resolve_environment(),
                                           DEPLOYMENT_PROFILES[DEFAULT_ENVIRONMENT]))
    timeout = _env("EXPLAINIT_TIMEOUT")
    if timeout:
        try:
            profile["timeout"] = float(timeout)
        except ValueError:
            pass
    return profile


def resolve_data_dir() -> Path:
    env_val = _env("EXPLAINIT_DATA_DIR")
    if env_val:
        return Path(env_val).expanduser()
    return DEFAULT_DATA_DIR


def resolve_sync_redis_url() -> Optional[str]:
    return _env("EXPLAINIT_SYNC_REDIS_URL")


def resolve_log_level() -> str:
    return (_env("EXPLAINIT_LOG_LEVEL") or LOG_LEVEL).upper()


def resolve_log_file() -> Optional[str]:
    return _env("EXPLAINIT_LOG_FILE") or LOG_FILE


# --- Component Factory Functions ---

def get_local_store():
    """Get the device-local store."""
    from explainit.storage import JsonFileStore
    return JsonFileStore(resolve_data_dir() / LOCAL_STORE_FILE)


def get_sync_store():
    """Get the cross-device store: Redis when configured, otherwise a JSON file."""
    redis_url = resolve_sync_redis_url()
    if redis_url:
        from explainit.storage import RedisStore
        return RedisStore(redis_url, key_prefix=REDIS_KEY_PREFIX)

    from explainit.storage import JsonFileStore
    return JsonFileStore(resolve_data_dir() / SYNC_STORE_FILE)


def get_resilience_controller():
    """Get a resilience controller configured from the current profile."""
    from explainit.resilience import ResilienceController
    return ResilienceController(**resolve_resilience_settings())


def get_service():
    """Build the service facade with configured stores and controller."""
    from explainit.service import ExplainItService
    from explainit.settings_state import SettingsStateManager

    controller = get_resilience_controller()
    settings = SettingsStateManager(
        sync_store=get_sync_store(),
        local_store=get_local_store(),
        controller=controller,
    )
    return ExplainItService(settings=settings, controller=controller)


def setup_system(verbose: bool = False) -> None:
    """Setup logging for the current process."""
    from explainit.logging_config import setup_logging

    setup_logging(
        level="DEBUG" if verbose else resolve_log_level(),
        log_file=resolve_log_file(),
    )
