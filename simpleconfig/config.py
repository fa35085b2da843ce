"""
Configuration for the simpleconfig cache.

Every setting is resolved with the same priority:
process property (set_property) > environment variable > default.

Process properties play the role of JVM-style system properties: they let an
embedding application override the environment without touching os.environ.
A `.env` file in the working directory is loaded once on import.
"""

import os
import threading
from typing import Any, Dict, Optional

from dotenv import load_dotenv

load_dotenv()

DEFAULT_DOMAIN = "default_config"

_properties: Dict[str, Any] = {}
_properties_lock = threading.Lock()


def set_property(key: str, value: Any) -> None:
    """Set a process property; it takes priority over the environment."""
    with _properties_lock:
        _properties[key] = value


def clear_property(key: str) -> None:
    with _properties_lock:
        _properties.pop(key, None)


def clear_properties() -> None:
    with _properties_lock:
        _properties.clear()


def get_config_value(key: str, default: Any = None, env_var: Optional[str] = None) -> Any:
    """Get configuration value with priority: property > ENV > default."""
    with _properties_lock:
        if key in _properties and _properties[key] is not None:
            return _properties[key]

    if env_var:
        env_value = os.getenv(env_var)
        if env_value:
            return env_value

    return default


def _as_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ("true", "1", "yes", "on")


# Remote store

def get_domain() -> str:
    """
    Get the remote domain (namespace selector) this process reads from.

    Property: env
    Environment variable: env
    Default: default_config
    """
    return str(get_config_value("env", DEFAULT_DOMAIN, "env"))


def get_access_key() -> Optional[str]:
    """
    Property: accessKey
    Environment variable: AWS_ACCESS_KEY_ID
    """
    return get_config_value("accessKey", None, "AWS_ACCESS_KEY_ID")


def get_secret_key() -> Optional[str]:
    """
    Property: secretKey
    Environment variable: AWS_SECRET_ACCESS_KEY
    """
    return get_config_value("secretKey", None, "AWS_SECRET_ACCESS_KEY")


def get_remote_url() -> str:
    """
    Base URL of the HTTP remote store.

    Environment variable: REMOTE_URL
    Default: http://127.0.0.1:8080
    """
    return str(get_config_value("remoteUrl", "http://127.0.0.1:8080", "REMOTE_URL"))


def get_remote_timeout() -> float:
    """Get remote request timeout in seconds (REMOTE_TIMEOUT, default 10)."""
    value = get_config_value("remoteTimeout", 10.0, "REMOTE_TIMEOUT")
    try:
        return float(value)
    except (TypeError, ValueError):
        return 10.0


def get_remote_backend() -> str:
    """
    Which remote store implementation create_cache() builds.

    Environment variable: REMOTE_BACKEND ("http" or "memory")
    Default: http
    """
    backend = str(get_config_value("remoteBackend", "http", "REMOTE_BACKEND")).strip().lower()
    if backend not in ("http", "memory"):
        return "http"
    return backend


# Local snapshot

def get_snapshot_dir() -> str:
    """
    Directory holding one <namespace>.properties file per namespace.

    Environment variable: SNAPSHOT_DIR
    Default: current working directory
    """
    return str(get_config_value("snapshotDir", ".", "SNAPSHOT_DIR"))


def get_persist_queue_size() -> int:
    """Get the persistence queue bound (PERSIST_QUEUE_SIZE, default 1000)."""
    value = get_config_value("persistQueueSize", 1000, "PERSIST_QUEUE_SIZE")
    try:
        return int(value)
    except (TypeError, ValueError):
        return 1000


def get_strict_startup() -> bool:
    """
    Whether a remote failure during construction is fatal.

    Environment variable: STRICT_STARTUP
    Default: true
    """
    return _as_bool(get_config_value("strictStartup", True, "STRICT_STARTUP"))
