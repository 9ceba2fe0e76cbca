"""Configuration loading from YAML files with environment variable support."""

import logging
import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping

import yaml
from dotenv import dotenv_values

logger = logging.getLogger("onemin-proxy")

DEFAULT_CONFIG_PATH = "configs/config_default.yaml"

# Environment variable to override the config path
CONFIG_PATH = os.getenv("ONEMIN_CONFIG", DEFAULT_CONFIG_PATH)

DEFAULT_UPSTREAM_BASE_URL = "https://api.1min.ai"
DEFAULT_SESSION_CACHE_TTL_MS = 3_600_000
DEFAULT_CLEANUP_INTERVAL_SECONDS = 3600
PLACEHOLDER_AUTH_SECRET = "your-secret-key-here"

_ENV_PATTERN = re.compile(r"\$\{([^}]+)\}|\$([A-Za-z_][A-Za-z0-9_]*)")


@dataclass(frozen=True)
class ProxySettings:
    """Resolved runtime settings for the proxy."""

    host: str = "0.0.0.0"
    port: int = 8000
    auth_secret: str = PLACEHOLDER_AUTH_SECRET
    upstream_base_url: str = DEFAULT_UPSTREAM_BASE_URL
    session_cache_ttl_ms: int = DEFAULT_SESSION_CACHE_TTL_MS
    auto_cleanup_interval_seconds: float = DEFAULT_CLEANUP_INTERVAL_SECONDS
    models_path: str = "models.json"

    @property
    def auth_secret_configured(self) -> bool:
        return bool(self.auth_secret) and self.auth_secret != PLACEHOLDER_AUTH_SECRET


def resolve_config_path(path: str) -> Path:
    """Resolve config path relative to project root if needed."""
    if Path(path).is_absolute():
        return Path(path)
    project_root = Path(__file__).parent.parent
    return project_root / path


def resolve_env_path(config_path: Path, env_path: str | None = None) -> Path:
    """Resolve the env file path for a config file."""
    if env_path:
        return resolve_config_path(env_path)
    return config_path.with_name(".env")


def load_env_values(env_path: Path) -> dict[str, str]:
    """Load environment values from a .env file without mutating os.environ."""
    if not env_path.exists():
        return {}
    raw_values = dotenv_values(env_path)
    return {key: value for key, value in raw_values.items() if value is not None}


def load_config(
    path: str | None = None,
    env_path: str | None = None,
    substitute_env: bool = True,
) -> dict:
    """Load configuration from a YAML file.

    Args:
        path: Path to the config file. Defaults to ONEMIN_CONFIG,
              or configs/config_default.yaml in the project root.
        env_path: Optional .env path override for env substitution.
        substitute_env: Whether to substitute environment variables in the config.

    Returns:
        Parsed configuration dictionary. A missing file yields an empty
        config so the proxy can run purely from environment variables.
    """
    if path is None:
        path = CONFIG_PATH

    config_path = resolve_config_path(path)

    if not config_path.exists():
        logger.warning(f"Config file not found: {config_path}; using defaults")
        return {}

    logger.info(f"Loading configuration from {config_path}")

    env_values: dict[str, str] = {}
    if substitute_env:
        env_file = resolve_env_path(config_path, env_path)
        if env_file.exists():
            logger.info(f"Loading environment variables from {env_file}")
            env_values = load_env_values(env_file)

    with config_path.open("r", encoding="utf-8") as fh:
        data = yaml.safe_load(fh) or {}

    if substitute_env:
        data = _substitute_env_vars(data, env_values)

    logger.info(f"Configuration loaded successfully from {config_path}")
    return data


def _substitute_env_vars(
    obj: Any, env_values: Mapping[str, str] | None = None
) -> Any:
    """Recursively substitute ${VAR_NAME} and $VAR_NAME in configuration values.

    Unset variables are left as their literal placeholder and logged.
    """
    env_values = env_values or {}

    if isinstance(obj, dict):
        return {k: _substitute_env_vars(v, env_values) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_substitute_env_vars(item, env_values) for item in obj]
    if isinstance(obj, str):

        def replace_var(match):
            var_name = match.group(1) or match.group(2)
            value = env_values.get(var_name)
            if value is None:
                value = os.getenv(var_name)
            if value is None:
                logger.warning(
                    f"CONFIG ERROR: Environment variable '${var_name}' is not set! "
                    f"Check your .env file or export it in your shell."
                )
                return match.group(0)
            return value

        return _ENV_PATTERN.sub(replace_var, obj)
    return obj


def build_settings(config: Mapping[str, Any]) -> ProxySettings:
    """Build ProxySettings from a loaded config, applying env overrides.

    ONEMIN_HOST / ONEMIN_PORT / AUTH_SECRET from the environment take
    priority over the config file.
    """
    proxy_settings = config.get("proxy_settings") or {}
    server_cfg = proxy_settings.get("server") or {}
    upstream_cfg = proxy_settings.get("upstream") or {}

    host = os.getenv("ONEMIN_HOST") or str(server_cfg.get("host", "0.0.0.0"))

    port_raw = os.getenv("ONEMIN_PORT") or server_cfg.get("port", 8000)
    try:
        port = int(port_raw)
    except (TypeError, ValueError):
        logger.warning(f"Invalid port {port_raw!r}; falling back to 8000")
        port = 8000

    auth_secret = str(proxy_settings.get("auth_secret") or "")
    if not auth_secret or _ENV_PATTERN.fullmatch(auth_secret):
        auth_secret = os.getenv("AUTH_SECRET") or PLACEHOLDER_AUTH_SECRET

    try:
        ttl_ms = int(proxy_settings.get("session_cache_ttl_ms", DEFAULT_SESSION_CACHE_TTL_MS))
    except (TypeError, ValueError):
        ttl_ms = DEFAULT_SESSION_CACHE_TTL_MS

    try:
        cleanup_interval = float(
            proxy_settings.get("auto_cleanup_interval_seconds", DEFAULT_CLEANUP_INTERVAL_SECONDS)
        )
    except (TypeError, ValueError):
        cleanup_interval = DEFAULT_CLEANUP_INTERVAL_SECONDS

    return ProxySettings(
        host=host,
        port=port,
        auth_secret=auth_secret,
        upstream_base_url=str(upstream_cfg.get("base_url") or DEFAULT_UPSTREAM_BASE_URL),
        session_cache_ttl_ms=ttl_ms,
        auto_cleanup_interval_seconds=cleanup_interval,
        models_path=str(proxy_settings.get("models_path") or "models.json"),
    )
