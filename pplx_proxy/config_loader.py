"""YAML config loading with ``${VAR}`` placeholders filled from .env files."""

import logging
import os
import re
from pathlib import Path
from typing import Any, Mapping, Optional

import yaml
from dotenv import dotenv_values

from .core.exceptions import ConfigurationError

logger = logging.getLogger("pplx-proxy")

PROJECT_ROOT = Path(__file__).resolve().parent.parent
DEFAULT_CONFIG_PATH = "configs/config_default.yaml"
CONFIG_ENV_VAR = "PPLX_PROXY_CONFIG"

# ${NAME} or $NAME
_PLACEHOLDER = re.compile(r"\$\{([^}]+)\}|\$([A-Za-z_][A-Za-z0-9_]*)")


def _from_project_root(path: str) -> Path:
    candidate = Path(path)
    return candidate if candidate.is_absolute() else PROJECT_ROOT / candidate


def resolve_env_path(config_path: Path, env_path: Optional[str] = None) -> Path:
    """Pick the .env file paired with a config file.

    ``configs/config_<name>.yaml`` pairs with ``configs/.env_<name>``; any
    other file name pairs with ``.env`` in the same directory.
    """
    if env_path:
        return _from_project_root(env_path)
    prefix, _, name = config_path.stem.partition("config_")
    if not prefix and name:
        return config_path.with_name(f".env_{name}")
    return config_path.with_name(".env")


def load_config(
    path: Optional[str] = None,
    env_path: Optional[str] = None,
    substitute_env: bool = True,
) -> dict:
    """Read the proxy configuration.

    Args:
        path: Config file; defaults to ``$PPLX_PROXY_CONFIG`` or
            ``configs/config_default.yaml`` under the project root.
        env_path: Explicit .env file instead of the paired one.
        substitute_env: Fill ``${VAR}`` placeholders. Values from the .env
            file take priority over the process environment.

    Raises:
        ConfigurationError: If the file is missing or is not a mapping.
    """
    config_path = _from_project_root(path or os.getenv(CONFIG_ENV_VAR) or DEFAULT_CONFIG_PATH)
    if not config_path.exists():
        logger.error(f"Config file not found: {config_path}")
        raise ConfigurationError(f"Config file not found: {config_path}")

    logger.info(f"Loading configuration from {config_path}")
    with config_path.open("r", encoding="utf-8") as fh:
        data = yaml.safe_load(fh)
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"Config file must contain a mapping: {config_path}")

    if not substitute_env:
        return data

    env_file = resolve_env_path(config_path, env_path)
    file_values: dict[str, str] = {}
    if env_file.exists():
        logger.info(f"Loading environment variables from {env_file}")
        file_values = {k: v for k, v in dotenv_values(env_file).items() if v is not None}
    return _substitute_env_vars(data, file_values)


def _substitute_env_vars(obj: Any, env_values: Optional[Mapping[str, str]] = None) -> Any:
    """Replace placeholders in every string nested in ``obj``.

    An unset variable becomes an empty string, so an unset ``${SESSIONS}``
    gives an empty pool instead of a literal placeholder token.
    """
    values = env_values or {}

    def lookup(match: "re.Match[str]") -> str:
        name = match.group(1) or match.group(2)
        value = values.get(name, os.getenv(name))
        if value is None:
            logger.warning(f"Environment variable '{name}' is not set; using an empty value")
            return ""
        return value

    if isinstance(obj, str):
        return _PLACEHOLDER.sub(lookup, obj)
    if isinstance(obj, list):
        return [_substitute_env_vars(item, values) for item in obj]
    if isinstance(obj, dict):
        return {key: _substitute_env_vars(value, values) for key, value in obj.items()}
    return obj
