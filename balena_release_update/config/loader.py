"""
Platform settings loading and merging for balena-release-update.

This module resolves where the platform API lives and how to authenticate,
using the same layered approach as the balena CLI's shared options so an
existing setup works without extra configuration.

Settings Layers
---------------
1. **Built-in defaults**
   - balenaUrl: balena-cloud.com
   - requestTimeout: 30 (seconds, per HTTP request)

2. **User settings** (~/.balenarc.yml)
   - Optional

3. **Project settings** (./.balenarc.yml in the working directory)
   - Optional; overrides user settings

4. **Explicit settings file** (--config PATH)
   - Optional; must exist when given

5. **Environment variables**
   - BALENARC_BALENA_URL, BALENARC_API_URL, BALENARC_DELTA_URL,
     BALENARC_REQUEST_TIMEOUT
   - BALENA_API_KEY or BALENA_TOKEN for the API token

If no token was found in any layer, the token file ~/.balena/token (written
by ``balena login``) is read as a last resort.

Merge Behavior
--------------
The loader performs deep merging with "last wins" semantics:
  - **Dicts**: Recursively merged (keys from overlay override base)
  - **Lists**: Completely replaced (NOT appended/extended)
  - **Scalars**: Overwritten (strings, numbers, booleans)

Derived Values
--------------
  - apiUrl defaults to https://api.<balenaUrl>
  - deltaUrl defaults to https://delta.<balenaUrl>

Error Handling
--------------
- ConfigError: YAML parse errors, non-mapping documents, a missing explicit
  settings file, or an invalid request timeout
- All errors are chained with "from err" for better debugging

Examples
--------
Basic usage:

    >>> from balena_release_update.config import load_settings
    >>> settings = load_settings()
    >>> print(settings.api_url)
    https://api.balena-cloud.com

Point at a different environment:

    >>> settings = load_settings(env={"BALENARC_BALENA_URL": "balena-staging.com"})
    >>> print(settings.delta_url)
    https://delta.balena-staging.com
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
import os
from pathlib import Path
from typing import Any

import yaml

from balena_release_update.exceptions import ConfigError
from balena_release_update.logging import get_global_logger

SETTINGS_FILENAME = ".balenarc.yml"

DEFAULT_SETTINGS: dict[str, Any] = {
    "balenaUrl": "balena-cloud.com",
    "requestTimeout": 30,
}

# Environment variable -> settings key
_ENV_KEYS = {
    "BALENARC_BALENA_URL": "balenaUrl",
    "BALENARC_API_URL": "apiUrl",
    "BALENARC_DELTA_URL": "deltaUrl",
    "BALENARC_REQUEST_TIMEOUT": "requestTimeout",
}

_TOKEN_ENV_VARS = ("BALENA_API_KEY", "BALENA_TOKEN")

# -------------------------------
# Data types
# -------------------------------


@dataclass(frozen=True)
class PlatformSettings:
    """
    Resolved settings for talking to the platform.

    api_url and delta_url have no trailing slash.
    """

    api_url: str
    delta_url: str
    token: str | None = None
    timeout: float = 30.0


# -------------------------------
# YAML helpers
# -------------------------------


def _load_yaml_file(p: Path) -> dict[str, Any]:
    """
    Load a YAML settings file and return the parsed mapping.

    An empty file yields an empty mapping.

    Raises:
      ConfigError - for invalid YAML or a top-level value that is not a mapping
    """
    try:
        with p.open("r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as err:
        raise ConfigError(f"Error parsing YAML: {p}: {err}") from err
    except OSError as err:
        raise ConfigError(f"Could not read settings file: {p}: {err}") from err
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Top-level YAML must be a mapping (dict): {p}")
    return data


# -------------------------------
# Merge logic
# -------------------------------


def _deep_merge_dicts(base: dict[str, Any], overlay: dict[str, Any]) -> dict[str, Any]:
    """
    Deep-merge two dicts with "overlay wins".

    Rules:
      - dict + dict -> deep merge
      - list + list -> overlay REPLACES base (not concatenated)
      - everything else -> overlay overwrites base

    This function does not mutate inputs; returns a new dict.
    """
    result: dict[str, Any] = dict(base)
    for k, v in overlay.items():
        if k in result and isinstance(result[k], dict) and isinstance(v, dict):
            result[k] = _deep_merge_dicts(result[k], v)
        else:
            result[k] = v
    return result


# -------------------------------
# Layer discovery
# -------------------------------


def _settings_files(home: Path, cwd: Path, config_path: Path | None) -> list[Path]:
    """
    List the settings files to merge, lowest priority first.

    Implicit files are skipped when absent; the explicit file must exist.
    """
    files = []
    for candidate in (home / SETTINGS_FILENAME, cwd / SETTINGS_FILENAME):
        if candidate.is_file() and candidate not in files:
            files.append(candidate)
    if config_path is not None:
        if not config_path.is_file():
            raise ConfigError(f"Settings file not found: {config_path}")
        files.append(config_path)
    return files


def _env_overrides(env: Mapping[str, str]) -> dict[str, Any]:
    overrides: dict[str, Any] = {}
    for var, key in _ENV_KEYS.items():
        value = env.get(var)
        if value:
            overrides[key] = value
    for var in _TOKEN_ENV_VARS:
        value = env.get(var)
        if value:
            overrides["apiKey"] = value
            break
    return overrides


def _read_token_file(home: Path) -> str | None:
    """Read the token saved by ``balena login``, if any."""
    token_path = home / ".balena" / "token"
    try:
        token = token_path.read_text(encoding="utf-8").strip()
    except OSError:
        return None
    return token or None


def _strip_url(value: Any, key: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ConfigError(f"Setting {key!r} must be a non-empty string")
    return value.strip().rstrip("/")


def _parse_timeout(value: Any) -> float:
    try:
        timeout = float(value)
    except (TypeError, ValueError) as err:
        raise ConfigError(f"Invalid requestTimeout: {value!r}") from err
    if timeout <= 0:
        raise ConfigError(f"requestTimeout must be positive, got {value!r}")
    return timeout


# -------------------------------
# Public API
# -------------------------------


def load_settings(
    config_path: Path | None = None,
    *,
    env: Mapping[str, str] | None = None,
    home: Path | None = None,
    cwd: Path | None = None,
) -> PlatformSettings:
    """
    Load and merge the platform settings.

    Steps
      1) Start from the built-in defaults.
      2) Merge ~/.balenarc.yml and ./.balenarc.yml if present.
      3) Merge the explicit settings file if given.
      4) Apply environment variable overrides.
      5) Fall back to ~/.balena/token when no token is set.
      6) Derive apiUrl/deltaUrl from balenaUrl where not set.

    Args:
      config_path: Optional explicit settings file.
      env: Environment mapping. Default is os.environ.
      home: Home directory. Default is Path.home().
      cwd: Working directory. Default is Path.cwd().

    Returns
      PlatformSettings with URLs, token (may be None) and request timeout.

    Raises
      ConfigError on unreadable or invalid settings.
    """
    logger = get_global_logger()
    env = os.environ if env is None else env
    home = Path.home() if home is None else home
    cwd = Path.cwd() if cwd is None else cwd

    merged: dict[str, Any] = dict(DEFAULT_SETTINGS)
    for path in _settings_files(home, cwd, config_path):
        logger.verbose("CONFIG", f"Loading: {path}")
        merged = _deep_merge_dicts(merged, _load_yaml_file(path))

    overrides = _env_overrides(env)
    if overrides:
        logger.debug(
            "CONFIG", f"Environment overrides: {', '.join(sorted(overrides))}"
        )
    merged = _deep_merge_dicts(merged, overrides)

    token = merged.get("apiKey") or _read_token_file(home)

    balena_url = _strip_url(merged.get("balenaUrl"), "balenaUrl")
    api_url = _strip_url(merged.get("apiUrl") or f"https://api.{balena_url}", "apiUrl")
    delta_url = _strip_url(
        merged.get("deltaUrl") or f"https://delta.{balena_url}", "deltaUrl"
    )

    settings = PlatformSettings(
        api_url=api_url,
        delta_url=delta_url,
        token=token,
        timeout=_parse_timeout(merged.get("requestTimeout")),
    )
    logger.verbose("CONFIG", f"API: {settings.api_url}")
    logger.verbose("CONFIG", f"Delta service: {settings.delta_url}")
    if not token:
        logger.verbose("CONFIG", "No API token configured")
    return settings
