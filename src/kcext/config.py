"""Configuration management with XDG paths, atomic writes, and precedence resolution.

This module handles everything kcext reads before it touches the server:

* **Directory layout** -- XDG Base Directory compliant on Linux/BSD,
  ``~/.kcext/`` elsewhere. See :func:`get_config_dir` and
  :func:`get_data_dir`.
* **User config file** -- an optional ``config.json`` holding
  :class:`~kcext.models.ServerConfig` fields, managed via
  :func:`load_file_config` and :func:`save_file_config`.
* **Precedence resolution** -- :func:`resolve_config` merges CLI flags,
  environment variables, the user config file, and defaults into the single
  :class:`~kcext.models.ServerConfig` handed to every component.

The config file is written with a temp-file-then-rename strategy
(:func:`_atomic_write`) so a crash never leaves it half written.
"""

from __future__ import annotations

import json
import os
import platform
import tempfile
from pathlib import Path
from typing import Any, Optional

from pydantic import ValidationError

from kcext.exceptions import ConfigError
from kcext.models import ServerConfig

_APP_NAME = "kcext"
_CONFIG_FILENAME = "config.json"

ENV_KEYCLOAK_PATH = "KEYCLOAK_PATH"
ENV_WORK_DIR = "KCEXT_WORK_DIR"
ENV_SERVICE = "KCEXT_SERVICE"
ENV_STAGE_TIMEOUT = "KCEXT_STAGE_TIMEOUT"


# --- XDG path resolution ---


def _is_xdg_platform() -> bool:
    """Return True if the platform follows the XDG Base Directory layout (Linux/BSD)."""
    return platform.system() == "Linux" or platform.system().endswith("BSD")


def _xdg_base(env_var: str, default_segments: tuple[str, ...]) -> Path:
    """Resolve an XDG base directory from an env var with fallback segments under $HOME."""
    env_value = os.environ.get(env_var, "")
    if env_value:
        return Path(env_value)
    base = Path.home()
    for seg in default_segments:
        base = base / seg
    return base


def get_config_dir() -> Path:
    """Return the configuration directory, creating it if necessary.

    On Linux/BSD: ``$XDG_CONFIG_HOME/kcext/`` (default ``~/.config/kcext/``).
    Elsewhere: ``~/.kcext/``.
    """
    if _is_xdg_platform():
        path = _xdg_base("XDG_CONFIG_HOME", (".config",)) / _APP_NAME
    else:
        path = Path.home() / f".{_APP_NAME}"
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_data_dir() -> Path:
    """Return the data directory used for crash logs, creating it if necessary.

    On Linux/BSD: ``$XDG_DATA_HOME/kcext/`` (default ``~/.local/share/kcext/``).
    Elsewhere: ``~/.kcext/``.
    """
    if _is_xdg_platform():
        path = _xdg_base("XDG_DATA_HOME", (".local", "share")) / _APP_NAME
    else:
        path = Path.home() / f".{_APP_NAME}"
    path.mkdir(parents=True, exist_ok=True)
    return path


# --- Atomic file writes ---


def _atomic_write(path: Path, data: str) -> None:
    """Write *data* to *path* atomically using a temp file in the same directory."""
    path.parent.mkdir(parents=True, exist_ok=True)

    fd = None
    tmp_path: Optional[str] = None
    try:
        fd = tempfile.NamedTemporaryFile(
            mode="w",
            dir=path.parent,
            prefix=f".{path.name}.",
            suffix=".tmp",
            delete=False,
            encoding="utf-8",
        )
        tmp_path = fd.name
        fd.write(data)
        fd.flush()
        os.fsync(fd.fileno())
        fd.close()
        fd = None
        os.replace(tmp_path, path)
    except BaseException:
        if fd is not None:
            fd.close()
        if tmp_path is not None:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
        raise


# --- User config file ---


def config_file_path() -> Path:
    """Path to the user config file."""
    return get_config_dir() / _CONFIG_FILENAME


def _read_config_data() -> dict[str, Any]:
    path = config_file_path()
    if not path.is_file():
        return {}
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        raise ConfigError(f"Invalid config at {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"Invalid config at {path}: expected a JSON object")
    return data


def load_file_config() -> ServerConfig:
    """Load the user config file.

    Returns:
        The deserialised :class:`~kcext.models.ServerConfig`. If the file
        does not exist, a default instance is returned.

    Raises:
        ConfigError: If the file contains invalid JSON or fails validation.
    """
    data = _read_config_data()
    try:
        return ServerConfig.model_validate(data)
    except ValidationError as exc:
        raise ConfigError(f"Invalid config at {config_file_path()}: {exc}") from exc


def save_file_config(config: ServerConfig) -> None:
    """Persist *config* atomically to the user config file."""
    data = config.model_dump(mode="json")
    _atomic_write(config_file_path(), json.dumps(data, indent=2) + "\n")


# --- Precedence resolution ---


def _env_overrides() -> dict[str, Any]:
    overrides: dict[str, Any] = {}
    keycloak_path = os.environ.get(ENV_KEYCLOAK_PATH)
    if keycloak_path:
        overrides["keycloak_path"] = keycloak_path
    work_dir = os.environ.get(ENV_WORK_DIR)
    if work_dir:
        overrides["work_dir"] = work_dir
    service = os.environ.get(ENV_SERVICE)
    if service:
        overrides["service_name"] = service
    timeout = os.environ.get(ENV_STAGE_TIMEOUT)
    if timeout:
        try:
            overrides["stage_timeout"] = float(timeout)
        except ValueError:
            raise ConfigError(
                f"{ENV_STAGE_TIMEOUT} must be a number of seconds, got: {timeout}"
            ) from None
    return overrides


def resolve_config(
    cli_keycloak_path: Optional[str] = None,
    cli_work_dir: Optional[str] = None,
) -> ServerConfig:
    """Resolve the effective server configuration.

    Precedence (high to low):
        1. CLI flags (``--keycloak-path``, ``--work-dir``)
        2. Environment variables (``KEYCLOAK_PATH``, ``KCEXT_WORK_DIR``,
           ``KCEXT_SERVICE``, ``KCEXT_STAGE_TIMEOUT``)
        3. User config (``~/.config/kcext/config.json``)
        4. Defaults

    Raises:
        ConfigError: If any layer holds an invalid value.
    """
    data = _read_config_data()
    data.update(_env_overrides())
    if cli_keycloak_path is not None:
        data["keycloak_path"] = cli_keycloak_path
    if cli_work_dir is not None:
        data["work_dir"] = cli_work_dir

    try:
        return ServerConfig.model_validate(data)
    except ValidationError as exc:
        raise ConfigError(f"Invalid configuration: {exc}") from exc


def require_plugin_dir(config: ServerConfig) -> Path:
    """Return the plugin directory or fail when ``KEYCLOAK_PATH`` was never provided.

    Raises:
        ConfigError: If ``config.keycloak_path`` is unset.
    """
    plugin_dir = config.plugin_dir
    if plugin_dir is None:
        raise ConfigError(
            f"Keycloak installation path is not set. "
            f"Export {ENV_KEYCLOAK_PATH} or pass --keycloak-path."
        )
    return plugin_dir
