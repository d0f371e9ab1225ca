"""Installed-extension management -- listing and removal.

The plugin directory (``<KEYCLOAK_PATH>/providers``) belongs to the server;
kcext only enumerates it and deletes files from it. After a removal the
server is rebuilt and restarted through the same tail the install pipeline
uses.

There is no locking: running ``install`` and ``uninstall`` against the same
server at the same time is unsupported.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Iterator

from kcext.config import require_plugin_dir
from kcext.exceptions import (
    DirectoryAccessError,
    ExtensionNotFoundError,
    InvalidUsageError,
    KcextError,
)
from kcext.models import ServerConfig
from kcext.output import info, success
from kcext.pipeline import rebuild_and_restart
from kcext.stages import StageRunner

logger = logging.getLogger(__name__)


class ExtensionManager:
    """Lists and removes provider files for one Keycloak installation.

    Args:
        config: Resolved server configuration.
        runner: Stage runner used for the rebuild/restart after removal.
    """

    def __init__(self, config: ServerConfig, runner: StageRunner) -> None:
        self._config = config
        self._runner = runner

    @property
    def plugin_dir(self) -> Path:
        """The providers directory.

        Raises:
            ConfigError: If the Keycloak path is not configured.
        """
        return require_plugin_dir(self._config)

    def list_extensions(self) -> Iterator[str]:
        """Return a lazy iterator over installed extension file names.

        Only regular files directly inside the plugin directory are
        yielded, in the order the filesystem returns them. The iterator can
        be consumed once.

        Raises:
            ConfigError: If the Keycloak path is not configured.
            DirectoryAccessError: If the plugin directory cannot be opened.
        """
        plugin_dir = self.plugin_dir
        try:
            entries = os.scandir(plugin_dir)
        except OSError as exc:
            raise DirectoryAccessError(
                f"Error accessing path {str(plugin_dir)!r}: {exc.strerror or exc}"
            ) from exc
        return _iter_file_names(entries)

    def uninstall(self, name: str) -> list[Path]:
        """Remove extension files matching *name*, then rebuild and restart.

        *name* is either an exact file name (``otp-1.0.jar``) or a glob
        pattern evaluated inside the plugin directory (``otp-*.jar``).

        Returns:
            The removed paths.

        Raises:
            InvalidUsageError: If *name* is empty or points outside the
                plugin directory.
            ExtensionNotFoundError: If nothing matches. The server is left
                untouched.
            KcextError: If a matching file cannot be deleted.
            RebuildFailure: If ``kc.sh build`` fails after the removal.
            RestartFailure: If the service restart fails.
        """
        if not name or name in (".", "..") or "/" in name or os.sep in name:
            raise InvalidUsageError(
                f"Invalid extension name '{name}': give a file name inside the providers directory"
            )

        plugin_dir = self.plugin_dir
        matches = sorted(p for p in plugin_dir.glob(name) if p.is_file())
        if not matches:
            raise ExtensionNotFoundError(
                f"No installed extension matches '{name}' in {plugin_dir}"
            )

        info(f"Uninstalling Keycloak extension {name} ...")
        for path in matches:
            try:
                path.unlink()
            except OSError as exc:
                raise KcextError(f"Uninstalling extension file {path.name}: {exc}") from exc
            logger.debug("Removed %s", path)
        success(f"Uninstalled {', '.join(p.name for p in matches)}")

        rebuild_and_restart(self._config, self._runner)
        return matches


def _iter_file_names(entries: Any) -> Iterator[str]:
    with entries:
        for entry in entries:
            if entry.is_file():
                yield entry.name
