"""Tests for kcext.manager.ExtensionManager."""

from __future__ import annotations

from pathlib import Path

import pytest

from kcext.exceptions import (
    ConfigError,
    DirectoryAccessError,
    ExtensionNotFoundError,
    InvalidUsageError,
    RebuildFailure,
)
from kcext.exit_codes import EXIT_NOT_FOUND
from kcext.manager import ExtensionManager
from kcext.models import ServerConfig
from kcext.stages import StageRunner


@pytest.fixture
def runner():
    with StageRunner() as r:
        yield r


@pytest.fixture
def manager(server_config: ServerConfig, runner: StageRunner) -> ExtensionManager:
    return ExtensionManager(server_config, runner)


def _install(plugin_dir: Path, *names: str) -> None:
    for name in names:
        (plugin_dir / name).write_bytes(b"PK")


class TestListExtensions:

    def test_lists_regular_files(self, manager: ExtensionManager) -> None:
        _install(manager.plugin_dir, "otp-1.0.jar", "theme.jar")
        (manager.plugin_dir / "subdir").mkdir()

        assert sorted(manager.list_extensions()) == ["otp-1.0.jar", "theme.jar"]

    def test_empty_directory(self, manager: ExtensionManager) -> None:
        assert list(manager.list_extensions()) == []

    def test_iterator_is_lazy(self, manager: ExtensionManager) -> None:
        _install(manager.plugin_dir, "a.jar", "b.jar")

        names = manager.list_extensions()

        assert next(names) in ("a.jar", "b.jar")
        assert len(list(names)) == 1

    def test_missing_directory(self, manager: ExtensionManager) -> None:
        manager.plugin_dir.rmdir()

        with pytest.raises(DirectoryAccessError, match="Error accessing path") as exc_info:
            manager.list_extensions()
        assert exc_info.value.exit_code == EXIT_NOT_FOUND

    def test_keycloak_path_unset(self, runner: StageRunner) -> None:
        with pytest.raises(ConfigError):
            ExtensionManager(ServerConfig(), runner).list_extensions()


@pytest.mark.usefixtures("quiet_output")
class TestUninstall:

    def test_removes_exact_name_and_restarts(self, manager: ExtensionManager, fake_tools) -> None:
        _install(manager.plugin_dir, "otp-1.0.jar", "theme.jar")

        removed = manager.uninstall("otp-1.0.jar")

        assert [p.name for p in removed] == ["otp-1.0.jar"]
        assert sorted(manager.list_extensions()) == ["theme.jar"]
        assert fake_tools.tools_called == ["kc.sh", "systemctl"]

    def test_glob_pattern(self, manager: ExtensionManager, fake_tools) -> None:
        _install(manager.plugin_dir, "otp-1.0.jar", "otp-2.0.jar", "theme.jar")

        removed = manager.uninstall("otp-*.jar")

        assert [p.name for p in removed] == ["otp-1.0.jar", "otp-2.0.jar"]
        assert list(manager.list_extensions()) == ["theme.jar"]

    def test_not_found_leaves_server_alone(self, manager: ExtensionManager, fake_tools) -> None:
        _install(manager.plugin_dir, "theme.jar")

        with pytest.raises(ExtensionNotFoundError):
            manager.uninstall("otp-1.0.jar")

        assert fake_tools.calls == []

    @pytest.mark.parametrize("name", ["", ".", "..", "../etc/passwd", "sub/otp.jar"])
    def test_rejects_paths(self, manager: ExtensionManager, fake_tools, name: str) -> None:
        with pytest.raises(InvalidUsageError):
            manager.uninstall(name)
        assert fake_tools.calls == []

    def test_rebuild_failure_after_removal(self, manager: ExtensionManager, fake_tools) -> None:
        _install(manager.plugin_dir, "otp-1.0.jar")
        fake_tools.fail["kc.sh"] = 1

        with pytest.raises(RebuildFailure):
            manager.uninstall("otp-1.0.jar")

        assert list(manager.list_extensions()) == []
        assert "systemctl" not in fake_tools.tools_called
