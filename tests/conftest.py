"""Shared test fixtures for kcext.

Provides isolated config directories, a throwaway Keycloak installation,
and :class:`FakeTools`, a stand-in for ``git``/``mvn``/``kc.sh``/
``systemctl`` installed in place of :func:`subprocess.run`.
"""

from __future__ import annotations

import subprocess
import threading
from pathlib import Path
from typing import Any, Optional

import pytest

from kcext.models import ServerConfig
from kcext.output import OutputFormat, OutputManager, reset_output, set_output


POM_NAMESPACE = "http://maven.apache.org/POM/4.0.0"


def write_pom(directory: Path, packaging: Optional[str] = "jar") -> Path:
    """Write a minimal namespaced ``pom.xml`` into *directory*.

    ``packaging=None`` leaves the ``<packaging>`` element out entirely.
    """
    directory.mkdir(parents=True, exist_ok=True)
    packaging_xml = f"  <packaging>{packaging}</packaging>\n" if packaging is not None else ""
    pom = directory / "pom.xml"
    pom.write_text(
        '<?xml version="1.0" encoding="UTF-8"?>\n'
        f'<project xmlns="{POM_NAMESPACE}">\n'
        "  <modelVersion>4.0.0</modelVersion>\n"
        "  <groupId>com.example</groupId>\n"
        "  <artifactId>demo</artifactId>\n"
        "  <version>1.0</version>\n"
        f"{packaging_xml}"
        "</project>\n",
        encoding="utf-8",
    )
    return pom


class FakeTools:
    """Simulates the external tools the pipeline shells out to.

    * ``git clone <url> <dest>`` creates *dest* (failing if it already
      exists, like git does) and writes a ``pom.xml``.
    * ``mvn ...`` writes every name in :attr:`artifacts` into ``target/``.
    * ``kc.sh build`` and ``systemctl restart`` just succeed.

    Set ``fail["mvn"] = 1`` (etc.) to make a tool exit non-zero. Every argv
    is recorded in :attr:`calls`.
    """

    def __init__(self) -> None:
        self.packaging: Optional[str] = "jar"
        self.artifacts: list[str] = ["demo-1.0.jar", "demo-1.0-sources.jar"]
        self.fail: dict[str, int] = {}
        self.calls: list[list[str]] = []
        self._lock = threading.Lock()

    @staticmethod
    def tool_name(argv: list[str]) -> str:
        return Path(argv[0]).name

    @property
    def tools_called(self) -> list[str]:
        return [self.tool_name(argv) for argv in self.calls]

    def __call__(self, argv: list[str], cwd: Any = None, **kwargs: Any) -> subprocess.CompletedProcess:
        with self._lock:
            self.calls.append(list(argv))
        tool = self.tool_name(argv)
        captured = kwargs.get("stdout") is subprocess.PIPE

        if tool in self.fail:
            return subprocess.CompletedProcess(
                argv, self.fail[tool], stdout=f"{tool}: simulated failure\n" if captured else None
            )

        if tool == "git":
            destination = Path(argv[-1])
            destination.mkdir(parents=True)
            write_pom(destination, self.packaging)
        elif tool == "mvn":
            target = Path(cwd) / "target"
            target.mkdir(parents=True, exist_ok=True)
            for name in self.artifacts:
                (target / name).write_bytes(b"PK\x03\x04" + name.encode())

        return subprocess.CompletedProcess(
            argv, 0, stdout=f"{tool} ok\n" if captured else None
        )


# ---------------------------------------------------------------------------
# Auto-reset global output state between tests
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_output_between_tests() -> None:
    """Reset the global OutputManager after every test.

    The manager's Rich consoles hold on to the streams that were current
    when it was created; CliRunner swaps those streams per invocation.
    """
    yield
    reset_output()


@pytest.fixture
def quiet_output() -> OutputManager:
    """Install a quiet, plain OutputManager for tests that ignore diagnostics."""
    output = OutputManager(format=OutputFormat.PLAIN, no_color=True, quiet=True)
    set_output(output)
    yield output
    reset_output()


# ---------------------------------------------------------------------------
# Config isolation
# ---------------------------------------------------------------------------


@pytest.fixture
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point XDG directories into *tmp_path* and clear kcext env vars.

    Returns:
        The tmp_path root directory.
    """
    monkeypatch.setattr("kcext.config._is_xdg_platform", lambda: True)
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))
    for var in ["KEYCLOAK_PATH", "KCEXT_WORK_DIR", "KCEXT_SERVICE", "KCEXT_STAGE_TIMEOUT"]:
        monkeypatch.delenv(var, raising=False)
    monkeypatch.chdir(tmp_path)
    return tmp_path


# ---------------------------------------------------------------------------
# Keycloak installation + fake tooling
# ---------------------------------------------------------------------------


@pytest.fixture
def make_pom():
    """The :func:`write_pom` helper, exposed as a fixture."""
    return write_pom


@pytest.fixture
def keycloak_home(tmp_path: Path) -> Path:
    """A fake Keycloak installation root with an empty ``providers/`` directory."""
    home = tmp_path / "keycloak"
    (home / "providers").mkdir(parents=True)
    (home / "bin").mkdir()
    return home


@pytest.fixture
def server_config(tmp_path: Path, keycloak_home: Path) -> ServerConfig:
    """ServerConfig pointing at :func:`keycloak_home` with a scratch work dir."""
    return ServerConfig(keycloak_path=keycloak_home, work_dir=tmp_path / "work" / "code")


@pytest.fixture
def fake_tools(monkeypatch: pytest.MonkeyPatch) -> FakeTools:
    """Replace ``subprocess.run`` as seen by the stage runner with :class:`FakeTools`."""
    tools = FakeTools()
    monkeypatch.setattr("kcext.stages.subprocess.run", tools)
    return tools


@pytest.fixture
def cli_runner():
    """Typer CLI test runner."""
    from typer.testing import CliRunner

    return CliRunner()
