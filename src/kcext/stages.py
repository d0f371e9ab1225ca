"""Stage runner -- external-process invocations as asynchronous units of work.

Every pipeline stage (clone, build, rebuild, restart, and the in-process
packaging detection) runs on the runner's worker threads and reports back
through a :class:`concurrent.futures.Future` resolving to exactly one
:class:`StageResult`. Failures never escape as exceptions from the worker:
they are folded into the result so the orchestrator decides what to do.

The command builders at the bottom of the module hold the fixed argv for
each external tool.
"""

from __future__ import annotations

import logging
import shlex
import subprocess
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Optional, Sequence

from kcext.models import ServerConfig, Stage

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StageResult:
    """Outcome of one stage, consumed once by the orchestrator.

    Attributes:
        stage: Which stage produced this result.
        error: Failure reason, or ``None`` on success.
        output: Captured process output (diagnostics only).
        value: Return value of an in-process stage (e.g. the packaging type).
        exception: The exception behind ``error`` when the stage raised one.
    """

    stage: Stage
    error: Optional[str] = None
    output: str = ""
    value: Any = None
    exception: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        """Whether the stage succeeded."""
        return self.error is None


class StageRunner:
    """Runs stages on a small thread pool.

    At most two stages are in flight at once (build and packaging detection);
    everything else is submitted and awaited one at a time by the
    orchestrator. Nothing is cancelled once started.

    Args:
        timeout: Seconds before an external process is abandoned. ``None``
            waits indefinitely.
        max_workers: Worker thread count.

    Example::

        with StageRunner() as runner:
            future = runner.submit_command(Stage.CLONE, ["git", "clone", url, dest])
            result = future.result()
    """

    def __init__(self, timeout: Optional[float] = None, max_workers: int = 2) -> None:
        self._timeout = timeout
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="kcext-stage"
        )

    def __enter__(self) -> StageRunner:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.shutdown()

    def shutdown(self) -> None:
        """Wait for in-flight stages and release the worker threads."""
        self._executor.shutdown(wait=True)

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    def run(
        self,
        stage: Stage,
        argv: Sequence[str],
        cwd: Optional[Path] = None,
        capture: bool = False,
    ) -> StageResult:
        """Run one external command to completion on the calling thread.

        With ``capture=False`` the child's stderr goes straight to the
        operator's terminal and stdout is discarded. With ``capture=True``
        stdout and stderr are combined into :attr:`StageResult.output`;
        bytes that are not valid UTF-8 are replaced with U+FFFD.

        Args:
            stage: Stage this command belongs to.
            argv: Program and arguments.
            cwd: Working directory for the child.
            capture: Capture combined output instead of inheriting stderr.

        Returns:
            A successful result, or one whose ``error`` describes the
            non-zero exit, the timeout, or the spawn failure.
        """
        command = shlex.join(argv)
        logger.debug("[%s] running %s (cwd=%s)", stage.value, command, cwd)

        try:
            proc = subprocess.run(
                list(argv),
                cwd=cwd,
                stdout=subprocess.PIPE if capture else subprocess.DEVNULL,
                stderr=subprocess.STDOUT if capture else None,
                text=True,
                errors="replace",
                timeout=self._timeout,
                check=False,
            )
        except subprocess.TimeoutExpired:
            return StageResult(
                stage=stage, error=f"{command} timed out after {self._timeout:g}s"
            )
        except FileNotFoundError as exc:
            return StageResult(
                stage=stage, error=f"{argv[0]}: command not found", exception=exc
            )
        except OSError as exc:
            return StageResult(stage=stage, error=f"{command}: {exc}", exception=exc)

        output = proc.stdout or ""
        if output:
            logger.debug("[%s] output:\n%s", stage.value, output.rstrip())

        if proc.returncode != 0:
            message = f"{command} exited with status {proc.returncode}"
            if output.strip():
                message = f"{message}\n{output.rstrip()}"
            return StageResult(stage=stage, error=message, output=output)

        return StageResult(stage=stage, output=output)

    def submit(
        self, stage: Stage, fn: Callable[..., Any], *args: Any, **kwargs: Any
    ) -> Future[StageResult]:
        """Run *fn* on a worker thread and resolve to its :class:`StageResult`.

        If *fn* returns a ``StageResult`` it is delivered as-is; any other
        return value is wrapped as a successful result's ``value``. An
        exception raised by *fn* becomes a failed result carrying it.
        """
        return self._executor.submit(self._call, stage, fn, *args, **kwargs)

    def submit_command(
        self,
        stage: Stage,
        argv: Sequence[str],
        cwd: Optional[Path] = None,
        capture: bool = False,
    ) -> Future[StageResult]:
        """Run :meth:`run` on a worker thread; resolves like :meth:`submit`."""
        return self.submit(stage, self.run, stage, argv, cwd, capture)

    @staticmethod
    def _call(
        stage: Stage, fn: Callable[..., Any], *args: Any, **kwargs: Any
    ) -> StageResult:
        try:
            value = fn(*args, **kwargs)
        except Exception as exc:
            logger.debug("[%s] raised %s: %s", stage.value, type(exc).__name__, exc)
            return StageResult(stage=stage, error=str(exc), exception=exc)
        if isinstance(value, StageResult):
            return value
        return StageResult(stage=stage, value=value)


# ------------------------------------------------------------------ #
# Command builders
# ------------------------------------------------------------------ #


def clone_command(config: ServerConfig, url: str, destination: Path) -> list[str]:
    """``git clone <url> <destination>``."""
    return [config.git_bin, "clone", url, str(destination)]


def build_command(config: ServerConfig) -> list[str]:
    """Maven package with tests skipped and no classifier on the main artifact."""
    return [
        config.maven_bin,
        "clean",
        "package",
        "-Dmaven.test.skip=true",
        "-Dclassifier=",
    ]


def rebuild_command(config: ServerConfig) -> list[str]:
    """``<keycloak_path>/bin/kc.sh build``."""
    script = Path(config.control_script)
    if not script.is_absolute() and config.keycloak_path is not None:
        script = config.keycloak_path / script
    return [str(script), "build"]


def restart_command(config: ServerConfig) -> list[str]:
    """``systemctl restart <service_name>``."""
    return [config.systemctl_bin, "restart", config.service_name]
