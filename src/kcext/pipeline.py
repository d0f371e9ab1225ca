"""Install pipeline -- the fixed clone/build/locate/copy/rebuild/restart sequence.

:class:`InstallPipeline` is a forward-only state machine::

    pending -> cloning -> building -> locating -> copying
            -> rebuilding -> restarting -> done

Any state may jump to ``failed``; nothing moves backwards and nothing is
retried. The first stage to fail stops the run and its error (a
:class:`~kcext.exceptions.StageError` or
:class:`~kcext.exceptions.ArtifactError`) propagates to the caller. Earlier
stages are not rolled back: a failed build leaves the clone in ``work_dir``
and the next run re-clones it.

Build and packaging detection are the only stages that overlap. Both read
the freshly cloned tree, and both are awaited before the pipeline decides
whether to continue.

The rebuild/restart tail is also exposed as :func:`rebuild_and_restart` so
``uninstall`` can reuse it.
"""

from __future__ import annotations

import logging
import shutil
from concurrent.futures import ALL_COMPLETED, Future, wait
from pathlib import Path
from typing import Optional

from kcext.config import require_plugin_dir
from kcext.copier import copy_artifact
from kcext.exceptions import (
    BuildFailure,
    CloneFailure,
    CopyFailure,
    DescriptorReadError,
    KcextError,
    NoArtifactFoundError,
    RebuildFailure,
    RestartFailure,
)
from kcext.locator import (
    BUILD_OUTPUT_DIR,
    DESCRIPTOR_NAME,
    detect_packaging_type,
    locate_artifact,
    remove_source_artifacts,
)
from kcext.models import PipelineRequest, PipelineState, ServerConfig, Stage
from kcext.output import debug, info, success, warning
from kcext.stages import (
    StageResult,
    StageRunner,
    build_command,
    clone_command,
    rebuild_command,
    restart_command,
)

logger = logging.getLogger(__name__)

CLONE_MARKER = Path(".git") / "kcext-clone"
"""Written into every tree kcext clones; only such trees are ever removed."""

_STAGE_ERRORS: dict[Stage, type[KcextError]] = {
    Stage.CLONE: CloneFailure,
    Stage.DETECT: DescriptorReadError,
    Stage.BUILD: BuildFailure,
    Stage.LOCATE: NoArtifactFoundError,
    Stage.COPY: CopyFailure,
    Stage.REBUILD: RebuildFailure,
    Stage.RESTART: RestartFailure,
}

_FORWARD_ORDER = [
    PipelineState.PENDING,
    PipelineState.CLONING,
    PipelineState.BUILDING,
    PipelineState.LOCATING,
    PipelineState.COPYING,
    PipelineState.REBUILDING,
    PipelineState.RESTARTING,
    PipelineState.DONE,
]


def raise_for_result(result: StageResult) -> None:
    """Raise the error type matching a failed *result*; no-op on success.

    An exception already belonging to the kcext hierarchy (e.g. a
    :class:`~kcext.exceptions.PackagingNotDeclaredError` from detection) is
    re-raised unchanged; anything else is wrapped in the stage's error class.
    """
    if result.ok:
        return
    if isinstance(result.exception, KcextError):
        raise result.exception
    error_cls = _STAGE_ERRORS[result.stage]
    raise error_cls(result.error or "unknown error")


def await_stage(future: Future[StageResult]) -> StageResult:
    """Block on a stage's completion signal and raise if it failed."""
    result = future.result()
    raise_for_result(result)
    return result


# ------------------------------------------------------------------ #
# Server tail (shared with uninstall)
# ------------------------------------------------------------------ #


def rebuild_server(config: ServerConfig, runner: StageRunner) -> StageResult:
    """Run ``kc.sh build`` so the server picks up the provider change.

    Raises:
        RebuildFailure: If the control script fails.
    """
    info("Rebuilding Keycloak ...")
    result = await_stage(
        runner.submit_command(
            Stage.REBUILD, rebuild_command(config), cwd=config.keycloak_path, capture=True
        )
    )
    if result.output.strip():
        info(result.output.rstrip())
    success("Keycloak instance rebuilt")
    return result


def restart_service(config: ServerConfig, runner: StageRunner) -> StageResult:
    """Restart the Keycloak service unit.

    Raises:
        RestartFailure: If the service manager reports failure.
    """
    info("Restarting Keycloak service ...")
    result = await_stage(
        runner.submit_command(
            Stage.RESTART, restart_command(config), cwd=config.keycloak_path, capture=True
        )
    )
    if result.output.strip():
        info(result.output.rstrip())
    success("Keycloak service restarted")
    return result


def rebuild_and_restart(config: ServerConfig, runner: StageRunner) -> None:
    """Rebuild, then restart. Restart never runs if the rebuild failed."""
    rebuild_server(config, runner)
    restart_service(config, runner)


# ------------------------------------------------------------------ #
# Install pipeline
# ------------------------------------------------------------------ #


class InstallPipeline:
    """Drives one install run through its stages.

    Args:
        config: Resolved server configuration.
        runner: Stage runner that executes each stage. The caller owns
            its lifetime.

    Attributes:
        state: Current :class:`~kcext.models.PipelineState`.
        history: Every state entered, in order.
        failed_state: The state the pipeline was in when it failed.
        error: The error that stopped the pipeline.
    """

    def __init__(self, config: ServerConfig, runner: StageRunner) -> None:
        self._config = config
        self._runner = runner
        self.state = PipelineState.PENDING
        self.history: list[PipelineState] = [PipelineState.PENDING]
        self.failed_state: Optional[PipelineState] = None
        self.error: Optional[KcextError] = None

    def _advance(self, state: PipelineState) -> None:
        if self.state in (PipelineState.DONE, PipelineState.FAILED):
            raise RuntimeError(f"Pipeline already finished ({self.state.value})")
        if _FORWARD_ORDER.index(state) <= _FORWARD_ORDER.index(self.state):
            raise RuntimeError(
                f"Illegal transition {self.state.value} -> {state.value}"
            )
        logger.debug("Pipeline %s -> %s", self.state.value, state.value)
        self.state = state
        self.history.append(state)

    def _fail(self, exc: KcextError) -> None:
        self.failed_state = self.state
        self.error = exc
        self.state = PipelineState.FAILED
        self.history.append(PipelineState.FAILED)
        logger.debug("Pipeline failed in %s: %s", self.failed_state.value, exc)

    def run(self, request: PipelineRequest) -> Path:
        """Install the extension described by *request*.

        Returns:
            Path of the artifact installed in the plugin directory.

        Raises:
            ConfigError: If the Keycloak path is not configured (before any
                stage starts).
            StageError: If clone, build, copy, rebuild, or restart fails.
            ArtifactError: If the packaging type or the artifact cannot be
                resolved.
        """
        plugin_dir = require_plugin_dir(self._config)

        try:
            self._advance(PipelineState.CLONING)
            self._clone(request)

            self._advance(PipelineState.BUILDING)
            packaging = self._build_and_detect(request.work_dir)

            self._advance(PipelineState.LOCATING)
            artifact: Path = await_stage(
                self._runner.submit(
                    Stage.LOCATE, locate_artifact, request.work_dir / BUILD_OUTPUT_DIR, packaging
                )
            ).value
            info(f"Build file: {artifact.name}")

            self._advance(PipelineState.COPYING)
            installed: Path = await_stage(
                self._runner.submit(Stage.COPY, copy_artifact, artifact, plugin_dir)
            ).value
            success(f"Copied {artifact.name} to {plugin_dir}")

            self._advance(PipelineState.REBUILDING)
            rebuild_server(self._config, self._runner)

            self._advance(PipelineState.RESTARTING)
            restart_service(self._config, self._runner)
        except KcextError as exc:
            self._fail(exc)
            raise

        self._advance(PipelineState.DONE)
        return installed

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------

    def _clone(self, request: PipelineRequest) -> None:
        work_dir = request.work_dir
        try:
            if work_dir.exists() and self._config.clean_work_dir:
                _remove_previous_clone(work_dir)
            work_dir.parent.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise CloneFailure(f"preparing {work_dir}: {exc}") from exc

        info(f"Cloning {request.source_url} ...")
        await_stage(
            self._runner.submit_command(
                Stage.CLONE, clone_command(self._config, request.source_url, work_dir)
            )
        )
        try:
            marker = work_dir / CLONE_MARKER
            marker.parent.mkdir(exist_ok=True)
            marker.write_text(f"{request.source_url}\n", encoding="utf-8")
        except OSError as exc:
            raise CloneFailure(f"marking {work_dir}: {exc}") from exc
        success("Cloning completed")

    def _build(self, work_dir: Path) -> StageResult:
        info("Running Maven: mvn clean package")
        result = self._runner.run(Stage.BUILD, build_command(self._config), cwd=work_dir)
        if not result.ok:
            return result
        try:
            remove_source_artifacts(work_dir / BUILD_OUTPUT_DIR)
        except OSError as exc:
            return StageResult(
                stage=Stage.BUILD, error=f"deleting sources artifact: {exc}", exception=exc
            )
        return result

    def _build_and_detect(self, work_dir: Path) -> str:
        build_future = self._runner.submit(Stage.BUILD, self._build, work_dir)
        detect_future = self._runner.submit(
            Stage.DETECT, detect_packaging_type, work_dir / DESCRIPTOR_NAME
        )
        wait([build_future, detect_future], return_when=ALL_COMPLETED)

        # Build is the earlier logical stage, so its failure is reported first.
        raise_for_result(build_future.result())
        success("Extension built successfully")
        packaging: str = await_stage(detect_future).value
        debug(f"Packaging type: {packaging}")
        return packaging


def _remove_previous_clone(work_dir: Path) -> None:
    """Clear *work_dir* for a fresh clone.

    Only an empty directory or a tree carrying :data:`CLONE_MARKER` is
    removed. Anything else was not created by kcext and is left alone.

    Raises:
        CloneFailure: If *work_dir* holds something kcext did not clone.
        OSError: If the removal itself fails.
    """
    if work_dir.is_dir() and not any(work_dir.iterdir()):
        work_dir.rmdir()
        return
    if not (work_dir / CLONE_MARKER).is_file():
        raise CloneFailure(
            f"refusing to remove {work_dir}: it is not a working tree created by kcext; "
            "choose an empty or new --work-dir"
        )
    warning(f"Removing previous working tree {work_dir}")
    shutil.rmtree(work_dir)
