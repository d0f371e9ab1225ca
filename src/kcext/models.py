"""Pydantic models shared across kcext modules.

**Configuration model** -- :class:`ServerConfig`, serialised as JSON in the
user's config directory and resolved once per process by
:func:`kcext.config.resolve_config`.

**Pipeline models** -- :class:`PipelineRequest`, :class:`Stage`, and
:class:`PipelineState` describe one install run. The per-stage outcome,
:class:`~kcext.stages.StageResult`, lives next to the runner that produces it.
"""

from __future__ import annotations

import enum
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


# --- Configuration ---


class ServerConfig(BaseModel):
    """Where the Keycloak server lives and how to drive its tooling.

    Built once at process start from CLI flags, environment variables, the
    user config file, and the defaults below (in that order of precedence),
    then passed explicitly into the pipeline and the extension manager.

    Example::

        ServerConfig(keycloak_path="/opt/keycloak", service_name="keycloak")
    """

    keycloak_path: Optional[Path] = Field(
        default=None, description="Keycloak installation root (KEYCLOAK_PATH)"
    )
    work_dir: Path = Field(
        default=Path("/tmp/code"),
        description="Scratch directory the extension source is cloned into",
    )
    service_name: str = Field(
        default="keycloak", description="systemd unit restarted after a rebuild"
    )
    stage_timeout: Optional[float] = Field(
        default=None,
        gt=0,
        description="Seconds before an external stage is abandoned; unset waits forever",
    )
    clean_work_dir: bool = Field(
        default=True, description="Remove a previous kcext clone from work_dir before cloning"
    )
    git_bin: str = "git"
    maven_bin: str = "mvn"
    systemctl_bin: str = "systemctl"
    control_script: str = Field(
        default="bin/kc.sh",
        description="Server control script, relative to keycloak_path",
    )

    @property
    def plugin_dir(self) -> Optional[Path]:
        """``<keycloak_path>/providers``, or ``None`` when the server path is unset."""
        if self.keycloak_path is None:
            return None
        return self.keycloak_path / "providers"


# --- Pipeline ---


class PipelineRequest(BaseModel):
    """A single install invocation: what to clone and where to build it."""

    model_config = ConfigDict(frozen=True)

    source_url: str = Field(min_length=1, description="Git URL of the extension source")
    work_dir: Path


class Stage(str, enum.Enum):
    """Discrete units of work in the install pipeline."""

    CLONE = "clone"
    DETECT = "detect"
    BUILD = "build"
    LOCATE = "locate"
    COPY = "copy"
    REBUILD = "rebuild"
    RESTART = "restart"


class PipelineState(str, enum.Enum):
    """States of :class:`~kcext.pipeline.InstallPipeline`.

    Transitions only move forward through the list below or jump to
    ``FAILED``; there are no backward transitions and no retries.
    """

    PENDING = "pending"
    CLONING = "cloning"
    BUILDING = "building"
    LOCATING = "locating"
    COPYING = "copying"
    REBUILDING = "rebuilding"
    RESTARTING = "restarting"
    DONE = "done"
    FAILED = "failed"
