"""Exception hierarchy for kcext.

All exceptions inherit from :class:`KcextError`, which carries an
``exit_code`` attribute mapped to a constant from :mod:`kcext.exit_codes`.
The top-level error handler in :func:`kcext.app.main` catches
``KcextError`` and exits with the appropriate code, while unexpected
exceptions produce a crash log and exit with :data:`EXIT_GENERIC_FAILURE`.

Subclass hierarchy::

    KcextError (exit 1)
    +-- InvalidUsageError          (exit 2)
    +-- ConfigError                (exit 3)
    +-- ExtensionNotFoundError     (exit 4)
    +-- DirectoryAccessError       (exit 4)
    +-- StageError                 (exit 5)
    |   +-- CloneFailure
    |   +-- BuildFailure
    |   +-- CopyFailure
    |   +-- RebuildFailure
    |   +-- RestartFailure
    +-- ArtifactError              (exit 6)
        +-- DescriptorReadError
        +-- PackagingNotDeclaredError
        +-- NoArtifactFoundError
        +-- AmbiguousArtifactError
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional, Sequence

from kcext.exit_codes import (
    EXIT_ARTIFACT_ERROR,
    EXIT_CONFIG_ERROR,
    EXIT_GENERIC_FAILURE,
    EXIT_INVALID_USAGE,
    EXIT_NOT_FOUND,
    EXIT_STAGE_FAILURE,
)


class KcextError(Exception):
    """Base exception for all kcext errors.

    Every subclass sets a class-level ``exit_code`` corresponding to one of
    the constants in :mod:`kcext.exit_codes`. The entry point catches
    this exception type and calls ``sys.exit(exc.exit_code)``.

    Args:
        message: Human-readable error description printed to stderr.
        exit_code: Optional override for the class-level exit code.
    """

    exit_code: int = EXIT_GENERIC_FAILURE

    def __init__(self, message: str, exit_code: int | None = None):
        super().__init__(message)
        if exit_code is not None:
            self.exit_code = exit_code


class InvalidUsageError(KcextError):
    """Raised for invalid CLI arguments (e.g. an uninstall name with a path separator)."""

    exit_code = EXIT_INVALID_USAGE


class ConfigError(KcextError):
    """Raised for configuration problems (``KEYCLOAK_PATH`` unset, invalid config JSON)."""

    exit_code = EXIT_CONFIG_ERROR


class ExtensionNotFoundError(KcextError):
    """Raised when no installed extension matches the name given to ``uninstall``."""

    exit_code = EXIT_NOT_FOUND


class DirectoryAccessError(KcextError):
    """Raised when the plugin directory cannot be read during ``list``."""

    exit_code = EXIT_NOT_FOUND


# --- Pipeline stage failures ---


class StageError(KcextError):
    """A pipeline stage reported failure.

    The message is prefixed with the stage name so the operator can see
    where the pipeline stopped.

    Args:
        cause: Underlying failure reason (exit status, I/O error, and any
            captured process output).
    """

    exit_code = EXIT_STAGE_FAILURE
    stage: str = "stage"

    def __init__(self, cause: str):
        self.cause = cause
        super().__init__(f"{self.stage} failed: {cause}")


class CloneFailure(StageError):
    """``git clone`` of the extension repository failed."""

    stage = "clone"


class BuildFailure(StageError):
    """The Maven build (or the sources-artifact cleanup after it) failed."""

    stage = "build"


class CopyFailure(StageError):
    """Copying the artifact into the plugin directory failed."""

    stage = "copy"


class RebuildFailure(StageError):
    """``kc.sh build`` failed."""

    stage = "rebuild"


class RestartFailure(StageError):
    """Restarting the Keycloak service failed."""

    stage = "restart"


# --- Packaging / artifact resolution ---


class ArtifactError(KcextError):
    """Base class for packaging-type and artifact resolution failures."""

    exit_code = EXIT_ARTIFACT_ERROR


class DescriptorReadError(ArtifactError):
    """The project descriptor (``pom.xml``) is missing, unreadable, or malformed."""


class PackagingNotDeclaredError(ArtifactError):
    """The project descriptor does not declare a ``<packaging>`` element."""


class NoArtifactFoundError(ArtifactError):
    """No build output matches the packaging pattern."""


class AmbiguousArtifactError(ArtifactError):
    """More than one build output matches the packaging pattern.

    Args:
        pattern: The glob pattern that was matched.
        candidates: Every matching path, in sorted order.
    """

    def __init__(self, pattern: str, candidates: Sequence[Path], exit_code: Optional[int] = None):
        self.pattern = pattern
        self.candidates = list(candidates)
        names = ", ".join(p.name for p in self.candidates)
        super().__init__(
            f"Expected exactly one build file matching '{pattern}', "
            f"found {len(self.candidates)}: {names}",
            exit_code,
        )
