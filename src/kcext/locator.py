"""Packaging detection and build-artifact resolution.

The install pipeline never guesses which file to install. The packaging type
comes from the project's ``pom.xml`` and must be declared explicitly, and the
``target/`` directory must contain exactly one ``*.<packaging>`` file after
the build. Anything else is an :class:`~kcext.exceptions.ArtifactError`.
"""

from __future__ import annotations

import logging
import xml.etree.ElementTree as ET
from pathlib import Path

from kcext.exceptions import (
    AmbiguousArtifactError,
    DescriptorReadError,
    NoArtifactFoundError,
    PackagingNotDeclaredError,
)

logger = logging.getLogger(__name__)

DESCRIPTOR_NAME = "pom.xml"
BUILD_OUTPUT_DIR = "target"
SOURCES_PATTERN = "*-sources.*"


def _local_name(tag: str) -> str:
    """Strip an ElementTree ``{namespace}`` prefix from *tag*."""
    return tag.rsplit("}", 1)[-1]


def detect_packaging_type(descriptor_path: Path) -> str:
    """Read the declared ``<project><packaging>`` value from a Maven descriptor.

    Namespaced (``xmlns="http://maven.apache.org/POM/4.0.0"``) and bare POMs
    are both accepted. Maven's implicit ``jar`` default is not applied.

    Args:
        descriptor_path: Path to ``pom.xml``.

    Returns:
        The packaging type, e.g. ``"jar"`` or ``"war"``.

    Raises:
        DescriptorReadError: If the file cannot be read or parsed, or its root
            element is not ``<project>``.
        PackagingNotDeclaredError: If ``<packaging>`` is absent or empty.
    """
    try:
        root = ET.parse(descriptor_path).getroot()
    except (OSError, ET.ParseError) as exc:
        raise DescriptorReadError(f"Error reading {descriptor_path}: {exc}") from exc

    if _local_name(root.tag) != "project":
        raise DescriptorReadError(
            f"{descriptor_path} is not a Maven project descriptor "
            f"(root element <{_local_name(root.tag)}>)"
        )

    for child in root:
        if isinstance(child.tag, str) and _local_name(child.tag) == "packaging":
            packaging = (child.text or "").strip()
            if packaging:
                logger.debug("Detected packaging '%s' in %s", packaging, descriptor_path)
                return packaging
            break

    raise PackagingNotDeclaredError(
        f"Packaging element not found in {descriptor_path}"
    )


def locate_artifact(directory: Path, packaging_type: str) -> Path:
    """Find the single ``*.<packaging_type>`` file directly inside *directory*.

    Args:
        directory: Build output directory (normally ``<work_dir>/target``).
        packaging_type: Value returned by :func:`detect_packaging_type`.

    Returns:
        Path to the one matching regular file.

    Raises:
        NoArtifactFoundError: If nothing matches.
        AmbiguousArtifactError: If more than one file matches.
    """
    pattern = f"*.{packaging_type}"
    matches = sorted(p for p in directory.glob(pattern) if p.is_file())

    if not matches:
        raise NoArtifactFoundError(
            f"Expected exactly one build file matching '{pattern}' in {directory}, found 0"
        )
    if len(matches) > 1:
        raise AmbiguousArtifactError(pattern, matches)

    logger.debug("Located artifact %s", matches[0])
    return matches[0]


def remove_source_artifacts(directory: Path) -> list[Path]:
    """Delete ``*-sources.*`` files so they never compete with the real artifact.

    Returns:
        The paths that were removed.

    Raises:
        OSError: If a matching file cannot be removed.
    """
    removed: list[Path] = []
    for path in sorted(directory.glob(SOURCES_PATTERN)):
        if path.is_file():
            path.unlink()
            removed.append(path)
    if removed:
        logger.debug("Removed %d sources artifact(s) from %s", len(removed), directory)
    return removed
