"""Durable copy of a built artifact into the Keycloak plugin directory."""

from __future__ import annotations

import logging
import os
import shutil
import tempfile
from pathlib import Path
from typing import Optional

from kcext.exceptions import CopyFailure

logger = logging.getLogger(__name__)


def copy_artifact(source: Path, dest_dir: Path) -> Path:
    """Copy *source* into *dest_dir* under its own base name.

    Bytes go to a hidden temp file in *dest_dir*, are fsynced, and the temp
    file is then renamed over the final name, so ``kc.sh build`` never sees a
    partially written provider. Both file handles are closed on every path
    and the temp file is removed if anything fails.

    Args:
        source: The located build artifact.
        dest_dir: The plugin directory (``<KEYCLOAK_PATH>/providers``).

    Returns:
        Path of the installed file.

    Raises:
        CopyFailure: On any open, write, flush, or rename error.
    """
    destination = dest_dir / source.name
    tmp_path: Optional[Path] = None
    try:
        with open(source, "rb") as src, tempfile.NamedTemporaryFile(
            mode="wb",
            dir=dest_dir,
            prefix=f".{source.name}.",
            suffix=".tmp",
            delete=False,
        ) as dst:
            tmp_path = Path(dst.name)
            shutil.copyfileobj(src, dst)
            dst.flush()
            os.fsync(dst.fileno())
        shutil.copymode(source, tmp_path)
        os.replace(tmp_path, destination)
    except OSError as exc:
        if tmp_path is not None:
            try:
                tmp_path.unlink()
            except OSError:
                pass
        raise CopyFailure(f"copying {source} to {dest_dir}: {exc}") from exc

    logger.debug("Copied %s -> %s", source, destination)
    return destination
