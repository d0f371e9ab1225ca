"""Tests for kcext.copier.copy_artifact."""

from __future__ import annotations

import os
from pathlib import Path
from unittest.mock import patch

import pytest

from kcext.copier import copy_artifact
from kcext.exceptions import CopyFailure, StageError
from kcext.exit_codes import EXIT_STAGE_FAILURE


@pytest.fixture
def artifact(tmp_path: Path) -> Path:
    target = tmp_path / "target"
    target.mkdir()
    path = target / "demo-1.0.jar"
    path.write_bytes(b"PK\x03\x04" + bytes(range(256)) * 64)
    return path


@pytest.fixture
def providers(tmp_path: Path) -> Path:
    path = tmp_path / "providers"
    path.mkdir()
    return path


def _leftovers(directory: Path) -> list[str]:
    return sorted(p.name for p in directory.iterdir() if p.name.endswith(".tmp"))


class TestCopyArtifact:

    def test_copies_bytes_under_base_name(self, artifact: Path, providers: Path) -> None:
        installed = copy_artifact(artifact, providers)

        assert installed == providers / "demo-1.0.jar"
        assert installed.read_bytes() == artifact.read_bytes()
        assert _leftovers(providers) == []

    def test_overwrites_existing_file(self, artifact: Path, providers: Path) -> None:
        (providers / "demo-1.0.jar").write_bytes(b"old")

        copy_artifact(artifact, providers)

        assert (providers / "demo-1.0.jar").read_bytes() == artifact.read_bytes()

    def test_preserves_permission_bits(self, artifact: Path, providers: Path) -> None:
        artifact.chmod(0o640)
        installed = copy_artifact(artifact, providers)
        assert installed.stat().st_mode & 0o777 == 0o640

    def test_data_is_fsynced(self, artifact: Path, providers: Path) -> None:
        with patch("kcext.copier.os.fsync", wraps=os.fsync) as fsync:
            copy_artifact(artifact, providers)
        fsync.assert_called_once()

    def test_missing_destination_directory(self, artifact: Path, tmp_path: Path) -> None:
        with pytest.raises(CopyFailure) as exc_info:
            copy_artifact(artifact, tmp_path / "missing")

        err = exc_info.value
        assert isinstance(err, StageError)
        assert err.exit_code == EXIT_STAGE_FAILURE
        assert str(err).startswith("copy failed:")

    def test_missing_source(self, tmp_path: Path, providers: Path) -> None:
        with pytest.raises(CopyFailure):
            copy_artifact(tmp_path / "nope.jar", providers)
        assert list(providers.iterdir()) == []

    def test_write_error_removes_temp_file(
        self, artifact: Path, providers: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        def failing_copy(src, dst) -> None:
            dst.write(b"partial")
            raise OSError(28, "No space left on device")

        monkeypatch.setattr("kcext.copier.shutil.copyfileobj", failing_copy)

        with pytest.raises(CopyFailure, match="No space left"):
            copy_artifact(artifact, providers)

        assert list(providers.iterdir()) == []
