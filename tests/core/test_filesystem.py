"""
Unit tests for filesystem helpers.
"""

from unittest.mock import patch

import pytest

from winsetupkit.core.filesystem import (
    FilesystemError,
    atomic_write,
    is_relative_to,
    remove_file,
    safe_rmtree,
)


class TestAtomicWrite:
    """Test atomic_write."""

    def test_write_text(self, temp_dir):
        """Test writing text content."""
        target = temp_dir / "state.json"
        atomic_write(target, '{"install": {}}')

        assert target.read_text(encoding="utf-8") == '{"install": {}}'

    def test_overwrite(self, temp_dir):
        """Test replacing existing content."""
        target = temp_dir / "state.json"
        target.write_text("old")

        atomic_write(target, "new")

        assert target.read_text() == "new"

    def test_no_temp_files_left(self, temp_dir):
        """Test temporary files are renamed away."""
        atomic_write(temp_dir / "state.json", "data")

        assert [p.name for p in temp_dir.iterdir()] == ["state.json"]

    def test_failure_keeps_original(self, temp_dir):
        """Test original content survives a failed replace."""
        target = temp_dir / "state.json"
        target.write_text("original")

        with patch("pathlib.Path.replace", side_effect=OSError("locked")):
            with pytest.raises(OSError):
                atomic_write(target, "new")

        assert target.read_text() == "original"
        assert [p.name for p in temp_dir.iterdir()] == ["state.json"]


class TestRemoveFile:
    """Test remove_file."""

    def test_remove_existing(self, temp_dir):
        """Test removing an existing file."""
        target = temp_dir / "git.exe"
        target.write_bytes(b"MZ")

        assert remove_file(target) is True
        assert not target.exists()

    def test_remove_missing(self, temp_dir):
        """Test removing a missing file is not an error."""
        assert remove_file(temp_dir / "missing.exe") is True

    def test_remove_failure_logged(self, temp_dir, caplog):
        """Test a locked file is reported, not raised."""
        target = temp_dir / "git.exe"
        target.write_bytes(b"MZ")

        with patch("pathlib.Path.unlink", side_effect=PermissionError("in use")):
            assert remove_file(target) is False

        assert "Could not delete" in caplog.text


class TestSafeRmtree:
    """Test safe_rmtree."""

    def test_removes_directory_under_prefix(self, temp_dir):
        """Test removal of a scratch directory."""
        scratch = temp_dir / "run-1"
        (scratch / "sub").mkdir(parents=True)
        (scratch / "sub" / "file.txt").write_text("x")

        safe_rmtree(scratch, require_prefix=temp_dir)

        assert not scratch.exists()

    def test_refuses_outside_prefix(self, temp_dir):
        """Test paths outside the prefix are refused."""
        outside = temp_dir / "other"
        outside.mkdir()

        with pytest.raises(ValueError, match="Refusing to delete"):
            safe_rmtree(outside, require_prefix=temp_dir / "scratch")

        assert outside.exists()

    def test_missing_directory(self, temp_dir):
        """Test missing directories are ignored."""
        safe_rmtree(temp_dir / "run-404", require_prefix=temp_dir)

    def test_file_rejected(self, temp_dir):
        """Test a file path is rejected."""
        target = temp_dir / "file.txt"
        target.write_text("x")

        with pytest.raises(FilesystemError):
            safe_rmtree(target, require_prefix=temp_dir)


class TestIsRelativeTo:
    """Test is_relative_to."""

    def test_relative(self, temp_dir):
        assert is_relative_to(temp_dir / "a" / "b", temp_dir)

    def test_not_relative(self, temp_dir):
        assert not is_relative_to(temp_dir, temp_dir / "a")
