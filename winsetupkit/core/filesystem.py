"""
File system utilities for WinSetupKit.

Atomic writes for the operation-state file, scratch directory management for
downloaded installers and best-effort file removal.
"""

import logging
import os
import shutil
import tempfile
from pathlib import Path
from typing import Union

logger = logging.getLogger(__name__)

IS_WINDOWS = os.name == "nt"


class FilesystemError(Exception):
    """Base exception for filesystem operations."""

    pass


def is_relative_to(path: Path, parent: Path) -> bool:
    """
    Check if path is under parent directory.

    Example:
        >>> is_relative_to(Path("/tmp/run-1/git.exe"), Path("/tmp"))
        True
    """
    try:
        path.relative_to(parent)
        return True
    except ValueError:
        return False


def atomic_write(
    file_path: Union[str, Path], content: Union[str, bytes], encoding: str = "utf-8"
) -> None:
    """
    Write file atomically using temp file + rename.

    The file is never left partially written. If the write fails the
    original file (if any) remains unchanged.

    Args:
        file_path: Path to write to
        content: Content to write (string or bytes)
        encoding: Text encoding (used only for string content)

    Example:
        >>> atomic_write('state.json', '{"install": {}}')
    """
    file_path = Path(file_path)
    file_path.parent.mkdir(parents=True, exist_ok=True)

    # Same directory keeps the rename on one filesystem
    temp_fd, temp_path_str = tempfile.mkstemp(
        dir=file_path.parent, prefix=f".{file_path.name}.", suffix=".tmp"
    )
    temp_path = Path(temp_path_str)

    try:
        if isinstance(content, str):
            with open(temp_fd, "w", encoding=encoding) as f:
                f.write(content)
        else:
            with open(temp_fd, "wb") as f:
                f.write(content)

        temp_path.replace(file_path)

    except Exception:
        try:
            temp_path.unlink(missing_ok=True)
        except OSError:
            pass
        raise


def remove_file(path: Union[str, Path]) -> bool:
    """
    Remove a file, logging instead of raising on failure.

    Installers occasionally keep a handle on their own binary for a few
    seconds after exit, so deletion can fail.

    Args:
        path: File to remove

    Returns:
        True if the file is gone afterwards
    """
    path = Path(path)
    try:
        path.unlink(missing_ok=True)
        return True
    except OSError as e:
        logger.warning(f"Could not delete {path}: {e}")
        return False


def safe_rmtree(path: Union[str, Path], require_prefix: Union[str, Path]) -> None:
    """
    Remove a directory tree that must live under require_prefix.

    Args:
        path: Directory to remove
        require_prefix: Directory the path must be under

    Raises:
        ValueError: If path is not under require_prefix
        FilesystemError: If deletion fails
    """
    path = Path(path).resolve()
    require_prefix = Path(require_prefix).resolve()
    if not is_relative_to(path, require_prefix):
        raise ValueError(
            f"Refusing to delete '{path}': not under required prefix '{require_prefix}'"
        )

    if not path.exists():
        return

    if not path.is_dir():
        raise FilesystemError(f"Path is not a directory: {path}")

    try:
        if IS_WINDOWS:

            def handle_remove_readonly(func, target, exc):
                if not os.access(target, os.W_OK):
                    os.chmod(target, 0o777)
                    func(target)
                else:
                    raise

            shutil.rmtree(path, onerror=handle_remove_readonly)
        else:
            shutil.rmtree(path)
    except Exception as e:
        raise FilesystemError(f"Failed to remove directory '{path}': {e}")


__all__ = [
    "FilesystemError",
    "is_relative_to",
    "atomic_write",
    "remove_file",
    "safe_rmtree",
]
