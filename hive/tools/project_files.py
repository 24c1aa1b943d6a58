# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# hive/tools/project_files.py
"""Project file access with path traversal protection."""

from pathlib import Path

from hive.core.exceptions import PathTraversalError


class ProjectFiles:
    """
    Reads, writes and deletes files inside a project's code root.

    Security features:
    - Path resolution and validation against the root
    - Symlink detection and blocking
    - Parent directory creation (within the root only)
    """

    def __init__(self, root: str | Path):
        """Initialize with the project's code root.

        Args:
            root: Absolute path to the project codebase.

        Raises:
            ValueError: If the root is empty or not a directory.
        """
        if not str(root).strip():
            raise ValueError("Empty project root is not allowed")
        self._root = Path(root).resolve()
        if not self._root.is_dir():
            raise ValueError(f"Project root is not a directory: {root}")

    @property
    def root(self) -> Path:
        return self._root

    def _is_within_root(self, resolved_path: Path) -> bool:
        """Check if a resolved path is the root or lies beneath it."""
        return resolved_path == self._root or self._root in resolved_path.parents

    def _check_symlink_escape(self, path: Path) -> None:
        """Check if any component of the path is a symlink that escapes the root.

        Args:
            path: Path to check for symlink escape.

        Raises:
            PathTraversalError: If symlink escape is detected.
        """
        for parent in [path] + list(path.parents):
            if parent.is_symlink():
                real_target = parent.resolve()
                if not self._is_within_root(real_target):
                    raise PathTraversalError(
                        f"Symlink '{parent}' points outside the project root "
                        f"(target: {real_target})"
                    )

    def resolve(self, file_path: str) -> Path:
        """Resolve a project-relative path to an absolute path inside the root.

        Args:
            file_path: Path relative to the project root.

        Returns:
            Absolute resolved path.

        Raises:
            ValueError: If the path is empty.
            PathTraversalError: If the path escapes the project root.
        """
        if not file_path or not file_path.strip():
            raise ValueError("Empty file path is not allowed")

        path = Path(file_path)
        if not path.is_absolute():
            path = self._root / path
        resolved_path = path.resolve()

        if not self._is_within_root(resolved_path):
            raise PathTraversalError(
                f"Path '{file_path}' resolves to '{resolved_path}' which is "
                f"outside the project root {self._root}"
            )

        existing_parent = path
        while not existing_parent.exists() and existing_parent.parent != existing_parent:
            existing_parent = existing_parent.parent
        if existing_parent.exists() or existing_parent.is_symlink():
            self._check_symlink_escape(existing_parent)

        return resolved_path

    def read(self, file_path: str) -> str:
        """Read a file's text content.

        Raises:
            PathTraversalError: If the path escapes the project root.
            OSError: If the file cannot be read.
        """
        return self.resolve(file_path).read_text(encoding="utf-8")

    def write(self, file_path: str, content: str) -> None:
        """Write text content, creating parent directories as needed.

        Raises:
            PathTraversalError: If the path escapes the project root.
            OSError: If the file cannot be written.
        """
        resolved_path = self.resolve(file_path)
        resolved_path.parent.mkdir(parents=True, exist_ok=True)
        resolved_path.write_text(content, encoding="utf-8")

    def delete(self, file_path: str) -> None:
        """Delete a file.

        Raises:
            PathTraversalError: If the path escapes the project root.
            FileNotFoundError: If the file does not exist.
            OSError: If the file cannot be deleted.
        """
        self.resolve(file_path).unlink()
