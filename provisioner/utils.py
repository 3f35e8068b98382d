from __future__ import annotations

import os
import tempfile
from pathlib import Path
from typing import Any, Dict, Optional


class ProvisionError(RuntimeError):
    """Base class for failures raised while provisioning image variants."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.context: Dict[str, Any] = {}

    def add_context(self, **context: Any) -> "ProvisionError":
        for key, value in context.items():
            self.context.setdefault(key, value)
        return self

    def __str__(self) -> str:
        message = super().__str__()
        if not self.context:
            return message
        where = ", ".join(f"{key}={value}" for key, value in self.context.items())
        return f"{message} [{where}]"


class FileOperationError(ProvisionError):
    """Raised when a filesystem operation on ``path`` fails."""

    def __init__(self, path: str | Path, operation: str, reason: Optional[str] = None) -> None:
        self.path = Path(path)
        self.operation = operation
        self.reason = reason
        message = f"Cannot {operation} {self.path}"
        if reason:
            message += f": {reason}"
        super().__init__(message)


class ReadError(FileOperationError):
    """Raised when a source file or tree cannot be read."""

    def __init__(self, path: str | Path, reason: Optional[str] = None) -> None:
        super().__init__(path, "read", reason)


class WriteError(FileOperationError):
    """Raised when a target file or tree cannot be written."""

    def __init__(self, path: str | Path, reason: Optional[str] = None) -> None:
        super().__init__(path, "write", reason)


class CopyError(FileOperationError):
    """Raised when a configuration bundle cannot be copied into a variant."""

    def __init__(self, source: str | Path, destination: str | Path, reason: Optional[str] = None) -> None:
        self.source = Path(source)
        super().__init__(destination, f"copy {self.source} into", reason)


def read_text(path: str | Path) -> str:
    """Read a text file, raising :class:`ReadError` instead of ``OSError``."""

    path = Path(path)
    try:
        with open(path, encoding="utf-8", newline="") as handle:
            return handle.read()
    except (OSError, UnicodeDecodeError) as exc:
        raise ReadError(path, str(exc)) from exc


def atomic_write_text(path: str | Path, content: str) -> None:
    """Replace ``path`` with ``content`` in a single rename.

    The new content is written to a temporary file next to the target and
    moved over it with ``os.replace``, so readers see either the old or the
    new file, never a truncated one. Permission bits of the existing file are
    kept.
    """

    path = Path(path)
    try:
        mode = path.stat().st_mode & 0o7777
    except FileNotFoundError:
        mode = None

    try:
        fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    except OSError as exc:
        raise WriteError(path, str(exc)) from exc

    tmp_path = Path(tmp_name)
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="") as handle:
            handle.write(content)
        if mode is not None:
            os.chmod(tmp_path, mode)
        os.replace(tmp_path, path)
    except OSError as exc:
        tmp_path.unlink(missing_ok=True)
        raise WriteError(path, str(exc)) from exc


def relative_dir(path: str | Path, base_dir: str | Path) -> str:
    """Render ``path`` relative to ``base_dir`` for progress output."""

    path = Path(path)
    try:
        return str(path.relative_to(base_dir))
    except ValueError:
        return str(path)
