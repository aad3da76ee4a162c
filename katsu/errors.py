from __future__ import annotations

from pathlib import Path
from typing import Sequence


class KatsuError(RuntimeError):
    """Base class for every error raised by katsu."""


class ManifestError(KatsuError):
    """A manifest could not be parsed or has an invalid shape."""


class PathNotFoundError(ManifestError, FileNotFoundError):
    """A path referenced by a manifest does not exist."""

    def __init__(self, path: Path | str):
        self.path = Path(path)
        super().__init__(f"Path does not exist: {self.path}")

    def __str__(self) -> str:
        return f"Path does not exist: {self.path}"


class InvalidFlagError(ManifestError):
    """A GPT attribute flag position is outside 0..63."""


class MergeError(KatsuError):
    """Two manifests have structurally incompatible values for the same key."""

    def __init__(self, key: str, message: str):
        self.key = key
        super().__init__(f"Cannot merge '{key or '<root>'}': {message}")


class UnimplementedError(KatsuError, NotImplementedError):
    """A requested feature (architecture, output kind) is not supported."""


class CommandError(KatsuError):
    """An external command exited with a non-zero status."""

    def __init__(self, argv: Sequence[str], returncode: int, stderr: str = ""):
        self.argv = list(argv)
        self.returncode = returncode
        self.stderr = stderr
        super().__init__(f"Command failed ({returncode}): {' '.join(self.argv)}\n{stderr}")
