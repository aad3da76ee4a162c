from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict

import yaml

from ..errors import ManifestError, PathNotFoundError
from ..models import Manifest

logger = logging.getLogger(__name__)


def load_yaml(path: str | Path) -> Dict[str, Any]:
    """Load a YAML mapping from ``path``."""

    p = Path(path)
    if not p.exists():
        raise PathNotFoundError(p)
    try:
        data = yaml.safe_load(p.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ManifestError(f"Invalid YAML in {p}: {e}") from e
    if not isinstance(data, dict):
        raise ManifestError(f"Manifest must be a mapping/dict: {p}")
    return data


def _resolve(base: Path, rel: Path) -> Path:
    candidate = base / rel
    if not candidate.exists():
        logger.error("Path does not exist: %s", candidate)
        raise PathNotFoundError(candidate)
    return candidate.resolve()


def load_manifest(path: str | Path) -> Manifest:
    """Load a single manifest file without following its imports.

    Imports, script files and the dnf repodir are resolved relative to the
    directory containing ``path`` and replaced by canonical absolute paths.
    """

    p = Path(path)
    try:
        manifest = Manifest.from_dict(load_yaml(p))
    except PathNotFoundError:
        raise
    except ManifestError as e:
        raise ManifestError(f"{p}: {e}") from e

    base = p.resolve().parent
    logger.debug("Canonicalizing paths relative to %s", base)

    manifest.import_ = [_resolve(base, imp) for imp in manifest.import_]
    for imp in manifest.import_:
        logger.debug("Import: %s", imp)

    for script in [*manifest.scripts.pre, *manifest.scripts.post]:
        if script.file is not None:
            script.file = _resolve(base, script.file)

    if manifest.dnf.repodir is not None:
        manifest.dnf.repodir = _resolve(base, manifest.dnf.repodir)

    return manifest
