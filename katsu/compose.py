"""Resolve a manifest and its transitive imports into one effective manifest.

Composition runs in three stages:

1. The root manifest's *reserved* fields are set aside: the bootloader, the
   ISO config, the disk layout, and the dnf package selection (packages,
   arch_packages, arch_exclude, exclude, repodir, options).
2. Everything else is deep-merged with each import, root values winning on
   scalars and lists being unioned (see ``katsu.lib.merge``).
3. Reserved fields are restored with their own precedence rules
   (``restore_precedence``).

An imported base manifest can therefore add repositories, default options,
users and scripts, but can never replace the root's package selection,
bootloader or disk layout.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple

from .errors import ManifestError, UnimplementedError
from .layout import PartitionLayout
from .lib.manifests import load_manifest
from .lib.merge import deep_merge
from .models import Bootloader, IsoConfig, Manifest, OutputFormat

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReservedFields:
    bootloader: Bootloader
    iso: Optional[IsoConfig]
    disk: Optional[PartitionLayout]
    packages: List[str]
    arch_packages: Dict[str, List[str]]
    arch_exclude: Dict[str, List[str]]
    exclude: List[str]
    repodir: Optional[Path]
    options: List[str]


def snapshot_reserved(manifest: Manifest) -> ReservedFields:
    dnf = manifest.dnf
    return ReservedFields(
        bootloader=manifest.bootloader,
        iso=manifest.iso,
        disk=manifest.disk,
        packages=list(dnf.packages),
        arch_packages={k: list(v) for k, v in dnf.arch_packages.items()},
        arch_exclude={k: list(v) for k, v in dnf.arch_exclude.items()},
        exclude=list(dnf.exclude),
        repodir=dnf.repodir,
        options=list(dnf.options),
    )


def strip_reserved(raw: Dict[str, Any]) -> Dict[str, Any]:
    """Blank out the reserved fields of a manifest dict before the generic merge."""

    raw = dict(raw, bootloader=None, iso=None, disk=None)
    raw["dnf"] = dict(
        raw.get("dnf") or {},
        packages=[],
        arch_packages={},
        arch_exclude={},
        exclude=[],
        repodir=None,
        options=[],
    )
    return raw


def _option_key(option: str) -> str:
    name, _, rest = option.partition("=")
    if name == "--setopt" and "=" in rest:
        return f"{name}={rest.partition('=')[0]}"
    return name


def merge_options(options: Sequence[str], global_options: Sequence[str]) -> List[str]:
    """Combine per-build options with global defaults; per-build options win per key.

    ``--setopt=cachedir=/a`` and ``--setopt=cachedir=/b`` share the key
    ``--setopt=cachedir``; ``--nogpgcheck`` is its own key.
    """

    own = {_option_key(o) for o in options}
    merged: List[str] = []
    for opt in global_options:
        if _option_key(opt) not in own and opt not in merged:
            merged.append(opt)
    merged.extend(o for o in options if o not in merged)
    return merged


def restore_precedence(merged: Manifest, reserved: ReservedFields, output: OutputFormat) -> Manifest:
    merged.bootloader = reserved.bootloader

    if output is OutputFormat.ISO:
        merged.iso = reserved.iso or merged.iso
    elif output is OutputFormat.DISK_IMAGE:
        merged.disk = reserved.disk or merged.disk
    elif output is OutputFormat.FOLDER:
        merged.out_file = None

    dnf = merged.dnf
    dnf.packages = list(reserved.packages)
    dnf.arch_packages = dict(reserved.arch_packages)
    dnf.arch_exclude = dict(reserved.arch_exclude)
    dnf.exclude = list(reserved.exclude)
    dnf.repodir = reserved.repodir
    dnf.options = merge_options(reserved.options, dnf.global_options)

    # Every import has been folded in.
    merged.import_ = []
    return merged


def load_all(path: str | Path, output: OutputFormat | str, *, _chain: Tuple[Path, ...] = ()) -> Manifest:
    """Load ``path`` and every manifest it (transitively) imports."""

    output = OutputFormat(output)
    if output is OutputFormat.DEVICE:
        raise UnimplementedError("The 'device' output format is not implemented")

    resolved = Path(path).resolve()
    if resolved in _chain:
        cycle = " -> ".join(str(p) for p in (*_chain, resolved))
        raise ManifestError(f"Import cycle detected: {cycle}")

    root = load_manifest(path)
    reserved = snapshot_reserved(root)

    acc = strip_reserved(root.to_dict())
    for imp in root.import_:
        logger.info("Merging import %s into %s", imp, resolved)
        imported = load_all(imp, output, _chain=(*_chain, resolved))
        acc = deep_merge(acc, imported.to_dict())

    merged = Manifest.from_dict(acc)
    return restore_precedence(merged, reserved, output)
