from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List

from jinja2 import Environment, PackageLoader, StrictUndefined

from ..layout import PartitionLayout
from .block import find_mount_source, get_uuid
from .storage import chroot_target

logger = logging.getLogger(__name__)

FSTAB_HEADER = (
    "# /etc/fstab: static file system information.\n"
    "#\n"
    "# Generated by katsu (katsu.lib.fstab.generate_fstab) from the manifest disk layout.\n"
    "# Do not edit: this file is rewritten on every image build."
)

_env = Environment(
    loader=PackageLoader("katsu", "templates"),
    autoescape=False,
    undefined=StrictUndefined,
    keep_trailing_newline=True,
)


@dataclass(frozen=True)
class FstabEntry:
    uuid: str
    mountpoint: str
    fstype: str
    options: str = "defaults"
    dump: int = 0
    passno: int = 2


def render_fstab(entries: Iterable[FstabEntry], *, header: str = FSTAB_HEADER) -> str:
    return _env.get_template("fstab.j2").render(header=header, entries=list(entries))


def fstab_entries(layout: PartitionLayout, chroot: str | Path, *, dry_run: bool = False) -> List[FstabEntry]:
    """Build one entry per mounted partition by querying the mounted chroot."""

    entries: List[FstabEntry] = []
    for _, part in layout.mountable():
        devname = find_mount_source(chroot_target(chroot, part.mountpoint), dry_run=dry_run)
        uuid = get_uuid(devname, dry_run=dry_run)
        is_esp = part.filesystem == "efi"
        entries.append(
            FstabEntry(
                uuid=uuid,
                mountpoint=part.mountpoint,
                fstype="vfat" if is_esp else part.filesystem,
                passno=0 if is_esp else 2,
            )
        )
    logger.debug("fstab entries generated: %s", entries)
    return entries


def generate_fstab(layout: PartitionLayout, chroot: str | Path, *, dry_run: bool = False) -> str:
    return render_fstab(fstab_entries(layout, chroot, dry_run=dry_run))


def write_fstab(layout: PartitionLayout, chroot: str | Path, *, dry_run: bool = False) -> Path:
    contents = generate_fstab(layout, chroot, dry_run=dry_run)
    fstab_path = Path(chroot) / "etc/fstab"
    if dry_run:
        logger.info("Would write %s:\n%s", fstab_path, contents)
    else:
        fstab_path.parent.mkdir(parents=True, exist_ok=True)
        fstab_path.write_text(contents, encoding="utf-8")
        logger.info("Wrote %s", fstab_path)
    return fstab_path
