from __future__ import annotations

import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Sequence

from .command import CmdResult, run_cmd

logger = logging.getLogger(__name__)

API_MOUNTS = ("dev", "proc", "sys")


def chroot_cmd(chroot: str | Path, argv: Sequence[str], *, dry_run: bool = False) -> CmdResult:
    """Run a command inside the chroot."""

    return run_cmd(["chroot", str(chroot), *argv], dry_run=dry_run)


def mount_api_binds(chroot: str | Path, *, dry_run: bool = False) -> None:
    # /dev, /proc and /sys for tools like useradd that expect a live system
    for name in API_MOUNTS:
        dst = Path(chroot) / name
        if not dry_run:
            dst.mkdir(parents=True, exist_ok=True)
        run_cmd(["mount", "--bind", f"/{name}", str(dst)], dry_run=dry_run)


def umount_api_binds(chroot: str | Path, *, dry_run: bool = False) -> None:
    for name in reversed(API_MOUNTS):
        run_cmd(["umount", "-lf", str(Path(chroot) / name)], check=False, dry_run=dry_run)


@contextmanager
def api_binds(chroot: str | Path, *, dry_run: bool = False) -> Iterator[None]:
    mount_api_binds(chroot, dry_run=dry_run)
    try:
        yield
    finally:
        umount_api_binds(chroot, dry_run=dry_run)
