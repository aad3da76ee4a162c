from __future__ import annotations

import logging
from pathlib import Path
from typing import List

from ..models import Auth
from .chroot import chroot_cmd

logger = logging.getLogger(__name__)


def useradd_args(user: Auth) -> List[str]:
    args: List[str] = []
    if user.uid is not None:
        args += ["-u", str(user.uid)]
    if user.gid is not None:
        args += ["-g", str(user.gid)]
    if user.shell:
        args += ["-s", user.shell]
    if user.password:
        args += ["-p", user.password]
    args.append("-m" if user.create_home else "-M")
    for group in user.groups:
        args += ["-G", group]
    args.append(user.username)
    return args


def write_authorized_keys(user: Auth, chroot: str | Path, *, dry_run: bool = False) -> Path | None:
    if not user.ssh_keys:
        return None
    path = Path(chroot) / "home" / user.username / ".ssh" / "authorized_keys"
    if dry_run:
        logger.info("Would write %s", path)
        return path
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text("".join(f"{key}\n" for key in user.ssh_keys), encoding="utf-8")
    return path


def add_user(user: Auth, chroot: str | Path, *, dry_run: bool = False) -> None:
    """Create ``user`` inside the chroot and install their SSH keys."""

    logger.info("Adding user %s to %s", user.username, chroot)
    args = useradd_args(user)
    logger.debug("useradd args: %s", args)
    chroot_cmd(chroot, ["useradd", *args], dry_run=dry_run)
    write_authorized_keys(user, chroot, dry_run=dry_run)
