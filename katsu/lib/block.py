from __future__ import annotations

import logging
from pathlib import Path

from ..errors import KatsuError
from .command import run_cmd

logger = logging.getLogger(__name__)


def get_uuid(dev: str, *, dry_run: bool = False) -> str:
    """Return filesystem UUID for a block device."""

    r = run_cmd(["blkid", "-s", "UUID", "-o", "value", dev], dry_run=dry_run)
    uuid = r.output
    if not uuid and not dry_run:
        raise KatsuError(f"Unable to determine UUID for {dev}")
    return uuid


def find_mount_source(mountpoint: str | Path, *, dry_run: bool = False) -> str:
    """Return the backing device of whatever is mounted at ``mountpoint``."""

    r = run_cmd(["findmnt", "-n", "-o", "SOURCE", str(mountpoint)], dry_run=dry_run)
    source = r.output
    if not source and not dry_run:
        raise KatsuError(f"Nothing is mounted at {mountpoint}")
    return source


def create_sparse_image(path: str | Path, size: int, *, dry_run: bool = False) -> Path:
    """Create (or resize) a sparse disk image file of ``size`` bytes."""

    p = Path(path)
    if dry_run:
        logger.info("Would create sparse image %s (%d bytes)", p, size)
        return p
    p.parent.mkdir(parents=True, exist_ok=True)
    with open(p, "wb") as f:
        f.truncate(size)
    logger.info("Created sparse image %s (%d bytes)", p, size)
    return p


def attach_loop(image: str | Path, *, dry_run: bool = False) -> str:
    """Attach ``image`` to a free loop device with partition scanning enabled."""

    r = run_cmd(["losetup", "--find", "--show", "--partscan", str(image)], dry_run=dry_run)
    dev = r.output
    if dry_run:
        return dev or "/dev/loop0"
    if not dev:
        raise KatsuError(f"losetup did not report a loop device for {image}")
    logger.info("Attached %s to %s", image, dev)
    return dev


def detach_loop(dev: str, *, dry_run: bool = False) -> None:
    run_cmd(["losetup", "-d", dev], dry_run=dry_run)
