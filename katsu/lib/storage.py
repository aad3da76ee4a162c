from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Tuple

from ..layout import Partition, PartitionLayout, device_name, resolve_flag_position, resolve_type
from .command import run_cmd
from .sizes import to_mib

logger = logging.getLogger(__name__)


def chroot_target(chroot: str | Path, mountpoint: str) -> Path:
    """Map an absolute mountpoint to its directory under ``chroot``."""
    return Path(chroot) / mountpoint.lstrip("/")


def format_partition(part: Partition, devname: str, *, dry_run: bool = False) -> None:
    fsname = part.filesystem
    logger.debug("Formatting %s as %s", devname, fsname)
    if fsname == "efi":
        run_cmd(["mkfs.fat", "-F32", devname], dry_run=dry_run)
    elif fsname == "none":
        return
    else:
        run_cmd([f"mkfs.{fsname}", devname], dry_run=dry_run)


def apply_layout(
    layout: PartitionLayout,
    disk: str,
    target_arch: str,
    *,
    dry_run: bool = False,
) -> List[str]:
    """Write ``layout`` to ``disk``: GPT label, partitions, attributes, filesystems.

    Destructive. Partitions are created in declaration order; partition N
    starts where partition N-1 ended. A partition without a size extends to
    the end of the disk. Any failing command aborts the whole sequence and
    leaves whatever was already written on disk.

    Returns the device names of the created partitions.
    """

    logger.info("Applying partition layout to disk=%s arch=%s", disk, target_arch)

    # Resolve every type and flag before the disk is touched.
    resolved = [
        (resolve_type(part.partition_type, target_arch), [resolve_flag_position(f) for f in part.flags or []])
        for part in layout.partitions
    ]

    run_cmd(["parted", "-s", disk, "mklabel", "gpt"], dry_run=dry_run)

    devices: List[str] = []
    last_end = 0
    for i, (part, (type_guid, positions)) in enumerate(zip(layout.partitions, resolved), start=1):
        devname = device_name(disk, i)

        start = "0" if i == 1 else f"{to_mib(last_end)}MiB"
        if part.size is None:
            end = "100%"
        else:
            last_end += part.size
            end = f"{to_mib(last_end)}MiB"

        logger.debug("Creating partition %d (%s): start=%s end=%s", i, devname, start, end)
        run_cmd(["parted", "-s", disk, "mkpart", "primary", "fat32", start, end], dry_run=dry_run)

        run_cmd(["parted", "-s", disk, "type", str(i), type_guid], dry_run=dry_run)

        for position in positions:
            run_cmd(["sgdisk", "-A", f"{i}:set:{position}", disk], dry_run=dry_run)

        if part.filesystem == "efi":
            run_cmd(["parted", "-s", disk, "set", str(i), "esp", "on"], dry_run=dry_run)

        if part.label:
            run_cmd(["parted", "-s", disk, "name", str(i), part.label], dry_run=dry_run)

        # Inform kernel
        run_cmd(["partprobe", disk], check=False, dry_run=dry_run)

        format_partition(part, devname, dry_run=dry_run)
        devices.append(devname)

    logger.info("Partitioned disk=%s (%d partitions)", disk, len(devices))
    return devices


def mount_layout(
    layout: PartitionLayout,
    disk: str,
    chroot: str | Path,
    *,
    dry_run: bool = False,
) -> List[Tuple[str, Path]]:
    """Mount every mountable partition under ``chroot``, shallowest first.

    Returns the ``(device, target)`` pairs in the order they were mounted.
    """

    mounted: List[Tuple[str, Path]] = []
    for index, part in layout.sort_for_mount_order():
        if not part.is_mountable:
            logger.warning(
                "Partition %d (mountpoint=%r filesystem=%r) is not supposed to be mounted, skipping. "
                "Specify a mountpoint starting with / to mount it.",
                index,
                part.mountpoint,
                part.filesystem,
            )
            continue

        devname = device_name(disk, index)
        target = chroot_target(chroot, part.mountpoint)
        if dry_run:
            logger.info("Would create %s", target)
        else:
            target.mkdir(parents=True, exist_ok=True)

        run_cmd(["mount", devname, str(target)], dry_run=dry_run)
        mounted.append((devname, target))

    logger.info("Mounted %d partitions under %s", len(mounted), chroot)
    return mounted


def unmount_layout(
    layout: PartitionLayout,
    chroot: str | Path,
    *,
    dry_run: bool = False,
) -> List[Path]:
    """Unmount the partitions mounted by ``mount_layout``, deepest first."""

    unmounted: List[Path] = []
    for _, part in reversed(layout.mountable()):
        target = chroot_target(chroot, part.mountpoint)
        run_cmd(["umount", str(target)], dry_run=dry_run)
        unmounted.append(target)
    return unmounted
