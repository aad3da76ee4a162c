"""Partition layout model: GPT types/flags, device naming and mount ordering.

Declaration order of partitions is load-bearing: a partition's number on the
disk is always its 1-based position in ``PartitionLayout.partitions``. Sorting
only ever produces an execution order for mounting.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from enum import Enum
from functools import cmp_to_key
from typing import Any, Dict, List, Optional, Tuple, Union

from .errors import InvalidFlagError, ManifestError, UnimplementedError
from .lib.sizes import parse_size

logger = logging.getLogger(__name__)


class PartitionKind(str, Enum):
    """Named GPT partition types (subset of the Discoverable Partitions Specification)."""

    ROOT = "root"
    ROOT_ARM64 = "root-arm64"
    ROOT_X86_64 = "root-x86_64"
    ESP = "esp"
    XBOOTLDR = "xbootldr"
    SWAP = "swap"
    LINUX_GENERIC = "linux-generic"
    BIOS_GRUB = "bios-grub"


_TYPE_GUIDS = {
    PartitionKind.ROOT_ARM64: "b921b045-1df0-41c3-af44-4c6f280d3fae",
    PartitionKind.ROOT_X86_64: "4f68bce3-e8cd-4db1-96e7-fbcaf984b709",
    PartitionKind.ESP: "c12a7328-f81f-11d2-ba4b-00a0c93ec93b",
    PartitionKind.XBOOTLDR: "bc13c2ff-59e6-4262-a352-b275fd6f7172",
    PartitionKind.SWAP: "0657fd6d-a4ab-43c4-84e5-0933c84b4f4f",
    PartitionKind.LINUX_GENERIC: "0fc63daf-8483-4772-8e79-3d69d8477de4",
    PartitionKind.BIOS_GRUB: "21686148-6449-6E6F-744E-656564454649",
}

_ROOT_BY_ARCH = {
    "x86_64": PartitionKind.ROOT_X86_64,
    "aarch64": PartitionKind.ROOT_ARM64,
}

# Either a named type or an arbitrary GPT type GUID.
PartitionType = Union[PartitionKind, uuid.UUID]


class PartitionFlag(str, Enum):
    NO_AUTO = "no-auto"
    READ_ONLY = "read-only"
    GROW_FS = "grow-fs"


_FLAG_POSITIONS = {
    PartitionFlag.NO_AUTO: 63,
    PartitionFlag.READ_ONLY: 60,
    PartitionFlag.GROW_FS: 59,
}

# Either a named flag or an explicit attribute bit position.
PartitionFlagSpec = Union[PartitionFlag, int]

# Mountpoint/filesystem values that reserve a partition slot but are never mounted.
UNMOUNTED_MOUNTPOINTS = frozenset({"", "-"})
UNMOUNTED_FILESYSTEMS = frozenset({"none", "swap"})


def parse_partition_type(value: Any) -> PartitionType:
    if isinstance(value, (PartitionKind, uuid.UUID)):
        return value
    text = str(value).strip()
    normalized = text.lower()
    if normalized == "root-x86-64":
        normalized = PartitionKind.ROOT_X86_64.value
    try:
        return PartitionKind(normalized)
    except ValueError:
        pass
    try:
        return uuid.UUID(text)
    except ValueError:
        raise ManifestError(f"Unknown partition type: {value!r}") from None


def parse_partition_flag(value: Any) -> PartitionFlagSpec:
    if isinstance(value, PartitionFlag):
        return value
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    try:
        return PartitionFlag(str(value).strip().lower())
    except ValueError:
        raise ManifestError(f"Unknown partition flag: {value!r}") from None


def resolve_type(ptype: PartitionType, target_arch: str) -> str:
    """Return the GPT partition type GUID for ``ptype`` on ``target_arch``."""

    if isinstance(ptype, uuid.UUID):
        return str(ptype)
    if ptype is PartitionKind.ROOT:
        kind = _ROOT_BY_ARCH.get(target_arch)
        if kind is None:
            raise UnimplementedError(
                f"Root partition type is not implemented for architecture {target_arch!r}"
            )
        return _TYPE_GUIDS[kind]
    return _TYPE_GUIDS[ptype]


def resolve_flag_position(flag: PartitionFlagSpec) -> int:
    """Return the GPT attribute bit position (0..63) for ``flag``."""

    if isinstance(flag, PartitionFlag):
        return _FLAG_POSITIONS[flag]
    if 0 <= flag <= 63:
        return flag
    raise InvalidFlagError(f"GPT attribute flag position must be within 0..63, got {flag}")


def device_name(disk: str, index: int) -> str:
    """Return the device node of partition ``index`` on ``disk``.

    mmcblk0p1 / nvme0n1p1 / loop0p1 need the ``p`` separator, sda1 does not.
    """

    disk = str(disk)
    if disk.startswith(("/dev/mmcblk", "/dev/nvme", "/dev/loop")):
        return f"{disk}p{index}"
    return f"{disk}{index}"


@dataclass
class BtrfsSubvolume:
    name: str
    mountpoint: str

    @classmethod
    def from_dict(cls, raw: Any, partition: str) -> "BtrfsSubvolume":
        if not isinstance(raw, dict):
            raise ManifestError(f"Subvolume of partition {partition!r} must be a mapping, got: {raw!r}")
        for key in ("name", "mountpoint"):
            if raw.get(key) is None:
                raise ManifestError(f"Subvolume of partition {partition!r} is missing required field '{key}': {raw!r}")
        return cls(name=str(raw["name"]), mountpoint=str(raw["mountpoint"]))


@dataclass
class Partition:
    partition_type: PartitionType
    filesystem: str
    mountpoint: str
    label: Optional[str] = None
    flags: Optional[List[PartitionFlagSpec]] = None
    # Bytes; None means "rest of the disk".
    size: Optional[int] = None
    subvolumes: List[BtrfsSubvolume] = field(default_factory=list)

    @property
    def is_mountable(self) -> bool:
        return not (
            self.mountpoint in UNMOUNTED_MOUNTPOINTS or self.filesystem in UNMOUNTED_FILESYSTEMS
        )

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "Partition":
        if not isinstance(raw, dict):
            raise ManifestError(f"Partition must be a mapping, got: {raw!r}")
        for key in ("type", "filesystem", "mountpoint"):
            if key not in raw:
                raise ManifestError(f"Partition is missing required field '{key}': {raw!r}")
        flags = raw.get("flags")
        if flags is not None and not isinstance(flags, list):
            raise ManifestError(f"Partition flags must be a list, got: {flags!r}")
        subvolumes = raw.get("subvolumes") or []
        if not isinstance(subvolumes, list):
            raise ManifestError(f"Partition subvolumes must be a list, got: {subvolumes!r}")
        size = raw.get("size")
        try:
            size_bytes = None if size is None else parse_size(size)
        except ValueError as e:
            raise ManifestError(str(e)) from e
        return cls(
            partition_type=parse_partition_type(raw["type"]),
            filesystem=str(raw["filesystem"]),
            mountpoint=str(raw["mountpoint"]),
            label=None if raw.get("label") is None else str(raw["label"]),
            flags=None if flags is None else [parse_partition_flag(f) for f in flags],
            size=size_bytes,
            subvolumes=[BtrfsSubvolume.from_dict(s, str(raw["mountpoint"])) for s in subvolumes],
        )

    def to_dict(self) -> Dict[str, Any]:
        ptype = self.partition_type
        return {
            "label": self.label,
            "type": ptype.value if isinstance(ptype, PartitionKind) else str(ptype),
            "flags": None
            if self.flags is None
            else [f.value if isinstance(f, PartitionFlag) else f for f in self.flags],
            "size": self.size,
            "filesystem": self.filesystem,
            "mountpoint": self.mountpoint,
            "subvolumes": [{"name": s.name, "mountpoint": s.mountpoint} for s in self.subvolumes],
        }


def _nesting(mountpoint: str) -> int:
    return mountpoint.rstrip("/").count("/")


def _compare_mountpoints(a: str, b: str) -> int:
    if a == b:
        return 0
    # Empty sorts first, then "/", then shallow-to-deep, then alphabetical.
    if a == "":
        return -1
    if b == "":
        return 1
    if a == "/":
        return -1
    if b == "/":
        return 1
    da, db = _nesting(a), _nesting(b)
    if da != db:
        return -1 if da < db else 1
    return -1 if a < b else 1


@dataclass
class PartitionLayout:
    partitions: List[Partition] = field(default_factory=list)
    # Total disk size hint in bytes.
    size: Optional[int] = None

    def add_partition(self, partition: Partition) -> None:
        self.partitions.append(partition)

    def get_index(self, mountpoint: str) -> Optional[int]:
        """1-based partition number of the first partition mounted at ``mountpoint``."""
        for i, part in enumerate(self.partitions, start=1):
            if part.mountpoint == mountpoint:
                return i
        return None

    def get_partition(self, mountpoint: str) -> Optional[Partition]:
        for part in self.partitions:
            if part.mountpoint == mountpoint:
                return part
        return None

    def sort_for_mount_order(self) -> List[Tuple[int, Partition]]:
        """Return ``(partition number, partition)`` pairs in mount order."""

        indexed = list(enumerate(self.partitions, start=1))
        ordered = sorted(indexed, key=cmp_to_key(lambda a, b: _compare_mountpoints(a[1].mountpoint, b[1].mountpoint)))
        logger.debug("Mount order: %s", [(i, p.mountpoint) for i, p in ordered])
        return ordered

    def mountable(self) -> List[Tuple[int, Partition]]:
        """Mount order restricted to partitions that are actually mounted."""
        return [(i, p) for i, p in self.sort_for_mount_order() if p.is_mountable]

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "PartitionLayout":
        if not isinstance(raw, dict):
            raise ManifestError(f"disk must be a mapping, got: {raw!r}")
        parts = raw.get("partitions") or []
        if not isinstance(parts, list):
            raise ManifestError("disk.partitions must be a list")
        size = raw.get("size")
        try:
            size_bytes = None if size is None else parse_size(size)
        except ValueError as e:
            raise ManifestError(str(e)) from e
        return cls(partitions=[Partition.from_dict(p) for p in parts], size=size_bytes)

    def to_dict(self) -> Dict[str, Any]:
        return {"size": self.size, "partitions": [p.to_dict() for p in self.partitions]}
