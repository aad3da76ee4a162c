from __future__ import annotations

from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import pytest
import yaml

from katsu.layout import Partition, PartitionKind, PartitionLayout
from katsu.lib.command import CmdResult


class CmdRecorder:
    """Stand-in for run_cmd that records argv lists instead of executing them."""

    def __init__(self, respond: Optional[Callable[[List[str]], str]] = None):
        self.calls: List[List[str]] = []
        self.kwargs: List[Dict[str, Any]] = []
        self.respond = respond

    def __call__(self, argv, **kwargs) -> CmdResult:
        argv = [str(a) for a in argv]
        self.calls.append(argv)
        self.kwargs.append(kwargs)
        stdout = self.respond(argv) if self.respond else ""
        return CmdResult(argv=argv, returncode=0, stdout=stdout, stderr="")

    def programs(self) -> List[str]:
        return [c[0] for c in self.calls]


@pytest.fixture()
def recorder() -> CmdRecorder:
    return CmdRecorder()


@pytest.fixture()
def standard_layout() -> PartitionLayout:
    """EFI, /boot and / declared in that order, as a typical manifest does."""

    layout = PartitionLayout()
    layout.add_partition(
        Partition(
            label="EFI",
            partition_type=PartitionKind.ESP,
            size=100 * 1024**2,
            filesystem="efi",
            mountpoint="/boot/efi",
        )
    )
    layout.add_partition(
        Partition(
            label="boot",
            partition_type=PartitionKind.XBOOTLDR,
            size=1024**3,
            filesystem="ext4",
            mountpoint="/boot",
        )
    )
    layout.add_partition(
        Partition(
            label="ROOT",
            partition_type=PartitionKind.ROOT,
            filesystem="ext4",
            mountpoint="/",
        )
    )
    return layout


@pytest.fixture()
def write_manifest() -> Callable[[Path, Dict[str, Any]], Path]:
    def _write(path: Path, data: Dict[str, Any]) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(yaml.safe_dump(data, sort_keys=False), encoding="utf-8")
        return path

    return _write
