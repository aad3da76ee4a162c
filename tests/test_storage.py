import logging

import pytest

from katsu.errors import CommandError, InvalidFlagError, UnimplementedError
from katsu.layout import Partition, PartitionFlag, PartitionKind, PartitionLayout
from katsu.lib import storage
from katsu.lib.command import CmdResult


def test_apply_layout_command_sequence(monkeypatch, recorder, standard_layout):
    standard_layout.partitions[0].flags = [PartitionFlag.NO_AUTO, 5]
    monkeypatch.setattr(storage, "run_cmd", recorder)

    devices = storage.apply_layout(standard_layout, "/dev/sda", "x86_64")

    assert devices == ["/dev/sda1", "/dev/sda2", "/dev/sda3"]
    assert recorder.calls == [
        ["parted", "-s", "/dev/sda", "mklabel", "gpt"],
        # EFI
        ["parted", "-s", "/dev/sda", "mkpart", "primary", "fat32", "0", "100MiB"],
        ["parted", "-s", "/dev/sda", "type", "1", "c12a7328-f81f-11d2-ba4b-00a0c93ec93b"],
        ["sgdisk", "-A", "1:set:63", "/dev/sda"],
        ["sgdisk", "-A", "1:set:5", "/dev/sda"],
        ["parted", "-s", "/dev/sda", "set", "1", "esp", "on"],
        ["parted", "-s", "/dev/sda", "name", "1", "EFI"],
        ["partprobe", "/dev/sda"],
        ["mkfs.fat", "-F32", "/dev/sda1"],
        # boot
        ["parted", "-s", "/dev/sda", "mkpart", "primary", "fat32", "100MiB", "1124MiB"],
        ["parted", "-s", "/dev/sda", "type", "2", "bc13c2ff-59e6-4262-a352-b275fd6f7172"],
        ["parted", "-s", "/dev/sda", "name", "2", "boot"],
        ["partprobe", "/dev/sda"],
        ["mkfs.ext4", "/dev/sda2"],
        # root takes the rest of the disk
        ["parted", "-s", "/dev/sda", "mkpart", "primary", "fat32", "1124MiB", "100%"],
        ["parted", "-s", "/dev/sda", "type", "3", "4f68bce3-e8cd-4db1-96e7-fbcaf984b709"],
        ["parted", "-s", "/dev/sda", "name", "3", "ROOT"],
        ["partprobe", "/dev/sda"],
        ["mkfs.ext4", "/dev/sda3"],
    ]


def test_apply_layout_none_and_swap_filesystems(monkeypatch, recorder):
    layout = PartitionLayout(
        partitions=[
            Partition(partition_type=PartitionKind.BIOS_GRUB, filesystem="none", mountpoint="", size=1024**2),
            Partition(partition_type=PartitionKind.SWAP, filesystem="swap", mountpoint="-", size=1024**3),
        ]
    )
    monkeypatch.setattr(storage, "run_cmd", recorder)

    storage.apply_layout(layout, "/dev/nvme0n1", "aarch64")

    mkfs = [c for c in recorder.calls if c[0].startswith("mkfs")]
    assert mkfs == [["mkfs.swap", "/dev/nvme0n1p2"]]


def test_apply_layout_aborts_on_first_failure(monkeypatch, standard_layout):
    calls = []

    def failing(argv, **kwargs):
        calls.append(list(argv))
        if argv[0] == "mkfs.fat":
            raise CommandError(argv, 1, "boom")
        return CmdResult(argv=list(argv), returncode=0, stdout="", stderr="")

    monkeypatch.setattr(storage, "run_cmd", failing)

    with pytest.raises(CommandError):
        storage.apply_layout(standard_layout, "/dev/sda", "x86_64")

    assert calls[-1][0] == "mkfs.fat"
    assert sum(1 for c in calls if "mkpart" in c) == 1


def test_apply_layout_unknown_root_arch(monkeypatch, recorder, standard_layout):
    monkeypatch.setattr(storage, "run_cmd", recorder)
    with pytest.raises(UnimplementedError):
        storage.apply_layout(standard_layout, "/dev/sda", "ppc64le")

    assert recorder.calls == []


def test_apply_layout_bad_flag_touches_nothing(monkeypatch, recorder, standard_layout):
    standard_layout.partitions[2].flags = [70]
    monkeypatch.setattr(storage, "run_cmd", recorder)
    with pytest.raises(InvalidFlagError):
        storage.apply_layout(standard_layout, "/dev/sda", "x86_64")

    assert recorder.calls == []


def test_mount_layout_order_and_dirs(monkeypatch, recorder, standard_layout, tmp_path):
    monkeypatch.setattr(storage, "run_cmd", recorder)

    mounted = storage.mount_layout(standard_layout, "/dev/mmcblk0", tmp_path)

    assert recorder.calls == [
        ["mount", "/dev/mmcblk0p3", str(tmp_path)],
        ["mount", "/dev/mmcblk0p2", str(tmp_path / "boot")],
        ["mount", "/dev/mmcblk0p1", str(tmp_path / "boot/efi")],
    ]
    assert [dev for dev, _ in mounted] == ["/dev/mmcblk0p3", "/dev/mmcblk0p2", "/dev/mmcblk0p1"]
    assert (tmp_path / "boot/efi").is_dir()


def test_mount_layout_skips_sentinels_with_warning(monkeypatch, recorder, tmp_path, caplog):
    layout = PartitionLayout(
        partitions=[
            Partition(partition_type=PartitionKind.BIOS_GRUB, filesystem="none", mountpoint=""),
            Partition(partition_type=PartitionKind.SWAP, filesystem="swap", mountpoint="-"),
            Partition(partition_type=PartitionKind.ROOT, filesystem="xfs", mountpoint="/"),
        ]
    )
    monkeypatch.setattr(storage, "run_cmd", recorder)

    with caplog.at_level(logging.WARNING):
        storage.mount_layout(layout, "/dev/loop0", tmp_path)

    assert recorder.calls == [["mount", "/dev/loop0p3", str(tmp_path)]]
    assert sum("not supposed to be mounted" in r.message for r in caplog.records) == 2


def test_unmount_is_reverse_of_mount(monkeypatch, recorder, standard_layout, tmp_path):
    standard_layout.add_partition(
        Partition(partition_type=PartitionKind.SWAP, filesystem="swap", mountpoint="-")
    )
    monkeypatch.setattr(storage, "run_cmd", recorder)

    mounted = storage.mount_layout(standard_layout, "/dev/sda", tmp_path)
    recorder.calls.clear()
    unmounted = storage.unmount_layout(standard_layout, tmp_path)

    assert unmounted == [target for _, target in reversed(mounted)]
    assert recorder.calls == [["umount", str(t)] for t in unmounted]


def test_mount_layout_dry_run_creates_nothing(monkeypatch, recorder, standard_layout, tmp_path):
    monkeypatch.setattr(storage, "run_cmd", recorder)

    storage.mount_layout(standard_layout, "/dev/sda", tmp_path / "chroot", dry_run=True)

    assert not (tmp_path / "chroot").exists()
    assert all(kw.get("dry_run") for kw in recorder.kwargs)
