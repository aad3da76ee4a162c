from .step_10_prepare_disk import PrepareDiskStep
from .step_20_partition_disk import PartitionDiskStep
from .step_30_mount_chroot import MountChrootStep
from .step_40_write_fstab import WriteFstabStep
from .step_50_add_users import AddUsersStep
from .step_90_unmount import UnmountStep

__all__ = [
    "PrepareDiskStep",
    "PartitionDiskStep",
    "MountChrootStep",
    "WriteFstabStep",
    "AddUsersStep",
    "UnmountStep",
]
