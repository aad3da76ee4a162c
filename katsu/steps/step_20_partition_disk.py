from __future__ import annotations

import logging
from typing import Any, Dict

from ..lib.storage import apply_layout
from ..pipeline import BuildCtx
from .step_10_prepare_disk import disk_device

logger = logging.getLogger(__name__)


class PartitionDiskStep:
    step_id = "20_partition_disk"

    def run(self, ctx: BuildCtx, state: Dict[str, Any]) -> Dict[str, Any]:
        device = disk_device(state)
        if not device or ctx.manifest.disk is None:
            logger.info("Nothing to partition")
            return state

        partitions = apply_layout(ctx.manifest.disk, device, ctx.target_arch, dry_run=ctx.dry_run)
        state.setdefault("execution", {}).setdefault("disk", {})["partitions"] = partitions
        return state
