from __future__ import annotations

import logging
from typing import Any, Dict

from ..lib.storage import mount_layout
from ..pipeline import BuildCtx
from .step_10_prepare_disk import disk_device

logger = logging.getLogger(__name__)


class MountChrootStep:
    step_id = "30_mount_chroot"

    def run(self, ctx: BuildCtx, state: Dict[str, Any]) -> Dict[str, Any]:
        device = disk_device(state)
        if not device or ctx.manifest.disk is None:
            logger.info("Nothing to mount; chroot is %s", ctx.chroot)
            return state

        mounted = mount_layout(ctx.manifest.disk, device, ctx.chroot, dry_run=ctx.dry_run)
        state.setdefault("execution", {})["mounts"] = [
            {"device": dev, "target": str(target)} for dev, target in mounted
        ]
        logger.info("Chroot %s is ready to be populated", ctx.chroot)
        return state
