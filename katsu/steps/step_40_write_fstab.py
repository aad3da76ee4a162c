from __future__ import annotations

import logging
from typing import Any, Dict

from ..lib.fstab import write_fstab
from ..pipeline import BuildCtx
from .step_10_prepare_disk import disk_device

logger = logging.getLogger(__name__)


class WriteFstabStep:
    step_id = "40_write_fstab"

    def run(self, ctx: BuildCtx, state: Dict[str, Any]) -> Dict[str, Any]:
        if not disk_device(state) or ctx.manifest.disk is None:
            logger.info("No disk layout; not writing fstab")
            return state

        path = write_fstab(ctx.manifest.disk, ctx.chroot, dry_run=ctx.dry_run)
        state.setdefault("execution", {})["fstab"] = str(path)
        return state
