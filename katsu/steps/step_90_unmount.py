from __future__ import annotations

import logging
from typing import Any, Dict

from ..lib.block import detach_loop
from ..lib.storage import unmount_layout
from ..pipeline import BuildCtx

logger = logging.getLogger(__name__)


class UnmountStep:
    step_id = "90_unmount"

    def run(self, ctx: BuildCtx, state: Dict[str, Any]) -> Dict[str, Any]:
        exe = state.setdefault("execution", {})
        disk = exe.get("disk") or {}
        if not disk.get("device") or ctx.manifest.disk is None:
            logger.info("Nothing to unmount")
            return state

        unmount_layout(ctx.manifest.disk, ctx.chroot, dry_run=ctx.dry_run)
        exe["mounts"] = []

        if disk.get("loop"):
            detach_loop(disk["device"], dry_run=ctx.dry_run)
        return state
