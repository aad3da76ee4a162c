from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, Optional

from ..errors import KatsuError
from ..lib.block import attach_loop, create_sparse_image
from ..models import OutputFormat
from ..pipeline import BuildCtx

logger = logging.getLogger(__name__)


def disk_device(state: Dict[str, Any]) -> Optional[str]:
    """Block device recorded by the prepare step, if any."""
    return ((state.get("execution") or {}).get("disk") or {}).get("device")


class PrepareDiskStep:
    step_id = "10_prepare_disk"

    def run(self, ctx: BuildCtx, state: Dict[str, Any]) -> Dict[str, Any]:
        exe = state.setdefault("execution", {})
        layout = ctx.manifest.disk

        if ctx.dry_run:
            logger.info("Would create %s", ctx.chroot)
        else:
            ctx.chroot.mkdir(parents=True, exist_ok=True)

        if ctx.output is not OutputFormat.DISK_IMAGE or layout is None:
            logger.info("No disk layout for output=%s; using plain chroot %s", ctx.output.value, ctx.chroot)
            exe["disk"] = {}
            return state

        if not ctx.disk:
            raise KatsuError("A disk-image build needs a target disk or image path")

        if ctx.disk.startswith("/dev/"):
            exe["disk"] = {"device": ctx.disk, "image": None, "loop": False}
            logger.info("Using block device %s", ctx.disk)
            return state

        if layout.size is None:
            raise KatsuError("disk.size is required to create a disk image file")

        image = create_sparse_image(Path(ctx.disk), layout.size, dry_run=ctx.dry_run)
        device = attach_loop(image, dry_run=ctx.dry_run)
        exe["disk"] = {"device": device, "image": str(image), "loop": True}
        return state
