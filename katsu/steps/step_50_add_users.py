from __future__ import annotations

import logging
from typing import Any, Dict

from ..lib.chroot import api_binds
from ..lib.users import add_user
from ..pipeline import BuildCtx

logger = logging.getLogger(__name__)


class AddUsersStep:
    step_id = "50_add_users"

    def run(self, ctx: BuildCtx, state: Dict[str, Any]) -> Dict[str, Any]:
        users = ctx.manifest.users
        if not users:
            logger.info("No users declared")
            return state

        with api_binds(ctx.chroot, dry_run=ctx.dry_run):
            for user in users:
                add_user(user, ctx.chroot, dry_run=ctx.dry_run)

        state.setdefault("execution", {})["users"] = [u.username for u in users]
        return state
