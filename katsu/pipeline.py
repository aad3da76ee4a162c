from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol, Sequence

from .errors import KatsuError
from .models import Manifest, OutputFormat
from .state_store import is_step_completed, mark_step_completed

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BuildCtx:
    manifest: Manifest
    output: OutputFormat
    chroot: Path
    target_arch: str
    # Block device or disk image file; None for outputs without a disk.
    disk: Optional[str] = None
    dry_run: bool = False


class Step(Protocol):
    """A single build step."""

    step_id: str

    def run(self, ctx: BuildCtx, state: Dict[str, Any]) -> Dict[str, Any]:
        ...


@dataclass(frozen=True)
class PipelineResult:
    state: Dict[str, Any]
    ran_steps: List[str]
    skipped_steps: List[str]


def run_pipeline(
    *,
    ctx: BuildCtx,
    state: Dict[str, Any],
    steps: Sequence[Step],
    start_at: Optional[str] = None,
    stop_after: Optional[str] = None,
    force: bool = False,
) -> PipelineResult:
    """Run ``steps`` in order and return the updated state.

    ``start_at`` and ``stop_after`` bound the slice of steps considered, so a
    build can stop once the chroot is mounted and resume later. Steps already
    recorded as completed in ``state`` are skipped unless ``force`` is set.
    """

    ids = [s.step_id for s in steps]
    for step_id in (start_at, stop_after):
        if step_id is not None and step_id not in ids:
            raise KatsuError(f"Unknown step {step_id!r}; expected one of {ids}")

    first = ids.index(start_at) if start_at else 0
    last = ids.index(stop_after) if stop_after else len(ids) - 1
    selected = list(steps)[first : last + 1]
    if steps and not selected:
        raise KatsuError(f"Step {stop_after!r} comes before {start_at!r}")

    exe = state.setdefault("execution", {})
    ran: List[str] = []
    skipped: List[str] = []

    for step in selected:
        exe["current_step"] = step.step_id
        if not force and is_step_completed(state, step.step_id):
            logger.info("Skipping step %s (already completed)", step.step_id)
            skipped.append(step.step_id)
            continue

        logger.info("Running step %s", step.step_id)
        state = step.run(ctx, state)
        exe = state.setdefault("execution", {})
        mark_step_completed(state, step.step_id)
        ran.append(step.step_id)

    if stop_after is not None:
        logger.info("Stopped after %s", stop_after)
    exe["current_step"] = None
    return PipelineResult(state=state, ran_steps=ran, skipped_steps=skipped)
