from __future__ import annotations

import argparse
import logging
import platform
import sys
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from .compose import load_all
from .errors import KatsuError
from .lib.env import PATHS
from .lib.fstab import generate_fstab
from .logging_utils import DEFAULT_LOG_PATH, configure_logging
from .models import OutputFormat
from .pipeline import BuildCtx, run_pipeline
from .state_store import ensure_defaults, load_state, save_state
from .steps import (
    AddUsersStep,
    MountChrootStep,
    PartitionDiskStep,
    PrepareDiskStep,
    UnmountStep,
    WriteFstabStep,
)

logger = logging.getLogger(__name__)

OUTPUT_CHOICES = [o.value for o in OutputFormat]


def build_steps():
    return [
        PrepareDiskStep(),
        PartitionDiskStep(),
        MountChrootStep(),
        WriteFstabStep(),
        AddUsersStep(),
        UnmountStep(),
    ]


def run_build(
    *,
    manifest_path: str,
    output: str,
    disk: Optional[str],
    chroot: str,
    target_arch: str,
    state_path: str = PATHS.state_default,
    start_at: Optional[str] = None,
    stop_after: Optional[str] = None,
    force: bool = False,
    dry_run: bool = False,
) -> Dict[str, Any]:
    """Compose the manifest and run the build pipeline, persisting state for resume."""

    output_fmt = OutputFormat(output)
    manifest = load_all(manifest_path, output_fmt)
    if output_fmt is OutputFormat.DISK_IMAGE and disk is None:
        disk = manifest.out_file or PATHS.image_default

    ctx = BuildCtx(
        manifest=manifest,
        output=output_fmt,
        chroot=Path(chroot),
        target_arch=target_arch,
        disk=disk,
        dry_run=dry_run,
    )

    state = ensure_defaults(load_state(state_path))
    try:
        result = run_pipeline(
            ctx=ctx,
            state=state,
            steps=build_steps(),
            start_at=start_at,
            stop_after=stop_after,
            force=force,
        )
        state = result.state
        state["execution"]["summary"] = {
            "ran_steps": result.ran_steps,
            "skipped_steps": result.skipped_steps,
        }
        return state
    except Exception as e:
        logger.exception("Build failed")
        state.setdefault("execution", {}).setdefault("errors", []).append(
            {
                "step": (state.get("execution") or {}).get("current_step"),
                "error": str(e),
            }
        )
        raise
    finally:
        save_state(state_path, state)


def _add_output_arg(p: argparse.ArgumentParser) -> None:
    p.add_argument(
        "-o",
        "--output",
        choices=OUTPUT_CHOICES,
        default=OutputFormat.DISK_IMAGE.value,
        help="Output kind the manifest is composed for",
    )


def _parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="katsu")
    p.add_argument("--log", default=DEFAULT_LOG_PATH, help="Path to build log")
    p.add_argument("-v", "--verbose", action="store_true", help="Log debug output")
    sub = p.add_subparsers(dest="command", required=True)

    compose = sub.add_parser("compose", help="Print the effective manifest as YAML")
    compose.add_argument("manifest")
    _add_output_arg(compose)

    build = sub.add_parser("build", help="Partition, mount and prepare the target chroot")
    build.add_argument("manifest")
    _add_output_arg(build)
    build.add_argument("--disk", default=None, help="Block device or disk image file")
    build.add_argument("--chroot", default=PATHS.chroot)
    build.add_argument("--arch", default=platform.machine(), help="Target architecture (x86_64|aarch64)")
    build.add_argument("--state", default=PATHS.state_default, help="Path to build state (json|yaml)")
    build.add_argument("--start-at", default=None, help="Start at step_id (e.g. 40_write_fstab)")
    build.add_argument("--stop-after", default=None, help="Stop after step_id (e.g. 30_mount_chroot)")
    build.add_argument("--force", action="store_true", help="Re-run steps even if marked completed")
    build.add_argument("--dry-run", action="store_true")

    fstab = sub.add_parser("fstab", help="Print the fstab for an already mounted chroot")
    fstab.add_argument("manifest")
    fstab.add_argument("--chroot", default=PATHS.chroot)
    _add_output_arg(fstab)

    return p


def main(argv: Optional[list[str]] = None) -> int:
    args = _parser().parse_args(argv)
    configure_logging(log_path=args.log, level=logging.DEBUG if args.verbose else logging.INFO)

    try:
        if args.command == "compose":
            manifest = load_all(args.manifest, args.output)
            sys.stdout.write(yaml.safe_dump(manifest.to_dict(), sort_keys=False))
        elif args.command == "fstab":
            manifest = load_all(args.manifest, args.output)
            if manifest.disk is None:
                raise KatsuError(f"{args.manifest} has no disk layout")
            sys.stdout.write(generate_fstab(manifest.disk, args.chroot))
        else:
            run_build(
                manifest_path=args.manifest,
                output=args.output,
                disk=args.disk,
                chroot=args.chroot,
                target_arch=args.arch,
                state_path=args.state,
                start_at=args.start_at,
                stop_after=args.stop_after,
                force=args.force,
                dry_run=args.dry_run,
            )
    except KatsuError as e:
        logger.error("%s", e)
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
