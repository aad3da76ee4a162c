from __future__ import annotations

import logging
import os
import shlex
import subprocess
from dataclasses import dataclass
from typing import Mapping, Sequence

from ..errors import CommandError

logger = logging.getLogger(__name__)

# Shell convention for "command not found".
NOT_FOUND_RC = 127


@dataclass(frozen=True)
class CmdResult:
    argv: list[str]
    returncode: int
    stdout: str
    stderr: str

    @property
    def output(self) -> str:
        """First non-empty stdout line, which is all blkid/findmnt/losetup print."""
        for line in self.stdout.splitlines():
            if line.strip():
                return line.strip()
        return ""


def fmt_argv(argv: Sequence[str]) -> str:
    return " ".join(shlex.quote(str(a)) for a in argv)


def _log_stream(name: str, text: str) -> None:
    for line in text.rstrip().splitlines():
        logger.debug("%s %s", name, line)


def run_cmd(
    argv: Sequence[str],
    *,
    check: bool = True,
    env: Mapping[str, str] | None = None,
    cwd: str | None = None,
    input_text: str | None = None,
    dry_run: bool = False,
) -> CmdResult:
    """Run an external tool to completion and capture its output.

    Every invocation is logged as ``CMD <argv>`` before it runs, so the build
    log doubles as a transcript of what was done to the disk. With
    ``dry_run`` nothing is executed and an empty successful result is
    returned. With ``check`` a non-zero exit (or a missing executable)
    raises :class:`CommandError`.
    """

    cmd = [str(a) for a in argv]
    logger.info("CMD %s", fmt_argv(cmd))

    if dry_run:
        return CmdResult(argv=cmd, returncode=0, stdout="", stderr="")

    child_env = dict(os.environ)
    if env:
        child_env.update(env)

    try:
        proc = subprocess.run(
            cmd,
            input=input_text,
            capture_output=True,
            text=True,
            cwd=cwd,
            env=child_env,
        )
    except FileNotFoundError:
        result = CmdResult(argv=cmd, returncode=NOT_FOUND_RC, stdout="", stderr=f"{cmd[0]}: command not found")
    else:
        result = CmdResult(argv=cmd, returncode=proc.returncode, stdout=proc.stdout, stderr=proc.stderr)

    _log_stream("STDOUT", result.stdout)
    _log_stream("STDERR", result.stderr)

    if check and result.returncode != 0:
        raise CommandError(cmd, result.returncode, result.stderr)
    if result.returncode != 0:
        logger.warning("Command exited %d (ignored): %s", result.returncode, fmt_argv(cmd))
    return result
