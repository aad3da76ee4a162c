from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Paths:
    chroot: str = "/var/lib/katsu/chroot"
    state_default: str = "build/katsu-state.json"
    log_default: str = "logs/katsu.log"
    image_default: str = "katsu.img"


PATHS = Paths()
