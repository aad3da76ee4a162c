from __future__ import annotations

import math
import re
from typing import Union

MIB = 1024**2

_UNITS = {
    "": 1,
    "b": 1,
    "k": 1000,
    "kb": 1000,
    "ki": 1024,
    "kib": 1024,
    "m": 1000**2,
    "mb": 1000**2,
    "mi": 1024**2,
    "mib": 1024**2,
    "g": 1000**3,
    "gb": 1000**3,
    "gi": 1024**3,
    "gib": 1024**3,
    "t": 1000**4,
    "tb": 1000**4,
    "ti": 1024**4,
    "tib": 1024**4,
    "p": 1000**5,
    "pb": 1000**5,
    "pi": 1024**5,
    "pib": 1024**5,
}

_SIZE_RE = re.compile(r"^\s*([0-9]+(?:\.[0-9]+)?)\s*([a-zA-Z]*)\s*$")


def parse_size(value: Union[int, str]) -> int:
    """Parse a byte size such as ``512MiB``, ``100M``, ``1 GiB`` or ``4096``.

    Decimal units (K, M, G...) are powers of 1000; binary units (Ki, Mi,
    Gi...) are powers of 1024.
    """

    if isinstance(value, bool):
        raise ValueError(f"Invalid size: {value!r}")
    if isinstance(value, int):
        if value < 0:
            raise ValueError(f"Size must not be negative: {value}")
        return value

    m = _SIZE_RE.match(str(value))
    if not m:
        raise ValueError(f"Invalid size: {value!r}")
    number, unit = m.groups()
    factor = _UNITS.get(unit.lower())
    if factor is None:
        raise ValueError(f"Unknown size unit {unit!r} in {value!r}")
    return int(math.floor(float(number) * factor))


def to_mib(size_bytes: int) -> int:
    return size_bytes // MIB
