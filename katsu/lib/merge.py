from __future__ import annotations

import copy
from typing import Any, Dict, List, Optional

from ..errors import MergeError

# List items with one of these keys are identified by it rather than by equality.
IDENTITY_KEYS = ("username", "id")


def _identity(item: Any) -> Optional[tuple]:
    if isinstance(item, dict):
        for key in IDENTITY_KEYS:
            if item.get(key) is not None:
                return (key, item[key])
    return None


def _merge_lists(base: List[Any], other: List[Any]) -> List[Any]:
    merged = copy.deepcopy(base)
    seen = {_identity(i) for i in merged} - {None}
    for item in other:
        ident = _identity(item)
        if ident is not None:
            if ident in seen:
                continue
            seen.add(ident)
        elif item in merged:
            continue
        merged.append(copy.deepcopy(item))
    return merged


def deep_merge(base: Any, other: Any, *, path: str = "") -> Any:
    """Merge ``other`` into ``base`` and return the result; neither is modified.

    - mappings merge key by key
    - lists are unioned, ``base`` items first
    - for scalars ``base`` wins unless it is None
    """

    if base is None:
        return copy.deepcopy(other)
    if other is None:
        return copy.deepcopy(base)

    if isinstance(base, dict) or isinstance(other, dict):
        if not (isinstance(base, dict) and isinstance(other, dict)):
            raise MergeError(path, f"mapping vs {type(other if isinstance(base, dict) else base).__name__}")
        merged: Dict[str, Any] = {}
        for key in [*base.keys(), *(k for k in other.keys() if k not in base)]:
            sub = f"{path}.{key}" if path else str(key)
            merged[key] = deep_merge(base.get(key), other.get(key), path=sub)
        return merged

    if isinstance(base, list) or isinstance(other, list):
        if not (isinstance(base, list) and isinstance(other, list)):
            raise MergeError(path, f"list vs {type(other if isinstance(base, list) else base).__name__}")
        return _merge_lists(base, other)

    return copy.deepcopy(base)
