"""
Resource Arena

Owned collection of renderable handles keyed by (kind, key). Every backend
node the scene allocates is registered here and released exactly once, either
when it is replaced or removed, or when the arena is cleared on disposal.
Leaks show up as non-zero ``live_count()``.
"""

import logging
from collections import OrderedDict
from typing import Any, Callable, Dict, Hashable, List, NamedTuple, Optional, Tuple

logger = logging.getLogger(__name__)

# Handle kinds
SURFACE = "surface"
LIGHT = "light"
STARFIELD = "starfield"
EARTH = "earth"
TEXTURE = "texture"
PATH = "path"
MARKER = "marker"


class Handle(NamedTuple):
    kind: str
    key: Hashable
    node: Any


class ResourceArena:
    """
    Handles keyed by (kind, key), released through a single callback.

    Args:
        release: Called once with the backend node of every removed handle
    """

    def __init__(self, release: Callable[[Any], None]):
        self._release = release
        self._handles: "OrderedDict[Tuple[str, Hashable], Handle]" = OrderedDict()
        self.released_count = 0

    def add(self, kind: str, key: Hashable, node: Any) -> Handle:
        """Register a node; an existing handle under the same key is released first."""
        self.remove(kind, key)
        handle = Handle(kind, key, node)
        self._handles[(kind, key)] = handle
        return handle

    def get(self, kind: str, key: Hashable) -> Optional[Handle]:
        return self._handles.get((kind, key))

    def __contains__(self, kind_key: Tuple[str, Hashable]) -> bool:
        return kind_key in self._handles

    def remove(self, kind: str, key: Hashable) -> bool:
        handle = self._handles.pop((kind, key), None)
        if handle is None:
            return False
        self._release_handle(handle)
        return True

    def remove_kind(self, kind: str) -> int:
        """Release every handle of one kind; returns how many were released."""
        keys = [k for k in self._handles if k[0] == kind]
        for k in keys:
            self._release_handle(self._handles.pop(k))
        return len(keys)

    def keys(self, kind: str) -> List[Hashable]:
        return [key for (k, key) in self._handles if k == kind]

    def handles(self, kind: str) -> List[Handle]:
        return [h for h in self._handles.values() if h.kind == kind]

    def live_count(self, kind: Optional[str] = None) -> int:
        if kind is None:
            return len(self._handles)
        return sum(1 for (k, _) in self._handles if k == kind)

    def counts(self) -> Dict[str, int]:
        counts: Dict[str, int] = {}
        for kind, _ in self._handles:
            counts[kind] = counts.get(kind, 0) + 1
        return counts

    def clear(self) -> int:
        """Release everything, newest first."""
        total = len(self._handles)
        while self._handles:
            _, handle = self._handles.popitem(last=True)
            self._release_handle(handle)
        return total

    def _release_handle(self, handle: Handle):
        try:
            self._release(handle.node)
        finally:
            self.released_count += 1
