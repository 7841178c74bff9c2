"""
ID allocation for nodes and edges.

Every entity created by the parser or the editor is referenced by an id
issued here. Ids are monotonic per prefix (`e1`, `e2`, `node_1`, ...) so
repeated runs over the same input produce the same ids.
"""

from collections import defaultdict
from typing import Container


class IdAllocator:
    """Monotonic, prefix-based id allocator."""

    def __init__(self):
        self._counters: dict[str, int] = defaultdict(int)

    def next(self, prefix: str, taken: Container[str] = ()) -> str:
        """Issue the next id for `prefix`, skipping any id in `taken`."""
        while True:
            self._counters[prefix] += 1
            candidate = f"{prefix}{self._counters[prefix]}"
            if candidate not in taken:
                return candidate

    def reset(self):
        """Forget all counters (used when a graph is replaced wholesale)."""
        self._counters.clear()


NODE_PREFIX = "node_"
EDGE_PREFIX = "e"
