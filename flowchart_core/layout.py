"""
Layered (Sugiyama-style) layout for flowchart nodes.

Steps:
- Cycle handling: back edges found by DFS are ignored for ranking
- Ranking: longest path from sources
- Virtual nodes: edges spanning several ranks are split per rank
- Crossing reduction: barycenter sweeps, best ordering kept
- Coordinates: ranks stacked along the rank axis, nodes packed in-rank

Every step is deterministic: identical (nodes, edges, direction) always
gives identical coordinates. The layout function modifies nodes in-place
and returns the modified list.
"""

import logging
import os
from collections import defaultdict, deque
from typing import TYPE_CHECKING, Iterable

from pydantic import BaseModel

from .models import Direction, normalize_direction

if TYPE_CHECKING:
    from .models import Node, Edge

logger = logging.getLogger(__name__)


# Default layout parameters
DEFAULT_RANK_SPACING = 50
DEFAULT_NODE_SPACING = 50
DEFAULT_SWEEPS = 4

VIRTUAL_PREFIX = "\x00v"


class LayoutConfig(BaseModel):
    """Spacing and tuning knobs for the layered layout."""
    rank_spacing: float = DEFAULT_RANK_SPACING  # Gap between consecutive ranks
    node_spacing: float = DEFAULT_NODE_SPACING  # Gap between nodes in one rank
    sweeps: int = DEFAULT_SWEEPS                # Barycenter down/up passes
    origin_x: float = 0
    origin_y: float = 0

    @classmethod
    def from_env(cls) -> "LayoutConfig":
        """Read overrides from FLOWCHART_* environment variables."""
        return cls(
            rank_spacing=float(os.environ.get("FLOWCHART_RANK_SPACING", DEFAULT_RANK_SPACING)),
            node_spacing=float(os.environ.get("FLOWCHART_NODE_SPACING", DEFAULT_NODE_SPACING)),
            sweeps=int(os.environ.get("FLOWCHART_LAYOUT_SWEEPS", DEFAULT_SWEEPS)),
        )


# --- Ranking ---

def find_back_edges(node_ids: list[str], pairs: list[tuple[str, str]]) -> set[tuple[str, str]]:
    """Find back edges with an iterative DFS, visiting nodes in the given order."""
    adj: dict[str, list[str]] = defaultdict(list)
    for source, target in pairs:
        adj[source].append(target)

    WHITE, GRAY, BLACK = 0, 1, 2
    color = {n: WHITE for n in node_ids}
    back: set[tuple[str, str]] = set()

    for start in node_ids:
        if color[start] != WHITE:
            continue
        color[start] = GRAY
        stack: list[tuple[str, int]] = [(start, 0)]
        while stack:
            u, idx = stack[-1]
            neighbors = adj.get(u, [])
            if idx < len(neighbors):
                stack[-1] = (u, idx + 1)
                v = neighbors[idx]
                if color[v] == GRAY:
                    back.add((u, v))
                elif color[v] == WHITE:
                    color[v] = GRAY
                    stack.append((v, 0))
            else:
                color[u] = BLACK
                stack.pop()

    return back


def assign_ranks(node_ids: list[str], pairs: list[tuple[str, str]]) -> dict[str, int]:
    """
    Longest-path ranks over the DAG left after dropping back edges.

    Args:
        node_ids: Node ids in a stable order
        pairs: (source, target) pairs; self-loops must already be removed

    Returns:
        Mapping of node id to rank (sources and isolated nodes get 0)
    """
    back = find_back_edges(node_ids, pairs)
    children: dict[str, list[str]] = defaultdict(list)
    indegree = {n: 0 for n in node_ids}
    for source, target in pairs:
        if (source, target) in back:
            continue
        children[source].append(target)
        indegree[target] += 1

    ranks = {n: 0 for n in node_ids}
    queue = deque(n for n in node_ids if indegree[n] == 0)
    while queue:
        node_id = queue.popleft()
        for child in children[node_id]:
            ranks[child] = max(ranks[child], ranks[node_id] + 1)
            indegree[child] -= 1
            if indegree[child] == 0:
                queue.append(child)

    return ranks


# --- Ordering ---

def _split_long_edges(
    pairs: list[tuple[str, str]],
    ranks: dict[str, int],
) -> tuple[dict[str, int], list[tuple[str, str]]]:
    """Orient every pair downward and add virtual nodes for multi-rank spans."""
    layered_ranks = dict(ranks)
    segments: list[tuple[str, str]] = []
    virtual_count = 0

    for source, target in pairs:
        upper, lower = source, target
        if ranks[source] > ranks[target]:
            upper, lower = target, source
        if ranks[upper] == ranks[lower]:
            continue
        prev = upper
        for r in range(ranks[upper] + 1, ranks[lower]):
            virtual = f"{VIRTUAL_PREFIX}{virtual_count}"
            virtual_count += 1
            layered_ranks[virtual] = r
            segments.append((prev, virtual))
            prev = virtual
        segments.append((prev, lower))

    return layered_ranks, segments


def _initial_order(
    node_ids: list[str],
    ranks: dict[str, int],
    segments: list[tuple[str, str]],
) -> list[list[str]]:
    """Order each rank by first appearance in a DFS from nodes in input order."""
    children: dict[str, list[str]] = defaultdict(list)
    for upper, lower in segments:
        children[upper].append(lower)

    max_rank = max(ranks.values()) if ranks else 0
    layers: list[list[str]] = [[] for _ in range(max_rank + 1)]
    seen: set[str] = set()

    for start in node_ids:
        if start in seen:
            continue
        stack = [start]
        while stack:
            node_id = stack.pop()
            if node_id in seen:
                continue
            seen.add(node_id)
            layers[ranks[node_id]].append(node_id)
            stack.extend(reversed(children[node_id]))

    return layers


def count_crossings(layers: list[list[str]], segments: list[tuple[str, str]]) -> int:
    """Count pairwise crossings between segments joining adjacent ranks."""
    position: dict[str, int] = {}
    layer_of: dict[str, int] = {}
    for r, layer in enumerate(layers):
        for i, node_id in enumerate(layer):
            position[node_id] = i
            layer_of[node_id] = r

    by_layer: dict[int, list[tuple[int, int]]] = defaultdict(list)
    for upper, lower in segments:
        by_layer[layer_of[upper]].append((position[upper], position[lower]))

    crossings = 0
    for lines in by_layer.values():
        for i in range(len(lines)):
            a1, b1 = lines[i]
            for j in range(i + 1, len(lines)):
                a2, b2 = lines[j]
                if (a1 - a2) * (b1 - b2) < 0:
                    crossings += 1
    return crossings


def _barycenter_sort(layer: list[str], neighbors: dict[str, list[str]], fixed: list[str]) -> list[str]:
    """Sort a rank by the mean position of each node's neighbours in `fixed`."""
    position = {node_id: i for i, node_id in enumerate(fixed)}
    barycenters: dict[str, float] = {}
    for i, node_id in enumerate(layer):
        orders = [position[n] for n in neighbors.get(node_id, []) if n in position]
        if orders:
            barycenters[node_id] = sum(orders) / len(orders)
        else:
            barycenters[node_id] = float(i)
    # sorted() is stable, so ties keep their current order
    return sorted(layer, key=lambda n: barycenters[n])


def order_ranks(
    node_ids: list[str],
    ranks: dict[str, int],
    segments: list[tuple[str, str]],
    sweeps: int = DEFAULT_SWEEPS,
) -> list[list[str]]:
    """
    Crossing reduction with alternating barycenter sweeps.

    Args:
        node_ids: Real node ids in input order
        ranks: Ranks for real and virtual nodes
        segments: (upper, lower) pairs between adjacent ranks
        sweeps: Number of down+up passes

    Returns:
        One list of node ids per rank, best ordering found
    """
    layers = _initial_order(node_ids, ranks, segments)

    up: dict[str, list[str]] = defaultdict(list)
    down: dict[str, list[str]] = defaultdict(list)
    for upper, lower in segments:
        down[upper].append(lower)
        up[lower].append(upper)

    best = [list(layer) for layer in layers]
    best_crossings = count_crossings(best, segments)

    for _ in range(sweeps):
        if best_crossings == 0:
            break
        for r in range(1, len(layers)):
            layers[r] = _barycenter_sort(layers[r], up, layers[r - 1])
        for r in range(len(layers) - 2, -1, -1):
            layers[r] = _barycenter_sort(layers[r], down, layers[r + 1])
        crossings = count_crossings(layers, segments)
        if crossings < best_crossings:
            best = [list(layer) for layer in layers]
            best_crossings = crossings

    logger.debug("Rank ordering settled with %d crossings", best_crossings)
    return best


# --- Coordinates ---

def _assign_coordinates(
    layers: list[list[str]],
    node_map: dict[str, "Node"],
    direction: Direction,
    cfg: LayoutConfig,
) -> None:
    horizontal = direction == Direction.LR

    def rank_extent(node: "Node") -> float:
        return node.size.width if horizontal else node.size.height

    def inrank_extent(node: "Node") -> float:
        return node.size.height if horizontal else node.size.width

    placed: list[tuple["Node", float, float]] = []  # (node, rank axis, in-rank axis)
    rank_start = 0.0

    for layer in layers:
        real = [node_map[n] for n in layer if n in node_map]
        thickness = max((rank_extent(n) for n in real), default=0)

        sizes = [inrank_extent(node_map[n]) if n in node_map else 0 for n in layer]
        total = sum(sizes) + cfg.node_spacing * max(len(layer) - 1, 0)
        cursor = -total / 2

        for node_id, size in zip(layer, sizes):
            node = node_map.get(node_id)
            if node is not None:
                offset = rank_start + (thickness - rank_extent(node)) / 2
                placed.append((node, offset, cursor))
            cursor += size + cfg.node_spacing

        rank_start += thickness + cfg.rank_spacing

    if not placed:
        return

    min_inrank = min(inrank for _, _, inrank in placed)
    for node, along, inrank in placed:
        inrank -= min_inrank
        if horizontal:
            node.position.x = cfg.origin_x + along
            node.position.y = cfg.origin_y + inrank
        else:
            node.position.x = cfg.origin_x + inrank
            node.position.y = cfg.origin_y + along


def _layout_pairs(node_ids: Iterable[str], edges: list["Edge"]) -> list[tuple[str, str]]:
    known = set(node_ids)
    return [
        (e.source, e.target)
        for e in edges
        if e.source != e.target and e.source in known and e.target in known
    ]


def layered_layout(
    nodes: list["Node"],
    edges: list["Edge"],
    direction: "Direction | str" = Direction.TB,
    config: LayoutConfig | None = None,
) -> list["Node"]:
    """
    Arrange nodes in ranks following edge direction.

    Self-loops and edges to unknown nodes stay in the edge list but are
    ignored for ranking. Cycles are tolerated: back edges never push a
    node to a lower rank.

    Args:
        nodes: Nodes to arrange
        edges: Edges defining the hierarchy
        direction: "TB" (ranks top-to-bottom) or "LR" (left-to-right)
        config: Spacing configuration

    Returns:
        The same list of nodes (modified in-place)

    Raises:
        UnsupportedDirectionError: direction is not TB/TD/LR
    """
    direction = normalize_direction(direction)
    cfg = config or LayoutConfig()
    if not nodes:
        return nodes

    node_ids = [n.id for n in nodes]
    pairs = _layout_pairs(node_ids, edges)
    ranks = assign_ranks(node_ids, pairs)
    layered_ranks, segments = _split_long_edges(pairs, ranks)
    layers = order_ranks(node_ids, layered_ranks, segments, cfg.sweeps)
    _assign_coordinates(layers, {n.id: n for n in nodes}, direction, cfg)

    logger.debug(
        "Laid out %d nodes in %d ranks (%s)", len(nodes), len(layers), direction.value
    )
    return nodes
