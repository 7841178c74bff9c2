"""
Graph model builder - turns a ParseResult into a Graph.

Nodes referenced only through edges and nodes declared explicitly are
merged into one record per id. `style` lines are applied to nodes that
exist; styles for unknown ids are ignored.
"""

import logging
from typing import Optional

from .ids import EDGE_PREFIX, IdAllocator
from .models import (
    Edge,
    Graph,
    Node,
    NodeKind,
    NodeStyle,
    shape_for_kind,
    size_for_kind,
    style_for_kind,
)
from .parser import ParseResult

logger = logging.getLogger(__name__)


def apply_style_props(style: NodeStyle, props: dict[str, str]) -> NodeStyle:
    """Map Mermaid style keys onto a NodeStyle (unknown keys are ignored)."""
    updates: dict = {}
    if "fill" in props:
        updates["fill"] = props["fill"]
    if "stroke" in props:
        updates["stroke"] = props["stroke"]
    if "color" in props:
        updates["font_color"] = props["color"]
    font_size = props.get("font-size") or props.get("fontSize")
    if font_size:
        digits = font_size.strip().removesuffix("px")
        if digits.isdigit():
            updates["font_size"] = int(digits)
    return style.model_copy(update=updates)


def build_graph(result: ParseResult, allocator: Optional[IdAllocator] = None) -> Graph:
    """Build a Graph from parser output. Positions are left at the origin."""
    allocator = allocator or IdAllocator()
    kind = NodeKind.DEFAULT.value

    nodes: dict[str, Node] = {}
    for parsed in result.nodes.values():
        nodes[parsed.id] = Node(
            id=parsed.id,
            label=parsed.label,
            kind=kind,
            shape=shape_for_kind(kind),
            size=size_for_kind(kind),
            style=style_for_kind(kind),
        )

    for node_id, props in result.styles.items():
        node = nodes.get(node_id)
        if node is None:
            logger.debug("Style for unknown node %r ignored", node_id)
            continue
        node.style = apply_style_props(node.style, props)

    edges: list[Edge] = []
    for parsed in result.edges:
        if parsed.source not in nodes or parsed.target not in nodes:
            continue
        edges.append(Edge(
            id=allocator.next(EDGE_PREFIX),
            source=parsed.source,
            target=parsed.target,
            label=parsed.label,
            arrow=parsed.arrow,
        ))

    return Graph(nodes=nodes, edges=edges, direction=result.direction)
