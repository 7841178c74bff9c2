"""
Core data models for flowcharts.

These models define the canonical schema for a flowchart graph:
- Nodes with a label, kind, shape, geometry and style
- Edges connecting nodes (using source/target naming convention)
- A Graph holding nodes by id plus an ordered edge list and a direction

Field Naming Convention:
- Python attributes are snake_case
- `to_json_dict()` emits the renderer snapshot, with style keys in
  camelCase (`fontSize`, `fontColor`) to match what the canvas expects
"""

from enum import Enum
from typing import Optional, Any
from pydantic import BaseModel, Field


class Direction(str, Enum):
    """Layout directions: ranks flow top-to-bottom or left-to-right."""
    TB = "TB"
    LR = "LR"


class UnsupportedDirectionError(ValueError):
    """Raised when a caller asks for a layout direction we don't support."""

    def __init__(self, value: Any):
        self.value = value
        supported = ", ".join(d.value for d in Direction)
        super().__init__(
            f"Unsupported layout direction {value!r}; expected one of: {supported} (or TD)"
        )


def normalize_direction(value: "Direction | str") -> Direction:
    """Coerce a direction flag to a Direction.

    Accepts the enum itself, "TB", "LR" and the Mermaid alias "TD".
    """
    if isinstance(value, Direction):
        return value
    if isinstance(value, str):
        key = value.strip().upper()
        if key == "TD":
            return Direction.TB
        try:
            return Direction(key)
        except ValueError:
            pass
    raise UnsupportedDirectionError(value)


class NodeShape(str, Enum):
    """Render variants for nodes on the canvas."""
    RECTANGLE = "rectangle"
    DIAMOND = "diamond"


class NodeKind(str, Enum):
    """Semantic kinds; they pick the default label, shape and colours."""
    START = "start"
    END = "end"
    PROCESS = "process"
    DECISION = "decision"
    ACTION = "action"
    DEFAULT = "default"


class ArrowType(str, Enum):
    """Arrow heads drawn on an edge."""
    SINGLE = "single"
    BIDIRECTIONAL = "bidirectional"


DEFAULT_FONT_SIZE = 12
DEFAULT_FONT_COLOR = "#1e3a8a"
DEFAULT_EDGE_STROKE = "#3b82f6"

DEFAULT_NODE_WIDTH = 172
DEFAULT_NODE_HEIGHT = 36
DECISION_NODE_SIZE = 150

# kind -> (label, fill, stroke, font colour)
KIND_PRESETS: dict[str, tuple[str, str, str, str]] = {
    NodeKind.START.value: ("Start", "#e6f7ff", "#91d5ff", "#1890ff"),
    NodeKind.END.value: ("End", "#fff2e8", "#ffbb96", "#fa541c"),
    NodeKind.PROCESS.value: ("Process", "#f6ffed", "#b7eb8f", "#52c41a"),
    NodeKind.DECISION.value: ("Decision", "#fff7e6", "#ffd591", "#fa8c16"),
    NodeKind.ACTION.value: ("Action", "#f0f9ff", "#3b82f6", DEFAULT_FONT_COLOR),
    NodeKind.DEFAULT.value: ("New Node", "#f0f9ff", "#3b82f6", DEFAULT_FONT_COLOR),
}


def shape_for_kind(kind: str) -> str:
    """Decisions render as diamonds; every other kind is a rectangle."""
    if kind == NodeKind.DECISION.value:
        return NodeShape.DIAMOND.value
    return NodeShape.RECTANGLE.value


def size_for_kind(kind: str) -> "Size":
    if kind == NodeKind.DECISION.value:
        return Size(width=DECISION_NODE_SIZE, height=DECISION_NODE_SIZE)
    return Size()


def style_for_kind(kind: str) -> "NodeStyle":
    _, fill, stroke, font_color = KIND_PRESETS.get(kind, KIND_PRESETS[NodeKind.DEFAULT.value])
    return NodeStyle(fill=fill, stroke=stroke, font_color=font_color)


class Position(BaseModel):
    x: float = 0
    y: float = 0


class Size(BaseModel):
    width: float = DEFAULT_NODE_WIDTH
    height: float = DEFAULT_NODE_HEIGHT


class NodeStyle(BaseModel):
    font_size: int = DEFAULT_FONT_SIZE
    font_color: str = DEFAULT_FONT_COLOR
    fill: str = "#f0f9ff"
    stroke: str = "#3b82f6"

    def to_json_dict(self) -> dict:
        return {
            "fontSize": self.font_size,
            "fontColor": self.font_color,
            "fill": self.fill,
            "stroke": self.stroke,
        }


class EdgeStyle(BaseModel):
    stroke: str = DEFAULT_EDGE_STROKE


class Node(BaseModel):
    """A node in the flowchart."""
    id: str
    label: str = ""
    kind: str = NodeKind.DEFAULT.value
    shape: str = NodeShape.RECTANGLE.value
    position: Position = Field(default_factory=Position)
    size: Size = Field(default_factory=Size)
    style: NodeStyle = Field(default_factory=NodeStyle)

    def center(self) -> tuple[float, float]:
        """Get the center point of the node."""
        return (
            self.position.x + self.size.width / 2,
            self.position.y + self.size.height / 2,
        )

    def bounds(self) -> tuple[float, float, float, float]:
        """Get the bounding box (x, y, right, bottom)."""
        return (
            self.position.x,
            self.position.y,
            self.position.x + self.size.width,
            self.position.y + self.size.height,
        )

    def to_json_dict(self) -> dict:
        return {
            "id": self.id,
            "label": self.label,
            "kind": self.kind,
            "shape": self.shape,
            "position": {"x": self.position.x, "y": self.position.y},
            "size": {"width": self.size.width, "height": self.size.height},
            "style": self.style.to_json_dict(),
        }


class Edge(BaseModel):
    """
    An edge connecting two nodes.

    `animated` is a transient rendering hint set during relayout; it carries
    no meaning for the graph itself.
    """
    id: str
    source: str  # Source node ID
    target: str  # Target node ID
    label: str = ""
    arrow: str = ArrowType.SINGLE.value
    style: EdgeStyle = Field(default_factory=EdgeStyle)
    animated: bool = False

    @property
    def is_self_loop(self) -> bool:
        return self.source == self.target

    def to_json_dict(self) -> dict:
        """Convert to JSON-serializable dict."""
        return {
            "id": self.id,
            "source": self.source,
            "target": self.target,
            "label": self.label,
            "arrow": self.arrow,
            "style": {"stroke": self.style.stroke},
            "animated": self.animated,
        }


class Graph(BaseModel):
    """
    The complete flowchart structure.

    Nodes live in an id-keyed mapping; edges keep their insertion order.
    """
    nodes: dict[str, Node] = Field(default_factory=dict)
    edges: list[Edge] = Field(default_factory=list)
    direction: Direction = Direction.TB

    def to_json_dict(self) -> dict:
        """Snapshot consumed by renderers."""
        return {
            "direction": self.direction.value,
            "nodes": [n.to_json_dict() for n in self.nodes.values()],
            "edges": [e.to_json_dict() for e in self.edges],
        }

    @classmethod
    def from_json_dict(cls, data: dict) -> "Graph":
        """Rebuild a Graph from `to_json_dict()` output."""
        nodes: dict[str, Node] = {}
        for raw in data.get("nodes", []):
            style = raw.get("style", {})
            node = Node(
                id=raw["id"],
                label=raw.get("label", ""),
                kind=raw.get("kind", NodeKind.DEFAULT.value),
                shape=raw.get("shape", NodeShape.RECTANGLE.value),
                position=Position(**raw.get("position", {})),
                size=Size(**raw.get("size", {})),
                style=NodeStyle(
                    font_size=style.get("fontSize", DEFAULT_FONT_SIZE),
                    font_color=style.get("fontColor", DEFAULT_FONT_COLOR),
                    fill=style.get("fill", "#f0f9ff"),
                    stroke=style.get("stroke", "#3b82f6"),
                ),
            )
            nodes[node.id] = node

        edges = [
            Edge(
                id=raw["id"],
                source=raw["source"],
                target=raw["target"],
                label=raw.get("label", ""),
                arrow=raw.get("arrow", ArrowType.SINGLE.value),
                style=EdgeStyle(**raw.get("style", {})),
                animated=raw.get("animated", False),
            )
            for raw in data.get("edges", [])
        ]

        return cls(
            nodes=nodes,
            edges=edges,
            direction=normalize_direction(data.get("direction", Direction.TB.value)),
        )

    def get_node(self, node_id: str) -> Optional[Node]:
        """Get a node by ID."""
        return self.nodes.get(node_id)

    def get_edge(self, edge_id: str) -> Optional[Edge]:
        """Get an edge by ID (O(n) - the editor keeps an index)."""
        for edge in self.edges:
            if edge.id == edge_id:
                return edge
        return None

    def edges_for_node(self, node_id: str) -> list[Edge]:
        """All edges where the node is the source or the target."""
        return [e for e in self.edges if e.source == node_id or e.target == node_id]
