"""
Flowchart Editor - Interactive session over one flowchart graph.

This module implements:
- Single graph session (the graph is replaced wholesale on every parse)
- O(1) node/edge lookups via index dictionaries
- Linear undo/redo history using snapshots
- The connect / label-edit state machine driven by renderer intents
- Change, edit-request and confirmation callbacks for the host UI

Every operation is synchronous. An operation that names a missing node or
edge does nothing and returns a falsy value. Only misuse of the API itself
(an unsupported direction or arrow type) raises ValueError.
"""

import logging
import time
from enum import Enum
from typing import Any, Callable, Optional

from flowchart_core import (
    ArrowType,
    Direction,
    Edge,
    Graph,
    IdAllocator,
    LayoutConfig,
    Node,
    NodeKind,
    Position,
    Size,
    layered_layout,
    load_flowchart,
    normalize_direction,
    validate_graph,
)
from flowchart_core.builder import apply_style_props
from flowchart_core.ids import EDGE_PREFIX, NODE_PREFIX
from flowchart_core.models import (
    KIND_PRESETS,
    DEFAULT_FONT_COLOR,
    DEFAULT_FONT_SIZE,
    shape_for_kind,
    size_for_kind,
    style_for_kind,
)
from flowchart_core.validation import ValidationIssue

logger = logging.getLogger(__name__)

# Edges stay flagged as animated this long after a relayout
ANIMATION_SECONDS = 1.5

DEFAULT_NEW_NODE_POSITION = (100, 100)


class EditorMode(str, Enum):
    """Interaction states of the editor."""
    VIEWING = "viewing"
    CONNECT_ARMED = "connect_armed"    # Connect mode on; clicks pick endpoints
    EDITING_LABEL = "editing_label"    # One node open for label editing


class FlowchartEditor:
    """
    Owns one flowchart graph and keeps it consistent under edits.

    Invariant: after every operation each edge's source and target exist.

    Callbacks:
    - on_change(callback): called after every mutation
    - on_request_edit(callback): called with (node_id, label) when a node
      should be opened for label editing; the host decides modal vs inline
    - confirm: called with a prompt before destructive renderer intents;
      returns True to proceed
    """

    def __init__(
        self,
        layout_config: Optional[LayoutConfig] = None,
        confirm: Optional[Callable[[str], bool]] = None,
        clock: Callable[[], float] = time.monotonic,
        max_history: int = 100,
    ):
        self._graph = Graph()
        self._layout_config = layout_config or LayoutConfig()
        self._confirm = confirm
        self._clock = clock
        self._ids = IdAllocator()

        self._history: list[dict] = []  # Past states (snapshots)
        self._future: list[dict] = []   # Future states (for redo)
        self._max_history = max_history

        self._mode = EditorMode.VIEWING
        self._selected_node_id: Optional[str] = None
        self._editing_node_id: Optional[str] = None
        self._arrow_type = ArrowType.SINGLE.value
        self._font_size = DEFAULT_FONT_SIZE
        self._font_color = DEFAULT_FONT_COLOR
        self._animation_deadline: Optional[float] = None

        self._on_change_callbacks: list[Callable[[], Any]] = []
        self._on_request_edit_callbacks: list[Callable[[str, str], Any]] = []

        # O(1) edge lookup; nodes are already keyed by id in the graph
        self._edge_index: dict[str, Edge] = {}

    # --- Index Management ---

    def _rebuild_indexes(self):
        """Rebuild the edge index from the current graph."""
        self._edge_index = {e.id: e for e in self._graph.edges}

    # --- Properties ---

    @property
    def graph(self) -> Graph:
        """Get the current graph."""
        return self._graph

    @property
    def mode(self) -> EditorMode:
        return self._mode

    @property
    def selected_node_id(self) -> Optional[str]:
        return self._selected_node_id

    @property
    def editing_node_id(self) -> Optional[str]:
        return self._editing_node_id

    @property
    def arrow_type(self) -> str:
        return self._arrow_type

    @property
    def is_animating(self) -> bool:
        return self._animation_deadline is not None

    @property
    def can_undo(self) -> bool:
        """Check if undo is available."""
        return len(self._history) > 0

    @property
    def can_redo(self) -> bool:
        """Check if redo is available."""
        return len(self._future) > 0

    # --- Callbacks ---

    def on_change(self, callback: Callable[[], Any]):
        """Register a callback for graph changes."""
        self._on_change_callbacks.append(callback)

    def on_request_edit(self, callback: Callable[[str, str], Any]):
        """Register a callback for label-edit requests: (node_id, current_label)."""
        self._on_request_edit_callbacks.append(callback)

    def set_confirm(self, confirm: Optional[Callable[[str], bool]]):
        """Install the confirmation hook used by destructive intents."""
        self._confirm = confirm

    def _notify_change(self):
        for callback in self._on_change_callbacks:
            callback()

    def _notify_request_edit(self, node_id: str, label: str):
        for callback in self._on_request_edit_callbacks:
            callback(node_id, label)

    # --- History Management ---

    def _save_to_history(self):
        """Save current state to history before a mutation."""
        # New action invalidates redo stack
        self._future.clear()
        self._history.append(self._graph.to_json_dict())
        if len(self._history) > self._max_history:
            self._history.pop(0)

    def _restore(self, snapshot: dict):
        self._graph = Graph.from_json_dict(snapshot)
        self._rebuild_indexes()
        self._reset_interaction()
        self._animation_deadline = None
        for edge in self._graph.edges:
            edge.animated = False

    def undo(self) -> Optional[Graph]:
        """Undo the last action."""
        if not self.can_undo:
            return None
        self._future.append(self._graph.to_json_dict())
        self._restore(self._history.pop())
        self._notify_change()
        return self._graph

    def redo(self) -> Optional[Graph]:
        """Redo the last undone action."""
        if not self.can_redo:
            return None
        self._history.append(self._graph.to_json_dict())
        self._restore(self._future.pop())
        self._notify_change()
        return self._graph

    # --- Source Text ---

    def load_text(self, text: Optional[str], direction: "Direction | str | None" = None) -> Graph:
        """
        Replace the graph wholesale with the result of parsing `text`.

        Clears selection, history and any pending animation.
        """
        allocator = IdAllocator()
        self._graph = load_flowchart(text, direction, self._layout_config, allocator)
        self._ids = allocator
        self._history.clear()
        self._future.clear()
        self._animation_deadline = None
        self._reset_interaction()
        self._rebuild_indexes()
        self._notify_change()
        return self._graph

    # --- Node Operations ---

    def add_node(self, kind: str = NodeKind.DEFAULT.value, position: Optional[tuple[float, float]] = None) -> Node:
        """
        Add a node with the kind's default label, shape and colours.

        Does not relayout. Unknown kinds fall back to "default".
        """
        if kind not in KIND_PRESETS:
            kind = NodeKind.DEFAULT.value
        self._save_to_history()

        x, y = position or DEFAULT_NEW_NODE_POSITION
        style = style_for_kind(kind)
        style.font_size = self._font_size
        style.font_color = self._font_color
        node = Node(
            id=self._ids.next(NODE_PREFIX, self._graph.nodes),
            label=KIND_PRESETS[kind][0],
            kind=kind,
            shape=shape_for_kind(kind),
            position=Position(x=x, y=y),
            size=size_for_kind(kind),
            style=style,
        )
        self._graph.nodes[node.id] = node
        self._notify_change()
        return node

    def get_node(self, node_id: str) -> Optional[Node]:
        """Get a node by ID (O(1) lookup)."""
        return self._graph.nodes.get(node_id)

    def delete_node(self, node_id: str) -> bool:
        """Delete a node and every edge touching it."""
        if node_id not in self._graph.nodes:
            logger.debug("delete_node: no node %r", node_id)
            return False

        self._save_to_history()
        del self._graph.nodes[node_id]
        kept = []
        for edge in self._graph.edges:
            if edge.source == node_id or edge.target == node_id:
                self._edge_index.pop(edge.id, None)
            else:
                kept.append(edge)
        self._graph.edges = kept

        if self._selected_node_id == node_id:
            self._selected_node_id = None
        if self._editing_node_id == node_id:
            self._editing_node_id = None
            self._mode = EditorMode.VIEWING
        self._notify_change()
        return True

    def edit_label(self, node_id: str, text: str) -> Optional[Node]:
        """Change a node's label; id and position are untouched."""
        node = self._graph.nodes.get(node_id)
        if node is None:
            logger.debug("edit_label: no node %r", node_id)
            return None
        self._save_to_history()
        node.label = text
        self._notify_change()
        return node

    def set_kind(self, node_id: str, kind: str) -> Optional[Node]:
        """Switch a node's kind; shape and colours follow the kind preset."""
        node = self._graph.nodes.get(node_id)
        if node is None or kind not in KIND_PRESETS:
            return None
        self._save_to_history()
        preset = style_for_kind(kind)
        node.kind = kind
        node.shape = shape_for_kind(kind)
        node.size = size_for_kind(kind)
        node.style = node.style.model_copy(update={"fill": preset.fill, "stroke": preset.stroke})
        self._notify_change()
        return node

    def move_node(self, node_id: str, x: float, y: float) -> Optional[Node]:
        node = self._graph.nodes.get(node_id)
        if node is None:
            return None
        self._save_to_history()
        node.position = Position(x=x, y=y)
        self._notify_change()
        return node

    def resize_node(self, node_id: str, width: float, height: float) -> Optional[Node]:
        node = self._graph.nodes.get(node_id)
        if node is None:
            return None
        self._save_to_history()
        node.size = Size(width=width, height=height)
        self._notify_change()
        return node

    def restyle_node(self, node_id: str, **props: str) -> Optional[Node]:
        """Apply Mermaid-style keys (fill, stroke, color, font-size) to one node."""
        node = self._graph.nodes.get(node_id)
        if node is None:
            return None
        self._save_to_history()
        node.style = apply_style_props(node.style, {k.replace("_", "-"): str(v) for k, v in props.items()})
        self._notify_change()
        return node

    def apply_font_settings(self, size: int, color: str) -> int:
        """Set font size and colour on every node. Returns the node count."""
        self._font_size = size
        self._font_color = color
        if all(n.style.font_size == size and n.style.font_color == color
               for n in self._graph.nodes.values()):
            return len(self._graph.nodes)

        self._save_to_history()
        for node in self._graph.nodes.values():
            node.style.font_size = size
            node.style.font_color = color
        self._notify_change()
        return len(self._graph.nodes)

    # --- Edge Operations ---

    def connect(
        self,
        source: str,
        target: str,
        arrow: Optional[str] = None,
        label: str = "",
    ) -> Optional[Edge]:
        """
        Add an edge between two existing nodes.

        Parallel edges are kept: connecting the same pair twice gives two
        edges. Returns None if either node is missing.
        """
        if source not in self._graph.nodes or target not in self._graph.nodes:
            logger.debug("connect: missing endpoint %r -> %r", source, target)
            return None
        arrow = ArrowType(arrow or self._arrow_type).value

        self._save_to_history()
        edge = Edge(
            id=self._ids.next(EDGE_PREFIX, self._edge_index),
            source=source,
            target=target,
            label=label,
            arrow=arrow,
            animated=self.is_animating,
        )
        self._graph.edges.append(edge)
        self._edge_index[edge.id] = edge
        self._notify_change()
        return edge

    def get_edge(self, edge_id: str) -> Optional[Edge]:
        """Get an edge by ID (O(1) lookup)."""
        return self._edge_index.get(edge_id)

    def delete_edge(self, edge_id: str) -> bool:
        """Delete exactly one edge."""
        edge = self._edge_index.get(edge_id)
        if edge is None:
            logger.debug("delete_edge: no edge %r", edge_id)
            return False
        self._save_to_history()
        self._graph.edges = [e for e in self._graph.edges if e.id != edge_id]
        del self._edge_index[edge_id]
        self._notify_change()
        return True

    # --- Layout ---

    def relayout(self, direction: "Direction | str | None" = None) -> Graph:
        """
        Recompute every node position with the layered layout.

        The model is updated before returning; edges are flagged animated
        until `tick()` sees the deadline pass.

        Raises:
            UnsupportedDirectionError: direction is not TB/TD/LR
        """
        direction = normalize_direction(direction) if direction is not None else self._graph.direction
        self._save_to_history()
        self._graph.direction = direction
        layered_layout(list(self._graph.nodes.values()), self._graph.edges, direction, self._layout_config)

        # A new relayout supersedes the previous deadline
        self._animation_deadline = self._clock() + ANIMATION_SECONDS
        for edge in self._graph.edges:
            edge.animated = True
        self._notify_change()
        return self._graph

    def tick(self, now: Optional[float] = None) -> bool:
        """Clear the animation flag once its deadline has passed. Returns True if cleared."""
        if self._animation_deadline is None:
            return False
        now = self._clock() if now is None else now
        if now < self._animation_deadline:
            return False
        self._animation_deadline = None
        for edge in self._graph.edges:
            edge.animated = False
        self._notify_change()
        return True

    # --- Interaction State Machine ---

    def _reset_interaction(self):
        self._mode = EditorMode.VIEWING
        self._selected_node_id = None
        self._editing_node_id = None

    def toggle_connect_mode(self) -> EditorMode:
        """Enter or leave connect mode; selection is cleared either way."""
        if self._mode == EditorMode.CONNECT_ARMED:
            self._mode = EditorMode.VIEWING
        else:
            self._mode = EditorMode.CONNECT_ARMED
            self._editing_node_id = None
        self._selected_node_id = None
        return self._mode

    def toggle_arrow_type(self) -> str:
        if self._arrow_type == ArrowType.SINGLE.value:
            self._arrow_type = ArrowType.BIDIRECTIONAL.value
        else:
            self._arrow_type = ArrowType.SINGLE.value
        return self._arrow_type

    def node_click(self, node_id: str) -> Optional[Edge]:
        """
        Handle a node click.

        In connect mode the first click selects the source and the second
        click on a different node creates the edge and clears the selection.
        Returns the new edge, if one was created.
        """
        if node_id not in self._graph.nodes:
            return None
        if self._mode != EditorMode.CONNECT_ARMED:
            if self._mode == EditorMode.VIEWING:
                self._selected_node_id = node_id
            return None

        if self._selected_node_id is None:
            self._selected_node_id = node_id
            return None
        if self._selected_node_id == node_id:
            return None

        source = self._selected_node_id
        self._selected_node_id = None
        return self.connect(source, node_id, self._arrow_type)

    def node_double_click(self, node_id: str) -> bool:
        """Open a node for label editing (ignored in connect mode)."""
        node = self._graph.nodes.get(node_id)
        if node is None or self._mode == EditorMode.CONNECT_ARMED:
            return False
        self._mode = EditorMode.EDITING_LABEL
        self._selected_node_id = node_id
        self._editing_node_id = node_id
        self._notify_request_edit(node_id, node.label)
        return True

    def submit_edit(self, node_id: str, text: str) -> Optional[Node]:
        """Commit the label edit and return to viewing."""
        if self._mode != EditorMode.EDITING_LABEL or self._editing_node_id != node_id:
            return None
        self._mode = EditorMode.VIEWING
        self._editing_node_id = None
        return self.edit_label(node_id, text)

    def cancel_edit(self):
        if self._mode == EditorMode.EDITING_LABEL:
            self._mode = EditorMode.VIEWING
            self._editing_node_id = None

    def _confirmed(self, prompt: str, confirmed: Optional[bool]) -> bool:
        if confirmed is not None:
            return confirmed
        if self._confirm is None:
            return False
        return bool(self._confirm(prompt))

    def request_delete_node(self, node_id: str, confirmed: Optional[bool] = None) -> bool:
        """Delete a node after confirmation (explicit flag or confirm hook)."""
        node = self._graph.nodes.get(node_id)
        if node is None:
            return False
        if not self._confirmed(f"Delete node '{node.label}'?", confirmed):
            return False
        return self.delete_node(node_id)

    def request_delete_edge(self, edge_id: str, confirmed: Optional[bool] = None) -> bool:
        """Delete an edge after confirmation (explicit flag or confirm hook)."""
        edge = self._edge_index.get(edge_id)
        if edge is None:
            return False
        if not self._confirmed(f"Delete connection {edge.source} -> {edge.target}?", confirmed):
            return False
        return self.delete_edge(edge_id)

    def node_drag(
        self,
        node_id: str,
        x: float,
        y: float,
        width: Optional[float] = None,
        height: Optional[float] = None,
    ) -> Optional[Node]:
        """Move (and optionally resize) a node as one undoable step."""
        node = self._graph.nodes.get(node_id)
        if node is None:
            return None
        self._save_to_history()
        node.position = Position(x=x, y=y)
        if width is not None and height is not None:
            node.size = Size(width=width, height=height)
        self._notify_change()
        return node

    def connect_drag(self, source: str, target: str) -> Optional[Edge]:
        """Drag-to-connect completion; uses the current arrow type."""
        if source == target:
            return None
        return self.connect(source, target, self._arrow_type)

    def handle_intent(self, intent: dict) -> Any:
        """
        Dispatch a serialized renderer intent.

        Supported types: node_click, node_double_click, node_drag,
        node_delete, edge_click, connect, submit_edit, cancel_edit,
        toggle_connect_mode, toggle_arrow_type.

        Raises:
            ValueError: unknown intent type
        """
        kind = intent.get("type")
        if kind == "node_click":
            return self.node_click(intent.get("node_id", ""))
        if kind == "node_double_click":
            return self.node_double_click(intent.get("node_id", ""))
        if kind == "node_drag":
            return self.node_drag(
                intent.get("node_id", ""),
                intent.get("x", 0),
                intent.get("y", 0),
                intent.get("width"),
                intent.get("height"),
            )
        if kind == "node_delete":
            return self.request_delete_node(intent.get("node_id", ""), intent.get("confirmed"))
        if kind == "edge_click":
            return self.request_delete_edge(intent.get("edge_id", ""), intent.get("confirmed"))
        if kind == "connect":
            return self.connect_drag(intent.get("source", ""), intent.get("target", ""))
        if kind == "submit_edit":
            return self.submit_edit(intent.get("node_id", ""), intent.get("text", ""))
        if kind == "cancel_edit":
            return self.cancel_edit()
        if kind == "toggle_connect_mode":
            return self.toggle_connect_mode()
        if kind == "toggle_arrow_type":
            return self.toggle_arrow_type()
        raise ValueError(f"Unknown intent type: {kind!r}")

    # --- State ---

    def validate(self) -> list[ValidationIssue]:
        return validate_graph(self._graph)

    def snapshot(self) -> dict:
        """Get the full current state for renderers and API responses."""
        return {
            "flowchart": self._graph.to_json_dict(),
            "selection": {
                "mode": self._mode.value,
                "selected_node_id": self._selected_node_id,
                "editing_node_id": self._editing_node_id,
            },
            "arrow_type": self._arrow_type,
            "font": {"size": self._font_size, "color": self._font_color},
            "animating": self.is_animating,
            "can_undo": self.can_undo,
            "can_redo": self.can_redo,
        }


# Global instance for the application
flowchart_editor = FlowchartEditor(layout_config=LayoutConfig.from_env())
