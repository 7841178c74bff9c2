"""
Flowchart Core - Models, parsing, and layered layout for flowcharts.

This package turns flowchart text (a Mermaid flowchart subset) into a
laid-out graph. It is pure and synchronous: no file or network I/O.
"""

from .models import (
    # Enums
    Direction,
    NodeShape,
    NodeKind,
    ArrowType,
    # Core models
    Position,
    Size,
    NodeStyle,
    EdgeStyle,
    Node,
    Edge,
    Graph,
    # Errors
    UnsupportedDirectionError,
    normalize_direction,
)

from .ids import IdAllocator
from .preprocess import preprocess
from .parser import parse_flowchart, ParseResult, ParsedNode, ParsedEdge
from .builder import build_graph
from .layout import LayoutConfig, layered_layout, assign_ranks, order_ranks, count_crossings
from .validation import validate_graph, validation_summary, ValidationIssue, IssueSeverity
from .loader import load_flowchart

__all__ = [
    # Enums
    "Direction",
    "NodeShape",
    "NodeKind",
    "ArrowType",
    # Models
    "Position",
    "Size",
    "NodeStyle",
    "EdgeStyle",
    "Node",
    "Edge",
    "Graph",
    # Errors
    "UnsupportedDirectionError",
    "normalize_direction",
    # Ids
    "IdAllocator",
    # Pipeline
    "preprocess",
    "parse_flowchart",
    "ParseResult",
    "ParsedNode",
    "ParsedEdge",
    "build_graph",
    "load_flowchart",
    # Layout
    "LayoutConfig",
    "layered_layout",
    "assign_ranks",
    "order_ranks",
    "count_crossings",
    # Validation
    "validate_graph",
    "validation_summary",
    "ValidationIssue",
    "IssueSeverity",
]
