"""
Text-to-graph pipeline: preprocess, parse, build, lay out.
"""

import logging
from typing import Optional

from .builder import build_graph
from .ids import IdAllocator
from .layout import LayoutConfig, layered_layout
from .models import Direction, Graph, normalize_direction
from .parser import parse_flowchart
from .preprocess import preprocess

logger = logging.getLogger(__name__)


def load_flowchart(
    text: Optional[str],
    direction: "Direction | str | None" = None,
    config: Optional[LayoutConfig] = None,
    allocator: Optional[IdAllocator] = None,
) -> Graph:
    """
    Turn flowchart text into a laid-out Graph.

    Malformed lines are dropped; empty text gives an empty graph. Only an
    unsupported `direction` raises.

    Args:
        text: Raw flowchart text
        direction: Layout direction; defaults to the one in the header
        config: Layout spacing
        allocator: Id allocator for edge ids

    Returns:
        A new Graph with positions assigned
    """
    # Validate the caller's direction before touching the text
    requested = normalize_direction(direction) if direction is not None else None

    if not text or not text.strip():
        return Graph(direction=requested or Direction.TB)

    result = parse_flowchart(preprocess(text))
    if result.dropped:
        logger.debug("Dropped %d unparseable line(s)", len(result.dropped))

    graph = build_graph(result, allocator)
    if requested is not None:
        graph.direction = requested

    layered_layout(list(graph.nodes.values()), graph.edges, graph.direction, config)
    return graph
