"""
Flowchart validation - structural checks over a Graph.

The editor never produces dangling edges, but graphs rebuilt from JSON
snapshots or assembled by hand can. Checks run in a fixed order so the
issue list for a given graph is stable.
"""

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Callable, Iterator

if TYPE_CHECKING:
    from .models import Graph


class IssueSeverity(str, Enum):
    """Severity levels for validation issues."""
    ERROR = "error"      # Graph invariant broken
    WARNING = "warning"  # Legal but probably unintended
    INFO = "info"


@dataclass
class ValidationIssue:
    """One finding, optionally pinned to a node and/or an edge."""
    severity: IssueSeverity
    message: str
    node_id: str | None = None
    edge_id: str | None = None

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        data = {"type": self.severity.value, "message": self.message}
        if self.node_id:
            data["node_id"] = self.node_id
        if self.edge_id:
            data["edge_id"] = self.edge_id
        return data


def _dangling_endpoints(graph: "Graph") -> Iterator[ValidationIssue]:
    for edge in graph.edges:
        for end, node_id in (("source", edge.source), ("target", edge.target)):
            if node_id not in graph.nodes:
                yield ValidationIssue(
                    IssueSeverity.ERROR,
                    f"Edge references non-existent {end} node: {node_id}",
                    edge_id=edge.id,
                )


def _self_loops(graph: "Graph") -> Iterator[ValidationIssue]:
    for edge in graph.edges:
        if edge.is_self_loop:
            yield ValidationIssue(
                IssueSeverity.WARNING,
                "Self-referencing edge (node points to itself)",
                node_id=edge.source,
                edge_id=edge.id,
            )


def _parallel_edges(graph: "Graph") -> Iterator[ValidationIssue]:
    # Parallel edges are legal; only the repeats are reported
    first_seen: dict[tuple[str, str], str] = {}
    for edge in graph.edges:
        pair = (edge.source, edge.target)
        if pair in first_seen:
            yield ValidationIssue(
                IssueSeverity.WARNING,
                f"Parallel edge from {edge.source} to {edge.target} (first: {first_seen[pair]})",
                edge_id=edge.id,
            )
        else:
            first_seen[pair] = edge.id


def _unconnected_nodes(graph: "Graph") -> Iterator[ValidationIssue]:
    touched = {e.source for e in graph.edges} | {e.target for e in graph.edges}
    for node in graph.nodes.values():
        if node.id not in touched:
            yield ValidationIssue(
                IssueSeverity.INFO,
                f"Unconnected node: {node.label} ({node.id})",
                node_id=node.id,
            )


CHECKS: list[Callable[["Graph"], Iterator[ValidationIssue]]] = [
    _dangling_endpoints,
    _self_loops,
    _parallel_edges,
    _unconnected_nodes,
]


def validate_graph(graph: "Graph") -> list[ValidationIssue]:
    """
    Validate a graph and return a list of issues.

    Checks for:
    - Empty graph - INFO
    - Dangling edges (source/target doesn't exist) - ERROR
    - Self-referencing edges - WARNING
    - Parallel edges (same source->target) - WARNING, never collapsed
    - Unconnected nodes - INFO
    """
    if not graph.nodes and not graph.edges:
        return [ValidationIssue(IssueSeverity.INFO, "Flowchart has no nodes")]

    issues: list[ValidationIssue] = []
    for check in CHECKS:
        issues.extend(check(graph))
    return issues


def validation_summary(issues: list[ValidationIssue]) -> dict:
    """Counts by severity; `valid` means no errors."""
    counts = {severity: 0 for severity in IssueSeverity}
    for issue in issues:
        counts[issue.severity] += 1
    return {
        "total": len(issues),
        "errors": counts[IssueSeverity.ERROR],
        "warnings": counts[IssueSeverity.WARNING],
        "info": counts[IssueSeverity.INFO],
        "valid": counts[IssueSeverity.ERROR] == 0,
    }
