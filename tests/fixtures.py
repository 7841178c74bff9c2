"""Shared flowchart texts and helpers for tests."""

SCENARIO_A = "flowchart TD\nA[Start] --> B[Process]\nB --> C[End]"

SCENARIO_B = "flowchart TD\nA --> B{Check}\nB -->|yes| C\nB -->|no| D"


class FakeClock:
    """Manually advanced clock for animation deadlines."""

    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


def edge_pairs(graph):
    return [(e.source, e.target) for e in graph.edges]


def assert_no_dangling_edges(graph):
    for edge in graph.edges:
        assert edge.source in graph.nodes, f"{edge.id} has dangling source {edge.source}"
        assert edge.target in graph.nodes, f"{edge.id} has dangling target {edge.target}"
