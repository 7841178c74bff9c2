"""
Flowchart parser - line classification over an ordered rule table.

Each normalized line is matched against RULES in order; the first rule
whose pattern matches handles the line. Supported statements:

    flowchart TB | graph LR         header, sets the direction
    A[Label]                        node declaration (quotes optional)
    A --> B                         edge
    A --label--> B / A -->|label| B edge with an inline label
    A <--> B                        bidirectional edge
    A --> B --> C                   chained edges
    style A fill:#f9f,stroke:#333   recorded, layout-inert
    subgraph X ... end              flattened
    %% comment                      ignored

The parser is total: any line it cannot read is dropped whole, without
creating partial nodes or edges.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Callable, Optional

from .models import ArrowType, Direction

logger = logging.getLogger(__name__)


@dataclass
class ParsedNode:
    id: str
    label: str
    declared: bool = False  # True once a bracketed label was seen


@dataclass
class ParsedEdge:
    source: str
    target: str
    label: str = ""
    arrow: str = ArrowType.SINGLE.value


@dataclass
class ParseResult:
    """Everything read from one flowchart text."""
    direction: Direction = Direction.TB
    nodes: dict[str, ParsedNode] = field(default_factory=dict)
    edges: list[ParsedEdge] = field(default_factory=list)
    styles: dict[str, dict[str, str]] = field(default_factory=dict)
    dropped: list[int] = field(default_factory=list)  # 1-based line numbers

    def touch(self, node_id: str, label: Optional[str] = None):
        """Register a node reference; a bracketed label overwrites."""
        node = self.nodes.get(node_id)
        if node is None:
            node = ParsedNode(id=node_id, label=node_id)
            self.nodes[node_id] = node
        if label is not None:
            node.label = label
            node.declared = True


# --- Patterns ---

NODE_ID = r"[A-Za-z0-9_]+"

# Longest bracket pairs first so `((x))` is not read as `(` + `(x)` + `)`
_BRACKETS = [
    (r"\(\(", r"\)\)"),
    (r"\(\[", r"\]\)"),
    (r"\[\[", r"\]\]"),
    (r"\[\(", r"\)\]"),
    (r"\{\{", r"\}\}"),
    (r"\[", r"\]"),
    (r"\(", r"\)"),
    (r"\{", r"\}"),
]
_SHAPE = "|".join(f"{open_}(?P<q{i}>[\"']?)(?P<t{i}>.*?)(?P=q{i}){close}"
                  for i, (open_, close) in enumerate(_BRACKETS))

NODE_REF_RE = re.compile(rf"\s*(?P<id>{NODE_ID})(?:\s*(?:{_SHAPE}))?")

LINK_RE = re.compile(
    r"\s*(?P<start><)?"
    r"(?:--(?P<inline>[^->|][^|]*?)-{2,}|-+)"
    r"(?P<end>>)?"
    r"(?:\s*\|(?P<pipe>[^|]*)\|)?"
)

HEADER_RE = re.compile(r"^(?:flowchart|graph)(?:\s+(?P<dir>[A-Za-z]{2}))?\s*;?$", re.IGNORECASE)
STYLE_RE = re.compile(rf"^style\s+(?P<ids>{NODE_ID}(?:\s*,\s*{NODE_ID})*)\s+(?P<props>.+)$")
COMMENT_RE = re.compile(r"^%")
BLANK_RE = re.compile(r"^$")
IGNORED_RE = re.compile(r"^(?:subgraph\b.*|end|direction\s+\w+|classDef\b.*|class\s.*|linkStyle\b.*|click\s.*)$")
STATEMENT_RE = re.compile(rf"^{NODE_ID}")

_DIRECTIONS = {
    "TB": Direction.TB,
    "TD": Direction.TB,
    "BT": Direction.TB,
    "LR": Direction.LR,
    "RL": Direction.LR,
}


def _ref_label(match: re.Match) -> Optional[str]:
    for i in range(len(_BRACKETS)):
        text = match.group(f"t{i}")
        if text is not None:
            return text
    return None


def parse_style_props(props: str) -> dict[str, str]:
    """Split `fill:#f9f,stroke:#333` into a dict."""
    result: dict[str, str] = {}
    for part in props.split(","):
        key, sep, value = part.partition(":")
        if sep and key.strip():
            result[key.strip()] = value.strip().rstrip(";")
    return result


# --- Handlers ---
# A handler returns False when the line turns out to be unreadable.

def _ignore(match: re.Match, line: str, result: ParseResult) -> bool:
    return True


def _header(match: re.Match, line: str, result: ParseResult) -> bool:
    token = (match.group("dir") or "TB").upper()
    result.direction = _DIRECTIONS.get(token, Direction.TB)
    return True


def _style(match: re.Match, line: str, result: ParseResult) -> bool:
    props = parse_style_props(match.group("props"))
    for node_id in re.split(r"\s*,\s*", match.group("ids")):
        result.styles.setdefault(node_id, {}).update(props)
    return True


def _statement(match: re.Match, line: str, result: ParseResult) -> bool:
    """Edge chain or node declaration. Commits only if the whole line reads."""
    text = line.rstrip(";").rstrip()
    refs: list[tuple[str, Optional[str]]] = []
    links: list[tuple[str, str]] = []  # (label, arrow)

    ref = NODE_REF_RE.match(text)
    if ref is None:
        return False
    refs.append((ref.group("id"), _ref_label(ref)))
    pos = ref.end()

    while pos < len(text):
        link = LINK_RE.match(text, pos)
        if link is None or link.end() == pos:
            return False
        target = NODE_REF_RE.match(text, link.end())
        if target is None:
            return False
        label = link.group("pipe") or link.group("inline") or ""
        if link.group("start") and link.group("end"):
            arrow = ArrowType.BIDIRECTIONAL.value
        else:
            arrow = ArrowType.SINGLE.value
        links.append((label.strip(), arrow))
        refs.append((target.group("id"), _ref_label(target)))
        pos = target.end()

    if not links and refs[0][1] is None:
        # A bare id is not a statement we accept
        return False

    for node_id, label in refs:
        result.touch(node_id, label)
    for (label, arrow), (source, _), (target, _) in zip(links, refs, refs[1:]):
        result.edges.append(ParsedEdge(source=source, target=target, label=label, arrow=arrow))
    return True


Handler = Callable[[re.Match, str, ParseResult], bool]

# Order matters: first match wins.
RULES: list[tuple[re.Pattern, Handler]] = [
    (BLANK_RE, _ignore),
    (COMMENT_RE, _ignore),
    (HEADER_RE, _header),
    (STYLE_RE, _style),
    (IGNORED_RE, _ignore),
    (STATEMENT_RE, _statement),
]


def parse_flowchart(text: Optional[str]) -> ParseResult:
    """
    Parse normalized flowchart text into nodes, edges and styles.

    Never raises; unreadable lines are recorded in `dropped`.
    """
    result = ParseResult()
    if not text:
        return result

    for lineno, raw in enumerate(text.splitlines(), start=1):
        line = raw.strip()
        for pattern, handler in RULES:
            match = pattern.match(line)
            if match is None:
                continue
            if not handler(match, line, result):
                logger.debug("Dropped unparseable line %d: %r", lineno, line)
                result.dropped.append(lineno)
            break
        else:
            logger.debug("Dropped unparseable line %d: %r", lineno, line)
            result.dropped.append(lineno)

    return result
