"""
Flowchart text normalization.

Brings raw input into the canonical form the parser expects:
- a header line (`flowchart <DIR>` / `graph <DIR>`) is always first
- every line is trimmed
- empty `subgraph ... end` blocks get a placeholder node

Best-effort only; never raises.
"""

import logging
import re
from typing import Optional

logger = logging.getLogger(__name__)

DEFAULT_HEADER = "flowchart TD"

HEADER_RE = re.compile(r"^(flowchart|graph)(?:\s+([A-Za-z]{2}))?\s*;?$", re.IGNORECASE)
SUBGRAPH_RE = re.compile(r"^subgraph\b\s*(.*)$")


def _placeholder_for(title: str, index: int) -> str:
    slug = re.sub(r"\W+", "_", title).strip("_") or f"subgraph{index}"
    return f'{slug}_placeholder[" "]'


def _fill_empty_subgraphs(lines: list[str]) -> list[str]:
    result: list[str] = []
    count = 0
    i = 0
    while i < len(lines):
        line = lines[i]
        result.append(line)
        match = SUBGRAPH_RE.match(line)
        if match:
            count += 1
            # Look ahead over blank lines for an immediate `end`
            j = i + 1
            while j < len(lines) and not lines[j]:
                j += 1
            if j < len(lines) and lines[j] == "end":
                logger.debug("Empty subgraph %r gets a placeholder node", match.group(1))
                result.append(_placeholder_for(match.group(1), count))
        i += 1
    return result


def preprocess(text: Optional[str]) -> str:
    """Normalize raw flowchart text. Idempotent."""
    if not text:
        return DEFAULT_HEADER

    lines = [line.strip() for line in text.strip().splitlines()]

    header = HEADER_RE.match(lines[0]) if lines else None
    if header is None:
        lines.insert(0, DEFAULT_HEADER)
    elif header.group(2) is None:
        lines[0] = f"{header.group(1)} TD"

    return "\n".join(_fill_empty_subgraphs(lines))
