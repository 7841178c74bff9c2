"""
Pydantic request models for the flowchart API.

Graph models themselves live in flowchart_core.models; these only describe
request bodies.
"""
from typing import Optional
from pydantic import BaseModel

from flowchart_core import NodeKind


class SourceRequest(BaseModel):
    """Replace the flowchart with freshly parsed text."""
    text: str = ""
    direction: Optional[str] = None  # "TB" | "LR"; header direction if omitted


class CreateNodeRequest(BaseModel):
    """Request to create a new node."""
    kind: str = NodeKind.DEFAULT.value
    x: Optional[float] = None
    y: Optional[float] = None


class UpdateNodeRequest(BaseModel):
    """Request to update an existing node (partial update)."""
    label: Optional[str] = None
    kind: Optional[str] = None
    x: Optional[float] = None
    y: Optional[float] = None
    width: Optional[float] = None
    height: Optional[float] = None
    fill: Optional[str] = None
    stroke: Optional[str] = None
    color: Optional[str] = None  # Font colour


class CreateEdgeRequest(BaseModel):
    """Request to create a new edge."""
    source: str
    target: str
    arrow: Optional[str] = None  # "single" | "bidirectional"; editor default if omitted
    label: str = ""


class LayoutRequest(BaseModel):
    """Request to relayout the flowchart."""
    direction: Optional[str] = None


class FontSettingsRequest(BaseModel):
    """Font settings applied to every node."""
    size: int = 12
    color: str = "#1e3a8a"


class IntentRequest(BaseModel):
    """A renderer intent, e.g. {"type": "node_click", "node_id": "A"}."""
    type: str
    node_id: Optional[str] = None
    edge_id: Optional[str] = None
    source: Optional[str] = None
    target: Optional[str] = None
    text: Optional[str] = None
    x: Optional[float] = None
    y: Optional[float] = None
    width: Optional[float] = None
    height: Optional[float] = None
    confirmed: Optional[bool] = None
