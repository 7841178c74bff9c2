"""
Flowchart Editor Backend - interactive editor session and host adapters.

The FlowchartEditor owns the live graph; the FastAPI app and the CLI are
thin adapters around it and around flowchart_core.
"""

from .editor import FlowchartEditor, EditorMode, ANIMATION_SECONDS

__all__ = ["FlowchartEditor", "EditorMode", "ANIMATION_SECONDS"]
