"""
Flowchart Editor Backend - FastAPI Application

This is the host-side adapter around the flowchart editor. It provides:
- REST API for the editor session (source text, nodes, edges, layout, undo/redo)
- Renderer intents over HTTP and WebSocket
- WebSocket broadcasts of flowchart_updated / edit_requested events
- CORS configuration for local frontend development
"""
import asyncio
import json
import logging
import os
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, WebSocket, WebSocketDisconnect, HTTPException
from fastapi.middleware.cors import CORSMiddleware

from flowchart_core import NodeKind, validation_summary

from .editor import ANIMATION_SECONDS, flowchart_editor
from .models import (
    SourceRequest,
    CreateNodeRequest,
    UpdateNodeRequest,
    CreateEdgeRequest,
    LayoutRequest,
    FontSettingsRequest,
    IntentRequest,
)
from .websocket_manager import ws_manager

logger = logging.getLogger(__name__)

HOST = os.environ.get("FLOWCHART_HOST", "127.0.0.1")
PORT = int(os.environ.get("FLOWCHART_PORT", "8765"))
CORS_ORIGINS = os.environ.get(
    "FLOWCHART_CORS_ORIGINS",
    "http://localhost:5173,http://localhost:3000,http://127.0.0.1:5173",
).split(",")


# --- Async change notification ---
# Bridge between sync editor callbacks and async WebSocket broadcasts

_change_event: Optional[asyncio.Event] = None
_pending_edit_requests: list[tuple[str, str]] = []


def on_flowchart_change():
    """Callback for editor changes - sets event for async handler."""
    if _change_event is not None:
        _change_event.set()


def on_edit_requested(node_id: str, label: str):
    """Callback for label-edit requests - queued for the broadcaster."""
    _pending_edit_requests.append((node_id, label))
    on_flowchart_change()


flowchart_editor.on_change(on_flowchart_change)
flowchart_editor.on_request_edit(on_edit_requested)


async def change_broadcaster(event: asyncio.Event):
    """Background task that broadcasts changes to WebSocket clients."""
    while True:
        await event.wait()
        event.clear()

        while _pending_edit_requests:
            node_id, label = _pending_edit_requests.pop(0)
            await ws_manager.notify_edit_requested(node_id, label)

        await ws_manager.notify_flowchart_updated()


def _schedule_animation_end():
    """Clear the relayout animation flag once it has run its course."""
    loop = asyncio.get_running_loop()
    loop.call_later(ANIMATION_SECONDS, flowchart_editor.tick)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan handler for startup/shutdown tasks."""
    global _change_event
    _change_event = asyncio.Event()

    broadcaster_task = asyncio.create_task(change_broadcaster(_change_event))

    yield

    # Cleanup
    broadcaster_task.cancel()
    try:
        await broadcaster_task
    except asyncio.CancelledError:
        pass
    _change_event = None


# --- FastAPI App ---

app = FastAPI(
    title="Flowchart Editor API",
    description="Backend API for the interactive flowchart editor",
    version="1.0.0",
    lifespan=lifespan
)

# CORS for local development
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# --- Health Check ---

@app.get("/api/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "ok", "connections": ws_manager.connection_count}


# --- Flowchart State ---

@app.get("/api/flowchart")
async def get_flowchart():
    """Get the current editor snapshot."""
    return flowchart_editor.snapshot()


@app.post("/api/flowchart/source")
async def load_source(request: SourceRequest):
    """Replace the flowchart with the parse of new source text."""
    try:
        graph = flowchart_editor.load_text(request.text, request.direction)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"success": True, "flowchart": graph.to_json_dict()}


@app.get("/api/flowchart/validate")
async def validate_flowchart():
    """
    Validate the current flowchart for structural issues.

    Returns a list of issues (errors, warnings, info) and a summary.
    """
    issues = flowchart_editor.validate()
    return {
        "success": True,
        "issues": [issue.to_dict() for issue in issues],
        "summary": validation_summary(issues)
    }


# --- Undo/Redo ---

@app.post("/api/undo")
async def undo():
    """Undo the last action."""
    graph = flowchart_editor.undo()
    if graph:
        return {"success": True, "flowchart": graph.to_json_dict()}
    return {"success": False, "message": "Nothing to undo"}


@app.post("/api/redo")
async def redo():
    """Redo the last undone action."""
    graph = flowchart_editor.redo()
    if graph:
        return {"success": True, "flowchart": graph.to_json_dict()}
    return {"success": False, "message": "Nothing to redo"}


# --- Node Operations ---

@app.post("/api/nodes")
async def create_node(request: CreateNodeRequest):
    """Create a new node of the given kind."""
    if request.kind not in {k.value for k in NodeKind}:
        raise HTTPException(status_code=400, detail=f"Unknown node kind: {request.kind}")
    position = None
    if request.x is not None and request.y is not None:
        position = (request.x, request.y)
    node = flowchart_editor.add_node(request.kind, position)
    return {"success": True, "node": node.to_json_dict()}


@app.get("/api/nodes/{node_id}")
async def get_node(node_id: str):
    """Get a specific node."""
    node = flowchart_editor.get_node(node_id)
    if node:
        return {"success": True, "node": node.to_json_dict()}
    raise HTTPException(status_code=404, detail="Node not found")


@app.patch("/api/nodes/{node_id}")
async def update_node(node_id: str, request: UpdateNodeRequest):
    """Update a node (label, kind, position, size, style)."""
    node = flowchart_editor.get_node(node_id)
    if node is None:
        raise HTTPException(status_code=404, detail="Node not found")

    if request.kind is not None:
        if flowchart_editor.set_kind(node_id, request.kind) is None:
            raise HTTPException(status_code=400, detail=f"Unknown node kind: {request.kind}")
    if request.label is not None:
        flowchart_editor.edit_label(node_id, request.label)
    if request.x is not None or request.y is not None:
        flowchart_editor.move_node(
            node_id,
            request.x if request.x is not None else node.position.x,
            request.y if request.y is not None else node.position.y,
        )
    if request.width is not None or request.height is not None:
        flowchart_editor.resize_node(
            node_id,
            request.width if request.width is not None else node.size.width,
            request.height if request.height is not None else node.size.height,
        )
    style = {
        key: value
        for key, value in (("fill", request.fill), ("stroke", request.stroke), ("color", request.color))
        if value is not None
    }
    if style:
        flowchart_editor.restyle_node(node_id, **style)

    return {"success": True, "node": flowchart_editor.get_node(node_id).to_json_dict()}


@app.delete("/api/nodes/{node_id}")
async def delete_node(node_id: str):
    """Delete a node and its connected edges (the caller has confirmed)."""
    if flowchart_editor.delete_node(node_id):
        return {"success": True}
    raise HTTPException(status_code=404, detail="Node not found")


# --- Edge Operations ---

@app.post("/api/edges")
async def create_edge(request: CreateEdgeRequest):
    """Connect two existing nodes."""
    try:
        edge = flowchart_editor.connect(request.source, request.target, request.arrow, request.label)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    if edge is None:
        raise HTTPException(status_code=404, detail="Source or target node not found")
    return {"success": True, "edge": edge.to_json_dict()}


@app.get("/api/edges/{edge_id}")
async def get_edge(edge_id: str):
    """Get a specific edge."""
    edge = flowchart_editor.get_edge(edge_id)
    if edge:
        return {"success": True, "edge": edge.to_json_dict()}
    raise HTTPException(status_code=404, detail="Edge not found")


@app.delete("/api/edges/{edge_id}")
async def delete_edge(edge_id: str):
    """Delete an edge (the caller has confirmed)."""
    if flowchart_editor.delete_edge(edge_id):
        return {"success": True}
    raise HTTPException(status_code=404, detail="Edge not found")


# --- Layout & Style ---

@app.post("/api/layout")
async def relayout(request: LayoutRequest):
    """Recompute node positions with the layered layout."""
    try:
        graph = flowchart_editor.relayout(request.direction)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    _schedule_animation_end()
    return {"success": True, "flowchart": graph.to_json_dict()}


@app.post("/api/style/font")
async def apply_font_settings(request: FontSettingsRequest):
    """Apply font size and colour to every node."""
    count = flowchart_editor.apply_font_settings(request.size, request.color)
    return {"success": True, "updated": count}


# --- Renderer Intents ---

def _dispatch_intent(intent: dict) -> dict:
    result = flowchart_editor.handle_intent(intent)
    if hasattr(result, "to_json_dict"):
        result = result.to_json_dict()
    elif hasattr(result, "value"):
        result = result.value
    return {"success": True, "result": result, "state": flowchart_editor.snapshot()}


@app.post("/api/intents")
async def post_intent(request: IntentRequest):
    """Apply a renderer intent (click, double-click, drag, delete, connect)."""
    try:
        return _dispatch_intent(request.model_dump(exclude_none=True))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


# --- WebSocket ---

@app.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket):
    """
    WebSocket endpoint for renderers.

    Clients receive flowchart_updated / edit_requested events and may send
    intents as JSON objects, or "ping".
    """
    await ws_manager.connect(websocket)

    try:
        while True:
            data = await websocket.receive_text()
            if data == "ping":
                await websocket.send_text('{"type": "pong"}')
                continue
            try:
                reply = _dispatch_intent(json.loads(data))
            except (ValueError, AttributeError) as e:
                reply = {"success": False, "error": str(e)}
            await websocket.send_text(json.dumps({"type": "intent_result", **reply}))
    except WebSocketDisconnect:
        await ws_manager.disconnect(websocket)
    except Exception as e:
        logger.warning("WebSocket closed on error: %s", e)
        await ws_manager.disconnect(websocket)


# --- Run with uvicorn ---

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=HOST, port=PORT)
