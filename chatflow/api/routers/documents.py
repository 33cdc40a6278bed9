"""Editing-session endpoints for flow documents.

Each open document is a :class:`~chatflow.flow.session.FlowSession` held in
``request.app.state.sessions`` under its session id.

Routes
------
POST   /documents                                Open a document (new, or loaded from ``path``)
GET    /documents                                List open documents
GET    /documents/{doc_id}                       Full document: metadata + nodes
DELETE /documents/{doc_id}                       Close (discard) a document
PUT    /documents/{doc_id}/info                  Update bot-level settings
POST   /documents/{doc_id}/save                  Save (optionally to a new ``path``)
POST   /documents/{doc_id}/undo                  Undo the last edit
POST   /documents/{doc_id}/redo                  Redo the last undone edit
GET    /documents/{doc_id}/issues                Integrity report
POST   /documents/{doc_id}/entry                 Set the entry node
POST   /documents/{doc_id}/nodes                 Create a node
GET    /documents/{doc_id}/nodes/{node_id}       Fetch a node
PUT    /documents/{doc_id}/nodes/{node_id}       Replace a node's content
DELETE /documents/{doc_id}/nodes/{node_id}       Delete a node
POST   /documents/{doc_id}/nodes/{node_id}/move  Offset a node
POST   /documents/{doc_id}/nodes/{node_id}/resize  Resize a node
PUT    /documents/{doc_id}/nodes/{node_id}/branches/{which}  Replace one branch
POST   /documents/{doc_id}/nodes/{node_id}/copy  Copy a node to the session clipboard
POST   /documents/{doc_id}/nodes/{node_id}/cut   Cut a node to the session clipboard
POST   /documents/{doc_id}/paste                 Paste the session clipboard
"""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import asdict
from typing import Any, Iterator, Optional

from fastapi import APIRouter, HTTPException, Request, Response
from pydantic import BaseModel

from chatflow.flow.errors import (
    ConditionError,
    DocumentBusyError,
    DocumentParseError,
    DocumentWriteError,
    InvalidReference,
)
from chatflow.flow.integrity import check_graph
from chatflow.flow.models import Branch, BranchKind, Node
from chatflow.flow.session import FlowSession
from chatflow.flow.taxonomy import validate_condition

router = APIRouter()


# ---------------------------------------------------------------------------
# Pydantic schemas
# ---------------------------------------------------------------------------

class BranchModel(BaseModel):
    message: str = ""
    action: str = "nop"
    value: str = ""
    move_to: int = 0


class GeometryModel(BaseModel):
    x: int
    y: int
    width: int
    height: int


class NodeContent(BaseModel):
    message: str
    validation_type: str = "nop"
    validation_condition: str = ""
    script: str = ""
    on_success: BranchModel = BranchModel()
    on_error: BranchModel = BranchModel()


class NodeResponse(NodeContent):
    id: int
    geometry: GeometryModel


class DocumentOpen(BaseModel):
    path: Optional[str] = None
    locale: str = ""


class DocumentSummary(BaseModel):
    id: str
    title: str
    path: Optional[str]
    modified: bool
    node_count: int


class DocumentResponse(DocumentSummary):
    entry_id: int
    locale: str
    model_name: str
    model_guidelines: str
    model_script: str
    params: dict[str, str]
    can_undo: bool
    can_redo: bool
    nodes: list[NodeResponse]


class InfoUpdate(BaseModel):
    name: Optional[str] = None
    locale: Optional[str] = None
    guidelines: Optional[str] = None
    script: Optional[str] = None
    params: Optional[dict[str, str]] = None


class Point(BaseModel):
    x: int
    y: int


class MoveRequest(BaseModel):
    dx: int
    dy: int


class ResizeRequest(BaseModel):
    width: int
    height: int


class EntryRequest(BaseModel):
    node_id: int


class SaveRequest(BaseModel):
    path: Optional[str] = None


class HistoryResponse(BaseModel):
    applied: bool
    can_undo: bool
    can_redo: bool


class IssueResponse(BaseModel):
    severity: str
    message: str
    node_id: int


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _sessions(request: Request) -> dict[str, FlowSession]:
    return request.app.state.sessions


def _session(request: Request, doc_id: str) -> FlowSession:
    session = _sessions(request).get(doc_id)
    if session is None:
        raise HTTPException(status_code=404, detail=f"Document '{doc_id}' is not open.")
    return session


@contextmanager
def _flow_errors() -> Iterator[None]:
    """Translate flow failures into HTTP errors."""
    try:
        yield
    except InvalidReference as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except DocumentBusyError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    except (ConditionError, DocumentParseError) as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    except DocumentWriteError as exc:
        raise HTTPException(status_code=500, detail=str(exc)) from exc


def _node_response(node: Node) -> dict[str, Any]:
    return asdict(node)


def _summary(session: FlowSession) -> dict[str, Any]:
    return {
        "id": session.id,
        "title": session.title,
        "path": str(session.path) if session.path else None,
        "modified": session.modified,
        "node_count": len(session.graph),
    }


def _document_response(session: FlowSession) -> dict[str, Any]:
    graph = session.graph
    return {
        **_summary(session),
        "entry_id": graph.entry_id,
        "locale": graph.locale,
        "model_name": graph.model_name,
        "model_guidelines": graph.model_guidelines,
        "model_script": graph.model_script,
        "params": graph.params,
        "can_undo": graph.history.can_undo,
        "can_redo": graph.history.can_redo,
        "nodes": [_node_response(n) for n in graph.nodes()],
    }


def _history_response(session: FlowSession, applied: bool) -> dict[str, Any]:
    return {
        "applied": applied,
        "can_undo": session.graph.history.can_undo,
        "can_redo": session.graph.history.can_redo,
    }


def _branch(model: BranchModel) -> Branch:
    return Branch(model.message, model.action, model.value, model.move_to)


# ---------------------------------------------------------------------------
# Document endpoints
# ---------------------------------------------------------------------------

@router.post("", response_model=DocumentResponse, status_code=201)
def open_document(body: DocumentOpen, request: Request) -> dict[str, Any]:
    """Open a flow document, or start a new empty one when no path is given."""
    if body.path:
        try:
            session = FlowSession.open(body.path)
        except FileNotFoundError as exc:
            raise HTTPException(status_code=404, detail=f"No such document: {body.path}") from exc
        except DocumentParseError as exc:
            raise HTTPException(status_code=422, detail=str(exc)) from exc
    else:
        session = FlowSession()
        session.graph.locale = body.locale
    _sessions(request)[session.id] = session
    return _document_response(session)


@router.get("", response_model=list[DocumentSummary])
def list_documents(request: Request) -> list[dict[str, Any]]:
    """Return a summary of every open document."""
    return [_summary(s) for s in _sessions(request).values()]


@router.get("/{doc_id}", response_model=DocumentResponse)
def get_document(doc_id: str, request: Request) -> dict[str, Any]:
    return _document_response(_session(request, doc_id))


@router.delete("/{doc_id}")
def close_document(doc_id: str, request: Request) -> Response:
    """Discard an open document (unsaved changes are lost)."""
    _session(request, doc_id)
    del _sessions(request)[doc_id]
    return Response(status_code=204)


@router.put("/{doc_id}/info", response_model=DocumentResponse)
def update_info(doc_id: str, body: InfoUpdate, request: Request) -> dict[str, Any]:
    session = _session(request, doc_id)
    with _flow_errors():
        session.graph.set_info(**body.model_dump(exclude_none=True))
    return _document_response(session)


@router.post("/{doc_id}/save", response_model=DocumentSummary)
async def save_document(doc_id: str, body: SaveRequest, request: Request) -> dict[str, Any]:
    """Save the document; the write runs off the event loop."""
    session = _session(request, doc_id)
    if body.path is None and session.path is None:
        raise HTTPException(status_code=422, detail="Document has no path yet; a path is required.")
    with _flow_errors():
        await session.save_async(body.path)
    return _summary(session)


@router.post("/{doc_id}/undo", response_model=HistoryResponse)
def undo(doc_id: str, request: Request) -> dict[str, Any]:
    session = _session(request, doc_id)
    with _flow_errors():
        applied = session.graph.undo()
    return _history_response(session, applied)


@router.post("/{doc_id}/redo", response_model=HistoryResponse)
def redo(doc_id: str, request: Request) -> dict[str, Any]:
    session = _session(request, doc_id)
    with _flow_errors():
        applied = session.graph.redo()
    return _history_response(session, applied)


@router.get("/{doc_id}/issues", response_model=list[IssueResponse])
def issues(doc_id: str, request: Request) -> list[dict[str, Any]]:
    """Return the integrity report for the document."""
    session = _session(request, doc_id)
    return [
        {"severity": i.severity.value, "message": i.message, "node_id": i.node_id}
        for i in check_graph(session.graph)
    ]


@router.post("/{doc_id}/entry", response_model=DocumentSummary)
def set_entry(doc_id: str, body: EntryRequest, request: Request) -> dict[str, Any]:
    session = _session(request, doc_id)
    with _flow_errors():
        session.graph.set_entry(body.node_id)
    return _summary(session)


@router.post("/{doc_id}/paste", response_model=NodeResponse, status_code=201)
def paste(doc_id: str, body: Point, request: Request) -> dict[str, Any]:
    session = _session(request, doc_id)
    with _flow_errors():
        node = session.paste((body.x, body.y))
    return _node_response(node)


# ---------------------------------------------------------------------------
# Node endpoints
# ---------------------------------------------------------------------------

@router.post("/{doc_id}/nodes", response_model=NodeResponse, status_code=201)
def create_node(doc_id: str, body: Point, request: Request) -> dict[str, Any]:
    session = _session(request, doc_id)
    with _flow_errors():
        node = session.graph.create_node(body.x, body.y)
    return _node_response(node)


@router.get("/{doc_id}/nodes/{node_id}", response_model=NodeResponse)
def get_node(doc_id: str, node_id: int, request: Request) -> dict[str, Any]:
    session = _session(request, doc_id)
    with _flow_errors():
        node = session.graph.get_node(node_id)
    return _node_response(node)


@router.put("/{doc_id}/nodes/{node_id}", response_model=NodeResponse)
def edit_node(doc_id: str, node_id: int, body: NodeContent, request: Request) -> dict[str, Any]:
    """Replace a node's message, validation and branches."""
    session = _session(request, doc_id)
    data = Node(
        id=node_id,
        message=body.message,
        validation_type=body.validation_type,
        validation_condition=body.validation_condition,
        script=body.script,
        on_success=_branch(body.on_success),
        on_error=_branch(body.on_error),
    )
    with _flow_errors():
        validate_condition(data.validation_type, data.validation_condition)
        session.graph.edit_node(node_id, data)
        node = session.graph.get_node(node_id)
    return _node_response(node)


@router.delete("/{doc_id}/nodes/{node_id}")
def delete_node(doc_id: str, node_id: int, request: Request) -> Response:
    """Delete a node; branches pointing at it are cleared."""
    session = _session(request, doc_id)
    with _flow_errors():
        session.graph.delete_node(node_id)
    return Response(status_code=204)


@router.post("/{doc_id}/nodes/{node_id}/move", response_model=NodeResponse)
def move_node(doc_id: str, node_id: int, body: MoveRequest, request: Request) -> dict[str, Any]:
    session = _session(request, doc_id)
    with _flow_errors():
        session.graph.move_node(node_id, body.dx, body.dy)
        node = session.graph.get_node(node_id)
    return _node_response(node)


@router.post("/{doc_id}/nodes/{node_id}/resize", response_model=NodeResponse)
def resize_node(doc_id: str, node_id: int, body: ResizeRequest, request: Request) -> dict[str, Any]:
    session = _session(request, doc_id)
    with _flow_errors():
        session.graph.resize_node(node_id, body.width, body.height)
        node = session.graph.get_node(node_id)
    return _node_response(node)


@router.put("/{doc_id}/nodes/{node_id}/branches/{which}", response_model=NodeResponse)
def set_branch(
    doc_id: str, node_id: int, which: BranchKind, body: BranchModel, request: Request
) -> dict[str, Any]:
    session = _session(request, doc_id)
    with _flow_errors():
        session.graph.set_branch(node_id, which, _branch(body))
        node = session.graph.get_node(node_id)
    return _node_response(node)


@router.post("/{doc_id}/nodes/{node_id}/copy")
def copy_node(doc_id: str, node_id: int, request: Request) -> dict[str, str]:
    session = _session(request, doc_id)
    with _flow_errors():
        fragment = session.copy(node_id)
    return {"fragment": fragment}


@router.post("/{doc_id}/nodes/{node_id}/cut")
def cut_node(doc_id: str, node_id: int, request: Request) -> dict[str, str]:
    session = _session(request, doc_id)
    with _flow_errors():
        fragment = session.cut(node_id)
    return {"fragment": fragment}
