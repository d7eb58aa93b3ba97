"""
Mapin Backend - FastAPI Application

This is the HTTP front door for one editing session. It provides:
- REST API for gestures, undo/redo, import/export and document switching
- WebSocket endpoint for change and autosave-status notifications
- CORS configuration for local frontend development
"""
import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, Optional

from fastapi import Body, FastAPI, HTTPException, Request, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response
from pydantic import BaseModel, ValidationError

from ..config import EditorSettings, configure_logging
from ..errors import InvalidDocument, NotAuthenticated, NotFound, ParseFailure, PersistenceFailure
from ..identity import Identity, StaticIdentity
from ..interaction import Outcome
from ..models import PALETTE, SyncStatus
from ..serialization import EXPORT_FILENAME, dumps_document, loads_document
from ..session import SessionController
from ..store import DocumentStore, HttpDocumentStore, JsonFileStore
from ..timers import AsyncioScheduler
from ..validation import validate_document, validation_summary
from .websocket_manager import WebSocketManager

logger = logging.getLogger(__name__)


def build_store(settings: EditorSettings) -> DocumentStore:
    """Remote store when a URL is configured, JSON files otherwise."""
    if settings.store_url:
        return HttpDocumentStore(settings.store_url, token=settings.store_token)
    return JsonFileStore(settings.store_dir)


def _serialize(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json", by_alias=True, exclude_none=True)
    return value


def _outcome_response(outcome: Outcome) -> dict:
    return {
        "success": True,
        "committed": outcome.committed,
        "value": _serialize(outcome.value),
        "request": _serialize(outcome.request),
    }


class CreateDocumentRequest(BaseModel):
    title: str = "Untitled process map"


class AnswerRequest(BaseModel):
    value: Optional[str] = None


def create_app(
    settings: Optional[EditorSettings] = None,
    store: Optional[DocumentStore] = None,
    identity: Optional[Identity] = None,
) -> FastAPI:
    """Build the API around a fresh editing session."""
    settings = settings or EditorSettings()
    owns_store = store is None
    store = store if store is not None else build_store(settings)
    identity = identity if identity is not None else StaticIdentity(settings.user_id)

    session = SessionController.from_settings(settings, store, AsyncioScheduler(), identity=identity)
    ws_manager = WebSocketManager()

    # --- Async change notification ---
    # Bridge between sync session callbacks and async WebSocket broadcasts

    events: asyncio.Queue = asyncio.Queue()

    def on_document_change():
        events.put_nowait({"type": "document_updated"})

    def on_sync_status(status: SyncStatus):
        events.put_nowait({"type": "sync_status", "status": status.value})

    async def change_broadcaster():
        """Background task that broadcasts session events to WebSocket clients."""
        while True:
            event = await events.get()
            if event["type"] == "sync_status":
                await ws_manager.notify_sync_status(event["status"], session.active_document_id)
            else:
                await ws_manager.notify_document_updated(session.active_document_id)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Lifespan handler for startup/shutdown tasks."""
        session.on_change(on_document_change)
        session.on_status(on_sync_status)
        broadcaster_task = asyncio.create_task(change_broadcaster())

        yield

        session.close()
        if owns_store and isinstance(store, HttpDocumentStore):
            store.close()
        broadcaster_task.cancel()
        try:
            await broadcaster_task
        except asyncio.CancelledError:
            pass

    app = FastAPI(
        title="Mapin API",
        description="Editing session API for the process mapper",
        version="1.0.0",
        lifespan=lifespan
    )
    app.state.session = session
    app.state.store = store
    app.state.settings = settings
    app.state.ws_manager = ws_manager

    # CORS for local development
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # --- Health Check ---

    @app.get("/api/health")
    async def health_check():
        """Health check endpoint."""
        return {
            "status": "ok",
            "connections": ws_manager.connection_count,
            "sync_status": session.sync_status.value,
        }

    # --- Document State ---

    @app.get("/api/document")
    async def get_document():
        """Get the current session state."""
        return session.get_state()

    @app.get("/api/document/validate")
    async def validate_current_document():
        """Validate the live document and summarize the issues."""
        issues = validate_document(session.current_document())
        return {
            "success": True,
            "issues": [i.to_dict() for i in issues],
            "summary": validation_summary(issues),
        }

    # --- Gestures ---

    @app.post("/api/gestures")
    async def dispatch_gesture(gesture: dict = Body(...)):
        """Apply one gesture (drop, place, connect, rename, move, resize, select, delete)."""
        try:
            outcome = session.dispatch(gesture)
        except ValidationError as e:
            raise HTTPException(status_code=422, detail=str(e))
        return _outcome_response(outcome)

    @app.post("/api/requests/{request_id}")
    async def answer_request(request_id: str, answer: AnswerRequest):
        """Answer a pending input request (e.g. the new label for a rename)."""
        try:
            outcome = session.respond(request_id, answer.value)
        except NotFound as e:
            raise HTTPException(status_code=404, detail=str(e))
        return _outcome_response(outcome)

    @app.delete("/api/requests/{request_id}")
    async def cancel_request(request_id: str):
        """Dismiss a pending input request."""
        if session.cancel_request(request_id):
            return {"success": True}
        raise HTTPException(status_code=404, detail="Request not found")

    # --- Undo/Redo ---

    @app.post("/api/undo")
    async def undo():
        """Undo the last action."""
        document = session.undo()
        if document:
            return {"success": True, "document": document.to_json_dict()}
        return {"success": False, "message": "Nothing to undo"}

    @app.post("/api/redo")
    async def redo():
        """Redo the last undone action."""
        document = session.redo()
        if document:
            return {"success": True, "document": document.to_json_dict()}
        return {"success": False, "message": "Nothing to redo"}

    @app.post("/api/reset")
    async def reset():
        """Replace the document with the starter map."""
        document = session.reset()
        return {"success": True, "document": document.to_json_dict()}

    # --- Stored Documents ---

    @app.get("/api/documents")
    async def list_documents():
        """List stored documents, most recently updated first."""
        try:
            documents = session.list_documents()
        except PersistenceFailure as e:
            raise HTTPException(status_code=502, detail=str(e))
        return {
            "success": True,
            "active_document_id": session.active_document_id,
            "documents": [d.model_dump(mode="json") for d in documents],
        }

    @app.post("/api/documents")
    async def create_document(request: CreateDocumentRequest):
        """Create an empty document and make it active."""
        try:
            document_id = session.create_document(request.title)
        except NotAuthenticated as e:
            raise HTTPException(status_code=401, detail=str(e))
        except PersistenceFailure as e:
            raise HTTPException(status_code=502, detail=str(e))
        return {"success": True, "id": document_id}

    @app.post("/api/documents/{document_id}/select")
    async def select_document(document_id: str):
        """Load a stored document into the session."""
        try:
            document = session.select_document(document_id)
        except NotFound as e:
            raise HTTPException(status_code=404, detail=str(e))
        except (InvalidDocument, ParseFailure) as e:
            raise HTTPException(status_code=400, detail=f"Failed to load document: {e}")
        except PersistenceFailure as e:
            raise HTTPException(status_code=502, detail=str(e))
        return {"success": True, "id": document_id, "document": document.to_json_dict()}

    @app.delete("/api/documents/{document_id}")
    async def delete_document(document_id: str):
        """Delete a stored document."""
        try:
            session.delete_document(document_id)
        except PersistenceFailure as e:
            raise HTTPException(status_code=502, detail=str(e))
        return {"success": True}

    # --- Export / Import ---

    @app.get("/api/export")
    async def export_document():
        """Download the live document as process-map.json."""
        return Response(
            content=dumps_document(session.export_snapshot()),
            media_type="application/json",
            headers={"Content-Disposition": f'attachment; filename="{EXPORT_FILENAME}"'},
        )

    @app.post("/api/import")
    async def import_document(request: Request):
        """Replace the live document with an uploaded export."""
        payload = await request.body()
        try:
            document = session.import_snapshot(loads_document(payload))
        except (InvalidDocument, ParseFailure) as e:
            raise HTTPException(status_code=400, detail=f"Failed to load document: {e}")
        return {"success": True, "document": document.to_json_dict()}

    # --- Enums for Frontend ---

    @app.get("/api/enums/shapes")
    async def get_shapes():
        """Get the shape palette."""
        return {"shapes": [entry.model_dump(mode="json") for entry in PALETTE]}

    # --- WebSocket ---

    @app.websocket("/ws")
    async def websocket_endpoint(websocket: WebSocket, document: Optional[str] = None):
        """
        WebSocket endpoint for real-time updates.

        Clients connect here to receive document_updated and sync_status events,
        optionally only for one stored document (`/ws?document=<id>`).
        """
        await ws_manager.connect(websocket, document_id=document)

        try:
            while True:
                data = await websocket.receive_text()
                if data == "ping":
                    await websocket.send_text('{"type": "pong"}')
        except WebSocketDisconnect:
            await ws_manager.disconnect(websocket)

    return app


# --- Run with uvicorn ---

def run():
    import uvicorn

    settings = EditorSettings()
    configure_logging(settings.log_level)
    uvicorn.run(create_app(settings), host=settings.host, port=settings.port)


if __name__ == "__main__":
    run()
