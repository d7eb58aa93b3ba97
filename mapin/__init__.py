"""
Mapin - Process map editing core.

This package holds the editing session behind the process mapper: the
graph model, gesture handling, undo/redo history, debounced autosave and
the document stores, shared by the HTTP backend and any other front end.
"""

from .models import (
    # Enums
    NodeType,
    SyncStatus,
    # Core models
    Position,
    Size,
    Node,
    Edge,
    Document,
    DocumentSummary,
    PaletteEntry,
    PALETTE,
    default_document,
)
from .errors import (
    MapinError,
    NotFound,
    InvalidDocument,
    ParseFailure,
    PersistenceFailure,
    NotAuthenticated,
)
from .validation import validate_document, ValidationIssue, IssueSeverity
from .graph import GraphModel
from .history import HistoryManager
from .interaction import (
    # Gestures
    DropShape,
    PlaceShape,
    Connect,
    Rename,
    Move,
    Resize,
    Select,
    Delete,
    Gesture,
    # Pipeline
    InteractionPipeline,
    InputRequest,
    Outcome,
    Corner,
    ResizeTracker,
)
from .timers import VirtualClock, AsyncioScheduler
from .sync import PersistenceSynchronizer
from .store import MemoryDocumentStore, JsonFileStore, HttpDocumentStore
from .identity import StaticIdentity
from .serialization import dumps_document, loads_document
from .session import SessionController

__all__ = [
    # Enums
    "NodeType",
    "SyncStatus",
    # Models
    "Position",
    "Size",
    "Node",
    "Edge",
    "Document",
    "DocumentSummary",
    "PaletteEntry",
    "PALETTE",
    "default_document",
    # Errors
    "MapinError",
    "NotFound",
    "InvalidDocument",
    "ParseFailure",
    "PersistenceFailure",
    "NotAuthenticated",
    # Validation
    "validate_document",
    "ValidationIssue",
    "IssueSeverity",
    # Session parts
    "GraphModel",
    "HistoryManager",
    "DropShape",
    "PlaceShape",
    "Connect",
    "Rename",
    "Move",
    "Resize",
    "Select",
    "Delete",
    "Gesture",
    "InteractionPipeline",
    "InputRequest",
    "Outcome",
    "Corner",
    "ResizeTracker",
    "VirtualClock",
    "AsyncioScheduler",
    "PersistenceSynchronizer",
    # Collaborators
    "MemoryDocumentStore",
    "JsonFileStore",
    "HttpDocumentStore",
    "StaticIdentity",
    "dumps_document",
    "loads_document",
    # Session
    "SessionController",
]
