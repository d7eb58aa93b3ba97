"""
Session Controller - The one owner of the document being edited.

Flow of a gesture:
    dispatch(gesture) -> InteractionPipeline -> GraphModel
        -> committed? -> HistoryManager.commit + PersistenceSynchronizer.schedule
        -> change callbacks (re-render)

Undo/redo skip the pipeline and load a history snapshot straight into the
model; the restored state is autosaved like any other edit.
"""

import logging
import random
from typing import Any, Callable, Optional, Union

from pydantic import TypeAdapter, ValidationError

from .config import EditorSettings
from .errors import NotAuthenticated, ParseFailure
from .graph import GraphModel
from .history import HistoryManager
from .identity import Identity
from .interaction import Gesture, InputRequest, InteractionPipeline, Outcome
from .models import Document, DocumentSummary, SyncStatus, default_document
from .store import DocumentStore
from .sync import DEFAULT_DELAY, PersistenceSynchronizer
from .timers import Scheduler

logger = logging.getLogger(__name__)

_gesture_adapter = TypeAdapter(Gesture)


class SessionController:
    """
    Composes model, pipeline, history and synchronizer for one editor.

    The live Document never leaves this object: readers get deep copies.
    """

    def __init__(
        self,
        store: DocumentStore,
        scheduler: Scheduler,
        identity: Optional[Identity] = None,
        document: Optional[Document] = None,
        autosave_delay: float = DEFAULT_DELAY,
        max_history: Optional[int] = None,
        rng: Optional[random.Random] = None,
    ):
        self._store = store
        self._identity = identity
        self._model = GraphModel(document if document is not None else default_document())
        self._history = HistoryManager(max_history=max_history)
        self._history.reset(self._model.snapshot())
        self._pipeline = InteractionPipeline(self._model, rng=rng)
        self._sync = PersistenceSynchronizer(
            store, scheduler,
            get_document=lambda: self._model.document,
            identity=identity,
            delay=autosave_delay,
        )
        self._on_change_callbacks: list[Callable[[], Any]] = []

    @classmethod
    def from_settings(
        cls,
        settings: EditorSettings,
        store: DocumentStore,
        scheduler: Scheduler,
        identity: Optional[Identity] = None,
    ) -> "SessionController":
        return cls(
            store, scheduler,
            identity=identity,
            autosave_delay=settings.autosave_delay,
            max_history=settings.max_history,
        )

    # --- Properties ---

    @property
    def active_document_id(self) -> Optional[str]:
        return self._sync.document_id

    @property
    def sync_status(self) -> SyncStatus:
        return self._sync.status

    @property
    def history(self) -> HistoryManager:
        return self._history

    @property
    def can_undo(self) -> bool:
        return self._history.can_undo

    @property
    def can_redo(self) -> bool:
        return self._history.can_redo

    @property
    def pending_requests(self) -> list[InputRequest]:
        return self._pipeline.pending_requests

    # --- Change Callbacks ---

    def on_change(self, callback: Callable[[], Any]):
        """Register a callback for document changes (re-render trigger)."""
        self._on_change_callbacks.append(callback)

    def on_status(self, callback: Callable[[SyncStatus], Any]):
        """Register a callback for sync status transitions."""
        self._sync.on_status(callback)

    def _notify_change(self):
        for callback in self._on_change_callbacks:
            callback()

    def _commit(self):
        self._history.commit(self._model.snapshot())
        self._sync.schedule()
        self._notify_change()

    def _settle(self, outcome: Outcome) -> Outcome:
        if outcome.committed:
            self._commit()
        elif outcome.changed:
            # Selection only: keep the live history entry in step
            self._history.amend(self._model.snapshot())
            self._notify_change()
        return outcome

    # --- Editing ---

    def current_document(self) -> Document:
        return self._model.snapshot()

    def dispatch(self, gesture: Union[dict, Any]) -> Outcome:
        """Apply one gesture (a gesture model or its dict form)."""
        if isinstance(gesture, dict):
            gesture = _gesture_adapter.validate_python(gesture)
        return self._settle(self._pipeline.apply(gesture))

    def respond(self, request_id: str, value: Optional[str]) -> Outcome:
        """Answer an InputRequest emitted by an earlier gesture."""
        return self._settle(self._pipeline.resolve(request_id, value))

    def cancel_request(self, request_id: str) -> bool:
        return self._pipeline.cancel_request(request_id)

    def undo(self) -> Optional[Document]:
        """Undo the last committed mutation. Returns the new state, or None."""
        snapshot = self._history.undo()
        if snapshot is None:
            return None
        return self._restore(snapshot)

    def redo(self) -> Optional[Document]:
        """Redo the last undone mutation. Returns the new state, or None."""
        snapshot = self._history.redo()
        if snapshot is None:
            return None
        return self._restore(snapshot)

    def _restore(self, snapshot: Document) -> Document:
        self._model.replace_document(snapshot)
        self._sync.schedule()
        self._notify_change()
        return self._model.snapshot()

    def reset(self) -> Document:
        """Replace the live document with the starter map."""
        self._model.replace_document(default_document())
        self._commit()
        return self._model.snapshot()

    # --- Import / export ---

    def export_snapshot(self) -> Document:
        return self._model.snapshot()

    def import_snapshot(self, document: Union[Document, dict]) -> Document:
        """
        Replace the live document wholesale, as one committed mutation.

        Raises:
            ParseFailure: the payload is not shaped like a document
            InvalidDocument: the document breaks structural invariants
        """
        if not isinstance(document, Document):
            try:
                document = Document.model_validate(document)
            except ValidationError as e:
                raise ParseFailure(f"Malformed document: {e}") from e

        self._model.replace_document(document)
        self._pipeline.clear_requests()
        self._commit()
        return self._model.snapshot()

    # --- Documents ---

    def list_documents(self) -> list[DocumentSummary]:
        return self._store.list()

    def select_document(self, document_id: str) -> Document:
        """
        Make a stored document the active one.

        Pending autosaves for the previous document are dropped and the
        undo history starts over. On any load error the session is left
        exactly as it was.
        """
        document = self._store.load(document_id)
        self._model.replace_document(document)

        self._sync.set_document(document_id)
        self._pipeline.clear_requests()
        self._history.reset(self._model.snapshot())
        logger.info("Switched to document %s", document_id)
        self._notify_change()
        return self._model.snapshot()

    def create_document(self, title: str) -> str:
        """Create an empty stored document and switch to it."""
        if self._identity is None or not self._identity.is_authenticated():
            raise NotAuthenticated("Creating a document requires a signed-in user")

        document_id = self._store.create(title, owner=self._identity.user_id)
        logger.info("Created document %s (%s)", document_id, title)
        self.select_document(document_id)
        return document_id

    def delete_document(self, document_id: str):
        self._store.delete(document_id)
        if document_id == self.active_document_id:
            self._sync.set_document(None)

    def close(self):
        """Tear down: no further autosaves, in-flight results are ignored."""
        self._sync.cancel()
        self._pipeline.clear_requests()

    def get_state(self) -> dict:
        """Get the full current state for API responses."""
        return {
            "document": self._model.document.to_json_dict(),
            "active_document_id": self.active_document_id,
            "sync_status": self.sync_status.value,
            "can_undo": self.can_undo,
            "can_redo": self.can_redo,
            "pending_requests": [r.model_dump() for r in self.pending_requests],
        }
