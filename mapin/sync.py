"""
Persistence Synchronizer - Debounced autosave of the active document.

State machine: SAVED -> SAVING -> {SAVED, ERROR}

- Every committed mutation re-arms a trailing-edge debounce timer
- When the timer fires, the document as it is *at that moment* is saved
- Failures only change the status; the next edit is the retry
- Cancelling (document switch, session close) bumps a generation counter
  so results of saves already in flight are discarded
"""

import logging
from functools import partial
from typing import Any, Callable, Optional

from .identity import Identity
from .models import Document, SyncStatus
from .store import DocumentStore
from .timers import Scheduler, TimerHandle

logger = logging.getLogger(__name__)

DEFAULT_DELAY = 0.8


class PersistenceSynchronizer:
    """Pushes the live document to a store after edits settle down."""

    def __init__(
        self,
        store: DocumentStore,
        scheduler: Scheduler,
        get_document: Callable[[], Document],
        identity: Optional[Identity] = None,
        delay: float = DEFAULT_DELAY,
    ):
        self._store = store
        self._scheduler = scheduler
        self._get_document = get_document
        self._identity = identity
        self._delay = delay

        self._document_id: Optional[str] = None
        self._status = SyncStatus.SAVED
        self._timer: Optional[TimerHandle] = None
        self._generation = 0
        self._dispatched = 0  # Sequence number of the latest save sent
        self._on_status_callbacks: list[Callable[[SyncStatus], Any]] = []

    # --- Properties ---

    @property
    def status(self) -> SyncStatus:
        return self._status

    @property
    def document_id(self) -> Optional[str]:
        return self._document_id

    @property
    def pending(self) -> bool:
        """True while a debounce timer is armed."""
        return self._timer is not None

    # --- Status Callbacks ---

    def on_status(self, callback: Callable[[SyncStatus], Any]):
        """Register a callback for sync status transitions."""
        self._on_status_callbacks.append(callback)

    def _set_status(self, status: SyncStatus):
        if status == self._status:
            return
        self._status = status
        for callback in self._on_status_callbacks:
            callback(status)

    # --- Lifecycle ---

    def set_document(self, document_id: Optional[str]):
        """Point the synchronizer at another document (or none)."""
        self.cancel()
        self._document_id = document_id
        self._set_status(SyncStatus.SAVED)

    def cancel(self):
        """Drop any pending save and ignore results of saves in flight."""
        self._cancel_timer()
        self._generation += 1

    def _cancel_timer(self):
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    # --- Scheduling ---

    def schedule(self) -> bool:
        """
        Arm (or re-arm) the debounce timer after a committed mutation.

        Returns False when there is nothing to sync to: no active document,
        or no authenticated user owning it.
        """
        if self._document_id is None:
            return False
        if self._identity is not None and not self._identity.is_authenticated():
            logger.debug("Autosave skipped: not authenticated")
            return False

        self._cancel_timer()
        self._set_status(SyncStatus.SAVING)
        self._timer = self._scheduler.call_later(self._delay, self._fire)
        return True

    def _fire(self):
        self._timer = None
        document_id = self._document_id
        if document_id is None:
            return

        document = self._get_document().model_copy(deep=True)
        self._dispatched += 1
        logger.debug("Saving document %s (%d nodes, %d edges)",
                     document_id, len(document.nodes), len(document.edges))
        self._scheduler.submit(
            partial(self._store.save, document_id, document),
            partial(self._on_saved, self._generation, self._dispatched, document_id),
        )

    def _on_saved(
        self,
        generation: int,
        sequence: int,
        document_id: str,
        result: Any,
        error: Optional[BaseException],
    ):
        if generation != self._generation:
            logger.debug("Discarding stale save result for %s", document_id)
            return
        if sequence != self._dispatched:
            # A later save was already sent; its outcome decides the status
            if error is not None:
                logger.warning("Superseded autosave of %s failed: %s", document_id, error)
            return

        if error is not None:
            logger.warning("Autosave of %s failed: %s", document_id, error)
            if self._timer is None:
                self._set_status(SyncStatus.ERROR)
            return

        # A newer edit already re-armed the timer; stay in SAVING
        if self._timer is None:
            self._set_status(SyncStatus.SAVED)
