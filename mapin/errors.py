"""
Error taxonomy for the editing session.

Local model-integrity errors (NotFound) are absorbed as no-ops by the
interaction layer. Load/import problems (InvalidDocument, ParseFailure)
reach the caller with the live document untouched. Remote problems
(PersistenceFailure) only ever show up as the sync status.
"""

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .validation import ValidationIssue


class MapinError(Exception):
    """Base class for all editor errors."""


class NotFound(MapinError, LookupError):
    """A mutation referenced a node or edge that does not exist."""

    def __init__(self, kind: str, item_id: str):
        super().__init__(f"{kind} not found: {item_id}")
        self.kind = kind
        self.item_id = item_id


class InvalidDocument(MapinError, ValueError):
    """A document violates the structural invariants."""

    def __init__(self, issues: list["ValidationIssue"]):
        messages = "; ".join(issue.message for issue in issues)
        super().__init__(f"Invalid document: {messages}")
        self.issues = issues


class ParseFailure(MapinError, ValueError):
    """An import payload could not be decoded into a document."""


class PersistenceFailure(MapinError):
    """The remote store rejected or failed a request. Retry later."""


class NotAuthenticated(MapinError):
    """The operation needs an authenticated user."""
