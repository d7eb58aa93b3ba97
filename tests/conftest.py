"""Shared test fixtures for the mapin editing core."""

from __future__ import annotations

import random

import pytest

from mapin.identity import StaticIdentity
from mapin.models import Document, Node, NodeType, Position
from mapin.session import SessionController
from mapin.store import MemoryDocumentStore
from mapin.timers import VirtualClock


class FlakyStore(MemoryDocumentStore):
    """Memory store whose next `fail_times` saves raise."""

    def __init__(self, fail_times: int = 0):
        super().__init__()
        self.fail_times = fail_times
        self.attempts = 0

    def save(self, document_id, document):
        self.attempts += 1
        if self.fail_times > 0:
            self.fail_times -= 1
            raise ConnectionError("network unreachable")
        super().save(document_id, document)


@pytest.fixture
def clock():
    return VirtualClock()


@pytest.fixture
def store():
    return MemoryDocumentStore()


@pytest.fixture
def identity():
    return StaticIdentity("user-1")


@pytest.fixture
def two_nodes() -> Document:
    """Rectangle A and diamond B, not connected."""
    return Document(nodes=[
        Node(id="A", type=NodeType.RECTANGLE, position=Position(x=0, y=0), label="A"),
        Node(id="B", type=NodeType.DIAMOND, position=Position(x=200, y=0), label="B"),
    ])


@pytest.fixture
def session(store, clock, identity):
    """Session on the starter document, no active stored document."""
    return SessionController(store, clock, identity=identity, rng=random.Random(7))


@pytest.fixture
def active_session(session):
    """Session editing a freshly created (empty) stored document."""
    session.create_document("Test map")
    return session


@pytest.fixture
def flaky_store():
    """Factory for stores that fail their first saves."""
    return FlakyStore
