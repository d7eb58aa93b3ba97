"""Tests for the HTTP/WebSocket front door."""

from __future__ import annotations

import asyncio
import json

import pytest
from fastapi.testclient import TestClient

from mapin.backend import create_app
from mapin.backend.websocket_manager import WebSocketManager
from mapin.config import EditorSettings
from mapin.identity import StaticIdentity
from mapin.models import default_document
from mapin.serialization import dumps_document
from mapin.store import HttpDocumentStore, MemoryDocumentStore


@pytest.fixture
def store():
    return MemoryDocumentStore()


@pytest.fixture
def client(store):
    app = create_app(settings=EditorSettings(user_id="tester"), store=store)
    with TestClient(app) as client:
        yield client


def test_health(client):
    response = client.get("/api/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_document_state(client):
    state = client.get("/api/document").json()
    assert [n["label"] for n in state["document"]["nodes"]] == ["Start", "Process Data"]
    assert state["can_undo"] is False
    assert state["sync_status"] == "saved"


def test_validate_document(client):
    body = client.get("/api/document/validate").json()
    assert body["summary"]["valid"] is True


class TestGestures:
    def test_drop_then_undo_redo(self, client):
        response = client.post("/api/gestures", json={
            "kind": "drop", "shape": "rectangle", "position": {"x": 120, "y": 80},
        })
        body = response.json()
        assert body["committed"] is True
        assert body["value"]["label"] == "Rectangle 3"

        undone = client.post("/api/undo").json()
        assert len(undone["document"]["nodes"]) == 2
        redone = client.post("/api/redo").json()
        assert len(redone["document"]["nodes"]) == 3
        assert client.post("/api/redo").json()["success"] is False

    def test_self_connection_is_not_committed(self, client):
        body = client.post("/api/gestures", json={"kind": "connect", "source": "1", "target": "1"}).json()
        assert body["committed"] is False
        assert client.get("/api/document").json()["can_undo"] is False

    def test_unknown_gesture_is_rejected(self, client):
        response = client.post("/api/gestures", json={"kind": "teleport"})
        assert response.status_code == 422

    def test_rename_request_flow(self, client):
        body = client.post("/api/gestures", json={"kind": "rename", "node_id": "2"}).json()
        request_id = body["request"]["id"]
        assert body["request"]["default"] == "Process Data"

        answer = client.post(f"/api/requests/{request_id}", json={"value": "Review"}).json()
        assert answer["committed"] is True
        nodes = client.get("/api/document").json()["document"]["nodes"]
        assert nodes[1]["label"] == "Review"

        assert client.post(f"/api/requests/{request_id}", json={"value": "again"}).status_code == 404
        assert client.delete(f"/api/requests/{request_id}").status_code == 404

    def test_reset(self, client):
        client.post("/api/gestures", json={"kind": "select", "node_ids": ["1", "2"]})
        client.post("/api/gestures", json={"kind": "delete"})
        assert client.get("/api/document").json()["document"]["nodes"] == []
        body = client.post("/api/reset").json()
        assert len(body["document"]["nodes"]) == 2


class TestDocuments:
    def test_create_list_select(self, client, store):
        doc_id = client.post("/api/documents", json={"title": "Billing"}).json()["id"]
        listed = client.get("/api/documents").json()
        assert listed["active_document_id"] == doc_id
        assert [d["title"] for d in listed["documents"]] == ["Billing"]

        other = store.create("Shipping")
        store.save(other, default_document())
        body = client.post(f"/api/documents/{other}/select").json()
        assert len(body["document"]["nodes"]) == 2

    def test_select_missing_document(self, client):
        assert client.post("/api/documents/missing/select").status_code == 404

    def test_delete_document(self, client, store):
        doc_id = client.post("/api/documents", json={"title": "Temp"}).json()["id"]
        assert client.delete(f"/api/documents/{doc_id}").json()["success"] is True
        assert store.list() == []
        assert client.get("/api/document").json()["active_document_id"] is None

    def test_create_requires_a_user(self, store):
        app = create_app(settings=EditorSettings(user_id="tester"), store=store,
                         identity=StaticIdentity(None))
        with TestClient(app) as client:
            assert client.post("/api/documents", json={"title": "x"}).status_code == 401
        assert store.list() == []


class TestImportExport:
    def test_export_download(self, client):
        response = client.get("/api/export")
        assert response.status_code == 200
        assert 'filename="process-map.json"' in response.headers["content-disposition"]
        assert len(json.loads(response.content)["nodes"]) == 2

    def test_import_replaces_document(self, client):
        client.post("/api/reset")
        doc = default_document()
        doc.nodes[0].label = "Imported"
        body = client.post("/api/import", content=dumps_document(doc)).json()
        assert body["document"]["nodes"][0]["label"] == "Imported"

    @pytest.mark.parametrize("payload", [
        b"garbage",
        b'{"nodes": [{"id": "1"}], "edges": [{"id": "e1", "source": "1", "target": "9"}]}',
    ])
    def test_bad_import_is_rejected(self, client, payload):
        response = client.post("/api/import", content=payload)
        assert response.status_code == 400
        assert len(client.get("/api/document").json()["document"]["nodes"]) == 2


def test_shapes(client):
    shapes = client.get("/api/enums/shapes").json()["shapes"]
    assert [s["type"] for s in shapes] == ["rectangle", "diamond", "ellipse", "text"]


def test_websocket_ping(client):
    with client.websocket_connect("/ws") as websocket:
        websocket.send_text("ping")
        assert websocket.receive_json() == {"type": "pong"}


def test_remote_store_is_closed_on_shutdown():
    settings = EditorSettings(user_id="tester", store_url="https://maps.example")
    app = create_app(settings=settings)
    assert isinstance(app.state.store, HttpDocumentStore)
    with TestClient(app) as client:
        assert client.get("/api/health").status_code == 200
    assert app.state.store._client.is_closed


def test_supplied_store_is_left_open():
    store = HttpDocumentStore("https://maps.example")
    with TestClient(create_app(settings=EditorSettings(user_id="tester"), store=store)):
        pass
    assert not store._client.is_closed
    store.close()


class FakeSocket:
    def __init__(self, fail=False):
        self.sent = []
        self.fail = fail

    async def accept(self):
        pass

    async def send_text(self, text):
        if self.fail:
            raise RuntimeError("socket closed")
        self.sent.append(json.loads(text))


class TestWebSocketManager:
    def test_clients_only_hear_about_followed_document(self):
        manager = WebSocketManager()
        everything, billing, shipping = FakeSocket(), FakeSocket(), FakeSocket()

        async def scenario():
            await manager.connect(everything)
            await manager.connect(billing, document_id="billing")
            await manager.connect(shipping, document_id="shipping")
            await manager.notify_document_updated("billing")
            await manager.notify_sync_status("saved", "shipping")

        asyncio.run(scenario())
        assert [m["type"] for m in everything.sent] == ["document_updated", "sync_status"]
        assert billing.sent == [{"type": "document_updated", "document_id": "billing"}]
        assert shipping.sent == [{"type": "sync_status", "status": "saved", "document_id": "shipping"}]

    def test_failed_clients_are_dropped(self):
        manager = WebSocketManager()
        healthy, broken = FakeSocket(), FakeSocket(fail=True)

        async def scenario():
            await manager.connect(healthy)
            await manager.connect(broken)
            await manager.notify_document_updated(None)

        asyncio.run(scenario())
        assert manager.connection_count == 1
        assert len(healthy.sent) == 1

    def test_follow_document_over_the_socket(self, client):
        with client.websocket_connect("/ws?document=abc") as websocket:
            websocket.send_text("ping")
            assert websocket.receive_json() == {"type": "pong"}
            assert client.app.state.ws_manager.connection_count == 1
