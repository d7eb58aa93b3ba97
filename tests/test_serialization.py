"""Tests for process-map export and import files."""

from __future__ import annotations

import json

import pytest

from mapin.errors import ParseFailure
from mapin.models import NodeType, default_document
from mapin.serialization import (
    EXPORT_FILENAME,
    dumps_document,
    export_to_file,
    import_from_file,
    loads_document,
)


def test_export_uses_camel_case_handles():
    doc = default_document()
    doc.edges[0].source_handle = "bottom"
    data = json.loads(dumps_document(doc))
    assert data["edges"][0]["sourceHandle"] == "bottom"
    assert "targetHandle" not in data["edges"][0]
    assert loads_document(dumps_document(doc)) == doc


def test_legacy_layout_is_accepted():
    payload = json.dumps({
        "nodes": [
            {"id": "1", "type": "text", "position": {"x": 0, "y": 0},
             "data": {"label": "Note"}, "width": 240, "height": 80},
        ],
        "edges": [],
    })
    node = loads_document(payload).nodes[0]
    assert node.type == NodeType.TEXT
    assert node.label == "Note"
    assert (node.size.width, node.size.height) == (240, 80)


@pytest.mark.parametrize("payload", [
    b"not json",
    b"\xff\xfe",
    b"[]",
    b'{"nodes": []}',
    b'{"nodes": [{"id": "1", "type": "hexagon"}], "edges": []}',
])
def test_garbage_is_a_parse_failure(payload):
    with pytest.raises(ParseFailure):
        loads_document(payload)


def test_export_into_directory(tmp_path):
    path = export_to_file(default_document(), tmp_path)
    assert path == tmp_path / EXPORT_FILENAME
    assert import_from_file(path) == default_document()


def test_export_to_explicit_path(tmp_path):
    target = tmp_path / "maps" / "billing.json"
    assert export_to_file(default_document(), target) == target
    assert import_from_file(target) == default_document()
