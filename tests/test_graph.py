"""Tests for GraphModel mutation primitives and cascade integrity."""

from __future__ import annotations

import pytest

from mapin.errors import InvalidDocument, NotFound
from mapin.graph import GraphModel
from mapin.models import Document, Edge, Node, NodeType, Position, Size, default_document


@pytest.fixture
def model(two_nodes):
    return GraphModel(two_nodes)


def _dangling_edges(document: Document) -> list[Edge]:
    ids = {n.id for n in document.nodes}
    return [e for e in document.edges if e.source not in ids or e.target not in ids]


class TestNodes:
    def test_add_node_appends_with_fresh_id(self, model):
        node = model.add_node(NodeType.ELLIPSE, Position(x=5, y=6), "End")
        assert model.document.nodes[-1] is node
        assert node.id not in {"A", "B"}
        assert node.position == Position(x=5, y=6)
        assert node.size is None

    def test_ids_never_repeat(self, model):
        ids = {model.add_node(NodeType.RECTANGLE, Position(), "n").id for _ in range(20)}
        assert len(ids) == 20

    def test_text_nodes_get_a_default_size(self, model):
        node = model.add_node(NodeType.TEXT, Position(), "note")
        assert node.size == Size(width=200, height=60)

    def test_update_node_merges_patch(self, model):
        model.update_node("A", label="Renamed", position={"x": 9, "y": 9})
        node = model.get_node("A")
        assert node.label == "Renamed"
        assert node.position == Position(x=9, y=9)
        assert node.type == NodeType.RECTANGLE

    def test_update_missing_node_raises_not_found(self, model):
        with pytest.raises(NotFound):
            model.update_node("nope", label="x")

    def test_update_rejects_unknown_fields(self, model):
        with pytest.raises(TypeError):
            model.update_node("A", colour="red")

    def test_remove_nodes_cascades_to_edges(self, model):
        model.add_edge("A", "B")
        model.add_edge("B", "A")
        c = model.add_node(NodeType.RECTANGLE, Position(), "C")
        keep = model.add_edge("A", c.id)

        removed = model.remove_nodes({"B"})

        assert removed == {"B"}
        assert [n.id for n in model.document.nodes] == ["A", c.id]
        assert [e.id for e in model.document.edges] == [keep.id]
        assert _dangling_edges(model.document) == []
        assert model.get_edges_for_node("A") == [keep]

    def test_remove_nodes_is_idempotent(self, model):
        model.remove_nodes({"A"})
        assert model.remove_nodes({"A", "ghost"}) == set()
        assert [n.id for n in model.document.nodes] == ["B"]


class TestEdges:
    def test_self_loop_is_a_no_op(self, model):
        assert model.add_edge("A", "A") is None
        assert model.document.edges == []

    def test_missing_endpoint_raises_not_found(self, model):
        with pytest.raises(NotFound):
            model.add_edge("A", "Z")
        with pytest.raises(NotFound):
            model.add_edge("Z", "A")
        assert model.document.edges == []

    def test_parallel_edges_are_permitted(self, model):
        first = model.add_edge("A", "B", source_handle="bottom")
        second = model.add_edge("A", "B")
        assert first.id != second.id
        assert len(model.document.edges) == 2
        assert first.kind == "smoothstep"
        assert first.source_handle == "bottom"

    def test_remove_edges_is_idempotent(self, model):
        edge = model.add_edge("A", "B")
        assert model.remove_edges([edge.id]) == {edge.id}
        assert model.remove_edges([edge.id]) == set()
        assert model.get_edge(edge.id) is None


class TestSelection:
    def test_set_selection_flags_exactly_the_given_items(self, model):
        edge = model.add_edge("A", "B")
        assert model.set_selection({"B"}, {edge.id}) is True
        assert model.selected_node_ids() == {"B"}
        assert model.selected_edge_ids() == {edge.id}

        assert model.set_selection({"B"}, {edge.id}) is False
        model.set_selection(set(), set())
        assert model.selected_node_ids() == set()


class TestReplaceDocument:
    def test_replace_swaps_everything(self, model):
        model.replace_document(default_document())
        assert [n.id for n in model.document.nodes] == ["1", "2"]
        assert model.get_node("A") is None
        assert model.get_edge("e1-2") is not None

    def test_replace_copies_the_input(self, model):
        doc = default_document()
        model.replace_document(doc)
        doc.nodes[0].label = "mutated outside"
        assert model.get_node("1").label == "Start"

    @pytest.mark.parametrize("document", [
        Document(nodes=[Node(id="1")], edges=[Edge(id="e", source="1", target="2")]),
        Document(nodes=[Node(id="1"), Node(id="1")]),
        Document(nodes=[Node(id="1"), Node(id="2")],
                 edges=[Edge(id="e", source="1", target="2"), Edge(id="e", source="2", target="1")]),
    ], ids=["dangling", "duplicate-node", "duplicate-edge"])
    def test_invalid_document_leaves_state_unchanged(self, model, document):
        before = model.snapshot()
        with pytest.raises(InvalidDocument) as exc_info:
            model.replace_document(document)
        assert exc_info.value.issues
        assert model.document == before

    def test_allocator_skips_ids_seen_in_loaded_documents(self, model):
        model.replace_document(Document(
            nodes=[Node(id="10"), Node(id="11")],
            edges=[Edge(id="e4", source="10", target="11")],
        ))
        node = model.add_node(NodeType.RECTANGLE, Position(), "next")
        edge = model.add_edge("10", node.id)
        assert node.id == "12"
        assert edge.id == "e5"
