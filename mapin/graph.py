"""
Graph Model - The live process map and its mutation primitives.

This module implements:
- O(1) node/edge lookups via index dictionaries
- Cascade deletion of edges when an endpoint node goes away
- Atomic whole-document replacement with structural validation

The model knows nothing about history or persistence; the session
controller decides which mutations are committed.
"""

import logging
from typing import Any, Iterable, Optional

from .errors import InvalidDocument, NotFound
from .ids import IdAllocator
from .models import DEFAULT_TEXT_SIZE, Document, Edge, Node, NodeType, Position, Size
from .validation import structural_errors

logger = logging.getLogger(__name__)

_PATCHABLE = ("label", "position", "size", "selected")


class GraphModel:
    """
    Holds one Document and keeps its integrity invariants.

    Features:
    - Fresh ids for every created node and edge (per-session allocator)
    - Self-loops are refused, parallel edges are allowed
    - removing nodes removes every edge that touches them
    """

    def __init__(self, document: Optional[Document] = None, ids: Optional[IdAllocator] = None):
        self.ids = ids or IdAllocator()
        self._document = Document()

        # O(1) lookup indexes
        self._node_index: dict[str, Node] = {}          # node_id -> Node
        self._edge_index: dict[str, Edge] = {}          # edge_id -> Edge
        self._edges_by_node: dict[str, set[str]] = {}   # node_id -> set of edge_ids

        if document is not None:
            self.replace_document(document)

    # --- Index Management ---

    def _rebuild_indexes(self):
        """Rebuild all indexes from the current document state."""
        self._node_index.clear()
        self._edge_index.clear()
        self._edges_by_node.clear()

        for node in self._document.nodes:
            self._node_index[node.id] = node
        for edge in self._document.edges:
            self._index_edge(edge)

    def _index_edge(self, edge: Edge):
        """Add an edge to the indexes."""
        self._edge_index[edge.id] = edge
        self._edges_by_node.setdefault(edge.source, set()).add(edge.id)
        self._edges_by_node.setdefault(edge.target, set()).add(edge.id)

    def _unindex_edge(self, edge: Edge):
        """Remove an edge from the indexes."""
        self._edge_index.pop(edge.id, None)
        if edge.source in self._edges_by_node:
            self._edges_by_node[edge.source].discard(edge.id)
        if edge.target in self._edges_by_node:
            self._edges_by_node[edge.target].discard(edge.id)

    # --- Read access ---

    @property
    def document(self) -> Document:
        """The live document. Callers must not mutate it."""
        return self._document

    def snapshot(self) -> Document:
        """Deep copy of the current state."""
        return self._document.model_copy(deep=True)

    def get_node(self, node_id: str) -> Optional[Node]:
        """Get a node by ID (O(1) lookup)."""
        return self._node_index.get(node_id)

    def get_edge(self, edge_id: str) -> Optional[Edge]:
        """Get an edge by ID (O(1) lookup)."""
        return self._edge_index.get(edge_id)

    def get_edges_for_node(self, node_id: str) -> list[Edge]:
        """Get all edges connected to a node (O(1) index lookup)."""
        if node_id not in self._edges_by_node:
            return []
        return [self._edge_index[eid] for eid in self._edges_by_node[node_id] if eid in self._edge_index]

    def selected_node_ids(self) -> set[str]:
        return {n.id for n in self._document.nodes if n.selected}

    def selected_edge_ids(self) -> set[str]:
        return {e.id for e in self._document.edges if e.selected}

    def set_selection(self, node_ids: Iterable[str], edge_ids: Iterable[str]) -> bool:
        """Select exactly the given nodes and edges. Returns True if anything changed."""
        node_ids, edge_ids = set(node_ids), set(edge_ids)
        changed = False
        for item in [*self._document.nodes, *self._document.edges]:
            wanted = item.id in (node_ids if isinstance(item, Node) else edge_ids)
            if item.selected != wanted:
                item.selected = wanted
                changed = True
        return changed

    # --- Node Operations ---

    def add_node(self, type: NodeType, position: Position, label: str) -> Node:
        """Append a new node with a fresh id."""
        node_type = NodeType(type)
        node = Node(
            id=self.ids.next_node_id(self._node_index),
            type=node_type,
            position=Position.model_validate(position).model_copy(),
            label=label,
            size=Size(width=DEFAULT_TEXT_SIZE[0], height=DEFAULT_TEXT_SIZE[1])
            if node_type == NodeType.TEXT else None,
        )
        self._document.nodes.append(node)
        self._node_index[node.id] = node
        return node

    def update_node(self, node_id: str, **patch: Any) -> Node:
        """
        Merge patch fields (label, position, size, selected) into a node.

        Raises:
            NotFound: if the node does not exist
        """
        node = self._node_index.get(node_id)
        if node is None:
            raise NotFound("Node", node_id)

        for key, value in patch.items():
            if key not in _PATCHABLE:
                raise TypeError(f"Unknown node field: {key}")
            if key == "position":
                value = Position.model_validate(value).model_copy()
            elif key == "size" and value is not None:
                value = Size.model_validate(value).model_copy()
            setattr(node, key, value)
        return node

    def remove_nodes(self, node_ids: Iterable[str]) -> set[str]:
        """
        Remove nodes and every edge referencing them.

        Unknown ids are ignored. Returns the ids of the removed nodes.
        """
        doomed = {nid for nid in node_ids if nid in self._node_index}
        if not doomed:
            return set()

        connected: set[str] = set()
        for node_id in doomed:
            connected |= self._edges_by_node.get(node_id, set())

        self._document.nodes = [n for n in self._document.nodes if n.id not in doomed]
        for node_id in doomed:
            self._node_index.pop(node_id, None)
            self._edges_by_node.pop(node_id, None)
        self.remove_edges(connected)
        return doomed

    # --- Edge Operations ---

    def add_edge(
        self,
        source: str,
        target: str,
        source_handle: Optional[str] = None,
        target_handle: Optional[str] = None,
    ) -> Optional[Edge]:
        """
        Connect two nodes.

        Returns None without touching the document when source == target.
        Duplicate connections between the same pair are permitted.

        Raises:
            NotFound: if either endpoint is missing
        """
        if source == target:
            logger.debug("Refusing self-loop on node %s", source)
            return None
        if source not in self._node_index:
            raise NotFound("Node", source)
        if target not in self._node_index:
            raise NotFound("Node", target)

        edge = Edge(
            id=self.ids.next_edge_id(self._edge_index),
            source=source,
            target=target,
            source_handle=source_handle,
            target_handle=target_handle,
        )
        self._document.edges.append(edge)
        self._index_edge(edge)
        return edge

    def remove_edges(self, edge_ids: Iterable[str]) -> set[str]:
        """Remove edges by id. Unknown ids are ignored."""
        doomed = {eid for eid in edge_ids if eid in self._edge_index}
        if not doomed:
            return set()

        self._document.edges = [e for e in self._document.edges if e.id not in doomed]
        for edge_id in doomed:
            self._unindex_edge(self._edge_index[edge_id])
        return doomed

    # --- Whole document ---

    def replace_document(self, document: Document):
        """
        Swap the entire document atomically.

        Raises:
            InvalidDocument: on dangling endpoints, duplicate ids or self-loops;
                the current document is left unchanged
        """
        errors = structural_errors(document)
        if errors:
            raise InvalidDocument(errors)

        self._document = document.model_copy(deep=True)
        self.ids.observe(
            (n.id for n in self._document.nodes),
            (e.id for e in self._document.edges),
        )
        self._rebuild_indexes()
