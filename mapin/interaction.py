"""
Interaction Pipeline - Turns user gestures into graph mutations.

Gestures arrive already normalized to document coordinates. The pipeline
applies the editor's UX rules before the model sees anything:
- new shapes get a "<Type> <n>" label
- self-connections are dropped quietly
- renames to blank text are abandoned
- only text annotations can be resized, never below 100x40
- deleting removes the whole selection as one step

A gesture that changes the document is reported as committed; rejected
or abandoned gestures leave no trace.
"""

import logging
import random
import uuid
from dataclasses import dataclass
from enum import Enum
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from .errors import NotFound
from .graph import GraphModel
from .models import NodeType, Position, Size

logger = logging.getLogger(__name__)

MIN_TEXT_WIDTH = 100
MIN_TEXT_HEIGHT = 40

# Palette clicks drop the shape somewhere in this range on both axes
PLACE_RANGE = (200.0, 600.0)


def default_label(shape: NodeType, number: int) -> str:
    return f"{NodeType(shape).display_name} {number}"


# --- Gestures ---

class DropShape(BaseModel):
    """A palette shape dropped onto the canvas."""
    kind: Literal["drop"] = "drop"
    shape: NodeType
    position: Position


class PlaceShape(BaseModel):
    """A palette shape clicked; it lands at a random spot."""
    kind: Literal["place"] = "place"
    shape: NodeType


class Connect(BaseModel):
    """A connection dragged from one handle to another."""
    model_config = ConfigDict(populate_by_name=True)

    kind: Literal["connect"] = "connect"
    source: str
    target: str
    source_handle: Optional[str] = Field(default=None, alias="sourceHandle")
    target_handle: Optional[str] = Field(default=None, alias="targetHandle")


class Rename(BaseModel):
    """Double-click on a node. Without a label the pipeline asks for one."""
    kind: Literal["rename"] = "rename"
    node_id: str
    label: Optional[str] = None


class Move(BaseModel):
    """End of a node drag."""
    kind: Literal["move"] = "move"
    node_id: str
    position: Position


class Resize(BaseModel):
    """Release of a resize handle on a text node."""
    kind: Literal["resize"] = "resize"
    node_id: str
    width: float
    height: float


class Select(BaseModel):
    """The rendering layer's current selection."""
    kind: Literal["select"] = "select"
    node_ids: list[str] = Field(default_factory=list)
    edge_ids: list[str] = Field(default_factory=list)


class Delete(BaseModel):
    """Delete/Backspace key press."""
    kind: Literal["delete"] = "delete"
    repeat: bool = False  # Auto-repeat from a held key


Gesture = Annotated[
    Union[DropShape, PlaceShape, Connect, Rename, Move, Resize, Select, Delete],
    Field(discriminator="kind"),
]


class InputRequest(BaseModel):
    """The pipeline needs text from the user before it can finish a gesture."""
    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    kind: Literal["rename"] = "rename"
    node_id: str
    prompt: str = "Enter new label"
    default: str = ""


@dataclass(frozen=True)
class Outcome:
    """
    What a gesture did.

    committed: the document changed and the change belongs in history
    changed: the document changed at all (selection changes are not committed)
    """
    committed: bool = False
    changed: bool = False
    value: Any = None
    request: Optional[InputRequest] = None

    @classmethod
    def commit(cls, value: Any = None) -> "Outcome":
        return cls(committed=True, changed=True, value=value)


NOTHING = Outcome()


# --- Resize tracking ---

class Corner(str, Enum):
    TOP_LEFT = "top-left"
    TOP_RIGHT = "top-right"
    BOTTOM_LEFT = "bottom-left"
    BOTTOM_RIGHT = "bottom-right"


class ResizeTracker:
    """
    Follows one corner-handle drag.

    Every pointer frame calls drag() with the offset from where the drag
    started; the returned size is for rendering only. release() produces
    the single Resize gesture that gets committed.
    """

    def __init__(self, node_id: str, start: Size, corner: Corner):
        self.node_id = node_id
        self.start = start
        self.corner = Corner(corner)
        self.size = start.model_copy()

    def drag(self, dx: float, dy: float) -> Size:
        left = self.corner in (Corner.TOP_LEFT, Corner.BOTTOM_LEFT)
        top = self.corner in (Corner.TOP_LEFT, Corner.TOP_RIGHT)
        width = self.start.width - dx if left else self.start.width + dx
        height = self.start.height - dy if top else self.start.height + dy
        self.size = Size(width=max(MIN_TEXT_WIDTH, width), height=max(MIN_TEXT_HEIGHT, height))
        return self.size

    def release(self) -> Resize:
        return Resize(node_id=self.node_id, width=self.size.width, height=self.size.height)


# --- Pipeline ---

class InteractionPipeline:
    """Applies gestures to a GraphModel."""

    def __init__(self, model: GraphModel, rng: Optional[random.Random] = None):
        self._model = model
        self._rng = rng or random.Random()
        self._pending: dict[str, InputRequest] = {}
        self._handlers = {
            DropShape: self._drop,
            PlaceShape: self._place,
            Connect: self._connect,
            Rename: self._rename,
            Move: self._move,
            Resize: self._resize,
            Select: self._select,
            Delete: self._delete,
        }

    @property
    def pending_requests(self) -> list[InputRequest]:
        return list(self._pending.values())

    def apply(self, gesture: Any) -> Outcome:
        """Run one gesture. Missing nodes/edges turn it into a no-op."""
        handler = self._handlers.get(type(gesture))
        if handler is None:
            raise TypeError(f"Unknown gesture: {gesture!r}")
        try:
            return handler(gesture)
        except NotFound as e:
            logger.info("Ignoring %s gesture: %s", gesture.kind, e)
            return NOTHING

    # --- Input requests ---

    def resolve(self, request_id: str, value: Optional[str]) -> Outcome:
        """Complete a pending request with the user's answer (None = cancelled)."""
        request = self._pending.pop(request_id, None)
        if request is None:
            raise NotFound("Request", request_id)
        if value is None:
            return NOTHING
        try:
            return self._apply_label(request.node_id, value)
        except NotFound as e:
            logger.info("Ignoring rename answer: %s", e)
            return NOTHING

    def cancel_request(self, request_id: str) -> bool:
        return self._pending.pop(request_id, None) is not None

    def clear_requests(self):
        self._pending.clear()

    # --- Handlers ---

    def _create(self, shape: NodeType, position: Position) -> Outcome:
        label = default_label(shape, self._model.ids.upcoming_node_number)
        node = self._model.add_node(shape, position, label)
        logger.debug("Created %s node %s", node.type.value, node.id)
        return Outcome.commit(node)

    def _drop(self, gesture: DropShape) -> Outcome:
        return self._create(gesture.shape, gesture.position)

    def _place(self, gesture: PlaceShape) -> Outcome:
        low, high = PLACE_RANGE
        position = Position(x=self._rng.uniform(low, high), y=self._rng.uniform(low, high))
        return self._create(gesture.shape, position)

    def _connect(self, gesture: Connect) -> Outcome:
        if gesture.source == gesture.target:
            logger.info("Ignoring self-connection on node %s", gesture.source)
            return NOTHING
        edge = self._model.add_edge(
            gesture.source, gesture.target,
            source_handle=gesture.source_handle,
            target_handle=gesture.target_handle,
        )
        if edge is None:
            return NOTHING
        return Outcome.commit(edge)

    def _rename(self, gesture: Rename) -> Outcome:
        node = self._model.get_node(gesture.node_id)
        if node is None:
            raise NotFound("Node", gesture.node_id)
        if gesture.label is not None:
            return self._apply_label(gesture.node_id, gesture.label)

        request = InputRequest(node_id=node.id, default=node.label)
        self._pending[request.id] = request
        return Outcome(request=request)

    def _apply_label(self, node_id: str, label: str) -> Outcome:
        node = self._model.get_node(node_id)
        if node is None:
            raise NotFound("Node", node_id)
        trimmed = label.strip()
        if not trimmed:
            logger.debug("Rename of %s abandoned: blank label", node_id)
            return NOTHING
        if trimmed == node.label:
            return NOTHING
        return Outcome.commit(self._model.update_node(node_id, label=trimmed))

    def _move(self, gesture: Move) -> Outcome:
        node = self._model.get_node(gesture.node_id)
        if node is None:
            raise NotFound("Node", gesture.node_id)
        if node.position == gesture.position:
            return NOTHING
        return Outcome.commit(self._model.update_node(node.id, position=gesture.position))

    def _resize(self, gesture: Resize) -> Outcome:
        node = self._model.get_node(gesture.node_id)
        if node is None:
            raise NotFound("Node", gesture.node_id)
        if node.type != NodeType.TEXT:
            logger.info("Ignoring resize of non-text node %s", node.id)
            return NOTHING
        size = Size(
            width=max(MIN_TEXT_WIDTH, gesture.width),
            height=max(MIN_TEXT_HEIGHT, gesture.height),
        )
        if node.size == size:
            return NOTHING
        return Outcome.commit(self._model.update_node(node.id, size=size))

    def _select(self, gesture: Select) -> Outcome:
        changed = self._model.set_selection(gesture.node_ids, gesture.edge_ids)
        return Outcome(changed=changed)

    def _delete(self, gesture: Delete) -> Outcome:
        if gesture.repeat:
            return NOTHING
        node_ids = self._model.selected_node_ids()
        edge_ids = self._model.selected_edge_ids()
        if not node_ids and not edge_ids:
            return NOTHING

        removed_nodes = self._model.remove_nodes(node_ids)
        removed_edges = self._model.remove_edges(edge_ids)
        return Outcome.commit({"nodes": sorted(removed_nodes), "edges": sorted(removed_edges)})
