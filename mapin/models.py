"""
Core data models for process maps.

These models define the canonical schema shared by the editing session,
the persistence layer and the file export/import format:
- Nodes with a shape type, position, label and optional size
- Edges connecting nodes (always drawn as "smoothstep" connectors)
- Documents holding the ordered node and edge sequences

Field Naming Convention:
- The interchange format uses `sourceHandle`/`targetHandle` (camelCase)
- Python attributes use snake_case, serialization goes through aliases
- For backward compatibility, the diagram-library layout (`data.label`,
  edge `type`) is accepted on input and converted
"""

from datetime import datetime
from enum import Enum
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class NodeType(str, Enum):
    """Shapes available on the palette."""
    RECTANGLE = "rectangle"
    DIAMOND = "diamond"
    ELLIPSE = "ellipse"
    TEXT = "text"

    @property
    def display_name(self) -> str:
        return self.value.capitalize()


class SyncStatus(str, Enum):
    """Outcome of the most recent persistence attempt."""
    SAVED = "saved"
    SAVING = "saving"
    ERROR = "error"


EDGE_KIND = "smoothstep"

# Text annotations are the only resizable shape
DEFAULT_TEXT_SIZE = (200.0, 60.0)


class PaletteEntry(BaseModel):
    """A shape as shown in the palette."""
    type: NodeType
    label: str
    description: str


PALETTE: list[PaletteEntry] = [
    PaletteEntry(type=NodeType.RECTANGLE, label="Rectangle", description="Process step"),
    PaletteEntry(type=NodeType.DIAMOND, label="Diamond", description="Decision point"),
    PaletteEntry(type=NodeType.ELLIPSE, label="Ellipse", description="Start/End"),
    PaletteEntry(type=NodeType.TEXT, label="Text", description="Annotation"),
]


class Position(BaseModel):
    """A point in document coordinates."""
    x: float = 0
    y: float = 0


class Size(BaseModel):
    """Width/height of a resizable node."""
    width: float
    height: float


class Node(BaseModel):
    """A shape on the canvas."""
    id: str
    type: NodeType = NodeType.RECTANGLE
    position: Position = Field(default_factory=Position)
    label: str = ""
    size: Optional[Size] = None  # Only meaningful for text nodes
    selected: bool = False

    @model_validator(mode='before')
    @classmethod
    def convert_legacy_fields(cls, data: Any) -> Any:
        """Lift `data.label` into `label` for diagram-library exports."""
        if isinstance(data, dict):
            legacy = data.get('data')
            if isinstance(legacy, dict) and 'label' not in data and 'label' in legacy:
                data = {k: v for k, v in data.items() if k != 'data'}
                data['label'] = legacy['label']
            if 'width' in data and 'height' in data and 'size' not in data:
                data = dict(data)
                data['size'] = {'width': data.pop('width'), 'height': data.pop('height')}
        return data


class Edge(BaseModel):
    """
    A directed connection between two nodes.

    Uses `source` and `target` as canonical field names; the connector
    handles are serialized as `sourceHandle`/`targetHandle`.
    """
    model_config = ConfigDict(populate_by_name=True)

    id: str
    source: str
    target: str
    source_handle: Optional[str] = Field(default=None, alias="sourceHandle")
    target_handle: Optional[str] = Field(default=None, alias="targetHandle")
    kind: Literal["smoothstep"] = EDGE_KIND
    selected: bool = False

    @model_validator(mode='before')
    @classmethod
    def convert_legacy_fields(cls, data: Any) -> Any:
        """Drop the diagram-library `type` field; the kind is always smoothstep."""
        if isinstance(data, dict) and 'type' in data:
            data = {k: v for k, v in data.items() if k != 'type'}
            data.setdefault('kind', EDGE_KIND)
        return data


class Document(BaseModel):
    """
    The complete process map.
    This is what gets saved to the store and written to export files.
    """
    nodes: list[Node] = Field(default_factory=list)
    edges: list[Edge] = Field(default_factory=list)

    def to_json_dict(self) -> dict:
        """Convert to a JSON-serializable dict in the interchange layout."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)

    @classmethod
    def from_json_dict(cls, data: dict) -> "Document":
        """Create a Document from a JSON dict (handles legacy layouts)."""
        return cls.model_validate(data)

    def get_node(self, node_id: str) -> Optional[Node]:
        """Get a node by ID (O(n) - use GraphModel for indexed access)."""
        for node in self.nodes:
            if node.id == node_id:
                return node
        return None

    def get_edge(self, edge_id: str) -> Optional[Edge]:
        """Get an edge by ID (O(n) - use GraphModel for indexed access)."""
        for edge in self.edges:
            if edge.id == edge_id:
                return edge
        return None


class DocumentSummary(BaseModel):
    """A stored document as listed by the persistence collaborator."""
    id: str
    title: str
    updated_at: datetime


def default_document() -> Document:
    """Build the starter map shown when nothing has been persisted yet."""
    return Document(
        nodes=[
            Node(id="1", type=NodeType.ELLIPSE, position=Position(x=250, y=100), label="Start"),
            Node(id="2", type=NodeType.RECTANGLE, position=Position(x=400, y=200), label="Process Data"),
        ],
        edges=[
            Edge(id="e1-2", source="1", target="2"),
        ],
    )
