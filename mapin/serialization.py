"""
File export/import for process maps.

The interchange format is the Document itself: a JSON object with
`nodes` and `edges`. Decoding checks shape (ParseFailure); structural
invariants are checked later when the document is loaded into a model.
"""

import json
from pathlib import Path

from pydantic import ValidationError

from .errors import ParseFailure
from .models import Document

EXPORT_FILENAME = "process-map.json"


def dumps_document(document: Document) -> bytes:
    """Encode a document as pretty-printed UTF-8 JSON."""
    return json.dumps(document.to_json_dict(), indent=2).encode("utf-8")


def loads_document(payload: bytes | str) -> Document:
    """
    Decode an exported document.

    Raises:
        ParseFailure: the payload is not JSON or not shaped like a document
    """
    try:
        data = json.loads(payload)
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise ParseFailure(f"Not a JSON document: {e}") from e

    if not isinstance(data, dict) or "nodes" not in data or "edges" not in data:
        raise ParseFailure("Expected an object with 'nodes' and 'edges'")

    try:
        return Document.from_json_dict(data)
    except ValidationError as e:
        raise ParseFailure(f"Malformed document: {e}") from e


def export_to_file(document: Document, path: str | Path) -> Path:
    """Write a document to `path`, or to process-map.json inside a directory."""
    path = Path(path)
    if path.is_dir():
        path = path / EXPORT_FILENAME
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(dumps_document(document))
    return path


def import_from_file(path: str | Path) -> Document:
    """Read a document exported by export_to_file()."""
    return loads_document(Path(path).read_bytes())
