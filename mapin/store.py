"""
Document stores - Where process maps live between sessions.

Every store implements the same synchronous contract:
- list() -> summaries, most recently updated first
- load(id) -> Document (NotFound if absent)
- create(title) -> id of a new, empty document
- save(id, document), last write wins (PersistenceFailure on error)
- delete(id)

Stores are called from the synchronizer's background I/O, so they must
not touch the session themselves.
"""

import json
import logging
import os
import tempfile
import threading
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Protocol

import httpx
from pydantic import ValidationError

from .errors import NotFound, ParseFailure, PersistenceFailure
from .models import Document, DocumentSummary

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class DocumentStore(Protocol):
    def list(self) -> list[DocumentSummary]: ...

    def load(self, document_id: str) -> Document: ...

    def create(self, title: str, owner: Optional[str] = None) -> str: ...

    def save(self, document_id: str, document: Document) -> None: ...

    def delete(self, document_id: str) -> None: ...


def _parse_document(document_id: str, data: object) -> Document:
    try:
        return Document.model_validate(data)
    except ValidationError as e:
        raise ParseFailure(f"Stored document {document_id} is malformed: {e}") from e


class MemoryDocumentStore:
    """Process-local store, used by tests and throwaway sessions."""

    def __init__(self):
        self._lock = threading.Lock()
        self._records: dict[str, dict] = {}
        self.save_calls: list[tuple[str, Document]] = []

    def list(self) -> list[DocumentSummary]:
        with self._lock:
            summaries = [
                DocumentSummary(id=doc_id, title=rec["title"], updated_at=rec["updated_at"])
                for doc_id, rec in self._records.items()
            ]
        return sorted(summaries, key=lambda s: s.updated_at, reverse=True)

    def load(self, document_id: str) -> Document:
        with self._lock:
            record = self._records.get(document_id)
            if record is None:
                raise NotFound("Document", document_id)
            return _parse_document(document_id, record["data"])

    def create(self, title: str, owner: Optional[str] = None) -> str:
        document_id = uuid.uuid4().hex
        with self._lock:
            self._records[document_id] = {
                "title": title,
                "owner": owner,
                "updated_at": _utcnow(),
                "data": Document().to_json_dict(),
            }
        return document_id

    def save(self, document_id: str, document: Document) -> None:
        with self._lock:
            record = self._records.get(document_id)
            if record is None:
                raise PersistenceFailure(f"Document {document_id} no longer exists")
            record["data"] = document.to_json_dict()
            record["updated_at"] = _utcnow()
            self.save_calls.append((document_id, document.model_copy(deep=True)))

    def delete(self, document_id: str) -> None:
        with self._lock:
            self._records.pop(document_id, None)


class JsonFileStore:
    """
    One JSON file per document inside a directory.

    File layout: {"id", "title", "owner", "updated_at", "data": {nodes, edges}}
    """

    def __init__(self, directory: str | Path):
        self._directory = Path(directory).expanduser()
        # Serializes read-modify-write of records; saves run on executor threads
        self._lock = threading.Lock()

    def _path(self, document_id: str) -> Path:
        if not document_id or "/" in document_id or document_id.startswith("."):
            raise NotFound("Document", document_id)
        return self._directory / f"{document_id}.json"

    def _read(self, path: Path) -> dict:
        with open(path, 'r') as f:
            return json.load(f)

    def _write(self, path: Path, record: dict):
        # Ensure parent directory exists
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(dir=path.parent, prefix=f".{path.stem}-", suffix=".tmp")
        try:
            with os.fdopen(fd, 'w') as f:
                json.dump(record, f, indent=2)
            os.replace(tmp, path)
        except BaseException:
            Path(tmp).unlink(missing_ok=True)
            raise

    def list(self) -> list[DocumentSummary]:
        if not self._directory.exists():
            return []

        summaries = []
        for f in self._directory.glob("*.json"):
            try:
                record = self._read(f)
                summaries.append(DocumentSummary(
                    id=record.get("id", f.stem),
                    title=record.get("title", f.stem),
                    updated_at=record["updated_at"],
                ))
            except (OSError, ValueError, KeyError) as e:
                logger.warning("Skipping unreadable document file %s: %s", f, e)
                continue
        return sorted(summaries, key=lambda s: s.updated_at, reverse=True)

    def load(self, document_id: str) -> Document:
        path = self._path(document_id)
        if not path.exists():
            raise NotFound("Document", document_id)
        try:
            record = self._read(path)
        except json.JSONDecodeError as e:
            raise ParseFailure(f"Document file {path} is not valid JSON: {e}") from e
        return _parse_document(document_id, record.get("data", {}))

    def create(self, title: str, owner: Optional[str] = None) -> str:
        document_id = uuid.uuid4().hex
        try:
            self._write(self._path(document_id), {
                "id": document_id,
                "title": title,
                "owner": owner,
                "updated_at": _utcnow().isoformat(),
                "data": Document().to_json_dict(),
            })
        except OSError as e:
            raise PersistenceFailure(f"Failed to create document: {e}") from e
        return document_id

    def save(self, document_id: str, document: Document) -> None:
        path = self._path(document_id)
        try:
            with self._lock:
                record = self._read(path) if path.exists() else {"id": document_id, "title": document_id}
                record["data"] = document.to_json_dict()
                record["updated_at"] = _utcnow().isoformat()
                self._write(path, record)
        except (OSError, ValueError) as e:
            raise PersistenceFailure(f"Failed to save document {document_id}: {e}") from e

    def delete(self, document_id: str) -> None:
        path = self._path(document_id)
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            raise PersistenceFailure(f"Failed to delete document {document_id}: {e}") from e


class HttpDocumentStore:
    """
    Remote REST store.

    Endpoints (relative to base_url):
        GET    /canvases            -> [{id, title, updated_at}]
        GET    /canvases/{id}       -> {data: {nodes, edges}}
        POST   /canvases            <- {title, owner, data} -> {id}
        PATCH  /canvases/{id}       <- {data, updated_at}
        DELETE /canvases/{id}
    """

    def __init__(
        self,
        base_url: str,
        token: Optional[str] = None,
        timeout: float = 30.0,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        headers = {"Content-Type": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self._client = httpx.Client(
            base_url=base_url.rstrip("/"),
            headers=headers,
            timeout=timeout,
            transport=transport,
        )

    def close(self):
        self._client.close()

    def _request(self, method: str, endpoint: str, **kwargs) -> httpx.Response:
        """Make a request to the store, mapping transport errors."""
        try:
            response = self._client.request(method, endpoint, **kwargs)
        except httpx.HTTPError as e:
            raise PersistenceFailure(f"Store request failed: {e}") from e

        if response.status_code == 404:
            raise NotFound("Document", endpoint.rsplit("/", 1)[-1])
        if response.status_code >= 400:
            try:
                detail = response.json().get("detail", "Unknown error")
            except ValueError:
                detail = response.text
            raise PersistenceFailure(f"Store error ({response.status_code}): {detail}")
        return response

    def list(self) -> list[DocumentSummary]:
        payload = self._request("GET", "/canvases").json()
        summaries = [DocumentSummary.model_validate(item) for item in payload]
        return sorted(summaries, key=lambda s: s.updated_at, reverse=True)

    def load(self, document_id: str) -> Document:
        try:
            payload = self._request("GET", f"/canvases/{document_id}").json()
        except ValueError as e:
            raise ParseFailure(f"Store returned invalid JSON for {document_id}") from e
        return _parse_document(document_id, payload.get("data") or {})

    def create(self, title: str, owner: Optional[str] = None) -> str:
        payload = self._request("POST", "/canvases", json={
            "title": title,
            "owner": owner,
            "data": Document().to_json_dict(),
        }).json()
        return str(payload["id"])

    def save(self, document_id: str, document: Document) -> None:
        self._request("PATCH", f"/canvases/{document_id}", json={
            "data": document.to_json_dict(),
            "updated_at": _utcnow().isoformat(),
        })

    def delete(self, document_id: str) -> None:
        self._request("DELETE", f"/canvases/{document_id}")
