"""HTTP/WebSocket front door for an editing session."""

from .main import create_app

__all__ = ["create_app"]
