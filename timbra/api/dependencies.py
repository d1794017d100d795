"""FastAPI dependencies shared by the routes."""

from __future__ import annotations

from fastapi import Request

from timbra.api.websocket.media_stream import CallSessionRegistry


def get_registry(request: Request) -> CallSessionRegistry:
    """Session registry owned by the running application."""
    return request.app.state.registry
