"""WebSocket channel hub.

Each accepted WebSocket gets an opaque channel handle. The dispatch
components address parties only through these handles.
"""

from __future__ import annotations

import logging
from typing import Any, Protocol
from uuid import uuid4

from fastapi import WebSocket
from fastapi.websockets import WebSocketState

logger = logging.getLogger(__name__)


class ChannelNotFound(LookupError):
    """Raised when sending to a handle with no open WebSocket."""

    def __init__(self, handle: str) -> None:
        self.handle = handle
        super().__init__(f"No open channel for handle {handle}")


class Transport(Protocol):
    """Protocol for addressing connected parties by channel handle."""

    async def send_to(self, handle: str, event: str, payload: dict[str, Any]) -> None:
        """Send one event to one channel."""
        ...

    async def send_to_all(self, event: str, payload: dict[str, Any]) -> None:
        """Send one event to every open channel."""
        ...


def frame(event: str, payload: dict[str, Any]) -> dict[str, Any]:
    """Wire frame for an outbound event."""
    return {"event": event, "data": payload}


class ChannelHub:
    """Tracks open WebSockets by channel handle."""

    def __init__(self) -> None:
        self._channels: dict[str, WebSocket] = {}

    async def connect(self, websocket: WebSocket) -> str:
        """Accept a WebSocket and assign it a channel handle."""
        await websocket.accept()
        handle = uuid4().hex
        self._channels[handle] = websocket
        return handle

    def disconnect(self, handle: str) -> None:
        """Forget a channel. Idempotent."""
        self._channels.pop(handle, None)

    def is_open(self, handle: str) -> bool:
        return handle in self._channels

    async def send_to(self, handle: str, event: str, payload: dict[str, Any]) -> None:
        """Send an event to one channel.

        Raises:
            ChannelNotFound: If the handle is unknown or the socket is closed
        """
        websocket = self._channels.get(handle)
        if websocket is None or websocket.application_state != WebSocketState.CONNECTED:
            raise ChannelNotFound(handle)
        await websocket.send_json(frame(event, payload))

    async def send_to_all(self, event: str, payload: dict[str, Any]) -> None:
        """Send an event to every open channel, skipping dead sockets."""
        for handle in list(self._channels):
            try:
                await self.send_to(handle, event, payload)
            except (ChannelNotFound, RuntimeError) as e:
                logger.warning(f"Broadcast to {handle} failed: {e}")

    def __len__(self) -> int:
        return len(self._channels)
