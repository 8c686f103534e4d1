"""Inbound event handling for live channels.

Decodes each ``{"event": ..., "data": ...}`` frame into its typed payload and
hands it to the lifecycle, dispatcher or router. Every failure is scoped to
the frame that caused it and answered on the originating channel.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from bloodlink.api.transport import Transport
from bloodlink.exceptions import InvalidRequest
from bloodlink.manager.alert_dispatcher import AlertDispatcher
from bloodlink.manager.response_router import ResponseRouter
from bloodlink.manager.session_lifecycle import SessionLifecycle
from bloodlink.models.events import (
    EVENT_ALERT_SENT,
    EVENT_ERROR,
    EVENT_REGISTER,
    EVENT_REGISTERED,
    EVENT_SEND_ALERT,
    RegisterPayload,
    RespondPayload,
    SendAlertPayload,
    UpdateLocationPayload,
    parse_event,
)

logger = logging.getLogger(__name__)

# Events whose rejection is reported on their own acknowledgment event
_ACK_EVENTS = {
    EVENT_REGISTER: EVENT_REGISTERED,
    EVENT_SEND_ALERT: EVENT_ALERT_SENT,
}


class EventHandler:
    """Routes decoded channel events to the dispatch components."""

    def __init__(
        self,
        lifecycle: SessionLifecycle,
        dispatcher: AlertDispatcher,
        router: ResponseRouter,
        transport: Transport,
    ) -> None:
        self.lifecycle = lifecycle
        self.dispatcher = dispatcher
        self.router = router
        self._transport = transport

    def on_connect(self, handle: str) -> None:
        self.lifecycle.on_connect(handle)

    async def on_disconnect(self, handle: str) -> None:
        await self.lifecycle.on_disconnect(handle)

    async def handle_text(self, handle: str, text: str) -> None:
        """Handle one raw text frame."""
        try:
            message = json.loads(text)
        except json.JSONDecodeError as e:
            await self._reject(handle, InvalidRequest("frame", f"invalid JSON: {e.msg}"))
            return
        await self.handle_frame(handle, message)

    async def handle_binary(self, handle: str) -> None:
        """Reject a binary frame; events are JSON text only."""
        await self._reject(handle, InvalidRequest("frame", "binary frames are not supported"))

    async def handle_frame(self, handle: str, message: Any) -> None:
        """Handle one decoded frame of the form {"event": str, "data": object}."""
        if not isinstance(message, dict) or not isinstance(message.get("event"), str):
            await self._reject(handle, InvalidRequest("frame", "expected {event, data}"))
            return
        await self.handle(handle, message["event"], message.get("data") or {})

    async def handle(self, handle: str, event: str, data: Any) -> None:
        """Validate and process one event from a channel."""
        try:
            payload = parse_event(event, data)
        except InvalidRequest as e:
            logger.warning(f"Rejected event from {handle}: {e}")
            await self._reject(handle, e)
            return

        try:
            if isinstance(payload, RegisterPayload):
                await self.lifecycle.on_register(handle, payload)
            elif isinstance(payload, UpdateLocationPayload):
                self.lifecycle.on_update_location(
                    payload.party_id, payload.latitude, payload.longitude
                )
            elif isinstance(payload, SendAlertPayload):
                await self.dispatcher.dispatch(payload.to_request(), reply_to=handle)
            elif isinstance(payload, RespondPayload):
                await self.router.route(payload.to_response())
        except InvalidRequest as e:
            await self._reject(handle, e)
        except Exception as e:
            logger.exception(f"Error handling '{event}' from {handle}")
            await self._send(handle, EVENT_ERROR, {"event": event, "error": str(e)})

    async def _reject(self, handle: str, error: InvalidRequest) -> None:
        reply_event = _ACK_EVENTS.get(error.event, EVENT_ERROR)
        await self._send(handle, reply_event, {
            "success": False,
            "event": error.event,
            "error": error.reason,
        })

    async def _send(self, handle: str, event: str, payload: dict[str, Any]) -> None:
        try:
            await self._transport.send_to(handle, event, payload)
        except Exception as e:
            logger.warning(f"Could not send '{event}' to {handle}: {e}")
