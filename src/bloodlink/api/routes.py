"""FastAPI routes: the live channel endpoint and status endpoints."""

import logging
from datetime import datetime, UTC
from typing import Annotated

from fastapi import APIRouter, Depends, WebSocket

from bloodlink import __version__
from bloodlink.api.events import EventHandler
from bloodlink.api.transport import ChannelHub
from bloodlink.config import get_settings
from bloodlink.db.client import DirectoryClient
from bloodlink.manager.alert_dispatcher import AlertDispatcher
from bloodlink.manager.connection_registry import ConnectionRegistry
from bloodlink.manager.response_router import ResponseRouter
from bloodlink.manager.session_lifecycle import SessionLifecycle
from bloodlink.services.push import FcmPushGateway, LoggingPushGateway, PushGateway

logger = logging.getLogger(__name__)

router = APIRouter()

# Dependency injection
_registry: ConnectionRegistry | None = None
_hub: ChannelHub | None = None
_db_client: DirectoryClient | None = None
_push_gateway: PushGateway | None = None
_event_handler: EventHandler | None = None


def get_registry() -> ConnectionRegistry:
    """Get or create the process-wide connection registry."""
    global _registry
    if _registry is None:
        _registry = ConnectionRegistry()
    return _registry


def get_channel_hub() -> ChannelHub:
    """Get or create the WebSocket channel hub."""
    global _hub
    if _hub is None:
        _hub = ChannelHub()
    return _hub


def get_db_client() -> DirectoryClient:
    """Get or create directory client instance."""
    global _db_client
    if _db_client is None:
        _db_client = DirectoryClient()
    return _db_client


def get_push_gateway() -> PushGateway:
    """Get or create the push gateway, falling back to logging-only delivery."""
    global _push_gateway
    if _push_gateway is None:
        settings = get_settings()
        if settings.fcm_credentials_file:
            _push_gateway = FcmPushGateway.from_service_account_file(
                settings.fcm_credentials_file,
                project_id=settings.fcm_project_id,
                timeout=settings.push_timeout,
            )
        else:
            logger.warning("FCM not configured; offline recipients will not be reached")
            _push_gateway = LoggingPushGateway()
    return _push_gateway


def get_event_handler() -> EventHandler:
    """Get or create the event handler wired to all dispatch components."""
    global _event_handler
    if _event_handler is None:
        settings = get_settings()
        registry = get_registry()
        hub = get_channel_hub()
        directory = get_db_client()
        push = get_push_gateway()
        _event_handler = EventHandler(
            lifecycle=SessionLifecycle(
                registry,
                directory,
                hub,
                directory_timeout=settings.directory_timeout,
            ),
            dispatcher=AlertDispatcher(
                registry,
                directory,
                push,
                hub,
                directory_timeout=settings.directory_timeout,
                push_timeout=settings.push_timeout,
            ),
            router=ResponseRouter(
                registry,
                directory,
                push,
                hub,
                directory_timeout=settings.directory_timeout,
                push_timeout=settings.push_timeout,
            ),
            transport=hub,
        )
    return _event_handler


@router.get("/")
async def root(
    registry: Annotated[ConnectionRegistry, Depends(get_registry)],
) -> dict:
    """Liveness summary."""
    return {
        "status": "online",
        "connected_users": len(registry),
        "timestamp": datetime.now(UTC).isoformat(),
    }


@router.get("/status")
async def status(
    registry: Annotated[ConnectionRegistry, Depends(get_registry)],
) -> dict:
    """Snapshot of connected parties."""
    return registry.status()


@router.get("/health")
async def health(
    db: Annotated[DirectoryClient, Depends(get_db_client)],
) -> dict:
    """Health check endpoint."""
    directory = await db.health_check()
    return {
        "status": "ok" if directory["healthy"] else "degraded",
        "version": __version__,
        "directory": directory,
    }


@router.websocket("/ws")
async def channel(
    websocket: WebSocket,
    hub: Annotated[ChannelHub, Depends(get_channel_hub)],
    handler: Annotated[EventHandler, Depends(get_event_handler)],
) -> None:
    """Live channel. Frames are processed in arrival order per connection."""
    handle = await hub.connect(websocket)
    handler.on_connect(handle)
    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                break
            if message.get("text") is not None:
                await handler.handle_text(handle, message["text"])
            else:
                await handler.handle_binary(handle)
    finally:
        hub.disconnect(handle)
        await handler.on_disconnect(handle)
