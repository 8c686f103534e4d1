"""Dispatch engine components."""

from bloodlink.manager.alert_dispatcher import AlertDispatcher
from bloodlink.manager.connection_registry import ConnectionRegistry
from bloodlink.manager.geo_filter import distance_km, within
from bloodlink.manager.response_router import ResponseRouter
from bloodlink.manager.session_lifecycle import SessionLifecycle

__all__ = [
    "AlertDispatcher",
    "ConnectionRegistry",
    "ResponseRouter",
    "SessionLifecycle",
    "distance_km",
    "within",
]
