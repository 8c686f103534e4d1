"""External delivery services for BloodLink."""

from bloodlink.services.push import (
    FcmPushGateway,
    LoggingPushGateway,
    PushGateway,
    PushMessage,
    PushResult,
)

__all__ = [
    "FcmPushGateway",
    "LoggingPushGateway",
    "PushGateway",
    "PushMessage",
    "PushResult",
]
