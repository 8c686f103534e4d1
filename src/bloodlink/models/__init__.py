"""Data models for BloodLink."""

from bloodlink.models.alert import (
    AlertRequest,
    AlertResponse,
    AlertStatus,
    DeliveryChannel,
    DeliveryFailure,
    DispatchSummary,
    FailureKind,
    RegistrationAck,
    RouteOutcome,
    RouteStatus,
    new_alert_id,
)
from bloodlink.models.events import (
    RegisterPayload,
    RespondPayload,
    SendAlertPayload,
    UpdateLocationPayload,
    parse_event,
)
from bloodlink.models.party import Location, Party, PartyRole

__all__ = [
    "AlertRequest",
    "AlertResponse",
    "AlertStatus",
    "DeliveryChannel",
    "DeliveryFailure",
    "DispatchSummary",
    "FailureKind",
    "Location",
    "Party",
    "PartyRole",
    "RegisterPayload",
    "RegistrationAck",
    "RespondPayload",
    "RouteOutcome",
    "RouteStatus",
    "SendAlertPayload",
    "UpdateLocationPayload",
    "new_alert_id",
    "parse_event",
]
