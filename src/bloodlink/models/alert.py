"""Alert, response and delivery-result models."""

from datetime import datetime, UTC
from enum import Enum
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, computed_field

from bloodlink.models.party import Location


def new_alert_id() -> str:
    """Generate an opaque, collision-resistant alert id."""
    return f"alert_{uuid4().hex}"


class AlertStatus(str, Enum):
    """Status recorded with a persisted alert."""

    ACTIVE = "active"


class AlertRequest(BaseModel):
    """One broadcast solicitation. Immutable once created."""

    model_config = ConfigDict(frozen=True)

    alert_id: str = Field(default_factory=new_alert_id)
    requester_id: str
    category: str
    location: Location
    radius_km: float
    zone_label: str = ""
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))


class AlertResponse(BaseModel):
    """One recipient's reply to one alert."""

    model_config = ConfigDict(frozen=True)

    alert_id: str
    recipient_id: str
    requester_id: str
    accepted: bool
    responded_at: datetime = Field(default_factory=lambda: datetime.now(UTC))


class DeliveryChannel(str, Enum):
    """Channel a notification went out on."""

    LIVE = "live"  # WebSocket session
    PUSH = "push"  # FCM token


class FailureKind(str, Enum):
    """Why a single delivery (or the fallback batch) did not happen."""

    INVALID_REQUEST = "invalid_request"
    DIRECTORY_UNAVAILABLE = "directory_unavailable"
    PUSH_DELIVERY_FAILED = "push_delivery_failed"
    RECIPIENT_UNREACHABLE = "recipient_unreachable"
    LIVE_DELIVERY_FAILED = "live_delivery_failed"


class DeliveryFailure(BaseModel):
    """A failure scoped to one recipient, or to a whole batch if recipient_id is None."""

    recipient_id: str | None = None
    kind: FailureKind
    reason: str


class DispatchSummary(BaseModel):
    """Result of dispatching one alert, reported back to the requester."""

    alert_id: str
    live_count: int = 0
    push_count: int = 0
    persisted: bool = True
    failures: list[DeliveryFailure] = Field(default_factory=list)

    @computed_field
    @property
    def total(self) -> int:
        return self.live_count + self.push_count

    def to_event(self) -> dict:
        """Payload for the requester's alertSent event."""
        return {
            "success": True,
            "alert_id": self.alert_id,
            "live_count": self.live_count,
            "push_count": self.push_count,
            "total": self.total,
            "persisted": self.persisted,
            "failures": [f.model_dump(mode="json") for f in self.failures],
        }


class RouteStatus(str, Enum):
    """Terminal outcome of routing a response to its requester."""

    DELIVERED_LIVE = "delivered_live"
    DELIVERED_PUSH = "delivered_push"
    UNDELIVERABLE = "undeliverable"  # No channel and no token
    FAILED = "failed"  # Directory or push call failed


class RouteOutcome(BaseModel):
    """Result of routing one AlertResponse."""

    alert_id: str
    requester_id: str
    status: RouteStatus
    recorded: bool = True
    reason: str | None = None


class RegistrationAck(BaseModel):
    """Acknowledgment sent back on the registering channel."""

    success: bool
    party_id: str
    message: str
    push_token_known: bool = False
    error: str | None = None
