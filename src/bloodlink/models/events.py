"""Typed payloads for inbound transport events.

Each inbound event name maps to exactly one payload model. Field names from
the mobile clients (``userId``, ``groupe``, ``rayon``...) are accepted as
aliases next to the snake_case names.
"""

from typing import Annotated, Any

from pydantic import (
    AliasChoices,
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
)

from bloodlink.exceptions import InvalidRequest
from bloodlink.models.alert import AlertRequest, AlertResponse
from bloodlink.models.party import Location, PartyRole

# Inbound event names
EVENT_REGISTER = "register"
EVENT_UPDATE_LOCATION = "updateLocation"
EVENT_SEND_ALERT = "sendAlert"
EVENT_RESPOND = "respondToAlert"

# Outbound event names
EVENT_REGISTERED = "registered"
EVENT_NEW_ALERT = "newAlert"
EVENT_ALERT_SENT = "alertSent"
EVENT_ALERT_RESPONSE = "alertResponse"
EVENT_ERROR = "error"


def _coerce_id(value: Any) -> Any:
    # Clients send numeric ids; the registry keys on strings
    if isinstance(value, int) and not isinstance(value, bool):
        return str(value)
    return value


PartyId = Annotated[str, BeforeValidator(_coerce_id), Field(min_length=1)]
Latitude = Annotated[float, Field(ge=-90, le=90, allow_inf_nan=False)]
Longitude = Annotated[float, Field(ge=-180, le=180, allow_inf_nan=False)]


class _EventPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class RegisterPayload(_EventPayload):
    """Payload of a ``register`` event."""

    party_id: PartyId = Field(validation_alias=AliasChoices("party_id", "userId", "id"))
    role: PartyRole
    category: str = Field(
        default="", validation_alias=AliasChoices("category", "groupe", "bloodGroup")
    )
    latitude: Latitude | None = None
    longitude: Longitude | None = None

    @field_validator("role", mode="before")
    @classmethod
    def _resolve_role_alias(cls, value: Any) -> Any:
        if isinstance(value, str):
            try:
                return PartyRole(value)
            except ValueError:
                return value
        return value

    @property
    def location(self) -> Location | None:
        if self.latitude is None or self.longitude is None:
            return None
        return Location(latitude=self.latitude, longitude=self.longitude)


class UpdateLocationPayload(_EventPayload):
    """Payload of an ``updateLocation`` event."""

    party_id: PartyId = Field(validation_alias=AliasChoices("party_id", "userId", "id"))
    latitude: Latitude
    longitude: Longitude


class SendAlertPayload(_EventPayload):
    """Payload of a ``sendAlert`` event."""

    requester_id: PartyId = Field(
        validation_alias=AliasChoices("requester_id", "requesterId", "medecinId")
    )
    category: str = Field(validation_alias=AliasChoices("category", "groupe", "bloodGroup"))
    radius_km: float = Field(
        gt=0,
        allow_inf_nan=False,
        validation_alias=AliasChoices("radius_km", "radiusKm", "rayon"),
    )
    latitude: Latitude
    longitude: Longitude
    zone_label: str = Field(default="", validation_alias=AliasChoices("zone_label", "zone"))

    @field_validator("category")
    @classmethod
    def _category_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("category must not be empty")
        return value

    def to_request(self) -> AlertRequest:
        """Build the immutable AlertRequest, assigning a fresh alert id."""
        return AlertRequest(
            requester_id=self.requester_id,
            category=self.category,
            location=Location(latitude=self.latitude, longitude=self.longitude),
            radius_km=self.radius_km,
            zone_label=self.zone_label,
        )


class RespondPayload(_EventPayload):
    """Payload of a ``respondToAlert`` event."""

    alert_id: str = Field(
        min_length=1, validation_alias=AliasChoices("alert_id", "alertId", "alerteId")
    )
    recipient_id: PartyId = Field(
        validation_alias=AliasChoices("recipient_id", "recipientId", "donneurId")
    )
    requester_id: PartyId = Field(
        validation_alias=AliasChoices("requester_id", "requesterId", "medecinId")
    )
    accepted: bool

    def to_response(self) -> AlertResponse:
        return AlertResponse(
            alert_id=self.alert_id,
            recipient_id=self.recipient_id,
            requester_id=self.requester_id,
            accepted=self.accepted,
        )


EventPayload = RegisterPayload | UpdateLocationPayload | SendAlertPayload | RespondPayload

EVENT_PAYLOADS: dict[str, type[_EventPayload]] = {
    EVENT_REGISTER: RegisterPayload,
    EVENT_UPDATE_LOCATION: UpdateLocationPayload,
    EVENT_SEND_ALERT: SendAlertPayload,
    EVENT_RESPOND: RespondPayload,
}


def _describe(error: ValidationError) -> str:
    parts = []
    for err in error.errors():
        loc = ".".join(str(part) for part in err["loc"])
        parts.append(f"{loc}: {err['msg']}" if loc else err["msg"])
    return "; ".join(parts)


def parse_event(event: str, data: Any) -> EventPayload:
    """Validate a raw event payload into its typed variant.

    Raises:
        InvalidRequest: If the event is unknown or the payload is malformed
    """
    model = EVENT_PAYLOADS.get(event)
    if model is None:
        raise InvalidRequest(event, "unknown event")
    if not isinstance(data, dict):
        raise InvalidRequest(event, "payload must be an object")

    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise InvalidRequest(event, _describe(e)) from e
