"""Party models: connected or directory-known participants."""

from enum import Enum

from pydantic import BaseModel

# Role names used by the mobile clients and older directory rows
ROLE_ALIASES = {
    "medecin": "requester",
    "doctor": "requester",
    "donneur": "recipient",
    "donor": "recipient",
}


class PartyRole(str, Enum):
    """Role a party plays in the alert exchange."""

    REQUESTER = "requester"  # Doctor issuing alerts
    RECIPIENT = "recipient"  # Donor receiving alerts

    @classmethod
    def _missing_(cls, value: object) -> "PartyRole | None":
        if isinstance(value, str):
            alias = ROLE_ALIASES.get(value.strip().lower())
            if alias is not None:
                return cls(alias)
        return None

    def stored_values(self) -> list[str]:
        """Every role string the directory may hold for this role."""
        return [self.value] + [
            alias for alias, value in ROLE_ALIASES.items() if value == self.value
        ]


class Location(BaseModel):
    """A latitude/longitude pair in decimal degrees."""

    latitude: float
    longitude: float


class Party(BaseModel):
    """One participant, either live in the registry or loaded from the directory."""

    id: str
    role: PartyRole
    category: str = ""
    location: Location | None = None
    channel_handle: str | None = None  # Set only while connected
    push_token: str | None = None
    name: str | None = None

    @property
    def online(self) -> bool:
        """Whether the party currently holds a live channel."""
        return self.channel_handle is not None

    @property
    def is_recipient(self) -> bool:
        return self.role == PartyRole.RECIPIENT
