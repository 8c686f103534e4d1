"""Custom exceptions for BloodLink."""


class DispatchError(Exception):
    """Base class for errors scoped to a single request or recipient."""


class InvalidRequest(DispatchError):
    """Raised when an inbound event payload is malformed."""

    def __init__(self, event: str, reason: str) -> None:
        self.event = event
        self.reason = reason
        super().__init__(f"Invalid '{event}' payload: {reason}")


class DirectoryUnavailable(DispatchError):
    """Raised when a call to the persistent directory fails or times out."""

    def __init__(self, operation: str, reason: str) -> None:
        self.operation = operation
        self.reason = reason
        super().__init__(f"Directory {operation} failed: {reason}")


class PushDeliveryFailed(DispatchError):
    """Raised when a single push delivery attempt fails."""

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(f"Push delivery failed: {reason}")


class RecipientUnreachable(DispatchError):
    """Raised when a party has neither a live channel nor a push token."""

    def __init__(self, party_id: str) -> None:
        self.party_id = party_id
        super().__init__(f"Party {party_id} has no live channel and no push token")
