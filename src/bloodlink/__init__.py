"""BloodLink - Hybrid live/push alert dispatch for urgent blood donation requests."""

__version__ = "0.1.0"

from bloodlink.exceptions import (
    DirectoryUnavailable,
    DispatchError,
    InvalidRequest,
    PushDeliveryFailed,
    RecipientUnreachable,
)

__all__ = [
    "__version__",
    "DirectoryUnavailable",
    "DispatchError",
    "InvalidRequest",
    "PushDeliveryFailed",
    "RecipientUnreachable",
]
