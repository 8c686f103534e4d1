"""Push delivery to parties without a live channel.

Wraps Firebase Cloud Messaging (HTTP v1). Each send is a single attempt;
retries, if any, are the push service's concern.
"""

import asyncio
import logging
from typing import Protocol

import httpx
from google.auth.exceptions import GoogleAuthError
from google.auth.transport.requests import Request
from google.oauth2 import service_account
from pydantic import BaseModel, Field

from bloodlink.models.alert import AlertRequest, AlertResponse

logger = logging.getLogger(__name__)


# Default timeout for HTTP requests
DEFAULT_TIMEOUT = 10.0

FCM_ENDPOINT = "https://fcm.googleapis.com/v1/projects/{project_id}/messages:send"
ANDROID_CHANNEL_ID = "blood_alerts"
FCM_SCOPES = ["https://www.googleapis.com/auth/firebase.messaging"]


class PushMessage(BaseModel):
    """A push notification to deliver to one token."""

    title: str
    body: str
    data: dict[str, str] = Field(default_factory=dict)
    high_priority: bool = False


class PushResult(BaseModel):
    """Result of one push attempt."""

    success: bool
    error_message: str | None = None
    external_id: str | None = None  # Message name returned by FCM


class PushGateway(Protocol):
    """Protocol for best-effort push delivery."""

    async def send(self, token: str, message: PushMessage) -> PushResult:
        """Make a single delivery attempt."""
        ...


def alert_message(alert: AlertRequest, distance_km: float) -> PushMessage:
    """Build the push sent to an offline donor for an alert."""
    distance = f"{distance_km:.1f}"
    where = alert.zone_label or "a nearby hospital"
    return PushMessage(
        title="\U0001f6a8 Urgent blood donation - BloodLink",
        body=f"A {alert.category} donation is needed at {where} ({distance} km from you)",
        data={
            "type": "blood_alert",
            "alert_id": alert.alert_id,
            "requester_id": alert.requester_id,
            "zone": alert.zone_label,
            "category": alert.category,
            "distance": distance,
        },
        high_priority=True,
    )


def response_message(response: AlertResponse) -> PushMessage:
    """Build the push sent to an offline doctor when a donor replies."""
    verb = "accepted" if response.accepted else "declined"
    title = "✅ Donation accepted" if response.accepted else "❌ Donation declined"
    return PushMessage(
        title=title,
        body=f"A donor has {verb} your alert",
        data={
            "type": "alert_response",
            "alert_id": response.alert_id,
            "recipient_id": response.recipient_id,
            "accepted": "true" if response.accepted else "false",
        },
    )


class FcmPushGateway:
    """Send push notifications via the FCM HTTP v1 API."""

    def __init__(
        self,
        project_id: str,
        credentials: service_account.Credentials,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        """Initialize with FCM credentials.

        Args:
            project_id: Firebase project id
            credentials: Service-account credentials scoped for messaging
            timeout: Per-request timeout in seconds
        """
        self._url = FCM_ENDPOINT.format(project_id=project_id)
        self._credentials = credentials
        self._timeout = timeout
        self._refresh_lock = asyncio.Lock()

    @classmethod
    def from_service_account_file(
        cls,
        path: str,
        project_id: str | None = None,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> "FcmPushGateway":
        """Build a gateway from a Firebase service-account JSON key.

        The project id defaults to the one recorded in the key.
        """
        credentials = service_account.Credentials.from_service_account_file(
            path, scopes=FCM_SCOPES
        )
        return cls(
            project_id=project_id or credentials.project_id,
            credentials=credentials,
            timeout=timeout,
        )

    async def _bearer_token(self) -> str:
        # Access tokens last about an hour; mint a new one when expired
        if not self._credentials.valid:
            async with self._refresh_lock:
                if not self._credentials.valid:
                    await asyncio.to_thread(self._credentials.refresh, Request())
                    logger.info("FCM access token refreshed")
        return self._credentials.token

    def _build_body(self, token: str, message: PushMessage) -> dict:
        body: dict = {
            "message": {
                "token": token,
                "notification": {
                    "title": message.title,
                    "body": message.body,
                },
                "data": message.data,
            }
        }
        if message.high_priority:
            body["message"]["android"] = {
                "priority": "high",
                "notification": {
                    "sound": "default",
                    "channel_id": ANDROID_CHANNEL_ID,
                },
            }
        return body

    async def send(self, token: str, message: PushMessage) -> PushResult:
        """Send one push via FCM."""
        try:
            access_token = await self._bearer_token()
        except GoogleAuthError as e:
            logger.error(f"FCM credential refresh failed: {e}")
            return PushResult(success=False, error_message=f"FCM credential refresh failed: {e}")

        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                response = await client.post(
                    self._url,
                    json=self._build_body(token, message),
                    headers={"Authorization": f"Bearer {access_token}"},
                )

                if response.status_code == 200:
                    name = response.json().get("name")
                    logger.info(f"FCM push sent: {name}")
                    return PushResult(success=True, external_id=name)
                else:
                    return PushResult(
                        success=False,
                        error_message=f"FCM API error: {response.status_code}",
                    )

        except httpx.TimeoutException:
            return PushResult(success=False, error_message="FCM request timed out")
        except httpx.HTTPError as e:
            logger.error(f"FCM push failed: {e}")
            return PushResult(success=False, error_message=str(e))


class LoggingPushGateway:
    """Stand-in used when FCM credentials are not configured.

    Logs the intent and reports failure, so offline recipients are counted
    as not reached.
    """

    async def send(self, token: str, message: PushMessage) -> PushResult:
        logger.info(
            f"Push notification (not sent - FCM not configured): "
            f"token={token[:20]}..., title={message.title}"
        )
        return PushResult(
            success=False,
            error_message="Push delivery not configured",
        )
