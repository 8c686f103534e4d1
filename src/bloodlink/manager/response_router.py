"""Routes a donor's reply back to the doctor who issued the alert."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from bloodlink.exceptions import RecipientUnreachable
from bloodlink.manager.connection_registry import ConnectionRegistry
from bloodlink.models.alert import AlertResponse, RouteOutcome, RouteStatus
from bloodlink.models.events import EVENT_ALERT_RESPONSE
from bloodlink.services.push import PushGateway, response_message

if TYPE_CHECKING:
    from bloodlink.api.transport import Transport
    from bloodlink.db.client import Directory

logger = logging.getLogger(__name__)


class ResponseRouter:
    """Records responses and delivers them over the requester's live channel or push."""

    def __init__(
        self,
        registry: ConnectionRegistry,
        directory: Directory,
        push: PushGateway,
        transport: Transport,
        *,
        directory_timeout: float = 5.0,
        push_timeout: float = 10.0,
    ) -> None:
        self._registry = registry
        self._directory = directory
        self._push = push
        self._transport = transport
        self._directory_timeout = directory_timeout
        self._push_timeout = push_timeout

    async def route(self, response: AlertResponse) -> RouteOutcome:
        """Record a response and deliver it to the requester.

        Never raises for delivery problems; the outcome carries the status.

        Args:
            response: The donor's response

        Returns:
            RouteOutcome describing where the response went
        """
        verdict = "accepted" if response.accepted else "declined"
        logger.info(
            f"Donor {response.recipient_id} {verdict} alert {response.alert_id}"
        )

        recorded = await self._record(response)

        requester = self._registry.get(response.requester_id)
        if requester is not None and requester.channel_handle is not None:
            try:
                await self._transport.send_to(
                    requester.channel_handle,
                    EVENT_ALERT_RESPONSE,
                    {
                        "alert_id": response.alert_id,
                        "recipient_id": response.recipient_id,
                        "accepted": response.accepted,
                    },
                )
                logger.info(f"Requester {response.requester_id} notified live")
                return self._outcome(response, RouteStatus.DELIVERED_LIVE, recorded)
            except Exception as e:
                # Channel went away before the disconnect was processed
                logger.warning(
                    f"Live delivery to requester {response.requester_id} failed: {e}"
                )

        return await self._route_push(response, recorded)

    async def _record(self, response: AlertResponse) -> bool:
        try:
            await asyncio.wait_for(
                self._directory.append_response(response),
                timeout=self._directory_timeout,
            )
            return True
        except Exception as e:
            logger.error(
                f"Could not record response to {response.alert_id}: {str(e) or type(e).__name__}"
            )
            return False

    async def _route_push(self, response: AlertResponse, recorded: bool) -> RouteOutcome:
        try:
            requester = await asyncio.wait_for(
                self._directory.get_party(response.requester_id),
                timeout=self._directory_timeout,
            )
        except Exception as e:
            reason = str(e) or type(e).__name__
            logger.error(f"Requester lookup for {response.requester_id} failed: {reason}")
            return self._outcome(response, RouteStatus.FAILED, recorded, reason)

        if requester is None or not requester.push_token:
            reason = str(RecipientUnreachable(response.requester_id))
            logger.info(f"Response to {response.alert_id} undeliverable: {reason}")
            return self._outcome(response, RouteStatus.UNDELIVERABLE, recorded, reason)

        try:
            result = await asyncio.wait_for(
                self._push.send(requester.push_token, response_message(response)),
                timeout=self._push_timeout,
            )
        except Exception as e:
            reason = str(e) or type(e).__name__
            logger.error(f"Push to requester {response.requester_id} failed: {reason}")
            return self._outcome(response, RouteStatus.FAILED, recorded, reason)

        if not result.success:
            logger.warning(
                f"Push to requester {response.requester_id} failed: {result.error_message}"
            )
            return self._outcome(response, RouteStatus.FAILED, recorded, result.error_message)

        logger.info(f"Requester {response.requester_id} notified by push")
        return self._outcome(response, RouteStatus.DELIVERED_PUSH, recorded)

    @staticmethod
    def _outcome(
        response: AlertResponse,
        status: RouteStatus,
        recorded: bool,
        reason: str | None = None,
    ) -> RouteOutcome:
        return RouteOutcome(
            alert_id=response.alert_id,
            requester_id=response.requester_id,
            status=status,
            recorded=recorded,
            reason=reason,
        )
