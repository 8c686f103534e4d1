"""Hybrid alert dispatch.

Connected donors get the alert on their live channel; donors known only to
the directory get a push. Registry membership, checked once per donor while
scanning the directory, is the boundary between the two paths. It is a
point-in-time check, so a donor connecting mid-dispatch may be notified on
neither path or on both.
"""

from __future__ import annotations

import asyncio
import logging
from math import isfinite
from typing import TYPE_CHECKING

from bloodlink.exceptions import InvalidRequest, PushDeliveryFailed, RecipientUnreachable
from bloodlink.manager.connection_registry import ConnectionRegistry
from bloodlink.manager.geo_filter import distance_km, within
from bloodlink.models.alert import (
    AlertRequest,
    DeliveryFailure,
    DispatchSummary,
    FailureKind,
)
from bloodlink.models.events import EVENT_ALERT_SENT, EVENT_NEW_ALERT, EVENT_SEND_ALERT
from bloodlink.models.party import Party
from bloodlink.services.push import PushGateway, alert_message

if TYPE_CHECKING:
    from bloodlink.api.transport import Transport
    from bloodlink.db.client import Directory

logger = logging.getLogger(__name__)


class AlertDispatcher:
    """Fans an alert out to eligible donors over live and push channels."""

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
        """Initialize the dispatcher.

        Args:
            registry: Table of connected parties
            directory: Persistent party directory
            push: Push delivery gateway
            transport: Live channel transport
            directory_timeout: Deadline for each directory call, in seconds
            push_timeout: Deadline for each push attempt, in seconds
        """
        self._registry = registry
        self._directory = directory
        self._push = push
        self._transport = transport
        self._directory_timeout = directory_timeout
        self._push_timeout = push_timeout

    async def dispatch(
        self,
        request: AlertRequest,
        reply_to: str | None = None,
    ) -> DispatchSummary:
        """Dispatch an alert and report the summary to the requester.

        Args:
            request: The alert to broadcast
            reply_to: Channel handle of the requester, if connected

        Returns:
            DispatchSummary with live/push counts and per-recipient failures

        Raises:
            InvalidRequest: If the alert fields are unusable
        """
        self._validate(request)
        logger.info(
            f"Alert {request.alert_id} from {request.requester_id}: "
            f"category={request.category} zone={request.zone_label!r} "
            f"radius={request.radius_km} km"
        )

        summary = DispatchSummary(alert_id=request.alert_id)
        persist = asyncio.create_task(self._persist(request))

        await self._notify_live(request, summary)
        await self._notify_offline(request, summary)

        failure = await persist
        if failure is not None:
            summary.persisted = False
            summary.failures.append(failure)

        logger.info(
            f"Alert {request.alert_id} result: {summary.live_count} live + "
            f"{summary.push_count} push = {summary.total} total, "
            f"{len(summary.failures)} failures"
        )

        if reply_to is not None:
            await self._report(reply_to, summary)
        return summary

    @staticmethod
    def _validate(request: AlertRequest) -> None:
        if not request.category.strip():
            raise InvalidRequest(EVENT_SEND_ALERT, "category must not be empty")
        if not isfinite(request.radius_km) or request.radius_km <= 0:
            raise InvalidRequest(EVENT_SEND_ALERT, "radius_km must be a positive number")
        if not (isfinite(request.location.latitude) and isfinite(request.location.longitude)):
            raise InvalidRequest(EVENT_SEND_ALERT, "location must be finite")

    async def _persist(self, request: AlertRequest) -> DeliveryFailure | None:
        try:
            await asyncio.wait_for(
                self._directory.append_alert(request),
                timeout=self._directory_timeout,
            )
            return None
        except Exception as e:
            reason = str(e) or type(e).__name__
            logger.error(f"Could not record alert {request.alert_id}: {reason}")
            return DeliveryFailure(kind=FailureKind.DIRECTORY_UNAVAILABLE, reason=reason)

    # -------------------------------------------------------------------------
    # Fast path: connected donors
    # -------------------------------------------------------------------------

    def _live_matches(self, request: AlertRequest) -> list[tuple[Party, float]]:
        matches = []
        for party in self._registry.recipients_of_category(request.category):
            if party.channel_handle is None:
                continue
            if within(request.location, party.location, request.radius_km):
                matches.append((party, distance_km(request.location, party.location)))
        return matches

    async def _notify_live(self, request: AlertRequest, summary: DispatchSummary) -> None:
        matches = self._live_matches(request)
        if not matches:
            return

        results = await asyncio.gather(
            *(self._send_live(request, party, distance) for party, distance in matches),
            return_exceptions=True,
        )

        for (party, _), result in zip(matches, results):
            if isinstance(result, BaseException):
                reason = str(result) or type(result).__name__
                logger.warning(f"Live alert to {party.id} failed: {reason}")
                summary.failures.append(DeliveryFailure(
                    recipient_id=party.id,
                    kind=FailureKind.LIVE_DELIVERY_FAILED,
                    reason=reason,
                ))
            else:
                summary.live_count += 1

    async def _send_live(self, request: AlertRequest, party: Party, distance: float) -> None:
        await self._transport.send_to(
            party.channel_handle,
            EVENT_NEW_ALERT,
            {
                "alert_id": request.alert_id,
                "requester_id": request.requester_id,
                "zone": request.zone_label,
                "category": request.category,
                "distance": round(distance, 1),
            },
        )
        logger.info(f"Live alert {request.alert_id} -> {party.id} ({distance:.1f} km)")

    # -------------------------------------------------------------------------
    # Fallback path: donors known only to the directory
    # -------------------------------------------------------------------------

    async def _notify_offline(self, request: AlertRequest, summary: DispatchSummary) -> None:
        try:
            candidates = await asyncio.wait_for(
                self._directory.query_recipients_by_category(request.category),
                timeout=self._directory_timeout,
            )
        except Exception as e:
            reason = str(e) or type(e).__name__
            logger.error(f"Offline lookup for alert {request.alert_id} failed: {reason}")
            summary.failures.append(DeliveryFailure(
                kind=FailureKind.DIRECTORY_UNAVAILABLE,
                reason=reason,
            ))
            return

        targets: list[tuple[Party, float]] = []
        for party in candidates:
            if self._registry.has(party.id):
                logger.debug(f"Donor {party.id} is connected, skipping push")
                continue
            if party.category != request.category:
                continue
            if not within(request.location, party.location, request.radius_km):
                continue
            distance = distance_km(request.location, party.location)

            if not party.push_token:
                reason = str(RecipientUnreachable(party.id))
                logger.info(reason)
                summary.failures.append(DeliveryFailure(
                    recipient_id=party.id,
                    kind=FailureKind.RECIPIENT_UNREACHABLE,
                    reason=reason,
                ))
                continue

            targets.append((party, distance))

        if not targets:
            return

        results = await asyncio.gather(
            *(self._send_push(request, party, distance) for party, distance in targets),
            return_exceptions=True,
        )

        for (party, _), result in zip(targets, results):
            if isinstance(result, BaseException):
                if isinstance(result, (TimeoutError, asyncio.TimeoutError)):
                    reason = f"push timed out after {self._push_timeout}s"
                else:
                    reason = str(result) or type(result).__name__
                logger.warning(f"Push alert to {party.id} failed: {reason}")
                summary.failures.append(DeliveryFailure(
                    recipient_id=party.id,
                    kind=FailureKind.PUSH_DELIVERY_FAILED,
                    reason=reason,
                ))
            else:
                summary.push_count += 1

    async def _send_push(self, request: AlertRequest, party: Party, distance: float) -> None:
        result = await asyncio.wait_for(
            self._push.send(party.push_token, alert_message(request, distance)),
            timeout=self._push_timeout,
        )
        if not result.success:
            raise PushDeliveryFailed(result.error_message or "unknown error")
        logger.info(f"Push alert {request.alert_id} -> {party.id} ({distance:.1f} km)")

    async def _report(self, handle: str, summary: DispatchSummary) -> None:
        try:
            await self._transport.send_to(handle, EVENT_ALERT_SENT, summary.to_event())
        except Exception as e:
            logger.warning(f"Could not report alert {summary.alert_id} to requester: {e}")
