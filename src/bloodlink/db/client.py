"""Supabase-backed party directory and alert history."""

import asyncio
import logging
import time
from collections.abc import Callable
from typing import Any, Protocol, TypeVar

from supabase import create_client, Client

from bloodlink.config import get_settings
from bloodlink.exceptions import DirectoryUnavailable
from bloodlink.models.alert import AlertRequest, AlertResponse, AlertStatus
from bloodlink.models.party import Location, Party, PartyRole

logger = logging.getLogger(__name__)

T = TypeVar("T")

PARTIES_TABLE = "parties"
ALERTS_TABLE = "alerts"
RESPONSES_TABLE = "alert_responses"


class Directory(Protocol):
    """Protocol for the persistent party directory."""

    async def get_party(self, party_id: str) -> Party | None:
        """Get a stored party, or None if unknown."""
        ...

    async def query_recipients_by_category(self, category: str) -> list[Party]:
        """Get every stored recipient with the given category."""
        ...

    async def upsert_party(self, party_id: str, fields: dict[str, Any]) -> None:
        """Create or update fields of a stored party."""
        ...

    async def append_alert(self, alert: AlertRequest) -> None:
        """Append an alert to history."""
        ...

    async def append_response(self, response: AlertResponse) -> None:
        """Append a response to history."""
        ...


def row_to_party(row: dict[str, Any]) -> Party | None:
    """Convert a parties row to a Party. Returns None for unusable rows.

    A malformed row is logged and skipped so it cannot fail a whole query.
    """
    try:
        role = PartyRole(row.get("role"))
    except ValueError:
        logger.warning(f"Skipping party {row.get('id')} with unknown role {row.get('role')!r}")
        return None

    try:
        latitude = row.get("latitude")
        longitude = row.get("longitude")
        location = None
        if latitude is not None and longitude is not None:
            location = Location(latitude=latitude, longitude=longitude)

        return Party(
            id=str(row["id"]),
            role=role,
            category=row.get("category") or "",
            location=location,
            push_token=row.get("push_token") or None,
            name=row.get("name"),
        )
    except (ValueError, KeyError) as e:
        logger.warning(f"Skipping malformed party row {row.get('id')!r}: {e}")
        return None


class DirectoryClient:
    """Client for Supabase directory operations.

    The Supabase client is synchronous, so every query runs in a worker
    thread and is wrapped so failures surface as DirectoryUnavailable.
    """

    def __init__(self, client: Client | None = None) -> None:
        if client is None:
            settings = get_settings()
            client = create_client(
                settings.supabase_url,
                settings.supabase_key,
            )
        self.client: Client = client

    async def _run(self, operation: str, fn: Callable[[], T]) -> T:
        try:
            return await asyncio.to_thread(fn)
        except Exception as e:
            logger.error(f"Directory {operation} failed: {e}")
            raise DirectoryUnavailable(operation, str(e)) from e

    async def get_party(self, party_id: str) -> Party | None:
        """Get a stored party by id.

        Args:
            party_id: The party id

        Returns:
            The Party, or None if not found
        """
        result = await self._run(
            "get_party",
            lambda: self.client.table(PARTIES_TABLE)
            .select("*")
            .eq("id", party_id)
            .execute(),
        )
        if result.data:
            return row_to_party(result.data[0])
        return None

    async def query_recipients_by_category(self, category: str) -> list[Party]:
        """Get all stored recipients with a category.

        Args:
            category: Blood group to match

        Returns:
            List of recipients (possibly stale)
        """
        result = await self._run(
            "query_recipients_by_category",
            lambda: self.client.table(PARTIES_TABLE)
            .select("*")
            .in_("role", PartyRole.RECIPIENT.stored_values())
            .eq("category", category)
            .execute(),
        )
        parties = [row_to_party(row) for row in result.data or []]
        return [p for p in parties if p is not None]

    async def upsert_party(self, party_id: str, fields: dict[str, Any]) -> None:
        """Create or update a stored party.

        Args:
            party_id: The party id
            fields: Columns to set
        """
        data = {"id": party_id, **fields}
        await self._run(
            "upsert_party",
            lambda: self.client.table(PARTIES_TABLE).upsert(data).execute(),
        )
        logger.debug(f"Upserted party {party_id}: {sorted(fields)}")

    async def append_alert(self, alert: AlertRequest) -> None:
        """Persist an alert with status=active.

        Args:
            alert: The alert request
        """
        data = {
            "id": alert.alert_id,
            "requester_id": alert.requester_id,
            "category": alert.category,
            "latitude": alert.location.latitude,
            "longitude": alert.location.longitude,
            "radius_km": alert.radius_km,
            "zone_label": alert.zone_label,
            "status": AlertStatus.ACTIVE.value,
            "created_at": alert.created_at.isoformat(),
        }
        await self._run(
            "append_alert",
            lambda: self.client.table(ALERTS_TABLE).insert(data).execute(),
        )
        logger.debug(f"Recorded alert {alert.alert_id}")

    async def append_response(self, response: AlertResponse) -> None:
        """Append a response to the history table.

        Args:
            response: The alert response
        """
        data = {
            "alert_id": response.alert_id,
            "recipient_id": response.recipient_id,
            "requester_id": response.requester_id,
            "accepted": response.accepted,
            "responded_at": response.responded_at.isoformat(),
        }
        await self._run(
            "append_response",
            lambda: self.client.table(RESPONSES_TABLE).insert(data).execute(),
        )
        logger.debug(
            f"Recorded response from {response.recipient_id} to {response.alert_id}"
        )

    async def health_check(self) -> dict[str, Any]:
        """Check directory connectivity.

        Returns:
            Dict with:
                - healthy: bool - whether the directory is reachable
                - latency_ms: float - query latency in milliseconds
                - error: str | None - error message if unhealthy
        """
        start = time.perf_counter()
        try:
            await self._run(
                "health_check",
                lambda: self.client.table(PARTIES_TABLE).select("id").limit(1).execute(),
            )
            latency_ms = (time.perf_counter() - start) * 1000
            return {
                "healthy": True,
                "latency_ms": round(latency_ms, 2),
                "error": None,
            }
        except DirectoryUnavailable as e:
            latency_ms = (time.perf_counter() - start) * 1000
            return {
                "healthy": False,
                "latency_ms": round(latency_ms, 2),
                "error": e.reason,
            }
