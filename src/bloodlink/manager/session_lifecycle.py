"""Session lifecycle: connect, register, location updates, disconnect.

The lifecycle owns the channel -> party id association. A party enters the
connection registry on register and leaves it on disconnect; the directory's
online flag and location are mirrored on a best-effort basis.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any

from bloodlink.manager.connection_registry import ConnectionRegistry
from bloodlink.models.alert import RegistrationAck
from bloodlink.models.events import EVENT_REGISTERED, RegisterPayload
from bloodlink.models.party import Party

if TYPE_CHECKING:
    from bloodlink.api.transport import Transport
    from bloodlink.db.client import Directory

logger = logging.getLogger(__name__)


class SessionLifecycle:
    """Registers parties on connect and removes them on disconnect."""

    def __init__(
        self,
        registry: ConnectionRegistry,
        directory: Directory,
        transport: Transport,
        *,
        directory_timeout: float = 5.0,
    ) -> None:
        self._registry = registry
        self._directory = directory
        self._transport = transport
        self._directory_timeout = directory_timeout
        self._sessions: dict[str, str] = {}  # channel handle -> party id
        self._pending: set[asyncio.Task] = set()

    def on_connect(self, handle: str) -> None:
        """Note a new channel. Nothing is registered until ``register``."""
        logger.info(f"New connection: {handle}")

    def party_for(self, handle: str) -> str | None:
        """Party id registered on a channel, if any."""
        return self._sessions.get(handle)

    async def on_register(self, handle: str, payload: RegisterPayload) -> RegistrationAck:
        """Register a party on a channel and acknowledge it.

        The push token is pulled from the directory unless an earlier
        registration of the same party already carried one. A failed lookup
        still registers the party locally; the ack reports the reason.

        Args:
            handle: Channel the register event arrived on
            payload: Validated register payload

        Returns:
            The acknowledgment sent back on the channel
        """
        party_id = payload.party_id
        logger.info(f"Registering party {party_id} ({payload.role.value}) on {handle}")

        push_token: str | None = None
        name: str | None = None
        error: str | None = None

        existing = self._registry.get(party_id)
        if existing is not None and existing.push_token:
            push_token = existing.push_token
            name = existing.name
        else:
            try:
                stored = await asyncio.wait_for(
                    self._directory.get_party(party_id),
                    timeout=self._directory_timeout,
                )
                if stored is not None:
                    push_token = stored.push_token
                    name = stored.name
            except Exception as e:
                error = str(e) or type(e).__name__
                logger.warning(f"Push token lookup for {party_id} failed: {error}")

        # A channel re-registering under a different id releases the old one
        previous_id = self._sessions.get(handle)
        if previous_id is not None and previous_id != party_id:
            self._release(previous_id, handle)

        self._registry.put(party_id, Party(
            id=party_id,
            role=payload.role,
            category=payload.category,
            location=payload.location,
            channel_handle=handle,
            push_token=push_token,
            name=name,
        ))
        self._sessions[handle] = party_id

        await self._mirror(party_id, {"online": True, "last_channel": handle})

        ack = RegistrationAck(
            success=True,
            party_id=party_id,
            message=f"Registered as {payload.role.value}",
            push_token_known=push_token is not None,
            error=error,
        )
        try:
            await self._transport.send_to(handle, EVENT_REGISTERED, ack.model_dump(mode="json"))
        except Exception as e:
            logger.warning(f"Could not acknowledge registration of {party_id}: {e}")

        logger.info(
            f"Party {party_id} registered | category: {payload.category or '-'} | "
            f"connected: {len(self._registry)}"
        )
        return ack

    def on_update_location(self, party_id: str, latitude: float, longitude: float) -> bool:
        """Update a connected party's location.

        The directory copy is updated in the background.

        Returns:
            True if the party was connected
        """
        if not self._registry.update_location(party_id, latitude, longitude):
            logger.debug(f"Location update for unknown party {party_id} ignored")
            return False

        self._spawn(self._mirror(party_id, {"latitude": latitude, "longitude": longitude}))
        logger.info(f"Location updated: {party_id} ({latitude}, {longitude})")
        return True

    async def on_disconnect(self, handle: str) -> str | None:
        """Remove the party registered on a channel.

        Returns:
            The party id, or None if the channel never registered
        """
        party_id = self._sessions.pop(handle, None)
        if party_id is None:
            logger.info(f"Disconnected: {handle} (never registered)")
            return None

        if self._release(party_id, handle):
            await self._mirror(party_id, {"online": False})
        logger.info(f"Party {party_id} disconnected ({len(self._registry)} remaining)")
        return party_id

    def _release(self, party_id: str, handle: str) -> bool:
        # Only remove the entry if it still belongs to this channel; the party
        # may have re-registered on a newer one.
        current = self._registry.get(party_id)
        if current is None or current.channel_handle != handle:
            return False
        self._registry.remove(party_id)
        return True

    async def _mirror(self, party_id: str, fields: dict[str, Any]) -> None:
        try:
            await asyncio.wait_for(
                self._directory.upsert_party(party_id, fields),
                timeout=self._directory_timeout,
            )
        except Exception as e:
            logger.warning(
                f"Directory update for {party_id} failed: {str(e) or type(e).__name__}"
            )

    def _spawn(self, coro) -> None:
        task = asyncio.create_task(coro)
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def drain(self) -> None:
        """Wait for background directory updates to finish."""
        if self._pending:
            await asyncio.gather(*self._pending, return_exceptions=True)
