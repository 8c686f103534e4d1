"""Connection registry: the table of currently connected parties.

A party is in the registry iff it holds a live channel. Every method runs to
completion without awaiting, so reads and writes on a single party id are
linearizable on the event loop. Scans work on a copied snapshot and are not
atomic against concurrent connects and disconnects.
"""

import logging
from collections.abc import Callable
from typing import Any

from bloodlink.models.party import Location, Party, PartyRole

logger = logging.getLogger(__name__)


class ConnectionRegistry:
    """Registry of connected parties keyed by party id."""

    def __init__(self) -> None:
        self._parties: dict[str, Party] = {}

    def put(self, party_id: str, party: Party) -> None:
        """Insert or fully replace the entry for a party."""
        self._parties[party_id] = party

    def update_location(self, party_id: str, latitude: float, longitude: float) -> bool:
        """Update a connected party's location in place.

        Returns:
            True if the party was present
        """
        party = self._parties.get(party_id)
        if party is None:
            return False
        party.location = Location(latitude=latitude, longitude=longitude)
        return True

    def get(self, party_id: str) -> Party | None:
        """Get a connected party by id."""
        return self._parties.get(party_id)

    def has(self, party_id: str) -> bool:
        """Whether the party is currently connected."""
        return party_id in self._parties

    def remove(self, party_id: str) -> Party | None:
        """Remove a party. Returns the removed entry, or None if absent."""
        return self._parties.pop(party_id, None)

    def snapshot(self) -> list[Party]:
        """Copy every entry so callers can iterate while the table changes."""
        return [party.model_copy(deep=True) for party in self._parties.values()]

    def for_each_recipient_of_category(
        self,
        category: str,
        fn: Callable[[Party], Any],
    ) -> int:
        """Call fn for each connected recipient of the given category.

        Iterates a snapshot taken before the first call.

        Returns:
            Number of parties visited
        """
        visited = 0
        for party in self.recipients_of_category(category):
            fn(party)
            visited += 1
        return visited

    def recipients_of_category(self, category: str) -> list[Party]:
        """Snapshot of connected recipients matching a category."""
        return [
            p for p in self.snapshot()
            if p.role == PartyRole.RECIPIENT and p.category == category
        ]

    def __len__(self) -> int:
        return len(self._parties)

    def __contains__(self, party_id: object) -> bool:
        return party_id in self._parties

    def status(self) -> dict[str, Any]:
        """Registry size and party list for operational visibility."""
        parties = list(self._parties.values())
        return {
            "connected_users": len(parties),
            "users": [
                {
                    "party_id": p.id,
                    "role": p.role.value,
                    "category": p.category,
                }
                for p in parties
            ],
        }
