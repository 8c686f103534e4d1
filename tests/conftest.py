"""Global test configuration and in-memory collaborators for BloodLink."""

import asyncio
import os
from typing import Any

import pytest

from bloodlink.api.transport import ChannelNotFound
from bloodlink.exceptions import DirectoryUnavailable
from bloodlink.manager.connection_registry import ConnectionRegistry
from bloodlink.models.alert import AlertRequest, AlertResponse
from bloodlink.models.party import Location, Party, PartyRole
from bloodlink.services.push import PushMessage, PushResult


@pytest.fixture(autouse=True, scope="session")
def _set_test_env_vars():
    """Set dummy environment variables for Settings validation.

    Only sets values that aren't already present, so real env vars take
    precedence (useful for integration tests).
    """
    defaults = {
        "SUPABASE_URL": "https://test.supabase.co",
        "SUPABASE_KEY": "test-supabase-key",
    }
    originals = {}
    for key, value in defaults.items():
        if key not in os.environ:
            os.environ[key] = value
            originals[key] = None
        else:
            originals[key] = os.environ[key]

    # Clear the lru_cache on get_settings so it picks up the new env vars
    from bloodlink.config import get_settings
    get_settings.cache_clear()

    yield

    for key, original in originals.items():
        if original is None:
            os.environ.pop(key, None)
        else:
            os.environ[key] = original
    get_settings.cache_clear()


# ---------------------------------------------------------------------------
# In-memory collaborators
# ---------------------------------------------------------------------------

class FakeDirectory:
    """Directory backed by dicts. Operations listed in ``failing`` raise."""

    def __init__(self) -> None:
        self.parties: dict[str, Party] = {}
        self.alerts: list[AlertRequest] = []
        self.responses: list[AlertResponse] = []
        self.upserts: list[tuple[str, dict[str, Any]]] = []
        self.failing: set[str] = set()
        self.on_query = None  # Optional callback run mid-query

    def add(self, party: Party) -> Party:
        self.parties[party.id] = party
        return party

    def _check(self, operation: str) -> None:
        if operation in self.failing:
            raise DirectoryUnavailable(operation, "simulated outage")

    async def get_party(self, party_id: str) -> Party | None:
        self._check("get_party")
        return self.parties.get(party_id)

    async def query_recipients_by_category(self, category: str) -> list[Party]:
        self._check("query_recipients_by_category")
        if self.on_query is not None:
            self.on_query()
        return [
            p for p in self.parties.values()
            if p.role == PartyRole.RECIPIENT and p.category == category
        ]

    async def upsert_party(self, party_id: str, fields: dict[str, Any]) -> None:
        self._check("upsert_party")
        self.upserts.append((party_id, fields))

    async def append_alert(self, alert: AlertRequest) -> None:
        self._check("append_alert")
        self.alerts.append(alert)

    async def append_response(self, response: AlertResponse) -> None:
        self._check("append_response")
        self.responses.append(response)


class FakePush:
    """Push gateway that records every attempt."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, PushMessage]] = []
        self.failing_tokens: set[str] = set()
        self.raising_tokens: set[str] = set()
        self.delays: dict[str, float] = {}
        self.in_flight = 0
        self.max_in_flight = 0

    @property
    def tokens(self) -> list[str]:
        return [token for token, _ in self.calls]

    async def send(self, token: str, message: PushMessage) -> PushResult:
        self.calls.append((token, message))
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.delays.get(token, 0))
            if token in self.raising_tokens:
                raise ConnectionError("push service unreachable")
            if token in self.failing_tokens:
                return PushResult(success=False, error_message="invalid registration token")
            return PushResult(success=True, external_id=f"msg-{len(self.calls)}")
        finally:
            self.in_flight -= 1


class FakeTransport:
    """Transport that records sent events. Handles in ``closed`` fail."""

    def __init__(self) -> None:
        self.sent: list[tuple[str, str, dict[str, Any]]] = []
        self.closed: set[str] = set()

    async def send_to(self, handle: str, event: str, payload: dict[str, Any]) -> None:
        if handle in self.closed:
            raise ChannelNotFound(handle)
        self.sent.append((handle, event, payload))

    async def send_to_all(self, event: str, payload: dict[str, Any]) -> None:
        for handle in {h for h, _, _ in self.sent}:
            await self.send_to(handle, event, payload)

    def events(self, handle: str, event: str | None = None) -> list[dict[str, Any]]:
        return [
            payload for h, e, payload in self.sent
            if h == handle and (event is None or e == event)
        ]


def make_party(
    party_id: str,
    role: PartyRole = PartyRole.RECIPIENT,
    category: str = "O-",
    location: tuple[float, float] | None = (10.0, 10.0),
    channel_handle: str | None = None,
    push_token: str | None = None,
) -> Party:
    return Party(
        id=party_id,
        role=role,
        category=category,
        location=Location(latitude=location[0], longitude=location[1]) if location else None,
        channel_handle=channel_handle,
        push_token=push_token,
    )


@pytest.fixture
def registry() -> ConnectionRegistry:
    return ConnectionRegistry()


@pytest.fixture
def directory() -> FakeDirectory:
    return FakeDirectory()


@pytest.fixture
def push() -> FakePush:
    return FakePush()


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()
