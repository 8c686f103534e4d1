"""Tests for routing donor responses back to the requester."""

import pytest

from bloodlink.manager.response_router import ResponseRouter
from bloodlink.models.alert import AlertResponse, RouteStatus
from bloodlink.models.party import PartyRole

from conftest import make_party


def make_response(accepted: bool = True) -> AlertResponse:
    return AlertResponse(
        alert_id="alert_1",
        recipient_id="r1",
        requester_id="q1",
        accepted=accepted,
    )


@pytest.fixture
def router(registry, directory, push, transport) -> ResponseRouter:
    return ResponseRouter(
        registry,
        directory,
        push,
        transport,
        directory_timeout=0.5,
        push_timeout=0.2,
    )


def requester(channel_handle=None, push_token=None):
    return make_party(
        "q1",
        role=PartyRole.REQUESTER,
        category="",
        channel_handle=channel_handle,
        push_token=push_token,
    )


class TestResponseRouter:
    """Tests for ResponseRouter."""

    @pytest.mark.asyncio
    async def test_online_requester_gets_live_response(self, router, registry, transport, push, directory):
        registry.put("q1", requester(channel_handle="doc"))

        outcome = await router.route(make_response(accepted=True))

        assert outcome.status == RouteStatus.DELIVERED_LIVE
        assert transport.events("doc", "alertResponse") == [
            {"alert_id": "alert_1", "recipient_id": "r1", "accepted": True}
        ]
        assert push.calls == []
        assert len(directory.responses) == 1

    @pytest.mark.asyncio
    async def test_offline_requester_with_token_gets_push(self, router, directory, push):
        directory.add(requester(push_token="doc-token"))

        outcome = await router.route(make_response(accepted=True))

        assert outcome.status == RouteStatus.DELIVERED_PUSH
        assert push.tokens == ["doc-token"]
        message = push.calls[0][1]
        assert message.data["accepted"] == "true"
        assert "accepted" in message.body

    @pytest.mark.asyncio
    async def test_decline_push_says_declined(self, router, directory, push):
        directory.add(requester(push_token="doc-token"))

        await router.route(make_response(accepted=False))

        message = push.calls[0][1]
        assert message.data["accepted"] == "false"
        assert "declined" in message.body

    @pytest.mark.asyncio
    async def test_offline_requester_without_token_is_undeliverable(self, router, directory, push, transport):
        directory.add(requester())

        outcome = await router.route(make_response())

        assert outcome.status == RouteStatus.UNDELIVERABLE
        assert outcome.recorded is True
        assert push.calls == []
        # Nothing is sent back to the responder
        assert transport.sent == []

    @pytest.mark.asyncio
    async def test_unknown_requester_is_undeliverable(self, router, push):
        outcome = await router.route(make_response())

        assert outcome.status == RouteStatus.UNDELIVERABLE
        assert push.calls == []

    @pytest.mark.asyncio
    async def test_history_failure_does_not_block_delivery(self, router, registry, directory, transport):
        registry.put("q1", requester(channel_handle="doc"))
        directory.failing.add("append_response")

        outcome = await router.route(make_response())

        assert outcome.status == RouteStatus.DELIVERED_LIVE
        assert outcome.recorded is False

    @pytest.mark.asyncio
    async def test_directory_lookup_failure(self, router, directory, push):
        directory.failing.add("get_party")

        outcome = await router.route(make_response())

        assert outcome.status == RouteStatus.FAILED
        assert "simulated outage" in outcome.reason
        assert push.calls == []

    @pytest.mark.asyncio
    async def test_push_failure(self, router, directory, push):
        directory.add(requester(push_token="expired"))
        push.failing_tokens.add("expired")

        outcome = await router.route(make_response())

        assert outcome.status == RouteStatus.FAILED
        assert outcome.reason == "invalid registration token"

    @pytest.mark.asyncio
    async def test_dead_live_channel_falls_back_to_push(self, router, registry, directory, transport, push):
        registry.put("q1", requester(channel_handle="doc"))
        transport.closed.add("doc")
        directory.add(requester(push_token="doc-token"))

        outcome = await router.route(make_response())

        assert outcome.status == RouteStatus.DELIVERED_PUSH
        assert push.tokens == ["doc-token"]
