"""
Tests for the onboarding saga: subscription first, charity row second,
cancellation of the subscription whenever the row cannot be stored.
"""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock

import pytest

from app.core.errors import (
    DuplicateWallet,
    PersistenceFailed,
    StoreError,
    SubscriptionCreationFailed,
)


class TestSuccessfulOnboarding:
    async def test_creates_one_row_and_one_subscription(self, orchestrator, wallet_watch, store):
        charity_id = await orchestrator.onboard("Clean Water", "Wells for villages", "0xABC")

        charities = await store.list_charities()
        assert len(charities) == 1
        assert charities[0].id == charity_id
        assert charities[0].wallet_address == "0xABC"
        assert charities[0].subscription_id == "sub-1"
        assert wallet_watch.subscribed == [("0xABC", "sub-1")]
        assert wallet_watch.cancelled == []

    async def test_blank_address_is_rejected_before_subscribing(self, orchestrator, wallet_watch):
        with pytest.raises(ValueError):
            await orchestrator.onboard("Nameless", "", "   ")
        assert wallet_watch.subscribed == []


class TestSubscriptionFailure:
    async def test_transient_failure_writes_nothing(self, orchestrator, wallet_watch, store, transient_error):
        wallet_watch.fail_subscribe = transient_error
        with pytest.raises(SubscriptionCreationFailed) as exc_info:
            await orchestrator.onboard("Clean Water", "", "0xABC")
        assert exc_info.value.retryable
        assert await store.list_charities() == []
        assert wallet_watch.cancelled == []

    async def test_permanent_failure_writes_nothing(self, orchestrator, wallet_watch, store, permanent_error):
        wallet_watch.fail_subscribe = permanent_error
        with pytest.raises(SubscriptionCreationFailed):
            await orchestrator.onboard("Clean Water", "", "0xABC")
        assert await store.list_charities() == []


class TestDuplicateWallet:
    async def test_second_onboarding_cancels_its_own_subscription(self, orchestrator, wallet_watch, store):
        await orchestrator.onboard("Clean Water", "", "0xABC")

        with pytest.raises(DuplicateWallet) as exc_info:
            await orchestrator.onboard("Clean Water Again", "", "0xABC")

        assert not exc_info.value.retryable
        assert wallet_watch.cancelled == ["sub-2"]
        assert wallet_watch.live == {"sub-1"}
        charities = await store.list_charities()
        assert [(c.wallet_address, c.subscription_id) for c in charities] == [("0xABC", "sub-1")]

    async def test_concurrent_onboarding_has_one_winner(self, orchestrator, wallet_watch, store):
        results = await asyncio.gather(
            orchestrator.onboard("First", "", "0xABC"),
            orchestrator.onboard("Second", "", "0xABC"),
            return_exceptions=True,
        )

        winners = [r for r in results if not isinstance(r, Exception)]
        losers = [r for r in results if isinstance(r, Exception)]
        assert len(winners) == 1
        assert len(losers) == 1 and isinstance(losers[0], DuplicateWallet)

        charities = await store.list_charities()
        assert len(charities) == 1
        # No orphan: the only live subscription is the one the stored row holds.
        assert wallet_watch.live == {charities[0].subscription_id}
        assert len(wallet_watch.cancelled) == 1

    async def test_failed_cancellation_is_reported(self, orchestrator, wallet_watch, transient_error):
        await orchestrator.onboard("Clean Water", "", "0xABC")
        wallet_watch.fail_unsubscribe = transient_error

        with pytest.raises(DuplicateWallet) as exc_info:
            await orchestrator.onboard("Clean Water Again", "", "0xABC")
        assert exc_info.value.meta["orphaned_subscription_id"] == "sub-2"


class TestSharedSubscription:
    """Wallet-watch services that return the existing subscription for a known address."""

    async def test_duplicate_keeps_the_stored_subscription(self, orchestrator, wallet_watch, store):
        wallet_watch.id_per_address = True
        await orchestrator.onboard("Clean Water", "", "0xABC")

        with pytest.raises(DuplicateWallet) as exc_info:
            await orchestrator.onboard("Clean Water Again", "", "0xABC")

        assert "orphaned_subscription_id" not in exc_info.value.meta
        assert wallet_watch.cancelled == []
        assert wallet_watch.live == {"sub-0xABC"}
        charities = await store.list_charities()
        assert [c.subscription_id for c in charities] == ["sub-0xABC"]

    async def test_concurrent_duplicate_keeps_the_stored_subscription(
        self, orchestrator, wallet_watch, store
    ):
        wallet_watch.id_per_address = True
        results = await asyncio.gather(
            orchestrator.onboard("First", "", "0xABC"),
            orchestrator.onboard("Second", "", "0xABC"),
            return_exceptions=True,
        )

        assert sum(isinstance(r, DuplicateWallet) for r in results) == 1
        assert wallet_watch.cancelled == []
        charities = await store.list_charities()
        assert len(charities) == 1
        assert charities[0].subscription_id == "sub-0xABC"

    async def test_id_held_by_another_wallet_is_not_cancelled(self, orchestrator, wallet_watch, store):
        await store.insert_charity(
            name="Existing", description="", wallet_address="0xOTHER", subscription_id="sub-1"
        )

        with pytest.raises(PersistenceFailed):
            await orchestrator.onboard("Clean Water", "", "0xABC")

        assert wallet_watch.cancelled == []
        found = await store.find_charity_by_subscription("sub-1")
        assert found is not None and found.wallet_address == "0xOTHER"

    async def test_owner_lookup_failure_still_cancels(self, orchestrator, wallet_watch, store):
        store.insert_charity = AsyncMock(side_effect=StoreError("connection refused"))
        store.find_charity_by_subscription = AsyncMock(side_effect=StoreError("connection refused"))

        with pytest.raises(PersistenceFailed):
            await orchestrator.onboard("Clean Water", "", "0xABC")
        assert wallet_watch.cancelled == ["sub-1"]


class TestPersistenceFailure:
    async def test_store_failure_cancels_subscription(self, orchestrator, wallet_watch, store):
        store.insert_charity = AsyncMock(side_effect=StoreError("connection refused"))

        with pytest.raises(PersistenceFailed) as exc_info:
            await orchestrator.onboard("Clean Water", "", "0xABC")

        assert exc_info.value.retryable
        assert "orphaned_subscription_id" not in exc_info.value.meta
        assert wallet_watch.cancelled == ["sub-1"]
        assert wallet_watch.live == set()

    async def test_cancellation_failure_does_not_mask_store_error(
        self, orchestrator, wallet_watch, store, transient_error
    ):
        store.insert_charity = AsyncMock(side_effect=StoreError("timed out"))
        wallet_watch.fail_unsubscribe = transient_error

        with pytest.raises(PersistenceFailed) as exc_info:
            await orchestrator.onboard("Clean Water", "", "0xABC")

        assert exc_info.value.meta["orphaned_subscription_id"] == "sub-1"
        assert isinstance(exc_info.value.__cause__, StoreError)

    async def test_unexpected_cancellation_error_is_reported(self, orchestrator, wallet_watch, store):
        store.insert_charity = AsyncMock(side_effect=StoreError("timed out"))
        wallet_watch.fail_unsubscribe = RuntimeError("client closed")

        with pytest.raises(PersistenceFailed) as exc_info:
            await orchestrator.onboard("Clean Water", "", "0xABC")
        assert exc_info.value.meta["orphaned_subscription_id"] == "sub-1"
