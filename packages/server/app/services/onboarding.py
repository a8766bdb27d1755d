"""
Charity onboarding: wallet-watch subscription + charity record as a manual saga.

The external subscription is created first. If the charity insert then fails,
the subscription is cancelled as the single compensating step, unless a stored
charity already holds that same subscription id. A failed cancellation leaves
an orphaned subscription; it is logged at error level and attached to the
raised error so an operator can clean it up.
"""

from __future__ import annotations

import uuid

import structlog

from app.core.errors import (
    DuplicateWallet,
    PersistenceFailed,
    StoreError,
    SubscriptionCreationFailed,
)
from app.services.store import CharityStore
from app.services.wallet_watch import WalletWatchClient, WalletWatchError

log = structlog.get_logger()


class SubscriptionOrchestrator:
    def __init__(self, wallet_watch: WalletWatchClient, store: CharityStore):
        self._wallet_watch = wallet_watch
        self._store = store

    async def onboard(self, name: str, description: str, wallet_address: str) -> uuid.UUID:
        """Subscribe to ``wallet_address`` and store the charity; returns its id."""
        if not wallet_address or not wallet_address.strip():
            raise ValueError("wallet_address must be a non-empty address string")

        try:
            subscription_id = await self._wallet_watch.subscribe(wallet_address)
        except WalletWatchError as exc:
            log.warning("charity.subscription_failed", wallet_address=wallet_address, error=str(exc))
            raise SubscriptionCreationFailed(meta={"wallet_address": wallet_address}) from exc

        try:
            charity = await self._store.insert_charity(
                name=name,
                description=description,
                wallet_address=wallet_address,
                subscription_id=subscription_id,
            )
        except DuplicateWallet as exc:
            log.info(
                "charity.duplicate_wallet",
                wallet_address=wallet_address,
                subscription_id=subscription_id,
            )
            exc.meta.update(await self._compensate(subscription_id, wallet_address))
            raise
        except StoreError as exc:
            log.error(
                "charity.persistence_failed",
                wallet_address=wallet_address,
                subscription_id=subscription_id,
                error=str(exc),
            )
            meta = {"wallet_address": wallet_address}
            meta.update(await self._compensate(subscription_id, wallet_address))
            raise PersistenceFailed(meta=meta) from exc

        log.info(
            "charity.onboarded",
            charity_id=str(charity.id),
            wallet_address=wallet_address,
            subscription_id=subscription_id,
        )
        return charity.id

    async def _compensate(self, subscription_id: str, wallet_address: str) -> dict[str, str]:
        """Cancel the subscription created by this attempt. Returns error meta on failure."""
        if await self._held_by_stored_charity(subscription_id):
            # Idempotent wallet-watch services hand back the live subscription
            # when an address is registered twice; it belongs to the stored row.
            log.info(
                "charity.subscription_kept",
                subscription_id=subscription_id,
                wallet_address=wallet_address,
            )
            return {}
        try:
            await self._wallet_watch.unsubscribe(subscription_id)
        except Exception as exc:
            log.error(
                "subscription.orphaned",
                subscription_id=subscription_id,
                wallet_address=wallet_address,
                error=str(exc),
            )
            return {"orphaned_subscription_id": subscription_id}
        log.info("charity.subscription_compensated", subscription_id=subscription_id)
        return {}

    async def _held_by_stored_charity(self, subscription_id: str) -> bool:
        try:
            charity = await self._store.find_charity_by_subscription(subscription_id)
        except StoreError as exc:
            log.warning(
                "charity.subscription_owner_unknown",
                subscription_id=subscription_id,
                error=str(exc),
            )
            return False
        return charity is not None
