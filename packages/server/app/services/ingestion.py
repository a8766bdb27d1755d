"""
Webhook ingestion: turns wallet-watch notifications into transaction rows.

Delivery is at-least-once and unordered, so ingestion is replay-idempotent:
the resolved charity plus the on-chain transaction id is the natural key and a
redelivered notification resolves to the row already stored. A batch payout
that touches several watched wallets yields one row per charity.

Outcomes:
- accepted: row committed
- duplicate: row already present, nothing written
- rejected: malformed payload or unknown subscription; acknowledged so the
  notifier stops redelivering
Store failures raise ``IngestionRetryableError`` and are never acknowledged.
"""

from __future__ import annotations

import json
import uuid
from dataclasses import dataclass
from typing import Any, Optional

import structlog
from pydantic import ValidationError

from app.core.errors import (
    IngestionRetryableError,
    MalformedPayload,
    StoreError,
    UnknownSubscription,
)
from app.models.charity import Charity
from app.services.store import CharityStore, InsertOutcome
from charity_watchdog_shared.schemas.common import IngestionOutcome, RejectionReason
from charity_watchdog_shared.schemas.webhooks import AddressNotification

log = structlog.get_logger()


@dataclass(frozen=True)
class IngestionResult:
    outcome: IngestionOutcome
    reason: Optional[RejectionReason] = None
    transaction_id: Optional[uuid.UUID] = None
    charity_id: Optional[uuid.UUID] = None


class WebhookIngestionGateway:
    def __init__(self, store: CharityStore):
        self._store = store

    async def ingest(self, raw: bytes | str | dict[str, Any]) -> IngestionResult:
        try:
            payload = _decode(raw)
            notification = _parse(payload)
            charity = await self._resolve(notification)
        except (MalformedPayload, UnknownSubscription) as exc:
            log.warning("webhook.rejected", reason=exc.code, detail=exc.message, **exc.meta)
            return IngestionResult(
                outcome=IngestionOutcome.REJECTED,
                reason=RejectionReason(exc.code),
            )

        try:
            outcome, transaction = await self._store.insert_transaction(
                charity_id=charity.id,
                source_notification_id=notification.tx_id,
                amount=notification.amount,
                raw_payload=payload,
            )
        except StoreError as exc:
            log.error("webhook.store_failed", tx_id=notification.tx_id, error=str(exc))
            raise IngestionRetryableError(meta={"tx_id": notification.tx_id}) from exc

        if outcome is InsertOutcome.ALREADY_EXISTS:
            log.info("webhook.duplicate", tx_id=notification.tx_id, charity_id=str(charity.id))
            return IngestionResult(
                outcome=IngestionOutcome.DUPLICATE,
                transaction_id=transaction.id,
                charity_id=charity.id,
            )

        log.info(
            "webhook.accepted",
            tx_id=notification.tx_id,
            charity_id=str(charity.id),
            amount=str(notification.amount),
        )
        return IngestionResult(
            outcome=IngestionOutcome.ACCEPTED,
            transaction_id=transaction.id,
            charity_id=charity.id,
        )

    async def _resolve(self, notification: AddressNotification) -> Charity:
        try:
            charity = await self._store.find_charity_by_subscription(notification.subscription_id)
        except StoreError as exc:
            raise IngestionRetryableError(meta={"tx_id": notification.tx_id}) from exc
        if charity is None:
            # The subscription may have been cancelled after the notification was emitted.
            raise UnknownSubscription(
                meta={"subscription_id": notification.subscription_id, "tx_id": notification.tx_id}
            )
        return charity


def _decode(raw: bytes | str | dict[str, Any]) -> dict[str, Any]:
    if isinstance(raw, (bytes, str)):
        try:
            raw = json.loads(raw)
        except ValueError as exc:
            raise MalformedPayload("Notification body is not valid JSON") from exc
    if not isinstance(raw, dict):
        raise MalformedPayload("Notification body must be a JSON object")
    return raw


def _parse(payload: dict[str, Any]) -> AddressNotification:
    try:
        return AddressNotification.model_validate(payload)
    except ValidationError as exc:
        missing = sorted({str(err["loc"][0]) for err in exc.errors() if err.get("loc")})
        raise MalformedPayload(meta={"fields": missing}) from exc
