"""
Typed errors for onboarding and webhook ingestion.

Every error carries a stable ``code``, the HTTP status it maps to, and a
``retryable`` flag telling the caller whether repeating the same request can
succeed.
"""

from __future__ import annotations

from typing import Any

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse


class CharityWatchdogError(Exception):
    """Base error rendered into the API error envelope."""

    code = "INTERNAL_ERROR"
    status_code = 500
    retryable = False
    default_message = "Internal error"

    def __init__(self, message: str | None = None, *, meta: dict[str, Any] | None = None) -> None:
        self.message = message or self.default_message
        self.meta = dict(meta or {})
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {
            "code": self.code,
            "message": self.message,
            "status": self.status_code,
            "retryable": self.retryable,
        }
        if self.meta:
            body["meta"] = self.meta
        return {"error": body}


# ---------------------------------------------------------------------------
# Onboarding
# ---------------------------------------------------------------------------

class SubscriptionCreationFailed(CharityWatchdogError):
    code = "SUBSCRIPTION_CREATION_FAILED"
    status_code = 502
    retryable = True
    default_message = "Could not create the wallet-watch subscription"


class DuplicateWallet(CharityWatchdogError):
    code = "DUPLICATE_WALLET"
    status_code = 409
    default_message = "A charity already claims this wallet address"


class PersistenceFailed(CharityWatchdogError):
    code = "PERSISTENCE_FAILED"
    status_code = 503
    retryable = True
    default_message = "Could not store the charity record"


# ---------------------------------------------------------------------------
# Webhook ingestion
# ---------------------------------------------------------------------------

# Rejections are acknowledged (2xx): redelivering the same payload cannot fix them.

class MalformedPayload(CharityWatchdogError):
    code = "MALFORMED_PAYLOAD"
    status_code = 200
    default_message = "Notification payload is missing required fields"


class UnknownSubscription(CharityWatchdogError):
    code = "UNKNOWN_SUBSCRIPTION"
    status_code = 200
    default_message = "No charity holds this subscription"


class IngestionRetryableError(CharityWatchdogError):
    code = "INGESTION_RETRYABLE"
    status_code = 503
    retryable = True
    default_message = "Notification could not be stored, please redeliver"


# ---------------------------------------------------------------------------
# Store
# ---------------------------------------------------------------------------

class StoreError(CharityWatchdogError):
    code = "STORE_UNAVAILABLE"
    status_code = 503
    retryable = True
    default_message = "Charity directory store is unavailable"


class NotFound(CharityWatchdogError):
    code = "NOT_FOUND"
    status_code = 404
    default_message = "Not found"


async def _handle_charity_watchdog_error(request: Request, exc: CharityWatchdogError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(CharityWatchdogError, _handle_charity_watchdog_error)
