"""
Wallet-watch client: typed boundary around the external address-subscription API.

Handles:
- Request construction, API key header and per-call idempotency key
- Bounded retries with exponential backoff for transient failures
  (transport errors, timeouts, 429, 5xx)
- Immediate failure for permanent errors (other 4xx, malformed responses)
"""

from __future__ import annotations

import asyncio
import uuid
from typing import Awaitable, Callable, Protocol

import httpx
import structlog

from app.core.config import Settings

log = structlog.get_logger()

SUBSCRIPTIONS_PATH = "/v1/subscriptions"
IDEMPOTENCY_HEADER = "Idempotency-Key"


class WalletWatchError(Exception):
    """Base error for wallet-watch calls."""


class WalletWatchTransientError(WalletWatchError):
    """Transport error, timeout, 429 or 5xx that survived every retry."""


class WalletWatchPermanentError(WalletWatchError):
    """4xx or malformed response; retrying the same request cannot help."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class WalletWatchClient(Protocol):
    async def subscribe(self, address: str) -> str: ...

    async def unsubscribe(self, subscription_id: str) -> None: ...


class HttpWalletWatchClient:
    """
    Creates and cancels address subscriptions over HTTP.

    Holds no state between calls besides the pooled ``httpx.AsyncClient``.
    """

    def __init__(
        self,
        base_url: str,
        callback_url: str,
        api_key: str = "",
        request_timeout: float = 10.0,
        max_retries: int = 3,
        backoff_seconds: float = 0.5,
        transport: httpx.AsyncBaseTransport | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self._base_url = base_url.rstrip("/")
        self._callback_url = callback_url
        self._api_key = api_key
        self._request_timeout = request_timeout
        self._max_retries = max_retries
        self._backoff_seconds = backoff_seconds
        self._transport = transport
        self._sleep = sleep
        self._client: httpx.AsyncClient | None = None

    @classmethod
    def from_settings(cls, settings: Settings) -> "HttpWalletWatchClient":
        return cls(
            base_url=settings.wallet_watch_url,
            callback_url=settings.webhook_callback_url,
            api_key=settings.wallet_watch_api_key,
            request_timeout=settings.wallet_watch_timeout_seconds,
            max_retries=settings.wallet_watch_max_retries,
            backoff_seconds=settings.wallet_watch_backoff_seconds,
        )

    async def open(self) -> None:
        headers = {"Accept": "application/json"}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            timeout=httpx.Timeout(self._request_timeout),
            headers=headers,
            transport=self._transport,
        )

    async def close(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "HttpWalletWatchClient":
        await self.open()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    # --- Subscriptions ---

    async def subscribe(self, address: str) -> str:
        """
        Create a subscription for ``address`` and return its id.

        Every attempt of one call carries the same ``Idempotency-Key``, so a
        retry after a lost response cannot create a second subscription.
        """
        resp = await self._request(
            "POST",
            SUBSCRIPTIONS_PATH,
            json={"address": address, "callback_url": self._callback_url},
            headers={IDEMPOTENCY_HEADER: str(uuid.uuid4())},
        )
        subscription_id = _parse_subscription_id(resp)
        log.info("wallet_watch.subscribed", address=address, subscription_id=subscription_id)
        return subscription_id

    async def unsubscribe(self, subscription_id: str) -> None:
        """Cancel a subscription. An unknown id counts as already cancelled."""
        try:
            await self._request("DELETE", f"{SUBSCRIPTIONS_PATH}/{subscription_id}")
        except WalletWatchPermanentError as exc:
            if exc.status_code == 404:
                log.info("wallet_watch.already_cancelled", subscription_id=subscription_id)
                return
            raise
        log.info("wallet_watch.unsubscribed", subscription_id=subscription_id)

    # --- Transport ---

    async def _request(
        self,
        method: str,
        path: str,
        json: dict | None = None,
        headers: dict[str, str] | None = None,
    ) -> httpx.Response:
        if self._client is None:
            await self.open()
        assert self._client

        last_error = ""
        for attempt in range(self._max_retries + 1):
            try:
                resp = await self._client.request(method, path, json=json, headers=headers)
            except httpx.TransportError as exc:
                last_error = f"{type(exc).__name__}: {exc}"
            else:
                if resp.status_code == 429 or resp.status_code >= 500:
                    last_error = f"HTTP {resp.status_code}"
                elif resp.status_code >= 400:
                    log.error(
                        "wallet_watch.client_error",
                        method=method,
                        path=path,
                        status=resp.status_code,
                    )
                    raise WalletWatchPermanentError(
                        f"{method} {path} returned HTTP {resp.status_code}",
                        status_code=resp.status_code,
                    )
                else:
                    return resp

            if attempt == self._max_retries:
                break
            backoff = self._backoff_seconds * (2 ** attempt)
            log.warning(
                "wallet_watch.retry",
                method=method,
                path=path,
                attempt=attempt + 1,
                backoff=backoff,
                error=last_error,
            )
            await self._sleep(backoff)

        log.error("wallet_watch.retries_exhausted", method=method, path=path, error=last_error)
        raise WalletWatchTransientError(
            f"{method} {path} failed after {self._max_retries + 1} attempts: {last_error}"
        )


def _parse_subscription_id(resp: httpx.Response) -> str:
    """Accept ``{"id": ...}``, ``{"subscription_id": ...}``, a JSON string or a bare text body."""
    content_type = resp.headers.get("content-type", "")
    if "json" in content_type:
        try:
            data = resp.json()
        except ValueError as exc:
            raise WalletWatchPermanentError("Subscription response is not valid JSON") from exc
        if isinstance(data, dict):
            data = data.get("id") or data.get("subscription_id") or data.get("subscriptionId")
        subscription_id = str(data).strip() if isinstance(data, (str, int)) else ""
    else:
        subscription_id = resp.text.strip()

    if not subscription_id:
        raise WalletWatchPermanentError("Subscription response did not contain an id")
    return subscription_id
