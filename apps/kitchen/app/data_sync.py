from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, List, Optional, TypeVar

import httpx
from pydantic import BaseModel, ConfigDict, TypeAdapter, ValidationError

_log = logging.getLogger("feteer.sync")

T = TypeVar("T")

DEFAULT_MAX_RETRIES = 2
BACKOFF_BASE_SECS = 1.0
BACKOFF_CAP_SECS = 5.0


class SyncError(Exception):
    pass


class AuthError(SyncError):
    """Session missing or expired. Never retried; the caller sends the user to login."""

    def __init__(self, message: str = "Authentication required. Please log in again."):
        super().__init__(message)


class NetworkError(SyncError):
    """HTTP failure (with status) or transport failure (status None)."""

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


class DataIntegrityError(SyncError):
    """Response had the wrong shape. Never retried."""


class OrderNotFound(SyncError):
    pass


class Order(BaseModel):
    model_config = ConfigDict(frozen=True, extra="allow")

    id: int
    customer_name: str
    item_type: str = "feteer"
    feteer_type: Optional[str] = None
    sweet_type: Optional[str] = None
    sweet_selections: Optional[str] = None
    meat_selection: Optional[str] = None
    status: str
    price: float = 0.0
    created_at: Optional[str] = None
    notes: Optional[str] = None


_ORDER_LIST = TypeAdapter(List[Order])


def backoff_delay(attempt: int, base: float = BACKOFF_BASE_SECS, cap: float = BACKOFF_CAP_SECS) -> float:
    return min(base * (2 ** attempt), cap)


def _json_body(resp: httpx.Response) -> Any:
    try:
        return resp.json()
    except ValueError as e:
        raise DataIntegrityError("invalid response: body is not JSON") from e


def _error_detail(resp: httpx.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        return resp.text or "unknown error"
    if isinstance(body, dict):
        return str(body.get("detail") or body.get("error") or "unknown error")
    return "unknown error"


class DataSync:
    """
    Thin client for the orders API.

    Reads retry network failures with exponential backoff; writes are sent
    once. 401 always surfaces as AuthError. Nothing here touches a cache.
    """

    def __init__(
        self,
        base_url: str = "",
        client: Optional[httpx.AsyncClient] = None,
        max_retries: int = DEFAULT_MAX_RETRIES,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        timeout: float = 10.0,
    ):
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(base_url=base_url, timeout=timeout)
        self.max_retries = max_retries
        self._sleep = sleep
        self._last_stamp = 0

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    def _stamp(self) -> int:
        # Strictly increasing even when two requests land in the same millisecond.
        ms = int(time.time() * 1000)
        if ms <= self._last_stamp:
            ms = self._last_stamp + 1
        self._last_stamp = ms
        return ms

    async def _send(self, method: str, path: str, json: Any = None, params: Optional[dict[str, Any]] = None) -> httpx.Response:
        stamp = self._stamp()
        headers = {
            "Content-Type": "application/json",
            "Cache-Control": "no-cache, no-store",
            "Pragma": "no-cache",
            "X-Timestamp": str(stamp),
        }
        query = dict(params or {})
        if method == "GET":
            query["t"] = stamp
        try:
            resp = await self._client.request(method, path, json=json, params=query, headers=headers)
        except httpx.TransportError as e:
            raise NetworkError(f"network error: {e}") from e
        _log.debug("%s %s -> %s", method, path, resp.status_code)
        if resp.status_code == 401:
            raise AuthError()
        return resp

    async def _with_retry(self, op: Callable[[], Awaitable[T]], what: str, retries: Optional[int] = None) -> T:
        retries = self.max_retries if retries is None else retries
        for attempt in range(retries + 1):
            try:
                return await op()
            except NetworkError as e:
                _log.warning("error fetching %s (attempt %d): %s", what, attempt + 1, e)
                if attempt >= retries:
                    raise
                await self._sleep(backoff_delay(attempt))
        raise AssertionError("unreachable")

    async def fetch_orders(self, status: Optional[str] = None, retries: Optional[int] = None) -> List[Order]:
        async def _once() -> List[Order]:
            params = {"status": status} if status else None
            resp = await self._send("GET", "/api/orders", params=params)
            if resp.is_error:
                raise NetworkError(f"failed to fetch orders: {resp.status_code}", resp.status_code)
            body = _json_body(resp)
            if not isinstance(body, list):
                raise DataIntegrityError("invalid response format: expected array of orders")
            try:
                return _ORDER_LIST.validate_python(body)
            except ValidationError as e:
                raise DataIntegrityError(f"invalid order in response: {e.error_count()} error(s)") from e

        orders = await self._with_retry(_once, "orders", retries)
        _log.debug("fetched %d orders", len(orders))
        return orders

    async def get_order(self, order_id: int, retries: Optional[int] = None) -> Order:
        async def _once() -> Order:
            resp = await self._send("GET", f"/api/orders/{order_id}")
            if resp.status_code == 404:
                raise OrderNotFound(f"order {order_id} not found")
            if resp.is_error:
                raise NetworkError(f"failed to fetch order: {resp.status_code}", resp.status_code)
            return self._parse_order(resp)

        return await self._with_retry(_once, f"order {order_id}", retries)

    async def fetch_analytics(self, days: int = 7, retries: Optional[int] = None) -> dict[str, Any]:
        async def _once() -> dict[str, Any]:
            resp = await self._send("GET", "/api/analytics", params={"days": days})
            if resp.is_error:
                raise NetworkError(f"failed to fetch analytics: {resp.status_code}", resp.status_code)
            body = _json_body(resp)
            if not isinstance(body, dict):
                raise DataIntegrityError("invalid analytics response")
            return body

        return await self._with_retry(_once, "analytics", retries)

    def _parse_order(self, resp: httpx.Response) -> Order:
        body = _json_body(resp)
        if not isinstance(body, dict) or not body.get("id") or not body.get("customer_name"):
            raise DataIntegrityError("invalid order response: missing required fields")
        try:
            return Order.model_validate(body)
        except ValidationError as e:
            raise DataIntegrityError(f"invalid order response: {e.error_count()} error(s)") from e

    async def create_order(self, draft: dict[str, Any]) -> Order:
        resp = await self._send("POST", "/api/orders", json=draft)
        if resp.is_error:
            raise NetworkError(f"failed to create order: {_error_detail(resp)}", resp.status_code)
        order = self._parse_order(resp)
        _log.info("created order %s", order.id)
        return order

    async def update_order_status(self, order_id: int, status: str) -> None:
        resp = await self._send("PATCH", f"/api/orders/{order_id}", json={"status": status})
        if resp.is_error:
            raise NetworkError(f"failed to update order: {_error_detail(resp)}", resp.status_code)

    async def delete_order(self, order_id: int) -> None:
        resp = await self._send("DELETE", f"/api/orders/{order_id}")
        if resp.status_code == 404:
            _log.warning("order %s not found (may have been already deleted)", order_id)
            return
        if resp.is_error:
            raise NetworkError(f"failed to delete order: {_error_detail(resp)}", resp.status_code)

    async def login(self, username: str, password: str) -> dict[str, Any]:
        """Log in; the auth cookie lands in the client's cookie jar."""
        resp = await self._send("POST", "/api/auth/login", json={"username": username, "password": password})
        if resp.is_error:
            raise NetworkError(f"login failed: {_error_detail(resp)}", resp.status_code)
        body = _json_body(resp)
        if not isinstance(body, dict):
            raise DataIntegrityError("invalid login response")
        return body
