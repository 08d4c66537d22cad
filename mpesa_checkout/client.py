"""
HTTP client for the checkout API.

Authenticated calls are retried at most once: when the server answers 401
with ``expired: true``, the held refresh token is exchanged for a new access
token and the original request is sent again. Any other failure, including
a second expiry, is returned or raised as-is.
"""
from dataclasses import dataclass
from typing import Any, Optional

import httpx
import structlog

from mpesa_checkout.exceptions import CheckoutError

logger = structlog.get_logger(__name__)


class AuthenticationRequired(CheckoutError):
    """No usable session: the caller has to log in again."""

    status_code = 401

    def __init__(self, message: str = "Authentication required. Please login first.") -> None:
        self.message = message
        super().__init__(message)


@dataclass
class TokenStore:
    access_token: Optional[str] = None
    refresh_token: Optional[str] = None

    def save(self, access_token: str, refresh_token: Optional[str] = None) -> None:
        self.access_token = access_token
        if refresh_token is not None:
            self.refresh_token = refresh_token

    def clear(self) -> None:
        self.access_token = None
        self.refresh_token = None


class CheckoutClient:
    def __init__(self, http: httpx.Client, tokens: Optional[TokenStore] = None) -> None:
        self.http = http
        self.tokens = tokens or TokenStore()

    # Authentication

    def register(self, email: str, password: str) -> dict[str, Any]:
        return self.http.post("/register", json={"email": email, "password": password}).json()

    def login(self, email: str, password: str) -> dict[str, Any]:
        body = self.http.post("/login", json={"email": email, "password": password}).json()
        if body.get("success"):
            self.tokens.save(body["data"]["accessToken"], body["data"]["refreshToken"])
        return body

    def refresh_access_token(self) -> Optional[str]:
        """Exchange the held refresh token for a new access token.

        Returns None when there is nothing to refresh with or the server
        refuses the refresh token.
        """
        if not self.tokens.refresh_token:
            return None
        try:
            response = self.http.post("/refresh-token", json={"refreshToken": self.tokens.refresh_token})
            body = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("token_refresh_failed", error=str(exc))
            return None

        data = body.get("data") if isinstance(body, dict) and body.get("success") else None
        if response.status_code != 200 or not isinstance(data, dict) or not data.get("accessToken"):
            logger.info("token_refresh_rejected", status_code=response.status_code)
            return None
        access_token = data["accessToken"]
        self.tokens.save(access_token)
        return access_token

    def logout(self) -> dict[str, Any]:
        refresh_token = self.tokens.refresh_token
        self.tokens.clear()
        return self.http.post("/logout", json={"refreshToken": refresh_token}).json()

    # Payments and orders

    def pay(self, cart: list[dict[str, Any]], total: float, customer_phone: Optional[str] = None) -> httpx.Response:
        payload: dict[str, Any] = {"cart": cart, "total": total}
        if customer_phone:
            payload["customerPhone"] = customer_phone
        return self.request("POST", "/api/payment", json=payload)

    def list_orders(self) -> httpx.Response:
        return self.request("GET", "/orders")

    def get_order(self, order_id: str) -> httpx.Response:
        return self.request("GET", f"/orders/{order_id}")

    def get_order_by_transaction(self, transaction_id: str) -> httpx.Response:
        return self.request("GET", f"/orders/transaction/{transaction_id}")

    def request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        if not self.tokens.access_token:
            raise AuthenticationRequired()

        response = self._send(method, url, self.tokens.access_token, **kwargs)
        if not _is_expired(response):
            return response

        new_token = self.refresh_access_token()
        if new_token is None:
            self.tokens.clear()
            raise AuthenticationRequired("Session expired. Please login again.")

        logger.info("access_token_refreshed", method=method, url=url)
        return self._send(method, url, new_token, **kwargs)

    def _send(self, method: str, url: str, access_token: str, **kwargs: Any) -> httpx.Response:
        headers = dict(kwargs.pop("headers", None) or {})
        headers["Authorization"] = f"Bearer {access_token}"
        return self.http.request(method, url, headers=headers, **kwargs)


def _is_expired(response: httpx.Response) -> bool:
    if response.status_code != 401:
        return False
    try:
        body = response.json()
    except ValueError:
        return False
    return isinstance(body, dict) and body.get("expired") is True
