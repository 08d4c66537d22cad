from typing import Any, Optional

import httpx
import structlog

from mpesa_checkout.exceptions import NotificationError, PersistenceError

logger = structlog.get_logger(__name__)


class OrderServiceClient:
    """Records paid orders through the order service's internal endpoint."""

    def __init__(
        self,
        base_url: str,
        api_key: str,
        timeout: float = 5.0,
        http: Optional[httpx.Client] = None,
    ) -> None:
        self.url = f"{base_url.rstrip('/')}/orders"
        self._api_key = api_key
        self.timeout = timeout
        self._http = http or httpx.Client(timeout=timeout)

    def close(self) -> None:
        self._http.close()

    def create_order(self, order_data: dict[str, Any]) -> dict[str, Any]:
        logger.info("order_create_requested", transaction_id=order_data.get("transactionId"))
        try:
            response = self._http.post(
                self.url,
                json=order_data,
                headers={"x-api-key": self._api_key},
                timeout=self.timeout,
            )
            response.raise_for_status()
            body = response.json()
        except httpx.HTTPError as exc:
            raise PersistenceError(f"Order service call failed: {exc}") from exc
        except ValueError as exc:
            raise PersistenceError("Order service returned a non-JSON body") from exc

        order = body.get("data") if isinstance(body, dict) else None
        if not isinstance(order, dict) or not order.get("orderId"):
            raise PersistenceError("Order service response is missing orderId")
        return order


class NotificationClient:
    def __init__(
        self,
        base_url: str,
        api_key: str,
        timeout: float = 5.0,
        http: Optional[httpx.Client] = None,
    ) -> None:
        self.url = f"{base_url.rstrip('/')}/send-email"
        self._api_key = api_key
        self.timeout = timeout
        self._http = http or httpx.Client(timeout=timeout)

    def close(self) -> None:
        self._http.close()

    def send(self, cart: list[dict[str, Any]], total: float, customer_phone: str) -> None:
        try:
            response = self._http.post(
                self.url,
                json={"cart": cart, "total": total, "customerPhone": customer_phone},
                headers={"x-api-key": self._api_key},
                timeout=self.timeout,
            )
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise NotificationError(f"Notification service call failed: {exc}") from exc
