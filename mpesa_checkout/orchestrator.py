"""
Payment saga: charge, then record the order, then notify.

The gateway charge is the only step that can fail the request. Once it
succeeds the customer has been charged, so order creation and the
notification are best-effort: their failures are logged and the payment
is still reported as successful (an absent ``orderId`` is the only trace).
"""
import math
import secrets
import string
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional

import structlog

from mpesa_checkout.exceptions import (
    GatewayError,
    NotificationError,
    PersistenceError,
    ValidationError,
)
from mpesa_checkout.gateway import GatewayFailure
from mpesa_checkout.schemas import PaymentRequest

logger = structlog.get_logger(__name__)

BASE36 = string.digits + string.ascii_uppercase


def generate_transaction_ref() -> str:
    return f"TXN{time.time_ns() // 1000}{secrets.randbelow(1000):03d}"


def generate_third_party_ref(length: int = 10) -> str:
    return "".join(secrets.choice(BASE36) for _ in range(length))


def _seconds(elapsed: float) -> float:
    return round(elapsed, 2)


@dataclass
class PaymentResult:
    data: dict[str, Any]
    order_created: bool = False
    notified: bool = False
    timings: dict[str, float] = field(default_factory=dict)


class PaymentOrchestrator:
    def __init__(self, gateway, order_service, notifier, default_phone: str) -> None:
        self.gateway = gateway
        self.order_service = order_service
        self.notifier = notifier
        self.default_phone = default_phone

    def process(self, user_id: int, request: PaymentRequest) -> PaymentResult:
        started = time.perf_counter()
        total = request.total
        if total is None or not math.isfinite(total) or total <= 0:
            raise ValidationError("Invalid or missing total amount")

        cart = request.cart_items()
        phone = request.customer_phone or self.default_phone
        transaction_ref = generate_transaction_ref()
        third_party_ref = generate_third_party_ref()

        log = logger.bind(
            user_id=user_id,
            transaction_reference=transaction_ref,
            amount=total,
            items=len(cart),
        )
        log.info("payment_started")

        step = time.perf_counter()
        outcome = self.gateway.charge(total, phone, transaction_ref, third_party_ref)
        t_gateway = time.perf_counter() - step

        if isinstance(outcome, GatewayFailure):
            log.warning("payment_failed", status_code=outcome.status_code)
            raise GatewayError(outcome.status_code, outcome.error_body)

        data: dict[str, Any] = {
            "transactionId": outcome.transaction_id,
            "conversationId": outcome.conversation_id,
            "responseCode": outcome.response_code,
            "responseDesc": outcome.response_desc,
            "transactionReference": transaction_ref,
            "thirdPartyReference": third_party_ref,
            "amount": total,
            "cart": cart,
        }
        log = log.bind(transaction_id=outcome.transaction_id)

        step = time.perf_counter()
        order_id = self._create_order(log, {
            "userId": user_id,
            "transactionId": outcome.transaction_id,
            "conversationId": outcome.conversation_id,
            "transactionReference": transaction_ref,
            "thirdPartyReference": third_party_ref,
            "amount": total,
            "cart": cart,
            "customerPhone": phone,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        })
        t_order = time.perf_counter() - step
        if order_id:
            data["orderId"] = order_id

        step = time.perf_counter()
        notified = self._notify(log, cart, total, phone)
        t_notify = time.perf_counter() - step

        timings = {
            "mpesaPayment": _seconds(t_gateway),
            "orderCreation": _seconds(t_order),
            "emailSending": _seconds(t_notify),
            "total": _seconds(time.perf_counter() - started),
        }
        data["performance"] = timings
        log.info("payment_completed", order_id=order_id, **timings)

        return PaymentResult(
            data=data,
            order_created=order_id is not None,
            notified=notified,
            timings=timings,
        )

    def _create_order(self, log, order_data: dict[str, Any]) -> Optional[str]:
        try:
            order_id = self.order_service.create_order(order_data)["orderId"]
        except PersistenceError as exc:
            log.error("order_creation_failed", error=exc.message)
            return None
        except Exception:
            # the charge has already gone through
            log.error("order_creation_failed", exc_info=True)
            return None
        return order_id

    def _notify(self, log, cart: list[dict], total: float, phone: str) -> bool:
        try:
            self.notifier.send(cart, total, phone)
        except NotificationError as exc:
            log.warning("notification_failed", error=exc.message)
            return False
        except Exception:
            log.warning("notification_failed", exc_info=True)
            return False
        return True
