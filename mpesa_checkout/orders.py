import secrets
import time
from datetime import datetime, timezone
from typing import Any, Optional

import structlog
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from mpesa_checkout.exceptions import NotFoundError
from mpesa_checkout.models import Order

logger = structlog.get_logger(__name__)

ORDER_ID_PREFIX = "ORD"


def generate_order_id() -> str:
    return f"{ORDER_ID_PREFIX}{int(time.time() * 1000)}{secrets.token_hex(3).upper()}"


class OrderStore:
    """Order records, always read back scoped to the owning user."""

    def __init__(self, db: Session) -> None:
        self.db = db

    def create(
        self,
        user_id: int,
        transaction_id: str,
        amount: float,
        cart: list[dict[str, Any]],
        conversation_id: Optional[str] = None,
        transaction_reference: Optional[str] = None,
        third_party_reference: Optional[str] = None,
        customer_phone: Optional[str] = None,
        timestamp: Optional[datetime] = None,
    ) -> Order:
        created_at = timestamp or datetime.now(timezone.utc)
        order = Order(
            order_id=generate_order_id(),
            user_id=user_id,
            transaction_id=transaction_id,
            conversation_id=conversation_id,
            transaction_reference=transaction_reference,
            third_party_reference=third_party_reference,
            amount=amount,
            cart=cart,
            customer_phone=customer_phone,
            status="paid",
            created_at=created_at,
            updated_at=created_at,
        )
        self.db.add(order)
        try:
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        self.db.refresh(order)
        logger.info(
            "order_created",
            order_id=order.order_id,
            user_id=user_id,
            transaction_id=transaction_id,
            amount=amount,
            items=len(cart),
        )
        return order

    def list_by_user(self, user_id: int) -> list[Order]:
        stmt = select(Order).where(Order.user_id == user_id).order_by(Order.created_at.desc(), Order.id.desc())
        return list(self.db.scalars(stmt))

    def get_by_id(self, order_id: str, user_id: int) -> Order:
        return self._one(select(Order).where(Order.order_id == order_id, Order.user_id == user_id))

    def get_by_transaction_id(self, transaction_id: str, user_id: int) -> Order:
        return self._one(
            select(Order).where(Order.transaction_id == transaction_id, Order.user_id == user_id)
        )

    def count(self) -> int:
        return self.db.scalar(select(func.count()).select_from(Order))

    def _one(self, stmt) -> Order:
        order = self.db.scalars(stmt.limit(1)).first()
        if order is None:
            raise NotFoundError()
        return order
