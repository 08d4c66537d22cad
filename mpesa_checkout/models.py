from datetime import datetime, timezone

from sqlalchemy import JSON, Column, DateTime, Integer, Numeric, String

from mpesa_checkout.database import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True)
    email = Column(String(255), unique=True, nullable=False)
    password = Column(String(255), nullable=False)          # bcrypt hash
    created_at = Column(DateTime(timezone=True), default=utcnow)


class Order(Base):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True)
    order_id = Column(String(255), unique=True, index=True, nullable=False)
    user_id = Column(Integer, index=True, nullable=False)
    transaction_id = Column(String(255), index=True, nullable=False)
    conversation_id = Column(String(255))
    transaction_reference = Column(String(255))
    third_party_reference = Column(String(255))
    amount = Column(Numeric(10, 2), nullable=False)
    cart = Column(JSON, nullable=False)
    customer_phone = Column(String(20))
    status = Column(String(50), default="paid")             # paid
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow)

    def to_dict(self) -> dict:
        return {
            "orderId": self.order_id,
            "userId": self.user_id,
            "transactionId": self.transaction_id,
            "conversationId": self.conversation_id,
            "transactionReference": self.transaction_reference,
            "thirdPartyReference": self.third_party_reference,
            "amount": float(self.amount),
            "cart": self.cart,
            "customerPhone": self.customer_phone,
            "status": self.status,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
            "updatedAt": self.updated_at.isoformat() if self.updated_at else None,
        }
