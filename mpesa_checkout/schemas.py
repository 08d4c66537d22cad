from datetime import datetime
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class CartItem(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: Union[int, str]
    name: str
    price: float                # unit price
    quantity: int = 1


class PaymentRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    cart: list[CartItem] = []
    total: Optional[float] = Field(None, allow_inf_nan=False)
    customer_phone: Optional[str] = Field(None, alias="customerPhone")

    def cart_items(self) -> list[dict]:
        return [item.model_dump() for item in self.cart]


class Credentials(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = None


class RefreshTokenRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    refresh_token: Optional[str] = Field(None, alias="refreshToken")


class OrderCreateRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    user_id: Optional[int] = Field(None, alias="userId")
    transaction_id: Optional[str] = Field(None, alias="transactionId")
    conversation_id: Optional[str] = Field(None, alias="conversationId")
    transaction_reference: Optional[str] = Field(None, alias="transactionReference")
    third_party_reference: Optional[str] = Field(None, alias="thirdPartyReference")
    amount: Optional[float] = None
    cart: Optional[list[dict]] = None
    customer_phone: Optional[str] = Field(None, alias="customerPhone")
    timestamp: Optional[datetime] = None


class NotificationRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    cart: list[CartItem] = []
    total: Optional[float] = None
    customer_phone: Optional[str] = Field(None, alias="customerPhone")
