from datetime import datetime, timezone

import structlog
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from mpesa_checkout.auth import verify_service_key, verify_token
from mpesa_checkout.database import get_db
from mpesa_checkout.exceptions import ValidationError
from mpesa_checkout.orders import OrderStore
from mpesa_checkout.schemas import OrderCreateRequest
from mpesa_checkout.tokens import TokenClaims

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/orders", tags=["orders"])


def get_order_store(db: Session = Depends(get_db)) -> OrderStore:
    return OrderStore(db)


@router.get("/health")
def health(store: OrderStore = Depends(get_order_store)):
    timestamp = datetime.now(timezone.utc).isoformat()
    try:
        orders_count = store.count()
    except SQLAlchemyError as exc:
        logger.error("order_store_unreachable", error=str(exc))
        return JSONResponse(
            status_code=503,
            content={
                "status": "error",
                "service": "Order Service",
                "database": "disconnected",
                "timestamp": timestamp,
            },
        )
    return {
        "status": "ok",
        "service": "Order Service",
        "database": "connected",
        "ordersCount": orders_count,
        "timestamp": timestamp,
    }


@router.post("", status_code=201, dependencies=[Depends(verify_service_key)])
def create_order(request: OrderCreateRequest, store: OrderStore = Depends(get_order_store)):
    if not request.user_id or not request.transaction_id or request.amount is None or request.cart is None:
        raise ValidationError("Missing required order fields")

    order = store.create(
        user_id=request.user_id,
        transaction_id=request.transaction_id,
        amount=request.amount,
        cart=request.cart,
        conversation_id=request.conversation_id,
        transaction_reference=request.transaction_reference,
        third_party_reference=request.third_party_reference,
        customer_phone=request.customer_phone,
        timestamp=request.timestamp,
    )
    return {"success": True, "message": "Order created successfully", "data": order.to_dict()}


@router.get("")
def list_orders(
    claims: TokenClaims = Depends(verify_token),
    store: OrderStore = Depends(get_order_store),
):
    orders = [order.to_dict() for order in store.list_by_user(claims.user_id)]
    return {"success": True, "count": len(orders), "data": orders}


@router.get("/transaction/{transaction_id}")
def get_order_by_transaction(
    transaction_id: str,
    claims: TokenClaims = Depends(verify_token),
    store: OrderStore = Depends(get_order_store),
):
    order = store.get_by_transaction_id(transaction_id, claims.user_id)
    return {"success": True, "data": order.to_dict()}


@router.get("/{order_id}")
def get_order(
    order_id: str,
    claims: TokenClaims = Depends(verify_token),
    store: OrderStore = Depends(get_order_store),
):
    order = store.get_by_id(order_id, claims.user_id)
    return {"success": True, "data": order.to_dict()}
