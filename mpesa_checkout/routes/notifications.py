import structlog
from fastapi import APIRouter, Depends

from mpesa_checkout.auth import verify_service_key
from mpesa_checkout.schemas import NotificationRequest

logger = structlog.get_logger(__name__)

router = APIRouter(tags=["notifications"])


@router.post("/send-email", dependencies=[Depends(verify_service_key)])
def send_email(request: NotificationRequest):
    order_items = "\n".join(
        f"{item.name} - {item.quantity} - {item.price} MZN" for item in request.cart
    )
    logger.info(
        "order_email_sent",
        customer_phone=request.customer_phone,
        total=request.total,
        order_items=order_items,
    )
    return {"success": True, "message": "Email sent successfully"}
