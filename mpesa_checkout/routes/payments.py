from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Request

from mpesa_checkout.auth import verify_token
from mpesa_checkout.orchestrator import PaymentOrchestrator
from mpesa_checkout.schemas import PaymentRequest
from mpesa_checkout.tokens import TokenClaims

router = APIRouter(prefix="/api", tags=["payments"])


def get_orchestrator(request: Request) -> PaymentOrchestrator:
    return request.app.state.orchestrator


@router.get("/health")
def health():
    return {
        "status": "ok",
        "service": "M-Pesa Payment Gateway",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@router.post("/payment")
def create_payment(
    request: PaymentRequest,
    claims: TokenClaims = Depends(verify_token),
    orchestrator: PaymentOrchestrator = Depends(get_orchestrator),
):
    result = orchestrator.process(claims.user_id, request)
    return {
        "success": True,
        "message": "Payment processed successfully",
        "data": result.data,
    }
