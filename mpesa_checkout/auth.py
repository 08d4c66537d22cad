from typing import Optional

import structlog
from fastapi import Header, Request

from mpesa_checkout.exceptions import AuthError, AuthenticationFailed
from mpesa_checkout.tokens import TokenClaims, TokenService

logger = structlog.get_logger(__name__)


def get_token_service(request: Request) -> TokenService:
    return request.app.state.tokens


def verify_token(request: Request, authorization: Optional[str] = Header(None)) -> TokenClaims:
    token = None
    if authorization:
        parts = authorization.split()
        if len(parts) == 2 and parts[0].lower() == "bearer":
            token = parts[1]
    if not token:
        raise AuthenticationFailed("Access token required", status_code=401)

    result = get_token_service(request).verify(token)
    if isinstance(result, AuthError):
        logger.info("token_verification_failed", kind=result.kind.value, detail=result.detail)
        raise AuthenticationFailed.from_auth_error(result)
    return result


def verify_service_key(request: Request, x_api_key: Optional[str] = Header(None)) -> None:
    if not x_api_key:
        raise AuthenticationFailed("API key required", status_code=401)
    if not get_token_service(request).verify_service_secret(x_api_key):
        logger.warning("service_key_rejected", path=request.url.path)
        raise AuthenticationFailed("Invalid API key", status_code=403)
