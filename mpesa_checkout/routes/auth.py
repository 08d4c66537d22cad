from typing import Optional

import structlog
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from mpesa_checkout.auth import get_token_service
from mpesa_checkout.database import get_db
from mpesa_checkout.exceptions import AuthError, AuthenticationFailed, ValidationError
from mpesa_checkout.models import User
from mpesa_checkout.schemas import Credentials, RefreshTokenRequest
from mpesa_checkout.tokens import REFRESH, TokenService, check_password, hash_password

logger = structlog.get_logger(__name__)

router = APIRouter(tags=["auth"])


@router.post("/register", status_code=201)
def register(credentials: Credentials, db: Session = Depends(get_db)):
    if not credentials.email or not credentials.password:
        raise ValidationError("Email and password are required")

    user = User(email=credentials.email, password=hash_password(credentials.password))
    try:
        db.add(user)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("user_registration_failed", email=credentials.email)
        return JSONResponse(
            status_code=500,
            content={"success": False, "message": "Failed to register user"},
        )

    logger.info("user_registered", user_id=user.id, email=user.email)
    return {"success": True, "message": "User registered successfully"}


@router.post("/login")
def login(
    credentials: Credentials,
    db: Session = Depends(get_db),
    tokens: TokenService = Depends(get_token_service),
):
    if not credentials.email or not credentials.password:
        raise ValidationError("Email and password are required")

    user = db.scalars(select(User).where(User.email == credentials.email)).first()
    if user is None or not check_password(credentials.password, user.password):
        logger.info("login_rejected", email=credentials.email)
        raise AuthenticationFailed("Invalid email or password", status_code=401)

    logger.info("user_logged_in", user_id=user.id)
    return {
        "success": True,
        "message": "Login successful",
        "data": {
            "accessToken": tokens.issue_access_token(user.id, user.email),
            "refreshToken": tokens.issue_refresh_token(user.id, user.email),
        },
    }


@router.post("/refresh-token")
def refresh_token(request: RefreshTokenRequest, tokens: TokenService = Depends(get_token_service)):
    if not request.refresh_token:
        raise ValidationError("Refresh token required")

    result = tokens.refresh(request.refresh_token)
    if isinstance(result, AuthError):
        logger.info("token_refresh_rejected", kind=result.kind.value)
        raise AuthenticationFailed(
            "Refresh token expired" if result.expired else "Invalid refresh token",
            status_code=401,
            expired=result.expired,
        )

    return {
        "success": True,
        "message": "Token refreshed successfully",
        "data": {"accessToken": result},
    }


@router.post("/logout")
def logout(
    request: Optional[RefreshTokenRequest] = None,
    tokens: TokenService = Depends(get_token_service),
):
    # Tokens are stateless: the client discards them, nothing is invalidated here.
    user_id = "unknown"
    if request and request.refresh_token:
        claims = tokens.verify(request.refresh_token, token_type=REFRESH)
        if not isinstance(claims, AuthError):
            user_id = claims.user_id
    logger.info("user_logged_out", user_id=user_id)

    return {
        "success": True,
        "message": "Logged out successfully",
        "data": {"accessToken": None, "refreshToken": None},
    }
