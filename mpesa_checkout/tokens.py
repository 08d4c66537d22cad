"""
Bearer token issuance and verification.

Access and refresh tokens are HS256 JWTs signed with the same secret and
told apart by their ``type`` claim. Nothing is stored server-side: a token
is valid while its signature checks out and its expiry has not elapsed.
"""
import hmac
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional, Union

import bcrypt
from jose import ExpiredSignatureError, JWTError, jwt

from mpesa_checkout.exceptions import AuthError, AuthErrorKind

ALGORITHM = "HS256"
ACCESS = "access"
REFRESH = "refresh"


@dataclass(frozen=True)
class TokenClaims:
    user_id: int
    email: str
    expires_at: datetime
    token_type: str = ACCESS


VerifyResult = Union[TokenClaims, AuthError]


class TokenService:
    def __init__(
        self,
        secret: str,
        access_ttl: timedelta = timedelta(hours=1),
        refresh_ttl: timedelta = timedelta(days=7),
        service_secret: str = "",
    ) -> None:
        if not secret:
            raise RuntimeError("JWT_SECRET is not set. Check your .env file.")
        self._secret = secret
        self._service_secret = service_secret
        self.access_ttl = access_ttl
        self.refresh_ttl = refresh_ttl

    def issue_access_token(self, user_id: int, email: str) -> str:
        return self._issue(user_id, email, ACCESS, self.access_ttl)

    def issue_refresh_token(self, user_id: int, email: str) -> str:
        return self._issue(user_id, email, REFRESH, self.refresh_ttl)

    def _issue(self, user_id: int, email: str, token_type: str, ttl: timedelta) -> str:
        claims = {
            "userId": user_id,
            "email": email,
            "type": token_type,
            "exp": datetime.now(timezone.utc) + ttl,
        }
        return jwt.encode(claims, self._secret, algorithm=ALGORITHM)

    def verify(self, token: Optional[str], token_type: str = ACCESS) -> VerifyResult:
        """Check signature, expiry and token type.

        Returns the decoded claims, or an ``AuthError`` whose kind is
        EXPIRED only when the token is genuine but past its expiry.
        """
        if not token:
            return AuthError(AuthErrorKind.INVALID, "token missing")
        try:
            payload = jwt.decode(token, self._secret, algorithms=[ALGORITHM])
        except ExpiredSignatureError:
            return AuthError(AuthErrorKind.EXPIRED, "token expired")
        except JWTError as exc:
            return AuthError(AuthErrorKind.INVALID, str(exc))

        if payload.get("type") != token_type:
            return AuthError(AuthErrorKind.INVALID, "unexpected token type")
        try:
            return TokenClaims(
                user_id=payload["userId"],
                email=payload["email"],
                expires_at=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
                token_type=payload["type"],
            )
        except (KeyError, TypeError, ValueError):
            return AuthError(AuthErrorKind.INVALID, "malformed claims")

    def refresh(self, refresh_token: Optional[str]) -> Union[str, AuthError]:
        # The refresh token keeps its original expiry; only a new access token is minted.
        result = self.verify(refresh_token, token_type=REFRESH)
        if isinstance(result, AuthError):
            return result
        return self.issue_access_token(result.user_id, result.email)

    def verify_service_secret(self, key: Optional[str]) -> bool:
        if not key or not self._service_secret:
            return False
        return hmac.compare_digest(key.encode(), self._service_secret.encode())


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode(), bcrypt.gensalt(rounds=10)).decode()


def check_password(password: str, hashed: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode(), hashed.encode())
    except ValueError:
        return False
