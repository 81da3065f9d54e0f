"""Bearer token issuance and verification."""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

import jwt

from ..errors import AuthError
from ..logging_config import get_logger

logger = get_logger(__name__)


@dataclass
class TokenClaims:
    """Identity carried by a bearer token."""

    user_id: str
    email: str
    name: str
    expires_at: datetime | None = None


class TokenService:
    """Issues and validates JWT bearer tokens carrying {userId, email, name}."""

    def __init__(self, secret: str, algorithm: str = "HS256", expires_in: int = 3600):
        if not secret:
            raise ValueError("JWT secret must not be empty")
        self._secret = secret
        self._algorithm = algorithm
        self._expires_in = expires_in

    def issue(
        self,
        user_id: str,
        email: str,
        name: str,
        expires_delta: timedelta | None = None,
    ) -> str:
        """Create a signed token for a user."""
        expire = datetime.now(timezone.utc) + (
            expires_delta if expires_delta is not None else timedelta(seconds=self._expires_in)
        )
        to_encode = {"userId": user_id, "email": email, "name": name, "exp": expire}
        return jwt.encode(to_encode, self._secret, algorithm=self._algorithm)

    def verify(self, token: str | None) -> TokenClaims:
        """Decode a token or raise AuthError."""
        if not token:
            raise AuthError("Access denied. No token provided.")

        try:
            payload = jwt.decode(token, self._secret, algorithms=[self._algorithm])
        except jwt.ExpiredSignatureError as exc:
            raise AuthError("Token has expired.", error_code="TOKEN_EXPIRED") from exc
        except jwt.PyJWTError as exc:
            logger.info("Rejected bearer token: %s", exc)
            raise AuthError("Invalid token.", error_code="TOKEN_INVALID") from exc

        if not payload.get("userId"):
            raise AuthError("Invalid token.", error_code="TOKEN_INVALID")

        exp = payload.get("exp")
        return TokenClaims(
            user_id=str(payload["userId"]),
            email=payload.get("email", ""),
            name=payload.get("name", ""),
            expires_at=datetime.fromtimestamp(exp, tz=timezone.utc) if exp else None,
        )
