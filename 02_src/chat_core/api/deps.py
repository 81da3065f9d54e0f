"""Request dependencies shared by the routers."""

from typing import Awaitable, Callable

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from ..errors import AuthError
from ..identity import TokenClaims
from ..models import User
from .errors import to_http_exception

bearer_scheme = HTTPBearer(auto_error=False)


def claims_user(claims: TokenClaims) -> User:
    """Identity reference carried by a verified token."""
    return User(id=claims.user_id, name=claims.name, email=claims.email or None)


def create_auth_dependency(app) -> Callable[..., Awaitable[TokenClaims]]:
    """Build a dependency that rejects requests without a valid bearer token.

    Accepted callers are recorded with the identity service so their display
    names resolve in later fan-outs.
    """

    async def current_user(
        credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    ) -> TokenClaims:
        try:
            claims = app.tokens.verify(credentials.credentials if credentials else None)
        except AuthError as e:
            raise to_http_exception(e)

        await app.identity.observe(claims_user(claims))
        return claims

    return current_user
