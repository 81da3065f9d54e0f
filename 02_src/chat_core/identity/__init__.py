"""Identity module."""

from .identity import IdentityService, IIdentityService
from .tokens import TokenClaims, TokenService

__all__ = ["IdentityService", "IIdentityService", "TokenClaims", "TokenService"]
